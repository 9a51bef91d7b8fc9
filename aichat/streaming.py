"""Accumulation of streamed assistant replies."""

from __future__ import annotations

from collections.abc import Callable

from aichat.rendering import DEFAULT_WIDTH, RichRenderer


class TextStreamer:
    """Collects reply fragments in arrival order and renders the reply so far.

    Fragments are never reordered or dropped. After finalize() the reply
    stays readable through text until the next start().
    """

    def __init__(
        self,
        renderer: RichRenderer | None = None,
        code_theme: str | None = None,
        get_width: Callable[[], int] | None = None,
    ) -> None:
        """Create a streamer.

        Args:
            renderer: Markdown renderer, a default RichRenderer if omitted.
            code_theme: Theme for fenced code, the renderer's own if omitted.
            get_width: Returns the width to render at, read on every render.
        """
        self._renderer = renderer or RichRenderer()
        self._code_theme = code_theme
        self._get_width = get_width or (lambda: DEFAULT_WIDTH)
        self._fragments: list[str] = []
        self._last_render: tuple[tuple[str, int], str] | None = None
        self._streaming = False

    @property
    def text(self) -> str:
        """Reply text received so far."""
        return "".join(self._fragments)

    @property
    def chunk_count(self) -> int:
        """Fragments received since start(), not counting the initial text."""
        return max(len(self._fragments) - 1, 0)

    @property
    def is_active(self) -> bool:
        return self._streaming

    def start(self, initial_content: str = "") -> str:
        """Begin a new reply, discarding the previous one."""
        self._fragments = [initial_content]
        self._streaming = True
        return self.render()

    def update(self, delta: str) -> str:
        """Append one fragment and return the re-rendered reply."""
        if not self._fragments:
            self._fragments.append("")
        self._fragments.append(delta)
        return self.render()

    def finalize(self) -> str:
        """Mark the reply finished and return its last render."""
        self._streaming = False
        return self.render()

    def stop(self) -> None:
        """Mark the reply finished without rendering it, e.g. after an error."""
        self._streaming = False

    def render(self) -> str:
        """Render the reply so far as ANSI markdown, without trailing newlines.

        The last render is reused while neither the text nor the width changed.
        """
        text = self.text
        if not text:
            return ""
        key = (text, self._get_width())
        if self._last_render is not None and self._last_render[0] == key:
            return self._last_render[1]
        rendered = self._renderer.render_markdown(text, code_theme=self._code_theme, width=key[1])
        rendered = rendered.rstrip("\n")
        self._last_render = (key, rendered)
        return rendered
