"""ANSI rendering through rich.

Views return strings; whoever owns the terminal writes them out.
"""

from __future__ import annotations

from io import StringIO
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

DEFAULT_WIDTH = 80


class RichRenderer:
    """Turns rich renderables into ANSI strings at a fixed or given width.

    Each call uses its own Console, so no state carries over between views.
    """

    def __init__(self, width: int | None = None, code_theme: str = "monokai") -> None:
        self._width = width or DEFAULT_WIDTH
        self.code_theme = code_theme

    @property
    def width(self) -> int:
        return self._width

    def render(self, renderable: Any, width: int | None = None) -> str:
        """Print renderable into a buffer and return the ANSI text.

        Args:
            renderable: Anything rich can print.
            width: Width for this call; the renderer's width when omitted.
        """
        buffer = StringIO()
        Console(file=buffer, force_terminal=True, width=width or self._width).print(renderable)
        return buffer.getvalue()

    def render_markdown(self, text: str, code_theme: str | None = None, width: int | None = None) -> str:
        return self.render(Markdown(text, code_theme=code_theme or self.code_theme), width=width)

    def render_text(self, text: str, style: str | None = None, width: int | None = None) -> str:
        return self.render(Text(text, style=style or ""), width=width)

    def render_panel(
        self,
        content: Any,
        title: str | None = None,
        border_style: str = "blue",
        width: int | None = None,
    ) -> str:
        """Render content inside a bordered panel."""
        return self.render(Panel(content, title=title, border_style=border_style), width=width)
