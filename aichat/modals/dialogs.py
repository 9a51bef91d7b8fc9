"""Modal dialogs.

Each dialog follows the ViewState contract and renders a rich Panel through
RichRenderer. Dialogs close themselves through the Navigator they are given;
callbacks run synchronously inside update() and must not open modals
directly (return an Effect for that instead).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from prompt_toolkit.keys import Keys
from rich.console import Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.spinner import Spinner
from rich.text import Text

from aichat._logger import get_logger
from aichat.errors import AIChatError, FlowValidationError
from aichat.events import KeyTestCompletedEvent
from aichat.flows.items import ConfirmationFlowItem, FlowItem, InputFlowItem
from aichat.flows.runner import FlowRunner, RunnerStatus
from aichat.modals.base import Effect, KeyEvent, Navigator, ViewContext, ViewState, ViewType
from aichat.rendering import RichRenderer

logger = get_logger(__name__)

NEXT_KEYS = frozenset({Keys.Right, Keys.Tab})
PREVIOUS_KEYS = frozenset({Keys.Left, Keys.BackTab})
ERASE_KEYS = frozenset({Keys.Backspace, Keys.ControlH})


class Modal(ABC):
    """Base for dialogs: modal view type, no initial effect."""

    view_type = ViewType.MODAL
    border_style = "blue"
    closed = False
    """Set when the dialog finished during init() and should not stay shown."""

    def __init__(self, renderer: RichRenderer | None = None) -> None:
        self.renderer = renderer or RichRenderer()

    def init(self) -> Effect | None:
        return None

    def render(self, ctx: ViewContext) -> str:
        panel = Panel(
            self.body(),
            title=self.title(),
            subtitle=self.hint(),
            border_style=self.border_style,
            padding=(1, 2),
        )
        return self.renderer.render(panel, width=ctx.width).rstrip("\n")

    def title(self) -> str | None:
        return None

    def hint(self) -> str | None:
        return None

    @abstractmethod
    def body(self) -> RenderableType: ...

    @abstractmethod
    def update(self, event: KeyEvent, ctx: ViewContext, nav: Navigator) -> tuple[ViewState, Effect | None]: ...


# =============================================================================
# Confirmation
# =============================================================================


@dataclass
class ModalOption:
    """A selectable choice. on_select may return an Effect."""

    label: str
    on_select: Callable[[], Effect | None] | None = None


class ConfirmationModal(Modal):
    """Question with one to three options.

    Left/right (or tab) move the selection, enter picks it, escape closes
    without picking.
    """

    def __init__(
        self,
        prompt: str,
        options: Sequence[ModalOption],
        *,
        selected: int = 0,
        on_cancel: Callable[[], None] | None = None,
        renderer: RichRenderer | None = None,
    ) -> None:
        if not 1 <= len(options) <= 3:
            raise ValueError("ConfirmationModal needs 1 to 3 options")
        super().__init__(renderer)
        self.prompt = prompt
        self.options = list(options)
        self.selected = selected % len(self.options)
        self._on_cancel = on_cancel

    def hint(self) -> str:
        return "[dim]Left/Right: Choose | Enter: Select | Esc: Cancel[/dim]"

    def body(self) -> RenderableType:
        choices = Text()
        for index, option in enumerate(self.options):
            if index:
                choices.append("  ")
            style = "bold reverse cyan" if index == self.selected else ""
            choices.append(f" {option.label} ", style=style)
        return Group(Text(self.prompt, style="bold"), Text(""), choices)

    def update(self, event: KeyEvent, ctx: ViewContext, nav: Navigator) -> tuple[ViewState, Effect | None]:
        if event.key in NEXT_KEYS:
            self.selected = (self.selected + 1) % len(self.options)
        elif event.key in PREVIOUS_KEYS:
            self.selected = (self.selected - 1) % len(self.options)
        elif event.key == Keys.Enter:
            nav.hide_modal()
            option = self.options[self.selected]
            if option.on_select is not None:
                return self, option.on_select()
        elif event.key == Keys.Escape:
            nav.hide_modal()
            if self._on_cancel is not None:
                self._on_cancel()
        return self, None


# =============================================================================
# Input
# =============================================================================


class InputBoxModal(Modal):
    """Single line text input.

    on_submit receives the typed text. If it raises FlowValidationError the
    message is shown and the modal stays open for another attempt.
    """

    def __init__(
        self,
        prompt: str,
        on_submit: Callable[[str], Effect | None],
        *,
        on_cancel: Callable[[], None] | None = None,
        secret: bool = False,
        initial: str = "",
        renderer: RichRenderer | None = None,
    ) -> None:
        super().__init__(renderer)
        self.prompt = prompt
        self.secret = secret
        self.buffer = initial
        self.error: str | None = None
        self._on_submit = on_submit
        self._on_cancel = on_cancel

    def hint(self) -> str:
        return "[dim]Enter: Submit | Esc: Cancel[/dim]"

    def body(self) -> RenderableType:
        shown = "*" * len(self.buffer) if self.secret else self.buffer
        parts: list[RenderableType] = [
            Text(self.prompt, style="bold"),
            Text(""),
            Text.assemble(("> ", "cyan"), shown, ("_", "blink")),
        ]
        if self.error:
            parts.extend([Text(""), Text(self.error, style="red")])
        return Group(*parts)

    def update(self, event: KeyEvent, ctx: ViewContext, nav: Navigator) -> tuple[ViewState, Effect | None]:
        if event.is_char:
            self.buffer += event.text
            self.error = None
        elif event.key in ERASE_KEYS:
            self.buffer = self.buffer[:-1]
        elif event.key == Keys.Enter:
            try:
                effect = self._on_submit(self.buffer)
            except FlowValidationError as e:
                self.error = e.user_message
                return self, None
            nav.hide_modal()
            return self, effect
        elif event.key == Keys.Escape:
            nav.hide_modal()
            if self._on_cancel is not None:
                self._on_cancel()
        return self, None


# =============================================================================
# Information
# =============================================================================


class InformationModal(Modal):
    """Markdown content with a title. Enter or escape closes it."""

    def __init__(
        self,
        title: str,
        content: str,
        *,
        on_close: Callable[[], None] | None = None,
        renderer: RichRenderer | None = None,
    ) -> None:
        super().__init__(renderer)
        self._title = title
        self.content = content
        self._on_close = on_close

    def title(self) -> str | None:
        return f"[bold]{self._title}[/bold]" if self._title else None

    def hint(self) -> str:
        return "[dim]Enter/Esc: Close[/dim]"

    def body(self) -> RenderableType:
        return Markdown(self.content, code_theme=self.renderer.code_theme)

    def update(self, event: KeyEvent, ctx: ViewContext, nav: Navigator) -> tuple[ViewState, Effect | None]:
        if event.key in (Keys.Enter, Keys.Escape):
            nav.hide_modal()
            if self._on_close is not None:
                self._on_close()
        return self, None


class ErrorNoticeModal(Modal):
    """Error code and message with a single OK button."""

    border_style = "red"

    def __init__(
        self,
        code: str,
        message: str,
        on_confirm: Callable[[], None] | None = None,
        *,
        renderer: RichRenderer | None = None,
    ) -> None:
        super().__init__(renderer)
        self.code = code
        self.message = message
        self._on_confirm = on_confirm

    @classmethod
    def from_error(
        cls,
        error: AIChatError,
        on_confirm: Callable[[], None] | None = None,
        *,
        renderer: RichRenderer | None = None,
    ) -> ErrorNoticeModal:
        return cls(error.error_type.value, error.user_message, on_confirm, renderer=renderer)

    def title(self) -> str:
        return f"[red]Error: {self.code}[/red]"

    def body(self) -> RenderableType:
        return Group(Text(self.message), Text(""), Text(" OK ", style="bold reverse red"))

    def update(self, event: KeyEvent, ctx: ViewContext, nav: Navigator) -> tuple[ViewState, Effect | None]:
        if event.key in (Keys.Enter, Keys.Escape):
            nav.hide_modal()
            if self._on_confirm is not None:
                self._on_confirm()
        return self, None


# =============================================================================
# API Key Test
# =============================================================================


class KeyTestModal(Modal):
    """Shows a spinner until the key test for provider_name reports back.

    Observes the chat subject while on the modal stack; events for other
    providers are ignored.
    """

    def __init__(self, provider_name: str, *, renderer: RichRenderer | None = None) -> None:
        super().__init__(renderer)
        self.provider_name = provider_name
        self.result: KeyTestCompletedEvent | None = None
        self._spinner = Spinner("dots", text=f"Testing API key for {provider_name}...")

    @property
    def done(self) -> bool:
        return self.result is not None

    @property
    def border_style(self) -> str:  # type: ignore[override]
        if self.result is None:
            return "blue"
        return "green" if self.result.success else "red"

    def notify(self, event: Any) -> None:
        if isinstance(event, KeyTestCompletedEvent) and event.provider == self.provider_name:
            self.result = event

    def title(self) -> str:
        return "[bold]API Key Test[/bold]"

    def hint(self) -> str:
        return "[dim]Enter/Esc: Close[/dim]" if self.done else "[dim]Esc: Close[/dim]"

    def body(self) -> RenderableType:
        if self.result is None:
            return self._spinner
        if self.result.success:
            return Text(f"✓ {self.result.message}", style="green")
        return Text(f"✗ [{self.result.code}] {self.result.message}", style="red")

    def update(self, event: KeyEvent, ctx: ViewContext, nav: Navigator) -> tuple[ViewState, Effect | None]:
        if event.key == Keys.Escape or (event.key == Keys.Enter and self.done):
            nav.hide_modal()
        return self, None


# =============================================================================
# Flow
# =============================================================================


class _InlineNavigator:
    """Navigator handed to FlowModal's inner dialog. Records hide requests."""

    def __init__(self, outer: Navigator) -> None:
        self._outer = outer
        self.hidden = False

    def show_modal(self, view: ViewState) -> None:
        self._outer.show_modal(view)

    def hide_modal(self) -> None:
        self.hidden = True

    def quit(self) -> None:
        self._outer.quit()


class FlowModal(Modal):
    """Presents a FlowRunner's items one after another in a single modal.

    Input items use InputBoxModal, confirmations use ConfirmationModal and
    notices use InformationModal. Validation errors re-prompt in place. Any
    other failure closes the modal and goes to on_error (or propagates when
    there is none). Completion closes the modal and passes the flow result to
    on_done. A flow that settles while starting is reported from init().
    """

    def __init__(
        self,
        runner: FlowRunner,
        *,
        title: str = "",
        on_done: Callable[[Any], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        renderer: RichRenderer | None = None,
    ) -> None:
        super().__init__(renderer)
        self.runner = runner
        self._title = title or runner.flow.name
        self._on_done = on_done
        self._on_error = on_error
        self._failure: Exception | None = None
        if runner.status == RunnerStatus.IDLE:
            # Reported from init(): the flow may finish or fail before any input
            try:
                runner.start()
            except Exception as e:
                self._failure = e
        self.dialog = self._dialog_for(runner.current_item)

    @property
    def _settled(self) -> bool:
        return self._failure is not None or not self.runner.is_running

    def init(self) -> Effect | None:
        if self._settled:
            self.closed = True
            self._report()
        return None

    def title(self) -> str | None:
        return f"[bold]{self._title}[/bold]" if self._title else None

    def body(self) -> RenderableType:
        return Text("")

    def render(self, ctx: ViewContext) -> str:
        if self.dialog is None:
            return ""
        return self.dialog.render(ctx)

    def update(self, event: KeyEvent, ctx: ViewContext, nav: Navigator) -> tuple[ViewState, Effect | None]:
        if self.closed:
            return self, None
        effect = None
        inline = _InlineNavigator(nav)
        if self.dialog is not None and not self._settled:
            _, effect = self.dialog.update(event, ctx, inline)

        if self._settled:
            self.closed = True
            nav.hide_modal()
            self._report()
        elif inline.hidden:
            self.dialog = self._dialog_for(self.runner.current_item)
        return self, effect

    def _report(self) -> None:
        """Hand the outcome of a finished runner to on_error or on_done."""
        if self._failure is not None:
            failure, self._failure = self._failure, None
            logger.debug("Flow %r failed: %s", self.runner.flow.name, failure)
            if self._on_error is None:
                raise failure
            self._on_error(failure)
        elif self.runner.is_complete and self._on_done is not None:
            self._on_done(self.runner.result)

    def _submit(self, raw: Any) -> None:
        try:
            self.runner.submit(raw)
        except FlowValidationError as e:
            # Still running means the item rejected the input: re-prompt
            if self.runner.is_running:
                raise
            self._failure = e
        except Exception as e:
            self._failure = e

    def _dialog_for(self, item: FlowItem | None) -> Modal | None:
        if item is None:
            return None
        if isinstance(item, InputFlowItem):
            return InputBoxModal(
                item.text,
                on_submit=self._submit,
                on_cancel=self.runner.cancel,
                secret=item.secret,
                renderer=self.renderer,
            )
        if isinstance(item, ConfirmationFlowItem):
            return ConfirmationModal(
                item.text,
                [
                    ModalOption("Yes", lambda: self._submit(True)),
                    ModalOption("No", lambda: self._submit(False)),
                ],
                selected=1 if item.default is False else 0,
                on_cancel=self.runner.cancel,
                renderer=self.renderer,
            )
        return InformationModal(self._title, item.text, on_close=lambda: self._submit(None), renderer=self.renderer)
