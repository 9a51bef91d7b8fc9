"""Routes key events to the active view and collects deferred effects."""

from __future__ import annotations

from aichat._logger import get_logger
from aichat.modals.base import Effect, KeyEvent, ViewContext, ViewState
from aichat.modals.stack import ModalStack

logger = get_logger(__name__)


class ModalController:
    """Navigator over a base view and a modal stack.

    The top modal receives input; with no modal open the base view does,
    and the state it returns replaces it. Effects returned by update() and
    by init() of newly shown modals are handed back to the event loop.
    """

    def __init__(self, base_view: ViewState, stack: ModalStack | None = None) -> None:
        self.base_view = base_view
        self.stack = stack if stack is not None else ModalStack()
        self.quit_requested = False
        self._pending: list[Effect] = []

    @property
    def active_view(self) -> ViewState:
        """View that receives the next key event."""
        return self.stack.current() or self.base_view

    # -------------------------------------------------------------------------
    # Navigator
    # -------------------------------------------------------------------------

    def show_modal(self, view: ViewState) -> None:
        self.stack.push(view)
        try:
            effect = view.init()
        finally:
            if getattr(view, "closed", False):
                self.stack.pop()
        if effect is not None:
            self._pending.append(effect)

    def hide_modal(self) -> None:
        if self.stack.pop() is None:
            logger.debug("hide_modal() with no modal open")

    def quit(self) -> None:
        self.quit_requested = True

    # -------------------------------------------------------------------------
    # Event Loop Hooks
    # -------------------------------------------------------------------------

    def handle_event(self, event: KeyEvent, ctx: ViewContext) -> list[Effect]:
        """Deliver event to the active view.

        Returns:
            Effects to schedule, in the order they were produced.
        """
        modal = self.stack.current()
        if modal is None:
            self.base_view, effect = self.base_view.update(event, ctx, self)
        else:
            _, effect = modal.update(event, ctx, self)

        effects, self._pending = self._pending, []
        if effect is not None:
            effects.append(effect)
        return effects

    def render(self, ctx: ViewContext) -> str:
        """Render the active view."""
        return self.active_view.render(ctx)

    async def run_effects(self, effects: list[Effect]) -> None:
        """Await effects one after another."""
        for effect in effects:
            await effect()
