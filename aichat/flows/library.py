"""Built-in flows used by the menus."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from aichat.errors import FlowCancelledError
from aichat.flows.flow import FlowData, FlowStruct
from aichat.flows.items import (
    ConditionalFlowItem,
    ConfirmationFlowItem,
    FlowItem,
    InputFlowItem,
)
from aichat.transcript import ChatRecord, build_chat_record

if TYPE_CHECKING:
    from aichat.providers.registry import ProviderRegistry

CONFIRM_EXIT_KEY = "confirm_exit"


def exit_flow(on_exit: Callable[[], Any] | None = None, *, ask: bool = False) -> FlowStruct:
    """Confirm before exiting.

    Without ask the flow has no items and expects "confirm_exit" to be set
    by whatever presented the question (e.g. a confirmation modal).
    """

    def _on_success(data: FlowData) -> Any:
        answer = data.get(CONFIRM_EXIT_KEY)
        if answer is True or answer in ("yes", "y"):
            return on_exit() if on_exit is not None else None
        raise FlowCancelledError("exit cancelled")

    items: list[FlowItem] = []
    if ask:
        items.append(ConfirmationFlowItem(CONFIRM_EXIT_KEY, "Are you sure you want to exit?"))

    return FlowStruct(
        items=items,
        required_keys=[CONFIRM_EXIT_KEY],
        on_success=_on_success,
        name="exit",
    )


def new_chat_flow(
    on_success: Callable[[ChatRecord], Any],
    *,
    default_prompt: str = "",
    default_model: str = "",
) -> FlowStruct:
    """Collect a title, a system prompt and a model for a new chat.

    When defaults exist the user may accept them instead of typing both.
    """
    items: list[FlowItem] = [InputFlowItem("title", "Enter chat title")]

    def _ask_prompt_and_model() -> FlowStruct:
        return FlowStruct(
            items=[
                InputFlowItem("prompt", "Enter prompt", default=default_prompt or None),
                InputFlowItem("model", "Enter model", default=default_model or None),
            ],
            required_keys=["prompt", "model"],
            name="new_chat.custom",
        )

    if default_prompt and default_model:
        use_defaults = ConfirmationFlowItem("use_defaults", "Use the default prompt and model?", default=True)
        items.append(use_defaults)
        items.append(
            ConditionalFlowItem(
                "defaults_branch",
                predicate=lambda: use_defaults.value is True,
                yes_path=lambda: FlowStruct(
                    data={"prompt": default_prompt, "model": default_model},
                    required_keys=["prompt", "model"],
                    name="new_chat.defaults",
                ),
                no_path=_ask_prompt_and_model,
            )
        )
    else:
        items.extend(_ask_prompt_and_model().items)

    return FlowStruct(
        items=items,
        required_keys=["title", "prompt", "model"],
        on_success=lambda data: on_success(build_chat_record(data)),
        name="new_chat",
    )


def api_key_flow(registry: ProviderRegistry, on_success: Callable[[FlowData], Any]) -> FlowStruct:
    """Collect a provider name and an API key for it."""

    def _known_provider(name: str) -> str | None:
        if name in registry:
            return None
        known = ", ".join(sorted(registry.names())) or "none configured"
        return f"Unknown provider {name!r} (available: {known})"

    return FlowStruct(
        items=[
            InputFlowItem("provider", "Provider name", validator=_known_provider),
            InputFlowItem("api_key", "API key", secret=True),
        ],
        required_keys=["provider", "api_key"],
        on_success=on_success,
        name="api_key",
    )
