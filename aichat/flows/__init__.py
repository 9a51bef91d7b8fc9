"""Flow engine.

This module provides the multi-step flow components:
- FlowStruct: ordered items, data bag, required keys, success callback
- FlowItem variants: input, confirmation, notice, conditional
- FlowRunner: presents items one at a time, with pause/resume
- Built-in flows: exit, new chat, API key

Example:
    from aichat.flows import ConditionalFlowItem, FlowStruct

    child = FlowStruct(data={"k1": "v"}, required_keys=["k1"])
    parent = FlowStruct(
        items=[ConditionalFlowItem("branch", lambda: True, yes_path=child)],
        required_keys=["branch", "k1"],
        on_success=lambda data: data,
    )
    parent.run()  # {"branch": "yes", "k1": "v"}
"""

from __future__ import annotations

from aichat.flows.flow import FlowData, FlowStruct, FlowValue, check_flow_value
from aichat.flows.items import (
    NO,
    YES,
    ConditionalFlowItem,
    ConfirmationFlowItem,
    FlowItem,
    FlowItemKind,
    FlowItemState,
    InputFlowItem,
    NoticeFlowItem,
)
from aichat.flows.library import CONFIRM_EXIT_KEY, api_key_flow, exit_flow, new_chat_flow
from aichat.flows.runner import FlowRunner, RunnerStatus

__all__ = [
    "CONFIRM_EXIT_KEY",
    "NO",
    "YES",
    "ConditionalFlowItem",
    "ConfirmationFlowItem",
    "FlowData",
    "FlowItem",
    "FlowItemKind",
    "FlowItemState",
    "FlowRunner",
    "FlowStruct",
    "FlowValue",
    "InputFlowItem",
    "NoticeFlowItem",
    "RunnerStatus",
    "api_key_flow",
    "check_flow_value",
    "exit_flow",
    "new_chat_flow",
]
