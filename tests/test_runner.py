"""Tests for aichat.flows.runner module."""

from __future__ import annotations

from typing import Any

import pytest

from aichat.errors import FlowError, FlowValidationError, IncompleteFlowError
from aichat.flows import (
    ConditionalFlowItem,
    ConfirmationFlowItem,
    FlowRunner,
    FlowStruct,
    InputFlowItem,
    NoticeFlowItem,
    RunnerStatus,
)
from aichat.flows.runner import _Frame


def _branching_flow(results: list[dict[str, Any]]) -> tuple[FlowStruct, ConfirmationFlowItem]:
    confirm = ConfirmationFlowItem("custom", "Customize?")
    flow = FlowStruct(
        items=[
            InputFlowItem("title", "Title"),
            confirm,
            ConditionalFlowItem(
                "branch",
                lambda: confirm.value is True,
                yes_path=lambda: FlowStruct(
                    items=[InputFlowItem("model", "Model")],
                    required_keys=["model"],
                ),
                no_path=lambda: FlowStruct(data={"model": "default-model"}),
            ),
            NoticeFlowItem("All set"),
        ],
        required_keys=["title", "custom", "branch", "model"],
        on_success=lambda data: results.append(dict(data)) or "created",
        name="branching",
    )
    return flow, confirm


# =============================================================================
# Stepping Tests
# =============================================================================


def test_runner_walks_items_in_order() -> None:
    results: list[dict[str, Any]] = []
    flow, _ = _branching_flow(results)
    runner = FlowRunner(flow)

    assert runner.status == RunnerStatus.IDLE
    assert runner.start().key == "title"
    assert runner.submit("Chat").key == "custom"
    item = runner.submit("no")
    assert isinstance(item, NoticeFlowItem)
    assert runner.submit() is None

    assert runner.is_complete is True
    assert runner.result == "created"
    assert results == [{"title": "Chat", "custom": False, "branch": "no", "model": "default-model"}]


def test_runner_enters_branch_sub_flow() -> None:
    """Sub-flows with items of their own are presented item by item."""
    results: list[dict[str, Any]] = []
    flow, _ = _branching_flow(results)
    runner = FlowRunner(flow)

    runner.start()
    runner.submit("Chat")
    item = runner.submit("yes")

    assert item is not None and item.key == "model"
    assert runner.depth == 2
    assert runner.current_flow is not flow

    assert isinstance(runner.submit("gpt"), NoticeFlowItem)
    assert runner.depth == 1
    runner.submit()

    assert results == [{"title": "Chat", "custom": True, "branch": "yes", "model": "gpt"}]


def test_runner_validation_error_keeps_position() -> None:
    flow, _ = _branching_flow([])
    runner = FlowRunner(flow)
    runner.start()

    with pytest.raises(FlowValidationError):
        runner.submit("   ")

    assert runner.is_running is True
    assert runner.current_item is not None and runner.current_item.key == "title"
    assert runner.submit("ok").key == "custom"


def test_runner_exit_hook_failure_marks_failed() -> None:
    def explode(item: Any) -> None:
        raise RuntimeError("boom")

    flow = FlowStruct(items=[InputFlowItem("a", "A", on_exit=explode)], required_keys=["a"])
    runner = FlowRunner(flow)
    runner.start()

    with pytest.raises(RuntimeError, match="boom"):
        runner.submit("x")
    assert runner.status == RunnerStatus.FAILED
    assert runner.current_item is None


def test_runner_incomplete_flow_fails() -> None:
    """Completeness is checked by the flow when the last item is done."""
    flow = FlowStruct(items=[NoticeFlowItem("hi")], required_keys=["missing"])
    runner = FlowRunner(flow)
    runner.start()

    with pytest.raises(IncompleteFlowError):
        runner.submit()
    assert runner.is_failed is True


def test_runner_submit_when_not_running() -> None:
    runner = FlowRunner(FlowStruct())
    with pytest.raises(FlowError):
        runner.submit("x")


def test_runner_sub_flow_without_branch_fails() -> None:
    """A nested frame with nothing to merge into is an error, not a crash."""
    flow = FlowStruct(items=[InputFlowItem("a", "A")], required_keys=["a"])
    runner = FlowRunner(flow)
    runner.start()
    runner._frames.append(_Frame(FlowStruct(items=[InputFlowItem("b", "B")])))

    with pytest.raises(FlowError, match="no branch"):
        runner.submit("x")
    assert runner.is_failed is True


def test_runner_flow_without_input_completes_on_start() -> None:
    flow = FlowStruct(data={"a": "1"}, required_keys=["a"], on_success=lambda data: "ok")
    runner = FlowRunner(flow)

    assert runner.start() is None
    assert runner.is_complete is True
    assert runner.result == "ok"


def test_runner_cancel_reports_partial_data() -> None:
    cancelled: list[dict[str, Any]] = []
    flow, _ = _branching_flow([])
    runner = FlowRunner(flow, on_cancel=cancelled.append)
    runner.start()
    runner.submit("Chat")

    runner.cancel()
    runner.cancel()

    assert runner.is_cancelled is True
    assert cancelled == [{"title": "Chat"}]


# =============================================================================
# Pause / Resume Tests
# =============================================================================


def test_pause_and_resume_into_fresh_flow() -> None:
    """A paused position restores into a newly built copy of the same flow."""
    first_results: list[dict[str, Any]] = []
    flow, _ = _branching_flow(first_results)
    runner = FlowRunner(flow)
    runner.start()
    runner.submit("Chat")
    snapshot = runner.pause()

    results: list[dict[str, Any]] = []
    fresh, confirm = _branching_flow(results)
    resumed = FlowRunner(fresh)
    item = resumed.resume(snapshot)

    assert item is confirm
    assert fresh.data == {"title": "Chat"}
    resumed.submit("no")
    resumed.submit()
    assert results == [{"title": "Chat", "custom": False, "branch": "no", "model": "default-model"}]
    assert first_results == []


def test_pause_inside_branch_is_rejected() -> None:
    flow, _ = _branching_flow([])
    runner = FlowRunner(flow)
    runner.start()
    runner.submit("Chat")
    runner.submit("yes")

    with pytest.raises(FlowError):
        runner.pause()


def test_resume_rejects_mismatched_snapshot() -> None:
    runner = FlowRunner(FlowStruct(items=[InputFlowItem("a", "A")]))
    with pytest.raises(FlowError):
        runner.resume(b'{"index": 0, "data": {}, "items": []}')
    with pytest.raises(FlowError):
        runner.resume(b"garbage")
