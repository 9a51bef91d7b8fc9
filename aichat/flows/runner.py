"""Interactive driver for a FlowStruct.

FlowRunner presents one item at a time to the UI layer. Input is validated
against the current item; validation errors leave the runner where it is so
the same item can be presented again. Conditional items need no input: the
runner resolves them itself and walks into the chosen sub-flow when it has
items of its own.

Example:
    runner = FlowRunner(new_chat_flow(on_success=create_chat))
    item = runner.start()
    while item is not None:
        item = runner.submit(read_answer(item))
    chat = runner.result
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from pydantic import BaseModel, ValidationError

from aichat._logger import get_logger
from aichat.errors import FlowError
from aichat.flows.flow import FlowData, FlowStruct, FlowValue
from aichat.flows.items import BranchTag, ConditionalFlowItem, FlowItem

logger = get_logger(__name__)


class RunnerStatus(Enum):
    """Lifecycle of a FlowRunner."""

    IDLE = auto()
    RUNNING = auto()
    COMPLETED = auto()
    CANCELLED = auto()
    FAILED = auto()


class RunnerSnapshot(BaseModel):
    """Paused position of a runner at the top level of its flow."""

    index: int
    data: dict[str, FlowValue]
    items: list[str]


@dataclass
class _Frame:
    flow: FlowStruct
    index: int = 0
    branch_item: ConditionalFlowItem | None = None
    tag: BranchTag | None = None


class FlowRunner:
    """Steps through a flow's items, one user answer at a time."""

    def __init__(
        self,
        flow: FlowStruct,
        *,
        on_cancel: Callable[[FlowData], None] | None = None,
    ) -> None:
        self.flow = flow
        self._on_cancel = on_cancel
        self._frames: list[_Frame] = []
        self._status = RunnerStatus.IDLE
        self.result: Any = None

    @property
    def status(self) -> RunnerStatus:
        """Current runner status."""
        return self._status

    @property
    def is_running(self) -> bool:
        return self._status == RunnerStatus.RUNNING

    @property
    def is_complete(self) -> bool:
        return self._status == RunnerStatus.COMPLETED

    @property
    def is_cancelled(self) -> bool:
        return self._status == RunnerStatus.CANCELLED

    @property
    def is_failed(self) -> bool:
        return self._status == RunnerStatus.FAILED

    @property
    def depth(self) -> int:
        """Number of nested flows currently open (1 at top level)."""
        return len(self._frames)

    @property
    def current_flow(self) -> FlowStruct | None:
        """Flow owning the current item."""
        if not self.is_running:
            return None
        return self._frames[-1].flow

    @property
    def current_item(self) -> FlowItem | None:
        """Item awaiting input, or None when the runner is not running."""
        if not self.is_running:
            return None
        frame = self._frames[-1]
        return frame.flow.items[frame.index]

    def start(self) -> FlowItem | None:
        """Begin at the first item. Returns the first item needing input."""
        self._frames = [_Frame(self.flow)]
        self.result = None
        self._status = RunnerStatus.RUNNING
        logger.debug("Starting flow %r", self.flow.name)
        self._settle()
        return self.current_item

    def submit(self, raw: Any = None) -> FlowItem | None:
        """Answer the current item and advance.

        Returns:
            The next item needing input, or None when the runner stopped.

        Raises:
            FlowValidationError: If raw is rejected. The runner does not move.
            FlowError: If the runner is not running.
        """
        item = self.current_item
        if item is None:
            raise FlowError(f"flow {self.flow.name!r} is not running")
        item.accept(raw)

        frame = self._frames[-1]
        try:
            item.on_exit(frame.flow)
        except Exception:
            self._status = RunnerStatus.FAILED
            raise
        frame.index += 1
        self._settle()
        return self.current_item

    def cancel(self) -> None:
        """Abandon the flow and report what was collected so far."""
        if not self.is_running:
            return
        self._status = RunnerStatus.CANCELLED
        logger.debug("Flow %r cancelled", self.flow.name)
        if self._on_cancel is not None:
            self._on_cancel(dict(self.flow.data))

    # -------------------------------------------------------------------------
    # Pause / Resume
    # -------------------------------------------------------------------------

    def pause(self) -> bytes:
        """Serialize the cursor position, data bag and item states.

        Raises:
            FlowError: If the runner is not running at the top level.
        """
        if not self.is_running:
            raise FlowError(f"flow {self.flow.name!r} is not running")
        if len(self._frames) > 1:
            raise FlowError("cannot pause inside a branch sub-flow")
        snapshot = RunnerSnapshot(
            index=self._frames[0].index,
            data=dict(self.flow.data),
            items=[item.marshal_state().decode() for item in self.flow.items],
        )
        return snapshot.model_dump_json().encode()

    def resume(self, data: bytes) -> FlowItem | None:
        """Restore a paused position and continue from it.

        Raises:
            FlowError: If the snapshot does not fit this flow.
        """
        try:
            snapshot = RunnerSnapshot.model_validate_json(data)
        except ValidationError as e:
            raise FlowError(f"invalid runner snapshot: {e}") from e
        if len(snapshot.items) != len(self.flow.items) or not 0 <= snapshot.index <= len(self.flow.items):
            raise FlowError(f"snapshot does not match flow {self.flow.name!r}")

        self.flow.data = {}
        self.flow.merge_child_data(snapshot.data)
        for item, state in zip(self.flow.items, snapshot.items, strict=True):
            item.unmarshal_state(state.encode())

        self._frames = [_Frame(self.flow, index=snapshot.index)]
        self.result = None
        self._status = RunnerStatus.RUNNING
        self._settle()
        return self.current_item

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _settle(self) -> None:
        try:
            self._advance_to_input()
        except Exception:
            self._status = RunnerStatus.FAILED
            raise

    def _advance_to_input(self) -> None:
        """Skip items that need no input, entering and leaving sub-flows."""
        while True:
            frame = self._frames[-1]

            if frame.index >= len(frame.flow.items):
                if len(self._frames) == 1:
                    self.result = self.flow.run()
                    self._status = RunnerStatus.COMPLETED
                    logger.debug("Flow %r completed", self.flow.name)
                    return
                self._frames.pop()
                parent = self._frames[-1]
                branch_item = frame.branch_item
                if branch_item is None or frame.tag is None:
                    raise FlowError("sub-flow frame has no branch to merge into its parent")
                branch_item.apply_branch(parent.flow, frame.tag, frame.flow)
                branch_item.on_exit(parent.flow)
                parent.index += 1
                continue

            item = frame.flow.items[frame.index]
            item.on_enter(frame.flow)
            if not isinstance(item, ConditionalFlowItem):
                return

            tag, child = item.branch()
            if child is not None and child.items:
                self._frames.append(_Frame(child, branch_item=item, tag=tag))
                continue
            item.apply_branch(frame.flow, tag, child)
            item.on_exit(frame.flow)
            frame.index += 1
