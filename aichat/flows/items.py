"""Flow items: the steps a FlowStruct is made of.

The set of item kinds is closed:
- InputFlowItem: free text captured under a key
- ConfirmationFlowItem: yes/no captured as a bool under a key
- NoticeFlowItem: static message, not keyed
- ConditionalFlowItem: runs one of two child flows and merges its data

All interaction goes through the FlowItem surface: key, value, validate(),
accept(), on_enter(), on_exit(), marshal_state() and unmarshal_state().
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any, ClassVar, Literal, TypeAlias

from pydantic import BaseModel, ValidationError

from aichat.errors import FlowValidationError
from aichat.flows.flow import FlowStruct, FlowValue

ItemHook: TypeAlias = Callable[["FlowItem"], None]
BranchPath: TypeAlias = FlowStruct | Callable[[], FlowStruct] | None
BranchTag: TypeAlias = Literal["yes", "no"]

YES: BranchTag = "yes"
NO: BranchTag = "no"

YES_WORDS = frozenset({"yes", "y"})
NO_WORDS = frozenset({"no", "n"})


class FlowItemKind(str, Enum):
    """Kind of a flow item."""

    INPUT = "input"
    CONFIRMATION = "confirmation"
    NOTICE = "notice"
    CONDITIONAL = "conditional"


class FlowItemState(BaseModel):
    """Serialized in-progress state of a single item."""

    key: str = ""
    value: FlowValue | None = None


class FlowItem(ABC):
    """Base class for a single step in a flow.

    Lifecycle hooks are idempotent within one pass: calling on_exit() again
    without an on_enter() in between commits the value again but
    does not re-run the exit side effect.
    """

    kind: ClassVar[FlowItemKind]

    def __init__(
        self,
        key: str = "",
        *,
        on_enter: ItemHook | None = None,
        on_exit: ItemHook | None = None,
    ) -> None:
        self._key = key
        self._value: FlowValue | None = None
        self._enter_hook = on_enter
        self._exit_hook = on_exit
        self._active = False
        self._exited = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self._key!r}, value={self._value!r})"

    @property
    def key(self) -> str:
        """Data bag key. Empty string means the item is not keyed."""
        return self._key

    @property
    def value(self) -> FlowValue | None:
        """Last gathered value."""
        return self._value

    @property
    def text(self) -> str:
        """Prompt or message shown for this item."""
        return ""

    @property
    def is_active(self) -> bool:
        """Check if the item has been entered and not yet exited."""
        return self._active

    @abstractmethod
    def validate(self, raw: Any) -> FlowValue | None:
        """Check raw input against the item's constraint.

        Returns:
            The normalized value.

        Raises:
            FlowValidationError: If the input is not acceptable.
        """

    def accept(self, raw: Any) -> FlowValue | None:
        """Validate raw input and store it as the item's value.

        The item is left unchanged when validation fails.
        """
        value = self.validate(raw)
        self._value = value
        return value

    def reset(self) -> None:
        """Forget the gathered value."""
        self._value = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def on_enter(self, flow: FlowStruct) -> None:
        """Called when the item becomes the active step."""
        if self._active:
            return
        self._active = True
        self._exited = False
        self._begin_pass()
        if self._enter_hook is not None:
            self._enter_hook(self)

    def on_exit(self, flow: FlowStruct) -> None:
        """Called when the item stops being active. Commits its value to flow."""
        self._commit(flow)
        if self._exited:
            return
        if self._exit_hook is not None:
            self._exit_hook(self)
        self._exited = True
        self._active = False

    def _begin_pass(self) -> None:
        """Reset per-pass bookkeeping."""

    def _commit(self, flow: FlowStruct) -> None:
        if self._key and self._value is not None:
            flow.set_data(self._key, self._value)

    # -------------------------------------------------------------------------
    # State Serialization
    # -------------------------------------------------------------------------

    def marshal_state(self) -> bytes:
        """Serialize the in-progress value."""
        return FlowItemState(key=self._key, value=self._value).model_dump_json().encode()

    def unmarshal_state(self, data: bytes) -> None:
        """Restore a value produced by marshal_state().

        Raises:
            FlowValidationError: If the payload is malformed, belongs to another
                key, or holds a value this item cannot hold.
        """
        try:
            state = FlowItemState.model_validate_json(data)
        except ValidationError as e:
            raise FlowValidationError(f"invalid item state: {e}", key=self._key) from e
        if state.key != self._key:
            raise FlowValidationError(
                f"state for key {state.key!r} cannot be restored into {self._key!r}",
                key=self._key,
            )
        self._value = None if state.value is None else self.validate(state.value)


class InputFlowItem(FlowItem):
    """Prompts for free text and stores it under a key."""

    kind = FlowItemKind.INPUT

    def __init__(
        self,
        key: str,
        prompt: str,
        *,
        secret: bool = False,
        validator: Callable[[str], str | None] | None = None,
        default: str | None = None,
        on_enter: ItemHook | None = None,
        on_exit: ItemHook | None = None,
    ) -> None:
        super().__init__(key, on_enter=on_enter, on_exit=on_exit)
        self.prompt = prompt
        self.secret = secret
        self.default = default
        self._validator = validator

    @property
    def text(self) -> str:
        return self.prompt

    def validate(self, raw: Any) -> str:
        if (raw is None or raw == "") and self.default:
            raw = self.default
        if not isinstance(raw, str):
            raise FlowValidationError("Please enter text.", key=self.key)
        value = raw.strip()
        if not value:
            raise FlowValidationError("A value is required.", key=self.key)
        if self._validator is not None:
            problem = self._validator(value)
            if problem:
                raise FlowValidationError(problem, key=self.key)
        return value


class ConfirmationFlowItem(FlowItem):
    """Asks a yes/no question and stores the answer as a bool."""

    kind = FlowItemKind.CONFIRMATION

    def __init__(
        self,
        key: str,
        message: str,
        *,
        default: bool | None = None,
        on_enter: ItemHook | None = None,
        on_exit: ItemHook | None = None,
    ) -> None:
        super().__init__(key, on_enter=on_enter, on_exit=on_exit)
        self.message = message
        self.default = default

    @property
    def text(self) -> str:
        return self.message

    def validate(self, raw: Any) -> bool:
        if isinstance(raw, bool):
            return raw
        if (raw is None or raw == "") and self.default is not None:
            return self.default
        if isinstance(raw, str):
            answer = raw.strip().lower()
            if answer in YES_WORDS:
                return True
            if answer in NO_WORDS:
                return False
        raise FlowValidationError("Please answer yes or no.", key=self.key)


class NoticeFlowItem(FlowItem):
    """Displays a message. Accepting it only acknowledges it."""

    kind = FlowItemKind.NOTICE

    def __init__(
        self,
        message: str,
        *,
        on_enter: ItemHook | None = None,
        on_exit: ItemHook | None = None,
    ) -> None:
        super().__init__("", on_enter=on_enter, on_exit=on_exit)
        self.message = message
        self.acknowledged = False

    @property
    def text(self) -> str:
        return self.message

    def validate(self, raw: Any) -> None:
        return None

    def accept(self, raw: Any) -> None:
        self.acknowledged = True
        return None


class ConditionalFlowItem(FlowItem):
    """Branches to a yes-path or no-path flow and merges its data into the parent.

    The branch outcome is data: the tag "yes"/"no" is recorded under this
    item's key, so the parent's completeness check covers it. Paths may be
    FlowStruct instances or zero-argument factories; factories are called for
    every branch evaluation so child flows are never cached.
    """

    kind = FlowItemKind.CONDITIONAL

    def __init__(
        self,
        key: str,
        predicate: Callable[[], bool],
        yes_path: BranchPath = None,
        no_path: BranchPath = None,
        *,
        on_enter: ItemHook | None = None,
        on_exit: ItemHook | None = None,
    ) -> None:
        if not key:
            raise ValueError("conditional items need a key to record the branch under")
        super().__init__(key, on_enter=on_enter, on_exit=on_exit)
        self._predicate = predicate
        self.yes_path = yes_path
        self.no_path = no_path
        self._applied = False

    def validate(self, raw: Any) -> BranchTag:
        if raw == YES:
            return YES
        if raw == NO:
            return NO
        raise FlowValidationError(f"branch tag must be {YES!r} or {NO!r}", key=self.key)

    def gather(self) -> BranchTag:
        """Evaluate the predicate and return the branch tag."""
        return YES if self._predicate() else NO

    def branch(self) -> tuple[BranchTag, FlowStruct | None]:
        """Evaluate the predicate and resolve a fresh child flow for it."""
        tag = self.gather()
        path = self.yes_path if tag == YES else self.no_path
        if path is None or isinstance(path, FlowStruct):
            return tag, path
        return tag, path()

    def apply_branch(self, parent: FlowStruct, tag: BranchTag, child: FlowStruct | None) -> None:
        """Record the tag in parent, run child and merge its data on success."""
        parent.set_data(self.key, tag)
        self._value = tag
        if child is not None:
            child.run()
            parent.merge_child_data(child.data)
        self._applied = True

    def submit(self, parent: FlowStruct) -> None:
        """Re-evaluate the predicate, run the chosen child and merge its data.

        Child failures propagate unchanged.
        """
        tag, child = self.branch()
        self.apply_branch(parent, tag, child)

    def unmarshal_state(self, data: bytes) -> None:
        super().unmarshal_state(data)
        # A restored tag means the branch data is already in the parent bag
        self._applied = self._value is not None

    def _begin_pass(self) -> None:
        self._applied = False

    def _commit(self, flow: FlowStruct) -> None:
        if not self._applied:
            self.submit(flow)
