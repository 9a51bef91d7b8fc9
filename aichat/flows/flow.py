"""FlowStruct: ordered steps collecting data under string keys."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

from aichat._logger import get_logger
from aichat.errors import IncompleteFlowError

if TYPE_CHECKING:
    from aichat.flows.items import FlowItem

logger = get_logger(__name__)

FlowValue: TypeAlias = str | bool
"""Closed set of value kinds a data bag may hold."""

FlowData: TypeAlias = dict[str, FlowValue]

SuccessCallback: TypeAlias = Callable[[FlowData], Any]


def check_flow_value(value: Any) -> FlowValue:
    """Return value unchanged if it is a legal data bag value.

    Raises:
        TypeError: If value is not a str or bool.
    """
    if isinstance(value, bool | str):
        return value
    raise TypeError(f"flow values must be str or bool, got {type(value).__name__}")


class FlowStruct:
    """Orchestrates a sequence of FlowItems and a key/value data bag.

    The success callback fires if and only if every required key is present
    after all items have run. Failures are terminal for a run() call; the
    caller decides whether to present the flow again.
    """

    def __init__(
        self,
        items: Iterable[FlowItem] = (),
        required_keys: Iterable[str] = (),
        on_success: SuccessCallback | None = None,
        data: Mapping[str, FlowValue] | None = None,
        name: str = "",
    ) -> None:
        self.items: list[FlowItem] = list(items)
        # Set semantics, declared order kept for missing_keys()
        self.required_keys: list[str] = list(dict.fromkeys(required_keys))
        self.on_success = on_success
        self.name = name
        self.data: FlowData = {}
        if data:
            self.merge_child_data(data)

    def __repr__(self) -> str:
        return f"FlowStruct(name={self.name!r}, items={len(self.items)}, required={self.required_keys!r})"

    @property
    def is_complete(self) -> bool:
        """Check if every required key has been collected."""
        return not self.missing_keys()

    def set_data(self, key: str, value: FlowValue) -> None:
        """Upsert one entry in the data bag."""
        self.data[key] = check_flow_value(value)

    def merge_child_data(self, child: Mapping[str, FlowValue] | None) -> None:
        """Upsert every entry of a child data bag. Last write wins per key."""
        if not child:
            return
        for key, value in child.items():
            self.set_data(key, value)

    def has_key(self, key: str) -> bool:
        """Check if a key is present in the data bag."""
        return key in self.data

    def missing_keys(self) -> list[str]:
        """Return required keys absent from the data bag, in declared order."""
        return [key for key in self.required_keys if key not in self.data]

    def run(self) -> Any:
        """Exit every item in sequence, then check completeness.

        Returns:
            The success callback's result, or None without a callback.

        Raises:
            IncompleteFlowError: If required keys are missing after all items ran.
            Exception: The first failure from an item's exit hook, unchanged.
        """
        logger.debug("Running flow %r with %d item(s)", self.name, len(self.items))
        for item in self.items:
            item.on_exit(self)

        missing = self.missing_keys()
        if missing:
            logger.debug("Flow %r incomplete, missing %s", self.name, missing)
            raise IncompleteFlowError(missing)

        logger.debug("Flow %r complete", self.name)
        if self.on_success is None:
            return None
        return self.on_success(self.data)
