"""Modal views, the modal stack and the controller that routes input."""

from __future__ import annotations

from aichat.modals.base import Effect, KeyEvent, Navigator, ViewContext, ViewState, ViewType
from aichat.modals.controller import ModalController
from aichat.modals.dialogs import (
    ConfirmationModal,
    ErrorNoticeModal,
    FlowModal,
    InformationModal,
    InputBoxModal,
    KeyTestModal,
    Modal,
    ModalOption,
)
from aichat.modals.stack import ModalEntry, ModalStack

__all__ = [
    "ConfirmationModal",
    "Effect",
    "ErrorNoticeModal",
    "FlowModal",
    "InformationModal",
    "InputBoxModal",
    "KeyEvent",
    "KeyTestModal",
    "Modal",
    "ModalController",
    "ModalEntry",
    "ModalOption",
    "ModalStack",
    "Navigator",
    "ViewContext",
    "ViewState",
    "ViewType",
]
