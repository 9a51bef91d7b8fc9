"""aichat: flows, modals and provider back-ends for a terminal AI chat client."""

import importlib.metadata

from aichat.chat import ChatSession, ChatState, KeyTestResult, verify_api_key
from aichat.config import AIChatConfig, ConfigManager, load_config
from aichat.errors import AIChatError, ErrorType
from aichat.flows import FlowRunner, FlowStruct
from aichat.modals import ModalController, ModalStack
from aichat.observers import Observer, Subject, Subscription
from aichat.providers import AIProvider, ChatMessage, ProviderInfo, ProviderRegistry

__all__ = [
    "AIChatConfig",
    "AIChatError",
    "AIProvider",
    "ChatMessage",
    "ChatSession",
    "ChatState",
    "ConfigManager",
    "ErrorType",
    "FlowRunner",
    "FlowStruct",
    "KeyTestResult",
    "ModalController",
    "ModalStack",
    "Observer",
    "ProviderInfo",
    "ProviderRegistry",
    "Subject",
    "Subscription",
    "__version__",
    "load_config",
    "verify_api_key",
]

try:
    __version__ = importlib.metadata.version(__name__)
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"  # Fallback for development mode
