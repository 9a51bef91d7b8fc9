"""Fixtures for aichat tests."""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from aichat.config import ConfigManager
from aichat.providers import ProviderRegistry


@pytest.fixture
def temp_home(tmp_path: Path) -> Path:
    """Create a temporary home directory."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def temp_config_dir(temp_home: Path) -> Path:
    """Create a temporary config directory under fake home."""
    config_dir = temp_home / ".config" / "aichat"
    config_dir.mkdir(parents=True)
    return config_dir


@pytest.fixture
def temp_project_dir(tmp_path: Path) -> Path:
    """Create a temporary project directory."""
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    return project_dir


@pytest.fixture
def config_manager(temp_config_dir: Path, temp_project_dir: Path) -> ConfigManager:
    """Create a ConfigManager with temp directories."""
    return ConfigManager(config_dir=temp_config_dir, project_dir=temp_project_dir)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Remove AICHAT_* variables and run from a directory without a .env file."""
    saved_vars: dict[str, str] = {}
    for key in list(os.environ.keys()):
        if key.startswith("AICHAT_"):
            saved_vars[key] = os.environ.pop(key)
    monkeypatch.chdir(tmp_path)

    yield

    for key in list(os.environ.keys()):
        if key.startswith("AICHAT_"):
            del os.environ[key]
    for key, value in saved_vars.items():
        os.environ[key] = value


@pytest.fixture
def registry() -> ProviderRegistry:
    """Registry with every known provider family and no retry backoff."""
    registry = ProviderRegistry(provider_options={"retry_multiplier": 0})
    registry.load_from_descriptors([
        {"name": "OpenAI", "endpoint": "https://api.openai.com/v1/chat/completions", "stream": False},
        {"name": "OpenAI (s)", "endpoint": "https://api.openai.com/v1/chat/completions", "stream": True},
        {"name": "OpenRouter", "endpoint": "https://openrouter.ai/api/v1/chat/completions", "stream": False},
        {"name": "OpenRouter (s)", "endpoint": "https://openrouter.ai/api/v1/chat/completions", "stream": True},
    ])
    return registry
