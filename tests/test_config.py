"""Tests for aichat.config module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from aichat.config import AIChatConfig, ConfigManager, GeneralConfig, _deep_merge, load_config
from aichat.errors import ConfigError
from aichat.providers import OpenAIProvider, OpenRouterProvider

# =============================================================================
# Config Model Tests
# =============================================================================


def test_default_config() -> None:
    """Test default configuration values."""
    config = AIChatConfig()

    assert config.general.default_provider == ""
    assert config.general.has_chat_defaults is False
    assert config.display.code_theme == "monokai"
    assert config.display.width == 80
    assert config.network.max_retries == 3
    assert config.network.key_test_timeout == 10.0


def test_chat_defaults_need_model_and_prompt() -> None:
    assert GeneralConfig(default_model="m").has_chat_defaults is False
    assert GeneralConfig(default_model="m", system_prompt="p").has_chat_defaults is True


def test_deep_merge() -> None:
    base = {"general": {"default_model": "a", "system_prompt": "p"}, "display": {"width": 80}}
    merged = _deep_merge(base, {"general": {"default_model": "b"}})

    assert merged == {"general": {"default_model": "b", "system_prompt": "p"}, "display": {"width": 80}}
    assert base["general"]["default_model"] == "a"


# =============================================================================
# ConfigManager Tests
# =============================================================================


def test_load_defaults(config_manager: ConfigManager, clean_env: None) -> None:
    """Test loading with no config files."""
    config = config_manager.load()

    assert config == AIChatConfig()
    assert config_manager.loaded_sources == []


def test_load_global_config(config_manager: ConfigManager, temp_config_dir: Path, clean_env: None) -> None:
    config_file = temp_config_dir / "config.toml"
    config_file.write_text("""
[general]
default_provider = "OpenAI"
default_model = "gpt-4o-mini"

[display]
code_theme = "dracula"
""")

    config = config_manager.load()

    assert config.general.default_provider == "OpenAI"
    assert config.general.default_model == "gpt-4o-mini"
    assert config.display.code_theme == "dracula"
    assert config_manager.loaded_sources == [str(config_file)]


def test_project_config_replaces_global(
    config_manager: ConfigManager,
    temp_config_dir: Path,
    temp_project_dir: Path,
    clean_env: None,
) -> None:
    """Project config.toml wins entirely; nothing is merged from the global one."""
    (temp_config_dir / "config.toml").write_text('[general]\ndefault_model = "global"\nsystem_prompt = "g"\n')
    project_config_dir = temp_project_dir / ".aichat"
    project_config_dir.mkdir()
    (project_config_dir / "config.toml").write_text('[general]\ndefault_model = "project"\n')

    config = config_manager.load()

    assert config.general.default_model == "project"
    assert config.general.system_prompt == ""


def test_env_overrides(
    config_manager: ConfigManager,
    temp_config_dir: Path,
    clean_env: None,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    (temp_config_dir / "config.toml").write_text('[general]\ndefault_model = "file"\nsystem_prompt = "kept"\n')
    monkeypatch.setenv("AICHAT_DEFAULT_MODEL", "env-model")
    monkeypatch.setenv("AICHAT_MAX_RETRIES", "5")

    config = config_manager.load()

    assert config.general.default_model == "env-model"
    assert config.general.system_prompt == "kept"
    assert config.network.max_retries == 5
    assert config_manager.loaded_sources[-1] == "environment"


def test_invalid_toml_raises(config_manager: ConfigManager, temp_config_dir: Path, clean_env: None) -> None:
    (temp_config_dir / "config.toml").write_text("[general\n")

    with pytest.raises(ConfigError):
        config_manager.load()


def test_invalid_values_raise(config_manager: ConfigManager, temp_config_dir: Path, clean_env: None) -> None:
    (temp_config_dir / "config.toml").write_text('[network]\nmax_retries = "many"\n')

    with pytest.raises(ConfigError):
        config_manager.load()


def test_config_property_caches_and_reload(
    config_manager: ConfigManager, temp_config_dir: Path, clean_env: None
) -> None:
    first = config_manager.config
    assert config_manager.config is first

    (temp_config_dir / "config.toml").write_text('[display]\nwidth = 120\n')
    assert config_manager.reload().display.width == 120


def test_load_config_helper(temp_config_dir: Path, temp_project_dir: Path, clean_env: None) -> None:
    (temp_config_dir / "config.toml").write_text('[display]\nwidth = 100\n')
    config = load_config(config_dir=temp_config_dir, project_dir=temp_project_dir)
    assert config.display.width == 100


# =============================================================================
# Provider Descriptor Tests
# =============================================================================


def test_provider_descriptors_fall_back_to_packaged(config_manager: ConfigManager) -> None:
    assert config_manager.get_providers_file() is None

    names = [entry["name"] for entry in config_manager.load_provider_descriptors()]
    assert names == ["OpenAI", "OpenAI (s)", "OpenRouter", "OpenRouter (s)"]


def test_project_providers_file_wins(
    config_manager: ConfigManager, temp_config_dir: Path, temp_project_dir: Path
) -> None:
    (temp_config_dir / "providers.json").write_text(json.dumps([{"name": "OpenAI"}]))
    project_config_dir = temp_project_dir / ".aichat"
    project_config_dir.mkdir()
    project_file = project_config_dir / "providers.json"
    project_file.write_text(json.dumps([{"name": "OpenRouter (s)", "stream": True}]))

    assert config_manager.get_providers_file() == project_file
    assert config_manager.load_provider_descriptors() == [{"name": "OpenRouter (s)", "stream": True}]


@pytest.mark.parametrize("content", ["[{", '{"name": "OpenAI"}'])
def test_bad_providers_file(config_manager: ConfigManager, temp_config_dir: Path, content: str) -> None:
    (temp_config_dir / "providers.json").write_text(content)

    with pytest.raises(ConfigError):
        config_manager.load_provider_descriptors()


def test_unreadable_providers_file(config_manager: ConfigManager, temp_config_dir: Path) -> None:
    """A providers path that cannot be read surfaces as a ConfigError."""
    (temp_config_dir / "providers.json").mkdir()

    with pytest.raises(ConfigError, match="cannot read"):
        config_manager.load_provider_descriptors()


def test_build_registry_applies_network_settings(
    config_manager: ConfigManager, temp_config_dir: Path, clean_env: None
) -> None:
    (temp_config_dir / "config.toml").write_text("[network]\ntimeout = 30.0\nmax_retries = 2\n")

    registry = config_manager.build_registry()

    assert len(registry) == 4
    provider = registry.require("OpenAI")
    assert isinstance(provider, OpenAIProvider)
    assert provider.timeout == 30.0
    assert provider.max_retries == 2
    assert isinstance(registry.require("OpenRouter (s)"), OpenRouterProvider)


# =============================================================================
# Setup Tests
# =============================================================================


def test_save_default_files(tmp_path: Path, temp_project_dir: Path, clean_env: None) -> None:
    config_dir = tmp_path / "fresh"
    manager = ConfigManager(config_dir=config_dir, project_dir=temp_project_dir)

    config_path = manager.save_default_config()
    providers_path = manager.save_default_providers()

    assert config_path == config_dir / "config.toml"
    assert providers_path == config_dir / "providers.json"
    assert manager.load().general.default_provider == "OpenRouter (s)"
    assert len(manager.load_provider_descriptors()) == 4


def test_save_default_keeps_existing(config_manager: ConfigManager, temp_config_dir: Path) -> None:
    existing = temp_config_dir / "config.toml"
    existing.write_text("# mine\n")

    assert config_manager.save_default_config() is None
    assert existing.read_text() == "# mine\n"

    assert config_manager.save_default_config(force=True) == existing
    assert "[general]" in existing.read_text()
