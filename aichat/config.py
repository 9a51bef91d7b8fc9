"""Configuration management for aichat.

Configuration files are loaded with project-level priority (no merging):

1. **config.toml** (general, display and network settings):
   - Global: ~/.config/aichat/config.toml
   - Project: .aichat/config.toml (overrides global entirely)

2. **providers.json** (provider descriptors):
   - Global: ~/.config/aichat/providers.json
   - Project: .aichat/providers.json (overrides global entirely)
   - Falls back to the packaged default list

3. **Environment variables** (AICHAT_*):
   - Merged on top of config.toml
"""

from __future__ import annotations

import tomllib
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from aichat._logger import get_logger
from aichat.errors import ConfigError
from aichat.providers.registry import ProviderRegistry, parse_descriptors

logger = get_logger(__name__)

CONFIG_FILE = "config.toml"
PROVIDERS_FILE = "providers.json"

# =============================================================================
# Configuration Models
# =============================================================================


class GeneralConfig(BaseModel):
    """Defaults offered when creating a chat."""

    default_provider: str = ""
    """Provider name as listed in providers.json. Empty means ask."""

    default_model: str = ""
    """Model identifier, e.g. 'openai/gpt-4o-mini'."""

    system_prompt: str = ""
    """Default system prompt for new chats."""

    @property
    def has_chat_defaults(self) -> bool:
        return bool(self.default_model and self.system_prompt)


class DisplayConfig(BaseModel):
    """Display and rendering configuration."""

    code_theme: str = "monokai"
    """Pygments theme for code blocks."""

    width: int = 80
    """Render width used when the terminal size is unknown."""


class NetworkConfig(BaseModel):
    """Provider request settings."""

    timeout: float = 60.0
    connect_timeout: float = 5.0
    max_retries: int = 3
    """Attempts for non-streamed requests, including the first."""

    key_test_timeout: float = 10.0


class AIChatConfig(BaseModel):
    """Complete aichat configuration."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)


# =============================================================================
# Environment Settings (using pydantic-settings)
# =============================================================================


class EnvSettings(BaseSettings):
    """Overrides from AICHAT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AICHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # General
    default_provider: str | None = None
    default_model: str | None = None
    system_prompt: str | None = None

    # Display
    code_theme: str | None = None
    width: int | None = None

    # Network
    timeout: float | None = None
    connect_timeout: float | None = None
    max_retries: int | None = None
    key_test_timeout: float | None = None


_ENV_SECTIONS: dict[str, tuple[str, ...]] = {
    "general": ("default_provider", "default_model", "system_prompt"),
    "display": ("code_theme", "width"),
    "network": ("timeout", "connect_timeout", "max_retries", "key_test_timeout"),
}

# =============================================================================
# ConfigManager
# =============================================================================


class ConfigManager:
    """Manages configuration loading from global, project, and environment sources."""

    DEFAULT_CONFIG_DIR = Path.home() / ".config" / "aichat"
    PROJECT_CONFIG_DIR = ".aichat"

    def __init__(
        self,
        config_dir: Path | None = None,
        project_dir: Path | None = None,
    ) -> None:
        self._config_dir = config_dir or self.DEFAULT_CONFIG_DIR
        self._project_dir = project_dir or Path.cwd()
        self._config: AIChatConfig | None = None
        self._loaded_sources: list[str] = []

    @property
    def config(self) -> AIChatConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    @property
    def project_dir(self) -> Path:
        return self._project_dir

    @property
    def loaded_sources(self) -> list[str]:
        """Get list of loaded configuration sources."""
        return self._loaded_sources.copy()

    def load(self) -> AIChatConfig:
        """Load configuration from all sources.

        Priority (higher wins):
        1. Environment overrides (merged on top)
        2. config.toml: Project > Global (no merging between the two)

        Raises:
            ConfigError: If a file is not valid TOML or does not fit the schema.
        """
        self._loaded_sources = []
        merged: dict[str, Any] = {}

        config_file = self._find_file(CONFIG_FILE)
        if config_file is not None:
            try:
                with open(config_file, "rb") as f:
                    merged = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"invalid TOML in {config_file}: {e}", cause=e) from e
            self._loaded_sources.append(str(config_file))

        env_overrides = self._load_env_overrides()
        if env_overrides:
            merged = _deep_merge(merged, env_overrides)
            self._loaded_sources.append("environment")

        try:
            self._config = AIChatConfig.model_validate(merged)
        except ValidationError as e:
            raise ConfigError(f"invalid configuration: {e}", cause=e) from e
        logger.debug("Configuration loaded from %s", self._loaded_sources or ["defaults"])
        return self._config

    def reload(self) -> AIChatConfig:
        """Force reload configuration."""
        self._config = None
        return self.load()

    def _load_env_overrides(self) -> dict[str, Any]:
        env = EnvSettings()
        overrides: dict[str, Any] = {}
        for section, fields in _ENV_SECTIONS.items():
            values = {name: getattr(env, name) for name in fields if getattr(env, name) is not None}
            if values:
                overrides[section] = values
        return overrides

    def _find_file(self, name: str) -> Path | None:
        """Return the project copy of name if present, else the global one."""
        project_file = self._project_dir / self.PROJECT_CONFIG_DIR / name
        if project_file.exists():
            return project_file
        global_file = self._config_dir / name
        if global_file.exists():
            return global_file
        return None

    # -------------------------------------------------------------------------
    # Providers
    # -------------------------------------------------------------------------

    def get_providers_file(self) -> Path | None:
        """Get path to active providers.json (project or global)."""
        return self._find_file(PROVIDERS_FILE)

    def load_provider_descriptors(self) -> list[dict[str, Any]]:
        """Load provider descriptors, falling back to the packaged defaults.

        Raises:
            ConfigError: If the file cannot be read or is not a JSON list.
        """
        providers_file = self.get_providers_file()
        if providers_file is None:
            return parse_descriptors(_load_template(PROVIDERS_FILE), "packaged defaults")

        try:
            text = providers_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"cannot read {providers_file}: {e}", cause=e) from e
        return parse_descriptors(text, str(providers_file))

    def build_registry(self) -> ProviderRegistry:
        """Create a registry from the active descriptors and network settings."""
        network = self.config.network
        registry = ProviderRegistry(
            provider_options={
                "timeout": network.timeout,
                "connect_timeout": network.connect_timeout,
                "max_retries": network.max_retries,
            }
        )
        registry.load_from_descriptors(self.load_provider_descriptors())
        return registry

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def ensure_config_dir(self) -> None:
        """Create global config directory."""
        self._config_dir.mkdir(parents=True, exist_ok=True)

    def save_default_config(self, force: bool = False) -> Path | None:
        """Save default global configuration. Returns None if it already exists."""
        return self._save_template(CONFIG_FILE, force)

    def save_default_providers(self, force: bool = False) -> Path | None:
        """Save default global providers.json. Returns None if it already exists."""
        return self._save_template(PROVIDERS_FILE, force)

    def _save_template(self, name: str, force: bool) -> Path | None:
        target = self._config_dir / name
        if target.exists() and not force:
            return None
        self.ensure_config_dir()
        target.write_text(_load_template(name), encoding="utf-8")
        return target


# =============================================================================
# Internal Utilities
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_template(name: str) -> str:
    """Load a template file."""
    template_files = resources.files("aichat").joinpath("templates")
    return template_files.joinpath(name).read_text(encoding="utf-8")


# =============================================================================
# Convenience Functions
# =============================================================================


def load_config(
    config_dir: Path | None = None,
    project_dir: Path | None = None,
) -> AIChatConfig:
    """Load configuration from all sources.

    Args:
        config_dir: Optional custom global config directory.
        project_dir: Optional custom project directory.
    """
    return ConfigManager(config_dir=config_dir, project_dir=project_dir).load()
