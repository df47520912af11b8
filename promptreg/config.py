"""Configuration management for registry.toml.

Example:
    [settings]
    timeout = 30.0
    cache_ttl = 300

    [sources.awesome]
    name = "Awesome Copilot"
    type = "awesome-copilot"
    url = "https://github.com/github/awesome-copilot"
    config = { branch = "main", collectionsPath = "collections" }

    [sources.team]
    type = "github"
    url = "https://github.com/acme/prompt-bundles"
    priority = 1
"""

import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import tomli
import tomli_w

from promptreg.constants import DEFAULT_TIMEOUT, DISCOVERY_CACHE_TTL, USER_AGENT
from promptreg.exceptions import (
    ConfigNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from promptreg.models import Source, SourceKind

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "registry.toml"
TOKEN_ENV_PREFIX = "PROMPTREG_TOKEN_"

_SOURCE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
SOURCE_KINDS = tuple(kind.value for kind in SourceKind)


def token_env_var(source_id: str) -> str:
    """Environment variable that overrides a source's token.

    Examples:
        >>> token_env_var("team-prompts")
        'PROMPTREG_TOKEN_TEAM_PROMPTS'
    """
    return TOKEN_ENV_PREFIX + re.sub(r"[^A-Za-z0-9]", "_", source_id).upper()


@dataclass
class Settings:
    """Global network and cache settings."""

    timeout: float = DEFAULT_TIMEOUT
    cache_ttl: float = DISCOVERY_CACHE_TTL
    user_agent: str = USER_AGENT

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        settings = cls()
        for key in ("timeout", "cache_ttl"):
            if key in data:
                value = data[key]
                valid = not isinstance(value, bool) and isinstance(value, (int, float))
                if not valid or value <= 0:
                    raise ConfigValidationError(
                        f"settings.{key} must be a positive number, got {value!r}"
                    )
                setattr(settings, key, float(value))
        if "user_agent" in data:
            user_agent = data["user_agent"]
            if not isinstance(user_agent, str) or not user_agent.strip():
                raise ConfigValidationError(
                    "settings.user_agent must be a non-empty string"
                )
            settings.user_agent = user_agent
        return settings

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.timeout != DEFAULT_TIMEOUT:
            result["timeout"] = self.timeout
        if self.cache_ttl != DISCOVERY_CACHE_TTL:
            result["cache_ttl"] = self.cache_ttl
        if self.user_agent != USER_AGENT:
            result["user_agent"] = self.user_agent
        return result


def source_from_dict(source_id: str, data: dict[str, Any]) -> Source:
    """Create a Source from a `[sources.<id>]` table.

    Raises:
        ConfigValidationError: If required fields are missing or invalid
    """
    if not _SOURCE_ID.match(source_id):
        raise ConfigValidationError(f"Invalid source id '{source_id}'")
    for key in ("type", "url"):
        if not data.get(key):
            raise ConfigValidationError(
                f"Source '{source_id}' missing required '{key}' field"
            )

    kind = data["type"]
    if kind not in SOURCE_KINDS:
        raise ConfigValidationError(
            f"Source '{source_id}' has invalid type '{kind}'. "
            f"Must be one of: {', '.join(SOURCE_KINDS)}"
        )
    options = data.get("config", {})
    if not isinstance(options, dict):
        raise ConfigValidationError(f"Source '{source_id}' config must be a table")
    priority = data.get("priority", 0)
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ConfigValidationError(
            f"Source '{source_id}' priority must be an integer, got {priority!r}"
        )
    enabled = data.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ConfigValidationError(
            f"Source '{source_id}' enabled must be true or false, got {enabled!r}"
        )

    return Source(
        id=source_id,
        name=data.get("name") or source_id,
        kind=kind,
        url=data["url"],
        token=data.get("token"),
        enabled=enabled,
        priority=priority,
        config=dict(options),
    )


def source_to_dict(source: Source) -> dict[str, Any]:
    """Convert a Source to a TOML-serializable dict."""
    result: dict[str, Any] = {"type": source.kind, "url": source.url}
    if source.name != source.id:
        result["name"] = source.name
    if not source.enabled:
        result["enabled"] = False
    if source.priority:
        result["priority"] = source.priority
    if source.token:
        result["token"] = source.token
    if source.config:
        result["config"] = dict(source.config)
    return result


@dataclass
class RegistryConfig:
    """Configuration from registry.toml."""

    path: Path
    settings: Settings = field(default_factory=Settings)
    sources: dict[str, Source] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "RegistryConfig":
        """Load configuration from registry.toml.

        Args:
            path: Path to the registry.toml file

        Returns:
            Parsed RegistryConfig

        Raises:
            ConfigNotFoundError: If the file doesn't exist
            ConfigParseError: If the file cannot be parsed
            ConfigValidationError: If the configuration is invalid
        """
        if not path.exists():
            raise ConfigNotFoundError(f"Config file not found: {path}")

        try:
            with open(path, "rb") as f:
                data = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigParseError(f"Failed to parse {path}: {e}") from e

        return cls._from_dict(path, data)

    @classmethod
    def _from_dict(cls, path: Path, data: dict[str, Any]) -> "RegistryConfig":
        settings_data = data.get("settings", {})
        if not isinstance(settings_data, dict):
            raise ConfigValidationError("[settings] must be a table")
        config = cls(path=path, settings=Settings.from_dict(settings_data))

        sources_data = data.get("sources", {})
        if not isinstance(sources_data, dict):
            raise ConfigValidationError("[sources] must be a table")
        for source_id, source_config in sources_data.items():
            if not isinstance(source_config, dict):
                raise ConfigValidationError(
                    f"Source '{source_id}' must be a table, "
                    f"got {type(source_config).__name__}"
                )
            config.sources[source_id] = source_from_dict(source_id, source_config)

        return config

    def save(self) -> None:
        """Save configuration to registry.toml."""
        data = self._to_dict()
        with open(self.path, "wb") as f:
            tomli_w.dump(data, f)

    def _to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        settings = self.settings.to_dict()
        if settings:
            data["settings"] = settings
        if self.sources:
            data["sources"] = {
                sid: source_to_dict(src) for sid, src in self.sources.items()
            }
        return data

    def add_source(self, source: Source) -> None:
        """Add or replace a source."""
        self.sources[source.id] = source

    def remove_source(self, source_id: str) -> bool:
        """Remove a source.

        Returns:
            True if the source was removed, False if it didn't exist
        """
        if source_id in self.sources:
            del self.sources[source_id]
            return True
        return False

    def get_source(self, source_id: str) -> Source:
        """Return a source with any environment token override applied.

        Raises:
            ConfigValidationError: If the source is not configured
        """
        if source_id not in self.sources:
            available = ", ".join(sorted(self.sources)) or "none"
            raise ConfigValidationError(
                f"Unknown source '{source_id}'. Configured: {available}"
            )
        return with_env_token(self.sources[source_id])

    def enabled_sources(self) -> list[Source]:
        """Enabled sources in priority order, env overrides applied."""
        enabled = [src for src in self.sources.values() if src.enabled]
        ordered = sorted(enabled, key=lambda s: (s.priority, s.id))
        return [with_env_token(src) for src in ordered]


def with_env_token(source: Source) -> Source:
    """Apply the PROMPTREG_TOKEN_<ID> override when it is set."""
    token = os.environ.get(token_env_var(source.id))
    if token and token.strip():
        logger.debug("%s: using token from %s", source.id, token_env_var(source.id))
        return replace(source, token=token.strip())
    return source


def find_config(start_path: Path | None = None) -> Path | None:
    """Find registry.toml by walking up the directory tree.

    Args:
        start_path: Starting directory (defaults to current working directory)

    Returns:
        Path to registry.toml if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.exists():
            return config_path

        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(path: Path | None = None) -> RegistryConfig:
    """Load an explicit config file or the nearest registry.toml.

    Raises:
        ConfigNotFoundError: If no config file can be found
    """
    if path is not None:
        return RegistryConfig.load(path)
    found = find_config()
    if found is None:
        raise ConfigNotFoundError(
            f"No {CONFIG_FILENAME} found in this directory or any parent"
        )
    return RegistryConfig.load(found)


def load_or_create_config(path: Path | None = None) -> RegistryConfig:
    """Load the config, or start a new one in the current directory."""
    if path is not None:
        return RegistryConfig.load(path) if path.exists() else RegistryConfig(path=path)
    found = find_config()
    if found:
        return RegistryConfig.load(found)
    return RegistryConfig(path=Path.cwd() / CONFIG_FILENAME)
