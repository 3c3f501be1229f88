"""
Configuration management for memo synchronization.

The configuration is stored as a TOML file (``memosync.toml``) next to the
vault. It holds the Memos server credentials, the sync root and budget,
and which AI provider to use with its parameters.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# tomli_w for writing TOML (tomllib is read-only)
try:
    import tomli_w
except ImportError:
    tomli_w = None  # type: ignore

from .errors import ConfigurationError


CONFIG_FILENAME = "memosync.toml"
CONFIG_VERSION = 1

API_PATH_SEGMENT = "/api/v1"

SUMMARY_LANGUAGES = ("zh", "en", "ja", "ko")
SYNC_FREQUENCIES = ("manual", "auto")

# Per-provider defaults, mirroring the model lists the settings page offers
DEFAULT_PROVIDER_PARAMS: dict[str, dict[str, Any]] = {
    "openai": {"model": "gpt-4o", "api_key": "", "base_url": "https://api.openai.com/v1"},
    "gemini": {"model": "gemini-1.5-flash", "api_key": ""},
    "anthropic": {"model": "claude-3-5-haiku-20241022", "api_key": ""},
    "ollama": {"model": "llama2", "base_url": "http://localhost:11434"},
}


@dataclass
class ProviderConfig:
    """Configuration for a single AI provider."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)

    def backend_params(self) -> dict[str, Any]:
        """Constructor kwargs for the provider class.

        Empty strings are dropped so providers fall back to their
        environment variables. ``model = "custom"`` selects ``custom_model``.
        """
        params = {k: v for k, v in self.params.items() if v != ""}
        custom = params.pop("custom_model", None)
        if params.get("model") == "custom":
            if not custom:
                raise ConfigurationError(
                    f"AI provider '{self.name}' uses model 'custom' but custom_model is empty"
                )
            params["model"] = custom
        return params


@dataclass
class AIConfig:
    """AI enrichment settings."""
    enabled: bool = False
    provider: str = "openai"
    summary: bool = True
    tags: bool = True
    weekly_digest: bool = True
    summary_language: str = "zh"
    providers: dict[str, ProviderConfig] = field(
        default_factory=lambda: {
            name: ProviderConfig(name, dict(params))
            for name, params in DEFAULT_PROVIDER_PARAMS.items()
        }
    )

    @property
    def provider_config(self) -> ProviderConfig:
        return self.providers.get(self.provider) or ProviderConfig(self.provider)


@dataclass
class SyncConfig:
    """Complete sync configuration."""
    path: Path
    api_url: str = ""
    access_token: str = ""
    sync_limit: int = 1000
    directory: str = "memos"
    frequency: str = "manual"
    interval_minutes: int = 30
    ai: AIConfig = field(default_factory=AIConfig)
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def sync_root(self) -> str:
        """Sync root as a storage path (forward slashes, no trailing slash)."""
        return self.directory.replace("\\", "/").strip("/") or "memos"

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()

    def validate(self) -> None:
        """
        Check everything a sync run needs before any network call.

        Raises:
            ConfigurationError: On missing URL/token, a URL without
                the /api/v1 segment, or a non-positive sync limit.
        """
        if not self.api_url:
            raise ConfigurationError("Memos API URL is not configured")
        if not self.access_token:
            raise ConfigurationError("Memos access token is not configured")
        if API_PATH_SEGMENT not in self.api_url:
            raise ConfigurationError(
                f"Memos API URL must include {API_PATH_SEGMENT} (got {self.api_url})"
            )
        if self.sync_limit <= 0:
            raise ConfigurationError(f"sync_limit must be positive (got {self.sync_limit})")
        if self.frequency not in SYNC_FREQUENCIES:
            raise ConfigurationError(
                f"frequency must be one of {', '.join(SYNC_FREQUENCIES)} (got {self.frequency})"
            )
        if self.ai.summary_language not in SUMMARY_LANGUAGES:
            raise ConfigurationError(
                f"summary_language must be one of {', '.join(SUMMARY_LANGUAGES)} "
                f"(got {self.ai.summary_language})"
            )


def _apply_env_overrides(config: SyncConfig) -> SyncConfig:
    """Environment variables win over file values for the server credentials."""
    url = os.environ.get("MEMOS_API_URL")
    if url:
        config.api_url = url
    token = os.environ.get("MEMOS_ACCESS_TOKEN")
    if token:
        config.access_token = token
    return config


def load_config(config_dir: Path) -> SyncConfig:
    """
    Load configuration from a directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = config_dir / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Validate version
    version = data.get("store", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    memos = data.get("memos", {})
    sync = data.get("sync", {})
    ai_section = dict(data.get("ai", {}))

    providers: dict[str, ProviderConfig] = {}
    for name, defaults in DEFAULT_PROVIDER_PARAMS.items():
        params = dict(defaults)
        section = ai_section.get(name)
        if isinstance(section, dict):
            params.update(section)
        providers[name] = ProviderConfig(name, params)
    # Providers not known here still get their table passed through
    for name, section in ai_section.items():
        if isinstance(section, dict) and name not in providers:
            providers[name] = ProviderConfig(name, dict(section))

    try:
        ai = AIConfig(
            enabled=bool(ai_section.get("enabled", False)),
            provider=str(ai_section.get("provider", "openai")),
            summary=bool(ai_section.get("summary", True)),
            tags=bool(ai_section.get("tags", True)),
            weekly_digest=bool(ai_section.get("weekly_digest", True)),
            summary_language=str(ai_section.get("summary_language", "zh")),
            providers=providers,
        )
        config = SyncConfig(
            path=config_dir,
            api_url=str(memos.get("api_url", "")).rstrip("/"),
            access_token=str(memos.get("access_token", "")),
            sync_limit=int(memos.get("sync_limit", 1000)),
            directory=str(sync.get("directory", "memos")),
            frequency=str(sync.get("frequency", "manual")),
            interval_minutes=int(sync.get("interval_minutes", 30)),
            ai=ai,
            version=version,
            created=data.get("store", {}).get("created", ""),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid config {config_path}: {e}") from e

    return _apply_env_overrides(config)


def save_config(config: SyncConfig) -> None:
    """
    Save configuration to the config directory.

    Creates the directory if it doesn't exist.
    """
    if tomli_w is None:
        raise RuntimeError("tomli_w is required to save config. Install with: pip install tomli-w")

    # Ensure directory exists
    config.path.mkdir(parents=True, exist_ok=True)

    ai: dict[str, Any] = {
        "enabled": config.ai.enabled,
        "provider": config.ai.provider,
        "summary": config.ai.summary,
        "tags": config.ai.tags,
        "weekly_digest": config.ai.weekly_digest,
        "summary_language": config.ai.summary_language,
    }
    for name, provider in config.ai.providers.items():
        ai[name] = dict(provider.params)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "memos": {
            "api_url": config.api_url,
            "access_token": config.access_token,
            "sync_limit": config.sync_limit,
        },
        "sync": {
            "directory": config.directory,
            "frequency": config.frequency,
            "interval_minutes": config.interval_minutes,
        },
        "ai": ai,
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(config_dir: Path) -> SyncConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = config_dir / CONFIG_FILENAME

    if config_path.exists():
        return load_config(config_dir)
    else:
        config = SyncConfig(path=config_dir)
        save_config(config)
        return _apply_env_overrides(config)
