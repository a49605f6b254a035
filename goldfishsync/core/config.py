"""Configuration management using Pydantic Settings."""

import logging
import tomllib
from pathlib import Path

import tomli_w
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from goldfishsync.core.models import SyncMode

logger = logging.getLogger(__name__)

DEFAULT_NOTE_TEMPLATE = """---
# Mandatory field
uuid: "${uuid}"
# Optional fields
title: "${title}"
tags: ${tags}
created_date: "${created_date}"
modified_date: "${last_modified_date}"
---
## Cleaned
${cleaned}

## Original
${original}

${audio_file_embed}"""


class RemoteConfig(BaseSettings):
    """Connection settings for the hosted notes backend.

    The access token and owner id are produced by the login flow, which lives
    outside this package; they are only consumed here.
    """

    url: str = "https://rxgdjkasqfkaeicnijys.supabase.co"
    api_key: str = ""
    access_token: str | None = None
    owner_id: str | None = None
    notes_table: str = "notes"
    attachments_bucket: str = "audio"
    timeout_seconds: float = 30.0

    @field_validator("url", mode="before")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate backend URL format."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Remote URL must start with http:// or https://")
        return v.rstrip("/")


class NotesConfig(BaseSettings):
    """Configuration for Notes synchronization."""

    notes_folder: Path = Field(default_factory=lambda: Path.home() / "GoldfishNotes")
    attachments_folder: Path | None = Field(
        default_factory=lambda: Path.home() / "GoldfishNotes" / "Attachments"
    )
    sync_mode: SyncMode = SyncMode.DELETE
    note_template: str = DEFAULT_NOTE_TEMPLATE
    title_template: str = "${title}"
    date_format: str = "%Y-%m-%d"
    notes_filter: str = ""
    download_attachments: bool = True
    auto_generate_title: bool = True
    sync_on_startup: bool = False
    sync_interval_minutes: int = 30

    @field_validator("notes_folder", "attachments_folder", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path | None) -> Path | None:
        """Expand user home directory in paths."""
        if v is None or v == "":
            return None
        return Path(v).expanduser().resolve()

    @field_validator("sync_mode", mode="before")
    @classmethod
    def validate_sync_mode(cls, v: str | SyncMode) -> str | SyncMode:
        """Validate sync mode."""
        if isinstance(v, SyncMode):
            return v
        valid_modes = {mode.value for mode in SyncMode}
        v = v.lower()
        if v not in valid_modes:
            raise ValueError(f"Sync mode must be one of: {', '.join(sorted(valid_modes))}")
        return v

    @field_validator("sync_interval_minutes")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Sync interval must be at least one minute")
        return v


class GeneralConfig(BaseSettings):
    """General application configuration."""

    log_level: str = "INFO"
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".goldfishsync"
    )
    log_file_name: str = "goldfishsync.log"
    log_file_max_bytes: int = 1_048_576
    log_file_backup_count: int = 3
    log_overrides: dict[str, str] = Field(default_factory=dict)
    # Runtime metadata - not serialized to config file
    config_file: Path | None = Field(default=None, exclude=True)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand user home directory in data directory path."""
        return Path(v).expanduser().resolve()


class AppConfig(BaseSettings):
    """Main application configuration.

    Values come from (highest first) explicit arguments, ``GOLDFISHSYNC_*``
    environment variables (``GOLDFISHSYNC_NOTES__SYNC_MODE=new-only``) and the
    TOML file passed to :func:`load_config`.
    """

    model_config = SettingsConfigDict(
        env_prefix="GOLDFISHSYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    notes: NotesConfig = Field(default_factory=NotesConfig)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """
        Build a configuration from a TOML file.

        Raises:
            ValueError: If the file is not valid TOML
        """
        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            return cls()

        try:
            sections = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid config file {config_path}: {e}") from e

        logger.debug(f"Loaded configuration sections {sorted(sections)} from {config_path}")
        return cls(**sections)

    def save_to_file(self, config_path: Path) -> None:
        """Write the configuration as TOML (unset values are left out)."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        sections = self.model_dump(mode="json", exclude_none=True)
        config_path.write_text(tomli_w.dumps(sections), encoding="utf-8")
        logger.info(f"Configuration saved to {config_path}")

    def ensure_data_dir(self) -> None:
        self.general.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def state_db_path(self) -> Path:
        """Path to the sync history database."""
        return self.general.data_dir / "sync_state.db"

    @property
    def default_config_path(self) -> Path:
        return self.general.data_dir / "config.toml"


# Process-wide configuration, set by load_config
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Return the active configuration, creating a default one on first use."""
    global _config
    if _config is None:
        set_config(AppConfig())
    return _config


def set_config(config: AppConfig) -> None:
    global _config
    config.ensure_data_dir()
    _config = config


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Load the configuration and make it the active one.

    Args:
        config_path: TOML file, defaults to ``<data_dir>/config.toml``

    Returns:
        The loaded configuration, remembering which file it came from
    """
    path = config_path or AppConfig().default_config_path
    config = AppConfig.load_from_file(path) if path.exists() else AppConfig()
    config.general.config_file = path
    set_config(config)
    return config
