"""Chatroom backend configuration.

Loads settings from a single YAML file:
  * chatroom.settings.yaml: non-secret configuration

The file location can be overridden with the CHATROOM_SETTINGS environment
variable or by passing ``settings_path`` to :func:`load_config`. A missing
file is not an error; every section falls back to its defaults.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("chatroom.settings.yaml")
SETTINGS_ENV_VAR = "CHATROOM_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerConfig(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 3000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    level: str = "info"


class StorageConfig(BaseModel):
    """Where uploaded files live and how big they may be."""
    root_dir:         str = "files"
    max_upload_bytes: int = 20 * 1024 * 1024  # 0 = no limit
    chunk_size:       int = 1024 * 1024

    @field_validator("max_upload_bytes")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_upload_bytes must be >= 0")
        return value

    @field_validator("chunk_size")
    @classmethod
    def _positive_chunk(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("chunk_size must be > 0")
        return value


class ChatConfig(BaseModel):
    """Presence and relay policy."""
    max_nickname_length: int  = 0  # 0 = no limit
    require_nickname:    bool = True
    join_template:       str  = "{nickname} joined the chat"
    leave_template:      str  = "{nickname} left the chat"


class AppConfig(BaseModel):
    server:  ServerConfig  = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    chat:    ChatConfig    = Field(default_factory=ChatConfig)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def _resolve_settings_path(settings_path: Optional[Union[str, Path]]) -> Path:
    if settings_path is not None:
        return Path(settings_path)
    env_path = os.environ.get(SETTINGS_ENV_VAR)
    if env_path:
        return Path(env_path)
    return SETTINGS_FILE


def load_config(settings_path: Optional[Union[str, Path]] = None) -> AppConfig:
    """Load the settings file into an *AppConfig*.

    A relative ``storage.root_dir`` is resolved against the directory that
    holds the settings file, so the same file works regardless of the
    process working directory.
    """
    path = _resolve_settings_path(settings_path)
    config = AppConfig(**_load_yaml(path))

    root = Path(config.storage.root_dir)
    if not root.is_absolute():
        root = path.resolve().parent / root
    config.storage.root_dir = str(root)

    logger.info(
        "Settings loaded (server=%s:%s, storage.root_dir=%s)",
        config.server.host,
        config.server.port,
        config.storage.root_dir,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[AppConfig]) -> None:
    """Install (or with ``None``, forget) the process-wide config."""
    global _config
    _config = config
