"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import json
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import VaultStorageError

DEFAULT_STORAGE_DIRNAME = ".specvault"
LOCAL_METADATA_FILENAME = "local-metadata.json"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    storage_path: Path = Field(..., description="Directory holding node files and edge tables")
    default_repo: Optional[Path] = Field(
        default=None,
        description="Repository used for commit links when none is given",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @field_validator("storage_path", mode="before")
    @classmethod
    def _normalize_storage_path(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("SPECVAULT_STORAGE_PATH is required")
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("default_repo", mode="before")
    @classmethod
    def _normalize_default_repo(cls, value: str | Path | None) -> Optional[Path]:
        if value is None or value == "":
            return None
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("log_level", mode="before")
    @classmethod
    def _check_log_level(cls, value: str | None) -> str:
        level = (value or "INFO").strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def project_dir(self) -> Path:
        """Directory that organized node paths are relative to."""
        return self.storage_path.parent


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


def resolve_storage_dir(working_dir: Path) -> Path:
    """
    Return the storage directory for ``working_dir``.

    ``<working_dir>/.specvault/local-metadata.json`` may redirect storage
    elsewhere through its ``data-redirect`` key; relative redirects are
    resolved against ``working_dir``.
    """
    local_dir = working_dir / DEFAULT_STORAGE_DIRNAME
    metadata_path = local_dir / LOCAL_METADATA_FILENAME
    if not metadata_path.is_file():
        return local_dir

    try:
        metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise VaultStorageError("Failed to read local metadata", str(metadata_path)) from exc

    redirect = metadata.get("data-redirect") if isinstance(metadata, dict) else None
    if not redirect:
        return local_dir

    redirect_path = Path(redirect)
    if not redirect_path.is_absolute():
        redirect_path = working_dir / redirect_path
    if not redirect_path.is_dir():
        raise VaultStorageError("data-redirect directory does not exist", str(redirect_path))
    return redirect_path


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    load_dotenv()
    storage_path = _read_env("SPECVAULT_STORAGE_PATH")
    if not storage_path:
        storage_path = str(resolve_storage_dir(Path.cwd()))
    default_repo = _read_env("SPECVAULT_DEFAULT_REPO")
    log_level = _read_env("SPECVAULT_LOG_LEVEL", "INFO")

    return AppConfig(
        storage_path=storage_path,
        default_repo=default_repo,
        log_level=log_level,
    )


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


def configure_logging(config: AppConfig | None = None) -> None:
    """Install a root handler at the configured level."""
    cfg = config or get_config()
    level = getattr(logging, cfg.log_level)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "resolve_storage_dir",
    "configure_logging",
    "DEFAULT_STORAGE_DIRNAME",
]
