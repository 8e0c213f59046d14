"""Configuration module for notesflow."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from notesflow import __version__
from notesflow.exceptions import ConfigurationError

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config: lives alongside the default database
_USER_ENV = Path.home() / ".notesflow" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

_SORT_KEYS = ("updatedAt", "createdAt", "title")
_SORT_ORDERS = ("asc", "desc")

# Warn when the debounce is so short it barely coalesces keystrokes
_MIN_SENSIBLE_DELAY_MS = 250


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class NotesflowConfig(BaseModel):
    """Configuration for the note repository and its collaborators."""

    # Base directory for relative paths
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTESFLOW_BASE_DIR", "."))
    )
    # Durable key-value store (SQLite file)
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTESFLOW_DATABASE_PATH", "data/db/notesflow.db")
        )
    )
    # When True, the store lives in an in-memory SQLite database and is
    # lost on process exit (useful for demos and throwaway sessions).
    in_memory_db: bool = Field(
        default_factory=lambda: _env_flag("NOTESFLOW_IN_MEMORY_DB", "false")
    )
    # Well-known store keys
    notes_key: str = Field(
        default_factory=lambda: os.getenv("NOTESFLOW_NOTES_KEY", "notesflow-notes")
    )
    folders_key: str = Field(
        default_factory=lambda: os.getenv(
            "NOTESFLOW_FOLDERS_KEY", "notesflow-folders"
        )
    )
    draft_key_prefix: str = Field(
        default_factory=lambda: os.getenv(
            "NOTESFLOW_DRAFT_KEY_PREFIX", "notesflow-draft"
        )
    )
    # Auto-save debounce interval in milliseconds
    autosave_delay_ms: int = Field(
        default_factory=lambda: int(os.getenv("NOTESFLOW_AUTOSAVE_DELAY_MS", "3000"))
    )
    # Store size limit in bytes (keys + values, UTF-8). 0 disables the limit.
    store_quota_bytes: int = Field(
        default_factory=lambda: int(
            os.getenv("NOTESFLOW_STORE_QUOTA_BYTES", str(5 * 1024 * 1024))
        )
    )
    # Default ordering of the derived view
    default_sort_by: str = Field(
        default_factory=lambda: os.getenv("NOTESFLOW_DEFAULT_SORT_BY", "updatedAt")
    )
    default_sort_order: str = Field(
        default_factory=lambda: os.getenv("NOTESFLOW_DEFAULT_SORT_ORDER", "desc")
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("NOTESFLOW_LOG_LEVEL", "INFO").upper()
    )
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("NOTESFLOW_LOG_DIR"))
            if os.getenv("NOTESFLOW_LOG_DIR")
            else None
        )
    )
    app_version: str = Field(default=__version__)

    @model_validator(mode="after")
    def _validate_settings(self) -> "NotesflowConfig":
        """Reject impossible values and warn about questionable ones."""
        if self.autosave_delay_ms < 0:
            raise ValueError("autosave_delay_ms must be >= 0")
        if self.store_quota_bytes < 0:
            raise ValueError("store_quota_bytes must be >= 0")
        if self.default_sort_by not in _SORT_KEYS:
            raise ValueError(
                f"default_sort_by must be one of {', '.join(_SORT_KEYS)}"
            )
        if self.default_sort_order not in _SORT_ORDERS:
            raise ValueError("default_sort_order must be 'asc' or 'desc'")
        if len({self.notes_key, self.folders_key}) < 2:
            raise ValueError("notes_key and folders_key must differ")

        if 0 < self.autosave_delay_ms < _MIN_SENSIBLE_DELAY_MS:
            logger.warning(
                "autosave_delay_ms=%d is very short; drafts will be written "
                "almost on every keystroke.",
                self.autosave_delay_ms,
            )
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        if self.in_memory_db:
            return "sqlite:///:memory:"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"

    def draft_key(self, context: str) -> str:
        """Store key for the draft of one editing context."""
        return f"{self.draft_key_prefix}-{context}"


def load_config() -> NotesflowConfig:
    """Build the configuration from the environment.

    Raises:
        ConfigurationError: If a setting has an invalid value.
    """
    try:
        return NotesflowConfig()
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ConfigurationError(
            f"Invalid configuration: {first['msg']}",
            config_key=".".join(str(part) for part in first["loc"]) or None,
        ) from e
    except ValueError as e:
        # Non-numeric values fail inside the field default factories
        raise ConfigurationError(f"Invalid configuration: {e}") from e


# Create a global config instance
config = load_config()
