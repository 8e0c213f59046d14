"""Tests for configuration loading and validation."""
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from notesflow.config import NotesflowConfig, _USER_ENV, load_config
from notesflow.exceptions import ConfigurationError

_ENV_VARS = (
    "NOTESFLOW_BASE_DIR",
    "NOTESFLOW_DATABASE_PATH",
    "NOTESFLOW_IN_MEMORY_DB",
    "NOTESFLOW_NOTES_KEY",
    "NOTESFLOW_FOLDERS_KEY",
    "NOTESFLOW_DRAFT_KEY_PREFIX",
    "NOTESFLOW_AUTOSAVE_DELAY_MS",
    "NOTESFLOW_STORE_QUOTA_BYTES",
    "NOTESFLOW_DEFAULT_SORT_BY",
    "NOTESFLOW_DEFAULT_SORT_ORDER",
    "NOTESFLOW_LOG_LEVEL",
    "NOTESFLOW_LOG_DIR",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every NOTESFLOW_* variable so defaults apply."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    """Tests for default settings."""

    def test_defaults(self, clean_env):
        cfg = NotesflowConfig()
        assert cfg.notes_key == "notesflow-notes"
        assert cfg.folders_key == "notesflow-folders"
        assert cfg.autosave_delay_ms == 3000
        assert cfg.store_quota_bytes == 5 * 1024 * 1024
        assert cfg.default_sort_by == "updatedAt"
        assert cfg.default_sort_order == "desc"
        assert cfg.in_memory_db is False
        assert cfg.log_dir is None

    def test_user_env_path(self):
        assert _USER_ENV == Path.home() / ".notesflow" / ".env"

    def test_draft_key(self, clean_env):
        assert NotesflowConfig().draft_key("note-1") == "notesflow-draft-note-1"


class TestEnvironment:
    """Tests for environment overrides."""

    def test_env_overrides(self, clean_env):
        clean_env.setenv("NOTESFLOW_AUTOSAVE_DELAY_MS", "500")
        clean_env.setenv("NOTESFLOW_NOTES_KEY", "my-notes")
        clean_env.setenv("NOTESFLOW_IN_MEMORY_DB", "yes")
        clean_env.setenv("NOTESFLOW_LOG_LEVEL", "debug")
        cfg = NotesflowConfig()
        assert cfg.autosave_delay_ms == 500
        assert cfg.notes_key == "my-notes"
        assert cfg.in_memory_db is True
        assert cfg.log_level == "DEBUG"

    def test_in_memory_db_url(self, clean_env):
        clean_env.setenv("NOTESFLOW_IN_MEMORY_DB", "true")
        assert NotesflowConfig().get_db_url() == "sqlite:///:memory:"

    def test_file_db_url_creates_parent(self, clean_env, tmp_path):
        clean_env.setenv("NOTESFLOW_BASE_DIR", str(tmp_path))
        cfg = NotesflowConfig()
        url = cfg.get_db_url()
        assert url == f"sqlite:///{tmp_path / 'data' / 'db' / 'notesflow.db'}"
        assert (tmp_path / "data" / "db").is_dir()

    def test_absolute_paths_kept(self, clean_env, tmp_path):
        cfg = NotesflowConfig()
        assert cfg.get_absolute_path(tmp_path) == tmp_path


class TestValidation:
    """Tests for rejected settings."""

    @pytest.mark.parametrize(
        "name,value",
        [
            ("NOTESFLOW_AUTOSAVE_DELAY_MS", "-1"),
            ("NOTESFLOW_STORE_QUOTA_BYTES", "-5"),
            ("NOTESFLOW_DEFAULT_SORT_BY", "priority"),
            ("NOTESFLOW_DEFAULT_SORT_ORDER", "sideways"),
            ("NOTESFLOW_FOLDERS_KEY", "notesflow-notes"),
        ],
    )
    def test_invalid_values_rejected(self, clean_env, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(PydanticValidationError):
            NotesflowConfig()

    def test_load_config_wraps_validation_errors(self, clean_env):
        clean_env.setenv("NOTESFLOW_DEFAULT_SORT_ORDER", "sideways")
        with pytest.raises(ConfigurationError):
            load_config()

    def test_load_config_wraps_non_numeric_values(self, clean_env):
        clean_env.setenv("NOTESFLOW_AUTOSAVE_DELAY_MS", "soon")
        with pytest.raises(ConfigurationError):
            load_config()

    def test_short_delay_warns(self, clean_env, caplog):
        clean_env.setenv("NOTESFLOW_AUTOSAVE_DELAY_MS", "50")
        NotesflowConfig()
        assert "very short" in caplog.text

    def test_zero_delay_allowed(self, clean_env):
        clean_env.setenv("NOTESFLOW_AUTOSAVE_DELAY_MS", "0")
        assert NotesflowConfig().autosave_delay_ms == 0
