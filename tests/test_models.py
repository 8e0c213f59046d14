"""Tests for the data models in notesflow."""
import datetime

import pytest
from pydantic import ValidationError

from notesflow.models.schema import (
    CURRENT_SCHEMA_VERSION,
    FOLDER_COLORS,
    FilterCriteria,
    Folder,
    Note,
    NoteDraft,
    NoteUpdate,
    SortKey,
    SortOrder,
    dedupe_tags,
)

UTC = datetime.timezone.utc


class TestNoteModel:
    """Tests for the Note model."""

    def test_note_creation(self):
        """Test creating a note with defaults."""
        note = Note(title="Test Note", content="<p>body</p>", tags=["work"])
        assert note.id.startswith("note-")
        assert note.title == "Test Note"
        assert note.tags == ["work"]
        assert note.folder_id is None
        assert note.is_favorite is False
        assert note.is_archived is False
        assert note.archived_at is None
        assert note.created_at.tzinfo is not None
        assert note.schema_version == CURRENT_SCHEMA_VERSION

    def test_empty_title_and_content_allowed(self):
        note = Note()
        assert note.title == ""
        assert note.content == ""

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            Note(id="  ")

    def test_tags_deduplicated_in_order(self):
        note = Note(tags=["b", "a", "b", " ", "a", "c"])
        assert note.tags == ["b", "a", "c"]

    def test_tag_case_is_preserved(self):
        note = Note(tags=["Work", "work"])
        assert note.tags == ["Work", "work"]

    def test_naive_datetimes_become_utc(self):
        naive = datetime.datetime(2024, 1, 1, 9, 30)
        note = Note(created_at=naive, updated_at=naive)
        assert note.created_at.tzinfo == UTC

    def test_updated_before_created_rejected(self):
        created = datetime.datetime(2024, 1, 2, tzinfo=UTC)
        with pytest.raises(ValidationError):
            Note(created_at=created, updated_at=created - datetime.timedelta(seconds=1))

    def test_archived_requires_archived_at(self):
        with pytest.raises(ValidationError):
            Note(is_archived=True)

    def test_archived_at_only_on_archived_notes(self):
        with pytest.raises(ValidationError):
            Note(archived_at=datetime.datetime(2024, 1, 1, tzinfo=UTC))

    def test_notes_are_immutable(self):
        note = Note(title="Frozen")
        with pytest.raises(ValidationError):
            note.title = "Changed"

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            Note(title="x", color="red")

    def test_evolve_returns_validated_copy(self):
        note = Note(title="Old")
        changed = note.evolve(title="New")
        assert changed.title == "New"
        assert changed.id == note.id
        assert note.title == "Old"
        with pytest.raises(ValidationError):
            note.evolve(is_archived=True)

    def test_to_record_uses_camel_case_and_iso_strings(self):
        created = datetime.datetime(2024, 6, 10, 12, 0, tzinfo=UTC)
        note = Note(
            id="note-1-000001",
            title="T",
            tags=["x"],
            is_favorite=True,
            created_at=created,
            updated_at=created,
        )
        record = note.to_record()
        assert record["id"] == "note-1-000001"
        assert record["isFavorite"] is True
        assert record["isArchived"] is False
        assert record["createdAt"].startswith("2024-06-10T12:00:00")
        assert record["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert "archivedAt" not in record
        assert "folderId" not in record

    def test_record_round_trip(self):
        note = Note(title="Round", tags=["a"], folder_id="folder-1")
        assert Note.model_validate(note.to_record()) == note


class TestDraftAndUpdate:
    """Tests for NoteDraft and NoteUpdate."""

    def test_draft_accepts_aliases(self):
        draft = NoteDraft.model_validate({"title": "A", "folderId": "f1", "isFavorite": True})
        assert draft.folder_id == "f1"
        assert draft.is_favorite is True

    def test_draft_rejects_lifecycle_fields(self):
        with pytest.raises(ValidationError):
            NoteDraft(title="A", is_archived=True)

    def test_update_tracks_only_set_fields(self):
        update = NoteUpdate(title="New")
        assert update.changes() == {"title": "New"}

    def test_update_explicit_none_clears_folder(self):
        update = NoteUpdate(folder_id=None)
        assert update.changes() == {"folder_id": None}

    @pytest.mark.parametrize("field", ["title", "content", "tags", "is_favorite"])
    def test_update_rejects_null_for_required_fields(self, field):
        with pytest.raises(ValidationError):
            NoteUpdate(**{field: None})

    def test_update_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            NoteUpdate(pinned=True)


class TestFolderModel:
    """Tests for the Folder model."""

    def test_folder_defaults(self):
        folder = Folder(name="  Work  ")
        assert folder.name == "Work"
        assert folder.id.startswith("folder-")
        assert folder.color == FOLDER_COLORS[0]

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            Folder(name="   ")

    def test_record_has_camel_case_keys(self):
        record = Folder(name="Home").to_record()
        assert set(record) == {"id", "name", "color", "createdAt"}


class TestFilterCriteria:
    """Tests for FilterCriteria."""

    def test_defaults(self):
        criteria = FilterCriteria()
        assert criteria.is_empty
        assert criteria.sort_by is SortKey.UPDATED_AT
        assert criteria.sort_order is SortOrder.DESC

    def test_sort_accepts_wire_values(self):
        criteria = FilterCriteria(sort_by="title", sort_order="asc")
        assert criteria.sort_by is SortKey.TITLE
        assert criteria.sort_order is SortOrder.ASC

    def test_archived_at_sort_rejected(self):
        with pytest.raises(ValidationError):
            FilterCriteria(sort_by=SortKey.ARCHIVED_AT)

    def test_whitespace_search_counts_as_empty(self):
        assert FilterCriteria(search_text="   ").is_empty

    @pytest.mark.parametrize(
        "changes",
        [
            {"search_text": "x"},
            {"folder_id": "f1"},
            {"tag": "work"},
            {"favorites_only": True},
        ],
    )
    def test_any_filter_makes_criteria_non_empty(self, changes):
        assert not FilterCriteria(**changes).is_empty

    def test_criteria_compare_by_value(self):
        assert FilterCriteria(tag="a") == FilterCriteria(tag="a")


def test_dedupe_tags_strips_whitespace():
    assert dedupe_tags([" a", "a ", "b"]) == ["a", "b"]
