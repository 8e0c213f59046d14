"""Repository for note storage and retrieval."""

import datetime
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from notesflow.config import config
from notesflow.exceptions import ErrorCode, ValidationError
from notesflow.models.identity import generate_id
from notesflow.models.schema import Note, NoteDraft, NoteUpdate, utc_now
from notesflow.observability import traced
from notesflow.storage.base import Repository
from notesflow.storage.codec import decode_notes
from notesflow.storage.kv_store import KeyValueStore, open_store

logger = logging.getLogger(__name__)

# Keys a partial update may never touch, in both spellings
_PROTECTED_FIELDS = frozenset(
    {
        "id",
        "created_at",
        "createdAt",
        "updated_at",
        "updatedAt",
        "is_archived",
        "isArchived",
        "archived_at",
        "archivedAt",
        "schema_version",
        "schemaVersion",
    }
)


class NoteRepository(Repository[Note]):
    """Repository for note storage and retrieval.

    The repository is the only writer of the notes key. It keeps active
    and archived notes in one collection (newest first by insertion) and
    rewrites the whole collection after every mutation. Mutating an
    unknown id is a no-op; store write failures propagate unchanged and
    leave the in-memory collection at its previous state.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        key: Optional[str] = None,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ):
        """Initialize the repository and load the stored collection.

        Args:
            store: Key-value store. If None, opens the store from config.
            key: Store key holding the collection. Defaults to config.notes_key.
            id_factory: Source of new note ids. Defaults to the process-wide
                        generator.
            clock: Returns the current UTC time (injectable for tests).
        """
        super().__init__(
            store if store is not None else open_store(),
            key or config.notes_key,
        )
        self._id_factory = id_factory or generate_id
        self._clock = clock or utc_now
        self.reload()
        logger.info(
            f"NoteRepository initialized: key={self.key}, notes={len(self._items)}"
        )

    def _decode(self, raw: Optional[str]) -> List[Note]:
        return decode_notes(raw, self.key)

    @staticmethod
    def _item_id(item: Note) -> str:
        return item.id

    def _touch(self, note: Note) -> datetime.datetime:
        """Timestamp for a mutation that never precedes ``created_at``."""
        return max(self._clock(), note.created_at)

    # =========================================================================
    # Reads
    # =========================================================================

    @traced("load_notes")
    def load_all(self, include_archived: bool = False) -> List[Note]:
        """Reload from the store and return notes.

        Corrupt stored data yields an empty list (logged, never raised).

        Args:
            include_archived: Also return archived notes.
        """
        self.reload()
        return self.get_all() if include_archived else self.get_active()

    def get_all(self) -> List[Note]:
        """Active and archived notes in collection order."""
        return list(self._items)

    def get_active(self) -> List[Note]:
        return [note for note in self._items if not note.is_archived]

    def get_archived(self) -> List[Note]:
        return [note for note in self._items if note.is_archived]

    # =========================================================================
    # Mutations
    # =========================================================================

    @traced("add_note")
    def add(
        self, draft: Union[NoteDraft, Mapping[str, Any], None] = None, **fields: Any
    ) -> str:
        """Create a note and persist it.

        Args:
            draft: A NoteDraft or a mapping of its fields.
            **fields: NoteDraft fields, merged over ``draft``.

        Returns:
            The new note's id.

        Raises:
            ValidationError: If the draft has unknown or mistyped fields.
            StoreWriteError: If the store rejects the write.
        """
        draft = self._coerce_draft(draft, fields)
        note_id = self._id_factory()
        # Ids from an earlier process run live in the same collection
        while self.get_by_id(note_id) is not None:
            note_id = self._id_factory()

        now = self._clock()
        note = Note(id=note_id, created_at=now, updated_at=now, **draft.model_dump())
        self._commit((note,) + self._items)
        logger.info(f"Created note {note.id} ({len(self._items)} total)")
        return note.id

    @traced("update_note")
    def update(
        self,
        note_id: str,
        fields: Union[NoteUpdate, Mapping[str, Any], None] = None,
        **kwargs: Any,
    ) -> None:
        """Merge fields into a note and bump ``updated_at``.

        Identity, creation time and lifecycle fields are ignored if
        supplied; archive() and restore() own the lifecycle. An unknown
        id or an empty update is a no-op.

        Raises:
            ValidationError: If a field is unknown or has the wrong type.
            StoreWriteError: If the store rejects the write.
        """
        changes = self._coerce_update(fields, kwargs).changes()
        if not changes:
            return

        def apply(note: Note) -> Note:
            return note.evolve(updated_at=self._touch(note), **changes)

        if self._replace(note_id, apply) is not None:
            logger.debug(f"Updated note {note_id}: {sorted(changes)}")

    def delete(self, note_id: str) -> None:
        """Soft delete: archives the note. See permanently_delete()."""
        self.archive(note_id)

    @traced("archive_note")
    def archive(self, note_id: str) -> None:
        """Mark a note archived. Archiving twice keeps the first archived_at."""

        def apply(note: Note) -> Optional[Note]:
            if note.is_archived:
                return None
            now = self._touch(note)
            return note.evolve(is_archived=True, archived_at=now, updated_at=now)

        if self._replace(note_id, apply) is not None:
            logger.info(f"Archived note {note_id}")

    @traced("restore_note")
    def restore(self, note_id: str) -> None:
        """Return an archived note to the active set."""

        def apply(note: Note) -> Optional[Note]:
            if not note.is_archived:
                return None
            return note.evolve(
                is_archived=False, archived_at=None, updated_at=self._touch(note)
            )

        if self._replace(note_id, apply) is not None:
            logger.info(f"Restored note {note_id}")

    @traced("toggle_favorite")
    def toggle_favorite(self, note_id: str) -> None:
        """Flip ``is_favorite``.

        ``updated_at`` is left alone: favouriting is not an edit and must
        not reorder the most-recently-edited view.
        """
        self._replace(note_id, lambda note: note.evolve(is_favorite=not note.is_favorite))

    @traced("permanently_delete_note")
    def permanently_delete(self, note_id: str) -> None:
        """Remove a note from the collection for good."""
        remaining = [note for note in self._items if note.id != note_id]
        if len(remaining) == len(self._items):
            logger.debug(f"No note {note_id} to delete")
            return
        self._commit(remaining)
        logger.info(f"Permanently deleted note {note_id}")

    @traced("clear_archive")
    def clear_archive(self) -> int:
        """Permanently delete every archived note.

        Returns:
            Number of notes removed.
        """
        remaining = self.get_active()
        removed = len(self._items) - len(remaining)
        if removed:
            self._commit(remaining)
            logger.info(f"Cleared archive: {removed} notes removed")
        return removed

    # =========================================================================
    # Bulk rewrites (tags are free-form strings on each note)
    # =========================================================================

    @traced("rename_tag")
    def rename_tag(self, old: str, new: str) -> int:
        """Replace tag ``old`` with ``new`` on every note that has it.

        A note that already carries ``new`` keeps a single copy.

        Returns:
            Number of notes rewritten.
        """
        new = new.strip()
        if not new:
            raise ValidationError("Tag name cannot be empty", field="new")
        if old == new:
            return 0
        return self._rewrite_all(
            lambda note: (
                {"tags": [new if tag == old else tag for tag in note.tags]}
                if old in note.tags
                else None
            )
        )

    @traced("remove_tag")
    def remove_tag(self, tag: str) -> int:
        """Strip ``tag`` from every note that has it.

        Returns:
            Number of notes rewritten.
        """
        return self._rewrite_all(
            lambda note: (
                {"tags": [t for t in note.tags if t != tag]}
                if tag in note.tags
                else None
            )
        )

    @traced("clear_folder")
    def clear_folder(self, folder_id: str) -> int:
        """Unset ``folder_id`` on every note in the folder.

        Returns:
            Number of notes rewritten.
        """
        return self._rewrite_all(
            lambda note: {"folder_id": None} if note.folder_id == folder_id else None
        )

    def _rewrite_all(
        self, change: Callable[[Note], Optional[Dict[str, Any]]]
    ) -> int:
        """Apply ``change`` to every note and persist once."""
        items = []
        touched = 0
        for note in self._items:
            fields = change(note)
            if fields is None:
                items.append(note)
                continue
            items.append(note.evolve(updated_at=self._touch(note), **fields))
            touched += 1
        if touched:
            self._commit(items)
        return touched

    # =========================================================================
    # Input coercion
    # =========================================================================

    @staticmethod
    def _coerce_draft(
        draft: Union[NoteDraft, Mapping[str, Any], None], fields: Dict[str, Any]
    ) -> NoteDraft:
        if isinstance(draft, NoteDraft) and not fields:
            return draft
        data: Dict[str, Any] = {}
        if isinstance(draft, NoteDraft):
            data.update(draft.model_dump())
        elif draft is not None:
            data.update(draft)
        data.update(fields)
        try:
            return NoteDraft.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid note fields: {e.error_count()} error(s)",
                value=e.errors()[0].get("loc"),
                code=ErrorCode.INVALID_NOTE_FIELDS,
            ) from e

    @staticmethod
    def _coerce_update(
        fields: Union[NoteUpdate, Mapping[str, Any], None], kwargs: Dict[str, Any]
    ) -> NoteUpdate:
        if isinstance(fields, NoteUpdate) and not kwargs:
            return fields
        data: Dict[str, Any] = {}
        if isinstance(fields, NoteUpdate):
            data.update(fields.changes())
        elif fields is not None:
            data.update(fields)
        data.update(kwargs)

        protected = sorted(k for k in data if k in _PROTECTED_FIELDS)
        if protected:
            logger.warning(f"Ignoring protected fields in note update: {protected}")
            data = {k: v for k, v in data.items() if k not in _PROTECTED_FIELDS}
        try:
            return NoteUpdate.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid note fields: {e.error_count()} error(s)",
                value=e.errors()[0].get("loc"),
                code=ErrorCode.INVALID_NOTE_FIELDS,
            ) from e
