"""Service layer for note operations.

NotesService is what an interface layer talks to. It owns the note and
folder repositories, the active filter criteria and the derived views,
and it turns store write failures into user notifications before
re-raising them.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from notesflow import notifications
from notesflow.config import config
from notesflow.exceptions import (
    ErrorCode,
    StoreQuotaExceededError,
    StoreWriteError,
    ValidationError,
)
from notesflow.models.schema import FilterCriteria, Folder, Note, TagSummary
from notesflow.notifications import LoggingNotifier, Notifier
from notesflow.services.autosave import AutoSaveCoordinator, Scheduler
from notesflow.services.query import (
    collect_tags,
    count_favorites,
    query_archived,
    query_notes,
)
from notesflow.storage.folder_repository import FolderRepository
from notesflow.storage.kv_store import KeyValueStore, open_store
from notesflow.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)


def normalize_tag(tag: str) -> str:
    """Tags are stored trimmed and lowercase."""
    return tag.strip().lower()


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    return [normalize_tag(tag) for tag in tags or ()]


def default_criteria() -> FilterCriteria:
    return FilterCriteria(
        sort_by=config.default_sort_by, sort_order=config.default_sort_order
    )


class NotesService:
    """Service for managing notes, folders and the filtered note view."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        repository: Optional[NoteRepository] = None,
        folder_repository: Optional[FolderRepository] = None,
        notifier: Optional[Notifier] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        """Initialize the service.

        Args:
            store: Store shared by both repositories and the draft
                   coordinators. Opened from config if None (and no
                   repository is given).
            repository: Note storage. Created on ``store`` if None.
            folder_repository: Folder storage. Created on ``store`` if None.
            notifier: Receives user-facing notifications.
            scheduler: Timer source handed to auto-save coordinators.
        """
        if store is None:
            store = repository.store if repository is not None else open_store()
        self.store = store
        self.repository = repository or NoteRepository(store)
        self.folder_repository = folder_repository or FolderRepository(store)
        self.notifier = notifier or LoggingNotifier()
        self.scheduler = scheduler
        self._criteria = default_criteria()
        self._view_cache: Optional[
            Tuple[Tuple[Note, ...], FilterCriteria, Tuple[Note, ...]]
        ] = None

    @contextmanager
    def _reporting(self, action: str):
        """Notify the user about a failed write, then let the error propagate."""
        try:
            yield
        except StoreQuotaExceededError as e:
            logger.warning(f"Failed to {action}: {e}")
            notifications.send(
                self.notifier,
                notifications.warning(
                    f"Could not {action}", "Storage is full; free some space first"
                ),
            )
            raise
        except StoreWriteError as e:
            logger.error(f"Failed to {action}: {e}")
            notifications.send(
                self.notifier, notifications.warning(f"Could not {action}", e.message)
            )
            raise

    # =========================================================================
    # Notes
    # =========================================================================

    def add_note(
        self,
        title: str = "",
        content: str = "",
        tags: Optional[List[str]] = None,
        folder_id: Optional[str] = None,
        is_favorite: bool = False,
    ) -> str:
        """Create a note and return its id."""
        with self._reporting("save the note"):
            return self.repository.add(
                title=title,
                content=content,
                tags=normalize_tags(tags),
                folder_id=folder_id,
                is_favorite=is_favorite,
            )

    def update_note(self, note_id: str, **fields: Any) -> None:
        """Apply a partial update (title, content, tags, folder_id, is_favorite)."""
        if fields.get("tags") is not None:
            fields["tags"] = normalize_tags(fields["tags"])
        with self._reporting("save the note"):
            self.repository.update(note_id, **fields)

    def delete_note(self, note_id: str) -> None:
        """Soft delete (moves the note to the archive)."""
        with self._reporting("delete the note"):
            self.repository.delete(note_id)

    def archive_note(self, note_id: str) -> None:
        with self._reporting("archive the note"):
            self.repository.archive(note_id)

    def restore_note(self, note_id: str) -> None:
        with self._reporting("restore the note"):
            self.repository.restore(note_id)

    def permanently_delete_note(self, note_id: str) -> None:
        with self._reporting("delete the note"):
            self.repository.permanently_delete(note_id)

    def toggle_favorite(self, note_id: str) -> None:
        with self._reporting("update favourites"):
            self.repository.toggle_favorite(note_id)

    def get_note_by_id(self, note_id: str) -> Optional[Note]:
        return self.repository.get_by_id(note_id)

    def clear_archive(self) -> int:
        """Permanently delete all archived notes; returns how many."""
        with self._reporting("clear the archive"):
            return self.repository.clear_archive()

    def rename_tag(self, old: str, new: str) -> int:
        """Rename a tag on every note; returns the number of notes changed."""
        new = normalize_tag(new)
        old = normalize_tag(old)
        with self._reporting("rename the tag"):
            count = self.repository.rename_tag(old, new)
        if self._criteria.tag == old:
            self._set_criteria(tag=new)
        return count

    def remove_tag(self, tag: str) -> int:
        """Remove a tag from every note; returns the number of notes changed."""
        tag = normalize_tag(tag)
        with self._reporting("remove the tag"):
            count = self.repository.remove_tag(tag)
        if self._criteria.tag == tag:
            self._set_criteria(tag=None)
        return count

    # =========================================================================
    # Folders
    # =========================================================================

    def add_folder(self, name: str, color: Optional[str] = None) -> str:
        with self._reporting("create the folder"):
            return self.folder_repository.add(name, color)

    def rename_folder(self, folder_id: str, name: str) -> None:
        with self._reporting("rename the folder"):
            self.folder_repository.rename(folder_id, name)

    def recolor_folder(self, folder_id: str, color: str) -> None:
        with self._reporting("update the folder"):
            self.folder_repository.recolor(folder_id, color)

    def delete_folder(self, folder_id: str, detach_notes: bool = False) -> None:
        """Delete a folder.

        Notes keep pointing at the deleted folder unless ``detach_notes``
        is set, in which case their folder is cleared afterwards. If that
        second write fails, the folder is gone and its notes still point
        at it, which is the state a plain delete leaves.
        """
        with self._reporting("delete the folder"):
            self.folder_repository.delete(folder_id)
        if self._criteria.folder_id == folder_id:
            self._set_criteria(folder_id=None)
        if detach_notes:
            with self._reporting("detach notes from the deleted folder"):
                self.repository.clear_folder(folder_id)

    # =========================================================================
    # Filters
    # =========================================================================

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    def set_search_query(self, text: str) -> None:
        self._set_criteria(search_text=text)

    def set_selected_folder(self, folder_id: Optional[str]) -> None:
        self._set_criteria(folder_id=folder_id or None)

    def set_selected_tag(self, tag: Optional[str]) -> None:
        self._set_criteria(tag=normalize_tag(tag) if tag else None)

    def set_show_favorites(self, favorites_only: bool) -> None:
        self._set_criteria(favorites_only=favorites_only)

    def set_sort(self, sort_by: str, sort_order: Optional[str] = None) -> None:
        changes: Dict[str, Any] = {"sort_by": sort_by}
        if sort_order is not None:
            changes["sort_order"] = sort_order
        self._set_criteria(**changes)

    def reset_filters(self) -> None:
        self._criteria = default_criteria()

    def _set_criteria(self, **changes: Any) -> None:
        data = self._criteria.model_dump()
        data.update(changes)
        try:
            self._criteria = FilterCriteria.model_validate(data)
        except PydanticValidationError as e:
            field = ".".join(str(part) for part in e.errors()[0]["loc"])
            raise ValidationError(
                f"Invalid filter: {e.errors()[0]['msg']}",
                field=field,
                value=data.get(field),
                code=(
                    ErrorCode.INVALID_SORT_KEY
                    if field in ("sort_by", "sort_order")
                    else ErrorCode.VALIDATION_FAILED
                ),
            ) from e

    # =========================================================================
    # Derived views
    # =========================================================================

    @property
    def notes(self) -> Tuple[Note, ...]:
        """Active notes matching the current criteria, in display order.

        The result is recomputed only when the collection or the criteria
        change; otherwise the same tuple is returned.
        """
        collection = self.repository.collection
        cached = self._view_cache
        if cached is not None and cached[0] is collection and cached[1] == self._criteria:
            return cached[2]
        view = tuple(query_notes(collection, self._criteria))
        self._view_cache = (collection, self._criteria, view)
        return view

    @property
    def all_notes(self) -> List[Note]:
        """Every note, archived included, in collection order."""
        return self.repository.get_all()

    @property
    def archived_notes(self) -> List[Note]:
        """Archived notes, most recently archived first."""
        return query_archived(self.repository.collection)

    def search_archive(
        self, text: str = "", sort_by: str = "archivedAt", sort_order: str = "desc"
    ) -> List[Note]:
        """Archive view filtered by text; sortable by archivedAt, createdAt or title."""
        return query_archived(self.repository.collection, text, sort_by, sort_order)

    @property
    def folders(self) -> List[Folder]:
        return self.folder_repository.get_all()

    @property
    def tags(self) -> List[TagSummary]:
        """Tags used by active notes, most used first."""
        return collect_tags(self.repository.collection)

    @property
    def favorites_count(self) -> int:
        return count_favorites(self.repository.collection)

    # =========================================================================
    # Drafts and lifecycle
    # =========================================================================

    def autosave(
        self,
        context: str,
        initial: Any = None,
        commit: Optional[Callable[[Any], None]] = None,
        on_change: Optional[Callable[[bool], None]] = None,
        on_save: Optional[Callable[[], None]] = None,
    ) -> AutoSaveCoordinator:
        """Create a draft coordinator for one editing context (e.g. a note id).

        The draft is kept under ``<draft_key_prefix>-<context>`` in the
        service's store unless ``commit`` persists it elsewhere.
        """
        return AutoSaveCoordinator(
            self.store,
            config.draft_key(context),
            initial,
            scheduler=self.scheduler,
            commit=commit,
            on_change=on_change,
            on_save=on_save,
            notifier=self.notifier,
        )

    def reload(self) -> None:
        """Re-read notes and folders from the store."""
        self.repository.reload()
        self.folder_repository.reload()
        logger.info(
            f"Reloaded {len(self.repository.collection)} notes and "
            f"{len(self.folder_repository.collection)} folders"
        )
