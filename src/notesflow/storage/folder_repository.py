"""Repository for folder storage and retrieval."""
import logging
from typing import Callable, List, Optional

from notesflow.config import config
from notesflow.exceptions import ValidationError
from notesflow.models.identity import generate_id
from notesflow.models.schema import FOLDER_COLORS, Folder
from notesflow.observability import traced
from notesflow.storage.base import Repository
from notesflow.storage.codec import decode_folders
from notesflow.storage.kv_store import KeyValueStore, open_store

logger = logging.getLogger(__name__)


def default_color(name: str) -> str:
    """Palette colour for a folder created without one."""
    return FOLDER_COLORS[len(name.strip()) % len(FOLDER_COLORS)]


class FolderRepository(Repository[Folder]):
    """Repository for folders.

    Folders live under their own key. Notes reference them by id only;
    nothing here touches the note collection.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        key: Optional[str] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        super().__init__(
            store if store is not None else open_store(),
            key or config.folders_key,
        )
        self._id_factory = id_factory or (lambda: generate_id("folder"))
        self.reload()
        logger.info(
            f"FolderRepository initialized: key={self.key}, folders={len(self._items)}"
        )

    def _decode(self, raw: Optional[str]) -> List[Folder]:
        return decode_folders(raw, self.key)

    @staticmethod
    def _item_id(item: Folder) -> str:
        return item.id

    def get_all(self) -> List[Folder]:
        """Folders ordered by creation time."""
        return sorted(self._items, key=lambda f: (f.created_at, f.id))

    @traced("add_folder")
    def add(self, name: str, color: Optional[str] = None) -> str:
        """Create a folder.

        Returns:
            The new folder's id.

        Raises:
            ValidationError: If the name is blank.
        """
        if not name or not name.strip():
            raise ValidationError("Folder name cannot be empty", field="name")
        folder_id = self._id_factory()
        while self.get_by_id(folder_id) is not None:
            folder_id = self._id_factory()
        folder = Folder(id=folder_id, name=name, color=color or default_color(name))
        self._commit(self._items + (folder,))
        logger.info(f"Created folder {folder.id} '{folder.name}'")
        return folder.id

    @traced("rename_folder")
    def rename(self, folder_id: str, name: str) -> None:
        if not name or not name.strip():
            raise ValidationError("Folder name cannot be empty", field="name")
        self._replace(
            folder_id,
            lambda f: None if f.name == name.strip() else f.evolve(name=name),
        )

    @traced("recolor_folder")
    def recolor(self, folder_id: str, color: str) -> None:
        self._replace(
            folder_id, lambda f: None if f.color == color else f.evolve(color=color)
        )

    @traced("delete_folder")
    def delete(self, folder_id: str) -> None:
        """Remove a folder. Notes pointing at it keep their dangling id."""
        remaining = [f for f in self._items if f.id != folder_id]
        if len(remaining) == len(self._items):
            return
        self._commit(remaining)
        logger.info(f"Deleted folder {folder_id}")
