"""Base class for repositories that persist one collection under one key."""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from notesflow.exceptions import StoreCorruptionError
from notesflow.storage.codec import encode_collection
from notesflow.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """Sole writer of a collection stored as one value in a KeyValueStore.

    The in-memory collection is an immutable tuple. Every mutation builds
    the next tuple, writes the whole collection, and only then swaps it
    in. A failed write therefore leaves both the store and memory at the
    previous snapshot, and a caller can memoise derived views on the
    identity of ``collection``.
    """

    def __init__(self, store: KeyValueStore, key: str):
        self.store = store
        self.key = key
        self._items: Tuple[T, ...] = ()

    @abstractmethod
    def _decode(self, raw: Optional[str]) -> List[T]:
        """Turn the stored value into models (may raise StoreCorruptionError)."""

    @staticmethod
    @abstractmethod
    def _item_id(item: T) -> str:
        """Identity of an item."""

    @property
    def collection(self) -> Tuple[T, ...]:
        """Current snapshot; replaced (never mutated) on each write."""
        return self._items

    def reload(self) -> Tuple[T, ...]:
        """Re-read the collection from the store.

        Corrupt data is logged and treated as an empty collection; read
        failures of the store itself propagate.
        """
        raw = self.store.get(self.key)
        try:
            items = self._decode(raw)
        except StoreCorruptionError as e:
            logger.error(f"Discarding unreadable data at '{self.key}': {e}")
            items = []
        self._items = tuple(items)
        logger.debug(f"Loaded {len(self._items)} items from '{self.key}'")
        return self._items

    def get_by_id(self, id: str) -> Optional[T]:
        """Return the item with ``id`` or None."""
        for item in self._items:
            if self._item_id(item) == id:
                return item
        return None

    def _commit(self, items: Sequence[T]) -> None:
        """Persist ``items`` as the whole collection, then adopt them."""
        snapshot = tuple(items)
        self.store.set(self.key, encode_collection(snapshot))
        self._items = snapshot

    def _replace(self, id: str, change: Callable[[T], Optional[T]]) -> Optional[T]:
        """Apply ``change`` to the item with ``id`` and persist.

        ``change`` returns the new item, or None to signal "nothing to do".
        Unknown ids are a no-op.

        Returns:
            The new item, or None when nothing was written.
        """
        for index, item in enumerate(self._items):
            if self._item_id(item) != id:
                continue
            updated = change(item)
            if updated is None:
                return None
            items = list(self._items)
            items[index] = updated
            self._commit(items)
            return updated
        logger.debug(f"No item '{id}' at '{self.key}', nothing to change")
        return None
