"""Key-value store adapters.

The store is the single source of truth across reloads: a synchronous
string-to-string map with no transactions. Repositories own one key
each and always rewrite the whole value.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from notesflow.config import config
from notesflow.exceptions import (
    ErrorCode,
    StoreQuotaExceededError,
    StoreReadError,
    StoreWriteError,
)
from notesflow.models.db_models import DBEntry, get_session_factory, init_db

logger = logging.getLogger(__name__)


def entry_size(key: str, value: str) -> int:
    """Bytes an entry counts against the quota (UTF-8 key + value)."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class KeyValueStore(ABC):
    """Synchronous get/set/remove over string keys and values.

    ``set`` may raise StoreWriteError (StoreQuotaExceededError when the
    size limit would be exceeded); the previous value is then intact.
    ``remove`` of an absent key is a no-op.
    """

    def __init__(self, quota_bytes: int = 0):
        """
        Args:
            quota_bytes: Maximum total size of all entries. 0 means unlimited.
        """
        if quota_bytes < 0:
            raise ValueError("quota_bytes must be >= 0")
        self.quota_bytes = quota_bytes

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored at ``key`` or None."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` at ``key``, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key`` if present."""

    @abstractmethod
    def keys(self) -> List[str]:
        """All keys currently stored."""

    @abstractmethod
    def usage_bytes(self) -> int:
        """Total size of all entries in bytes."""

    def _check_quota(
        self, key: str, value: str, current_size: int, usage: int
    ) -> None:
        """Raise if replacing ``key`` (now ``current_size`` bytes) with
        ``value`` would push a store holding ``usage`` bytes over its limit."""
        if not self.quota_bytes:
            return
        required = usage - current_size + entry_size(key, value)
        if required > self.quota_bytes:
            logger.warning(
                f"Rejecting write to '{key}': {required} bytes needed, "
                f"quota is {self.quota_bytes}"
            )
            raise StoreQuotaExceededError(key, self.quota_bytes, required)


class MemoryStore(KeyValueStore):
    """Process-local store backed by a dict."""

    def __init__(self, quota_bytes: int = 0, initial: Optional[Dict[str, str]] = None):
        super().__init__(quota_bytes)
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StoreWriteError(
                f"Store values must be strings, got {type(value).__name__}",
                key=key,
            )
        current = self._data.get(key)
        current_size = entry_size(key, current) if current is not None else 0
        self._check_quota(key, value, current_size, self.usage_bytes())
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def usage_bytes(self) -> int:
        return sum(entry_size(k, v) for k, v in self._data.items())


class SqliteStore(KeyValueStore):
    """Durable store keeping each key as a row in SQLite.

    Every ``set`` commits before returning, so a value that was written
    survives a crash of the process.
    """

    def __init__(self, engine=None, db_url: Optional[str] = None, quota_bytes: int = 0):
        """Initialize the store.

        Args:
            engine: Pre-configured SQLAlchemy engine. When None, one is
                    created with init_db() from ``db_url`` or the config.
            db_url: SQLAlchemy URL used when no engine is given.
            quota_bytes: Maximum total size of all entries. 0 means unlimited.
        """
        super().__init__(quota_bytes)
        self.engine = engine if engine is not None else init_db(db_url)
        self.session_factory = get_session_factory(self.engine)
        logger.info(f"SqliteStore initialized: url={self.engine.url}, quota={quota_bytes}")

    def get(self, key: str) -> Optional[str]:
        try:
            with self.session_factory() as session:
                entry = session.get(DBEntry, key)
                return entry.value if entry is not None else None
        except SQLAlchemyError as e:
            raise StoreReadError(
                f"Failed to read '{key}'", key=key, original_error=e
            ) from e

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StoreWriteError(
                f"Store values must be strings, got {type(value).__name__}",
                key=key,
            )
        try:
            with self.session_factory() as session:
                entry = session.get(DBEntry, key)
                current_size = entry_size(key, entry.value) if entry is not None else 0
                if self.quota_bytes:
                    self._check_quota(
                        key, value, current_size, self._usage(session)
                    )
                if entry is None:
                    session.add(DBEntry(key=key, value=value))
                else:
                    entry.value = value
                session.commit()
        except SQLAlchemyError as e:
            raise StoreWriteError(
                f"Failed to write '{key}'", key=key, original_error=e
            ) from e

    def remove(self, key: str) -> None:
        try:
            with self.session_factory() as session:
                entry = session.get(DBEntry, key)
                if entry is not None:
                    session.delete(entry)
                    session.commit()
        except SQLAlchemyError as e:
            raise StoreWriteError(
                f"Failed to remove '{key}'",
                key=key,
                operation="remove",
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=e,
            ) from e

    def keys(self) -> List[str]:
        with self.session_factory() as session:
            return list(session.scalars(select(DBEntry.key).order_by(DBEntry.key)))

    def usage_bytes(self) -> int:
        with self.session_factory() as session:
            return self._usage(session)

    @staticmethod
    def _usage(session) -> int:
        # SQL length() counts characters, quota is in UTF-8 bytes
        rows = session.execute(select(DBEntry.key, DBEntry.value)).all()
        return sum(entry_size(k, v) for k, v in rows)

    def close(self) -> None:
        """Dispose of the engine's connections."""
        self.engine.dispose()


def open_store(cfg=None) -> SqliteStore:
    """Open the durable store described by ``cfg`` (the global config by default)."""
    cfg = cfg or config
    return SqliteStore(db_url=cfg.get_db_url(), quota_bytes=cfg.store_quota_bytes)
