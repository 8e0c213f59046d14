"""Debounced auto-save for drafts that are still being edited.

An AutoSaveCoordinator watches one draft value and decides when to
persist it. Edits restart a timer (debounce), so a burst of edits is
written once, after the last edit has been quiet for the configured
delay. A forced save writes immediately; clear() discards the draft.

Timers come from a Scheduler. AsyncioScheduler runs callbacks on the
event loop thread; ThreadingScheduler uses daemon timer threads for
callers without a loop, so the coordinator guards its state with a
lock. Tests drive the coordinator with a virtual clock instead.
"""
import asyncio
import json
import logging
import threading
from functools import partial
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from pydantic import BaseModel

from notesflow import notifications
from notesflow.config import config
from notesflow.exceptions import NotesflowError, ValidationError
from notesflow.notifications import LoggingNotifier, Notifier
from notesflow.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Runs a callback once after a delay."""

    def call_later(
        self, delay_seconds: float, callback: Callable[[], None]
    ) -> TimerHandle:
        ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop.

    Args:
        loop: Loop to schedule on. When None, the loop running at the time
              of each call_later() is used.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(
        self, delay_seconds: float, callback: Callable[[], None]
    ) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_seconds, callback)


class ThreadingScheduler:
    """Scheduler backed by daemon `threading.Timer` threads."""

    def call_later(
        self, delay_seconds: float, callback: Callable[[], None]
    ) -> threading.Timer:
        timer = threading.Timer(delay_seconds, callback)
        timer.daemon = True
        timer.start()
        return timer


def default_scheduler() -> Scheduler:
    """Scheduler on the running event loop, or timer threads without one."""
    try:
        return AsyncioScheduler(asyncio.get_running_loop())
    except RuntimeError:
        return ThreadingScheduler()


class AutoSaveState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


def serialize_draft(draft: Any) -> str:
    """Canonical JSON form of a draft, used both for storage and comparison.

    Keys are sorted so that two equal drafts always serialize identically.
    pydantic models are dumped in JSON mode with their aliases.
    """
    if isinstance(draft, BaseModel):
        draft = draft.model_dump(mode="json", by_alias=True)
    return json.dumps(draft, sort_keys=True, ensure_ascii=False)


class AutoSaveCoordinator:
    """Decides when a draft is persisted.

    States:
        IDLE: no timer pending.
        PENDING: the draft differs from the last persisted snapshot and a
                 save is scheduled.

    The first draft (``initial``) becomes the snapshot and is never saved.
    ``on_change`` is called with the new value of ``has_unsaved_changes``
    each time it flips, never twice in a row with the same value.
    A failed save keeps the draft unsaved, raises a warning notification
    and is not retried; the next edit or force_save() is the retry.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        initial: Any = None,
        *,
        delay_ms: Optional[int] = None,
        scheduler: Optional[Scheduler] = None,
        commit: Optional[Callable[[Any], None]] = None,
        on_change: Optional[Callable[[bool], None]] = None,
        on_save: Optional[Callable[[], None]] = None,
        notifier: Optional[Notifier] = None,
        enabled: bool = True,
    ):
        """Initialize the coordinator.

        Args:
            store: Store holding the persisted draft.
            key: Store key of the draft.
            initial: The draft as first shown; seeds the snapshot.
            delay_ms: Debounce delay. Defaults to config.autosave_delay_ms.
            scheduler: Timer source. Defaults to default_scheduler().
            commit: Persists a draft. Defaults to writing its canonical JSON
                    to ``store[key]``.
            on_change: Called when has_unsaved_changes flips.
            on_save: Called after each successful save.
            notifier: Receives user-facing notifications.
            enabled: When False, edits are tracked but never scheduled.
        """
        delay_ms = config.autosave_delay_ms if delay_ms is None else delay_ms
        if delay_ms < 0:
            raise ValidationError(
                "Auto-save delay cannot be negative", field="delay_ms", value=delay_ms
            )
        self.store = store
        self.key = key
        self.delay_ms = delay_ms
        self.enabled = enabled
        self._scheduler = scheduler or default_scheduler()
        self._commit = commit or self._write_draft
        self._on_change = on_change
        self._on_save = on_save
        self._notifier = notifier or LoggingNotifier()

        self._draft = initial
        self._snapshot = serialize_draft(initial)
        self._dirty = False
        self._timer: Optional[TimerHandle] = None
        # Bumped on every schedule and cancel; a callback from an older
        # timer finds a different value and does nothing.
        self._generation = 0
        self._closed = False
        self._lock = threading.RLock()

    @property
    def state(self) -> AutoSaveState:
        return AutoSaveState.PENDING if self._timer is not None else AutoSaveState.IDLE

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    @property
    def draft(self) -> Any:
        return self._draft

    def update(self, draft: Any) -> None:
        """Record a new draft value and (re)start the timer if it changed.

        A draft equal to the last persisted snapshot cancels any pending
        save and returns to IDLE. A disabled or closed coordinator still
        tracks has_unsaved_changes but schedules nothing.
        """
        with self._lock:
            self._draft = draft
            changed = serialize_draft(draft) != self._snapshot
            if self.enabled and not self._closed:
                self._cancel_timer()
                if changed:
                    self._schedule()
            self._set_dirty(changed)

    def force_save(self) -> bool:
        """Cancel any pending timer and save now.

        Returns:
            True if the draft was written, False if it was already saved or
            the write failed.
        """
        with self._lock:
            self._cancel_timer()
            return self._save()

    def clear(self) -> None:
        """Discard the persisted draft and forget the snapshot.

        Raises:
            StoreWriteError: If the store cannot remove the draft.
        """
        with self._lock:
            self._cancel_timer()
            self.store.remove(self.key)
            self._snapshot = ""
            self._set_dirty(False)
        logger.info(f"Cleared draft '{self.key}'")
        notifications.send(
            self._notifier,
            notifications.info("Draft cleared", "Saved data was removed"),
        )

    def load_saved(self) -> Any:
        """Read the persisted draft and adopt it as the current snapshot.

        Returns:
            The parsed draft, or None if there is none or it is unreadable
            (the latter also raises an error notification).
        """
        try:
            raw = self.store.get(self.key)
            if raw is None:
                return None
            value = json.loads(raw)
        except (NotesflowError, ValueError) as e:
            logger.error(f"Could not load draft '{self.key}': {e}")
            notifications.send(
                self._notifier,
                notifications.error("Could not load draft", "Saved data is unreadable"),
            )
            return None

        with self._lock:
            self._cancel_timer()
            self._draft = value
            self._snapshot = serialize_draft(value)
            self._set_dirty(False)
        return value

    def close(self) -> None:
        """Cancel any pending save; later edits are tracked but not scheduled."""
        with self._lock:
            self._cancel_timer()
            self._closed = True

    def __enter__(self) -> "AutoSaveCoordinator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _schedule(self) -> None:
        self._generation += 1
        self._timer = self._scheduler.call_later(
            self.delay_ms / 1000, partial(self._on_timer, self._generation)
        )
        logger.debug(f"Auto-save of '{self.key}' scheduled in {self.delay_ms}ms")

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            self._save()

    def _save(self) -> bool:
        try:
            serialized = serialize_draft(self._draft)
            if serialized == self._snapshot:
                self._set_dirty(False)
                return False
            self._commit(self._draft)
        except Exception as e:
            self._set_dirty(True)
            logger.warning(f"Auto-save of '{self.key}' failed: {e}")
            notifications.send(
                self._notifier,
                notifications.warning(
                    "Auto-save failed", "The draft could not be saved"
                ),
            )
            return False

        self._snapshot = serialized
        self._set_dirty(False)
        logger.debug(f"Auto-saved '{self.key}' ({len(serialized)} chars)")
        if self._on_save is not None:
            self._on_save()
        notifications.send(
            self._notifier,
            notifications.info("Auto-saved", "Draft saved automatically"),
        )
        return True

    def _write_draft(self, draft: Any) -> None:
        self.store.set(self.key, serialize_draft(draft))

    def _cancel_timer(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set_dirty(self, value: bool) -> None:
        if value == self._dirty:
            return
        self._dirty = value
        if self._on_change is not None:
            self._on_change(value)
