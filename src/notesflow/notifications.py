"""User-facing notifications.

Auto-save and the notes service report outcomes the user should see
(draft saved, save failed, draft unreadable) through a Notifier. How a
notification is shown is up to the host application; the default
implementation writes it to the log.
"""
import datetime
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class Notification:
    """A short message for the user: a title and a one-line description."""
    level: NotificationLevel
    title: str
    message: str = ""
    created_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def __str__(self) -> str:
        return f"{self.title}: {self.message}" if self.message else self.title


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Notifier that writes each notification to a logger."""

    def __init__(self, name: str = "notesflow.notifications"):
        self._logger = logging.getLogger(name)

    def notify(self, notification: Notification) -> None:
        self._logger.log(_LOG_LEVELS[notification.level], str(notification))


def info(title: str, message: str = "") -> Notification:
    return Notification(NotificationLevel.INFO, title, message)


def warning(title: str, message: str = "") -> Notification:
    return Notification(NotificationLevel.WARNING, title, message)


def error(title: str, message: str = "") -> Notification:
    return Notification(NotificationLevel.ERROR, title, message)


def send(notifier: "Notifier", notification: Notification) -> None:
    """Deliver a notification; a failing notifier is logged, never raised."""
    try:
        notifier.notify(notification)
    except Exception as e:
        logger.error(f"Notifier failed on '{notification}': {e}")
