"""
Typed messages and the sync log channel.

The engine never calls a logging callback directly. It publishes
SyncLogEvent records to a SyncLog, and any number of consumers (the
console logger, a GUI, a test) subscribe to it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from wpsync.watcher.types import FileEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactProduced:
    """
    Second pipeline stage: the compiler wrote (or removed) an artifact.

    Produced only from build-output root events; the engine deploys it the
    same way it deploys a verbatim source file.
    """

    artifact: Path
    kind: FileEvent


class SyncAction(Enum):
    """What a sync log line reports."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    COMPILED = "compiled"
    BUILD_FAILED = "build_failed"
    ERROR = "error"
    INFO = "info"


_ICONS = {
    SyncAction.ADDED: "➕",
    SyncAction.UPDATED: "🔄",
    SyncAction.REMOVED: "➖",
    SyncAction.COMPILED: "📝",
    SyncAction.BUILD_FAILED: "❌",
    SyncAction.ERROR: "❌",
    SyncAction.INFO: "ℹ️ ",
}


@dataclass(frozen=True)
class SyncLogEvent:
    """One human-readable line describing an engine action."""

    action: SyncAction
    path: str
    message: str

    @property
    def is_error(self) -> bool:
        return self.action in (SyncAction.ERROR, SyncAction.BUILD_FAILED)

    def __str__(self) -> str:
        return f"{_ICONS[self.action]} {self.message}"


Subscriber = Callable[[SyncLogEvent], None]


class SyncLog:
    """
    Publish/subscribe channel for SyncLogEvent records.

    Subscribers run synchronously in publish order. A subscriber that raises
    is logged and skipped; it never breaks the publishing handler.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """
        Register a subscriber.

        Returns:
            A function that removes the subscriber again
        """
        if not callable(subscriber):
            raise TypeError("subscriber must be callable")
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, event: SyncLogEvent) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as e:
                logger.error(f"Sync log subscriber {subscriber!r} failed: {e}", exc_info=True)

    def emit(self, action: SyncAction, path: str, message: str) -> SyncLogEvent:
        """Build and publish an event in one call."""
        event = SyncLogEvent(action=action, path=path, message=message)
        self.publish(event)
        return event

    def __len__(self) -> int:
        return len(self._subscribers)


def logging_subscriber(target: Optional[logging.Logger] = None) -> Subscriber:
    """
    Subscriber that writes each event to a logger.

    Errors are logged at ERROR, everything else at INFO.
    """
    target = target or logging.getLogger("wpsync.sync")

    def _write(event: SyncLogEvent) -> None:
        if event.is_error:
            target.error(str(event))
        else:
            target.info(str(event))

    return _write
