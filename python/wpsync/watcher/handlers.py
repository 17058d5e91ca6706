"""
Internal event handler for watchdog file system monitoring.

This module provides the low-level event handler that receives raw watchdog
events in the observer thread and forwards normalized ChangeEvents to the
RootWatcher on the asyncio loop.
"""

import os
from pathlib import Path

from watchdog.events import (
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
)

from wpsync.paths import is_within
from wpsync.watcher.types import ChangeEvent, FileEvent


class RootEventHandler:
    """
    Internal event handler for watchdog.

    Normalization rules:
    - File created/modified/deleted map one-to-one
    - Directory deleted → DELETED for the directory path
    - Move → DELETED for the source, CREATED for the destination (when the
      destination is still inside the root)
    - Directory moves only delete the old directory; watchdog reports the
      moved children as their own file moves
    - Directory created/modified and open/close events are dropped
    """

    def __init__(self, watcher: "RootWatcher") -> None:  # noqa: F821
        """
        Initialize event handler.

        Args:
        -----
        watcher: RootWatcher instance to route events to
        """
        self.watcher = watcher

    def dispatch(self, event: FileSystemEvent) -> None:
        """Dispatch file system events to the watcher (observer thread)."""
        for change in self.normalize(event):
            self.watcher.submit(change)

    def normalize(self, event: FileSystemEvent) -> list[ChangeEvent]:
        root = self.watcher.root
        src = Path(os.fsdecode(event.src_path))

        if isinstance(event, FileCreatedEvent):
            return [ChangeEvent(FileEvent.CREATED, src, root)]
        if isinstance(event, FileModifiedEvent):
            return [ChangeEvent(FileEvent.MODIFIED, src, root)]
        if isinstance(event, (FileDeletedEvent, DirDeletedEvent)):
            return [ChangeEvent(FileEvent.DELETED, src, root)]
        if isinstance(event, (FileMovedEvent, DirMovedEvent)):
            changes = [ChangeEvent(FileEvent.DELETED, src, root)]
            dest = Path(os.fsdecode(event.dest_path))
            if isinstance(event, FileMovedEvent) and is_within(dest, root.path):
                changes.append(ChangeEvent(FileEvent.CREATED, dest, root))
            return changes
        return []
