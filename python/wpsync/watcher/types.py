"""
File watcher type definitions and protocol.

This module defines the core types for root watching:
- FileEvent enum: Event kinds delivered to the sync engine
- RootRole / RootState enums: What a watched root is for, and its phase
- WatchRoot / ChangeEvent: The watched roots and the events they produce
- RootWatcherProtocol: Interface contract for root watchers
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol


class FileEvent(Enum):
    """File system event kinds the sync engine reacts to."""

    CREATED = "created"  # New file (or file present at initial scan)
    MODIFIED = "modified"  # Existing file content changed
    DELETED = "deleted"  # File or directory removed


class RootRole(Enum):
    """Logical role of a watched root."""

    PRIMARY_SOURCE = "primary-source"  # The plugin working tree being edited
    BUILD_OUTPUT = "build-output"  # Where the compiler writes artifacts


class RootState(Enum):
    """Per-root phase of the sync engine."""

    AWAITING_INITIAL_SCAN = "awaiting-initial-scan"
    IDLE = "idle"


@dataclass(frozen=True)
class WatchRoot:
    """A watched directory and its role."""

    path: Path
    role: RootRole

    @property
    def is_primary(self) -> bool:
        return self.role is RootRole.PRIMARY_SOURCE


@dataclass(frozen=True)
class ChangeEvent:
    """
    One filesystem change, consumed once by the sync engine.

    initial is True for synthetic events produced by the initial scan.
    """

    kind: FileEvent
    path: Path
    root: WatchRoot
    initial: bool = False


class RootWatcherProtocol(Protocol):
    """
    Protocol defining the root watcher interface.

    A root watcher monitors one directory tree and hands ChangeEvents to an
    async handler on the asyncio loop, one task per event.

    Thread Safety:
    --------------
    - Watchdog runs in a separate thread
    - Handlers are executed in the asyncio event loop
    - Events cross threads with loop.call_soon_threadsafe
    """

    root: WatchRoot

    def start(self) -> None:
        """
        Start watching the root.

        Raises RuntimeError if already started.
        """
        ...

    def stop(self) -> None:
        """Stop watching. Safe to call if not running."""
        ...

    def is_running(self) -> bool:
        """True between a successful start() and stop()."""
        ...

    def initial_scan(self) -> list[ChangeEvent]:
        """Synthetic CREATED events for files already present under the root."""
        ...
