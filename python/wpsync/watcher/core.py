"""
Core root watching implementation with WSL2 fallback.

This module provides the RootWatcher class that monitors one root directory
and hands each change to an async handler as its own task.

Uses watchdog's native Observer (inotify, FSEvents, ReadDirectoryChangesW).
On WSL2 with Windows-mounted paths (/mnt/c/, /mnt/d/, etc.), falls back to
watchdog's PollingObserver because inotify events don't propagate across
the 9P filesystem bridge.
"""

import asyncio
import logging
import os
import platform
from pathlib import Path
from typing import Awaitable, Callable, Optional

from wpsync.watcher.ignore import IgnoreFilter
from wpsync.watcher.types import ChangeEvent, FileEvent, WatchRoot

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]


def is_wsl2() -> bool:
    """
    Detect if we're running inside WSL2.

    Returns True if running in WSL2 environment, regardless of filesystem.
    """
    try:
        with open("/proc/version", "r") as f:
            version = f.read().lower()
            return "microsoft" in version or "wsl" in version
    except (FileNotFoundError, PermissionError):
        pass

    if os.environ.get("WSL_DISTRO_NAME"):
        return True

    if platform.system() == "Linux":
        try:
            return "microsoft" in os.uname().release.lower()
        except AttributeError:
            pass

    return False


def is_windows_mount(path: Path) -> bool:
    """
    Check if a path is on a Windows-mounted filesystem in WSL2.

    Windows drives are mounted under /mnt/ (e.g., /mnt/c/, /mnt/d/).
    """
    path_str = str(path.resolve())

    if path_str.startswith("/mnt/") and len(path_str) >= 6:
        drive_letter = path_str[5]
        if drive_letter.isalpha() and (len(path_str) == 6 or path_str[6] == "/"):
            return True

    return False


# Cache WSL2 detection result
_IS_WSL2: Optional[bool] = None


def get_is_wsl2() -> bool:
    """Get cached WSL2 detection result."""
    global _IS_WSL2
    if _IS_WSL2 is None:
        _IS_WSL2 = is_wsl2()
        if _IS_WSL2:
            logger.info("Detected WSL2 environment")
    return _IS_WSL2


def needs_polling_fallback(path: Path) -> bool:
    """True when the root sits on a Windows mount inside WSL2."""
    if not get_is_wsl2():
        return False
    if is_windows_mount(path):
        logger.info(f"{path} is on a Windows mount - using polling observer")
        return True
    return False


class RootWatcher:
    """
    Watches one root and dispatches ChangeEvents to an async handler.

    Every event becomes its own asyncio task, so handlers for different
    paths overlap. Tasks are created in delivery order.

    Constructor Args:
    -----------------
    root: The WatchRoot to observe
    handler: Async function called once per ChangeEvent
    ignore: IgnoreFilter for the root (default: hidden entries only)

    Example Usage:
    --------------
    >>> async def on_change(event):
    ...     print(event.kind, event.path)
    ...
    >>> watcher = RootWatcher(WatchRoot(Path("/plugin"), RootRole.PRIMARY_SOURCE), on_change)
    >>> watcher.start()
    >>> # ... watcher runs in background ...
    >>> watcher.stop()
    """

    def __init__(
        self,
        root: WatchRoot,
        handler: ChangeHandler,
        ignore: Optional[IgnoreFilter] = None,
    ) -> None:
        """
        Raises:
        -------
        FileNotFoundError: If the root doesn't exist
        ValueError: If the root is not a directory
        TypeError: If handler not callable
        """
        if not root.path.exists():
            raise FileNotFoundError(f"Watch root does not exist: {root.path}")
        if not root.path.is_dir():
            raise ValueError(f"Watch root is not a directory: {root.path}")
        if not callable(handler):
            raise TypeError("handler must be callable")

        self.root = WatchRoot(root.path.resolve(), root.role)
        self._handler = handler
        self._ignore = ignore or IgnoreFilter(self.root.path)

        self._observer = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: set[asyncio.Task] = set()
        self._use_polling = needs_polling_fallback(self.root.path)

    @property
    def ignore(self) -> IgnoreFilter:
        return self._ignore

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """
        Start the watchdog observer.

        Must be called with a running event loop (or an explicit loop).

        Raises:
        -------
        RuntimeError: If already running or no event loop is available
        """
        if self.is_running():
            raise RuntimeError("RootWatcher is already running")

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as e:
                raise RuntimeError("RootWatcher.start() needs a running event loop") from e
        self._loop = loop

        if self._use_polling:
            from watchdog.observers.polling import PollingObserver as ObserverClass
        else:
            from watchdog.observers import Observer as ObserverClass
        from wpsync.watcher.handlers import RootEventHandler

        self._observer = ObserverClass()
        self._observer.schedule(RootEventHandler(watcher=self), str(self.root.path), recursive=True)
        self._observer.start()
        logger.info(f"👀 Watching {self.root.role.value} root: {self.root.path}")

    def submit(self, event: ChangeEvent) -> None:
        """Hand an event to the loop (safe to call from the observer thread)."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._spawn, event)
        except RuntimeError:
            # Loop closed between the check and the call during shutdown
            logger.debug(f"Dropped event after loop shutdown: {event.path}")

    def _spawn(self, event: ChangeEvent) -> None:
        task = asyncio.ensure_future(self.handle_event(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def handle_event(self, event: ChangeEvent) -> None:
        """
        Filter and forward one event to the handler.

        Handler exceptions are logged; they never stop the watcher.
        """
        is_dir = event.kind is not FileEvent.DELETED and event.path.is_dir()
        if self._ignore.is_ignored(event.path, is_dir=is_dir):
            return
        try:
            await self._handler(event)
        except Exception as e:
            logger.error(f"Error handling {event.kind.value} {event.path}: {e}", exc_info=True)

    def initial_scan(self) -> list[ChangeEvent]:
        """
        Synthetic CREATED events for every non-ignored file under the root.

        Paths are yielded in sorted walk order so seeding is deterministic.
        """
        events: list[ChangeEvent] = []
        for dirpath, dirnames, filenames in os.walk(self.root.path):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d for d in dirnames if not self._ignore.is_ignored(current / d, is_dir=True)
            )
            for name in sorted(filenames):
                path = current / name
                if not self._ignore.is_ignored(path):
                    events.append(ChangeEvent(FileEvent.CREATED, path, self.root, initial=True))
        return events

    async def drain(self) -> None:
        """Wait for every handler task started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_pending(self) -> int:
        """Cancel in-flight handler tasks; returns how many were cancelled."""
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        return len(pending)

    def stop(self) -> None:
        """Stop watching. Safe to call if not running."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info(f"⏹️  Stopped watching {self.root.role.value} root")

    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()
