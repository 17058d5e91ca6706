"""
Root watchers for live plugin synchronization.

A session watches two roots: the plugin working tree (primary source) and
the compiler's output directory (build output). Each RootWatcher wraps a
watchdog observer and turns OS notifications into ChangeEvents handled on
the asyncio loop.

Typical usage:
--------------
    from wpsync.watcher import RootWatcher, RootRole, WatchRoot

    async def on_change(event):
        print(event.kind, event.path)

    watcher = RootWatcher(WatchRoot(plugin_dir, RootRole.PRIMARY_SOURCE), on_change)
    watcher.start()
    for event in watcher.initial_scan():
        await on_change(event)
    # ... watcher runs in background ...
    watcher.stop()

ERROR CONDITIONS
================

- Root doesn't exist → FileNotFoundError on __init__
- Root is a file, not a directory → ValueError on __init__
- start() called twice → RuntimeError
- start() without a running event loop → RuntimeError
- stop() before start() → no-op
- Handler raises → logged, watching continues
- Root deleted while watching → not handled
"""

from wpsync.watcher.core import RootWatcher
from wpsync.watcher.handlers import RootEventHandler
from wpsync.watcher.ignore import IgnoreFilter, load_ignore_file
from wpsync.watcher.types import (
    ChangeEvent,
    FileEvent,
    RootRole,
    RootState,
    RootWatcherProtocol,
    WatchRoot,
)

__all__ = [
    "ChangeEvent",
    "FileEvent",
    "IgnoreFilter",
    "RootEventHandler",
    "RootRole",
    "RootState",
    "RootWatcher",
    "RootWatcherProtocol",
    "WatchRoot",
    "load_ignore_file",
]
