"""
Tests for RootWatcher: lifecycle, event normalization, initial scan and
live detection through watchdog.

These tests focus on:
1. Lifecycle (start/stop, error conditions)
2. Normalizing raw watchdog events into ChangeEvents
3. Initial scan ordering and ignore handling
4. Real filesystem detection
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from tests.fixtures.sync import wait_for
from wpsync.watcher import (
    ChangeEvent,
    FileEvent,
    IgnoreFilter,
    RootEventHandler,
    RootRole,
    RootWatcher,
    WatchRoot,
)
from wpsync.watcher.core import is_windows_mount


def delivered(mock_handler):
    return [call.args[0] for call in mock_handler.await_args_list]


# ============================================================================
# LIFECYCLE TESTS
# ============================================================================


def test_watcher_requires_existing_root(tmp_path, mock_handler):
    """Test: Watching a missing directory raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        RootWatcher(WatchRoot(tmp_path / "missing", RootRole.PRIMARY_SOURCE), mock_handler)


def test_watcher_requires_directory(sample_file, mock_handler):
    with pytest.raises(ValueError, match="not a directory"):
        RootWatcher(WatchRoot(sample_file, RootRole.PRIMARY_SOURCE), mock_handler)


def test_watcher_requires_callable_handler(temp_workspace):
    with pytest.raises(TypeError):
        RootWatcher(WatchRoot(temp_workspace, RootRole.PRIMARY_SOURCE), "not callable")


def test_watcher_start_needs_event_loop(temp_workspace, mock_handler):
    """Test: start() outside a running loop raises RuntimeError."""
    rw = RootWatcher(WatchRoot(temp_workspace, RootRole.PRIMARY_SOURCE), mock_handler)
    with pytest.raises(RuntimeError, match="running event loop"):
        rw.start()
    assert not rw.is_running()


@pytest.mark.asyncio
async def test_watcher_start_stop(watcher):
    """Test: Watcher reports running between start() and stop()."""
    assert not watcher.is_running()
    watcher.start()
    assert watcher.is_running()
    watcher.stop()
    assert not watcher.is_running()


@pytest.mark.asyncio
async def test_watcher_double_start_raises(watcher):
    watcher.start()
    with pytest.raises(RuntimeError, match="already running"):
        watcher.start()
    watcher.stop()


def test_watcher_stop_when_not_running(watcher):
    """Test: stop() on an idle watcher is a no-op."""
    watcher.stop()
    watcher.stop()


# ============================================================================
# NORMALIZATION TESTS
# ============================================================================


@pytest.fixture
def handler(temp_workspace, mock_handler):
    rw = RootWatcher(WatchRoot(temp_workspace, RootRole.PRIMARY_SOURCE), mock_handler)
    return RootEventHandler(watcher=rw)


def test_normalize_created_and_modified(handler, temp_workspace):
    path = temp_workspace / "a.php"
    assert [c.kind for c in handler.normalize(FileCreatedEvent(str(path)))] == [FileEvent.CREATED]
    assert [c.kind for c in handler.normalize(FileModifiedEvent(str(path)))] == [FileEvent.MODIFIED]


def test_normalize_file_and_directory_deletion(handler, temp_workspace):
    file_changes = handler.normalize(FileDeletedEvent(str(temp_workspace / "a.php")))
    dir_changes = handler.normalize(DirDeletedEvent(str(temp_workspace / "includes")))

    assert file_changes == [
        ChangeEvent(FileEvent.DELETED, temp_workspace / "a.php", handler.watcher.root)
    ]
    assert [c.path for c in dir_changes] == [temp_workspace / "includes"]


def test_normalize_move_within_root(handler, temp_workspace):
    """Test: A rename becomes DELETED(old) + CREATED(new)."""
    changes = handler.normalize(
        FileMovedEvent(str(temp_workspace / "old.php"), str(temp_workspace / "new.php"))
    )
    assert [(c.kind, c.path.name) for c in changes] == [
        (FileEvent.DELETED, "old.php"),
        (FileEvent.CREATED, "new.php"),
    ]


def test_normalize_move_out_of_root(handler, temp_workspace, tmp_path):
    """Test: Moving a file out of the root only deletes it."""
    changes = handler.normalize(
        FileMovedEvent(str(temp_workspace / "a.php"), str(tmp_path / "elsewhere.php"))
    )
    assert [c.kind for c in changes] == [FileEvent.DELETED]


def test_normalize_directory_move_deletes_old_directory(handler, temp_workspace):
    changes = handler.normalize(
        DirMovedEvent(str(temp_workspace / "old"), str(temp_workspace / "new"))
    )
    assert [(c.kind, c.path.name) for c in changes] == [(FileEvent.DELETED, "old")]


def test_normalize_drops_directory_creation(handler, temp_workspace):
    assert handler.normalize(DirCreatedEvent(str(temp_workspace / "assets"))) == []


# ============================================================================
# INITIAL SCAN TESTS
# ============================================================================


def test_initial_scan_lists_files_sorted(temp_workspace, mock_handler):
    """Test: Initial scan yields CREATED events for files only, in sorted order."""
    (temp_workspace / "b.php").write_text("b")
    (temp_workspace / "a.php").write_text("a")
    (temp_workspace / "css").mkdir()
    (temp_workspace / "css" / "style.css").write_text("c")
    (temp_workspace / "empty").mkdir()

    root = WatchRoot(temp_workspace, RootRole.PRIMARY_SOURCE)
    events = RootWatcher(root, mock_handler).initial_scan()

    assert [e.path.relative_to(temp_workspace).as_posix() for e in events] == [
        "a.php",
        "b.php",
        "css/style.css",
    ]
    assert all(e.kind is FileEvent.CREATED and e.initial for e in events)
    assert all(e.root == root for e in events)


def test_initial_scan_skips_ignored_and_excluded(temp_workspace, mock_handler):
    """Test: Hidden entries, ignore patterns and excluded subtrees are skipped."""
    (temp_workspace / "plugin.php").write_text("<?php")
    (temp_workspace / ".git").mkdir()
    (temp_workspace / ".git" / "HEAD").write_text("ref")
    (temp_workspace / "node_modules" / "pkg").mkdir(parents=True)
    (temp_workspace / "node_modules" / "pkg" / "index.js").write_text("x")
    (temp_workspace / "dist").mkdir()
    (temp_workspace / "dist" / "widget.js").write_text("x")
    (temp_workspace / "debug.log").write_text("x")

    ignore = IgnoreFilter(
        temp_workspace, patterns=["node_modules/", "*.log"], excluded=[temp_workspace / "dist"]
    )
    rw = RootWatcher(WatchRoot(temp_workspace, RootRole.PRIMARY_SOURCE), mock_handler, ignore)

    assert [e.path.name for e in rw.initial_scan()] == ["plugin.php"]


# ============================================================================
# DISPATCH TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_handle_event_filters_ignored_paths(watcher, temp_workspace, mock_handler):
    root = watcher.root
    await watcher.handle_event(ChangeEvent(FileEvent.CREATED, temp_workspace / "x.swp", root))
    await watcher.handle_event(ChangeEvent(FileEvent.DELETED, temp_workspace / "x.log", root))

    mock_handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_handler_exception_does_not_escape(temp_workspace, sample_file, caplog):
    """Test: A failing handler is logged; the watcher keeps running."""
    failing = AsyncMock(side_effect=RuntimeError("handler broke"))
    rw = RootWatcher(WatchRoot(temp_workspace, RootRole.PRIMARY_SOURCE), failing)

    await rw.handle_event(ChangeEvent(FileEvent.MODIFIED, sample_file, rw.root))

    failing.assert_awaited_once()
    assert "handler broke" in caplog.text


@pytest.mark.asyncio
async def test_submit_spawns_task_per_event(watcher, temp_workspace, sample_file, mock_handler):
    """Test: Each submitted event is handled in its own task; drain() waits for them."""
    watcher.start()
    for _ in range(3):
        watcher.submit(ChangeEvent(FileEvent.MODIFIED, sample_file, watcher.root))

    await asyncio.sleep(0.05)
    await watcher.drain()

    assert sum(1 for e in delivered(mock_handler) if e.path == sample_file) >= 3
    watcher.stop()


@pytest.mark.asyncio
async def test_cancel_pending_cancels_slow_handlers(temp_workspace, sample_file):
    started = asyncio.Event()

    async def slow(event):
        started.set()
        await asyncio.sleep(10)

    rw = RootWatcher(WatchRoot(temp_workspace, RootRole.PRIMARY_SOURCE), slow)
    rw.start()
    try:
        rw.submit(ChangeEvent(FileEvent.MODIFIED, sample_file, rw.root))
        await asyncio.wait_for(started.wait(), timeout=2)

        assert rw.cancel_pending() >= 1
        await rw.drain()
    finally:
        rw.stop()


# ============================================================================
# LIVE DETECTION TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_watcher_detects_new_file(watcher, temp_workspace, mock_handler):
    """Test: Creating a file delivers an event for it."""
    watcher.start()

    new_file = temp_workspace / "new.php"
    new_file.write_text("<?php // new")

    assert await wait_for(lambda: any(e.path == new_file for e in delivered(mock_handler)))
    events = [e for e in delivered(mock_handler) if e.path == new_file]
    assert events[0].kind in (FileEvent.CREATED, FileEvent.MODIFIED)
    assert not events[0].initial

    watcher.stop()


@pytest.mark.asyncio
async def test_watcher_detects_deletion(watcher, sample_file, mock_handler):
    watcher.start()

    sample_file.unlink()

    assert await wait_for(
        lambda: any(
            e.path == sample_file and e.kind is FileEvent.DELETED for e in delivered(mock_handler)
        )
    )
    watcher.stop()


@pytest.mark.asyncio
async def test_watcher_skips_ignored_live_changes(watcher, temp_workspace, mock_handler):
    """Test: Changes under ignored paths never reach the handler."""
    watcher.start()

    (temp_workspace / "node_modules").mkdir()
    (temp_workspace / "node_modules" / "lib.js").write_text("x")
    (temp_workspace / ".hidden.php").write_text("x")
    valid = temp_workspace / "valid.php"
    valid.write_text("<?php")

    assert await wait_for(lambda: any(e.path == valid for e in delivered(mock_handler)))
    await asyncio.sleep(0.2)
    await watcher.drain()

    paths = [e.path for e in delivered(mock_handler)]
    assert not any("node_modules" in p.parts for p in paths)
    assert not any(p.name.startswith(".") for p in paths)

    watcher.stop()


# ============================================================================
# PLATFORM-SPECIFIC PATH TESTS
# ============================================================================


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/mnt/c/Users/dev/plugin", True),
        ("/mnt/d", True),
        ("/mnt/wsl/distro", False),
        ("/home/dev/plugin", False),
    ],
)
def test_is_windows_mount(path, expected):
    """Test: Only /mnt/<drive-letter> paths count as Windows mounts."""
    assert is_windows_mount(Path(path)) is expected
