"""
Sync engine - mirrors the plugin tree into the deployed plugin directory.

Two stages:
1. Primary source events: non-transformable files are copied verbatim;
   transformable files trigger a build and never touch the target.
2. Build-output events become ArtifactProduced messages and are deployed
   with the same copy/delete logic, mapped relative to the build-output root.

Every action publishes one SyncLogEvent. A failed copy, delete or build is
reported and the engine keeps going; nothing in steady state is fatal.
"""

import asyncio
import logging
import os
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional

from wpsync.build import BuildRunner, Failed
from wpsync.debouncer import BuildDebouncer
from wpsync.events import ArtifactProduced, SyncAction, SyncLog
from wpsync.paths import display_path, map_to_target
from wpsync.transforms import TransformRegistry
from wpsync.watcher.types import ChangeEvent, FileEvent, RootRole, RootState, WatchRoot

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".wpsync-tmp"


def copy_file_atomic(source: Path, target: Path) -> None:
    """
    Copy source over target so readers never see a half-written file.

    The content lands in a hidden temp file next to the target and is then
    renamed into place.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    temp = target.with_name(f".{target.name}{TEMP_SUFFIX}")
    try:
        shutil.copy2(source, temp)
        os.replace(temp, target)
    except BaseException:
        temp.unlink(missing_ok=True)
        raise


def remove_path(target: Path, keep: Optional[Callable[[Path], bool]] = None) -> bool:
    """
    Remove a file, symlink or directory tree.

    For a directory, entries for which keep(path relative to target) is true
    stay in place, and so do the directories holding them. The deployed tree
    is shared by both watched roots, so a directory removed from one root
    must not take the other root's files with it.

    Returns:
        False if nothing was removed
    """
    if target.is_symlink() or target.is_file():
        target.unlink()
        return True
    if not target.is_dir():
        return False

    removed = False
    for dirpath, dirnames, filenames in os.walk(target, topdown=False):
        current = Path(dirpath)
        for name in filenames + dirnames:
            path = current / name
            if path.is_symlink() or path.is_file():
                if keep is not None and keep(path.relative_to(target)):
                    continue
                path.unlink()
                removed = True
            elif path.is_dir() and not any(path.iterdir()):
                path.rmdir()
                removed = True
    if not any(target.iterdir()):
        target.rmdir()
        removed = True
    return removed


class SyncEngine:
    """
    Stateful core: applies change events from both roots to the target tree.

    Handlers for different paths run concurrently. Handlers touching the same
    target path take a per-path lock, and because each handler asks for the
    lock before its first await, they run in delivery order.
    """

    def __init__(
        self,
        primary: WatchRoot,
        build_output: WatchRoot,
        target_root: Path,
        registry: TransformRegistry,
        runner: BuildRunner,
        log: Optional[SyncLog] = None,
        debouncer: Optional[BuildDebouncer] = None,
        prune_artifacts: bool = False,
    ) -> None:
        if primary.role is not RootRole.PRIMARY_SOURCE:
            raise ValueError("primary root must have role PRIMARY_SOURCE")
        if build_output.role is not RootRole.BUILD_OUTPUT:
            raise ValueError("build_output root must have role BUILD_OUTPUT")

        self.primary = WatchRoot(primary.path.resolve(), primary.role)
        self.build_output = WatchRoot(build_output.path.resolve(), build_output.role)
        self.target_root = Path(target_root).resolve()
        self.registry = registry
        self.runner = runner
        self.log = log if log is not None else SyncLog()
        self.debouncer = debouncer if debouncer is not None else BuildDebouncer(0)
        self.prune_artifacts = prune_artifacts

        self._states: dict[RootRole, RootState] = {
            RootRole.PRIMARY_SOURCE: RootState.AWAITING_INITIAL_SCAN,
            RootRole.BUILD_OUTPUT: RootState.AWAITING_INITIAL_SCAN,
        }
        self._locks: dict[Path, asyncio.Lock] = {}
        self._lock_users: dict[Path, int] = {}

        self.stats = {
            "added": 0,
            "updated": 0,
            "removed": 0,
            "builds": 0,
            "build_failures": 0,
            "errors": 0,
        }

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def state(self, role: RootRole) -> RootState:
        return self._states[role]

    def finish_initial_scan(self, role: RootRole) -> None:
        self._states[role] = RootState.IDLE

    async def seed(self, role: RootRole, events: list[ChangeEvent]) -> None:
        """
        Process the initial scan of a root, then mark the root IDLE.

        Initial events for the build-output root are suppressed so stale
        artifacts from an earlier run are not deployed as if they were new.
        """
        results = await asyncio.gather(
            *(self.handle(event) for event in events), return_exceptions=True
        )
        for event, result in zip(events, results):
            if isinstance(result, Exception):
                logger.error(f"Initial sync failed for {event.path}: {result}", exc_info=result)
        self.finish_initial_scan(role)

    # ------------------------------------------------------------------
    # Event entry point
    # ------------------------------------------------------------------

    async def handle(self, event: ChangeEvent) -> None:
        role = event.root.role
        if role is RootRole.BUILD_OUTPUT:
            if event.initial and self.state(role) is RootState.AWAITING_INITIAL_SCAN:
                logger.debug(f"Suppressed initial build-output event: {event.path}")
                return
            await self.deploy_artifact(ArtifactProduced(artifact=event.path, kind=event.kind))
        else:
            await self._handle_primary(event)

    async def _handle_primary(self, event: ChangeEvent) -> None:
        path = event.path
        transformable = self.registry.needs_build(path)

        if event.kind is FileEvent.DELETED:
            if transformable:
                self.debouncer.cancel(path)
                if self.prune_artifacts:
                    await self._prune(path)
            await self._remove(path, self.primary.path, artifact=False)
            return

        if transformable:
            await self._build(path)
        else:
            await self._copy(path, self.primary.path, event.kind, artifact=False)

    async def deploy_artifact(self, message: ArtifactProduced) -> None:
        """Second stage: deploy (or remove) one compiler artifact."""
        if message.kind is FileEvent.DELETED:
            await self._remove(message.artifact, self.build_output.path, artifact=True)
        else:
            await self._copy(message.artifact, self.build_output.path, message.kind, artifact=True)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _copy(self, source: Path, root: Path, kind: FileEvent, artifact: bool) -> None:
        if source.is_dir():
            return

        target = map_to_target(source, root, self.target_root)
        rel = display_path(source, root)
        created = kind is FileEvent.CREATED

        async with self._path_lock(target):
            try:
                await asyncio.to_thread(copy_file_atomic, source, target)
            except OSError as e:
                self.stats["errors"] += 1
                verb = "adding" if created else "updating"
                noun = f"artifact {rel}" if artifact else rel
                self.log.emit(SyncAction.ERROR, rel, f"Error {verb} {noun}: {e}")
                return

        word = "added" if created else "updated"
        self.stats[word] += 1
        message = f"Artifact {word}: {rel}" if artifact else f"{word.capitalize()}: {rel}"
        self.log.emit(SyncAction.ADDED if created else SyncAction.UPDATED, rel, message)

    async def _remove(self, source: Path, root: Path, artifact: bool) -> None:
        if source == root:
            # The root itself went away; its files arrive as their own events
            logger.warning(f"⚠️  Watched root was deleted: {root}")
            return

        target = map_to_target(source, root, self.target_root)
        rel = display_path(source, root)
        label = "Artifact removed" if artifact else "Removed"
        keep = self._owned_by_other_root(source, root, artifact)

        async with self._path_lock(target):
            try:
                removed = await asyncio.to_thread(remove_path, target, keep)
            except OSError as e:
                self.stats["errors"] += 1
                self.log.emit(SyncAction.ERROR, rel, f"Error removing {rel}: {e}")
                return

        if removed:
            self.stats["removed"] += 1
            self.log.emit(SyncAction.REMOVED, rel, f"{label}: {rel}")
        else:
            logger.debug(f"Nothing deployed for {rel}")

    def _owned_by_other_root(self, source: Path, root: Path, artifact: bool) -> Callable[[Path], bool]:
        """
        Predicate for files under a removed directory's target that the other
        root still deploys (an artifact's counterpart is a non-transformable
        primary file, and vice versa).
        """
        rel = source.relative_to(root)
        if artifact:
            counterpart = self.primary.path / rel

            def keep(path: Path) -> bool:
                candidate = counterpart / path
                return candidate.is_file() and not self.registry.needs_build(candidate)

        else:
            counterpart = self.build_output.path / rel

            def keep(path: Path) -> bool:
                return (counterpart / path).is_file()

        return keep

    async def _build(self, source: Path) -> None:
        if not await self.debouncer.settle(source):
            return

        rel = display_path(source, self.primary.path)
        async with self._path_lock(source):
            self.stats["builds"] += 1
            outcome = await self.runner.build(source)

        if isinstance(outcome, Failed):
            self.stats["build_failures"] += 1
            self.log.emit(SyncAction.BUILD_FAILED, rel, f"Build failed for {rel}: {outcome.reason}")
        else:
            self.log.emit(SyncAction.COMPILED, rel, f"Compiled: {rel}")

    async def _prune(self, source: Path) -> None:
        """
        Delete the build artifacts of a removed source from the build-output root.

        Holds the source lock so a rebuild already in flight finishes first.
        """
        async with self._path_lock(source):
            for artifact in self.runner.expected_artifacts(source):
                rel = display_path(artifact, self.build_output.path)
                try:
                    removed = await asyncio.to_thread(remove_path, artifact)
                except OSError as e:
                    self.stats["errors"] += 1
                    self.log.emit(SyncAction.ERROR, rel, f"Error pruning artifact {rel}: {e}")
                    continue
                if removed:
                    self.log.emit(SyncAction.INFO, rel, f"Pruned stale artifact: {rel}")

    @asynccontextmanager
    async def _path_lock(self, key: Path):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]
