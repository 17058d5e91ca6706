"""
Sync session - startup, seeding and guaranteed teardown.

A SyncSession owns everything a live sync needs: the two root watchers, the
engine, spawned processes (builds, PHP server, provisioning) and the reload
notifier. It is an async context manager; whatever was acquired is released
on every exit path, including a startup failure halfway through.

    async with SyncSession(config, log=log) as session:
        await session.wait_closed()
"""

import asyncio
import logging
from typing import Callable, Optional

from wpsync import runtime
from wpsync.build import BuildRunner
from wpsync.config import SyncConfig
from wpsync.debouncer import BuildDebouncer
from wpsync.engine import SyncEngine
from wpsync.errors import StartupError
from wpsync.events import SyncLog
from wpsync.paths import is_within
from wpsync.processes import ProcessRegistry
from wpsync.transforms import TransformRegistry
from wpsync.watcher import IgnoreFilter, RootRole, RootWatcher, WatchRoot, load_ignore_file

logger = logging.getLogger(__name__)


class SyncSession:
    """
    One live synchronization session.

    Args:
        config: Resolved session configuration
        log: Sync log channel (a fresh one if omitted)
        registry: Transform registry (TypeScript only if omitted)
        notifier_factory: Builds the reload notifier; defaults to
            LiveReloadNotifier. Only used when config.reload is set.
    """

    def __init__(
        self,
        config: SyncConfig,
        log: Optional[SyncLog] = None,
        registry: Optional[TransformRegistry] = None,
        notifier_factory: Optional[Callable[[SyncConfig], object]] = None,
    ) -> None:
        self.config = config
        self.log = log if log is not None else SyncLog()
        self.registry = registry or TransformRegistry.default()
        self.processes = ProcessRegistry()
        self._notifier_factory = notifier_factory

        self.engine: Optional[SyncEngine] = None
        self.watchers: list[RootWatcher] = []
        self.notifier = None
        self._seed_task: Optional[asyncio.Task] = None
        self._stop_requested: Optional[asyncio.Event] = None
        self._closed = False

    async def __aenter__(self) -> "SyncSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Provision, wire up and start the session.

        Raises:
            StartupError: Startup failed; everything acquired so far has
                already been released
        """
        self._stop_requested = asyncio.Event()
        try:
            await self._startup()
        except BaseException:
            await self.close()
            raise

    async def _startup(self) -> None:
        config = self.config
        runtime.check_plugin_source(config)

        if config.provision_cmd:
            await runtime.run_provisioning(config.provision_cmd, config.wp_root, self.processes)

        runtime.check_runtime_layout(config)
        if config.serve:
            runtime.find_executable("php")

        logger.info("📁 Setting up plugin...")
        try:
            config.target_root.mkdir(parents=True, exist_ok=True)
            config.build_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StartupError(f"Could not create plugin directories: {e}") from e

        primary = WatchRoot(config.plugin_path, RootRole.PRIMARY_SOURCE)
        build_output = WatchRoot(config.build_root, RootRole.BUILD_OUTPUT)
        patterns = list(config.ignore_patterns) + load_ignore_file(config.plugin_path)

        runner = BuildRunner(config.plugin_path, config.build_root, self.registry, self.processes)
        self.engine = SyncEngine(
            primary=primary,
            build_output=build_output,
            target_root=config.target_root,
            registry=self.registry,
            runner=runner,
            log=self.log,
            debouncer=BuildDebouncer(config.debounce),
            prune_artifacts=config.prune_artifacts,
        )

        excluded = [config.build_root]
        if is_within(config.target_root, config.plugin_path):
            excluded.append(config.target_root)
        build_watcher = RootWatcher(
            build_output,
            self.engine.handle,
            IgnoreFilter(config.build_root, patterns),
        )
        primary_watcher = RootWatcher(
            primary,
            self.engine.handle,
            IgnoreFilter(config.plugin_path, patterns, excluded=excluded),
        )

        logger.info("👀 Starting file watchers...")
        # Build output first so artifacts of seed builds are observed
        for watcher in (build_watcher, primary_watcher):
            watcher.start()
            self.watchers.append(watcher)

        await self.engine.seed(RootRole.BUILD_OUTPUT, build_watcher.initial_scan())
        self._seed_task = asyncio.create_task(
            self.engine.seed(RootRole.PRIMARY_SOURCE, primary_watcher.initial_scan())
        )

        if config.activate:
            # WordPress only activates a plugin whose main file is deployed
            await self.wait_seeded()
            await runtime.activate_plugin(config, self.processes)

        if config.serve:
            logger.info("🎯 Starting servers...")
            await runtime.start_php_server(config, self.processes)

        if config.serve and config.reload:
            self.notifier = self._make_notifier()
            try:
                self.notifier.start()
            except RuntimeError as e:
                raise StartupError(str(e)) from e

        logger.info("✅ Development environment ready!")
        if config.serve:
            url = f"http://localhost:{config.port if config.reload else config.wp_port}"
            logger.info(f"🌐 Open: {url}")
            logger.info(f"🔧 WordPress Admin: {url}/wp-admin")
        logger.info("💡 Edit your plugin files and see changes instantly!")

    def _make_notifier(self):
        if self._notifier_factory is not None:
            return self._notifier_factory(self.config)
        from wpsync.reload import LiveReloadNotifier

        return LiveReloadNotifier(self.config, open_browser=self.config.open_browser)

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    async def wait_seeded(self) -> None:
        """Wait until the initial copy of the plugin tree has finished."""
        if self._seed_task is not None:
            await asyncio.shield(self._seed_task)

    async def drain(self) -> None:
        """Wait for the seed and every event handler started so far."""
        await self.wait_seeded()
        for watcher in self.watchers:
            await watcher.drain()

    def request_stop(self) -> None:
        """Ask wait_closed() to return (signal handlers call this)."""
        if self._stop_requested is not None:
            self._stop_requested.set()

    async def wait_closed(self) -> None:
        if self._stop_requested is None:
            raise RuntimeError("Session was not started")
        await self._stop_requested.wait()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """
        Release everything the session acquired. Idempotent.

        Order: stop observing new events, stop the reload server, terminate
        spawned processes, then cancel handlers still in flight.
        """
        if self._closed:
            return
        self._closed = True
        logger.info("🧹 Cleaning up...")

        for watcher in self.watchers:
            watcher.stop()

        if self.notifier is not None:
            self.notifier.stop()
            self.notifier = None

        self.processes.terminate_all()

        pending = []
        if self._seed_task is not None and not self._seed_task.done():
            self._seed_task.cancel()
            pending.append(self._seed_task)
        for watcher in self.watchers:
            watcher.cancel_pending()
            pending.append(watcher.drain())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self.watchers.clear()
        if self._stop_requested is not None:
            self._stop_requested.set()
        logger.info("✅ Cleanup complete")
