"""
Reload notifier - browser live reload for the deployed plugin.

A livereload Server watches the deployed plugin directory for PHP, JS and
CSS changes and serves the proxied WordPress site with its reload script
injected. The sync engine never talks to it: the engine finishes its write,
and the server notices the change on its own.

The server runs its tornado IOLoop in a daemon thread with a private
asyncio loop, so it never blocks the sync engine's loop.
"""

import asyncio
import logging
import threading
from typing import Optional

from wpsync.config import SyncConfig
from wpsync.proxy import ProxyApp

logger = logging.getLogger(__name__)

DEFAULT_LIVERELOAD_PORT = 35729


class LiveReloadNotifier:
    """
    Proxy + live reload on config.port, watching config.reload_globs().

    Example Usage:
    --------------
    >>> notifier = LiveReloadNotifier(config)
    >>> notifier.start()
    >>> # ... browser at http://localhost:3000 reloads on deploys ...
    >>> notifier.stop()
    """

    def __init__(
        self,
        config: SyncConfig,
        liveport: int = DEFAULT_LIVERELOAD_PORT,
        open_browser: bool = False,
    ) -> None:
        self.globs = config.reload_globs()
        self.port = config.port
        self.liveport = liveport
        self.open_browser = open_browser
        self.public_url = f"http://localhost:{config.port}"
        self.upstream_url = f"http://localhost:{config.wp_port}"

        self._proxy: Optional[ProxyApp] = None
        self._thread: Optional[threading.Thread] = None
        self._ioloop = None
        self._ready = threading.Event()
        self._error: Optional[BaseException] = None

    def build_server(self):
        """Create the livereload Server with the proxy app and watches."""
        from livereload import Server

        self._proxy = ProxyApp(self.upstream_url, self.public_url)
        server = Server(app=self._proxy)
        for pattern in self.globs:
            server.watch(pattern)
        return server

    def start(self, timeout: float = 5.0) -> None:
        """
        Start serving in a background thread.

        Raises:
            RuntimeError: If already running, or the server failed to start
        """
        if self.is_running():
            raise RuntimeError("LiveReloadNotifier is already running")

        server = self.build_server()
        self._ready.clear()
        self._error = None
        self._thread = threading.Thread(
            target=self._serve, args=(server,), name="wpsync-livereload", daemon=True
        )
        self._thread.start()

        if not self._ready.wait(timeout) or self._error is not None:
            raise RuntimeError(f"Live reload server failed to start: {self._error}")
        logger.info(f"🔁 Live reload proxy on {self.public_url} → {self.upstream_url}")

    def _serve(self, server) -> None:
        from tornado.ioloop import IOLoop

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            self._ioloop = IOLoop.current()
            self._ioloop.add_callback(self._ready.set)
            server.serve(
                port=self.port,
                host="localhost",
                liveport=self.liveport,
                open_url_delay=1 if self.open_browser else None,
            )
        except Exception as e:
            self._error = e
            logger.error(f"Live reload server stopped with error: {e}", exc_info=True)
        finally:
            self._ready.set()
            loop.close()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the server thread. Safe to call if not running."""
        if self._ioloop is not None and self.is_running():
            self._ioloop.add_callback(self._ioloop.stop)
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        if self._proxy is not None:
            self._proxy.close()
            self._proxy = None
        self._ioloop = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
