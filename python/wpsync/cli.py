"""
Command line entry point.

Usage:
    wpsync start ./my-plugin --port 3000 --wp-port 8080

Or via environment variables:
    WPSYNC_PORT=3000 WPSYNC_WP_ROOT=~/wp-dev wpsync start ./my-plugin
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from wpsync import __version__
from wpsync.config import SyncConfig
from wpsync.errors import StartupError

logger = logging.getLogger("wpsync.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wpsync",
        description="Automated WordPress plugin development with hot reload",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subcommands = parser.add_subparsers(dest="command")

    start = subcommands.add_parser(
        "start", help="Start development environment for a WordPress plugin"
    )
    start.add_argument("plugin_path", type=Path, help="Plugin working directory")
    start.add_argument(
        "-p", "--port", type=int, default=None,
        help="Port for the live-reload proxy (default: 3000, or WPSYNC_PORT)",
    )
    start.add_argument(
        "-w", "--wp-port", type=int, default=None,
        help="Port for the PHP server (default: 8080, or WPSYNC_WP_PORT)",
    )
    start.add_argument(
        "--wp-root", type=Path, default=None,
        help="WordPress runtime directory (default: ./wordpress-dev-env, or WPSYNC_WP_ROOT)",
    )
    start.add_argument(
        "--build-dir", default=None,
        help="Compiler output directory inside the plugin (default: dist)",
    )
    start.add_argument(
        "--debounce", type=float, default=None,
        help="Seconds to wait for rapid saves before rebuilding (default: 0.2, 0 disables)",
    )
    start.add_argument(
        "--prune-artifacts", action="store_true", default=None,
        help="Delete build artifacts when their TypeScript source is deleted",
    )
    start.add_argument(
        "--provision-cmd", default=None,
        help="Command that provisions the WordPress runtime, run once before syncing",
    )
    start.add_argument(
        "--ignore", action="append", default=None, metavar="PATTERN",
        help="Extra gitignore-style pattern to skip (repeatable)",
    )
    start.add_argument("--no-serve", dest="serve", action="store_false", help="Do not start the PHP server")
    start.add_argument("--no-reload", dest="reload", action="store_false", help="Do not start the live-reload proxy")
    start.add_argument("--no-open", dest="open_browser", action="store_false", help="Do not open a browser")
    start.add_argument(
        "--no-activate", dest="activate", action="store_false",
        help="Do not activate the plugin with WP-CLI after the initial sync",
    )
    start.add_argument(
        "--wp-cli", default=None, metavar="CMD",
        help="WP-CLI command (default: wp on PATH, then wp-cli.phar, or WPSYNC_WP_CLI)",
    )
    start.add_argument(
        "--log-level", default=None,
        help="DEBUG, INFO, WARNING or ERROR (default: INFO, or WPSYNC_LOG_LEVEL)",
    )
    start.add_argument(
        "--log-dir", type=Path, default=None,
        help="Directory for log files (default: ./.wpsync/logs)",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> SyncConfig:
    return SyncConfig.from_env(
        args.plugin_path,
        port=args.port,
        wp_port=args.wp_port,
        wp_root=args.wp_root,
        build_dir=args.build_dir,
        debounce=args.debounce,
        prune_artifacts=args.prune_artifacts,
        provision_cmd=args.provision_cmd,
        ignore_patterns=tuple(args.ignore) if args.ignore else None,
        serve=args.serve,
        reload=args.reload,
        open_browser=args.open_browser,
        activate=args.activate,
        wp_cli=args.wp_cli,
        log_level=args.log_level,
    )


async def run(config: SyncConfig) -> dict:
    """
    Run a session until SIGINT/SIGTERM.

    Returns:
        The engine's action counters
    """
    from wpsync.events import SyncLog, logging_subscriber
    from wpsync.session import SyncSession

    log = SyncLog()
    log.subscribe(logging_subscriber())

    async with SyncSession(config, log=log) as session:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, session.request_stop)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no signal handler support
                pass
        await session.wait_closed()
        return dict(session.engine.stats)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != "start":
        parser.print_help()
        return 2

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    from wpsync.logging_config import setup_logging

    setup_logging(log_dir=args.log_dir, level=config.level, console=True)
    logger.info(f"🚀 Starting wpsync for: {config.plugin_path}")

    try:
        stats = asyncio.run(run(config))
    except StartupError as e:
        logger.error(f"❌ Error starting development environment: {e}")
        return 1
    except KeyboardInterrupt:
        return 130

    logger.info(
        f"📊 Session summary: {stats['added']} added, {stats['updated']} updated, "
        f"{stats['removed']} removed, {stats['builds']} builds "
        f"({stats['build_failures']} failed), {stats['errors']} errors"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
