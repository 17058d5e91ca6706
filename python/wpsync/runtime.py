"""
WordPress runtime collaborators.

Provisioning the runtime (WordPress core, the SQLite drop-in, WP-CLI, PHP)
is external: wpsync optionally runs a user-supplied provisioning command
once, then checks the runtime layout is there before syncing starts. Once
the plugin is deployed it activates it through WP-CLI, and it launches
PHP's built-in web server for the runtime.

Everything here runs at startup, so failures raise StartupError.
"""

import asyncio
import logging
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from wpsync.config import SyncConfig
from wpsync.errors import StartupError
from wpsync.processes import ProcessRegistry

logger = logging.getLogger(__name__)

# Seconds to wait before checking the web server did not exit right away
SERVER_STARTUP_GRACE = 0.5

WP_CLI_PHAR = "wp-cli.phar"


def find_executable(name: str) -> str:
    """
    Resolve an executable on PATH.

    Raises:
        StartupError: If it cannot be found
    """
    path = shutil.which(name)
    if path is None:
        raise StartupError(f"{name} is not installed or not on PATH")
    return path


def check_plugin_source(config: SyncConfig) -> None:
    if not config.plugin_path.exists():
        raise StartupError(f"Plugin path does not exist: {config.plugin_path}")
    if not config.plugin_path.is_dir():
        raise StartupError(f"Plugin path is not a directory: {config.plugin_path}")
    if config.target_root == config.plugin_path or config.plugin_path in config.target_root.parents:
        raise StartupError("The WordPress runtime must live outside the plugin directory")


def check_runtime_layout(config: SyncConfig) -> None:
    """
    Make sure the provisioned runtime has a plugins directory.

    Raises:
        StartupError: If the runtime has not been provisioned
    """
    if not config.wp_root.is_dir():
        raise StartupError(
            f"WordPress runtime not found at {config.wp_root}. "
            "Provision it first (see --provision-cmd)."
        )
    if not config.plugins_dir.is_dir():
        raise StartupError(f"Runtime has no plugins directory: {config.plugins_dir}")


async def _run_to_completion(argv: list[str], cwd: Path, processes: ProcessRegistry, what: str) -> int:
    """Run a startup command with inherited output and return its exit status."""
    try:
        process = await asyncio.create_subprocess_exec(
            shutil.which(argv[0]) or argv[0], *argv[1:], cwd=str(cwd)
        )
    except OSError as e:
        raise StartupError(f"Could not start {what} command: {e}") from e

    processes.add(process)
    try:
        return await process.wait()
    finally:
        processes.discard(process)


async def run_provisioning(command: str, cwd: Path, processes: ProcessRegistry) -> None:
    """
    Run the one-shot provisioning command and wait for it.

    Output is inherited so the user sees download/install progress.

    Raises:
        StartupError: If the command cannot start or exits nonzero
    """
    argv = shlex.split(command)
    if not argv:
        raise StartupError("Provisioning command is empty")

    logger.info(f"⬇️  Provisioning runtime: {command}")
    cwd.mkdir(parents=True, exist_ok=True)
    returncode = await _run_to_completion(argv, cwd, processes, "provisioning")
    if returncode != 0:
        raise StartupError(f"Provisioning command failed with status {returncode}")
    logger.info("✅ Runtime provisioned")


def wp_cli_command(config: SyncConfig) -> Optional[list[str]]:
    """
    Resolve how to invoke WP-CLI.

    Order: config.wp_cli, a "wp" executable on PATH, then a wp-cli.phar in
    the runtime directory or the current directory (run through php).

    Returns:
        The argv prefix, or None if WP-CLI is not available
    """
    if config.wp_cli:
        return shlex.split(config.wp_cli)

    wp = shutil.which("wp")
    if wp is not None:
        return [wp]

    for phar in (config.wp_root / WP_CLI_PHAR, Path.cwd() / WP_CLI_PHAR):
        if phar.is_file():
            return [shutil.which("php") or "php", str(phar)]
    return None


async def activate_plugin(config: SyncConfig, processes: ProcessRegistry) -> bool:
    """
    Activate the deployed plugin in the runtime with WP-CLI.

    A missing WP-CLI is not fatal: the plugin can still be activated from
    the admin screen, so the step is skipped with a warning.

    Returns:
        False if activation was skipped

    Raises:
        StartupError: If WP-CLI cannot start or exits nonzero
    """
    argv = wp_cli_command(config)
    if not argv:
        logger.warning(
            f"⚠️  WP-CLI not found, activate {config.plugin_name} from the admin screen"
        )
        return False

    logger.info(f"🔌 Activating plugin: {config.plugin_name}")
    returncode = await _run_to_completion(
        argv + ["plugin", "activate", config.plugin_name], config.wp_root, processes, "WP-CLI"
    )
    if returncode != 0:
        raise StartupError(f"Plugin activation failed with status {returncode}")
    logger.info("✅ Plugin activated")
    return True


def php_server_command(config: SyncConfig, php: str = "php") -> list[str]:
    return [php, "-S", f"localhost:{config.wp_port}", "-t", str(config.wp_root)]


async def start_php_server(
    config: SyncConfig,
    processes: ProcessRegistry,
    php: Optional[str] = None,
) -> subprocess.Popen:
    """
    Launch PHP's built-in web server for the runtime.

    The process is registered with the session's ProcessRegistry, which
    terminates it on teardown.

    Raises:
        StartupError: If PHP is missing or the server exits immediately
            (port already in use, bad docroot)
    """
    php = php or find_executable("php")
    argv = php_server_command(config, php)
    debug = logger.isEnabledFor(logging.DEBUG)

    try:
        process = subprocess.Popen(
            argv,
            cwd=str(config.wp_root),
            stdout=None if debug else subprocess.DEVNULL,
            stderr=None if debug else subprocess.DEVNULL,
        )
    except OSError as e:
        raise StartupError(f"Could not start PHP server: {e}") from e
    processes.add(process)

    await asyncio.sleep(SERVER_STARTUP_GRACE)
    if process.poll() is not None:
        raise StartupError(
            f"PHP server exited with status {process.returncode} "
            f"(is port {config.wp_port} already in use?)"
        )

    logger.info(f"🐘 PHP server running on http://localhost:{config.wp_port}")
    return process
