"""
Registry of external processes spawned during a session.

Builds and the PHP web server register their processes here so the session
can terminate everything still running on teardown, whatever the exit path.
"""

import asyncio
import logging
import subprocess
from typing import Union

logger = logging.getLogger(__name__)

Process = Union[asyncio.subprocess.Process, subprocess.Popen]


class ProcessRegistry:
    """Tracks live child processes and terminates them on request."""

    def __init__(self) -> None:
        self._processes: list[Process] = []

    def add(self, process: Process) -> Process:
        self._processes.append(process)
        return process

    def discard(self, process: Process) -> None:
        if process in self._processes:
            self._processes.remove(process)

    def running(self) -> list[Process]:
        return [p for p in self._processes if _returncode(p) is None]

    def terminate_all(self) -> int:
        """
        Send SIGTERM to every process that is still running.

        Termination is best-effort: a process that already exited or cannot
        be signalled is skipped.

        Returns:
            Number of processes signalled
        """
        signalled = 0
        for process in self.running():
            try:
                process.terminate()
                signalled += 1
            except (ProcessLookupError, OSError) as e:
                logger.debug(f"Could not terminate process {process.pid}: {e}")
        self._processes.clear()
        if signalled:
            logger.info(f"🧹 Terminated {signalled} child process(es)")
        return signalled

    def __len__(self) -> int:
        return len(self._processes)


def _returncode(process: Process):
    if isinstance(process, subprocess.Popen):
        return process.poll()
    return process.returncode
