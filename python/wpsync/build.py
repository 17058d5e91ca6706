"""
Build runner for transformable sources.

The runner invokes an external compiler for one source file and waits for it
to exit. It never moves files itself: the compiler writes artifacts into the
build-output root, and the build-output watcher picks them up from there.
"""

import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from wpsync.errors import BuildError
from wpsync.paths import display_path, is_within
from wpsync.processes import ProcessRegistry
from wpsync.transforms import BuildDirective, TransformRegistry

logger = logging.getLogger(__name__)

# Number of trailing compiler output lines kept in a failure reason
OUTPUT_TAIL_LINES = 20


@dataclass(frozen=True)
class Succeeded:
    """The compiler exited with status 0."""

    source: Path
    artifacts: tuple[Path, ...] = ()


@dataclass(frozen=True)
class Failed:
    """The compiler could not be spawned or exited nonzero."""

    source: Path
    reason: str


BuildOutcome = Union[Succeeded, Failed]


@dataclass(frozen=True)
class BuildLayout:
    """Resolved compiler directories for one directive."""

    config: Optional[Path]
    out_dir: Path
    root_dir: Path


class BuildRunner:
    """
    Runs build directives for source files under the primary root.

    Example Usage:
    --------------
    >>> runner = BuildRunner(plugin_root, plugin_root / "dist", registry, processes)
    >>> outcome = await runner.build(plugin_root / "src" / "widget.ts")
    >>> if isinstance(outcome, Failed):
    ...     print(outcome.reason)
    """

    def __init__(
        self,
        primary_root: Path,
        build_root: Path,
        registry: TransformRegistry,
        processes: Optional[ProcessRegistry] = None,
    ) -> None:
        self.primary_root = Path(primary_root).resolve()
        self.build_root = Path(build_root).resolve()
        self.registry = registry
        self.processes = processes if processes is not None else ProcessRegistry()
        # Directive names whose config file has been checked this session
        self._configured: set[str] = set()

    def ensure_config(self, directive: BuildDirective) -> Optional[Path]:
        """
        Write the directive's default config file if the project has none.

        Runs at most once per directive per runner; later calls return the
        path without touching the filesystem.
        """
        if directive.config_name is None:
            return None

        config_path = self.primary_root / directive.config_name
        if directive.name in self._configured:
            return config_path

        if not config_path.exists():
            document = directive.config_document(
                out_dir=self._relative_dir(self.build_root),
                root_dir="./src" if (self.primary_root / "src").is_dir() else ".",
            )
            config_path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
            logger.info(f"📄 Created default {directive.config_name}")

        self._configured.add(directive.name)
        return config_path

    def layout(self, directive: BuildDirective) -> BuildLayout:
        """
        Resolve outDir/rootDir for a directive.

        Values come from the config file's compilerOptions when it is
        readable JSON, otherwise from the session layout.
        """
        config_path = self.ensure_config(directive)
        out_dir = self.build_root
        root_dir = self.primary_root

        if config_path is not None and config_path.exists():
            try:
                options = json.loads(config_path.read_text(encoding="utf-8")).get(
                    "compilerOptions", {}
                )
            except (OSError, ValueError, AttributeError) as e:
                logger.warning(f"Could not read {config_path.name}, using defaults: {e}")
                options = {}
            if options.get("outDir"):
                out_dir = (config_path.parent / options["outDir"]).resolve()
            if options.get("rootDir"):
                root_dir = (config_path.parent / options["rootDir"]).resolve()

        return BuildLayout(config=config_path, out_dir=out_dir, root_dir=root_dir)

    def expected_artifacts(self, source: Path) -> tuple[Path, ...]:
        """Artifact paths the compiler will write for source (may not exist yet)."""
        directive = self.registry.directive_for(source)
        if directive is None:
            return ()
        layout = self.layout(directive)
        if not is_within(source, layout.root_dir):
            return ()
        relative = Path(source).relative_to(layout.root_dir)
        return (layout.out_dir / relative.with_suffix(directive.artifact_suffix),)

    def command_for(self, source: Path) -> list[str]:
        directive = self.registry.directive_for(source)
        if directive is None:
            raise ValueError(f"No build directive for {source}")
        layout = self.layout(directive)
        values = {
            "source": str(source),
            "config": str(layout.config or ""),
            "out_dir": str(layout.out_dir),
            "root_dir": str(layout.root_dir),
        }
        return [part.format(**values) for part in directive.command]

    async def build(self, source: Path) -> BuildOutcome:
        """
        Compile one source file and wait for the compiler to exit.

        Never raises for compiler problems: spawn errors and nonzero exits
        come back as Failed.
        """
        source = Path(source)
        rel = display_path(source, self.primary_root)

        try:
            argv = self.command_for(source)
        except (OSError, ValueError) as e:
            return Failed(source, f"cannot prepare build for {rel}: {e}")

        try:
            returncode, output = await self._run(argv)
        except BuildError as e:
            return Failed(source, str(e))

        if returncode != 0:
            tail = "\n".join(output.splitlines()[-OUTPUT_TAIL_LINES:])
            reason = f"{Path(argv[0]).name} exited with status {returncode}"
            return Failed(source, f"{reason}\n{tail}" if tail else reason)

        return Succeeded(source, self.expected_artifacts(source))

    async def _run(self, argv: list[str]) -> tuple[int, str]:
        executable = shutil.which(argv[0]) or argv[0]
        logger.debug(f"Running: {' '.join(argv)}")
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *argv[1:],
                cwd=str(self.primary_root),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise BuildError(f"could not start {argv[0]}: {e}") from e

        self.processes.add(process)
        try:
            stdout, _ = await process.communicate()
        finally:
            self.processes.discard(process)

        return process.returncode, stdout.decode("utf-8", errors="replace")

    def _relative_dir(self, path: Path) -> str:
        try:
            return "./" + path.relative_to(self.primary_root).as_posix()
        except ValueError:
            return str(path)
