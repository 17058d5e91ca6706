"""
Session configuration.

Values come from three layers, later layers winning:
1. Dataclass defaults
2. Environment variables (WPSYNC_PORT, WPSYNC_WP_PORT, WPSYNC_WP_ROOT,
   WPSYNC_DEBOUNCE, WPSYNC_LOG_LEVEL, WPSYNC_WP_CLI)
3. Explicit keyword overrides (the CLI passes its flags here)
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Mapping, Optional

from wpsync.debouncer import MAX_DELAY


DEFAULT_WP_ROOT_NAME = "wordpress-dev-env"
DEFAULT_BUILD_DIR = "dist"
DEFAULT_DEBOUNCE = 0.2

# Globs (relative to the deployed plugin directory) the reload server watches
RELOAD_GLOBS = ("**/*.php", "**/*.js", "**/*.css")

_ENV_VARS = {
    "port": "WPSYNC_PORT",
    "wp_port": "WPSYNC_WP_PORT",
    "wp_root": "WPSYNC_WP_ROOT",
    "debounce": "WPSYNC_DEBOUNCE",
    "log_level": "WPSYNC_LOG_LEVEL",
    "wp_cli": "WPSYNC_WP_CLI",
}


@dataclass(frozen=True)
class SyncConfig:
    """Everything a sync session needs to know, resolved to absolute paths."""

    plugin_path: Path
    wp_root: Path = field(default_factory=lambda: Path.cwd() / DEFAULT_WP_ROOT_NAME)
    port: int = 3000
    wp_port: int = 8080
    build_dir: str = DEFAULT_BUILD_DIR
    debounce: float = DEFAULT_DEBOUNCE
    prune_artifacts: bool = False
    serve: bool = True
    reload: bool = True
    open_browser: bool = True
    provision_cmd: Optional[str] = None
    activate: bool = True
    # WP-CLI invocation, e.g. "php /opt/wp-cli.phar"; found on PATH when unset
    wp_cli: Optional[str] = None
    ignore_patterns: tuple[str, ...] = ()
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        object.__setattr__(self, "plugin_path", Path(self.plugin_path).resolve())
        object.__setattr__(self, "wp_root", Path(self.wp_root).resolve())

        for name in ("port", "wp_port"):
            value = getattr(self, name)
            if not 0 < value < 65536:
                raise ValueError(f"{name} must be between 1 and 65535, got {value}")
        if self.serve and self.reload and self.port == self.wp_port:
            raise ValueError("port and wp_port must differ")
        if not 0 <= self.debounce <= MAX_DELAY:
            raise ValueError(
                f"debounce must be between 0 and {MAX_DELAY} seconds, got {self.debounce}"
            )
        if not self.build_dir or Path(self.build_dir).is_absolute():
            raise ValueError("build_dir must be a relative directory name")
        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise ValueError(f"Unknown log level: {self.log_level}")

    @property
    def plugin_name(self) -> str:
        return self.plugin_path.name

    @property
    def build_root(self) -> Path:
        """Directory the compiler writes artifacts into."""
        return self.plugin_path / self.build_dir

    @property
    def plugins_dir(self) -> Path:
        return self.wp_root / "wp-content" / "plugins"

    @property
    def target_root(self) -> Path:
        """The deployed plugin directory inside the runtime."""
        return self.plugins_dir / self.plugin_name

    @property
    def level(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    def reload_globs(self) -> list[str]:
        return [str(self.target_root / pattern) for pattern in RELOAD_GLOBS]

    def with_overrides(self, **overrides) -> "SyncConfig":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(
        cls,
        plugin_path: Path,
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "SyncConfig":
        """
        Build a config from the environment, then apply explicit overrides.

        Args:
            plugin_path: Plugin working directory to mirror
            environ: Mapping to read instead of os.environ (tests)
            **overrides: Field values that win over the environment; None is ignored

        Raises:
            ValueError: If an environment variable holds an unparseable value
        """
        environ = os.environ if environ is None else environ
        types = {f.name: f.type for f in fields(cls)}

        values: dict = {}
        for name, var in _ENV_VARS.items():
            raw = environ.get(var)
            if raw is None or raw == "":
                continue
            try:
                if types[name] in (int, "int"):
                    values[name] = int(raw)
                elif types[name] in (float, "float"):
                    values[name] = float(raw)
                elif name == "wp_root":
                    values[name] = Path(raw)
                else:
                    values[name] = raw
            except ValueError as e:
                raise ValueError(f"Invalid value for {var}: {raw!r}") from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(plugin_path=plugin_path, **values)
