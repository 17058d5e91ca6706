"""
Transform selection: which files need a build step before deployment.

A TransformRegistry maps file extensions to BuildDirectives. The sync engine
only asks the registry; adding a new compiler means registering another
directive, not touching engine code.
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional


# Default tsconfig.json written when a project has none
DEFAULT_TSCONFIG: dict = {
    "compilerOptions": {
        "target": "ES2018",
        "module": "commonjs",
        "outDir": "./dist",
        "rootDir": "./src",
        "strict": True,
        "esModuleInterop": True,
        "skipLibCheck": True,
        "forceConsistentCasingInFileNames": True,
        "declaration": False,
        "sourceMap": False,
    },
    "include": ["src/**/*"],
    "exclude": ["node_modules", "dist"],
}


@dataclass(frozen=True)
class BuildDirective:
    """
    How to build one family of source files.

    command is a template; each element is formatted with:
    {source} (absolute source path), {config} (config file path),
    {out_dir} and {root_dir} (from the config's compilerOptions).
    """

    name: str
    extensions: tuple[str, ...]
    command: tuple[str, ...]
    artifact_suffix: str
    config_name: Optional[str] = None
    default_config: dict = field(default_factory=dict, compare=False, hash=False)
    # Compound suffixes (".d.ts") that share an extension but are not sources
    exclude_suffixes: tuple[str, ...] = ()

    def matches(self, path: Path) -> bool:
        name = Path(path).name.lower()
        if any(name.endswith(suffix) for suffix in self.exclude_suffixes):
            return False
        return Path(path).suffix.lower() in self.extensions

    def config_document(self, out_dir: str, root_dir: str) -> dict:
        """Default config with outDir/rootDir set to the session's layout."""
        document = copy.deepcopy(self.default_config)
        options = document.setdefault("compilerOptions", {})
        options["outDir"] = out_dir
        options["rootDir"] = root_dir
        if "exclude" in document:
            out_name = Path(out_dir).name
            document["exclude"] = [
                out_name if entry == "dist" else entry for entry in document["exclude"]
            ]
        if "include" in document:
            document["include"] = [f"{root_dir.removeprefix('./') or '.'}/**/*"]
        return document


TYPESCRIPT = BuildDirective(
    name="typescript",
    extensions=(".ts",),
    command=(
        "npx",
        "tsc",
        "--noEmitOnError",
        "--outDir",
        "{out_dir}",
        "--rootDir",
        "{root_dir}",
        "{source}",
    ),
    artifact_suffix=".js",
    config_name="tsconfig.json",
    default_config=DEFAULT_TSCONFIG,
    exclude_suffixes=(".d.ts",),
)


class TransformRegistry:
    """Extension → BuildDirective registry."""

    def __init__(self, directives: Optional[Iterable[BuildDirective]] = None) -> None:
        self._by_extension: dict[str, BuildDirective] = {}
        for directive in directives or ():
            self.register(directive)

    @classmethod
    def default(cls) -> "TransformRegistry":
        return cls([TYPESCRIPT])

    def register(self, directive: BuildDirective) -> None:
        """
        Register a directive for all of its extensions.

        Raises:
            ValueError: If an extension is malformed or already claimed by
                another directive
        """
        for extension in directive.extensions:
            key = extension.lower()
            if not key.startswith(".") or len(key) < 2:
                raise ValueError(f"Extension must look like '.ext', got {extension!r}")
            existing = self._by_extension.get(key)
            if existing is not None and existing.name != directive.name:
                raise ValueError(
                    f"Extension {key} already handled by '{existing.name}'"
                )
        for extension in directive.extensions:
            self._by_extension[extension.lower()] = directive

    def unregister(self, extension: str) -> None:
        self._by_extension.pop(extension.lower(), None)

    def directive_for(self, path: Path) -> Optional[BuildDirective]:
        directive = self._by_extension.get(Path(path).suffix.lower())
        if directive is None or not directive.matches(path):
            return None
        return directive

    def needs_build(self, path: Path) -> bool:
        return self.directive_for(path) is not None

    def extensions(self) -> list[str]:
        return sorted(self._by_extension)
