"""
Ignore rules for watched roots.

Uses pathspec for gitignore-compliant pattern matching. Hidden entries (any
path component starting with ".") are always ignored, matching what editors
and VCS tools leave behind in a plugin tree.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

from pathspec import PathSpec

logger = logging.getLogger(__name__)

# Editor backup and swap files that come and go during a save, plus
# installed node packages. Anything else in the plugin tree is deployed.
DEFAULT_IGNORES = [
    "*~",
    "*.swp",
    "*.swo",
    "4913",  # Vim write check file
    "node_modules/",
]


class IgnoreFilter:
    """
    Decides whether a path under a root is skipped by the watcher.

    Args:
        root: Root directory the paths are relative to
        patterns: Extra gitignore-style patterns
        excluded: Subtrees to skip entirely (e.g. a nested build-output root)
        ignore_hidden: Skip entries whose name starts with "."
    """

    def __init__(
        self,
        root: Path,
        patterns: Optional[Iterable[str]] = None,
        excluded: Optional[Iterable[Path]] = None,
        ignore_hidden: bool = True,
    ) -> None:
        self.root = Path(root).resolve()
        self.ignore_hidden = ignore_hidden
        self._patterns = DEFAULT_IGNORES + list(patterns or ())
        self._spec = PathSpec.from_lines("gitwildmatch", self._patterns)
        self._excluded = [Path(p).resolve() for p in (excluded or ())]

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    def is_ignored(self, path: Path, is_dir: bool = False) -> bool:
        path = Path(path)

        for excluded in self._excluded:
            if path == excluded or excluded in path.parents:
                return True

        try:
            rel = path.relative_to(self.root)
        except ValueError:
            # Outside the root: never ours to sync
            return True

        if rel == Path("."):
            return False

        if self.ignore_hidden and any(part.startswith(".") for part in rel.parts):
            return True

        rel_str = rel.as_posix()
        if is_dir:
            rel_str += "/"
        return self._spec.match_file(rel_str)


def load_ignore_file(root: Path, name: str = ".wpsyncignore") -> list[str]:
    """
    Read extra ignore patterns from a file in the root, if present.

    Blank lines and comments are skipped. An unreadable file is logged and
    treated as empty.
    """
    ignore_file = Path(root) / name
    if not ignore_file.exists():
        return []
    try:
        lines = ignore_file.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        logger.warning(f"Could not read {name}: {e}")
        return []
    return [line for line in (l.strip() for l in lines) if line and not line.startswith("#")]
