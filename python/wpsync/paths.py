"""
Path mapping between watched roots and the deployed plugin directory.

Mapping is root-relative-path preserving: the part of the path after the
root prefix is re-rooted under the target directory unchanged.
"""

from pathlib import Path


def relative_to_root(path: Path, root: Path) -> Path:
    """
    Return path relative to root.

    Raises:
        ValueError: If path is not inside root
    """
    return Path(path).relative_to(root)


def map_to_target(path: Path, root: Path, target_root: Path) -> Path:
    """
    Map a path under a watched root to its location under target_root.

    Pure: no filesystem access, so the result is valid even if nothing
    exists there yet. Mapping the same (path, root) twice yields the same
    target path.

    Args:
        path: Absolute path inside root
        root: Watched root the path came from (primary source or build output)
        target_root: Deployed plugin directory

    Returns:
        The corresponding path under target_root

    Raises:
        ValueError: If path is not inside root
    """
    return Path(target_root) / relative_to_root(path, root)


def display_path(path: Path, root: Path) -> str:
    """Root-relative path with forward slashes, for log lines."""
    try:
        return relative_to_root(path, root).as_posix()
    except ValueError:
        return Path(path).as_posix()


def is_within(path: Path, root: Path) -> bool:
    """True if path equals root or lies beneath it."""
    try:
        Path(path).relative_to(root)
    except ValueError:
        return False
    return True
