"""Workspace path helpers used by permission checks."""

import os
from pathlib import PurePosixPath


def to_posix(path: str) -> str:
    return path.replace("\\", "/")


def expand_home(path: str) -> str:
    if path == "~" or path.startswith("~/") or path.startswith("~\\"):
        return os.path.expanduser(path)
    return path


def resolve_path(path: str, base: str) -> str:
    """Absolute, normalized path of ``path`` relative to ``base``."""
    expanded = expand_home(path)
    if os.path.isabs(expanded):
        return os.path.normpath(expanded)
    return os.path.normpath(os.path.join(os.path.abspath(base), expanded))


def is_sub_path(path: str, root: str) -> bool:
    """True if ``path`` equals ``root`` or lies beneath it (lexically)."""
    abs_path = os.path.normpath(os.path.abspath(path))
    abs_root = os.path.normpath(os.path.abspath(root))
    try:
        return os.path.commonpath([abs_path, abs_root]) == abs_root
    except ValueError:
        return False


def normalize_permission_path(value: str, workspace_root: str | None) -> str:
    """
    Normalize a path argument for permission evaluation.

    Paths inside the workspace become workspace-relative posix paths (the
    root itself is "."); paths outside stay absolute.

    Args:
        value: Raw path argument
        workspace_root: Workspace root, or None to leave the value untouched

    Returns:
        The normalized path
    """
    if not workspace_root:
        return value
    abs_path = resolve_path(value, workspace_root)
    if not is_sub_path(abs_path, workspace_root):
        return abs_path
    rel = os.path.relpath(abs_path, os.path.abspath(workspace_root))
    if not rel or rel == ".":
        return "."
    return str(PurePosixPath(to_posix(rel)))


def is_absolute(value: str) -> bool:
    return os.path.isabs(value)
