"""
Subdirectory scanning for the repository flatten tool.

Finds the subdirectory to flatten and lists what has to move to the root.
"""

import os
from datetime import datetime
from pathlib import Path

from .utils import normalize_rel


def detect_subdir(root: Path, subdir: str) -> Path | None:
    """
    Return the subdirectory path if it exists under root, else None.

    A symlink pointing at a directory is not treated as the subdirectory.
    """
    path = root / normalize_rel(subdir)
    if path.is_dir() and not path.is_symlink():
        return path
    return None


def entry_kind(path: Path) -> str:
    if path.is_symlink():
        return "symlink"
    if path.is_dir():
        return "dir"
    return "file"


def list_entries(subdir_path: Path) -> list[Path]:
    """
    List every direct child of subdir_path, hidden entries included.

    os.scandir never yields "." or "..", so dotfiles such as .env or
    .eslintrc come through without special casing.
    """
    with os.scandir(subdir_path) as it:
        names = sorted(entry.name for entry in it)
    return [subdir_path / name for name in names]


def build_move_plan(root: Path, subdir: str) -> dict:
    """
    Build the plan for moving everything in root/subdir up to root.

    Args:
        root: Repository root.
        subdir: Name of the subdirectory to flatten (relative to root).

    Returns:
        Plan dict with "moves" (old_rel, new_rel, kind). When the
        subdirectory does not exist, "subdir_found" is False and
        "moves" is empty.

    Raises:
        RuntimeError: If root does not exist or is not a directory.
    """
    root = root.resolve()
    if not root.is_dir():
        raise RuntimeError(f"Root directory not found: {root}")

    subdir = normalize_rel(subdir)
    plan = {
        "root": str(root),
        "subdir": subdir,
        "generated_at": datetime.now().isoformat(timespec='seconds'),
        "subdir_found": False,
        "moves": [],
    }

    subdir_path = detect_subdir(root, subdir)
    if subdir_path is None:
        return plan

    plan["subdir_found"] = True
    for entry in list_entries(subdir_path):
        plan["moves"].append({
            "old_rel": f"{subdir}/{entry.name}",
            "new_rel": entry.name,
            "kind": entry_kind(entry),
        })

    return plan
