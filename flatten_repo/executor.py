"""
Flatten execution for the repository flatten tool.

Moves the contents of a subdirectory up to the repository root.
"""

import os
import shutil
from datetime import datetime
from pathlib import Path
from tqdm import tqdm

from . import gitops
from .scanner import build_move_plan
from .utils import save_json, console
from .validator import validate_moves


def _move_entry(root: Path, old_rel: str, new_rel: str, use_git: bool) -> dict:
    """Move a single entry; never raises."""
    res = {"old_rel": old_rel, "new_rel": new_rel, "method": None, "status": "skipped", "error": None}

    src = root / old_rel
    dst = root / new_rel

    if dst.exists() or dst.is_symlink():
        res["error"] = "Destination exists"
        return res

    if not src.exists() and not src.is_symlink():
        res["error"] = "Source not found"
        return res

    try:
        if use_git and gitops.is_tracked(root, old_rel):
            res["method"] = "git"
            gitops.git_mv(root, old_rel, new_rel)
        else:
            res["method"] = "fs"
            shutil.move(str(src), str(dst))
    except (gitops.GitError, OSError, shutil.Error) as e:
        res["error"] = str(e)
        return res

    res["status"] = "moved"
    return res


def remove_if_empty(path: Path) -> bool:
    """rmdir path; False if it is missing or still has contents."""
    try:
        os.rmdir(path)
    except OSError:
        return False
    return True


def flatten_subdir(
    root: Path,
    subdir: str,
    dry_run: bool = False,
    use_git: bool = True,
    undo_out: Path | None = None
) -> dict:
    """
    Move everything inside root/subdir to root, then remove the empty subdir.

    Running this a second time is a no-op: the subdirectory is gone, so
    the report comes back with status "skipped".

    Args:
        root: Repository root.
        subdir: Subdirectory to flatten.
        dry_run: If True, only print what would move.
        use_git: Use "git mv" for tracked entries when root is a work tree.
        undo_out: Where to write the reverse-move plan (applied runs only).

    Returns:
        Report dict (status, moved, failed, counts, subdir_removed).

    Raises:
        RuntimeError: If root is not a directory.
        ValueError: If a moved entry would overwrite something at the root.
    """
    root = root.resolve()
    plan = build_move_plan(root, subdir)
    subdir = plan["subdir"]

    report = {
        "root": str(root),
        "subdir": subdir,
        "dry_run": dry_run,
        "executed_at": datetime.now().isoformat(timespec='seconds'),
        "status": "skipped",
        "moved": [],
        "failed": [],
        "moved_count": 0,
        "failed_count": 0,
        "subdir_removed": False,
    }

    if not plan["subdir_found"]:
        console.print("   [INFO] Files already moved (or folder not found).")
        return report

    moves = validate_moves(root, plan)
    mode = "DRY-RUN" if dry_run else "APPLY"
    console.print(f"   [{mode}] Moving {len(moves)} entries from {subdir}/ to root...")

    if dry_run:
        for move in moves[:10]:
            print(f"  [WOULD MOVE] {move['old_rel']} -> {move['new_rel']}")
        if len(moves) > 10:
            print(f"  ... and {len(moves)-10} more")
        print(f"  [WOULD REMOVE] {subdir}/")
        report["status"] = "dry-run"
        report["moved_count"] = len(moves)
        return report

    git_enabled = use_git and gitops.is_work_tree(root)
    if use_git and not git_enabled:
        print("[INFO] Not a git work tree, moving with the filesystem only")

    for move in tqdm(moves, unit="entry", disable=not moves):
        res = _move_entry(root, move["old_rel"], move["new_rel"], git_enabled)
        if res["status"] == "moved":
            report["moved"].append(res)
        else:
            report["failed"].append(res)
            tqdm.write(f"[ERROR] {res['error']}: {res['old_rel']}")

    report["moved_count"] = len(report["moved"])
    report["failed_count"] = len(report["failed"])

    # git mv may already have dropped the emptied directory
    subdir_path = root / subdir
    remove_if_empty(subdir_path)
    report["subdir_removed"] = not subdir_path.exists()
    if not report["subdir_removed"]:
        console.print(f"[bold yellow]WARNING:[/bold yellow] {subdir}/ is not empty, left in place")

    if report["failed_count"] == 0 and report["subdir_removed"]:
        report["status"] = "flattened"
    else:
        report["status"] = "partial"

    if undo_out is not None and report["moved"]:
        undo_plan = {
            "root": str(root),
            "created_at": datetime.now().isoformat(),
            "type": "undo",
            "folders_to_create": [subdir],
            "moves": [
                {"old_rel": m["new_rel"], "new_rel": m["old_rel"], "reason": "Undo flatten"}
                for m in report["moved"]
            ],
        }
        save_json(undo_plan, undo_out)
        print(f"[SAFETY] Undo plan saved to '{undo_out}'")

    console.print(
        f"   [{mode}] Complete: {report['moved_count']} moved, {report['failed_count']} failed"
    )
    return report


def apply_undo(root: Path, undo_plan: dict, use_git: bool = True) -> dict:
    """
    Replay an undo plan written by flatten_subdir, moving entries back.

    Args:
        root: Repository root.
        undo_plan: Dict with "folders_to_create" and reverse "moves".
        use_git: Use "git mv" for tracked entries when root is a work tree.

    Returns:
        Report dict with moved/failed counts.
    """
    root = root.resolve()
    if not root.is_dir():
        raise RuntimeError(f"Root directory not found: {root}")

    for folder_rel in undo_plan.get("folders_to_create", []):
        (root / folder_rel).mkdir(parents=True, exist_ok=True)

    git_enabled = use_git and gitops.is_work_tree(root)
    moved, failed = 0, 0
    for move in undo_plan.get("moves", []):
        res = _move_entry(root, move["old_rel"], move["new_rel"], git_enabled)
        if res["status"] == "moved":
            moved += 1
        else:
            failed += 1
            print(f"[ERROR] {res['error']}: {res['old_rel']}")

    print(f"\n[UNDO] Complete: {moved} moved back, {failed} failed")
    return {"root": str(root), "moved_count": moved, "failed_count": failed}


def default_undo_path(root: Path | None = None) -> Path:
    """
    Pick a fresh undo_flatten_<timestamp>.json path, never overwriting.

    Inside a git repository the file goes under .git/flatten-repo/ so that
    "git add ." never stages it; otherwise it goes in the working directory.
    """
    base = Path(".")
    git_dir = gitops.git_dir(root) if root is not None else None
    if git_dir is not None:
        base = git_dir / "flatten-repo"
        base.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    undo_file = base / f"undo_flatten_{timestamp}.json"
    counter = 1
    while undo_file.exists():
        undo_file = base / f"undo_flatten_{timestamp}_{counter}.json"
        counter += 1
    return undo_file
