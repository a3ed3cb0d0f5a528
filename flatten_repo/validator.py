"""
Plan validation for the repository flatten tool.

Validates that proposed moves are safe before anything touches the tree.
"""

from pathlib import Path

from .utils import normalize_rel


def validate_moves(root: Path, plan: dict) -> list[dict]:
    """
    Validate the flatten plan before applying.

    Checks for:
    - No-op moves (same source and destination)
    - Duplicate moves
    - Non-existent sources
    - Destinations that already exist at the root
    - Different sources targeting the same destination

    Args:
        root: The repository root.
        plan: The flatten plan dict.

    Returns:
        A filtered list of valid moves.

    Raises:
        RuntimeError: If root does not exist.
        ValueError: If there are destination collisions.
    """
    root = root.resolve()
    if not root.exists():
        raise RuntimeError(f"Root directory not found: {root}")

    warnings = []
    collisions = []
    valid_moves = []

    destinations: dict[str, str] = {}  # new_rel -> old_rel
    seen_moves: set[tuple[str, str]] = set()

    for move in plan.get("moves", []):
        old_rel = normalize_rel(move.get("old_rel", ""))
        new_rel = normalize_rel(move.get("new_rel", ""))

        if not old_rel or not new_rel or old_rel == new_rel:
            continue

        move_key = (old_rel, new_rel)
        if move_key in seen_moves:
            continue
        seen_moves.add(move_key)

        src_path = root / old_rel
        if not src_path.exists() and not src_path.is_symlink():
            warnings.append(f"Skipping - not found: {old_rel}")
            continue

        # The subdirectory itself still sits at the root while its
        # children move, so a child sharing its name collides here too.
        dst_path = root / new_rel
        if dst_path.exists() or dst_path.is_symlink():
            collisions.append(f"'{old_rel}' targets existing path '{new_rel}'")
            continue

        if new_rel in destinations:
            collisions.append(
                f"'{destinations[new_rel]}' and '{old_rel}' both target '{new_rel}'"
            )
            continue
        destinations[new_rel] = old_rel

        valid_moves.append({
            "old_rel": old_rel,
            "new_rel": new_rel,
            "kind": move.get("kind", "file"),
        })

    if warnings:
        print(f"[WARN] Skipped {len(warnings)} entries:")
        for w in warnings[:5]:
            print(f"       - {w}")
        if len(warnings) > 5:
            print(f"       ... and {len(warnings) - 5} more")

    if collisions:
        error_msg = "Plan has destination collisions:\n" + "\n".join(f"  - {c}" for c in collisions)
        raise ValueError(error_msg)

    original_count = len(plan.get("moves", []))
    print(f"[INFO] Plan validated: {len(valid_moves)} valid moves (from {original_count} proposed)")

    return valid_moves
