"""
Git helpers for the repository flatten tool.

Thin wrappers around the git CLI. Every call goes through run_git(), which
raises GitError when git exits non-zero.
"""

import subprocess
from pathlib import Path


class GitError(RuntimeError):
    """A git command exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        msg = f"git {' '.join(args)} failed with exit code {returncode}"
        if self.stderr:
            msg += f": {self.stderr}"
        super().__init__(msg)


def run_git(args: list[str], cwd: Path, check: bool = True) -> subprocess.CompletedProcess:
    """
    Run a git command in cwd.

    Args:
        args: Arguments after "git".
        cwd: Working directory.
        check: Raise GitError on a non-zero exit.

    Returns:
        The completed process (stdout/stderr as text).
    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        raise GitError(args, 127, f"git executable not found ({e})") from e

    if check and result.returncode != 0:
        raise GitError(args, result.returncode, result.stderr)
    return result


def is_work_tree(root: Path) -> bool:
    """True if root is inside a git work tree."""
    try:
        result = run_git(["rev-parse", "--is-inside-work-tree"], root, check=False)
    except GitError:
        return False
    return result.returncode == 0 and result.stdout.strip() == "true"


def git_dir(root: Path) -> Path | None:
    """Absolute path of the repository's .git directory, or None outside a work tree."""
    try:
        result = run_git(["rev-parse", "--absolute-git-dir"], root, check=False)
    except GitError:
        return None
    if result.returncode != 0 or not result.stdout.strip():
        return None
    return Path(result.stdout.strip())


def is_tracked(root: Path, rel_path: str) -> bool:
    """True if git tracks rel_path (a file, or any file below a directory)."""
    result = run_git(["ls-files", "--", rel_path], root, check=False)
    return result.returncode == 0 and bool(result.stdout.strip())


def git_mv(root: Path, src_rel: str, dst_rel: str) -> None:
    run_git(["mv", "--", src_rel, dst_rel], root)


def stage_all(root: Path) -> None:
    run_git(["add", "."], root)


def has_staged_changes(root: Path) -> bool:
    # --quiet exits 1 when there are differences
    result = run_git(["diff", "--cached", "--quiet"], root, check=False)
    return result.returncode == 1


def commit(root: Path, message: str) -> str:
    """Commit the index and return the new commit sha."""
    run_git(["commit", "-m", message], root)
    return run_git(["rev-parse", "HEAD"], root).stdout.strip()


def push(root: Path, remote: str = "origin", branch: str = "main") -> None:
    run_git(["push", remote, branch], root)


def current_branch(root: Path) -> str | None:
    result = run_git(["rev-parse", "--abbrev-ref", "HEAD"], root, check=False)
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def publish(
    root: Path,
    message: str,
    remote: str = "origin",
    branch: str = "main",
    push_changes: bool = True,
    dry_run: bool = False
) -> dict:
    """
    Stage everything, commit, and push.

    Args:
        root: Repository root.
        message: Commit message.
        remote: Remote name to push to.
        branch: Remote branch to push to.
        push_changes: If False, stop after committing.
        dry_run: If True, only report what would happen.

    Returns:
        A report dict with committed/pushed flags and the commit sha.

    Raises:
        GitError: If root is not a work tree, or commit/push fails.
    """
    root = root.resolve()
    report = {
        "root": str(root),
        "message": message,
        "remote": remote,
        "branch": branch,
        "dry_run": dry_run,
        "committed": False,
        "pushed": False,
        "commit": None,
        "local_branch": None,
    }

    if not is_work_tree(root):
        raise GitError(["rev-parse", "--is-inside-work-tree"], 128, f"not a git repository: {root}")

    if dry_run:
        print(f"[DRY-RUN] Would run: git add . && git commit -m \"{message}\"")
        if push_changes:
            print(f"[DRY-RUN] Would run: git push {remote} {branch}")
        return report

    stage_all(root)

    if not has_staged_changes(root):
        print("[GIT] No changes to commit")
    else:
        report["commit"] = commit(root, message)
        report["committed"] = True
        print(f"[GIT] Committed {report['commit'][:10]}: {message}")

    report["local_branch"] = current_branch(root)
    if push_changes:
        if report["local_branch"] and report["local_branch"] != branch:
            print(f"[WARN] Committed on '{report['local_branch']}' but pushing '{branch}'; "
                  "the new commit is not part of the push")
        push(root, remote, branch)
        report["pushed"] = True
        print(f"[GIT] Pushed to {remote}/{branch}")

    return report
