import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch
from flatten_repo import gitops
from flatten_repo.executor import flatten_subdir
from flatten_repo.gitops import GitError, publish


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=True)
    return result.stdout


def init_repo(root: Path) -> None:
    git(root, "init", "-q")
    git(root, "symbolic-ref", "HEAD", "refs/heads/main")
    git(root, "config", "user.email", "dev@example.com")
    git(root, "config", "user.name", "Dev")
    git(root, "config", "commit.gpgsign", "false")


@unittest.skipUnless(shutil.which("git"), "git not available")
class TestGitFlatten(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        base = Path(self._tmp.name).resolve()
        self.root = base / "repo"
        self.remote = base / "remote.git"
        self.root.mkdir()
        init_repo(self.root)
        git(base, "init", "-q", "--bare", str(self.remote))
        git(self.root, "remote", "add", "origin", str(self.remote))

        sub = self.root / "CampusOne-Web"
        (sub / "src").mkdir(parents=True)
        (sub / "src" / "main.jsx").write_text("render()")
        (sub / "package.json").write_text("{}")
        (sub / ".gitignore").write_text("node_modules\n")
        git(self.root, "add", ".")
        git(self.root, "commit", "-q", "-m", "initial")

        # Untracked file, still has to move
        (sub / ".env.local").write_text("SECRET=1")

    def tearDown(self):
        self._tmp.cleanup()

    def test_tracked_entries_use_git_mv(self):
        report = flatten_subdir(self.root, "CampusOne-Web")

        self.assertEqual(report["status"], "flattened")
        methods = {m["new_rel"]: m["method"] for m in report["moved"]}
        self.assertEqual(methods["package.json"], "git")
        self.assertEqual(methods["src"], "git")
        self.assertEqual(methods[".gitignore"], "git")
        self.assertEqual(methods[".env.local"], "fs")

        tracked = git(self.root, "ls-files").split()
        self.assertIn("src/main.jsx", tracked)
        self.assertIn(".gitignore", tracked)
        self.assertFalse(any(p.startswith("CampusOne-Web/") for p in tracked))
        self.assertTrue((self.root / ".env.local").exists())
        self.assertFalse((self.root / "CampusOne-Web").exists())

        status = git(self.root, "status", "--porcelain")
        self.assertIn("R  CampusOne-Web/package.json -> package.json", status)

    def test_publish_commits_and_pushes(self):
        flatten_subdir(self.root, "CampusOne-Web")
        report = publish(self.root, "refactor: flatten file structure (moved CampusOne-Web to root)")

        self.assertTrue(report["committed"])
        self.assertTrue(report["pushed"])
        remote_log = git(self.remote, "log", "--format=%s", "main")
        self.assertEqual(remote_log.splitlines()[0],
                         "refactor: flatten file structure (moved CampusOne-Web to root)")
        self.assertEqual(git(self.remote, "rev-parse", "main").strip(), report["commit"])

    def test_publish_with_nothing_to_commit(self):
        (self.root / "CampusOne-Web" / ".env.local").unlink()
        report = publish(self.root, "noop", push_changes=False)
        self.assertFalse(report["committed"])
        self.assertFalse(report["pushed"])

    def test_push_failure_raises(self):
        flatten_subdir(self.root, "CampusOne-Web")
        with self.assertRaises(GitError) as ctx:
            publish(self.root, "msg", remote="nowhere")
        self.assertNotEqual(ctx.exception.returncode, 0)
        self.assertIn("push", str(ctx.exception))

    def test_publish_dry_run_changes_nothing(self):
        before = git(self.root, "rev-parse", "HEAD")
        report = publish(self.root, "msg", dry_run=True)
        self.assertFalse(report["committed"])
        self.assertEqual(git(self.root, "rev-parse", "HEAD"), before)

    def test_failed_git_mv_is_recorded(self):
        with patch("flatten_repo.executor.gitops.git_mv",
                   side_effect=GitError(["mv"], 128, "fatal: bad source")):
            report = flatten_subdir(self.root, "CampusOne-Web")

        self.assertEqual(report["status"], "partial")
        self.assertEqual(report["failed_count"], 3)
        self.assertTrue(all("bad source" in f["error"] for f in report["failed"]))
        self.assertTrue((self.root / "CampusOne-Web").exists())

    def test_current_branch(self):
        self.assertEqual(gitops.current_branch(self.root), "main")

    def test_push_from_other_branch_warns(self):
        git(self.root, "checkout", "-q", "-b", "feature")
        flatten_subdir(self.root, "CampusOne-Web")
        with patch("builtins.print") as mock_print:
            report = publish(self.root, "msg")

        self.assertEqual(report["local_branch"], "feature")
        self.assertTrue(report["pushed"])
        self.assertNotEqual(git(self.remote, "rev-parse", "main").strip(), report["commit"])
        printed = [str(c.args[0]) for c in mock_print.call_args_list if c.args]
        self.assertTrue(any(line.startswith("[WARN] Committed on 'feature'") for line in printed))

    def test_git_dir(self):
        self.assertEqual(gitops.git_dir(self.root), self.root / ".git")


@unittest.skipUnless(shutil.which("git"), "git not available")
class TestNotARepo(unittest.TestCase):
    def test_publish_outside_repo_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch("flatten_repo.gitops.is_work_tree", return_value=False):
                with self.assertRaises(GitError):
                    publish(Path(tmpdir), "msg")

    def test_missing_git_binary(self):
        with patch("flatten_repo.gitops.subprocess.run", side_effect=FileNotFoundError("git")):
            with self.assertRaises(GitError) as ctx:
                gitops.run_git(["status"], Path("."))
            self.assertFalse(gitops.is_work_tree(Path(".")))
        self.assertEqual(ctx.exception.returncode, 127)

if __name__ == "__main__":
    unittest.main()
