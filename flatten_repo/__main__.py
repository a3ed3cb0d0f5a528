#!/usr/bin/env python3
"""
Repository Flatten Tool - CLI Entry Point
=========================================

Usage:
    python -m flatten_repo run . --dry-run
    python -m flatten_repo flatten . --subdir CampusOne-Web
    python -m flatten_repo workflows .
    python -m flatten_repo verify .
    python -m flatten_repo publish . --no-push
    python -m flatten_repo undo undo_flatten_20250101_120000.json
"""

import argparse
import sys
from pathlib import Path

from .config import FlattenConfig, load_config
from .executor import flatten_subdir, apply_undo, default_undo_path
from .gitops import GitError, publish
from .scanner import build_move_plan
from .utils import save_json, load_json, console, print_header, print_error, print_warning, print_success, print_move_table
from .workflows import write_workflows, verify_workflows


def build_config(args) -> FlattenConfig:
    """Load file/env config, then apply any flags given on the command line."""
    cfg = load_config(args.root, getattr(args, "config", None))
    overrides = {
        "subdir": getattr(args, "subdir", None),
        "system_dir": getattr(args, "system_dir", None),
        "sonar_project_key": getattr(args, "sonar_project_key", None),
        "sonar_organization": getattr(args, "sonar_organization", None),
        "coverage_threshold": getattr(args, "coverage_threshold", None),
        "remote": getattr(args, "remote", None),
        "branch": getattr(args, "branch", None),
        "commit_message": getattr(args, "message", None),
    }
    if getattr(args, "no_push", False):
        overrides["push"] = False
    return cfg.update(overrides)


def report_problems(results: dict[str, list[str]]) -> int:
    """Print verify results; return the number of problems."""
    total = 0
    for filename, problems in results.items():
        if problems:
            console.print(f"[red]✗ {filename}[/red]")
            for p in problems:
                console.print(f"    - {p}")
            total += len(problems)
        else:
            console.print(f"[green]✓ {filename}[/green]")
    return total


# =============================================================================
# Commands
# =============================================================================

def cmd_plan(args) -> int:
    """Plan command - show what flatten would move."""
    cfg = build_config(args)
    plan = build_move_plan(args.root, cfg.subdir)
    if not plan["subdir_found"]:
        console.print("[INFO] Files already moved (or folder not found).")
        return 0
    print_move_table(plan)
    if args.output:
        save_json(plan, args.output)
    return 0


def cmd_flatten(args) -> int:
    """Flatten command - move subdir contents to the root."""
    cfg = build_config(args)
    undo_out = None if args.dry_run else (args.undo_out or default_undo_path(args.root))
    report = flatten_subdir(args.root, cfg.subdir, args.dry_run, not args.no_git, undo_out)
    if args.report_out:
        save_json(report, args.report_out)
    if report["status"] == "partial":
        print_warning(f"{report['failed_count']} entries failed to move; see report")
        return 1
    return 0


def cmd_workflows(args) -> int:
    """Workflows command - rewrite both workflow files."""
    cfg = build_config(args)
    params = cfg.workflow_params()
    write_workflows(args.root, params, cfg.workflows_dir, args.dry_run)
    if not args.dry_run and report_problems(verify_workflows(args.root, params, cfg.workflows_dir)):
        print_error("Generated workflows failed verification")
        return 1
    return 0


def cmd_verify(args) -> int:
    """Verify command - check the generated workflow files."""
    cfg = build_config(args)
    results = verify_workflows(args.root, cfg.workflow_params(), cfg.workflows_dir)
    problems = report_problems(results)
    if problems:
        print_error(f"{problems} problem(s) found in generated workflows")
        return 1
    print_success("Workflows are valid")
    return 0


def cmd_publish(args) -> int:
    """Publish command - stage, commit and push."""
    cfg = build_config(args)
    report = publish(args.root, cfg.message, cfg.remote, cfg.branch, cfg.push, args.dry_run)
    if not report["committed"] and not args.dry_run:
        print_warning("Nothing was committed")
    return 0


def cmd_undo(args) -> int:
    """Undo command - move flattened entries back into the subdirectory."""
    if not args.plan.exists():
        print_error(f"Undo plan not found: {args.plan}")
        return 1
    undo_plan = load_json(args.plan)
    root = args.root or Path(undo_plan.get("root", "."))
    report = apply_undo(root, undo_plan, not args.no_git)
    return 1 if report["failed_count"] else 0


def cmd_run(args) -> int:
    """Run command - flatten, rewrite workflows, verify, commit and push."""
    cfg = build_config(args)
    root = args.root.resolve()

    print_header("📦 FLATTENING REPO & UPDATING PIPELINES...", f"{cfg.subdir}/ -> {root}")

    # Step 1: Flatten
    console.print("\n[bold cyan][STEP 1] Moving files to root...[/bold cyan]")
    undo_out = None if args.dry_run else (args.undo_out or default_undo_path(args.root))
    flatten_report = flatten_subdir(root, cfg.subdir, args.dry_run, not args.no_git, undo_out)
    if args.report_out:
        save_json(flatten_report, args.report_out)

    if flatten_report["status"] == "partial" and not args.force:
        print_error(
            f"Flatten incomplete ({flatten_report['failed_count']} failed, "
            f"subdir removed: {flatten_report['subdir_removed']}). "
            "Not committing; rerun with --force to publish anyway."
        )
        return 1

    # Step 2 & 3: Workflows
    console.print("\n[bold cyan][STEP 2] Updating workflows to run in root...[/bold cyan]")
    params = cfg.workflow_params()
    write_workflows(root, params, cfg.workflows_dir, args.dry_run)

    if not args.dry_run:
        console.print("\n[bold cyan][STEP 3] Verifying workflows...[/bold cyan]")
        if report_problems(verify_workflows(root, params, cfg.workflows_dir)):
            print_error("Generated workflows failed verification; not committing")
            return 1

    # Step 4: Commit and push
    if args.no_commit:
        print_warning("Skipping commit (--no-commit)")
    else:
        console.print("\n[bold cyan][STEP 4] Committing changes...[/bold cyan]")
        publish(root, cfg.message, cfg.remote, cfg.branch, cfg.push, args.dry_run)

    if args.dry_run:
        print_warning("This was a DRY-RUN. Nothing was moved, written or committed.")
    else:
        print_success("DONE! Files moved and pipelines updated.")
    return 0


# =============================================================================
# Main
# =============================================================================

def add_common(parser: argparse.ArgumentParser, root_required: bool = False) -> None:
    if root_required:
        parser.add_argument("root", type=Path, help="Repository root")
    else:
        parser.add_argument("root", type=Path, nargs="?", default=Path("."),
                            help="Repository root (default: current directory)")
    parser.add_argument("--config", type=Path, help="YAML config file (default: flatten.yaml in root)")
    parser.add_argument("--subdir", type=str, help="Subdirectory to flatten (default: CampusOne-Web)")


def add_workflow_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--system-dir", type=str, help="System name for artifacts (default: subdir)")
    parser.add_argument("--sonar-project-key", type=str, help="SonarCloud project key")
    parser.add_argument("--sonar-organization", type=str, help="SonarCloud organization")
    parser.add_argument("--coverage-threshold", type=int, help="Minimum coverage percentage")


def add_git_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--message", "-m", type=str, help="Commit message")
    parser.add_argument("--remote", type=str, help="Remote to push to (default: origin)")
    parser.add_argument("--branch", type=str, help="Branch to push to (default: main)")
    parser.add_argument("--no-push", action="store_true", help="Commit but do not push")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Repository Flatten Tool - move a subdirectory to the root and regenerate CI workflows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- PLAN command ---
    plan_parser = subparsers.add_parser("plan", help="Show what would be moved")
    add_common(plan_parser)
    plan_parser.add_argument("-o", "--output", type=Path, help="Save the plan as JSON")
    plan_parser.set_defaults(func=cmd_plan)

    # --- FLATTEN command ---
    flatten_parser = subparsers.add_parser("flatten", help="Move subdir contents to the root")
    add_common(flatten_parser)
    flatten_parser.add_argument("--dry-run", action="store_true", help="Simulate without moving")
    flatten_parser.add_argument("--no-git", action="store_true", help="Move with the filesystem only")
    flatten_parser.add_argument("--undo-out", type=Path, help="Undo plan output file")
    flatten_parser.add_argument("--report-out", type=Path, help="Report output file")
    flatten_parser.set_defaults(func=cmd_flatten)

    # --- WORKFLOWS command ---
    wf_parser = subparsers.add_parser("workflows", help="Rewrite the workflow files")
    add_common(wf_parser)
    add_workflow_args(wf_parser)
    wf_parser.add_argument("--dry-run", action="store_true", help="Show files without writing")
    wf_parser.set_defaults(func=cmd_workflows)

    # --- VERIFY command ---
    verify_parser = subparsers.add_parser("verify", help="Check the generated workflow files")
    add_common(verify_parser)
    add_workflow_args(verify_parser)
    verify_parser.set_defaults(func=cmd_verify)

    # --- PUBLISH command ---
    publish_parser = subparsers.add_parser("publish", help="Stage, commit and push")
    add_common(publish_parser)
    add_git_args(publish_parser)
    publish_parser.add_argument("--dry-run", action="store_true", help="Show git commands only")
    publish_parser.set_defaults(func=cmd_publish)

    # --- UNDO command ---
    undo_parser = subparsers.add_parser("undo", help="Move flattened entries back")
    undo_parser.add_argument("plan", type=Path, help="Undo plan written by flatten")
    undo_parser.add_argument("--root", type=Path, help="Repository root (overrides plan)")
    undo_parser.add_argument("--no-git", action="store_true", help="Move with the filesystem only")
    undo_parser.set_defaults(func=cmd_undo)

    # --- RUN command (full pipeline) ---
    run_parser = subparsers.add_parser("run", help="Full pipeline: flatten → workflows → verify → publish")
    add_common(run_parser)
    add_workflow_args(run_parser)
    add_git_args(run_parser)
    run_parser.add_argument("--dry-run", action="store_true", help="Simulate every step")
    run_parser.add_argument("--no-git", action="store_true", help="Move with the filesystem only")
    run_parser.add_argument("--no-commit", action="store_true", help="Stop before committing")
    run_parser.add_argument("--force", action="store_true", help="Publish even if the flatten was partial")
    run_parser.add_argument("--undo-out", type=Path, help="Undo plan output file")
    run_parser.add_argument("--report-out", type=Path, help="Flatten report output file")
    run_parser.set_defaults(func=cmd_run)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\n[ABORT] Operation cancelled by user")
        return 130
    except (GitError, RuntimeError, ValueError, OSError) as e:
        print_error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
