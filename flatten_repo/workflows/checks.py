"""
Checks for the generated workflow files.

Parses the YAML back and verifies the structure the CI platform relies on.
"""

import shutil
import subprocess
from pathlib import Path

import yaml

from .expressions import substitute
from .templates import WORKFLOWS_DIR, WorkflowParams

FRONTEND_INPUTS = ["system-dir", "sonar-project-key", "sonar-organization", "coverage-threshold"]
FRONTEND_JOBS = ["web-governance", "web-sonarcloud", "web-build"]
SUMMARY_JOB = "pipeline-summary"


def load_workflow(source: str | Path) -> dict:
    """
    Parse a workflow document from a path or YAML text.

    YAML 1.1 reads the bare key "on" as boolean True; it is mapped back
    to the string "on".
    """
    if isinstance(source, Path):
        source = source.read_text(encoding="utf-8")
    doc = yaml.safe_load(source)
    if not isinstance(doc, dict):
        raise ValueError("Workflow document is not a mapping")
    if True in doc and "on" not in doc:
        doc["on"] = doc.pop(True)
    return doc


def _jobs(doc: dict) -> dict:
    jobs = doc.get("jobs")
    return jobs if isinstance(jobs, dict) else {}


def _needs(job: dict) -> list[str]:
    needs = job.get("needs") or []
    return [needs] if isinstance(needs, str) else list(needs)


def check_frontend_workflow(doc: dict) -> list[str]:
    """Return a list of problems with front-end-workflow.yml (empty if valid)."""
    problems = []

    inputs = ((doc.get("on") or {}).get("workflow_call") or {}).get("inputs")
    if not isinstance(inputs, dict):
        problems.append("missing on.workflow_call.inputs")
        inputs = {}
    for name in FRONTEND_INPUTS:
        if name not in inputs:
            problems.append(f"missing input: {name}")

    jobs = _jobs(doc)
    if list(jobs) != FRONTEND_JOBS:
        problems.append(f"jobs are {list(jobs)}, expected {FRONTEND_JOBS}")

    for prev, name in zip(FRONTEND_JOBS, FRONTEND_JOBS[1:]):
        if name in jobs and prev not in _needs(jobs[name]):
            problems.append(f"{name} does not need {prev}")

    build = jobs.get("web-build") or {}
    upload = [s for s in build.get("steps", []) if "upload-artifact" in str(s.get("uses", ""))]
    if not upload:
        problems.append("web-build has no artifact upload step")

    return problems


def check_master_pipeline(doc: dict, params: WorkflowParams | None = None) -> list[str]:
    """Return a list of problems with master-pipeline.yml (empty if valid)."""
    params = params or WorkflowParams()
    problems = []
    expected = [params.job_id, params.deploy_job_id, SUMMARY_JOB]

    jobs = _jobs(doc)
    if list(jobs) != expected:
        problems.append(f"jobs are {list(jobs)}, expected {expected}")

    triggers = doc.get("on") or {}
    if "push" not in triggers or "pull_request" not in triggers:
        problems.append("missing push/pull_request triggers")

    concurrency = doc.get("concurrency") or {}
    if not concurrency.get("cancel-in-progress"):
        problems.append("concurrency does not cancel in-progress runs")

    for name in expected[1:]:
        if name in jobs and params.job_id not in _needs(jobs[name]):
            problems.append(f"{name} does not need {params.job_id}")

    caller = jobs.get(params.job_id) or {}
    expected_uses = f"./.github/workflows/{params.frontend_file}"
    if caller and caller.get("uses") != expected_uses:
        problems.append(f"{params.job_id} uses {caller.get('uses')!r}, expected {expected_uses!r}")

    deploy = jobs.get(params.deploy_job_id) or {}
    if "if" not in deploy:
        problems.append(f"{params.deploy_job_id} has no branch condition")

    summary = jobs.get(SUMMARY_JOB) or {}
    if summary.get("if") != "always()":
        problems.append(f"{SUMMARY_JOB} does not run always()")

    return problems


def verify_workflows(
    root: Path,
    params: WorkflowParams | None = None,
    workflows_dir: str = WORKFLOWS_DIR
) -> dict[str, list[str]]:
    """
    Check both generated files under root.

    Returns:
        Mapping of file name to its problems (unreadable files included).
    """
    params = params or WorkflowParams()
    results = {}
    checks = {
        params.frontend_file: check_frontend_workflow,
        params.master_file: lambda d: check_master_pipeline(d, params),
    }
    for filename, check in checks.items():
        path = root / workflows_dir / filename
        if not path.exists():
            results[filename] = ["file not found"]
            continue
        try:
            results[filename] = check(load_workflow(path))
        except (yaml.YAMLError, ValueError) as e:
            results[filename] = [f"invalid YAML: {e}"]
    return results


def summary_script(doc: dict, context: dict) -> str:
    """The summary job's run script with expressions filled in from context."""
    steps = _jobs(doc).get(SUMMARY_JOB, {}).get("steps", [])
    scripts = [s["run"] for s in steps if "run" in s]
    if not scripts:
        raise ValueError(f"{SUMMARY_JOB} has no run step")
    return substitute("\n".join(scripts), context)


def summary_exit_code(doc: dict, upstream_result: str, github: dict | None = None, bash: str = "bash") -> int:
    """
    Run the summary job's script locally for a given upstream result.

    Uses the runner's default shell invocation (bash -e).

    Returns:
        The script's exit status.
    """
    summary = _jobs(doc).get(SUMMARY_JOB, {})
    context = {
        "github": github or {"ref_name": "main", "sha": "0" * 40, "actor": "local"},
        "needs": {name: {"result": upstream_result} for name in _needs(summary)},
    }
    script = summary_script(doc, context)

    executable = shutil.which(bash)
    if executable is None:
        raise RuntimeError(f"{bash} not found on PATH")
    result = subprocess.run(
        [executable, "--noprofile", "--norc", "-e", "-c", script],
        capture_output=True,
        text=True,
    )
    return result.returncode
