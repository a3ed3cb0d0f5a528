"""
Workflow document builders.

Renders the two GitHub Actions files the flattened repository needs:
- front-end-workflow.yml: reusable governance -> SonarCloud -> build pipeline
- master-pipeline.yml: orchestrator that calls it, deploys, and summarises

GitHub expressions (${{ ... }}) are emitted literally; only the values in
WorkflowParams are substituted.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

from ..utils import slugify

FRONTEND_WORKFLOW_FILE = "front-end-workflow.yml"
MASTER_PIPELINE_FILE = "master-pipeline.yml"
WORKFLOWS_DIR = ".github/workflows"

# Values written as plain YAML scalars
PLAIN_VALUE = re.compile(r"^[A-Za-z0-9_.](?:[A-Za-z0-9_.:/ -]*[A-Za-z0-9_./-])?$")
JOB_ID = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
BRANCH_PATTERN = re.compile(r"^[A-Za-z0-9_.][A-Za-z0-9_./*-]*$")
WORKFLOW_FILE = re.compile(r"^[A-Za-z0-9_.-]+\.ya?ml$")


@dataclass
class WorkflowParams:
    """Values substituted into the workflow templates."""
    system_dir: str = "CampusOne-Web"  # artifact/display naming only, not a path
    sonar_project_key: str = "Tribe1-Frontend_CampusOne-Web"
    sonar_organization: str = "implementsprint"
    coverage_threshold: int = 80
    node_version: int = 20
    retention_days: int = 14
    test_command: str = "npx vitest run --coverage --reporter=verbose"
    deploy_branches: list[str] = field(default_factory=lambda: ["main", "develop"])
    pr_branches: list[str] = field(default_factory=lambda: ["main", "develop"])
    job_id: str | None = None
    frontend_file: str = FRONTEND_WORKFLOW_FILE
    master_file: str = MASTER_PIPELINE_FILE

    def __post_init__(self):
        if not self.job_id:
            self.job_id = slugify(self.system_dir)
        if not self.job_id:
            raise ValueError(f"Cannot derive a job id from system_dir {self.system_dir!r}")
        if not 0 <= int(self.coverage_threshold) <= 100:
            raise ValueError(f"coverage_threshold must be 0-100, got {self.coverage_threshold}")
        if not self.deploy_branches:
            raise ValueError("deploy_branches must name at least one branch")

        for name in ("system_dir", "sonar_project_key"):
            value = getattr(self, name)
            if not PLAIN_VALUE.match(value) or ": " in value:
                raise ValueError(f"{name} {value!r} may only use letters, digits, spaces and . _ - / :")
        if not JOB_ID.match(self.job_id):
            raise ValueError(f"job_id {self.job_id!r} is not a valid job id")
        # single-quoted in the document
        for name in ("sonar_organization", "test_command"):
            value = getattr(self, name)
            if "'" in value or "\n" in value:
                raise ValueError(f"{name} {value!r} may not contain quotes or newlines")
        for branch in [*self.deploy_branches, *self.pr_branches]:
            if not BRANCH_PATTERN.match(branch):
                raise ValueError(f"Invalid branch name {branch!r}")
        for name in ("frontend_file", "master_file"):
            value = getattr(self, name)
            if not WORKFLOW_FILE.match(value):
                raise ValueError(f"{name} must be a .yml/.yaml file name, got {value!r}")
        if self.frontend_file == self.master_file:
            raise ValueError("frontend_file and master_file must differ")

    @property
    def deploy_job_id(self) -> str:
        return f"deploy-staging-{self.job_id}"

    @property
    def build_artifact(self) -> str:
        return f"{self.system_dir}-web-build"


def _gh(expression: str) -> str:
    """Wrap an expression in GitHub's ${{ }} syntax."""
    return "${{ " + expression + " }}"


def _flow_list(items: list[str]) -> str:
    return "[" + ", ".join(items) + "]"


def deploy_condition(branches: list[str]) -> str:
    """The if: expression that limits staging deploys to the given branches."""
    return " || ".join(f"github.ref == 'refs/heads/{b}'" for b in branches)


def render_frontend_workflow(params: WorkflowParams) -> str:
    """
    Render front-end-workflow.yml.

    Every stage runs in the repository root ('.'); the system-dir input
    only names artifacts.
    """
    return f"""name: Frontend Web CI/CD Pipeline

on:
  workflow_call:
    inputs:
      system-dir:
        required: true
        type: string
        description: 'System Name (Used for Artifacts/Sonar, NOT path)'
      sonar-project-key:
        required: true
        type: string
        description: 'SonarCloud project key'
      sonar-organization:
        required: false
        type: string
        default: '{params.sonar_organization}'
        description: 'SonarCloud organization'
      coverage-threshold:
        required: false
        type: number
        default: {params.coverage_threshold}
        description: 'Minimum code coverage percentage required'
    secrets:
      SONAR_TOKEN:
        required: false

jobs:
  # ── Stage 1: Governance Checks ──────────────────────────────────
  web-governance:
    name: Web — Governance Checks
    uses: ./.github/workflows/governance-check.yml
    with:
      working-directory: '.'   # 👈 NOW RUNS IN ROOT
      test-command: '{params.test_command}'
      coverage-threshold: {_gh('inputs.coverage-threshold')}

  # ── Stage 2: SonarCloud Quality Gate ───────────────────────────
  web-sonarcloud:
    name: Web — SonarCloud Analysis
    needs: web-governance
    runs-on: ubuntu-latest
    steps:
      - name: Checkout Code
        uses: actions/checkout@v4
        with:
          fetch-depth: 0

      - name: Download Coverage Report
        uses: actions/download-artifact@v4
        with:
          name: {_gh('inputs.system-dir')}-coverage
          path: coverage  # 👈 Save directly to root coverage folder

      - name: Run SonarCloud Scan
        uses: SonarSource/sonarqube-scan-action@v5.0.0
        env:
          GITHUB_TOKEN: {_gh('secrets.GITHUB_TOKEN')}
          SONAR_TOKEN: {_gh('secrets.SONAR_TOKEN')}
        with:
          projectBaseDir: .   # 👈 NOW RUNS IN ROOT
          args: >
            -Dsonar.organization={_gh('inputs.sonar-organization')}
            -Dsonar.projectKey={_gh('inputs.sonar-project-key')}
            -Dsonar.sources=src
            -Dsonar.tests=src
            -Dsonar.javascript.lcov.reportPaths=coverage/lcov.info

  # ── Stage 3: Build Web Application ─────────────────────────────
  web-build:
    name: Web — Build
    needs: web-sonarcloud
    runs-on: ubuntu-latest
    defaults:
      run:
        working-directory: .   # 👈 NOW RUNS IN ROOT
    steps:
      - name: Checkout Code
        uses: actions/checkout@v4

      - name: Setup Node.js
        uses: actions/setup-node@v4
        with:
          node-version: {params.node_version}

      - name: Install Dependencies
        run: npm ci

      - name: Fix Vite Entry Point
        run: |
            if [ -f "public/index.html" ] && [ ! -f "index.html" ]; then
                mv public/index.html .
            fi

      - name: Build Application
        run: npm run build

      - name: Upload Build Artifact
        uses: actions/upload-artifact@v4
        with:
          name: {_gh('inputs.system-dir')}-web-build
          path: dist  # 👈 Dist is now in root
          retention-days: {params.retention_days}
"""


def render_master_pipeline(params: WorkflowParams) -> str:
    """Render master-pipeline.yml for a single front-end system."""
    job = params.job_id
    result = _gh(f"needs.{job}.result")
    label = f"{params.system_dir}:".ljust(19)

    return f"""name: Master Pipeline Orchestrator

on:
  push:
    branches: ['**']
  pull_request:
    branches: {_flow_list(params.pr_branches)}

permissions:
  contents: read
  packages: write

concurrency:
  group: master-pipeline-{_gh('github.ref')}
  cancel-in-progress: true

jobs:
  # ── Stage 1: {params.system_dir} Pipeline ─────────────────────────────
  {job}:
    name: {params.system_dir} Pipeline
    uses: ./.github/workflows/{params.frontend_file}
    with:
      system-dir: {params.system_dir}  # Used for Naming only
      sonar-project-key: {params.sonar_project_key}
    secrets: inherit

  # ── Stage 2: Deploy to Staging ──────────────────────────────────
  {params.deploy_job_id}:
    name: Staging — {params.system_dir}
    needs: {job}
    if: {deploy_condition(params.deploy_branches)}
    uses: ./.github/workflows/deploy-staging.yml
    with:
      system-dir: {params.system_dir}
      app-type: web
      artifact-name: {params.build_artifact}
    secrets: inherit

  # ── Stage 3: Pipeline Summary ───────────────────────────────────
  pipeline-summary:
    name: Pipeline Summary
    needs: {job}
    if: always()
    runs-on: ubuntu-latest
    steps:
      - name: Pipeline Results
        run: |
          echo "╔══════════════════════════════════════════════╗"
          echo "║        MASTER PIPELINE SUMMARY               ║"
          echo "╠══════════════════════════════════════════════╣"
          echo "║ Branch:   {_gh('github.ref_name')}"
          echo "║ Commit:   {_gh('github.sha')}"
          echo "║ Actor:    {_gh('github.actor')}"
          echo "╠══════════════════════════════════════════════╣"
          echo "║ {label}{result}"
          echo "╚══════════════════════════════════════════════╝"

          if [[ "{result}" == "failure" ]]; then
            echo "❌ Pipeline failed!"
            exit 1
          fi
          echo "✅ Pipeline completed successfully!"
"""


def write_workflows(
    root: Path,
    params: WorkflowParams,
    workflows_dir: str = WORKFLOWS_DIR,
    dry_run: bool = False
) -> list[Path]:
    """
    Overwrite both workflow files under root/workflows_dir.

    Returns:
        The paths written (or that would be written in dry-run).
    """
    target_dir = root / workflows_dir
    documents = {
        params.frontend_file: render_frontend_workflow(params),
        params.master_file: render_master_pipeline(params),
    }

    written = []
    for filename, text in documents.items():
        path = target_dir / filename
        if dry_run:
            print(f"  [WOULD WRITE] {path} ({len(text.splitlines())} lines)")
        else:
            target_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
            print(f"[INFO] Wrote: {path}")
        written.append(path)
    return written
