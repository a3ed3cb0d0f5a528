"""
Configuration for the repository flatten tool: defaults + optional YAML + env.

Lookup order (later wins):
  1. dataclass defaults
  2. first existing file of $FLATTEN_CONFIG, flatten.yaml, flatten.yml
  3. FLATTEN_<FIELD> environment variables
  4. command-line flags (applied by the CLI)
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .workflows.templates import (
    FRONTEND_WORKFLOW_FILE,
    MASTER_PIPELINE_FILE,
    WORKFLOWS_DIR,
    WorkflowParams,
)

ENV_PREFIX = "FLATTEN_"


def config_paths(root: Path | None = None) -> list[Path]:
    base = root or Path(".")
    paths = []
    if os.environ.get("FLATTEN_CONFIG"):
        paths.append(Path(os.environ["FLATTEN_CONFIG"]))
    paths += [base / "flatten.yaml", base / "flatten.yml"]
    return paths


def _load_yaml(path: Path) -> dict:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


@dataclass
class FlattenConfig:
    # repository layout
    subdir: str = "CampusOne-Web"
    workflows_dir: str = WORKFLOWS_DIR
    frontend_workflow: str = FRONTEND_WORKFLOW_FILE
    master_workflow: str = MASTER_PIPELINE_FILE
    # git
    remote: str = "origin"
    branch: str = "main"
    commit_message: str | None = None  # derived from subdir when unset
    push: bool = True
    # workflow values
    system_dir: str | None = None  # defaults to subdir
    sonar_project_key: str = "Tribe1-Frontend_CampusOne-Web"
    sonar_organization: str = "implementsprint"
    coverage_threshold: int = 80
    node_version: int = 20
    retention_days: int = 14
    test_command: str = "npx vitest run --coverage --reporter=verbose"
    deploy_branches: list[str] = field(default_factory=lambda: ["main", "develop"])
    pr_branches: list[str] = field(default_factory=lambda: ["main", "develop"])
    # raw loaded yaml (if any)
    source: str | None = None

    @property
    def message(self) -> str:
        return self.commit_message or f"refactor: flatten file structure (moved {self.subdir} to root)"

    def workflow_params(self) -> WorkflowParams:
        return WorkflowParams(
            system_dir=self.system_dir or self.subdir,
            sonar_project_key=self.sonar_project_key,
            sonar_organization=self.sonar_organization,
            coverage_threshold=self.coverage_threshold,
            node_version=self.node_version,
            retention_days=self.retention_days,
            test_command=self.test_command,
            deploy_branches=list(self.deploy_branches),
            pr_branches=list(self.pr_branches),
            frontend_file=self.frontend_workflow,
            master_file=self.master_workflow,
        )

    def update(self, values: dict[str, Any]) -> "FlattenConfig":
        """Apply known keys from values (dashes allowed), coercing types. Unknown keys are ignored."""
        known = {f.name: f for f in fields(self) if f.name != "source"}
        for key, value in values.items():
            name = str(key).replace("-", "_")
            if name not in known or value is None:
                continue
            setattr(self, name, _coerce(value, getattr(self, name), name))
        return self


def _coerce(value: Any, current: Any, name: str) -> Any:
    """Convert strings from env/YAML to the type of the current value."""
    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{name} must be an integer, got {value!r}")
    if isinstance(current, list):
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return [str(v) for v in value]
    return str(value)


def _env_values() -> dict[str, str]:
    values = {}
    for f in fields(FlattenConfig):
        env_name = ENV_PREFIX + f.name.upper()
        if env_name in os.environ:
            values[f.name] = os.environ[env_name]
    return values


def load_config(root: Path | None = None, path: Path | None = None) -> FlattenConfig:
    """
    Build the effective configuration.

    Args:
        root: Repository root used to find flatten.yaml/flatten.yml.
        path: Explicit config file; must exist when given.

    Raises:
        FileNotFoundError: If path is given but missing.
        ValueError: If the file is not a YAML mapping or a value has the wrong type.
    """
    cfg = FlattenConfig()

    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        candidates = [path]
    else:
        candidates = config_paths(root)

    for p in candidates:
        if p.exists():
            cfg.update(_load_yaml(p))
            cfg.source = str(p)
            break

    cfg.update(_env_values())
    return cfg
