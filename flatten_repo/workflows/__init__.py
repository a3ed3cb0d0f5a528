"""
Workflow generation module for the repository flatten tool.

Provides:
- Templates for the front-end and master pipeline workflows
- Structural checks for the generated YAML
- A small GitHub expression evaluator
"""

from .templates import (
    WorkflowParams,
    render_frontend_workflow,
    render_master_pipeline,
    write_workflows,
    deploy_condition,
    FRONTEND_WORKFLOW_FILE,
    MASTER_PIPELINE_FILE,
    WORKFLOWS_DIR,
)
from .checks import (
    load_workflow,
    check_frontend_workflow,
    check_master_pipeline,
    verify_workflows,
    summary_exit_code,
)
from .expressions import evaluate, evaluate_condition, substitute, branch_context

__all__ = [
    "WorkflowParams",
    "render_frontend_workflow",
    "render_master_pipeline",
    "write_workflows",
    "deploy_condition",
    "FRONTEND_WORKFLOW_FILE",
    "MASTER_PIPELINE_FILE",
    "WORKFLOWS_DIR",
    "load_workflow",
    "check_frontend_workflow",
    "check_master_pipeline",
    "verify_workflows",
    "summary_exit_code",
    "evaluate",
    "evaluate_condition",
    "substitute",
    "branch_context",
]
