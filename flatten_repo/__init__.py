"""
Repository Flatten Tool
=======================

A command-line tool that moves a web app out of its subdirectory into the
repository root, regenerates the CI workflow files to match, and commits
and pushes the result.
"""

__version__ = "1.0.0"

from .scanner import build_move_plan, list_entries
from .executor import flatten_subdir, apply_undo
from .gitops import GitError, publish
from .config import FlattenConfig, load_config
from .utils import save_json, load_json

__all__ = [
    "build_move_plan",
    "list_entries",
    "flatten_subdir",
    "apply_undo",
    "GitError",
    "publish",
    "FlattenConfig",
    "load_config",
    "save_json",
    "load_json",
]
