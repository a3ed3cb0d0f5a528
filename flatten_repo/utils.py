"""
Utility functions for the repository flatten tool.

Includes:
- JSON save/load helpers
- Path normalisation
- UI helpers
"""

import json
from pathlib import Path
from typing import Any
from rich.console import Console
from rich.table import Table
from rich.tree import Tree
from rich.panel import Panel

# Global console instance
console = Console()

def print_header(title: str, subtitle: str = ""):
    """Print a styled header."""
    console.print(Panel(f"[bold blue]{title}[/bold blue]\n[italic]{subtitle}[/italic]", expand=False))

def print_move_table(plan: dict):
    """Print a summary table of the flatten plan."""
    moves = plan.get("moves", [])

    table = Table(title="Flatten Plan")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="magenta")

    table.add_row("Entries to move", str(len(moves)))
    table.add_row("Hidden entries", str(sum(1 for m in moves if m["new_rel"].startswith("."))))
    table.add_row("Directories", str(sum(1 for m in moves if m.get("kind") == "dir")))

    console.print(table)

    if moves:
        tree = Tree(f"[bold green]{plan.get('subdir', '')}/ -> ./[/bold green]")
        for move in moves[:10]:
            tree.add(f"[yellow]{move['old_rel']}[/yellow] -> [blue]{move['new_rel']}[/blue]")
        if len(moves) > 10:
            tree.add(f"[italic]... and {len(moves)-10} more[/italic]")
        console.print(tree)

def print_error(msg: str):
    console.print(f"[bold red]ERROR:[/bold red] {msg}")

def print_warning(msg: str):
    console.print(f"[bold yellow]WARNING:[/bold yellow] {msg}")

def print_success(msg: str):
    console.print(f"[bold green]SUCCESS:[/bold green] {msg}")


def normalize_rel(rel_path: str) -> str:
    """Normalise a relative path to forward slashes without leading/trailing slashes."""
    return rel_path.replace("\\", "/").strip("/")


def slugify(name: str) -> str:
    """
    Turn a display name into a workflow job id.

    Example: "CampusOne-Web" -> "campusone-web"
    """
    chars = []
    for ch in name.strip().lower():
        if ch.isalnum() or ch in "-_":
            chars.append(ch)
        else:
            chars.append("-")
    slug = "".join(chars).strip("-")
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug


def save_json(data: Any, path: Path) -> None:
    """
    Save data to a JSON file with pretty formatting.

    Args:
        data: The data to serialize.
        path: The output file path.
    """
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    print(f"[INFO] Saved: {path}")


def load_json(path: Path) -> Any:
    """
    Load data from a JSON file.

    Args:
        path: The input file path.

    Returns:
        The deserialized data.
    """
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)
