"""
Tree-style console output for the monitor CLI.

    📊 sales
    ├─ size: 12/50
    ├─ expired: 1
    └─ persistent: True
"""

from typing import Any, Iterable, List, Tuple


def tree_lines(title: str, items: Iterable[Tuple[str, Any]], emoji: str = "") -> List[str]:
    """Render a section header followed by its items as tree branches."""
    items = list(items)
    header = f"{emoji} {title}" if emoji else title
    lines = [header]
    for i, (key, value) in enumerate(items):
        prefix = "└─" if i == len(items) - 1 else "├─"
        lines.append(f"{prefix} {key}: {value}")
    return lines


def print_tree_section(title: str, items: Iterable[Tuple[str, Any]], emoji: str = "") -> None:
    print("")
    for line in tree_lines(title, items, emoji):
        print(line)
