"""
Visualization utilities for search trees (DOT graph export).
"""

from pathlib import Path
from typing import Optional, Sequence

from pomcp.pomdp.tree import SearchTree
from pomcp.utils.logging_utils import get_logger

logger = get_logger(__name__)


def _label(labels: Optional[Sequence[str]], idx: int) -> str:
    if labels is not None and idx < len(labels):
        return str(labels[idx]).replace('"', '\\"')
    return str(idx)


def export_dot_tree(
    tree: SearchTree,
    out_path: str,
    max_depth: int = 3,
    min_visits: int = 1,
    action_labels: Optional[Sequence[str]] = None,
    observation_labels: Optional[Sequence[str]] = None,
) -> Path:
    """
    Export the top of a search tree as a DOT graph.

    Observation nodes are circles labelled with their visit count; action
    nodes are boxes labelled with N and V.

    Args:
        tree: Search tree to export
        out_path: Output .dot file
        max_depth: Number of action levels to draw
        min_visits: Minimum action visit count to include an action node
        action_labels: Optional action names
        observation_labels: Optional observation names

    Returns:
        Path of the written file
    """
    path = Path(out_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    lines = ["digraph search_tree {", "  rankdir=TB;", ""]
    frontier = [(tree.root, 0)]
    n_edges = 0

    while frontier:
        node_id, depth = frontier.pop()
        node = tree.node(node_id)
        lines.append(f'  "h{node_id}" [shape=circle, label="N={node.N}"];')
        if depth >= max_depth:
            continue
        for a, stats in enumerate(node.actions):
            if stats.N < min_visits:
                continue
            a_name = f"h{node_id}a{a}"
            lines.append(
                f'  "{a_name}" [shape=box, label="{_label(action_labels, a)}\\nN={stats.N} V={stats.V:.2f}"];'
            )
            lines.append(f'  "h{node_id}" -> "{a_name}";')
            for o, child_id in sorted(stats.children.items()):
                lines.append(f'  "{a_name}" -> "h{child_id}" [label="{_label(observation_labels, o)}"];')
                frontier.append((child_id, depth + 1))
                n_edges += 1

    lines.append("}")
    path.write_text("\n".join(lines) + "\n")
    logger.debug(f"Exported search tree to {path} ({n_edges} observation edges)")
    return path
