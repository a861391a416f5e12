"""
History-indexed search tree for POMCP.

Observation nodes are stored in an arena and addressed by integer ids; action
nodes hang off their observation node and map observations to child ids.
Re-rooting detaches the kept subtree and compacts the arena in one batch.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np


@dataclass
class ActionNode:
    """Statistics for one action at one history: N(h,a), V(h,a), children by observation."""
    N: int = 0
    V: float = 0.0
    children: Dict[int, int] = field(default_factory=dict)


@dataclass
class ObservationNode:
    """
    Search-tree node for a history ending in an observation (or the root).

    ``particles`` collects the states simulations reached this history with;
    they seed the belief when the node becomes the root.
    """
    parent: Optional[int] = None
    N: int = 0
    particles: List[int] = field(default_factory=list)
    actions: List[ActionNode] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def ensure_actions(self, n_actions: int) -> None:
        while len(self.actions) < n_actions:
            self.actions.append(ActionNode())


class SearchTree:
    """Arena of observation nodes rooted at the current real history."""

    def __init__(self, root_particles: Optional[List[int]] = None):
        self.nodes: List[ObservationNode] = [ObservationNode(particles=list(root_particles or []))]
        self.root = 0
        self._arena_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, node_id: int) -> ObservationNode:
        return self.nodes[node_id]

    def add_node(self, parent: Optional[int], particles: Optional[List[int]] = None) -> int:
        """Append a node to the arena and return its id."""
        with self._arena_lock:
            self.nodes.append(ObservationNode(parent=parent, particles=list(particles or [])))
            return len(self.nodes) - 1

    def child(self, node_id: int, action: int, observation: int, state: Optional[int] = None) -> Tuple[int, bool]:
        """
        Get or lazily create the child reached by (action, observation).

        Creation happens under the parent's lock, so concurrent callers racing
        on the same branch all receive the single node that was created.
        ``state`` is recorded as a particle of the child.

        Returns:
            (child id, whether it was created by this call)
        """
        parent = self.nodes[node_id]
        with parent.lock:
            parent.ensure_actions(action + 1)
            branch = parent.actions[action]
            created = observation not in branch.children
            if created:
                branch.children[observation] = self.add_node(node_id)
            child_id = branch.children[observation]
        if state is not None:
            child = self.nodes[child_id]
            with child.lock:
                child.particles.append(state)
        return child_id, created

    def visit(self, node_id: int, n_actions: int) -> None:
        node = self.nodes[node_id]
        with node.lock:
            node.N += 1
            node.ensure_actions(n_actions)

    def select_action(self, node_id: int, n_actions: int, exploration: float) -> int:
        """
        UCB1 action choice at an observation node.

        Untried actions win outright; otherwise maximise
        ``V + c * sqrt(log N(h) / N(h,a))``. Ties go to the lowest index.
        """
        node = self.nodes[node_id]
        with node.lock:
            node.ensure_actions(n_actions)
            log_n = math.log(max(node.N, 1))
            best_a, best_score = 0, -math.inf
            for a in range(n_actions):
                stats = node.actions[a]
                if stats.N == 0:
                    return a
                score = stats.V + exploration * math.sqrt(log_n / stats.N)
                if score > best_score:
                    best_a, best_score = a, score
        return best_a

    def backpropagate(self, node_id: int, action: int, value: float) -> None:
        """Incremental running mean: V += (value - V) / (N + 1); N += 1."""
        node = self.nodes[node_id]
        with node.lock:
            stats = node.actions[action]
            stats.V += (value - stats.V) / (stats.N + 1)
            stats.N += 1

    def root_visits(self) -> np.ndarray:
        return np.array([a.N for a in self.nodes[self.root].actions], dtype=np.int64)

    def root_values(self) -> np.ndarray:
        return np.array([a.V for a in self.nodes[self.root].actions], dtype=np.float64)

    def best_action(self) -> int:
        """Most visited root action (lowest index on ties)."""
        visits = self.root_visits()
        if visits.size == 0:
            raise ValueError("Root has no action statistics; run a search first")
        return int(np.argmax(visits))

    def reroot(self, action: int, observation: int) -> int:
        """
        Make the (action, observation) child of the root the new root.

        A fresh node is used when the branch was never visited. Every other
        subtree is dropped and the arena is rebuilt with the kept subtree
        renumbered from 0.

        Returns:
            Number of nodes reclaimed
        """
        root = self.nodes[self.root]
        new_root = None
        if action < len(root.actions):
            new_root = root.actions[action].children.get(observation)

        before = len(self.nodes)
        if new_root is None:
            self.nodes = [ObservationNode()]
        else:
            self.nodes = self._compact(new_root)
        self.root = 0
        return before - len(self.nodes)

    def _compact(self, keep: int) -> List[ObservationNode]:
        remap = {keep: 0}
        order = [keep]
        # Breadth-first over the kept subtree assigns the new ids
        for old_id in order:
            for stats in self.nodes[old_id].actions:
                for child_id in stats.children.values():
                    remap[child_id] = len(order)
                    order.append(child_id)

        arena = []
        for old_id in order:
            node = self.nodes[old_id]
            node.parent = None if old_id == keep else remap[node.parent]
            for stats in node.actions:
                stats.children = {o: remap[c] for o, c in stats.children.items()}
            arena.append(node)
        return arena

    def iter_nodes(self) -> Iterator[Tuple[int, ObservationNode]]:
        """Nodes reachable from the root, depth first."""
        stack = [self.root]
        while stack:
            node_id = stack.pop()
            node = self.nodes[node_id]
            yield node_id, node
            for stats in reversed(node.actions):
                stack.extend(sorted(stats.children.values(), reverse=True))
