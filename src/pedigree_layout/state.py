"""
Layout state: the arena of currently displayed nodes.

Nodes reference each other by id only (``father_id``, ``mother_id``,
``child_id``). Every traversal is an explicit work list with a visited set
so malformed links surface as :class:`MalformedGraph` instead of looping.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, Optional

from pedigree_layout.errors import MalformedGraph, UnknownNode
from pedigree_layout.models import DisplayNode, Side


@dataclass
class ShiftRecord:
    """One outward shift applied to existing nodes during an expansion."""
    owner_id: str           # node whose expansion caused the shift
    node_ids: list[str]
    delta: float


@dataclass
class LayoutState:
    """Displayed nodes keyed by person id, plus the shift journal."""
    root_id: str
    nodes: dict[str, DisplayNode] = field(default_factory=dict)
    shift_journal: list[ShiftRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.root_id not in self.nodes:
            self.nodes[self.root_id] = DisplayNode(
                id=self.root_id, generation=0, side=Side.ROOT, ahnentafel=1, x=0,
            )

    # ----- arena access -----

    def get(self, node_id: str) -> Optional[DisplayNode]:
        return self.nodes.get(node_id)

    def require(self, node_id: str) -> DisplayNode:
        node = self.nodes.get(node_id)
        if node is None:
            raise UnknownNode(node_id)
        return node

    @property
    def root(self) -> DisplayNode:
        return self.nodes[self.root_id]

    def add(self, node: DisplayNode) -> None:
        if node.id in self.nodes:
            raise MalformedGraph(f"Person '{node.id}' is already displayed.")
        self.nodes[node.id] = node

    def remove(self, node_id: str) -> DisplayNode:
        if node_id == self.root_id:
            raise MalformedGraph("The root node can never be removed.")
        return self.nodes.pop(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[DisplayNode]:
        return iter(self.nodes.values())

    # ----- queries -----

    def row(self, generation: int, side: Optional[Side] = None) -> list[DisplayNode]:
        """Nodes of one generation (optionally one side), left to right."""
        return sorted(
            (n for n in self.nodes.values()
             if n.generation == generation and (side is None or n.side is side)),
            key=lambda n: n.x,
        )

    def max_generation(self) -> int:
        return max((n.generation for n in self.nodes.values()), default=0)

    def ancestors_of(self, node_id: str) -> list[str]:
        """Ids of every displayed node above *node_id*, via father/mother links."""
        start = self.require(node_id)
        found: list[str] = []
        seen: set[str] = {node_id}
        queue: deque[str] = deque(start.parent_ids)
        while queue:
            nid = queue.popleft()
            if nid in seen:
                raise MalformedGraph(f"Parent links revisit '{nid}' above '{node_id}'.")
            seen.add(nid)
            node = self.nodes.get(nid)
            if node is None:
                raise MalformedGraph(f"Parent link to '{nid}' points at a node that is not displayed.")
            found.append(nid)
            queue.extend(node.parent_ids)
        return found

    def descends_to(self, node_id: str, target_id: str) -> bool:
        """True when walking ``child_id`` back-links from *node_id* reaches *target_id*."""
        seen: set[str] = set()
        current = self.nodes.get(node_id)
        while current is not None and current.child_id is not None:
            if current.child_id == target_id:
                return True
            if current.child_id in seen:
                raise MalformedGraph(f"Child links from '{node_id}' form a cycle.")
            seen.add(current.child_id)
            current = self.nodes.get(current.child_id)
        return False

    def branch_ids(self, node_id: str) -> list[str]:
        """*node_id* plus everything displayed above it."""
        return [node_id] + self.ancestors_of(node_id)

    def positions(self) -> dict[str, tuple[int, float]]:
        """(generation, x) per node; handy for comparing layouts."""
        return {nid: (n.generation, n.x) for nid, n in self.nodes.items()}
