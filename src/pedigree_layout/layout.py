"""
Layout configuration, row alignment and invariant checks.

Coordinates are card-centre x and card-top y. The root sits on the bottom
row at x = 0; every generation above it gets its own row.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Optional

from pedigree_layout.ahnentafel import child_index, generation_of, is_father, side_of
from pedigree_layout.errors import LayoutInvariantError
from pedigree_layout.models import DisplayNode, LayoutBounds, Side

# Float slack for spacing comparisons
EPSILON = 1e-6


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class PedigreeLayoutConfig:
    """Configuration for the pedigree layout engine."""
    # Card dimensions
    card_width: float = 220
    card_height: float = 80

    # Spacing
    h_gap: float = 48          # Min horizontal gap between cards in one row
    v_gap: float = 96          # Vertical gap between rows (connector room)
    couple_offset: Optional[float] = None  # Parent offset from child; None = spacing / 2

    # Bounds padding around the whole tree
    padding: float = 24

    # Algorithm tuning
    max_collision_iterations: int = 500

    @property
    def spacing(self) -> float:
        """Minimum centre-to-centre distance between cards in one row."""
        return self.card_width + self.h_gap

    @property
    def margin(self) -> float:
        """Distance every non-root card keeps from the centre line."""
        return self.spacing / 2

    @property
    def offset(self) -> float:
        return self.couple_offset if self.couple_offset is not None else self.spacing / 2

    @property
    def row_height(self) -> float:
        return self.card_height + self.v_gap

    def validate(self) -> None:
        """Reject constants that make a collision-free layout impossible."""
        for name in ("card_width", "card_height", "v_gap", "spacing"):
            if getattr(self, name) <= 0:
                raise LayoutInvariantError(f"Layout config '{name}' must be > 0.")
        if self.h_gap < 0:
            raise LayoutInvariantError("Layout config 'h_gap' must be >= 0.")
        if self.offset * 2 < self.spacing - EPSILON:
            raise LayoutInvariantError(
                f"Couple offset {self.offset} is too small: the two parents of one "
                f"child would be closer than the minimum spacing {self.spacing}."
            )
        if self.max_collision_iterations < 1:
            raise LayoutInvariantError("Layout config 'max_collision_iterations' must be >= 1.")


# ---------------------------------------------------------------------------
# Row alignment
# ---------------------------------------------------------------------------

def align_rows(nodes: Iterable[DisplayNode], config: PedigreeLayoutConfig) -> int:
    """Set ``y`` for every node from its generation. Returns the max generation.

    y = (max_generation - generation) * row_height, so the deepest ancestors
    are on row 0 and the root is on the bottom row. Never touches ``x``.
    """
    node_list = list(nodes)
    max_gen = max((n.generation for n in node_list), default=0)
    for n in node_list:
        n.y = (max_gen - n.generation) * config.row_height
    return max_gen


# ---------------------------------------------------------------------------
# Invariant checks
# ---------------------------------------------------------------------------

def group_by_generation(nodes: Iterable[DisplayNode]) -> dict[int, list[DisplayNode]]:
    """Nodes per generation, each row sorted left to right."""
    by_gen: dict[int, list[DisplayNode]] = defaultdict(list)
    for n in nodes:
        by_gen[n.generation].append(n)
    for row in by_gen.values():
        row.sort(key=lambda n: n.x)
    return dict(by_gen)


def find_overlapping_nodes(
    nodes: Iterable[DisplayNode],
    config: PedigreeLayoutConfig,
) -> list[tuple[str, str]]:
    """All same-generation pairs closer than the minimum spacing."""
    overlaps: list[tuple[str, str]] = []
    for row in group_by_generation(nodes).values():
        for i in range(len(row)):
            for j in range(i + 1, len(row)):
                if abs(row[i].x - row[j].x) < config.spacing - EPSILON:
                    overlaps.append((row[i].id, row[j].id))
    return overlaps


def find_side_violations(
    nodes: Iterable[DisplayNode],
    config: PedigreeLayoutConfig,
) -> list[str]:
    """Ids of nodes on the wrong side of (or too close to) the centre line."""
    bad: list[str] = []
    for n in nodes:
        if n.side is Side.PATERNAL and n.x > -config.margin + EPSILON:
            bad.append(n.id)
        elif n.side is Side.MATERNAL and n.x < config.margin - EPSILON:
            bad.append(n.id)
    return bad


def find_layout_problems(
    nodes: Iterable[DisplayNode],
    config: PedigreeLayoutConfig,
) -> list[str]:
    """Human-readable list of every violated layout invariant."""
    node_list = list(nodes)
    problems: list[str] = []
    for a, b in find_overlapping_nodes(node_list, config):
        problems.append(f"Cards '{a}' and '{b}' overlap.")
    for nid in find_side_violations(node_list, config):
        problems.append(f"Card '{nid}' crosses the centre line.")

    row_y: dict[int, float] = {}
    for n in node_list:
        if n.generation in row_y and row_y[n.generation] != n.y:
            problems.append(f"Card '{n.id}' is off its generation row.")
        row_y.setdefault(n.generation, n.y)
    gens = sorted(row_y)
    for lower, upper in zip(gens, gens[1:]):
        if not row_y[upper] < row_y[lower]:
            problems.append(f"Generation {upper} is not drawn above generation {lower}.")

    for n in node_list:
        if n.is_expanded != bool(n.parent_ids):
            problems.append(f"Card '{n.id}' has parent links inconsistent with its expansion state.")
    problems.extend(find_numbering_problems(node_list))
    return problems


def find_numbering_problems(nodes: Iterable[DisplayNode]) -> list[str]:
    """Check generation, side and child link against each card's Ahnentafel number."""
    by_id = {n.id: n for n in nodes}
    problems: list[str] = []
    for n in by_id.values():
        if generation_of(n.ahnentafel) != n.generation:
            problems.append(f"Card '{n.id}' has number {n.ahnentafel} but sits in generation {n.generation}.")
        if side_of(n.ahnentafel) is not n.side:
            problems.append(f"Card '{n.id}' has number {n.ahnentafel} but is on the {n.side.value} side.")
        child = by_id.get(n.child_id) if n.child_id is not None else None
        if child is None:
            continue
        if child.ahnentafel != child_index(n.ahnentafel):
            problems.append(f"Card '{n.id}' is not numbered as a parent of '{child.id}'.")
        role_id = child.father_id if is_father(n.ahnentafel) else child.mother_id
        if role_id != n.id:
            problems.append(f"Card '{n.id}' is not linked from '{child.id}' in its numbered role.")
    return problems


def assert_valid_layout(nodes: Iterable[DisplayNode], config: PedigreeLayoutConfig) -> None:
    problems = find_layout_problems(nodes, config)
    if problems:
        raise LayoutInvariantError("; ".join(problems))


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------

def compute_bounds(nodes: Iterable[DisplayNode], config: PedigreeLayoutConfig) -> LayoutBounds:
    """Bounding box of all cards plus padding."""
    node_list = list(nodes)
    if not node_list:
        return LayoutBounds(0, 0, 0, 0)
    min_x = min(n.x for n in node_list) - config.card_width / 2
    max_x = max(n.x for n in node_list) + config.card_width / 2
    min_y = min(n.y for n in node_list)
    max_y = max(n.y for n in node_list) + config.card_height
    return LayoutBounds(
        x=min_x - config.padding,
        y=min_y - config.padding,
        width=max_x - min_x + config.padding * 2,
        height=max_y - min_y + config.padding * 2,
    )
