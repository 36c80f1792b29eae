"""
Parent placement for incremental pedigree expansion.

New parents are placed at a fixed offset either side of the child, clamped
so the couple never crosses the centre line, then run through a collision
loop that either slides the new couple outward or pushes the existing
outer branches outward. Nodes near the branch being explored stay put.

Steps:
1. Candidate x per parent (``child.x -/+ offset``)
2. Side clamp (paternal couples stay left of -margin, maternal right of +margin)
3. Collision loop (one spacing unit per step, bounded)
4. Commit the new display nodes
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from pedigree_layout.ahnentafel import father_index, mother_index
from pedigree_layout.errors import LayoutInvariantError
from pedigree_layout.layout import EPSILON, PedigreeLayoutConfig
from pedigree_layout.models import DisplayNode, Side
from pedigree_layout.state import LayoutState, ShiftRecord

logger = logging.getLogger("pedigree-layout.placement")

FATHER = "father"
MOTHER = "mother"


@dataclass
class Placement:
    """Outcome of placing the parents of one child."""
    father: Optional[DisplayNode] = None
    mother: Optional[DisplayNode] = None
    shifts: list[ShiftRecord] = field(default_factory=list)
    iterations: int = 0


def candidate_positions(
    child: DisplayNode,
    has_father: bool,
    has_mother: bool,
    config: PedigreeLayoutConfig,
) -> dict[str, float]:
    """Initial x per parent role, before clamping and collision handling."""
    if has_father and has_mother:
        return {FATHER: child.x - config.offset, MOTHER: child.x + config.offset}
    if child.side is Side.ROOT:
        # A lone parent of the root still has to leave the centre line
        if has_father:
            return {FATHER: child.x - config.offset}
        if has_mother:
            return {MOTHER: child.x + config.offset}
        return {}
    if has_father:
        return {FATHER: child.x}
    if has_mother:
        return {MOTHER: child.x}
    return {}


def clamp_to_side(
    candidates: dict[str, float],
    side: Side,
    config: PedigreeLayoutConfig,
) -> dict[str, float]:
    """Shift the whole couple so it stays on *side*, keeping its offset."""
    if not candidates or side is Side.ROOT:
        return dict(candidates)
    if side is Side.PATERNAL:
        excess = max(candidates.values()) + config.margin
        if excess > 0:
            return {role: x - excess for role, x in candidates.items()}
    else:
        excess = config.margin - min(candidates.values())
        if excess > 0:
            return {role: x + excess for role, x in candidates.items()}
    return dict(candidates)


def parent_side(child: DisplayNode, role: str) -> Side:
    if child.side is Side.ROOT:
        return Side.PATERNAL if role == FATHER else Side.MATERNAL
    return child.side


def find_colliders(
    state: LayoutState,
    generation: int,
    side: Side,
    candidates: dict[str, float],
    config: PedigreeLayoutConfig,
) -> list[DisplayNode]:
    """Existing same-generation, same-side nodes too close to any candidate."""
    hits: list[DisplayNode] = []
    for node in state.row(generation, side):
        if any(abs(node.x - x) < config.spacing - EPSILON for x in candidates.values()):
            hits.append(node)
    return hits


def _branch_x(state: LayoutState, node: DisplayNode) -> float:
    """x of the child a node was expanded from."""
    if node.child_id is None or node.child_id not in state:
        raise LayoutInvariantError(f"Node '{node.id}' has no displayed child.")
    return state.nodes[node.child_id].x


def close_outward(state: LayoutState, seeds: list[str], side: Side) -> list[str]:
    """Smallest superset of *seeds* closed under ancestors and outward neighbours.

    Per row, the result holds every same-side node at least as far out as
    the innermost member, and every ancestor of a member.
    """
    direction = side.outward
    members: set[str] = set()
    pending = list(seeds)
    while pending:
        added: list[str] = []
        for nid in pending:
            for bid in state.branch_ids(nid):
                if bid not in members:
                    members.add(bid)
                    added.append(bid)
        pending = []
        rows = {state.nodes[nid].generation for nid in added}
        for generation in rows:
            row = state.row(generation, side)
            innermost = min(direction * n.x for n in row if n.id in members)
            pending.extend(
                n.id for n in row
                if n.id not in members and direction * n.x >= innermost
            )
    return sorted(members, key=lambda nid: (state.nodes[nid].generation, direction * state.nodes[nid].x))


def shift_outer_branches(
    state: LayoutState,
    child: DisplayNode,
    generation: int,
    side: Side,
    config: PedigreeLayoutConfig,
) -> ShiftRecord:
    """Push every branch outward of *child* one spacing unit outward.

    A branch is a node of *generation* whose child lies further from the
    centre than *child*, together with everything displayed above it. The
    moved set is widened until, in every row, it is exactly the nodes
    beyond some threshold, so no row can lose spacing by the move.
    """
    direction = side.outward
    delta = direction * config.spacing
    seeds = [
        node.id for node in state.row(generation, side)
        if direction * _branch_x(state, node) > direction * child.x
    ]
    moved = close_outward(state, seeds, side)
    for nid in moved:
        state.nodes[nid].x += delta
    logger.debug("Shifted %d node(s) by %s to make room above '%s'", len(moved), delta, child.id)
    return ShiftRecord(owner_id=child.id, node_ids=moved, delta=delta)


def resolve_collisions(
    state: LayoutState,
    child: DisplayNode,
    candidates: dict[str, float],
    side: Side,
    config: PedigreeLayoutConfig,
) -> tuple[dict[str, float], list[ShiftRecord], int]:
    """Run the collision loop for one couple. Returns (positions, shifts, iterations)."""
    generation = child.generation + 1
    direction = side.outward
    shifts: list[ShiftRecord] = []
    for iteration in range(config.max_collision_iterations):
        colliders = find_colliders(state, generation, side, candidates, config)
        if not colliders:
            return candidates, shifts, iteration
        outer = [n for n in colliders if direction * _branch_x(state, n) > direction * child.x]
        if not outer:
            # Nothing outward of this child is in the way: slide the new couple out
            candidates = {role: x + direction * config.spacing for role, x in candidates.items()}
        else:
            shifts.append(shift_outer_branches(state, child, generation, side, config))
    raise LayoutInvariantError(
        f"Could not place the parents of '{child.id}' without overlap after "
        f"{config.max_collision_iterations} iterations; check the spacing constants."
    )


def place_parents(
    state: LayoutState,
    child: DisplayNode,
    father_id: Optional[str],
    mother_id: Optional[str],
    config: PedigreeLayoutConfig,
) -> Placement:
    """Compute positions for the parents of *child* and add them to *state*.

    Existing nodes may be shifted outward; each shift is returned so the
    expansion can later be retracted.
    """
    candidates = candidate_positions(child, father_id is not None, mother_id is not None, config)
    if not candidates:
        return Placement()

    generation = child.generation + 1
    result = Placement()
    resolved: dict[str, float] = {}
    if child.side is Side.ROOT:
        # Father and mother land on opposite sides; resolve each on its own
        for role, x in candidates.items():
            side = parent_side(child, role)
            placed, shifts, steps = resolve_collisions(
                state, child, clamp_to_side({role: x}, side, config), side, config,
            )
            resolved.update(placed)
            result.shifts.extend(shifts)
            result.iterations += steps
    else:
        placed, shifts, steps = resolve_collisions(
            state, child, clamp_to_side(candidates, child.side, config), child.side, config,
        )
        resolved.update(placed)
        result.shifts.extend(shifts)
        result.iterations += steps

    if father_id is not None:
        result.father = DisplayNode(
            id=father_id,
            generation=generation,
            side=parent_side(child, FATHER),
            ahnentafel=father_index(child.ahnentafel),
            x=resolved[FATHER],
            child_id=child.id,
        )
        state.add(result.father)
    if mother_id is not None:
        result.mother = DisplayNode(
            id=mother_id,
            generation=generation,
            side=parent_side(child, MOTHER),
            ahnentafel=mother_index(child.ahnentafel),
            x=resolved[MOTHER],
            child_id=child.id,
        )
        state.add(result.mother)
    return result
