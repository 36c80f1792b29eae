"""
Expansion controller for incremental pedigree layouts.

Owns one :class:`LayoutState` per visible tree. ``expand`` places the
parents of a displayed node, ``collapse`` removes everything displayed
above it; both realign rows afterwards and return a fresh snapshot of
nodes and connectors. All operations are synchronous: data that is not in
the ancestor graph yet has to be fetched by the caller first (see
:mod:`pedigree_layout.fetch`).
"""

from __future__ import annotations

import dataclasses
import logging
from collections import deque
from typing import Optional

from pedigree_layout.errors import (
    LayoutInvariantError,
    MalformedGraph,
    MissingParentData,
    StaleFetchResult,
)
from pedigree_layout.graph import AncestorGraph
from pedigree_layout.layout import (
    EPSILON,
    PedigreeLayoutConfig,
    align_rows,
    assert_valid_layout,
    compute_bounds,
    find_layout_problems,
)
from pedigree_layout.models import (
    ConnectorPath,
    DisplayNode,
    LayoutBounds,
    LayoutSnapshot,
    PersonRecord,
    Side,
)
from pedigree_layout.placement import place_parents
from pedigree_layout.routing import route_connectors
from pedigree_layout.state import LayoutState, ShiftRecord

logger = logging.getLogger("pedigree-layout.expansion")


class ExpansionController:
    """Expand/collapse state machine over one displayed pedigree."""

    def __init__(
        self,
        graph: AncestorGraph,
        config: Optional[PedigreeLayoutConfig] = None,
        verify: bool = True,
    ) -> None:
        self.config = config or PedigreeLayoutConfig()
        self.config.validate()
        # Re-check every invariant after each mutation
        self.verify = verify
        self.graph = graph
        self.state = LayoutState(root_id=graph.root_id)
        self._pending_fetches: set[str] = set()
        align_rows(self.state, self.config)

    # ----- lifecycle -----

    def load(self, graph: AncestorGraph) -> LayoutSnapshot:
        """Replace the ancestor graph and reset to the root alone."""
        self.graph = graph
        self.state = LayoutState(root_id=graph.root_id)
        self._pending_fetches.clear()
        align_rows(self.state, self.config)
        return self.snapshot()

    # ----- mutations -----

    def expand(self, node_id: str) -> LayoutSnapshot:
        """Display the parents of *node_id*.

        Expanding an expanded node or a known leaf is a no-op. Raises
        :class:`MissingParentData` when more ancestors exist upstream but
        father and mother are not both loaded; the layout is untouched in
        that case.
        """
        node = self.state.require(node_id)
        if node.is_expanded:
            return self.snapshot()

        links = self.graph.get_parent_links(node_id)
        person = self.graph.get_person(node_id)
        if person.has_more_ancestors and not links.is_complete:
            # A half-loaded couple is fetched first, never shown partially
            raise MissingParentData(node_id)
        if links.is_empty:
            logger.debug("'%s' has no known ancestors; nothing to expand", node_id)
            return self.snapshot()

        self._check_new_parents(node, links.father_id, links.mother_id)
        placement = place_parents(self.state, node, links.father_id, links.mother_id, self.config)
        self.state.shift_journal.extend(placement.shifts)
        node.father_id = placement.father.id if placement.father else None
        node.mother_id = placement.mother.id if placement.mother else None
        node.is_expanded = True
        logger.debug(
            "Expanded '%s' (%d shift(s), %d collision step(s))",
            node_id, len(placement.shifts), placement.iterations,
        )
        return self._relayout()

    def collapse(self, node_id: str) -> LayoutSnapshot:
        """Remove every displayed ancestor of *node_id*."""
        node = self.state.require(node_id)
        if not node.is_expanded:
            return self.snapshot()

        doomed = [
            n.id for n in list(self.state)
            if n.id != node_id and self.state.descends_to(n.id, node_id)
        ]
        owners = set(doomed) | {node_id}
        for nid in doomed:
            self.state.remove(nid)
            self._pending_fetches.discard(nid)
        node.father_id = None
        node.mother_id = None
        node.is_expanded = False

        self._retract_shifts(owners)
        logger.debug("Collapsed '%s' (%d node(s) removed)", node_id, len(doomed))
        return self._relayout()

    def toggle(self, node_id: str) -> LayoutSnapshot:
        node = self.state.require(node_id)
        if node.is_expanded:
            return self.collapse(node_id)
        return self.expand(node_id)

    def expand_to_depth(self, node_id: str, generations: int) -> LayoutSnapshot:
        """Expand breadth-first up to *generations* above *node_id*.

        Only locally loaded ancestors are shown; branches that still need a
        fetch are left collapsed.
        """
        start = self.state.require(node_id)
        limit = start.generation + generations
        queue: deque[str] = deque([node_id])
        seen: set[str] = set()
        while queue:
            nid = queue.popleft()
            if nid in seen:
                raise MalformedGraph(f"Person '{nid}' was reached twice while expanding.")
            seen.add(nid)
            current = self.state.require(nid)
            if current.generation >= limit:
                continue
            if not current.is_expanded:
                try:
                    self.expand(nid)
                except MissingParentData:
                    continue
                except MalformedGraph as exc:
                    # Shared ancestor already shown through another child
                    logger.debug("Skipping '%s': %s", nid, exc.message)
                    continue
            queue.extend(current.parent_ids)
        return self.snapshot()

    # ----- fetch hand-off -----

    def needs_fetch(self, node_id: str) -> bool:
        """True when expanding *node_id* requires the external fetch first."""
        node = self.state.require(node_id)
        if node.is_expanded or self.graph.get_parent_links(node_id).is_complete:
            return False
        return self.graph.get_person(node_id).has_more_ancestors

    def begin_fetch(self, node_id: str) -> None:
        self.state.require(node_id)
        self._pending_fetches.add(node_id)

    def cancel_fetch(self, node_id: str) -> None:
        self._pending_fetches.discard(node_id)

    def is_fetching(self, node_id: str) -> bool:
        return node_id in self._pending_fetches

    def apply_fetched_parents(
        self,
        node_id: str,
        father: Optional[PersonRecord] = None,
        mother: Optional[PersonRecord] = None,
    ) -> LayoutSnapshot:
        """Merge fetched parents into the graph and expand *node_id*.

        Raises :class:`StaleFetchResult` when the node is no longer displayed
        or was already expanded while the fetch was in flight.
        """
        self._pending_fetches.discard(node_id)
        node = self.state.get(node_id)
        if node is None or node.is_expanded:
            raise StaleFetchResult(node_id)
        if father is None and mother is None:
            raise MissingParentData(node_id, f"Fetch for '{node_id}' returned no parents.")
        self._check_new_parents(node, father.id if father else None, mother.id if mother else None)
        self.graph.merge_parents(node_id, father, mother)
        return self.expand(node_id)

    # ----- read side -----

    def get_display_nodes(self) -> list[DisplayNode]:
        return sorted(self.state, key=lambda n: (n.generation, n.x))

    def get_connectors(self) -> list[ConnectorPath]:
        return route_connectors(self.state.nodes, self.config)

    def get_bounds(self) -> LayoutBounds:
        return compute_bounds(self.state, self.config)

    def check_invariants(self) -> list[str]:
        return find_layout_problems(self.state, self.config)

    def snapshot(self) -> LayoutSnapshot:
        # Copies, so earlier snapshots do not move with later mutations
        nodes = [dataclasses.replace(n) for n in self.get_display_nodes()]
        return LayoutSnapshot(nodes=nodes, connectors=self.get_connectors())

    # ----- internals -----

    def _relayout(self) -> LayoutSnapshot:
        align_rows(self.state, self.config)
        if self.verify:
            assert_valid_layout(self.state, self.config)
        return self.snapshot()

    def _check_new_parents(
        self,
        node: DisplayNode,
        father_id: Optional[str],
        mother_id: Optional[str],
    ) -> None:
        if father_id is not None and father_id == mother_id:
            raise MalformedGraph(f"'{father_id}' is listed as both father and mother of '{node.id}'.")
        for pid in (father_id, mother_id):
            if pid is None:
                continue
            if pid == node.id:
                raise MalformedGraph(f"Person '{pid}' is listed as their own parent.")
            if pid in self.state:
                raise MalformedGraph(
                    f"Cannot expand '{node.id}': parent '{pid}' is already displayed."
                )

    def _retract_shifts(self, owners: set[str]) -> None:
        """Undo shifts caused by collapsed expansions, newest first.

        A shift is only undone when moving its nodes back keeps the layout
        valid; later shifts depend on earlier ones, so retraction stops at
        the first one that cannot be undone.
        """
        journal = self.state.shift_journal
        mine = [r for r in journal if r.owner_id in owners]
        self.state.shift_journal = [r for r in journal if r.owner_id not in owners]
        for record in reversed(mine):
            if not self._try_retract(record):
                logger.debug("Kept shift of %s from '%s'; retraction would collide", record.delta, record.owner_id)
                break

    def _try_retract(self, record: ShiftRecord) -> bool:
        moved: list[str] = []
        seen: set[str] = set()
        for nid in record.node_ids:
            if nid in self.state and nid not in seen:
                for bid in self.state.branch_ids(nid):
                    if bid not in seen:
                        seen.add(bid)
                        moved.append(bid)
        if not moved:
            return True

        proposed = {nid: self.state.nodes[nid].x - record.delta for nid in moved}
        cfg = self.config
        for nid, x in proposed.items():
            node = self.state.nodes[nid]
            if node.side is Side.PATERNAL and x > -cfg.margin + EPSILON:
                return False
            if node.side is Side.MATERNAL and x < cfg.margin - EPSILON:
                return False
            for other in self.state.row(node.generation):
                if other.id in proposed:
                    continue
                if abs(other.x - x) < cfg.spacing - EPSILON:
                    return False
        for nid, x in proposed.items():
            self.state.nodes[nid].x = x
        logger.debug("Retracted shift of %d node(s) from '%s'", len(moved), record.owner_id)
        return True


def build_controller(
    graph: AncestorGraph,
    config: Optional[PedigreeLayoutConfig] = None,
) -> ExpansionController:
    """Create a controller and fail loudly on an unusable config."""
    try:
        return ExpansionController(graph, config)
    except LayoutInvariantError:
        logger.error("Rejected pedigree layout config: %r", config)
        raise
