"""
Asynchronous boundary between the layout engine and the parent fetcher.

The engine itself never awaits. This module awaits the external
``fetch_parents(person_id)`` collaborator, then re-enters the controller
with the result. A result that arrives after the user collapsed or removed
the node is dropped: the later user action wins.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from pedigree_layout.errors import StaleFetchResult
from pedigree_layout.expansion import ExpansionController
from pedigree_layout.models import FetchedParents, LayoutSnapshot

logger = logging.getLogger("pedigree-layout.fetch")

FetchParents = Callable[[str], Awaitable[FetchedParents]]


async def expand_with_fetch(
    controller: ExpansionController,
    node_id: str,
    fetch_parents: FetchParents,
) -> LayoutSnapshot:
    """Expand *node_id*, fetching its parents first when they are not loaded.

    Fetch failures propagate unchanged and leave the node collapsed. A
    stale result is discarded and the current snapshot is returned.
    """
    if not controller.needs_fetch(node_id):
        return controller.expand(node_id)

    if controller.is_fetching(node_id):
        logger.debug("Fetch for '%s' already in flight", node_id)
        return controller.snapshot()

    controller.begin_fetch(node_id)
    try:
        result = await fetch_parents(node_id)
    except BaseException:
        controller.cancel_fetch(node_id)
        logger.warning("Parent fetch for '%s' failed", node_id, exc_info=True)
        raise

    if not controller.is_fetching(node_id):
        logger.debug("Dropping fetch result for '%s': request was withdrawn", node_id)
        return controller.snapshot()
    try:
        return controller.apply_fetched_parents(node_id, result.father, result.mother)
    except StaleFetchResult as exc:
        logger.debug(exc.message)
        return controller.snapshot()


async def expand_many(
    controller: ExpansionController,
    node_ids: list[str],
    fetch_parents: FetchParents,
) -> Optional[LayoutSnapshot]:
    """Expand several nodes in order; returns the final snapshot."""
    snapshot: Optional[LayoutSnapshot] = None
    for node_id in node_ids:
        snapshot = await expand_with_fetch(controller, node_id, fetch_parents)
    return snapshot
