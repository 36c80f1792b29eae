"""
Connector routing between children and their displayed parents.

Each child-to-parent connector leaves the top edge of the child card,
bends horizontally on a per-child track inside the gap between the two
rows, and enters the bottom edge of the parent card. Children of one
generation are ordered left to right and their tracks step monotonically
through the gap, so sibling bends never share a y. Two-parent couples also
get a horizontal couple bar between the facing edges of the parent cards.
"""

from __future__ import annotations

from typing import Iterable

from pedigree_layout.layout import PedigreeLayoutConfig, group_by_generation
from pedigree_layout.models import ConnectorKind, ConnectorPath, DisplayNode, Point


def assign_tracks(nodes: Iterable[DisplayNode]) -> dict[str, tuple[int, int]]:
    """Track index and track count per expanded node, per generation."""
    expanded = [n for n in nodes if n.parent_ids]
    tracks: dict[str, tuple[int, int]] = {}
    for row in group_by_generation(expanded).values():
        for i, node in enumerate(row):
            tracks[node.id] = (i, len(row))
    return tracks


def track_y(child: DisplayNode, index: int, count: int, config: PedigreeLayoutConfig) -> float:
    """y of the horizontal bend for track *index* of *count*.

    Tracks divide the gap above the child's row into ``count + 1`` equal
    steps; track 0 is nearest the parent row.
    """
    gap_top = child.y - config.v_gap
    return gap_top + config.v_gap * (index + 1) / (count + 1)


def _simplify(points: list[Point]) -> list[Point]:
    """Drop repeated points and the middle of straight runs."""
    deduped: list[Point] = []
    for p in points:
        if not deduped or (p.x, p.y) != (deduped[-1].x, deduped[-1].y):
            deduped.append(p)
    if len(deduped) < 3:
        return deduped
    result = [deduped[0]]
    for i in range(1, len(deduped) - 1):
        prev, cur, nxt = result[-1], deduped[i], deduped[i + 1]
        if (prev.x == cur.x == nxt.x) or (prev.y == cur.y == nxt.y):
            continue
        result.append(cur)
    result.append(deduped[-1])
    return result


def route_connectors(
    nodes: dict[str, DisplayNode],
    config: PedigreeLayoutConfig,
) -> list[ConnectorPath]:
    """Derive every connector for the current layout. Does not mutate *nodes*."""
    tracks = assign_tracks(nodes.values())
    paths: list[ConnectorPath] = []

    ordered = sorted(
        (n for n in nodes.values() if n.parent_ids),
        key=lambda n: (n.generation, n.x),
    )
    for child in ordered:
        index, count = tracks[child.id]
        bend_y = track_y(child, index, count, config)
        parents = [nodes[pid] for pid in child.parent_ids if pid in nodes]

        for parent in parents:
            parent_bottom = parent.y + config.card_height
            points = _simplify([
                Point(child.x, child.y),
                Point(child.x, bend_y),
                Point(parent.x, bend_y),
                Point(parent.x, parent_bottom),
            ])
            paths.append(ConnectorPath(
                id=f"{child.id}->{parent.id}",
                kind=ConnectorKind.PARENT,
                child_id=child.id,
                parent_ids=[parent.id],
                points=points,
                generation=child.generation,
                track=index,
            ))

        if len(parents) == 2:
            left, right = sorted(parents, key=lambda p: p.x)
            bar_y = left.y + config.card_height / 2
            paths.append(ConnectorPath(
                id=f"{child.id}:couple",
                kind=ConnectorKind.COUPLE,
                child_id=child.id,
                parent_ids=[p.id for p in parents],
                points=[
                    Point(left.x + config.card_width / 2, bar_y),
                    Point(right.x - config.card_width / 2, bar_y),
                ],
                generation=child.generation,
                track=index,
            ))
    return paths
