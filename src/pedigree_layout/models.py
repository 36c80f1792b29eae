"""
Core data classes for pedigree layouts.

Person records come from the external ancestor graph and never change once
loaded. Display nodes are the mutable, positioned cards owned by a single
layout state; connector paths and bounds are derived, renderer-ready
geometry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Side(Enum):
    """Which branch of the root a displayed ancestor belongs to."""
    ROOT = "root"
    PATERNAL = "paternal"
    MATERNAL = "maternal"

    @property
    def outward(self) -> int:
        """Horizontal direction pointing away from the centre line."""
        if self is Side.PATERNAL:
            return -1
        if self is Side.MATERNAL:
            return 1
        return 0


class Gender(Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class ConnectorKind(Enum):
    PARENT = "parent"   # child card -> one parent card
    COUPLE = "couple"   # bar between the two parents of one child


# ---------------------------------------------------------------------------
# Person data (external, immutable)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PersonRecord:
    """A person card as supplied by the data source."""
    id: str
    name: str = ""
    lifespan: str = ""
    father_id: Optional[str] = None
    mother_id: Optional[str] = None
    # Further ancestors exist upstream but are not loaded yet
    has_more_ancestors: bool = False
    gender: Gender = Gender.UNKNOWN
    birth_place: Optional[str] = None
    death_place: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "lifespan": self.lifespan,
            "gender": self.gender.value,
            "hasMoreAncestors": self.has_more_ancestors,
        }
        if self.father_id:
            data["fatherId"] = self.father_id
        if self.mother_id:
            data["motherId"] = self.mother_id
        if self.birth_place:
            data["birthPlace"] = self.birth_place
        if self.death_place:
            data["deathPlace"] = self.death_place
        return data


@dataclass(frozen=True)
class ParentLinks:
    """Father/mother identifiers of one person (loaded records only)."""
    father_id: Optional[str] = None
    mother_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.father_id is None and self.mother_id is None

    @property
    def is_complete(self) -> bool:
        return self.father_id is not None and self.mother_id is not None


@dataclass(frozen=True)
class FetchedParents:
    """Result of an external parent fetch."""
    father: Optional[PersonRecord] = None
    mother: Optional[PersonRecord] = None

    @property
    def is_empty(self) -> bool:
        return self.father is None and self.mother is None


# ---------------------------------------------------------------------------
# Layout data (owned by a LayoutState)
# ---------------------------------------------------------------------------

@dataclass
class DisplayNode:
    """A displayed, positioned person card.

    ``x`` is the card centre and is sticky: it is set once at creation and
    only ever moved by a collision shift. ``y`` is the top edge of the card
    and is recomputed by row alignment after every structural change.
    """
    id: str
    generation: int
    side: Side
    ahnentafel: int = 1
    x: float = 0
    y: float = 0
    father_id: Optional[str] = None
    mother_id: Optional[str] = None
    child_id: Optional[str] = None
    is_expanded: bool = False

    @property
    def parent_ids(self) -> list[str]:
        return [pid for pid in (self.father_id, self.mother_id) if pid is not None]

    @property
    def is_root(self) -> bool:
        return self.child_id is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "generation": self.generation,
            "side": self.side.value,
            "ahnentafel": self.ahnentafel,
            "x": self.x,
            "y": self.y,
            "fatherId": self.father_id,
            "motherId": self.mother_id,
            "childId": self.child_id,
            "isExpanded": self.is_expanded,
        }


@dataclass
class Point:
    """A 2-D coordinate."""
    x: float
    y: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


@dataclass
class ConnectorPath:
    """A routed polyline between a child card and its parent card(s)."""
    id: str
    kind: ConnectorKind
    child_id: str
    parent_ids: list[str]
    points: list[Point] = field(default_factory=list)
    generation: int = 0  # generation of the child
    track: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "childId": self.child_id,
            "parentIds": list(self.parent_ids),
            "generation": self.generation,
            "track": self.track,
            "points": [[p.x, p.y] for p in self.points],
        }


@dataclass
class LayoutBounds:
    """Axis-aligned box around every displayed card, padding included."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class LayoutSnapshot:
    """Nodes and connectors returned to the renderer after each mutation."""
    nodes: list[DisplayNode]
    connectors: list[ConnectorPath]

    def node(self, node_id: str) -> Optional[DisplayNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "connectors": [c.to_dict() for c in self.connectors],
        }
