"""
In-memory ancestor graph.

Holds the person records handed over by the data source, keyed by id, and
answers parent-link lookups for the expansion controller. Loads either flat
record lists or the nested tree-result shape returned by the tree API::

    {
      "rootPerson": {"id": ..., "name": ..., "lifespan": ...,
                     "hasMoreAncestors": true},
      "parentUnits": [
        {"father": {...}, "mother": {...},
         "fatherParentUnits": [...], "motherParentUnits": [...]}
      ]
    }
"""

from __future__ import annotations

import dataclasses
from collections import deque
from typing import Any, Iterable, Iterator, Optional

from pedigree_layout.errors import MalformedGraph, UnknownPerson
from pedigree_layout.models import Gender, ParentLinks, PersonRecord


class AncestorGraph:
    """Person records plus father/mother links, rooted at one person."""

    def __init__(self, root_id: str, records: Iterable[PersonRecord] = ()) -> None:
        self.root_id = root_id
        self._people: dict[str, PersonRecord] = {}
        for record in records:
            self.add_person(record)
        if root_id not in self._people:
            raise UnknownPerson(root_id)

    # ----- construction -----

    @classmethod
    def from_records(cls, root_id: str, records: Iterable[PersonRecord]) -> "AncestorGraph":
        return cls(root_id, records)

    @classmethod
    def from_tree_result(cls, data: dict[str, Any]) -> "AncestorGraph":
        """Build a graph from the nested ``rootPerson`` / ``parentUnits`` shape.

        Only the first parent unit of each person is used (the biological
        parents). Cards without an id are ignored.
        """
        root = data.get("rootPerson")
        if not isinstance(root, dict) or not root.get("id"):
            raise MalformedGraph("Tree result has no 'rootPerson' with an id.")

        cards: dict[str, dict[str, Any]] = {}
        links: dict[str, dict[str, str]] = {}
        cards[root["id"]] = root

        # (child id, units) work list
        pending: deque[tuple[str, Any]] = deque([(root["id"], data.get("parentUnits"))])
        while pending:
            child_id, units = pending.popleft()
            if not units:
                continue
            unit = units[0]
            for role, nested_key in (("father", "fatherParentUnits"), ("mother", "motherParentUnits")):
                card = unit.get(role)
                if not isinstance(card, dict) or not card.get("id"):
                    continue
                pid = card["id"]
                if pid == child_id:
                    raise MalformedGraph(f"Person '{pid}' is listed as their own parent.")
                links.setdefault(child_id, {})[role] = pid
                if pid in cards:
                    # Same person reached twice; keep the first card
                    continue
                cards[pid] = card
                pending.append((pid, unit.get(nested_key)))

        records = []
        for pid, card in cards.items():
            person_links = links.get(pid, {})
            records.append(_record_from_card(card, person_links.get("father"), person_links.get("mother")))
        return cls(root["id"], records)

    def add_person(self, record: PersonRecord) -> None:
        if record.father_id is not None and record.father_id == record.id:
            raise MalformedGraph(f"Person '{record.id}' is listed as their own father.")
        if record.mother_id is not None and record.mother_id == record.id:
            raise MalformedGraph(f"Person '{record.id}' is listed as their own mother.")
        self._people[record.id] = record

    def merge_parents(
        self,
        person_id: str,
        father: Optional[PersonRecord] = None,
        mother: Optional[PersonRecord] = None,
    ) -> PersonRecord:
        """Merge fetched parent records and link them to *person_id*.

        The child's ``has_more_ancestors`` flag is cleared: its ancestors are
        now loaded. Returns the updated child record.
        """
        child = self.get_person(person_id)
        for parent in (father, mother):
            if parent is None:
                continue
            if parent.id == person_id:
                raise MalformedGraph(f"Person '{person_id}' is listed as their own parent.")
            self.add_person(parent)
        updated = dataclasses.replace(
            child,
            father_id=father.id if father else child.father_id,
            mother_id=mother.id if mother else child.mother_id,
            has_more_ancestors=False,
        )
        self._people[person_id] = updated
        return updated

    # ----- queries -----

    def get_person(self, person_id: str) -> PersonRecord:
        try:
            return self._people[person_id]
        except KeyError:
            raise UnknownPerson(person_id) from None

    def get_parent_links(self, person_id: str) -> ParentLinks:
        """Father/mother ids of *person_id*, restricted to loaded records."""
        record = self.get_person(person_id)
        father_id = record.father_id if record.father_id in self._people else None
        mother_id = record.mother_id if record.mother_id in self._people else None
        return ParentLinks(father_id=father_id, mother_id=mother_id)

    def has_parent_data(self, person_id: str) -> bool:
        return not self.get_parent_links(person_id).is_empty

    def max_depth(self) -> int:
        """Deepest loaded generation reachable from the root."""
        depth = 0
        seen: set[str] = set()
        queue: deque[tuple[str, int]] = deque([(self.root_id, 0)])
        while queue:
            pid, gen = queue.popleft()
            if pid in seen:
                continue
            seen.add(pid)
            depth = max(depth, gen)
            links = self.get_parent_links(pid)
            for parent_id in (links.father_id, links.mother_id):
                if parent_id is not None:
                    queue.append((parent_id, gen + 1))
        return depth

    def __contains__(self, person_id: object) -> bool:
        return person_id in self._people

    def __len__(self) -> int:
        return len(self._people)

    def __iter__(self) -> Iterator[PersonRecord]:
        return iter(self._people.values())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _record_from_card(
    card: dict[str, Any],
    father_id: Optional[str],
    mother_id: Optional[str],
) -> PersonRecord:
    gender_raw = str(card.get("gender") or "unknown").lower()
    try:
        gender = Gender(gender_raw)
    except ValueError:
        gender = Gender.UNKNOWN
    return PersonRecord(
        id=str(card["id"]),
        name=str(card.get("name") or ""),
        lifespan=str(card.get("lifespan") or ""),
        father_id=father_id or card.get("fatherId"),
        mother_id=mother_id or card.get("motherId"),
        has_more_ancestors=bool(card.get("hasMoreAncestors", False)),
        gender=gender,
        birth_place=card.get("birthPlace"),
        death_place=card.get("deathPlace"),
    )


def record_from_dict(card: dict[str, Any]) -> PersonRecord:
    """Build a :class:`PersonRecord` from a camelCase person card."""
    return _record_from_card(card, None, None)
