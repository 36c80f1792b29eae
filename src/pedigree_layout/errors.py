"""
Error taxonomy for the pedigree layout engine.

Recoverable conditions (missing data, unknown ids, stale fetches) are
reported to the caller. Layout invariant violations are programming or
configuration errors and are always raised.
"""

from __future__ import annotations


class PedigreeError(Exception):
    """Base class for all layout engine errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MissingParentData(PedigreeError):
    """Expansion needs father/mother records that nobody could supply."""

    def __init__(self, person_id: str, message: str | None = None) -> None:
        self.person_id = person_id
        super().__init__(message or f"No parent data available for '{person_id}'.")


class UnknownNode(PedigreeError):
    """The requested id is not currently displayed."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' is not displayed.")


class UnknownPerson(PedigreeError, KeyError):
    """The requested id is not present in the ancestor graph."""

    def __init__(self, person_id: str) -> None:
        self.person_id = person_id
        super().__init__(f"Person '{person_id}' is not in the ancestor graph.")

    def __str__(self) -> str:
        return self.message


class StaleFetchResult(PedigreeError):
    """A parent fetch resolved after its target node was collapsed or removed."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Fetch result for '{node_id}' is stale and was discarded.")


class MalformedGraph(PedigreeError):
    """Duplicate or cyclic parent links in the ancestor data."""


class LayoutInvariantError(PedigreeError, AssertionError):
    """A layout invariant could not be upheld."""
