"""
Pedigree Layout MCP Server — incremental ancestor-tree layouts via Model Context Protocol.

Exposes 3 tools that let a renderer or LLM agent load an ancestor graph,
expand/collapse it generation by generation, and read back positioned
cards and routed connectors.

Tools:
  1. tree      — lifecycle: load, load_records, list, drop, reset
  2. navigate  — mutation:  expand, collapse, toggle, expand_depth, apply_parents
  3. inspect   — read-only: nodes, connectors, bounds, info, check
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict
from typing import Any

from mcp.server.fastmcp import FastMCP

from pedigree_layout.errors import (
    MalformedGraph,
    MissingParentData,
    PedigreeError,
    StaleFetchResult,
    UnknownNode,
    UnknownPerson,
)
from pedigree_layout.expansion import ExpansionController, build_controller
from pedigree_layout.graph import AncestorGraph, record_from_dict
from pedigree_layout.layout import PedigreeLayoutConfig
from pedigree_layout.validation import (
    ValidationError,
    validate_action,
    validate_generations,
    validate_non_empty_string,
    validate_optional_person,
    validate_records,
    validate_tree_result,
    _INSPECT_ACTIONS,
    _NAVIGATE_ACTIONS,
    _TREE_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging — suppress routine FastMCP INFO messages that editors show
# as warnings (they go to stderr).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("pedigree-layout")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "pedigree-layout",
    instructions=(
        "MCP server that computes stable, collision-free layouts for\n"
        "expandable pedigree (ancestor) trees.\n\n"
        "=== ONLY 3 TOOLS — use the 'action' parameter to pick the operation ===\n\n"
        "1. tree(action, ...) — lifecycle: load (nested rootPerson/parentUnits\n"
        "   JSON), load_records (flat person list + root_id), list, drop, reset.\n"
        "2. navigate(action, ...) — expand, collapse, toggle, expand_depth,\n"
        "   apply_parents (deliver parents fetched from a provider).\n"
        "3. inspect(action, ...) — read-only: nodes, connectors, bounds, info, check.\n\n"
        "=== RULES ===\n"
        "- The root is always at x = 0 on the bottom row.\n"
        "- x is the card centre, y is the card top; ancestors are drawn above.\n"
        "- Father's line is always left of centre, mother's line right.\n"
        "- Card and connector ids are stable: diff snapshots by id.\n"
        "- expand returns an error mentioning 'fetch' when the parents are not\n"
        "  loaded yet; fetch them and call navigate(action='apply_parents').\n"
    ),
)

# In-memory tree registry: name -> ExpansionController
# Guarded by _trees_lock for thread-safety.
_trees: dict[str, ExpansionController] = {}
_trees_lock = threading.Lock()


# ===================================================================
# RESOURCES
# ===================================================================

@mcp.resource("pedigree://config/defaults")
def default_config() -> str:
    """Return the default layout constants."""
    cfg = PedigreeLayoutConfig()
    data = asdict(cfg)
    data.update({
        "spacing": cfg.spacing,
        "margin": cfg.margin,
        "offset": cfg.offset,
        "row_height": cfg.row_height,
    })
    return json.dumps(data, indent=2)


# ===================================================================
# TOOL 1: tree — lifecycle
# ===================================================================

@mcp.tool()
def tree(
    action: str,
    name: str = "",
    tree_json: str = "",
    records_json: str = "",
    root_id: str = "",
) -> str:
    """Pedigree tree lifecycle management.

    Actions:
      load         — Load a nested tree result. Params: name, tree_json
                     ({"rootPerson": {...}, "parentUnits": [...]}).
      load_records — Load flat person cards. Params: name, records_json
                     ([{"id", "name", "lifespan", "fatherId", "motherId",
                     "hasMoreAncestors"}, ...]), root_id.
      list         — List all in-memory trees. No params needed.
      drop         — Forget a tree. Params: name.
      reset        — Collapse everything back to the root. Params: name.

    Args:
        action: One of: load, load_records, list, drop, reset.
        name: Tree name (key in memory).
        tree_json: JSON tree result for load.
        records_json: JSON list of person cards for load_records.
        root_id: Root person id for load_records.

    Returns:
        Result string or JSON snapshot depending on action.
    """
    try:
        action = validate_action(action, "tree", _TREE_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "list":
        result: list[dict[str, Any]] = []
        for n, ctl in _trees.items():
            result.append({
                "name": n,
                "root": ctl.state.root_id,
                "people": len(ctl.graph),
                "displayed": len(ctl.state),
            })
        return json.dumps(result, indent=2)

    try:
        name = validate_non_empty_string(name, "name")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "load":
        try:
            data = validate_tree_result(tree_json)
            graph = AncestorGraph.from_tree_result(data)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        except PedigreeError as exc:
            return f"Error: {exc.message}"
        return _register(name, graph)

    elif action == "load_records":
        try:
            cards = validate_records(records_json)
            root_id = validate_non_empty_string(root_id, "root_id")
            graph = AncestorGraph.from_records(root_id, [record_from_dict(c) for c in cards])
        except ValidationError as exc:
            return f"Error: {exc.message}"
        except PedigreeError as exc:
            return f"Error: {exc.message}"
        return _register(name, graph)

    elif action == "drop":
        with _trees_lock:
            if _trees.pop(name, None) is None:
                return f"Error: tree '{name}' not found."
        return f"Tree '{name}' dropped."

    elif action == "reset":
        ctl = _trees.get(name)
        if not ctl:
            return f"Error: tree '{name}' not found."
        with _trees_lock:
            snapshot = ctl.load(ctl.graph)
        return json.dumps(snapshot.to_dict(), indent=2)

    else:
        return f"Error: unknown tree action '{action}'. Use: load, load_records, list, drop, reset."


# ===================================================================
# TOOL 2: navigate — expand / collapse
# ===================================================================

@mcp.tool()
def navigate(
    action: str,
    name: str = "",
    person_id: str = "",
    generations: int = 1,
    father_json: str = "",
    mother_json: str = "",
) -> str:
    """Expand or collapse displayed ancestors.

    Actions:
      expand        — Show the parents of a displayed person. Params: name, person_id.
      collapse      — Hide everything above a person. Params: name, person_id.
      toggle        — Expand if collapsed, else collapse. Params: name, person_id.
      expand_depth  — Expand up to N generations of loaded ancestors.
                      Params: name, person_id, generations.
      apply_parents — Deliver fetched parent cards and expand.
                      Params: name, person_id, father_json, mother_json.

    Args:
        action: One of: expand, collapse, toggle, expand_depth, apply_parents.
        name: Tree name.
        person_id: Displayed person to act on.
        generations: Depth for expand_depth (1..12).
        father_json: Fetched father card (JSON object) for apply_parents.
        mother_json: Fetched mother card (JSON object) for apply_parents.

    Returns:
        JSON snapshot {"nodes": [...], "connectors": [...]} or an error string.
    """
    try:
        action = validate_action(action, "navigate", _NAVIGATE_ACTIONS)
        name = validate_non_empty_string(name, "name")
        person_id = validate_non_empty_string(person_id, "person_id")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    ctl = _trees.get(name)
    if not ctl:
        return f"Error: tree '{name}' not found."

    try:
        with _trees_lock:
            if action == "expand":
                snapshot = ctl.expand(person_id)
            elif action == "collapse":
                snapshot = ctl.collapse(person_id)
            elif action == "toggle":
                snapshot = ctl.toggle(person_id)
            elif action == "expand_depth":
                snapshot = ctl.expand_to_depth(person_id, validate_generations(generations))
            elif action == "apply_parents":
                father = validate_optional_person(father_json, "father_json")
                mother = validate_optional_person(mother_json, "mother_json")
                snapshot = ctl.apply_fetched_parents(
                    person_id,
                    record_from_dict(father) if father else None,
                    record_from_dict(mother) if mother else None,
                )
            else:
                return f"Error: unknown navigate action '{action}'."
    except ValidationError as exc:
        return f"Error: {exc.message}"
    except MissingParentData as exc:
        return f"Error: {exc.message} Fetch the parents and use action='apply_parents'."
    except StaleFetchResult as exc:
        logger.debug(exc.message)
        return json.dumps(ctl.snapshot().to_dict(), indent=2)
    except (UnknownNode, UnknownPerson, MalformedGraph) as exc:
        return f"Error: {exc.message}"
    return json.dumps(snapshot.to_dict(), indent=2)


# ===================================================================
# TOOL 3: inspect — read-only queries
# ===================================================================

@mcp.tool()
def inspect(
    action: str,
    name: str = "",
) -> str:
    """Read-only inspection of a tree layout.

    Actions:
      nodes      — Displayed cards with coordinates.
      connectors — Routed connector polylines and couple bars.
      bounds     — Bounding box of all cards (padding included).
      info       — Summary: people loaded, cards displayed, generations.
      check      — Verify every layout invariant; lists problems.

    Args:
        action: One of: nodes, connectors, bounds, info, check.
        name: Tree name.

    Returns:
        JSON data or formatted text.
    """
    try:
        action = validate_action(action, "inspect", _INSPECT_ACTIONS)
        name = validate_non_empty_string(name, "name")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    ctl = _trees.get(name)
    if not ctl:
        return f"Error: tree '{name}' not found."

    if action == "nodes":
        return json.dumps([n.to_dict() for n in ctl.get_display_nodes()], indent=2)

    elif action == "connectors":
        return json.dumps([c.to_dict() for c in ctl.get_connectors()], indent=2)

    elif action == "bounds":
        return json.dumps(ctl.get_bounds().to_dict(), indent=2)

    elif action == "info":
        nodes = ctl.get_display_nodes()
        return json.dumps({
            "name": name,
            "root": ctl.state.root_id,
            "people": len(ctl.graph),
            "displayed": len(nodes),
            "expanded": sum(1 for n in nodes if n.is_expanded),
            "max_generation": ctl.state.max_generation(),
            "loaded_depth": ctl.graph.max_depth(),
        }, indent=2)

    elif action == "check":
        problems = ctl.check_invariants()
        if not problems:
            return "No problems found. Layout is clean!"
        return json.dumps(problems, indent=2)

    else:
        return f"Error: unknown inspect action '{action}'. Use: nodes, connectors, bounds, info, check."


# ===================================================================
# Internal helpers
# ===================================================================

def _register(name: str, graph: AncestorGraph) -> str:
    ctl = build_controller(graph)
    with _trees_lock:
        _trees[name] = ctl
    logger.info("Loaded tree '%s' (%d people, root '%s')", name, len(graph), graph.root_id)
    return json.dumps(ctl.snapshot().to_dict(), indent=2)


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
