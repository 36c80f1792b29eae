"""Tests for the expansion controller."""

import random

import pytest

from pedigree_layout.errors import (
    LayoutInvariantError,
    MalformedGraph,
    MissingParentData,
    StaleFetchResult,
    UnknownNode,
)
from pedigree_layout.expansion import ExpansionController, build_controller
from pedigree_layout.graph import AncestorGraph
from pedigree_layout.layout import PedigreeLayoutConfig
from pedigree_layout.models import PersonRecord, Side


def _pedigree(depth: int, more_above: bool = False) -> AncestorGraph:
    """Complete pedigree P1..P(2^(depth+1)-1) keyed by Ahnentafel number."""
    records = []
    for index in range(1, 2 ** (depth + 1)):
        has_parents = index.bit_length() - 1 < depth
        records.append(PersonRecord(
            id=f"P{index}",
            name=f"Person {index}",
            father_id=f"P{2 * index}" if has_parents else None,
            mother_id=f"P{2 * index + 1}" if has_parents else None,
            has_more_ancestors=more_above and not has_parents,
        ))
    return AncestorGraph("P1", records)


def _xs(ctl: ExpansionController) -> dict[str, float]:
    return {n.id: n.x for n in ctl.get_display_nodes()}


class TestExpand:
    def test_root_starts_alone(self) -> None:
        ctl = ExpansionController(_pedigree(2))
        nodes = ctl.get_display_nodes()
        assert [n.id for n in nodes] == ["P1"]
        assert nodes[0].x == 0
        assert nodes[0].side is Side.ROOT
        assert ctl.get_connectors() == []

    def test_expand_root(self) -> None:
        ctl = ExpansionController(_pedigree(2))
        snap = ctl.expand("P1")
        assert snap.node("P2").x == -134
        assert snap.node("P3").x == 134
        assert snap.node("P2").side is Side.PATERNAL
        assert snap.node("P3").side is Side.MATERNAL
        # Parents sit one row above the root
        assert snap.node("P1").y - snap.node("P2").y == ctl.config.row_height

    def test_expand_keeps_existing_positions(self) -> None:
        ctl = ExpansionController(_pedigree(3))
        ctl.expand("P1")
        before = _xs(ctl)
        ctl.expand("P2")
        after = _xs(ctl)
        for nid, x in before.items():
            assert after[nid] == x
        assert (after["P4"], after["P5"]) == (-402, -134)

    def test_grandparent_collision_shifts_outer_branch(self) -> None:
        ctl = ExpansionController(_pedigree(3))
        for nid in ("P1", "P2", "P4"):
            ctl.expand(nid)
        assert (_xs(ctl)["P8"], _xs(ctl)["P9"]) == (-536, -268)

        ctl.expand("P5")
        xs = _xs(ctl)
        assert (xs["P10"], xs["P11"]) == (-402, -134)
        assert (xs["P8"], xs["P9"]) == (-1072, -804)
        row = sorted(x for nid, x in xs.items() if nid in {"P8", "P9", "P10", "P11"})
        assert all(b - a >= ctl.config.spacing for a, b in zip(row, row[1:]))
        assert [r.owner_id for r in ctl.state.shift_journal] == ["P5", "P5"]
        assert ctl.check_invariants() == []

    def test_maternal_side_mirrors_paternal(self) -> None:
        paternal = ExpansionController(_pedigree(3))
        for nid in ("P1", "P2", "P4", "P5"):
            paternal.expand(nid)
        maternal = ExpansionController(_pedigree(3))
        for nid in ("P1", "P3", "P7", "P6"):
            maternal.expand(nid)
        mirror = {"P2": "P3", "P4": "P7", "P5": "P6",
                  "P8": "P15", "P9": "P14", "P10": "P13", "P11": "P12"}
        p, m = _xs(paternal), _xs(maternal)
        for left, right in mirror.items():
            assert m[right] == -p[left]

    def test_expand_is_idempotent(self) -> None:
        ctl = ExpansionController(_pedigree(2))
        first = ctl.expand("P1").to_dict()
        second = ctl.expand("P1").to_dict()
        assert first == second

    def test_single_parent(self) -> None:
        g = AncestorGraph("a", [PersonRecord(id="a", mother_id="m"), PersonRecord(id="m")])
        ctl = ExpansionController(g)
        snap = ctl.expand("a")
        assert snap.node("m").x == 134
        assert snap.node("m").ahnentafel == 3
        assert ctl.state.nodes["a"].father_id is None

    def test_leaf_is_noop(self) -> None:
        ctl = ExpansionController(_pedigree(1))
        ctl.expand("P1")
        snap = ctl.expand("P2")
        assert len(snap.nodes) == 3
        assert not ctl.state.nodes["P2"].is_expanded

    def test_snapshot_is_detached(self) -> None:
        ctl = ExpansionController(_pedigree(3))
        for nid in ("P1", "P2", "P4"):
            ctl.expand(nid)
        snap = ctl.snapshot()
        ctl.expand("P5")
        assert snap.node("P8").x == -536


class TestExpandErrors:
    def test_unknown_node(self) -> None:
        ctl = ExpansionController(_pedigree(2))
        with pytest.raises(UnknownNode):
            ctl.expand("P4")
        with pytest.raises(UnknownNode):
            ctl.collapse("nobody")
        with pytest.raises(UnknownNode):
            ctl.toggle("nobody")

    def test_missing_parent_data_leaves_layout_untouched(self) -> None:
        ctl = ExpansionController(_pedigree(1, more_above=True))
        ctl.expand("P1")
        before = ctl.state.positions()
        with pytest.raises(MissingParentData) as exc_info:
            ctl.expand("P2")
        assert exc_info.value.person_id == "P2"
        assert ctl.state.positions() == before
        assert ctl.needs_fetch("P2")

    def test_person_reached_through_two_children(self) -> None:
        g = AncestorGraph("a", [
            PersonRecord(id="a", father_id="f", mother_id="m"),
            PersonRecord(id="f", father_id="g"),
            PersonRecord(id="m", father_id="g"),
            PersonRecord(id="g"),
        ])
        ctl = ExpansionController(g)
        ctl.expand("a")
        ctl.expand("f")
        before = ctl.state.positions()
        with pytest.raises(MalformedGraph, match="already displayed"):
            ctl.expand("m")
        assert ctl.state.positions() == before
        assert not ctl.state.nodes["m"].is_expanded

    def test_same_person_as_both_parents(self) -> None:
        g = AncestorGraph("a", [PersonRecord(id="a", father_id="x", mother_id="x"), PersonRecord(id="x")])
        ctl = ExpansionController(g)
        with pytest.raises(MalformedGraph):
            ctl.expand("a")

    def test_bad_config_rejected(self) -> None:
        with pytest.raises(LayoutInvariantError):
            ExpansionController(_pedigree(1), PedigreeLayoutConfig(couple_offset=10))
        with pytest.raises(LayoutInvariantError):
            build_controller(_pedigree(1), PedigreeLayoutConfig(card_height=0))


class TestCollapse:
    def test_collapse_removes_branch(self) -> None:
        ctl = ExpansionController(_pedigree(3))
        for nid in ("P1", "P2", "P3", "P4", "P6"):
            ctl.expand(nid)
        snap = ctl.collapse("P2")
        ids = {n.id for n in snap.nodes}
        assert ids == {"P1", "P2", "P3", "P6", "P7", "P12", "P13"}
        assert not ctl.state.nodes["P2"].is_expanded
        assert ctl.state.nodes["P2"].parent_ids == []
        assert ctl.state.nodes["P1"].is_expanded

    def test_collapse_root_keeps_root(self) -> None:
        ctl = ExpansionController(_pedigree(2))
        ctl.expand_to_depth("P1", 2)
        snap = ctl.collapse("P1")
        assert [n.id for n in snap.nodes] == ["P1"]
        assert snap.connectors == []
        assert ctl.state.shift_journal == []

    def test_collapse_of_collapsed_node_is_noop(self) -> None:
        ctl = ExpansionController(_pedigree(2))
        ctl.expand("P1")
        assert len(ctl.collapse("P2").nodes) == 3

    def test_collapse_undoes_expansion_shifts(self) -> None:
        ctl = ExpansionController(_pedigree(3))
        for nid in ("P1", "P2", "P4"):
            ctl.expand(nid)
        before = ctl.state.positions()
        ctl.expand("P5")
        assert _xs(ctl)["P8"] == -1072
        ctl.collapse("P5")
        assert ctl.state.positions() == before
        assert ctl.state.shift_journal == []

    def test_collapse_below_keeps_needed_shift(self) -> None:
        ctl = ExpansionController(_pedigree(3))
        for nid in ("P1", "P2", "P4", "P5"):
            ctl.expand(nid)
        # P8/P9 were pushed out by P5's expansion; collapsing P4 removes them
        ctl.collapse("P4")
        xs = _xs(ctl)
        assert "P8" not in xs
        assert (xs["P10"], xs["P11"]) == (-402, -134)
        assert ctl.check_invariants() == []

    def test_toggle(self) -> None:
        ctl = ExpansionController(_pedigree(2))
        assert len(ctl.toggle("P1").nodes) == 3
        assert len(ctl.toggle("P1").nodes) == 1


class TestExpandToDepth:
    def test_depth_limit(self) -> None:
        ctl = ExpansionController(_pedigree(3))
        snap = ctl.expand_to_depth("P1", 2)
        assert len(snap.nodes) == 7
        assert not ctl.state.nodes["P4"].is_expanded
        assert ctl.check_invariants() == []

    def test_full_depth(self) -> None:
        ctl = ExpansionController(_pedigree(3))
        snap = ctl.expand_to_depth("P1", 10)
        assert len(snap.nodes) == 15
        assert ctl.check_invariants() == []

    def test_skips_branches_needing_fetch(self) -> None:
        ctl = ExpansionController(_pedigree(1, more_above=True))
        snap = ctl.expand_to_depth("P1", 3)
        assert len(snap.nodes) == 3

    def test_shared_grandparent_branch_is_skipped(self) -> None:
        g = AncestorGraph("a", [
            PersonRecord(id="a", father_id="f", mother_id="m"),
            PersonRecord(id="f", father_id="g", mother_id="h"),
            PersonRecord(id="m", father_id="g", mother_id="k"),
            PersonRecord(id="g"),
            PersonRecord(id="h"),
            PersonRecord(id="k"),
        ])
        ctl = ExpansionController(g)
        snap = ctl.expand_to_depth("a", 3)
        assert {n.id for n in snap.nodes} == {"a", "f", "m", "g", "h"}
        assert not ctl.state.nodes["m"].is_expanded
        assert ctl.state.nodes["g"].child_id == "f"
        assert ctl.check_invariants() == []


class TestFetchHandOff:
    def _graph(self) -> AncestorGraph:
        return AncestorGraph("a", [PersonRecord(id="a", has_more_ancestors=True)])

    def test_apply_fetched_parents(self) -> None:
        ctl = ExpansionController(self._graph())
        assert ctl.needs_fetch("a")
        ctl.begin_fetch("a")
        assert ctl.is_fetching("a")
        snap = ctl.apply_fetched_parents(
            "a", PersonRecord(id="f", has_more_ancestors=True), PersonRecord(id="m"),
        )
        assert (snap.node("f").x, snap.node("m").x) == (-134, 134)
        assert not ctl.is_fetching("a")
        assert not ctl.graph.get_person("a").has_more_ancestors
        assert ctl.needs_fetch("f")
        assert not ctl.needs_fetch("m")

    def test_stale_after_collapse(self) -> None:
        ctl = ExpansionController(self._graph())
        ctl.apply_fetched_parents("a", PersonRecord(id="f", has_more_ancestors=True))
        ctl.begin_fetch("f")
        ctl.collapse("a")
        assert not ctl.is_fetching("f")
        with pytest.raises(StaleFetchResult):
            ctl.apply_fetched_parents("f", PersonRecord(id="ff"))
        assert [n.id for n in ctl.get_display_nodes()] == ["a"]

    def test_half_loaded_couple_is_fetched_first(self) -> None:
        g = AncestorGraph("a", [
            PersonRecord(id="a", father_id="f", has_more_ancestors=True),
            PersonRecord(id="f"),
        ])
        ctl = ExpansionController(g)
        with pytest.raises(MissingParentData):
            ctl.expand("a")
        assert len(ctl.state) == 1
        assert ctl.needs_fetch("a")
        snap = ctl.apply_fetched_parents("a", mother=PersonRecord(id="m"))
        assert (snap.node("f").x, snap.node("m").x) == (-134, 134)
        assert not ctl.needs_fetch("a")

    def test_stale_when_already_expanded(self) -> None:
        ctl = ExpansionController(_pedigree(1))
        ctl.expand("P1")
        with pytest.raises(StaleFetchResult):
            ctl.apply_fetched_parents("P1", PersonRecord(id="x"))

    def test_empty_fetch(self) -> None:
        ctl = ExpansionController(self._graph())
        with pytest.raises(MissingParentData):
            ctl.apply_fetched_parents("a")

    def test_fetched_self_parent(self) -> None:
        ctl = ExpansionController(self._graph())
        with pytest.raises(MalformedGraph):
            ctl.apply_fetched_parents("a", PersonRecord(id="a"))
        assert len(ctl.state) == 1

    def test_load_resets(self) -> None:
        ctl = ExpansionController(_pedigree(2))
        ctl.expand_to_depth("P1", 2)
        snap = ctl.load(self._graph())
        assert [n.id for n in snap.nodes] == ["a"]
        assert ctl.state.shift_journal == []


class TestRandomSequences:
    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_invariants_hold_throughout(self, seed: int) -> None:
        rng = random.Random(seed)
        ctl = ExpansionController(_pedigree(4))
        for _ in range(150):
            nid = rng.choice(sorted(ctl.state.nodes))
            side = ctl.state.nodes[nid].side
            before = {n.id: (n.side, n.x) for n in ctl.state}
            ctl.toggle(nid)
            assert ctl.check_invariants() == []
            # Only the toggled side may move
            for n in ctl.state:
                if n.id in before and before[n.id][0] is not side:
                    assert n.x == before[n.id][1]

    @pytest.mark.parametrize("seed", [3, 11])
    def test_collapse_undoes_expand(self, seed: int) -> None:
        rng = random.Random(seed)
        ctl = ExpansionController(_pedigree(4))
        for _ in range(60):
            candidates = sorted(
                n.id for n in ctl.state
                if not n.is_expanded and ctl.graph.has_parent_data(n.id)
            )
            if not candidates:
                ctl.collapse("P1")
                continue
            nid = rng.choice(candidates)
            before = ctl.state.positions()
            ctl.expand(nid)
            ctl.collapse(nid)
            assert ctl.state.positions() == before
            # Keep growing the tree so later checks run against busier layouts
            ctl.expand(nid)
