"""
Dependency graph validator — cycle guard for blocking links.

Covers:
  1. Self-loop → invalid_link
  2. Exact duplicate (any link type) → duplicate_link
  3. blocked_by equivalent of an existing blocks edge → duplicate_link
  4. Direct inverse (A blocks B, then B blocks A) → cyclic_dependency
  5. Transitive cycle A→B→C, insert C→A → cyclic_dependency
  6. Mixed blocks / blocked_by edges normalise to one direction
  7. Diamond: redundant forward edge accepted, back edge rejected
  8. Depth cap: cycle longer than max_depth is not detected
  9. Non-blocking link types skip the cycle check
 10. Adding then removing an unrelated edge does not change an outcome
 11. LinkCheck.raise_for_conflict maps reasons to exception types
"""

import pytest

from app.core.exceptions import CyclicDependency, DuplicateLink, GraphConflict, InvalidLink
from app.models import db
from app.services import dependency_graph as dg


@pytest.fixture()
def items(make_user, make_workspace, make_item):
    """Eight work items A..H in one workspace, keyed by letter."""
    ws = make_workspace(make_user())
    return {letter: make_item(ws, title=f"Task {letter}") for letter in "ABCDEFGH"}


def _check(items, src, tgt, link_type="blocks", **kw):
    return dg.can_insert(items[src].id, items[tgt].id, link_type, **kw)


def _link(make_link, items, src, tgt, link_type="blocks"):
    return make_link(items[src], items[tgt], link_type)


# ── 1-3: invalid + duplicates ────────────────────────────────────────────


class TestInvalidAndDuplicate:
    def test_self_loop(self, items):
        check = _check(items, "A", "A")
        assert not check
        assert check.reason == dg.INVALID_LINK

    def test_self_loop_non_blocking(self, items):
        assert _check(items, "A", "A", "relates_to").reason == dg.INVALID_LINK

    def test_exact_duplicate(self, items, make_link):
        _link(make_link, items, "A", "B")
        assert _check(items, "A", "B").reason == dg.DUPLICATE_LINK

    def test_exact_duplicate_non_blocking(self, items, make_link):
        _link(make_link, items, "A", "B", "relates_to")
        assert _check(items, "A", "B", "relates_to").reason == dg.DUPLICATE_LINK

    def test_equivalent_blocked_by(self, items, make_link):
        _link(make_link, items, "A", "B", "blocks")
        check = _check(items, "B", "A", "blocked_by")
        assert check.reason == dg.DUPLICATE_LINK

    def test_equivalent_blocks(self, items, make_link):
        _link(make_link, items, "B", "A", "blocked_by")
        assert _check(items, "A", "B", "blocks").reason == dg.DUPLICATE_LINK


# ── 4-7: cycles ──────────────────────────────────────────────────────────


class TestCycles:
    def test_direct_inverse(self, items, make_link):
        _link(make_link, items, "A", "B")
        check = _check(items, "B", "A")
        assert check.reason == dg.CYCLIC_DEPENDENCY
        with pytest.raises(CyclicDependency):
            check.raise_for_conflict()

    def test_direct_inverse_as_blocked_by(self, items, make_link):
        _link(make_link, items, "A", "B")
        # A blocked_by B means B blocks A
        assert _check(items, "A", "B", "blocked_by").reason == dg.CYCLIC_DEPENDENCY

    def test_transitive_depth_two(self, items, make_link):
        _link(make_link, items, "A", "B")
        _link(make_link, items, "B", "C")
        assert _check(items, "C", "A").reason == dg.CYCLIC_DEPENDENCY

    def test_mixed_directions(self, items, make_link):
        _link(make_link, items, "A", "B", "blocks")
        _link(make_link, items, "C", "B", "blocked_by")   # B blocks C
        _link(make_link, items, "D", "C", "blocked_by")   # C blocks D
        assert _check(items, "D", "A").reason == dg.CYCLIC_DEPENDENCY
        assert _check(items, "A", "D", "blocked_by").reason == dg.CYCLIC_DEPENDENCY

    def test_diamond(self, items, make_link):
        for src, tgt in (("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")):
            _link(make_link, items, src, tgt)
        assert _check(items, "A", "D")
        assert _check(items, "D", "A").reason == dg.CYCLIC_DEPENDENCY

    def test_acyclic_inserts_accepted(self, items, make_link):
        _link(make_link, items, "A", "B")
        _link(make_link, items, "B", "C")
        assert _check(items, "A", "C")
        assert _check(items, "C", "D")
        assert _check(items, "E", "A")
        assert _check(items, "B", "E")


# ── 8: depth cap ─────────────────────────────────────────────────────────


class TestDepthCap:
    def _chain(self, make_link, items, letters):
        for src, tgt in zip(letters, letters[1:]):
            _link(make_link, items, src, tgt)

    def test_cycle_within_cap(self, items, make_link):
        self._chain(make_link, items, "ABCD")          # 3 edge levels
        assert _check(items, "D", "A", max_depth=3).reason == dg.CYCLIC_DEPENDENCY

    def test_cycle_beyond_cap_not_detected(self, items, make_link):
        self._chain(make_link, items, "ABCDE")         # 4 edge levels
        assert _check(items, "E", "A", max_depth=3)
        assert _check(items, "E", "A", max_depth=4).reason == dg.CYCLIC_DEPENDENCY

    def test_default_cap_covers_long_chain(self, items, make_link):
        self._chain(make_link, items, "ABCDEFGH")      # 7 edge levels
        assert _check(items, "H", "A").reason == dg.CYCLIC_DEPENDENCY

    def test_reaches(self, items, make_link):
        self._chain(make_link, items, "ABC")
        assert dg.reaches(items["A"].id, items["C"].id, max_depth=2)
        assert not dg.reaches(items["A"].id, items["C"].id, max_depth=1)
        assert not dg.reaches(items["C"].id, items["A"].id)


# ── 9-10: non-blocking types + invariance ────────────────────────────────


class TestNonBlockingAndInvariance:
    @pytest.mark.parametrize("link_type", ["relates_to", "duplicates", "clones"])
    def test_non_blocking_reverse_allowed(self, items, make_link, link_type):
        _link(make_link, items, "A", "B", link_type)
        assert _check(items, "B", "A", link_type)

    def test_non_blocking_edges_not_traversed(self, items, make_link):
        _link(make_link, items, "A", "B", "relates_to")
        assert _check(items, "B", "A")

    def test_unrelated_edge_roundtrip(self, items, make_link):
        _link(make_link, items, "A", "B")
        _link(make_link, items, "B", "C")
        before = (_check(items, "C", "A").reason, bool(_check(items, "A", "D")))

        unrelated = _link(make_link, items, "E", "F")
        assert not _check(items, "F", "E")
        db.session.delete(unrelated)
        db.session.commit()

        after = (_check(items, "C", "A").reason, bool(_check(items, "A", "D")))
        assert before == after == (dg.CYCLIC_DEPENDENCY, True)

    def test_blocked_by_any(self, items, make_link):
        _link(make_link, items, "A", "B", "blocks")
        _link(make_link, items, "C", "A", "blocked_by")
        _link(make_link, items, "A", "D", "relates_to")
        got = dg.blocked_by_any({items["A"].id})
        assert got == {items["B"].id, items["C"].id}
        assert dg.blocked_by_any(set()) == set()


# ── 11: exceptions ───────────────────────────────────────────────────────


class TestLinkCheck:
    def test_ok_does_not_raise(self):
        dg.OK.raise_for_conflict()

    @pytest.mark.parametrize("reason,exc_type", [
        (dg.INVALID_LINK, InvalidLink),
        (dg.DUPLICATE_LINK, DuplicateLink),
        (dg.CYCLIC_DEPENDENCY, CyclicDependency),
    ])
    def test_mapping(self, reason, exc_type):
        with pytest.raises(exc_type) as exc:
            dg.LinkCheck(False, reason, "nope").raise_for_conflict()
        assert isinstance(exc.value, GraphConflict)
        assert exc.value.status == 409
        assert exc.value.details["reason"] == reason
        assert exc.value.message == "nope"

    def test_normalize(self):
        assert dg.normalize(1, 2, "blocks") == (1, 2)
        assert dg.normalize(1, 2, "blocked_by") == (2, 1)
