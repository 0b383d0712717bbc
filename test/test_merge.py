from contractor_sync.compare import compare_contractors
from contractor_sync.merge import merge_by_id, merge_by_id_with_conflicts, merge_by_name
from contractor_sync.model import Contractor


def _pairs(contractors):
    return [(c.id, c.name) for c in contractors]


# --------------------------------------------------------------------
# ID-KEYED (CLOUD) MERGE
# --------------------------------------------------------------------
def test_remote_wins_on_id_conflict():
    merged, conflicts = merge_by_id_with_conflicts([Contractor(1, "X")], [Contractor(1, "Y")])
    assert _pairs(merged) == [(1, "Y")]
    assert len(conflicts) == 1
    assert conflicts[0].reason == "id_collision"
    assert conflicts[0].local_name == "X"


def test_union_is_sorted_by_id():
    merged = merge_by_id([Contractor(2, "L")], [Contractor(1, "R")])
    assert _pairs(merged) == [(1, "R"), (2, "L")]


def test_merge_is_idempotent():
    local = [Contractor(1, "A"), Contractor(3, "C"), Contractor(7, "b")]
    remote = [Contractor(1, "Z"), Contractor(2, "B"), Contractor(5, "E")]
    once = merge_by_id(local, remote)
    twice = merge_by_id(once, remote)
    assert _pairs(twice) == _pairs(once)


def test_merge_is_not_commutative():
    a = [Contractor(1, "A")]
    b = [Contractor(1, "B")]
    assert _pairs(merge_by_id(a, b)) != _pairs(merge_by_id(b, a))


def test_local_name_clash_with_remote_record_is_dropped():
    merged, conflicts = merge_by_id_with_conflicts(
        [Contractor(5, "acme")], [Contractor(1, "Acme")]
    )
    assert _pairs(merged) == [(1, "Acme")]
    assert conflicts[0].reason == "name_collision"


def test_merge_keeps_ids_and_names_unique():
    local = [Contractor(1, "A"), Contractor(2, "B"), Contractor(4, "D")]
    remote = [Contractor(2, "b2"), Contractor(3, "d"), Contractor(3, "dup")]
    merged = merge_by_id(local, remote)
    ids = [c.id for c in merged]
    names = [c.name.casefold() for c in merged]
    assert len(ids) == len(set(ids))
    assert len(names) == len(set(names))
    assert _pairs(merged) == [(1, "A"), (2, "b2"), (3, "d")]


def test_merge_returns_copies():
    remote = [Contractor(1, "R")]
    merged = merge_by_id([], remote)
    merged[0].name = "changed"
    assert remote[0].name == "R"


# --------------------------------------------------------------------
# NAME-KEYED (EXCHANGE) MERGE
# --------------------------------------------------------------------
def test_merge_by_name_first_seen_wins():
    first = [Contractor(10, "Acme", "Dealer")]
    second = [Contractor(1, "Acme", "Retail"), Contractor(2, "Globex")]
    merged = merge_by_name(first, second)
    assert [(c.id, c.name, c.category) for c in merged][0] == (10, "Acme", "Dealer")
    assert [c.name for c in merged] == ["Acme", "Globex"]


def test_merge_by_name_is_case_sensitive():
    merged = merge_by_name([Contractor(1, "acme")], [Contractor(2, "Acme")])
    assert [c.name for c in merged] == ["acme", "Acme"]


# --------------------------------------------------------------------
# COMPARISON
# --------------------------------------------------------------------
def test_compare_contractors_logic():
    local = [Contractor(1, "ABC"), Contractor(2, "XYZ"), Contractor(3, "New")]
    remote = [Contractor(1, "abc"), Contractor(2, "Diff"), Contractor(99, "Only cloud")]

    result = compare_contractors(local, remote)

    assert result.matching_count == 1
    assert len(result.conflicts) == 1
    assert result.conflicts[0].local_name == "XYZ"
    assert [c.name for c in result.local_only] == ["New"]
    assert [c.name for c in result.remote_only] == ["Only cloud"]
