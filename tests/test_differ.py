import copy

from apidelta.diffing.aggregate import compare_documents
from apidelta.diffing.differ import MAX_DEPTH, classify_severity, diff, find_best_match


def kinds(diffs):
    return [(d.path, d.kind) for d in diffs]


def test_deep_copy_has_no_diffs():
    doc = {"data": {"items": [{"id": 1, "tags": ["a", "b"]}, {"id": 2, "tags": []}]}, "ok": True}
    assert diff(doc, copy.deepcopy(doc)) == []


def test_reordered_records_are_identical_when_order_insensitive():
    a = [{"id": 1, "x": 1}, {"id": 2, "x": 2}]
    b = [{"id": 2, "x": 2}, {"id": 1, "x": 1}]
    assert diff(a, b) == []


def test_reordered_records_diff_by_position_when_order_sensitive():
    a = [{"id": 1, "x": 1}, {"id": 2, "x": 2}]
    b = [{"id": 2, "x": 2}, {"id": 1, "x": 1}]
    out = diff(a, b, order_sensitive=True)
    assert kinds(out) == [
        ((0, "id"), "changed"),
        ((0, "x"), "changed"),
        ((1, "id"), "changed"),
        ((1, "x"), "changed"),
    ]


def test_order_sensitive_length_mismatch():
    out = diff([1, 2], [1, 2, 3], order_sensitive=True)
    assert kinds(out) == [((2,), "added")]
    assert out[0].rhs == 3

    out = diff([1, 2, 3], [1], order_sensitive=True)
    assert kinds(out) == [((1,), "deleted"), ((2,), "deleted")]


def test_partial_match_at_point_eight_is_recursed():
    a = [{"a": 1, "b": 2, "c": 3, "d": 4, "e": 5}]
    b = [{"a": 1, "b": 2, "c": 3, "d": 4, "e": 6}]
    out = diff(a, b)
    assert kinds(out) == [((0, "e"), "changed")]
    assert out[0].lhs == 5 and out[0].rhs == 6


def test_match_at_point_five_is_removed_plus_added():
    a = [{"a": 1, "b": 2}]
    b = [{"a": 1, "b": 3}]
    out = diff(a, b)
    assert kinds(out) == [((0,), "deleted"), ((0,), "added")]
    assert out[0].lhs == {"a": 1, "b": 2}
    assert out[1].rhs == {"a": 1, "b": 3}


def test_greedy_first_seen_alignment():
    # both a-items score 1.0 against b[0]; the first one takes it
    a = [{"k": 1}, {"k": 1}]
    b = [{"k": 1}]
    out = diff(a, b)
    assert kinds(out) == [((1,), "deleted")]


def test_find_best_match_ignores_zero_scores_and_used():
    assert find_best_match(1, [2, 3], set()) is None
    assert find_best_match(1, [1, 1], {0}) == (1, 1.0)
    assert find_best_match({"a": 1}, [], set()) is None


def test_object_keys_added_and_deleted():
    out = diff({"a": 1, "gone": 2}, {"a": 1, "new": 3})
    assert kinds(out) == [(("gone",), "deleted"), (("new",), "added")]
    assert out[0].lhs == 2
    assert out[1].rhs == 3


def test_type_change_is_critical_and_stops_recursion():
    out = diff({"v": {"x": 1}}, {"v": [1]})
    assert len(out) == 1
    assert out[0].kind == "type-changed"
    assert out[0].severity == "critical"
    assert out[0].path == ("v",)


def test_number_vs_string_is_type_change():
    out = diff({"n": 1}, {"n": "1"})
    assert kinds(out) == [(("n",), "type-changed")]


def test_null_vs_container_is_a_change():
    out = diff({"v": None}, {"v": {"x": 1}})
    assert kinds(out) == [(("v",), "changed")]

    out = diff({"v": None}, {"v": "x"})
    assert kinds(out) == [(("v",), "type-changed")]


def test_severity_markers():
    assert classify_severity("user.id", "changed") == "high"
    assert classify_severity("data.name", "changed") == "high"
    assert classify_severity("meta.page", "added") == "medium"
    assert classify_severity("created_date", "changed") == "medium"
    assert classify_severity("title", "changed") == "low"
    assert classify_severity("title", "type-changed") == "critical"
    # substring scan: "valid" contains "id"
    assert classify_severity("valid", "changed") == "high"


def test_severity_is_computed_from_dotted_path():
    out = diff({"items": [{"count": 1}]}, {"items": [{"count": 2}]}, order_sensitive=True)
    assert out[0].path_str == "items.0.count"
    assert out[0].severity == "medium"


def test_depth_bound_emits_single_type_change():
    a: dict = {}
    b: dict = {}
    cur_a, cur_b = a, b
    for _ in range(MAX_DEPTH + 5):
        cur_a["n"] = {}
        cur_b["n"] = {}
        cur_a, cur_b = cur_a["n"], cur_b["n"]
    cur_a["leaf"] = 1
    cur_b["leaf"] = 2

    out = diff(a, b)
    assert len(out) == 1
    assert out[0].kind == "type-changed"
    assert len(out[0].path) == MAX_DEPTH + 1


def test_deep_copy_past_depth_bound_is_identical():
    doc: dict = {"leaf": [1, {"x": True}]}
    for _ in range(MAX_DEPTH + 5):
        doc = {"n": doc}

    assert diff(doc, copy.deepcopy(doc)) == []
    assert compare_documents(doc, copy.deepcopy(doc)).identical


def test_root_primitive_change():
    out = diff("a", "b")
    assert kinds(out) == [((), "changed")]
