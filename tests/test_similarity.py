from apidelta.diffing.similarity import MAX_DEPTH, score, value_type


def test_value_type_checks_bool_before_number():
    assert value_type(True) == "boolean"
    assert value_type(1) == "number"
    assert value_type(1.5) == "number"
    assert value_type(None) == "null"
    assert value_type([]) == "array"
    assert value_type({}) == "object"
    assert value_type("x") == "string"


def test_primitives_are_all_or_nothing():
    assert score(1, 1) == 1.0
    assert score("a", "b") == 0.0
    assert score(None, None) == 1.0
    assert score(1, "1") == 0.0
    # True == 1 in Python, but they are different JSON types
    assert score(True, 1) == 0.0


def test_arrays_use_jaccard_over_serialized_items():
    assert score([], []) == 1.0
    assert score([], [1]) == 0.0
    assert score([1, 2, 3], [3, 2, 1]) == 1.0
    assert score([1, 2], [2, 3]) == 1 / 3
    assert score([{"a": 1, "b": 2}], [{"b": 2, "a": 1}]) == 1.0


def test_objects_average_over_key_union():
    assert score({}, {}) == 1.0
    assert score({"a": 1, "b": 2}, {"a": 1, "b": 3}) == 0.5
    assert score({"a": 1}, {"b": 1}) == 0.0
    # shared "a" scores 1, "b" exists on one side only
    assert score({"a": 1, "b": 2}, {"a": 1}) == 0.5


def test_nested_objects_recurse():
    a = {"x": {"p": 1, "q": 2}, "y": 1}
    b = {"x": {"p": 1, "q": 9}, "y": 1}
    assert score(a, b) == 0.75


def nested(depth: int, leaf) -> dict:
    doc: dict = {"leaf": leaf}
    for _ in range(depth):
        doc = {"n": doc}
    return doc


def test_depth_bound_fails_closed():
    assert score(nested(MAX_DEPTH + 5, 1), nested(MAX_DEPTH + 5, 2)) == 0.0


def test_equal_documents_past_depth_bound_still_match():
    assert score(nested(MAX_DEPTH + 5, 1), nested(MAX_DEPTH + 5, 1)) == 1.0


def test_identity_short_circuit():
    shared = {"a": [1, 2, {"b": 3}]}
    assert score(shared, shared) == 1.0
