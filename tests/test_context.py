from windmill_ci.pipeline import Context


def test_merge_keeps_first_writer():
    ctx = Context({"scheme": "App"})
    kept = ctx.merge({"scheme": "Other", "destination": "sim"})
    assert ctx.get("scheme") == "App"
    assert ctx.get("destination") == "sim"
    assert kept == ["scheme"]


def test_merge_same_value_is_not_reported():
    ctx = Context({"scheme": "App"})
    assert ctx.merge({"scheme": "App"}) == []


def test_merged_does_not_mutate():
    ctx = Context({"a": 1})
    data = ctx.merged({"a": 2, "b": 3})
    assert data == {"a": 1, "b": 3}
    assert "b" not in ctx


def test_clone_is_independent():
    ctx = Context({"a": 1})
    c = ctx.clone()
    c.merge({"b": 2})
    assert "b" not in ctx
    assert c.get_string("a") == "1"
    assert c.get_string("missing", "x") == "x"
