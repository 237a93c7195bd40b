# tests/test_templating.py
from parking_gateway.templating import apply_template, get_value_by_path, replace_templates, stringify


def test_plate_substituted_into_url():
    url = apply_template("https://x/y?p={{plate}}", {"plate": "粤B12345"})
    assert url == "https://x/y?p=粤B12345"


def test_legacy_hash_spelling_and_whitespace():
    ctx = {"plate": "A1", "name": "Li"}
    assert apply_template("#{plate}-{{ name }}", ctx) == "A1-Li"


def test_missing_and_none_values_become_empty():
    assert apply_template("[{{nope}}][{{phone}}]", {"phone": None}) == "[][]"


def test_dot_paths_and_indices():
    ctx = {"info": {"errmsg": "ok"}, "items": ["a", "b"]}
    assert apply_template("{{info.errmsg}}", ctx) == "ok"
    assert apply_template("{{items[1]}}", ctx) == "b"
    assert apply_template("{{items.5}}", ctx) == ""


def test_values_stringified_like_browser():
    assert stringify(True) == "true"
    assert stringify(3.0) == "3"
    assert stringify(2.5) == "2.5"
    assert stringify({"a": 1}) == '{"a":1}'


def test_no_placeholders_left_when_context_complete():
    ctx = {"plate": "B2", "note": "vip", "phone": "13800000000"}
    for text in ["{{plate}}", "a={{plate}}&b={{note}}", "{{phone}}{{phone}}", "#{note}"]:
        out = apply_template(text, ctx)
        assert "{{" not in out and "}}" not in out


def test_replace_templates_keeps_shape():
    value = {"a": "{{plate}}", "b": ["{{plate}}", 1, None], "c": {"d": "x{{plate}}"}}
    out = replace_templates(value, {"plate": "C3"})
    assert out == {"a": "C3", "b": ["C3", 1, None], "c": {"d": "xC3"}}
    assert value["a"] == "{{plate}}"


def test_get_value_by_path_stops_on_scalars():
    assert get_value_by_path({"a": "text"}, "a.b") is None
    assert get_value_by_path({"a": 1}, "") is None


def test_get_value_by_path_separates_null_from_missing():
    missing = object()
    assert get_value_by_path({"a": None}, "a", missing) is None
    assert get_value_by_path({"a": None}, "a.b", missing) is missing
    assert get_value_by_path({"a": [1]}, "a[3]", missing) is missing
