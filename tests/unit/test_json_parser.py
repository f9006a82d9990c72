"""Unit tests for JSON translation documents and the shape cache."""
import json
import logging

import pytest

from translator_sync.errors import FormatError
from translator_sync.json_parser import (
    ResourceShape,
    ShapeCache,
    flatten_json,
    infer_shape_from_keys,
    parse_json_content,
    resolve_shape,
    serialize_json_content,
    unflatten_json
)

SENTENCE_KEY = 'Ask anything. Type "/" for x.'


class TestParseJsonContent:

    def test_flat_document_with_sentence_keys(self):
        cache = ShapeCache()
        content = json.dumps({"a.b": "x", SENTENCE_KEY: "y"})
        result = parse_json_content(content, "en.json", cache)
        assert result == {"a.b": "x", SENTENCE_KEY: "y"}
        assert cache.get("en.json") == ResourceShape.FLAT

    def test_nested_document_is_flattened_in_order(self):
        cache = ShapeCache()
        content = json.dumps({"user": {"name": "Name", "email": "Email"}, "title": "Title"})
        result = parse_json_content(content, "en.json", cache)
        assert list(result.items()) == [("user.name", "Name"), ("user.email", "Email"), ("title", "Title")]
        assert cache.get("en.json") == ResourceShape.NESTED

    def test_empty_document_records_no_shape(self):
        cache = ShapeCache()
        assert parse_json_content("{}", "es.json", cache) == {}
        assert len(cache) == 0

    def test_invalid_json_reports_the_line(self):
        with pytest.raises(FormatError, match="invalid JSON") as exc_info:
            parse_json_content('{\n  "a": "x"\n  "b": "y"\n}', "es.json")
        assert exc_info.value.line == 3
        assert exc_info.value.file_path == "es.json"

    def test_non_string_leaf_is_rejected(self):
        with pytest.raises(FormatError, match="at 'count'"):
            parse_json_content('{"count": 1}', "es.json")

    def test_top_level_array_is_rejected(self):
        with pytest.raises(FormatError, match="at '<root>'"):
            parse_json_content('["a", "b"]', "es.json")


class TestSerializeJsonContent:

    def test_flat_file_with_dotted_keys_stays_flat(self):
        cache = ShapeCache()
        translations = parse_json_content(json.dumps({"user.name": "Name", "user.email": "Email"}), "es.json", cache)
        document = json.loads(serialize_json_content(translations, "es.json", cache))
        assert document == {"user.name": "Name", "user.email": "Email"}

    def test_nested_file_is_written_nested(self):
        cache = ShapeCache()
        translations = parse_json_content(json.dumps({"user": {"name": "Name"}}), "es.json", cache)
        translations["user.email"] = "Correo"
        document = json.loads(serialize_json_content(translations, "es.json", cache))
        assert document == {"user": {"name": "Name", "email": "Correo"}}

    def test_output_format(self):
        output = serialize_json_content({"greeting": "¡Hola!"}, shape=ResourceShape.FLAT)
        assert output == '{\n  "greeting": "¡Hola!"\n}\n'

    def test_explicit_shape_used_for_unknown_file(self):
        output = serialize_json_content({"user.name": "Name"}, "new.json", ShapeCache(), ResourceShape.NESTED)
        assert json.loads(output) == {"user": {"name": "Name"}}


class TestShapeResolution:

    def test_cached_shape_beats_explicit_shape(self):
        cache = ShapeCache()
        cache.record("es.json", ResourceShape.FLAT)
        assert resolve_shape({"a.b": "x"}, "es.json", cache, ResourceShape.NESTED) == ResourceShape.FLAT

    def test_explicit_shape_beats_heuristic(self):
        assert resolve_shape({"title": "x"}, "es.json", ShapeCache(), ResourceShape.NESTED) == ResourceShape.NESTED

    def test_heuristic_when_nothing_is_known(self):
        assert resolve_shape({"user.name": "a", "user.email": "b"}) == ResourceShape.NESTED

    def test_cache_is_append_only(self, caplog):
        cache = ShapeCache()
        cache.record("es.json", ResourceShape.FLAT)
        with caplog.at_level(logging.WARNING):
            assert cache.record("./es.json", ResourceShape.NESTED) == ResourceShape.FLAT
        assert cache.get("es.json") == ResourceShape.FLAT
        assert "keeping flat" in caplog.text
        assert "es.json" in cache


class TestInferShapeFromKeys:

    def test_shared_prefix_means_nested(self):
        assert infer_shape_from_keys(["user.name", "user.email"]) == ResourceShape.NESTED

    def test_sentence_key_stays_flat(self):
        assert infer_shape_from_keys([SENTENCE_KEY, "other.key", "other.value"]) == ResourceShape.FLAT

    def test_leaf_and_parent_side_by_side_stays_flat(self):
        assert infer_shape_from_keys(["a", "a.b", "a.c"]) == ResourceShape.FLAT

    def test_single_dotted_key_stays_flat(self):
        assert infer_shape_from_keys(["user.name", "title"]) == ResourceShape.FLAT


class TestFlattenUnflatten:

    def test_flatten(self):
        assert flatten_json({"a": {"b": {"c": "x"}}, "d": "y"}) == {"a.b.c": "x", "d": "y"}

    def test_unflatten_conflict(self):
        with pytest.raises(FormatError, match="cannot nest key"):
            unflatten_json({"a": "x", "a.b": "y"}, "es.json")

    def test_unflatten_parent_then_leaf_conflict(self):
        with pytest.raises(FormatError, match="already a parent"):
            unflatten_json({"a.b": "y", "a": "x"}, "es.json")
