"""Unit tests for the format router."""
import json

import pytest

from translator_sync.errors import FormatError
from translator_sync.json_parser import ResourceShape
from translator_sync.universal_parser import FormatRouter, are_formats_compatible


class TestFormatRouter:

    def test_parse_dispatches_on_extension(self):
        router = FormatRouter()
        assert router.parse("es.json", '{"user": {"name": "Nombre"}}') == {"user.name": "Nombre"}
        assert router.parse("es.ftl", "hello = Hola\n") == {"hello": "Hola"}

    def test_parse_records_json_shape(self):
        router = FormatRouter()
        router.parse("es.json", '{"user": {"name": "Nombre"}}')
        assert router.shape_of("es.json") == ResourceShape.NESTED
        assert router.shape_of("fr.json") is None

    def test_unknown_format(self):
        with pytest.raises(FormatError, match="unsupported file format"):
            FormatRouter().parse("es.yaml", "hello: Hola")

    def test_serialize_ftl(self):
        assert FormatRouter().serialize("es.ftl", {"hello": "Hola"}) == "hello = Hola\n"

    def test_configured_shape_overrides_hint(self):
        router = FormatRouter(forced_shape=ResourceShape.NESTED)
        output = router.serialize("new.json", {"user.name": "Nombre"}, shape=ResourceShape.FLAT)
        assert json.loads(output) == {"user": {"name": "Nombre"}}

    def test_recorded_shape_overrides_configured_shape(self):
        router = FormatRouter(forced_shape=ResourceShape.NESTED)
        translations = router.parse("es.json", '{"user.name": "Nombre", "user.email": "Correo"}')
        assert json.loads(router.serialize("es.json", translations)) == {"user.name": "Nombre", "user.email": "Correo"}

    def test_serialize_sniffs_content_hint(self):
        output = FormatRouter().serialize("messages", {"hello": "Hi"}, ResourceShape.FLAT, content_hint='{"a": "b"}')
        assert json.loads(output) == {"hello": "Hi"}

    def test_serialize_unknown_format(self):
        with pytest.raises(FormatError):
            FormatRouter().serialize("es.yaml", {"hello": "Hola"})


def test_are_formats_compatible():
    assert are_formats_compatible("en.json", "es.ftl")
    assert not are_formats_compatible("en.json", "es.yaml")
