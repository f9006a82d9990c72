"""Unit tests for language detection from file names and paths."""
import os

import pytest

from translator_sync.sync_engine import extract_language_from_path, normalize_language, split_language


@pytest.mark.parametrize("filename, expected", [
    ("es.json", (None, "es", ".json")),
    ("pt-BR.json", (None, "pt-BR", ".json")),
    ("app.en.ftl", ("app", "en", ".ftl")),
    ("app_es.ftl", ("app", "es", ".ftl")),
    ("app_pt_BR.json", ("app", "pt_BR", ".json")),
    ("my.app.fr.json", ("my.app", "fr", ".json")),
    ("translation.json", ("translation", None, ".json")),
])
def test_split_language(filename, expected):
    assert split_language(filename) == expected


class TestExtractLanguageFromPath:

    def test_from_file_name(self):
        assert extract_language_from_path(os.path.join("locales", "de.json")) == "de"
        assert extract_language_from_path(os.path.join("locales", "messages.it.ftl")) == "it"

    def test_from_directory(self):
        assert extract_language_from_path(os.path.join("locales", "es", "translation.json")) == "es"

    def test_unknown(self):
        assert extract_language_from_path(os.path.join("locales", "common", "translation.json")) is None


def test_normalize_language():
    assert normalize_language("pt_BR") == normalize_language("pt-br") == "pt-br"
