"""
JSON translation file parser and serializer.

Handles both layouts used by i18next, vue-i18n and friends:

- flat:   ``{"user.name": "Name", "Ask anything. Type \\"/\\" for x.": "..."}``
- nested: ``{"user": {"name": "Name"}}``

Nested documents are flattened to dotted keys so the reconciler works on one key
space. The layout of every parsed file is recorded in a ``ShapeCache`` so that
serializing the same file writes the same layout back; a flat file whose keys
contain periods must never come back as a nested tree.
"""
import json
import logging
import os
from enum import Enum
from typing import Dict, Iterable, Optional

import jsonschema

from translator_sync.errors import FormatError

logger = logging.getLogger(__name__)

KEY_SEPARATOR = '.'

# A translation document is an object whose leaves are all strings.
TRANSLATION_DOCUMENT_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": {
        "anyOf": [
            {"type": "string"},
            {"$ref": "#"}
        ]
    }
}


class ResourceShape(Enum):
    FLAT = "flat"
    NESTED = "nested"


class ShapeCache:
    """
    Records the shape of each parsed file for the duration of one sync run.

    The cache is append-only: once a path has a shape, a later, different
    detection for the same path is ignored and logged.
    """

    def __init__(self):
        self._shapes: Dict[str, ResourceShape] = {}

    @staticmethod
    def _normalize(file_path: str) -> str:
        return os.path.normcase(os.path.abspath(file_path))

    def get(self, file_path: Optional[str]) -> Optional[ResourceShape]:
        if not file_path:
            return None
        return self._shapes.get(self._normalize(file_path))

    def record(self, file_path: Optional[str], shape: ResourceShape) -> ResourceShape:
        """Record ``shape`` for ``file_path`` unless one is already known, and return the shape in force."""
        if not file_path:
            return shape
        key = self._normalize(file_path)
        existing = self._shapes.get(key)
        if existing is None:
            self._shapes[key] = shape
            return shape
        if existing != shape:
            logger.warning(
                "Shape of '%s' detected as %s but %s was recorded earlier in this run; keeping %s.",
                file_path, shape.value, existing.value, existing.value
            )
        return existing

    def __contains__(self, file_path: str) -> bool:
        return self.get(file_path) is not None

    def __len__(self) -> int:
        return len(self._shapes)


def detect_shape(document: Dict) -> Optional[ResourceShape]:
    """
    Return FLAT when every top-level value is a string, NESTED when at least one
    is an object, and None for an empty document (nothing to go by).
    """
    if not document:
        return None
    if all(isinstance(value, str) for value in document.values()):
        return ResourceShape.FLAT
    return ResourceShape.NESTED


def flatten_json(document: Dict, prefix: str = "") -> Dict[str, str]:
    """
    Flatten a nested document to dotted keys.

    Example: ``{"user": {"name": "Name"}}`` -> ``{"user.name": "Name"}``
    """
    result: Dict[str, str] = {}
    for key, value in document.items():
        full_key = f"{prefix}{KEY_SEPARATOR}{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_json(value, full_key))
        else:
            result[full_key] = value
    return result


def unflatten_json(translations: Dict[str, str], file_path: Optional[str] = None) -> Dict:
    """
    Rebuild a nested document from dotted keys.

    Raises:
        FormatError: If a key is both a leaf and a parent (e.g. ``a`` and ``a.b``).
    """
    result: Dict = {}
    for key, value in translations.items():
        parts = key.split(KEY_SEPARATOR)
        current = result
        for part in parts[:-1]:
            child = current.setdefault(part, {})
            if not isinstance(child, dict):
                raise FormatError(f"cannot nest key '{key}': '{part}' already holds a text value", file_path)
            current = child
        if isinstance(current.get(parts[-1]), dict):
            raise FormatError(f"cannot nest key '{key}': it is already a parent of other keys", file_path)
        current[parts[-1]] = value
    return result


def infer_shape_from_keys(keys: Iterable[str]) -> ResourceShape:
    """
    Guess the shape of a map whose file has never been parsed.

    A key only counts as a nesting path when each of its dotted segments is
    non-empty and free of whitespace, and its first segment is shared with at
    least one sibling key. Sentences that merely end in a period therefore stay
    flat. The guess is best-effort; explicit configuration should win over it.
    """
    keys = list(keys)
    key_set = set(keys)
    prefix_counts: Dict[str, int] = {}
    for key in keys:
        if KEY_SEPARATOR not in key:
            continue
        segments = key.split(KEY_SEPARATOR)
        if any(not segment or any(char.isspace() for char in segment) for segment in segments):
            return ResourceShape.FLAT
        # 'a' and 'a.b' side by side cannot be expressed as a tree.
        for depth in range(1, len(segments)):
            if KEY_SEPARATOR.join(segments[:depth]) in key_set:
                return ResourceShape.FLAT
        prefix_counts[segments[0]] = prefix_counts.get(segments[0], 0) + 1

    if any(count > 1 for count in prefix_counts.values()):
        return ResourceShape.NESTED
    return ResourceShape.FLAT


def _load_document(content: str, file_path: Optional[str]) -> Dict:
    try:
        document = json.loads(content)
    except json.JSONDecodeError as json_exc:
        logger.error(f"Failed to parse JSON content of '{file_path or '<content>'}': {json_exc}")
        raise FormatError(f"invalid JSON: {json_exc.msg}", file_path, json_exc.lineno) from json_exc

    try:
        jsonschema.validate(instance=document, schema=TRANSLATION_DOCUMENT_SCHEMA)
    except jsonschema.ValidationError as schema_exc:
        location = KEY_SEPARATOR.join(str(part) for part in schema_exc.absolute_path) or "<root>"
        raise FormatError(
            f"invalid translation document at '{location}': values must be strings or objects",
            file_path
        ) from schema_exc
    return document


def is_valid_json(content: str) -> bool:
    try:
        json.loads(content)
        return True
    except (json.JSONDecodeError, TypeError):
        return False


def parse_json_content(
        content: str,
        file_path: Optional[str] = None,
        shape_cache: Optional[ShapeCache] = None
) -> Dict[str, str]:
    """
    Parse a JSON translation document into an ordered key -> text map.

    Args:
        content: The raw file content.
        file_path: The path of the file; its shape is recorded under this path.
        shape_cache: The run's shape cache. When omitted the shape is not recorded.

    Returns:
        Dict[str, str]: The flattened translations in document order.

    Raises:
        FormatError: If the content is not valid JSON or not a translation document.
    """
    document = _load_document(content, file_path)
    shape = detect_shape(document)
    if shape is not None and shape_cache is not None:
        shape_cache.record(file_path, shape)

    if shape == ResourceShape.NESTED:
        return flatten_json(document)
    return dict(document)


def resolve_shape(
        translations: Dict[str, str],
        file_path: Optional[str] = None,
        shape_cache: Optional[ShapeCache] = None,
        shape: Optional[ResourceShape] = None
) -> ResourceShape:
    """Cached shape first, then the caller's explicit shape, then the key heuristic."""
    if shape_cache is not None:
        cached = shape_cache.get(file_path)
        if cached is not None:
            return cached
    if shape is not None:
        return shape
    inferred = infer_shape_from_keys(translations.keys())
    logger.debug(f"No recorded shape for '{file_path or '<content>'}', inferred {inferred.value} from keys")
    return inferred


def serialize_json_content(
        translations: Dict[str, str],
        file_path: Optional[str] = None,
        shape_cache: Optional[ShapeCache] = None,
        shape: Optional[ResourceShape] = None
) -> str:
    """
    Serialize translations to a JSON document in the shape of the original file.

    Args:
        translations: The map to write.
        file_path: The destination path, used to look up the recorded shape.
        shape_cache: The run's shape cache.
        shape: Shape to use when none is recorded for ``file_path``.

    Returns:
        str: The JSON document, indented by two spaces, with a trailing newline.
    """
    resolved = resolve_shape(translations, file_path, shape_cache, shape)
    if resolved == ResourceShape.NESTED:
        document = unflatten_json(translations, file_path)
    else:
        document = dict(translations)
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
