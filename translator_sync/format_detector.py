"""Detect the format of a translation file from its name, falling back to its content."""
import os
import re
from enum import Enum
from typing import List, Optional

from translator_sync.json_parser import is_valid_json


class FileFormat(Enum):
    FTL = "ftl"
    JSON = "json"
    UNKNOWN = "unknown"


EXTENSIONS = {
    FileFormat.FTL: [".ftl"],
    FileFormat.JSON: [".json"],
}

FTL_PATTERNS = [
    re.compile(r'^[a-zA-Z][a-zA-Z0-9_-]*\s*=', re.MULTILINE),  # key = value
    re.compile(r'\{\$[a-zA-Z][a-zA-Z0-9_-]*\}'),                 # {$variable}
    re.compile(r'\*\[[^\]]+\]'),                                  # *[variant]
    re.compile(r'\.[a-zA-Z][a-zA-Z0-9_-]*\s*='),                  # .attribute = value
]


def detect_file_format(filename: str, content: Optional[str] = None) -> FileFormat:
    """
    Detect the format of a translation file.

    The extension decides first. Without a known extension the content is
    sniffed: a well-formed JSON document is JSON, otherwise any Fluent pattern
    makes it FTL.

    Args:
        filename: The file name or path.
        content: The file content, if available.

    Returns:
        FileFormat: The detected format, UNKNOWN if nothing matched.
    """
    extension = os.path.splitext(filename)[1].lower()
    for file_format, extensions in EXTENSIONS.items():
        if extension in extensions:
            return file_format

    if content is not None:
        return detect_format_from_content(content)
    return FileFormat.UNKNOWN


def detect_format_from_content(content: str) -> FileFormat:
    trimmed = content.strip()
    if not trimmed:
        return FileFormat.UNKNOWN
    if is_valid_json(trimmed):
        return FileFormat.JSON
    if any(pattern.search(trimmed) for pattern in FTL_PATTERNS):
        return FileFormat.FTL
    return FileFormat.UNKNOWN


def get_supported_extensions(file_format: FileFormat) -> List[str]:
    return list(EXTENSIONS.get(file_format, []))


def get_all_supported_extensions() -> List[str]:
    return [extension for extensions in EXTENSIONS.values() for extension in extensions]


def is_supported_file(filename: str) -> bool:
    return os.path.splitext(filename)[1].lower() in get_all_supported_extensions()
