"""Route parse/serialize calls to the adapter that matches a file's format."""
import logging
from typing import Dict, Optional

from translator_sync.errors import FormatError
from translator_sync.format_detector import FileFormat, detect_file_format
from translator_sync.ftl_parser import parse_ftl_content, serialize_ftl_content
from translator_sync.json_parser import (
    ResourceShape,
    ShapeCache,
    parse_json_content,
    serialize_json_content
)

logger = logging.getLogger(__name__)

UNSUPPORTED_FORMAT_MESSAGE = "unsupported file format. Supported formats: FTL (.ftl), JSON (.json)"


class FormatRouter:
    """
    Parses and serializes translation files of any supported format.

    One router is created per sync run; it owns the run's ``ShapeCache`` so
    that a JSON file serializes back in the layout it was read in.
    """

    def __init__(self, shape_cache: Optional[ShapeCache] = None, forced_shape: Optional[ResourceShape] = None):
        self.shape_cache = shape_cache if shape_cache is not None else ShapeCache()
        self.forced_shape = forced_shape

    def parse(self, file_path: str, content: str) -> Dict[str, str]:
        """
        Parse ``content`` according to the format of ``file_path``.

        Raises:
            FormatError: If the format is unknown or the content is malformed.
        """
        file_format = detect_file_format(file_path, content)
        if file_format is FileFormat.FTL:
            logger.debug(f"Parsing {file_path} as FTL format")
            return parse_ftl_content(content, file_path)
        if file_format is FileFormat.JSON:
            logger.debug(f"Parsing {file_path} as JSON format")
            return parse_json_content(content, file_path, self.shape_cache)
        if file_format is FileFormat.UNKNOWN:
            raise FormatError(UNSUPPORTED_FORMAT_MESSAGE, file_path)
        raise AssertionError(f"Unhandled file format: {file_format}")

    def serialize(
            self,
            file_path: str,
            translations: Dict[str, str],
            shape: Optional[ResourceShape] = None,
            content_hint: Optional[str] = None
    ) -> str:
        """
        Serialize ``translations`` for ``file_path``.

        Args:
            file_path: Destination path; decides the format and the recorded shape.
            translations: The map to write.
            shape: JSON shape to use when none was recorded for the path. The
                configured shape, when set, takes precedence over this argument.
            content_hint: Original content, used to sniff files without a known extension.

        Raises:
            FormatError: If the format is unknown or the map cannot be expressed.
        """
        file_format = detect_file_format(file_path, content_hint)
        if file_format is FileFormat.FTL:
            logger.debug(f"Serializing {file_path} as FTL format")
            return serialize_ftl_content(translations, file_path)
        if file_format is FileFormat.JSON:
            logger.debug(f"Serializing {file_path} as JSON format")
            return serialize_json_content(
                translations,
                file_path,
                self.shape_cache,
                self.forced_shape or shape
            )
        if file_format is FileFormat.UNKNOWN:
            raise FormatError(UNSUPPORTED_FORMAT_MESSAGE, file_path)
        raise AssertionError(f"Unhandled file format: {file_format}")

    def shape_of(self, file_path: str) -> Optional[ResourceShape]:
        return self.shape_cache.get(file_path)


def are_formats_compatible(primary_file: str, target_file: str) -> bool:
    """Two files can be synced when both have a known format."""
    return (detect_file_format(primary_file) is not FileFormat.UNKNOWN
            and detect_file_format(target_file) is not FileFormat.UNKNOWN)
