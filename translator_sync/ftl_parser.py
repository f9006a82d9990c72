"""
Parser and serializer for Fluent (``.ftl``) resource files.

Only the parts of Fluent that carry translatable text are modelled: messages,
terms and their attributes. Comments and blank lines between entries are not
kept; a rewritten file contains the entries of the map in map order.

Attributes are exposed as ``message.attribute`` keys. Fluent identifiers cannot
contain a period, so the composite key never collides with a message id.
"""
import re
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from translator_sync.errors import FormatError

ENTRY_RE = re.compile(r'^(-?[a-zA-Z][a-zA-Z0-9_-]*)[ \t]*=[ \t]*(.*)$')
ATTRIBUTE_RE = re.compile(r'^\.([a-zA-Z][a-zA-Z0-9_-]*)[ \t]*=[ \t]*(.*)$')
VARIABLE_REF_RE = re.compile(r'\{[ \t]*\$([a-zA-Z][a-zA-Z0-9_-]*)[ \t]*\}')

EMPTY_VALUE = '{""}'
INDENT = '    '


def _brace_depth(line: str, depth: int) -> int:
    """Return the placeable nesting depth after ``line``, skipping string literals."""
    in_string = False
    escaped = False
    for char in line:
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"' and depth > 0:
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
    return depth


def _leading_whitespace(line: str) -> int:
    return len(line) - len(line.lstrip(' \t'))


def _build_value(inline: str, block: List[str]) -> str:
    """Join an inline first line and its indented continuation lines, removing common indentation."""
    while block and not block[-1].strip():
        block.pop()
    if not inline:
        while block and not block[0].strip():
            block.pop(0)

    indents = [_leading_whitespace(line) for line in block if line.strip() and _leading_whitespace(line) > 0]
    common = min(indents) if indents else 0
    dedented = [line[min(common, _leading_whitespace(line)):].rstrip() if line.strip() else '' for line in block]

    parts = ([inline] if inline else []) + dedented
    value = '\n'.join(parts)
    if value == EMPTY_VALUE:
        return ''
    return VARIABLE_REF_RE.sub(lambda m: '{$' + m.group(1) + '}', value)


def parse_ftl_content(content: str, file_path: Optional[str] = None) -> Dict[str, str]:
    """
    Parse Fluent content into an ordered key -> text map.

    Args:
        content: The raw file content.
        file_path: The path of the file, used in error messages only.

    Returns:
        Dict[str, str]: Message, term and attribute values in file order.

    Raises:
        FormatError: If the content is not well-formed Fluent.
    """
    lines = content.lstrip('\ufeff').splitlines()
    translations: Dict[str, str] = {}
    i = 0
    while i < len(lines):
        line = lines[i]
        if not line.strip() or line.startswith('#'):
            i += 1
            continue
        if line[0] in ' \t':
            raise FormatError("indented line outside of any message", file_path, i + 1)

        match = ENTRY_RE.match(line)
        if not match:
            raise FormatError(f"expected 'key = value', found '{line.strip()}'", file_path, i + 1)

        key, inline = match.group(1), match.group(2).rstrip()
        entry_line = i + 1

        # Collect the indented block; an unindented '}' may close an open placeable.
        block: List[str] = []
        depth = _brace_depth(inline, 0)
        i += 1
        while i < len(lines):
            nxt = lines[i]
            if not nxt.strip():
                block.append('')
            elif nxt[0] in ' \t' or (depth > 0 and nxt.startswith('}')):
                block.append(nxt)
                depth = _brace_depth(nxt, depth)
            else:
                break
            i += 1

        # Split the block into the message value and its attributes.
        segments: List[Tuple[str, str, List[str]]] = [(key, inline, [])]
        depth = _brace_depth(inline, 0)
        for block_line in block:
            attribute = ATTRIBUTE_RE.match(block_line.strip()) if depth == 0 else None
            if attribute:
                segments.append((f"{key}.{attribute.group(1)}", attribute.group(2).rstrip(), []))
                depth = _brace_depth(attribute.group(2), 0)
            else:
                segments[-1][2].append(block_line)
                depth = _brace_depth(block_line, depth)

        if depth != 0:
            raise FormatError(f"unterminated placeable in '{key}'", file_path, entry_line)

        for index, (segment_key, segment_inline, segment_block) in enumerate(segments):
            value = _build_value(segment_inline, segment_block)
            if index == 0 and not value and not segment_inline:
                if len(segments) == 1:
                    raise FormatError(f"message '{key}' has no value", file_path, entry_line)
                # Message with attributes only.
                continue
            translations[segment_key] = value

    return translations


def _format_value(value: str, indent: str) -> str:
    if value == '':
        return f" = {EMPTY_VALUE}\n"
    if '\n' in value:
        lines = [line.rstrip() for line in value.split('\n')]
        body = '\n'.join(f"{indent}{line}" if line else '' for line in lines)
        return f" =\n{body}\n"
    return f" = {value}\n"


def serialize_ftl_content(translations: Dict[str, str], file_path: Optional[str] = None) -> str:
    """
    Serialize an ordered key -> text map into Fluent content.

    Multi-line values are written as a block: ``key =`` followed by the lines
    indented by four spaces. ``message.attribute`` keys are written under their
    message, which appears at the position of its first key in the map.

    Args:
        translations: The map to write.
        file_path: The destination path, used in error messages only.

    Returns:
        str: The Fluent document.
    """
    entries: "OrderedDict[str, Dict]" = OrderedDict()
    for key, value in translations.items():
        message_id, _, attribute = key.partition('.')
        if not ENTRY_RE.match(f"{message_id} = x") or (attribute and not ATTRIBUTE_RE.match(f".{attribute} = x")):
            raise FormatError(f"'{key}' is not a valid Fluent identifier", file_path)
        entry = entries.setdefault(message_id, {'value': None, 'attributes': []})
        if attribute:
            entry['attributes'].append((attribute, value))
        else:
            entry['value'] = value

    output = []
    for message_id, entry in entries.items():
        if entry['value'] is None:
            output.append(f"{message_id} =\n")
        else:
            output.append(f"{message_id}{_format_value(entry['value'], INDENT)}")
        for attribute, value in entry['attributes']:
            output.append(f"{INDENT}.{attribute}{_format_value(value, INDENT * 2)}")
    return ''.join(output)
