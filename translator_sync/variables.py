"""
Placeholder recognition for the template syntaxes found in resource files.

Four syntaxes are recognised, from most to least specific:

- ``{{name}}``  (i18next / Handlebars; one nested brace pair is tolerated inside)
- ``%{name}``   (Ruby i18n)
- ``{$name}``   (Fluent variable reference)
- ``{name}``    (ICU MessageFormat / vue-i18n)

Each syntax is scanned after the spans matched by the previous ones have been
masked, so that ``{$x}`` is never reported a second time as a bare ``{...}``.
"""
import logging
import re
from typing import List, Set, Tuple

logger = logging.getLogger(__name__)

# Ordered by precedence. The mask keeps the text length-independent and
# prevents two neighbours of a removed span from fusing into a new match.
_VARIABLE_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("i18next", re.compile(r'\{\{(?:[^{}]|\{[^{}]*\})+\}\}')),
    ("ruby", re.compile(r'%\{[^{}]+\}')),
    ("fluent", re.compile(r'\{\$[^{}]+\}')),
    ("icu", re.compile(r'\{[^{}$%]+\}')),
]
_MASK = '\x00'

_FORMAT_LABELS = {
    "i18next": "React i18next format ({{variable}})",
    "fluent": "Fluent format ({$variable})",
    "ruby": "Ruby i18n format (%{variable})",
    "icu": "Vue i18n / React Intl format ({variable})",
}


def _scan(text: str) -> List[Tuple[str, str]]:
    """Return (syntax, placeholder) pairs in precedence order, without overlaps."""
    found: List[Tuple[str, str]] = []
    remaining = text
    for syntax, pattern in _VARIABLE_PATTERNS:
        for match in pattern.finditer(remaining):
            found.append((syntax, match.group(0)))
        remaining = pattern.sub(_MASK, remaining)
    return found


def extract_variables(text: str) -> Set[str]:
    """
    Extract every placeholder embedded in ``text``.

    Args:
        text: A source or translated message.

    Returns:
        The set of placeholder substrings, e.g. ``{"{{count}}", "{$name}"}``.
    """
    if not text:
        return set()
    return {placeholder for _, placeholder in _scan(text)}


def validate_variable_preservation(source: str, translation: str) -> bool:
    """
    Check that every placeholder of ``source`` survives in ``translation``.

    Extra placeholders in the translation are not flagged. The check is advisory:
    a failure is logged, never raised.

    Args:
        source: The primary-language text.
        translation: The translated text.

    Returns:
        True if all source placeholders are present, False otherwise.
    """
    translation_vars = extract_variables(translation)
    for variable in sorted(extract_variables(source)):
        if variable not in translation_vars:
            logger.warning("Variable %s missing in translation '%s'", variable, translation)
            return False
    return True


def get_variable_instructions(text: str) -> str:
    """Build the prompt line asking the model to keep the placeholders of ``text`` intact."""
    found = _scan(text)
    if not found:
        return ""

    formats = list(dict.fromkeys(_FORMAT_LABELS[syntax] for syntax, _ in found))
    variables = list(dict.fromkeys(placeholder for _, placeholder in found))
    return (
        "CRITICAL: Preserve ALL variables exactly as they appear. "
        f"Detected formats: {', '.join(formats)}. Variables found: {', '.join(variables)}"
    )
