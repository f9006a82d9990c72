"""Compute which keys a target file keeps, gains and loses relative to the primary file."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """
    Outcome of reconciling one target map against the primary map.

    ``kept`` follows the primary order. Missing keys are seeded with their
    primary text until a translation replaces it.
    """
    kept: Dict[str, str]
    missing_keys: List[str] = field(default_factory=list)
    extraneous_keys: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.missing_keys or self.extraneous_keys)


def check_key_coverage(base_keys: Set[str], target_keys: Set[str]) -> Tuple[Set[str], Set[str]]:
    """
    Compare the keys of a target file against the primary file.

    Args:
        base_keys: Keys of the primary-language file.
        target_keys: Keys of the target file.

    Returns:
        A tuple ``(missing_keys, extra_keys)``.
    """
    missing_keys = base_keys - target_keys
    extra_keys = target_keys - base_keys
    return missing_keys, extra_keys


def reconcile(primary: Dict[str, str], existing: Dict[str, str]) -> ReconciliationResult:
    """
    Rebuild a target map so that its key set equals the primary key set.

    Existing translations are never overwritten, keys absent from the primary
    map are dropped, and the result is ordered like ``primary`` whatever the
    order of ``existing``.

    Args:
        primary: The primary-language translations.
        existing: The current translations of the target file.

    Returns:
        ReconciliationResult: The kept map plus the missing and extraneous keys.
    """
    kept: Dict[str, str] = {}
    missing_keys: List[str] = []
    for key, primary_text in primary.items():
        if key in existing:
            kept[key] = existing[key]
        else:
            missing_keys.append(key)
            kept[key] = primary_text

    extraneous_keys = [key for key in existing if key not in primary]
    if extraneous_keys:
        logger.debug(f"Dropping {len(extraneous_keys)} key(s) absent from the primary file: {extraneous_keys}")

    return ReconciliationResult(kept=kept, missing_keys=missing_keys, extraneous_keys=extraneous_keys)


def apply_translations(
        result: ReconciliationResult,
        primary: Dict[str, str],
        translations: Dict[str, str]
) -> List[str]:
    """
    Write translated texts into ``result.kept`` for every missing key.

    ``translations`` maps source text to translated text, so keys sharing a
    source text all receive the same translation.

    Returns:
        List[str]: The keys that received a translation.
    """
    applied: List[str] = []
    for key in result.missing_keys:
        if not primary[key].strip():
            # Seeded blank value stays as is.
            continue
        translated = translations.get(primary[key])
        if translated is None:
            logger.warning(f"No translation returned for key '{key}'; keeping the primary text.")
            continue
        result.kept[key] = translated
        applied.append(key)
    return applied
