"""
Synchronize the translation files of one or more locale directories against
their primary-language file.

Two layouts are recognised per directory:

    locales/en.json, locales/es.json          (flat; also app.en.ftl, app_es.ftl)
    locales/en/translation.json, locales/es/translation.json   (language subdirectories)

Files are processed one at a time with one translation batch per target file.
"""
import asyncio
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from translator_sync.app_config import AppConfig, load_app_config
from translator_sync.cost_calculator import CostResult, estimate_translation_cost, format_cost
from translator_sync.errors import (
    ConfigurationError,
    MissingPrimaryFileError,
    TranslationFatalError,
    TranslatorSyncError,
    VariableMismatchWarning
)
from translator_sync.file_manager import is_directory, list_files, list_subdirectories, read_file, write_file
from translator_sync.format_detector import is_supported_file
from translator_sync.key_reconciler import apply_translations, reconcile
from translator_sync.service_factory import create_orchestrator
from translator_sync.translator import UNAVAILABLE_TRANSLATION, TranslationContext, TranslationOrchestrator
from translator_sync.universal_parser import FormatRouter
from translator_sync.variables import validate_variable_preservation

logger = logging.getLogger(__name__)

LANGUAGE_CODE_PATTERN = r'[a-z]{2,3}(?:[-_][A-Z]{2})?'
LANGUAGE_CODE_RE = re.compile(rf'^{LANGUAGE_CODE_PATTERN}$')
FILENAME_LANGUAGE_RE = re.compile(rf'^(?:(?P<base>.+)[._])?(?P<language>{LANGUAGE_CODE_PATTERN})(?P<ext>\.[A-Za-z0-9]+)$')


@dataclass
class FileSyncResult:
    """What happened to one target file."""
    file_path: str
    language: str
    missing_keys: List[str] = field(default_factory=list)
    extraneous_keys: List[str] = field(default_factory=list)
    translated_keys: List[str] = field(default_factory=list)
    unavailable_keys: List[str] = field(default_factory=list)
    variable_warnings: List[VariableMismatchWarning] = field(default_factory=list)
    written: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class SyncSummary:
    files: List[FileSyncResult] = field(default_factory=list)
    cost: Optional[CostResult] = None
    estimated_cost: float = 0.0

    @property
    def total_translations(self) -> int:
        return sum(len(result.translated_keys) for result in self.files)

    @property
    def failed_files(self) -> List[FileSyncResult]:
        return [result for result in self.files if result.failed]


def normalize_language(code: str) -> str:
    return code.replace('_', '-').lower()


def split_language(filename: str) -> Tuple[Optional[str], Optional[str], str]:
    """
    Split a file name into ``(base, language, extension)``.

    ``es.json`` -> ``(None, 'es', '.json')``, ``app_pt_BR.ftl`` -> ``('app', 'pt_BR', '.ftl')``.
    The language is None when the name carries no language code.
    """
    match = FILENAME_LANGUAGE_RE.match(filename)
    if match:
        return match.group('base'), match.group('language'), match.group('ext')
    base, ext = os.path.splitext(filename)
    return base, None, ext


def extract_language_from_path(file_path: str) -> Optional[str]:
    """Language of a file from its name (``es.json``, ``app.es.json``) or its directory (``/es/app.json``)."""
    _, language, _ = split_language(os.path.basename(file_path))
    if language:
        return language
    parent = os.path.basename(os.path.dirname(os.path.abspath(file_path)))
    if LANGUAGE_CODE_RE.match(parent):
        return parent
    return None


class SyncEngine:
    """
    Runs reconciliation and translation for every target file it finds.

    Args:
        router: Parses and serializes files; owns the run's shape cache.
        orchestrator: Translates the missing texts of a file in one batch.
        primary_language: Language code of the authoritative file.
        project_description: Free-text description passed to the backend as context.
        dry_run: Report what would change without calling the backend or writing files.
        cost_warning_threshold: Run cost in USD above which a warning is logged.
        context: Extra translation guidance for every batch.
    """

    def __init__(
            self,
            router: FormatRouter,
            orchestrator: TranslationOrchestrator,
            primary_language: str = "en",
            project_description: Optional[str] = None,
            dry_run: bool = False,
            cost_warning_threshold: float = 1.0,
            context: Optional[TranslationContext] = None
    ):
        self.router = router
        self.orchestrator = orchestrator
        self.primary_language = primary_language
        self.project_description = project_description
        self.dry_run = dry_run
        self.cost_warning_threshold = cost_warning_threshold
        self.context = context
        self._estimated_cost = 0.0

    @property
    def _bills_usage(self) -> bool:
        return self.orchestrator.backend.name != "mock"

    def _is_primary(self, language: Optional[str]) -> bool:
        return language is not None and normalize_language(language) == normalize_language(self.primary_language)

    def load_primary(self, primary_path: str) -> Dict[str, str]:
        """
        Read and parse the primary file.

        Raises:
            MissingPrimaryFileError: If the file does not exist or holds no keys.
        """
        if not os.path.isfile(primary_path):
            raise MissingPrimaryFileError(f"Primary language file not found: {primary_path}")
        primary_map = self.router.parse(primary_path, read_file(primary_path))
        if not primary_map:
            raise MissingPrimaryFileError(f"Primary language file has no keys: {primary_path}")
        logger.info(f"Primary file: {primary_path} ({len(primary_map)} keys)")
        return primary_map

    async def sync_directories(self, directories: List[str]) -> SyncSummary:
        """
        Synchronize every directory in turn.

        Raises:
            FormatError: If any file is malformed.
            MissingPrimaryFileError: If a directory has no usable primary file.
        """
        summary = SyncSummary()
        self._estimated_cost = 0.0
        for directory in directories:
            if not is_directory(directory):
                logger.debug(f"Directory not found: {directory}")
                continue
            logger.info(f"Processing directory: {directory}")
            summary.files.extend(await self.sync_directory(directory))

        summary.estimated_cost = self._estimated_cost
        if self._bills_usage and not self.dry_run:
            summary.cost = self.orchestrator.estimate_cost()
            self._report_cost(summary.cost.total_cost, format_cost(summary.cost))
        elif self._bills_usage and self._estimated_cost:
            self._report_cost(self._estimated_cost, f"${self._estimated_cost:.4f} (estimated)")

        self._log_summary(summary)
        return summary

    async def sync_directory(self, directory: str) -> List[FileSyncResult]:
        language_dirs = [name for name in list_subdirectories(directory) if LANGUAGE_CODE_RE.match(name)]
        if language_dirs:
            return await self._sync_language_directories(directory, language_dirs)
        return await self._sync_flat_directory(directory)

    async def _sync_language_directories(self, directory: str, language_dirs: List[str]) -> List[FileSyncResult]:
        primary_dir = next((name for name in language_dirs if self._is_primary(name)), None)
        if primary_dir is None:
            raise MissingPrimaryFileError(
                f"Primary language directory '{self.primary_language}' not found in {directory}"
            )

        results: List[FileSyncResult] = []
        primary_root = os.path.join(directory, primary_dir)
        for file_name in filter(is_supported_file, list_files(primary_root)):
            primary_path = os.path.join(primary_root, file_name)
            primary_map = self.load_primary(primary_path)

            targets: List[Tuple[str, str]] = []
            for language in language_dirs:
                if language == primary_dir:
                    continue
                target_path = os.path.join(directory, language, file_name)
                if not os.path.isfile(target_path):
                    logger.debug(f"Target file not found: {target_path}")
                    continue
                targets.append((target_path, language))
            results.extend(await self._sync_targets(primary_path, primary_map, targets))
        return results

    async def _sync_flat_directory(self, directory: str) -> List[FileSyncResult]:
        groups: Dict[Tuple[str, str], List[Tuple[str, str]]] = {}
        for file_name in filter(is_supported_file, list_files(directory)):
            base, language, ext = split_language(file_name)
            if language is None:
                logger.debug(f"Skipping {file_name}: no language code in the file name")
                continue
            groups.setdefault((base or "", ext.lower()), []).append((file_name, language))

        if not groups:
            logger.warning(f"No translation files found in {directory}")
            return []

        if not any(self._is_primary(language) for members in groups.values() for _, language in members):
            raise MissingPrimaryFileError(f"No primary language ('{self.primary_language}') file found in {directory}")

        results: List[FileSyncResult] = []
        for (base, ext), members in groups.items():
            primary_name = next((name for name, language in members if self._is_primary(language)), None)
            if primary_name is None:
                logger.warning(f"Skipping '{base or '*'}{ext}' files in {directory}: no primary language file")
                continue
            primary_path = os.path.join(directory, primary_name)
            primary_map = self.load_primary(primary_path)
            targets = [
                (os.path.join(directory, name), language)
                for name, language in members if name != primary_name
            ]
            results.extend(await self._sync_targets(primary_path, primary_map, targets))
        return results

    async def _sync_targets(
            self,
            primary_path: str,
            primary_map: Dict[str, str],
            targets: List[Tuple[str, str]]
    ) -> List[FileSyncResult]:
        results: List[FileSyncResult] = []
        for target_path, language in tqdm(targets, desc=f"Syncing {os.path.basename(primary_path)}", unit="file"):
            results.append(await self.sync_file(target_path, primary_path, primary_map, language))
        return results

    async def sync_file(
            self,
            target_path: str,
            primary_path: str,
            primary_map: Dict[str, str],
            target_language: str
    ) -> FileSyncResult:
        """
        Bring one target file in line with the primary map.

        A file with no missing and no extraneous keys is left untouched. A
        ``TranslationFatalError`` is logged and recorded on the result; format
        errors propagate.

        Args:
            target_path: The file to synchronize.
            primary_path: The primary file, whose shape is used for an empty target.
            primary_map: Parsed primary translations.
            target_language: Language code of the target file.

        Returns:
            FileSyncResult: Keys added, removed and translated, plus any variable warnings.
        """
        result = FileSyncResult(file_path=target_path, language=target_language)

        content = read_file(target_path)
        existing = self.router.parse(target_path, content) if content.strip() else {}

        reconciliation = reconcile(primary_map, existing)
        result.missing_keys = list(reconciliation.missing_keys)
        result.extraneous_keys = list(reconciliation.extraneous_keys)

        if not reconciliation.has_changes:
            logger.debug(f"{target_path}: all keys up to date")
            return result

        if reconciliation.missing_keys:
            logger.info(f"{target_path}: {len(reconciliation.missing_keys)} missing key(s)")
        if reconciliation.extraneous_keys:
            logger.info(f"{target_path}: removing {len(reconciliation.extraneous_keys)} extraneous key(s)")

        texts = [primary_map[key] for key in reconciliation.missing_keys if primary_map[key].strip()]

        if self.dry_run:
            if texts and self._bills_usage:
                estimate = estimate_translation_cost(self.orchestrator.backend.model_name, texts, target_language)
                self._estimated_cost += estimate.total_cost
            logger.info(
                f"[Dry Run] Would translate {len(texts)} key(s) and remove "
                f"{len(reconciliation.extraneous_keys)} key(s) in '{target_path}'."
            )
            return result

        if texts:
            try:
                translations = await self.orchestrator.translate_with_context(
                    self.primary_language,
                    target_language,
                    texts,
                    self.project_description,
                    self.context
                )
            except TranslationFatalError as fatal_exc:
                logger.error(f"Skipping '{target_path}': {fatal_exc}")
                result.error = str(fatal_exc)
                return result

            available = {text: value for text, value in translations.items() if value != UNAVAILABLE_TRANSLATION}
            result.translated_keys = apply_translations(reconciliation, primary_map, available)
            result.unavailable_keys = [
                key for key in reconciliation.missing_keys
                if primary_map[key].strip() and key not in result.translated_keys
            ]

            for key in result.translated_keys:
                translated = reconciliation.kept[key]
                if not validate_variable_preservation(primary_map[key], translated):
                    warning = VariableMismatchWarning(key, primary_map[key], translated)
                    logger.warning(f"{target_path}: {warning}")
                    result.variable_warnings.append(warning)

        new_content = self.router.serialize(
            target_path,
            reconciliation.kept,
            shape=self.router.shape_of(primary_path),
            content_hint=content or None
        )
        write_file(target_path, new_content)
        result.written = True
        logger.info(f"Updated '{target_path}' ({len(result.translated_keys)} translated).")
        return result

    def _report_cost(self, total_cost: float, formatted: str) -> None:
        if total_cost > self.cost_warning_threshold:
            logger.warning(
                f"Translation cost {formatted} exceeds the warning threshold of ${self.cost_warning_threshold:.2f}"
            )
        else:
            logger.info(f"Translation cost: {formatted}")

    def _log_summary(self, summary: SyncSummary) -> None:
        logger.info(f"Synchronized {len(summary.files)} file(s), {summary.total_translations} translation(s).")
        for failed in summary.failed_files:
            logger.error(f"  - {failed.file_path}: {failed.error}")
        if self.dry_run:
            logger.info("Dry run enabled; no files were modified.")


def _resolve_directories(app_config: AppConfig) -> List[str]:
    return [
        directory if os.path.isabs(directory) else os.path.normpath(os.path.join(app_config.project_root, directory))
        for directory in app_config.directories
    ]


def create_engine(app_config: AppConfig) -> SyncEngine:
    return SyncEngine(
        router=FormatRouter(forced_shape=app_config.json_shape),
        orchestrator=create_orchestrator(app_config),
        primary_language=app_config.primary_language,
        project_description=app_config.project_description,
        dry_run=app_config.dry_run,
        cost_warning_threshold=app_config.cost_warning_threshold,
    )


async def main(config_path: Optional[str] = None) -> int:
    """
    Load the configuration, synchronize the configured directories and
    return the process exit code.
    """
    app_config = load_app_config(config_path)
    directories = [directory for directory in _resolve_directories(app_config) if is_directory(directory)]
    if not directories:
        raise ConfigurationError(
            f"No translation directories found. Checked: {', '.join(app_config.directories)}"
        )

    engine = create_engine(app_config)
    summary = await engine.sync_directories(directories)
    return 1 if summary.failed_files else 0


def run() -> None:
    try:
        exit_code = asyncio.run(main())
    except TranslatorSyncError as sync_exc:
        logger.error(str(sync_exc))
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
