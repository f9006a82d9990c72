"""Exception hierarchy shared by the parsers, the orchestrator and the sync engine."""
from typing import Optional


class TranslatorSyncError(Exception):
    """Base class for every error raised by translator_sync."""


class ConfigurationError(TranslatorSyncError):
    """Raised when the configuration cannot produce a working backend."""


class FormatError(TranslatorSyncError):
    """
    Raised when a resource file cannot be parsed or serialized.

    Args:
        message: Human-readable description of the problem.
        file_path: The file being processed, if known.
        line: 1-based line number of the offending line, if known.
    """

    def __init__(self, message: str, file_path: Optional[str] = None, line: Optional[int] = None):
        self.file_path = file_path
        self.line = line
        location = file_path or "<content>"
        if line is not None:
            location = f"{location}:{line}"
        super().__init__(f"{location}: {message}")


class MissingPrimaryFileError(TranslatorSyncError):
    """Raised when the primary-language file is absent or holds no keys."""


class TranslationError(TranslatorSyncError):
    """Base class for backend failures. ``usage`` holds token counts reported before failing."""

    def __init__(self, message: str, usage=None):
        super().__init__(message)
        self.usage = usage


class TranslationTransientError(TranslationError):
    """Rate limit, timeout or network fault. Safe to retry."""

    def __init__(self, message: str, retry_after: Optional[float] = None, usage=None):
        super().__init__(message, usage=usage)
        self.retry_after = retry_after


class TranslationFatalError(TranslationError):
    """Authentication or malformed-request failure, or an exhausted retry budget."""


class VariableMismatchWarning(UserWarning):
    """A translation dropped a placeholder that was present in its source text."""

    def __init__(self, key: str, source: str, translation: str):
        super().__init__(f"Translation for key '{key}' does not preserve all variables of '{source}'")
        self.key = key
        self.source = source
        self.translation = translation
