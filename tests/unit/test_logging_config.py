"""Unit tests for logger setup."""
import io
import logging
import os

from translator_sync.logging_config import LOGGER_NAME, TqdmLoggingHandler, resolve_log_level, setup_logger


def test_file_and_console_handlers(tmp_path):
    log_path = str(tmp_path / "logs" / "sync.log")

    logger = setup_logger("debug", log_path, True)
    logging.getLogger(f"{LOGGER_NAME}.sync_engine").debug("Processing directory: locales")
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.DEBUG
    assert logger.propagate is False
    assert any(isinstance(handler, TqdmLoggingHandler) for handler in logger.handlers)
    with open(log_path, encoding="utf-8") as log_file:
        assert "translator_sync.sync_engine - Processing directory: locales" in log_file.read()


def test_reconfiguring_does_not_stack_handlers(tmp_path):
    setup_logger("INFO", None, True)
    logger = setup_logger("WARNING", None, True)

    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
    assert not os.listdir(str(tmp_path))


def test_unknown_level_defaults_to_info():
    assert setup_logger("chatty", None, False).level == logging.INFO


def test_resolve_log_level():
    assert resolve_log_level("debug") == logging.DEBUG
    assert resolve_log_level("Warning") == logging.WARNING
    assert resolve_log_level("chatty") == logging.INFO


def test_tqdm_handler_writes_to_its_stream():
    stream = io.StringIO()
    handler = TqdmLoggingHandler(stream)
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))

    handler.emit(logging.LogRecord("translator_sync", logging.WARNING, __file__, 1, "3 missing key(s)", None, None))

    assert stream.getvalue() == "WARNING 3 missing key(s)\n"
