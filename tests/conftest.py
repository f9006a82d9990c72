import json
import logging
import os
from typing import List

import pytest

from translator_sync.logging_config import LOGGER_NAME
from translator_sync.translator import BackendResponse, TranslationBackend, TranslationRequest


class ScriptedBackend(TranslationBackend):
    """
    Backend that plays back ``outcomes`` in order: a BackendResponse is returned,
    an exception is raised. Once exhausted it answers ``<lang>:<text>`` per line.
    """
    name = "scripted"
    model_name = "gpt-4.1-nano"

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.requests: List[TranslationRequest] = []

    async def translate(self, request: TranslationRequest) -> BackendResponse:
        self.requests.append(request)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return BackendResponse(content="\n".join(f"{request.target_lang}:{text}" for text in request.texts))


class FakeSleep:
    """Stands in for asyncio.sleep and records the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Let caplog see package records even if a test configured the logger."""
    logger = logging.getLogger(LOGGER_NAME)
    yield
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def scripted_backend():
    def _make(*outcomes):
        return ScriptedBackend(outcomes)
    return _make


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def write_locale(tmp_path):
    """Write a locale file below tmp_path; dicts are dumped as JSON."""
    def _write(relative_path: str, content) -> str:
        path = os.path.join(str(tmp_path), relative_path)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        if not isinstance(content, str):
            content = json.dumps(content, indent=2, ensure_ascii=False) + "\n"
        with open(path, 'w', encoding='utf-8') as file:
            file.write(content)
        return path
    return _write


@pytest.fixture
def read_json():
    def _read(path: str):
        with open(path, 'r', encoding='utf-8') as file:
            return json.load(file)
    return _read
