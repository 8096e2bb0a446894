import asyncio
import os
from typing import Any, Dict, List, Optional, Set

import pytest

from dictionary_fill.app_config import AIConfig, AppConfig, EditorConfig
from dictionary_fill.providers import TranslationError, TranslationResult

TEST_LOCALES = ['en', 'fr', 'es']


def build_config(base_dir: str, **overrides) -> AppConfig:
    """AppConfig rooted at ``base_dir`` with en/fr/es locales and no credentials."""
    main_dir = os.path.join(base_dir, '.dictionaries')
    values = dict(
        base_dir=base_dir,
        content_dir=base_dir,
        file_patterns=['**/*.content.json'],
        dictionaries_dir=os.path.join(main_dir, 'dictionary'),
        unmerged_dictionaries_dir=os.path.join(main_dir, 'unmerged_dictionary'),
        default_locale='en',
        locales=list(TEST_LOCALES),
        locale_names={'en': 'English', 'fr': 'French', 'es': 'Spanish'},
        nb_concurrent_translations=5,
        dry_run=False,
        editor=EditorConfig(),
        ai=AIConfig(api_key='sk-test'),
        openai_client=None,
    )
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def app_config(tmp_path):
    return build_config(str(tmp_path))


class StubProvider:
    """
    Translation provider returning canned content per output locale.

    Locales listed in ``failing`` raise a TranslationError. ``delay`` keeps
    each call in flight for a while so concurrency can be observed.
    """

    def __init__(self, responses: Dict[str, Any], failing: Optional[Set[str]] = None, delay: float = 0):
        self.responses = responses
        self.failing = set(failing or ())
        self.delay = delay
        self.requests = []
        self.access_tokens: List[Optional[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def translate_json(self, request, access_token=None):
        self.requests.append(request)
        self.access_tokens.append(access_token)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if request.output_locale in self.failing:
                raise TranslationError(f"provider down for {request.output_locale}")
            return TranslationResult(file_content=self.responses.get(request.output_locale))
        finally:
            self.in_flight -= 1

    @property
    def requested_locales(self) -> List[str]:
        return [request.output_locale for request in self.requests]


class RecordingWriter:
    """Writer keeping the written dictionaries in memory."""

    def __init__(self):
        self.writes = []

    def write(self, dictionary, file_path=None):
        target = file_path or dictionary.file_path
        self.writes.append((target, dictionary))
        return target

    def written(self, file_path):
        return [dictionary for target, dictionary in self.writes if target == file_path]


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        return build_config(str(tmp_path), **overrides)
    return _make


@pytest.fixture
def make_provider():
    return StubProvider


@pytest.fixture
def recording_writer():
    return RecordingWriter()
