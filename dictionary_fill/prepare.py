"""
Build step: turns the content declaration files of a project into the
generated dictionary record the fill pipeline reads.
"""
import glob
import json
import logging
import os
from dataclasses import replace
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from dictionary_fill.app_config import AppConfig
from dictionary_fill.dictionaries import (
    Dictionary,
    DictionaryRepository,
    UnmergedDictionaryRepository,
    load_dictionary_record,
)
from dictionary_fill.distant import DistantDictionaryClient, load_distant_dictionaries
from dictionary_fill.locale_content import NodeContext, get_per_locale_content
from dictionary_fill.progress import ProgressReporter, StatusEntry
from dictionary_fill.reconciler import merge_dictionaries

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[Optional[str]]]


def list_content_declaration_files(config: AppConfig) -> List[str]:
    """Absolute paths of the content declaration files under ``content_dir``, sorted."""
    files = set()
    for pattern in config.file_patterns:
        for file_path in glob.glob(os.path.join(config.content_dir, pattern), recursive=True):
            if os.path.isfile(file_path):
                files.add(os.path.abspath(file_path))
    return sorted(files)


def load_content_declarations(file_paths: List[str], config: AppConfig) -> List[Dictionary]:
    """
    Load JSON content declarations.

    Declarations that cannot be parsed, have no key or have no content are
    logged and left out.
    """
    dictionaries = []
    for file_path in file_paths:
        relative_path = os.path.relpath(file_path, config.base_dir)
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not load content declaration '{relative_path}': {e}")
            continue

        if not isinstance(data, dict):
            logger.error(f"Content declaration '{relative_path}' is not a JSON object")
            continue
        if not data.get('content'):
            logger.error(f"Content declaration has no exported content: '{relative_path}'")
            continue
        if not data.get('key'):
            logger.error(f"Content declaration has no key: '{relative_path}'")
            continue

        dictionaries.append(replace(Dictionary.from_dict(data), file_path=file_path))
    return dictionaries


def merge_declarations_by_key(dictionaries: List[Dictionary], locales: List[str]) -> Dict[str, Dictionary]:
    """
    Merge every declaration sharing a key into one dictionary.

    Per-locale declarations hold plain values; they are wrapped into locale
    maps first so that they merge with multi-locale declarations.
    """
    grouped: Dict[str, List[Dictionary]] = {}
    for dictionary in dictionaries:
        if dictionary.locale:
            ctx = NodeContext.for_dictionary(dictionary.key, locales)
            dictionary = replace(
                dictionary,
                content=get_per_locale_content(dictionary.content, dictionary.locale, ctx),
            )
        grouped.setdefault(dictionary.key, []).append(dictionary)

    return {key: merge_dictionaries(entries) for key, entries in sorted(grouped.items())}


def _write_json(file_path: str, data) -> None:
    os.makedirs(os.path.dirname(file_path), exist_ok=True)
    with open(file_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def write_dictionary_record(
        config: AppConfig,
        unmerged: UnmergedDictionaryRepository,
        merged: DictionaryRepository
) -> None:
    """Write one ``<key>.json`` per key into the merged and unmerged record directories."""
    for dictionary in merged.list():
        _write_json(os.path.join(config.dictionaries_dir, f"{dictionary.key}.json"), dictionary.to_dict())
    for key in unmerged.keys():
        _write_json(
            os.path.join(config.unmerged_dictionaries_dir, f"{key}.json"),
            [dictionary.to_dict() for dictionary in unmerged.get(key)],
        )
    logger.info(f"Dictionary record written for {len(merged)} key(s) to "
                f"'{os.path.relpath(config.dictionaries_dir, config.base_dir)}'")


async def prepare_dictionaries(
        config: AppConfig,
        reporter: Optional[ProgressReporter] = None,
        token_provider: Optional[TokenProvider] = None,
        distant_client: Optional[DistantDictionaryClient] = None
) -> Tuple[UnmergedDictionaryRepository, DictionaryRepository]:
    """
    Build the dictionary record from the content declarations on disk.

    Distant dictionaries are added when editor credentials are configured.

    Args:
        config: Application configuration.
        reporter: Progress reporter; its session covers the whole build.
        token_provider: Coroutine function returning the editor access token.
        distant_client: Client used to fetch distant dictionaries.

    Returns:
        A ``(UnmergedDictionaryRepository, DictionaryRepository)`` tuple.
    """
    reporter = reporter or ProgressReporter(show_progress=False)

    local_dictionaries = load_content_declarations(list_content_declaration_files(config), config)
    local_keys = sorted({dictionary.key for dictionary in local_dictionaries})

    with reporter.session(local_keys, description='Building dictionaries'):
        reporter.update_status(
            StatusEntry(dictionary_key=key, status='built', type='local') for key in local_keys
        )

        distant_dictionaries: List[Dictionary] = []
        if config.editor.has_credentials:
            if distant_client is None:
                access_token = await token_provider() if token_provider else None
                distant_client = DistantDictionaryClient(config.editor, access_token)
            _, previous_record = load_dictionary_record(config.dictionaries_dir, config.unmerged_dictionaries_dir)
            distant_dictionaries = await load_distant_dictionaries(
                distant_client, previous_record, on_keys=reporter.add_dictionary_keys
            )
            reporter.update_status(
                StatusEntry(dictionary_key=dictionary.key, status='built', type='distant')
                for dictionary in distant_dictionaries
            )

        all_dictionaries = local_dictionaries + distant_dictionaries
        unmerged = UnmergedDictionaryRepository.from_list(all_dictionaries)
        merged = DictionaryRepository(merge_declarations_by_key(all_dictionaries, config.locales))

        if config.dry_run:
            logger.info("[Dry Run] Would write the dictionary record.")
        else:
            write_dictionary_record(config, unmerged, merged)

    return unmerged, merged
