"""
Per-locale translation fan-out for one dictionary.
"""
import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from tqdm.asyncio import tqdm

from dictionary_fill.app_config import AppConfig, DEFAULT_NB_CONCURRENT_TRANSLATIONS, get_locale_name
from dictionary_fill.dictionaries import Dictionary
from dictionary_fill.locale_content import NodeContext, get_localised_content, localise_into
from dictionary_fill.providers import TranslationRequest
from dictionary_fill.translation_validator import drop_placeholder_mismatches

logger = logging.getLogger(__name__)

LocaleStatusCallback = Callable[[str, str], None]


async def translate_locale(
        dictionary: Dictionary,
        source_content: Any,
        source_locale: str,
        target_locale: str,
        provider,
        mode: str,
        config: AppConfig,
        semaphore: asyncio.Semaphore,
        index: int,
        access_token: Optional[str] = None,
        ai_options: Optional[Dict[str, Any]] = None,
        on_status: Optional[LocaleStatusCallback] = None
) -> Tuple[int, Optional[Dictionary]]:
    """
    Translate the source content of a dictionary into one locale.

    Errors are logged and turned into a None result so that sibling locales
    keep going.

    Returns:
        Tuple[int, Optional[Dictionary]]: The index of the locale and the per-locale dictionary.
    """
    def report(status: str) -> None:
        if on_status:
            on_status(target_locale, status)

    async with semaphore:
        dictionary_key = dictionary.key
        ctx = NodeContext.for_dictionary(dictionary_key, config.locales)

        logger.info(
            f"Preparing translation for '{dictionary_key}' dictionary from "
            f"{get_locale_name(config, source_locale)} ({source_locale}) to "
            f"{get_locale_name(config, target_locale)} ({target_locale})"
        )

        preset_output_content = get_localised_content(dictionary.content, target_locale, ctx)

        request = TranslationRequest(
            entry_file_content=source_content,
            preset_output_content=preset_output_content if preset_output_content is not None else {},
            dictionary_description=dictionary.description,
            entry_locale=source_locale,
            output_locale=target_locale,
            mode=mode,
            options=dict(ai_options or {}),
        )

        try:
            result = await provider.translate_json(request, access_token)
        except Exception as e:
            logger.error(f"Error filling '{dictionary_key}' to {target_locale}: {e}")
            report('failed')
            return index, None

        if result is None or not result.file_content:
            logger.error(f"No content result found for '{dictionary_key}' to {target_locale}")
            report('failed')
            return index, None

        file_content, mismatches = drop_placeholder_mismatches(source_content, result.file_content)
        for key_path in mismatches:
            logger.warning(f"Placeholder mismatch in '{dictionary_key}' ({target_locale}) at '{key_path}', "
                           f"translation discarded")

        content = localise_into(dictionary.content, file_content, target_locale, ctx)
        report('translated')
        return index, replace(dictionary, content=content, locale=target_locale)


async def translate_dictionary(
        dictionary: Dictionary,
        source_content: Any,
        source_locale: str,
        output_locales: Sequence[str],
        provider,
        mode: str,
        config: AppConfig,
        concurrency: int = DEFAULT_NB_CONCURRENT_TRANSLATIONS,
        access_token: Optional[str] = None,
        ai_options: Optional[Dict[str, Any]] = None,
        on_status: Optional[LocaleStatusCallback] = None
) -> List[Dictionary]:
    """
    Translate a dictionary into every output locale, at most ``concurrency``
    provider calls at a time.

    Args:
        dictionary: The merged dictionary being filled.
        source_content: Source-locale content to translate.
        source_locale: Locale of ``source_content``.
        output_locales: Locales to translate into, one unit each.
        provider: Object exposing ``async translate_json(request, access_token)``.
        mode: ``complete`` or ``review``.
        config: Application configuration.
        concurrency: Maximum number of concurrent provider calls.
        access_token: Optional bearer token for the provider.
        ai_options: Extra options forwarded to the provider.
        on_status: Called with ``(locale, status)`` when a unit finishes.

    Returns:
        The per-locale dictionaries that were translated, in ``output_locales`` order.
    """
    if concurrency < 1:
        raise ValueError(f"Concurrency must be at least 1, got {concurrency}")

    semaphore = asyncio.Semaphore(concurrency)

    tasks = [
        asyncio.ensure_future(translate_locale(
            dictionary,
            source_content,
            source_locale,
            target_locale,
            provider,
            mode,
            config,
            semaphore,
            index,
            access_token=access_token,
            ai_options=ai_options,
            on_status=on_status,
        ))
        for index, target_locale in enumerate(output_locales)
    ]

    results = []
    try:
        for coro in tqdm.as_completed(tasks, desc=f"Translating {dictionary.key}", unit="locale", leave=False):
            index, result = await coro
            results.append((index, result))
    finally:
        # Cancel the locales an unexpected error left running
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # Completion order is arbitrary, keep the output locale order
    results.sort(key=lambda x: x[0])
    return [result for _, result in results if result is not None]
