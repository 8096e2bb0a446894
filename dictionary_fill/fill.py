"""
Fill orchestration: translate the content declarations of a project into
every output locale and write the results back.

One run goes through ``Init -> SelectTargets -> {Skip | ProcessDictionary}* -> Done``.
Dictionaries are processed one after another; the locales of a dictionary
are translated concurrently by the dispatcher.
"""
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from dictionary_fill.app_config import AppConfig, check_ai_access
from dictionary_fill.auto_fill import format_auto_fill_data
from dictionary_fill.dictionaries import (
    AutoFill,
    Dictionary,
    DictionaryFilter,
    DictionaryRepository,
    UnmergedDictionaryRepository,
    ensure_array,
    load_dictionary_record,
    select_targets,
)
from dictionary_fill.dispatcher import translate_dictionary
from dictionary_fill.git_files import GitOptions, list_git_files
from dictionary_fill.locale_content import (
    NodeContext,
    get_filter_translations_only_content,
    get_filtered_locales_content,
    get_localised_content,
)
from dictionary_fill.logging_config import set_verbose
from dictionary_fill.oauth import get_oauth2_access_token
from dictionary_fill.prepare import prepare_dictionaries
from dictionary_fill.progress import ProgressReporter, RunReport, StatusEntry
from dictionary_fill.providers import create_translation_provider
from dictionary_fill.reconciler import MODE_COMPLETE, MODE_REVIEW, MODES, merge_for_mode, reduce_dictionary_content
from dictionary_fill.writer import ContentDeclarationWriter, UnsupportedDeclarationFormat

logger = logging.getLogger(__name__)

StrOrList = Union[str, Sequence[str], None]
GitLister = Callable[[GitOptions, str], Optional[List[str]]]
TokenProvider = Callable[[], Awaitable[Optional[str]]]


@dataclass
class FillOptions:
    """Options of one fill run. Every filter is optional."""
    source_locale: Optional[str] = None
    output_locales: StrOrList = None
    file: StrOrList = None
    mode: str = MODE_REVIEW
    keys: StrOrList = None
    excluded_keys: StrOrList = None
    filter: Optional[DictionaryFilter] = None
    path_filter: StrOrList = None
    git_options: Optional[GitOptions] = None
    ai_options: Optional[Dict[str, Any]] = None
    verbose: bool = False
    nb_concurrent_translations: Optional[int] = None
    build: bool = False


@dataclass
class FillReport:
    """Outcome of a fill run."""
    written_files: List[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    failed_locales: Dict[str, List[str]] = field(default_factory=dict)
    run: RunReport = field(default_factory=RunReport)


def get_output_locales(options: FillOptions, config: AppConfig, base_locale: str) -> List[str]:
    """
    Locales to translate into.

    ``review`` translates every output locale, ``complete`` leaves the base
    locale out. Locales missing from the configured locales are dropped.
    """
    locales = ensure_array(options.output_locales) if options.output_locales else list(config.locales)
    unknown_locales = [locale for locale in locales if locale not in config.locales]
    if unknown_locales:
        logger.warning(
            f"Output locale(s) {', '.join(unknown_locales)} not declared in the configured locales. Skipping them."
        )
        locales = [locale for locale in locales if locale in config.locales]
    if options.mode == MODE_COMPLETE:
        return [locale for locale in locales if locale != base_locale]
    return locales


def write_auto_filled(
        full_dictionary: Dictionary,
        declaration: Dictionary,
        auto_fill: AutoFill,
        output_locales: Sequence[str],
        parent_locales: Sequence[str],
        config: AppConfig,
        writer: ContentDeclarationWriter
) -> List[str]:
    """
    Write the auto-fill outputs of a content declaration.

    Args:
        full_dictionary: The merged dictionary, all locales included.
        declaration: The source content declaration.
        auto_fill: Its ``autoFill`` specification.
        output_locales: Locales of the run.
        parent_locales: Locales not to write (the declaration's own source locale).
        config: Application configuration.
        writer: Content declaration writer.

    Returns:
        The paths written.
    """
    locale_list = [locale for locale in output_locales if locale not in parent_locales]
    if not declaration.file_path:
        logger.error(f"No file path found for dictionary '{declaration.key}'")
        return []

    ctx = NodeContext.for_dictionary(full_dictionary.key, config.locales)
    reduced = reduce_dictionary_content(full_dictionary, declaration, config.locales)
    written = []

    for output in format_auto_fill_data(auto_fill, locale_list, declaration.file_path, full_dictionary.key, config):
        if os.path.normpath(output.file_path) == os.path.normpath(declaration.file_path):
            logger.warning(
                f"Auto-fill output of '{full_dictionary.key}' resolves to its own content declaration "
                f"'{os.path.relpath(output.file_path, config.base_dir)}'. Skipping."
            )
            continue

        if output.is_per_locale:
            locale = output.locale_list[0]
            if len(output.locale_list) > 1:
                logger.warning(
                    f"Locales {output.locale_list} of '{full_dictionary.key}' share the output file "
                    f"'{os.path.relpath(output.file_path, config.base_dir)}', only {locale} is written."
                )
            content = get_localised_content(reduced.content, locale, ctx)
            auto_filled = replace(full_dictionary, locale=locale, content=content)
        else:
            content = get_filtered_locales_content(reduced.content, output.locale_list, ctx)
            auto_filled = replace(full_dictionary, content=content)

        auto_filled = replace(auto_filled, auto_filled=True, auto_fill=None, file_path=output.file_path)
        try:
            written.append(writer.write(auto_filled, output.file_path))
        except UnsupportedDeclarationFormat as e:
            logger.warning(f"Auto-fill output of '{full_dictionary.key}' not written. {e}")

    return written


async def fill(
        options: FillOptions,
        config: AppConfig,
        *,
        unmerged_repository: Optional[UnmergedDictionaryRepository] = None,
        merged_repository: Optional[DictionaryRepository] = None,
        provider=None,
        writer: Optional[ContentDeclarationWriter] = None,
        git_lister: Optional[GitLister] = None,
        token_provider: Optional[TokenProvider] = None,
        reporter: Optional[ProgressReporter] = None
) -> FillReport:
    """
    Fill translations based on the provided options.

    Collaborators default to the real implementations and can be injected.

    Raises:
        ConfigurationError: When no translation provider can be used.
        ValueError: On an unknown mode.
    """
    if options.mode not in MODES:
        raise ValueError(f"Unknown fill mode '{options.mode}', expected one of {MODES}")
    if options.verbose:
        set_verbose(True)

    token_provider = token_provider or (lambda: get_oauth2_access_token(config.editor))
    reporter = reporter or ProgressReporter()
    writer = writer or ContentDeclarationWriter(config)

    if options.build:
        unmerged_repository, merged_repository = await prepare_dictionaries(
            config, reporter=reporter, token_provider=token_provider
        )
    elif unmerged_repository is None or merged_repository is None:
        loaded_unmerged, loaded_merged = load_dictionary_record(
            config.dictionaries_dir, config.unmerged_dictionaries_dir
        )
        unmerged_repository = unmerged_repository or loaded_unmerged
        merged_repository = merged_repository or loaded_merged

    mode = options.mode
    base_locale = options.source_locale or config.default_locale

    check_ai_access(config, options.ai_options)
    provider = provider or create_translation_provider(config, options.ai_options)

    access_token = None
    if config.editor.has_credentials:
        access_token = await token_provider()

    logger.info("Starting fill function")

    git_changed_files = None
    if options.git_options is not None:
        git_changed_files = (git_lister or list_git_files)(options.git_options, config.base_dir)

    targets = select_targets(
        unmerged_repository.list(),
        config.base_dir,
        file=options.file,
        keys=options.keys,
        excluded_keys=options.excluded_keys,
        path_filter=options.path_filter,
        predicate=options.filter,
        git_changed_files=git_changed_files,
    )

    report = FillReport()
    if not targets:
        logger.warning("No dictionary matches the given filters. Nothing to fill.")
        return report

    output_locales = get_output_locales(options, config, base_locale)
    concurrency = options.nb_concurrent_translations or config.nb_concurrent_translations

    affected_keys = list(dict.fromkeys(target.key for target in targets))
    logger.debug(f"Affected dictionary keys for processing: {', '.join(affected_keys)}")

    with reporter.session(affected_keys, description='Filling dictionaries'):
        for target in targets:
            await _process_dictionary(
                target, merged_repository, provider, writer, reporter, report,
                config=config,
                mode=mode,
                base_locale=base_locale,
                output_locales=output_locales,
                concurrency=concurrency,
                access_token=access_token,
                ai_options=options.ai_options,
            )

    report.run = reporter.report
    return report


def _skip(reporter: ProgressReporter, report: FillReport, dictionary_key: str, reason: str) -> None:
    logger.warning(reason)
    report.skipped[dictionary_key] = reason
    reporter.update_status([StatusEntry(dictionary_key=dictionary_key, status='skipped', reason=reason)])


async def _process_dictionary(
        target: Dictionary,
        merged_repository: DictionaryRepository,
        provider,
        writer: ContentDeclarationWriter,
        reporter: ProgressReporter,
        report: FillReport,
        *,
        config: AppConfig,
        mode: str,
        base_locale: str,
        output_locales: List[str],
        concurrency: int,
        access_token: Optional[str],
        ai_options: Optional[Dict[str, Any]]
) -> None:
    dictionary_key = target.key
    main_dictionary = merged_repository.get(dictionary_key)
    source_locale = target.locale or base_locale

    if main_dictionary is None:
        _skip(reporter, report, dictionary_key,
              f"Dictionary with key '{dictionary_key}' not found in the dictionary record. Skipping.")
        return

    if not target.file_path:
        _skip(reporter, report, dictionary_key, f"Dictionary with key '{dictionary_key}' has no file path. Skipping.")
        return

    logger.info(f"Processing content declaration: {os.path.relpath(target.file_path, config.base_dir)}")

    ctx = NodeContext.for_dictionary(dictionary_key, config.locales)
    source_content = get_filter_translations_only_content(
        main_dictionary.content,
        source_locale,
        ctx,
        output_locales=output_locales if mode == MODE_COMPLETE else None,
    )

    if not source_content:
        _skip(reporter, report, dictionary_key,
              f"No content to translate for dictionary '{dictionary_key}' in source locale {source_locale}. "
              f"Skipping translation for this dictionary.")
        return

    def on_status(locale: str, status: str) -> None:
        reporter.update_status([StatusEntry(dictionary_key=dictionary_key, status=status, locale=locale)])
        if status == 'failed':
            report.failed_locales.setdefault(dictionary_key, []).append(locale)

    translated = await translate_dictionary(
        main_dictionary,
        source_content,
        source_locale,
        output_locales,
        provider,
        mode,
        config,
        concurrency=concurrency,
        access_token=access_token,
        ai_options=ai_options,
        on_status=on_status,
    )

    merged = merge_for_mode(main_dictionary, translated, mode)

    declaration = target
    if declaration.locale:
        declaration = replace(
            declaration,
            content=get_localised_content(main_dictionary.content, declaration.locale, ctx),
        )

    if declaration.auto_fill:
        written = write_auto_filled(
            merged, target, declaration.auto_fill, output_locales, [source_locale], config, writer
        )
    else:
        reduced = reduce_dictionary_content(merged, declaration, config.locales)
        try:
            written = [writer.write(reduced, declaration.file_path)]
        except UnsupportedDeclarationFormat as e:
            _skip(reporter, report, dictionary_key, f"Dictionary '{dictionary_key}' not written. {e}")
            return

    if not written:
        _skip(reporter, report, dictionary_key, f"No output written for dictionary '{dictionary_key}'.")
        return

    report.written_files.extend(written)
    status = 'written' if translated or not output_locales else 'failed'
    reporter.update_status([StatusEntry(dictionary_key=dictionary_key, status=status)])
