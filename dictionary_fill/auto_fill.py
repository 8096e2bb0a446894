"""
Output path resolution for auto-filled content declarations.

The ``autoFill`` field of a declaration tells where the filled content is
written:

* ``true``: next to the declaration, as ``.json``
* ``"./{{fileName}}.{{locale}}.json"``: a template, one file per locale when
  it contains ``{{locale}}``, a single multi-locale file otherwise
* ``{"en": "./en.json", "fr": "./fr.json"}``: one template per locale
"""
import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from dictionary_fill.app_config import AppConfig
from dictionary_fill.dictionaries import AutoFill

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r'\{\{(\w+)\}\}')
LOCALE_PLACEHOLDER = '{{locale}}'


@dataclass
class AutoFillData:
    """One physical output file and the locales it covers."""
    locale_list: List[str]
    file_path: str
    is_per_locale: bool = False


def get_file_name(file_path: str) -> str:
    """
    Strip the last two extensions of a declaration file name.

    ``/src/components/home/index.content.json`` gives ``index`` and
    ``./test.content.tsx`` gives ``test``.
    """
    return '.'.join(os.path.basename(file_path).split('.')[:-2])


def render_template(template: str, values: Dict[str, Optional[str]]) -> str:
    """
    Substitute ``{{name}}`` placeholders.

    Only names present in ``values`` with a non-None value are replaced;
    unknown placeholders are left as they are.
    """
    def substitute(match: re.Match) -> str:
        value = values.get(match.group(1))
        return match.group(0) if value is None else value

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def transform_uri_to_absolute_path(uri: str, file_path: str, base_dir: str) -> str:
    """
    Resolve a rendered template.

    ``/...`` is relative to the content base directory, ``./...`` to the
    declaration's directory. Any other form resolves to the declaration path.
    """
    if uri.startswith('/'):
        return os.path.normpath(os.path.join(base_dir, uri.lstrip('/')))
    if uri.startswith('./'):
        return os.path.normpath(os.path.join(os.path.dirname(file_path), uri))
    return file_path


def format_auto_filled_file_path(
        auto_fill_field: str,
        dictionary_key: str,
        dictionary_file_path: str,
        base_dir: str,
        locale: Optional[str] = None
) -> str:
    rendered = render_template(auto_fill_field, {
        'key': dictionary_key,
        'fileName': get_file_name(dictionary_file_path),
        'locale': locale,
    })
    return transform_uri_to_absolute_path(rendered, dictionary_file_path, base_dir)


def _json_file_path(file_path: str) -> str:
    root, _ = os.path.splitext(file_path)
    json_file_path = f"{root}.json"
    if json_file_path == file_path:
        # index.content.json would overwrite itself; write index.content.fill.json
        json_file_path = f"{root}.fill.json"
    return json_file_path


def format_auto_fill_data(
        auto_fill_field: AutoFill,
        locale_list: List[str],
        file_path: str,
        dictionary_key: str,
        config: AppConfig
) -> List[AutoFillData]:
    """
    Compute the output files of an auto-fill specification.

    Args:
        auto_fill_field: The ``autoFill`` value of the declaration.
        locale_list: Locales to write.
        file_path: Path of the source content declaration.
        dictionary_key: Key of the dictionary, for ``{{key}}``.
        config: Application configuration, for the content base directory.

    Returns:
        One AutoFillData per output file. Empty when auto-fill is disabled.
    """
    if not auto_fill_field:
        return []

    base_dir = config.base_dir

    if auto_fill_field is True:
        return [AutoFillData(list(locale_list), _json_file_path(file_path), is_per_locale=False)]

    if isinstance(auto_fill_field, str):
        if LOCALE_PLACEHOLDER in auto_fill_field:
            return [
                AutoFillData(
                    [locale],
                    format_auto_filled_file_path(auto_fill_field, dictionary_key, file_path, base_dir, locale),
                    is_per_locale=True,
                )
                for locale in locale_list
            ]
        return [AutoFillData(
            list(locale_list),
            format_auto_filled_file_path(auto_fill_field, dictionary_key, file_path, base_dir),
            is_per_locale=False,
        )]

    if isinstance(auto_fill_field, dict):
        grouped: Dict[str, AutoFillData] = {}
        for locale, template in auto_fill_field.items():
            if not isinstance(template, str) or not template:
                continue
            output_path = format_auto_filled_file_path(template, dictionary_key, file_path, base_dir, locale)
            if output_path in grouped:
                grouped[output_path].locale_list.append(locale)
            else:
                grouped[output_path] = AutoFillData([locale], output_path, is_per_locale=True)
        return list(grouped.values())

    logger.warning(f"Unsupported autoFill value for '{dictionary_key}': {auto_fill_field!r}")
    return []
