"""
Reconciliation of base dictionaries with freshly translated content.
"""
import logging
from dataclasses import replace
from functools import reduce
from typing import Any, List, Sequence

from dictionary_fill.dictionaries import Dictionary
from dictionary_fill.locale_content import NodeContext, get_localised_content, is_translation_node

logger = logging.getLogger(__name__)

MODE_REVIEW = 'review'
MODE_COMPLETE = 'complete'
MODES = (MODE_COMPLETE, MODE_REVIEW)


def merge_content(first: Any, second: Any) -> Any:
    """
    Deep-merge two content trees; ``first`` wins on conflicting leaves.

    Dicts are merged key by key, lists position by position, and
    non-overlapping leaves are unioned. The inputs are not modified.
    """
    if isinstance(first, dict) and isinstance(second, dict):
        merged = {}
        for key, value in first.items():
            merged[key] = merge_content(value, second[key]) if key in second else value
        for key, value in second.items():
            if key not in first:
                merged[key] = value
        return merged
    if isinstance(first, list) and isinstance(second, list):
        length = max(len(first), len(second))
        return [
            merge_content(
                first[i] if i < len(first) else None,
                second[i] if i < len(second) else None,
            )
            for i in range(length)
        ]
    return second if first is None else first


def merge_dictionaries(dictionaries: Sequence[Dictionary]) -> Dictionary:
    """
    Merge dictionaries sharing a key. Earlier dictionaries take precedence.

    The result keeps the metadata of the first dictionary, without a locale.
    """
    if not dictionaries:
        raise ValueError("At least one dictionary is required to merge")

    first = dictionaries[0]
    different_keys = {d.key for d in dictionaries if d.key != first.key}
    if different_keys:
        logger.warning(f"Merging dictionaries with different keys into '{first.key}': {sorted(different_keys)}")

    content = reduce(merge_content, (d.content for d in dictionaries[1:]), first.content)
    return replace(first, content=content, locale=None)


def merge_for_mode(base: Dictionary, translated: Sequence[Dictionary], mode: str) -> Dictionary:
    """
    Merge translated per-locale dictionaries into the base dictionary.

    ``review`` lets the new translations override the base content,
    ``complete`` only lets them fill the gaps of the base content.
    """
    if mode == MODE_REVIEW:
        ordered: List[Dictionary] = [*translated, base]
    elif mode == MODE_COMPLETE:
        ordered = [base, *translated]
    else:
        raise ValueError(f"Unknown fill mode '{mode}', expected one of {MODES}")

    merged = merge_dictionaries(ordered)
    return replace(merged, **_metadata_of(base))


def _metadata_of(dictionary: Dictionary) -> dict:
    return {
        'description': dictionary.description,
        'title': dictionary.title,
        'file_path': dictionary.file_path,
        'auto_fill': dictionary.auto_fill,
        'auto_filled': dictionary.auto_filled,
        'updated_at': dictionary.updated_at,
        'location': dictionary.location,
    }


def _reduce_content(source: Any, reducer: Any, ctx: NodeContext) -> Any:
    if is_translation_node(reducer, ctx):
        return source
    if isinstance(reducer, dict) and isinstance(source, dict) and not is_translation_node(source, ctx):
        return {
            key: _reduce_content(source[key], reducer_value, ctx.child(key))
            for key, reducer_value in reducer.items()
            if key in source
        }
    if isinstance(reducer, list) and isinstance(source, list):
        return [
            _reduce_content(source[i], reducer_value, ctx.child(i))
            for i, reducer_value in enumerate(reducer)
            if i < len(source)
        ]
    return source


def reduce_dictionary_content(merged: Dictionary, target: Dictionary, locales: Sequence[str]) -> Dictionary:
    """
    Narrow a merged, all-locale dictionary down to what ``target`` declares.

    Only the keys of the target declaration survive; leaves and translation
    nodes are taken whole from ``merged``. When the target is a per-locale
    declaration the result is further projected onto its locale.

    Args:
        merged: The merged dictionary.
        target: The content declaration being written back.
        locales: Locale codes recognised in implicit locale maps.

    Returns:
        A new dictionary carrying the target's metadata and the reduced content.
    """
    ctx = NodeContext.for_dictionary(merged.key, locales)
    content = _reduce_content(merged.content, target.content, ctx)
    if target.locale:
        content = get_localised_content(content, target.locale, ctx)
    return replace(target, content=content)
