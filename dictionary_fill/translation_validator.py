import logging
import re
from collections import Counter
from typing import Any, List, Tuple

logger = logging.getLogger(__name__)

# Matches {0}, {name} and the inner part of {{name}} insertions
PLACEHOLDER_REGEX = re.compile(r'\{([^{}]+)\}')


def check_placeholder_parity(base_string: str, target_string: str) -> bool:
    """
    Checks if the multiset of placeholders is identical between a base and a target string.
    Reordering is allowed, as it is common in translation.

    Args:
        base_string: The source-locale string.
        target_string: The translated string.

    Returns:
        True if both strings carry the same placeholders, False otherwise.
    """
    base_placeholders = Counter(PLACEHOLDER_REGEX.findall(base_string))
    target_placeholders = Counter(PLACEHOLDER_REGEX.findall(target_string))

    return base_placeholders == target_placeholders


def _format_path(key_path: Tuple[Any, ...]) -> str:
    return '.'.join(str(part) for part in key_path) or '<root>'


def _drop_mismatches(source: Any, translated: Any, key_path: Tuple[Any, ...], mismatches: List[str]) -> Any:
    if isinstance(translated, dict):
        source_dict = source if isinstance(source, dict) else {}
        result = {}
        for key, value in translated.items():
            kept = _drop_mismatches(source_dict.get(key), value, key_path + (key,), mismatches)
            if kept is not None:
                result[key] = kept
        return result
    if isinstance(translated, list):
        source_list = source if isinstance(source, list) else []
        return [
            _drop_mismatches(source_list[i] if i < len(source_list) else None, value, key_path + (i,), mismatches)
            for i, value in enumerate(translated)
        ]
    if isinstance(source, str) and isinstance(translated, str):
        if not check_placeholder_parity(source, translated):
            mismatches.append(_format_path(key_path))
            return None
    return translated


def drop_placeholder_mismatches(source: Any, translated: Any) -> Tuple[Any, List[str]]:
    """
    Remove translated string leaves whose placeholders differ from the source.

    Args:
        source: The single-locale tree that was sent for translation.
        translated: The single-locale tree returned by the provider.

    Returns:
        A tuple of the cleaned translated tree and the key paths that were dropped.
    """
    mismatches: List[str] = []
    cleaned = _drop_mismatches(source, translated, (), mismatches)
    return cleaned, mismatches
