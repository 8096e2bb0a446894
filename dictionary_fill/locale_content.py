"""
Locale projections over dictionary content trees.

A content tree is made of plain dicts and lists whose translation leaves are
either explicit nodes ``{"nodeType": "translation", "translation": {...}}`` or
implicit locale maps such as ``{"en": "Hello", "fr": "Bonjour"}``. Every
projection here is pure: the input tree is never mutated and the nesting of
the result follows the input.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple, Union

logger = logging.getLogger(__name__)

NODE_TYPE_KEY = 'nodeType'
TRANSLATION_NODE_TYPE = 'translation'
TRANSLATION_KEY = 'translation'

KeyPathItem = Union[str, int]


class _Missing:
    def __repr__(self):
        return '<missing>'


_MISSING = _Missing()


@dataclass(frozen=True)
class NodeContext:
    """Position of a node in a dictionary, used for diagnostics.

    ``locales`` lists the locale codes an implicit locale map may use as keys.
    """
    dictionary_key: str
    key_path: Tuple[KeyPathItem, ...] = ()
    locales: FrozenSet[str] = frozenset()

    @classmethod
    def for_dictionary(cls, dictionary_key: str, locales: Iterable[str]) -> 'NodeContext':
        return cls(dictionary_key=dictionary_key, locales=frozenset(locales))

    def child(self, key: KeyPathItem) -> 'NodeContext':
        return NodeContext(self.dictionary_key, self.key_path + (key,), self.locales)

    @property
    def location(self) -> str:
        path = '.'.join(str(part) for part in self.key_path)
        return f"{self.dictionary_key}:{path}" if path else self.dictionary_key


def is_translation_node(node: Any, ctx: NodeContext) -> bool:
    """Return True when ``node`` is a translation leaf (explicit or implicit)."""
    if not isinstance(node, dict) or not node:
        return False
    if node.get(NODE_TYPE_KEY) == TRANSLATION_NODE_TYPE:
        return isinstance(node.get(TRANSLATION_KEY), dict)
    if NODE_TYPE_KEY in node:
        return False
    return bool(ctx.locales) and all(key in ctx.locales for key in node)


def _translations_of(node: Dict[str, Any]) -> Dict[str, Any]:
    if node.get(NODE_TYPE_KEY) == TRANSLATION_NODE_TYPE:
        return node[TRANSLATION_KEY]
    return node


def _make_translation_node(like: Dict[str, Any], translations: Dict[str, Any]) -> Dict[str, Any]:
    """Build a translation node using the same form (explicit or implicit) as ``like``."""
    if like.get(NODE_TYPE_KEY) == TRANSLATION_NODE_TYPE:
        return {NODE_TYPE_KEY: TRANSLATION_NODE_TYPE, TRANSLATION_KEY: translations}
    return dict(translations)


def _has_content(value: Any) -> bool:
    return value is not None and value != ''


def _collect_list(items: Iterable[Any]) -> Any:
    """Keep list positions stable; missing items become None. All-missing lists are missing."""
    items = list(items)
    if items and all(item is _MISSING for item in items):
        return _MISSING
    return [None if item is _MISSING else item for item in items]


def _localise(node: Any, locale: str, ctx: NodeContext) -> Any:
    if is_translation_node(node, ctx):
        translations = _translations_of(node)
        if locale not in translations:
            logger.debug(f"No '{locale}' content at {ctx.location}")
            return _MISSING
        return _localise(translations[locale], locale, ctx)
    if isinstance(node, dict):
        result = {}
        for key, child in node.items():
            value = _localise(child, locale, ctx.child(key))
            if value is not _MISSING:
                result[key] = value
        return result
    if isinstance(node, list):
        return [
            None if value is _MISSING else value
            for value in (_localise(child, locale, ctx.child(i)) for i, child in enumerate(node))
        ]
    return node


def get_localised_content(node: Any, locale: str, ctx: NodeContext) -> Any:
    """
    Project a content tree onto a single locale.

    Translation leaves are replaced by their value for ``locale``; leaves
    without that locale are dropped from dicts (``None`` in lists). Plain
    leaves are returned unchanged. Returns None when the root itself is a
    translation leaf lacking the locale.
    """
    result = _localise(node, locale, ctx)
    return None if result is _MISSING else result


def _filter_translations_only(
        node: Any,
        source_locale: str,
        output_locales: Optional[Tuple[str, ...]],
        ctx: NodeContext
) -> Any:
    if is_translation_node(node, ctx):
        translations = _translations_of(node)
        if not _has_content(translations.get(source_locale)):
            return _MISSING
        if output_locales is not None and all(
                _has_content(translations.get(locale)) for locale in output_locales):
            return _MISSING
        return _localise(translations[source_locale], source_locale, ctx)
    if isinstance(node, dict):
        result = {}
        for key, child in node.items():
            value = _filter_translations_only(child, source_locale, output_locales, ctx.child(key))
            if value is not _MISSING:
                result[key] = value
        return result or _MISSING
    if isinstance(node, list):
        return _collect_list(
            _filter_translations_only(child, source_locale, output_locales, ctx.child(i))
            for i, child in enumerate(node)
        )
    return _MISSING


def get_filter_translations_only_content(
        node: Any,
        source_locale: str,
        ctx: NodeContext,
        output_locales: Optional[Iterable[str]] = None
) -> Dict[str, Any]:
    """
    Keep only the translation leaves that still need translating, projected
    to their ``source_locale`` value.

    Plain (non-translatable) leaves are dropped and emptied containers are
    pruned. When ``output_locales`` is given, leaves that already have content
    for every one of them are dropped as well.

    Returns:
        The pruned tree, or an empty dict when nothing needs translating.
    """
    locales = tuple(output_locales) if output_locales is not None else None
    result = _filter_translations_only(node, source_locale, locales, ctx)
    return {} if result is _MISSING else result


def _filter_locales(node: Any, locales: FrozenSet[str], ctx: NodeContext) -> Any:
    if is_translation_node(node, ctx):
        kept = {locale: value for locale, value in _translations_of(node).items() if locale in locales}
        if not kept:
            return _MISSING
        return _make_translation_node(node, kept)
    if isinstance(node, dict):
        result = {}
        for key, child in node.items():
            value = _filter_locales(child, locales, ctx.child(key))
            if value is not _MISSING:
                result[key] = value
        return result
    if isinstance(node, list):
        return [
            None if value is _MISSING else value
            for value in (_filter_locales(child, locales, ctx.child(i)) for i, child in enumerate(node))
        ]
    return node


def get_filtered_locales_content(node: Any, locales: Iterable[str], ctx: NodeContext) -> Any:
    """
    Restrict every translation leaf to ``locales``, keeping its node form.

    Used when one output file covers several locales at once.
    """
    result = _filter_locales(node, frozenset(locales), ctx)
    return None if result is _MISSING else result


def get_per_locale_content(node: Any, locale: str, ctx: NodeContext) -> Any:
    """Wrap every plain leaf of a single-locale tree into a ``{locale: value}`` map."""
    if is_translation_node(node, ctx):
        return node
    if isinstance(node, dict):
        return {key: get_per_locale_content(child, locale, ctx.child(key)) for key, child in node.items()}
    if isinstance(node, list):
        return [get_per_locale_content(child, locale, ctx.child(i)) for i, child in enumerate(node)]
    if node is None:
        return None
    return {locale: node}


def _localise_into(base: Any, translated: Any, locale: str, ctx: NodeContext) -> Any:
    if translated is None:
        return _MISSING
    if is_translation_node(base, ctx):
        return _make_translation_node(base, {locale: translated})
    if isinstance(base, dict):
        if not isinstance(translated, dict):
            logger.debug(f"Ignoring translated value of unexpected shape at {ctx.location}")
            return _MISSING
        result = {}
        for key, child in base.items():
            if key not in translated:
                continue
            value = _localise_into(child, translated[key], locale, ctx.child(key))
            if value is not _MISSING:
                result[key] = value
        return result or _MISSING
    if isinstance(base, list):
        if not isinstance(translated, list):
            return _MISSING
        return _collect_list(
            _localise_into(child, translated[i], locale, ctx.child(i)) if i < len(translated) else _MISSING
            for i, child in enumerate(base)
        )
    return _MISSING


def localise_into(base: Any, translated: Any, locale: str, ctx: NodeContext) -> Dict[str, Any]:
    """
    Map a single-locale tree returned by a translation provider back onto the
    translation leaves of ``base``.

    Each translated value becomes a single-locale translation node of the
    same form as the base leaf. Keys the base does not have are ignored.
    """
    result = _localise_into(base, translated, locale, ctx)
    return {} if result is _MISSING else result
