"""
Dictionary model, read-only dictionary repositories and target selection.

A dictionary is one logical translation unit. The *unmerged* view holds one
entry per content declaration file, the *merged* view one entry per key.
"""
import glob
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar('T')

ContentNode = Any
AutoFill = Union[bool, str, Dict[str, str], None]
DictionaryFilter = Callable[['Dictionary'], bool]


def ensure_array(value: Union[T, Sequence[T], None]) -> List[T]:
    """Wrap a scalar into a list; lists and tuples are copied as-is."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass(frozen=True)
class Dictionary:
    """A content dictionary, as declared in a file or merged per key."""
    key: str
    content: ContentNode = field(default_factory=dict)
    locale: Optional[str] = None
    file_path: Optional[str] = None
    description: Optional[str] = None
    title: Optional[str] = None
    auto_filled: bool = False
    auto_fill: AutoFill = None
    updated_at: Optional[int] = None
    location: str = 'local'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Dictionary':
        """Build a dictionary from its JSON (camelCase) representation."""
        return cls(
            key=data.get('key', ''),
            content=data.get('content', {}),
            locale=data.get('locale'),
            file_path=data.get('filePath'),
            description=data.get('description'),
            title=data.get('title'),
            auto_filled=bool(data.get('autoFilled', False)),
            auto_fill=data.get('autoFill'),
            updated_at=data.get('updatedAt'),
            location=data.get('location', 'local'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON (camelCase) representation; unset optional fields are omitted."""
        data: Dict[str, Any] = {'key': self.key}
        optional_fields = (
            ('title', self.title),
            ('description', self.description),
            ('locale', self.locale),
            ('autoFill', self.auto_fill),
            ('updatedAt', self.updated_at),
            ('filePath', self.file_path),
        )
        for name, value in optional_fields:
            if value is not None:
                data[name] = value
        if self.auto_filled:
            data['autoFilled'] = True
        if self.location != 'local':
            data['location'] = self.location
        data['content'] = self.content
        return data


class DictionaryRepository:
    """Read-only access to merged dictionaries, one per key."""

    def __init__(self, dictionaries: Optional[Dict[str, Dictionary]] = None):
        self._dictionaries: Dict[str, Dictionary] = dict(dictionaries or {})

    def get(self, key: str) -> Optional[Dictionary]:
        return self._dictionaries.get(key)

    def list(self) -> List[Dictionary]:
        return list(self._dictionaries.values())

    def keys(self) -> List[str]:
        return list(self._dictionaries.keys())

    def __len__(self) -> int:
        return len(self._dictionaries)


class UnmergedDictionaryRepository:
    """Read-only access to unmerged dictionaries, several per key."""

    def __init__(self, dictionaries: Optional[Dict[str, List[Dictionary]]] = None):
        self._dictionaries: Dict[str, List[Dictionary]] = {
            key: list(entries) for key, entries in (dictionaries or {}).items()
        }

    @classmethod
    def from_list(cls, dictionaries: Iterable[Dictionary]) -> 'UnmergedDictionaryRepository':
        grouped: Dict[str, List[Dictionary]] = {}
        for dictionary in dictionaries:
            grouped.setdefault(dictionary.key, []).append(dictionary)
        return cls(grouped)

    def get(self, key: str) -> List[Dictionary]:
        return list(self._dictionaries.get(key, []))

    def list(self) -> List[Dictionary]:
        return [dictionary for entries in self._dictionaries.values() for dictionary in entries]

    def keys(self) -> List[str]:
        return list(self._dictionaries.keys())


def _read_json(file_path: str) -> Any:
    with open(file_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_dictionary_record(dictionaries_dir: str, unmerged_dictionaries_dir: str):
    """
    Load the generated dictionary record from disk.

    ``dictionaries_dir`` holds one ``<key>.json`` merged dictionary per key,
    ``unmerged_dictionaries_dir`` one ``<key>.json`` list of declarations per key.
    Unreadable files are logged and skipped.

    Returns:
        A ``(UnmergedDictionaryRepository, DictionaryRepository)`` tuple.
    """
    merged: Dict[str, Dictionary] = {}
    for file_path in sorted(glob.glob(os.path.join(dictionaries_dir, '**', '*.json'), recursive=True)):
        try:
            dictionary = Dictionary.from_dict(_read_json(file_path))
        except (OSError, ValueError, AttributeError) as e:
            logger.error(f"Could not read dictionary record '{file_path}': {e}")
            continue
        merged[dictionary.key] = dictionary

    unmerged: Dict[str, List[Dictionary]] = {}
    for file_path in sorted(glob.glob(os.path.join(unmerged_dictionaries_dir, '**', '*.json'), recursive=True)):
        try:
            entries = [Dictionary.from_dict(entry) for entry in ensure_array(_read_json(file_path))]
        except (OSError, ValueError, AttributeError) as e:
            logger.error(f"Could not read unmerged dictionary record '{file_path}': {e}")
            continue
        for entry in entries:
            unmerged.setdefault(entry.key, []).append(entry)

    logger.debug(f"Loaded {len(merged)} merged and {len(unmerged)} unmerged dictionary key(s)")
    return UnmergedDictionaryRepository(unmerged), DictionaryRepository(merged)


def select_targets(
        dictionaries: Iterable[Dictionary],
        base_dir: str,
        file: Union[str, Sequence[str], None] = None,
        keys: Union[str, Sequence[str], None] = None,
        excluded_keys: Union[str, Sequence[str], None] = None,
        path_filter: Union[str, Sequence[str], None] = None,
        predicate: Optional[DictionaryFilter] = None,
        git_changed_files: Optional[Sequence[str]] = None
) -> List[Dictionary]:
    """
    Select the unmerged dictionaries a fill run should translate.

    Every filter is optional and they apply conjunctively. Auto-filled
    dictionaries are always excluded, as they are generated output.

    Args:
        dictionaries: All unmerged dictionaries.
        base_dir: Base directory the ``file`` entries are relative to.
        file: Content declaration file(s), relative to ``base_dir``.
        keys: Dictionary keys to keep.
        excluded_keys: Dictionary keys to drop.
        path_filter: Exact file paths to keep.
        predicate: Arbitrary filter over a dictionary.
        git_changed_files: Changed files reported by git; None disables the filter.

    Returns:
        The selected dictionaries, in input order. May be empty.
    """
    result = list(dictionaries)

    if file is not None:
        absolute_file_paths = {os.path.normpath(os.path.join(base_dir, f)) for f in ensure_array(file)}
        result = [
            d for d in result
            if d.file_path and os.path.normpath(os.path.join(base_dir, d.file_path)) in absolute_file_paths
        ]

    if keys is not None:
        allowed_keys = set(ensure_array(keys))
        result = [d for d in result if d.key in allowed_keys]

    if excluded_keys is not None:
        denied_keys = set(ensure_array(excluded_keys))
        result = [d for d in result if d.key not in denied_keys]

    if path_filter is not None:
        allowed_paths = set(ensure_array(path_filter))
        result = [d for d in result if (d.file_path or '') in allowed_paths]

    if predicate is not None:
        result = [d for d in result if predicate(d)]

    if git_changed_files is not None:
        changed = set(git_changed_files)
        result = [d for d in result if d.file_path and d.file_path in changed]

    return [d for d in result if not d.auto_filled]
