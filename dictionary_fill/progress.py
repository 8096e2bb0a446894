"""
Progress reporting for one pipeline run.

The reporter is shared state: it is started with every dictionary key a run
knows about and must be ended whatever happens, which ``session()`` takes
care of.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from tqdm import tqdm

logger = logging.getLogger(__name__)

FINAL_STATUSES = {'written', 'skipped', 'failed', 'built'}


class ReporterStateError(Exception):
    """Raised when a session is begun twice or updated outside a session."""


@dataclass
class StatusEntry:
    dictionary_key: str
    status: str
    locale: Optional[str] = None
    reason: Optional[str] = None
    type: str = 'local'


@dataclass
class RunReport:
    """Per-dictionary, per-locale outcome of a run."""
    dictionaries: Dict[str, str] = field(default_factory=dict)
    locales: Dict[str, Dict[str, str]] = field(default_factory=dict)
    reasons: Dict[str, str] = field(default_factory=dict)

    def keys_with_status(self, status: str) -> List[str]:
        return [key for key, value in self.dictionaries.items() if value == status]


class ProgressReporter:
    """Tracks dictionary statuses and drives a progress bar while a session is open."""

    def __init__(self, show_progress: bool = True):
        self.show_progress = show_progress
        self.report = RunReport()
        self._bar: Optional[tqdm] = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def begin(self, dictionary_keys: Iterable[str], description: str = 'Dictionaries') -> None:
        if self._active:
            raise ReporterStateError("A progress session is already running")
        keys = list(dict.fromkeys(dictionary_keys))
        self.report = RunReport(dictionaries={key: 'pending' for key in keys})
        self._active = True
        self._bar = tqdm(total=len(keys), desc=description, unit='dictionary', disable=not self.show_progress)

    def add_dictionary_keys(self, dictionary_keys: Iterable[str]) -> None:
        new_keys = [key for key in dictionary_keys if key not in self.report.dictionaries]
        for key in new_keys:
            self.report.dictionaries[key] = 'pending'
        if self._bar is not None and new_keys:
            self._bar.total += len(new_keys)
            self._bar.refresh()

    def update_status(self, entries: Iterable[StatusEntry]) -> None:
        if not self._active:
            raise ReporterStateError("update_status() called outside of a progress session")
        for entry in entries:
            if entry.locale:
                self.report.locales.setdefault(entry.dictionary_key, {})[entry.locale] = entry.status
                continue
            previous = self.report.dictionaries.get(entry.dictionary_key)
            self.report.dictionaries[entry.dictionary_key] = entry.status
            if entry.reason:
                self.report.reasons[entry.dictionary_key] = entry.reason
            if entry.status in FINAL_STATUSES and previous not in FINAL_STATUSES and self._bar is not None:
                self._bar.update(1)

    def end(self) -> RunReport:
        """Close the session. Safe to call when no session is running."""
        if self._bar is not None:
            self._bar.close()
            self._bar = None
        if self._active:
            self._active = False
            self._log_summary()
        return self.report

    def _log_summary(self) -> None:
        statuses: Dict[str, int] = {}
        for status in self.report.dictionaries.values():
            statuses[status] = statuses.get(status, 0) + 1
        summary = ', '.join(f"{count} {status}" for status, count in sorted(statuses.items()))
        logger.info(f"Run finished: {summary or 'no dictionaries'}")
        for key, locales in self.report.locales.items():
            failed = [locale for locale, status in locales.items() if status == 'failed']
            if failed:
                logger.warning(f"Dictionary '{key}' could not be translated to: {', '.join(failed)}")

    @contextmanager
    def session(self, dictionary_keys: Iterable[str], description: str = 'Dictionaries') -> Iterator['ProgressReporter']:
        """Open a session that is always ended, also when the body raises."""
        self.begin(dictionary_keys, description)
        try:
            yield self
        finally:
            self.end()
