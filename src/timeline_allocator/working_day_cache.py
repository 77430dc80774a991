from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable

from .models import Holiday, WorkingDaySettings

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000

CacheKey = tuple[date, tuple[float, ...], tuple[tuple[str, date, date], ...]]


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class WorkingDayCache:
    """
    Bounded LRU memo of working-day answers.

    Entries are keyed by the day together with fingerprints of the settings and
    the holiday set, so editing either simply misses instead of returning stale
    answers. Instances are passed explicitly to the calendar functions; there
    is no module-level cache.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[CacheKey, bool] = OrderedDict()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(day: date, settings: WorkingDaySettings, holidays: Iterable[Holiday]) -> CacheKey:
        holiday_key = tuple(sorted((h.id, h.start_date, h.end_date) for h in holidays))
        return (day, settings.cache_key(), holiday_key)

    def get_or_compute(self, key: CacheKey, compute: Callable[[], bool]) -> bool:
        if key in self._entries:
            self._hits += 1
            self._entries.move_to_end(key)
            return self._entries[key]

        self._misses += 1
        value = compute()
        self._entries[key] = value
        if len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("working day cache full, evicted %s", evicted[0])
        return value

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
