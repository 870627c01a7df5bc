"""Applies the full-coverage day note after assignment changes."""
from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Set, Tuple

from domain.roster_cache import RosterCache

logger = logging.getLogger(__name__)

Pair = Tuple[str, int]
ShiftWriter = Callable[[str, int, Optional[str], Optional[str], Optional[str]], bool]


class DerivedStateMaintainer:
    """Tracks (date, crew) pairs touched by assignment edits and, when asked,
    marks the crew member's shift with ``note`` once every show of that date
    (up to ``max_shows``) is worked on a track.

    Only touched pairs are evaluated, and a pair whose shift already carries
    the note produces no write.
    """

    def __init__(self, cache: RosterCache, write_shift: ShiftWriter, *, note: str, max_shows: int = 4) -> None:
        self.cache = cache
        self.write_shift = write_shift
        self.note = note
        self.max_shows = max(1, int(max_shows))
        self._touched: Set[Pair] = set()

    def touch(self, work_date: str, crew_id: int) -> None:
        self._touched.add((work_date, crew_id))

    def take_touched(self) -> Set[Pair]:
        touched, self._touched = self._touched, set()
        return touched

    @property
    def touched(self) -> Set[Pair]:
        return set(self._touched)

    def covers_day(self, work_date: str, crew_id: int) -> bool:
        shows = self.cache.get_shows_for_date(work_date)[: self.max_shows]
        if not shows:
            return False
        return all(self.cache.get_track_id(work_date, crew_id, show.id) is not None for show in shows)

    def run(self, pairs: Optional[Iterable[Pair]] = None) -> int:
        """Evaluate ``pairs`` (default: everything touched since the last run)."""
        pending = self.take_touched() if pairs is None else set(pairs)
        writes = 0
        for work_date, crew_id in sorted(pending):
            if not self.covers_day(work_date, crew_id):
                continue
            shift = self.cache.get_shift(work_date, crew_id)
            if shift is not None and shift.day_note == self.note:
                continue
            start = shift.start_time if shift else None
            end = shift.end_time if shift else None
            if self.write_shift(work_date, crew_id, start, end, self.note):
                writes += 1
        if writes:
            logger.info("applied %r to %d crew day(s)", self.note, writes)
        return writes


__all__ = ["DerivedStateMaintainer"]
