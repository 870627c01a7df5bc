"""Loads the remote roster for a window into a ``RosterCache``."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Tuple, Type, TypeVar

from adapters.rest_client import RestError
from domain.models import Assignment, CrewMember, DayHours, InvalidRowError, LoadReport, Shift, ShowInstance
from domain.roster_cache import RosterCache
from domain.window import DateWindow

from .errors import LoadError, MissingResourceError, RosterError, SchemaDriftError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_rows(model: Type[T], rows: Iterable[Mapping[str, Any]], slice_name: str) -> Tuple[List[T], int]:
    parsed: List[T] = []
    dropped = 0
    for row in rows:
        try:
            parsed.append(model.from_row(row))  # type: ignore[attr-defined]
        except InvalidRowError as exc:
            dropped += 1
            logger.debug("dropping %s row: %s", slice_name, exc)
    if dropped:
        logger.warning("dropped %d invalid %s row(s)", dropped, slice_name)
    return parsed, dropped


class CacheLoader:
    def __init__(self, gateway, cache: RosterCache, *, crew_columns: Tuple[str, str]) -> None:
        self.gateway = gateway
        self.cache = cache
        self.crew_columns = crew_columns
        self._generation = 0

    async def _fetch_crew(self, bypass_cache: bool) -> List[Dict[str, Any]]:
        extended, reduced = self.crew_columns
        try:
            return await self.gateway.fetch_crew(extended, bypass_cache=bypass_cache)
        except SchemaDriftError as exc:
            logger.warning("crew columns unavailable (%s); retrying with reduced set", exc)
            return await self.gateway.fetch_crew(reduced, bypass_cache=bypass_cache)

    async def _load_slice(
        self,
        slice_name: str,
        fetch: Callable[[], Awaitable[List[Dict[str, Any]]]],
        model: Type[Any],
        replace: Callable[[List[Any]], None],
        generation: int,
        *,
        missing_ok: bool = False,
    ) -> LoadReport:
        report = LoadReport(slice_name)
        self.cache.loading[slice_name] = True
        self.cache.errors[slice_name] = ""
        try:
            try:
                rows = await fetch()
            except MissingResourceError as exc:
                if not missing_ok:
                    raise
                logger.info("%s source not available (%s); treating as empty", slice_name, exc)
                rows = []
        except (RestError, RosterError) as exc:
            error = LoadError(slice_name, str(exc))
            if generation == self._generation:
                self.cache.errors[slice_name] = error.message
                self.cache.reset(slice_name)
            logger.warning("load failed: %s", error)
            report.error = error.message
            return report
        finally:
            if generation == self._generation:
                self.cache.loading[slice_name] = False

        records, report.dropped = parse_rows(model, rows, slice_name)
        if generation != self._generation:
            report.warnings.append("stale load discarded")
            return report
        replace(records)
        report.loaded = len(records)
        return report

    async def load(self, window: DateWindow, *, bypass_cache: bool = False) -> Dict[str, LoadReport]:
        """Replace every slice with the remote state of ``window``.

        Slices load independently; one failing does not stop the others. A
        newer ``load`` call supersedes any still in flight.
        """
        self._generation += 1
        generation = self._generation
        start, end = window.bounds
        reports = await asyncio.gather(
            self._load_slice(
                "crew", lambda: self._fetch_crew(bypass_cache), CrewMember, self.cache.replace_crew, generation
            ),
            self._load_slice(
                "shows",
                lambda: self.gateway.fetch_shows(start, end, bypass_cache=bypass_cache),
                ShowInstance,
                self.cache.replace_shows,
                generation,
            ),
            self._load_slice(
                "assignments",
                lambda: self.gateway.fetch_assignments(start, end, bypass_cache=bypass_cache),
                Assignment,
                self.cache.replace_assignments,
                generation,
            ),
            self._load_slice(
                "shifts",
                lambda: self.gateway.fetch_shifts(start, end, bypass_cache=bypass_cache),
                Shift,
                self.cache.replace_shifts,
                generation,
            ),
            self._load_slice(
                "day_hours",
                lambda: self.gateway.fetch_day_hours(start, end, bypass_cache=bypass_cache),
                DayHours,
                self.cache.replace_day_hours,
                generation,
                missing_ok=True,
            ),
        )
        return {report.slice_name: report for report in reports}

    async def refresh_day_hours(self, work_date: str, crew_id: int) -> None:
        try:
            rows = await self.gateway.fetch_day_hours_for(work_date, crew_id)
        except MissingResourceError:
            return
        except (RestError, RosterError) as exc:
            self.cache.errors["day_hours"] = str(exc)
            logger.warning("day hours refresh failed for %s/%s: %s", work_date, crew_id, exc)
            return
        records, _ = parse_rows(DayHours, rows, "day_hours")
        self.cache.invalidate_day_hours(work_date, crew_id)
        for record in records:
            self.cache.put_day_hours(record)


__all__ = ["CacheLoader", "parse_rows"]
