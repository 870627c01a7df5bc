"""Roster session: optimistic edits, debounced batched writes, pause and retry.

A session owns one window of roster state for one location. Every edit is
applied to the cache immediately and recorded in the write-behind buffer;
a single debounce timer coalesces edits into one flush. A failed flush
pauses the session: the buffer is kept, further edits are refused, and
``retry_saving`` resumes.

All methods must run on the event loop that owns the session.
"""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from adapters.rest_client import RestError
from config import CONFIG
from domain import keys
from domain.models import Assignment, AssignmentWrite, CrewMember, DayHours, LoadReport, Shift, ShiftWrite, ShowInstance
from domain.roster_cache import RosterCache
from domain.window import DateWindow

from .cache_loader import CacheLoader, parse_rows
from .derived_state import DerivedStateMaintainer
from .errors import FlushError, LoadError, RosterError
from .timers import LoopTimer, TimerFactory
from .write_buffer import FlushBatch, WriteBehindBuffer

logger = logging.getLogger(__name__)

KEEP = object()


class RosterSession:
    def __init__(
        self,
        gateway,
        *,
        location_id: Optional[int] = None,
        start: Optional[str] = None,
        range_length: int = 7,
        debounce_ms: int = 550,
        saved_pulse_ms: int = 650,
        max_shows_per_day: int = 4,
        full_day_note: str = "Full Day",
        default_shift: Tuple[str, str] = ("13:45:00", "21:45:00"),
        crew_columns: Optional[Tuple[str, str]] = None,
        timer_factory: TimerFactory = LoopTimer,
    ) -> None:
        self.gateway = gateway
        self.location_id = int(location_id if location_id is not None else gateway.location_id)
        self.window = DateWindow.starting(start, range_length)
        self.cache = RosterCache()
        self.buffer = WriteBehindBuffer()
        self.loader = CacheLoader(
            gateway,
            self.cache,
            crew_columns=crew_columns or (CONFIG["crew_columns"]["extended"], CONFIG["crew_columns"]["reduced"]),
        )
        self.max_shows_per_day = max(1, int(max_shows_per_day))
        self.maintainer = DerivedStateMaintainer(
            self.cache, self._write_derived_shift, note=full_day_note, max_shows=self.max_shows_per_day
        )
        self.default_shift = default_shift
        self.debounce_s = debounce_ms / 1000.0
        self.saved_pulse_s = saved_pulse_ms / 1000.0
        self._save_timer = timer_factory()
        self._pulse_timer = timer_factory()
        self._flush_lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._closing = False

        self.is_saving = False
        self.saved_pulse = False
        self.save_paused = False
        self.save_error = ""
        self.last_flush_error: Optional[FlushError] = None

    @classmethod
    def from_config(cls, gateway, cfg: Mapping[str, Any], **overrides: Any) -> "RosterSession":
        roster = cfg.get("roster", {})
        columns = cfg.get("crew_columns", {})
        options: Dict[str, Any] = {
            "range_length": int(roster.get("range_length", 7)),
            "debounce_ms": int(roster.get("debounce_ms", 550)),
            "saved_pulse_ms": int(roster.get("saved_pulse_ms", 650)),
            "max_shows_per_day": int(roster.get("max_shows_per_day", 4)),
            "full_day_note": roster.get("full_day_note", "Full Day"),
        }
        default_shift = roster.get("default_shift") or {}
        if default_shift.get("start") and default_shift.get("end"):
            options["default_shift"] = (default_shift["start"], default_shift["end"])
        if columns.get("extended") and columns.get("reduced"):
            options["crew_columns"] = (columns["extended"], columns["reduced"])
        options.update(overrides)
        return cls(gateway, **options)

    # -- Window ----------------------------------------------------------------------
    @property
    def start_date(self) -> str:
        return self.window.start_date

    @property
    def end_date(self) -> str:
        return self.window.end_date

    @property
    def date_list(self) -> List[str]:
        return self.window.dates

    async def load(self, *, bypass_cache: bool = False) -> Dict[str, LoadReport]:
        reports = await self.loader.load(self.window, bypass_cache=bypass_cache)
        self._overlay_pending()
        return reports

    def _overlay_pending(self) -> int:
        """Put buffered edits back over freshly loaded rows; the buffer is untouched."""
        applied = 0
        for entry in self.buffer.pending_assignments():
            if self.window.contains(entry.work_date):
                self.cache.put_assignment(
                    Assignment(entry.work_date, entry.show_id, entry.crew_id, entry.is_working, entry.track_id)
                )
                applied += 1
        for entry in self.buffer.pending_shifts():
            if self.window.contains(entry.work_date):
                self.cache.put_shift(
                    Shift(entry.work_date, entry.crew_id, entry.start_time, entry.end_time, entry.day_note)
                )
                self.cache.invalidate_day_hours(entry.work_date, entry.crew_id)
                applied += 1
        if applied:
            logger.debug("re-applied %d pending edit(s) after load", applied)
        return applied

    async def refresh(self) -> Dict[str, LoadReport]:
        return await self.load(bypass_cache=True)

    async def shift_week(self, delta_windows: Any) -> bool:
        """Move the window by whole windows and reload it.

        Buffered edits carry absolute dates, so flushes for the old range
        are left alone.
        """
        try:
            delta = int(delta_windows or 0)
        except (TypeError, ValueError):
            return False
        if not delta:
            return False
        self.window = self.window.shifted(delta)
        logger.info("window moved to %s..%s", *self.window.bounds)
        await self.load()
        return True

    # -- Read projections ------------------------------------------------------------
    @property
    def crew(self) -> List[CrewMember]:
        return list(self.cache.crew)

    def is_working(self, work_date, crew_id, show_id=None) -> bool:
        return self.cache.is_working(work_date, crew_id, show_id)

    def get_track_id(self, work_date, crew_id, show_id=None) -> Optional[int]:
        return self.cache.get_track_id(work_date, crew_id, show_id)

    def get_shift(self, work_date, crew_id) -> Optional[Shift]:
        return self.cache.get_shift(work_date, crew_id)

    def get_day_hours(self, work_date, crew_id) -> Optional[DayHours]:
        return self.cache.get_day_hours(work_date, crew_id)

    def get_shows_for_date(self, work_date) -> List[ShowInstance]:
        return self.cache.get_shows_for_date(work_date)

    def status(self) -> Dict[str, Any]:
        return {
            "is_saving": self.is_saving,
            "saved_pulse": self.saved_pulse,
            "save_paused": self.save_paused,
            "save_error": self.save_error,
            "pending": len(self.buffer),
        }

    def _show_slots(self, work_date: str, limit: Optional[int] = None) -> List[Optional[int]]:
        shows = self.cache.get_shows_for_date(work_date)
        if limit is not None:
            shows = shows[:limit]
        return [show.id for show in shows] or [None]

    # -- Mutation entry points -------------------------------------------------------
    def _accepting_edits(self) -> bool:
        if self.save_paused:
            logger.debug("edit refused: saving is paused")
            return False
        return True

    def set_working_for(self, work_date, crew_id, show_id, value) -> bool:
        if not self._accepting_edits():
            return False
        day = keys.normalize_date(work_date)
        crew = keys.normalize_id(crew_id)
        if not day or crew is None:
            return False
        show = keys.normalize_id(show_id)
        working = keys.normalize_flag(value)
        previous = self.cache.get_assignment(day, crew, show)
        track = previous.track_id if working and previous is not None else None
        self._write_assignment(Assignment(day, show, crew, working, track))
        return True

    def set_track_for(self, work_date, crew_id, show_id, track_id) -> bool:
        if not self._accepting_edits():
            return False
        day = keys.normalize_date(work_date)
        crew = keys.normalize_id(crew_id)
        if not day or crew is None:
            return False
        show = keys.normalize_id(show_id)
        current = self.cache.get_assignment(day, crew, show)
        if current is None or not current.is_working:
            return False
        track = keys.normalize_id(track_id)
        if current.track_id == track:
            return True
        self._write_assignment(Assignment(day, show, crew, True, track))
        return True

    def assign_crew_to_track(self, work_date, crew_id, show_id, track_id) -> bool:
        """Turn the cell on if needed, then set its track once that has applied."""
        if not self.is_working(work_date, crew_id, show_id):
            if not self.set_working_for(work_date, crew_id, show_id, True):
                return False
            if not self.is_working(work_date, crew_id, show_id):
                return False
        return self.set_track_for(work_date, crew_id, show_id, track_id)

    def toggle_cell(self, work_date, crew_id, show_id=None) -> bool:
        return self.set_working_for(work_date, crew_id, show_id, not self.is_working(work_date, crew_id, show_id))

    def set_shift_for(self, work_date, crew_id, start_time, end_time, day_note: Any = KEEP) -> bool:
        """Set a crew member's shift; omitting ``day_note`` keeps the current one.

        A shift left with no start, end or note is deleted remotely.
        """
        if not self._accepting_edits():
            return False
        day = keys.normalize_date(work_date)
        crew = keys.normalize_id(crew_id)
        if not day or crew is None:
            return False
        current = self.cache.get_shift(day, crew)
        if day_note is KEEP:
            note = current.day_note if current else None
        else:
            note = keys.normalize_text(day_note)
        shift = Shift(day, crew, keys.normalize_time(start_time), keys.normalize_time(end_time), note)
        if (current or Shift(day, crew)) == shift and self.buffer.shift(shift.key) is None:
            return True
        self.cache.put_shift(shift)
        self.cache.invalidate_day_hours(day, crew)
        self.buffer.put_shift(ShiftWrite.of(self.location_id, shift))
        self._schedule_save()
        return True

    def apply_default_shift(self, work_date, crew_id) -> bool:
        start, end = self.default_shift
        return self.set_shift_for(work_date, crew_id, start, end)

    def clear_day(self, work_date) -> int:
        if not self._accepting_edits():
            return 0
        day = keys.normalize_date(work_date)
        if not day:
            return 0
        cleared = 0
        for member in self.cache.crew:
            for show_id in self._show_slots(day):
                if self.set_working_for(day, member.id, show_id, False):
                    cleared += 1
        return cleared

    def clear_day_for_crew(self, work_date, crew_id) -> bool:
        if not self.set_shift_for(work_date, crew_id, None, None, None):
            return False
        for show_id in self._show_slots(keys.normalize_date(work_date)):
            self.set_working_for(work_date, crew_id, show_id, False)
        return True

    async def copy_previous_week(self) -> int:
        """Replay the previous window onto this one through the normal edit path.

        Shows are matched by their position within the day. Returns the
        number of cells written.
        """
        if not self._accepting_edits():
            return 0
        previous = self.window.shifted(-1)
        start, end = previous.bounds
        try:
            assignment_rows, shift_rows, show_rows = await asyncio.gather(
                self.gateway.fetch_assignments(start, end, bypass_cache=True),
                self.gateway.fetch_shifts(start, end, bypass_cache=True),
                self.gateway.fetch_shows(start, end, bypass_cache=True),
            )
        except (RestError, RosterError) as exc:
            raise LoadError("previous_week", str(exc)) from exc
        if not self._accepting_edits():
            return 0

        prev_assignments = {a.key: a for a in parse_rows(Assignment, assignment_rows, "assignments")[0]}
        prev_shifts = {s.key: s for s in parse_rows(Shift, shift_rows, "shifts")[0]}
        prev_shows: Dict[str, List[ShowInstance]] = defaultdict(list)
        for show in parse_rows(ShowInstance, show_rows, "shows")[0]:
            prev_shows[show.show_date].append(show)

        offset = self.window.range_length
        written = 0
        for member in self.cache.crew:
            for day in self.window.dates:
                prev_day = keys.add_days(day, -offset)
                ordered = sorted(prev_shows.get(prev_day, []), key=ShowInstance.sort_key)
                prev_slots: List[Optional[int]] = [s.id for s in ordered[: self.max_shows_per_day]] or [None]
                for index, show_id in enumerate(self._show_slots(day, self.max_shows_per_day)):
                    source = None
                    if index < len(prev_slots):
                        source = prev_assignments.get(keys.assignment_key(prev_day, prev_slots[index], member.id))
                    working = bool(source and source.is_working)
                    if not working and not self.is_working(day, member.id, show_id):
                        continue
                    self.set_working_for(day, member.id, show_id, working)
                    if working:
                        self.set_track_for(day, member.id, show_id, source.track_id)
                    written += 1

                prev_shift = prev_shifts.get(keys.shift_key(prev_day, member.id))
                if prev_shift is None and self.cache.get_shift(day, member.id) is None:
                    continue
                if prev_shift is None:
                    self.set_shift_for(day, member.id, None, None, None)
                else:
                    self.set_shift_for(day, member.id, prev_shift.start_time, prev_shift.end_time, prev_shift.day_note)
                written += 1
        logger.info("copied %s..%s into %s..%s (%d cells)", start, end, *self.window.bounds, written)
        return written

    # -- Shows and bulk operations (direct writes) -----------------------------------
    async def create_show(self, show_date, show_time, sort_order: Optional[int] = None) -> Optional[ShowInstance]:
        if not self._accepting_edits():
            return None
        day = keys.normalize_date(show_date)
        clock = keys.normalize_time(show_time)
        if not day or not clock:
            return None
        existing = self.cache.get_shows_for_date(day)
        if len(existing) >= self.max_shows_per_day:
            logger.info("%s already has %d shows", day, len(existing))
            return None
        order = sort_order if sort_order is not None else len(existing) + 1
        row = await self.gateway.create_show(day, clock, order)
        if not row:
            return None
        show = ShowInstance.from_row(row)
        self.cache.add_show(show)
        return show

    async def update_show(self, show_id, show_time) -> Optional[ShowInstance]:
        if not self._accepting_edits():
            return None
        sid = keys.normalize_id(show_id)
        clock = keys.normalize_time(show_time)
        if sid is None or not clock:
            return None
        row = await self.gateway.update_show(sid, {"show_time": clock})
        if not row:
            return None
        show = ShowInstance.from_row(row)
        self.cache.add_show(show)
        return show

    async def delete_show(self, show_id) -> bool:
        if not self._accepting_edits():
            return False
        sid = keys.normalize_id(show_id)
        if sid is None:
            return False
        await self.gateway.delete_show(sid)
        self.cache.remove_show(sid)
        dropped = self.buffer.discard_assignments(lambda entry: entry.show_id == sid)
        if dropped:
            logger.info("discarded %d buffered edit(s) for deleted show %s", dropped, sid)
        return True

    async def clear_week(self) -> bool:
        if not self._accepting_edits():
            return False
        start, end = self.window.bounds
        await self.gateway.delete_assignments_in_range(start, end)
        self.buffer.discard_assignments(lambda entry: start <= entry.work_date <= end)
        await self.refresh()
        return True

    # -- Write-behind ----------------------------------------------------------------
    def _write_assignment(self, assignment: Assignment) -> None:
        self.cache.put_assignment(assignment)
        self.buffer.put_assignment(AssignmentWrite.of(self.location_id, assignment))
        self.maintainer.touch(assignment.work_date, assignment.crew_id)
        self._schedule_save()

    def _write_derived_shift(self, work_date, crew_id, start_time, end_time, day_note) -> bool:
        return self.set_shift_for(work_date, crew_id, start_time, end_time, day_note)

    def _schedule_save(self) -> None:
        if self._closing:
            return
        self._save_timer.schedule(self.debounce_s, self._on_save_timer)

    def _on_save_timer(self) -> None:
        self._spawn(self.flush())

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _write_batch(self, batch: FlushBatch) -> None:
        if batch.assignments:
            await self.gateway.upsert_assignments(batch.assignment_payload())
        upserts = batch.shift_upserts()
        if upserts:
            await self.gateway.upsert_shifts(upserts)
        for entry in batch.shift_deletes():
            await self.gateway.delete_shift(entry.work_date, entry.crew_id)

    async def flush(self) -> bool:
        """Send everything buffered as one batch. Flushes never overlap."""
        async with self._flush_lock:
            if self.save_paused:
                return False
            if self.buffer.is_empty():
                return True
            batch = self.buffer.snapshot()
            # derived writes land in the buffer after the snapshot, i.e. the next flush
            self.maintainer.run()
            self.is_saving = True
            self.save_error = ""
            try:
                await self._write_batch(batch)
            except (RestError, RosterError) as exc:
                self.save_paused = True
                self.save_error = str(exc) or exc.__class__.__name__
                self.last_flush_error = FlushError(self.save_error, exc)
                self._save_timer.cancel()
                logger.warning("flush of %d write(s) failed, saving paused: %s", len(batch), self.save_error)
                return False
            finally:
                self.is_saving = False

            cleared = self.buffer.settle(batch)
            logger.info("flushed %d write(s), %d still pending", cleared, len(self.buffer))
            self._pulse_saved()
            for entry in batch.shifts.values():
                if self.window.contains(entry.work_date):
                    self._spawn(self.loader.refresh_day_hours(entry.work_date, entry.crew_id))
            return True

    def _pulse_saved(self) -> None:
        self.saved_pulse = True

        def clear() -> None:
            self.saved_pulse = False

        self._pulse_timer.schedule(self.saved_pulse_s, clear)

    async def retry_saving(self) -> bool:
        self.save_paused = False
        self.save_error = ""
        self.last_flush_error = None
        return await self.flush()

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self, *, flush: bool = True) -> None:
        """Stop timers and, unless paused, push out what is still buffered."""
        self._closing = True
        self._save_timer.cancel()
        while flush and not self.save_paused and not self.buffer.is_empty():
            if not await self.flush():
                break
        self._save_timer.cancel()
        await self.wait_idle()
        self._pulse_timer.cancel()
        self.saved_pulse = False


__all__ = ["RosterSession", "KEEP"]
