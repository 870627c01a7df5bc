from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from services.errors import MissingResourceError, SchemaDriftError
from services.roster_session import RosterSession


class ManualTimer:
    """Single-slot timer fired by hand from tests."""

    def __init__(self) -> None:
        self.callback: Optional[Callable[[], None]] = None
        self.delay: Optional[float] = None
        self.scheduled = 0

    @property
    def pending(self) -> bool:
        return self.callback is not None

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.delay = delay
        self.scheduled += 1

    def cancel(self) -> None:
        self.callback = None

    def fire(self) -> None:
        callback, self.callback = self.callback, None
        assert callback is not None, "timer not pending"
        callback()


class FakeGateway:
    """In-memory stand-in for RosterGateway that records every call."""

    def __init__(self, location_id: int = 1) -> None:
        self.location_id = location_id
        self.crew_rows: List[Dict[str, Any]] = []
        self.show_rows: List[Dict[str, Any]] = []
        self.assignments: Dict[tuple, Dict[str, Any]] = {}
        self.shifts: Dict[tuple, Dict[str, Any]] = {}
        self.day_hours_rows: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.write_error: Optional[Exception] = None
        self.read_errors: Dict[str, Exception] = {}
        self.reduced_crew_only = False
        self.day_hours_missing = False
        self.write_gate: Optional[asyncio.Event] = None
        self._next_show_id = 100

    # -- seeding -------------------------------------------------------------------
    def add_crew(self, crew_id: int, name: str, **extra: Any) -> None:
        self.crew_rows.append({"id": crew_id, "crew_name": name, "status": "Active", **extra})

    def add_show(self, show_id: int, show_date: str, show_time: str = "19:00:00", sort_order: Optional[int] = None) -> None:
        self.show_rows.append({"id": show_id, "show_date": show_date, "show_time": show_time, "sort_order": sort_order})

    def add_assignment(self, work_date: str, crew_id: int, show_id=None, is_working=True, track_id=None) -> None:
        self.assignments[(work_date, show_id, crew_id)] = {
            "work_date": work_date,
            "show_id": show_id,
            "crew_id": crew_id,
            "is_working": is_working,
            "track_id": track_id,
        }

    def add_shift(self, work_date: str, crew_id: int, start=None, end=None, note=None) -> None:
        self.shifts[(work_date, crew_id)] = {
            "work_date": work_date,
            "crew_id": crew_id,
            "start_time": start,
            "end_time": end,
            "day_note": note,
        }

    def calls_named(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    # -- reads ---------------------------------------------------------------------
    def _read(self, name: str) -> None:
        self.calls.append((name,))
        error = self.read_errors.get(name)
        if error is not None:
            raise error

    async def fetch_crew(self, columns: str, *, bypass_cache: bool = False):
        self._read("fetch_crew")
        self.calls.append(("crew_columns", columns))
        if self.reduced_crew_only and "is_lead" in columns:
            raise SchemaDriftError('column crew_roster.is_lead does not exist')
        return [dict(row) for row in self.crew_rows]

    async def fetch_shows(self, start, end, *, bypass_cache: bool = False):
        self._read("fetch_shows")
        return [dict(r) for r in self.show_rows if start <= r["show_date"] <= end]

    async def fetch_assignments(self, start, end, *, bypass_cache: bool = False):
        self._read("fetch_assignments")
        return [dict(r) for r in self.assignments.values() if start <= r["work_date"] <= end]

    async def fetch_shifts(self, start, end, *, bypass_cache: bool = False):
        self._read("fetch_shifts")
        return [dict(r) for r in self.shifts.values() if start <= r["work_date"] <= end]

    async def fetch_day_hours(self, start, end, *, bypass_cache: bool = False):
        self._read("fetch_day_hours")
        if self.day_hours_missing:
            raise MissingResourceError("relation v_work_roster_day_hours does not exist")
        return [dict(r) for r in self.day_hours_rows if start <= r["work_date"] <= end]

    async def fetch_day_hours_for(self, work_date, crew_id):
        self._read("fetch_day_hours_for")
        if self.day_hours_missing:
            raise MissingResourceError("relation v_work_roster_day_hours does not exist")
        return [dict(r) for r in self.day_hours_rows if r["work_date"] == work_date and r["crew_id"] == crew_id]

    # -- writes --------------------------------------------------------------------
    async def _write(self, name: str, payload: Any) -> None:
        self.calls.append((name, payload))
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.write_error is not None:
            raise self.write_error

    async def upsert_assignments(self, rows):
        rows = list(rows)
        await self._write("upsert_assignments", rows)
        for row in rows:
            self.assignments[(row["work_date"], row["show_id"], row["crew_id"])] = dict(row)
        return len(rows)

    async def upsert_shifts(self, rows):
        rows = list(rows)
        await self._write("upsert_shifts", rows)
        for row in rows:
            self.shifts[(row["work_date"], row["crew_id"])] = dict(row)
        return len(rows)

    async def delete_shift(self, work_date, crew_id):
        await self._write("delete_shift", (work_date, crew_id))
        self.shifts.pop((work_date, crew_id), None)
        return True

    async def delete_assignments_in_range(self, start, end):
        await self._write("delete_assignments_in_range", (start, end))
        for key in [k for k in self.assignments if start <= k[0] <= end]:
            del self.assignments[key]
        return True

    async def create_show(self, show_date, show_time, sort_order=None):
        await self._write("create_show", (show_date, show_time, sort_order))
        self._next_show_id += 1
        row = {"id": self._next_show_id, "show_date": show_date, "show_time": show_time, "sort_order": sort_order}
        self.show_rows.append(row)
        return dict(row)

    async def update_show(self, show_id, fields):
        await self._write("update_show", (show_id, fields))
        for row in self.show_rows:
            if row["id"] == show_id:
                row.update(fields)
                return dict(row)
        return None

    async def delete_show(self, show_id):
        await self._write("delete_show", show_id)
        self.show_rows = [r for r in self.show_rows if r["id"] != show_id]
        for key in [k for k in self.assignments if k[1] == show_id]:
            del self.assignments[key]
        return True

    async def aclose(self) -> None:
        self.calls.append(("aclose",))


@pytest.fixture()
def gateway() -> FakeGateway:
    gw = FakeGateway()
    gw.add_crew(11, "Alex")
    gw.add_crew(12, "Blake")
    return gw


@pytest.fixture()
def make_session(gateway):
    """Build a session on a fixed window with manual timers; call inside a running loop."""

    def factory(start: str = "2024-01-01", **options: Any) -> RosterSession:
        options.setdefault("timer_factory", ManualTimer)
        return RosterSession(gateway, start=start, **options)

    return factory
