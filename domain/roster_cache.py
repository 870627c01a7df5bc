"""In-memory roster state for one window, used by every read projection."""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from . import keys
from .models import Assignment, CrewMember, DayHours, Shift, ShowInstance

SLICES = ("crew", "shows", "assignments", "shifts", "day_hours")


class RosterCache:
    """Materialised slices of the remote roster for the current window.

    Each slice is replaced wholesale by a load; optimistic edits go through
    ``put_assignment``/``put_shift``.
    """

    def __init__(self) -> None:
        self.crew: List[CrewMember] = []
        self.shows_by_date: Dict[str, List[ShowInstance]] = {}
        self.assignments: Dict[str, Assignment] = {}
        self.shifts: Dict[str, Shift] = {}
        self.day_hours: Dict[str, DayHours] = {}
        self.errors: Dict[str, str] = {name: "" for name in SLICES}
        self.loading: Dict[str, bool] = {name: False for name in SLICES}

    # -- Slice replacement ---------------------------------------------------------
    def replace_crew(self, crew: Iterable[CrewMember]) -> None:
        self.crew = sorted(crew, key=lambda member: (member.name.lower(), member.id))

    def replace_shows(self, shows: Iterable[ShowInstance]) -> None:
        grouped: Dict[str, List[ShowInstance]] = defaultdict(list)
        for show in shows:
            grouped[show.show_date].append(show)
        self.shows_by_date = {day: sorted(rows, key=ShowInstance.sort_key) for day, rows in grouped.items()}

    def replace_assignments(self, assignments: Iterable[Assignment]) -> None:
        self.assignments = {a.key: a for a in assignments}

    def replace_shifts(self, shifts: Iterable[Shift]) -> None:
        self.shifts = {s.key: s for s in shifts if not s.is_empty}

    def replace_day_hours(self, rows: Iterable[DayHours]) -> None:
        self.day_hours = {row.key: row for row in rows}

    def reset(self, slice_name: str) -> None:
        if slice_name == "crew":
            self.crew = []
        elif slice_name == "shows":
            self.shows_by_date = {}
        elif slice_name == "assignments":
            self.assignments = {}
        elif slice_name == "shifts":
            self.shifts = {}
        elif slice_name == "day_hours":
            self.day_hours = {}
        else:
            raise KeyError(slice_name)

    # -- Optimistic writes ---------------------------------------------------------
    def put_assignment(self, assignment: Assignment) -> None:
        self.assignments[assignment.key] = assignment

    def put_shift(self, shift: Shift) -> None:
        if shift.is_empty:
            self.shifts.pop(shift.key, None)
        else:
            self.shifts[shift.key] = shift

    def put_day_hours(self, hours: DayHours) -> None:
        self.day_hours[hours.key] = hours

    def invalidate_day_hours(self, work_date: str, crew_id: int) -> None:
        self.day_hours.pop(keys.shift_key(work_date, crew_id), None)

    def add_show(self, show: ShowInstance) -> None:
        rows = [s for s in self.shows_by_date.get(show.show_date, []) if s.id != show.id]
        rows.append(show)
        self.shows_by_date[show.show_date] = sorted(rows, key=ShowInstance.sort_key)

    def remove_show(self, show_id: int) -> Optional[ShowInstance]:
        removed = None
        for day, rows in list(self.shows_by_date.items()):
            kept = [s for s in rows if s.id != show_id]
            if len(kept) != len(rows):
                removed = next(s for s in rows if s.id == show_id)
                self.shows_by_date[day] = kept
        self.assignments = {k: a for k, a in self.assignments.items() if a.show_id != show_id}
        return removed

    # -- Read projections ----------------------------------------------------------
    def get_assignment(self, work_date, crew_id, show_id=None) -> Optional[Assignment]:
        return self.assignments.get(keys.assignment_key(work_date, show_id, crew_id))

    def is_working(self, work_date, crew_id, show_id=None) -> bool:
        record = self.get_assignment(work_date, crew_id, show_id)
        return bool(record and record.is_working)

    def get_track_id(self, work_date, crew_id, show_id=None) -> Optional[int]:
        record = self.get_assignment(work_date, crew_id, show_id)
        if not record or not record.is_working:
            return None
        return record.track_id

    def get_shift(self, work_date, crew_id) -> Optional[Shift]:
        return self.shifts.get(keys.shift_key(work_date, crew_id))

    def get_day_hours(self, work_date, crew_id) -> Optional[DayHours]:
        return self.day_hours.get(keys.shift_key(work_date, crew_id))

    def get_shows_for_date(self, work_date) -> List[ShowInstance]:
        return list(self.shows_by_date.get(keys.normalize_date(work_date), ()))


__all__ = ["RosterCache", "SLICES"]
