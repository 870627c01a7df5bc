"""Domain records for the crew roster.

Rows arriving from the REST layer are loosely typed; ``from_row`` validates
the required fields and raises ``InvalidRowError`` for anything unusable so
the cache loader can drop it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from . import keys


class InvalidRowError(ValueError):
    """Raised when a remote row lacks a required field."""


def _require_id(row: Mapping[str, Any], name: str) -> int:
    value = keys.normalize_id(row.get(name))
    if value is None:
        raise InvalidRowError(f"{name} missing or invalid: {row.get(name)!r}")
    return value


def _require_date(row: Mapping[str, Any], name: str) -> str:
    value = keys.normalize_date(row.get(name))
    if not value:
        raise InvalidRowError(f"{name} missing or invalid: {row.get(name)!r}")
    return value


def _hours(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class CrewMember:
    id: int
    name: str
    home_department: str = ""
    active: bool = True
    is_lead: bool = False
    weekly_off_days: Tuple[int, ...] = ()

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CrewMember":
        off_days = row.get("weekly_off_days") or ()
        if not isinstance(off_days, (list, tuple)):
            off_days = ()
        return cls(
            id=_require_id(row, "id"),
            name=str(row.get("crew_name") or "").strip(),
            home_department=str(row.get("home_department") or "").strip(),
            active=str(row.get("status") or "Active").strip().lower() == "active",
            is_lead=keys.normalize_flag(row.get("is_lead")),
            weekly_off_days=tuple(int(d) for d in off_days if isinstance(d, int) and 0 <= d <= 6),
        )


@dataclass(frozen=True)
class ShowInstance:
    id: int
    show_date: str
    show_time: Optional[str] = None
    sort_order: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ShowInstance":
        raw_order = row.get("sort_order")
        return cls(
            id=_require_id(row, "id"),
            show_date=_require_date(row, "show_date"),
            show_time=keys.normalize_time(row.get("show_time")),
            sort_order=int(raw_order) if isinstance(raw_order, (int, float)) and not isinstance(raw_order, bool) else None,
        )

    def sort_key(self) -> Tuple[Any, ...]:
        # explicit order first, then clock time for ties or missing order
        return (
            self.sort_order is None,
            self.sort_order or 0,
            self.show_time or "",
            self.id,
        )


@dataclass(frozen=True)
class Assignment:
    work_date: str
    show_id: Optional[int]
    crew_id: int
    is_working: bool = False
    track_id: Optional[int] = None

    def __post_init__(self) -> None:
        # a track only exists on a working cell
        if not self.is_working and self.track_id is not None:
            object.__setattr__(self, "track_id", None)

    @property
    def key(self) -> str:
        return keys.assignment_key(self.work_date, self.show_id, self.crew_id)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Assignment":
        return cls(
            work_date=_require_date(row, "work_date"),
            show_id=keys.normalize_id(row.get("show_id")),
            crew_id=_require_id(row, "crew_id"),
            is_working=keys.normalize_flag(row.get("is_working")),
            track_id=keys.normalize_id(row.get("track_id")),
        )


@dataclass(frozen=True)
class Shift:
    work_date: str
    crew_id: int
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    day_note: Optional[str] = None

    @property
    def key(self) -> str:
        return keys.shift_key(self.work_date, self.crew_id)

    @property
    def is_empty(self) -> bool:
        return not (self.start_time or self.end_time or self.day_note)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Shift":
        return cls(
            work_date=_require_date(row, "work_date"),
            crew_id=_require_id(row, "crew_id"),
            start_time=keys.normalize_time(row.get("start_time")),
            end_time=keys.normalize_time(row.get("end_time")),
            day_note=keys.normalize_text(row.get("day_note")),
        )


@dataclass(frozen=True)
class DayHours:
    work_date: str
    crew_id: int
    total_hours: float = 0.0
    lead_hours: float = 0.0
    regular_hours: float = 0.0
    overtime_hours: float = 0.0

    @property
    def key(self) -> str:
        return keys.shift_key(self.work_date, self.crew_id)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DayHours":
        return cls(
            work_date=_require_date(row, "work_date"),
            crew_id=_require_id(row, "crew_id"),
            total_hours=_hours(row.get("total_hours")),
            lead_hours=_hours(row.get("lead_hours")),
            regular_hours=_hours(row.get("regular_hours")),
            overtime_hours=_hours(row.get("overtime_hours")),
        )


@dataclass(frozen=True)
class AssignmentWrite:
    """Pending assignment write; equality is by value."""

    location_id: int
    work_date: str
    show_id: Optional[int]
    crew_id: int
    is_working: bool
    track_id: Optional[int]

    @property
    def key(self) -> str:
        return keys.assignment_key(self.work_date, self.show_id, self.crew_id)

    @classmethod
    def of(cls, location_id: int, assignment: Assignment) -> "AssignmentWrite":
        return cls(
            location_id=location_id,
            work_date=assignment.work_date,
            show_id=assignment.show_id,
            crew_id=assignment.crew_id,
            is_working=assignment.is_working,
            track_id=assignment.track_id if assignment.is_working else None,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "location_id": self.location_id,
            "work_date": self.work_date,
            "show_id": self.show_id,
            "crew_id": self.crew_id,
            "is_working": self.is_working,
            "track_id": self.track_id if self.is_working else None,
        }


@dataclass(frozen=True)
class ShiftWrite:
    location_id: int
    work_date: str
    crew_id: int
    start_time: Optional[str]
    end_time: Optional[str]
    day_note: Optional[str]

    @property
    def key(self) -> str:
        return keys.shift_key(self.work_date, self.crew_id)

    @property
    def is_delete(self) -> bool:
        return not (self.start_time or self.end_time or self.day_note)

    @classmethod
    def of(cls, location_id: int, shift: Shift) -> "ShiftWrite":
        return cls(
            location_id=location_id,
            work_date=shift.work_date,
            crew_id=shift.crew_id,
            start_time=shift.start_time,
            end_time=shift.end_time,
            day_note=shift.day_note,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "location_id": self.location_id,
            "work_date": self.work_date,
            "crew_id": self.crew_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "day_note": self.day_note,
        }


@dataclass
class LoadReport:
    slice_name: str
    loaded: int = 0
    dropped: int = 0
    error: str = ""
    warnings: list[str] = field(default_factory=list)


__all__ = [
    "InvalidRowError",
    "CrewMember",
    "ShowInstance",
    "Assignment",
    "Shift",
    "DayHours",
    "AssignmentWrite",
    "ShiftWrite",
    "LoadReport",
]
