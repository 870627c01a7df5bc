"""The visible date window."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from . import keys

DEFAULT_RANGE_LENGTH = 7


@dataclass(frozen=True)
class DateWindow:
    start_date: str
    range_length: int = DEFAULT_RANGE_LENGTH

    def __post_init__(self) -> None:
        start = keys.normalize_date(self.start_date)
        if not start:
            raise ValueError(f"invalid window start: {self.start_date!r}")
        object.__setattr__(self, "start_date", start)
        object.__setattr__(self, "range_length", max(1, int(self.range_length or DEFAULT_RANGE_LENGTH)))

    @classmethod
    def starting(cls, start: Optional[str] = None, range_length: int = DEFAULT_RANGE_LENGTH) -> "DateWindow":
        return cls(start or date.today().isoformat(), range_length)

    @property
    def end_date(self) -> str:
        return keys.add_days(self.start_date, self.range_length - 1)

    @property
    def dates(self) -> List[str]:
        return keys.date_list(self.start_date, self.range_length)

    @property
    def bounds(self) -> Tuple[str, str]:
        return self.start_date, self.end_date

    def contains(self, day: str) -> bool:
        day = keys.normalize_date(day)
        return bool(day) and self.start_date <= day <= self.end_date

    def shifted(self, delta_windows: int) -> "DateWindow":
        if not delta_windows:
            return self
        return DateWindow(
            keys.add_days(self.start_date, int(delta_windows) * self.range_length),
            self.range_length,
        )


__all__ = ["DateWindow", "DEFAULT_RANGE_LENGTH"]
