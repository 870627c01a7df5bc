"""Pending writes not yet confirmed by the remote store."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List

from domain.models import AssignmentWrite, ShiftWrite


@dataclass(frozen=True)
class FlushBatch:
    assignments: Dict[str, AssignmentWrite] = field(default_factory=dict)
    shifts: Dict[str, ShiftWrite] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.assignments) + len(self.shifts)

    def assignment_payload(self) -> List[dict]:
        return [entry.to_payload() for entry in self.assignments.values()]

    def shift_upserts(self) -> List[dict]:
        return [entry.to_payload() for entry in self.shifts.values() if not entry.is_delete]

    def shift_deletes(self) -> List[ShiftWrite]:
        return [entry for entry in self.shifts.values() if entry.is_delete]


class WriteBehindBuffer:
    """Last-write-wins map of pending writes, keyed like the cache."""

    def __init__(self) -> None:
        self._assignments: Dict[str, AssignmentWrite] = {}
        self._shifts: Dict[str, ShiftWrite] = {}

    def __len__(self) -> int:
        return len(self._assignments) + len(self._shifts)

    def is_empty(self) -> bool:
        return not self._assignments and not self._shifts

    def put_assignment(self, entry: AssignmentWrite) -> None:
        self._assignments[entry.key] = entry

    def put_shift(self, entry: ShiftWrite) -> None:
        self._shifts[entry.key] = entry

    def assignment(self, key: str):
        return self._assignments.get(key)

    def shift(self, key: str):
        return self._shifts.get(key)

    def pending_assignments(self) -> List[AssignmentWrite]:
        return list(self._assignments.values())

    def pending_shifts(self) -> List[ShiftWrite]:
        return list(self._shifts.values())

    def keys(self) -> List[str]:
        return [f"assignment:{k}" for k in self._assignments] + [f"shift:{k}" for k in self._shifts]

    def snapshot(self) -> FlushBatch:
        return FlushBatch(dict(self._assignments), dict(self._shifts))

    def settle(self, batch: FlushBatch) -> int:
        """Drop entries confirmed by ``batch``; newer values for the same key stay."""
        cleared = 0
        for key, sent in batch.assignments.items():
            if self._assignments.get(key) == sent:
                del self._assignments[key]
                cleared += 1
        for key, sent in batch.shifts.items():
            if self._shifts.get(key) == sent:
                del self._shifts[key]
                cleared += 1
        return cleared

    def discard_assignments(self, predicate: Callable[[AssignmentWrite], bool]) -> int:
        doomed = [key for key, entry in self._assignments.items() if predicate(entry)]
        for key in doomed:
            del self._assignments[key]
        return len(doomed)


__all__ = ["FlushBatch", "WriteBehindBuffer"]
