"""Location-bound client for the four roster resources."""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from adapters.rest_client import RestError, SupabaseRestClient
from config import CONFIG
from dao import assignments_dao, crew_dao, day_hours_dao, shifts_dao, shows_dao

from .errors import MissingResourceError, SchemaDriftError


MISSING_COLUMN_CODES = {"42703", "PGRST204"}
MISSING_RESOURCE_CODES = {"42P01", "PGRST205", "PGRST202"}
_MISSING_COLUMN = re.compile(r"column .* does not exist|could not find the .* column", re.IGNORECASE)


def classify(exc: RestError) -> Exception:
    """Map a REST failure onto the recoverable error classes where it fits."""
    if exc.code in MISSING_COLUMN_CODES or _MISSING_COLUMN.search(str(exc)):
        return SchemaDriftError(str(exc))
    if exc.status_code == 404 or exc.code in MISSING_RESOURCE_CODES:
        return MissingResourceError(str(exc))
    return exc


class RosterGateway:
    """Issues range-scoped reads and batched writes for one location."""

    def __init__(
        self,
        client: SupabaseRestClient,
        location_id: int,
        resources: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.client = client
        self.location_id = int(location_id)
        self.resources: Dict[str, str] = dict(CONFIG["resources"])
        if resources:
            self.resources.update(resources)

    async def _call(self, coro):
        try:
            return await coro
        except RestError as exc:
            raise classify(exc) from exc

    # -- Reads ---------------------------------------------------------------------
    async def fetch_crew(self, columns: str, *, bypass_cache: bool = False) -> List[Dict[str, Any]]:
        return await self._call(
            crew_dao.list_active_crew(
                self.client, self.location_id, columns=columns, table=self.resources["crew"], bypass_cache=bypass_cache
            )
        )

    async def fetch_shows(self, start: str, end: str, *, bypass_cache: bool = False) -> List[Dict[str, Any]]:
        return await self._call(
            shows_dao.list_shows(
                self.client, self.location_id, start, end, table=self.resources["shows"], bypass_cache=bypass_cache
            )
        )

    async def fetch_assignments(self, start: str, end: str, *, bypass_cache: bool = False) -> List[Dict[str, Any]]:
        return await self._call(
            assignments_dao.list_assignments(
                self.client, self.location_id, start, end, table=self.resources["assignments"], bypass_cache=bypass_cache
            )
        )

    async def fetch_shifts(self, start: str, end: str, *, bypass_cache: bool = False) -> List[Dict[str, Any]]:
        return await self._call(
            shifts_dao.list_shifts(
                self.client, self.location_id, start, end, table=self.resources["shifts"], bypass_cache=bypass_cache
            )
        )

    async def fetch_day_hours(self, start: str, end: str, *, bypass_cache: bool = False) -> List[Dict[str, Any]]:
        return await self._call(
            day_hours_dao.list_day_hours(
                self.client, self.location_id, start, end, table=self.resources["day_hours"], bypass_cache=bypass_cache
            )
        )

    async def fetch_day_hours_for(self, work_date: str, crew_id: int) -> List[Dict[str, Any]]:
        return await self._call(
            day_hours_dao.get_day_hours(
                self.client, self.location_id, work_date, crew_id, table=self.resources["day_hours"]
            )
        )

    # -- Writes --------------------------------------------------------------------
    async def upsert_assignments(self, rows: Iterable[Dict[str, Any]]) -> int:
        return await self._call(
            assignments_dao.upsert_assignments(self.client, self.location_id, rows, table=self.resources["assignments"])
        )

    async def upsert_shifts(self, rows: Iterable[Dict[str, Any]]) -> int:
        return await self._call(
            shifts_dao.upsert_shifts(self.client, self.location_id, rows, table=self.resources["shifts"])
        )

    async def delete_shift(self, work_date: str, crew_id: int) -> bool:
        return await self._call(
            shifts_dao.delete_shift(self.client, self.location_id, work_date, crew_id, table=self.resources["shifts"])
        )

    async def delete_assignments_in_range(self, start: str, end: str) -> bool:
        return await self._call(
            assignments_dao.delete_assignments_in_range(
                self.client, self.location_id, start, end, table=self.resources["assignments"]
            )
        )

    async def delete_assignments_for_show(self, show_id: int) -> bool:
        return await self._call(
            assignments_dao.delete_assignments_for_show(
                self.client, self.location_id, show_id, table=self.resources["assignments"]
            )
        )

    async def create_show(self, show_date: str, show_time: str, sort_order: Optional[int] = None) -> Optional[Dict[str, Any]]:
        return await self._call(
            shows_dao.create_show(
                self.client, self.location_id, show_date, show_time, sort_order, table=self.resources["shows"]
            )
        )

    async def update_show(self, show_id: int, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._call(
            shows_dao.update_show(self.client, self.location_id, show_id, fields, table=self.resources["shows"])
        )

    async def delete_show(self, show_id: int) -> bool:
        # assignments first; the store is not trusted to cascade
        await self.delete_assignments_for_show(show_id)
        return await self._call(
            shows_dao.delete_show(self.client, self.location_id, show_id, table=self.resources["shows"])
        )

    async def aclose(self) -> None:
        await self.client.aclose()


__all__ = ["RosterGateway", "classify"]
