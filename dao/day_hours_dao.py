from __future__ import annotations

from typing import Any, Dict, List

from adapters.rest_client import SupabaseRestClient

from ._rows import as_rows

COLUMNS = "work_date,crew_id,total_hours,lead_hours,regular_hours,overtime_hours"


async def list_day_hours(
    client: SupabaseRestClient,
    location_id: int,
    start: str,
    end: str,
    *,
    table: str = "v_work_roster_day_hours",
    bypass_cache: bool = False,
) -> List[Dict[str, Any]]:
    path = (
        f"/rest/v1/{table}"
        f"?select={COLUMNS}"
        f"&location_id=eq.{int(location_id)}"
        f"&work_date=gte.{start}"
        f"&work_date=lte.{end}"
    )
    data = await client.get(path, cache_tag=f"roster:hours:{location_id}:{start}:{end}", bypass_cache=bypass_cache)
    return as_rows(data)


async def get_day_hours(
    client: SupabaseRestClient,
    location_id: int,
    work_date: str,
    crew_id: int,
    *,
    table: str = "v_work_roster_day_hours",
) -> List[Dict[str, Any]]:
    path = (
        f"/rest/v1/{table}"
        f"?select={COLUMNS}"
        f"&location_id=eq.{int(location_id)}"
        f"&work_date=eq.{work_date}"
        f"&crew_id=eq.{int(crew_id)}"
    )
    data = await client.get(path, bypass_cache=True)
    return as_rows(data)
