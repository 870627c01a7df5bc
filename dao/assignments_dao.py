from __future__ import annotations

from typing import Any, Dict, Iterable, List

from adapters.rest_client import SupabaseRestClient

from ._rows import as_rows

COLUMNS = "id,location_id,work_date,show_id,crew_id,is_working,track_id"
CONFLICT_TARGET = "location_id,work_date,show_id,crew_id"
MERGE_PREFER = "resolution=merge-duplicates,return=minimal"


async def list_assignments(
    client: SupabaseRestClient,
    location_id: int,
    start: str,
    end: str,
    *,
    table: str = "work_roster_assignments",
    bypass_cache: bool = False,
) -> List[Dict[str, Any]]:
    path = (
        f"/rest/v1/{table}"
        f"?select={COLUMNS}"
        f"&location_id=eq.{int(location_id)}"
        f"&work_date=gte.{start}"
        f"&work_date=lte.{end}"
    )
    data = await client.get(path, cache_tag=f"roster:assign:{location_id}:{start}:{end}", bypass_cache=bypass_cache)
    return as_rows(data)


async def upsert_assignments(
    client: SupabaseRestClient,
    location_id: int,
    rows: Iterable[Dict[str, Any]],
    *,
    table: str = "work_roster_assignments",
) -> int:
    payload = list(rows)
    if not payload:
        return 0
    await client.post(f"/rest/v1/{table}?on_conflict={CONFLICT_TARGET}", payload, prefer=MERGE_PREFER)
    client.invalidate_get_cache(f"roster:assign:{location_id}:")
    return len(payload)


async def delete_assignments_in_range(
    client: SupabaseRestClient,
    location_id: int,
    start: str,
    end: str,
    *,
    table: str = "work_roster_assignments",
) -> bool:
    await client.delete(
        f"/rest/v1/{table}?location_id=eq.{int(location_id)}&work_date=gte.{start}&work_date=lte.{end}"
    )
    client.invalidate_get_cache(f"roster:assign:{location_id}:")
    return True


async def delete_assignments_for_show(
    client: SupabaseRestClient,
    location_id: int,
    show_id: int,
    *,
    table: str = "work_roster_assignments",
) -> bool:
    await client.delete(f"/rest/v1/{table}?location_id=eq.{int(location_id)}&show_id=eq.{int(show_id)}")
    client.invalidate_get_cache(f"roster:assign:{location_id}:")
    return True
