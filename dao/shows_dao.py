from __future__ import annotations

from typing import Any, Dict, List, Optional

from adapters.rest_client import SupabaseRestClient

from ._rows import as_rows

COLUMNS = "id,location_id,show_date,show_time,sort_order"


async def list_shows(
    client: SupabaseRestClient,
    location_id: int,
    start: str,
    end: str,
    *,
    table: str = "work_roster_shows",
    bypass_cache: bool = False,
) -> List[Dict[str, Any]]:
    path = (
        f"/rest/v1/{table}"
        f"?select={COLUMNS}"
        f"&location_id=eq.{int(location_id)}"
        f"&show_date=gte.{start}"
        f"&show_date=lte.{end}"
        "&order=show_date.asc,sort_order.asc,show_time.asc"
    )
    data = await client.get(path, cache_tag=f"roster:shows:{location_id}:{start}:{end}", bypass_cache=bypass_cache)
    return as_rows(data)


async def create_show(
    client: SupabaseRestClient,
    location_id: int,
    show_date: str,
    show_time: str,
    sort_order: Optional[int] = None,
    *,
    table: str = "work_roster_shows",
) -> Optional[Dict[str, Any]]:
    payload = {
        "location_id": int(location_id),
        "show_date": show_date,
        "show_time": show_time,
        "sort_order": sort_order,
    }
    row = await client.post(f"/rest/v1/{table}?select={COLUMNS}", payload)
    client.invalidate_get_cache(f"roster:shows:{location_id}:")
    return row if isinstance(row, dict) else None


async def update_show(
    client: SupabaseRestClient,
    location_id: int,
    show_id: int,
    fields: Dict[str, Any],
    *,
    table: str = "work_roster_shows",
) -> Optional[Dict[str, Any]]:
    row = await client.patch(f"/rest/v1/{table}?id=eq.{int(show_id)}&select={COLUMNS}", fields)
    client.invalidate_get_cache(f"roster:shows:{location_id}:")
    return row if isinstance(row, dict) else None


async def delete_show(
    client: SupabaseRestClient,
    location_id: int,
    show_id: int,
    *,
    table: str = "work_roster_shows",
) -> bool:
    await client.delete(f"/rest/v1/{table}?id=eq.{int(show_id)}&location_id=eq.{int(location_id)}")
    client.invalidate_get_cache(f"roster:shows:{location_id}:")
    return True
