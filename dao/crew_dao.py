from __future__ import annotations

from typing import Any, Dict, List

from adapters.rest_client import SupabaseRestClient

from ._rows import as_rows


async def list_active_crew(
    client: SupabaseRestClient,
    location_id: int,
    *,
    columns: str,
    table: str = "crew_roster",
    bypass_cache: bool = False,
) -> List[Dict[str, Any]]:
    path = (
        f"/rest/v1/{table}"
        f"?select={columns}"
        f"&location_id=eq.{int(location_id)}"
        "&status=eq.Active"
        "&order=crew_name.asc"
    )
    data = await client.get(path, cache_tag=f"roster:crew:{location_id}", bypass_cache=bypass_cache)
    return as_rows(data)
