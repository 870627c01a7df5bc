import asyncio
import json

import httpx
import pytest

from adapters.rest_client import RestError, SupabaseRestClient
from dao import assignments_dao, crew_dao
from services.errors import MissingResourceError, SchemaDriftError
from services.gateway import RosterGateway, classify


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _client(handler, clock=None):
    return SupabaseRestClient(
        "https://example.test",
        "anon-key",
        transport=httpx.MockTransport(handler),
        clock=clock or Clock(),
    )


def test_get_sends_auth_headers_and_caches():
    seen = []
    clock = Clock()

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[{"id": 1}])

    async def scenario():
        client = _client(handler, clock)
        first = await client.get("/rest/v1/crew_roster?select=id", cache_tag="crew")
        second = await client.get("/rest/v1/crew_roster?select=id", cache_tag="crew")
        clock.now = 31.0
        third = await client.get("/rest/v1/crew_roster?select=id", cache_tag="crew")
        await client.get("/rest/v1/crew_roster?select=id", cache_tag="crew", bypass_cache=True)
        await client.aclose()
        return first, second, third

    first, second, third = asyncio.run(scenario())
    assert first == second == third == [{"id": 1}]
    assert len(seen) == 3
    assert seen[0].headers["apikey"] == "anon-key"
    assert seen[0].headers["Authorization"] == "Bearer anon-key"


def test_invalidate_get_cache_by_prefix():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json=[])

    async def scenario():
        client = _client(handler)
        await client.get("/rest/v1/a", cache_tag="roster:assign:1:x")
        await client.get("/rest/v1/b", cache_tag="roster:shows:1:x")
        dropped = client.invalidate_get_cache("roster:assign:1:")
        await client.get("/rest/v1/a", cache_tag="roster:assign:1:x")
        await client.get("/rest/v1/b", cache_tag="roster:shows:1:x")
        await client.aclose()
        return dropped

    assert asyncio.run(scenario()) == 1
    assert calls == ["/rest/v1/a", "/rest/v1/b", "/rest/v1/a"]


def test_error_body_is_parsed():
    def handler(request):
        return httpx.Response(400, json={"code": "42703", "message": "column crew_roster.is_lead does not exist"})

    async def scenario():
        client = _client(handler)
        try:
            await client.get("/rest/v1/crew_roster")
        finally:
            await client.aclose()

    with pytest.raises(RestError) as info:
        asyncio.run(scenario())
    assert info.value.status_code == 400
    assert info.value.code == "42703"
    assert "is_lead" in str(info.value)


def test_transport_failure_becomes_rest_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async def scenario():
        client = _client(handler)
        try:
            await client.delete("/rest/v1/work_roster_shifts?id=eq.1")
        finally:
            await client.aclose()

    with pytest.raises(RestError):
        asyncio.run(scenario())


def test_upsert_uses_conflict_target_and_merge_preference():
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["prefer"] = request.headers["Prefer"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(201)

    rows = [{"location_id": 1, "work_date": "2024-01-01", "show_id": None, "crew_id": 11, "is_working": True, "track_id": None}]

    async def scenario():
        client = _client(handler)
        count = await assignments_dao.upsert_assignments(client, 1, rows)
        await client.aclose()
        return count

    assert asyncio.run(scenario()) == 1
    assert "on_conflict=location_id,work_date,show_id,crew_id" in captured["url"].replace("%2C", ",")
    assert captured["prefer"] == "resolution=merge-duplicates,return=minimal"
    assert captured["body"] == rows


def test_crew_query_is_location_scoped():
    captured = {}

    def handler(request):
        captured["params"] = dict(request.url.params)
        return httpx.Response(200, json=[{"id": 11, "crew_name": "Alex"}, "junk"])

    async def scenario():
        client = _client(handler)
        rows = await crew_dao.list_active_crew(client, 3, columns="id,crew_name")
        await client.aclose()
        return rows

    assert asyncio.run(scenario()) == [{"id": 11, "crew_name": "Alex"}]
    assert captured["params"]["location_id"] == "eq.3"
    assert captured["params"]["status"] == "eq.Active"


def test_classify_recognises_drift_and_missing_resources():
    assert isinstance(classify(RestError("x", status_code=400, code="42703")), SchemaDriftError)
    assert isinstance(classify(RestError("Could not find the 'is_lead' column", status_code=400)), SchemaDriftError)
    assert isinstance(classify(RestError("x", status_code=404, code="42P01")), MissingResourceError)
    plain = RestError("boom", status_code=500)
    assert classify(plain) is plain


def test_gateway_deletes_show_assignments_first():
    paths = []

    def handler(request):
        paths.append((request.method, request.url.path))
        return httpx.Response(204)

    async def scenario():
        gateway = RosterGateway(_client(handler), 1)
        await gateway.delete_show(9)
        await gateway.aclose()

    asyncio.run(scenario())
    assert paths == [("DELETE", "/rest/v1/work_roster_assignments"), ("DELETE", "/rest/v1/work_roster_shows")]


def test_gateway_raises_classified_errors():
    def handler(request):
        return httpx.Response(404, json={"code": "PGRST205", "message": "relation not found"})

    async def scenario():
        gateway = RosterGateway(_client(handler), 1)
        try:
            await gateway.fetch_day_hours("2024-01-01", "2024-01-07")
        finally:
            await gateway.aclose()

    with pytest.raises(MissingResourceError):
        asyncio.run(scenario())
