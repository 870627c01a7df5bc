"""Async client for a PostgREST-style REST endpoint."""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)


class RestError(RuntimeError):
    """Raised for a non-2xx response or a transport failure."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: str = "",
        details: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.details = details

    @classmethod
    def from_response(cls, response: httpx.Response) -> "RestError":
        text = response.text or ""
        code = details = ""
        message = text or f"Request failed ({response.status_code})"
        try:
            body = json.loads(text) if text else None
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = str(body.get("code") or "")
            details = str(body.get("details") or body.get("hint") or "")
            message = str(body.get("message") or message)
        return cls(message, status_code=response.status_code, code=code, details=details)


def _read_body(response: httpx.Response) -> Any:
    text = response.text
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


class SupabaseRestClient:
    """Thin wrapper over ``httpx.AsyncClient`` with a short-lived GET cache."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        *,
        get_cache_ms: int = 30000,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.get_cache_ms = int(get_cache_ms)
        self._clock = clock
        self._get_cache: Dict[str, Tuple[float, Any]] = {}
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"apikey": self.anon_key, "Authorization": f"Bearer {self.anon_key}"}
        if extra:
            headers.update(extra)
        return headers

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise RestError(f"{method} {path} failed: {exc}") from exc
        if response.is_error:
            raise RestError.from_response(response)
        return response

    async def get(
        self,
        path: str,
        *,
        cache_tag: str = "",
        cache_key: Optional[str] = None,
        cache_ms: Optional[int] = None,
        bypass_cache: bool = False,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        key = cache_key or f"{cache_tag}::{path}"
        ttl = self.get_cache_ms if cache_ms is None else cache_ms
        if not bypass_cache:
            cached = self._get_cache.get(key)
            if cached and (self._clock() - cached[0]) * 1000 < ttl:
                return cached[1]
        response = await self._send("GET", path, headers=self._headers(headers))
        data = _read_body(response)
        self._get_cache[key] = (self._clock(), data)
        return data

    async def post(self, path: str, body: Any, *, prefer: str = "return=representation") -> Any:
        response = await self._send(
            "POST",
            path,
            content=json.dumps(body),
            headers=self._headers({"Content-Type": "application/json", "Prefer": prefer}),
        )
        data = _read_body(response)
        if isinstance(data, list) and not isinstance(body, list):
            return data[0] if data else None
        return data

    async def patch(self, path: str, body: Any, *, prefer: str = "return=representation") -> Any:
        response = await self._send(
            "PATCH",
            path,
            content=json.dumps(body),
            headers=self._headers({"Content-Type": "application/json", "Prefer": prefer}),
        )
        data = _read_body(response)
        if isinstance(data, list):
            return data[0] if data else None
        return data

    async def delete(self, path: str, *, prefer: str = "return=minimal") -> bool:
        await self._send("DELETE", path, headers=self._headers({"Prefer": prefer}))
        return True

    def invalidate_get_cache(self, prefix: str) -> int:
        stale = [key for key in self._get_cache if key.startswith(prefix)]
        for key in stale:
            del self._get_cache[key]
        if stale:
            logger.debug("dropped %d cached GETs under %r", len(stale), prefix)
        return len(stale)

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["RestError", "SupabaseRestClient"]
