from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from src.api.errors import NetworkError, ParseError, ServerError

logger = logging.getLogger(__name__)


class FleetApiClient:
    """
    Thin async client for the fleet backend (the remote query interface).

    Maps transport failures to NetworkError, non-2xx responses to ServerError and
    undecodable/wrong-shaped bodies to ParseError. Retrying is the caller's job.
    """

    def __init__(
        self,
        base_url: str,
        timeout_sec: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout_sec = float(timeout_sec)
        self._transport = transport
        # Created on first request so building the app never opens a connection pool.
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def is_open(self) -> bool:
        """True once a request has opened the underlying connection pool."""
        return self._client is not None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout_sec,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            res = await self._http().get(path, params={k: v for k, v in (params or {}).items() if v is not None})
        except httpx.RequestError as exc:
            raise NetworkError(f"GET {path} failed: {exc.__class__.__name__}") from exc

        logger.debug("GET %s -> %s", path, res.status_code)
        if not res.is_success:
            try:
                body: Any = res.json()
            except ValueError:
                body = res.text
            raise ServerError(res.status_code, body)

        try:
            return res.json()
        except ValueError as exc:
            raise ParseError(f"GET {path} returned a non-JSON body") from exc

    # PUBLIC_INTERFACE
    async def fetch_alerts(self) -> List[Dict[str, Any]]:
        """GET /alerts/all -> raw alert dicts."""
        data = await self._get_json("/alerts/all")
        if not isinstance(data, list):
            raise ParseError("GET /alerts/all did not return a JSON array")
        return [d for d in data if isinstance(d, dict)]

    # PUBLIC_INTERFACE
    async def fetch_dashboard(self) -> Dict[str, Any]:
        """GET /dashboard -> {totalBuses, topBuses}."""
        data = await self._get_json("/dashboard")
        if not isinstance(data, dict):
            raise ParseError("GET /dashboard did not return a JSON object")
        return data

    # PUBLIC_INTERFACE
    async def fetch_bus_details(
        self,
        bus_id: str,
        time_range: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """GET /buses/{bus_id}/details -> {readings: [...]}."""
        data = await self._get_json(
            f"/buses/{quote(str(bus_id), safe='')}/details",
            params={
                "timeRange": time_range,
                "startDate": start.isoformat() if start else None,
                "endDate": end.isoformat() if end else None,
            },
        )
        if not isinstance(data, dict):
            raise ParseError(f"GET /buses/{bus_id}/details did not return a JSON object")
        return data

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
