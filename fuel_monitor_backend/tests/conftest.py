from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Union

import httpx
import pytest

from src.api.config import EngineConfig, load_config
from src.api.main import create_app
from src.api.services.fleet_client import FleetApiClient

FLEET_BASE_URL = "http://fleet.test"


class FakeFleetBackend:
    """
    In-memory stand-in for the fleet backend, served through httpx.MockTransport.

    `failures[path]` is a queue of steps consumed one per request before the real
    answer is served: an int is returned as that HTTP status, "network" raises a
    connection error.
    """

    def __init__(self) -> None:
        self.alerts: List[Dict[str, Any]] = []
        self.dashboard: Dict[str, Any] = {"totalBuses": 0, "topBuses": []}
        self.readings: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[str, List[Union[int, str]]] = {}
        self.calls: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path

        plan = self.failures.get(path)
        if plan:
            step = plan.pop(0)
            if step == "network":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(int(step), json={"message": "fleet backend unavailable"})

        if path == "/alerts/all":
            return httpx.Response(200, json=self.alerts)
        if path == "/dashboard":
            return httpx.Response(200, json=self.dashboard)
        if path.startswith("/buses/") and path.endswith("/details"):
            bus_id = path[len("/buses/") : -len("/details")]
            return httpx.Response(200, json={"readings": self.readings.get(bus_id, [])})
        return httpx.Response(404, json={"message": f"no route {path}"})

    def calls_to(self, path: str) -> int:
        return sum(1 for c in self.calls if c.url.path == path)


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def engine_config() -> EngineConfig:
    """Default thresholds, no backoff delay."""
    return EngineConfig(base_retry_delay_ms=0)


@pytest.fixture
def fleet_backend() -> FakeFleetBackend:
    """Fake fleet backend seeded with a small, mixed alert feed."""
    backend = FakeFleetBackend()
    base = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
    backend.alerts = [
        {
            "type": "THEFT",
            "timestamp": _iso(base),
            "description": "Fuel dropped 20L while parked",
            "location": {"lat": 12.9716, "long": 77.5946},
            "severity": "High",
            "fuelChange": -20,
            "bus": {"id": "b1", "registrationNo": "KA-01-F-1234", "driver": "Ravi", "route": "R1"},
        },
        {
            "type": "REFUEL",
            "timestamp": _iso(base + timedelta(hours=1)),
            "fuelChange": 40.5,
            "bus": {"id": "b2", "registrationNo": "KA-02-G-5678", "driver": "Asha", "route": "R2"},
        },
        {
            "type": "SENSOR_HEALTH",
            "timestamp": _iso(base + timedelta(hours=2)),
            "severity": "weird",
            "bus": {"id": "b1", "registrationNo": "KA-01-F-1234"},
        },
        {
            "type": "THEFT",
            "timestamp": "garbage",
            "bus": {"id": "b1", "registrationNo": "KA-01-F-1234"},
        },
    ]
    return backend


@pytest.fixture
def app(monkeypatch: pytest.MonkeyPatch, fleet_backend: FakeFleetBackend):
    """
    FastAPI app wired to the fake fleet backend.

    Retries keep their default count but with a zero backoff so tests stay fast.
    """
    monkeypatch.setenv("FLEET_API_BASE_URL", FLEET_BASE_URL)
    monkeypatch.setenv("BASE_RETRY_DELAY_MS", "0")
    monkeypatch.setenv("MAX_RETRY_ATTEMPTS", "3")
    monkeypatch.delenv("DEFAULT_PAGE_SIZE", raising=False)

    cfg = load_config()
    client = FleetApiClient(cfg.fleet_api_base_url, transport=httpx.MockTransport(fleet_backend.handler))
    return create_app(cfg, fleet_client=client)


@pytest.fixture
async def async_client(app) -> AsyncIterator[httpx.AsyncClient]:
    """Async HTTP client bound to the FastAPI ASGI app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
