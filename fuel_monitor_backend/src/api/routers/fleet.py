from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Path, Query, Request

from src.api.schemas.common import ErrorResponse
from src.api.schemas.fleet import BusReadingsResponse, DashboardResponse, SensorStatusResponse
from src.api.services import fleet_service

router = APIRouter(tags=["Fleet"])


@router.get(
    "/api/dashboard",
    response_model=DashboardResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Dashboard",
    description="Fleet totals and monitored buses, each with a sensor badge recomputed on every call.",
    operation_id="dashboard",
)
async def dashboard(request: Request) -> DashboardResponse:
    """Return the dashboard landing view."""
    return await fleet_service.dashboard(request)


@router.get(
    "/api/buses/{bus_id}/readings",
    response_model=BusReadingsResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Bus fuel readings",
    description="Fuel readings for one bus over a named window plus the readings tagged with a known event.",
    operation_id="bus_readings",
)
async def bus_readings(
    request: Request,
    bus_id: str = Path(..., description="Bus id in the fleet backend."),
    time_range: Optional[str] = Query(default=None, alias="range", description="Defaults to 'This Week'."),
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
) -> BusReadingsResponse:
    """Return readings and events for a bus."""
    return await fleet_service.bus_readings(
        request, bus_id, time_range=time_range, custom_start=start_date, custom_end=end_date
    )


@router.get(
    "/api/sensors/status",
    response_model=SensorStatusResponse,
    summary="Classify sensor health",
    description="Derive normal/alert/offline from a status code and last-seen timestamp. Never fails.",
    operation_id="sensor_status",
)
def sensor_status(
    request: Request,
    status_code: Optional[str] = Query(default=None, alias="statusCode", description="OK|OFFLINE|FAULTY|..."),
    last_seen: Optional[str] = Query(default=None, alias="lastSeen", description="ISO timestamp of last report."),
) -> SensorStatusResponse:
    """Classify a sensor."""
    return fleet_service.classify_sensor(request, status_code, last_seen)
