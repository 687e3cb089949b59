from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, List, Optional

from fastapi import Request

from src.api.errors import ParseError
from src.api.schemas.alerts import AlertType
from src.api.schemas.common import parse_instant, utc_now
from src.api.schemas.fleet import (
    BusOut,
    BusReadingsResponse,
    BusSummary,
    DashboardResponse,
    FuelReading,
    FuelReadingOut,
    SensorStatusResponse,
)
from src.api.state import get_state

logger = logging.getLogger(__name__)

DEFAULT_READINGS_RANGE = "This Week"


def _safe_float(v: Any, default: Optional[float] = None) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return default
    try:
        f = float(v)
    except (TypeError, ValueError):
        return default
    return f if math.isfinite(f) else default


def _str_or_none(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _doc_to_bus_summary(doc: dict) -> Optional[BusSummary]:
    bus_id = _str_or_none(doc.get("busId")) or _str_or_none(doc.get("id"))
    reg = _str_or_none(doc.get("registrationNo"))
    if not bus_id and not reg:
        return None
    last_seen = doc.get("sensorLastSeen")
    return BusSummary(
        bus_id=bus_id or reg,
        registration_no=reg or bus_id,
        driver_name=_str_or_none(doc.get("driverName")),
        route_name=_str_or_none(doc.get("routeName")),
        fuel_level=_safe_float(doc.get("fuelLevel")),
        sensor_status_code=_str_or_none(doc.get("sensorStatus")),
        sensor_last_seen=None if last_seen is None else str(last_seen),
    )


def _doc_to_reading(doc: dict) -> Optional[FuelReading]:
    try:
        ts = parse_instant(doc.get("timestamp"))
    except ParseError:
        logger.warning("Skipping fuel reading with unparseable timestamp %r", doc.get("timestamp"))
        return None
    return FuelReading(
        timestamp=ts,
        fuel_level=_safe_float(doc.get("fuelLevel"), 0.0),
        event_type=_str_or_none(doc.get("eventType")),
        description=_str_or_none(doc.get("description")),
    )


def _reading_to_out(r: FuelReading) -> FuelReadingOut:
    return FuelReadingOut(
        timestamp=r.timestamp,
        fuelLevel=r.fuel_level,
        eventType=r.event_type,
        description=r.description,
    )


def _is_event(r: FuelReading) -> bool:
    return bool(r.event_type) and r.event_type != AlertType.unknown.value


# PUBLIC_INTERFACE
async def dashboard(request: Request) -> DashboardResponse:
    """Dashboard totals plus each monitored bus with a freshly computed sensor badge."""
    state = get_state(request.app)
    data = await state.invoker.invoke(state.fleet.fetch_dashboard, context="fetch dashboard")

    raw_buses = data.get("topBuses") if isinstance(data.get("topBuses"), list) else []
    buses: List[BusSummary] = []
    for doc in raw_buses:
        if not isinstance(doc, dict):
            continue
        bus = _doc_to_bus_summary(doc)
        if bus is not None:
            buses.append(bus)

    total = _safe_float(data.get("totalBuses"))
    now = utc_now()
    items = []
    for bus in buses:
        status = state.classifier.classify_bus(bus, now=now)
        items.append(
            BusOut(
                busId=bus.bus_id,
                registrationNo=bus.registration_no,
                driverName=bus.driver_name,
                routeName=bus.route_name,
                fuelLevel=bus.fuel_level,
                sensorStatus=status,
                sensorStatusLabel=status.label,
            )
        )

    return DashboardResponse(
        totalBuses=int(total) if total is not None and total >= 0 else len(items),
        topBuses=items,
        reloadIntervalSec=state.config.auto_reload_interval_sec,
    )


# PUBLIC_INTERFACE
async def bus_readings(
    request: Request,
    bus_id: str,
    time_range: Optional[str] = None,
    custom_start: Any = None,
    custom_end: Any = None,
    now: Optional[datetime] = None,
) -> BusReadingsResponse:
    """Fuel readings for one bus over a named window (default: this week) plus its tagged events."""
    state = get_state(request.app)
    token = time_range or DEFAULT_READINGS_RANGE
    window = state.resolver.resolve(token, custom_start=custom_start, custom_end=custom_end, now=now)

    data = await state.invoker.invoke(
        lambda: state.fleet.fetch_bus_details(bus_id, time_range=token, start=window.start, end=window.end),
        context=f"fetch bus details busId={bus_id}",
    )

    raw = data.get("readings") if isinstance(data.get("readings"), list) else []
    readings: List[FuelReading] = []
    for doc in raw:
        if not isinstance(doc, dict):
            continue
        r = _doc_to_reading(doc)
        if r is not None:
            readings.append(r)

    return BusReadingsResponse(
        busId=bus_id,
        start=window.start,
        end=window.end,
        readings=[_reading_to_out(r) for r in readings],
        events=[_reading_to_out(r) for r in readings if _is_event(r)],
    )


# PUBLIC_INTERFACE
def classify_sensor(request: Request, status_code: Optional[str], last_seen: Optional[str]) -> SensorStatusResponse:
    """Classify one sensor from raw inputs (used by the UI for ad-hoc badges)."""
    state = get_state(request.app)
    now = utc_now()
    status = state.classifier.classify(status_code, last_seen, now=now)
    return SensorStatusResponse(status=status, label=status.label, evaluatedAt=now)
