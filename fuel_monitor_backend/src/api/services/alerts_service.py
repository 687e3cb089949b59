from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional

from fastapi import Request

from src.api.errors import ParseError
from src.api.schemas.alerts import AlertHistoryResponse, AlertOut, AlertRecord, AlertType, BusRef, Location
from src.api.schemas.common import Severity, parse_instant
from src.api.services.alert_filter import AlertFilterCriteria, effective_page, filter_changed
from src.api.state import get_state

logger = logging.getLogger(__name__)


def _safe_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _str_or_none(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _doc_to_location(raw: Any) -> Optional[Location]:
    if not isinstance(raw, dict):
        return None
    lat = _safe_float(raw.get("lat"))
    lng = _safe_float(raw.get("long", raw.get("lng")))
    if lat is None or lng is None:
        return None
    return Location(lat=lat, long=lng)


def _doc_to_bus(doc: dict) -> Optional[BusRef]:
    # Nested {"bus": {...}} is the usual shape; older feeds send a flat busId.
    nested = doc.get("bus") if isinstance(doc.get("bus"), dict) else {}
    bus_id = _str_or_none(nested.get("id")) or _str_or_none(doc.get("busId"))
    reg = _str_or_none(nested.get("registrationNo")) or _str_or_none(doc.get("registrationNo"))
    if not bus_id and not reg:
        return None
    return BusRef(
        id=bus_id or reg,
        registration_no=reg or bus_id,
        driver=_str_or_none(nested.get("driver")),
        route=_str_or_none(nested.get("route")),
    )


def _doc_to_alert(doc: dict) -> Optional[AlertRecord]:
    """Build an AlertRecord from a raw fleet-backend dict; None when it has no usable timestamp or bus."""
    try:
        ts = parse_instant(doc.get("timestamp"))
    except ParseError:
        logger.warning("Skipping alert with unparseable timestamp %r", doc.get("timestamp"))
        return None

    bus = _doc_to_bus(doc)
    if bus is None:
        logger.warning("Skipping alert without bus reference at %s", ts.isoformat())
        return None

    return AlertRecord(
        type=_str_or_none(doc.get("type")) or AlertType.unknown.value,
        timestamp=ts,
        bus=bus,
        location=_doc_to_location(doc.get("location")),
        severity=Severity.coerce(doc.get("severity")),
        fuel_change=_safe_float(doc.get("fuelChange")),
        description=_str_or_none(doc.get("description")),
    )


def _alert_to_out(rec: AlertRecord) -> AlertOut:
    return AlertOut(
        type=rec.type,
        timestamp=rec.timestamp,
        busId=rec.bus.id,
        registrationNo=rec.bus.registration_no,
        driver=rec.bus.driver,
        route=rec.bus.route,
        location=rec.location,
        locationText=rec.location_text,
        severity=rec.severity,
        fuelChange=rec.fuel_change,
        fuelChangeText=rec.fuel_change_text,
        description=rec.description,
    )


# PUBLIC_INTERFACE
def parse_alert_records(docs: Iterable[Dict[str, Any]]) -> List[AlertRecord]:
    """Convert raw alert dicts to AlertRecords, keeping source order and dropping unusable rows."""
    out: List[AlertRecord] = []
    for doc in docs:
        rec = _doc_to_alert(doc)
        if rec is not None:
            out.append(rec)
    return out


# PUBLIC_INTERFACE
async def fetch_alerts(request: Request) -> List[AlertRecord]:
    """Fetch a fresh alert snapshot from the fleet backend (with retries)."""
    state = get_state(request.app)
    docs = await state.invoker.invoke(state.fleet.fetch_alerts, context="fetch alerts")
    return parse_alert_records(docs)


# PUBLIC_INTERFACE
async def alert_history(
    request: Request,
    criteria: AlertFilterCriteria,
    page: int = 1,
    page_size: Optional[int] = None,
    previous_filter_key: Optional[str] = None,
) -> AlertHistoryResponse:
    """
    One page of the filtered alert history.

    The page is reset to 1 when `previous_filter_key` does not match the current filter.
    Without a bus selection nothing is fetched and an empty page is returned.
    """
    state = get_state(request.app)
    changed = filter_changed(previous_filter_key, criteria)
    requested = effective_page(previous_filter_key, criteria, page)

    records = await fetch_alerts(request) if criteria.has_bus else []
    filtered = state.pipeline.filter(records, criteria)
    result = state.pipeline.paginate(filtered, requested, page_size)

    return AlertHistoryResponse(
        items=[_alert_to_out(r) for r in result.items],
        total=result.total,
        page=result.page,
        pageSize=result.page_size,
        pageCount=result.page_count,
        filterKey=criteria.fingerprint,
        filterChanged=changed,
    )


# PUBLIC_INTERFACE
async def bus_suggestions(request: Request, search: Optional[str] = None) -> List[str]:
    """Bus registrations seen in the alert feed, optionally narrowed by `search`."""
    state = get_state(request.app)
    records = await fetch_alerts(request)
    return state.pipeline.bus_suggestions(records, search)
