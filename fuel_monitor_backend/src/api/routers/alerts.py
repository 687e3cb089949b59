from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request

from src.api.schemas.alerts import AlertHistoryResponse, BusSuggestionsResponse
from src.api.schemas.common import ErrorResponse
from src.api.services import alerts_service
from src.api.services.alert_filter import AlertFilterCriteria
from src.api.services.date_range import DateRangeToken, normalize_token, validate_date_range

router = APIRouter(prefix="/api/alerts", tags=["Alerts"])


@router.get(
    "/history",
    response_model=AlertHistoryResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Alert history",
    description=(
        "Filter the fleet alert feed by bus (required, case-insensitive substring of the registration), "
        "event type and date range, then return one page. Results keep the feed's order. "
        "Pass back the previous filterKey so the page is reset to 1 when the filter changed."
    ),
    operation_id="alert_history",
)
async def alert_history(
    request: Request,
    bus: Optional[str] = Query(default=None, description="Bus registration search (required to see alerts)."),
    type_filter: Optional[str] = Query(default=None, alias="type", description="THEFT|REFUEL|DROP|SENSOR_HEALTH|..."),
    date_range: Optional[str] = Query(
        default="all", alias="range", description="all|today|yesterday|this week|last 30 days|custom"
    ),
    start_date: Optional[str] = Query(default=None, alias="startDate", description="Custom range start (ISO)."),
    end_date: Optional[str] = Query(default=None, alias="endDate", description="Custom range end (ISO)."),
    page: int = Query(1, description="1-based page; out-of-range values are clamped"),
    page_size: Optional[int] = Query(default=None, alias="pageSize", ge=1, le=100),
    filter_key: Optional[str] = Query(default=None, alias="filterKey", description="filterKey from the previous response."),
) -> AlertHistoryResponse:
    """Return one page of filtered alerts."""
    # A fully specified custom range is user input: reject nonsense instead of silently widening it.
    if normalize_token(date_range) is DateRangeToken.custom and start_date and end_date:
        validate_date_range(start_date, end_date)

    criteria = AlertFilterCriteria(
        bus_query=bus,
        type_query=type_filter,
        date_token=date_range,
        custom_start=start_date,
        custom_end=end_date,
    )
    return await alerts_service.alert_history(
        request,
        criteria,
        page=page,
        page_size=page_size,
        previous_filter_key=filter_key,
    )


@router.get(
    "/buses",
    response_model=BusSuggestionsResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Bus suggestions",
    description="Unique bus registrations present in the alert feed, optionally narrowed by a search string.",
    operation_id="alert_bus_suggestions",
)
async def bus_suggestions(
    request: Request,
    search: Optional[str] = Query(default=None, description="Case-insensitive substring."),
) -> BusSuggestionsResponse:
    """List bus registrations for the search box."""
    items = await alerts_service.bus_suggestions(request, search)
    return BusSuggestionsResponse(items=items, total=len(items))
