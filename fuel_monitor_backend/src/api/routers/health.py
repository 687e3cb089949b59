from __future__ import annotations

import re
from typing import Any, Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.api.schemas.common import HealthResponse, utc_now
from src.api.state import get_state

router = APIRouter(tags=["Health"])


def _sanitize_url_for_response(url: str) -> str:
    """Mask credentials in URLs to avoid returning secrets to clients."""
    return re.sub(r"(https?://)([^:@/]+):([^@/]+)@", r"\1\2:***@", url)


class UpstreamDiagnosticsResponse(BaseModel):
    """Diagnostics describing the fleet backend connection and engine tuning."""

    fleet_api_base_url_source: str = Field(..., description="Which source provided the fleet API base URL.")
    fleet_api_base_url_sanitized: str = Field(..., description="Fleet API base URL with credentials masked.")
    fleet_api_timeout_sec: int = Field(..., description="Per-request timeout for fleet API calls.")
    auto_reload_interval_sec: int = Field(..., description="Suggested UI refresh interval.")
    offline_threshold_minutes: int = Field(..., description="Last-seen age beyond which a sensor is offline.")
    alert_threshold_minutes: int = Field(..., description="Last-seen age beyond which a healthy sensor warns.")
    page_size: int = Field(..., description="Default alert history page size.")
    max_retry_attempts: int = Field(..., description="Attempts per fleet API call.")
    base_retry_delay_ms: int = Field(..., description="Backoff base; delay before retry i is base * 2**i.")
    timestamp: str = Field(..., description="UTC timestamp when the diagnostics were produced (ISO string).")
    meta: Dict[str, Any] = Field(default_factory=dict, description="Optional debug metadata.")


@router.get(
    "/",
    response_model=HealthResponse,
    summary="Health check",
    description="Basic service liveness check used by deployment and the frontend.",
    operation_id="health_check",
)
def health_check() -> HealthResponse:
    """Return service liveness status."""
    return HealthResponse(status="ok", message="Healthy", timestamp=utc_now())


@router.get(
    "/api/health/upstream",
    response_model=UpstreamDiagnosticsResponse,
    summary="Upstream diagnostics",
    description="Reports how the fleet API is configured and the engine thresholds in effect (no secrets).",
    operation_id="upstream_diagnostics",
)
def upstream_diagnostics(request: Request) -> UpstreamDiagnosticsResponse:
    """Return fleet API and engine configuration diagnostics."""
    cfg = get_state(request.app).config
    eng = cfg.engine
    return UpstreamDiagnosticsResponse(
        fleet_api_base_url_source=cfg.fleet_api_base_url_source,
        fleet_api_base_url_sanitized=_sanitize_url_for_response(cfg.fleet_api_base_url),
        fleet_api_timeout_sec=int(cfg.fleet_api_timeout_sec),
        auto_reload_interval_sec=int(cfg.auto_reload_interval_sec),
        offline_threshold_minutes=int(eng.offline_threshold_minutes),
        alert_threshold_minutes=int(eng.alert_threshold_minutes),
        page_size=int(eng.page_size),
        max_retry_attempts=int(eng.max_retry_attempts),
        base_retry_delay_ms=int(eng.base_retry_delay_ms),
        timestamp=utc_now().isoformat(),
        meta={},
    )
