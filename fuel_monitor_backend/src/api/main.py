from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.config import BackendConfig, load_config
from src.api.errors import FleetEngineError, ValidationError, summarize_error
from src.api.routers import alerts, fleet, health
from src.api.schemas.common import ErrorResponse
from src.api.services.fleet_client import FleetApiClient
from src.api.state import get_state, init_state

openapi_tags = [
    {"name": "Health", "description": "Service health and upstream diagnostics."},
    {"name": "Alerts", "description": "Filtered, paginated alert history and bus search."},
    {"name": "Fleet", "description": "Dashboard, per-bus fuel readings and sensor health badges."},
]

logger = logging.getLogger(__name__)


def _error_status(exc: FleetEngineError) -> int:
    # Local input problems are the caller's; everything else came from the fleet backend.
    return 400 if isinstance(exc, ValidationError) else 502


async def _engine_error_handler(request: Request, exc: FleetEngineError) -> JSONResponse:
    """Render any engine failure as a single summarized ErrorResponse."""
    summary = summarize_error(exc, f"{request.method} {request.url.path}")
    meta = {}
    if summary.status is not None:
        meta["upstreamStatus"] = summary.status
    if get_state(request.app).config.debug_errors:
        meta["exception"] = repr(exc)
    body = ErrorResponse(detail=summary.message, code=summary.code, meta=meta)
    return JSONResponse(status_code=_error_status(exc), content=body.model_dump())


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Shutdown hook: close the fleet API client."""
    yield
    try:
        await get_state(app).fleet.aclose()
    except Exception:
        logger.exception("Error closing fleet API client")


# PUBLIC_INTERFACE
def create_app(config: Optional[BackendConfig] = None, fleet_client: Optional[FleetApiClient] = None) -> FastAPI:
    """Build the FastAPI app; `fleet_client` lets callers supply a pre-configured upstream client."""
    cfg = config or load_config()

    app = FastAPI(
        title="Fleet Fuel Monitor API",
        description=(
            "Backend-for-frontend for the fleet fuel-monitoring dashboard. "
            "Fetches alerts, bus summaries and fuel readings from the fleet backend with bounded retries, "
            "filters and pages the alert history, and classifies sensor health."
        ),
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=_lifespan,
    )

    # Initialize typed app state (config + fleet client + engine)
    init_state(app, cfg, fleet=fleet_client)

    app.add_exception_handler(FleetEngineError, _engine_error_handler)

    # CORS: allow local vite dev server by default, plus explicit frontend URL and optional extra origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(alerts.router)
    app.include_router(fleet.router)
    return app


app = create_app()
