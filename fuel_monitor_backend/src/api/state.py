from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI

from src.api.config import BackendConfig
from src.api.services.alert_filter import AlertFilterPipeline
from src.api.services.date_range import DateRangeResolver
from src.api.services.fleet_client import FleetApiClient
from src.api.services.retry import ResilientInvoker
from src.api.services.sensor_health import SensorHealthClassifier


@dataclass
class AppState:
    """Typed app.state container for shared singletons."""

    config: BackendConfig
    fleet: FleetApiClient
    invoker: ResilientInvoker
    resolver: DateRangeResolver
    pipeline: AlertFilterPipeline
    classifier: SensorHealthClassifier


# PUBLIC_INTERFACE
def build_state(config: BackendConfig, fleet: FleetApiClient | None = None) -> AppState:
    """Wire the engine components from one config."""
    resolver = DateRangeResolver()
    return AppState(
        config=config,
        fleet=fleet or FleetApiClient(config.fleet_api_base_url, timeout_sec=config.fleet_api_timeout_sec),
        invoker=ResilientInvoker(config.engine),
        resolver=resolver,
        pipeline=AlertFilterPipeline(config.engine, resolver),
        classifier=SensorHealthClassifier(config.engine),
    )


# PUBLIC_INTERFACE
def init_state(app: FastAPI, config: BackendConfig, fleet: FleetApiClient | None = None) -> None:
    """Initialize app.state with the fleet client, engine components and config."""
    app.state.state = build_state(config, fleet=fleet)


# PUBLIC_INTERFACE
def get_state(app: FastAPI) -> AppState:
    """Fetch typed AppState from a FastAPI app."""
    return app.state.state  # type: ignore[attr-defined]
