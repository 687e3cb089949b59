from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.api.schemas.common import SensorStatus


class BusSummary(BaseModel):
    """Bus identity plus the raw sensor telemetry the classifier needs."""

    model_config = ConfigDict(frozen=True)

    bus_id: str
    registration_no: str
    driver_name: Optional[str] = None
    route_name: Optional[str] = None
    fuel_level: Optional[float] = None

    # Raw inputs; the derived status is recomputed per response, never stored.
    sensor_status_code: Optional[str] = None
    sensor_last_seen: Optional[str] = None


class FuelReading(BaseModel):
    """One fuel-level sample from a bus, optionally tagged with an event."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    fuel_level: float
    event_type: Optional[str] = None
    description: Optional[str] = None


class BusOut(BaseModel):
    """Response model for a monitored bus card."""

    bus_id: str = Field(..., description="Bus id.", alias="busId")
    registration_no: str = Field(..., description="Registration plate.", alias="registrationNo")
    driver_name: Optional[str] = Field(default=None, description="Driver name.", alias="driverName")
    route_name: Optional[str] = Field(default=None, description="Route name.", alias="routeName")
    fuel_level: Optional[float] = Field(default=None, description="Current fuel level.", alias="fuelLevel")
    sensor_status: SensorStatus = Field(..., description="normal|alert|offline.", alias="sensorStatus")
    sensor_status_label: str = Field(..., description="Badge text (Online/Warning/Offline).", alias="sensorStatusLabel")


class DashboardResponse(BaseModel):
    """Envelope for the dashboard landing view."""

    total_buses: int = Field(..., ge=0, description="Total buses known to the fleet backend.", alias="totalBuses")
    top_buses: List[BusOut] = Field(..., description="Monitored buses with live sensor badges.", alias="topBuses")
    reload_interval_sec: int = Field(..., description="Suggested client refresh interval.", alias="reloadIntervalSec")


class FuelReadingOut(BaseModel):
    """Response model for one fuel reading."""

    timestamp: datetime = Field(..., description="Sample time.")
    fuel_level: float = Field(..., description="Fuel level at sample time.", alias="fuelLevel")
    event_type: Optional[str] = Field(default=None, description="Event tag, if any.", alias="eventType")
    description: Optional[str] = Field(default=None, description="Event description.")


class BusReadingsResponse(BaseModel):
    """Envelope for the per-bus fuel chart and event list."""

    bus_id: str = Field(..., description="Bus id.", alias="busId")
    start: Optional[datetime] = Field(default=None, description="Resolved window start (null = unbounded).")
    end: Optional[datetime] = Field(default=None, description="Resolved window end (null = unbounded).")
    readings: List[FuelReadingOut] = Field(..., description="All readings, in source order.")
    events: List[FuelReadingOut] = Field(..., description="Readings carrying a known event type.")


class SensorStatusResponse(BaseModel):
    """Response model for an ad-hoc sensor classification."""

    status: SensorStatus = Field(..., description="normal|alert|offline.")
    label: str = Field(..., description="Badge text (Online/Warning/Offline).")
    evaluated_at: datetime = Field(..., description="Instant used as 'now'.", alias="evaluatedAt")
