from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.api.schemas.common import Severity


class AlertType(str, Enum):
    """Known alert tags. The tag set is open: other strings pass through untouched."""

    theft = "THEFT"
    refuel = "REFUEL"
    drop = "DROP"
    sensor_health = "SENSOR_HEALTH"
    unknown = "UNKNOWN"


class Location(BaseModel):
    """GPS fix attached to an alert."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., description="Latitude.")
    long: float = Field(..., description="Longitude.")


class BusRef(BaseModel):
    """Identity of the bus owning an alert."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Bus id in the fleet backend.")
    registration_no: str = Field(..., description="Registration plate, used for bus search.")
    driver: Optional[str] = Field(default=None, description="Driver name at time of alert.")
    route: Optional[str] = Field(default=None, description="Route name at time of alert.")


class AlertRecord(BaseModel):
    """A single detected event tied to one bus and one instant (immutable)."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(AlertType.unknown.value, description="Alert tag (THEFT, REFUEL, ...); open-ended.")
    timestamp: datetime = Field(..., description="Event occurrence time (timezone-aware).")
    bus: BusRef = Field(..., description="Owning bus.")
    location: Optional[Location] = Field(default=None, description="Where the event happened, if known.")
    severity: Severity = Field(Severity.unspecified, description="High/Medium/Low; Unspecified when unknown.")
    fuel_change: Optional[float] = Field(default=None, description="Signed fuel delta in liters.")
    description: Optional[str] = Field(default=None, description="Free-text description from the detector.")

    @property
    def location_text(self) -> str:
        if self.location is None:
            return "N/A"
        return f"({self.location.lat:.2f}, {self.location.long:.2f})"

    @property
    def fuel_change_text(self) -> Optional[str]:
        if self.fuel_change is None:
            return None
        sign = "+" if self.fuel_change > 0 else ""
        return f"{sign}{self.fuel_change:g} L"


class AlertOut(BaseModel):
    """Response model for one alert row in the history view."""

    type: str = Field(..., description="Alert tag.")
    timestamp: datetime = Field(..., description="Event occurrence time.")
    bus_id: str = Field(..., description="Bus id.", alias="busId")
    registration_no: str = Field(..., description="Bus registration.", alias="registrationNo")
    driver: Optional[str] = Field(default=None, description="Driver name.")
    route: Optional[str] = Field(default=None, description="Route name.")
    location: Optional[Location] = Field(default=None, description="Coordinates, when known.")
    location_text: str = Field(..., description="Display form of the location ('N/A' when absent).", alias="locationText")
    severity: Severity = Field(..., description="Severity (Unspecified when unknown).")
    fuel_change: Optional[float] = Field(default=None, description="Signed fuel delta in liters.", alias="fuelChange")
    fuel_change_text: Optional[str] = Field(default=None, description="Display form, e.g. '+12.5 L'.", alias="fuelChangeText")
    description: Optional[str] = Field(default=None, description="Detector description.")


class AlertHistoryResponse(BaseModel):
    """Envelope for one page of the filtered alert history."""

    items: List[AlertOut] = Field(..., description="Alerts on this page, in source order.")
    total: int = Field(..., ge=0, description="Number of alerts matching the filter.")
    page: int = Field(..., ge=1, description="Page actually served (after clamping/reset).")
    page_size: int = Field(..., ge=1, description="Page size used.", alias="pageSize")
    page_count: int = Field(..., ge=0, description="ceil(total / pageSize).", alias="pageCount")
    filter_key: str = Field(..., description="Fingerprint of the active filter; send back as filterKey.", alias="filterKey")
    filter_changed: bool = Field(
        ..., description="True when the filter differs from the supplied filterKey (page was reset to 1).", alias="filterChanged"
    )


class BusSuggestionsResponse(BaseModel):
    """Envelope for bus registration suggestions."""

    items: List[str] = Field(..., description="Unique bus registrations in first-seen order.")
    total: int = Field(..., ge=0, description="Count of suggestions returned.")
