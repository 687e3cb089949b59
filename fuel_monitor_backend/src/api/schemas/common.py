from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.api.errors import ParseError

_DATETIME_ADAPTER = TypeAdapter(datetime)


class Severity(str, Enum):
    """Severity levels attached to alert records."""

    high = "High"
    medium = "Medium"
    low = "Low"
    unspecified = "Unspecified"

    @classmethod
    def coerce(cls, value: Any) -> "Severity":
        """Map any wire value to a Severity; unknown/absent become `unspecified`."""
        if isinstance(value, Severity):
            return value
        if not isinstance(value, str):
            return cls.unspecified
        wanted = value.strip().lower()
        for member in (cls.high, cls.medium, cls.low):
            if member.value.lower() == wanted:
                return member
        return cls.unspecified


class SensorStatus(str, Enum):
    """Three-state sensor health verdict."""

    normal = "normal"
    alert = "alert"
    offline = "offline"

    @property
    def label(self) -> str:
        """Badge text shown next to a bus."""
        return _SENSOR_LABELS[self]


_SENSOR_LABELS = {
    SensorStatus.normal: "Online",
    SensorStatus.alert: "Warning",
    SensorStatus.offline: "Offline",
}


class HealthResponse(BaseModel):
    """Response model for health endpoints."""

    status: str = Field(..., description="High-level health status string (e.g., 'ok').")
    message: str = Field(..., description="Human-readable status message.")
    timestamp: datetime = Field(..., description="UTC timestamp at time of response.")


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    detail: str = Field(..., description="Human-readable error details.")
    code: Optional[str] = Field(default=None, description="Optional machine-readable error code.")
    meta: Dict[str, Any] = Field(default_factory=dict, description="Optional metadata for debugging.")


# PUBLIC_INTERFACE
def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
def parse_instant(value: Any, assume_utc: bool = True) -> datetime:
    """
    Parse an ISO string / datetime / epoch number into a datetime.

    Naive values are taken as UTC unless `assume_utc` is False, in which case they are returned
    naive for the caller to place. Raises ParseError when the value is missing or unparseable.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ParseError("timestamp is missing")
    if isinstance(value, bool):
        raise ParseError(f"not a timestamp: {value!r}")
    try:
        parsed = value if isinstance(value, datetime) else _DATETIME_ADAPTER.validate_python(value)
    except PydanticValidationError as exc:
        raise ParseError(f"not a timestamp: {value!r}") from exc
    if parsed.tzinfo is None and assume_utc:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
