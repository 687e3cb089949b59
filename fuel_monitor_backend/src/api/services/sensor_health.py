from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from src.api.config import EngineConfig
from src.api.errors import ParseError
from src.api.schemas.common import SensorStatus, parse_instant, utc_now
from src.api.schemas.fleet import BusSummary

logger = logging.getLogger(__name__)

STATUS_OK = "OK"


class SensorHealthClassifier:
    """
    Derives a sensor's health from its reported status code and how long ago it was last seen.

    Stateless: every call re-evaluates from its inputs. Never raises; anything
    malformed degrades to offline.
    """

    def __init__(self, config: EngineConfig):
        self._offline_after = float(config.offline_threshold_minutes)
        self._alert_after = float(config.alert_threshold_minutes)

    # PUBLIC_INTERFACE
    def classify(
        self,
        status_code: Optional[str] = None,
        last_seen: Any = None,
        now: Optional[datetime] = None,
    ) -> SensorStatus:
        """Return normal/alert/offline for a status code plus last-seen timestamp."""
        status = SensorStatus.normal if status_code == STATUS_OK else SensorStatus.offline

        # An empty last-seen string means the device never reported one.
        if last_seen is None or (isinstance(last_seen, str) and not last_seen.strip()):
            return status

        try:
            seen_at = parse_instant(last_seen)
        except ParseError:
            logger.warning("Unparseable sensor last-seen value %r; treating sensor as offline", last_seen)
            return SensorStatus.offline

        current = now.astimezone() if now is not None else utc_now()
        age_minutes = (current - seen_at).total_seconds() / 60.0
        if age_minutes > self._offline_after:
            return SensorStatus.offline
        if age_minutes > self._alert_after and status is SensorStatus.normal:
            return SensorStatus.alert
        return status

    # PUBLIC_INTERFACE
    def classify_bus(self, bus: BusSummary, now: Optional[datetime] = None) -> SensorStatus:
        """Classify a bus from its raw telemetry fields."""
        return self.classify(bus.sensor_status_code, bus.sensor_last_seen, now=now)
