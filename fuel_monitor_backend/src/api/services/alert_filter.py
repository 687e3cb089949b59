from __future__ import annotations

import hashlib
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence

from src.api.config import EngineConfig
from src.api.errors import ValidationError
from src.api.schemas.alerts import AlertRecord
from src.api.services.date_range import DateRangeResolver, DateRangeToken, normalize_token

logger = logging.getLogger(__name__)


def _norm_text(v: Optional[str]) -> str:
    return (v or "").strip()


def _boundary_key(v: Any) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.isoformat()
    return str(v).strip() or None


@dataclass(frozen=True)
class AlertFilterCriteria:
    """Active filter state of the alert history view."""

    bus_query: Optional[str] = None
    type_query: Optional[str] = None
    date_token: Any = DateRangeToken.all
    custom_start: Any = None
    custom_end: Any = None

    @property
    def has_bus(self) -> bool:
        return bool(_norm_text(self.bus_query))

    @property
    def fingerprint(self) -> str:
        """Stable short key of the normalised filter; changes iff the result set may change."""
        token = normalize_token(self.date_token)
        payload = {
            "bus": _norm_text(self.bus_query).lower(),
            "type": _norm_text(self.type_query),
            "range": token.value,
            "start": _boundary_key(self.custom_start) if token is DateRangeToken.custom else None,
            "end": _boundary_key(self.custom_end) if token is DateRangeToken.custom else None,
        }
        raw = json.dumps(payload, sort_keys=True)
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:12]


@dataclass(frozen=True)
class Page:
    """One page of a filtered sequence."""

    items: List[AlertRecord] = field(default_factory=list)
    page: int = 1
    page_size: int = 10
    page_count: int = 0
    total: int = 0


# PUBLIC_INTERFACE
def filter_changed(previous_fingerprint: Optional[str], criteria: AlertFilterCriteria) -> bool:
    """True when the caller's last-known filter differs from `criteria` (paging must restart at 1)."""
    if not previous_fingerprint:
        return False
    return previous_fingerprint != criteria.fingerprint


# PUBLIC_INTERFACE
def effective_page(previous_fingerprint: Optional[str], criteria: AlertFilterCriteria, requested_page: int) -> int:
    """Page to serve: 1 after any filter change, otherwise what was asked for."""
    if filter_changed(previous_fingerprint, criteria):
        return 1
    return requested_page


class AlertFilterPipeline:
    """
    Narrows an in-memory alert snapshot by bus, type and date, then pages it.

    Pure: no state is kept between calls, and the source order of records is preserved.
    """

    def __init__(self, config: EngineConfig, resolver: Optional[DateRangeResolver] = None):
        self._config = config
        self._resolver = resolver or DateRangeResolver()

    # PUBLIC_INTERFACE
    def filter(
        self,
        records: Iterable[AlertRecord],
        criteria: AlertFilterCriteria,
        now: Optional[datetime] = None,
    ) -> List[AlertRecord]:
        """Apply bus, type and date predicates (AND). No bus selected -> no alerts."""
        if not criteria.has_bus:
            return []

        bus_needle = _norm_text(criteria.bus_query).lower()
        type_needle = _norm_text(criteria.type_query)
        window = self._resolver.resolve(
            criteria.date_token,
            custom_start=criteria.custom_start,
            custom_end=criteria.custom_end,
            now=now,
        )

        out: List[AlertRecord] = []
        for rec in records:
            if bus_needle not in rec.bus.registration_no.lower():
                continue
            if type_needle and rec.type != type_needle:
                continue
            if not window.contains(rec.timestamp):
                continue
            out.append(rec)

        logger.debug("Alert filter key=%s matched %s records", criteria.fingerprint, len(out))
        return out

    # PUBLIC_INTERFACE
    def paginate(self, items: Sequence[AlertRecord], page: int, page_size: Optional[int] = None) -> Page:
        """Slice `items` into a page; out-of-range pages are clamped, never empty unless `items` is."""
        size = self._config.page_size if page_size is None else int(page_size)
        if size < 1:
            raise ValidationError(f"page size must be >= 1 (got {size})")

        total = len(items)
        page_count = math.ceil(total / size)
        current = max(1, min(int(page), max(page_count, 1)))
        start = (current - 1) * size
        return Page(
            items=list(items[start : start + size]),
            page=current,
            page_size=size,
            page_count=page_count,
            total=total,
        )

    # PUBLIC_INTERFACE
    def bus_suggestions(self, records: Iterable[AlertRecord], search: Optional[str] = None) -> List[str]:
        """Unique bus registrations (first-seen order), narrowed by a case-insensitive substring."""
        needle = _norm_text(search).lower()
        seen = set()
        out: List[str] = []
        for rec in records:
            reg = rec.bus.registration_no
            if reg in seen:
                continue
            seen.add(reg)
            if needle and needle not in reg.lower():
                continue
            out.append(reg)
        return out
