from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.api.config import EngineConfig
from src.api.errors import ValidationError
from src.api.schemas.alerts import AlertRecord, BusRef
from src.api.services.alert_filter import (
    AlertFilterCriteria,
    AlertFilterPipeline,
    effective_page,
    filter_changed,
)

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def _alert(reg: str, type_: str, ts: datetime) -> AlertRecord:
    return AlertRecord(type=type_, timestamp=ts, bus=BusRef(id=reg.lower(), registration_no=reg))


@pytest.fixture
def pipeline() -> AlertFilterPipeline:
    return AlertFilterPipeline(EngineConfig())


@pytest.fixture
def alerts():
    return [
        _alert("KA-01", "THEFT", T0),
        _alert("KA-02", "REFUEL", T0 + timedelta(hours=1)),
    ]


def test_bus_query_is_case_insensitive(pipeline, alerts):
    out = pipeline.filter(alerts, AlertFilterCriteria(bus_query="ka-01"))
    assert out == [alerts[0]]


@pytest.mark.parametrize("bus_query", [None, "", "   "])
def test_no_bus_selected_returns_nothing(pipeline, alerts, bus_query):
    assert pipeline.filter(alerts, AlertFilterCriteria(bus_query=bus_query, type_query="THEFT")) == []


def test_bus_match_is_substring(pipeline, alerts):
    out = pipeline.filter(alerts, AlertFilterCriteria(bus_query="KA-0"))
    assert out == alerts


def test_type_is_exact_tag_and_empty_matches_all(pipeline, alerts):
    assert pipeline.filter(alerts, AlertFilterCriteria(bus_query="ka", type_query="REFUEL")) == [alerts[1]]
    assert pipeline.filter(alerts, AlertFilterCriteria(bus_query="ka", type_query="refuel")) == []
    assert pipeline.filter(alerts, AlertFilterCriteria(bus_query="ka", type_query="")) == alerts


def test_unknown_types_pass_through(pipeline):
    odd = _alert("KA-09", "TYRE_PRESSURE", T0)
    assert pipeline.filter([odd], AlertFilterCriteria(bus_query="ka-09", type_query="TYRE_PRESSURE")) == [odd]


def test_date_range_is_inclusive(pipeline, alerts):
    criteria = AlertFilterCriteria(
        bus_query="ka",
        date_token="custom",
        custom_start=T0,
        custom_end=T0 + timedelta(hours=1),
    )
    assert pipeline.filter(alerts, criteria) == alerts

    narrower = AlertFilterCriteria(
        bus_query="ka",
        date_token="custom",
        custom_start=T0 + timedelta(minutes=1),
        custom_end=T0 + timedelta(hours=1),
    )
    assert pipeline.filter(alerts, narrower) == [alerts[1]]


def test_all_token_ignores_timestamps(pipeline):
    ancient = _alert("KA-01", "THEFT", datetime(1990, 1, 1, tzinfo=timezone.utc))
    assert pipeline.filter([ancient], AlertFilterCriteria(bus_query="ka", date_token="All")) == [ancient]


def test_today_excludes_older_alerts(pipeline):
    now = datetime(2024, 3, 10, 12, 0).astimezone()
    fresh = _alert("KA-01", "THEFT", now - timedelta(hours=1))
    old = _alert("KA-01", "THEFT", now - timedelta(days=2))
    out = pipeline.filter([old, fresh], AlertFilterCriteria(bus_query="ka", date_token="today"), now=now)
    assert out == [fresh]


def test_half_specified_custom_range_does_not_filter(pipeline, alerts):
    criteria = AlertFilterCriteria(bus_query="ka", date_token="Custom", custom_start=T0 + timedelta(days=5))
    assert pipeline.filter(alerts, criteria) == alerts


def test_filter_preserves_order_and_is_idempotent(pipeline):
    records = [_alert("KA-01", "THEFT", T0 + timedelta(minutes=m)) for m in (30, 10, 20)]
    criteria = AlertFilterCriteria(bus_query="KA-01", type_query="THEFT")
    once = pipeline.filter(records, criteria)
    assert once == records
    assert pipeline.filter(once, criteria) == once


def test_paginate_counts_and_slices(pipeline):
    records = [_alert("KA-01", "THEFT", T0 + timedelta(minutes=i)) for i in range(23)]
    page = pipeline.paginate(records, 3)
    assert page.page_count == 3
    assert page.total == 23
    assert page.page == 3
    assert page.items == records[20:]


def test_paginate_clamps_out_of_range_pages(pipeline):
    records = [_alert("KA-01", "THEFT", T0 + timedelta(minutes=i)) for i in range(12)]
    last = pipeline.paginate(records, 2)
    beyond = pipeline.paginate(records, last.page_count + 5)
    assert beyond.items == last.items
    assert beyond.page == last.page
    assert pipeline.paginate(records, 0).items == records[:10]
    assert pipeline.paginate(records, -3).page == 1


def test_paginate_empty_input(pipeline):
    page = pipeline.paginate([], 4)
    assert page.items == []
    assert page.page == 1
    assert page.page_count == 0


def test_paginate_honours_explicit_page_size(pipeline):
    records = [_alert("KA-01", "THEFT", T0 + timedelta(minutes=i)) for i in range(7)]
    page = pipeline.paginate(records, 2, page_size=5)
    assert page.page_count == 2
    assert page.items == records[5:]
    with pytest.raises(ValidationError):
        pipeline.paginate(records, 1, page_size=0)


def test_fingerprint_tracks_filter_changes():
    base = AlertFilterCriteria(bus_query="KA-01", type_query="THEFT", date_token="today")
    same = AlertFilterCriteria(bus_query="  ka-01 ", type_query="THEFT", date_token=" Today ")
    other = AlertFilterCriteria(bus_query="KA-01", type_query="REFUEL", date_token="today")
    assert base.fingerprint == same.fingerprint
    assert base.fingerprint != other.fingerprint

    assert not filter_changed(None, base)
    assert not filter_changed(base.fingerprint, same)
    assert filter_changed(base.fingerprint, other)
    assert effective_page(base.fingerprint, other, 4) == 1
    assert effective_page(base.fingerprint, same, 4) == 4


def test_custom_dates_only_count_for_custom_token():
    a = AlertFilterCriteria(bus_query="x", date_token="all", custom_start="2024-01-01")
    b = AlertFilterCriteria(bus_query="x", date_token="all")
    assert a.fingerprint == b.fingerprint


def test_bus_suggestions_unique_in_first_seen_order(pipeline, alerts):
    records = alerts + [_alert("KA-01", "DROP", T0), _alert("MH-12", "DROP", T0)]
    assert pipeline.bus_suggestions(records) == ["KA-01", "KA-02", "MH-12"]
    assert pipeline.bus_suggestions(records, "mh") == ["MH-12"]
