"""Business-logic layer (fleet backend access plus the in-memory alert/sensor engine).

Engine components:
- date_range.py (named time windows -> concrete instants)
- alert_filter.py (bus/type/date predicates + pagination)
- sensor_health.py (status code + last-seen -> normal/alert/offline)
- retry.py (bounded exponential backoff for fleet API calls)

Request-facing services live in alerts_service.py and fleet_service.py.
"""

# Import side-effects are intentionally avoided here; modules are imported by routers/services as needed.
