"""Prometheus counters for account workflows."""

from __future__ import annotations

from prometheus_client import Counter

ACCOUNT_EVENTS = Counter(
    "account_events_total",
    "Account workflow outcomes by event name.",
    ["event"],
)


def record_event(event: str) -> None:
    """Increment the workflow counter for ``event``."""
    ACCOUNT_EVENTS.labels(event=event).inc()
