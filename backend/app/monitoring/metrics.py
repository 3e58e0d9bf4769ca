"""Metric definitions for realtime delivery and presence."""

from __future__ import annotations

from .registry import registry


realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of authenticated websocket connections handled locally.",
)

presence_online_users = registry.gauge(
    "presence_online_users",
    "Number of distinct users with a live connection.",
)

realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of realtime events pushed to websocket connections.",
    label_names=("event", "outcome"),
)

realtime_handshake_rejections_total = registry.counter(
    "realtime_handshake_rejections_total",
    "Number of websocket handshakes rejected for missing or invalid credentials.",
)
