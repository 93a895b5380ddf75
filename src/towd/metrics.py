"""
Prometheus latency gauges.

Each gauge holds the duration of the most recent operation of its kind, in
seconds. The store times its queries and the Telegram responder times its
API calls; `start_metrics_server` exposes them for scraping.
"""

import logging

from prometheus_client import Gauge, start_http_server

logger = logging.getLogger(__name__)

DATABASE_READ = Gauge("towd_database_read_seconds", "Latency of the last database read")
DATABASE_WRITE = Gauge("towd_database_write_seconds", "Latency of the last database write")
TRANSPORT_CALL = Gauge(
    "towd_transport_call_seconds",
    "Latency of the last chat API call",
    ["method"],
)

_WRITES = ("INSERT", "UPDATE", "DELETE", "REPLACE")


def database_gauge(sql: str) -> Gauge | None:
    """Gauge timing a statement. None for schema and transaction control."""
    verb = sql.split(None, 1)[0].upper() if sql.strip() else ""
    if verb == "SELECT":
        return DATABASE_READ
    if verb in _WRITES:
        return DATABASE_WRITE
    return None


def start_metrics_server(port: int, addr: str = "0.0.0.0") -> None:
    start_http_server(port, addr=addr)
    logger.info(f"Serving metrics on {addr}:{port}")
