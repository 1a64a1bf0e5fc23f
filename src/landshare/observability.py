"""Operator-action events and StatsD metrics for the back-office services.

Every mutating service reports what an operator did as one :class:`Event`
log line and bumps one or more :class:`Metric` counters. Metrics are sent only
when ``observability.statsd_host`` is configured and are tagged with the
environment and the emitting component.
"""

from __future__ import annotations

import json
import logging
import socket
from datetime import date, datetime, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Dict

from landshare.settings import Settings, get_settings

_LOGGER = logging.getLogger("landshare.observability")


class Event(str, Enum):
    OWNERSHIP_MIGRATION_COMPLETED = "ownership_migration.completed"
    USER_MERGE_COMPLETED = "user_merge.completed"
    USER_DELETED = "user.deleted"
    MANUAL_INVESTMENT_RECORDED = "manual_investment.recorded"


class Metric(str, Enum):
    MIGRATION_CREATED = "migration.created"
    MIGRATION_FAILED = "migration.failed"
    MIGRATION_DURATION_MS = "migration.duration_ms"
    USERS_MERGED = "users.merged"
    USERS_DELETED = "users.deleted"
    MANUAL_INVESTMENTS = "investments.manual"


class StatsdClient:
    """Fire-and-forget DogStatsD sender over UDP."""

    def __init__(self, host: str, port: int, prefix: str = "") -> None:
        self.address = (host, port)
        self.prefix = prefix
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    def send(self, metric: str, value: float, metric_type: str, tags: Dict[str, str]) -> None:
        name = f"{self.prefix}.{metric}" if self.prefix else metric
        line = f"{name}:{_format_number(value)}|{metric_type}"
        if tags:
            line += "|#" + ",".join(f"{key}:{val}" for key, val in sorted(tags.items()))
        try:
            self._socket.sendto(line.encode("utf-8"), self.address)
        except OSError:
            _LOGGER.debug("StatsD send failed for metric %s", metric, exc_info=True)


class Observability:
    """Per-component event and metric emitter."""

    def __init__(
        self,
        *,
        settings: Settings,
        component: str,
        statsd: StatsdClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.component = component
        self.statsd = statsd
        self._logger = logger or _LOGGER
        self._tags = {"env": settings.env, "component": component}

    def emit_event(self, event: Event, *, operator: str, **fields: Any) -> None:
        """Log ``event`` with the acting operator and any extra fields.

        Structured mode writes one JSON object per line; otherwise the payload
        is appended to the event name for reading in a terminal.
        """

        payload = {
            "event": event.value,
            "operator": operator,
            "component": self.component,
            "service": self.settings.observability.service_name,
            "env": self.settings.env,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **fields,
        }
        if self.settings.observability.structured_logging:
            self._logger.info(json.dumps(payload, default=_json_default))
        else:
            self._logger.info("%s by %s | %s", event.value, operator, fields)

    def increment(self, metric: Metric, value: float = 1.0) -> None:
        if self.statsd is not None:
            self.statsd.send(metric.value, value, "c", self._tags)

    def record_timing(self, metric: Metric, value_ms: float) -> None:
        if self.statsd is not None:
            self.statsd.send(metric.value, value_ms, "ms", self._tags)


@lru_cache(maxsize=4)
def _statsd_client(host: str, port: int, prefix: str) -> StatsdClient:
    return StatsdClient(host, port, prefix)


def get_observability(*, component: str, settings: Settings | None = None) -> Observability:
    """Return an emitter for ``component`` sharing one StatsD socket per target."""

    resolved = settings or get_settings()
    config = resolved.observability
    statsd = _statsd_client(config.statsd_host, config.statsd_port, config.statsd_prefix) if config.statsd_host else None
    return Observability(settings=resolved, component=component, statsd=statsd)


def reset_observability_cache() -> None:
    """Drop cached StatsD clients (used in tests)."""

    _statsd_client.cache_clear()


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _format_number(value: float) -> str:
    return f"{value:.6f}".rstrip("0").rstrip(".") or "0"


__all__ = [
    "Event",
    "Metric",
    "Observability",
    "StatsdClient",
    "get_observability",
    "reset_observability_cache",
]
