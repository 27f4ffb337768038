"""Fire-and-forget signup telemetry."""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import requests

from job_matching.log import get_logger

log = get_logger(__name__)

SIGNUP_COMPLETED = "signup_completed"
SIGNUP_NO_MATCHES = "signup_no_matches"
FALLBACK_MATCH = "fallback_match"


class TelemetrySink(ABC):
    @abstractmethod
    def emit(self, event: str, properties: dict[str, Any]) -> None:
        """Record an event. Must not raise."""


class LogTelemetry(TelemetrySink):
    def emit(self, event: str, properties: dict[str, Any]) -> None:
        log.info("event=%s %s", event, json.dumps(properties, default=str, sort_keys=True))


class MemoryTelemetry(TelemetrySink):
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, properties: dict[str, Any]) -> None:
        self.events.append((event, dict(properties)))

    def named(self, event: str) -> list[dict[str, Any]]:
        return [props for name, props in self.events if name == event]


class HttpTelemetry(TelemetrySink):
    """POST events as JSON to an analytics endpoint."""

    def __init__(self, url: str, timeout: float = 5.0, session: requests.Session | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def emit(self, event: str, properties: dict[str, Any]) -> None:
        payload = {
            "event": event,
            "properties": properties,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            r = self._session.post(
                self.url,
                data=json.dumps(payload, default=str),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as exc:
            log.warning("Telemetry event %s not delivered: %s", event, exc)


def build_telemetry(url: str = "") -> TelemetrySink:
    if url:
        return HttpTelemetry(url)
    return LogTelemetry()
