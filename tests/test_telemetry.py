from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from backend.app.telemetry import (
    StructuredLogTelemetrySink,
    TelemetryClient,
    build_telemetry_client,
)


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def test_telemetry_client_redacts_sensitive_fields() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "neighborhood.resolve.start",
        request_id="req_123",
        channel_id="UCabc",
        api_key="secret",
        page_token="CAUQAA",
        query_string="key=secret&part=snippet",
        radius=10,
    )

    assert len(sink.events) == 1
    event_name, attributes = sink.events[0]
    assert event_name == "neighborhood.resolve.start"
    assert attributes["request_id"] == "req_123"
    assert attributes["channel_id"] == "UCabc"
    assert attributes["radius"] == 10
    assert attributes["api_key"] == "[redacted]"
    assert attributes["page_token"] == "[redacted]"
    assert attributes["query_string"] == "[redacted]"


def test_telemetry_client_compacts_values() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "neighborhood.neighbor.failed",
        error="  upstream \n said   no  ",
        detail="x" * 400,
        payload={"nested": True},
    )

    _, attributes = sink.events[0]
    assert attributes["error"] == "upstream said no"
    assert attributes["detail"].endswith("...")
    assert len(attributes["detail"]) == 163
    assert attributes["payload"] == "dict"


def test_disabled_telemetry_client_does_not_emit() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=False, sink=sink)

    client.emit("playlist.walk.finish", playlist_id="UU1")
    assert sink.events == []


def test_build_telemetry_client_selects_sink() -> None:
    assert build_telemetry_client(enabled=True, sink="none").enabled is False
    assert build_telemetry_client(enabled=False, sink="log").enabled is False

    client = build_telemetry_client(enabled=True, sink="log")
    assert client.enabled is True
    assert isinstance(client.sink, StructuredLogTelemetrySink)
