"""Tests for the snapshot server endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ecotel.models.api import BusStatus, LatestValues
from ecotel.server.app import API_PREFIX, Endpoint

if TYPE_CHECKING:
    import pytest
    from starlette.testclient import TestClient

    from ecotel.buffer.store import TelemetryBuffer
    from ecotel.clock import ManualClock
    from ecotel.ingest.counters import IngestCounters


class TestEndpoints:
    def test_paths(self) -> None:
        assert Endpoint.LATEST == f"{API_PREFIX}/can/latest"
        assert Endpoint.STATUS == f"{API_PREFIX}/can/status"
        assert Endpoint.HEALTH == "/healthz"

    def test_health(self, client: TestClient) -> None:
        resp = client.get(Endpoint.HEALTH)
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    def test_unknown_path(self, client: TestClient) -> None:
        assert client.get("/api/v1/can/everything").status_code == 404

    def test_get_only(self, client: TestClient) -> None:
        assert client.post(Endpoint.LATEST).status_code == 405
        assert client.post(Endpoint.STATUS).status_code == 405

    def test_query_string_does_not_change_route(self, client: TestClient) -> None:
        resp = client.get(f"{Endpoint.LATEST}?status=1")
        assert "messages" in resp.json()


class TestLatest:
    def test_empty_buffer(self, client: TestClient, epoch_ms: int) -> None:
        resp = client.get(Endpoint.LATEST)
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        assert resp.json() == {"timestamp": epoch_ms, "messages": {}}

    def test_fresh_values(
        self,
        client: TestClient,
        buffer: TelemetryBuffer,
        clock: ManualClock,
        epoch_ms: int,
    ) -> None:
        buffer.update("speed", 42.0, "km/h", 1.0)
        buffer.update("battery_voltage", 12.4, "V", 1.0)
        clock.set(1.2)

        body = client.get(Endpoint.LATEST).json()
        assert body["timestamp"] == epoch_ms + 1200
        assert body["messages"] == {
            "speed": {
                "value": 42.0,
                "unit": "km/h",
                "timestamp": epoch_ms + 1000,
                "is_stale": False,
            },
            "battery_voltage": {
                "value": 12.4,
                "unit": "V",
                "timestamp": epoch_ms + 1000,
                "is_stale": False,
            },
        }
        assert "motor_temp" not in body["messages"]

    def test_staleness_at_request_time(
        self, client: TestClient, buffer: TelemetryBuffer, clock: ManualClock
    ) -> None:
        buffer.update("speed", 42.0, "km/h", 1.0)
        buffer.update("motor_temp", 65.0, "°C", 1.5)
        clock.set(1.6)

        messages = client.get(Endpoint.LATEST).json()["messages"]
        assert messages["speed"]["is_stale"] is True
        assert messages["motor_temp"]["is_stale"] is False

    def test_one_snapshot_per_request(
        self,
        client: TestClient,
        buffer: TelemetryBuffer,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        calls: list[float] = []
        original = buffer.snapshot

        def counting_snapshot(now: float, stale_threshold: float):  # type: ignore[no-untyped-def]
            calls.append(now)
            return original(now, stale_threshold)

        monkeypatch.setattr(buffer, "snapshot", counting_snapshot)
        buffer.update("speed", 1.0, "km/h", 0.0)
        buffer.update("motor_temp", 1.0, "°C", 0.0)
        client.get(Endpoint.LATEST)
        assert len(calls) == 1

    def test_validates_as_model(self, client: TestClient, buffer: TelemetryBuffer) -> None:
        buffer.update("speed", 42.0, "km/h", 0.0)
        model = LatestValues.model_validate(client.get(Endpoint.LATEST).json())
        assert model.messages["speed"].value == 42.0


class TestStatus:
    def test_before_any_message(self, client: TestClient, clock: ManualClock) -> None:
        clock.set(3.0)
        resp = client.get(Endpoint.STATUS)
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        assert resp.json() == {
            "connected": False,
            "uptime": 3.0,
            "message_rate": 0.0,
            "error_count": 0,
        }

    def test_connected_then_disconnected(
        self, client: TestClient, counters: IngestCounters, clock: ManualClock
    ) -> None:
        counters.record_message(1.0)
        counters.record_message(1.0)
        counters.record_error()
        clock.set(1.1)
        status = BusStatus.model_validate(client.get(Endpoint.STATUS).json())
        assert status.connected is True
        assert status.error_count == 1
        assert status.message_rate > 0

        clock.set(1.6)
        assert client.get(Endpoint.STATUS).json()["connected"] is False

    def test_bus_failure_reported_as_disconnected(
        self, client: TestClient, counters: IngestCounters, clock: ManualClock
    ) -> None:
        counters.record_message(1.0)
        counters.mark_bus_failed("bus closed")
        clock.set(1.0)
        assert client.get(Endpoint.STATUS).json()["connected"] is False
