"""Shared fixtures for the snapshot server tests."""

from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from ecotel.buffer.store import TelemetryBuffer
from ecotel.clock import ManualClock
from ecotel.ingest.counters import IngestCounters
from ecotel.models.config import AppSettings
from ecotel.server.app import create_app

# 2023-11-14T22:13:20Z
EPOCH = 1_700_000_000.0


@pytest.fixture()
def epoch_ms() -> int:
    return int(EPOCH * 1000)


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(0.0, epoch=EPOCH)


@pytest.fixture()
def buffer() -> TelemetryBuffer:
    return TelemetryBuffer()


@pytest.fixture()
def counters() -> IngestCounters:
    return IngestCounters(0.0, window=5.0)


@pytest.fixture()
def settings() -> AppSettings:
    return AppSettings(stale_threshold=0.5, disconnect_threshold=0.5, rate_window=5.0)


@pytest.fixture()
def client(
    buffer: TelemetryBuffer,
    counters: IngestCounters,
    settings: AppSettings,
    clock: ManualClock,
) -> TestClient:
    return TestClient(create_app(buffer, counters, settings, clock))
