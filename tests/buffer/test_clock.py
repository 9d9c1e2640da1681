"""Tests for the monotonic clock and its epoch projection."""

from __future__ import annotations

from ecotel.clock import Clock, ManualClock


class TestClock:
    def test_to_epoch_ms_tracks_monotonic_offset(self) -> None:
        ticks = iter([100.0, 102.5])
        clock = Clock(monotonic=lambda: next(ticks), wall=lambda: 1_700_000_000.0)
        now = clock.now()
        assert now == 102.5
        assert clock.to_epoch_ms(now) == 1_700_000_002_500

    def test_manual_clock_moves_only_when_told(self) -> None:
        clock = ManualClock(10.0, epoch=1_000.0)
        assert clock.now() == 10.0
        clock.advance(0.25)
        assert clock.now() == 10.25
        clock.set(20.0)
        assert clock.now() == 20.0
        assert clock.to_epoch_ms(10.0) == 1_000_000
        assert clock.to_epoch_ms(11.5) == 1_001_500
