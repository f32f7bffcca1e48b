"""
Reveal Scheduler Tests.

============================================================
PURPOSE
============================================================
Tests for RevealScheduler pacing, driven by MockClock so no test
waits on wall time.

============================================================
"""

import pytest

from calculation_engine import PacingConfig, RevealScheduler, StagedCalculationEngine
from core.clock import MockClock
from scoring_engine import get_recording


class TestPacingConfig:
    """Tests for PacingConfig."""

    def test_defaults(self):
        pacing = PacingConfig()

        assert pacing.factor_processing_ms == 600
        assert pacing.completion_hold_ms == 1000
        assert pacing.phase_interval_ms == 2000

    def test_speed_scales_delays(self):
        assert PacingConfig(speed=2.0).seconds(800) == 0.4

    def test_instant_has_no_delays(self):
        assert PacingConfig.instant().seconds(4000) == 0.0

    def test_negative_delay_clamped(self):
        assert PacingConfig().seconds(-100) == 0.0

    @pytest.mark.parametrize("speed", [0, -1.0])
    def test_non_positive_speed_rejected(self, speed):
        with pytest.raises(ValueError):
            PacingConfig(speed=speed)


class TestRevealScheduler:
    """Tests for the paced replay."""

    @pytest.mark.asyncio
    async def test_timeline_at_normal_speed(self):
        clock = MockClock()
        scheduler = RevealScheduler(clock=clock)
        run = scheduler.engine.start(get_recording("1"))

        value = await scheduler.run(run)

        assert value == 50
        assert clock.sleeps == pytest.approx(
            [0.8, 0.6, 0.2, 0.6, 0.2, 0.6, 0.2, 0.6, 0.2, 0.6, 1.0]
        )
        assert clock.monotonic() == pytest.approx(5.6)

    @pytest.mark.asyncio
    async def test_double_speed_halves_elapsed_time(self):
        clock = MockClock()
        scheduler = RevealScheduler(pacing=PacingConfig(speed=2.0), clock=clock)
        run = scheduler.engine.start(get_recording("2"))

        assert await scheduler.run(run) == 35
        assert clock.monotonic() == pytest.approx(2.8)

    @pytest.mark.asyncio
    async def test_instant_pacing_same_value(self):
        clock = MockClock()
        scheduler = RevealScheduler(pacing=PacingConfig.instant(), clock=clock)
        run = scheduler.engine.start(get_recording("1"))

        assert await scheduler.run(run) == 50
        assert clock.monotonic() == 0.0

    @pytest.mark.asyncio
    async def test_listeners_receive_snapshots(self):
        reveals = []
        updates = []
        scheduler = RevealScheduler(pacing=PacingConfig.instant(), clock=MockClock())
        scheduler.on_reveal(lambda snapshot, factor: reveals.append((snapshot.current_value, factor.id)))
        scheduler.on_update(lambda snapshot: updates.append(snapshot.current_value))
        run = scheduler.engine.start(get_recording("1"))

        await scheduler.run(run)

        assert reveals == [
            (1, "duration"),
            (6, "metadata"),
            (11, "location"),
            (27, "conservation"),
            (54, "quality"),
        ]
        assert updates == [6, 11, 27, 54, 50]

    @pytest.mark.asyncio
    async def test_failing_listener_is_ignored(self):
        def broken(snapshot):
            raise RuntimeError("display gone")

        scheduler = RevealScheduler(pacing=PacingConfig.instant(), clock=MockClock())
        scheduler.on_update(broken)
        run = scheduler.engine.start(get_recording("2"))

        assert await scheduler.run(run) == 35

    @pytest.mark.asyncio
    async def test_resumes_partially_advanced_run(self):
        engine = StagedCalculationEngine()
        clock = MockClock()
        scheduler = RevealScheduler(engine=engine, clock=clock)
        run = engine.start(get_recording("1"))
        engine.advance(run)
        engine.advance(run)

        assert await scheduler.run(run) == 50
        assert run.value_history == [1, 6, 11, 27, 54, 50]
