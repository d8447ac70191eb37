"""Integration tests for a full ABR session.

Drives download completions and periodic quality checks through the
estimator, selector and monitor together, using a controllable clock.
"""

import pytest

from abr.config import AbrConfig
from abr.session import AbrSession

LEVELS = [
    {"bitrate": 1_000_000, "width": 640, "height": 360},
    {"bitrate": 2_000_000, "width": 854, "height": 480},
    {"bitrate": 4_000_000, "width": 1280, "height": 720},
    {"bitrate": 8_000_000, "width": 1920, "height": 1080},
]

START_MS = 100_000


class Clock:
    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now


def feed(session: AbrSession, bandwidth_bps: float, count: int, start_ms: int,
         step_ms: int = 500, duration_ms: int = 400) -> int:
    """Submit count downloads at bandwidth_bps; returns the last timestamp."""
    timestamp = start_ms
    for _ in range(count):
        timestamp += step_ms
        session.on_segment_loaded(int(bandwidth_bps * duration_ms / 1000 / 8), duration_ms, timestamp)
    return timestamp


class TestAbrSession:
    def setup_method(self):
        self.clock = Clock()
        self.session = AbrSession(config=AbrConfig(), clock=self.clock, session_id="test")
        self.session.set_levels(LEVELS)

    def test_warm_up_reports_unknown_bandwidth(self):
        assert self.session.on_segment_loaded(300_000, 400, START_MS + 500) == 0.0
        assert self.session.evaluate(15, 0, 600, now=START_MS + 1000) == -1

    def test_steady_link_selects_sustainable_level(self):
        """6 Mbps steady: effective 6 * 0.7 * 0.7 = 2.94 Mbps, 1.5x headroom -> 720p."""
        last = feed(self.session, 6_000_000, 6, START_MS)

        effective = self.session.estimator.get_effective_bandwidth()
        selected = self.session.evaluate(15, 10, 600, now=last)

        assert effective == pytest.approx(2_940_000, rel=1e-6)
        assert selected == 2
        assert self.session.current_level == 2
        assert self.session.monitor.quality_switches == 1
        assert self.session.monitor.switch_history[-1]["to"] == "720p"

    def test_switch_history_uses_decision_time(self):
        last = feed(self.session, 6_000_000, 6, START_MS)

        self.session.evaluate(15, 10, 600, now=last)
        self.session.on_error(RuntimeError("network error"), now=last + 250)

        assert self.session.monitor.switch_history[-1]["timestamp"] == last
        assert self.session.selector.last_switch_time == last
        assert self.session.monitor.error_history[-1]["timestamp"] == last + 250

    def test_check_interval_gates_evaluation(self):
        last = feed(self.session, 6_000_000, 6, START_MS)

        assert self.session.evaluate(15, 10, 600, now=last) == 2
        assert self.session.evaluate(2, 10, 600, now=last + 500) is None

    def test_bandwidth_collapse_switches_down(self):
        last = feed(self.session, 6_000_000, 6, START_MS)
        self.session.evaluate(15, 10, 600, now=last)

        last = feed(self.session, 800_000, 8, last, step_ms=700)
        selected = self.session.evaluate(3, 20, 600, now=last)

        assert selected < 2
        assert self.session.selector.last_switch_direction == "down"

    def test_manual_level_pins_selection(self):
        assert self.session.set_manual_level(0)
        last = feed(self.session, 6_000_000, 6, START_MS)

        assert self.session.evaluate(15, 10, 600, now=last) is None
        assert self.session.current_level == 0
        assert not self.session.set_manual_level(9)
        assert self.session.current_level == 0

    def test_back_to_auto_resumes_from_pinned_level(self):
        self.session.set_manual_level(1)
        self.clock.now = START_MS + 1000

        assert self.session.set_manual_level(-1)

        assert self.session.is_auto
        assert self.session.selector.current_level == 1
        assert self.session.selector.last_switch_time == START_MS + 1000

    def test_seek_resets_estimator_and_selector(self):
        last = feed(self.session, 6_000_000, 6, START_MS)
        self.session.evaluate(15, 10, 600, now=last)

        self.session.on_seek()

        assert self.session.estimator.get_effective_bandwidth() == 0.0
        assert self.session.selector.current_level == -1
        assert self.session.levels, "Catalog survives a seek"

    def test_resets_keep_session_history(self):
        last = feed(self.session, 6_000_000, 6, START_MS)
        self.session.evaluate(15, 10, 600, now=last)

        self.session.on_seek()
        self.session.on_error(RuntimeError("network error"), now=last + 100)

        assert self.session.monitor.quality_switches == 1
        assert self.session.monitor.error_count == 1

    def test_manual_toggle_keeps_bandwidth_estimate(self):
        last = feed(self.session, 6_000_000, 6, START_MS)
        before = self.session.estimator.get_effective_bandwidth()

        self.session.set_manual_level(1, now=last)
        self.session.set_manual_level(-1, now=last + 100)

        assert self.session.estimator.get_effective_bandwidth() == before
        assert self.session.selector.current_level == 1

    def test_error_is_recorded_and_state_reset(self):
        feed(self.session, 6_000_000, 6, START_MS)

        self.session.on_error(RuntimeError("network error"))

        assert self.session.monitor.error_count == 1
        assert self.session.estimator.samples == ()

    def test_unmeasurable_download_is_ignored(self):
        self.session.on_segment_loaded(300_000, 0, START_MS + 500)

        assert self.session.estimator.samples == ()
        assert self.session.monitor.get_average_bandwidth() == 0.0

    def test_no_catalog_skips_evaluation(self):
        session = AbrSession(config=AbrConfig(), clock=self.clock)
        feed(session, 6_000_000, 6, START_MS)

        assert session.evaluate(15, 10, 600, now=START_MS + 5000) is None

    def test_debug_info(self):
        last = feed(self.session, 6_000_000, 6, START_MS)
        self.session.evaluate(15, 10, 600, now=last)

        info = self.session.get_debug_info()

        assert info["session_id"] == "test"
        assert info["mode"] == "auto"
        assert info["selector"]["current_level"] == 2
        assert info["estimator"]["samples"] == 6
        assert info["monitor"]["quality"]["recent_switches"] == ["auto -> 720p"]
