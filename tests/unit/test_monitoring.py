"""Unit tests for playback QoE monitoring."""

import pytest

from abr.monitoring import PlaybackMonitor


class TestPlaybackMonitor:
    def setup_method(self):
        self.now = 0
        self.monitor = PlaybackMonitor(clock=lambda: self.now)

    def test_moving_average_window(self):
        for bps in (1_000_000, 2_000_000, 3_000_000, 6_000_000):
            average = self.monitor.add_bandwidth_sample(bps)

        assert average == pytest.approx(11_000_000 / 3)
        assert self.monitor.current_bandwidth == 6_000_000

    def test_buffering_events(self):
        self.monitor.start_buffering(now=1000)
        self.monitor.start_buffering(now=1500)  # already stalled
        self.monitor.end_buffering(now=2500)
        self.monitor.end_buffering(now=9000)  # not stalled

        assert self.monitor.buffering_count == 1
        assert self.monitor.buffering_total_ms == 1500
        assert not self.monitor.is_buffering

    def test_seek_and_pause_tracking(self):
        self.monitor.start_playback(now=0)
        self.monitor.start_seeking(now=1000)
        self.monitor.end_seeking(now=1400)
        self.monitor.pause_playback(now=5000)

        assert self.monitor.seek_count == 1
        assert self.monitor.seek_time_ms == 400
        assert self.monitor.pause_count == 1
        assert self.monitor.total_play_time_ms == 5000

    def test_should_check_quality_interval(self):
        assert not self.monitor.should_check_quality(now=500)
        assert self.monitor.should_check_quality(now=1000)
        assert not self.monitor.should_check_quality(now=1999)
        assert self.monitor.should_check_quality(now=2000)

    def test_formatted_metrics(self):
        self.monitor.add_bandwidth_sample(2_000_000)
        self.monitor.start_buffering(now=0)
        self.monitor.end_buffering(now=1500)
        for old, new in (("480p", "720p"), ("720p", "1080p"), ("1080p", "720p"), ("720p", "480p")):
            self.monitor.record_quality_switch(old, new)
        self.monitor.record_error(RuntimeError("fragment timeout"))

        formatted = self.monitor.get_formatted_metrics()

        assert formatted["bandwidth"]["current"] == "2.00 Mbps"
        assert formatted["buffering"]["total_duration"] == "1.5s"
        assert formatted["quality"]["switches"] == 4
        assert formatted["quality"]["current"] == "480p"
        assert formatted["quality"]["recent_switches"] == [
            "720p -> 1080p", "1080p -> 720p", "720p -> 480p"
        ]
        assert formatted["errors"]["recent"] == ["fragment timeout"]

    def test_explicit_timestamps_override_clock(self):
        self.now = 50_000

        self.monitor.record_quality_switch("480p", "720p", now=12_000)
        self.monitor.record_quality_switch("720p", "1080p")
        self.monitor.record_error(RuntimeError("fragment timeout"), now=13_500)

        assert [entry["timestamp"] for entry in self.monitor.switch_history] == [12_000, 50_000]
        assert self.monitor.error_history[-1]["timestamp"] == 13_500

    def test_snapshot_percentiles(self):
        for bps in range(1, 101):
            self.monitor.add_bandwidth_sample(bps * 100_000)

        snapshot = self.monitor.get_snapshot()

        assert snapshot["bandwidth_bps"]["samples"] == 100
        assert snapshot["bandwidth_bps"]["p50"] == pytest.approx(5_050_000)

    def test_reset(self):
        self.monitor.add_bandwidth_sample(1_000_000)
        self.monitor.record_error(ValueError("bad"))
        self.now = 7000

        self.monitor.reset()

        assert self.monitor.error_count == 0
        assert self.monitor.get_average_bandwidth() == 0.0
        assert self.monitor.get_snapshot()["bandwidth_bps"]["samples"] == 0
        assert self.monitor.last_quality_check == 7000
