"""Integration test replaying bandwidth traces through an ABR session.

Validates that decisions stay inside the catalog, that switches respect the
minimum switch interval, and that the session reacts to a bandwidth drop.
"""

import pytest

from abr.config import AbrConfig
from scripts.replay_trace import BandwidthTrace, TraceReplay


class TestTraceReplay:
    def test_step_trace_runs_to_completion(self):
        trace = BandwidthTrace.synthetic("step", 120.0)
        replay = TraceReplay(trace, media_duration_s=120.0, segment_duration_s=4.0)

        result = replay.run()

        assert len(result.rows) == 30
        assert all(-1 <= row["level"] <= 2 for row in result.rows)
        assert result.stall_time_s >= 0.0
        assert result.switches >= 1, "Expected at least one switch on a 12 Mbps link"

    def test_switches_respect_minimum_interval(self):
        config = AbrConfig()
        trace = BandwidthTrace.synthetic("flap", 300.0)
        replay = TraceReplay(trace, media_duration_s=300.0, config=config)

        replay.run()

        timestamps = [event.timestamp for event in replay.session.selector.switch_history]
        gaps = [b - a for a, b in zip(timestamps, timestamps[1:])]
        assert all(gap >= config.min_switch_interval_ms for gap in gaps), (
            f"Switches closer than {config.min_switch_interval_ms}ms: {gaps}"
        )

    def test_trace_lookup(self):
        trace = BandwidthTrace([(0.0, 1_000_000), (10.0, 5_000_000)])

        assert trace.bandwidth_at(-1.0) == 1_000_000
        assert trace.bandwidth_at(9.9) == 1_000_000
        assert trace.bandwidth_at(10.0) == 5_000_000

    def test_csv_trace(self, tmp_path):
        path = tmp_path / "trace.csv"
        path.write_text("time_s,bandwidth_kbps\n0,2000\n5,6000\n")

        trace = BandwidthTrace.from_csv(str(path))

        assert trace.bandwidth_at(6.0) == pytest.approx(6_000_000)

    def test_unknown_synthetic_trace(self):
        with pytest.raises(ValueError):
            BandwidthTrace.synthetic("sawtooth", 60.0)

    def test_outage_rows_stall_until_link_returns(self, tmp_path):
        path = tmp_path / "outage.csv"
        path.write_text("time_s,bandwidth_kbps\n0,5000\n10,0\n20,5000\n")
        trace = BandwidthTrace.from_csv(str(path))
        replay = TraceReplay(trace, media_duration_s=60.0)

        result = replay.run()

        assert len(result.rows) == 15
        assert all(row["effective_mbps"] >= 0.0 for row in result.rows)
        assert result.rows[-1]["t_s"] > 20.0

    def test_transfer_time_skips_outage(self):
        trace = BandwidthTrace([(0.0, 5_000_000), (10.0, 0.0), (20.0, 5_000_000)])

        # 1s before the outage, then 1s after it ends
        assert trace.transfer_time(10_000_000, 9.0) == pytest.approx(12.0)
        assert trace.transfer_time(5_000_000, 0.0) == pytest.approx(1.0)

    def test_trailing_outage_uses_minimum_rate(self):
        trace = BandwidthTrace([(0.0, 0.0)])

        assert trace.transfer_time(8_000, 0.0) == pytest.approx(8.0)

    def test_malformed_first_level_uses_catalog_indices(self):
        levels = [{"bitrate": None}, {"bitrate": 1_000_000}, {"bitrate": 3_000_000}]
        trace = BandwidthTrace.synthetic("step", 120.0)
        replay = TraceReplay(trace, levels=levels, media_duration_s=120.0)

        result = replay.run()

        assert len(result.rows) == 30
        assert {row["level"] for row in result.rows} <= {-1, 1, 2}
        assert result.switches >= 1

    def test_catalog_without_valid_levels_rejected(self):
        trace = BandwidthTrace.synthetic("step", 60.0)

        with pytest.raises(ValueError):
            TraceReplay(trace, levels=[{"bitrate": "fast"}])
