#!/usr/bin/env python3
"""
Bandwidth Trace Replay

Replays a throughput trace through an ABR session with a simple buffer model
and prints the decisions as a table.

Usage:
    python scripts/replay_trace.py --trace traces/lte.csv
    python scripts/replay_trace.py --synthetic step --duration 300

Trace CSV format: one "time_s,bandwidth_kbps" row per line (header optional).
"""

import argparse
import csv
import sys
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from tabulate import tabulate

from abr.config import AbrConfig
from abr.levels import Level
from abr.logging_config import setup_logging
from abr.session import AbrSession

# 480p / 720p / 1080p ladder
DEFAULT_LEVELS = [
    {"bitrate": 2_000_000, "width": 854, "height": 480},
    {"bitrate": 4_000_000, "width": 1280, "height": 720},
    {"bitrate": 8_000_000, "width": 1920, "height": 1080},
]

# Simulated wall clock starts here so the first switch is not rate limited
START_MS = 1_000_000

# A trailing outage never ends, so downloads finish at this rate instead
MIN_BANDWIDTH_BPS = 1_000.0


class BandwidthTrace:
    """Piecewise-constant bandwidth over time."""

    def __init__(self, points: List[Tuple[float, float]]):
        """
        Initialize trace.

        Args:
            points: (time_s, bandwidth_bps) pairs
        """
        if not points:
            raise ValueError("Trace has no points")
        points = sorted(points)
        self.times = [t for t, _ in points]
        self.bandwidths = [bw for _, bw in points]

    def bandwidth_at(self, time_s: float) -> float:
        """Bandwidth in bits/sec at time_s (first point before the trace starts)."""
        i = bisect_right(self.times, time_s) - 1
        return self.bandwidths[max(i, 0)]

    def transfer_time(self, bits: float, start_s: float) -> float:
        """Seconds needed to move bits starting at start_s.

        Integrates over the trace, so outages (zero bandwidth) stall the
        transfer until the next trace point.
        """
        t = start_s
        remaining = bits
        i = bisect_right(self.times, t) - 1
        while i + 1 < len(self.times):
            end = self.times[i + 1]
            bandwidth = self.bandwidths[max(i, 0)]
            if bandwidth > 0:
                if t + remaining / bandwidth <= end:
                    return t + remaining / bandwidth - start_s
                remaining -= bandwidth * (end - t)
            t = end
            i += 1

        bandwidth = max(self.bandwidths[max(i, 0)], MIN_BANDWIDTH_BPS)
        return t + remaining / bandwidth - start_s

    @classmethod
    def from_csv(cls, path: str) -> "BandwidthTrace":
        """Load a "time_s,bandwidth_kbps" CSV file."""
        points = []
        with open(path, newline="") as f:
            for row in csv.reader(f):
                if len(row) < 2:
                    continue
                try:
                    points.append((float(row[0]), float(row[1]) * 1000.0))
                except ValueError:
                    continue  # header
        return cls(points)

    @classmethod
    def synthetic(cls, kind: str, duration_s: float) -> "BandwidthTrace":
        """Built-in traces: "step" (high, drop, recover) or "flap" (alternating)."""
        if kind == "step":
            third = duration_s / 3
            return cls([(0.0, 12_000_000), (third, 3_000_000), (2 * third, 12_000_000)])
        if kind == "flap":
            return cls(
                [(float(t), 12_000_000 if (t // 8) % 2 == 0 else 2_500_000)
                 for t in range(0, int(duration_s) + 1, 8)]
            )
        raise ValueError(f"Unknown synthetic trace: {kind}")


@dataclass
class ReplayResult:
    """Outcome of one replay run."""

    rows: List[Dict] = field(default_factory=list)
    stall_time_s: float = 0.0
    switches: int = 0


class TraceReplay:
    """Drives an AbrSession segment by segment against a bandwidth trace."""

    def __init__(
        self,
        trace: BandwidthTrace,
        levels: Optional[List[Dict]] = None,
        segment_duration_s: float = 4.0,
        media_duration_s: float = 300.0,
        max_buffer_s: float = 30.0,
        progress_chunks: int = 4,
        config: Optional[AbrConfig] = None,
    ):
        self.trace = trace
        self.levels = levels or DEFAULT_LEVELS
        self.segment_duration_s = segment_duration_s
        self.media_duration_s = media_duration_s
        self.max_buffer_s = max_buffer_s
        self.progress_chunks = progress_chunks

        self.now_ms = START_MS
        self.session = AbrSession(config=config or AbrConfig(), clock=lambda: self.now_ms)
        if not self.session.set_levels(self.levels):
            raise ValueError("Level catalog has no valid entries")

    def run(self) -> ReplayResult:
        """Download every segment and return per-segment decisions."""
        result = ReplayResult()
        buffer_s = 0.0
        downloaded_s = 0.0
        monitor = self.session.monitor
        monitor.start_playback(self.now_ms)

        while downloaded_s < self.media_duration_s:
            bitrate = self._playing_level().bitrate
            elapsed_s = (self.now_ms - START_MS) / 1000.0
            bandwidth = self.trace.bandwidth_at(elapsed_s)

            segment_bytes = int(bitrate * self.segment_duration_s / 8)
            download_ms = max(
                1, int(self.trace.transfer_time(segment_bytes * 8, elapsed_s) * 1000)
            )

            # Playback drains the buffer while the segment downloads
            self.now_ms += download_ms
            buffer_s -= download_ms / 1000.0
            if buffer_s < 0:
                result.stall_time_s += -buffer_s
                monitor.start_buffering(self.now_ms + int(buffer_s * 1000))
                monitor.end_buffering(self.now_ms)
                buffer_s = 0.0
            buffer_s += self.segment_duration_s
            downloaded_s += self.segment_duration_s

            # Report the download as progress chunks, as a player does
            chunk_ms = download_ms / self.progress_chunks
            chunk_bytes = segment_bytes // self.progress_chunks
            for i in range(self.progress_chunks, 0, -1):
                effective = self.session.on_segment_loaded(
                    chunk_bytes, chunk_ms, self.now_ms - int(chunk_ms * (i - 1))
                )
            position_s = max(0.0, downloaded_s - buffer_s)
            previous = self.session.current_level
            selected = self.session.evaluate(
                buffer_s, position_s, self.media_duration_s, now=self.now_ms
            )
            if selected is not None and selected != previous:
                result.switches += 1

            result.rows.append({
                "t_s": round((self.now_ms - START_MS) / 1000.0, 1),
                "trace_mbps": round(bandwidth / 1e6, 2),
                "effective_mbps": round(effective / 1e6, 2),
                "level": self.session.current_level,
                "buffer_s": round(buffer_s, 1),
                "trend": self.session.selector.analyze_bandwidth_trend(),
            })

            # Idle while the buffer is full
            if buffer_s > self.max_buffer_s:
                self.now_ms += int((buffer_s - self.max_buffer_s) * 1000)
                buffer_s = self.max_buffer_s

        monitor.update_total_play_time(self.now_ms)
        return result

    def _playing_level(self) -> Level:
        """Level being downloaded; the lowest valid level before the first decision."""
        current = self.session.current_level
        for level in self.session.levels:
            if level.index == current:
                return level
        return min(self.session.levels, key=lambda level: level.bitrate)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Replay a bandwidth trace through the ABR engine')
    source = parser.add_mutually_exclusive_group()
    source.add_argument('--trace', help='CSV trace file (time_s,bandwidth_kbps)')
    source.add_argument(
        '--synthetic',
        choices=['step', 'flap'],
        default='step',
        help='Built-in trace to use when no file is given (default: step)'
    )
    parser.add_argument('--duration', type=float, default=300.0, help='Media duration in seconds')
    parser.add_argument('--segment', type=float, default=4.0, help='Segment duration in seconds')
    parser.add_argument('--verbose', action='store_true', help='Log every ABR decision at debug level')

    args = parser.parse_args()

    if args.verbose:
        setup_logging("DEBUG")

    try:
        if args.trace:
            trace = BandwidthTrace.from_csv(args.trace)
        else:
            trace = BandwidthTrace.synthetic(args.synthetic, args.duration)
    except (OSError, ValueError) as e:
        print(f"Error loading trace: {e}", file=sys.stderr)
        sys.exit(1)

    replay = TraceReplay(trace, segment_duration_s=args.segment, media_duration_s=args.duration)
    result = replay.run()

    print(tabulate(result.rows, headers="keys", tablefmt="simple"))
    print("")
    print(f"Switches: {result.switches}  Stall time: {result.stall_time_s:.1f}s")
    debug = replay.session.get_debug_info()
    print(f"Final level: {debug['selector']['current_level']}  "
          f"Trend: {debug['selector']['bandwidth_trend']}")


if __name__ == "__main__":
    main()
