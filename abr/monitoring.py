"""Playback quality-of-experience monitoring.

Tracks stalls, play time, pauses, seeks, quality switches and errors for a
playback session, and gates how often the ABR logic is consulted.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Any, Optional

import numpy as np

from abr.config import AbrConfig
from abr.interfaces.monitoring import IPlaybackMonitor
from abr.timing import now_ms

logger = logging.getLogger(__name__)


class ThroughputHistogram:
    """Tracks raw throughput samples with percentile calculations."""

    def __init__(self, max_samples: int = 1000):
        """Initialize throughput histogram.

        Args:
            max_samples: Maximum samples to retain (circular buffer)
        """
        self.samples: deque[float] = deque(maxlen=max_samples)
        self.max_samples = max_samples

    def record(self, bandwidth_bps: float) -> None:
        self.samples.append(bandwidth_bps)

    def get_stats(self) -> dict[str, float | int]:
        """Get throughput statistics.

        Returns:
            Dictionary with avg, p5, p50, p95, samples count
        """
        if not self.samples:
            return {"avg": 0.0, "p5": 0.0, "p50": 0.0, "p95": 0.0, "samples": 0}

        arr = np.array(list(self.samples))
        return {
            "avg": float(np.mean(arr)),
            "p5": float(np.percentile(arr, 5)),
            "p50": float(np.percentile(arr, 50)),
            "p95": float(np.percentile(arr, 95)),
            "samples": len(self.samples),
        }

    def clear(self) -> None:
        self.samples.clear()


class PlaybackMonitor(IPlaybackMonitor):
    """Collects playback QoE counters for one session."""

    # Entries kept in switch and error histories
    HISTORY_SIZE = 50
    # Entries shown in the formatted view
    RECENT_ENTRIES = 3

    def __init__(
        self,
        moving_average_period: int = 3,
        quality_check_interval_ms: int = 1000,
        clock=now_ms,
    ) -> None:
        """Initialize playback monitor.

        Args:
            moving_average_period: Samples in the raw bandwidth moving average
            quality_check_interval_ms: Minimum time between quality checks
            clock: Millisecond clock used when no explicit time is passed
        """
        self.moving_average_period = moving_average_period
        self.quality_check_interval_ms = quality_check_interval_ms
        self._clock = clock
        self.throughput = ThroughputHistogram()
        self.reset()

    @classmethod
    def from_config(cls, config: AbrConfig, clock=now_ms) -> "PlaybackMonitor":
        """Create monitor from configuration."""
        return cls(
            moving_average_period=config.moving_average_period,
            quality_check_interval_ms=config.quality_check_interval_ms,
            clock=clock,
        )

    def reset(self) -> None:
        """Clear all counters and restart the quality-check interval."""
        self.bandwidth_samples: deque[float] = deque(maxlen=self.moving_average_period)
        self.current_bandwidth = 0.0
        self.average_bandwidth = 0.0
        self.throughput.clear()

        self.buffering_count = 0
        self.buffering_total_ms = 0
        self._buffering_since: Optional[int] = None

        self.playback_start: Optional[int] = None
        self.total_play_time_ms = 0
        self.pause_count = 0

        self.seek_count = 0
        self.seek_time_ms = 0
        self._seeking_since: Optional[int] = None

        self.quality_switches = 0
        self.current_quality: Any = None
        self.switch_history: deque[dict[str, Any]] = deque(maxlen=self.HISTORY_SIZE)

        self.error_count = 0
        self.last_error: Optional[BaseException] = None
        self.error_history: deque[dict[str, Any]] = deque(maxlen=self.HISTORY_SIZE)

        self.last_quality_check = self._clock()

    # Bandwidth

    def add_bandwidth_sample(self, bandwidth_bps: float) -> float:
        """Record a raw throughput sample.

        Args:
            bandwidth_bps: Measured throughput in bits/sec

        Returns:
            Moving average over the last moving_average_period samples
        """
        self.bandwidth_samples.append(bandwidth_bps)
        self.throughput.record(bandwidth_bps)
        self.current_bandwidth = bandwidth_bps
        self.average_bandwidth = self.get_average_bandwidth()
        return self.average_bandwidth

    def get_average_bandwidth(self) -> float:
        if not self.bandwidth_samples:
            return 0.0
        return sum(self.bandwidth_samples) / len(self.bandwidth_samples)

    # Buffering

    def start_buffering(self, now: Optional[int] = None) -> None:
        """Mark the start of a stall (no-op if already stalled)."""
        if self._buffering_since is None:
            self._buffering_since = self._clock() if now is None else now
            self.buffering_count += 1
            logger.warning(f"Playback stalled (total: {self.buffering_count})")

    def end_buffering(self, now: Optional[int] = None) -> None:
        """Mark the end of a stall (no-op if not stalled)."""
        if self._buffering_since is not None:
            now = self._clock() if now is None else now
            self.buffering_total_ms += max(0, now - self._buffering_since)
            self._buffering_since = None

    @property
    def is_buffering(self) -> bool:
        return self._buffering_since is not None

    # Playback

    def start_playback(self, now: Optional[int] = None) -> None:
        if self.playback_start is None:
            self.playback_start = self._clock() if now is None else now

    def pause_playback(self, now: Optional[int] = None) -> None:
        self.pause_count += 1
        self.update_total_play_time(now)

    def update_total_play_time(self, now: Optional[int] = None) -> None:
        if self.playback_start is not None:
            now = self._clock() if now is None else now
            self.total_play_time_ms = max(0, now - self.playback_start)

    # Seeking

    def start_seeking(self, now: Optional[int] = None) -> None:
        """Mark the start of a seek (no-op if already seeking)."""
        if self._seeking_since is None:
            self._seeking_since = self._clock() if now is None else now
            self.seek_count += 1

    def end_seeking(self, now: Optional[int] = None) -> None:
        """Mark the end of a seek (no-op if not seeking)."""
        if self._seeking_since is not None:
            now = self._clock() if now is None else now
            self.seek_time_ms += max(0, now - self._seeking_since)
            self._seeking_since = None

    # Quality and errors

    def record_quality_switch(
        self, old_quality: Any, new_quality: Any, now: Optional[int] = None
    ) -> None:
        """Record a rendition change.

        Args:
            old_quality: Previous level label or index
            new_quality: New level label or index
            now: Time of the change in milliseconds (defaults to now)
        """
        now = self._clock() if now is None else now
        self.quality_switches += 1
        self.current_quality = new_quality
        self.switch_history.append(
            {"timestamp": now, "from": old_quality, "to": new_quality}
        )

    def record_error(self, error: BaseException, now: Optional[int] = None) -> None:
        """Record a playback error."""
        now = self._clock() if now is None else now
        self.error_count += 1
        self.last_error = error
        self.error_history.append({"timestamp": now, "error": error})
        logger.warning(f"Playback error recorded (total: {self.error_count}): {error}")

    def should_check_quality(self, now: Optional[int] = None) -> bool:
        """Check whether the quality-check interval has elapsed.

        Returns:
            True at most once per quality_check_interval_ms
        """
        now = self._clock() if now is None else now
        if now - self.last_quality_check >= self.quality_check_interval_ms:
            self.last_quality_check = now
            return True
        return False

    # Reporting

    def get_formatted_metrics(self) -> dict[str, Any]:
        """Get human-readable metrics for display.

        Returns:
            Nested dict of formatted strings and counters
        """
        recent_switches = list(self.switch_history)[-self.RECENT_ENTRIES:]
        recent_errors = list(self.error_history)[-self.RECENT_ENTRIES:]
        return {
            "bandwidth": {
                "current": f"{self.current_bandwidth / 1_000_000:.2f} Mbps",
                "average": f"{self.average_bandwidth / 1_000_000:.2f} Mbps",
            },
            "buffering": {
                "count": self.buffering_count,
                "total_duration": f"{self.buffering_total_ms / 1000:.1f}s",
            },
            "playback": {
                "duration": f"{self.total_play_time_ms / 1000:.0f}s",
                "pause_count": self.pause_count,
                "seek_count": self.seek_count,
                "seek_time": f"{self.seek_time_ms / 1000:.1f}s",
            },
            "quality": {
                "switches": self.quality_switches,
                "current": self.current_quality,
                "recent_switches": [f"{s['from']} -> {s['to']}" for s in recent_switches],
            },
            "errors": {
                "count": self.error_count,
                "recent": [str(e["error"]) for e in recent_errors],
            },
        }

    def get_snapshot(self) -> dict[str, Any]:
        """Get current metrics snapshot with raw numeric values."""
        return {
            "bandwidth_bps": {
                "current": self.current_bandwidth,
                "average": self.average_bandwidth,
                **self.throughput.get_stats(),
            },
            "buffering_count": self.buffering_count,
            "buffering_total_ms": self.buffering_total_ms,
            "play_time_ms": self.total_play_time_ms,
            "pause_count": self.pause_count,
            "seek_count": self.seek_count,
            "seek_time_ms": self.seek_time_ms,
            "quality_switches": self.quality_switches,
            "current_quality": self.current_quality,
            "error_count": self.error_count,
            "timestamp": datetime.now().isoformat(),
        }
