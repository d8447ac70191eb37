"""Per-playback ABR session.

Owns one estimator, one selector and one monitor, and wires download
completions and periodic quality checks through them.
"""

import logging
import uuid
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from abr.bandwidth_estimator import BandwidthEstimator
from abr.config import AbrConfig, get_config
from abr.levels import Level, sanitize_levels
from abr.monitoring import PlaybackMonitor
from abr.quality_selector import AUTO_LEVEL, PlaybackMetrics, QualitySelector
from abr.timing import now_ms

logger = logging.getLogger(__name__)


class AbrSession:
    """Adaptive bitrate state for a single playback session."""

    def __init__(
        self,
        config: Optional[AbrConfig] = None,
        clock: Callable[[], int] = now_ms,
        session_id: Optional[str] = None,
    ) -> None:
        """Initialize session components.

        Args:
            config: Configuration (defaults to the global configuration)
            clock: Millisecond clock shared by all components
            session_id: Identifier used in log records
        """
        self.config = config or get_config()
        self.session_id = session_id or uuid.uuid4().hex[:8]
        self._clock = clock

        self.estimator = BandwidthEstimator.from_config(self.config)
        self.selector = QualitySelector.from_config(self.config, clock=clock)
        self.monitor = PlaybackMonitor.from_config(self.config, clock=clock)

        self.levels: list[Level] = []
        self.manual_level = AUTO_LEVEL

        logger.info(
            f"ABR session {self.session_id} created",
            extra={"session_id": self.session_id},
        )

    @property
    def is_auto(self) -> bool:
        return self.manual_level == AUTO_LEVEL

    @property
    def current_level(self) -> int:
        """Level currently requested (manual pick or selector decision)."""
        return self.selector.current_level if self.is_auto else self.manual_level

    def set_levels(self, levels: Iterable[Union[Level, Mapping[str, Any]]]) -> list[Level]:
        """Replace the level catalog.

        Args:
            levels: Level objects or dicts, ascending by bitrate

        Returns:
            The validated catalog
        """
        self.levels = sanitize_levels(levels)
        logger.info(
            f"Session {self.session_id} catalog: "
            f"{[level.label for level in self.levels]}",
            extra={"session_id": self.session_id},
        )
        return self.levels

    def on_segment_loaded(
        self, downloaded_bytes: int, duration_ms: float, timestamp: Optional[int] = None
    ) -> float:
        """Feed a completed segment download into the estimator.

        Args:
            downloaded_bytes: Segment size in bytes
            duration_ms: Download duration in milliseconds
            timestamp: Completion time in milliseconds (defaults to now)

        Returns:
            Effective bandwidth in bits/sec (0 = insufficient data)
        """
        if timestamp is None:
            timestamp = self._clock()

        self.estimator.add_sample(downloaded_bytes, duration_ms, timestamp)
        bandwidth_bps = BandwidthEstimator.measure_throughput(downloaded_bytes, duration_ms)
        if bandwidth_bps is not None:
            self.monitor.add_bandwidth_sample(bandwidth_bps)

        return self.estimator.get_effective_bandwidth()

    def evaluate(
        self,
        buffer_length: float,
        current_time: float,
        duration: float,
        now: Optional[int] = None,
    ) -> Optional[int]:
        """Run a periodic quality check.

        Skipped in manual mode and when the check interval has not elapsed.
        Keeps the current level while the estimator is still warming up.

        Args:
            buffer_length: Seconds buffered ahead of the playhead
            current_time: Playback position in seconds
            duration: Total media duration in seconds
            now: Check time in milliseconds (defaults to now)

        Returns:
            Selected level index, or None if the check was skipped
        """
        if not self.is_auto or not self.levels:
            return None

        now = self._clock() if now is None else now
        if not self.monitor.should_check_quality(now):
            return None

        effective_bandwidth = self.estimator.get_effective_bandwidth()
        if effective_bandwidth <= 0:
            # Unknown bandwidth, not zero bandwidth
            return self.selector.current_level

        metrics = PlaybackMetrics(
            effective_bandwidth=effective_bandwidth,
            buffer_length=buffer_length,
            current_time=current_time,
            duration=duration,
        )

        previous = self.selector.current_level
        selected = self.selector.select_quality(metrics, self.levels, now=now)
        if selected != previous:
            self.monitor.record_quality_switch(
                self._label(previous), self._label(selected), now=now
            )
        return selected

    def set_manual_level(self, level_index: int, now: Optional[int] = None) -> bool:
        """Pin a level, or return to automatic selection with -1.

        Args:
            level_index: Catalog index, or -1 for auto
            now: Time of the change in milliseconds (defaults to now)

        Returns:
            True if the mode or level changed
        """
        if level_index == self.manual_level:
            return False

        if level_index == AUTO_LEVEL:
            previous = self.manual_level
            self.manual_level = AUTO_LEVEL
            # Resume automatic selection from the level that is playing
            self.selector.reset()
            self.selector.force_level(previous, now=now)
            self.monitor.record_quality_switch(self._label(previous), "auto", now=now)
            logger.info(
                f"Session {self.session_id} back to auto quality",
                extra={"session_id": self.session_id},
            )
            return True

        if not any(level.index == level_index for level in self.levels):
            logger.warning(
                f"Session {self.session_id} ignoring invalid level index {level_index}",
                extra={"session_id": self.session_id},
            )
            return False

        previous_label = "auto" if self.is_auto else self._label(self.manual_level)
        self.manual_level = level_index
        self.monitor.record_quality_switch(
            previous_label, self._label(level_index), now=now
        )
        return True

    def on_seek(self) -> None:
        """Drop accumulated ABR state after a seek."""
        self.estimator.reset()
        self.selector.reset()
        logger.debug(f"Session {self.session_id} reset after seek")

    def on_error(self, error: BaseException, now: Optional[int] = None) -> None:
        """Record a playback error and drop accumulated ABR state."""
        self.monitor.record_error(error, now=now)
        self.estimator.reset()
        self.selector.reset()

    def reset(self) -> None:
        """Reset every component, keeping the catalog and manual pick."""
        self.estimator.reset()
        self.selector.reset()
        self.monitor.reset()

    def get_debug_info(self) -> dict[str, Any]:
        """Get combined estimator, selector and monitor state for display."""
        return {
            "session_id": self.session_id,
            "mode": "auto" if self.is_auto else "manual",
            "selector": self.selector.get_debug_info(),
            "estimator": self.estimator.get_stats(),
            "monitor": self.monitor.get_formatted_metrics(),
        }

    def _label(self, level_index: int) -> str:
        for level in self.levels:
            if level.index == level_index:
                return level.label
        return "auto" if level_index == AUTO_LEVEL else str(level_index)
