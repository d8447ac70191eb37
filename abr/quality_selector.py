"""Hysteresis-based quality level selection.

Maps an effective bandwidth estimate plus buffer/playback state to a level
index. Switches pass through ordered gates (stability lock, rate limit,
direction-specific checks, anti-flap counter) so that noisy estimates do not
turn into quality oscillation.
"""

import logging
import math
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Callable, Literal, Mapping, Optional, Sequence, Union

from abr.config import AbrConfig
from abr.exceptions import ConfigurationError
from abr.interfaces.selector import IQualitySelector
from abr.levels import Level, is_sorted_by_bitrate, sanitize_levels
from abr.timing import now_ms

logger = logging.getLogger(__name__)

SwitchDirection = Literal["up", "down", "none"]
BandwidthTrend = Literal["increasing", "decreasing", "stable"]

AUTO_LEVEL = -1


@dataclass(frozen=True)
class PlaybackMetrics:
    """Snapshot of playback state supplied on each decision.

    Attributes:
        effective_bandwidth: Safety-adjusted throughput in bits/sec (0 = unknown)
        buffer_length: Seconds of media buffered ahead of the playhead
        current_time: Playback position in seconds
        duration: Total media duration in seconds
    """

    effective_bandwidth: float
    buffer_length: float
    current_time: float = 0.0
    duration: float = math.inf

    @property
    def remaining(self) -> float:
        """Seconds of media left to play."""
        return self.duration - self.current_time

    @classmethod
    def coerce(cls, metrics: Any) -> Optional["PlaybackMetrics"]:
        """Build metrics from a PlaybackMetrics or a dict, or None if unusable.

        Non-finite or negative bandwidth is treated as unknown (0).
        """
        if isinstance(metrics, cls):
            raw = asdict(metrics)
        elif isinstance(metrics, Mapping):
            raw = dict(metrics)
        else:
            return None

        try:
            bandwidth = float(raw.get("effective_bandwidth", 0.0))
            buffer_length = float(raw.get("buffer_length", 0.0))
            current_time = float(raw.get("current_time", 0.0))
            duration = float(raw.get("duration", math.inf))
        except (TypeError, ValueError):
            return None

        if not math.isfinite(bandwidth) or bandwidth < 0:
            bandwidth = 0.0
        if math.isnan(buffer_length) or math.isnan(current_time) or math.isnan(duration):
            return None

        return cls(
            effective_bandwidth=bandwidth,
            buffer_length=buffer_length,
            current_time=current_time,
            duration=duration,
        )


@dataclass(frozen=True)
class SwitchEvent:
    """One recorded quality switch."""

    timestamp: int
    from_level: int
    to_level: int
    direction: SwitchDirection


class QualitySelector(IQualitySelector):
    """Trend-aware quality selector with cool-down and anti-flap protection."""

    def __init__(
        self,
        min_switch_interval_ms: int = 5000,
        up_switch_threshold: float = 1.5,
        down_switch_threshold: float = 0.8,
        min_buffer_for_upswitch: float = 10.0,
        critical_buffer_level: float = 5.0,
        max_consecutive_switches: int = 2,
        stability_period_ms: int = 30000,
        trend_window_size: int = 5,
        trend_threshold: float = 0.1,
        end_of_media_guard_s: float = 30.0,
        switch_history_size: int = 10,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize quality selector.

        Args:
            min_switch_interval_ms: Minimum time between two switches
            up_switch_threshold: Bandwidth headroom multiplier for up-switches
            down_switch_threshold: Bandwidth fraction below which to switch down
            min_buffer_for_upswitch: Buffer (s) required before switching up
            critical_buffer_level: Buffer (s) below which down-switches are forced
            max_consecutive_switches: Same-direction switches that trigger a lock
            stability_period_ms: Length of the stability lock
            trend_window_size: Bandwidth samples used for trend analysis
            trend_threshold: Relative change that counts as a trend
            end_of_media_guard_s: Remaining time below which up-switches are
                limited to a single step
            switch_history_size: Switch events retained for debugging
            clock: Millisecond clock used when no explicit time is passed

        Raises:
            ConfigurationError: If parameters are inconsistent
        """
        if critical_buffer_level > min_buffer_for_upswitch:
            raise ConfigurationError(
                f"critical_buffer_level ({critical_buffer_level}) must not exceed "
                f"min_buffer_for_upswitch ({min_buffer_for_upswitch})"
            )
        if max_consecutive_switches < 1:
            raise ConfigurationError(
                f"max_consecutive_switches must be >= 1, got {max_consecutive_switches}"
            )
        if trend_window_size < 2:
            raise ConfigurationError(
                f"trend_window_size must be >= 2, got {trend_window_size}"
            )

        self.min_switch_interval_ms = min_switch_interval_ms
        self.up_switch_threshold = up_switch_threshold
        self.down_switch_threshold = down_switch_threshold
        self.min_buffer_for_upswitch = min_buffer_for_upswitch
        self.critical_buffer_level = critical_buffer_level
        self.max_consecutive_switches = max_consecutive_switches
        self.stability_period_ms = stability_period_ms
        self.trend_window_size = trend_window_size
        self.trend_threshold = trend_threshold
        self.end_of_media_guard_s = end_of_media_guard_s
        self.switch_history_size = switch_history_size
        self._clock = clock

        self.reset()

    @classmethod
    def from_config(
        cls, config: AbrConfig, clock: Callable[[], int] = now_ms
    ) -> "QualitySelector":
        """Create selector from configuration."""
        return cls(
            min_switch_interval_ms=config.min_switch_interval_ms,
            up_switch_threshold=config.up_switch_threshold,
            down_switch_threshold=config.down_switch_threshold,
            min_buffer_for_upswitch=config.min_buffer_for_upswitch,
            critical_buffer_level=config.critical_buffer_level,
            max_consecutive_switches=config.max_consecutive_switches,
            stability_period_ms=config.stability_period_ms,
            trend_window_size=config.trend_window_size,
            trend_threshold=config.trend_threshold,
            end_of_media_guard_s=config.end_of_media_guard_s,
            switch_history_size=config.switch_history_size,
            clock=clock,
        )

    def reset(self) -> None:
        """Reset all switching state; current level returns to auto (-1)."""
        self.last_switch_time = 0
        self.current_level = AUTO_LEVEL
        self.consecutive_switches = 0
        self.last_switch_direction: SwitchDirection = "none"
        self.stability_end_time = 0
        self.recent_bandwidth_trend: deque[float] = deque(maxlen=self.trend_window_size)
        self.switch_history: deque[SwitchEvent] = deque(maxlen=self.switch_history_size)

    @property
    def is_stability_locked(self) -> bool:
        return self._clock() < self.stability_end_time

    def select_quality(
        self,
        metrics: Union[PlaybackMetrics, Mapping[str, Any]],
        levels: Sequence[Union[Level, Mapping[str, Any]]],
        now: Optional[int] = None,
    ) -> int:
        """Decide which level to request next.

        Args:
            metrics: Effective bandwidth, buffer length and playback position
            levels: Level catalog, ascending by bitrate
            now: Decision time in milliseconds (defaults to the selector clock)

        Returns:
            The new level index, or the unchanged current level
        """
        if not isinstance(levels, Sequence) or isinstance(levels, (str, bytes)):
            return self.current_level
        catalog = sanitize_levels(levels)
        if not catalog:
            return self.current_level

        playback = PlaybackMetrics.coerce(metrics)
        if playback is None:
            logger.debug(f"Ignoring malformed playback metrics: {metrics!r}")
            return self.current_level

        if now is None:
            now = self._clock()

        # Cooldown gate
        if now < self.stability_end_time:
            return self.current_level

        self.recent_bandwidth_trend.append(playback.effective_bandwidth)

        # Rate gate
        if now - self.last_switch_time < self.min_switch_interval_ms:
            return self.current_level

        ideal_level = self.calculate_ideal_level(catalog, playback)
        if ideal_level is None or ideal_level == self.current_level:
            return self.current_level

        target = next((level for level in catalog if level.index == ideal_level), None)
        if target is None:
            return self.current_level

        is_up_switch = ideal_level > self.current_level

        if is_up_switch:
            if not self.can_up_switch(playback, target):
                return self.current_level
        elif not self.should_down_switch(playback, target):
            return self.current_level

        direction: SwitchDirection = "up" if is_up_switch else "down"
        if self.last_switch_direction == direction:
            self.consecutive_switches += 1
            if self.consecutive_switches >= self.max_consecutive_switches:
                self.stability_end_time = now + self.stability_period_ms
                self.consecutive_switches = 0
                logger.warning(
                    f"Too many consecutive {direction}-switches, holding level "
                    f"{self.current_level} for {self.stability_period_ms}ms"
                )
                return self.current_level
        else:
            self.consecutive_switches = 1

        self._record_switch(self.current_level, ideal_level, now)
        logger.info(
            f"Switching {direction} to level {ideal_level} ({target.label}), "
            f"bandwidth={playback.effective_bandwidth:.0f}bps "
            f"buffer={playback.buffer_length:.1f}s",
            extra={"level_index": ideal_level, "bandwidth_bps": playback.effective_bandwidth},
        )
        return ideal_level

    def calculate_ideal_level(
        self,
        levels: Sequence[Union[Level, Mapping[str, Any]]],
        metrics: Union[PlaybackMetrics, Mapping[str, Any]],
    ) -> Optional[int]:
        """Highest level the bandwidth and buffer state can sustain.

        Near the end of the media, at most a single-step up-switch is allowed.

        Args:
            levels: Level catalog, ascending by bitrate
            metrics: Playback snapshot

        Returns:
            Level index (the lowest level when nothing qualifies), or None if
            the catalog or metrics are unusable
        """
        catalog = sanitize_levels(levels)
        playback = PlaybackMetrics.coerce(metrics)
        if not catalog or playback is None:
            return None
        if not is_sorted_by_bitrate(catalog):
            logger.warning("Level catalog is not ascending by bitrate")

        budget = playback.effective_bandwidth * self.get_bandwidth_multiplier(playback)
        suitable = [level for level in catalog if level.bitrate <= budget]

        if not suitable:
            return catalog[0].index

        if playback.remaining < self.end_of_media_guard_s:
            return min(suitable[0].index, self.current_level + 1)

        return suitable[-1].index

    def get_bandwidth_multiplier(
        self, metrics: Union[PlaybackMetrics, Mapping[str, Any]]
    ) -> float:
        """Bandwidth multiplier for the current buffer state.

        Returns:
            down_switch_threshold with a critical buffer, up_switch_threshold
            with a comfortable buffer, 1.0 otherwise
        """
        playback = PlaybackMetrics.coerce(metrics)
        if playback is None:
            return 1.0

        if playback.buffer_length < self.critical_buffer_level:
            return self.down_switch_threshold
        if playback.buffer_length > self.min_buffer_for_upswitch:
            return self.up_switch_threshold
        return 1.0

    def can_up_switch(
        self, metrics: Union[PlaybackMetrics, Mapping[str, Any]], target: Any
    ) -> bool:
        """Check whether switching up to target is safe.

        Requires bandwidth headroom, a comfortable buffer and a non-decreasing
        bandwidth trend.
        """
        bitrate = _bitrate_of(target)
        playback = PlaybackMetrics.coerce(metrics)
        if bitrate is None or playback is None:
            return False

        if bitrate > playback.effective_bandwidth * self.up_switch_threshold:
            return False
        if playback.buffer_length < self.min_buffer_for_upswitch:
            return False
        if self.analyze_bandwidth_trend() == "decreasing":
            return False
        return True

    def should_down_switch(
        self, metrics: Union[PlaybackMetrics, Mapping[str, Any]], target: Any
    ) -> bool:
        """Check whether switching down to target is warranted.

        A critical buffer always warrants a down-switch.
        """
        playback = PlaybackMetrics.coerce(metrics)
        if playback is None:
            return False

        if playback.buffer_length < self.critical_buffer_level:
            return True

        bitrate = _bitrate_of(target)
        if bitrate is None:
            return False

        if bitrate > playback.effective_bandwidth * self.down_switch_threshold:
            return True
        if self.analyze_bandwidth_trend() == "decreasing":
            return True
        return False

    def analyze_bandwidth_trend(self) -> BandwidthTrend:
        """Compare the oldest and newest bandwidth in the trend window.

        Returns:
            "stable" until the window is full, otherwise the direction of a
            relative change larger than trend_threshold
        """
        if len(self.recent_bandwidth_trend) < self.trend_window_size:
            return "stable"

        first = self.recent_bandwidth_trend[0]
        last = self.recent_bandwidth_trend[-1]
        if first <= 0:
            return "increasing" if last > 0 else "stable"

        change = (last - first) / first
        if change > self.trend_threshold:
            return "increasing"
        if change < -self.trend_threshold:
            return "decreasing"
        return "stable"

    def force_level(self, level_index: int, now: Optional[int] = None) -> None:
        """Adopt a level chosen outside the selector (e.g. a manual pick).

        Recorded in the history so rate limiting applies from here on, but it
        does not count towards the anti-flap counter.
        """
        if level_index == self.current_level:
            return
        self._record_switch(self.current_level, level_index, self._clock() if now is None else now)
        self.last_switch_direction = "none"
        self.consecutive_switches = 0

    def _record_switch(self, old_level: int, new_level: int, timestamp: int) -> None:
        self.last_switch_time = timestamp
        self.current_level = new_level
        self.last_switch_direction = "up" if new_level > old_level else "down"
        self.switch_history.append(
            SwitchEvent(
                timestamp=timestamp,
                from_level=old_level,
                to_level=new_level,
                direction=self.last_switch_direction,
            )
        )

    def get_debug_info(self) -> dict[str, Any]:
        """Get switching state snapshot for display.

        Returns:
            Dictionary with current_level, consecutive_switches,
            last_switch_direction, bandwidth_trend and switch_history
        """
        return {
            "current_level": self.current_level,
            "consecutive_switches": self.consecutive_switches,
            "last_switch_direction": self.last_switch_direction,
            "bandwidth_trend": self.analyze_bandwidth_trend(),
            "switch_history": [asdict(event) for event in self.switch_history],
        }

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"QualitySelector(current_level={self.current_level}, "
            f"direction={self.last_switch_direction}, "
            f"consecutive={self.consecutive_switches})"
        )


def _bitrate_of(target: Any) -> Optional[float]:
    """Usable bitrate of a Level or level dict, or None."""
    if isinstance(target, Level):
        bitrate = target.bitrate
    elif isinstance(target, Mapping):
        bitrate = target.get("bitrate")
    else:
        return None

    if isinstance(bitrate, bool) or not isinstance(bitrate, (int, float)):
        return None
    if not math.isfinite(bitrate):
        return None
    return float(bitrate)
