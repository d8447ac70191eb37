"""Dual-EWMA bandwidth estimation over a sliding sample window.

Converts per-download (bytes, duration) observations into a conservative
throughput figure. The fast EWMA dominates when throughput falls and the slow
EWMA dominates when it rises, so the estimate never overshoots recent reality.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from abr.config import AbrConfig
from abr.exceptions import ConfigurationError
from abr.interfaces.estimator import IBandwidthEstimator
from abr.timing import now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sample:
    """Throughput observation for one completed download.

    Attributes:
        bandwidth: Throughput in bits/sec
        timestamp: Completion time in milliseconds
    """

    bandwidth: float
    timestamp: int


class BandwidthEstimator(IBandwidthEstimator):
    """Sliding-window, dual-EWMA throughput estimator."""

    # Variability above which the safety factor is shrunk further
    VARIABILITY_THRESHOLD = 0.2
    # Cap on the extra reduction applied for jittery links
    MAX_VARIABILITY_PENALTY = 0.5

    def __init__(
        self,
        window_size_ms: int = 3000,
        min_samples: int = 3,
        ewma_fast_alpha: float = 0.3,
        ewma_slow_alpha: float = 0.1,
        safety_factor: float = 0.7,
    ):
        """Initialize bandwidth estimator.

        Args:
            window_size_ms: Samples older than this (relative to the newest)
                are pruned
            min_samples: Samples required before an estimate is reported
            ewma_fast_alpha: Weight of new samples in the fast EWMA
            ewma_slow_alpha: Weight of new samples in the slow EWMA
            safety_factor: Multiplier applied to the lower EWMA (0, 1]

        Raises:
            ConfigurationError: If parameters are out of range
        """
        if window_size_ms <= 0:
            raise ConfigurationError(f"window_size_ms must be > 0, got {window_size_ms}")
        if min_samples < 1:
            raise ConfigurationError(f"min_samples must be >= 1, got {min_samples}")
        if not 0.0 < ewma_slow_alpha < ewma_fast_alpha <= 1.0:
            raise ConfigurationError(
                f"Require 0 < slow alpha < fast alpha <= 1, got "
                f"fast={ewma_fast_alpha}, slow={ewma_slow_alpha}"
            )
        if not 0.0 < safety_factor <= 1.0:
            raise ConfigurationError(f"safety_factor must be in (0, 1], got {safety_factor}")

        self.window_size_ms = window_size_ms
        self.min_samples = min_samples
        self.ewma_fast_alpha = ewma_fast_alpha
        self.ewma_slow_alpha = ewma_slow_alpha
        self.safety_factor = safety_factor

        self._samples: deque[Sample] = deque()
        self._ewma_fast = 0.0
        self._ewma_slow = 0.0
        self._last_sample_time = 0

    @classmethod
    def from_config(cls, config: AbrConfig) -> "BandwidthEstimator":
        """Create estimator from configuration."""
        return cls(
            window_size_ms=config.window_size_ms,
            min_samples=config.min_samples,
            ewma_fast_alpha=config.ewma_fast_alpha,
            ewma_slow_alpha=config.ewma_slow_alpha,
            safety_factor=config.safety_factor,
        )

    @property
    def samples(self) -> tuple[Sample, ...]:
        """Samples currently inside the window, oldest first."""
        return tuple(self._samples)

    @property
    def ewma_fast(self) -> float:
        return self._ewma_fast

    @property
    def ewma_slow(self) -> float:
        return self._ewma_slow

    @property
    def last_sample_time(self) -> int:
        return self._last_sample_time

    def add_sample(
        self, downloaded_bytes: int, duration_ms: float, timestamp: Optional[int] = None
    ) -> float:
        """Record a completed download and update both EWMAs.

        Args:
            downloaded_bytes: Payload size in bytes
            duration_ms: Download duration in milliseconds
            timestamp: Completion time in milliseconds (defaults to now)

        Returns:
            Current estimate in bits/sec (0 = insufficient data)
        """
        if timestamp is None:
            timestamp = now_ms()

        bandwidth_bps = self.measure_throughput(downloaded_bytes, duration_ms)
        if bandwidth_bps is None:
            logger.debug(
                f"Dropping unmeasurable sample: bytes={downloaded_bytes}, "
                f"duration_ms={duration_ms}"
            )
            return self.get_current_estimate()

        self._samples.append(Sample(bandwidth=bandwidth_bps, timestamp=timestamp))
        self._prune(timestamp)

        if self._ewma_fast == 0:
            # First sample seeds both averages
            self._ewma_fast = self._ewma_slow = bandwidth_bps
        else:
            self._ewma_fast = self._ewma(bandwidth_bps, self._ewma_fast, self.ewma_fast_alpha)
            self._ewma_slow = self._ewma(bandwidth_bps, self._ewma_slow, self.ewma_slow_alpha)

        self._last_sample_time = timestamp
        return self.get_current_estimate()

    @staticmethod
    def measure_throughput(downloaded_bytes: Any, duration_ms: Any) -> Optional[float]:
        """Bits/sec for one download, or None if it cannot be measured."""
        try:
            size = float(downloaded_bytes)
            duration = float(duration_ms)
        except (TypeError, ValueError):
            return None

        if not (math.isfinite(size) and math.isfinite(duration)):
            return None
        if duration <= 0 or size < 0:
            return None

        return (size * 8) / (duration / 1000.0)

    @staticmethod
    def _ewma(new_value: float, old_value: float, alpha: float) -> float:
        return alpha * new_value + (1 - alpha) * old_value

    def _prune(self, current_time: int) -> None:
        window_start = current_time - self.window_size_ms
        while self._samples and self._samples[0].timestamp < window_start:
            self._samples.popleft()

    def get_current_estimate(self) -> float:
        """Get the safety-adjusted dual-EWMA estimate.

        Returns:
            min(ewma_fast, ewma_slow) * safety_factor, or 0 when fewer than
            min_samples samples are in the window
        """
        if len(self._samples) < self.min_samples:
            return 0.0

        return min(self._ewma_fast, self._ewma_slow) * self.safety_factor

    def get_std_dev(self) -> float:
        """Sample standard deviation (n-1) of throughputs in the window."""
        if len(self._samples) < 2:
            return 0.0
        values = np.array([s.bandwidth for s in self._samples], dtype=np.float64)
        return float(np.std(values, ddof=1))

    def get_variability(self) -> float:
        """Standard deviation relative to the current estimate (0 if unknown)."""
        estimate = self.get_current_estimate()
        if estimate <= 0:
            return 0.0
        return self.get_std_dev() / estimate

    def get_effective_bandwidth(self) -> float:
        """Get the variability-adjusted bandwidth used for quality decisions.

        Jittery links (variability > 0.2) get the safety factor shrunk by up
        to a further 50%.

        Returns:
            Bits/sec, never above get_current_estimate()
        """
        estimate = self.get_current_estimate()
        if estimate <= 0:
            return 0.0

        variability = self.get_std_dev() / estimate

        dynamic_safety_factor = self.safety_factor
        if variability > self.VARIABILITY_THRESHOLD:
            dynamic_safety_factor *= 1 - min(variability, self.MAX_VARIABILITY_PENALTY)

        return estimate * dynamic_safety_factor

    def get_stats(self) -> dict[str, Any]:
        """Get estimator state snapshot.

        Returns:
            Dictionary with sample count, EWMAs, estimate, effective
            bandwidth, std-dev and variability
        """
        return {
            "samples": len(self._samples),
            "ewma_fast_bps": self._ewma_fast,
            "ewma_slow_bps": self._ewma_slow,
            "estimate_bps": self.get_current_estimate(),
            "effective_bps": self.get_effective_bandwidth(),
            "std_dev_bps": self.get_std_dev(),
            "variability": self.get_variability(),
            "last_sample_time": self._last_sample_time,
        }

    def reset(self) -> None:
        """Clear all samples and return both EWMAs to the uninitialized state."""
        self._samples.clear()
        self._ewma_fast = 0.0
        self._ewma_slow = 0.0
        self._last_sample_time = 0
        logger.debug("Bandwidth estimator reset")

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"BandwidthEstimator(samples={len(self._samples)}, "
            f"estimate={self.get_current_estimate():.0f}bps)"
        )
