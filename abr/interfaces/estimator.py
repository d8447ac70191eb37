"""Bandwidth estimation interface definitions."""

from abc import ABC, abstractmethod
from typing import Any, Optional


class IBandwidthEstimator(ABC):
    """Turns per-download throughput samples into a conservative estimate."""

    @abstractmethod
    def add_sample(
        self, downloaded_bytes: int, duration_ms: float, timestamp: Optional[int] = None
    ) -> float:
        """Record a completed download.

        Args:
            downloaded_bytes: Payload size in bytes
            duration_ms: Download duration in milliseconds (must be > 0)
            timestamp: Completion time in milliseconds (defaults to now)

        Returns:
            Updated estimate in bits/sec (0 = insufficient data)

        Samples with non-positive duration are dropped without touching state.
        """
        pass

    @abstractmethod
    def get_current_estimate(self) -> float:
        """Get the safety-adjusted dual-EWMA estimate.

        Returns:
            min(ewma_fast, ewma_slow) * safety_factor, or 0 during warm-up
        """
        pass

    @abstractmethod
    def get_effective_bandwidth(self) -> float:
        """Get the variability-adjusted bandwidth used for decisions.

        Returns:
            Bits/sec, always <= get_current_estimate()
        """
        pass

    @abstractmethod
    def get_stats(self) -> dict[str, Any]:
        """Get a read-only snapshot of estimator state."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Clear all samples and both EWMAs."""
        pass
