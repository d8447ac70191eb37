"""Playback monitoring interface definitions."""

from abc import ABC, abstractmethod
from typing import Any, Optional


class IPlaybackMonitor(ABC):
    """Tracks session-level quality-of-experience counters."""

    @abstractmethod
    def add_bandwidth_sample(self, bandwidth_bps: float) -> float:
        """Record a raw throughput sample.

        Returns:
            Moving average over the last few samples
        """
        pass

    @abstractmethod
    def start_buffering(self, now: Optional[int] = None) -> None:
        """Mark the start of a stall (no-op if already stalled)."""
        pass

    @abstractmethod
    def end_buffering(self, now: Optional[int] = None) -> None:
        """Mark the end of a stall (no-op if not stalled)."""
        pass

    @abstractmethod
    def record_quality_switch(
        self, old_quality: Any, new_quality: Any, now: Optional[int] = None
    ) -> None:
        """Record a rendition change."""
        pass

    @abstractmethod
    def record_error(self, error: BaseException, now: Optional[int] = None) -> None:
        """Record a playback error."""
        pass

    @abstractmethod
    def should_check_quality(self, now: Optional[int] = None) -> bool:
        """Check whether the quality-check interval has elapsed.

        Returns:
            True at most once per interval
        """
        pass

    @abstractmethod
    def get_snapshot(self) -> dict[str, Any]:
        """Get current metrics snapshot with raw numeric values."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Clear all counters."""
        pass
