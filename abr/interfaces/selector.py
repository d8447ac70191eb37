"""Quality selection interface definitions."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional, Sequence

if TYPE_CHECKING:
    from abr.levels import Level
    from abr.quality_selector import PlaybackMetrics


class IQualitySelector(ABC):
    """Hysteresis state machine mapping bandwidth and buffer state to a level."""

    @abstractmethod
    def select_quality(
        self,
        metrics: "PlaybackMetrics",
        levels: Sequence[Any],
        now: Optional[int] = None,
    ) -> int:
        """Decide which level to request next.

        Args:
            metrics: Effective bandwidth, buffer length and playback position
            levels: Level catalog, ascending by bitrate
            now: Decision time in milliseconds (defaults to the selector clock)

        Returns:
            New level index, or the unchanged current level when any gate
            suppresses the switch
        """
        pass

    @abstractmethod
    def calculate_ideal_level(
        self, levels: Sequence["Level"], metrics: "PlaybackMetrics"
    ) -> int:
        """Highest level the bandwidth and buffer state can sustain.

        Returns:
            Level index, 0 when nothing qualifies
        """
        pass

    @abstractmethod
    def can_up_switch(self, metrics: "PlaybackMetrics", target: Any) -> bool:
        """Check whether an up-switch to target is safe."""
        pass

    @abstractmethod
    def should_down_switch(self, metrics: "PlaybackMetrics", target: Any) -> bool:
        """Check whether a down-switch to target is warranted."""
        pass

    @abstractmethod
    def analyze_bandwidth_trend(self) -> str:
        """Classify recent bandwidth as "increasing", "decreasing" or "stable"."""
        pass

    @abstractmethod
    def get_debug_info(self) -> dict[str, Any]:
        """Get a read-only snapshot of switching state for display."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Reset all switching state (current level becomes -1 / auto)."""
        pass
