"""ABR engine - adaptive bitrate decisions for segmented media streaming.

This package contains the bandwidth estimator, the quality selector, the
playback monitor and the per-session wiring between them.
"""

from abr.bandwidth_estimator import BandwidthEstimator, Sample
from abr.config import AbrConfig, get_config
from abr.levels import Level, sanitize_levels
from abr.monitoring import PlaybackMonitor
from abr.quality_selector import AUTO_LEVEL, PlaybackMetrics, QualitySelector, SwitchEvent
from abr.session import AbrSession

__version__ = "1.0.0"

__all__ = [
    # Core components
    "BandwidthEstimator",
    "QualitySelector",
    "PlaybackMonitor",
    "AbrSession",
    # Data structures
    "Sample",
    "Level",
    "PlaybackMetrics",
    "SwitchEvent",
    "AUTO_LEVEL",
    "sanitize_levels",
    # Configuration
    "AbrConfig",
    "get_config",
]
