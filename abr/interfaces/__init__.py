"""Internal interfaces for ABR engine components.

Abstract Base Classes (ABCs) defining contracts for bandwidth estimation,
quality selection and playback monitoring.
"""

from abr.interfaces.estimator import IBandwidthEstimator
from abr.interfaces.selector import IQualitySelector
from abr.interfaces.monitoring import IPlaybackMonitor

__all__ = [
    "IBandwidthEstimator",
    "IQualitySelector",
    "IPlaybackMonitor",
]
