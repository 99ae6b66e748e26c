"""Access signals and HOT/WARM/COLD classification."""

from lifecycle_spine.tracking.models import (
    BUILTIN_PROFILES,
    AccessRecord,
    AccessSignal,
    AccessSignalSource,
    Temperature,
    ThresholdProfile,
)
from lifecycle_spine.tracking.tracker import AccessTracker

__all__ = [
    "BUILTIN_PROFILES",
    "AccessRecord",
    "AccessSignal",
    "AccessSignalSource",
    "AccessTracker",
    "Temperature",
    "ThresholdProfile",
]
