"""Access tracking models.

Defines the data structures used by the access/temperature tracker:
- Temperature: HOT / WARM / COLD classification
- ThresholdProfile: named day-thresholds for classification
- AccessRecord: merged read/write recency for one target
- AccessSignal: one observation delivered by an access signal source
- AccessSignalSource: protocol for pluggable signal collectors
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from lifecycle_spine.core.timestamps import from_iso8601, to_iso8601

if TYPE_CHECKING:
    from lifecycle_spine.targets.models import TargetObject


class Temperature(str, Enum):
    """Access temperature of a target.

    Ordering runs hottest first; :meth:`warmer` moves one band towards HOT.
    """

    HOT = "HOT"
    WARM = "WARM"
    COLD = "COLD"

    @property
    def rank(self) -> int:
        return _RANK[self]

    def is_hotter_than(self, other: Temperature) -> bool:
        return self.rank < other.rank

    def warmer(self) -> Temperature:
        return _BANDS[max(self.rank - 1, 0)]


_BANDS = (Temperature.HOT, Temperature.WARM, Temperature.COLD)
_RANK = {band: index for index, band in enumerate(_BANDS)}


@dataclass(frozen=True)
class ThresholdProfile:
    """Day thresholds separating HOT, WARM and COLD.

    A recency below ``hot_days`` is HOT, below ``warm_days`` is WARM and
    anything older is COLD. ``cold_days`` marks the archive horizon that
    policies may key on.
    """

    name: str
    hot_days: int
    warm_days: int
    cold_days: int

    def __post_init__(self) -> None:
        if not 0 <= self.hot_days < self.warm_days < self.cold_days:
            raise ValueError(
                f"Threshold profile {self.name!r} must satisfy 0 <= hot < warm < cold "
                f"(got {self.hot_days}/{self.warm_days}/{self.cold_days})"
            )

    def band(self, days: int) -> Temperature:
        if days < self.hot_days:
            return Temperature.HOT
        if days < self.warm_days:
            return Temperature.WARM
        return Temperature.COLD


BUILTIN_PROFILES: dict[str, ThresholdProfile] = {
    profile.name: profile
    for profile in (
        ThresholdProfile("DEFAULT", 90, 365, 1095),
        ThresholdProfile("FAST_AGING", 30, 90, 180),
        ThresholdProfile("SLOW_AGING", 180, 730, 1825),
        ThresholdProfile("AGGRESSIVE_ARCHIVE", 14, 30, 90),
    )
}


@dataclass(frozen=True)
class AccessSignal:
    """One observation of access activity for a target.

    Counters are cumulative totals as seen by the source, not deltas, so that
    replaying the same signal is harmless.
    """

    target_id: str
    last_read_at: datetime | None = None
    last_write_at: datetime | None = None
    read_count: int = 0
    write_count: int = 0


@dataclass(frozen=True)
class AccessRecord:
    """Merged access state of one target."""

    target_id: str
    last_read_at: datetime | None = None
    last_write_at: datetime | None = None
    read_count: int = 0
    write_count: int = 0
    temperature: Temperature = Temperature.COLD
    updated_at: datetime | None = None

    @property
    def has_signal(self) -> bool:
        return self.last_read_at is not None or self.last_write_at is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_id": self.target_id,
            "last_read_at": to_iso8601(self.last_read_at),
            "last_write_at": to_iso8601(self.last_write_at),
            "read_count": self.read_count,
            "write_count": self.write_count,
            "temperature": self.temperature.value,
            "updated_at": to_iso8601(self.updated_at),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> AccessRecord:
        return cls(
            target_id=row["target_id"],
            last_read_at=from_iso8601(row["last_read_at"]),
            last_write_at=from_iso8601(row["last_write_at"]),
            read_count=int(row["read_count"] or 0),
            write_count=int(row["write_count"] or 0),
            temperature=Temperature(row["temperature"]),
            updated_at=from_iso8601(row["updated_at"]),
        )


@runtime_checkable
class AccessSignalSource(Protocol):
    """Collector of read/write recency for a set of targets.

    Implementations typically wrap a database's segment-level activity
    statistics or an access-log aggregation job.
    """

    def collect(self, targets: Sequence[TargetObject]) -> Iterable[AccessSignal]: ...


__all__ = [
    "BUILTIN_PROFILES",
    "AccessRecord",
    "AccessSignal",
    "AccessSignalSource",
    "Temperature",
    "ThresholdProfile",
]
