"""Target object model.

A target object is one independently transitionable data segment, for
example one monthly partition of a fact table. It is identified by
``owner.name:subobject``; ``owner.name`` is its namespace.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from lifecycle_spine.core.timestamps import days_between, from_iso8601, to_iso8601

NO_COMPRESSION = "NONE"


def make_target_id(owner: str, name: str, subobject: str) -> str:
    return f"{owner}.{name}:{subobject}"


def split_target_id(target_id: str) -> tuple[str, str, str]:
    """Inverse of :func:`make_target_id`.

    Raises:
        ValueError: If the id is not ``owner.name:subobject``
    """
    namespace, sep, subobject = target_id.partition(":")
    owner, dot, name = namespace.partition(".")
    if not sep or not dot or not owner or not name or not subobject:
        raise ValueError(f"Malformed target id {target_id!r}; expected 'owner.name:subobject'")
    return owner, name, subobject


@dataclass(frozen=True)
class TargetObject:
    """Current state of one data segment.

    Example:
        >>> t = TargetObject(owner="dw", name="sales", subobject="P2024_01", tier="hot", size_mb=500)
        >>> t.target_id
        'dw.sales:P2024_01'
    """

    owner: str
    name: str
    subobject: str
    tier: str
    size_mb: float = 0.0
    boundary: datetime | None = None
    compression_profile: str = NO_COMPRESSION
    read_only: bool = False
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def target_id(self) -> str:
        return make_target_id(self.owner, self.name, self.subobject)

    @property
    def namespace(self) -> str:
        return f"{self.owner}.{self.name}"

    def age_days(self, now: datetime) -> int | None:
        """Days since the creation boundary, or None when it is unknown."""
        return days_between(self.boundary, now)

    def with_changes(self, **changes: Any) -> TargetObject:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "target_id": self.target_id,
            "owner": self.owner,
            "name": self.name,
            "subobject": self.subobject,
            "tier": self.tier,
            "size_mb": self.size_mb,
            "boundary": to_iso8601(self.boundary),
            "compression_profile": self.compression_profile,
            "read_only": self.read_only,
            "tags": list(self.tags),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> TargetObject:
        return cls(
            owner=row["owner"],
            name=row["name"],
            subobject=row["subobject"],
            tier=row["tier"],
            size_mb=float(row["size_mb"] or 0.0),
            boundary=from_iso8601(row["boundary"]),
            compression_profile=row["compression_profile"] or NO_COMPRESSION,
            read_only=bool(row["read_only"]),
            tags=tuple(json.loads(row["tags_json"] or "[]")),
        )


__all__ = ["NO_COMPRESSION", "TargetObject", "make_target_id", "split_target_id"]
