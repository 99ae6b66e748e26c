"""Target inventory files.

Discovery normally lives outside this package; operators and tests seed the
catalog from a YAML list instead::

    - owner: dw
      name: sales
      subobject: P2024_01
      tier: hot
      size_mb: 500
      boundary: 2024-02-01T00:00:00Z
      tags: [finance]
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from lifecycle_spine.core.errors import PolicyFileError
from lifecycle_spine.core.timestamps import ensure_utc
from lifecycle_spine.targets.models import NO_COMPRESSION, TargetObject


class TargetSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    owner: str = Field(min_length=1)
    name: str = Field(min_length=1)
    subobject: str = Field(min_length=1)
    tier: str = Field(min_length=1)
    size_mb: float = Field(default=0.0, ge=0)
    boundary: datetime | None = None
    compression_profile: str = NO_COMPRESSION
    read_only: bool = False
    tags: list[str] = Field(default_factory=list)

    def to_target(self) -> TargetObject:
        return TargetObject(
            owner=self.owner,
            name=self.name,
            subobject=self.subobject,
            tier=self.tier,
            size_mb=self.size_mb,
            boundary=ensure_utc(self.boundary) if self.boundary else None,
            compression_profile=self.compression_profile.upper(),
            read_only=self.read_only,
            tags=tuple(self.tags),
        )


def load_targets_file(path: str | Path) -> list[TargetObject]:
    """Read a YAML list of targets.

    Raises:
        PolicyFileError: Unreadable file, invalid YAML or a malformed entry
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise PolicyFileError(f"Cannot read target file {path}: {e}", cause=e) from e

    if not isinstance(data, list):
        raise PolicyFileError(f"Target file {path} must contain a list of targets")

    targets = []
    for index, item in enumerate(data):
        try:
            targets.append(TargetSpec.model_validate(item).to_target())
        except PydanticValidationError as e:
            raise PolicyFileError(f"Target {index} in {path} is invalid: {e}", cause=e) from e
    return targets


__all__ = ["TargetSpec", "load_targets_file"]
