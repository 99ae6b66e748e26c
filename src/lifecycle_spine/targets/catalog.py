"""Target catalog.

Persistent inventory of target objects. Segments are registered by whatever
process creates them (partition maintenance, a catalog sync job); after that
their tier, compression profile and read-only flag change only through
:meth:`TargetCatalog.apply_transition`, called by the execution engine after
a successful action. ``remove`` is reserved for a successful DROP.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from lifecycle_spine.core.errors import TargetNotFoundError
from lifecycle_spine.core.logging import get_logger
from lifecycle_spine.core.protocols import Connection
from lifecycle_spine.core.repository import BaseRepository
from lifecycle_spine.core.timestamps import to_iso8601, utc_now
from lifecycle_spine.targets.models import TargetObject

if TYPE_CHECKING:
    from lifecycle_spine.policy.selectors import Selector

logger = get_logger(__name__)


class TargetCatalog(BaseRepository):
    """SQLite-backed store of :class:`TargetObject` rows."""

    def __init__(self, conn: Connection, clock: Callable[[], datetime] = utc_now) -> None:
        super().__init__(conn)
        self._clock = clock

    def register(self, target: TargetObject) -> TargetObject:
        """Insert a target, or refresh size/boundary/tags of an existing one.

        Tier, compression profile and read-only state of an existing target
        are left untouched.
        """
        now = to_iso8601(self._clock())
        with self.transaction():
            self.execute(
                """
                INSERT INTO lc_targets (
                    target_id, owner, name, subobject, size_mb, boundary, tier,
                    compression_profile, read_only, tags_json, registered_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(target_id) DO UPDATE SET
                    size_mb = excluded.size_mb,
                    boundary = excluded.boundary,
                    tags_json = excluded.tags_json,
                    updated_at = excluded.updated_at
                """,
                (
                    target.target_id,
                    target.owner,
                    target.name,
                    target.subobject,
                    target.size_mb,
                    to_iso8601(target.boundary),
                    target.tier,
                    target.compression_profile,
                    int(target.read_only),
                    json.dumps(sorted(target.tags)),
                    now,
                    now,
                ),
            )
        logger.debug("target.registered", target_id=target.target_id)
        return self.require(target.target_id)

    def get(self, target_id: str) -> TargetObject | None:
        row = self.query_one("SELECT * FROM lc_targets WHERE target_id = ?", (target_id,))
        return TargetObject.from_row(row) if row else None

    def require(self, target_id: str) -> TargetObject:
        target = self.get(target_id)
        if target is None:
            raise TargetNotFoundError(f"Target not found: {target_id}").with_context(target_id=target_id)
        return target

    def list(self, selector: Selector | None = None, namespace: str | None = None) -> list[TargetObject]:
        """All targets, optionally filtered by selector and/or namespace."""
        if namespace is not None:
            owner, _, name = namespace.partition(".")
            rows = self.query(
                "SELECT * FROM lc_targets WHERE owner = ? AND name = ? ORDER BY target_id",
                (owner, name),
            )
        else:
            rows = self.query("SELECT * FROM lc_targets ORDER BY target_id")
        targets = [TargetObject.from_row(r) for r in rows]
        if selector is not None:
            targets = [t for t in targets if selector.matches(t)]
        return targets

    def namespaces(self) -> set[str]:
        rows = self.query("SELECT DISTINCT owner, name FROM lc_targets")
        return {f"{r['owner']}.{r['name']}" for r in rows}

    def has_namespace(self, namespace: str) -> bool:
        owner, _, name = namespace.partition(".")
        return self.scalar(
            "SELECT COUNT(*) FROM lc_targets WHERE owner = ? AND name = ?", (owner, name)
        ) > 0

    def apply_transition(
        self,
        target_id: str,
        *,
        tier: str | None = None,
        compression_profile: str | None = None,
        read_only: bool | None = None,
        size_mb: float | None = None,
    ) -> None:
        """Record the new physical state after a successful action.

        Runs inside the caller's transaction; no commit.
        """
        changes: dict[str, object] = {}
        if tier is not None:
            changes["tier"] = tier
        if compression_profile is not None:
            changes["compression_profile"] = compression_profile
        if read_only is not None:
            changes["read_only"] = int(read_only)
        if size_mb is not None:
            changes["size_mb"] = size_mb
        if not changes:
            return
        changes["updated_at"] = to_iso8601(self._clock())
        assignments = ", ".join(f"{column} = ?" for column in changes)
        self.execute(
            f"UPDATE lc_targets SET {assignments} WHERE target_id = ?",  # noqa: S608
            (*changes.values(), target_id),
        )

    def remove(self, target_id: str) -> None:
        """Delete a dropped target and its access record (caller commits)."""
        self.execute("DELETE FROM lc_targets WHERE target_id = ?", (target_id,))
        self.execute("DELETE FROM lc_access WHERE target_id = ?", (target_id,))


__all__ = ["TargetCatalog"]
