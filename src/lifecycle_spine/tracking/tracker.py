"""
Access/temperature tracker.

Ingests read/write recency signals into one :class:`AccessRecord` per target
and classifies targets as HOT, WARM or COLD.

Architecture:
    ::

        AccessSignalSource.collect(targets) ─┐
        explicit signals ────────────────────┤
                                             ▼
                                   refresh(scope) ── per-field MAX merge ──► lc_access
                                             │
                                             └── classify() every record in scope

    classify(target):
        1. band by last-write recency
        2. band by last-read recency; when hotter, raise result one band
        3. no write signal: read band alone
        4. no access signal: band by target age
        5. nothing known: COLD

Examples:
    >>> tracker = AccessTracker(conn, catalog, settings)
    >>> tracker.refresh(signals=[AccessSignal("dw.sales:P2024_01", last_read_at=now, read_count=12)])
    1
    >>> tracker.classify(catalog.require("dw.sales:P2024_01"))
    <Temperature.HOT: 'HOT'>

Guardrails:
    ❌ DON'T: Overwrite counters or timestamps with the latest signal
    ✅ DO: Keep the maximum observed value per field so replays never regress

Tags:
    tracking, temperature, access-signals, idempotent, lifecycle-spine
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime

from lifecycle_spine.core.logging import get_logger
from lifecycle_spine.core.protocols import Connection
from lifecycle_spine.core.repository import BaseRepository
from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.core.timestamps import days_between, ensure_utc, to_iso8601, utc_now
from lifecycle_spine.policy.selectors import compile_selector
from lifecycle_spine.targets.catalog import TargetCatalog
from lifecycle_spine.targets.models import TargetObject
from lifecycle_spine.tracking.models import (
    BUILTIN_PROFILES,
    AccessRecord,
    AccessSignal,
    AccessSignalSource,
    Temperature,
    ThresholdProfile,
)

logger = get_logger(__name__)


def profile_from_settings(settings: LifecycleSettings) -> ThresholdProfile:
    return ThresholdProfile(
        "GLOBAL",
        settings.hot_threshold_days,
        settings.warm_threshold_days,
        settings.cold_threshold_days,
    )


def _latest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(ensure_utc(a), ensure_utc(b))


class AccessTracker(BaseRepository):
    """Merges access signals and derives temperatures."""

    def __init__(
        self,
        conn: Connection,
        catalog: TargetCatalog,
        settings: LifecycleSettings,
        source: AccessSignalSource | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(conn)
        self.catalog = catalog
        self.default_profile = profile_from_settings(settings)
        self.source = source
        self._clock = clock

    def resolve_profile(self, name: str | None) -> ThresholdProfile:
        """Named built-in profile, or the global thresholds when ``name`` is None."""
        if name is None:
            return self.default_profile
        return BUILTIN_PROFILES[name]

    # -- Refresh -----------------------------------------------------------

    def refresh(
        self,
        scope: str | None = None,
        signals: Iterable[AccessSignal] | None = None,
        source: AccessSignalSource | None = None,
    ) -> int:
        """Merge signals for targets in ``scope`` and recompute their temperature.

        Args:
            scope: Selector expression limiting the targets; None for all
            signals: Explicit observations (e.g. pushed events)
            source: Collector to poll; defaults to the tracker's own source

        Returns:
            Number of access records (re)classified
        """
        selector = compile_selector(scope) if scope else None
        targets = {t.target_id: t for t in self.catalog.list(selector=selector)}

        observed: list[AccessSignal] = list(signals or [])
        source = source or self.source
        if source is not None:
            observed.extend(source.collect(list(targets.values())))

        now = self._clock()
        merged = 0
        with self.transaction():
            for signal in observed:
                if signal.target_id not in targets:
                    continue
                self._merge(signal, now)
                merged += 1
            for target in targets.values():
                self._store_temperature(target, now)

        logger.info("tracker.refreshed", scope=scope or "*", targets=len(targets), signals=merged)
        return len(targets)

    def _merge(self, signal: AccessSignal, now: datetime) -> None:
        current = self.get(signal.target_id)
        if current is None:
            last_read, last_write = signal.last_read_at, signal.last_write_at
            reads, writes = signal.read_count, signal.write_count
        else:
            last_read = _latest(current.last_read_at, signal.last_read_at)
            last_write = _latest(current.last_write_at, signal.last_write_at)
            reads = max(current.read_count, signal.read_count)
            writes = max(current.write_count, signal.write_count)

        self.execute(
            """
            INSERT INTO lc_access
                (target_id, last_read_at, last_write_at, read_count, write_count, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(target_id) DO UPDATE SET
                last_read_at = excluded.last_read_at,
                last_write_at = excluded.last_write_at,
                read_count = excluded.read_count,
                write_count = excluded.write_count,
                updated_at = excluded.updated_at
            """,
            (signal.target_id, to_iso8601(last_read), to_iso8601(last_write), reads, writes, to_iso8601(now)),
        )

    def _store_temperature(self, target: TargetObject, now: datetime) -> None:
        record = self.get(target.target_id)
        temperature = self.classify(target, record=record, now=now)
        if record is None:
            self.execute(
                "INSERT INTO lc_access (target_id, temperature, updated_at) VALUES (?, ?, ?)",
                (target.target_id, temperature.value, to_iso8601(now)),
            )
        elif record.temperature is not temperature:
            self.execute(
                "UPDATE lc_access SET temperature = ?, updated_at = ? WHERE target_id = ?",
                (temperature.value, to_iso8601(now), target.target_id),
            )

    # -- Classification ----------------------------------------------------

    def classify(
        self,
        target: TargetObject,
        profile: ThresholdProfile | None = None,
        *,
        record: AccessRecord | None = None,
        now: datetime | None = None,
    ) -> Temperature:
        """HOT/WARM/COLD for ``target`` under ``profile`` (global thresholds by default)."""
        profile = profile or self.default_profile
        now = now or self._clock()
        if record is None:
            record = self.get(target.target_id)

        write_days = days_between(record.last_write_at, now) if record else None
        read_days = days_between(record.last_read_at, now) if record else None

        if write_days is not None:
            band = profile.band(write_days)
            if read_days is not None and profile.band(read_days).is_hotter_than(band):
                band = band.warmer()
            return band
        if read_days is not None:
            return profile.band(read_days)

        age = target.age_days(now)
        if age is not None:
            return profile.band(age)
        return Temperature.COLD

    # -- Queries -----------------------------------------------------------

    def get(self, target_id: str) -> AccessRecord | None:
        row = self.query_one("SELECT * FROM lc_access WHERE target_id = ?", (target_id,))
        return AccessRecord.from_row(row) if row else None

    def records(self, scope: str | None = None) -> list[AccessRecord]:
        """Access records for targets matching ``scope``."""
        rows = self.query("SELECT * FROM lc_access ORDER BY target_id")
        records = [AccessRecord.from_row(r) for r in rows]
        if scope is None:
            return records
        selector = compile_selector(scope)
        in_scope = {t.target_id for t in self.catalog.list(selector=selector)}
        return [r for r in records if r.target_id in in_scope]


__all__ = ["AccessTracker", "profile_from_settings"]
