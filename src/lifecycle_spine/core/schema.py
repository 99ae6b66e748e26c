"""
Lifecycle tables.

Defines table names and DDL for the six collections the service owns:
policies (+ their audit trail), targets, access records, the action queue and
the execution log.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                  Lifecycle Schema                            │
        └─────────────────────────────────────────────────────────────┘

        lc_policies ──┬──< lc_policy_audit      (append-only)
                      │
                      └──< lc_action_queue >── lc_targets ──1:1── lc_access
                                 │
                                 └──< lc_execution_log       (append-only)

        lc_action_queue is keyed by (policy_id, target_id); entry_id is
        AUTOINCREMENT so insertion order is preserved across supersede/requeue.

Examples:
    >>> from lifecycle_spine.core.schema import create_tables
    >>> create_tables(conn)
    ['lc_policies', 'lc_policy_audit', ...]

Guardrails:
    ❌ DON'T: Add a foreign key from lc_execution_log to lc_targets
    ✅ DO: Keep the log free of FKs; dropped targets must keep their history

Tags:
    schema, ddl, sqlite, lifecycle-spine
"""

from __future__ import annotations

from typing import Any

# =============================================================================
# TABLE NAMES
# =============================================================================

LIFECYCLE_TABLES = {
    "policies": "lc_policies",
    "policy_audit": "lc_policy_audit",
    "targets": "lc_targets",
    "access": "lc_access",
    "queue": "lc_action_queue",
    "execution_log": "lc_execution_log",
}


# =============================================================================
# DDL STATEMENTS
# =============================================================================

LIFECYCLE_DDL = {
    "policies": """
        CREATE TABLE IF NOT EXISTS lc_policies (
            policy_id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            selector TEXT NOT NULL,
            category TEXT NOT NULL,
            action_type TEXT NOT NULL,

            -- Conditions (AND-combined); predicate is a JSON expression tree
            age_days INTEGER,
            age_months INTEGER,
            size_threshold_mb REAL,
            temperature TEXT,
            predicate_json TEXT,

            -- Action parameters
            compression_profile TEXT,
            destination_tier TEXT,
            parallel_degree INTEGER,
            rebuild_secondary_structures INTEGER NOT NULL DEFAULT 0,
            refresh_statistics INTEGER NOT NULL DEFAULT 0,
            custom_action TEXT,

            priority INTEGER NOT NULL DEFAULT 100,
            enabled INTEGER NOT NULL DEFAULT 1,
            threshold_profile TEXT,
            description TEXT,

            -- Audit
            created_by TEXT,
            created_at TEXT NOT NULL,
            modified_by TEXT,
            modified_at TEXT
        )
    """,
    "policy_audit": """
        CREATE TABLE IF NOT EXISTS lc_policy_audit (
            audit_id INTEGER PRIMARY KEY AUTOINCREMENT,
            policy_id INTEGER NOT NULL,
            operation TEXT NOT NULL,        -- REGISTER, UPDATE, ENABLE, DISABLE
            actor TEXT,
            recorded_at TEXT NOT NULL,
            snapshot_json TEXT NOT NULL
        )
    """,
    "targets": """
        CREATE TABLE IF NOT EXISTS lc_targets (
            target_id TEXT PRIMARY KEY,     -- owner.name:subobject
            owner TEXT NOT NULL,
            name TEXT NOT NULL,
            subobject TEXT NOT NULL,
            size_mb REAL NOT NULL DEFAULT 0,
            boundary TEXT,                  -- creation boundary (ISO 8601)
            tier TEXT NOT NULL,
            compression_profile TEXT NOT NULL DEFAULT 'NONE',
            read_only INTEGER NOT NULL DEFAULT 0,
            tags_json TEXT NOT NULL DEFAULT '[]',
            registered_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "access": """
        CREATE TABLE IF NOT EXISTS lc_access (
            target_id TEXT PRIMARY KEY,
            last_read_at TEXT,
            last_write_at TEXT,
            read_count INTEGER NOT NULL DEFAULT 0,
            write_count INTEGER NOT NULL DEFAULT 0,
            temperature TEXT NOT NULL DEFAULT 'COLD',
            updated_at TEXT NOT NULL
        )
    """,
    "queue": """
        CREATE TABLE IF NOT EXISTS lc_action_queue (
            entry_id INTEGER PRIMARY KEY AUTOINCREMENT,
            policy_id INTEGER NOT NULL,
            target_id TEXT NOT NULL,
            eligible INTEGER NOT NULL,
            reason TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'PENDING',  -- PENDING, RUNNING, DONE, FAILED
            attempt_count INTEGER NOT NULL DEFAULT 0,
            next_attempt_at TEXT,
            last_error TEXT,
            warning TEXT,
            created_at TEXT NOT NULL,
            evaluated_at TEXT NOT NULL,
            started_at TEXT,
            completed_at TEXT,
            UNIQUE (policy_id, target_id)
        )
    """,
    "execution_log": """
        CREATE TABLE IF NOT EXISTS lc_execution_log (
            log_id INTEGER PRIMARY KEY AUTOINCREMENT,
            entry_id INTEGER NOT NULL,
            policy_id INTEGER NOT NULL,
            policy_name TEXT,
            target_id TEXT NOT NULL,
            action_type TEXT NOT NULL,
            attempt INTEGER NOT NULL,
            started_at TEXT NOT NULL,
            finished_at TEXT NOT NULL,
            duration_ms INTEGER NOT NULL,
            size_before_mb REAL,
            size_after_mb REAL,
            space_saved_mb REAL,
            compression_ratio REAL,
            outcome TEXT NOT NULL,          -- SUCCESS, WARNING, TRANSIENT_FAILURE, FATAL_FAILURE
            error_class TEXT,
            error_detail TEXT,
            warnings_json TEXT NOT NULL DEFAULT '[]'
        )
    """,
}

LIFECYCLE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_lc_policies_enabled ON lc_policies(enabled, priority)",
    "CREATE INDEX IF NOT EXISTS idx_lc_targets_ns ON lc_targets(owner, name)",
    "CREATE INDEX IF NOT EXISTS idx_lc_access_temp ON lc_access(temperature)",
    "CREATE INDEX IF NOT EXISTS idx_lc_queue_status ON lc_action_queue(status, eligible)",
    "CREATE INDEX IF NOT EXISTS idx_lc_queue_target ON lc_action_queue(target_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_lc_log_entry ON lc_execution_log(entry_id)",
    "CREATE INDEX IF NOT EXISTS idx_lc_log_finished ON lc_execution_log(finished_at, outcome)",
    "CREATE INDEX IF NOT EXISTS idx_lc_audit_policy ON lc_policy_audit(policy_id)",
]


def create_tables(conn: Any) -> list[str]:
    """Create all lifecycle tables and indexes (idempotent).

    Returns:
        Names of the tables ensured.
    """
    for ddl in LIFECYCLE_DDL.values():
        conn.execute(ddl)
    for index in LIFECYCLE_INDEXES:
        conn.execute(index)
    conn.commit()
    return list(LIFECYCLE_TABLES.values())


__all__ = ["LIFECYCLE_DDL", "LIFECYCLE_INDEXES", "LIFECYCLE_TABLES", "create_tables"]
