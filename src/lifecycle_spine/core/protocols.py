"""
Canonical protocol definitions for lifecycle-spine.

Protocols define contracts without inheritance: any object with the right
shape works, so the stores run against plain ``sqlite3`` connections or
test doubles.

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        └── Connection     sync DB protocol (sqlite3.Connection satisfies it)

    Collaborator protocols live next to their consumers:
        execution/driver.py     StorageDriver
        execution/gate.py       ScheduleGate
        tracking/models.py      AccessSignalSource

Guardrails:
    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts

Tags:
    protocol, connection, lifecycle-spine, contracts
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """Minimal synchronous connection interface used by the stores."""

    def execute(self, sql: str, parameters: Any = ..., /) -> Any:
        """Execute a single SQL statement and return a cursor."""
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...


__all__ = ["Connection"]
