"""
CLI layer for lifecycle-spine.

Provides a Typer application whose commands delegate to
:class:`lifecycle_spine.service.LifecycleService`. All business logic lives
in the service and the engines behind it; this package handles argument
parsing, exit codes and table formatting only.

Entry point::

    lifecycle-spine --help
"""

from lifecycle_spine.cli.app import app

__all__ = ["app"]
