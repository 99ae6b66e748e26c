"""Tests for ``lifecycle_spine.core.logging``."""

from __future__ import annotations

import io
import logging

import pytest
import structlog

from lifecycle_spine.core.logging import configure_logging


class _Stream(io.StringIO):
    def __init__(self, tty: bool) -> None:
        super().__init__()
        self._tty = tty

    def isatty(self) -> bool:
        return self._tty


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    yield
    root.handlers[:] = handlers
    structlog.reset_defaults()


def _renderer():
    return structlog.get_config()["processors"][-1]


class TestRendererSelection:
    def test_json_when_stderr_is_redirected(self, monkeypatch):
        monkeypatch.setattr("sys.stdout", _Stream(tty=True))
        monkeypatch.setattr("sys.stderr", _Stream(tty=False))
        configure_logging()
        assert isinstance(_renderer(), structlog.processors.JSONRenderer)

    def test_console_when_stderr_is_a_terminal(self, monkeypatch):
        monkeypatch.setattr("sys.stdout", _Stream(tty=False))
        monkeypatch.setattr("sys.stderr", _Stream(tty=True))
        configure_logging()
        assert isinstance(_renderer(), structlog.dev.ConsoleRenderer)

    def test_explicit_format_wins(self, monkeypatch):
        monkeypatch.setattr("sys.stderr", _Stream(tty=True))
        configure_logging(json_format=True)
        assert isinstance(_renderer(), structlog.processors.JSONRenderer)
