"""Tests for structured logging setup."""

from __future__ import annotations

import structlog

from lemrecon.core.logging import bind_actor, renderer_for, wants_json


class TestWantsJson:
    def test_explicit_format_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        assert wants_json("text") is False
        assert wants_json("JSON") is True

    def test_from_env(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("JSON_LOGS", raising=False)
        assert wants_json() is False

        monkeypatch.setenv("JSON_LOGS", "true")
        assert wants_json() is True

        monkeypatch.delenv("JSON_LOGS")
        monkeypatch.setenv("LOG_FORMAT", "json")
        assert wants_json() is True


def test_renderer_choice():
    assert isinstance(renderer_for(True), structlog.processors.JSONRenderer)
    assert isinstance(renderer_for(False), structlog.dev.ConsoleRenderer)


def test_bind_actor_replaces_context():
    bind_actor("office", request_id="r-1")
    bind_actor("admin")
    try:
        assert structlog.contextvars.get_contextvars() == {"actor": "admin"}
    finally:
        structlog.contextvars.clear_contextvars()
