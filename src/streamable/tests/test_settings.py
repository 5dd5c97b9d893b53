"""Tests for environment configuration and structured logging."""

from __future__ import annotations

import asyncio
import io
import logging

import orjson
import pytest
from pydantic import ValidationError

from streamable import Stream, StreamableSettings, clear_settings_cache, configure_logging, get_logger, get_settings
from streamable.foundation.config import SchedulingSettings
from streamable.runtime.observability import ConsoleRenderer, NoOpRenderer, log_context


# ─────────────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────────────


class TestSettings:

    def test_defaults(self) -> None:
        settings = get_settings()
        assert settings.debug is False
        assert settings.logging.level == "INFO"
        assert settings.scheduling.start_delay == 0
        assert settings.scheduling.defers_with_timer is False
        assert settings.scheduling.warn_deprecated_inputs is True

    def test_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STREAMABLE_LOG_LEVEL", "debug")
        monkeypatch.setenv("STREAMABLE_SCHED_START_DELAY", "0.25")
        monkeypatch.setenv("STREAMABLE_SCHED_COLLECT_WARN_THRESHOLD", "10")
        clear_settings_cache()
        settings = get_settings()
        assert settings.logging.level == "DEBUG"
        assert settings.scheduling.start_delay == 0.25
        assert settings.scheduling.defers_with_timer is True
        assert settings.scheduling.collect_warn_threshold == 10

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SchedulingSettings(start_delay=-1)

    def test_unknown_log_format_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STREAMABLE_LOG_FORMAT", "xml")
        with pytest.raises(ValidationError):
            StreamableSettings()

    @pytest.mark.asyncio
    async def test_start_delay_uses_timer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STREAMABLE_SCHED_START_DELAY", "0.02")
        clear_settings_cache()
        stream = Stream([1])
        await asyncio.sleep(0)
        assert stream.state.value == "pending"
        assert await stream.then() == [1]


# ─────────────────────────────────────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────────────────────────────────────


def json_lines(buffer: io.StringIO) -> list[dict[str, object]]:
    return [orjson.loads(line) for line in buffer.getvalue().splitlines() if line]


class TestLogging:

    def test_configure_renderers(self) -> None:
        assert isinstance(configure_logging("none"), NoOpRenderer)
        assert isinstance(configure_logging("console", output=io.StringIO()), ConsoleRenderer)
        with pytest.raises(ValueError):
            configure_logging("xml", "info")

    def test_configure_defaults_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STREAMABLE_LOG_FORMAT", "none")
        monkeypatch.setenv("STREAMABLE_LOG_LEVEL", "ERROR")
        clear_settings_cache()
        assert isinstance(configure_logging(), NoOpRenderer)
        assert get_logger("x").level == logging.ERROR

    def test_json_output_with_context(self) -> None:
        out = io.StringIO()
        configure_logging("json", "info", output=out)
        log = get_logger("test").bind_stream("stream-1", producer="sequence")
        with log_context(request_id="r-1"):
            log.info("started", items=3)
        log.debug("hidden")
        [entry] = json_lines(out)
        assert entry["event"] == "started"
        assert entry["level"] == "info"
        assert entry["stream"] == "stream-1"
        assert entry["request_id"] == "r-1"
        assert entry["items"] == 3

    def test_console_output(self) -> None:
        out = io.StringIO()
        configure_logging("console", "debug", output=out, colors=False)
        get_logger("test").warning("slow stream", stream="stream-2")
        line = out.getvalue()
        assert "[warning]" in line
        assert "slow stream" in line
        assert 'stream=' in line

    @pytest.mark.asyncio
    async def test_fault_logged_with_code(self) -> None:
        out = io.StringIO()
        configure_logging("json", "warning", output=out)
        stream = Stream(lambda c, f, e: f("nope"), name="audit")
        await stream.catch()
        entries = [e for e in json_lines(out) if e["event"] == "stream faulted"]
        assert len(entries) == 1
        assert entries[0]["stream"] == "audit"
        assert entries[0]["code"] == "EXPLICIT_FAULT"

    @pytest.mark.asyncio
    async def test_large_collect_warns_once(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STREAMABLE_SCHED_COLLECT_WARN_THRESHOLD", "2")
        clear_settings_cache()
        out = io.StringIO()
        configure_logging("json", "warning", output=out)
        assert await Stream(range(5)).then() == [0, 1, 2, 3, 4]
        warnings = [e for e in json_lines(out) if e["event"] == "then() is buffering a large stream"]
        assert len(warnings) == 1

    @pytest.mark.asyncio
    async def test_debug_mode_keeps_fault_traceback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STREAMABLE_DEBUG", "true")
        clear_settings_cache()
        out = io.StringIO()
        configure_logging("console", "warning", output=out, colors=False)

        def produce(complete, fault, emit) -> None:
            raise ValueError("bad page")

        stream = Stream(produce)
        await stream.catch()
        assert stream.fault_info.details is not None
        assert "Traceback (most recent call last)" in stream.fault_info.details
        assert "ValueError: bad page" in stream.fault_info.render()
        assert "Traceback (most recent call last)" in out.getvalue()

    @pytest.mark.asyncio
    async def test_fault_has_no_traceback_by_default(self) -> None:
        stream = Stream(lambda c, f, e: f(RuntimeError("x")))
        await stream.catch()
        assert stream.fault_info.details is None
