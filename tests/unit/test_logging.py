"""Tests for the structured JSON logger."""

import io
import json

import pytest

from jilterconf.utils.logging import REDACTED, JsonLogger, get_logger


def _lines(stream: io.StringIO):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_entries_carry_canonical_fields():
    stream = io.StringIO()
    JsonLogger(stream=stream, component="jilterconf.test").info("configuration loaded", path="/tmp/x")
    (entry,) = _lines(stream)
    assert entry["lvl"] == "INFO"
    assert entry["msg"] == "configuration loaded"
    assert entry["component"] == "jilterconf.test"
    assert entry["path"] == "/tmp/x"
    assert "ts" in entry


def test_entries_below_threshold_are_dropped():
    stream = io.StringIO()
    logger = JsonLogger(stream=stream, level="WARN")
    logger.debug("hidden")
    logger.info("hidden")
    logger.warning("shown")
    logger.error("shown too")
    assert [entry["lvl"] for entry in _lines(stream)] == ["WARN", "ERROR"]


def test_sensitive_keys_are_redacted_recursively():
    stream = io.StringIO()
    JsonLogger(stream=stream).info("snapshot", addresses=["info"], detail={"email_full_to": "a@b", "count": 2})
    (entry,) = _lines(stream)
    assert entry["addresses"] == REDACTED
    assert entry["detail"] == {"email_full_to": REDACTED, "count": 2}


@pytest.mark.parametrize("value, expected", [("debug", "DEBUG"), ("warning", "WARN"), ("bogus", "INFO")])
def test_level_threshold_from_environment(monkeypatch: pytest.MonkeyPatch, value, expected):
    monkeypatch.setenv("JILTERCONF_LOG_LEVEL", value)
    assert get_logger("jilterconf.test").level == expected
