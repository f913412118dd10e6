"""
Tests for the structlog configuration.

Tests verify:
- JSON output uses ECS field names and carries the service name
- Events below the configured level are dropped
- log_format settings map onto the json flag
"""

import json

import pytest
from structlog.testing import capture_logs

from breakwater.core.logging import configure_logging, get_logger, resolve_json_format


def _json_lines(out: str) -> list[dict]:
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]


class TestConfigureLogging:
    def test_json_output(self, capsys):
        configure_logging(level="INFO", json_format=True, service="bw-test")
        get_logger("breakwater.test").info("connection_retry", attempt=2)

        (record,) = _json_lines(capsys.readouterr().out)
        assert record["event"] == "connection_retry"
        assert record["attempt"] == 2
        assert record["log.level"] == "info"
        assert record["service.name"] == "bw-test"
        assert record["logger_name"] == "breakwater.test"
        assert "@timestamp" in record

    def test_level_filtering(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        log = get_logger("breakwater.test")
        log.info("dropped")
        log.warning("connection_attempt_failed", attempt=1)

        events = [r["event"] for r in _json_lines(capsys.readouterr().out)]
        assert events == ["connection_attempt_failed"]

    def test_console_output(self, capsys):
        configure_logging(level="INFO", json_format=False, add_timestamp=False)
        get_logger("breakwater.test").info("database_connected")
        assert "database_connected" in capsys.readouterr().out


class TestGetLogger:
    def test_named_logger_carries_name(self):
        log = get_logger("breakwater.execution.gate")
        with capture_logs() as logs:
            log.info("gate_short_circuit", gate="database")
        (entry,) = logs
        assert entry["event"] == "gate_short_circuit"
        assert entry["gate"] == "database"
        assert entry["logger_name"] == "breakwater.execution.gate"

    def test_unnamed_logger(self):
        with capture_logs() as logs:
            get_logger().warning("connection_attempt_failed")
        (entry,) = logs
        assert entry["event"] == "connection_attempt_failed"
        assert "logger_name" not in entry

    def test_package_modules_import(self):
        import importlib

        for module in (
            "breakwater.core.connection",
            "breakwater.execution.gate",
            "breakwater.execution.bootstrap",
            "breakwater.ops.transaction",
            "breakwater.cli.app",
        ):
            assert importlib.import_module(module).logger is not None


class TestResolveJsonFormat:
    @pytest.mark.parametrize(
        "log_format, expected",
        [("auto", None), ("json", True), ("console", False)],
    )
    def test_mapping(self, log_format, expected):
        assert resolve_json_format(log_format) is expected

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown log format"):
            resolve_json_format("xml")
