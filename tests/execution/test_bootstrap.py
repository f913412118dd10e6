"""Tests for the bootstrap orchestrator.

The orchestrator and the gate share a fake clock whose ``sleep`` advances
time instantly, so the 4s poll interval and 32s deadline run in
microseconds.
"""

from concurrent.futures import InvalidStateError
from unittest.mock import patch

import pytest
from structlog.testing import capture_logs

from breakwater.core.errors import DeadlineExceededError, ServiceUnavailableError
from breakwater.execution.bootstrap import BootstrapOrchestrator, RetrySession, bootstrap
from breakwater.execution.gate import FailureGate

TARGET = "postgresql://root@127.0.0.1:26257/defaultdb?sslmode=disable"


class Boom(BaseException):
    """Non-Exception failure escaping the retry loop."""


def _events(logs, name):
    return [entry for entry in logs if entry["event"] == name]


@pytest.fixture
def make_orchestrator(clock):
    def make(factory, threshold=4, **kwargs):
        gate = FailureGate(factory, threshold, clock=clock)
        kwargs.setdefault("poll_interval", 4.0)
        kwargs.setdefault("deadline", 32.0)
        orchestrator = BootstrapOrchestrator(gate, clock=clock, sleep=clock.sleep, **kwargs)
        return orchestrator, gate

    return make


class TestImmediateSuccess:
    def test_returns_without_retry_task(self, make_orchestrator, scripted_factory, clock):
        factory = scripted_factory()
        orchestrator, gate = make_orchestrator(factory)

        with patch("breakwater.execution.bootstrap.threading.Thread") as thread_cls:
            with capture_logs() as logs:
                conn = orchestrator.bootstrap(TARGET)

        assert conn is factory.connection
        thread_cls.assert_not_called()
        assert clock.sleeps == []
        assert len(factory.calls) == 1
        assert _events(logs, "connection_attempt_failed") == []
        (established,) = _events(logs, "connection_established")
        assert established["attempts"] == 1


class TestRecovery:
    def test_fourth_attempt_succeeds(self, make_orchestrator, scripted_factory, clock):
        factory = scripted_factory(failures=3)
        orchestrator, gate = make_orchestrator(factory)

        with capture_logs() as logs:
            conn = orchestrator.bootstrap(TARGET)

        assert conn is factory.connection
        assert len(factory.calls) == 4
        assert clock.sleeps == [4.0, 4.0, 4.0]
        assert gate.state.consecutive_failures == 0

        failed = _events(logs, "connection_attempt_failed")
        assert [e["attempt"] for e in failed] == [1, 2, 3]
        assert all(e["error_type"] == "ConnectionRefusedError" for e in failed)
        assert [e["attempt"] for e in _events(logs, "connection_retry")] == [2, 3, 4]
        (established,) = _events(logs, "connection_established")
        assert established["attempts"] == 4

    def test_gate_short_circuits_are_retried(self, make_orchestrator, scripted_factory, clock):
        # Threshold 1: after the first failure the gate closes for 2s, then 4s.
        factory = scripted_factory(failures=2)
        orchestrator, gate = make_orchestrator(factory, threshold=1, poll_interval=1.0)

        with capture_logs() as logs:
            conn = orchestrator.bootstrap(TARGET)

        assert conn is factory.connection
        failed = _events(logs, "connection_attempt_failed")
        assert any(e["error_type"] == "ServiceUnavailableError" for e in failed)
        assert len(factory.calls) == 3

    def test_target_password_is_redacted_in_logs(self, make_orchestrator, scripted_factory):
        orchestrator, _ = make_orchestrator(scripted_factory(failures=1))
        with capture_logs() as logs:
            orchestrator.bootstrap("postgresql://app:hunter2@db:26257/app")
        assert logs
        assert all("hunter2" not in str(entry) for entry in logs)
        assert logs[0]["target"] == "postgresql://app:***@db:26257/app"


class TestDeadline:
    def test_deadline_exceeded(self, make_orchestrator, scripted_factory, clock):
        factory = scripted_factory(failures=1000)
        orchestrator, gate = make_orchestrator(factory)

        with capture_logs() as logs:
            with pytest.raises(DeadlineExceededError) as exc_info:
                orchestrator.bootstrap(TARGET)

        error = exc_info.value
        assert error.deadline == 32.0
        # initial attempt plus one per poll until the clock passes start + 32s
        assert error.attempts == 9
        assert isinstance(error.last_error, ServiceUnavailableError)
        # gate short-circuits kept the factory from being called every poll
        assert len(factory.calls) == 6
        assert clock.sleeps == [4.0] * 9
        assert _events(logs, "connection_established") == []
        (entry,) = _events(logs, "bootstrap_deadline_exceeded")
        assert entry["log_level"] == "error"

    def test_deadline_checked_before_attempt(self, make_orchestrator, scripted_factory, clock):
        factory = scripted_factory(failures=1000)
        orchestrator, _ = make_orchestrator(factory, poll_interval=10.0, deadline=5.0)

        with pytest.raises(DeadlineExceededError) as exc_info:
            orchestrator.bootstrap(TARGET)

        assert exc_info.value.attempts == 1
        assert len(factory.calls) == 1


class TestRetryTaskFailures:
    def test_base_exception_reaches_caller(self, clock):
        calls = []

        def gate(ctx, target):
            calls.append(target)
            if len(calls) == 1:
                raise ConnectionRefusedError("refused")
            raise Boom()

        orchestrator = BootstrapOrchestrator(gate, clock=clock, sleep=clock.sleep)
        with pytest.raises(Boom):
            orchestrator.bootstrap(TARGET)
        assert len(calls) == 2


class TestAttemptContext:
    def test_background_context_by_default(self, make_orchestrator):
        seen = []

        def factory(ctx, target):
            seen.append(ctx)
            return "conn"

        orchestrator, _ = make_orchestrator(factory)
        orchestrator.bootstrap(TARGET)
        assert seen[0].deadline is None

    def test_attempt_timeout_sets_deadline(self, make_orchestrator):
        seen = []

        def factory(ctx, target):
            seen.append(ctx)
            return "conn"

        orchestrator, _ = make_orchestrator(factory, attempt_timeout=5.0)
        orchestrator.bootstrap(TARGET)
        assert seen[0].deadline is not None
        assert 0 < seen[0].remaining() <= 5.0


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"poll_interval": 0},
            {"deadline": -1.0},
            {"attempt_timeout": 0},
        ],
    )
    def test_rejects_non_positive(self, kwargs):
        with pytest.raises(ValueError, match="must be positive"):
            BootstrapOrchestrator(lambda ctx, target: None, **kwargs)


class TestRetrySession:
    def test_handoff_is_one_shot(self):
        session = RetrySession(deadline=10.0, poll_interval=1.0, total_deadline=10.0)
        session.deliver("conn")
        assert session.wait() == "conn"
        assert session.attempts == 1
        with pytest.raises(InvalidStateError):
            session.deliver("other")

    def test_expired_is_strict(self):
        session = RetrySession(deadline=10.0, poll_interval=1.0, total_deadline=10.0)
        assert not session.expired(10.0)
        assert session.expired(10.001)

    def test_record_failure(self):
        session = RetrySession(deadline=10.0, poll_interval=1.0, total_deadline=10.0)
        error = ConnectionRefusedError("x")
        session.record_failure(error)
        assert session.attempts == 1
        assert session.last_error is error


class TestBootstrapHelper:
    def test_helper(self, scripted_factory, clock):
        factory = scripted_factory(failures=1)
        gate = FailureGate(factory, 4, clock=clock)
        conn = bootstrap(gate, TARGET, poll_interval=1.0, deadline=5.0, clock=clock, sleep=clock.sleep)
        assert conn is factory.connection
        assert clock.sleeps == [1.0]
