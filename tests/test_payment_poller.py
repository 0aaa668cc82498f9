import logging
import threading

from kamkunji.clients.gateway import PAYMENT_FAILED, PAYMENT_PAID, PAYMENT_PENDING, PaymentQueryResult
from kamkunji.core.exceptions import ExternalServiceError, PaymentCancelledError
from kamkunji.services.payment_poller import (
    OUTCOME_CANCELLED,
    OUTCOME_FAILED,
    OUTCOME_PAID,
    OUTCOME_TIMED_OUT,
    PaymentPoller,
    PaymentPollerRegistry,
)


class ScriptedQuery:
    """Returns the scripted results in order, then pending forever"""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.results:
            result = self.results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return PaymentQueryResult(PAYMENT_PENDING)


class RecordingWait:
    def __init__(self, stop_after=None):
        self.waits = []
        self.stop_after = stop_after

    def __call__(self, seconds):
        self.waits.append(seconds)
        return self.stop_after is not None and len(self.waits) >= self.stop_after


def test_gives_up_after_exactly_twenty_attempts(caplog):
    query = ScriptedQuery()
    wait = RecordingWait()
    poller = PaymentPoller(query, wait=wait, label="order-1")

    with caplog.at_level(logging.WARNING, logger="kamkunji.services.payment_poller"):
        result = poller.run()

    assert result.outcome == OUTCOME_TIMED_OUT
    assert result.attempts == 20
    assert query.calls == 20
    # waits only between attempts, 3 seconds each
    assert wait.waits == [3.0] * 19
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "taking longer than expected" in warnings[0].getMessage()


def test_no_warning_before_the_last_attempt(caplog):
    query = ScriptedQuery(*[PaymentQueryResult(PAYMENT_PENDING)] * 19, PaymentQueryResult(PAYMENT_PAID, "0"))
    with caplog.at_level(logging.WARNING, logger="kamkunji.services.payment_poller"):
        result = PaymentPoller(query, wait=RecordingWait()).run()

    assert result.outcome == OUTCOME_PAID
    assert result.attempts == 20
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_stops_on_success():
    query = ScriptedQuery(PaymentQueryResult(PAYMENT_PENDING), PaymentQueryResult(PAYMENT_PAID, "0"))
    result = PaymentPoller(query, wait=RecordingWait()).run()
    assert result.outcome == OUTCOME_PAID
    assert result.attempts == 2
    assert query.calls == 2


def test_stops_on_definitive_failure():
    failure = PaymentQueryResult(PAYMENT_FAILED, "1032", "Request cancelled by user", PaymentCancelledError())
    result = PaymentPoller(ScriptedQuery(failure), wait=RecordingWait()).run()
    assert result.outcome == OUTCOME_FAILED
    assert result.attempts == 1
    assert result.last_result is failure


def test_transport_errors_count_as_attempts():
    query = ScriptedQuery(*[ExternalServiceError("daraja")] * 5)
    result = PaymentPoller(query, max_attempts=5, wait=RecordingWait()).run()
    assert result.outcome == OUTCOME_TIMED_OUT
    assert query.calls == 5


def test_cancel_during_wait():
    query = ScriptedQuery()
    result = PaymentPoller(query, wait=RecordingWait(stop_after=3)).run()
    assert result.outcome == OUTCOME_CANCELLED
    assert result.attempts == 3
    assert query.calls == 3


def test_cancel_before_start():
    query = ScriptedQuery()
    poller = PaymentPoller(query, wait=RecordingWait())
    poller.cancel()
    result = poller.run()
    assert result.outcome == OUTCOME_CANCELLED
    assert query.calls == 0


def test_registry_runs_in_background_and_reports():
    done = threading.Event()
    outcomes = []

    def on_done(result):
        outcomes.append(result.outcome)
        done.set()

    registry = PaymentPollerRegistry()
    query = ScriptedQuery(PaymentQueryResult(PAYMENT_PAID, "0"))
    thread = registry.start(1, PaymentPoller(query, interval_seconds=0), on_done)
    thread.join(5)

    assert done.is_set()
    assert outcomes == [OUTCOME_PAID]
    assert registry.active_count() == 0


def test_registry_cancel_all_stops_waiting_pollers():
    registry = PaymentPollerRegistry()
    outcomes = []
    for key in (1, 2):
        registry.start(key, PaymentPoller(ScriptedQuery(), interval_seconds=30), lambda r: outcomes.append(r.outcome))

    assert registry.cancel_all(timeout=5) == 2
    assert registry.active_count() == 0
    assert sorted(outcomes) == [OUTCOME_CANCELLED, OUTCOME_CANCELLED]
