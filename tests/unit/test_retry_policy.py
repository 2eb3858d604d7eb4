"""Tests for the retry policy."""

import random
import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from app.core.errors import PipelineCancelled, ServiceError
from app.utils.cancellation import CancellationToken
from app.utils.retry_policy import RetryPolicy, status_code_of


@pytest.fixture
def policy(logger):
    return RetryPolicy(
        max_retries=3,
        base_delay_ms=1000,
        overload_min_retries=5,
        logger=logger,
        sleeper=lambda seconds: None,
        rng=random.Random(7),
    )


def flaky(failures, error):
    """Operation failing ``failures`` times with ``error`` and then returning "ok"."""
    operation = MagicMock(side_effect=[error] * failures + ["ok"])
    return operation


def test_success_after_retryable_failures(policy):
    operation = flaky(2, ServiceError("boom", status_code=500))
    assert policy.execute(operation) == "ok"
    assert operation.call_count == 3


def test_non_retryable_error_fails_immediately(policy):
    operation = MagicMock(side_effect=ServiceError("unauthorized", status_code=401))
    with pytest.raises(ServiceError):
        policy.execute(operation)
    assert operation.call_count == 1


def test_gives_up_after_max_retries(policy):
    operation = MagicMock(side_effect=requests.exceptions.ConnectionError("reset"))
    with pytest.raises(requests.exceptions.ConnectionError):
        policy.execute(operation)
    assert operation.call_count == 4


def test_overload_allows_at_least_five_retries(logger):
    policy = RetryPolicy(max_retries=1, base_delay_ms=0, logger=logger, sleeper=lambda s: None)
    operation = MagicMock(side_effect=ServiceError("model overloaded", status_code=503))

    with pytest.raises(ServiceError):
        policy.execute(operation)

    assert operation.call_count >= 5
    assert operation.call_count == 6


def test_overload_delay_exceeds_normal_delay_for_same_attempt(logger):
    for attempt in range(5):
        normal = RetryPolicy(logger=logger, rng=random.Random(0)).calculate_delay(attempt, overloaded=False)
        overloaded = RetryPolicy(logger=logger, rng=random.Random(0)).calculate_delay(attempt, overloaded=True)
        assert overloaded > normal


def test_delay_ranges(policy):
    assert 1000 <= policy.calculate_delay(0) < 2000
    assert 4000 <= policy.calculate_delay(2) < 5000
    assert 5000 <= policy.calculate_delay(0, overloaded=True) < 7000
    assert 11000 <= policy.calculate_delay(2, overloaded=True) < 13000


def test_waits_between_attempts(logger):
    waits = []
    policy = RetryPolicy(max_retries=2, base_delay_ms=100, logger=logger, sleeper=waits.append, rng=random.Random(1))
    operation = flaky(2, TimeoutError("timed out"))

    policy.execute(operation)

    assert len(waits) == 2
    assert 0.1 <= waits[0] < 1.1
    assert 0.2 <= waits[1] < 1.2


@pytest.mark.parametrize(
    "error,expected",
    [
        (requests.exceptions.Timeout("slow"), True),
        (ConnectionError("refused"), True),
        (ServiceError("x", status_code=429), True),
        (ServiceError("x", status_code=502), True),
        (ServiceError("x", status_code=400), False),
        (ServiceError("x", status_code=403), False),
        (RuntimeError("Service Unavailable right now"), True),
        (RuntimeError("invalid prompt"), False),
    ],
)
def test_is_retryable(policy, error, expected):
    assert policy.is_retryable(error) is expected


def test_is_overload(policy):
    assert policy.is_overload(ServiceError("x", status_code=503))
    assert policy.is_overload(RuntimeError("The engine is currently overloaded"))
    assert not policy.is_overload(ServiceError("x", status_code=500))


def test_custom_classifier(policy):
    operation = flaky(1, ValueError("retry me"))
    assert policy.execute(operation, classifier=lambda e: isinstance(e, ValueError)) == "ok"


def test_cancellation_stops_retries(logger):
    token = CancellationToken()
    token.cancel()
    policy = RetryPolicy(logger=logger)
    operation = MagicMock(return_value="ok")

    with pytest.raises(PipelineCancelled):
        policy.execute(operation, cancel_token=token)
    operation.assert_not_called()


def test_cancellation_interrupts_backoff_wait(logger):
    token = CancellationToken()
    policy = RetryPolicy(max_retries=3, base_delay_ms=60_000, logger=logger)

    def fail_and_schedule_cancel():
        threading.Timer(0.05, token.cancel).start()
        raise requests.exceptions.ConnectionError("reset")

    operation = MagicMock(side_effect=fail_and_schedule_cancel)

    started = time.monotonic()
    with pytest.raises(PipelineCancelled):
        policy.execute(operation, cancel_token=token)

    assert time.monotonic() - started < 10
    assert operation.call_count == 1


def test_status_code_of_reads_response():
    response = MagicMock(status_code=418)
    error = requests.exceptions.HTTPError("teapot", response=response)
    assert status_code_of(error) == 418
    assert status_code_of(RuntimeError("plain")) is None
