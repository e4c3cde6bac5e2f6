from __future__ import annotations

import asyncio
import random

import pytest

from conftest import fatal, retryable
from core.domain.errors import RemoteError
from core.domain.models import FailureKind, RetryPolicy
from core.services.classifier import ErrorClassifier
from core.services.hooks import EngineHooks
from core.services.retrier import Retrier


class Flaky:
    def __init__(self, errors: list[BaseException], result: object = "ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self) -> object:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def _retrier(policy: RetryPolicy, delays: list[float] | None = None, **kwargs) -> Retrier:
    hooks = EngineHooks(retry=lambda key, attempt, delay, exc: delays.append(delay)) if delays is not None else None
    return Retrier(policy, ErrorClassifier(), hooks=hooks, rng=random.Random(7), **kwargs)


@pytest.mark.parametrize("failures", [1, 2, 4])
def test_retryable_failures_then_success(failures: int, fast_policy: RetryPolicy) -> None:
    delays: list[float] = []
    call = Flaky([retryable() for _ in range(failures)])

    outcome = asyncio.run(_retrier(fast_policy, delays).run(call, key="k"))

    assert outcome.ok and outcome.value == "ok"
    assert call.calls == failures + 1
    assert outcome.attempts == failures + 1
    bound = sum(
        min(fast_policy.max_delay, fast_policy.initial_delay * fast_policy.multiplier**i) * (1 + fast_policy.jitter)
        for i in range(failures)
    )
    assert len(delays) == failures
    assert sum(delays) <= bound


def test_fatal_is_attempted_once(fast_policy: RetryPolicy) -> None:
    call = Flaky([fatal(), retryable()])

    outcome = asyncio.run(_retrier(fast_policy).run(call, key="k"))

    assert call.calls == 1
    assert not outcome.ok and outcome.kind is FailureKind.FATAL
    assert "notFound" in outcome.message


def test_exhausted_after_max_attempts(fast_policy: RetryPolicy) -> None:
    call = Flaky([retryable() for _ in range(10)])

    outcome = asyncio.run(_retrier(fast_policy).run(call, key="k"))

    assert call.calls == fast_policy.max_attempts
    assert outcome.kind is FailureKind.EXHAUSTED
    assert outcome.retryable


def test_skip_is_not_a_caller_visible_failure(fast_policy: RetryPolicy) -> None:
    call = Flaky([RemoteError("Member already exists.", status=409, reason="duplicate")])

    outcome = asyncio.run(_retrier(fast_policy).run(call))

    assert call.calls == 1
    assert outcome.kind is FailureKind.SKIPPED
    assert not outcome.caller_visible_failure


def test_unexpected_exception_is_a_crash(fast_policy: RetryPolicy) -> None:
    call = Flaky([KeyError("userKey")])

    outcome = asyncio.run(_retrier(fast_policy).run(call))

    assert call.calls == 1
    assert outcome.kind is FailureKind.CRASHED
    assert outcome.message.startswith("KeyError")


def test_delay_grows_and_is_capped() -> None:
    policy = RetryPolicy(initial_delay=1.0, max_delay=4.0, multiplier=2.0, jitter=0.0)
    retrier = _retrier(policy)
    assert [retrier.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 4.0, 4.0]


def test_jitter_stays_within_bounds() -> None:
    policy = RetryPolicy(initial_delay=1.0, max_delay=32.0, jitter=0.1)
    retrier = _retrier(policy)
    for attempt in range(1, 6):
        base = policy.base_delay(attempt)
        assert base * 0.9 <= retrier.delay_for(attempt) <= base * 1.1


def test_retry_after_hint_does_not_stretch_backoff_by_default() -> None:
    policy = RetryPolicy()
    retrier = _retrier(policy)
    hinted = RemoteError("Too Many Requests", status=429, retry_after=30.0)

    delays = [retrier.delay_for(n, hinted) for n in range(1, 5)]

    bound = sum(policy.base_delay(n) * (1 + policy.jitter) for n in range(1, 5))
    assert sum(delays) <= bound
    assert delays[0] <= policy.initial_delay * (1 + policy.jitter)


def test_retry_after_hint_as_opt_in_lower_bound() -> None:
    policy = RetryPolicy(initial_delay=1.0, max_delay=10.0, jitter=0.0, honor_retry_after=True)
    retrier = _retrier(policy)
    assert retrier.delay_for(1, RemoteError("slow down", status=429, retry_after=7)) == 7.0
    assert retrier.delay_for(1, RemoteError("slow down", status=429, retry_after=60)) == 10.0
    assert retrier.delay_for(4, RemoteError("slow down", status=429, retry_after=2)) == 8.0


def test_cancellation_interrupts_backoff() -> None:
    policy = RetryPolicy(initial_delay=30.0, max_delay=30.0, jitter=0.0)
    cancel = asyncio.Event()
    call = Flaky([retryable(), retryable()])

    async def scenario():
        retrier = _retrier(policy, cancel=cancel)
        task = asyncio.ensure_future(retrier.run(call, key="k"))
        await asyncio.sleep(0.01)
        cancel.set()
        return await asyncio.wait_for(task, timeout=2)

    outcome = asyncio.run(scenario())

    assert call.calls == 1
    assert outcome.kind is FailureKind.CANCELLED


def test_no_attempt_after_cancellation(fast_policy: RetryPolicy) -> None:
    cancel = asyncio.Event()
    cancel.set()
    call = Flaky([])

    outcome = asyncio.run(_retrier(fast_policy, cancel=cancel).run(call))

    assert call.calls == 0
    assert outcome.kind is FailureKind.CANCELLED
