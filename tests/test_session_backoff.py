"""
Unit tests for the Fibonacci backoff state.
"""

import random

import pytest

from rainbow.sdk.session.backoff import FibonacciBackoff


class TestSequence:
    def test_unjittered_sequence_is_capped_fibonacci(self):
        backoff = FibonacciBackoff(
            initial_delay=2000, max_delay=60000, randomization_factor=0
        )

        delays = [backoff.current_delay] + [backoff.advance() for _ in range(9)]

        assert delays == [
            2000,
            2000,
            4000,
            6000,
            10000,
            16000,
            26000,
            42000,
            60000,
            60000,
        ]

    def test_delay_never_decreases(self):
        backoff = FibonacciBackoff(initial_delay=100, max_delay=7000)
        previous = backoff.current_delay
        for _ in range(100):
            delay = backoff.advance()
            assert delay >= previous
            assert delay <= 7000
            previous = delay

    def test_reset_restarts_from_initial_delay(self):
        backoff = FibonacciBackoff(initial_delay=2000, max_delay=60000, max_attempts=50)
        for _ in range(7):
            backoff.record_failure()

        backoff.reset()

        assert backoff.current_delay == 2000
        assert backoff.attempt_count == 0
        assert [backoff.advance() for _ in range(3)] == [2000, 4000, 6000]


class TestAttempts:
    def test_record_failure_until_exhausted(self):
        backoff = FibonacciBackoff(max_attempts=3)

        assert backoff.record_failure() is True
        assert backoff.record_failure() is True
        assert backoff.record_failure() is False
        assert backoff.exhausted
        assert backoff.attempt_count == 3

    def test_record_failure_advances_delay(self):
        backoff = FibonacciBackoff(initial_delay=2000, max_delay=60000)
        backoff.record_failure()
        backoff.record_failure()
        assert backoff.current_delay == 4000


class TestJitter:
    def test_zero_factor_returns_exact_delay(self):
        backoff = FibonacciBackoff(randomization_factor=0)
        assert backoff.jittered() == 2000.0
        assert backoff.jittered(5000) == 5000.0

    def test_jitter_stays_within_factor(self):
        backoff = FibonacciBackoff(randomization_factor=0.4, rng=random.Random(42))

        samples = [backoff.jittered(10000) for _ in range(500)]

        assert all(6000 <= sample <= 14000 for sample in samples)
        assert min(samples) < 9000
        assert max(samples) > 11000

    def test_jitter_does_not_change_state(self):
        backoff = FibonacciBackoff(randomization_factor=0.5, rng=random.Random(1))
        backoff.jittered()
        assert backoff.current_delay == 2000


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"initial_delay": 0},
            {"initial_delay": 5000, "max_delay": 1000},
            {"randomization_factor": -0.1},
            {"randomization_factor": 1.5},
            {"max_attempts": 0},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            FibonacciBackoff(**kwargs)
