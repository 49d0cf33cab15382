"""
Fibonacci backoff.

Delays follow the Fibonacci sequence seeded with the initial delay twice and are capped
at the maximum delay:

    2000, 2000, 4000, 6000, 10000, 16000, 26000, 42000, 60000, 60000, ...

Each delay handed out for scheduling is jittered by a multiplicative factor sampled
uniformly in [1 - randomization_factor, 1 + randomization_factor].
"""

import random
from typing import Optional


class FibonacciBackoff:
    """
    Backoff state for one reconnection controller. Delays are in milliseconds.

    `current_delay` never decreases between two resets, and `reset()` brings both the
    delay and the attempt count back to their initial values.
    """

    def __init__(
        self,
        initial_delay: int = 2000,
        max_delay: int = 60000,
        randomization_factor: float = 0.0,
        max_attempts: int = 50,
        rng: Optional[random.Random] = None,
    ) -> None:
        if initial_delay <= 0:
            raise ValueError("initial_delay must be positive")
        if max_delay < initial_delay:
            raise ValueError("max_delay must not be lower than initial_delay")
        if not 0 <= randomization_factor <= 1:
            raise ValueError("randomization_factor must be within [0, 1]")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")

        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.randomization_factor = randomization_factor
        self.max_attempts = max_attempts
        self._rng = rng or random.Random()

        self.current_delay = initial_delay
        self.attempt_count = 0
        self._previous_delay = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt_count >= self.max_attempts

    def advance(self) -> int:
        """Move to the next Fibonacci delay and return it (unjittered)."""
        next_delay = min(self._previous_delay + self.current_delay, self.max_delay)
        self._previous_delay = self.current_delay
        self.current_delay = next_delay
        return next_delay

    def record_failure(self) -> bool:
        """
        Count a failed attempt. Returns True when another attempt is allowed, in which
        case the delay has been advanced.
        """
        self.attempt_count += 1
        if self.exhausted:
            return False
        self.advance()
        return True

    def jittered(self, delay: Optional[int] = None) -> float:
        """Return `delay` (default: the current delay) with jitter applied."""
        if delay is None:
            delay = self.current_delay
        if self.randomization_factor == 0:
            return float(delay)
        factor = self._rng.uniform(
            1 - self.randomization_factor, 1 + self.randomization_factor
        )
        return max(0.0, delay * factor)

    def reset(self) -> None:
        self.current_delay = self.initial_delay
        self._previous_delay = 0
        self.attempt_count = 0

    def __repr__(self) -> str:
        return (
            f"FibonacciBackoff(current_delay={self.current_delay}, "
            f"attempt_count={self.attempt_count}/{self.max_attempts})"
        )
