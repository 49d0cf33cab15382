"""
Test doubles shared by the Rainbow session tests: a manual-clock scheduler, an in-memory
transport, a mock metrics client and jwcrypto-signed bearer tokens.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from jwcrypto import jwk, jwt

from rainbow.sdk.metrics import MetricsClient
from rainbow.sdk.session.scheduler import ScheduledCallback, Scheduler
from rainbow.sdk.transport.base import Transport

_SIGNING_KEY = jwk.JWK.generate(kty="EC", crv="P-256", alg="ES256")


def make_token(issued_at: int, expires_at: int, **claims: Any) -> str:
    """Create a signed bearer token carrying `iat` and `exp`."""
    token = jwt.JWT(
        header={"alg": "ES256", "typ": "JWT"},
        claims={"iat": issued_at, "exp": expires_at, **claims},
    )
    token.make_signed_token(_SIGNING_KEY)
    return token.serialize()


def make_raw_token(claims: Dict[str, Any]) -> str:
    token = jwt.JWT(header={"alg": "ES256", "typ": "JWT"}, claims=claims)
    token.make_signed_token(_SIGNING_KEY)
    return token.serialize()


class FakeTimer:
    def __init__(self, deadline: float, delay: float, callback: ScheduledCallback):
        self.deadline = deadline
        self.delay = delay
        self.callback = callback
        self.fired = False
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class FakeScheduler(Scheduler):
    """Scheduler with a manual clock. Timers only run through fire_next()."""

    def __init__(self, now: float = 0.0) -> None:
        self.current = now
        self.timers: List[FakeTimer] = []
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.current

    def call_later(self, delay: float, callback: ScheduledCallback) -> FakeTimer:
        timer = FakeTimer(self.current + max(delay, 0.0), delay, callback)
        self.timers.append(timer)
        return timer

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    async def fire_next(self) -> FakeTimer:
        timer = min(self.pending, key=lambda t: t.deadline)
        self.current = max(self.current, timer.deadline)
        timer.fired = True
        await timer.callback()
        return timer

    async def run_until_idle(self, max_steps: int = 1000) -> int:
        steps = 0
        while self.pending and steps < max_steps:
            await self.fire_next()
            steps += 1
        return steps


Handler = Callable[[str, str, Dict[str, str], Any], Any]


class FakeTransport(Transport):
    """
    In-memory transport. `routes` maps a path (without query string) to a value, an
    exception instance to raise, or a callable `(method, path, headers, body)`.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None) -> None:
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[Tuple[str, str, Dict[str, str], Any]] = []
        self.closed = False

    def paths(self) -> List[str]:
        return [path for _, path, _, _ in self.calls]

    async def request(self, method, path, headers=None, body=None):
        headers = dict(headers or {})
        self.calls.append((method, path, headers, body))

        route = self.routes.get(path.split("?")[0])
        if route is None:
            raise AssertionError(f"unexpected request {method} {path}")
        if isinstance(route, BaseException):
            raise route
        if callable(route):
            return route(method, path, headers, body)
        return route

    async def close(self) -> None:
        self.closed = True


class MockMetricsClient(MetricsClient):
    """Mock metrics client recording every call."""

    def __init__(self):
        self.gauges = {}
        self.increments = {}
        self.timers = {}
        self.closed = False

    def gauge(self, name, value, tag_dict=None):
        self.gauges[name] = {"value": value, "tags": tag_dict or {}}

    def increment(self, name, value=1, tag_dict=None):
        key = (name, tuple(sorted((tag_dict or {}).items())))
        self.increments[key] = self.increments.get(key, 0) + value

    def timer(self, name, value, tag_dict=None):
        self.timers[name] = {"value": value, "tags": tag_dict or {}}

    async def close(self):
        self.closed = True


