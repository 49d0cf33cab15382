"""
Error taxonomy for the Rainbow session layer.

Operation-level errors are raised to the immediate caller. Connectivity failures
(`NetworkError`) are additionally routed into the reconnection state machine, and
background failures (renewal, reconnection) are delivered as notifications carrying
one of these errors as payload.
"""

from typing import Any, Optional


class RainbowError(Exception):
    """Base class for every error raised by the session layer."""


class TransportError(RainbowError):
    """
    A request reached the transport and failed.

    `status` is the HTTP status code when the server answered, `None` when no
    response was received at all.
    """

    def __init__(
        self, message: str, status: Optional[int] = None, body: Any = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class NetworkError(TransportError):
    """Transient connectivity failure; recoverable through reconnection."""


class AuthenticationError(RainbowError):
    """Credentials were refused at sign-in, or no session is established."""


class TokenFormatError(RainbowError):
    """The bearer token could not be decoded into `iat` / `exp` claims."""


class TokenExpiredError(RainbowError):
    """Token renewal failed; the caller has to sign in again."""


class AggregationInconsistency(RainbowError):
    """
    A paginated fetch did not converge on the reported total within the page ceiling.
    """

    def __init__(self, message: str, collected: int, reported_total: Optional[int]):
        super().__init__(message)
        self.collected = collected
        self.reported_total = reported_total


class PermanentReconnectFailure(RainbowError):
    """Every reconnection attempt failed; no further automatic attempts are made."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts
