"""
Session Resilience

This package keeps a signed-in session usable over time.

Key Components:
- token.py: Bearer token lifecycle and proactive renewal
- backoff.py: Jittered, capped Fibonacci backoff state
- reconnect.py: Reconnection state machine driving health probes
- health.py: Ping and per-sub-service health probe
- pagination.py: "Fetch until complete" aggregation of listing endpoints
- events.py: Named lifecycle notifications
- scheduler.py: Injectable clock and timer
- facade.py: RainbowSession, composing all of the above around a Transport
"""

from rainbow.sdk.session.events import SessionEvent
from rainbow.sdk.session.facade import RainbowSession, Session

__all__ = ["RainbowSession", "Session", "SessionEvent"]
