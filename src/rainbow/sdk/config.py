"""
Configuration Module for the Rainbow Session Layer

This module defines the settings used by the session layer, using Pydantic for
validation and environment loading.

The configuration follows these principles:
1. Environment-based configuration with defaults for the public platform
2. Strong validation and typing through Pydantic
3. Timing values expressed in the unit the owning component works in (backoff delays
   in milliseconds, token windows in seconds)

Every field can be set from an environment variable prefixed with `RAINBOW_`, for
example `RAINBOW_HOST=sandbox.openrainbow.com`.

Key configuration areas include:
- Platform location and client identification
- Reconnection backoff
- Token renewal windows
- Pagination safety limits
- Monitoring and observability
"""

from typing import Annotated, List, Optional
import logging
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

SDK_VERSION = "1.0.0"

LOGIN_PATH = "/api/rainbow/authentication/v1.0/login"
LOGOUT_PATH = "/api/rainbow/authentication/v1.0/logout"
RENEW_PATH = "/api/rainbow/authentication/v1.0/renew"
PING_PATH = "/api/rainbow/ping"

PORTAL_ABOUT_PATHS = {
    "authentication": "/api/rainbow/authentication/v1.0/about",
    "enduser": "/api/rainbow/enduser/v1.0/about",
    "telephony": "/api/rainbow/telephony/v1.0/about",
    "admin": "/api/rainbow/admin/v1.0/about",
    "channels": "/api/rainbow/channels/v1.0/about",
    "applications": "/api/rainbow/applications/v1.0/about",
}
"""Sub-service endpoints checked by a reconnection probe on a real deployment."""


class Settings(BaseSettings):
    """
    Settings for a Rainbow session.

    Values are loaded from `RAINBOW_*` environment variables, falling back to defaults
    that target the public platform.
    """

    model_config = SettingsConfigDict(env_prefix="rainbow_")

    debug: bool = False
    """
    Enable verbose request tracing.
    Set with RAINBOW_DEBUG=true environment variable.
    """

    # Platform location
    host: str = "openrainbow.com"
    """Platform hostname. Set with RAINBOW_HOST."""

    port: int = 443
    """Platform port. Set with RAINBOW_PORT."""

    protocol: str = "https"
    """URL scheme used to reach the platform. Set with RAINBOW_PROTOCOL."""

    official_hosts: Annotated[List[str], NoDecode] = [
        "openrainbow.com",
        "openrainbow.net",
    ]
    """
    Hosts considered real deployments. Only there does a reconnection probe check every
    sub-service. Set with RAINBOW_OFFICIAL_HOSTS as comma-separated values.
    """

    # Client identification
    client_name: str = "sdk_python"
    """Sent as x-rainbow-client on login."""

    client_version: str = SDK_VERSION
    """Sent as x-rainbow-client-version on login."""

    request_timeout: float = 30.0
    """Total timeout in seconds for a single HTTP request."""

    # Reconnection backoff
    reconnect_initial_delay_ms: int = Field(default=2000, gt=0)
    """First (and second) delay of the Fibonacci backoff, in milliseconds."""

    reconnect_max_delay_ms: int = Field(default=60000, gt=0)
    """Upper bound of the Fibonacci backoff, in milliseconds."""

    reconnect_randomization_factor: float = 0.4
    """
    Jitter applied to every backoff delay: the delay is multiplied by a factor sampled
    uniformly in [1 - f, 1 + f].
    """

    reconnect_max_attempts: int = Field(default=50, gt=0)
    """Consecutive failed probes after which reconnection gives up."""

    probe_settle_delay: float = 10.0
    """
    Seconds to wait after a successful ping before checking every sub-service. Some of
    them answer before they are fully ready.
    """

    # Token renewal
    token_renew_before_expiry: int = 3600
    """Renewal is scheduled this many seconds before the token expires."""

    token_renew_immediately_within: int = 300
    """A token expiring within this many seconds is renewed right away."""

    # Pagination
    page_size: int = Field(default=100, gt=0)
    """Items requested per page when walking a collection."""

    pagination_max_pages: int = Field(default=10000, gt=0)
    """Pages fetched at most before a collection walk is declared inconsistent."""

    # Monitoring and error reporting
    sentry_dsn: Optional[str] = None
    """Sentry DSN for error reporting. Optional, no error reporting if not set."""

    metrics_backend: str = "none"
    """Metrics backend: `telegraf` or `none`."""

    statsd_host: str = "telegraf"
    statsd_port: int = 8125

    @field_validator("official_hosts", mode="before")
    @classmethod
    def decode_official_hosts(cls, v) -> List[str]:
        """
        Accept either a list of hostnames or a comma-separated string.
        """
        if isinstance(v, str):
            return [host.strip() for host in v.split(",") if host.strip()]
        if isinstance(v, (list, tuple)):
            return [str(host) for host in v]
        raise ValueError("official_hosts must be a list or a comma-separated string")

    @field_validator("reconnect_max_delay_ms")
    @classmethod
    def check_max_delay(cls, v: int, info: ValidationInfo) -> int:
        initial_delay = info.data.get("reconnect_initial_delay_ms")
        if initial_delay is not None and v < initial_delay:
            raise ValueError(
                "reconnect_max_delay_ms must not be lower than reconnect_initial_delay_ms"
            )
        return v

    @field_validator("reconnect_randomization_factor")
    @classmethod
    def check_randomization_factor(cls, v: float) -> float:
        if v < 0 or v > 1:
            raise ValueError("reconnect_randomization_factor must be within [0, 1]")
        return v

    @field_validator("metrics_backend")
    @classmethod
    def check_metrics_backend(cls, v: str) -> str:
        backend = v.lower()
        if backend not in ("telegraf", "none"):
            raise ValueError("metrics_backend must be 'telegraf' or 'none'")
        return backend

    @property
    def base_url(self) -> str:
        default_port = {"https": 443, "http": 80}.get(self.protocol)
        if self.port == default_port:
            return f"{self.protocol}://{self.host}"
        return f"{self.protocol}://{self.host}:{self.port}"

    @property
    def is_official_deployment(self) -> bool:
        return self.host in self.official_hosts
