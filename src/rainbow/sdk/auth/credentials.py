"""
Credential encoding for platform login.

Turns the user's credentials and the application identity into the header values sent
to the login endpoint. Everything here is pure: the same inputs always produce the same
header values.
"""

import base64
import hashlib
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Credentials:
    login: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(login={self.login!r}, password='***')"


@dataclass(frozen=True)
class ApplicationIdentity:
    app_id: str
    app_secret: Optional[str] = None

    def __repr__(self) -> str:
        return f"ApplicationIdentity(app_id={self.app_id!r}, app_secret='***')"


def _b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def basic_auth(login: str, password: str) -> str:
    """Create the `Authorization` header value for a login/password pair.

    Args:
        login: User login (email)
        password: User password

    Returns:
        str: `Basic <base64(login:password)>`
    """
    return f"Basic {_b64(f'{login}:{password}')}"


def application_auth(
    app_id: str, app_secret: Optional[str], password: str
) -> Optional[str]:
    """Create the `x-rainbow-app-auth` header value for an application.

    The application secret is never sent as-is: the header carries the SHA-256 hex
    digest of `app_secret + password`, paired with the application id.

    Args:
        app_id: Application identifier
        app_secret: Application secret, may be missing
        password: Password of the user signing in

    Returns:
        Optional[str]: `Basic <base64(app_id:sha256hex)>`, or None when the application
        has no secret
    """
    if not app_secret:
        return None
    digest = hashlib.sha256((app_secret + password).encode("utf-8")).hexdigest()
    return f"Basic {_b64(f'{app_id}:{digest}')}"


def login_headers(
    credentials: Credentials,
    application: ApplicationIdentity,
    client_name: str,
    client_version: str,
) -> Dict[str, str]:
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "Authorization": basic_auth(credentials.login, credentials.password),
        "x-rainbow-client": client_name,
        "x-rainbow-client-version": client_version,
    }

    app_auth = application_auth(
        application.app_id, application.app_secret, credentials.password
    )
    if app_auth is not None:
        headers["x-rainbow-app-auth"] = app_auth

    return headers


def bearer_headers(
    token: str, accept: Optional[str] = None, range_: Optional[str] = None
) -> Dict[str, str]:
    headers = {
        "Authorization": f"Bearer {token}",
        "Accept": accept or "application/json",
    }
    if range_ is not None:
        headers["Range"] = range_
    return headers


def default_headers() -> Dict[str, str]:
    return {"Accept": "application/json", "Content-Type": "application/json"}
