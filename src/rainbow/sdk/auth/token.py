"""
Bearer token claim decoding.

The platform issues JWS compact tokens. The client cannot verify their signature (it
does not hold the platform key) and does not need to: it only reads the `iat` and `exp`
claims to know when to renew.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict

from jwcrypto import jws
from jwcrypto.common import JWException

from rainbow.sdk.errors import TokenFormatError


@dataclass(frozen=True)
class TokenClaims:
    issued_at: int
    """`iat` claim, seconds since epoch."""

    expires_at: int
    """`exp` claim, seconds since epoch."""


@dataclass(frozen=True)
class TokenWindow:
    """
    A bearer token together with its validity window.

    Instances are immutable: a renewal replaces the whole window, so a token is never
    observed with another token's expiry.
    """

    token: str
    issued_at: int
    expires_at: int

    @property
    def half_life(self) -> float:
        return (self.expires_at - self.issued_at) / 2 + self.issued_at

    @property
    def lifetime(self) -> int:
        return self.expires_at - self.issued_at


def decode_claims(token: str) -> Dict[str, Any]:
    """Decode the payload of a JWS compact token without verifying its signature.

    Raises:
        TokenFormatError: If the token is not a JWS or its payload is not a JSON object
    """
    if not isinstance(token, str) or token.count(".") != 2:
        raise TokenFormatError("Token is not a JWS compact serialization")

    try:
        token_jws = jws.JWS()
        token_jws.deserialize(token)
        payload = token_jws.objects["payload"]
        claims = json.loads(payload)
    except (JWException, KeyError, ValueError) as e:
        raise TokenFormatError(f"Token payload could not be decoded: {e}") from e

    if not isinstance(claims, dict):
        raise TokenFormatError("Token payload is not a JSON object")

    return claims


def decode_token(token: str) -> TokenClaims:
    """Read the `iat` and `exp` claims of a bearer token.

    Raises:
        TokenFormatError: If either claim is missing or not numeric
    """
    claims = decode_claims(token)

    try:
        issued_at = claims["iat"]
        expires_at = claims["exp"]
    except KeyError as e:
        raise TokenFormatError(f"Token is missing the {e.args[0]} claim") from e

    for name, value in (("iat", issued_at), ("exp", expires_at)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TokenFormatError(f"Token claim {name} is not numeric")

    return TokenClaims(issued_at=int(issued_at), expires_at=int(expires_at))


def token_window(token: str) -> TokenWindow:
    claims = decode_token(token)
    return TokenWindow(
        token=token, issued_at=claims.issued_at, expires_at=claims.expires_at
    )
