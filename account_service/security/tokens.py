"""Utilities for issuing and validating application JWTs."""

from __future__ import annotations

import time
from typing import Any

import jwt

ACCESS_TOKEN = "access"
VERIFICATION_TOKEN = "verification"

_ALGORITHM = "HS256"


class TokenIssuer:
    """Sign and verify the service's HS256 tokens.

    Parameters
    ----------
    secret:
        Process-wide signing secret. Must be non-empty.
    issuer:
        Value of the ``iss`` claim, checked again on decode.
    access_ttl_seconds:
        Lifetime of access tokens returned by login.
    verification_ttl_seconds:
        Lifetime of the tokens embedded in verification emails.
    """

    def __init__(
        self,
        *,
        secret: str,
        issuer: str,
        access_ttl_seconds: int,
        verification_ttl_seconds: int,
    ) -> None:
        if not secret:
            raise ValueError("token signing secret must be configured")
        self._secret = secret
        self._issuer = issuer
        self._access_ttl = access_ttl_seconds
        self._verification_ttl = verification_ttl_seconds

    @property
    def access_ttl_seconds(self) -> int:
        return self._access_ttl

    def issue(self, account_id: str, username: str) -> tuple[str, int]:
        """Create a signed access token for an authenticated account.

        Returns
        -------
        tuple[str, int]
            The encoded JWT string and its TTL in seconds.
        """
        token = self._encode(
            {"sub": account_id, "username": username, "typ": ACCESS_TOKEN},
            self._access_ttl,
        )
        return token, self._access_ttl

    def issue_verification(self, account_id: str) -> str:
        """Create the signed token that accompanies a verification link."""
        return self._encode({"sub": account_id, "typ": VERIFICATION_TOKEN}, self._verification_ttl)

    def decode(self, token: str, purpose: str = ACCESS_TOKEN) -> dict[str, Any]:
        """Decode and verify a JWT returning its payload.

        Raises
        ------
        jwt.PyJWTError
            When the token is invalid, expired, from another issuer, or was
            minted for a different ``purpose``.
        """
        claims = jwt.decode(
            token,
            self._secret,
            algorithms=[_ALGORITHM],
            issuer=self._issuer,
            options={"require": ["exp", "iat", "sub"]},
        )
        if claims.get("typ") != purpose:
            raise jwt.InvalidTokenError(f"expected a {purpose} token")
        return claims

    def _encode(self, claims: dict[str, Any], ttl: int) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            **claims,
            "iss": self._issuer,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)
