"""Signed, time-limited access tokens.

Tokens are HS256 JWTs binding one admission number. The lifetime check is
done against the service's own clock rather than PyJWT's, so expiry can be
exercised deterministically.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

import jwt

from .errors import TokenExpiredError, TokenInvalidError, TokenMissingError

DEFAULT_TTL_SECONDS = 3600


class TokenService:
    """Issue and verify access tokens with a fixed secret."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("token secret is required")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, admission_number: str) -> str:
        """Return a token for `admission_number`, valid for `ttl_seconds`."""
        issued_at = int(self._clock())
        payload = {
            "sub": admission_number,
            "admissionNumber": admission_number,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> str:
        """Return the admission number bound to `token`.

        Raises TokenMissingError, TokenInvalidError or TokenExpiredError.
        """
        if not token or not token.strip():
            raise TokenMissingError("No token, authorization denied")
        try:
            payload = jwt.decode(
                token.strip(),
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "require": ["sub", "iat", "exp"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise TokenInvalidError("Token is not valid") from exc
        subject = payload.get("sub")
        expires_at = payload.get("exp")
        if not isinstance(subject, str) or not subject or not isinstance(expires_at, (int, float)):
            raise TokenInvalidError("Token is not valid")
        if self._clock() >= expires_at:
            raise TokenExpiredError("Token has expired")
        return subject
