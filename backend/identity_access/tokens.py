"""
Bearer token issuing and verification for the identity_access bounded context.

Why: Keep the cryptographic side of identity outside the web adapter so it can
be unit tested with an injected clock and a known secret.

Security:
    - HS256 only; tokens signed with any other algorithm (including `none`)
      are rejected by the algorithm whitelist.
    - Expiry is enforced here with a small clock skew allowance instead of
      relying on library defaults.
    - Tokens are never logged. There is no revocation: a token is valid until
      it expires.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Dict, Mapping

from jose import jwt
from jose.exceptions import JOSEError

ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 24 * 60 * 60
MAX_CLOCK_SKEW_SECONDS = 5  # Allow minimal skew between servers


class TokenVerificationError(Exception):
    """Raised when a bearer token cannot be issued or fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class TokenService:
    """Sign and verify identity tokens with a shared HMAC secret.

    Parameters
    ----------
    secret:
        HMAC key; must be non-empty.
    ttl_seconds:
        Validity window added to `iat` when issuing (default 24h).
    now:
        Clock returning epoch seconds; injectable for tests.
    """

    def __init__(self, secret: str, *, ttl_seconds: int = DEFAULT_TTL_SECONDS, now: Callable[[], float] = time.time):
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret
        self.ttl_seconds = int(ttl_seconds)
        self._now = now

    def issue(self, claims: Mapping[str, Any]) -> str:
        """Return a signed token carrying `claims` plus `iat` and `exp`.

        Raises
        ------
        TokenVerificationError:
            `missing_email` when the claims carry no usable email.
        """
        email = claims.get("email")
        if not isinstance(email, str) or not email.strip():
            raise TokenVerificationError("missing_email")
        issued_at = int(self._now())
        payload: Dict[str, Any] = dict(claims)
        payload["iat"] = issued_at
        payload["exp"] = issued_at + self.ttl_seconds
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Dict[str, Any]:
        """Validate signature and expiry and return the claims.

        Raises
        ------
        TokenVerificationError:
            `invalid_token` for malformed or badly signed tokens,
            `expired_token` past `exp`, `missing_email` without an email claim.
        """
        if not token:
            raise TokenVerificationError("invalid_token")
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={
                    "verify_signature": True,
                    "verify_aud": False,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except JOSEError as exc:
            raise TokenVerificationError("invalid_token") from exc
        if not isinstance(claims, dict):
            raise TokenVerificationError("invalid_token")

        self._validate_temporal_claims(claims)

        email = claims.get("email")
        if not isinstance(email, str) or not email:
            raise TokenVerificationError("missing_email")
        return claims

    def _validate_temporal_claims(self, claims: Dict[str, Any]) -> None:
        now = self._now()
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            raise TokenVerificationError("invalid_token")
        if exp + MAX_CLOCK_SKEW_SECONDS < now:
            raise TokenVerificationError("expired_token")
        iat = claims.get("iat")
        if isinstance(iat, (int, float)) and iat - MAX_CLOCK_SKEW_SECONDS > now:
            raise TokenVerificationError("invalid_token")


__all__ = ["ALGORITHM", "DEFAULT_TTL_SECONDS", "TokenService", "TokenVerificationError"]
