"""JWT token creation and verification.

Learn: tokens here are long-lived bearer credentials, NOT short-lived
access tokens. The payload is exactly {email, iat} and there is never an
"exp" claim — a token stays valid until it is revoked in the token store.
That is a deliberate posture: revocation is the only way a token dies.

iat is seconds since epoch with a fractional part. Two tokens for the same
email issued inside the same second therefore still differ, which keeps
the token string usable as a primary key.
"""

import time

import jwt

from tokenvault.config import settings
from tokenvault.errors import AuthenticationError, ConfigurationError


def _secret() -> str:
    if not settings.jwt_secret:
        raise ConfigurationError("JWT secret is not configured")
    return settings.jwt_secret


def create_token(email: str) -> str:
    """Sign a new bearer token for an email. No expiry."""
    payload = {
        "email": email,
        "iat": time.time(),
    }
    return jwt.encode(payload, _secret(), algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> str:
    """Check the signature and return the email inside.

    Raises AuthenticationError("Invalid token") on any decode failure,
    ConfigurationError if no secret is configured.
    """
    secret = _secret()
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            # iat is informational; sub-second values must not trip the
            # "not yet valid" check.
            options={"verify_iat": False},
        )
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")

    email = payload.get("email")
    if not isinstance(email, str) or not email:
        raise AuthenticationError("Invalid token")
    return email
