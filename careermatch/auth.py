"""
Bearer token verification for the HTTP surface.

One TokenVerifier implementation is selected by configuration. The shared
secret HS256 verifier is the only one provided.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from jose import JWTError, jwt

from .errors import AuthenticationFailed

logger = logging.getLogger(__name__)


class TokenVerifier(ABC):
    """Turns a bearer token into a user id."""

    @abstractmethod
    def verify(self, token: str) -> str:
        """Return the user id for a valid token or raise AuthenticationFailed."""


class JWTSecretVerifier(TokenVerifier):
    """Verify tokens signed with a shared secret; the user id is the 'sub' claim."""

    def __init__(self, secret: str, algorithm: str = "HS256", audience: Optional[str] = None):
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience or None

    def verify(self, token: str) -> str:
        if not self.secret:
            # Misconfiguration, not a client error
            raise RuntimeError("JWT secret is not configured")

        options = {"verify_aud": self.audience is not None}
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm],
                                 audience=self.audience, options=options)
        except JWTError as e:
            logger.debug("JWT verification failed: %s", e)
            raise AuthenticationFailed("Invalid or expired token") from e

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationFailed("Invalid token claims")
        return str(user_id)


def bearer_token(header: Optional[str]) -> str:
    """Extract the token from an Authorization header value."""
    if not header:
        raise AuthenticationFailed("No token provided")

    parts = header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthenticationFailed("No token provided")
    return parts[1].strip()
