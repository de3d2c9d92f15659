"""
Session Verification

Access tokens are issued by the hosted backend; we only verify them.
A token is an HS256 JWT signed with the project secret, audience
"authenticated", whose `sub` claim is the user id.

Every advisor request starts here. A missing or invalid session aborts
the request with 401 before any data is read.
"""

from typing import Optional

import jwt
import structlog
from pydantic import BaseModel

from finbuddy.config import AuthSettings, get_settings

logger = structlog.get_logger(__name__)


class AuthenticationError(Exception):
    """The request carries no valid session."""
    pass


class AuthenticatedUser(BaseModel):
    """Identity extracted from a verified access token."""

    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None


class SessionVerifier:
    """Verifies bearer tokens and extracts the user id."""

    def __init__(self, settings: Optional[AuthSettings] = None):
        self._settings = settings or get_settings().auth

    def verify(self, authorization: Optional[str]) -> AuthenticatedUser:
        """
        Verify an Authorization header value.

        Raises:
            AuthenticationError: "No authorization header" when absent,
                "Unauthorized" for anything that does not verify.
        """
        if not authorization:
            raise AuthenticationError("No authorization header")

        scheme, _, token = authorization.strip().partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            logger.warning("auth_bad_scheme")
            raise AuthenticationError("Unauthorized")

        return self.verify_token(token.strip())

    def verify_token(self, token: str) -> AuthenticatedUser:
        try:
            claims = jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.jwt_algorithm],
                audience=self._settings.jwt_audience,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("auth_token_expired")
            raise AuthenticationError("Unauthorized")
        except jwt.InvalidTokenError as e:
            logger.warning("auth_token_invalid", error=str(e))
            raise AuthenticationError("Unauthorized")

        user_id = str(claims.get("sub") or "")
        if not user_id:
            raise AuthenticationError("Unauthorized")

        return AuthenticatedUser(
            user_id=user_id,
            email=claims.get("email"),
            role=claims.get("role"),
        )
