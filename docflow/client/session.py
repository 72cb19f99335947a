"""
Explicit user session held by the API client.

Created by ``DocflowClient.login`` and dropped by ``logout``. Components
that need the user id or role receive the session object; nothing looks it
up globally.

``user_id`` and ``role`` come from the token's second segment decoded
WITHOUT signature verification. They drive UI personalization only (which
menu items to show); the backend re-verifies the token on every request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import jwt

from docflow.core.enums import UserRole

logger = logging.getLogger(__name__)


def unverified_claims(token: str) -> dict:
    """Read the JWT claims without verifying the signature. ``{}`` on junk."""
    try:
        return jwt.decode(token or "", options={"verify_signature": False})
    except jwt.InvalidTokenError:
        logger.debug("Token payload is not decodable")
        return {}


@dataclass(frozen=True)
class UserSession:
    token: str
    user_id: str | None = None
    role: str | None = None
    email: str | None = None

    @classmethod
    def from_token(cls, token: str, email: str | None = None) -> "UserSession":
        claims = unverified_claims(token)
        return cls(
            token=token,
            user_id=claims.get("sub"),
            role=claims.get("role"),
            email=email or claims.get("email"),
        )

    @property
    def is_admin(self) -> bool:
        """Show admin menu items. Not an authorization decision."""
        return self.role == UserRole.ADMIN.value

    @property
    def auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}
