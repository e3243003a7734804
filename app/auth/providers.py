"""Identity providers that turn a bearer token into ``{uid, role}``.

One provider is chosen at startup by ``build_auth_provider``; request
handling never inspects the environment.
"""

from dataclasses import dataclass
from typing import Protocol

from app.auth.jwt import decode_token
from app.config import Settings
from app.models.user import USER_ROLES


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""

    uid: str
    role: str


class AuthProvider(Protocol):
    def authenticate(self, token: str | None) -> Identity | None:
        """Return the caller's identity, or None if the token is not acceptable."""
        ...


class TokenVerifyingAuth:
    """Verifies HS256 access tokens issued by ``create_access_token``."""

    def authenticate(self, token: str | None) -> Identity | None:
        if not token:
            return None
        payload = decode_token(token)
        if not payload or payload.get("type") != "access":
            return None
        uid = payload.get("sub")
        role = payload.get("role")
        if not uid or role not in USER_ROLES:
            return None
        return Identity(uid=uid, role=role)


class FixedIdentityAuth:
    """Accepts every request as one configured user. Development and tests only."""

    def __init__(self, identity: Identity):
        self.identity = identity

    def authenticate(self, token: str | None) -> Identity | None:
        return self.identity


def build_auth_provider(settings: Settings) -> AuthProvider:
    """Select the provider named by ``settings.auth_mode``."""
    if settings.auth_mode == "fixed":
        return FixedIdentityAuth(
            Identity(uid=settings.fixed_identity_uid, role=settings.fixed_identity_role)
        )
    return TokenVerifyingAuth()
