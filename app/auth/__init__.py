"""Authentication utilities for the Alumni Connect API."""

from app.auth.jwt import create_access_token, decode_token
from app.auth.providers import (
    AuthProvider,
    FixedIdentityAuth,
    Identity,
    TokenVerifyingAuth,
    build_auth_provider,
)

__all__ = [
    "AuthProvider",
    "FixedIdentityAuth",
    "Identity",
    "TokenVerifyingAuth",
    "build_auth_provider",
    "create_access_token",
    "decode_token",
]
