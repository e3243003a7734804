"""Authentication dependencies for FastAPI endpoints."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.auth.providers import AuthProvider, Identity

bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_provider(request: Request) -> AuthProvider:
    """Provider installed on the application at startup."""
    return request.app.state.auth_provider


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    provider: AuthProvider = Depends(get_auth_provider),
) -> Identity:
    """
    Resolve the caller from the ``Authorization: Bearer`` header.

    Raises:
        HTTPException: 401 if the token is missing, invalid, or expired
    """
    token = credentials.credentials if credentials else None
    identity = provider.authenticate(token)

    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "UNAUTHORIZED",
                    "message": "Valid bearer token required" if token else "Bearer token required",
                }
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    return identity


def require_self(user_id: str, identity: Identity) -> None:
    """Reject access to another user's messages or conversations."""
    if user_id != identity.uid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": {
                    "code": "FORBIDDEN",
                    "message": "Cannot access another user's messages",
                }
            },
        )
