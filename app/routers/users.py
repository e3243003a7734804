"""Users router for the caller's profile and the directory."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_identity
from app.auth.providers import Identity
from app.database import get_db
from app.models.user import User
from app.schemas.users import DirectoryEntry, DirectoryResponse, UserMeResponse
from app.services.conversations import directory_roles_for
from app.services.fanout import SqlUserDirectory

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get(
    "/me",
    response_model=UserMeResponse,
    status_code=status.HTTP_200_OK,
)
async def get_current_user_profile(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> UserMeResponse:
    """
    Get the authenticated user's profile.

    Callers without a directory entry get their token identity only.
    """
    user = await db.get(User, identity.uid)

    return UserMeResponse(
        user_id=identity.uid,
        role=identity.role,
        email=user.email if user else None,
        display_name=user.display_name if user else None,
    )


@router.get(
    "/directory",
    response_model=DirectoryResponse,
    status_code=status.HTTP_200_OK,
)
async def get_directory(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> DirectoryResponse:
    """
    List the users the caller may message.

    Students see teachers, teachers see students, alumni see both.
    """
    users = await SqlUserDirectory(db).find_by_roles(directory_roles_for(identity.role))
    return DirectoryResponse(
        items=[
            DirectoryEntry(user_id=u.id, role=u.role, display_name=u.display_name)
            for u in users
            if u.id != identity.uid
        ]
    )
