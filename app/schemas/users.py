"""User-related Pydantic schemas."""

from pydantic import BaseModel


class UserMeResponse(BaseModel):
    """Response for the authenticated user's own profile."""

    user_id: str
    role: str
    email: str | None
    display_name: str | None


class DirectoryEntry(BaseModel):
    """A user the caller may message."""

    user_id: str
    role: str
    display_name: str | None


class DirectoryResponse(BaseModel):
    """Users visible to the caller, filtered by role."""

    items: list[DirectoryEntry]
