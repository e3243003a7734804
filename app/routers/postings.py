"""Postings router: jobs, events, courses, and mentorships."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_identity
from app.auth.providers import Identity
from app.database import get_db
from app.models.posting import Posting
from app.schemas.postings import (
    CreatePostingRequest,
    CreatePostingResponse,
    FanoutSummary,
    ListPostingsResponse,
    PostingItem,
    PostingKind,
)
from app.services.fanout import (
    FanoutResource,
    NotificationFanout,
    SqlNotificationStore,
    SqlUserDirectory,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/postings", tags=["Postings"])

# Students are the audience for every kind of posting
AUDIENCE_ROLE = "student"

PUBLISHER_ROLES = {"teacher", "alumni"}


def _posting_item(posting: Posting) -> PostingItem:
    return PostingItem(
        id=str(posting.id),
        kind=posting.kind,
        title=posting.title,
        description=posting.description,
        details=posting.details or {},
        created_by=posting.created_by,
        created_at=posting.created_at.isoformat(),
    )


def get_fanout(db: AsyncSession = Depends(get_db)) -> NotificationFanout:
    return NotificationFanout(SqlUserDirectory(db), SqlNotificationStore(db))


# --- List Postings ---


@router.get(
    "",
    response_model=ListPostingsResponse,
    status_code=status.HTTP_200_OK,
)
async def list_postings(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    kind: PostingKind | None = Query(default=None, description="Filter by kind"),
    limit: int = Query(default=50, ge=1, le=200, description="Maximum items"),
) -> ListPostingsResponse:
    """List postings, newest first."""
    query = select(Posting)
    if kind:
        query = query.where(Posting.kind == kind)
    query = query.order_by(Posting.created_at.desc()).limit(limit)

    result = await db.execute(query)
    return ListPostingsResponse(items=[_posting_item(p) for p in result.scalars().all()])


# --- Create Posting ---


@router.post(
    "/{kind}",
    response_model=CreatePostingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_posting(
    kind: PostingKind,
    data: CreatePostingRequest,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    fanout: NotificationFanout = Depends(get_fanout),
) -> CreatePostingResponse:
    """
    Publish a posting and notify every student about it.

    The posting is committed before notifications go out, so a partial
    notification failure still reports the posting as created.
    """
    if identity.role not in PUBLISHER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": {
                    "code": "FORBIDDEN",
                    "message": "Only teachers and alumni can publish postings",
                }
            },
        )

    posting = Posting(
        kind=kind,
        title=data.title,
        description=data.description,
        details=data.details,
        created_by=identity.uid,
        created_at=datetime.now(timezone.utc),
    )
    db.add(posting)
    await db.commit()
    # Serialize before fan-out; a failed notification insert rolls the session back
    item = _posting_item(posting)

    result = await fanout.fan_out(
        FanoutResource(
            id=item.id,
            title=item.title,
            created_by=item.created_by,
            details=item.details,
        ),
        kind=kind,
        audience_role=AUDIENCE_ROLE,
    )
    if result.error is not None:
        logger.warning("Posting %s: %s", item.id, result.error.message)

    return CreatePostingResponse(
        posting=item,
        notifications=FanoutSummary(created=result.created_count, failed=result.failed),
    )
