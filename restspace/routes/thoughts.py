"""
Thought Routes - the wall

This module handles the feed endpoints:
- GET /api/thoughts: Newest thoughts first, paged with ?before=<id>
- POST /api/thoughts: Post a thought (signed-in users)
- PATCH /api/thoughts/{id}: Edit one of your own thoughts

Reading is open to everyone. Writing needs a session cookie; a 401 tells
the client to run a passkey ceremony and retry.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from restspace.config import settings
from restspace.database import get_db
from restspace.dependencies import get_current_user_id, get_optional_user_id
from restspace.limiter import limiter
from restspace.schemas import ThoughtCreate, ThoughtUpdate
from restspace.services.thoughts import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, ThoughtStore, serialize_thought


# Router with /api/thoughts prefix
router = APIRouter(prefix="/api/thoughts", tags=["thoughts"])


@router.get("")
async def list_thoughts(
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    before: int | None = Query(None),  # Load older thoughts: ?before=<oldest id on screen>
    viewer_id: str | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    The feed, newest first.

    Args:
        limit: Page size (1-100, default 30)
        before: Cursor for infinite scroll; only thoughts with a lower id
        viewer_id: Signed-in user, if any (used to flag their own thoughts)

    Returns:
        List of thought dicts (see serialize_thought)
    """
    thoughts = await ThoughtStore(db).list_thoughts(limit=limit, before=before)
    return [serialize_thought(t, viewer_id) for t in thoughts]


@router.post("")
@limiter.limit(settings.POST_RATE_LIMIT)
async def post_thought(
    request: Request,
    body: ThoughtCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Post a new thought.

    Content is trimmed and must be 1-2000 characters and pass moderation.
    Unknown font, category or color values fall back to the defaults.

    Returns:
        The created thought

    Raises:
        401 without a valid session, 400 InvalidContent, 429 when rate limited
    """
    thought = await ThoughtStore(db).create_thought(
        body.content, body.font, body.category, body.color, user_id
    )
    return serialize_thought(thought, user_id)


@router.patch("/{thought_id}")
async def edit_thought(
    thought_id: int,
    body: ThoughtUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Replace the text of one of your own thoughts.

    Raises:
        401 without a valid session, 400 InvalidContent,
        404 ThoughtNotFound (also for other people's thoughts)
    """
    thought = await ThoughtStore(db).update_thought(thought_id, body.content, user_id)
    return serialize_thought(thought, user_id)
