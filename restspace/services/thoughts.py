"""
Thought Store - the wall's posts

Reading, posting and editing thoughts. The feed is reverse-chronological
and paged with an id cursor ("give me what came before id N"), which stays
stable while new posts keep arriving at the top.
"""

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from restspace.database import storage_errors
from restspace.exceptions import InvalidContent, ThoughtNotFound
from restspace.models import Thought
from restspace.utils.moderation import contains_hate_speech
from restspace.utils.validators import clean_content, normalize_category, normalize_color, normalize_font


DEFAULT_PAGE_SIZE = 30
MAX_PAGE_SIZE = 100


def _checked_content(content) -> str:
    trimmed = clean_content(content)
    if contains_hate_speech(trimmed):
        raise InvalidContent("Content not allowed")
    return trimmed


def serialize_thought(thought: Thought, viewer_id: str | None = None) -> dict:
    """
    Shape a thought for the API.

    The author id is never exposed; the viewer only learns whether a post is
    their own (and therefore editable).
    """
    return {
        "id": thought.id,
        "content": thought.content,
        "font": thought.font,
        "category": thought.category,
        "color": thought.color,
        "created_at": thought.created_at.isoformat() + "Z",
        "is_mine": viewer_id is not None and thought.user_id == viewer_id,
    }


class ThoughtStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_thoughts(self, limit: int = DEFAULT_PAGE_SIZE, before: int | None = None) -> list[Thought]:
        """
        Newest thoughts first.

        Args:
            limit: Page size, clamped to 1..MAX_PAGE_SIZE
            before: Only return thoughts with an id lower than this (older page)
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        query = select(Thought)
        if before is not None:
            query = query.filter(Thought.id < before)
        query = query.order_by(desc(Thought.created_at), desc(Thought.id)).limit(limit)

        with storage_errors("thought list"):
            result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_thought(self, content, font, category, color, user_id: str) -> Thought:
        """
        Post a thought for user_id and commit it.

        Raises:
            InvalidContent: empty, too long, or blocked by moderation
        """
        thought = Thought(
            content=_checked_content(content),
            font=normalize_font(font),
            category=normalize_category(category),
            color=normalize_color(color),
            user_id=user_id,
        )
        self.db.add(thought)
        with storage_errors("thought create"):
            await self.db.commit()
            await self.db.refresh(thought)  # Refresh to get the generated id
        return thought

    async def update_thought(self, thought_id: int, content, user_id: str) -> Thought:
        """
        Replace the text of one of user_id's thoughts.

        Someone else's thought is reported exactly like a missing one.

        Raises:
            InvalidContent: new content fails the same checks as a new post
            ThoughtNotFound: no such thought, or it belongs to someone else
        """
        new_content = _checked_content(content)

        with storage_errors("thought lookup"):
            result = await self.db.execute(
                select(Thought).filter(Thought.id == thought_id, Thought.user_id == user_id)
            )
        thought = result.scalars().first()
        if thought is None:
            raise ThoughtNotFound()

        thought.content = new_content
        with storage_errors("thought update"):
            await self.db.commit()
        return thought
