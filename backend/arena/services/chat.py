"""Append-only match chat, including lifecycle system messages."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import CHAT_MESSAGE_MAX_LENGTH, SYSTEM_PROFILE_ID
from ..db import get_sessionmaker
from ..exceptions import http_problem
from ..models import MatchChatMessage, Profile
from ..realtime import publish_chat_event
from ..schemas import ChatMessageOut
from ..time_utils import coerce_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def normalize_message(text: str | None) -> str:
    """Trim ``text`` and reject empty or oversized messages."""

    cleaned = (text or "").strip()
    if not cleaned:
        raise http_problem(
            status_code=400,
            detail="message must not be empty",
            code="chat_message_required",
        )
    if len(cleaned) > CHAT_MESSAGE_MAX_LENGTH:
        raise http_problem(
            status_code=400,
            detail=f"message must be at most {CHAT_MESSAGE_MAX_LENGTH} characters",
            code="chat_message_too_long",
        )
    return cleaned


def message_to_out(msg: MatchChatMessage, profile: Profile | None) -> ChatMessageOut:
    if msg.is_system:
        username, display_name, avatar = "system", "System", None
    elif profile is not None:
        username, display_name, avatar = (
            profile.username,
            profile.display_name,
            profile.avatar_url,
        )
    else:
        username = display_name = avatar = None
    return ChatMessageOut(
        id=msg.id,
        matchId=msg.match_id,
        profileId=msg.profile_id,
        username=username,
        displayName=display_name,
        avatarUrl=avatar,
        message=msg.message,
        isSystem=bool(msg.is_system),
        createdAt=coerce_utc(msg.created_at),
    )


async def post_message(
    session: AsyncSession, match_id: str, profile_id: str, text: str
) -> MatchChatMessage:
    message = normalize_message(text)
    msg = MatchChatMessage(
        id=uuid.uuid4().hex,
        match_id=match_id,
        profile_id=profile_id,
        message=message,
        is_system=False,
        created_at=utcnow(),
    )
    session.add(msg)
    await session.commit()
    await publish_chat_event(match_id, msg.id)
    return msg


async def post_system_message(match_id: str, text: str) -> MatchChatMessage | None:
    """Write a lifecycle announcement into the match chat.

    Runs after the operation it describes has committed, in a session of its
    own so the caller's objects stay loaded. A failure is logged and ``None``
    returned instead of undoing that operation.
    """

    msg = MatchChatMessage(
        id=uuid.uuid4().hex,
        match_id=match_id,
        profile_id=SYSTEM_PROFILE_ID,
        message=text,
        is_system=True,
        created_at=utcnow(),
    )
    try:
        async with get_sessionmaker()() as session:
            session.add(msg)
            await session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to write system message for match %s", match_id)
        return None
    await publish_chat_event(match_id, msg.id)
    return msg


async def list_messages(
    session: AsyncSession,
    match_id: str,
    *,
    limit: int = DEFAULT_PAGE_SIZE,
    before: datetime | None = None,
) -> tuple[list[ChatMessageOut], int]:
    """Return the newest ``limit`` messages (oldest first) and the total count."""

    limit = max(1, min(limit, MAX_PAGE_SIZE))
    stmt = (
        select(MatchChatMessage, Profile)
        .outerjoin(Profile, Profile.id == MatchChatMessage.profile_id)
        .where(MatchChatMessage.match_id == match_id)
    )
    if before is not None:
        stmt = stmt.where(MatchChatMessage.created_at < before)
    stmt = stmt.order_by(
        MatchChatMessage.created_at.desc(), MatchChatMessage.id.desc()
    ).limit(limit)
    rows = (await session.execute(stmt)).all()

    total = (
        await session.execute(
            select(func.count())
            .select_from(MatchChatMessage)
            .where(MatchChatMessage.match_id == match_id)
        )
    ).scalar_one()

    items = [message_to_out(msg, profile) for msg, profile in reversed(rows)]
    return items, total


async def fetch_message_with_profile(
    session: AsyncSession, message_id: str
) -> ChatMessageOut | None:
    row = (
        await session.execute(
            select(MatchChatMessage, Profile)
            .outerjoin(Profile, Profile.id == MatchChatMessage.profile_id)
            .where(MatchChatMessage.id == message_id)
        )
    ).first()
    if row is None:
        return None
    msg, profile = row
    return message_to_out(msg, profile)
