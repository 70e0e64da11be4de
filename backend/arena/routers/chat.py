import os
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Profile
from ..schemas import ChatMessageIn, ChatMessageListOut, ChatMessageOut
from ..services import chat as chat_service
from ..services.lifecycle import require
from ..services.matches import get_match, load_context
from ..time_utils import coerce_utc
from .auth import get_current_user, limiter

router = APIRouter(prefix="/matches", tags=["chat"])


def chat_rate_limit() -> str:
    if (os.getenv("DISABLE_AUTH_RATE_LIMITS") or "").lower() == "true":
        return "1000/second"
    return "30/minute"


@router.get("/{mid}/chat", response_model=ChatMessageListOut)
async def list_chat(
    mid: str,
    limit: int = Query(chat_service.DEFAULT_PAGE_SIZE, ge=1, le=chat_service.MAX_PAGE_SIZE),
    before: Optional[datetime] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    await get_match(session, mid)
    items, total = await chat_service.list_messages(
        session,
        mid,
        limit=limit,
        before=coerce_utc(before),
    )
    return ChatMessageListOut(items=items, total=total)


@router.post("/{mid}/chat", response_model=ChatMessageOut, status_code=201)
@limiter.limit(chat_rate_limit)
async def post_chat(
    request: Request,
    mid: str,
    body: ChatMessageIn,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    text = chat_service.normalize_message(body.message)
    ctx = await load_context(session, mid, user.id)
    require(
        ctx.roles.is_scheduler or ctx.roles.is_participant or user.is_admin,
        "only the scheduler and participating teams can chat",
        "chat_forbidden",
    )
    msg = await chat_service.post_message(session, mid, user.id, text)
    return chat_service.message_to_out(msg, user)
