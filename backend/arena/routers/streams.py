import asyncio
import json
import logging
from contextlib import suppress

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import redis.asyncio as redis

from .. import realtime
from ..db import get_sessionmaker
from ..services.chat import fetch_message_with_profile


logger = logging.getLogger(__name__)

router = APIRouter()


async def _load_chat_payload(message_id: str) -> dict | None:
    async with get_sessionmaker()() as session:
        message = await fetch_message_with_profile(session, message_id)
    if message is None:
        return None
    return {"type": "chat", "message": message.model_dump(mode="json")}


@router.websocket("/matches/{mid}/chat/stream")
async def chat_stream(ws: WebSocket, mid: str) -> None:
    """Relay new chat messages for a match.

    Events on the channel only carry the message id; every event is re-read
    from the database with its author's profile before it is sent.
    """
    channel = realtime.chat_channel(mid)
    try:
        async with realtime.redis_client.pubsub() as pubsub:
            # Subscribed before the handshake completes.
            await pubsub.subscribe(channel)
            await ws.accept()

            async def sender() -> None:
                try:
                    async for msg in pubsub.listen():
                        if msg.get("type") != "message":
                            continue
                        event = json.loads(msg["data"])
                        if event.get("type") != "chat" or not event.get("id"):
                            continue
                        payload = await _load_chat_payload(event["id"])
                        if payload is None:
                            logger.warning("Chat message %s vanished before delivery", event["id"])
                            continue
                        await ws.send_json(payload)
                except redis.ConnectionError:
                    await ws.close()

            send_task = asyncio.create_task(sender())
            try:
                while True:
                    await ws.receive_text()
            except WebSocketDisconnect:
                pass
            finally:
                send_task.cancel()
                with suppress(asyncio.CancelledError):
                    await send_task
                await pubsub.unsubscribe(channel)
    except redis.ConnectionError:
        await ws.close()
