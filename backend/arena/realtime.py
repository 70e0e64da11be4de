import json
import logging
import os

import redis.asyncio as redis


logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
redis_client = redis.from_url(REDIS_URL, decode_responses=True)


def chat_channel(mid: str) -> str:
    return f"match:{mid}:chat"


async def broadcast(channel: str, message: dict) -> None:
    """Publish a message to all subscribers of ``channel``."""
    await redis_client.publish(channel, json.dumps(message))


async def publish_chat_event(mid: str, message_id: str) -> None:
    """Announce a new chat row; subscribers re-read it from the database.

    Delivery is best effort: a Redis outage is logged and the write that
    produced the message stands.
    """
    try:
        await broadcast(chat_channel(mid), {"type": "chat", "id": message_id})
    except (redis.RedisError, OSError):
        logger.exception("Failed to publish chat event for match %s", mid)
