import json
import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError


def round_channel(game: str) -> str:
    return f"rounds:{game}"


class RoundEventPublisher:
    """Publishes round events so every API process can stream them as SSE."""

    def __init__(self, redis: Redis):
        self.redis = redis

    async def publish(self, game: str, event: str, payload: dict):
        message = json.dumps({"event": event, "data": payload}, default=str)
        try:
            await self.redis.publish(round_channel(game), message)
        except RedisError as e:
            # round progress never waits on the event feed
            logging.error(f"Failed to publish {game} {event}: {e}")
