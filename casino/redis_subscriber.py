import json
import logging
from typing import AsyncGenerator

from redis.asyncio import Redis

from casino.converter import DataConverter
from casino.redis_publisher import round_channel
from casino.services.round_engine import RoundEngine

HEART_BEAT = 15

data_converter = DataConverter()


class RedisSubscriber:
    """Redis subscriber class to handle SSE events of one game mode."""

    def __init__(self, engine: RoundEngine):
        self.engine: RoundEngine = engine

    def snapshot_message(self) -> str:
        snapshot = data_converter.convert_round_state(self.engine)
        payload = json.dumps(snapshot.model_dump(mode="json"))
        return f"event: round-state\ndata: {payload}\n\n"

    async def event_generator(self, redis: Redis) -> AsyncGenerator[str, None]:
        """Event generator to handle SSE events.

        The first message is the current round snapshot; after that every
        event published on the game's channel is relayed as is. A comment line
        is sent when nothing arrives for ``HEART_BEAT`` seconds.

        Args:
            redis (Redis): Redis connection object.
        """
        channel = round_channel(self.engine.game)
        pubsub = redis.pubsub()
        await pubsub.subscribe(channel)
        yield self.snapshot_message()
        try:
            while True:
                msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=HEART_BEAT)
                if msg is None:
                    yield ": keep-alive\n\n"
                    continue
                if msg["type"] != "message":
                    continue
                try:
                    message = json.loads(msg["data"])
                except (TypeError, ValueError):
                    logging.warning(f"Dropping malformed message on {channel}")
                    continue
                payload = json.dumps(message.get("data", {}))
                logging.debug(f"Payload: {payload}")
                yield f"event: {message.get('event', 'message')}\ndata: {payload}\n\n"
        finally:
            logging.info(f"Unsubscribing from {channel}")
            await pubsub.unsubscribe(channel)
            await pubsub.close()
