import logging
from typing import Optional

import redis

from workflow.events import Event

logger = logging.getLogger(__name__)

GLOBAL_CHANNEL = 'global:announcements'


def tournament_channel(tournament_id: str) -> str:
    return f"tournament:{tournament_id}:events"


def create_redis_client(redis_url: str) -> redis.Redis:
    return redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5
    )


class EventPublisher:
    """
    Publishes domain events after the corresponding write has committed.

    Delivery is best effort: a missing or unreachable Redis never fails the
    business operation that produced the event.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client

    def publish(self, event: Event) -> bool:
        if not self.redis:
            logger.debug(f"Events disabled: dropped {event.type} for {event.tournament_id}")
            return False

        payload = event.to_json()
        try:
            self.redis.publish(tournament_channel(event.tournament_id), payload)
            self.redis.publish(GLOBAL_CHANNEL, payload)
            return True
        except redis.exceptions.RedisError as e:
            logger.error(f"Failed to publish {event.type} for {event.tournament_id}: {e}")
            return False
