"""Dispatch guard - one in-flight AI dispatch per conversation.

Each dispatch adds a token to a Redis set keyed by conversation. The add and
the count run in a single MULTI/EXEC transaction, so two workers racing on
the same conversation see different counts and only one proceeds. The set
expires after a TTL so a crashed worker cannot block a conversation forever.
"""
from contextlib import contextmanager
from typing import Iterator
import uuid

import redis

from chatsync.errors import ConflictError
from chatsync.middleware.logging import get_logger

logger = get_logger()


class DispatchInProgress(ConflictError):
    """Raised when a conversation already has a dispatch in flight."""
    code = "dispatch_in_progress"


class DispatchGuard:
    """Caps concurrent dispatches per conversation across workers."""

    KEY_PREFIX = "dispatch:inflight"

    def __init__(self, redis_client: redis.Redis, max_in_flight: int = 1, ttl_seconds: int = 300):
        self.redis = redis_client
        self.max_in_flight = max_in_flight
        self.ttl_seconds = ttl_seconds

    def key_for(self, conversation_id: str) -> str:
        return f"{self.KEY_PREFIX}:{conversation_id}"

    def in_flight_count(self, conversation_id: str) -> int:
        return self.redis.scard(self.key_for(conversation_id)) or 0

    def acquire(self, conversation_id: str) -> str:
        """
        Claim a dispatch slot for ``conversation_id``.

        Returns:
            Token to pass to release()

        Raises:
            DispatchInProgress: The conversation is already at its limit
        """
        token = str(uuid.uuid4())
        key = self.key_for(conversation_id)

        pipe = self.redis.pipeline(transaction=True)
        pipe.sadd(key, token)
        pipe.expire(key, self.ttl_seconds)
        pipe.scard(key)
        _, _, in_flight = pipe.execute()

        if in_flight > self.max_in_flight:
            self.redis.srem(key, token)
            logger.info("dispatch_rejected", conversation_id=conversation_id, in_flight=in_flight - 1)
            raise DispatchInProgress(
                "A message is already being processed for this conversation",
                {"conversation_id": conversation_id}
            )

        return token

    def release(self, conversation_id: str, token: str) -> None:
        self.redis.srem(self.key_for(conversation_id), token)

    @contextmanager
    def dispatch_context(self, conversation_id: str) -> Iterator[str]:
        """
        Hold a dispatch slot while the body runs.

        Usage:
            with guard.dispatch_context(conversation_id):
                await gateway.exchange(...)
        """
        token = self.acquire(conversation_id)
        try:
            yield token
        finally:
            self.release(conversation_id, token)


def build_dispatch_guard(redis_url: str, ttl_seconds: int = 300) -> DispatchGuard:
    return DispatchGuard(redis.from_url(redis_url), ttl_seconds=ttl_seconds)
