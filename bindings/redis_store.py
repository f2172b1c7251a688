"""
Redis-backed binding store.

Keys:   wechat:binding:<user_id>
Values: Binding as JSON
Expiry: optional TTL per key; Redis drops expired bindings on its own.
"""

import logging
from typing import Optional

from pydantic import ValidationError
from redis.asyncio import Redis

from bindings.base import BindingStore
from bindings.types import Binding

logger = logging.getLogger(__name__)

KEY_PREFIX = "wechat:binding:"


class RedisBindingStore(BindingStore):
    """Binding store on a shared Redis, so any gateway replica sees the same state."""

    def __init__(self, redis_conn: Redis, ttl_seconds: int = 0):
        """
        Args:
            redis_conn: redis.asyncio client (decode_responses=True)
            ttl_seconds: Binding lifetime; 0 keeps bindings until unbind
        """
        self.redis = redis_conn
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 0) -> "RedisBindingStore":
        return cls(Redis.from_url(url, decode_responses=True), ttl_seconds=ttl_seconds)

    @staticmethod
    def _key(user_id: str) -> str:
        return f"{KEY_PREFIX}{user_id}"

    async def get(self, user_id: str) -> Optional[Binding]:
        raw = await self.redis.get(self._key(user_id))
        if raw is None:
            return None
        try:
            return Binding.model_validate_json(raw)
        except ValidationError as e:
            # Unreadable record counts as unbound; the user can bind again
            logger.warning(
                f"Discarding unreadable binding for {user_id}: {e}",
                extra={"user_id": user_id},
            )
            return None

    async def set(self, binding: Binding) -> None:
        await self.redis.set(
            self._key(binding.user_id),
            binding.model_dump_json(),
            ex=self.ttl_seconds or None,
        )

    async def delete(self, user_id: str) -> bool:
        return await self.redis.delete(self._key(user_id)) > 0

    async def close(self) -> None:
        await self.redis.aclose()
