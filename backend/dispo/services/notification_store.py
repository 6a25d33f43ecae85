"""
Notification storage — owns notifications and per-user email preferences.

The NotificationService only orchestrates; persistence lives behind the
NotificationStorage protocol:

- MemoryStorage: in-process list + dict (development, tests)
- RedisStorage: redis.asyncio, JSON documents plus a pending index

Notifications are never deleted; processed ones stay for history.
"""

from __future__ import annotations

import logging
from typing import Protocol

import redis.asyncio as aioredis

from dispo.schemas.notifications import Notification, UserPreferences

logger = logging.getLogger(__name__)


class NotificationStorage(Protocol):
    async def add_notification(self, notification: Notification) -> None: ...

    async def update_notification(self, notification: Notification) -> None: ...

    async def get_pending_notifications(self) -> list[Notification]: ...

    async def get_user_preferences(self, recipient: str) -> UserPreferences | None: ...

    async def update_user_preferences(self, recipient: str, preferences: UserPreferences) -> None: ...

    async def aclose(self) -> None: ...


class MemoryStorage:
    def __init__(self):
        self.notifications: list[Notification] = []
        self.user_preferences: dict[str, UserPreferences] = {}

    async def add_notification(self, notification: Notification) -> None:
        self.notifications.append(notification.model_copy(deep=True))

    async def update_notification(self, notification: Notification) -> None:
        for i, stored in enumerate(self.notifications):
            if stored.id == notification.id:
                self.notifications[i] = notification.model_copy(deep=True)
                return

    async def get_pending_notifications(self) -> list[Notification]:
        return [n.model_copy(deep=True) for n in self.notifications if not n.processed]

    async def get_user_preferences(self, recipient: str) -> UserPreferences | None:
        return self.user_preferences.get(recipient)

    async def update_user_preferences(self, recipient: str, preferences: UserPreferences) -> None:
        self.user_preferences[recipient] = preferences

    # Test helpers

    def clear(self) -> None:
        self.notifications = []
        self.user_preferences.clear()

    def get_all_notifications(self) -> list[Notification]:
        return self.notifications

    async def aclose(self) -> None:
        return None


class RedisStorage:
    """Redis-backed storage.

    Layout (prefix ``dispo:``):
      notification:{id}        JSON document
      notifications:all        list of ids in insertion order
      notifications:pending    sorted set of unprocessed ids, scored by insertion sequence
      notifications:seq        insertion counter
      preferences              hash recipient -> JSON preferences
    """

    def __init__(self, redis: aioredis.Redis, prefix: str = "dispo:"):
        self.redis = redis
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "dispo:") -> RedisStorage:
        return cls(aioredis.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, suffix: str) -> str:
        return f"{self.prefix}{suffix}"

    async def add_notification(self, notification: Notification) -> None:
        seq = await self.redis.incr(self._key("notifications:seq"))
        pipe = self.redis.pipeline()
        pipe.set(self._key(f"notification:{notification.id}"), notification.model_dump_json())
        pipe.rpush(self._key("notifications:all"), notification.id)
        if not notification.processed:
            pipe.zadd(self._key("notifications:pending"), {notification.id: seq})
        await pipe.execute()

    async def update_notification(self, notification: Notification) -> None:
        key = self._key(f"notification:{notification.id}")
        if not await self.redis.exists(key):
            return
        pipe = self.redis.pipeline()
        pipe.set(key, notification.model_dump_json())
        if notification.processed:
            pipe.zrem(self._key("notifications:pending"), notification.id)
        await pipe.execute()

    async def _load(self, ids: list[str]) -> list[Notification]:
        if not ids:
            return []
        docs = await self.redis.mget([self._key(f"notification:{i}") for i in ids])
        return [Notification.model_validate_json(doc) for doc in docs if doc is not None]

    async def get_pending_notifications(self) -> list[Notification]:
        ids = await self.redis.zrange(self._key("notifications:pending"), 0, -1)
        return [n for n in await self._load(ids) if not n.processed]

    async def get_all_notifications(self) -> list[Notification]:
        ids = await self.redis.lrange(self._key("notifications:all"), 0, -1)
        return await self._load(ids)

    async def get_user_preferences(self, recipient: str) -> UserPreferences | None:
        raw = await self.redis.hget(self._key("preferences"), recipient)
        if raw is None:
            return None
        return UserPreferences.model_validate_json(raw)

    async def update_user_preferences(self, recipient: str, preferences: UserPreferences) -> None:
        await self.redis.hset(self._key("preferences"), recipient, preferences.model_dump_json())

    async def aclose(self) -> None:
        await self.redis.aclose()


def build_storage(kind: str, redis_url: str) -> NotificationStorage:
    if kind == "memory":
        return MemoryStorage()
    if kind == "redis":
        return RedisStorage.from_url(redis_url)
    raise ValueError(f"Unknown notification storage: {kind!r}")
