"""Redis Streams event transport.

Each topic is one stream (``<prefix>:topic:<name>``) capped at an approximate
length. Consumers of the publishing side read those streams with their own
consumer groups; this module only appends.

Usage:
    async with RedisManager.from_settings(settings) as transport:
        await transport.publish('{"subject": "New", ...}', "createVideoEvents")
"""

import logging
import time
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import redis.asyncio as redis
from redis.exceptions import RedisError

from ytsync.core.config import Settings

logger = logging.getLogger(__name__)

MAX_CONNECTIONS = 20


class RedisManager:
    """Topic publisher backed by Redis Streams.

    Publishing never raises: when Redis is unavailable the call returns False
    and the failure is logged.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        redis_db: int = 0,
        key_prefix: str = "ytsync",
        stream_maxlen: int = 100_000,
        enabled: bool = True,
        health_check_timeout: float = 5.0,
    ) -> None:
        """Initialize Redis manager.

        Args:
            redis_url: Redis connection URL (redis://localhost:6379)
            redis_db: Redis database number
            key_prefix: Prefix for all stream keys
            stream_maxlen: Approximate number of entries kept per topic stream
            enabled: When False, every publish is dropped (degraded mode)
            health_check_timeout: Socket timeout in seconds
        """
        self.redis_url = redis_url
        self.redis_db = redis_db
        self.key_prefix = key_prefix
        self.stream_maxlen = stream_maxlen
        self.enabled = enabled
        self.health_check_timeout = health_check_timeout

        self._client: redis.Redis | None = None
        self._available = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisManager":
        return cls(
            redis_url=settings.redis_url,
            redis_db=settings.redis_db,
            key_prefix=settings.redis_key_prefix,
            stream_maxlen=settings.redis_stream_maxlen,
            enabled=settings.redis_enabled,
        )

    async def connect(self) -> bool:
        """Open the client and ping the server.

        Returns:
            True when Redis answered, False when running degraded
        """
        if not self.enabled:
            return False
        if self._client is not None:
            return self._available

        client = redis.Redis.from_url(
            self.redis_url,
            db=self.redis_db,
            decode_responses=True,
            max_connections=MAX_CONNECTIONS,
            socket_timeout=self.health_check_timeout,
            socket_connect_timeout=self.health_check_timeout,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning("Redis unreachable at %s, events will be dropped: %s", self._redis_url_safe(), e)
            await client.aclose()
            return False

        self._client = client
        self._available = True
        logger.info("Connected to Redis at %s", self._redis_url_safe())
        return True

    async def disconnect(self) -> None:
        """Close the client and its connection pool."""
        client, self._client = self._client, None
        self._available = False
        if client is None:
            return
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.warning("Error closing Redis client: %s", e)

    async def __aenter__(self) -> "RedisManager":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()

    def _redis_url_safe(self) -> str:
        """Redis URL with the password masked."""
        parts = urlsplit(self.redis_url)
        if parts.password is None:
            return self.redis_url
        userinfo = f"{parts.username}:***" if parts.username else "***"
        host = parts.hostname or ""
        if parts.port:
            host = f"{host}:{parts.port}"
        return urlunsplit(parts._replace(netloc=f"{userinfo}@{host}"))

    def topic_key(self, topic: str) -> str:
        return f"{self.key_prefix}:topic:{topic}"

    async def _ensure_connected(self) -> bool:
        if self._client is None:
            return await self.connect()
        return self._available

    # Topic Operations

    async def publish(self, payload: str, topic: str) -> bool:
        """Append one event payload to a topic stream.

        Args:
            payload: Encoded event
            topic: Topic name

        Returns:
            True if the entry was appended, False otherwise
        """
        if not await self._ensure_connected():
            logger.warning("Redis unavailable, dropping event for topic %s", topic)
            return False

        try:
            await self._client.xadd(
                self.topic_key(topic),
                {"payload": payload},
                maxlen=self.stream_maxlen,
                approximate=True,
            )
            return True
        except (RedisError, OSError) as e:
            logger.error("Failed to publish event to %s: %s", topic, e)
            return False

    async def publish_all(self, payloads: Sequence[str], topic: str) -> bool:
        """Append a batch of payloads to a topic stream in one round trip.

        Returns:
            True if every entry was appended, False otherwise
        """
        if not payloads:
            return True

        if not await self._ensure_connected():
            logger.warning("Redis unavailable, dropping %d events for topic %s", len(payloads), topic)
            return False

        try:
            pipe = self._client.pipeline(transaction=False)
            key = self.topic_key(topic)
            for payload in payloads:
                pipe.xadd(key, {"payload": payload}, maxlen=self.stream_maxlen, approximate=True)
            await pipe.execute()
            logger.debug("Published %d events to %s", len(payloads), topic)
            return True
        except (RedisError, OSError) as e:
            logger.error("Failed to publish %d events to %s: %s", len(payloads), topic, e)
            return False

    async def topic_length(self, topic: str) -> int:
        """Number of entries currently retained in a topic stream."""
        if not await self._ensure_connected():
            return 0
        try:
            return await self._client.xlen(self.topic_key(topic))
        except (RedisError, OSError) as e:
            logger.error("Failed to read length of %s: %s", topic, e)
            return 0

    # Health Check

    async def health_check(self) -> dict[str, Any]:
        """Ping Redis and report latency.

        Returns:
            Dict with ``status``, ``available``, ``latency_ms`` and, on
            failure, ``error``
        """
        result: dict[str, Any] = {"status": "unhealthy", "available": False, "latency_ms": 0}

        if not await self._ensure_connected():
            return result

        started = time.perf_counter()
        try:
            await self._client.ping()
        except (RedisError, OSError) as e:
            self._available = False
            result["error"] = str(e)
            return result

        result.update(
            status="healthy",
            available=True,
            latency_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return result

    @property
    def is_available(self) -> bool:
        return self._available
