"""Tests for the Redis shared tier."""

from unittest.mock import AsyncMock, MagicMock

import orjson
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from dmcache.cache.redis import RedisTier


@pytest.fixture
def client() -> MagicMock:
    """Mock async Redis client."""
    redis = MagicMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    redis.ping = AsyncMock(return_value=True)
    redis.aclose = AsyncMock()
    return redis


class TestRedisTier:
    """Test RedisTier."""

    async def test_set_uses_ttl(self, client: MagicMock) -> None:
        """Values are written with SETEX when a TTL is configured."""
        tier = RedisTier(client, ttl=60)
        assert await tier.set("entry", "blog|p1", {"id": "p1"})

        client.setex.assert_awaited_once_with(
            "dmcache:entry:blog|p1", 60, orjson.dumps({"id": "p1"})
        )

    async def test_set_without_ttl(self, client: MagicMock) -> None:
        """Values are written with SET without a TTL."""
        tier = RedisTier(client, ttl=None, prefix="site")
        await tier.set("list", "blog|", [1, 2])

        client.set.assert_awaited_once_with("site:list:blog|", b"[1,2]")

    async def test_get_decodes(self, client: MagicMock) -> None:
        """Stored bytes are decoded."""
        client.get.return_value = b'{"id":"p1"}'
        tier = RedisTier(client, ttl=60)

        assert await tier.get("entry", "blog|p1") == {"id": "p1"}

    async def test_get_failure_is_a_miss(self, client: MagicMock) -> None:
        """Connection errors degrade to a miss."""
        client.get.side_effect = RedisConnectionError("down")
        tier = RedisTier(client, ttl=60)

        assert await tier.get("entry", "k") is None

    async def test_undecodable_value_is_a_miss(self, client: MagicMock) -> None:
        """Garbage in Redis is ignored."""
        client.get.return_value = b"not json"
        tier = RedisTier(client, ttl=60)

        assert await tier.get("entry", "k") is None

    async def test_unserializable_value_is_skipped(self, client: MagicMock) -> None:
        """Values orjson cannot encode stay local only."""
        tier = RedisTier(client, ttl=60)

        assert not await tier.set("entry", "k", {"obj": object()})
        client.setex.assert_not_awaited()

    async def test_write_failure_is_logged(self, client: MagicMock) -> None:
        """Write errors are reported, not raised."""
        client.setex.side_effect = RedisConnectionError("down")
        tier = RedisTier(client, ttl=60)

        assert not await tier.set("entry", "k", {"a": 1})

    async def test_delete_many(self, client: MagicMock) -> None:
        """Deletes are issued in one call."""
        tier = RedisTier(client, ttl=60)
        await tier.delete("entry", ["a", "b"])

        client.delete.assert_awaited_once_with("dmcache:entry:a", "dmcache:entry:b")

    async def test_delete_nothing(self, client: MagicMock) -> None:
        """Empty deletes do not reach Redis."""
        await RedisTier(client, ttl=60).delete("entry", [])
        client.delete.assert_not_awaited()

    async def test_close_only_owned_client(self, client: MagicMock) -> None:
        """Injected clients are left open."""
        await RedisTier(client, ttl=60).close()
        client.aclose.assert_not_awaited()

        owned = RedisTier(client, ttl=60, owns_client=True)
        await owned.close()
        await owned.close()
        client.aclose.assert_awaited_once()
