from unittest.mock import MagicMock

import redis

from motomarket.core.rate_limit import MemoryBackend, RateLimiter, RedisBackend, rate_limiter


def test_memory_window_blocks_then_resets():
    limiter = RateLimiter(MemoryBackend(), max_requests=2, window_seconds=60)

    assert limiter.check("account:1", now=1000) == (True, 0)
    assert limiter.check("account:1", now=1001) == (True, 0)
    assert limiter.check("account:1", now=1010) == (False, 50)
    # Other subjects have their own budget
    assert limiter.check("account:2", now=1010) == (True, 0)
    # A new window starts once the old one has passed
    assert limiter.check("account:1", now=1061) == (True, 0)


def test_redis_backend_counts_in_shared_window():
    client = MagicMock()
    pipe = client.pipeline.return_value
    pipe.execute.return_value = [3, True]
    limiter = RateLimiter(RedisBackend(client), max_requests=2, window_seconds=60)

    allowed, retry_after = limiter.check("account:7", now=130)

    assert allowed is False
    assert retry_after == 50
    pipe.incr.assert_called_once_with("rl:v1:account:7:2")
    pipe.expire.assert_called_once_with("rl:v1:account:7:2", 61)


def test_redis_outage_lets_requests_through():
    client = MagicMock()
    client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
    limiter = RateLimiter(RedisBackend(client), max_requests=1, window_seconds=60)

    assert limiter.check("account:7", now=10) == (True, 0)


def test_write_endpoints_return_429(client, register, create_listing, monkeypatch):
    headers, _ = register()
    listing = create_listing(headers)
    monkeypatch.setattr(rate_limiter, "max_requests", 2)
    path = f"/api/motos/{listing['id']}/favorito"

    # create_listing already used one request of the budget
    assert client.post(path, headers=headers).status_code == 200
    response = client.post(path, headers=headers)

    assert response.status_code == 429
    assert response.json()["error"] == "RateLimited"
    assert int(response.headers["Retry-After"]) == response.json()["retry_after"]
    # Reads are not limited
    assert client.get("/api/motos").status_code == 200
