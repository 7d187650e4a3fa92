"""Tests for the Redis rate limiter middleware."""
from unittest import mock

import redis
from fastapi import FastAPI
from fastapi.testclient import TestClient

from redis_rate_limiter import RedisRateLimiter, user_key_from_header


def make_client(redis_client, ip_limit=5, user_limit=2):
    app = FastAPI()
    app.add_middleware(
        RedisRateLimiter,
        redis_client=redis_client,
        requests_per_minute_ip=ip_limit,
        requests_per_minute_user=user_limit
    )

    @app.get("/")
    async def root():
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return TestClient(app)


def redis_with_counts(*counts):
    """Fake Redis whose pipeline reports the given window counts in order."""
    client = mock.MagicMock()
    client.pipeline.return_value.execute.side_effect = [[0, count, 1, True] for count in counts]
    return client


def test_request_under_limit_passes():
    client = make_client(redis_with_counts(0))

    response = client.get("/")

    assert response.status_code == 200


def test_ip_limit_exceeded():
    client = make_client(redis_with_counts(5), ip_limit=5)

    response = client.get("/")

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"
    assert response.json()["error"] == "Too Many Requests"


def test_user_limit_exceeded():
    redis_client = redis_with_counts(0, 2)
    client = make_client(redis_client, user_limit=2)

    response = client.get("/", headers={"Authorization": "Bearer secret-token"})

    assert response.status_code == 429
    user_key = user_key_from_header("Bearer secret-token")
    zadd_keys = [c.args[0] for c in redis_client.pipeline.return_value.zadd.call_args_list]
    assert f"rate:user:{user_key}" in zadd_keys
    assert all("secret-token" not in key for key in zadd_keys)


def test_redis_failure_fails_open():
    redis_client = mock.MagicMock()
    redis_client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
    client = make_client(redis_client)

    response = client.get("/", headers={"Authorization": "Bearer secret-token"})

    assert response.status_code == 200


def test_health_is_not_limited():
    redis_client = mock.MagicMock()
    client = make_client(redis_client)

    assert client.get("/health").status_code == 200
    redis_client.pipeline.assert_not_called()


def test_user_key_from_header():
    assert user_key_from_header(None) is None
    assert user_key_from_header("Basic abc") is None
    assert user_key_from_header("Bearer abc") == user_key_from_header("bearer abc")
    assert len(user_key_from_header("Bearer abc")) == 16
