from __future__ import annotations

import redis

from wildbattle.config import settings_from_env


def get_redis_url() -> str:
    return settings_from_env().redis_url


def create_redis() -> redis.Redis:
    # decode_responses=True => strings in/out instead of bytes
    return redis.Redis.from_url(get_redis_url(), decode_responses=True)
