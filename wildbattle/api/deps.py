from __future__ import annotations

from collections.abc import Generator

import redis
from fastapi import Header, HTTPException, status

from wildbattle.config import Settings, settings_from_env
from wildbattle.infra.redis_client import create_redis
from wildbattle.rng import Dice
from wildbattle.species.registry import SpeciesCatalog
from wildbattle.species.singleton import get_species_catalog


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        try:
            client.close()
        except Exception:
            # Some redis client versions don't require explicit close.
            pass


def get_caller_id(x_caller_id: str | None = Header(default=None)) -> str:
    # Authentication happens upstream; the id is opaque to us.
    if not x_caller_id or not x_caller_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-Caller-Id header is required")
    return x_caller_id.strip()


def get_dice() -> Dice:
    return Dice()


def get_catalog() -> SpeciesCatalog:
    return get_species_catalog()


def get_settings() -> Settings:
    return settings_from_env()
