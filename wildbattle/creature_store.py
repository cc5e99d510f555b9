from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import uuid4

import redis

from wildbattle.api.models import CreatureRecord, Species
from wildbattle.errors import CreatureNotFound, NoUsableCreature, PersistenceFailure


logger = logging.getLogger(__name__)

CREATURE_KEY_PREFIX = "wildbattle:creature:"  # + {creature_id}
ROSTER_KEY_PREFIX = "wildbattle:roster:"  # + {caller_id}
ACTIVE_KEY_PREFIX = "wildbattle:active:"  # + {caller_id}


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _creature_key(creature_id: str) -> str:
    return f"{CREATURE_KEY_PREFIX}{creature_id}"


def _roster_key(caller_id: str) -> str:
    return f"{ROSTER_KEY_PREFIX}{caller_id}"


def _active_key(caller_id: str) -> str:
    return f"{ACTIVE_KEY_PREFIX}{caller_id}"


def save_creature(*, r: redis.Redis, record: CreatureRecord) -> None:
    r.set(_creature_key(record.creature_id), record.model_dump_json())


def get_creature(*, r: redis.Redis, creature_id: str) -> CreatureRecord | None:
    raw = r.get(_creature_key(creature_id))
    if not raw:
        return None
    return CreatureRecord.model_validate_json(raw)


def require_creature(*, r: redis.Redis, creature_id: str) -> CreatureRecord:
    record = get_creature(r=r, creature_id=creature_id)
    if record is None:
        raise CreatureNotFound(creature_id)
    return record


def list_creatures(*, r: redis.Redis, caller_id: str) -> list[CreatureRecord]:
    """Return the caller's roster in acquisition order."""

    out: list[CreatureRecord] = []
    for cid in r.lrange(_roster_key(caller_id), 0, -1):
        record = get_creature(r=r, creature_id=cid)
        if record is not None:
            out.append(record)
    return out


def _add_to_roster(
    *,
    r: redis.Redis,
    caller_id: str,
    species_id: str,
    species_name: str,
    nickname: str | None,
    hp: int,
    max_hp: int,
) -> CreatureRecord:
    record = CreatureRecord(
        creature_id=str(uuid4()),
        caller_id=caller_id,
        species_id=species_id,
        species_name=species_name,
        nickname=nickname,
        current_hp=hp,
        max_hp=max_hp,
        captured_at=_now(),
    )
    pipe = r.pipeline()
    pipe.set(_creature_key(record.creature_id), record.model_dump_json())
    pipe.rpush(_roster_key(caller_id), record.creature_id)
    pipe.execute()
    return record


def acquire_creature(*, r: redis.Redis, caller_id: str, species: Species, nickname: str | None = None) -> CreatureRecord:
    """Give the caller a fresh creature of `species` at full HP."""

    record = _add_to_roster(
        r=r,
        caller_id=caller_id,
        species_id=species.species_id,
        species_name=species.name,
        nickname=nickname,
        hp=species.base_hp,
        max_hp=species.base_hp,
    )
    logger.info("caller %s acquired %s (%s)", caller_id, record.creature_id, species.species_id)
    return record


def register_capture(
    *,
    r: redis.Redis,
    caller_id: str,
    species_id: str,
    nickname: str,
    hp: int,
    max_hp: int,
    species_name: str | None = None,
) -> CreatureRecord:
    if max_hp < 1 or not 0 <= hp <= max_hp:
        raise PersistenceFailure(f"Invalid HP for captured creature: {hp}/{max_hp}")

    record = _add_to_roster(
        r=r,
        caller_id=caller_id,
        species_id=species_id,
        species_name=species_name or nickname,
        nickname=nickname,
        hp=hp,
        max_hp=max_hp,
    )
    logger.info("caller %s captured %s (%s) hp=%s/%s", caller_id, record.creature_id, species_id, hp, max_hp)
    return record


def update_hp(*, r: redis.Redis, creature_id: str, hp: int) -> CreatureRecord:
    record = require_creature(r=r, creature_id=creature_id)
    record.current_hp = max(0, min(hp, record.max_hp))
    save_creature(r=r, record=record)
    return record


def require_owned_creature(*, r: redis.Redis, caller_id: str, creature_id: str) -> CreatureRecord:
    record = require_creature(r=r, creature_id=creature_id)
    if record.caller_id != caller_id:
        # Other callers' creatures are indistinguishable from missing ones.
        raise CreatureNotFound(creature_id)
    return record


def set_active_creature(*, r: redis.Redis, caller_id: str, creature_id: str) -> CreatureRecord:
    record = require_owned_creature(r=r, caller_id=caller_id, creature_id=creature_id)
    r.set(_active_key(caller_id), creature_id)
    return record


def rename_creature(*, r: redis.Redis, caller_id: str, creature_id: str, nickname: str | None) -> CreatureRecord:
    record = require_owned_creature(r=r, caller_id=caller_id, creature_id=creature_id)
    record.nickname = nickname
    save_creature(r=r, record=record)
    return record


def release_creature(*, r: redis.Redis, caller_id: str, creature_id: str) -> CreatureRecord:
    """Remove a creature from the caller's roster for good."""

    record = require_owned_creature(r=r, caller_id=caller_id, creature_id=creature_id)
    pipe = r.pipeline()
    pipe.delete(_creature_key(creature_id))
    pipe.lrem(_roster_key(caller_id), 0, creature_id)
    pipe.execute()
    if get_active_creature_id(r=r, caller_id=caller_id) == creature_id:
        r.delete(_active_key(caller_id))
    logger.info("caller %s released %s (%s)", caller_id, creature_id, record.species_id)
    return record


def get_active_creature_id(*, r: redis.Redis, caller_id: str) -> str | None:
    raw = r.get(_active_key(caller_id))
    return str(raw) if raw else None


def get_active_creature(*, r: redis.Redis, caller_id: str) -> CreatureRecord:
    """Return the creature the caller battles with.

    The explicitly selected creature wins while it still has HP; otherwise the
    first creature in the roster with HP left.
    """

    selected = get_active_creature_id(r=r, caller_id=caller_id)
    if selected:
        record = get_creature(r=r, creature_id=selected)
        if record is not None and record.caller_id == caller_id and record.current_hp > 0:
            return record

    for record in list_creatures(r=r, caller_id=caller_id):
        if record.current_hp > 0:
            return record

    raise NoUsableCreature(caller_id)


class RedisCreatureRepository:
    """Creature repository bound to one Redis client.

    Used by the battle session so tests can swap in a recording stub.
    """

    def __init__(self, r: redis.Redis):
        self.r = r

    def get_active_creature(self, caller_id: str) -> CreatureRecord:
        return get_active_creature(r=self.r, caller_id=caller_id)

    def update_hp(self, creature_id: str, hp: int) -> CreatureRecord:
        return update_hp(r=self.r, creature_id=creature_id, hp=hp)

    def register_capture(
        self,
        caller_id: str,
        species_id: str,
        nickname: str,
        hp: int,
        max_hp: int,
        *,
        species_name: str | None = None,
    ) -> CreatureRecord:
        return register_capture(
            r=self.r,
            caller_id=caller_id,
            species_id=species_id,
            nickname=nickname,
            hp=hp,
            max_hp=max_hp,
            species_name=species_name,
        )
