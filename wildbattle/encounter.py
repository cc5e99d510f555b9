from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Protocol
from uuid import uuid4

from wildbattle.api.models import (
    BattleState,
    BattleStatus,
    BattleTurn,
    CreatureRecord,
    LogCategory,
    PlayerCreature,
    Species,
    WildCreature,
)
from wildbattle.battle_log import append_log
from wildbattle.errors import NoUsableCreature
from wildbattle.rng import Dice
from wildbattle.species.registry import SpeciesCatalog
from wildbattle.turn_processing.turns import determine_first_turn


logger = logging.getLogger(__name__)


class ActiveCreatureSource(Protocol):
    def get_active_creature(self, caller_id: str) -> CreatureRecord: ...


def _now() -> datetime:
    return datetime.now(tz=UTC)


def wild_creature_for(species: Species) -> WildCreature:
    return WildCreature(
        species_id=species.species_id,
        species_name=species.name,
        current_hp=species.base_hp,
        max_hp=species.base_hp,
    )


def player_creature_for(record: CreatureRecord) -> PlayerCreature:
    return PlayerCreature(
        id=record.creature_id,
        species_id=record.species_id,
        species_name=record.species_name,
        nickname=record.nickname,
        current_hp=record.current_hp,
        max_hp=record.max_hp,
    )


def build_battle_state(*, caller_id: str, record: CreatureRecord, species: Species) -> BattleState:
    """Build the opening BattleState for `record` against a fresh wild `species`.

    Raises NoUsableCreature if the record has no HP left.
    """

    if record.current_hp <= 0:
        raise NoUsableCreature(caller_id)

    wild = wild_creature_for(species)
    player = player_creature_for(record)
    first = determine_first_turn(player_hp=player.current_hp, wild_hp=wild.current_hp)

    state = BattleState(
        battle_id=uuid4(),
        caller_id=caller_id,
        created_at=_now(),
        wild_creature=wild,
        player_creature=player,
        current_turn=first,
        status=BattleStatus.active,
        turn_count=0,
    )

    append_log(state, message=f"A wild {wild.species_name} appeared!", category=LogCategory.info)
    if first == BattleTurn.player:
        append_log(state, message=f"{player.display_name} moves first!", category=LogCategory.info)
    else:
        append_log(state, message=f"The wild {wild.species_name} moves first!", category=LogCategory.info)

    return state


def start_encounter(
    *,
    repo: ActiveCreatureSource,
    catalog: SpeciesCatalog,
    caller_id: str,
    species_id: str | None = None,
    dice: Dice | None = None,
) -> BattleState:
    """Initialize an encounter between the caller's active creature and a wild species.

    With no `species_id`, the wild species is drawn from the catalog with `dice`.
    Raises SpeciesNotFound / NoUsableCreature before anything is created.
    """

    if species_id is None:
        species = catalog.pick_random(dice=dice or Dice())
    else:
        species = catalog.require(species_id)

    record = repo.get_active_creature(caller_id)
    state = build_battle_state(caller_id=caller_id, record=record, species=species)

    logger.info(
        "battle %s started caller=%s creature=%s hp=%s vs %s hp=%s first=%s",
        state.battle_id,
        caller_id,
        record.creature_id,
        record.current_hp,
        species.species_id,
        species.base_hp,
        state.current_turn.value,
    )
    return state
