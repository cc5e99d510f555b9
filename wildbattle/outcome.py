"""Write a finished battle back to the caller's roster.

Runs once per encounter, after the status is final. Nothing here can change
how the battle ended: repository failures become info log entries and the
caller is always free to leave.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

import redis

from wildbattle.api.models import BattleState, BattleStatus, CreatureRecord, LogCategory
from wildbattle.battle_log import append_log
from wildbattle.streams import Mailbox, publish_to_mailbox


logger = logging.getLogger(__name__)


class OutcomeRepository(Protocol):
    def update_hp(self, creature_id: str, hp: int) -> CreatureRecord: ...

    def register_capture(
        self,
        caller_id: str,
        species_id: str,
        nickname: str,
        hp: int,
        max_hp: int,
        *,
        species_name: str | None = None,
    ) -> CreatureRecord: ...


OutcomeNotifier = Callable[["OutcomeResult"], None]


@dataclass(frozen=True, slots=True)
class OutcomeResult:
    state: BattleState
    hp_saved: bool
    captured_creature: CreatureRecord | None = None


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def mailbox_notifier(r: redis.Redis) -> OutcomeNotifier:
    """Notifier that drops a `battle_finished` entry into the caller's mailbox stream."""

    def _notify(result: OutcomeResult) -> None:
        state = result.state
        publish_to_mailbox(
            r=r,
            mailbox=Mailbox(caller_id=state.caller_id),
            fields={
                "type": "battle_finished",
                "battle_id": str(state.battle_id),
                "status": state.status.value,
                "creature_id": state.player_creature.id,
                "creature_hp": str(state.player_creature.current_hp),
                "captured_creature_id": result.captured_creature.creature_id if result.captured_creature else "",
                "turn_count": str(state.turn_count),
                "ts": _now_iso(),
            },
        )

    return _notify


async def synchronize_outcome(
    *,
    repo: OutcomeRepository,
    state: BattleState,
    notify: OutcomeNotifier | None = None,
) -> OutcomeResult:
    """Persist the final HP (and a capture) for a finished battle.

    Returns a copy of `state` with the persistence narration appended.
    """

    if state.status == BattleStatus.active:
        raise ValueError("Battle is still active")

    nxt = state.model_copy(deep=True)
    player = nxt.player_creature
    wild = nxt.wild_creature

    hp_saved = False
    try:
        repo.update_hp(player.id, player.current_hp)
        hp_saved = True
        append_log(nxt, message=f"{player.display_name}'s condition was saved.", category=LogCategory.info)
    except Exception as e:
        logger.warning("battle %s failed to save hp for creature %s: %s", nxt.battle_id, player.id, e)
        append_log(nxt, message=f"Could not save {player.display_name}'s condition.", category=LogCategory.info)

    captured: CreatureRecord | None = None
    if nxt.status == BattleStatus.captured:
        try:
            captured = repo.register_capture(
                nxt.caller_id,
                wild.species_id,
                wild.species_name,
                wild.current_hp,
                wild.max_hp,
                species_name=wild.species_name,
            )
            append_log(nxt, message=f"{wild.species_name} was added to your roster!", category=LogCategory.capture)
        except Exception as e:
            logger.warning("battle %s failed to register capture of %s: %s", nxt.battle_id, wild.species_id, e)
            append_log(nxt, message=f"Could not register the captured {wild.species_name}.", category=LogCategory.info)

    result = OutcomeResult(state=nxt, hp_saved=hp_saved, captured_creature=captured)

    if notify is not None:
        try:
            notify(result)
        except Exception as e:
            logger.warning("battle %s failed to notify caller %s: %s", nxt.battle_id, nxt.caller_id, e)

    logger.info(
        "battle %s synchronized status=%s hp_saved=%s captured=%s",
        nxt.battle_id,
        nxt.status.value,
        hp_saved,
        captured.creature_id if captured else None,
    )
    return result
