from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

import fakeredis
import pytest
import redis

from wildbattle.api.models import (
    BattleState,
    BattleStatus,
    BattleTurn,
    CreatureRecord,
    LogCategory,
    PlayerCreature,
    WildCreature,
)
from wildbattle.battle_log import append_log
from wildbattle.errors import CreatureNotFound
from wildbattle.outcome import OutcomeResult, mailbox_notifier, synchronize_outcome
from wildbattle.rng import Dice
from wildbattle.streams import Mailbox, read_mailbox
from wildbattle.turn_processing.resolver import resolve_action


class _RecordingRepo:
    def __init__(self, *, fail_update: Exception | None = None, fail_capture: Exception | None = None):
        self.fail_update = fail_update
        self.fail_capture = fail_capture
        self.updates: list[tuple[str, int]] = []
        self.captures: list[dict] = []

    def update_hp(self, creature_id: str, hp: int) -> CreatureRecord:
        self.updates.append((creature_id, hp))
        if self.fail_update is not None:
            raise self.fail_update
        return _record(creature_id=creature_id, hp=hp, max_hp=max(hp, 1))

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
        self.captures.append(
            {
                "caller_id": caller_id,
                "species_id": species_id,
                "species_name": species_name,
                "nickname": nickname,
                "hp": hp,
                "max_hp": max_hp,
            }
        )
        if self.fail_capture is not None:
            raise self.fail_capture
        return _record(creature_id="new-1", hp=hp, max_hp=max_hp, species_id=species_id)


class _ScriptedRng:
    def __init__(self, values: list[float]):
        self.values = list(values)
        self.calls = 0

    def next(self) -> float:
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


def _record(*, creature_id: str, hp: int, max_hp: int, species_id: str = "fire_lizard") -> CreatureRecord:
    return CreatureRecord(
        creature_id=creature_id,
        caller_id="caller-1",
        species_id=species_id,
        species_name="Fire Lizard",
        current_hp=hp,
        max_hp=max_hp,
        captured_at=datetime.now(tz=UTC),
    )


def _state(*, player_hp: int, wild_hp: int, wild_max: int) -> BattleState:
    state = BattleState(
        battle_id=uuid4(),
        caller_id="caller-1",
        created_at=datetime.now(tz=UTC),
        wild_creature=WildCreature(species_id="flame_beast", species_name="Flame Beast", current_hp=wild_hp, max_hp=wild_max),
        player_creature=PlayerCreature(id="c1", species_id="fire_lizard", species_name="Fire Lizard", current_hp=player_hp, max_hp=40),
        current_turn=BattleTurn.player,
    )
    append_log(state, message="A wild Flame Beast appeared!")
    return state


def _fixed_damage(damage: int) -> Dice:
    return Dice(rng=_ScriptedRng([0.0]), damage_min=damage, damage_max=damage)


@pytest.mark.asyncio
async def test_active_battle_is_not_synchronized() -> None:
    repo = _RecordingRepo()
    with pytest.raises(ValueError):
        await synchronize_outcome(repo=repo, state=_state(player_hp=35, wild_hp=35, wild_max=35))
    assert repo.updates == []


@pytest.mark.asyncio
async def test_won_battle_saves_hp_only() -> None:
    repo = _RecordingRepo()
    won = resolve_action(_state(player_hp=35, wild_hp=35, wild_max=35), "attack", dice=_fixed_damage(35))

    result = await synchronize_outcome(repo=repo, state=won)

    assert repo.updates == [("c1", 35)]
    assert repo.captures == []
    assert result.hp_saved is True
    assert result.captured_creature is None
    assert result.state.status == BattleStatus.won
    assert result.state.log[-1].message == "Fire Lizard's condition was saved."
    # The input state keeps its log.
    assert len(won.log) == len(result.state.log) - 1


@pytest.mark.asyncio
async def test_lost_battle_persists_zero_hp() -> None:
    repo = _RecordingRepo()
    lost = resolve_action(_state(player_hp=20, wild_hp=100, wild_max=100), "attack", dice=_fixed_damage(25))
    assert lost.status == BattleStatus.lost

    await synchronize_outcome(repo=repo, state=lost)

    assert repo.updates == [("c1", 0)]


@pytest.mark.asyncio
async def test_captured_battle_registers_creature_with_current_hp() -> None:
    repo = _RecordingRepo()
    captured = resolve_action(
        _state(player_hp=30, wild_hp=10, wild_max=100),
        "capture",
        dice=Dice(rng=_ScriptedRng([0.2])),
    )
    assert captured.status == BattleStatus.captured

    result = await synchronize_outcome(repo=repo, state=captured)

    assert repo.updates == [("c1", 30)]
    assert repo.captures == [
        {
            "caller_id": "caller-1",
            "species_id": "flame_beast",
            "species_name": "Flame Beast",
            "nickname": "Flame Beast",
            "hp": 10,
            "max_hp": 100,
        }
    ]
    assert result.captured_creature is not None
    assert result.captured_creature.creature_id == "new-1"
    assert result.state.log[-1].category == LogCategory.capture
    assert result.state.log[-1].message == "Flame Beast was added to your roster!"


@pytest.mark.asyncio
async def test_persistence_failures_become_log_entries() -> None:
    repo = _RecordingRepo(fail_update=CreatureNotFound("c1"), fail_capture=redis.ConnectionError("down"))
    captured = resolve_action(
        _state(player_hp=30, wild_hp=10, wild_max=100),
        "capture",
        dice=Dice(rng=_ScriptedRng([0.2])),
    )

    result = await synchronize_outcome(repo=repo, state=captured)

    assert result.hp_saved is False
    assert result.captured_creature is None
    assert result.state.status == BattleStatus.captured
    tail = result.state.log[-2:]
    assert [e.category for e in tail] == [LogCategory.info, LogCategory.info]
    assert tail[0].message == "Could not save Fire Lizard's condition."
    assert tail[1].message == "Could not register the captured Flame Beast."


@pytest.mark.asyncio
async def test_notify_receives_result() -> None:
    seen: list[OutcomeResult] = []
    fled = resolve_action(_state(player_hp=30, wild_hp=80, wild_max=100), "flee", dice=_fixed_damage(20))

    result = await synchronize_outcome(repo=_RecordingRepo(), state=fled, notify=seen.append)

    assert seen == [result]


@pytest.mark.asyncio
async def test_mailbox_notifier_publishes_battle_finished() -> None:
    r = fakeredis.FakeRedis(decode_responses=True)
    won = resolve_action(_state(player_hp=35, wild_hp=35, wild_max=35), "attack", dice=_fixed_damage(35))

    await synchronize_outcome(repo=_RecordingRepo(), state=won, notify=mailbox_notifier(r))

    entries = read_mailbox(r=r, mailbox=Mailbox(caller_id="caller-1"))
    assert len(entries) == 1
    _, fields = entries[0]
    assert fields["type"] == "battle_finished"
    assert fields["battle_id"] == str(won.battle_id)
    assert fields["status"] == "won"
    assert fields["creature_id"] == "c1"
    assert fields["creature_hp"] == "35"
    assert fields["captured_creature_id"] == ""


class _CorruptedRepo(_RecordingRepo):
    def update_hp(self, creature_id: str, hp: int) -> CreatureRecord:
        self.updates.append((creature_id, hp))
        return CreatureRecord.model_validate_json("{bad json")

    def register_capture(self, caller_id: str, species_id: str, nickname: str, hp: int, max_hp: int, *, species_name: str | None = None) -> CreatureRecord:
        raise KeyError(species_id)


@pytest.mark.asyncio
async def test_unexpected_repository_errors_never_escape() -> None:
    repo = _CorruptedRepo()
    captured = resolve_action(
        _state(player_hp=30, wild_hp=10, wild_max=100),
        "capture",
        dice=Dice(rng=_ScriptedRng([0.2])),
    )

    def _broken_notify(result: OutcomeResult) -> None:
        raise RuntimeError("notifier down")

    result = await synchronize_outcome(repo=repo, state=captured, notify=_broken_notify)

    assert repo.updates == [("c1", 30)]
    assert result.hp_saved is False
    assert result.captured_creature is None
    assert result.state.status == BattleStatus.captured
    assert [e.message for e in result.state.log[-2:]] == [
        "Could not save Fire Lizard's condition.",
        "Could not register the captured Flame Beast.",
    ]
