from __future__ import annotations

import logging
from datetime import UTC, datetime

from wildbattle.api.models import BattleAction, BattleState, BattleStatus, BattleTurn, LogCategory
from wildbattle.battle_log import append_log
from wildbattle.capture import evaluate_capture
from wildbattle.fsm import BattleFSM
from wildbattle.rng import Dice
from wildbattle.turn_processing.turns import other_side
from wildbattle.turn_processing.validators import ValidationContext, pipeline_for_action


logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _wild_name(state: BattleState) -> str:
    return f"The wild {state.wild_creature.species_name}"


def _finish(state: BattleState, fsm: BattleFSM) -> None:
    fsm.sync_status_to_model()
    state.finished_at = _now()
    logger.info("battle %s finished status=%s turns=%s", state.battle_id, state.status.value, state.turn_count)


def _attack(state: BattleState, fsm: BattleFSM, *, attacker: BattleTurn, dice: Dice) -> int:
    """Resolve one attack by `attacker` and return the damage dealt."""

    player = state.player_creature
    wild = state.wild_creature

    if attacker == BattleTurn.player:
        victim = wild
        attacker_name, victim_name = player.display_name, _wild_name(state)
    else:
        victim = player
        attacker_name, victim_name = _wild_name(state), player.display_name

    damage = dice.damage()
    append_log(state, message=f"{attacker_name} attacked!", category=LogCategory.attack)

    victim.current_hp = max(0, victim.current_hp - damage)
    append_log(state, message=f"{victim_name} took {damage} damage!", category=LogCategory.damage)
    state.turn_count += 1

    logger.debug(
        "battle %s %s hit for %s (player_hp=%s wild_hp=%s)",
        state.battle_id,
        attacker.value,
        damage,
        player.current_hp,
        wild.current_hp,
    )

    if victim.current_hp == 0:
        if attacker == BattleTurn.player:
            fsm.win()
            append_log(state, message=f"{victim_name} fainted! You won!", category=LogCategory.victory)
        else:
            fsm.lose()
            append_log(state, message=f"{victim_name} fainted...", category=LogCategory.defeat)
        _finish(state, fsm)
    else:
        state.current_turn = other_side(attacker)

    return damage


def _capture(state: BattleState, fsm: BattleFSM, *, dice: Dice) -> bool:
    wild_name = _wild_name(state)
    append_log(
        state,
        message=f"You threw a capture ball at the wild {state.wild_creature.species_name}!",
        category=LogCategory.capture,
    )
    state.turn_count += 1

    caught = evaluate_capture(wild=state.wild_creature, roll=dice.capture_roll())
    if caught:
        fsm.capture()
        append_log(state, message=f"Gotcha! {wild_name} was caught!", category=LogCategory.capture)
        _finish(state, fsm)
    else:
        append_log(state, message=f"Oh no! {wild_name} broke free!", category=LogCategory.info)
        state.current_turn = BattleTurn.wild
    return caught


def _flee(state: BattleState, fsm: BattleFSM) -> None:
    state.turn_count += 1
    fsm.flee()
    append_log(state, message="Got away safely!", category=LogCategory.info)
    _finish(state, fsm)


def _run_wild_turns(state: BattleState, fsm: BattleFSM, *, dice: Dice) -> None:
    # The wild side never waits for input: keep attacking while it holds the turn.
    while state.status == BattleStatus.active and state.current_turn == BattleTurn.wild:
        _attack(state, fsm, attacker=BattleTurn.wild, dice=dice)


def resolve_wild_turns(state: BattleState, *, dice: Dice) -> BattleState:
    """Play out any pending wild turns and return the resulting state.

    Used right after an encounter starts with the wild side moving first.
    The input state is left untouched.
    """

    if state.status != BattleStatus.active or state.current_turn != BattleTurn.wild:
        return state

    nxt = state.model_copy(deep=True)
    fsm = BattleFSM(nxt)
    _run_wild_turns(nxt, fsm, dice=dice)
    return nxt


def resolve_action(state: BattleState, action: BattleAction | str, *, dice: Dice) -> BattleState:
    """Apply one player action and every wild turn it hands over.

    Pure with respect to `state`: the input is validated, then a deep copy is
    advanced and returned. Rejected actions raise InvalidAction before any copy
    is made, so the caller's state and log stay exactly as they were.
    """

    action_name = str(action)
    ctx = ValidationContext(battle_id=str(state.battle_id), action=action_name)
    try:
        pipeline_for_action(action_name).validate(ctx=ctx, state=state)
    except ValueError:
        logger.info("battle %s rejected action=%s status=%s turn=%s", ctx.battle_id, action_name, state.status.value, state.current_turn.value)
        raise

    nxt = state.model_copy(deep=True)
    fsm = BattleFSM(nxt)

    act = BattleAction(action_name)
    if act == BattleAction.flee:
        _flee(nxt, fsm)
        return nxt

    if act == BattleAction.attack:
        _attack(nxt, fsm, attacker=BattleTurn.player, dice=dice)
    elif act == BattleAction.capture:
        _capture(nxt, fsm, dice=dice)

    _run_wild_turns(nxt, fsm, dice=dice)

    logger.info(
        "battle %s resolved action=%s status=%s turn=%s player_hp=%s wild_hp=%s",
        nxt.battle_id,
        action_name,
        nxt.status.value,
        nxt.current_turn.value,
        nxt.player_creature.current_hp,
        nxt.wild_creature.current_hp,
    )
    return nxt
