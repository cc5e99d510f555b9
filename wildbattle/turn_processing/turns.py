from __future__ import annotations

from wildbattle.api.models import BattleTurn


def determine_first_turn(*, player_hp: int, wild_hp: int) -> BattleTurn:
    """Return which side moves first.

    The side with strictly more current HP goes first; ties go to the player.
    """

    if wild_hp > player_hp:
        return BattleTurn.wild
    return BattleTurn.player


def other_side(turn: BattleTurn) -> BattleTurn:
    return BattleTurn.wild if turn == BattleTurn.player else BattleTurn.player
