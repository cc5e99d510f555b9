from __future__ import annotations

from statemachine import State, StateMachine

from wildbattle.api.models import BattleState, BattleStatus


class BattleFSM(StateMachine):
    """FSM wrapper around BattleState.status.

    - one live state (`active`) and four final ones: won, lost, fled, captured
    - the resolver decides *which* event fires; the FSM only guards that a
      finished battle can never move again.
    """

    active = State(BattleStatus.active.value, value=BattleStatus.active.value, initial=True)
    won = State(BattleStatus.won.value, value=BattleStatus.won.value, final=True)
    lost = State(BattleStatus.lost.value, value=BattleStatus.lost.value, final=True)
    fled = State(BattleStatus.fled.value, value=BattleStatus.fled.value, final=True)
    captured = State(BattleStatus.captured.value, value=BattleStatus.captured.value, final=True)

    win = active.to(won)
    lose = active.to(lost)
    flee = active.to(fled)
    capture = active.to(captured)

    def __init__(self, battle: BattleState):
        self.battle = battle
        super().__init__(start_value=battle.status.value)

    def sync_status_to_model(self) -> None:
        self.battle.status = BattleStatus(str(self.current_state.value))
