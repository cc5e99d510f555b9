from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from wildbattle.api.models import BattleAction, BattleState, BattleStatus, BattleTurn
from wildbattle.errors import InvalidAction


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Inputs available to validators.

    Keep this tight and serializable-ish so we can safely log it.
    """

    battle_id: str
    action: str


class ActionValidator(ABC):
    """A small, composable validation unit for an incoming battle action."""

    @abstractmethod
    def validate(self, *, ctx: ValidationContext, state: BattleState) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class ActiveBattleValidator(ActionValidator):
    """Deny every action once the battle has reached a final status."""

    def validate(self, *, ctx: ValidationContext, state: BattleState) -> None:
        if state.status != BattleStatus.active:
            raise InvalidAction(f"Action '{ctx.action}' not allowed: battle is already {state.status.value}")


@dataclass(frozen=True, slots=True)
class TurnValidator(ActionValidator):
    """Only accept the action while it is this side's turn."""

    expected_turn: BattleTurn = BattleTurn.player

    def validate(self, *, ctx: ValidationContext, state: BattleState) -> None:
        if state.current_turn != self.expected_turn:
            raise InvalidAction(
                f"Action '{ctx.action}' not allowed on the {state.current_turn.value} turn "
                f"(expected: {self.expected_turn.value})"
            )


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[ActionValidator, ...]

    def validate(self, *, ctx: ValidationContext, state: BattleState) -> None:
        for v in self.validators:
            v.validate(ctx=ctx, state=state)


# Fleeing is allowed whoever's turn it is; attack/capture wait for the player's turn.
DEFAULT_ACTION_PIPELINES: dict[str, ValidatorPipeline] = {
    BattleAction.attack.value: ValidatorPipeline(
        validators=(
            ActiveBattleValidator(),
            TurnValidator(expected_turn=BattleTurn.player),
        )
    ),
    BattleAction.capture.value: ValidatorPipeline(
        validators=(
            ActiveBattleValidator(),
            TurnValidator(expected_turn=BattleTurn.player),
        )
    ),
    BattleAction.flee.value: ValidatorPipeline(
        validators=(ActiveBattleValidator(),),
    ),
}


def pipeline_for_action(action: str) -> ValidatorPipeline:
    pipe = DEFAULT_ACTION_PIPELINES.get(action)
    if pipe is None:
        raise InvalidAction(f"Unknown action: {action}")
    return pipe
