from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BattleStatus(StrEnum):
    active = "active"
    won = "won"
    lost = "lost"
    fled = "fled"
    captured = "captured"


class BattleTurn(StrEnum):
    player = "player"
    wild = "wild"


class BattleAction(StrEnum):
    attack = "attack"
    capture = "capture"
    flee = "flee"


class LogCategory(StrEnum):
    info = "info"
    attack = "attack"
    damage = "damage"
    capture = "capture"
    victory = "victory"
    defeat = "defeat"


class Species(BaseModel):
    model_config = ConfigDict(frozen=True)

    species_id: str
    name: str
    base_hp: int = Field(..., ge=1)


class CreatureRecord(BaseModel):
    """An owned creature as stored in the roster (the durable source of truth)."""

    creature_id: str
    caller_id: str
    species_id: str
    species_name: str
    nickname: str | None = None
    current_hp: int = Field(..., ge=0)
    max_hp: int = Field(..., ge=1)
    captured_at: datetime

    @property
    def display_name(self) -> str:
        return self.nickname or self.species_name


class _BattleCreature(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    current_hp: int = Field(..., ge=0)
    max_hp: int = Field(..., ge=1)

    @model_validator(mode="after")
    def _hp_within_max(self) -> "_BattleCreature":
        if self.current_hp > self.max_hp:
            raise ValueError("current_hp must not exceed max_hp")
        return self

    @property
    def hp_fraction(self) -> float:
        return self.current_hp / self.max_hp


class WildCreature(_BattleCreature):
    species_id: str
    species_name: str


class PlayerCreature(_BattleCreature):
    # Snapshot of a CreatureRecord taken when the battle starts.
    id: str
    species_id: str
    species_name: str
    nickname: str | None = None

    @property
    def display_name(self) -> str:
        return self.nickname or self.species_name


class LogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    message: str
    category: LogCategory
    created_at: datetime


class BattleState(BaseModel):
    battle_id: UUID
    caller_id: str
    created_at: datetime
    finished_at: datetime | None = None

    wild_creature: WildCreature
    player_creature: PlayerCreature

    current_turn: BattleTurn
    status: BattleStatus = BattleStatus.active
    turn_count: int = 0

    log: list[LogEntry] = Field(default_factory=list)

    @property
    def is_over(self) -> bool:
        return self.status != BattleStatus.active


class StartBattleRequest(BaseModel):
    # Species id or display name; omit to meet a random species.
    species_id: str | None = None


class AcquireCreatureRequest(BaseModel):
    species_id: str
    nickname: str | None = Field(default=None, min_length=1, max_length=20)


class SpeciesListResponse(BaseModel):
    species: list[Species]


class CreatureListResponse(BaseModel):
    creatures: list[CreatureRecord]
    active_creature_id: str | None = None


class RenameCreatureRequest(BaseModel):
    # null clears the nickname.
    nickname: str | None = Field(default=None, min_length=1, max_length=20)
