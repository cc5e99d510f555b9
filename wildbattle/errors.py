from __future__ import annotations


class BattleError(Exception):
    pass


class NoUsableCreature(BattleError, ValueError):
    def __init__(self, caller_id: str):
        super().__init__("No creature with HP left to battle with")
        self.caller_id = caller_id


class SpeciesNotFound(BattleError, ValueError):
    def __init__(self, species_id: str):
        super().__init__(f"Species not found: {species_id}")
        self.species_id = species_id


class InvalidAction(BattleError, ValueError):
    """Action rejected before anything about the battle changed."""


class CreatureNotFound(BattleError, LookupError):
    def __init__(self, creature_id: str):
        super().__init__(f"Creature not found: {creature_id}")
        self.creature_id = creature_id


class PersistenceFailure(BattleError, RuntimeError):
    pass
