from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol
from uuid import UUID

from wildbattle.api.models import BattleAction, BattleState, BattleStatus
from wildbattle.encounter import ActiveCreatureSource, start_encounter
from wildbattle.errors import InvalidAction
from wildbattle.outcome import OutcomeNotifier, OutcomeRepository, OutcomeResult, synchronize_outcome
from wildbattle.rng import Dice
from wildbattle.species.registry import SpeciesCatalog
from wildbattle.turn_processing.resolver import resolve_action, resolve_wild_turns


logger = logging.getLogger(__name__)


class BattleRepository(ActiveCreatureSource, OutcomeRepository, Protocol):
    pass


class BattleSession:
    """Sole owner of one encounter's BattleState.

    Contract:
      - actions are applied one at a time; a submission that arrives while
        another is in flight is rejected with InvalidAction.
      - the outcome is synchronized exactly once, right after the first
        transition away from `active`.
    """

    def __init__(
        self,
        *,
        state: BattleState,
        repo: OutcomeRepository,
        dice: Dice | None = None,
        notify: OutcomeNotifier | None = None,
    ) -> None:
        self._state = state
        self._repo = repo
        self._dice = dice or Dice()
        self._notify = notify
        self._in_flight = False
        self._outcome: OutcomeResult | None = None

    @classmethod
    async def open(
        cls,
        *,
        repo: BattleRepository,
        catalog: SpeciesCatalog,
        caller_id: str,
        species_id: str | None = None,
        dice: Dice | None = None,
        notify: OutcomeNotifier | None = None,
    ) -> "BattleSession":
        """Start an encounter and play out the wild side's opening turn, if it has one."""

        dice = dice or Dice()
        state = start_encounter(repo=repo, catalog=catalog, caller_id=caller_id, species_id=species_id, dice=dice)
        session = cls(state=state, repo=repo, dice=dice, notify=notify)
        await session._advance(lambda s: resolve_wild_turns(s, dice=session._dice))
        return session

    @property
    def state(self) -> BattleState:
        return self._state

    @property
    def battle_id(self) -> UUID:
        return self._state.battle_id

    @property
    def caller_id(self) -> str:
        return self._state.caller_id

    @property
    def outcome(self) -> OutcomeResult | None:
        return self._outcome

    def attach(self, *, repo: OutcomeRepository, notify: OutcomeNotifier | None = None) -> None:
        # Each HTTP request brings its own Redis client.
        self._repo = repo
        self._notify = notify

    async def submit(self, action: BattleAction | str) -> BattleState:
        return await self._advance(lambda s: resolve_action(s, action, dice=self._dice))

    async def _advance(self, step: Callable[[BattleState], BattleState]) -> BattleState:
        if self._in_flight:
            raise InvalidAction("Battle is busy")

        self._in_flight = True
        try:
            self._state = step(self._state)
            await self._synchronize_once()
        finally:
            self._in_flight = False
        return self._state

    async def _synchronize_once(self) -> None:
        if self._state.status == BattleStatus.active or self._outcome is not None:
            return
        self._outcome = await synchronize_outcome(repo=self._repo, state=self._state, notify=self._notify)
        self._state = self._outcome.state


class BattleSessionHub:
    """In-process registry of live battle sessions.

    A caller owns at most one session: opening a new encounter abandons the
    previous one. Sessions never outlive the process.
    """

    def __init__(self) -> None:
        self._by_id: dict[UUID, BattleSession] = {}
        self._by_caller: dict[str, UUID] = {}
        self._lock = asyncio.Lock()

    async def add(self, session: BattleSession) -> UUID | None:
        """Register `session`; returns the id of the battle it replaced, if any."""

        async with self._lock:
            previous = self._by_caller.get(session.caller_id)
            if previous is not None:
                self._by_id.pop(previous, None)
                logger.info("caller %s abandoned battle %s", session.caller_id, previous)
            self._by_id[session.battle_id] = session
            self._by_caller[session.caller_id] = session.battle_id
        return previous

    async def get(self, *, battle_id: UUID, caller_id: str) -> BattleSession | None:
        async with self._lock:
            session = self._by_id.get(battle_id)
        if session is None or session.caller_id != caller_id:
            return None
        return session

    async def leave(self, *, battle_id: UUID, caller_id: str) -> bool:
        async with self._lock:
            session = self._by_id.get(battle_id)
            if session is None or session.caller_id != caller_id:
                return False
            self._by_id.pop(battle_id, None)
            if self._by_caller.get(caller_id) == battle_id:
                self._by_caller.pop(caller_id, None)
        logger.info("caller %s left battle %s status=%s", caller_id, battle_id, session.state.status.value)
        return True

    def reset_for_tests(self) -> None:
        self._by_id.clear()
        self._by_caller.clear()


hub = BattleSessionHub()
