"""Narration for WebSocket listeners.

Battle transitions are resolved synchronously before any of this runs; this
layer only replays the new log entries, optionally spaced out for pacing.
"""

from __future__ import annotations

import asyncio

from wildbattle.api.models import BattleState, LogEntry
from wildbattle.battle_log import entries_after
from wildbattle.websocket_hub import BattleWebSocketHub


def log_entry_event(*, battle_id: str, entry: LogEntry) -> dict[str, object]:
    return {
        "type": "battle_log",
        "battle_id": battle_id,
        "entry": entry.model_dump(mode="json"),
    }


def battle_updated_event(state: BattleState) -> dict[str, object]:
    return {
        "type": "battle_updated",
        "battle_id": str(state.battle_id),
        "status": state.status.value,
        "current_turn": state.current_turn.value,
        "player_hp": state.player_creature.current_hp,
        "wild_hp": state.wild_creature.current_hp,
    }


async def narrate(*, hub: BattleWebSocketHub, state: BattleState, after_id: int, pacing_s: float = 0.0) -> int:
    """Broadcast log entries newer than `after_id`, then a state summary.

    Returns how many entries were sent.
    """

    battle_id = str(state.battle_id)
    entries = entries_after(state.log, after_id)

    for idx, entry in enumerate(entries):
        if idx and pacing_s > 0:
            await asyncio.sleep(pacing_s)
        await hub.broadcast(state.battle_id, log_entry_event(battle_id=battle_id, entry=entry))

    await hub.broadcast(state.battle_id, battle_updated_event(state))
    return len(entries)
