from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from uuid import UUID

from fastapi import WebSocket, status


logger = logging.getLogger(__name__)


class BattleWebSocketHub:
    """Spectator sockets per battle.

    Contract:
      - a socket watches exactly one battle (`watch`) until it goes away
        (`unwatch`) or the battle is discarded (`close_battle`).
      - `broadcast` returns how many sockets received the event; sockets that
        fail to receive are dropped.
      - once a battle is closed, later broadcasts for it reach nobody.
    """

    def __init__(self) -> None:
        self._watchers: dict[UUID, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def watch(self, battle_id: UUID, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._watchers[battle_id].add(websocket)

    async def unwatch(self, battle_id: UUID, websocket: WebSocket) -> None:
        async with self._lock:
            watchers = self._watchers.get(battle_id)
            if watchers is None:
                return
            watchers.discard(websocket)
            if not watchers:
                del self._watchers[battle_id]

    async def _send_all(self, battle_id: UUID, sockets: list[WebSocket], payload: dict[str, object]) -> list[WebSocket]:
        failed: list[WebSocket] = []
        for ws in sockets:
            try:
                await ws.send_json(payload)
            except Exception as e:
                logger.debug("battle %s dropping watcher: %s", battle_id, e)
                failed.append(ws)
        return failed

    async def broadcast(self, battle_id: UUID, payload: dict[str, object]) -> int:
        async with self._lock:
            sockets = list(self._watchers.get(battle_id, ()))
        if not sockets:
            return 0

        failed = await self._send_all(battle_id, sockets, payload)
        for ws in failed:
            await self.unwatch(battle_id, ws)
        return len(sockets) - len(failed)

    async def close_battle(self, battle_id: UUID, *, reason: str) -> int:
        """Tell every watcher the battle is gone, then close their sockets."""

        async with self._lock:
            sockets = list(self._watchers.pop(battle_id, ()))
        if not sockets:
            return 0

        payload: dict[str, object] = {"type": "battle_closed", "battle_id": str(battle_id), "reason": reason}
        failed = await self._send_all(battle_id, sockets, payload)
        for ws in sockets:
            if ws in failed:
                continue
            try:
                await ws.close(code=status.WS_1000_NORMAL_CLOSURE)
            except RuntimeError:
                # Socket already closed by the client.
                pass
        logger.info("battle %s closed for %s watcher(s) reason=%s", battle_id, len(sockets), reason)
        return len(sockets)


ws_hub = BattleWebSocketHub()
