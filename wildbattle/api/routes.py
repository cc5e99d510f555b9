from __future__ import annotations

from uuid import UUID

import redis
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from wildbattle.api.deps import get_caller_id, get_catalog, get_dice, get_redis, get_settings
from wildbattle.api.models import (
    AcquireCreatureRequest,
    BattleState,
    CreatureListResponse,
    CreatureRecord,
    RenameCreatureRequest,
    SpeciesListResponse,
    StartBattleRequest,
)
from wildbattle.battle_log import last_log_id
from wildbattle.config import Settings
from wildbattle.creature_store import (
    RedisCreatureRepository,
    acquire_creature,
    get_active_creature_id,
    list_creatures,
    release_creature,
    rename_creature,
    set_active_creature,
)
from wildbattle.errors import CreatureNotFound, InvalidAction, SpeciesNotFound
from wildbattle.outcome import mailbox_notifier
from wildbattle.presentation import narrate
from wildbattle.rng import Dice
from wildbattle.session import BattleSession, hub
from wildbattle.species.registry import SpeciesCatalog
from wildbattle.streams import Mailbox, read_mailbox
from wildbattle.websocket_hub import ws_hub

router = APIRouter()


@router.websocket("/ws/battle/{battle_id}")
async def battle_updates_ws(websocket: WebSocket, battle_id: UUID) -> None:
    await ws_hub.watch(battle_id, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await ws_hub.unwatch(battle_id, websocket)
    except Exception:
        await ws_hub.unwatch(battle_id, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/species", response_model=SpeciesListResponse)
async def list_species_route(catalog: SpeciesCatalog = Depends(get_catalog)) -> SpeciesListResponse:
    return SpeciesListResponse(species=list(catalog.species))


@router.get("/creatures", response_model=CreatureListResponse)
async def list_creatures_route(
    caller_id: str = Depends(get_caller_id),
    r: redis.Redis = Depends(get_redis),
) -> CreatureListResponse:
    return CreatureListResponse(
        creatures=list_creatures(r=r, caller_id=caller_id),
        active_creature_id=get_active_creature_id(r=r, caller_id=caller_id),
    )


@router.post("/creatures", response_model=CreatureRecord, status_code=status.HTTP_201_CREATED)
async def acquire_creature_route(
    payload: AcquireCreatureRequest,
    caller_id: str = Depends(get_caller_id),
    r: redis.Redis = Depends(get_redis),
    catalog: SpeciesCatalog = Depends(get_catalog),
) -> CreatureRecord:
    try:
        species = catalog.require(payload.species_id)
    except SpeciesNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return acquire_creature(r=r, caller_id=caller_id, species=species, nickname=payload.nickname)


@router.put("/creatures/{creature_id}/active", response_model=CreatureRecord)
async def set_active_creature_route(
    creature_id: str,
    caller_id: str = Depends(get_caller_id),
    r: redis.Redis = Depends(get_redis),
) -> CreatureRecord:
    try:
        return set_active_creature(r=r, caller_id=caller_id, creature_id=creature_id)
    except CreatureNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/creatures/{creature_id}", response_model=CreatureRecord)
async def rename_creature_route(
    creature_id: str,
    payload: RenameCreatureRequest,
    caller_id: str = Depends(get_caller_id),
    r: redis.Redis = Depends(get_redis),
) -> CreatureRecord:
    try:
        return rename_creature(r=r, caller_id=caller_id, creature_id=creature_id, nickname=payload.nickname)
    except CreatureNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.delete("/creatures/{creature_id}", response_model=CreatureRecord)
async def release_creature_route(
    creature_id: str,
    caller_id: str = Depends(get_caller_id),
    r: redis.Redis = Depends(get_redis),
) -> CreatureRecord:
    try:
        return release_creature(r=r, caller_id=caller_id, creature_id=creature_id)
    except CreatureNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/battles", response_model=BattleState, status_code=status.HTTP_201_CREATED)
async def start_battle_route(
    background_tasks: BackgroundTasks,
    payload: StartBattleRequest | None = None,
    caller_id: str = Depends(get_caller_id),
    r: redis.Redis = Depends(get_redis),
    catalog: SpeciesCatalog = Depends(get_catalog),
    dice: Dice = Depends(get_dice),
    settings: Settings = Depends(get_settings),
) -> BattleState:
    species_id = payload.species_id if payload is not None else None
    try:
        session = await BattleSession.open(
            repo=RedisCreatureRepository(r),
            catalog=catalog,
            caller_id=caller_id,
            species_id=species_id,
            dice=dice,
            notify=mailbox_notifier(r),
        )
    except SpeciesNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    abandoned = await hub.add(session)
    if abandoned is not None:
        background_tasks.add_task(ws_hub.close_battle, abandoned, reason="abandoned")
    background_tasks.add_task(
        narrate, hub=ws_hub, state=session.state, after_id=0, pacing_s=settings.pacing_ms / 1000
    )
    return session.state


async def _require_session(*, battle_id: UUID, caller_id: str) -> BattleSession:
    session = await hub.get(battle_id=battle_id, caller_id=caller_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Battle not found")
    return session


@router.get("/battles/{battle_id}", response_model=BattleState)
async def get_battle_route(battle_id: UUID, caller_id: str = Depends(get_caller_id)) -> BattleState:
    session = await _require_session(battle_id=battle_id, caller_id=caller_id)
    return session.state


@router.post("/battles/{battle_id}/actions/{action}", response_model=BattleState)
async def battle_action_route(
    battle_id: UUID,
    action: str,
    background_tasks: BackgroundTasks,
    caller_id: str = Depends(get_caller_id),
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> BattleState:
    session = await _require_session(battle_id=battle_id, caller_id=caller_id)
    seen = last_log_id(session.state.log)

    session.attach(repo=RedisCreatureRepository(r), notify=mailbox_notifier(r))
    try:
        state = await session.submit(action)
    except InvalidAction as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    background_tasks.add_task(narrate, hub=ws_hub, state=state, after_id=seen, pacing_s=settings.pacing_ms / 1000)
    return state


@router.delete("/battles/{battle_id}")
async def leave_battle_route(battle_id: UUID, caller_id: str = Depends(get_caller_id)) -> dict[str, object]:
    session = await _require_session(battle_id=battle_id, caller_id=caller_id)
    await hub.leave(battle_id=battle_id, caller_id=caller_id)
    await ws_hub.close_battle(battle_id, reason="left")
    return {"battle_id": str(battle_id), "left": True, "status": session.state.status.value}


@router.get("/mailbox")
async def get_mailbox_route(
    count: int = 20,
    start: str = "-",
    end: str = "+",
    caller_id: str = Depends(get_caller_id),
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    """Debug endpoint: read the caller's outcome mailbox (Redis Stream)."""

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    mailbox = Mailbox(caller_id=caller_id)
    try:
        entries = read_mailbox(r=r, mailbox=mailbox, count=count, start=start, end=end)
    except redis.RedisError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    messages = [{"id": mid, "fields": fields} for mid, fields in entries]
    return {"caller_id": caller_id, "stream": mailbox.key, "messages": messages}
