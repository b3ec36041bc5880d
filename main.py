#!/usr/bin/env python3
from __future__ import annotations

import asyncio
import json
import os
import time
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from broadcast import Broadcaster, build_snapshot, march_payload, territory_payload
from config import SIM_CONFIG
from orders import RejectReason, handle_order_payload
from scheduler import advance_world
from sessions import connect_player, disconnect_player
from world import World, create_world

TICK_DELAY: float = float(SIM_CONFIG.get("tick_delay", 3.0))

_simulation_task: asyncio.Task | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    await start_simulation()
    try:
        yield
    finally:
        if _simulation_task:
            _simulation_task.cancel()
            await asyncio.gather(_simulation_task, return_exceptions=True)
        await broadcaster.close()


app = FastAPI(lifespan=lifespan)

print(">>> Starting conquest server with TICK_DELAY =", TICK_DELAY)

# Single owner of the game state. Every mutation, and queueing the snapshot
# that follows it, happens while holding world_lock; sockets are written to
# by the broadcaster's writer tasks outside the lock.
world: World = create_world()
world_lock = asyncio.Lock()
broadcaster = Broadcaster()


def _history_payload(ev) -> dict:
    return {
        "tick": ev.tick,
        "kind": ev.kind,
        "territories": ev.territories,
        "players": ev.players,
        "text": ev.text,
    }


@app.get("/")
async def index():
    """Lightweight health endpoint for the backend."""
    return JSONResponse({"status": "ok", "service": "conquest-backend"})


@app.get("/state")
async def state_endpoint():
    async with world_lock:
        data = build_snapshot(world)
    return JSONResponse(data)


@app.get("/history")
async def history_endpoint():
    async with world_lock:
        data = [_history_payload(ev) for ev in world.history]
    return JSONResponse(data)


@app.get("/territory/{territory_id}")
async def territory_detail(territory_id: str):
    """Current territory stats plus marches and history touching it."""
    async with world_lock:
        territory = world.get_territory(territory_id)
        if territory is None:
            return JSONResponse({"error": "not found"}, status_code=404)
        data = territory_payload(territory)
        data["incoming"] = [march_payload(m) for m in world.marches.values() if m.target_id == territory_id]
        data["outgoing"] = [march_payload(m) for m in world.marches.values() if m.origin_id == territory_id]
        data["history"] = [_history_payload(ev) for ev in world.history if territory_id in ev.territories]
    return JSONResponse(data)


def _reject(player_id: str, reason: str, message: Optional[dict] = None) -> None:
    message = message or {}
    print(f"ORDER: rejected from {player_id[:6]}: {reason}")
    broadcaster.send_to(
        player_id,
        {
            "type": "orderRejected",
            "reason": reason,
            "from": message.get("from"),
            "to": message.get("to"),
            "troops": message.get("troops"),
        },
    )


async def handle_message(player_id: str, raw: Optional[str]) -> None:
    """Apply one inbound frame; ``raw`` is None for non-text frames."""
    message = None
    if raw is not None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            message = None

    async with world_lock:
        if not isinstance(message, dict):
            _reject(player_id, RejectReason.MALFORMED.value)
            return
        kind = message.get("type")
        if kind == "orderMove":
            result = handle_order_payload(world, player_id, message, time.monotonic())
            if result.ok:
                broadcaster.broadcast_snapshot(world)
            else:
                _reject(player_id, result.reason.value, message)
        elif kind == "requestState":
            broadcaster.send_snapshot(world, player_id)


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    async with world_lock:
        player = connect_player(world)
        broadcaster.register(player.id, ws)
        broadcaster.send_snapshot(world, player.id)
        broadcaster.broadcast_snapshot(world)
    print(f"WS: player {player.id[:6]} connected ({len(world.players)} online)")

    try:
        while True:
            frame = await ws.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            try:
                await handle_message(player.id, frame.get("text"))
            except Exception:
                print(f"WS: error handling message from {player.id[:6]}:")
                traceback.print_exc()
    except WebSocketDisconnect:
        print(f"WS: player {player.id[:6]} disconnected")
    except Exception:
        print("WS: unexpected error in websocket handler:")
        traceback.print_exc()
    finally:
        async with world_lock:
            broadcaster.unregister(player.id)
            disconnect_player(world, player.id)
            broadcaster.broadcast_snapshot(world)


async def start_simulation() -> None:
    global _simulation_task
    print(">>> startup: simulation task starting")

    async def run():
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + TICK_DELAY
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += TICK_DELAY
            try:
                async with world_lock:
                    summary = advance_world(world, time.monotonic())
                    broadcaster.broadcast_snapshot(world)
                if summary.discarded:
                    print(f"SIM: tick {summary.tick} discarded marches {summary.discarded}")
                if world.tick % 20 == 0:
                    print(f"SIM: tick {world.tick}")
            except Exception:
                print("SIM: error in background loop:")
                traceback.print_exc()

    _simulation_task = asyncio.create_task(run())


if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", SIM_CONFIG.get("port", 8000)))
    reload_flag = os.environ.get("RELOAD", "").lower() in {"1", "true", "yes", "on"}
    uvicorn.run("main:app", host=host, port=port, reload=reload_flag)
