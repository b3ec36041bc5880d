#!/usr/bin/env python3
"""Full-state snapshots and their delivery to connected websockets."""
from __future__ import annotations

import asyncio
import traceback
from typing import Any, Dict, List, Optional, Set

from config import SIM_CONFIG
from world import March, Territory, World

EVENTS_IN_SNAPSHOT: int = int(SIM_CONFIG.get("events_in_snapshot", 30))
# payloads waiting per client before it counts as stalled and gets dropped
MAX_PENDING_SENDS: int = int(SIM_CONFIG.get("max_pending_sends", 32))


def territory_payload(t: Territory) -> Dict[str, Any]:
    return {
        "id": t.id,
        "name": t.name,
        "x": t.x,
        "y": t.y,
        "owner": t.owner,
        "troops": t.troops,
        "income": t.effective_income(),
        "neighbors": list(t.neighbors),
    }


def march_payload(m: March) -> Dict[str, Any]:
    return {
        "id": m.id,
        "owner": m.owner,
        "from": m.origin_id,
        "to": m.target_id,
        "troops": m.troops,
        "progress": m.progress,
    }


def build_snapshot(world: World, player_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Serialise the whole world. ``playerId`` is only set for the copy sent
    to one specific client so it learns who it is.
    """
    return {
        "type": "state",
        "playerId": player_id,
        "tick": world.tick,
        "players": {
            pid: {"resources": p.resources, "color": p.color}
            for pid, p in world.players.items()
        },
        "territories": [territory_payload(t) for t in world.territories.values()],
        "marches": [march_payload(m) for m in world.marches.values()],
        "events": world.events[-EVENTS_IN_SNAPSHOT:],
    }


class Broadcaster:
    """
    Keeps the open websocket per player and pushes payloads to them.

    Sending only enqueues, so callers can hold the world lock while they
    queue snapshots: each client receives them in the order the world
    changed, and a writer task per socket does the actual (slow) send.
    A client whose queue fills up is dropped and its socket closed.
    """

    def __init__(self, max_pending: int = MAX_PENDING_SENDS) -> None:
        self.max_pending = max_pending
        self.connections: Dict[str, Any] = {}  # player id -> websocket
        self._queues: Dict[str, asyncio.Queue] = {}
        self._writers: Dict[str, asyncio.Task] = {}
        self._closing: Set[asyncio.Task] = set()

    def register(self, player_id: str, ws: Any) -> None:
        """Start delivering to ``ws``. Needs a running event loop."""
        self.unregister(player_id)
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_pending)
        self.connections[player_id] = ws
        self._queues[player_id] = queue
        self._writers[player_id] = asyncio.create_task(self._writer(player_id, ws, queue))

    def unregister(self, player_id: str) -> None:
        self.connections.pop(player_id, None)
        queue = self._queues.pop(player_id, None)
        task = self._writers.pop(player_id, None)
        if queue is not None:
            while not queue.empty():
                queue.get_nowait()
                queue.task_done()
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _writer(self, player_id: str, ws: Any, queue: asyncio.Queue) -> None:
        while True:
            payload = await queue.get()
            try:
                await ws.send_json(payload)
            except Exception:
                # the receive loop of that socket will run the disconnect path
                print(f"WS: send to {player_id[:6]} failed, dropping connection:")
                traceback.print_exc()
                self.unregister(player_id)
                return
            finally:
                queue.task_done()

    async def _close(self, player_id: str, ws: Any) -> None:
        try:
            await ws.close(code=1008)
        except Exception:
            print(f"WS: closing stalled socket of {player_id[:6]} failed:")
            traceback.print_exc()

    def send_to(self, player_id: str, payload: Dict[str, Any]) -> bool:
        """Queue ``payload`` for one client; never waits on the network."""
        queue = self._queues.get(player_id)
        if queue is None:
            return False
        try:
            queue.put_nowait(payload)
        except asyncio.QueueFull:
            print(f"WS: {player_id[:6]} stopped reading ({queue.qsize()} pending), dropping connection")
            ws = self.connections.get(player_id)
            self.unregister(player_id)
            task = asyncio.create_task(self._close(player_id, ws))
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)
            return False
        return True

    def broadcast(self, payload: Dict[str, Any]) -> List[str]:
        """Queue for every client; returns the ids it was queued for."""
        return [pid for pid in list(self.connections) if self.send_to(pid, payload)]

    def send_snapshot(self, world: World, player_id: str) -> bool:
        return self.send_to(player_id, build_snapshot(world, player_id))

    def broadcast_snapshot(self, world: World) -> List[str]:
        return self.broadcast(build_snapshot(world))

    async def flush(self) -> None:
        """Wait until everything queued so far has been handed to the sockets."""
        await asyncio.gather(*(q.join() for q in list(self._queues.values())))

    async def close(self) -> None:
        for player_id in list(self.connections):
            self.unregister(player_id)
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
