#!/usr/bin/env python3
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from config import SIM_CONFIG
from world import March, Territory, World

TRAVEL_SPEED: float = float(SIM_CONFIG.get("travel_speed", 100.0))  # map units / second
MIN_TRAVEL_TIME: float = float(SIM_CONFIG.get("min_travel_time", 0.5))  # seconds


class RejectReason(str, Enum):
    MALFORMED = "malformed"
    UNKNOWN_TERRITORY = "unknown_territory"
    NOT_OWNER = "not_owner"
    INVALID_TROOPS = "invalid_troops"
    NOT_NEIGHBOR = "not_neighbor"


@dataclass
class MoveOrder:
    """A request from one player to send troops to a neighbouring territory."""

    player_id: str
    origin_id: str
    target_id: str
    troops: Any  # validated in issue_march, clients may send anything


@dataclass
class OrderResult:
    march: Optional[March] = None
    reason: Optional[RejectReason] = None

    @property
    def ok(self) -> bool:
        return self.march is not None


def parse_move_order(player_id: str, payload: Any) -> Optional[MoveOrder]:
    """Turn a wire payload ``{from, to, troops}`` into a MoveOrder, or None."""
    if not isinstance(payload, dict):
        return None
    origin = payload.get("from")
    target = payload.get("to")
    if not isinstance(origin, str) or not isinstance(target, str):
        return None
    return MoveOrder(
        player_id=player_id,
        origin_id=origin,
        target_id=target,
        troops=payload.get("troops"),
    )


def travel_time_between(
    origin: Territory,
    target: Territory,
    speed: float = TRAVEL_SPEED,
    minimum: float = MIN_TRAVEL_TIME,
) -> float:
    distance = math.hypot(origin.x - target.x, origin.y - target.y)
    return max(minimum, distance / speed)


def _valid_troop_count(troops: Any, available: int) -> bool:
    if isinstance(troops, bool) or not isinstance(troops, int):
        return False
    return 0 < troops <= available


def issue_march(
    world: World,
    order: MoveOrder,
    now: float,
    speed: float = TRAVEL_SPEED,
    min_travel_time: float = MIN_TRAVEL_TIME,
) -> OrderResult:
    """
    Validate ``order`` and, if legal, launch a march.

    Checks run in a fixed order and stop at the first failure: both
    territories exist, the player owns the origin, the troop count is a
    positive integer within the garrison, the target is adjacent.
    """
    origin = world.get_territory(order.origin_id)
    target = world.get_territory(order.target_id)
    if origin is None or target is None:
        return OrderResult(reason=RejectReason.UNKNOWN_TERRITORY)
    if origin.owner is None or origin.owner != order.player_id:
        return OrderResult(reason=RejectReason.NOT_OWNER)
    if not _valid_troop_count(order.troops, origin.troops):
        return OrderResult(reason=RejectReason.INVALID_TROOPS)
    if target.id not in origin.neighbors:
        return OrderResult(reason=RejectReason.NOT_NEIGHBOR)

    travel_time = travel_time_between(origin, target, speed, min_travel_time)
    origin.remove_troops(order.troops)
    march = world.add_march(
        owner=order.player_id,
        origin_id=origin.id,
        target_id=target.id,
        troops=order.troops,
        start_time=now,
        travel_time=travel_time,
    )

    text = (
        f"t={world.tick}: player {order.player_id[:6]} sent {march.troops} troops "
        f"from {origin.name} to {target.name} (eta {travel_time:.1f}s)."
    )
    world.log_event("march", [origin.id, target.id], [order.player_id], text)
    return OrderResult(march=march)


def handle_order_payload(world: World, player_id: str, payload: Any, now: float) -> OrderResult:
    order = parse_move_order(player_id, payload)
    if order is None:
        return OrderResult(reason=RejectReason.MALFORMED)
    return issue_march(world, order, now)
