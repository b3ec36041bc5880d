#!/usr/bin/env python3
from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from typing import Dict, List

from combat import Outcome, resolve_arrival
from config import SIM_CONFIG
from world import World

PRODUCTION_TICKS: int = int(SIM_CONFIG.get("production_ticks", 7))  # ticks between production
PRODUCTION_PER_TERRITORY: int = int(SIM_CONFIG.get("production_per_territory", 2))


@dataclass
class TickSummary:
    """What a single tick did, mostly for logging and tests."""

    tick: int
    arrived: List[int] = field(default_factory=list)
    discarded: List[int] = field(default_factory=list)
    outcomes: Dict[str, int] = field(default_factory=dict)
    produced: bool = False


def advance_marches(world: World, now: float) -> None:
    for march in world.marches.values():
        if march.travel_time <= 0:
            fraction = 1.0
        else:
            fraction = (now - march.start_time) / march.travel_time
        fraction = min(1.0, max(0.0, fraction))
        # never move backwards, even if the clock does
        march.progress = max(march.progress, fraction)


def resolve_arrivals(world: World, summary: TickSummary) -> None:
    """
    Resolve every completed march in creation order, then drop it.

    Marches hitting the same territory in one tick fight one after another,
    each against whatever the previous one left behind.
    """
    arrived = [m for m in world.marches.values() if m.arrived]
    for march in arrived:
        destination = world.get_territory(march.target_id)
        if destination is None:
            print(f"SIM: march {march.id} targets missing territory {march.target_id}; discarded.")
            world.remove_march(march.id)
            summary.discarded.append(march.id)
            continue

        defender = destination.owner
        defenders = destination.troops
        orphaned = world.get_player(march.owner) is None
        try:
            outcome = resolve_arrival(march, destination, orphaned=orphaned)
        except Exception:
            print(f"SIM: error resolving march {march.id}:")
            traceback.print_exc()
            world.remove_march(march.id)
            summary.discarded.append(march.id)
            continue

        world.remove_march(march.id)
        summary.arrived.append(march.id)
        summary.outcomes[outcome.value] = summary.outcomes.get(outcome.value, 0) + 1

        players = [march.owner] + ([defender] if defender and defender != march.owner else [])
        text = _describe(world.tick, march.owner, march.troops, destination.name, defenders, outcome, orphaned)
        world.log_event(outcome.value, [destination.id], players, text)


def _describe(
    tick: int,
    owner: str,
    troops: int,
    where: str,
    defenders: int,
    outcome: Outcome,
    orphaned: bool,
) -> str:
    who = f"{troops} troops of {owner[:6]}" + (" (player gone)" if orphaned else "")
    if outcome is Outcome.REINFORCE:
        return f"t={tick}: {who} reinforced {where}."
    if outcome is Outcome.CLAIM:
        return f"t={tick}: {who} claimed neutral {where}."
    if outcome is Outcome.ABSORB:
        return f"t={tick}: {who} merged into neutral {where}."
    if outcome is Outcome.CAPTURE:
        return f"t={tick}: {who} captured {where} from {defenders} defenders."
    if outcome is Outcome.ANNIHILATE:
        return f"t={tick}: {who} and {defenders} defenders wiped each other out at {where}."
    return f"t={tick}: {who} failed to take {where} ({defenders} defenders)."


def run_production(world: World, default_amount: int = PRODUCTION_PER_TERRITORY) -> None:
    for territory in world.territories.values():
        if territory.owner is None:
            continue
        amount = territory.effective_income(default_amount)
        territory.add_troops(amount)
        player = world.get_player(territory.owner)
        if player is not None:
            player.resources += amount


def advance_world(
    world: World,
    now: float,
    production_ticks: int = PRODUCTION_TICKS,
    production_amount: int = PRODUCTION_PER_TERRITORY,
) -> TickSummary:
    """
    Advance the world by one tick: move marches, resolve arrivals, and
    produce every ``production_ticks`` ticks. Broadcasting is the caller's job.
    """
    world.tick += 1
    summary = TickSummary(tick=world.tick)

    advance_marches(world, now)
    resolve_arrivals(world, summary)

    if production_ticks > 0 and world.tick % production_ticks == 0:
        run_production(world, production_amount)
        summary.produced = True

    return summary
