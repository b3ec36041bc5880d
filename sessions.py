#!/usr/bin/env python3
from __future__ import annotations

import random
import uuid
from typing import List, Optional, Sequence

from config import SIM_CONFIG
from world import Player, Territory, World

PLAYER_COLORS: List[str] = list(
    SIM_CONFIG.get(
        "player_colors",
        ["#1776ff", "#ff5c5c", "#2ecc71", "#f39c12", "#9b59b6", "#e67e22"],
    )
)
INITIAL_TROOPS_MIN: int = int(SIM_CONFIG.get("initial_troops_min", 5))
INITIAL_TROOPS_MAX: int = int(SIM_CONFIG.get("initial_troops_max", 12))

if INITIAL_TROOPS_MIN > INITIAL_TROOPS_MAX:
    raise ValueError("initial_troops_min must not exceed initial_troops_max")


def pick_color(world: World, palette: Sequence[str] = PLAYER_COLORS) -> str:
    """First palette colour nobody uses; a random repeat once all are taken."""
    used = {p.color for p in world.players.values()}
    for color in palette:
        if color not in used:
            return color
    return random.choice(list(palette))


def _grant_start_territory(
    world: World,
    player: Player,
    troops_min: int,
    troops_max: int,
) -> Optional[Territory]:
    free = next((t for t in world.territories.values() if t.owner is None), None)
    if free is None:
        return None
    free.owner = player.id
    # keep the existing garrison, only pull it into the starting range
    free.troops = max(troops_min, min(troops_max, free.troops))
    return free


def connect_player(
    world: World,
    player_id: Optional[str] = None,
    troops_min: int = INITIAL_TROOPS_MIN,
    troops_max: int = INITIAL_TROOPS_MAX,
) -> Player:
    """Register a new player and hand it the first neutral territory, if any."""
    player = Player(id=player_id or uuid.uuid4().hex, color=pick_color(world))
    world.add_player(player)

    home = _grant_start_territory(world, player, troops_min, troops_max)
    if home is not None:
        text = f"t={world.tick}: player {player.id[:6]} joined and took {home.name} ({home.troops} troops)."
        world.log_event("connect", [home.id], [player.id], text)
    else:
        text = f"t={world.tick}: player {player.id[:6]} joined; no free territory left."
        world.log_event("connect", [], [player.id], text)
    return player


def disconnect_player(world: World, player_id: str) -> List[str]:
    """
    Drop the player and make its territories neutral. Troops stay where
    they are and in-flight marches keep going. Returns the freed ids.
    """
    world.remove_player(player_id)
    freed: List[str] = []
    for territory in world.owned_by(player_id):
        territory.owner = None
        freed.append(territory.id)

    text = f"t={world.tick}: player {player_id[:6]} left; {len(freed)} territories are neutral again."
    world.log_event("disconnect", freed, [player_id], text)
    return freed
