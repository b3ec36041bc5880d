# tests/conftest.py
from __future__ import annotations

import pytest

from world import Player, World, create_world


@pytest.fixture
def small_map() -> list:
    """
    A -- B -- C on a line, 100 units apart. B only appears in A's and C's
    neighbour lists so the map also exercises symmetrising.
    """
    return [
        {"id": "A", "name": "Alpha", "x": 0, "y": 0, "troops": 10, "income": 2, "neighbors": ["B"]},
        {"id": "B", "name": "Bravo", "x": 100, "y": 0, "troops": 0, "income": 3, "neighbors": []},
        {"id": "C", "name": "Charlie", "x": 200, "y": 0, "troops": 5, "income": 1, "neighbors": ["B"]},
    ]


@pytest.fixture
def world(small_map) -> World:
    return create_world(small_map)


@pytest.fixture
def p1_world(world: World) -> World:
    """World where player p1 holds A and p2 holds C."""
    world.add_player(Player(id="p1", color="#1776ff"))
    world.add_player(Player(id="p2", color="#ff5c5c"))
    world.territories["A"].owner = "p1"
    world.territories["C"].owner = "p2"
    return world
