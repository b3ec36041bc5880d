from sessions import PLAYER_COLORS, connect_player, disconnect_player, pick_color
from world import Player, create_world


def test_connect_grants_first_free_territory(world):
    player = connect_player(world, "p1", troops_min=5, troops_max=12)
    assert player.resources == 0
    assert world.get_player("p1") is player
    # A has 10 troops, already within [5, 12]
    assert world.territories["A"].owner == "p1"
    assert world.territories["A"].troops == 10
    assert world.history[-1].kind == "connect"


def test_start_troops_are_clamped_into_range(world):
    connect_player(world, "p1", troops_min=5, troops_max=8)  # A: 10 -> 8
    connect_player(world, "p2", troops_min=5, troops_max=8)  # B: 0 -> 5
    assert world.territories["A"].troops == 8
    assert world.territories["B"].owner == "p2"
    assert world.territories["B"].troops == 5


def test_connect_without_free_territory(world):
    for pid in ("p1", "p2", "p3"):
        connect_player(world, pid)
    late = connect_player(world, "p4")
    assert world.get_player("p4") is late
    assert world.owned_by("p4") == []


def test_generated_ids_are_unique(world):
    a = connect_player(world)
    b = connect_player(world)
    assert a.id != b.id


def test_colors_prefer_unused_palette_entries(world):
    colors = [connect_player(world).color for _ in range(len(PLAYER_COLORS))]
    assert sorted(colors) == sorted(PLAYER_COLORS)
    # palette exhausted: a repeat is fine
    assert connect_player(world).color in PLAYER_COLORS


def test_pick_color_skips_taken(world):
    world.add_player(Player(id="x", color="red"))
    assert pick_color(world, ["red", "blue"]) == "blue"


def test_disconnect_reverts_ownership_keeps_troops(p1_world):
    p1_world.territories["B"].owner = "p1"
    p1_world.territories["B"].troops = 4

    freed = disconnect_player(p1_world, "p1")

    assert sorted(freed) == ["A", "B"]
    assert p1_world.get_player("p1") is None
    assert p1_world.territories["A"].owner is None
    assert p1_world.territories["A"].troops == 10
    assert p1_world.territories["B"].owner is None
    assert p1_world.territories["B"].troops == 4
    assert p1_world.territories["C"].owner == "p2"


def test_disconnect_leaves_marches_in_flight(p1_world):
    march = p1_world.add_march("p1", "A", "B", 3, start_time=0.0, travel_time=1.0)
    disconnect_player(p1_world, "p1")
    assert p1_world.marches[march.id] is march


def test_reconnect_after_disconnect_gets_freed_territory():
    world = create_world([{"id": "A", "name": "A", "troops": 2}])
    connect_player(world, "p1", troops_min=5, troops_max=12)
    disconnect_player(world, "p1")
    connect_player(world, "p2", troops_min=5, troops_max=12)
    assert world.territories["A"].owner == "p2"
    assert world.territories["A"].troops == 5
