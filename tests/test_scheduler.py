import math

import pytest

from orders import MoveOrder, issue_march
from scheduler import TickSummary, advance_marches, advance_world, resolve_arrivals, run_production
from sessions import disconnect_player


def test_end_to_end_claim_of_neutral_neighbour(p1_world):
    result = issue_march(
        p1_world, MoveOrder("p1", "A", "B", 6), now=100.0, speed=100.0, min_travel_time=0.5
    )
    march = result.march
    assert p1_world.territories["A"].troops == 4
    assert [m.troops for m in p1_world.marches.values()] == [6]
    assert march.progress == 0.0

    summary = advance_world(p1_world, now=100.0 + march.travel_time, production_ticks=0)

    assert summary.arrived == [march.id]
    assert summary.outcomes == {"claim": 1}
    assert p1_world.marches == {}
    assert p1_world.territories["B"].owner == "p1"
    assert p1_world.territories["B"].troops == 6


def test_progress_is_monotonic_and_completes(p1_world):
    tick_interval = 0.3
    march = issue_march(p1_world, MoveOrder("p1", "A", "B", 2), now=0.0, speed=100.0).march
    max_ticks = math.ceil(march.travel_time / tick_interval)

    seen = []
    for k in range(1, max_ticks + 1):
        if march.id not in p1_world.marches:
            break
        advance_world(p1_world, now=k * tick_interval, production_ticks=0)
        seen.append(march.progress)

    assert seen == sorted(seen)
    assert seen[-1] == 1.0
    assert march.id not in p1_world.marches


def test_progress_never_goes_backwards(p1_world):
    march = p1_world.add_march("p1", "A", "B", 1, start_time=10.0, travel_time=4.0)
    advance_marches(p1_world, now=12.0)
    assert march.progress == pytest.approx(0.5)
    advance_marches(p1_world, now=11.0)
    assert march.progress == pytest.approx(0.5)
    advance_marches(p1_world, now=5.0)
    assert march.progress == pytest.approx(0.5)
    advance_marches(p1_world, now=100.0)
    assert march.progress == 1.0


def test_new_march_waits_for_next_tick(p1_world):
    march = p1_world.add_march("p1", "A", "B", 1, start_time=0.0, travel_time=1.0)
    summary = advance_world(p1_world, now=0.5, production_ticks=0)
    assert summary.arrived == []
    assert p1_world.marches[march.id].progress == pytest.approx(0.5)


def test_simultaneous_arrivals_resolve_in_creation_order(p1_world):
    p1_world.territories["B"].owner = "p2"
    p1_world.territories["B"].troops = 5
    p1_world.territories["C"].troops = 20
    # p2 reinforces first, then p1 attacks what is left
    reinforce = p1_world.add_march("p2", "C", "B", 3, start_time=0.0, travel_time=1.0)
    attack = p1_world.add_march("p1", "A", "B", 10, start_time=0.0, travel_time=0.5)

    summary = advance_world(p1_world, now=2.0, production_ticks=0)

    assert summary.arrived == [reinforce.id, attack.id]
    assert summary.outcomes == {"reinforce": 1, "capture": 1}
    assert p1_world.territories["B"].owner == "p1"
    assert p1_world.territories["B"].troops == 2


def test_arrival_with_missing_destination_is_discarded(p1_world):
    ghost = p1_world.add_march("p1", "A", "gone", 3, start_time=0.0, travel_time=1.0)
    real = p1_world.add_march("p1", "A", "B", 3, start_time=0.0, travel_time=1.0)

    summary = advance_world(p1_world, now=5.0, production_ticks=0)

    assert summary.discarded == [ghost.id]
    assert summary.arrived == [real.id]
    assert p1_world.marches == {}
    assert p1_world.territories["B"].troops == 3


def test_failing_arrival_is_isolated(p1_world, monkeypatch):
    import scheduler

    bad = p1_world.add_march("p1", "A", "B", 3, start_time=0.0, travel_time=1.0)
    good = p1_world.add_march("p1", "A", "B", 4, start_time=0.0, travel_time=1.0)
    real_resolve = scheduler.resolve_arrival

    def flaky(march, destination, orphaned=False):
        if march.id == bad.id:
            raise RuntimeError("boom")
        return real_resolve(march, destination, orphaned=orphaned)

    monkeypatch.setattr(scheduler, "resolve_arrival", flaky)
    advance_marches(p1_world, now=5.0)
    assert bad.arrived and good.arrived

    summary = TickSummary(tick=1)
    resolve_arrivals(p1_world, summary)

    assert summary.discarded == [bad.id]
    assert summary.arrived == [good.id]
    assert p1_world.marches == {}
    assert p1_world.territories["B"].troops == 4


def test_failing_arrival_does_not_stop_the_tick(p1_world, monkeypatch):
    import scheduler

    def broken(march, destination, orphaned=False):
        raise RuntimeError("boom")

    monkeypatch.setattr(scheduler, "resolve_arrival", broken)
    p1_world.add_march("p1", "A", "B", 3, start_time=0.0, travel_time=1.0)

    summary = advance_world(p1_world, now=5.0, production_ticks=1)

    assert summary.discarded == [0]
    assert summary.produced
    assert p1_world.marches == {}
    assert p1_world.territories["A"].troops == 12


def test_march_of_departed_player_leaves_territory_neutral(p1_world):
    p1_world.add_march("p1", "A", "B", 6, start_time=0.0, travel_time=1.0)
    disconnect_player(p1_world, "p1")

    summary = advance_world(p1_world, now=2.0, production_ticks=0)

    assert summary.outcomes == {"absorb": 1}
    assert p1_world.territories["B"].owner is None
    assert p1_world.territories["B"].troops == 6


def test_production_happens_exactly_once_per_cycle(p1_world):
    a = p1_world.territories["A"]
    c = p1_world.territories["C"]
    b = p1_world.territories["B"]

    summaries = [advance_world(p1_world, now=0.0, production_ticks=4) for _ in range(4)]

    assert [s.produced for s in summaries] == [False, False, False, True]
    assert a.troops == 10 + 2
    assert c.troops == 5 + 1
    assert b.troops == 0  # neutral, no production
    assert p1_world.players["p1"].resources == 2
    assert p1_world.players["p2"].resources == 1


def test_production_uses_default_when_income_unset(p1_world):
    p1_world.territories["A"].income = None
    run_production(p1_world, default_amount=5)
    assert p1_world.territories["A"].troops == 15
    assert p1_world.players["p1"].resources == 5


def test_troops_never_negative_through_ticks(p1_world):
    p1_world.territories["B"].owner = "p2"
    p1_world.territories["B"].troops = 9
    issue_march(p1_world, MoveOrder("p1", "A", "B", 10), now=0.0)
    for k in range(1, 6):
        advance_world(p1_world, now=float(k), production_ticks=2)
        for t in p1_world.territories.values():
            assert t.troops >= 0
        for m in p1_world.marches.values():
            assert m.troops > 0
