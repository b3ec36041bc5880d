#!/usr/bin/env python3
"""Arrival resolution: what happens when a march reaches its destination."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from world import March, Territory


class Outcome(str, Enum):
    REINFORCE = "reinforce"  # friendly destination
    CLAIM = "claim"  # neutral destination taken without a fight
    ABSORB = "absorb"  # ownerless march merged into a neutral destination
    CAPTURE = "capture"  # attacker won
    ANNIHILATE = "annihilate"  # equal forces, both wiped out
    REPEL = "repel"  # defender held


def resolve_arrival(march: March, destination: Territory, orphaned: bool = False) -> Outcome:
    """
    Apply ``march`` to ``destination`` in place and return what happened.

    Deterministic: only the two troop counts matter. An ``orphaned`` march
    (its player has left) fights without an owner, so anything it takes
    stays neutral.
    """
    attacker: Optional[str] = None if orphaned else march.owner

    if destination.owner is None or destination.owner == attacker:
        if destination.owner is not None:
            outcome = Outcome.REINFORCE
        elif attacker is None:
            outcome = Outcome.ABSORB
        else:
            outcome = Outcome.CLAIM
        destination.add_troops(march.troops)
        destination.owner = attacker
        return outcome

    if march.troops > destination.troops:
        destination.owner = attacker
        destination.troops = march.troops - destination.troops
        return Outcome.CAPTURE
    if march.troops == destination.troops:
        destination.owner = None
        destination.troops = 0
        return Outcome.ANNIHILATE
    destination.remove_troops(march.troops)
    return Outcome.REPEL
