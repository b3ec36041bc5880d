#!/usr/bin/env python3
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from config import SIM_CONFIG

# World-level config from JSON
MAP_CONFIG: List[Dict[str, Any]] = SIM_CONFIG.get("territories", [])
PRODUCTION_PER_TERRITORY: int = int(SIM_CONFIG.get("production_per_territory", 2))
MAX_EVENTS: int = int(SIM_CONFIG.get("max_events", 80))
MAX_HISTORY: int = int(SIM_CONFIG.get("max_history", 500))


@dataclass
class Territory:
    id: str
    name: str
    x: float  # logical map coordinates
    y: float
    owner: Optional[str] = None  # player id or None (neutral)
    troops: int = 0
    income: Optional[int] = None  # troops per production cycle; None uses the default
    neighbors: List[str] = field(default_factory=list)

    def effective_income(self, default: int = PRODUCTION_PER_TERRITORY) -> int:
        return self.income if self.income is not None else default

    def add_troops(self, amount: int) -> None:
        self.troops = max(0, self.troops + amount)

    def remove_troops(self, amount: int) -> None:
        self.troops = max(0, self.troops - amount)


@dataclass
class Player:
    id: str
    color: str
    resources: int = 0


@dataclass
class March:
    id: int
    owner: str  # player id at launch; kept even after that player leaves
    origin_id: str
    target_id: str
    troops: int
    start_time: float  # seconds, same clock the tick loop uses
    travel_time: float  # seconds
    progress: float = 0.0  # 0..1

    @property
    def arrived(self) -> bool:
        return self.progress >= 1.0


@dataclass
class HistoricalEvent:
    tick: int
    kind: str  # "connect", "march", "claim", "capture", "repel", ...
    territories: List[str]
    players: List[str]
    text: str


@dataclass
class World:
    """
    Authoritative in-memory game state.

    Every component receives the same World and mutates it only through
    the accessors below or the owning territory/march records.
    """

    tick: int
    territories: Dict[str, Territory]
    players: Dict[str, Player] = field(default_factory=dict)
    marches: Dict[int, March] = field(default_factory=dict)  # insertion == creation order
    next_march_id: int = 0
    events: List[str] = field(default_factory=list)
    history: List[HistoricalEvent] = field(default_factory=list)

    # ---------- Lookups ----------

    def get_territory(self, territory_id: str) -> Optional[Territory]:
        return self.territories.get(territory_id)

    def get_player(self, player_id: str) -> Optional[Player]:
        return self.players.get(player_id)

    def owned_by(self, player_id: str) -> List[Territory]:
        return [t for t in self.territories.values() if t.owner == player_id]

    # ---------- Mutations ----------

    def add_player(self, player: Player) -> None:
        if player.id in self.players:
            raise ValueError(f"Player {player.id} already connected.")
        self.players[player.id] = player

    def remove_player(self, player_id: str) -> Optional[Player]:
        return self.players.pop(player_id, None)

    def add_march(
        self,
        owner: str,
        origin_id: str,
        target_id: str,
        troops: int,
        start_time: float,
        travel_time: float,
    ) -> March:
        mid = self.next_march_id
        self.next_march_id += 1
        march = March(
            id=mid,
            owner=owner,
            origin_id=origin_id,
            target_id=target_id,
            troops=troops,
            start_time=start_time,
            travel_time=travel_time,
        )
        self.marches[mid] = march
        return march

    def remove_march(self, march_id: int) -> Optional[March]:
        return self.marches.pop(march_id, None)

    def log_event(self, kind: str, territory_ids: List[str], player_ids: List[str], text: str) -> None:
        self.events.append(text)
        if len(self.events) > MAX_EVENTS:
            self.events = self.events[-MAX_EVENTS:]
        self.history.append(
            HistoricalEvent(
                tick=self.tick,
                kind=kind,
                territories=territory_ids,
                players=player_ids,
                text=text,
            )
        )
        if len(self.history) > MAX_HISTORY:
            self.history = self.history[-MAX_HISTORY:]


# ---------- Map construction ----------


def create_world(territories: Optional[Iterable[Dict[str, Any]]] = None) -> World:
    """
    Build a fresh World from map data (defaults to the configured map).

    Neighbour links are made symmetric: if A lists B, B gets A too.
    """
    entries = list(MAP_CONFIG if territories is None else territories)
    if not entries:
        raise ValueError("Map defines no territories.")

    built: Dict[str, Territory] = {}
    for entry in entries:
        tid = str(entry["id"])
        if tid in built:
            raise ValueError(f"Duplicate territory id: {tid}")
        troops = int(entry.get("troops", 0))
        income = entry.get("income")
        income = int(income) if income is not None else None
        if troops < 0 or (income is not None and income < 0):
            raise ValueError(f"Territory {tid} has negative troops or income.")
        built[tid] = Territory(
            id=tid,
            name=str(entry.get("name", tid)),
            x=float(entry.get("x", 0.0)),
            y=float(entry.get("y", 0.0)),
            troops=troops,
            income=income,
        )

    links = set()
    for entry in entries:
        a = str(entry["id"])
        for raw in entry.get("neighbors", []):
            b = str(raw)
            if b not in built:
                raise ValueError(f"Territory {a} lists unknown neighbor {b}")
            if a == b:
                continue
            links.add((a, b))
            links.add((b, a))

    # keep authored order, then append links added by symmetrising
    for entry in entries:
        a = str(entry["id"])
        for raw in entry.get("neighbors", []):
            b = str(raw)
            if a != b and b not in built[a].neighbors:
                built[a].neighbors.append(b)
    for a, b in sorted(links):
        if b not in built[a].neighbors:
            built[a].neighbors.append(b)

    return World(tick=0, territories=built)
