"""
plantuml/timing/model.py

Intermediate model for PlantUML timing diagrams.

Players own their state changes; constraints, messages and highlights
are diagram-level and refer to players by code and to instants by
numeric time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


class PlayerType:
    ROBUST = "robust"
    CONCISE = "concise"
    CLOCK = "clock"
    BINARY = "binary"
    ANALOG = "analog"
    RECTANGLE = "rectangle"


class NotePosition:
    TOP = "top"
    BOTTOM = "bottom"


@dataclass
class StateChange:
    time: float
    state: str
    comment: Optional[str] = None
    color: Optional[str] = None


@dataclass
class Player:
    """One waveform lane.

    Attributes:
        code: Identifier used in ``@code`` and ``code is state`` lines.
        display_name: Lane label.
        type: One of :class:`PlayerType`.
        compact: Declared with the ``compact`` prefix.
        states: Declared state order, top lane level first.  States first
            seen in a state change are appended.
        state_aliases: ``has "Label" as CODE`` mapping of code to label.
        state_changes: Sorted by time once parsing completes.
        clock_period: Square-wave period for clocks.
        clock_pulse: High time per period; half the period by default.
        clock_offset: Time of the first rising edge.
        analog_start: Lower bound of the analog value range.
        analog_end: Upper bound of the analog value range.
    """
    code: str
    display_name: str = ""
    type: str = PlayerType.ROBUST
    compact: bool = False
    color: Optional[str] = None
    stereotype: Optional[str] = None
    states: List[str] = field(default_factory=list)
    state_aliases: Dict[str, str] = field(default_factory=dict)
    state_changes: List[StateChange] = field(default_factory=list)
    clock_period: float = 0
    clock_pulse: float = 0
    clock_offset: float = 0
    analog_start: Optional[float] = None
    analog_end: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.code

    def state_label(self, state: str) -> str:
        return self.state_aliases.get(state, state)


@dataclass
class TimeConstraint:
    """``@t1 <-> @t2 : label``; ``player_code`` is None for free constraints."""
    time1: float
    time2: float
    player_code: Optional[str] = None
    label: str = ""


@dataclass
class TimeMessage:
    from_player: str
    from_time: float
    to_player: str
    to_time: float
    label: str = ""


@dataclass
class Highlight:
    start: float
    end: float
    color: Optional[str] = None
    caption: str = ""


@dataclass
class Note:
    position: str
    player_code: str
    text: str
    color: Optional[str] = None


@dataclass
class TimingDiagram:
    title: Optional[str] = None
    players: Dict[str, Player] = field(default_factory=dict)
    constraints: List[TimeConstraint] = field(default_factory=list)
    messages: List[TimeMessage] = field(default_factory=list)
    highlights: List[Highlight] = field(default_factory=list)
    notes: List[Note] = field(default_factory=list)
    time_aliases: Dict[str, float] = field(default_factory=dict)
    hide_time_axis: bool = False
    compact_mode: bool = False

    def add_player(self, player: Player) -> Player:
        """Register *player*, or merge it into an earlier implicit one."""
        existing = self.players.get(player.code)
        if existing is None:
            self.players[player.code] = player
            return player
        existing.type = player.type
        existing.compact = player.compact
        existing.color = player.color or existing.color
        existing.stereotype = player.stereotype or existing.stereotype
        if player.display_name != player.code:
            existing.display_name = player.display_name
        for name in ("clock_period", "clock_pulse", "clock_offset", "analog_start", "analog_end"):
            setattr(existing, name, getattr(player, name))
        return existing

    def get_or_create(self, code: str) -> Player:
        player = self.players.get(code)
        if player is None:
            player = Player(code=code)
            self.players[code] = player
        return player

    def all_times(self) -> List[float]:
        """Every instant mentioned anywhere in the diagram, sorted and unique."""
        times = set()
        for player in self.players.values():
            times.update(sc.time for sc in player.state_changes)
        for c in self.constraints:
            times.update((c.time1, c.time2))
        for msg in self.messages:
            times.update((msg.from_time, msg.to_time))
        for h in self.highlights:
            times.update((h.start, h.end))
        return sorted(times)
