"""
plantuml/timing/parser.py

Line-oriented parser for PlantUML timing diagrams.

Time is tracked with a cursor: ``@100`` (absolute), ``@+50`` (relative to
the cursor) and ``@:name`` (an alias defined by ``@100 as :name``) move
it.  ``@Player`` switches to player context instead, where lines read
``<time> is <state>``.  Each state change is recorded against the
player it names, and the change lists are sorted by time at the end.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from plantuml.common import dedent_note, iter_source_lines, unquote
from plantuml.timing.model import (
    Highlight,
    Note,
    Player,
    PlayerType,
    StateChange,
    TimeConstraint,
    TimeMessage,
    TimingDiagram,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════
# Pattern catalog
# ═══════════════════════════════════════════════════════════

_NUM = r"-?\d+(?:\.\d+)?"
_TIME = rf"(?:\+?{_NUM}|:[\w.]+)"
_CODE = r"[\w.]+"
_COLOR = r"#\w+"
_NAME = r'(?:"([^"]+)"\s+(?i:as)\s+)?'

RE_TITLE = re.compile(r"^(?i:title)\s+(.+)$")
RE_MODE_COMPACT = re.compile(r"^(?i:mode\s+compact)\s*$")
RE_HIDE_AXIS = re.compile(r"^(?i:(?:hide|manual)\s+time[-\s]?axis)\s*$")

RE_PLAYER = re.compile(
    rf"^(?:(?i:(compact))\s+)?(?i:(robust|concise|rectangle))\s+{_NAME}({_CODE})"
    rf"\s*(?:<<\s*(.+?)\s*>>)?\s*({_COLOR})?\s*$"
)
RE_CLOCK = re.compile(
    rf"^(?:(?i:(compact))\s+)?(?i:clock)\s+{_NAME}({_CODE})\s+(?i:with\s+period)\s+({_NUM})"
    rf"(?:\s+(?i:pulse)\s+({_NUM}))?(?:\s+(?i:offset)\s+({_NUM}))?\s*$"
)
RE_BINARY = re.compile(
    rf"^(?:(?i:(compact))\s+)?(?i:binary)\s+{_NAME}({_CODE})\s*({_COLOR})?\s*$"
)
RE_ANALOG = re.compile(
    rf'^(?:(?i:(compact))\s+)?(?i:analog)\s+(?:"([^"]+)"\s+)?'
    rf"(?:(?i:between|from)\s+({_NUM})\s+(?i:and|to)\s+({_NUM})\s+)?"
    rf"(?:(?i:as)\s+)?({_CODE})\s*$"
)
RE_HAS = re.compile(rf"^({_CODE})\s+(?i:has)\s+(.+)$")
RE_HAS_ALIAS = re.compile(rf'^"([^"]+)"\s+(?i:as)\s+({_CODE})$')

RE_NOTE = re.compile(
    rf"^(?i:note)\s+(?i:(top|bottom))\s+(?i:of)\s+({_CODE})\s*({_COLOR})?\s*:\s*(.*)$"
)
RE_NOTE_START = re.compile(
    rf"^(?i:note)\s+(?i:(top|bottom))\s+(?i:of)\s+({_CODE})\s*({_COLOR})?\s*$"
)
RE_END_NOTE = re.compile(r"^(?i:end\s*note)\s*$")

RE_HIGHLIGHT = re.compile(
    rf"^(?i:highlight)\s+@?({_TIME})\s+(?i:to)\s+@?({_TIME})"
    rf"\s*(?:({_COLOR})(?:;[\w-]+:#?\w+)*)?\s*(?::\s*(.*))?$"
)
RE_CONSTRAINT = re.compile(
    rf"^(?:({_CODE}))?@({_TIME})\s*<->\s*@({_TIME})\s*(?::\s*(.*))?$"
)
RE_MESSAGE = re.compile(
    rf"^({_CODE})@({_TIME})\s*-+>\s*({_CODE})@({_TIME})\s*(?::\s*(.*))?$"
)
RE_AT = re.compile(rf"^@(\S+?)(?:\s+(?i:as)\s+:({_CODE}))?\s*$")
RE_TIME_TOKEN = re.compile(rf"^{_TIME}$")

_STATE = r'(?:"([^"]*)"|(\{[^}]*\})|([^\s#:]+))'
RE_PLAYER_IS = re.compile(
    rf"^({_CODE})\s+(?i:is)\s+{_STATE}\s*({_COLOR})?\s*(?::\s*(.*))?$"
)
RE_TIME_IS = re.compile(
    rf"^({_TIME})\s+(?i:is)\s+{_STATE}\s*({_COLOR})?\s*(?::\s*(.*))?$"
)


def _clean(value: float) -> float:
    return int(value) if float(value).is_integer() else value


def _num(text: str) -> float:
    return _clean(float(text))


# ═══════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════

NORMAL = "normal"
MULTILINE_NOTE = "multiline_note"


class TimingParser:
    """Stateful single-use parser; call :meth:`parse` once per source."""

    def __init__(self) -> None:
        self.diagram = TimingDiagram()
        self.state = NORMAL
        self.current_time: float = 0
        self.current_player: Optional[Player] = None
        self.buffer: List[str] = []
        self.pending_note: Optional[Note] = None

        self._recognizers = [
            self._parse_title,
            self._parse_mode,
            self._parse_hide_axis,
            self._parse_player,
            self._parse_clock,
            self._parse_binary,
            self._parse_analog,
            self._parse_has,
            self._parse_note,
            self._parse_note_start,
            self._parse_highlight,
            self._parse_constraint,
            self._parse_message,
            self._parse_at,
            self._parse_player_is,
            self._parse_time_is,
        ]

    def parse(self, text: str) -> TimingDiagram:
        for line, raw in iter_source_lines(text):
            if self.state == MULTILINE_NOTE:
                if RE_END_NOTE.match(line):
                    self.pending_note.text = dedent_note(self.buffer)
                    self.diagram.notes.append(self.pending_note)
                    self.pending_note = None
                    self.buffer = []
                    self.state = NORMAL
                else:
                    self.buffer.append(raw)
                continue
            if not line:
                continue
            if not any(recognize(line) for recognize in self._recognizers):
                log.debug("timing: ignored line %r", line)

        if self.state == MULTILINE_NOTE:
            log.debug("timing: unterminated note dropped")
        for player in self.diagram.players.values():
            player.state_changes.sort(key=lambda sc: sc.time)
        return self.diagram

    # ── helpers ────────────────────────────────────────────

    def resolve_time(self, token: str) -> float:
        """Resolve an absolute, ``+relative`` or ``:alias`` time token."""
        if token.startswith(":"):
            name = token[1:]
            if name not in self.diagram.time_aliases:
                log.debug("timing: unknown time alias %r", name)
                return self.current_time
            return self.diagram.time_aliases[name]
        if token.startswith("+"):
            return _clean(self.current_time + _num(token[1:]))
        return _num(token)

    def _record(self, player: Player, time: float, state: str, color: Optional[str],
                comment: Optional[str]) -> None:
        player.state_changes.append(StateChange(
            time=time, state=state, comment=comment or None, color=color,
        ))
        if player.type != PlayerType.CLOCK and state not in player.states:
            player.states.append(state)

    @staticmethod
    def _state_of(m: re.Match, first: int) -> str:
        quoted, braced, plain = m.group(first), m.group(first + 1), m.group(first + 2)
        if quoted is not None:
            return quoted
        return braced or plain

    # ── header ─────────────────────────────────────────────

    def _parse_title(self, line: str) -> bool:
        m = RE_TITLE.match(line)
        if not m:
            return False
        self.diagram.title = m.group(1).strip()
        return True

    def _parse_mode(self, line: str) -> bool:
        if not RE_MODE_COMPACT.match(line):
            return False
        self.diagram.compact_mode = True
        return True

    def _parse_hide_axis(self, line: str) -> bool:
        if not RE_HIDE_AXIS.match(line):
            return False
        self.diagram.hide_time_axis = True
        return True

    # ── players ────────────────────────────────────────────

    def _parse_player(self, line: str) -> bool:
        m = RE_PLAYER.match(line)
        if not m:
            return False
        self.diagram.add_player(Player(
            code=m.group(4), display_name=m.group(3) or m.group(4),
            type=m.group(2).lower(), compact=bool(m.group(1)),
            stereotype=m.group(5), color=m.group(6),
        ))
        return True

    def _parse_clock(self, line: str) -> bool:
        m = RE_CLOCK.match(line)
        if not m:
            return False
        period = _num(m.group(4))
        self.diagram.add_player(Player(
            code=m.group(3), display_name=m.group(2) or m.group(3),
            type=PlayerType.CLOCK, compact=bool(m.group(1)),
            clock_period=period,
            clock_pulse=_num(m.group(5)) if m.group(5) else period / 2,
            clock_offset=_num(m.group(6)) if m.group(6) else 0,
        ))
        return True

    def _parse_binary(self, line: str) -> bool:
        m = RE_BINARY.match(line)
        if not m:
            return False
        self.diagram.add_player(Player(
            code=m.group(3), display_name=m.group(2) or m.group(3),
            type=PlayerType.BINARY, compact=bool(m.group(1)), color=m.group(4),
        ))
        return True

    def _parse_analog(self, line: str) -> bool:
        m = RE_ANALOG.match(line)
        if not m:
            return False
        self.diagram.add_player(Player(
            code=m.group(5), display_name=m.group(2) or m.group(5),
            type=PlayerType.ANALOG, compact=bool(m.group(1)),
            analog_start=_num(m.group(3)) if m.group(3) else None,
            analog_end=_num(m.group(4)) if m.group(4) else None,
        ))
        return True

    def _parse_has(self, line: str) -> bool:
        m = RE_HAS.match(line)
        if not m or m.group(1) not in self.diagram.players:
            return False
        player = self.diagram.players[m.group(1)]
        rest = m.group(2).strip()
        alias = RE_HAS_ALIAS.match(rest)
        if alias:
            player.state_aliases[alias.group(2)] = alias.group(1)
            if alias.group(2) not in player.states:
                player.states.append(alias.group(2))
            return True
        for state in re.findall(r'"[^"]*"|[^,]+', rest):
            state = unquote(state.strip())
            if state and state not in player.states:
                player.states.append(state)
        return True

    # ── annotations ────────────────────────────────────────

    def _parse_note(self, line: str) -> bool:
        m = RE_NOTE.match(line)
        if not m:
            return False
        self.diagram.notes.append(Note(
            position=m.group(1).lower(), player_code=m.group(2),
            text=m.group(4).strip(), color=m.group(3),
        ))
        return True

    def _parse_note_start(self, line: str) -> bool:
        m = RE_NOTE_START.match(line)
        if not m:
            return False
        self.pending_note = Note(
            position=m.group(1).lower(), player_code=m.group(2), text="", color=m.group(3),
        )
        self.buffer = []
        self.state = MULTILINE_NOTE
        return True

    def _parse_highlight(self, line: str) -> bool:
        m = RE_HIGHLIGHT.match(line)
        if not m:
            return False
        self.diagram.highlights.append(Highlight(
            start=self.resolve_time(m.group(1)), end=self.resolve_time(m.group(2)),
            color=m.group(3), caption=(m.group(4) or "").strip(),
        ))
        return True

    def _parse_constraint(self, line: str) -> bool:
        m = RE_CONSTRAINT.match(line)
        if not m:
            return False
        self.diagram.constraints.append(TimeConstraint(
            time1=self.resolve_time(m.group(2)), time2=self.resolve_time(m.group(3)),
            player_code=m.group(1), label=(m.group(4) or "").strip(),
        ))
        return True

    def _parse_message(self, line: str) -> bool:
        m = RE_MESSAGE.match(line)
        if not m:
            return False
        self.diagram.get_or_create(m.group(1))
        self.diagram.get_or_create(m.group(3))
        self.diagram.messages.append(TimeMessage(
            from_player=m.group(1), from_time=self.resolve_time(m.group(2)),
            to_player=m.group(3), to_time=self.resolve_time(m.group(4)),
            label=(m.group(5) or "").strip(),
        ))
        return True

    # ── context and state changes ──────────────────────────

    def _parse_at(self, line: str) -> bool:
        m = RE_AT.match(line)
        if not m:
            return False
        target = m.group(1)
        if RE_TIME_TOKEN.match(target):
            self.current_time = self.resolve_time(target)
            self.current_player = None
            if m.group(2):
                self.diagram.time_aliases[m.group(2)] = self.current_time
            return True
        if target in self.diagram.players:
            self.current_player = self.diagram.players[target]
            return True
        log.debug("timing: @%s names no player", target)
        return True

    def _parse_player_is(self, line: str) -> bool:
        m = RE_PLAYER_IS.match(line)
        if not m or RE_TIME_TOKEN.match(m.group(1)):
            return False
        player = self.diagram.get_or_create(m.group(1))
        self._record(player, self.current_time, self._state_of(m, 2), m.group(5), m.group(6))
        return True

    def _parse_time_is(self, line: str) -> bool:
        m = RE_TIME_IS.match(line)
        if not m:
            return False
        if self.current_player is None:
            log.debug("timing: %r outside a player context", line)
            return True
        self.current_time = self.resolve_time(m.group(1))
        self._record(
            self.current_player, self.current_time, self._state_of(m, 2), m.group(5), m.group(6),
        )
        return True


def parse_timing_diagram(text: str) -> TimingDiagram:
    """Parse PlantUML timing diagram source into a :class:`TimingDiagram`."""
    return TimingParser().parse(text)
