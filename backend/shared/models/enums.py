"""Domain enumerations for Courtside."""
from __future__ import annotations

from enum import Enum
from typing import Optional


class Side(str, Enum):
    HOME = "home"
    AWAY = "away"

    @classmethod
    def parse(cls, token: str) -> Optional["Side"]:
        """Resolve a side token case-insensitively. Returns None when unknown."""
        key = (token or "").strip().lower()
        return _SIDE_ALIASES.get(key)


_SIDE_ALIASES = {
    "home": Side.HOME,
    "local": Side.HOME,
    "away": Side.AWAY,
    "visitante": Side.AWAY,
    "visitor": Side.AWAY,
}


class ClockStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class CloseStatus(str, Enum):
    FINISHED = "finished"
    FINISHED_AUTO = "finished_auto"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"

    @property
    def has_result(self) -> bool:
        return self in (CloseStatus.FINISHED, CloseStatus.FINISHED_AUTO)

    @classmethod
    def _missing_(cls, value: object) -> Optional["CloseStatus"]:
        if isinstance(value, str):
            return _CLOSE_ALIASES.get(value.strip().lower())
        return None


_CLOSE_ALIASES = {
    **{s.value: s for s in CloseStatus},
    "terminado": CloseStatus.FINISHED,
    "terminadoauto": CloseStatus.FINISHED_AUTO,
    "suspendido": CloseStatus.SUSPENDED,
    "cancelado": CloseStatus.CANCELLED,
    "canceled": CloseStatus.CANCELLED,
}


class FixtureStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


class TournamentStatus(str, Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    FINISHED = "finished"


class RoundType(int, Enum):
    """Playoff round, valued by the number of teams it starts with."""
    FINAL = 2
    SEMIFINAL = 4
    QUARTERFINAL = 8
    ROUND_OF_16 = 16

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


class WSServerMsgType(str, Enum):
    SNAPSHOT = "snapshot"
    PONG = "pong"
    ERROR = "error"
