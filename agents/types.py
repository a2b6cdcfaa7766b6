# agents/types.py
"""Action space, sentinels and the serializable Q-table records."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum

START = "START"
TERMINAL = "TERMINAL"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class DifficultyLevel(IntEnum):
    EASY = 0
    MEDIUM = 1
    HARD = 2

    @classmethod
    def coerce(cls, value):
        """Map an int, a name or a member onto a level; None if unmappable."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        if isinstance(value, bool):
            return None
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return None


ACTIONS = tuple(DifficultyLevel)


@dataclass
class QEntry:
    state: str
    action: DifficultyLevel
    q_value: float = 0.0
    visits: int = 0
    return_count: int = 0

    @property
    def key(self):
        return self.state, self.action

    def to_dict(self):
        return {
            "state": self.state,
            "action": int(self.action),
            "qValue": float(self.q_value),
            "visits": int(self.visits),
            "returnCount": int(self.return_count),
        }

    @classmethod
    def from_dict(cls, d):
        state = d["state"]
        if not isinstance(state, str) or not state:
            raise ValueError(f"bad state key: {state!r}")
        raw_action = d["action"]
        if isinstance(raw_action, bool) or not isinstance(raw_action, int):
            raise ValueError(f"bad action: {raw_action!r}")
        action = DifficultyLevel.coerce(raw_action)
        if action is None:
            raise ValueError(f"bad action: {raw_action!r}")
        q_value = float(d["qValue"])
        if not math.isfinite(q_value):
            raise ValueError(f"non-finite qValue for {state}/{action.name}")
        visits = int(d.get("visits", 0))
        return_count = int(d.get("returnCount", 0))
        if visits < 0 or return_count < 0:
            raise ValueError("negative counters")
        return cls(state, action, q_value, visits, return_count)


@dataclass
class AgentSnapshot:
    entries: list
    epsilon: float
    timestamp: str = field(default_factory=lambda: datetime.now().strftime(TIMESTAMP_FORMAT))

    def to_dict(self):
        return {
            "entries": [e.to_dict() for e in self.entries],
            "epsilon": float(self.epsilon),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d):
        if not isinstance(d, dict):
            raise ValueError("snapshot must be a JSON object")
        entries = d["entries"]
        if not isinstance(entries, list):
            raise ValueError("entries must be a list")
        epsilon = float(d["epsilon"])
        if not math.isfinite(epsilon):
            raise ValueError("non-finite epsilon")
        return cls(
            entries=[QEntry.from_dict(e) for e in entries],
            epsilon=epsilon,
            timestamp=str(d.get("timestamp", "")),
        )
