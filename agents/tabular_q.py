# agents/tabular_q.py
import logging
import random
from dataclasses import replace

import numpy as np
import pandas as pd

from agents.heuristic import heuristic_action
from agents.types import ACTIONS, TERMINAL, AgentSnapshot, DifficultyLevel, QEntry

logger = logging.getLogger(__name__)


class TabularAgent:
    """
    Epsilon-greedy agent over a string-keyed Q-table.

    table[state][action] -> QEntry. Reading a missing pair returns the default
    value and never inserts it; only the learning rules create entries.
    Subclasses implement the learning rule.
    """

    kind = None
    label = "Q"

    def __init__(self, epsilon=0.1, min_epsilon=0.01, decay_rate=0.95,
                 stage_boost=1.3, stage_cap=0.2, initial_q=0.0, optimistic_q=None, seed=None):
        if not 0.0 <= min_epsilon <= 1.0:
            raise ValueError("min_epsilon must be in [0, 1]")
        if not 0.0 < decay_rate <= 1.0:
            raise ValueError("decay_rate must be in (0, 1]")
        if stage_boost < 1.0 or not 0.0 <= stage_cap <= 1.0:
            raise ValueError("stage_boost must be >= 1 and stage_cap in [0, 1]")
        self.min_epsilon = float(min_epsilon)
        self.decay_rate = float(decay_rate)
        self.stage_boost = float(stage_boost)
        self.stage_cap = float(stage_cap)
        self.initial_q = float(initial_q)
        # per-action optimistic defaults, keyed by level or level name
        self.optimistic_q = {}
        for k, v in (optimistic_q or {}).items():
            level = DifficultyLevel.coerce(k)
            if level is None:
                raise ValueError(f"unknown difficulty in optimistic_q: {k!r}")
            self.optimistic_q[level] = float(v)
        self.rng = random.Random(seed)
        self.table = {}
        self._initial_epsilon = self._clamp(epsilon)
        self._epsilon = self._initial_epsilon

    # --- epsilon ---
    def _clamp(self, value):
        return min(1.0, max(self.min_epsilon, float(value)))

    @property
    def current_epsilon(self):
        return self._epsilon

    def set_epsilon(self, value):
        self._epsilon = self._clamp(value)

    def decay_epsilon(self):
        self._epsilon = self._clamp(self._epsilon * self.decay_rate)

    def on_new_stage(self):
        # keep the table, re-open exploration a little
        bumped = min(self.stage_cap, self._epsilon * self.stage_boost)
        self.set_epsilon(max(self._epsilon, bumped))
        logger.info("[%s] new stage | entries=%d eps=%.3f", self.label, self.size(), self._epsilon)

    # --- table access ---
    def default_q(self, action):
        return self.optimistic_q.get(DifficultyLevel(action), self.initial_q)

    def q_value(self, state, action):
        action = DifficultyLevel(action)
        entry = self.table.get(state, {}).get(action)
        return entry.q_value if entry is not None else self.default_q(action)

    def q_values(self, state):
        return np.array([self.q_value(state, a) for a in ACTIONS], dtype=np.float64)

    def has_state(self, state):
        return bool(self.table.get(state))

    def _entry(self, state, action):
        row = self.table.setdefault(state, {})
        entry = row.get(action)
        if entry is None:
            entry = row[action] = QEntry(state, action, self.default_q(action))
        return entry

    def size(self):
        return sum(len(row) for row in self.table.values())

    def states_explored(self):
        return len([s for s, row in self.table.items() if row])

    # --- acting ---
    def choose_action(self, state):
        if state == TERMINAL:
            logger.warning("[%s] asked to act in %s; using heuristic", self.label, TERMINAL)
            return heuristic_action(state)
        if self.rng.random() < self._epsilon:
            action = self.rng.choice(ACTIONS)
            logger.debug("[%s] explore: %s -> %s (eps=%.3f)", self.label, state, action.name, self._epsilon)
            return action
        action = self.best_action(state)
        logger.debug("[%s] exploit: %s -> %s", self.label, state, action.name)
        return action

    def best_action(self, state):
        if not self.has_state(state):
            logger.debug("[%s] no values for %r; heuristic fallback", self.label, state)
            return heuristic_action(state)
        values = self.q_values(state)
        best = np.flatnonzero(np.isclose(values, values.max()))
        if len(best) > 1:
            return ACTIONS[self.rng.choice(best.tolist())]
        return ACTIONS[int(best[0])]

    # --- lifecycle ---
    def reset(self):
        self.table.clear()
        self._epsilon = self._initial_epsilon
        logger.info("[%s] reset", self.label)

    def get_q_table(self):
        return {(e.state, e.action): e.q_value for e in self.entries()}

    def entries(self):
        out = []
        for state in sorted(self.table):
            for action in sorted(self.table[state]):
                out.append(replace(self.table[state][action]))
        return out

    def get_snapshot(self):
        return AgentSnapshot(entries=self.entries(), epsilon=self._epsilon)

    def load_snapshot(self, snapshot):
        self.reset()
        for entry in snapshot.entries:
            self.table.setdefault(entry.state, {})[DifficultyLevel(entry.action)] = replace(
                entry, action=DifficultyLevel(entry.action))
        self.set_epsilon(snapshot.epsilon)
        self._after_load()
        logger.info("[%s] loaded %d entries | eps=%.3f | saved %s",
                    self.label, self.size(), self._epsilon, snapshot.timestamp or "?")

    def _after_load(self):
        pass

    # --- reporting ---
    def to_frame(self):
        rows = [{
            "state": e.state,
            "action": e.action.name,
            "q_value": e.q_value,
            "visits": e.visits,
            "return_count": e.return_count,
        } for e in self.entries()]
        return pd.DataFrame(rows, columns=["state", "action", "q_value", "visits", "return_count"])

    def summary(self):
        lines = [
            f"=== {self.label} Q-TABLE ===",
            f"Total entries: {self.size()}",
            f"Unique states: {self.states_explored()}",
            f"Current eps: {self._epsilon:.3f}",
            "",
        ]
        if not self.size():
            lines.append("(empty Q-table - no learning has occurred yet)")
            return "\n".join(lines)
        for state in sorted(self.table):
            row = self.table[state]
            if not row:
                continue
            top = max(e.q_value for e in row.values())
            lines.append(f"State: {state}")
            lines.append("  Action     Q-Value  Visits  Returns  Best")
            for e in sorted(row.values(), key=lambda e: -e.q_value):
                mark = "*" if np.isclose(e.q_value, top) else " "
                lines.append(f"  {e.action.name:<8} {e.q_value:8.2f} {e.visits:7d} {e.return_count:8d}    {mark}")
            lines.append("")
        return "\n".join(lines)
