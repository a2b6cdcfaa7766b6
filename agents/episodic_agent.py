# agents/episodic_agent.py
import logging

import numpy as np

from agents.tabular_q import TabularAgent
from agents.types import DifficultyLevel

logger = logging.getLogger(__name__)


def discounted_returns(rewards, gamma):
    """G_t = r_t + gamma * G_{t+1}, computed walking the episode backward."""
    out = [0.0] * len(rewards)
    g = 0.0
    for t in range(len(rewards) - 1, -1, -1):
        g = rewards[t] + gamma * g
        out[t] = g
    return out


class EpisodicAgent(TabularAgent):
    """
    First-visit Monte Carlo control.

    Learning happens once per finished episode. Q(s,a) is always the mean of
    every first-visit return credited to (s,a). A loaded snapshot counts as
    `return_count` earlier returns averaging `q_value`, so the mean carries
    over between sessions even though raw returns are not persisted.
    """

    kind = "mcc"
    label = "MCC"

    def __init__(self, gamma=0.95, epsilon=0.15, min_epsilon=0.05, decay_rate=0.95,
                 stage_boost=1.3, stage_cap=0.2, initial_q=0.0, optimistic_q=None, seed=None):
        super().__init__(epsilon=epsilon, min_epsilon=min_epsilon, decay_rate=decay_rate,
                         stage_boost=stage_boost, stage_cap=stage_cap,
                         initial_q=initial_q, optimistic_q=optimistic_q, seed=seed)
        if not 0.0 < gamma < 1.0:
            raise ValueError("gamma must be in (0, 1)")
        self.gamma = float(gamma)
        self.returns = {}
        # (s, a) -> (sum, count) of returns recorded before a load
        self._carried = {}

    @classmethod
    def from_config(cls, cfg, seed=None):
        return cls(gamma=cfg.gamma, epsilon=cfg.epsilon, min_epsilon=cfg.min_epsilon,
                   decay_rate=cfg.decay_rate, stage_boost=cfg.stage_boost,
                   stage_cap=cfg.stage_cap, initial_q=cfg.initial_q,
                   optimistic_q=cfg.optimistic_q, seed=seed)

    def update_policy(self, episode):
        if not episode:
            logger.warning("[MCC] empty episode - no update performed")
            return 0

        steps = [(s, DifficultyLevel(a), float(r)) for s, a, r in episode]
        g = discounted_returns([r for _, _, r in steps], self.gamma)

        # visit counters see every occurrence, returns only the earliest one
        for s, a, _ in steps:
            self._entry(s, a).visits += 1

        credited = set()
        for t, (s, a, _) in enumerate(steps):
            key = (s, a)
            if key in credited:
                continue
            credited.add(key)
            self.returns.setdefault(key, []).append(g[t])
            entry = self._entry(s, a)
            entry.q_value, entry.return_count = self._mean_return(key)
            logger.debug("[MCC] update %s/%s | G=%.2f Q=%.2f returns=%d",
                         s, a.name, g[t], entry.q_value, entry.return_count)

        logger.info("[MCC] episode of %d steps | updated %d pairs | table size %d",
                    len(steps), len(credited), self.size())
        return len(credited)

    def _mean_return(self, key):
        carried_sum, carried_n = self._carried.get(key, (0.0, 0))
        recorded = self.returns.get(key, [])
        n = carried_n + len(recorded)
        if n == 0:
            return self.default_q(key[1]), 0
        return (carried_sum + float(np.sum(recorded))) / n, n

    def get_returns(self, state, action):
        return tuple(self.returns.get((state, DifficultyLevel(action)), ()))

    def reset(self):
        self.returns.clear()
        self._carried.clear()
        super().reset()

    def _after_load(self):
        for entry in self.entries():
            if entry.return_count:
                self._carried[entry.key] = (entry.q_value * entry.return_count, entry.return_count)
