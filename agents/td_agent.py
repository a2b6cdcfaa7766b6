# agents/td_agent.py
import logging

from agents.tabular_q import TabularAgent
from agents.types import TERMINAL, DifficultyLevel

logger = logging.getLogger(__name__)


def td_update(q, reward, gamma, next_q, alpha):
    """One SARSA step: Q + alpha * (r + gamma * Q(s',a') - Q)."""
    return q + alpha * (reward + gamma * next_q - q)


class TDAgent(TabularAgent):
    """
    On-policy SARSA(0) controller, learning after every answered question.

    The step size is per key: `alpha_early` while a pair has been visited at
    most `early_visits` times, `alpha` afterwards.
    """

    kind = "sarsa"
    label = "SARSA"

    def __init__(self, gamma=0.9, alpha=0.1, alpha_early=0.5, early_visits=2,
                 epsilon=0.1, min_epsilon=0.01, decay_rate=0.95,
                 stage_boost=1.3, stage_cap=0.2, initial_q=0.0, optimistic_q=None, seed=None):
        super().__init__(epsilon=epsilon, min_epsilon=min_epsilon, decay_rate=decay_rate,
                         stage_boost=stage_boost, stage_cap=stage_cap,
                         initial_q=initial_q, optimistic_q=optimistic_q, seed=seed)
        if not 0.0 < gamma < 1.0:
            raise ValueError("gamma must be in (0, 1)")
        self.gamma = float(gamma)
        self.alpha = float(alpha)
        self.alpha_early = float(alpha_early)
        self.early_visits = int(early_visits)

    @classmethod
    def from_config(cls, cfg, seed=None):
        return cls(gamma=cfg.gamma, alpha=cfg.alpha, alpha_early=cfg.alpha_early,
                   early_visits=cfg.early_visits, epsilon=cfg.epsilon,
                   min_epsilon=cfg.min_epsilon, decay_rate=cfg.decay_rate,
                   stage_boost=cfg.stage_boost, stage_cap=cfg.stage_cap,
                   initial_q=cfg.initial_q, optimistic_q=cfg.optimistic_q, seed=seed)

    def step_size(self, visits):
        return self.alpha_early if visits <= self.early_visits else self.alpha

    def update_q_value(self, state, action, reward, next_state, next_action):
        action = DifficultyLevel(action)
        if next_state == TERMINAL or next_action is None:
            next_q = 0.0
        else:
            next_q = self.q_value(next_state, next_action)

        entry = self._entry(state, action)
        entry.visits += 1
        alpha = self.step_size(entry.visits)
        before = entry.q_value
        entry.q_value = td_update(before, float(reward), self.gamma, next_q, alpha)
        logger.debug("[SARSA] Q(%s,%s) %.3f -> %.3f | r=%.2f s'=%s alpha=%.2f",
                     state, action.name, before, entry.q_value, reward, next_state, alpha)
        return entry.q_value
