# agents/heuristic.py
import random

from agents.types import DifficultyLevel

# leading token of a state key -> difficulty tier it stands for
_LEVELS = {
    "EASY": DifficultyLevel.EASY,
    "LOW": DifficultyLevel.EASY,
    "MEDIUM": DifficultyLevel.MEDIUM,
    "HARD": DifficultyLevel.HARD,
    "HIGH": DifficultyLevel.HARD,
}


def heuristic_action(state):
    """
    Deterministic fallback for states with no learned values.
    Correct and fast -> one tier up, wrong/slow/low accuracy -> one tier down,
    anything else holds. Unknown keys (START included) start at MEDIUM, the
    middle tier, rather than jumping to HARD with nothing observed yet.
    """
    tokens = str(state).upper().split("_")
    level = _LEVELS.get(tokens[0])
    if level is None:
        return DifficultyLevel.MEDIUM

    doing_well = ("CORRECT" in tokens or tokens[0] == "HIGH") and "FAST" in tokens
    struggling = "WRONG" in tokens or "SLOW" in tokens or tokens[0] == "LOW"
    if doing_well:
        return DifficultyLevel(min(level + 1, DifficultyLevel.HARD))
    if struggling:
        return DifficultyLevel(max(level - 1, DifficultyLevel.EASY))
    return level


class HeuristicAgent:
    """Rule-based baseline: follows heuristic_action, occasionally holds a random tier."""

    kind = None

    def __init__(self, eps=0.0, seed=None):
        self.eps = eps
        self.rng = random.Random(seed)

    @property
    def current_epsilon(self):
        return self.eps

    def choose_action(self, state):
        if self.eps and self.rng.random() < self.eps:
            return self.rng.choice(list(DifficultyLevel))
        return heuristic_action(state)

    def decay_epsilon(self):
        pass

    def on_new_stage(self):
        pass
