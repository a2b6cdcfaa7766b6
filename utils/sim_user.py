# utils/sim_user.py
import math
import random

from agents.types import DifficultyLevel

PROFILES = ("novice", "intermediate", "expert", "perfect", "average", "struggling")

# scripted profiles: difficulty -> (p_correct, seconds)
_SCRIPTED = {
    "perfect": {0: (1.0, 1.0), 1: (1.0, 1.0), 2: (1.0, 1.0)},
    "average": {0: (1.0, 3.0), 1: (0.7, 5.0), 2: (0.4, 8.0)},
    "struggling": {0: (0.6, 6.0), 1: (0.2, 9.0), 2: (0.0, 12.0)},
}

# logistic profiles: (skill, base seconds)
_LOGISTIC = {
    "novice": (0.2, 5.0),
    "intermediate": (0.5, 3.0),
    "expert": (0.85, 1.5),
}


class SimUser:
    """
    Simulated learner used for training and checks.
    Profiles: 'novice', 'intermediate', 'expert' (logistic skill model) and
    'perfect', 'average', 'struggling' (fixed answer tables), or None (random).
    """
    def __init__(self, profile=None, seed=None):
        self.rng = random.Random(seed)
        self._set_profile(profile)

    def _set_profile(self, profile):
        p = profile
        if p is None:
            p = self.rng.choice(['novice', 'intermediate', 'expert'])
        if p not in PROFILES:
            raise ValueError(f"unknown profile: {p!r}")
        self.profile = p
        if p in _LOGISTIC:
            self.skill, self.speed = _LOGISTIC[p]

    def set_profile(self, profile):
        self._set_profile(profile)

    def reset(self):
        # keep same profile
        pass

    def p_correct(self, difficulty):
        d = int(DifficultyLevel(difficulty))
        if self.profile in _SCRIPTED:
            return _SCRIPTED[self.profile][d][0]
        diff_pen = {0: -0.3, 1: 0.0, 2: 0.4}[d]
        prob = 1.0 / (1.0 + math.exp(-((self.skill - diff_pen) * 3.0)))
        return max(0.01, min(0.99, prob))

    def answer_question(self, difficulty):
        d = int(DifficultyLevel(difficulty))
        correct = self.rng.random() < self.p_correct(d)
        if self.profile in _SCRIPTED:
            return correct, _SCRIPTED[self.profile][d][1]
        # harder questions take longer
        time_taken = max(0.2, self.rng.gauss(self.speed + 0.5 * d, 0.5))
        return correct, time_taken
