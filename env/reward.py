# env/reward.py
from agents.types import DifficultyLevel
from env.state_encoder import ResponseTimeBucket, StateEncoder
from utils.config import RewardConfig

DIFFICULTY_POINTS = {
    DifficultyLevel.EASY: 1.0,
    DifficultyLevel.MEDIUM: 2.0,
    DifficultyLevel.HARD: 3.0,
}

SYMMETRIC_PENALTIES = {d: -p for d, p in DIFFICULTY_POINTS.items()}

# failing an easy question hurts most, failing a hard one least
ASYMMETRIC_PENALTIES = {
    DifficultyLevel.EASY: -2.0,
    DifficultyLevel.MEDIUM: -1.5,
    DifficultyLevel.HARD: -0.5,
}
ASYMMETRIC_SLOW_PENALTY = 0.3


class RewardModel:
    def __init__(self, config=None, encoder=None):
        self.config = config or RewardConfig()
        self.encoder = encoder or StateEncoder()
        if self.config.penalty == "asymmetric":
            penalties = dict(ASYMMETRIC_PENALTIES)
            slow = ASYMMETRIC_SLOW_PENALTY
        else:
            penalties = dict(SYMMETRIC_PENALTIES)
            slow = 0.0
        for name, value in (self.config.penalties or {}).items():
            level = DifficultyLevel.coerce(name)
            if level is None:
                raise ValueError(f"unknown difficulty in penalties: {name!r}")
            penalties[level] = float(value)
        self.penalties = penalties
        self.slow_wrong_penalty = slow if self.config.slow_wrong_penalty is None else float(self.config.slow_wrong_penalty)
        self.time_bonus = {
            ResponseTimeBucket.FAST: self.config.fast_bonus,
            ResponseTimeBucket.AVERAGE: self.config.average_bonus,
            ResponseTimeBucket.SLOW: 0.0,
        }

    @classmethod
    def symmetric(cls, encoder=None):
        return cls(RewardConfig(penalty="symmetric"), encoder)

    @classmethod
    def asymmetric(cls, encoder=None):
        return cls(RewardConfig(penalty="asymmetric"), encoder)

    def reward(self, difficulty, was_correct, response_time):
        level = DifficultyLevel.coerce(difficulty)
        if level is None:
            level = DifficultyLevel.EASY
        bucket = self.encoder.discretize_time(response_time)
        if was_correct:
            return DIFFICULTY_POINTS[level] + self.time_bonus[bucket]
        r = self.penalties[level]
        if bucket is ResponseTimeBucket.SLOW:
            r -= self.slow_wrong_penalty
        return r

    __call__ = reward
