# env/state_encoder.py
import math
from enum import Enum

from agents.types import START, TERMINAL, DifficultyLevel
from utils.config import EncoderConfig

__all__ = ["START", "TERMINAL", "ResponseTimeBucket", "StateEncoder", "accuracy", "as_seconds"]


class ResponseTimeBucket(str, Enum):
    FAST = "FAST"
    AVERAGE = "AVERAGE"
    SLOW = "SLOW"


def as_seconds(value):
    """Latency as a float; None, unparsable, NaN or negative values become NaN."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return math.nan
    if math.isnan(seconds) or seconds < 0:
        return math.nan
    return seconds


def accuracy(correct_flags):
    flags = list(correct_flags)
    if not flags:
        return 0.0
    return sum(1 for c in flags if c) / float(len(flags))


class StateEncoder:
    """
    Turns observations into discrete state keys.

    composite: "{lastDifficulty}_{CORRECT|WRONG}_{FAST|AVERAGE|SLOW}"
    accuracy:  "{LOW|MEDIUM|HIGH}_{FAST|AVERAGE|SLOW}" over a rolling window
    """

    def __init__(self, config=None):
        self.config = config or EncoderConfig()

    @property
    def mode(self):
        return self.config.mode

    def discretize_time(self, seconds):
        seconds = as_seconds(seconds)
        # no usable timing -> neither reward nor punish speed
        if math.isnan(seconds):
            return ResponseTimeBucket.AVERAGE
        if seconds <= self.config.fast_threshold:
            return ResponseTimeBucket.FAST
        if seconds <= self.config.average_threshold:
            return ResponseTimeBucket.AVERAGE
        return ResponseTimeBucket.SLOW

    def encode(self, last_difficulty, was_correct=None, response_time=None):
        if last_difficulty is None:
            return START
        level = DifficultyLevel.coerce(last_difficulty)
        name = level.name if level is not None else DifficultyLevel.EASY.name
        result = "CORRECT" if was_correct else "WRONG"
        return f"{name}_{result}_{self.discretize_time(response_time).value}"

    def accuracy_label(self, acc):
        if acc < self.config.low_accuracy:
            return "LOW"
        if acc < self.config.high_accuracy:
            return "MEDIUM"
        return "HIGH"

    def encode_history(self, history):
        """history: ordered (difficulty, was_correct, seconds) outcomes of this session."""
        history = list(history)
        if not history:
            return START
        last_difficulty, last_correct, last_time = history[-1]
        if self.config.mode == "composite":
            return self.encode(last_difficulty, last_correct, last_time)
        window = history[-self.config.window:] if self.config.window else history
        acc = accuracy(c for _, c, _ in window)
        return f"{self.accuracy_label(acc)}_{self.discretize_time(last_time).value}"

    def state_space(self):
        times = [b.value for b in ResponseTimeBucket]
        if self.config.mode == "composite":
            return [f"{d.name}_{r}_{t}" for d in DifficultyLevel for r in ("CORRECT", "WRONG") for t in times]
        return [f"{a}_{t}" for a in ("LOW", "MEDIUM", "HIGH") for t in times]
