# utils/metrics.py
from pathlib import Path

import pandas as pd

from agents.types import DifficultyLevel


class SessionMetrics:
    """Accuracy bookkeeping for one session. Ratios over zero questions are 0."""

    def __init__(self):
        self.records = []

    def record(self, difficulty, correct, time_taken, reward):
        self.records.append({
            "difficulty": DifficultyLevel(difficulty).name,
            "correct": bool(correct),
            "time_taken": float(time_taken),
            "reward": float(reward),
        })

    def __len__(self):
        return len(self.records)

    def total(self, difficulty=None):
        if difficulty is None:
            return len(self.records)
        name = DifficultyLevel(difficulty).name
        return sum(1 for r in self.records if r["difficulty"] == name)

    def correct(self, difficulty=None):
        name = None if difficulty is None else DifficultyLevel(difficulty).name
        return sum(1 for r in self.records if r["correct"] and (name is None or r["difficulty"] == name))

    def accuracy(self, difficulty=None):
        total = self.total(difficulty)
        if total == 0:
            return 0.0
        return round(self.correct(difficulty) / float(total), 2)

    def total_reward(self):
        return float(sum(r["reward"] for r in self.records))

    def to_frame(self):
        df = pd.DataFrame(self.records, columns=["difficulty", "correct", "time_taken", "reward"])
        df.index.name = "q_no"
        return df

    def summary(self):
        rows = []
        for d in DifficultyLevel:
            rows.append({"difficulty": d.name, "correct": self.correct(d),
                         "total": self.total(d), "accuracy": self.accuracy(d)})
        rows.append({"difficulty": "ALL", "correct": self.correct(),
                     "total": self.total(), "accuracy": self.accuracy()})
        return pd.DataFrame(rows)

    def write_csv(self, path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.summary().to_csv(path, index=False)
        return str(path)
