# env/content.py
"""
External collaborators of the controller and small reference implementations.

ContentSource.next_question(difficulty) -> Question
AnswerEvaluator.check(question, answers) -> bool
Clock.start(); Clock.elapsed() -> seconds since start
"""

import html
import logging
import random
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional, Protocol

import pandas as pd
import requests

from agents.types import DifficultyLevel

logger = logging.getLogger(__name__)

OPENTDB_BASE = "https://opentdb.com/api.php"


@dataclass
class Question:
    text: str
    answers: List[str]
    difficulty: DifficultyLevel
    options: List[str] = field(default_factory=list)
    qid: Optional[str] = None


class ContentSource(Protocol):
    def next_question(self, difficulty: DifficultyLevel) -> Question: ...


class AnswerEvaluator(Protocol):
    def check(self, question: Question, answers: List[str]) -> bool: ...


class Clock(Protocol):
    def start(self) -> None: ...

    def elapsed(self) -> float: ...


def _fallback_order(level):
    # requested tier first, then nearest tiers, easier before harder
    others = sorted((d for d in DifficultyLevel if d != level), key=lambda d: (abs(d - level), d))
    return [level] + others


def _split(value):
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return []
    return [x.strip() for x in str(value).split("|") if x.strip()]


class QuestionBank:
    """In-memory pools per difficulty; an empty pool falls back to the nearest tier."""

    def __init__(self, questions=(), seed=None):
        self.pools = {d: [] for d in DifficultyLevel}
        self.rng = random.Random(seed)
        for q in questions:
            self.add(q)

    def add(self, question):
        level = DifficultyLevel.coerce(question.difficulty)
        if level is None:
            raise ValueError(f"question has unknown difficulty: {question.difficulty!r}")
        self.pools[level].append(replace(question, difficulty=level))

    def __len__(self):
        return sum(len(p) for p in self.pools.values())

    @classmethod
    def from_csv(cls, path, seed=None):
        """
        Columns: question, difficulty, answer (or correct), and options either
        as option_a..option_d or a '|' separated `options` column.
        Multiple ordered answers are '|' separated.
        """
        df = pd.read_csv(path, dtype=str)
        bank = cls(seed=seed)
        for idx, row in df.iterrows():
            level = DifficultyLevel.coerce(row.get("difficulty"))
            if level is None:
                logger.warning("skipping row %s: unknown difficulty %r", idx, row.get("difficulty"))
                continue
            opts = [str(row[c]) for c in ("option_a", "option_b", "option_c", "option_d")
                    if c in row.index and pd.notna(row[c])]
            if not opts and "options" in row.index:
                opts = _split(row["options"])
            answers = _split(row.get("answer", row.get("correct")))
            if not answers:
                logger.warning("skipping row %s: no answer", idx)
                continue
            bank.add(Question(text=str(row.get("question", "")), answers=answers,
                              difficulty=level, options=opts, qid=str(row.get("id", idx))))
        return bank

    def next_question(self, difficulty):
        level = DifficultyLevel.coerce(difficulty)
        if level is None:
            level = DifficultyLevel.MEDIUM
        for tier in _fallback_order(level):
            pool = self.pools[tier]
            if pool:
                if tier != level:
                    logger.info("no %s questions left, serving %s", level.name, tier.name)
                q = self.rng.choice(pool)
                return replace(q, answers=list(q.answers), options=list(q.options))
        raise LookupError("question bank is empty")


class OpenTDBSource:
    """Open Trivia DB client; uses `fallback` when the API is unreachable or empty."""

    def __init__(self, category=None, fallback=None, timeout=6, retries=2, seed=None):
        self.category = category
        self.fallback = fallback
        self.timeout = timeout
        self.retries = retries
        self.rng = random.Random(seed)

    def _fetch(self, level):
        params = {"amount": 1, "type": "multiple", "difficulty": level.name.lower()}
        if self.category is not None:
            params["category"] = self.category
        r = requests.get(OPENTDB_BASE, params=params, timeout=self.timeout)
        r.raise_for_status()
        d = r.json()
        if d.get("response_code", 1) != 0 or not d.get("results"):
            raise ValueError("OpenTDB: no results")
        q = d["results"][0]
        correct = html.unescape(q["correct_answer"])
        options = [html.unescape(x) for x in q["incorrect_answers"]] + [correct]
        self.rng.shuffle(options)
        return Question(text=html.unescape(q["question"]), answers=[correct],
                        difficulty=level, options=options)

    def next_question(self, difficulty):
        level = DifficultyLevel.coerce(difficulty)
        if level is None:
            level = DifficultyLevel.MEDIUM
        last_exc = None
        for _ in range(max(1, self.retries)):
            try:
                return self._fetch(level)
            except (requests.RequestException, ValueError, KeyError) as e:
                last_exc = e
                logger.warning("OpenTDB fetch failed (%s): %s", level.name, e)
        if self.fallback is not None:
            return self.fallback.next_question(level)
        raise LookupError(f"no question available for {level.name}") from last_exc


class ExactMatchEvaluator:
    """Correct only when every answer matches, in order; partial answers are wrong."""

    def __init__(self, case_sensitive=True):
        self.case_sensitive = case_sensitive

    def _norm(self, s):
        s = str(s).strip()
        return s if self.case_sensitive else s.casefold()

    def check(self, question, answers):
        answers = list(answers or [])
        if len(answers) != len(question.answers):
            return False
        return all(self._norm(a) == self._norm(b) for a, b in zip(answers, question.answers))


class MonotonicClock:
    def __init__(self):
        self._started = None

    def start(self):
        self._started = time.monotonic()

    def elapsed(self):
        if self._started is None:
            return float("nan")
        return time.monotonic() - self._started


class ManualClock:
    """Clock driven by hand, for simulations and tests."""

    def __init__(self):
        self.now = 0.0
        self._started = None

    def start(self):
        self._started = self.now

    def advance(self, seconds):
        self.now += float(seconds)

    def elapsed(self):
        if self._started is None:
            return float("nan")
        return self.now - self._started
