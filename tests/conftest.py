import pytest

from agents.persistence import SnapshotStore
from agents.types import DifficultyLevel
from env.content import ExactMatchEvaluator, ManualClock, Question
from env.orchestrator import EpisodeOrchestrator
from utils.config import SessionConfig


class StubContent:
    """Serves exactly the requested tier; every question's answer is 'a'."""

    def __init__(self):
        self.requested = []

    def next_question(self, difficulty):
        level = DifficultyLevel(difficulty)
        self.requested.append(level)
        return Question(text=f"q{len(self.requested)}", answers=["a"], difficulty=level)


def answer(orch, correct=True, seconds=1.0):
    orch.next_question()
    orch.clock.advance(seconds)
    return orch.submit_answer(["a"] if correct else ["b"])


@pytest.fixture
def store(tmp_path):
    return SnapshotStore(tmp_path / "rl")


@pytest.fixture
def make_orch():
    def _make(agent, total=3, episode_length=6, content=None, **kwargs):
        session = kwargs.pop("config", None) or SessionConfig(total_questions=total,
                                                               episode_length=episode_length)
        return EpisodeOrchestrator(agent=agent, content=content or StubContent(),
                                   evaluator=ExactMatchEvaluator(), clock=ManualClock(),
                                   config=session, **kwargs)
    return _make


@pytest.fixture
def respond():
    return answer
