# utils/config.py
"""Configuration and hyperparameters for the adaptive difficulty controller."""

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Dict, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = Path(os.environ.get("QUIZDDA_DATA_DIR", PROJECT_ROOT / "data"))
RL_DIR = DATA_DIR / "rl"
SESSION_DIR = DATA_DIR / "session_details"

CONFIG_ENV = "QUIZDDA_CONFIG"


@dataclass
class EncoderConfig:
    # "composite": last difficulty + correctness + time bucket
    # "accuracy": rolling accuracy bucket + time bucket
    mode: str = "composite"
    fast_threshold: float = 5.0  # seconds, inclusive
    average_threshold: float = 10.0  # seconds, inclusive
    window: int = 3  # accuracy mode only; 0 = whole session
    low_accuracy: float = 0.4
    high_accuracy: float = 0.7

    def __post_init__(self):
        if self.mode not in ("composite", "accuracy"):
            raise ValueError(f"unknown encoder mode: {self.mode!r}")
        if self.fast_threshold > self.average_threshold:
            raise ValueError("fast_threshold must not exceed average_threshold")
        if self.window < 0:
            raise ValueError("window must be >= 0")


@dataclass
class RewardConfig:
    # "symmetric" (-points on a wrong answer) or "asymmetric"
    penalty: str = "symmetric"
    fast_bonus: float = 0.5
    average_bonus: float = 0.2
    # keyed by difficulty name; overrides the preset when given
    penalties: Optional[Dict[str, float]] = None
    slow_wrong_penalty: Optional[float] = None

    def __post_init__(self):
        if self.penalty not in ("symmetric", "asymmetric"):
            raise ValueError(f"unknown penalty table: {self.penalty!r}")


@dataclass
class TDConfig:
    gamma: float = 0.9
    alpha: float = 0.1
    alpha_early: float = 0.5
    early_visits: int = 2
    epsilon: float = 0.1
    min_epsilon: float = 0.01
    decay_rate: float = 0.95
    stage_boost: float = 1.3
    stage_cap: float = 0.2
    initial_q: float = 0.0
    optimistic_q: Optional[Dict[str, float]] = None


@dataclass
class EpisodicConfig:
    gamma: float = 0.95
    epsilon: float = 0.15
    min_epsilon: float = 0.05
    decay_rate: float = 0.95
    stage_boost: float = 1.3
    stage_cap: float = 0.2
    initial_q: float = 0.0
    optimistic_q: Optional[Dict[str, float]] = None


@dataclass
class SessionConfig:
    total_questions: int = 18
    episode_length: int = 6
    feedback_delay: float = 0.0  # seconds between feedback and next question
    warm_start_bump: bool = True

    def __post_init__(self):
        if self.total_questions <= 0:
            raise ValueError("total_questions must be positive")
        if self.episode_length <= 0:
            raise ValueError("episode_length must be positive")
        if self.feedback_delay < 0:
            raise ValueError("feedback_delay must be >= 0")


@dataclass
class DDAConfig:
    encoder: EncoderConfig = field(default_factory=EncoderConfig)
    reward: RewardConfig = field(default_factory=RewardConfig)
    td: TDConfig = field(default_factory=TDConfig)
    episodic: EpisodicConfig = field(default_factory=EpisodicConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    @classmethod
    def from_dict(cls, data):
        sections = {f.name: f.default_factory for f in fields(cls)}
        unknown = set(data) - set(sections)
        if unknown:
            raise ValueError(f"unknown config sections: {sorted(unknown)}")
        kwargs = {}
        for name, factory in sections.items():
            values = data.get(name) or {}
            section_cls = type(factory())
            allowed = {f.name for f in fields(section_cls)}
            bad = set(values) - allowed
            if bad:
                raise ValueError(f"unknown keys in [{name}]: {sorted(bad)}")
            kwargs[name] = section_cls(**values)
        return cls(**kwargs)

    def to_dict(self):
        return asdict(self)


def load_config(path=None):
    """Load a DDAConfig from JSON; defaults when no file is configured."""
    path = path or os.environ.get(CONFIG_ENV)
    if not path:
        return DDAConfig()
    with open(path, "r", encoding="utf-8") as f:
        return DDAConfig.from_dict(json.load(f))
