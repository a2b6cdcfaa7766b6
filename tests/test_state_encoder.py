import math

import pytest

from agents.types import DifficultyLevel as D
from env.state_encoder import START, ResponseTimeBucket as B, StateEncoder, accuracy, as_seconds
from utils.config import EncoderConfig


@pytest.mark.parametrize("seconds, bucket", [
    (0, B.FAST),
    (5, B.FAST),
    (5.01, B.AVERAGE),
    (10, B.AVERAGE),
    (10.5, B.SLOW),
    (float("nan"), B.AVERAGE),
    (-1, B.AVERAGE),
    ("abc", B.AVERAGE),
    (None, B.AVERAGE),
])
def test_discretize_time(seconds, bucket):
    assert StateEncoder().discretize_time(seconds) is bucket


def test_custom_thresholds():
    enc = StateEncoder(EncoderConfig(fast_threshold=3, average_threshold=7))
    assert enc.discretize_time(4) is B.AVERAGE
    assert enc.discretize_time(7.5) is B.SLOW


def test_encode_composite():
    enc = StateEncoder()
    assert enc.encode(None) == START
    assert enc.encode(D.EASY, True, 2) == "EASY_CORRECT_FAST"
    assert enc.encode("HARD", False, 12) == "HARD_WRONG_SLOW"
    assert enc.encode(1, True, math.nan) == "MEDIUM_CORRECT_AVERAGE"


def test_empty_history_is_start():
    assert StateEncoder().encode_history([]) == START
    assert StateEncoder(EncoderConfig(mode="accuracy")).encode_history([]) == START


def test_composite_history_uses_last_answer():
    history = [(D.HARD, False, 20), (D.EASY, True, 1)]
    assert StateEncoder().encode_history(history) == "EASY_CORRECT_FAST"


def test_accuracy_window():
    history = [(D.EASY, True, 1), (D.EASY, False, 1), (D.EASY, False, 1), (D.EASY, True, 1)]
    assert StateEncoder(EncoderConfig(mode="accuracy", window=3)).encode_history(history) == "LOW_FAST"
    assert StateEncoder(EncoderConfig(mode="accuracy", window=0)).encode_history(history) == "MEDIUM_FAST"
    assert StateEncoder(EncoderConfig(mode="accuracy")).encode_history(
        [(D.HARD, True, 12)] * 3) == "HIGH_SLOW"


@pytest.mark.parametrize("acc, label", [(0.0, "LOW"), (0.39, "LOW"), (0.4, "MEDIUM"),
                                        (0.69, "MEDIUM"), (0.7, "HIGH"), (1.0, "HIGH")])
def test_accuracy_label_cuts(acc, label):
    assert StateEncoder(EncoderConfig(mode="accuracy")).accuracy_label(acc) == label


def test_accuracy_helper():
    assert accuracy([]) == 0.0
    assert accuracy([True, False, True, True]) == 0.75


def test_encoded_states_are_in_state_space():
    import random
    rng = random.Random(11)
    for mode, size in (("composite", 18), ("accuracy", 9)):
        enc = StateEncoder(EncoderConfig(mode=mode))
        space = set(enc.state_space())
        assert len(space) == size
        for _ in range(200):
            history = [(rng.choice(list(D)), rng.random() < 0.5, rng.uniform(-2, 20))
                       for _ in range(rng.randint(1, 6))]
            assert enc.encode_history(history) in space


def test_encoder_config_validation():
    with pytest.raises(ValueError):
        EncoderConfig(mode="bogus")
    with pytest.raises(ValueError):
        EncoderConfig(fast_threshold=12, average_threshold=10)
    with pytest.raises(ValueError):
        EncoderConfig(window=-1)


@pytest.mark.parametrize("raw, expected", [(3, 3.0), ("2.5", 2.5), (0, 0.0)])
def test_as_seconds_keeps_usable_values(raw, expected):
    assert as_seconds(raw) == expected


@pytest.mark.parametrize("raw", [None, "slow", float("nan"), -0.5, object()])
def test_as_seconds_rejects_unusable_values(raw):
    assert math.isnan(as_seconds(raw))
