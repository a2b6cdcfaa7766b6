import pytest

from agents.types import DifficultyLevel as D
from utils.sim_user import PROFILES, SimUser


def test_scripted_profiles():
    perfect = SimUser(profile="perfect", seed=0)
    assert all(perfect.answer_question(d) == (True, 1.0) for d in D for _ in range(10))
    struggling = SimUser(profile="struggling", seed=0)
    assert not any(struggling.answer_question(D.HARD)[0] for _ in range(50))
    assert struggling.answer_question(D.HARD)[1] == 12.0


@pytest.mark.parametrize("profile", ["novice", "intermediate", "expert"])
def test_logistic_profiles(profile):
    user = SimUser(profile=profile, seed=1)
    probs = [user.p_correct(d) for d in D]
    assert probs == sorted(probs, reverse=True)
    assert all(0.01 <= p <= 0.99 for p in probs)
    for d in D:
        _, seconds = user.answer_question(d)
        assert seconds >= 0.2


def test_profile_selection():
    assert SimUser(seed=3).profile in PROFILES
    user = SimUser(profile="perfect")
    user.set_profile("struggling")
    assert user.p_correct(D.HARD) == 0.0
    with pytest.raises(ValueError):
        SimUser(profile="genius")
