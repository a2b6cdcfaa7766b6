import logging
import random
from collections import Counter

import pytest

from agents.td_agent import TDAgent, td_update
from agents.types import ACTIONS, START, TERMINAL, AgentSnapshot, DifficultyLevel as D, QEntry
from env.state_encoder import StateEncoder


def greedy(**kwargs):
    return TDAgent(epsilon=0.0, min_epsilon=0.0, seed=0, **kwargs)


def test_sarsa_update_example():
    agent = TDAgent(gamma=0.9, alpha_early=0.5, seed=0)
    s = "EASY_CORRECT_FAST"
    assert agent.update_q_value(s, D.EASY, 1.5, s, D.EASY) == pytest.approx(0.75)
    assert agent.q_value(s, D.EASY) == pytest.approx(0.75)
    assert agent.table[s][D.EASY].visits == 1


def test_td_update_moves_toward_target():
    rng = random.Random(42)
    for _ in range(500):
        q, r, nq = rng.uniform(-10, 10), rng.uniform(-5, 5), rng.uniform(-10, 10)
        alpha, gamma = rng.uniform(0.01, 1.0), rng.uniform(0.01, 0.99)
        target = r + gamma * nq
        new = td_update(q, r, gamma, nq, alpha)
        assert new == pytest.approx(q + alpha * (target - q))
        assert min(q, target) - 1e-9 <= new <= max(q, target) + 1e-9


def test_step_size_drops_after_early_visits():
    agent = greedy()
    values = [agent.update_q_value("S", D.EASY, 1.0, TERMINAL, None) for _ in range(3)]
    assert values == pytest.approx([0.5, 0.75, 0.775])


def test_terminal_or_missing_next_action_bootstraps_zero():
    agent = greedy()
    agent.update_q_value("NEXT", D.HARD, 10.0, TERMINAL, None)
    assert agent.update_q_value("A", D.EASY, 1.0, TERMINAL, D.HARD) == pytest.approx(0.5)
    assert agent.update_q_value("B", D.EASY, 1.0, "NEXT", None) == pytest.approx(0.5)
    assert agent.update_q_value("C", D.EASY, 1.0, "NEXT", D.HARD) == pytest.approx(0.5 * (1.0 + 0.9 * 5.0))


def test_gamma_must_be_open_interval():
    for gamma in (0.0, 1.0, 1.5):
        with pytest.raises(ValueError):
            TDAgent(gamma=gamma)


def test_uniform_exploration_on_fresh_agent():
    agent = TDAgent(seed=123)
    agent.set_epsilon(1.0)
    counts = Counter(agent.choose_action(START) for _ in range(3000))
    assert set(counts) == set(ACTIONS)
    for a in ACTIONS:
        assert 850 < counts[a] < 1150
    assert agent.size() == 0
    assert START not in agent.table


def test_reading_values_never_inserts():
    agent = greedy()
    agent.q_value("X", D.EASY)
    agent.q_values("Y")
    agent.best_action("Z")
    assert agent.table == {}


def test_unseen_state_uses_heuristic():
    agent = greedy()
    assert agent.choose_action(START) is D.MEDIUM
    assert agent.choose_action("MEDIUM_CORRECT_FAST") is D.HARD
    assert agent.choose_action("MEDIUM_WRONG_SLOW") is D.EASY


def test_terminal_state_warns(caplog):
    agent = greedy()
    with caplog.at_level(logging.WARNING):
        assert agent.choose_action(TERMINAL) is D.MEDIUM
    assert TERMINAL in caplog.text


def test_greedy_ties_are_broken_at_random():
    agent = greedy()
    agent.load_snapshot(AgentSnapshot([QEntry("S", D.EASY, 1.0, 1), QEntry("S", D.HARD, 1.0, 1)], 0.0))
    picks = Counter(agent.choose_action("S") for _ in range(300))
    assert set(picks) == {D.EASY, D.HARD}


def test_unseen_actions_compete_with_default_value():
    agent = greedy()
    agent.load_snapshot(AgentSnapshot([QEntry("S", D.EASY, -1.0, 1)], 0.0))
    picks = {agent.choose_action("S") for _ in range(200)}
    assert picks == {D.MEDIUM, D.HARD}


def test_optimistic_defaults():
    agent = greedy(optimistic_q={"HARD": 5.0})
    assert agent.q_value("S", D.HARD) == 5.0
    assert agent.q_value("S", D.EASY) == 0.0
    assert agent.update_q_value("S", D.HARD, 1.0, TERMINAL, None) == pytest.approx(3.0)
    with pytest.raises(ValueError):
        TDAgent(optimistic_q={"IMPOSSIBLE": 1.0})


def test_epsilon_decay_and_floor():
    agent = TDAgent(epsilon=0.1, min_epsilon=0.01, decay_rate=0.95)
    agent.decay_epsilon()
    assert agent.current_epsilon == pytest.approx(0.095)
    for _ in range(500):
        agent.decay_epsilon()
    assert agent.current_epsilon == pytest.approx(0.01)


@pytest.mark.parametrize("before, after", [(0.1, 0.13), (0.18, 0.2), (0.5, 0.5), (0.2, 0.2)])
def test_new_stage_raises_epsilon_up_to_cap(before, after):
    agent = TDAgent(epsilon=before)
    agent.on_new_stage()
    assert agent.current_epsilon == pytest.approx(after)


def test_epsilon_stays_in_bounds():
    rng = random.Random(9)
    agent = TDAgent(min_epsilon=0.05)
    for _ in range(1000):
        op = rng.randrange(3)
        if op == 0:
            agent.set_epsilon(rng.uniform(-1.0, 2.0))
        elif op == 1:
            agent.decay_epsilon()
        else:
            agent.on_new_stage()
        assert 0.05 <= agent.current_epsilon <= 1.0


def test_chosen_actions_are_valid():
    rng = random.Random(4)
    agent = TDAgent(seed=4)
    states = StateEncoder().state_space() + [START]
    for _ in range(500):
        agent.set_epsilon(rng.random())
        s = rng.choice(states)
        a = agent.choose_action(s)
        assert a in ACTIONS
        agent.update_q_value(s, a, rng.uniform(-3, 3), rng.choice(states), rng.choice(ACTIONS))


def test_reset_restores_initial_state():
    agent = TDAgent(epsilon=0.3)
    agent.update_q_value("S", D.EASY, 1.0, TERMINAL, None)
    agent.decay_epsilon()
    agent.reset()
    assert agent.size() == 0
    assert agent.current_epsilon == pytest.approx(0.3)


def test_reporting():
    agent = greedy()
    assert "no learning" in agent.summary()
    agent.update_q_value("S", D.EASY, 1.0, TERMINAL, None)
    agent.update_q_value("S", D.HARD, 3.0, TERMINAL, None)
    df = agent.to_frame()
    assert list(df.columns) == ["state", "action", "q_value", "visits", "return_count"]
    assert len(df) == 2
    assert "State: S" in agent.summary()
    assert agent.get_q_table() == {("S", D.EASY): 0.5, ("S", D.HARD): 1.5}
    assert agent.states_explored() == 1


@pytest.mark.parametrize("kwargs", [
    {"decay_rate": 1.5},
    {"decay_rate": 0.0},
    {"stage_boost": 0.5},
    {"stage_cap": 1.5},
])
def test_epsilon_schedule_is_validated(kwargs):
    with pytest.raises(ValueError):
        TDAgent(**kwargs)


def test_decay_never_leaves_bounds():
    agent = TDAgent(epsilon=1.0, min_epsilon=0.2, decay_rate=1.0)
    for _ in range(10):
        agent.decay_epsilon()
        assert agent.current_epsilon == 1.0
    agent = TDAgent(epsilon=0.3, min_epsilon=0.2, decay_rate=0.1)
    agent.decay_epsilon()
    assert agent.current_epsilon == pytest.approx(0.2)
