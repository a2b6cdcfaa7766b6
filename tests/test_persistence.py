import asyncio
import json
from datetime import datetime

import pytest

from agents.episodic_agent import EpisodicAgent
from agents.persistence import AgentKind, SnapshotStore, build_agent
from agents.td_agent import TDAgent
from agents.types import TERMINAL, TIMESTAMP_FORMAT, AgentSnapshot, DifficultyLevel as D


def trained_td():
    agent = TDAgent(seed=0)
    agent.update_q_value("START", D.MEDIUM, 2.5, "MEDIUM_CORRECT_FAST", D.HARD)
    agent.update_q_value("MEDIUM_CORRECT_FAST", D.HARD, -3.0, TERMINAL, None)
    agent.decay_epsilon()
    return agent


def test_round_trip(store):
    agent = trained_td()
    assert store.save_agent(agent)
    other = TDAgent(seed=0)
    assert store.load_into(other)
    assert other.entries() == agent.entries()
    assert other.current_epsilon == pytest.approx(agent.current_epsilon)


def test_file_format(store):
    store.save_agent(trained_td())
    data = json.loads(store.path_for("sarsa").read_text())
    assert set(data) == {"entries", "epsilon", "timestamp"}
    assert datetime.strptime(data["timestamp"], TIMESTAMP_FORMAT)
    entry = data["entries"][0]
    assert set(entry) == {"state", "action", "qValue", "visits", "returnCount"}
    assert isinstance(entry["action"], int)


def test_empty_snapshot_behaves_like_fresh_agent():
    loaded = TDAgent(seed=7)
    loaded.load_snapshot(AgentSnapshot(entries=[], epsilon=0.3))
    fresh = TDAgent(seed=7, epsilon=0.3)
    assert loaded.size() == 0
    assert loaded.current_epsilon == pytest.approx(0.3)
    states = ["START", "EASY_CORRECT_FAST", "HARD_WRONG_SLOW"] * 30
    assert [loaded.choose_action(s) for s in states] == [fresh.choose_action(s) for s in states]


def test_missing_file(store):
    assert store.load("sarsa") is None
    assert not store.load_into(TDAgent())
    assert not store.has_any_saved_data()


@pytest.mark.parametrize("payload", [
    "{not json",
    "[]",
    '{"entries": {}, "epsilon": 0.1}',
    '{"entries": [], "epsilon": "NaN"}',
    '{"entries": [{"state": "S", "action": 7, "qValue": 1.0}], "epsilon": 0.1}',
    '{"entries": [{"state": "", "action": 0, "qValue": 1.0}], "epsilon": 0.1}',
    '{"entries": [{"state": "S", "action": 0}], "epsilon": 0.1}',
])
def test_corrupt_file_is_ignored(store, payload):
    path = store.path_for("sarsa")
    path.parent.mkdir(parents=True)
    path.write_text(payload)
    agent = trained_td()
    assert store.load("sarsa") is None
    assert not store.load_into(agent)
    assert agent.size() == 2


def test_save_failure_returns_false(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    assert SnapshotStore(blocker).save_agent(trained_td()) is False


def test_save_leaves_no_temp_files(store):
    store.save_agent(trained_td())
    store.save_agent(trained_td())
    assert [p.name for p in store.base_dir.iterdir()] == ["sarsa_agent.json"]


def test_kinds_are_stored_separately(store):
    mcc = EpisodicAgent()
    mcc.update_policy([("S", D.EASY, 1.0)])
    store.save_agent(trained_td())
    store.save_agent(mcc)
    assert store.path_for(AgentKind.SARSA).exists()
    assert store.path_for(mcc).name == "mcc_agent.json"

    store.clear("sarsa")
    assert not store.path_for("sarsa").exists()
    assert store.has_any_saved_data()
    store.clear()
    assert not store.has_any_saved_data()


def test_episodic_counters_survive(store):
    agent = EpisodicAgent()
    agent.update_policy([("S", D.EASY, 1.0), ("S", D.EASY, 1.0)])
    store.save_agent(agent)
    other = EpisodicAgent()
    store.load_into(other)
    entry = other.table["S"][D.EASY]
    assert (entry.visits, entry.return_count) == (2, 1)


def test_async_api(store):
    agent = trained_td()
    other = TDAgent()

    async def go():
        saved = await store.save_agent_async(agent)
        found = await store.load_into_async(other)
        return saved, found

    assert asyncio.run(go()) == (True, True)
    assert other.entries() == agent.entries()


def test_build_agent():
    assert isinstance(build_agent("sarsa"), TDAgent)
    mcc = build_agent(AgentKind.MCC, seed=1)
    assert isinstance(mcc, EpisodicAgent)
    assert mcc.current_epsilon == pytest.approx(0.15)
    with pytest.raises(ValueError):
        build_agent("dqn")
