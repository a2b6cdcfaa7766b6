# experiments/retrain_from_logs.py
"""
Replays data/transitions.csv (written by SessionLogger) into an agent and
saves it to the snapshot store.

sarsa: each row is a SARSA step; a' is the action actually taken next in the
       same session (none after the session-end row). Episode boundaries of
       episodic sessions do not cut the bootstrap.
mcc:   rows are cut into episodes at episode_end rows; only chunks of exactly
       --episode-length steps are learned from, and leftovers at session end
       are dropped.
"""
import argparse
import logging
import os

import pandas as pd

from agents.persistence import AgentKind, SnapshotStore, build_agent
from agents.types import TERMINAL, DifficultyLevel
from utils.config import DATA_DIR, RL_DIR, load_config

logger = logging.getLogger(__name__)


def load_transitions(path):
    df = pd.read_csv(path, dtype={"session_id": str, "state": str, "next_state": str})
    df["action"] = df["action"].map(DifficultyLevel.coerce)
    bad = df["action"].isna()
    if bad.any():
        logger.warning("dropping %d rows with unknown actions", int(bad.sum()))
        df = df[~bad].copy()
    df["action"] = df["action"].astype(int)
    df["done"] = df["done"].astype(int).astype(bool)
    if "episode_end" in df.columns:
        df["episode_end"] = df["episode_end"].astype(int).astype(bool)
    else:
        # older logs: a single flag for both boundaries
        df["episode_end"] = df["done"]
    return df.sort_values(["session_id", "q_no"], kind="stable")


def replay_sarsa(agent, df):
    updates = 0
    for _, session in df.groupby("session_id", sort=False):
        rows = list(session.itertuples(index=False))
        for i, row in enumerate(rows):
            if row.done or i + 1 >= len(rows):
                next_state, next_action = TERMINAL, None
            else:
                next_state, next_action = row.next_state, rows[i + 1].action
            agent.update_q_value(row.state, row.action, float(row.reward), next_state, next_action)
            agent.decay_epsilon()
            updates += 1
    return updates


def replay_mcc(agent, df, episode_length):
    episodes = 0
    for _, session in df.groupby("session_id", sort=False):
        chunk = []
        for row in session.itertuples(index=False):
            chunk.append((row.state, row.action, float(row.reward)))
            if row.episode_end:
                if len(chunk) == episode_length:
                    agent.update_policy(chunk)
                    agent.decay_epsilon()
                    episodes += 1
                chunk = []
            elif row.done:
                chunk = []
    return episodes


def main(argv=None):
    p = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    p.add_argument("--agent", choices=[k.value for k in AgentKind], default=AgentKind.SARSA.value)
    p.add_argument("--input", type=str, default=str(DATA_DIR / "transitions.csv"))
    p.add_argument("--store", type=str, default=str(RL_DIR))
    p.add_argument("--config", type=str, default=None)
    p.add_argument("--fresh", action="store_true", help="ignore any saved policy")
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    if not os.path.exists(args.input):
        print("No transitions found at", args.input)
        return 1

    config = load_config(args.config)
    store = SnapshotStore(args.store)
    agent = build_agent(args.agent, config)
    if not args.fresh:
        store.load_into(agent)

    df = load_transitions(args.input)
    if agent.kind == AgentKind.SARSA.value:
        n = replay_sarsa(agent, df)
        print(f"Replayed {n} SARSA steps")
    else:
        n = replay_mcc(agent, df, config.session.episode_length)
        print(f"Replayed {n} episodes")
    store.save_agent(agent)
    print("Saved retrained policy to", store.path_for(agent))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
