# experiments/eval_policy.py
"""
Greedy evaluation of a persisted policy against simulated learners.

    python -m experiments.eval_policy --agent sarsa --store data/rl --sessions 200
"""
import argparse
from collections import Counter

import numpy as np

from agents.heuristic import HeuristicAgent
from agents.persistence import AgentKind, SnapshotStore, build_agent
from agents.types import DifficultyLevel
from env.quiz_env import QuizEnv
from experiments.simulate import build_session
from utils.config import RL_DIR, load_config
from utils.sim_user import PROFILES, SimUser


def load_greedy_agent(kind, store, config=None, seed=None):
    """Hydrate a throwaway copy of the stored agent with exploration switched off."""
    config = config or load_config()
    agent = build_agent(kind, config, seed=seed)
    agent.min_epsilon = 0.0
    found = store.load_into(agent)
    agent.set_epsilon(0.0)
    return agent, found


def evaluate(agent, sessions=200, profile=None, config=None, seed=None):
    config = config or load_config()
    user = SimUser(profile=profile, seed=seed)
    env = QuizEnv(user=user)
    rewards = []
    accuracies = []
    difficulty_counts = Counter()

    for _ in range(sessions):
        env.reset()
        # no store: whatever the copy learns during evaluation is thrown away
        orch = build_session(agent, env, config)
        outcomes = env.play(orch)
        rewards.append(sum(o.reward for o in outcomes))
        accuracies.append(orch.metrics.accuracy())
        difficulty_counts.update(o.difficulty for o in outcomes)

    total_actions = sum(difficulty_counts.values())
    return {
        "profile": user.profile,
        "mean_reward": float(np.mean(rewards)),
        "std_reward": float(np.std(rewards)),
        "mean_accuracy": float(np.mean(accuracies)),
        "distribution": {d.name: difficulty_counts[d] / float(total_actions or 1) for d in DifficultyLevel},
    }


def report(label, result):
    print(f"Agent: {label} | Profile: {result['profile']}")
    print(f"Mean reward: {result['mean_reward']:.3f}  Std: {result['std_reward']:.3f}")
    print(f"Mean accuracy (per-session): {result['mean_accuracy']*100:.2f}%")
    print("Difficulty distribution (fraction):")
    for name, frac in result["distribution"].items():
        print(f"  {name:<7} {frac:.2%}")


def main(argv=None):
    p = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    p.add_argument("--agent", choices=[k.value for k in AgentKind], default=AgentKind.SARSA.value)
    p.add_argument("--store", type=str, default=str(RL_DIR))
    p.add_argument("--sessions", type=int, default=200)
    p.add_argument("--profile", choices=PROFILES, default=None)
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--config", type=str, default=None)
    p.add_argument("--baseline", action="store_true", help="also evaluate the rule-based baseline")
    args = p.parse_args(argv)

    config = load_config(args.config)
    agent, found = load_greedy_agent(args.agent, SnapshotStore(args.store), config, seed=args.seed)
    if not found:
        print(f"No saved {args.agent} policy in {args.store}; evaluating an untrained agent.")
    report(agent.label, evaluate(agent, args.sessions, args.profile, config, seed=args.seed))
    if args.baseline:
        report("heuristic", evaluate(HeuristicAgent(seed=args.seed), args.sessions, args.profile,
                                     config, seed=args.seed))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
