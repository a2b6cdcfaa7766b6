# experiments/simulate.py
"""
Train agents against simulated learners and run behavioural checks.

    python -m experiments.simulate train --agent mcc --profile average --sessions 20
    python -m experiments.simulate checks --agent sarsa
"""
import argparse
import logging
from pathlib import Path

import numpy as np
import pandas as pd
from tqdm import trange

from agents.persistence import AgentKind, SnapshotStore, build_agent
from agents.types import START, DifficultyLevel
from env.content import ExactMatchEvaluator
from env.orchestrator import EpisodeOrchestrator
from env.quiz_env import QuizEnv
from env.reward import RewardModel
from env.state_encoder import StateEncoder
from utils.config import RL_DIR, SessionConfig, load_config
from utils.sim_user import PROFILES, SimUser


def build_session(agent, env, config, store=None, session_logger=None, session=None):
    encoder = StateEncoder(config.encoder)
    return EpisodeOrchestrator(
        agent=agent,
        content=env,
        evaluator=ExactMatchEvaluator(),
        clock=env.clock,
        reward_model=RewardModel(config.reward, encoder),
        encoder=encoder,
        store=store,
        session_logger=session_logger,
        config=session or config.session,
    )


def _rows(outcomes, session_no, label):
    return [{
        "session": session_no,
        "q_no": o.q_no,
        "state": o.state,
        "difficulty": o.difficulty.name,
        "correct": int(o.correct),
        "time_taken": o.response_time,
        "reward": o.reward,
        "epsilon": o.epsilon,
        "agent": label,
    } for o in outcomes]


def run_training(kind, profile=None, sessions=10, config=None, store=None, seed=None, progress=False):
    """Play `sessions` sessions with one agent; returns (agent, per-question DataFrame)."""
    config = config or load_config()
    agent = build_agent(kind, config, seed=seed)
    user = SimUser(profile=profile, seed=seed)
    env = QuizEnv(user=user)
    rows = []
    it = trange(1, sessions + 1, desc=f"{agent.label}/{user.profile}") if progress else range(1, sessions + 1)
    for s in it:
        env.reset()
        orch = build_session(agent, env, config, store=store)
        rows += _rows(env.play(orch), s, agent.label)
    return agent, pd.DataFrame(rows)


def save_cumulative_plot(df, out_path):
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(6, 3))
    ax.plot(np.arange(1, len(df) + 1), df["reward"].cumsum(), marker="o", markersize=2)
    ax.set_title("Cumulative reward")
    ax.set_xlabel("Question")
    ax.set_ylabel("Cumulative reward")
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def start_values(agent):
    return {a.name: agent.q_value(START, a) for a in DifficultyLevel}


# --- behavioural checks ---
def _run_checked(kind, config, session, seed, on_step=None, epsilon=None, profile="perfect"):
    agent = build_agent(kind, config, seed=seed)
    if epsilon is not None:
        agent.set_epsilon(epsilon)
    env = QuizEnv(user=SimUser(profile=profile, seed=seed))
    orch = build_session(agent, env, config, session=session)
    return agent, env.play(orch, on_step=None if on_step is None else (lambda o: on_step(o, env)))


def check_basic_learning(kind, config, questions=20, seed=0):
    """Always right and fast: the agent should reach HARD questions."""
    session = SessionConfig(total_questions=questions, episode_length=min(6, questions))
    agent, outcomes = _run_checked(kind, config, session, seed, profile="perfect")
    hard = sum(1 for o in outcomes if o.difficulty is DifficultyLevel.HARD)
    return hard > 0, f"served HARD {hard}/{questions} times"


def check_convergence(kind, config, questions=40, seed=0, tol=0.1):
    """Steady learner: the last updates of each visited pair should settle."""
    session = SessionConfig(total_questions=questions, episode_length=min(6, questions))
    agent = build_agent(kind, config, seed=seed)
    env = QuizEnv(user=SimUser(profile="intermediate", seed=seed))
    history = {}

    def track(o):
        history.setdefault((o.state, o.difficulty), []).append(agent.q_value(o.state, o.difficulty))

    env.play(build_session(agent, env, config, session=session), on_step=track)
    tracked = [v for v in history.values() if len(v) >= 5]
    settled = sum(1 for v in tracked if np.var(v[-5:]) < tol)
    return 2 * settled >= len(tracked), f"{settled}/{len(tracked)} pairs settled"


def check_adaptation(kind, config, questions=40, seed=0):
    """Strong first half, weak second half: average difficulty should drop."""
    session = SessionConfig(total_questions=questions, episode_length=min(4, questions))

    def switch(o, env):
        if o.q_no == questions // 2:
            env.user.set_profile("struggling")

    _, outcomes = _run_checked(kind, config, session, seed, on_step=switch, profile="perfect")
    first = np.mean([int(o.difficulty) for o in outcomes[:questions // 2]])
    second = np.mean([int(o.difficulty) for o in outcomes[questions // 2:]])
    return bool(second < first), f"avg difficulty {first:.2f} -> {second:.2f}"


def check_exploration(kind, config, questions=20, seed=0):
    """High epsilon: at least two difficulties should be tried."""
    session = SessionConfig(total_questions=questions, episode_length=min(6, questions))
    _, outcomes = _run_checked(kind, config, session, seed, epsilon=0.5, profile="average")
    tried = {o.difficulty for o in outcomes}
    return len(tried) >= 2, f"tried {len(tried)}/3 difficulties"


CHECKS = {
    "basic_learning": check_basic_learning,
    "convergence": check_convergence,
    "adaptation": check_adaptation,
    "exploration": check_exploration,
}


def run_checks(kind, config=None, seed=0):
    config = config or load_config()
    results = {}
    for name, fn in CHECKS.items():
        passed, summary = fn(kind, config, seed=seed)
        results[name] = (passed, summary)
        print(f"[{name}] {'PASSED' if passed else 'FAILED'}: {summary}")
    return results


def main(argv=None):
    p = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    p.add_argument("command", choices=["train", "checks"])
    p.add_argument("--agent", choices=[k.value for k in AgentKind], default=AgentKind.MCC.value)
    p.add_argument("--profile", choices=PROFILES, default=None)
    p.add_argument("--sessions", type=int, default=10)
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--config", type=str, default=None)
    p.add_argument("--store", type=str, default=None, help=f"snapshot dir (e.g. {RL_DIR})")
    p.add_argument("--export", type=str, default=None, help="per-question CSV output")
    p.add_argument("--plot", type=str, default=None, help="cumulative reward PNG output")
    p.add_argument("-v", "--verbose", action="store_true")
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = load_config(args.config)

    if args.command == "checks":
        results = run_checks(args.agent, config, seed=args.seed or 0)
        return 0 if all(ok for ok, _ in results.values()) else 1

    store = SnapshotStore(args.store) if args.store else None
    agent, df = run_training(args.agent, args.profile, args.sessions, config, store=store,
                             seed=args.seed, progress=True)
    print(f"Sessions: {args.sessions} | questions: {len(df)} | accuracy: {df['correct'].mean():.2%} "
          f"| mean reward: {df['reward'].mean():.3f}")
    print("Difficulty distribution:")
    print(df["difficulty"].value_counts(normalize=True).round(3).to_string())
    print("START values:", {k: round(v, 2) for k, v in start_values(agent).items()})
    print(agent.summary())
    if args.export:
        Path(args.export).parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(args.export, index=False)
        print("Saved:", args.export)
    if args.plot:
        save_cumulative_plot(df, args.plot)
        print("Saved:", args.plot)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
