# utils/utils_logging.py
import csv
import json
import uuid
from datetime import datetime, timezone
from pathlib import Path

from utils.config import DATA_DIR

INTERACTION_HEADER = ["session_id", "user_id", "ts", "q_no", "difficulty", "question",
                      "correct", "time_taken", "reward", "state", "agent_type"]
TRANSITION_HEADER = ["session_id", "q_no", "state", "action", "reward", "next_state", "done", "episode_end",
                     "agent_type"]


def _now():
    return datetime.now(timezone.utc).isoformat()


def _append_row(path, header, row):
    write_header = not path.exists()
    with open(path, "a", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        if write_header:
            w.writerow(header)
        w.writerow(row)


class SessionLogger:
    """
    Session transcripts:
      {data_dir}/sessions.csv              one row per answered question
      {data_dir}/transitions.csv           (s, a, r, s', done) rows for offline replay;
                                           done marks session end, episode_end a learned episode
      {data_dir}/session_details/<id>.json per-session detail
    """

    def __init__(self, data_dir=DATA_DIR):
        self.data_dir = Path(data_dir)
        self.csv_path = self.data_dir / "sessions.csv"
        self.transitions_path = self.data_dir / "transitions.csv"
        self.json_dir = self.data_dir / "session_details"

    def _ensure_dirs(self):
        self.json_dir.mkdir(parents=True, exist_ok=True)

    def start_session(self, user_id="anon", agent_type=None):
        self._ensure_dirs()
        sid = str(uuid.uuid4())
        meta = {"session_id": sid, "user_id": user_id, "agent_type": agent_type, "start_time": _now()}
        with open(self.json_dir / f"{sid}.json", "w", encoding="utf-8") as f:
            json.dump(meta, f)
        return meta

    def log_interaction(self, session_meta, q_no, difficulty, question, correct, time_taken, reward,
                        state="", agent_type="heuristic"):
        self._ensure_dirs()
        row = [
            session_meta["session_id"],
            session_meta.get("user_id", "anon"),
            _now(),
            q_no,
            difficulty,
            question,
            int(bool(correct)),
            float(time_taken),
            float(reward),
            state,
            agent_type,
        ]
        _append_row(self.csv_path, INTERACTION_HEADER, row)

        jpath = self.json_dir / f"{session_meta['session_id']}.json"
        if jpath.exists():
            with open(jpath, "r", encoding="utf-8") as jf:
                existing = json.load(jf)
        else:
            existing = dict(session_meta)
        existing.setdefault("interactions", []).append({
            "ts": row[2],
            "q_no": q_no,
            "difficulty": difficulty,
            "question": question,
            "correct": bool(correct),
            "time_taken": float(time_taken),
            "reward": float(reward),
            "state": state,
        })
        with open(jpath, "w", encoding="utf-8") as jf:
            json.dump(existing, jf, indent=2)

    def log_transition(self, session_id, q_no, s, a, r, ns, done, episode_end=False, agent_type=""):
        self._ensure_dirs()
        _append_row(self.transitions_path, TRANSITION_HEADER,
                    [session_id or "", q_no, s, a, float(r), ns, int(bool(done)), int(bool(episode_end)),
                     agent_type])

    def end_session(self, session_meta, status, summary=None):
        jpath = self.json_dir / f"{session_meta['session_id']}.json"
        if jpath.exists():
            with open(jpath, "r", encoding="utf-8") as jf:
                existing = json.load(jf)
        else:
            self._ensure_dirs()
            existing = dict(session_meta)
        existing["end_time"] = _now()
        existing["status"] = status
        if summary is not None:
            existing["summary"] = summary
        with open(jpath, "w", encoding="utf-8") as jf:
            json.dump(existing, jf, indent=2)
