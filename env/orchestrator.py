# env/orchestrator.py
"""
Drives the ask -> answer -> score -> learn loop for one quiz session.

Phases:
    AWAITING_ACTION -> AWAITING_OUTCOME -> SCORING
        -> AWAITING_ACTION | EPISODE_BOUNDARY | SESSION_TERMINAL
    ABORTED when torn down mid-session.

TD agents learn after every answer (SARSA keeps the a' it chose for s' and
asks it next). Episodic agents buffer (s, a, r) steps and learn once the
buffer holds `episode_length` steps; a partial buffer is never learned from.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum

from agents.episodic_agent import EpisodicAgent
from agents.td_agent import TDAgent
from agents.types import TERMINAL, DifficultyLevel
from env.reward import RewardModel
from env.state_encoder import StateEncoder, as_seconds
from utils.config import SessionConfig
from utils.metrics import SessionMetrics

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    AWAITING_ACTION = "awaiting_action"
    AWAITING_OUTCOME = "awaiting_outcome"
    SCORING = "scoring"
    EPISODE_BOUNDARY = "episode_boundary"
    SESSION_TERMINAL = "session_terminal"
    ABORTED = "aborted"


@dataclass
class Outcome:
    q_no: int
    state: str
    difficulty: DifficultyLevel
    correct: bool
    response_time: float
    reward: float
    next_state: str
    epsilon: float
    episode_finished: bool = False
    session_finished: bool = False


class EpisodeOrchestrator:
    def __init__(self, agent, content, evaluator, clock, reward_model=None, encoder=None,
                 store=None, session_logger=None, config=None, user_id="anon"):
        self.agent = agent
        self.content = content
        self.evaluator = evaluator
        self.clock = clock
        self.encoder = encoder or StateEncoder()
        self.reward_model = reward_model or RewardModel(encoder=self.encoder)
        self.store = store
        self.session_logger = session_logger
        self.config = config or SessionConfig()
        self.user_id = user_id

        self.phase = None
        self.had_previous_data = False
        self.listeners = []
        self._reset_session()

    def _reset_session(self):
        self.state = None
        self.history = []
        self.episode = []
        self.metrics = SessionMetrics()
        self.questions_answered = 0
        self.episodes_completed = 0
        self.current = None
        self._pending_action = None
        self._session_meta = None

    @property
    def mode(self):
        if isinstance(self.agent, TDAgent):
            return "td"
        if isinstance(self.agent, EpisodicAgent):
            return "episodic"
        return "static"

    @property
    def _persistable(self):
        return self.store is not None and getattr(self.agent, "kind", None) is not None

    @property
    def finished(self):
        return self.phase in (Phase.SESSION_TERMINAL, Phase.ABORTED)

    def add_listener(self, fn):
        """fn(outcome) is called after every scored answer (gameplay effects)."""
        self.listeners.append(fn)

    # --- session start ---
    def start(self):
        had = self.store.load_into(self.agent) if self._persistable else False
        return self._begin(had)

    async def start_async(self):
        had = await self.store.load_into_async(self.agent) if self._persistable else False
        return self._begin(had)

    def _begin(self, had_previous_data):
        if self.phase is not None and not self.finished:
            raise RuntimeError(f"session already running ({self.phase.value})")
        self._reset_session()
        self.had_previous_data = had_previous_data
        if had_previous_data and self.config.warm_start_bump:
            self.agent.on_new_stage()
        logger.info("session start | agent=%s warm=%s eps=%.3f",
                    self.mode, had_previous_data, self.agent.current_epsilon)
        self.state = self.encoder.encode_history(self.history)
        if self.session_logger is not None:
            self._session_meta = self.session_logger.start_session(self.user_id, agent_type=self.mode)
        self.phase = Phase.AWAITING_ACTION
        return had_previous_data

    # --- turn ---
    def next_question(self):
        if self.phase is not Phase.AWAITING_ACTION:
            raise RuntimeError(f"cannot ask a question while {self.phase and self.phase.value}")
        state = self.state
        if self._pending_action is not None:
            action = self._pending_action
            self._pending_action = None
        else:
            action = self.agent.choose_action(state)
        question = self.content.next_question(action)
        # content may fall back to another tier; learn from what was served
        served = DifficultyLevel.coerce(question.difficulty)
        level = served if served is not None else DifficultyLevel(action)
        self.current = (state, level, question)
        self.clock.start()
        self.phase = Phase.AWAITING_OUTCOME
        logger.debug("q%d | state=%s action=%s served=%s",
                     self.questions_answered + 1, state, DifficultyLevel(action).name, level.name)
        return question

    def evaluate(self, answers):
        _, _, question = self.current
        return bool(self.evaluator.check(question, answers)), self.clock.elapsed()

    def submit_answer(self, answers):
        if self.phase is not Phase.AWAITING_OUTCOME:
            raise RuntimeError("no question is waiting for an answer")
        correct, seconds = self.evaluate(answers)
        return self.record_outcome(correct, seconds)

    def record_outcome(self, correct, response_time, persist=True):
        outcome = self._score(correct, response_time)
        if outcome.session_finished and persist:
            self.persist()
        return outcome

    def _score(self, correct, response_time):
        if self.phase is not Phase.AWAITING_OUTCOME:
            raise RuntimeError("no question is waiting for an outcome")
        self.phase = Phase.SCORING
        state, level, question = self.current
        self.current = None
        correct = bool(correct)
        response_time = as_seconds(response_time)
        reward = self.reward_model.reward(level, correct, response_time)

        self.history.append((level, correct, response_time))
        self.metrics.record(level, correct, response_time, reward)
        self.questions_answered += 1
        q_no = self.questions_answered
        last_question = q_no >= self.config.total_questions
        next_state = TERMINAL if last_question else self.encoder.encode_history(self.history)

        episode_finished = False
        if self.mode == "td":
            next_action = None if last_question else self.agent.choose_action(next_state)
            self.agent.update_q_value(state, level, reward, next_state, next_action)
            self.agent.decay_epsilon()
            self._pending_action = next_action
        elif self.mode == "episodic":
            self.episode.append((state, level, reward))
            if len(self.episode) >= self.config.episode_length:
                self.phase = Phase.EPISODE_BOUNDARY
                self._close_episode()
                episode_finished = True

        self._log(q_no, state, level, question, correct, response_time, reward,
                  next_state, last_question, episode_finished)

        outcome = Outcome(q_no=q_no, state=state, difficulty=level, correct=correct,
                          response_time=response_time, reward=reward, next_state=next_state,
                          epsilon=self.agent.current_epsilon, episode_finished=episode_finished,
                          session_finished=last_question)
        if last_question:
            self._terminate("completed")
        else:
            self.state = next_state
            self.phase = Phase.AWAITING_ACTION
        self._notify(outcome)
        return outcome

    def _close_episode(self):
        episode, self.episode = self.episode, []
        self.agent.update_policy(episode)
        self.agent.decay_epsilon()
        self.episodes_completed += 1
        logger.info("episode %d done | accuracy=%.2f eps=%.3f",
                    self.episodes_completed, self.metrics.accuracy(), self.agent.current_epsilon)

    def _discard_partial_episode(self):
        if self.episode:
            logger.info("discarding partial episode of %d steps", len(self.episode))
        self.episode = []

    def _terminate(self, status):
        self._discard_partial_episode()
        self._pending_action = None
        self.phase = Phase.SESSION_TERMINAL
        logger.info("session %s | answered=%d accuracy=%.2f reward=%.2f",
                    status, self.questions_answered, self.metrics.accuracy(), self.metrics.total_reward())
        if self.session_logger is not None and self._session_meta is not None:
            self.session_logger.end_session(self._session_meta, status,
                                            summary={"answered": self.questions_answered,
                                                     "accuracy": self.metrics.accuracy(),
                                                     "total_reward": self.metrics.total_reward()})

    # --- session end ---
    def finish(self, status="ended"):
        """End early on win/lose; keeps what was learned and persists it."""
        if self.finished:
            return False
        self._terminate(status)
        return self.persist()

    async def finish_async(self, status="ended"):
        if self.finished:
            return False
        self._terminate(status)
        return await self.persist_async()

    def abort(self):
        """Tear down mid-session: the partial episode is dropped, nothing is saved."""
        if self.finished:
            return
        self._discard_partial_episode()
        self._pending_action = None
        self.current = None
        self.phase = Phase.ABORTED
        logger.info("session aborted after %d answers", self.questions_answered)
        if self.session_logger is not None and self._session_meta is not None:
            self.session_logger.end_session(self._session_meta, "aborted")

    def new_stage(self):
        self.agent.on_new_stage()
        return self.persist()

    def persist(self):
        if not self._persistable:
            return False
        return self.store.save_agent(self.agent)

    async def persist_async(self):
        if not self._persistable:
            return False
        return await self.store.save_agent_async(self.agent)

    # --- async driver ---
    async def run_session(self, answer_fn):
        """
        Play a whole session. answer_fn(question) returns the submitted answers
        (or an awaitable of them). Cancelling the task aborts the session.
        """
        if self.phase is None or self.finished:
            await self.start_async()
        try:
            while self.phase is Phase.AWAITING_ACTION:
                question = self.next_question()
                answers = answer_fn(question)
                if inspect.isawaitable(answers):
                    answers = await answers
                correct, seconds = self.evaluate(answers)
                outcome = self._score(correct, seconds)
                if outcome.session_finished:
                    break
                if self.config.feedback_delay:
                    await asyncio.sleep(self.config.feedback_delay)
        except asyncio.CancelledError:
            self.abort()
            raise
        # a listener may have aborted the session; aborted sessions are never saved
        if self.phase is Phase.SESSION_TERMINAL:
            await self.persist_async()
        return self.metrics

    # --- helpers ---
    def _notify(self, outcome):
        for fn in self.listeners:
            try:
                fn(outcome)
            except Exception:
                logger.exception("outcome listener %r failed", fn)

    def _log(self, q_no, state, level, question, correct, seconds, reward, next_state, done, episode_end):
        if self.session_logger is None or self._session_meta is None:
            return
        sid = self._session_meta["session_id"]
        self.session_logger.log_interaction(self._session_meta, q_no, level.name, question.text,
                                            correct, seconds, reward, state=state, agent_type=self.mode)
        self.session_logger.log_transition(sid, q_no, state, level.name, reward, next_state, done,
                                           episode_end=episode_end, agent_type=self.mode)
