# env/quiz_env.py
from agents.types import DifficultyLevel
from env.content import ManualClock, Question
from utils.sim_user import SimUser

CORRECT = "correct"
WRONG = "wrong"


# Simulated stand-in for the content source, the learner and the clock
class QuizEnv:
    def __init__(self, user=None, user_profile=None, seed=None):
        # action space: 0=easy,1=medium,2=hard
        self.action_space = list(DifficultyLevel)
        self.user = user or SimUser(profile=user_profile, seed=seed)
        self.clock = ManualClock()
        self.q_no = 0

    def reset(self):
        self.q_no = 0
        self.user.reset()

    # ContentSource
    def next_question(self, difficulty):
        level = DifficultyLevel.coerce(difficulty)
        if level is None:
            level = DifficultyLevel.MEDIUM
        self.q_no += 1
        return Question(text=f"[sim] question {self.q_no} ({level.name})", answers=[CORRECT],
                        difficulty=level, options=[CORRECT, WRONG], qid=f"sim-{self.q_no}")

    # learner
    def respond(self, question):
        correct, time_taken = self.user.answer_question(question.difficulty)
        self.clock.advance(time_taken)
        return [CORRECT if correct else WRONG]

    def play(self, orchestrator, on_step=None):
        """Run `orchestrator` to the end of its session against the simulated user."""
        if orchestrator.phase is None or orchestrator.finished:
            orchestrator.start()
        outcomes = []
        while not orchestrator.finished:
            question = orchestrator.next_question()
            outcome = orchestrator.submit_answer(self.respond(question))
            outcomes.append(outcome)
            if on_step is not None:
                on_step(outcome)
        return outcomes
