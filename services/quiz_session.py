# services/quiz_session.py - quiz session state machine
# A session is InProgress(current_index, answers) or Completed(final_score, answers).
# Every change goes through QuizSession.transition(event); observers see each
# applied transition. Side effects run as tasks and report back through notices.
# The score is never stored: it is recomputed from answers and clamped to [0, N].
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from services.identity import Identity
from services.question_bank import Question
from services.score_sync import ScoreSyncClient, ScoreSyncError
from services.tasks import Task, TaskRunner

logger = logging.getLogger(__name__)

PASSING_SCORE = 7

Answers = Tuple[Optional[int], ...]


class QuizStateError(Exception):
    """An event is not valid in the current state."""


# --- states ---


@dataclass(frozen=True)
class InProgress:
    current_index: int
    answers: Answers


@dataclass(frozen=True)
class Completed:
    final_score: int
    answers: Answers


State = Union[InProgress, Completed]


# --- events ---


@dataclass(frozen=True)
class AnswerSelected:
    index: int
    option_index: int


@dataclass(frozen=True)
class NextRequested:
    pass


@dataclass(frozen=True)
class PreviousRequested:
    pass


@dataclass(frozen=True)
class Restarted:
    pass


@dataclass(frozen=True)
class PriorScoreLoaded:
    score: Optional[int]


Event = Union[AnswerSelected, NextRequested, PreviousRequested, Restarted, PriorScoreLoaded]
Observer = Callable[[State, State, Event], None]


@dataclass(frozen=True)
class Notice:
    title: str
    message: str
    category: str = "info"


@dataclass(frozen=True)
class Results:
    score: int
    total: int
    passed: bool

    @property
    def percentage(self) -> float:
        return round(self.score * 100.0 / self.total, 1) if self.total else 0.0


def clamp_score(score: int, total: int) -> int:
    return min(max(0, score), total)


def score_of(questions: Sequence[Question], answers: Answers) -> int:
    raw = sum(
        1 for q, a in zip(questions, answers) if a is not None and q.options[a].is_correct
    )
    return clamp_score(raw, len(questions))


def score_delta(question: Question, previous: Optional[int], new: int) -> int:
    """Score change caused by replacing ``previous`` with ``new`` on one question."""
    was_correct = previous is not None and question.is_correct(previous)
    is_correct = question.is_correct(new)
    if is_correct and not was_correct:
        return 1
    if was_correct and not is_correct:
        return -1
    return 0


def build_results(final_score: int, total: int) -> Results:
    score = clamp_score(final_score, total)
    return Results(score=score, total=total, passed=score >= PASSING_SCORE)


def initial_state(total: int) -> InProgress:
    return InProgress(current_index=0, answers=(None,) * total)


def reduce(questions: Sequence[Question], state: State, event: Event) -> State:
    """Pure transition function. Returns ``state`` itself when the event is a no-op."""
    total = len(questions)

    if isinstance(event, Restarted):
        return initial_state(total)

    if isinstance(event, AnswerSelected):
        if isinstance(state, Completed):
            raise QuizStateError("cannot select an answer on a completed quiz")
        if event.index < 0 or event.index >= total:
            raise IndexError(f"question {event.index} out of range for {total} questions")
        # Validates option_index, raising IndexError when out of range
        questions[event.index].is_correct(event.option_index)
        answers = list(state.answers)
        answers[event.index] = event.option_index
        return InProgress(state.current_index, tuple(answers))

    if isinstance(event, NextRequested):
        if isinstance(state, Completed) or state.answers[state.current_index] is None:
            return state
        if state.current_index < total - 1:
            return InProgress(state.current_index + 1, state.answers)
        return Completed(min(score_of(questions, state.answers), total), state.answers)

    if isinstance(event, PreviousRequested):
        if isinstance(state, InProgress) and state.current_index > 0:
            return InProgress(state.current_index - 1, state.answers)
        return state

    if isinstance(event, PriorScoreLoaded):
        if event.score is None or isinstance(state, Completed):
            return state
        prior = clamp_score(event.score, total)
        if prior >= PASSING_SCORE:
            return Completed(prior, state.answers)
        return state

    raise QuizStateError(f"unknown event {event!r}")


class QuizSession:
    def __init__(
        self,
        questions: Sequence[Question],
        identity: Optional[Identity] = None,
        score_client: Optional[ScoreSyncClient] = None,
        task_runner: Optional[TaskRunner] = None,
        state: Optional[State] = None,
    ):
        if not questions:
            raise ValueError("a quiz needs at least one question")
        self.questions = list(questions)
        self.identity = identity
        self.score_client = score_client
        self.task_runner = task_runner or TaskRunner(eager=True)
        self._state: State = state or initial_state(len(self.questions))
        self._observers: List[Observer] = [self._persist_on_completion]
        self.notices: List[Notice] = []
        # Task callbacks append from worker threads
        self._notices_lock = threading.Lock()
        self.fetch_task: Optional[Task] = None
        self.save_task: Optional[Task] = None

    # --- read side ---

    @property
    def state(self) -> State:
        return self._state

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def answers(self) -> Answers:
        return self._state.answers

    @property
    def is_completed(self) -> bool:
        return isinstance(self._state, Completed)

    @property
    def current_index(self) -> int:
        return self._state.current_index if isinstance(self._state, InProgress) else self.total - 1

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def score(self) -> int:
        if isinstance(self._state, Completed):
            return clamp_score(self._state.final_score, self.total)
        return score_of(self.questions, self._state.answers)

    @property
    def final_score(self) -> Optional[int]:
        return self.score if self.is_completed else None

    @property
    def can_go_next(self) -> bool:
        return not self.is_completed and self.answers[self.current_index] is not None

    @property
    def progress(self) -> float:
        return (self.current_index + 1) * 100.0 / self.total

    def results(self) -> Optional[Results]:
        if not self.is_completed:
            return None
        return build_results(self.score, self.total)

    def drain_notices(self) -> List[Notice]:
        with self._notices_lock:
            notices, self.notices = self.notices, []
        return notices

    def _add_notice(self, notice: Notice) -> None:
        with self._notices_lock:
            self.notices.append(notice)

    # --- transitions ---

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def transition(self, event: Event) -> State:
        old = self._state
        new = reduce(self.questions, old, event)
        if new is old:
            return old
        self._state = new
        for observer in list(self._observers):
            observer(old, new, event)
        return new

    def select_answer(self, index: int, option_index: int) -> None:
        if isinstance(self._state, InProgress) and 0 <= index < self.total:
            # Trace only: the score itself is always derived from answers
            delta = score_delta(self.questions[index], self._state.answers[index], option_index)
            logger.debug("answer_selected index=%s option=%s delta=%s", index, option_index, delta)
        self.transition(AnswerSelected(index, option_index))

    def go_next(self) -> bool:
        """Advance or complete; False when blocked (no answer yet or already completed)."""
        old = self._state
        return self.transition(NextRequested()) is not old

    def go_previous(self) -> bool:
        old = self._state
        return self.transition(PreviousRequested()) is not old

    def restart(self) -> None:
        self.transition(Restarted())

    # --- remote score ---

    def mount(self) -> Optional[Task]:
        """Fetch the prior score and apply it. Returns the fetch task, if one was started."""
        if self.identity is None or self.score_client is None:
            return None
        self.fetch_task = self.task_runner.submit(
            "fetch_score",
            self.score_client.fetch_score,
            self.identity.email,
            on_success=self.apply_prior_score,
            on_failure=self._on_fetch_failed,
        )
        return self.fetch_task

    def apply_prior_score(self, score: Optional[int]) -> None:
        if score is None:
            self._add_notice(Notice("First exam", "Good luck with your exam!"))
            return
        prior = clamp_score(score, self.total)
        if prior < PASSING_SCORE:
            self._add_notice(
                Notice(
                    "Insufficient score",
                    f"Your score is {prior}, you must retake the exam.",
                )
            )
        self.transition(PriorScoreLoaded(prior))

    def _on_fetch_failed(self, error: BaseException) -> None:
        logger.warning("prior_score_unavailable error=%s", error)
        self._add_notice(Notice("Error", _user_message(error, "Unable to fetch your score"), "error"))

    def _persist_on_completion(self, old: State, new: State, event: Event) -> None:
        if isinstance(event, NextRequested) and isinstance(new, Completed):
            self.save_task = self._save_score(new.final_score)

    def _save_score(self, final_score: int) -> Optional[Task]:
        if self.identity is None or self.score_client is None:
            logger.info("score_not_persisted reason=no_identity score=%s", final_score)
            return None
        return self.task_runner.submit(
            "save_score",
            self.score_client.save_score,
            self.identity.email,
            final_score,
            on_success=lambda _: self._add_notice(
                Notice("Score saved", "Your score has been saved successfully.", "success")
            ),
            on_failure=lambda e: self._add_notice(
                Notice("Error", _user_message(e, "Unable to save your score"), "error")
            ),
        )

    # --- persistence between requests ---

    def to_dict(self) -> Dict[str, Any]:
        state = self._state
        return {
            "completed": isinstance(state, Completed),
            "index": state.current_index if isinstance(state, InProgress) else None,
            "final_score": state.final_score if isinstance(state, Completed) else None,
            "answers": list(state.answers),
        }

    @classmethod
    def from_dict(cls, questions: Sequence[Question], data: Dict[str, Any], **kwargs) -> "QuizSession":
        """Rebuild a session; malformed data yields a fresh session."""
        try:
            state = _state_from_dict(questions, data)
        except (KeyError, TypeError, ValueError, IndexError) as e:
            logger.warning("quiz_state_discarded reason=%s", e)
            state = None
        return cls(questions, state=state, **kwargs)


def _state_from_dict(questions: Sequence[Question], data: Dict[str, Any]) -> State:
    total = len(questions)
    answers = tuple(None if a is None else int(a) for a in data["answers"])
    if len(answers) != total:
        raise ValueError(f"expected {total} answers, got {len(answers)}")
    for q, a in zip(questions, answers):
        if a is not None:
            q.is_correct(a)
    if data.get("completed"):
        return Completed(clamp_score(int(data["final_score"]), total), answers)
    index = int(data["index"])
    if index < 0 or index >= total:
        raise IndexError(f"index {index} out of range")
    return InProgress(index, answers)


def _user_message(error: BaseException, default: str) -> str:
    if isinstance(error, ScoreSyncError) and str(error):
        return str(error)
    return default
