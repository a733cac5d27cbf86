"""
Exam session store: the in-memory state of one running attempt.
Navigation, staged vs committed answers, review marks, countdown and submission lock.
Nothing here talks to the store; exam_service persists on submit.
"""
import logging
import threading
from typing import Dict, List, Optional, Set, Tuple

from examhall.models import Question, ExamResponse

logger = logging.getLogger(__name__)

STATE_LOADING = "loading"
STATE_ACTIVE = "active"
STATE_SUBMITTED = "submitted"

STATUS_MARKED = "marked"
STATUS_ANSWERED = "answered"
STATUS_VISITED = "visited"
STATUS_UNANSWERED = "unanswered"


class ExamSession:
    """
    Owns the runtime state of a single attempt: loading -> active -> submitted.

    Answers are two-phase. stage() only records a scratch choice for the current
    question; commit_and_advance() and mark_for_review() write it into the
    question's ExamResponse. Moving to another question drops the scratch value.

    Once submitted, every mutating call is a no-op and returns False.
    """

    ZOOM_MIN = 80
    ZOOM_MAX = 150
    ZOOM_DEFAULT = 100

    def __init__(self):
        self._lock = threading.RLock()
        self.reset()

    def reset(self) -> None:
        """Back to loading; used on teardown and before a new attempt."""
        with self._lock:
            self.state = STATE_LOADING
            self.attempt_id: Optional[str] = None
            self.test_id: Optional[str] = None
            self.questions: List[Question] = []
            self.responses: Dict[str, ExamResponse] = {}
            self.visited: Set[str] = set()
            self.current_index = 0
            self.time_remaining = 0
            self.duration_minutes = 0
            self.zoom_level = self.ZOOM_DEFAULT
            self.is_timeout = False
            self._staged: Optional[str] = None

    # ------------------------------------------------------------------ lifecycle

    def initialize(self, attempt_id: str, test_id: str, questions: List[Question], duration_minutes: int) -> None:
        """
        Start a fresh attempt.

        Args:
            attempt_id: Id of the exam_attempts row created for this run.
            test_id: Test being taken.
            questions: Full question set, already ordered by question_number.
            duration_minutes: Time allowed; must be positive.
        """
        if not questions:
            raise ValueError("Cannot start an attempt with no questions")
        if duration_minutes <= 0:
            raise ValueError(f"Duration must be positive, got {duration_minutes} minutes")
        with self._lock:
            self.reset()
            self.attempt_id = attempt_id
            self.test_id = test_id
            self.questions = list(questions)
            self.responses = {
                q.id: ExamResponse(attempt_id=attempt_id, question_id=q.id)
                for q in self.questions
            }
            self.duration_minutes = duration_minutes
            self.time_remaining = duration_minutes * 60
            self.state = STATE_ACTIVE
            self._staged = None
        logger.info(f"Attempt {attempt_id}: {len(questions)} questions, {duration_minutes} min")

    @property
    def is_active(self) -> bool:
        return self.state == STATE_ACTIVE

    @property
    def is_submitted(self) -> bool:
        return self.state == STATE_SUBMITTED

    def submit(self, is_timeout: bool = False) -> bool:
        """Enter the terminal state. Only the first call has an effect."""
        with self._lock:
            if self.state != STATE_ACTIVE:
                return False
            self.state = STATE_SUBMITTED
            self.is_timeout = is_timeout
            self._staged = None
        logger.info(f"Attempt {self.attempt_id} submitted (timeout={is_timeout})")
        return True

    # ----------------------------------------------------------------- navigation

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index >= len(self.questions) - 1

    def navigate(self, index: int) -> bool:
        """Jump to a question and mark it visited. Out-of-range indexes are ignored."""
        with self._lock:
            if not self.is_active or not 0 <= index < len(self.questions):
                return False
            self.current_index = index
            question = self.questions[index]
            self.visited.add(question.id)
            # scratch choice restarts from what is already saved
            self._staged = self.responses[question.id].selected_answer
            return True

    def _advance(self) -> None:
        if not self.is_last_question:
            self.navigate(self.current_index + 1)

    # -------------------------------------------------------------------- answers

    @property
    def staged_selection(self) -> Optional[str]:
        """Option shown as selected for the current question (scratch, not saved)."""
        return self._staged

    def stage(self, option_key: str) -> bool:
        with self._lock:
            if not self.is_active:
                return False
            key = (option_key or "").upper()
            if key not in self.current_question.option_keys():
                raise ValueError(f"Option {option_key!r} is not available for this question")
            self._staged = key
            return True

    def commit_and_advance(self) -> bool:
        """Save & Next. On the last question it saves without moving."""
        with self._lock:
            if not self.is_active:
                return False
            if self._staged:
                response = self.responses[self.current_question.id]
                response.selected_answer = self._staged
                response.is_marked_for_review = False
            self._advance()
            return True

    def mark_for_review(self) -> bool:
        """
        Mark & Next. A staged choice is saved together with the mark; without one,
        the mark on the saved response is toggled and the answer left alone.
        """
        with self._lock:
            if not self.is_active:
                return False
            response = self.responses[self.current_question.id]
            if self._staged:
                response.selected_answer = self._staged
                response.is_marked_for_review = True
            else:
                response.is_marked_for_review = not response.is_marked_for_review
            self._advance()
            return True

    def clear_selection(self) -> bool:
        """Drop both the scratch and the saved answer of the current question."""
        with self._lock:
            if not self.is_active:
                return False
            self._staged = None
            self.responses[self.current_question.id].selected_answer = None
            return True

    # --------------------------------------------------------------------- status

    def status(self, question_id: str) -> str:
        """Palette status, by precedence: marked > answered > visited > unanswered."""
        response = self.responses.get(question_id)
        if response is None:
            return STATUS_UNANSWERED
        if response.is_marked_for_review:
            return STATUS_MARKED
        if response.selected_answer:
            return STATUS_ANSWERED
        if question_id in self.visited:
            return STATUS_VISITED
        return STATUS_UNANSWERED

    def palette(self) -> List[Tuple[Question, str, bool]]:
        """(question, status, is_current) for every question, in order."""
        return [
            (q, self.status(q.id), idx == self.current_index)
            for idx, q in enumerate(self.questions)
        ]

    def counts(self) -> Dict[str, int]:
        answered = sum(1 for r in self.responses.values() if r.selected_answer)
        return {
            "answered": answered,
            "unanswered": len(self.questions) - answered,
            "marked": sum(1 for r in self.responses.values() if r.is_marked_for_review),
            "visited": len(self.visited),
        }

    # ---------------------------------------------------------------------- clock

    def tick(self) -> bool:
        """
        One second passes. Returns True only on the tick that reaches zero.
        The current question accrues the second as time spent.
        """
        with self._lock:
            if not self.is_active or self.time_remaining <= 0:
                return False
            self.time_remaining -= 1
            question = self.current_question
            if question is not None:
                self.responses[question.id].time_spent_seconds += 1
            logger.debug(f"Attempt {self.attempt_id}: {self.time_remaining}s left")
            return self.time_remaining == 0

    @property
    def duration_spent_seconds(self) -> int:
        return self.duration_minutes * 60 - self.time_remaining

    def set_zoom(self, level: int) -> int:
        with self._lock:
            self.zoom_level = max(self.ZOOM_MIN, min(self.ZOOM_MAX, int(level)))
            return self.zoom_level
