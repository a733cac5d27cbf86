"""Pure scoring: no UI, no store access."""
# Scoring: correct +1.0, incorrect -0.25, unanswered 0.0 for the first 8, -0.10 after that
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from dotenv import load_dotenv

from examhall.models import Question, ExamResponse

logger = logging.getLogger(__name__)

CORRECT_SCORE = 1.0
INCORRECT_PENALTY = 0.25
UNANSWERED_GRACE = 8
UNANSWERED_PENALTY = 0.10

OUTCOME_CORRECT = "correct"
OUTCOME_INCORRECT = "incorrect"
OUTCOME_UNANSWERED = "unanswered"


@dataclass(frozen=True)
class ScoringPolicy:
    correct_score: float = CORRECT_SCORE
    incorrect_penalty: float = INCORRECT_PENALTY
    unanswered_grace: int = UNANSWERED_GRACE
    unanswered_penalty: float = UNANSWERED_PENALTY


DEFAULT_POLICY = ScoringPolicy()


def load_policy() -> ScoringPolicy:
    """Policy from EXAM_* environment variables; unset ones keep the defaults."""
    load_dotenv()
    policy = ScoringPolicy(
        correct_score=float(os.getenv("EXAM_CORRECT_SCORE", CORRECT_SCORE)),
        incorrect_penalty=float(os.getenv("EXAM_INCORRECT_PENALTY", INCORRECT_PENALTY)),
        unanswered_grace=int(os.getenv("EXAM_UNANSWERED_GRACE", UNANSWERED_GRACE)),
        unanswered_penalty=float(os.getenv("EXAM_UNANSWERED_PENALTY", UNANSWERED_PENALTY)),
    )
    if policy != DEFAULT_POLICY:
        logger.info(f"Using non-default scoring policy: {policy}")
    return policy


@dataclass(frozen=True)
class ScoreBreakdown:
    correct: int
    incorrect: int
    unanswered: int
    total_score: float
    max_score: int
    policy: ScoringPolicy = DEFAULT_POLICY

    @property
    def incorrect_deduction(self) -> float:
        return self.incorrect * self.policy.incorrect_penalty

    @property
    def unanswered_deduction(self) -> float:
        return max(0, self.unanswered - self.policy.unanswered_grace) * self.policy.unanswered_penalty

    @property
    def percentage(self) -> float:
        return self.total_score / self.max_score * 100 if self.max_score else 0.0

    @property
    def accuracy(self) -> float:
        """Share of attempted questions answered correctly, in percent."""
        attempted = self.correct + self.incorrect
        return self.correct / attempted * 100 if attempted else 0.0


def classify(question: Question, response: Optional[ExamResponse]) -> str:
    selected = response.selected_answer if response else None
    if not selected:
        return OUTCOME_UNANSWERED
    if selected == question.correct_answer:
        return OUTCOME_CORRECT
    return OUTCOME_INCORRECT


def score(
    questions: List[Question],
    responses: Mapping[str, ExamResponse],
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> ScoreBreakdown:
    """
    Score one attempt.

    Formula: total = correct*1 - incorrect*0.25 - max(0, unanswered - 8)*0.10
    max_score is the number of questions.

    Args:
        questions: Every question of the test.
        responses: {question_id: ExamResponse}; a missing entry counts as unanswered.
        policy: Score weights (defaults above).
    """
    counts: Dict[str, int] = {OUTCOME_CORRECT: 0, OUTCOME_INCORRECT: 0, OUTCOME_UNANSWERED: 0}
    for q in questions:
        counts[classify(q, responses.get(q.id))] += 1

    correct = counts[OUTCOME_CORRECT]
    incorrect = counts[OUTCOME_INCORRECT]
    unanswered = counts[OUTCOME_UNANSWERED]

    penalised_unanswered = max(0, unanswered - policy.unanswered_grace)
    total = (
        correct * policy.correct_score
        - incorrect * policy.incorrect_penalty
        - penalised_unanswered * policy.unanswered_penalty
    )

    return ScoreBreakdown(
        correct=correct,
        incorrect=incorrect,
        unanswered=unanswered,
        total_score=total,
        max_score=len(questions),
        policy=policy,
    )
