"""
Exam flows that touch the store: importing a test, starting an attempt,
submitting it, and loading results and solutions afterwards.
"""
import logging
from dataclasses import dataclass
from typing import List, Dict, Optional

from examhall.database import DatabaseClient, StoreError, utc_now_iso
from examhall.models import CSVQuestion, Test, Question, ExamAttempt, ExamResponse, ExamResult
from examhall.scoring import ScoringPolicy, ScoreBreakdown, DEFAULT_POLICY, score, classify
from examhall.session import ExamSession

logger = logging.getLogger(__name__)


@dataclass
class ResultsSummary:
    test: Optional[Test]
    attempt: ExamAttempt
    result: ExamResult
    breakdown: ScoreBreakdown


@dataclass
class SolutionItem:
    question: Question
    response: Optional[ExamResponse]
    outcome: str


# ============= Tests =============

def list_tests(db: DatabaseClient) -> List[Test]:
    return [Test.from_row(row) for row in db.list_tests()]


def create_test(
    db: DatabaseClient,
    name: str,
    records: List[CSVQuestion],
    duration_minutes: int,
    year: Optional[int] = None,
) -> Test:
    """
    Create a test and its questions from validated CSV records.
    If the questions cannot be written the test row is removed again.
    """
    name = (name or "").strip()
    if not name or not records:
        raise ValueError("A test needs a name and at least one question")
    if duration_minutes <= 0:
        raise ValueError(f"Duration must be positive, got {duration_minutes} minutes")

    test = Test.from_row(db.create_test(name, len(records), duration_minutes, year))
    rows = [record.to_question_row(test.id, position) for position, record in enumerate(records)]
    try:
        db.insert_questions(rows)
    except StoreError:
        logger.error(f"Question insert failed; removing test {test.id}")
        db.delete_test(test.id)
        raise
    logger.info(f"Created test '{name}' ({test.id}) with {len(rows)} questions")
    return test


def delete_test(db: DatabaseClient, test_id: str) -> None:
    db.delete_test(test_id)
    logger.info(f"Deleted test {test_id}")


# ============= Attempts =============

def start_attempt(db: DatabaseClient, test_id: str, session: Optional[ExamSession] = None):
    """
    Fetch the test and its questions, open an attempt row, and initialize the session.

    Returns:
        (Test, ExamSession)

    Raises:
        StoreError: any fetch/insert failed.
        ValueError: unknown test or a test without questions.
    """
    row = db.get_test(test_id)
    if row is None:
        raise ValueError(f"Test {test_id} not found")
    test = Test.from_row(row)

    questions = [Question.from_row(r) for r in db.get_questions(test.id)]
    if not questions:
        raise ValueError(f"Test '{test.name}' has no questions")
    if test.duration_minutes <= 0:
        raise ValueError(f"Test '{test.name}' has no valid duration")

    attempt = db.create_attempt(test.id, test.duration_minutes)

    session = session or ExamSession()
    session.initialize(str(attempt["id"]), test.id, questions, test.duration_minutes)
    session.navigate(0)
    return test, session


def submit_attempt(
    db: DatabaseClient,
    session: ExamSession,
    is_timeout: bool = False,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> Optional[ExamResult]:
    """
    Persist and close the attempt.

    Write order: upsert responses -> update attempt -> insert result. The session is
    only moved to submitted after all three succeed; on StoreError it stays active
    so the caller can retry.

    Returns:
        The stored ExamResult, or None if the session was not active.
    """
    if not session.is_active:
        return None

    breakdown = score(session.questions, session.responses, policy)
    attempt_id = session.attempt_id

    db.upsert_responses([r.to_row() for r in session.responses.values()])
    db.update_attempt(attempt_id, {
        "end_time": utc_now_iso(),
        "duration_spent_seconds": session.duration_spent_seconds,
        "is_submitted": True,
        "is_timeout": is_timeout,
    })
    result = ExamResult(
        attempt_id=attempt_id,
        correct_count=breakdown.correct,
        incorrect_count=breakdown.incorrect,
        unanswered_count=breakdown.unanswered,
        total_score=breakdown.total_score,
        max_score=breakdown.max_score,
    )
    stored = db.insert_result(result.to_row())

    session.submit(is_timeout)
    logger.info(
        f"Attempt {attempt_id} scored {breakdown.total_score:.2f}/{breakdown.max_score} "
        f"(correct={breakdown.correct}, incorrect={breakdown.incorrect}, unanswered={breakdown.unanswered})"
    )
    return ExamResult.from_row(stored)


# ============= Review =============

def load_results(db: DatabaseClient, attempt_id: str, policy: ScoringPolicy = DEFAULT_POLICY) -> Optional[ResultsSummary]:
    """
    Results page data, or None if the attempt has no result yet.

    The stored total_score is shown as-is. The deductions in the breakdown come
    from the policy passed in, not the one used at submission; a mismatch is
    logged as a warning.
    """
    result_row = db.get_result(attempt_id)
    attempt_row = db.get_attempt(attempt_id)
    if result_row is None or attempt_row is None:
        return None

    result = ExamResult.from_row(result_row)
    attempt = ExamAttempt.from_row(attempt_row)
    test_row = db.get_test(attempt.test_id)
    breakdown = ScoreBreakdown(
        correct=result.correct_count,
        incorrect=result.incorrect_count,
        unanswered=result.unanswered_count,
        total_score=result.total_score,
        max_score=result.max_score,
        policy=policy,
    )
    expected = breakdown.correct * policy.correct_score - breakdown.incorrect_deduction - breakdown.unanswered_deduction
    if abs(expected - breakdown.total_score) > 0.005:
        logger.warning(
            f"Attempt {attempt_id}: stored score {breakdown.total_score:.2f} differs from "
            f"{expected:.2f} under the current scoring policy"
        )
    return ResultsSummary(
        test=Test.from_row(test_row) if test_row else None,
        attempt=attempt,
        result=result,
        breakdown=breakdown,
    )


def load_solutions(db: DatabaseClient, attempt_id: str) -> List[SolutionItem]:
    """Every question of the attempt's test with the saved response and its outcome."""
    attempt_row = db.get_attempt(attempt_id)
    if attempt_row is None:
        return []
    attempt = ExamAttempt.from_row(attempt_row)

    questions = [Question.from_row(r) for r in db.get_questions(attempt.test_id)]
    responses: Dict[str, ExamResponse] = {}
    for row in db.get_responses(attempt_id):
        response = ExamResponse.from_row(row)
        responses[response.question_id] = response

    return [
        SolutionItem(question=q, response=responses.get(q.id), outcome=classify(q, responses.get(q.id)))
        for q in questions
    ]
