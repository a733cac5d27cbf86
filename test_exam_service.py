"""Tests for the store-backed exam flows, run against the in-memory FakeDatabase."""
import logging

import pytest

from examhall import exam_service
from examhall.csv_parser import import_csv
from examhall.database import StoreError
from examhall.scoring import OUTCOME_CORRECT, OUTCOME_INCORRECT, OUTCOME_UNANSWERED, ScoringPolicy
from examhall.session import ExamSession

CSV = """question_number,question_text,option_a,option_b,option_c,option_d,correct_answer
1,First?,a,b,c,d,A
2,Second?,a,b,c,d,B
"""


def answer(session, index, key):
    session.navigate(index)
    session.stage(key)
    session.commit_and_advance()


class TestCreateTest:
    def test_stores_test_and_questions(self, fake_db):
        records = import_csv(CSV).records
        test = exam_service.create_test(fake_db, "  Mock 2 ", records, duration_minutes=30, year=2023)
        assert test.name == "Mock 2"
        assert test.question_count == 2
        assert test.duration_minutes == 30
        stored = fake_db.tables["questions"]
        assert [q["question_number"] for q in stored] == [1, 2]
        assert all(q["test_id"] == test.id for q in stored)

    def test_rolls_back_when_questions_fail(self, fake_db):
        fake_db.fail_on.add(("insert", "questions"))
        with pytest.raises(StoreError):
            exam_service.create_test(fake_db, "Mock", import_csv(CSV).records, 30)
        assert fake_db.tables["tests"] == []
        assert ("delete", "tests") in fake_db.calls

    def test_needs_name_and_records(self, fake_db):
        with pytest.raises(ValueError):
            exam_service.create_test(fake_db, " ", import_csv(CSV).records, 30)
        with pytest.raises(ValueError):
            exam_service.create_test(fake_db, "Mock", [], 30)
        assert fake_db.calls == []

    @pytest.mark.parametrize("minutes", [0, -10])
    def test_needs_positive_duration(self, fake_db, minutes):
        with pytest.raises(ValueError):
            exam_service.create_test(fake_db, "Mock", import_csv(CSV).records, minutes)
        assert fake_db.calls == []

    def test_list_and_delete(self, seeded_db):
        assert [t.name for t in exam_service.list_tests(seeded_db)] == ["Mock 1"]
        exam_service.delete_test(seeded_db, "test-1")
        assert exam_service.list_tests(seeded_db) == []


class TestStartAttempt:
    def test_loads_questions_in_order_and_opens_attempt(self, seeded_db):
        test, session = exam_service.start_attempt(seeded_db, "test-1")
        assert test.name == "Mock 1"
        assert [q.question_number for q in session.questions] == [1, 2, 3]
        assert session.time_remaining == 120
        assert session.is_active
        [attempt] = seeded_db.tables["exam_attempts"]
        assert session.attempt_id == attempt["id"]
        assert attempt["duration_allocated_minutes"] == 2
        assert attempt["start_time"]
        assert session.visited == {"q1"}

    def test_reuses_given_session(self, seeded_db):
        session = ExamSession()
        _, returned = exam_service.start_attempt(seeded_db, "test-1", session)
        assert returned is session

    def test_unknown_test(self, seeded_db):
        with pytest.raises(ValueError):
            exam_service.start_attempt(seeded_db, "missing")

    def test_test_without_questions(self, seeded_db):
        seeded_db.tables["questions"].clear()
        with pytest.raises(ValueError):
            exam_service.start_attempt(seeded_db, "test-1")
        assert seeded_db.tables["exam_attempts"] == []

    def test_test_without_duration(self, seeded_db):
        seeded_db.tables["tests"][0]["duration_minutes"] = 0
        with pytest.raises(ValueError):
            exam_service.start_attempt(seeded_db, "test-1")
        assert seeded_db.tables["exam_attempts"] == []


class TestSubmitAttempt:
    @pytest.fixture
    def running(self, seeded_db):
        _, session = exam_service.start_attempt(seeded_db, "test-1")
        answer(session, 0, "A")  # correct
        answer(session, 1, "C")  # incorrect
        session.tick()
        seeded_db.calls.clear()
        return seeded_db, session

    def test_writes_in_order_and_scores(self, running):
        db, session = running
        result = exam_service.submit_attempt(db, session)
        assert db.calls == [
            ("upsert", "exam_responses"),
            ("update", "exam_attempts"),
            ("insert", "exam_results"),
        ]
        assert session.is_submitted
        assert (result.correct_count, result.incorrect_count, result.unanswered_count) == (1, 1, 1)
        assert result.total_score == pytest.approx(0.75)
        assert result.max_score == 3
        assert result.id

        [attempt] = db.tables["exam_attempts"]
        assert attempt["is_submitted"] is True
        assert attempt["is_timeout"] is False
        assert attempt["duration_spent_seconds"] == 1
        assert attempt["end_time"]
        assert len(db.tables["exam_responses"]) == 3

    def test_timeout_flag_is_recorded(self, running):
        db, session = running
        exam_service.submit_attempt(db, session, is_timeout=True)
        assert db.tables["exam_attempts"][0]["is_timeout"] is True
        assert session.is_timeout is True

    @pytest.mark.parametrize("failing", [
        ("upsert", "exam_responses"),
        ("update", "exam_attempts"),
        ("insert", "exam_results"),
    ])
    def test_failure_keeps_session_open_for_retry(self, running, failing):
        db, session = running
        db.fail_on.add(failing)
        with pytest.raises(StoreError):
            exam_service.submit_attempt(db, session)
        assert session.is_active

        db.fail_on.clear()
        result = exam_service.submit_attempt(db, session)
        assert result is not None
        assert session.is_submitted
        assert len(db.tables["exam_responses"]) == 3
        assert len(db.tables["exam_results"]) == 1

    def test_second_submit_is_ignored(self, running):
        db, session = running
        exam_service.submit_attempt(db, session)
        db.calls.clear()
        assert exam_service.submit_attempt(db, session) is None
        assert db.calls == []
        assert len(db.tables["exam_results"]) == 1


class TestReview:
    @pytest.fixture
    def submitted(self, seeded_db):
        _, session = exam_service.start_attempt(seeded_db, "test-1")
        answer(session, 0, "A")
        answer(session, 2, "D")
        exam_service.submit_attempt(seeded_db, session)
        return seeded_db, session.attempt_id

    def test_load_results(self, submitted):
        db, attempt_id = submitted
        summary = exam_service.load_results(db, attempt_id)
        assert summary.test.name == "Mock 1"
        assert summary.attempt.is_submitted
        assert summary.breakdown.correct == 1
        assert summary.breakdown.incorrect == 1
        assert summary.breakdown.unanswered == 1
        assert summary.breakdown.total_score == pytest.approx(0.75)
        assert summary.result.percentile is None

    def test_load_results_unknown_attempt(self, seeded_db):
        assert exam_service.load_results(seeded_db, "nope") is None

    def test_load_solutions(self, submitted):
        db, attempt_id = submitted
        items = exam_service.load_solutions(db, attempt_id)
        assert [i.question.id for i in items] == ["q1", "q2", "q3"]
        assert [i.outcome for i in items] == [OUTCOME_CORRECT, OUTCOME_UNANSWERED, OUTCOME_INCORRECT]
        assert items[2].response.selected_answer == "D"
        assert items[2].question.explanation == "Because C"

    def test_load_solutions_unknown_attempt(self, seeded_db):
        assert exam_service.load_solutions(seeded_db, "nope") == []

    def test_load_results_keeps_stored_score_under_new_policy(self, submitted, caplog):
        db, attempt_id = submitted
        harsher = ScoringPolicy(incorrect_penalty=1.0)
        with caplog.at_level(logging.WARNING, logger="examhall.exam_service"):
            summary = exam_service.load_results(db, attempt_id, harsher)
        assert summary.breakdown.total_score == pytest.approx(0.75)
        assert summary.breakdown.incorrect_deduction == pytest.approx(1.0)
        assert "differs" in caplog.text

    def test_load_results_same_policy_is_quiet(self, submitted, caplog):
        db, attempt_id = submitted
        with caplog.at_level(logging.WARNING, logger="examhall.exam_service"):
            exam_service.load_results(db, attempt_id)
        assert caplog.text == ""
