"""
Row types for tests, questions, attempts, responses and results.
Each maps 1:1 onto a Supabase table row (see init_db.py).
"""
from dataclasses import dataclass, asdict
from typing import Optional, List, Dict, Tuple

OPTION_KEYS = ("A", "B", "C", "D", "E")
REQUIRED_OPTION_KEYS = ("A", "B", "C", "D")


@dataclass
class Test:
    __test__ = False  # not a pytest class

    id: str
    name: str
    question_count: int
    duration_minutes: int
    year: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "Test":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            question_count=int(row.get("question_count") or 0),
            duration_minutes=int(row.get("duration_minutes") or 0),
            year=row.get("year"),
            created_at=row.get("created_at"),
        )


@dataclass(frozen=True)
class Question:
    """A single MCQ. Never mutated after it is loaded for an attempt."""
    id: str
    test_id: str
    question_number: int
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    correct_answer: str
    option_e: Optional[str] = None
    passage_text: Optional[str] = None
    set_name: Optional[str] = None
    explanation: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "Question":
        return cls(
            id=str(row["id"]),
            test_id=str(row.get("test_id") or ""),
            question_number=int(row.get("question_number") or 0),
            question_text=row.get("question_text") or "",
            option_a=row.get("option_a") or "",
            option_b=row.get("option_b") or "",
            option_c=row.get("option_c") or "",
            option_d=row.get("option_d") or "",
            correct_answer=(row.get("correct_answer") or "").upper(),
            option_e=row.get("option_e") or None,
            passage_text=row.get("passage_text") or None,
            set_name=row.get("set_name") or None,
            explanation=row.get("explanation") or None,
        )

    def options(self) -> List[Tuple[str, str]]:
        """(key, text) pairs; E only when the question has a fifth option."""
        opts = [
            ("A", self.option_a),
            ("B", self.option_b),
            ("C", self.option_c),
            ("D", self.option_d),
        ]
        if self.option_e:
            opts.append(("E", self.option_e))
        return opts

    def option_keys(self) -> List[str]:
        return [key for key, _ in self.options()]


@dataclass
class ExamAttempt:
    id: str
    test_id: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration_allocated_minutes: int = 0
    duration_spent_seconds: int = 0
    is_submitted: bool = False
    is_timeout: bool = False

    @classmethod
    def from_row(cls, row: Dict) -> "ExamAttempt":
        return cls(
            id=str(row["id"]),
            test_id=str(row.get("test_id") or ""),
            start_time=row.get("start_time"),
            end_time=row.get("end_time"),
            duration_allocated_minutes=int(row.get("duration_allocated_minutes") or 0),
            duration_spent_seconds=int(row.get("duration_spent_seconds") or 0),
            is_submitted=bool(row.get("is_submitted")),
            is_timeout=bool(row.get("is_timeout")),
        )


@dataclass
class ExamResponse:
    attempt_id: str
    question_id: str
    selected_answer: Optional[str] = None
    is_marked_for_review: bool = False
    time_spent_seconds: int = 0
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "ExamResponse":
        return cls(
            id=row.get("id"),
            attempt_id=str(row.get("attempt_id") or ""),
            question_id=str(row["question_id"]),
            selected_answer=row.get("selected_answer") or None,
            is_marked_for_review=bool(row.get("is_marked_for_review")),
            time_spent_seconds=int(row.get("time_spent_seconds") or 0),
        )

    def to_row(self) -> Dict:
        # id is assigned by the store; upserts key on (attempt_id, question_id)
        return {
            "attempt_id": self.attempt_id,
            "question_id": self.question_id,
            "selected_answer": self.selected_answer,
            "is_marked_for_review": self.is_marked_for_review,
            "time_spent_seconds": self.time_spent_seconds,
        }


@dataclass
class ExamResult:
    attempt_id: str
    correct_count: int
    incorrect_count: int
    unanswered_count: int
    total_score: float
    max_score: int
    percentile: Optional[float] = None
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "ExamResult":
        return cls(
            id=row.get("id"),
            attempt_id=str(row["attempt_id"]),
            correct_count=int(row.get("correct_count") or 0),
            incorrect_count=int(row.get("incorrect_count") or 0),
            unanswered_count=int(row.get("unanswered_count") or 0),
            total_score=float(row.get("total_score") or 0.0),
            max_score=int(row.get("max_score") or 0),
            percentile=row.get("percentile"),
        )

    def to_row(self) -> Dict:
        row = asdict(self)
        row.pop("id")
        return row


@dataclass
class CSVQuestion:
    """One parsed CSV record, all fields still text."""
    question_number: str
    question_text: str
    option_a: str = ""
    option_b: str = ""
    option_c: str = ""
    option_d: str = ""
    option_e: str = ""
    correct_answer: str = ""
    passage_text: str = ""
    set_name: str = ""
    explanation: str = ""

    def to_question_row(self, test_id: str, position: int) -> Dict:
        """Insert payload for the questions table. position is 0-based."""
        try:
            number = int(self.question_number)
        except ValueError:
            number = 0
        return {
            "test_id": test_id,
            "question_number": number or position + 1,
            "question_text": self.question_text,
            "set_name": self.set_name or None,
            "passage_text": self.passage_text or None,
            "option_a": self.option_a,
            "option_b": self.option_b,
            "option_c": self.option_c,
            "option_d": self.option_d,
            "option_e": self.option_e or None,
            "correct_answer": self.correct_answer,
            "explanation": self.explanation or None,
        }
