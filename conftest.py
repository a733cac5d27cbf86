"""Shared fixtures: sample questions, a ready session, and an in-memory store."""
import uuid
from collections import defaultdict
from typing import Dict, List, Optional

import pytest

from examhall.database import DatabaseClient, StoreError
from examhall.models import Question
from examhall.session import ExamSession


def make_question(number: int, correct: str = "A", test_id: str = "test-1", **extra) -> Question:
    fields = dict(
        id=f"q{number}",
        test_id=test_id,
        question_number=number,
        question_text=f"Question {number}?",
        option_a="alpha",
        option_b="beta",
        option_c="gamma",
        option_d="delta",
        correct_answer=correct,
    )
    fields.update(extra)
    return Question(**fields)


class FakeDatabase(DatabaseClient):
    """DatabaseClient with the Supabase calls replaced by dict-backed tables."""

    def __init__(self):
        self.client = None
        self.tables: Dict[str, List[Dict]] = defaultdict(list)
        self.fail_on = set()  # {(operation, table)}
        self.calls = []

    def _check(self, op: str, table: str) -> None:
        self.calls.append((op, table))
        if (op, table) in self.fail_on:
            raise StoreError(f"Failed to {op} {table}")

    def fetch(self, table, filters=None, order_by=None, desc=False):
        self._check("fetch", table)
        rows = [
            dict(r) for r in self.tables[table]
            if all(str(r.get(k)) == str(v) for k, v in (filters or {}).items())
        ]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or 0, reverse=desc)
        return rows

    def insert(self, table, rows):
        self._check("insert", table)
        stored = []
        for row in rows:
            row = dict(row)
            row.setdefault("id", str(uuid.uuid4()))
            self.tables[table].append(row)
            stored.append(dict(row))
        return stored

    def update(self, table, row_id, values):
        self._check("update", table)
        changed = []
        for row in self.tables[table]:
            if str(row["id"]) == str(row_id):
                row.update(values)
                changed.append(dict(row))
        return changed

    def upsert(self, table, rows, on_conflict):
        self._check("upsert", table)
        keys = on_conflict.split(",")
        stored = []
        for row in rows:
            existing: Optional[Dict] = next(
                (r for r in self.tables[table] if all(r.get(k) == row.get(k) for k in keys)), None
            )
            if existing is None:
                existing = {"id": str(uuid.uuid4())}
                self.tables[table].append(existing)
            existing.update(row)
            stored.append(dict(existing))
        return stored

    def delete(self, table, row_id):
        self._check("delete", table)
        removed = [r for r in self.tables[table] if str(r["id"]) == str(row_id)]
        self.tables[table] = [r for r in self.tables[table] if str(r["id"]) != str(row_id)]
        return removed


@pytest.fixture
def questions():
    return [make_question(n, correct="ABCD"[n % 4]) for n in range(1, 6)]


@pytest.fixture
def session(questions):
    s = ExamSession()
    s.initialize("attempt-1", "test-1", questions, duration_minutes=1)
    return s


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def seeded_db(fake_db):
    """A store holding one 3-question, 2-minute test."""
    fake_db.tables["tests"].append(
        {"id": "test-1", "name": "Mock 1", "question_count": 3, "duration_minutes": 2, "year": 2024}
    )
    for n, correct in ((3, "C"), (1, "A"), (2, "B")):
        fake_db.tables["questions"].append({
            "id": f"q{n}", "test_id": "test-1", "question_number": n,
            "question_text": f"Q{n}", "option_a": "a", "option_b": "b", "option_c": "c", "option_d": "d",
            "option_e": None, "correct_answer": correct, "explanation": f"Because {correct}",
        })
    return fake_db
