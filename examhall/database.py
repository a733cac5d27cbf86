"""
Database operations for examhall.
Supabase CRUD for tests, questions, attempts, responses and results.
Every call either returns the affected rows or raises StoreError.
"""
import logging
import os
from datetime import datetime, timezone
from typing import List, Dict, Optional, Any

from dotenv import load_dotenv
from supabase import create_client, Client

logger = logging.getLogger(__name__)

TESTS = "tests"
QUESTIONS = "questions"
ATTEMPTS = "exam_attempts"
RESPONSES = "exam_responses"
RESULTS = "exam_results"


class StoreError(RuntimeError):
    """A Supabase request failed; the operation was not applied."""


def create_supabase_client() -> Client:
    load_dotenv()
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DatabaseClient:
    """Wrapper around the Supabase client with examhall-specific operations."""

    def __init__(self, client: Optional[Client] = None):
        self.client: Client = client if client is not None else create_supabase_client()

    # ============= Generic CRUD =============

    def fetch(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
    ) -> List[Dict]:
        """Rows matching every equality filter, optionally ordered."""
        try:
            query = self.client.table(table).select("*")
            for column, value in (filters or {}).items():
                query = query.eq(column, value)
            if order_by:
                query = query.order(order_by, desc=desc)
            response = query.execute()
            return response.data or []
        except Exception as e:
            logger.error(f"Error fetching {table} {filters or ''}: {e}")
            raise StoreError(f"Failed to fetch {table}") from e

    def fetch_one(self, table: str, filters: Dict[str, Any]) -> Optional[Dict]:
        rows = self.fetch(table, filters)
        return rows[0] if rows else None

    def insert(self, table: str, rows: List[Dict]) -> List[Dict]:
        if not rows:
            return []
        try:
            response = self.client.table(table).insert(rows).execute()
            return response.data or []
        except Exception as e:
            logger.error(f"Error inserting {len(rows)} rows into {table}: {e}")
            raise StoreError(f"Failed to insert into {table}") from e

    def update(self, table: str, row_id: str, values: Dict) -> List[Dict]:
        try:
            response = self.client.table(table).update(values).eq("id", str(row_id)).execute()
            return response.data or []
        except Exception as e:
            logger.error(f"Error updating {table} {row_id}: {e}")
            raise StoreError(f"Failed to update {table}") from e

    def upsert(self, table: str, rows: List[Dict], on_conflict: str) -> List[Dict]:
        if not rows:
            return []
        try:
            response = self.client.table(table).upsert(rows, on_conflict=on_conflict).execute()
            return response.data or []
        except Exception as e:
            logger.error(f"Error upserting {len(rows)} rows into {table}: {e}")
            raise StoreError(f"Failed to upsert into {table}") from e

    def delete(self, table: str, row_id: str) -> List[Dict]:
        try:
            response = self.client.table(table).delete().eq("id", str(row_id)).execute()
            return response.data or []
        except Exception as e:
            logger.error(f"Error deleting {table} {row_id}: {e}")
            raise StoreError(f"Failed to delete from {table}") from e

    # ============= Tests =============

    def list_tests(self) -> List[Dict]:
        """Newest first."""
        return self.fetch(TESTS, order_by="created_at", desc=True)

    def get_test(self, test_id: str) -> Optional[Dict]:
        return self.fetch_one(TESTS, {"id": str(test_id)})

    def create_test(self, name: str, question_count: int, duration_minutes: int, year: Optional[int] = None) -> Dict:
        rows = self.insert(TESTS, [{
            "name": name,
            "question_count": question_count,
            "duration_minutes": duration_minutes,
            "year": year,
        }])
        if not rows:
            raise StoreError("Test insert returned no row")
        return rows[0]

    def delete_test(self, test_id: str) -> None:
        """Questions, attempts, responses and results go with it (ON DELETE CASCADE)."""
        self.delete(TESTS, test_id)

    # ============= Questions =============

    def get_questions(self, test_id: str) -> List[Dict]:
        return self.fetch(QUESTIONS, {"test_id": str(test_id)}, order_by="question_number")

    def insert_questions(self, rows: List[Dict], chunk_size: int = 200) -> int:
        total = 0
        n_chunks = (len(rows) + chunk_size - 1) // chunk_size
        for i in range(0, len(rows), chunk_size):
            chunk = rows[i:i + chunk_size]
            logger.info(f"Inserting questions chunk {i // chunk_size + 1}/{n_chunks} ({len(chunk)} rows)")
            self.insert(QUESTIONS, chunk)
            total += len(chunk)
        return total

    # ============= Attempts =============

    def create_attempt(self, test_id: str, duration_allocated_minutes: int) -> Dict:
        rows = self.insert(ATTEMPTS, [{
            "test_id": str(test_id),
            "duration_allocated_minutes": duration_allocated_minutes,
            "start_time": utc_now_iso(),
        }])
        if not rows:
            raise StoreError("Attempt insert returned no row")
        return rows[0]

    def get_attempt(self, attempt_id: str) -> Optional[Dict]:
        return self.fetch_one(ATTEMPTS, {"id": str(attempt_id)})

    def update_attempt(self, attempt_id: str, values: Dict) -> List[Dict]:
        return self.update(ATTEMPTS, attempt_id, values)

    # ============= Responses =============

    def upsert_responses(self, rows: List[Dict]) -> List[Dict]:
        return self.upsert(RESPONSES, rows, on_conflict="attempt_id,question_id")

    def get_responses(self, attempt_id: str) -> List[Dict]:
        return self.fetch(RESPONSES, {"attempt_id": str(attempt_id)})

    # ============= Results =============

    def insert_result(self, row: Dict) -> Dict:
        rows = self.insert(RESULTS, [row])
        return rows[0] if rows else row

    def get_result(self, attempt_id: str) -> Optional[Dict]:
        return self.fetch_one(RESULTS, {"attempt_id": str(attempt_id)})
