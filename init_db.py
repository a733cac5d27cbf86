"""Initialize the Supabase database schema for examhall."""
import os

from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")

# SQL schema
SCHEMA_SQL = """
-- Tests (one per imported CSV)
CREATE TABLE IF NOT EXISTS tests (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name TEXT NOT NULL,
    question_count INT NOT NULL DEFAULT 0,
    duration_minutes INT NOT NULL DEFAULT 40,
    year INT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Questions, ordered within a test by question_number
CREATE TABLE IF NOT EXISTS questions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    test_id UUID NOT NULL REFERENCES tests(id) ON DELETE CASCADE,
    question_number INT NOT NULL,
    question_text TEXT NOT NULL,
    set_name TEXT,
    passage_text TEXT,
    option_a TEXT NOT NULL,
    option_b TEXT NOT NULL,
    option_c TEXT NOT NULL,
    option_d TEXT NOT NULL,
    option_e TEXT,
    correct_answer CHAR(1) NOT NULL CHECK (correct_answer IN ('A', 'B', 'C', 'D', 'E')),
    explanation TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- One row per exam start
CREATE TABLE IF NOT EXISTS exam_attempts (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    test_id UUID NOT NULL REFERENCES tests(id) ON DELETE CASCADE,
    start_time TIMESTAMPTZ DEFAULT NOW(),
    end_time TIMESTAMPTZ,
    duration_allocated_minutes INT NOT NULL,
    duration_spent_seconds INT DEFAULT 0,
    is_submitted BOOLEAN DEFAULT FALSE,
    is_timeout BOOLEAN DEFAULT FALSE
);

-- One row per (attempt, question), upserted on submit
CREATE TABLE IF NOT EXISTS exam_responses (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    attempt_id UUID NOT NULL REFERENCES exam_attempts(id) ON DELETE CASCADE,
    question_id UUID NOT NULL REFERENCES questions(id) ON DELETE CASCADE,
    selected_answer CHAR(1) CHECK (selected_answer IS NULL OR selected_answer IN ('A', 'B', 'C', 'D', 'E')),
    is_marked_for_review BOOLEAN DEFAULT FALSE,
    time_spent_seconds INT DEFAULT 0,
    UNIQUE(attempt_id, question_id)
);

-- Score summary, 1:1 with a submitted attempt
CREATE TABLE IF NOT EXISTS exam_results (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    attempt_id UUID NOT NULL UNIQUE REFERENCES exam_attempts(id) ON DELETE CASCADE,
    correct_count INT NOT NULL,
    incorrect_count INT NOT NULL,
    unanswered_count INT NOT NULL,
    total_score DECIMAL(7,2) NOT NULL,
    max_score INT NOT NULL,
    percentile DECIMAL(5,2),
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Create indexes for performance
CREATE INDEX IF NOT EXISTS idx_questions_test_id ON questions(test_id, question_number);
CREATE INDEX IF NOT EXISTS idx_exam_attempts_test_id ON exam_attempts(test_id);
CREATE INDEX IF NOT EXISTS idx_exam_responses_attempt_id ON exam_responses(attempt_id);
"""


def schema_statements() -> list[str]:
    return [s.strip() for s in SCHEMA_SQL.split(";") if s.strip()]


if __name__ == "__main__":
    print("Initializing Supabase schema...")
    print(f"URL: {SUPABASE_URL}")

    statements = schema_statements()
    for i, stmt in enumerate(statements, 1):
        first = next(line for line in stmt.splitlines() if not line.startswith("--"))
        print(f"Statement {i}/{len(statements)}: {first[:60]}...")

    # The Supabase client cannot run DDL; paste the SQL into the SQL Editor.
    print("\nRun this SQL in the Supabase SQL Editor (https://app.supabase.com > SQL Editor > New Query):\n")
    print(SCHEMA_SQL)
