"""examhall: timed MCQ exams with CSV import, a session store, and Supabase persistence."""
