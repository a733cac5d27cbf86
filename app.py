"""examhall: timed MCQ exam simulator (Streamlit)."""
import logging
import os
import sys
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_database
from examhall import components
from examhall.csv_parser import import_csv
from examhall.database import StoreError
from examhall.exam_service import (
    list_tests, create_test, delete_test, start_attempt, submit_attempt, load_results, load_solutions,
)
from examhall.scoring import load_policy, OUTCOME_CORRECT, OUTCOME_INCORRECT
from examhall.timer import CountdownTimer, format_clock

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)

PAGES = ["Tests", "Exam", "Results", "Solutions"]
DEFAULT_DURATION_MINUTES = int(os.getenv("EXAM_DEFAULT_DURATION_MINUTES", "40"))
EXAM_KEYS = ("exam_session", "exam_timer", "exam_test", "time_up", "panel_nonce", "confirm_submit")

st.set_page_config(page_title="examhall", layout="wide")
st.sidebar.title("examhall")
# Allow URL to open a specific page (e.g. /?page=Results&attempt=...)
default_page = st.query_params.get("page", "Tests")
if default_page not in PAGES:
    default_page = "Tests"
page = st.sidebar.radio("Navigate", PAGES, index=PAGES.index(default_page), label_visibility="collapsed")
st.query_params["page"] = page
policy = load_policy()


def go_to(target: str, **params) -> None:
    st.query_params.clear()
    st.query_params["page"] = target
    for key, value in params.items():
        st.query_params[key] = value
    st.rerun()


def teardown_exam() -> None:
    """Stop the clock and drop the running session (leaving the Exam page)."""
    timer = st.session_state.get("exam_timer")
    if timer is not None:
        timer.cancel()
    session = st.session_state.get("exam_session")
    if session is not None:
        session.reset()
    for key in EXAM_KEYS:
        st.session_state.pop(key, None)


def do_submit(is_timeout: bool) -> None:
    session = st.session_state["exam_session"]
    try:
        result = submit_attempt(get_database(), session, is_timeout=is_timeout, policy=policy)
    except StoreError as e:
        st.error(f"Failed to submit exam. Your answers are still here; try again. ({e})")
        return
    if result is None:
        return
    attempt_id = session.attempt_id
    teardown_exam()
    st.toast("Time up! Exam submitted." if is_timeout else "Exam submitted.")
    go_to("Results", attempt=attempt_id)


if page != "Exam" and "exam_timer" in st.session_state:
    teardown_exam()

# ----- Tests -----
if page == "Tests":
    st.header("Tests")
    st.caption(
        f"Correct +{policy.correct_score:g} · Incorrect -{policy.incorrect_penalty:g} · "
        f"Unanswered after first {policy.unanswered_grace}: -{policy.unanswered_penalty:g}"
    )

    with st.expander("➕ Import new test from CSV"):
        upload = st.file_uploader("CSV file", type=["csv"], key="csv_upload")
        outcome = None
        if upload is not None:
            outcome = import_csv(upload.getvalue().decode("utf-8-sig"))
            if outcome.ok:
                st.success(f"{len(outcome.records)} questions ready to import.")
            else:
                st.error("The CSV was rejected:")
                for err in outcome.errors:
                    st.write(f"- {err}")
        default_name = Path(upload.name).stem if upload is not None else ""
        test_name = st.text_input("Test name", value=default_name)
        col1, col2 = st.columns(2)
        with col1:
            duration = st.number_input("Duration (minutes)", min_value=1, max_value=600, value=DEFAULT_DURATION_MINUTES)
        with col2:
            year = st.number_input("Year (optional)", min_value=0, max_value=2100, value=0)
        if st.button("Create test", type="primary", disabled=not (outcome and outcome.ok)):
            if not test_name.strip():
                st.error("Please provide a test name.")
            else:
                try:
                    test = create_test(get_database(), test_name, outcome.records, int(duration), int(year) or None)
                    st.success(f"Imported {test.question_count} questions into '{test.name}'.")
                    st.rerun()
                except (StoreError, ValueError) as e:
                    st.error(f"Failed to create test: {e}")

    try:
        tests = list_tests(get_database())
    except StoreError as e:
        st.error(f"Could not load tests. Check DB and .env (SUPABASE_URL, SUPABASE_KEY). {e}")
        st.stop()

    if not tests:
        st.info("No tests yet. Import a CSV to get started.")
    for test in tests:
        with st.container(border=True):
            col1, col2, col3 = st.columns([4, 1, 1])
            with col1:
                year_text = f" · {test.year}" if test.year else ""
                st.markdown(f"**{test.name}**")
                st.caption(f"{test.question_count} questions · {test.duration_minutes} min{year_text}")
            with col2:
                if st.button("Start", key=f"start_{test.id}", type="primary", use_container_width=True):
                    go_to("Exam", test=test.id)
            with col3:
                if st.button("Delete", key=f"delete_{test.id}", use_container_width=True):
                    st.session_state["confirm_delete"] = test.id
            if st.session_state.get("confirm_delete") == test.id:
                st.warning("Delete this test with all its attempts and results?")
                yes, no = st.columns(2)
                with yes:
                    if st.button("Delete", key=f"confirm_yes_{test.id}", type="primary"):
                        st.session_state.pop("confirm_delete", None)
                        try:
                            delete_test(get_database(), test.id)
                            st.rerun()
                        except StoreError as e:
                            st.error(f"Failed to delete test: {e}")
                with no:
                    if st.button("Cancel", key=f"confirm_no_{test.id}"):
                        st.session_state.pop("confirm_delete", None)
                        st.rerun()

# ----- Exam -----
elif page == "Exam":
    test_id = st.query_params.get("test")
    if not test_id:
        st.warning("Pick a test to start from the Tests page.")
        st.stop()

    session = st.session_state.get("exam_session")
    if session is None or session.test_id != test_id:
        teardown_exam()
        with st.spinner("Loading exam..."):
            try:
                test, session = start_attempt(get_database(), test_id)
            except (StoreError, ValueError) as e:
                st.error(f"Failed to start exam: {e}")
                st.stop()

        def _time_up():
            st.session_state["time_up"] = True

        st.session_state["exam_test"] = test
        st.session_state["exam_session"] = session
        st.session_state["exam_timer"] = CountdownTimer(session, on_expire=_time_up)

    test = st.session_state["exam_test"]

    if st.session_state.pop("time_up", False) and session.is_active:
        do_submit(is_timeout=True)

    with st.sidebar:
        components.render_clock()
        counts = session.counts()
        st.caption(f"Answered {counts['answered']}/{len(session.questions)} · Marked {counts['marked']}")
        if session.is_active and session.time_remaining == 0:
            if st.button("Retry submit", type="primary", use_container_width=True):
                do_submit(is_timeout=True)
        elif st.button("Submit Exam", type="primary", disabled=not session.is_active, use_container_width=True):
            st.session_state["confirm_submit"] = True
        if st.session_state.get("confirm_submit"):
            st.warning(
                f"Submit now?\n\nAnswered: {counts['answered']} · Unanswered: {counts['unanswered']} · "
                f"Marked for review: {counts['marked']}"
            )
            yes, no = st.columns(2)
            with yes:
                if st.button("Submit Now", type="primary"):
                    st.session_state.pop("confirm_submit", None)
                    do_submit(is_timeout=False)
            with no:
                if st.button("Continue Exam"):
                    st.session_state.pop("confirm_submit", None)
                    st.rerun()

    st.header(test.name)
    left, middle, right = st.columns([2, 2, 1])
    with left:
        components.render_instructions(session, policy)
    with middle:
        components.render_question_panel(session)
    with right:
        components.render_palette(session)

# ----- Results -----
elif page == "Results":
    attempt_id = st.query_params.get("attempt")
    if not attempt_id:
        st.info("Submit an exam to see its results.")
        st.stop()
    try:
        summary = load_results(get_database(), attempt_id, policy)
    except StoreError as e:
        st.error(f"Could not load results: {e}")
        st.stop()
    if summary is None:
        st.warning("Results not found.")
        st.stop()

    breakdown = summary.breakdown
    st.header("Exam Results")
    if summary.test:
        st.caption(summary.test.name)
    if summary.attempt.is_timeout:
        st.info("This attempt was submitted automatically when time ran out.")

    st.metric("Score", f"{breakdown.total_score:.2f} / {breakdown.max_score}")
    st.progress(max(0.0, min(1.0, breakdown.percentage / 100)))
    st.caption(f"{breakdown.percentage:.1f}% score")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Correct", breakdown.correct, f"+{breakdown.correct * policy.correct_score:g}")
    with col2:
        st.metric("Incorrect", breakdown.incorrect, f"-{breakdown.incorrect_deduction:.2f}", delta_color="inverse")
    with col3:
        st.metric("Unanswered", breakdown.unanswered, f"-{breakdown.unanswered_deduction:.2f}", delta_color="inverse")
    with col4:
        st.metric("Accuracy", f"{breakdown.accuracy:.1f}%")

    spent = summary.attempt.duration_spent_seconds
    st.subheader("Time Analysis")
    st.write(f"Time spent: {format_clock(spent)} of {summary.attempt.duration_allocated_minutes} min")
    if breakdown.max_score:
        st.write(f"Average per question: {spent / breakdown.max_score:.0f}s")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("View Solutions", use_container_width=True):
            go_to("Solutions", attempt=attempt_id)
    with col2:
        if st.button("Back to Tests", type="primary", use_container_width=True):
            go_to("Tests")

# ----- Solutions -----
elif page == "Solutions":
    attempt_id = st.query_params.get("attempt")
    if not attempt_id:
        st.info("Submit an exam to review its solutions.")
        st.stop()
    try:
        items = load_solutions(get_database(), attempt_id)
    except StoreError as e:
        st.error(f"Could not load solutions: {e}")
        st.stop()
    if not items:
        st.warning("No questions found for this attempt.")
        st.stop()

    st.header("Solutions")
    idx = min(components.solution_index(st.session_state, attempt_id), len(items) - 1)
    item = items[idx]
    q = item.question

    st.progress((idx + 1) / len(items))
    st.caption(f"Question {q.question_number} of {len(items)}")
    if item.outcome == OUTCOME_CORRECT:
        st.success("✓ Correct")
    elif item.outcome == OUTCOME_INCORRECT:
        st.error("✗ Incorrect")
    else:
        st.info("– Not answered")

    if q.passage_text:
        with st.expander(f"Passage{f' · {q.set_name}' if q.set_name else ''}"):
            st.markdown(q.passage_text, unsafe_allow_html=True)
    st.markdown(q.question_text, unsafe_allow_html=True)

    selected = item.response.selected_answer if item.response else None
    for key, text in q.options():
        label = f"{key}. {text}"
        if key == q.correct_answer:
            st.success(f"✓ {label} (Correct Answer)")
        elif key == selected:
            st.error(f"✗ {label} (Your Answer)")
        else:
            st.write(f"○ {label}")

    if q.explanation:
        st.subheader("Explanation")
        st.info(q.explanation)

    col1, col2, col3 = st.columns([1, 1, 2])
    with col1:
        if st.button("← Previous", disabled=idx == 0):
            st.session_state["solution_idx"] = idx - 1
            st.rerun()
    with col2:
        if st.button("Next →", disabled=idx >= len(items) - 1):
            st.session_state["solution_idx"] = idx + 1
            st.rerun()
    with col3:
        if st.button("Back to Results"):
            st.session_state.pop("solution_idx", None)
            go_to("Results", attempt=attempt_id)
