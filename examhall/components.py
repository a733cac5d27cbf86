"""
Streamlit widgets for the exam screen. They read ExamSession state and dispatch
intents back to it; none of them write to the store.
"""
from typing import Callable, MutableMapping

import streamlit as st

from examhall.models import Question
from examhall.scoring import DEFAULT_POLICY, ScoringPolicy
from examhall.session import ExamSession, STATUS_ANSWERED, STATUS_MARKED, STATUS_VISITED
from examhall.timer import CountdownTimer, format_clock, clock_level

STATUS_ICONS = {
    STATUS_ANSWERED: "🟢",
    STATUS_MARKED: "🟣",
    STATUS_VISITED: "🟠",
}
CLOCK_COLOURS = {"safe": "#16a34a", "warning": "#d97706", "danger": "#dc2626"}


def _zoomed(html: str, zoom: int) -> None:
    st.markdown(f'<div style="font-size:{zoom}%; line-height:1.6;">{html}</div>', unsafe_allow_html=True)


def _bump_panel() -> None:
    # new widget keys so radios re-read the session's staged selection
    st.session_state["panel_nonce"] = st.session_state.get("panel_nonce", 0) + 1


@st.fragment(run_every=1)
def render_clock() -> None:
    """
    Clock for st.session_state["exam_timer"], re-run every second.
    Ticks owed since the last run are applied first; expiry reruns the whole app.
    """
    timer: CountdownTimer = st.session_state.get("exam_timer")
    if timer is None:
        return
    if timer.session.is_active:
        timer.catch_up()
    remaining = timer.session.time_remaining
    colour = CLOCK_COLOURS[clock_level(remaining)]
    st.markdown(
        f'<div style="font-family:monospace; font-size:1.6rem; font-weight:600; color:{colour};">'
        f"⏱ {format_clock(remaining)}</div>",
        unsafe_allow_html=True,
    )
    if st.session_state.get("time_up"):
        st.rerun()


def render_instructions(session: ExamSession, policy: ScoringPolicy = DEFAULT_POLICY) -> None:
    """Left panel: passage/set context for the current question, or general instructions."""
    question = session.current_question
    zoom = session.zoom_level

    col_title, col_out, col_level, col_in = st.columns([4, 1, 1, 1])
    with col_title:
        st.subheader("Scenario" if question and question.passage_text else "Instructions")
    with col_out:
        if st.button("➖", key="zoom_out", help="Zoom out"):
            session.set_zoom(zoom - 10)
            st.rerun()
    with col_level:
        st.caption(f"{zoom}%")
    with col_in:
        if st.button("➕", key="zoom_in", help="Zoom in"):
            session.set_zoom(zoom + 10)
            st.rerun()

    if question and question.passage_text:
        if question.set_name:
            st.caption(f"Set: {question.set_name}")
        st.markdown("**Passage**")
        _zoomed(question.passage_text, zoom)
    elif question and question.set_name:
        st.markdown(f"#### {question.set_name}")
        st.info("This question is part of a set. Read the context carefully before answering.")
    else:
        _zoomed(
            "<ul>"
            "<li>Read each question carefully before selecting your answer.</li>"
            "<li>Use the palette to move between questions.</li>"
            "<li>Mark questions for review if you want to revisit them later.</li>"
            "<li>Only <b>Save &amp; Next</b> or <b>Mark for Review</b> saves a choice.</li>"
            "<li>The exam is submitted automatically when the timer reaches zero.</li>"
            "</ul>",
            zoom,
        )
        st.warning(
            f"Scoring: correct +{policy.correct_score:g}, incorrect -{policy.incorrect_penalty:g}, "
            f"unanswered after the first {policy.unanswered_grace}: -{policy.unanswered_penalty:g}"
        )


def _option_label(question: Question) -> Callable[[str], str]:
    texts = dict(question.options())
    return lambda key: f"{key}. {texts.get(key, '')}"


def render_question_panel(session: ExamSession) -> None:
    """Middle panel: question, options (staged only), and the three commit actions."""
    question = session.current_question
    if question is None:
        return
    response = session.responses[question.id]
    locked = not session.is_active

    header, badge = st.columns([3, 1])
    with header:
        st.subheader(f"Question {question.question_number} of {len(session.questions)}")
    with badge:
        if response.is_marked_for_review:
            st.markdown("🟣 **Marked for Review**")

    _zoomed(question.question_text, session.zoom_level)

    keys = question.option_keys()
    staged = session.staged_selection
    radio_key = f"opt_{question.id}_{st.session_state.get('panel_nonce', 0)}"

    def _on_pick():
        picked = st.session_state.get(radio_key)
        if picked:
            session.stage(picked)

    st.radio(
        "Choose one:",
        keys,
        index=keys.index(staged) if staged in keys else None,
        format_func=_option_label(question),
        key=radio_key,
        on_change=_on_pick,
        disabled=locked,
        label_visibility="collapsed",
    )

    col_clear, col_mark, col_save = st.columns(3)
    with col_clear:
        if st.button("✖ Clear Selection", disabled=locked or not (staged or response.selected_answer),
                     use_container_width=True):
            session.clear_selection()
            _bump_panel()
            st.rerun()
    with col_mark:
        mark_label = "🚩 Marked" if response.is_marked_for_review else "🚩 Mark for Review"
        if st.button(mark_label, disabled=locked, use_container_width=True):
            session.mark_for_review()
            _bump_panel()
            st.rerun()
    with col_save:
        save_label = "💾 Save" if session.is_last_question else "💾 Save & Next ›"
        if st.button(save_label, type="primary", disabled=locked, use_container_width=True):
            session.commit_and_advance()
            _bump_panel()
            st.rerun()


def render_palette(session: ExamSession, cols_per_row: int = 5) -> None:
    """Right panel: per-question status grid plus totals."""
    counts = session.counts()
    st.subheader("Question Palette")
    st.caption(
        f"{STATUS_ICONS[STATUS_ANSWERED]} Answered: {counts['answered']} · "
        f"⚪ Unanswered: {counts['unanswered']} · "
        f"{STATUS_ICONS[STATUS_VISITED]} Visited · "
        f"{STATUS_ICONS[STATUS_MARKED]} Marked: {counts['marked']}"
    )

    rows = session.palette()
    for row_start in range(0, len(rows), cols_per_row):
        cols = st.columns(cols_per_row)
        for offset, (question, status, is_current) in enumerate(rows[row_start:row_start + cols_per_row]):
            label = f"{STATUS_ICONS.get(status, '⚪')} {question.question_number}"
            with cols[offset]:
                if st.button(
                    label,
                    key=f"pal_{question.id}",
                    type="primary" if is_current else "secondary",
                    disabled=not session.is_active,
                    use_container_width=True,
                ):
                    session.navigate(row_start + offset)
                    _bump_panel()
                    st.rerun()


def solution_index(state: MutableMapping, attempt_id: str) -> int:
    """Question shown on the Solutions page; restarts at 0 when another attempt is opened."""
    if state.get("solution_attempt") != attempt_id:
        state["solution_attempt"] = attempt_id
        state["solution_idx"] = 0
    return state.get("solution_idx", 0)
