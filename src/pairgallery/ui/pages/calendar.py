"""Shared calendar page for pairgallery."""

import html
from datetime import date

import streamlit as st
import structlog

from ...models.entity import utc_now
from ...models.records import EVENT_TYPE_CUSTOM, EVENT_TYPES
from ...services.events import (
    EVENT_EMOJIS,
    EVENT_ICONS,
    EVENT_LABELS,
    EventsSession,
    countdown_label,
    status_label,
)
from ..components.common import render_empty_state, render_error_message
from ..components.error_display import error_context
from ..handlers.auth import require_authentication
from ..handlers.runtime import get_runtime

logger = structlog.get_logger(__name__)


def render_countdown(session: EventsSession, today: date) -> None:
    next_event = session.next_event(today)
    if next_event is None:
        st.caption("No upcoming dates. Add one below.")
        return
    icon = EVENT_ICONS.get(next_event.payload.event_type, "⭐")
    st.info(f"{icon} {countdown_label(next_event, today)}")


def render_add_form(selected: date) -> None:
    with st.expander("➕ Add an event", expanded=False):
        with st.form("add_event", clear_on_submit=True):
            title = st.text_input("Title")
            day = st.date_input("Date", value=selected)
            event_type = st.selectbox(
                "Type", EVENT_TYPES, index=EVENT_TYPES.index(EVENT_TYPE_CUSTOM), format_func=EVENT_LABELS.get
            )
            emoji = st.selectbox("Emoji", ("",) + EVENT_EMOJIS)
            note = st.text_area("Note")
            if st.form_submit_button("Save", type="primary"):
                with error_context("Adding the event"):
                    runtime = get_runtime()
                    runtime.run(runtime.events().add(title, day, event_type=event_type, emoji=emoji, note=note))
                    st.rerun()


def render_day(session: EventsSession, selected: date, today: date) -> None:
    st.markdown(f"#### {'Today' if selected == today else f'{selected:%B} {selected.day}, {selected.year}'}")
    events = session.on_day(selected)
    if not events:
        render_empty_state("No events for this day", "Pick another day or add one.", icon="📅")
        return

    runtime = get_runtime()
    for event in events:
        payload = event.payload
        pending = " ⏳" if event.is_temporary else ""
        title = html.escape(f"{payload.title} {payload.emoji}".strip())
        info, badge, action = st.columns([6, 2, 1])
        info.markdown(f"{EVENT_ICONS.get(payload.event_type, '⭐')} **{title}**{pending}")
        if payload.note:
            info.caption(payload.note)
        badge.markdown(f"`{status_label(event, today)}`")
        if not event.is_temporary and action.button("🗑️", key=f"delete_event_{event.id}", help="Delete"):
            with error_context("Deleting the event"):
                runtime.run(session.delete(event.id))
                st.rerun()


def render_upcoming(session: EventsSession, today: date) -> None:
    upcoming = session.upcoming(today)
    with st.expander(f"🗓️ Upcoming ({len(upcoming)})"):
        for event in upcoming:
            st.markdown(
                f"{event.payload.day:%b} {event.payload.day.day} · {html.escape(event.payload.title)} "
                f"· `{status_label(event, today)}`"
            )


def render_calendar_page() -> None:
    """Render the shared calendar of the couple."""
    if not require_authentication():
        return

    st.markdown("### 📅 Our calendar")

    try:
        session = get_runtime().events()
    except Exception as e:
        logger.error("calendar_page_error", error=str(e))
        render_error_message("Calendar error", "The calendar could not be opened.", str(e))
        return

    today = utc_now().date()
    render_countdown(session, today)

    marked = session.day_marks()
    st.session_state.setdefault("calendar_day", today)
    selected = st.date_input("Day", key="calendar_day")
    if marked:
        st.caption(
            "Marked days: "
            + ", ".join(
                f"{day:%b} {day.day} {''.join(EVENT_ICONS.get(t, '⭐') for t in mark.event_types)}"
                for day, mark in sorted(marked.items())
            )
        )

    render_day(session, selected, today)
    render_add_form(selected)
    render_upcoming(session, today)
