"""Household chat page for pairgallery."""

import html

import streamlit as st
import structlog

from ...services.chat import ChatSession
from ..components.common import render_empty_state, render_error_message
from ..components.error_display import error_context
from ..handlers.auth import require_authentication
from ..handlers.runtime import get_runtime

logger = structlog.get_logger(__name__)


@st.fragment(run_every=2.0)
def render_messages(session: ChatSession, user_id: str | None) -> None:
    """Message list under day separators; refreshed so partner messages show up."""
    sections = session.sections()
    if not sections:
        render_empty_state("No messages yet", "Say hi to your partner!", icon="💬")
        return

    for section in sections:
        st.markdown(f"<div class='pg-separator'>{section.label}</div>", unsafe_allow_html=True)
        for message in section.messages:
            css_class = "pg-bubble-own" if message.owner_id == user_id else "pg-bubble-other"
            pending = " ⏳" if message.is_temporary else ""
            st.markdown(
                f"<div class='{css_class}'>{html.escape(message.payload.text)}"
                f"<br><small>{message.created_at:%H:%M}{pending}</small></div>",
                unsafe_allow_html=True,
            )


def render_chat_page() -> None:
    """Render the chat between the two partners."""
    if not require_authentication():
        return

    st.markdown("### 💬 Chat")

    try:
        runtime = get_runtime()
        session = runtime.chat()
    except Exception as e:
        logger.error("chat_page_error", error=str(e))
        render_error_message("Chat error", "The chat could not be opened.", str(e))
        return

    render_messages(session, runtime.auth.get_user_id())

    text = st.chat_input("Message")
    if text:
        with error_context("Sending the message"):
            runtime.run(session.send(text))
            st.rerun()
