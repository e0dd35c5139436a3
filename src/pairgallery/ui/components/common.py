"""Reusable UI components for pairgallery."""

import streamlit as st
import structlog

from ...services.preferences import ThemePalette

logger = structlog.get_logger()

PAGES = {
    "🖼️ Gallery": "gallery",
    "💬 Chat": "chat",
    "📅 Calendar": "calendar",
    "🔒 Vault": "vault",
    "⚙️ Settings": "settings",
}


def render_empty_state(
    title: str,
    description: str,
    icon: str = "📭",
    action_text: str | None = None,
    action_page: str | None = None,
) -> None:
    """Centered placeholder for an empty gallery, album or chat, with an optional jump to another page."""
    _, center, _ = st.columns([1, 2, 1])

    with center:
        st.markdown(
            f"""
        <div style='text-align: center; padding: 2rem 0;'>
            <div style='font-size: 4rem; margin-bottom: 1rem;'>{icon}</div>
            <h3 style='color: #666; margin-bottom: 1rem;'>{title}</h3>
            <p style='color: #888; margin-bottom: 2rem;'>{description}</p>
        </div>
        """,
            unsafe_allow_html=True,
        )

        if action_text and action_page:
            if st.button(action_text, use_container_width=True, type="primary"):
                st.session_state.current_page = action_page
                st.rerun()


def render_error_message(error_type: str, message: str, details: str | None = None) -> None:
    """Render a standardized error message."""
    st.error(f"**{error_type}:** {message}")

    if details:
        with st.expander("🔍 Details"):
            st.code(details)


def apply_theme(palette: ThemePalette) -> None:
    """Inject the palette's colors into the page."""
    gradient = ", ".join(palette.gradient)
    st.markdown(
        f"""
    <style>
        .stButton > button[kind="primary"] {{
            background-color: {palette.primary};
            border-color: {palette.primary};
        }}
        .pg-title {{
            background: linear-gradient(90deg, {gradient});
            -webkit-background-clip: text;
            -webkit-text-fill-color: transparent;
            font-weight: 800;
            font-size: 2.2rem;
        }}
        .pg-bubble-own {{
            background: {palette.primary};
            color: {palette.text};
            border-radius: 16px;
            padding: 0.5rem 0.9rem;
            margin: 0.2rem 0 0.2rem auto;
            max-width: 75%;
            width: fit-content;
        }}
        .pg-bubble-other {{
            background: {palette.light};
            color: #222;
            border-radius: 16px;
            padding: 0.5rem 0.9rem;
            margin: 0.2rem auto 0.2rem 0;
            max-width: 75%;
            width: fit-content;
        }}
        .pg-separator {{
            text-align: center;
            color: {palette.accent};
            font-size: 0.8rem;
            margin: 0.8rem 0 0.4rem 0;
        }}
    </style>
    """,
        unsafe_allow_html=True,
    )


def render_header() -> None:
    st.markdown("<div class='pg-title'>💞 pairgallery</div>", unsafe_allow_html=True)
    st.divider()


def render_sidebar() -> None:
    """Render the navigation sidebar and the signed-in user."""
    from ..handlers.auth import handle_logout

    with st.sidebar:
        st.markdown("### 💞 pairgallery")
        st.divider()

        if not st.session_state.authenticated:
            st.subheader("🔐 Sign in")
            st.info("Sign in to see your shared photos")
            if st.session_state.auth_error:
                st.error(f"**Error:** {st.session_state.auth_error}")
            return

        current_page = st.session_state.current_page
        for page_name, page_key in PAGES.items():
            if st.button(
                page_name,
                key=f"nav_{page_key}",
                use_container_width=True,
                type="primary" if page_key == current_page else "secondary",
            ):
                logger.info("page_navigation", from_page=current_page, to_page=page_key)
                st.session_state.current_page = page_key
                st.rerun()

        st.divider()
        st.markdown(f"📧 {st.session_state.user_email or 'unknown'}")
        if st.button("🚪 Sign out", use_container_width=True):
            handle_logout()


def render_footer() -> None:
    st.divider()
    st.markdown(
        """
    <div style='text-align: center; color: #666; font-size: 0.8em;'>
        <strong>pairgallery v0.1</strong>
    </div>
    """,
        unsafe_allow_html=True,
    )
