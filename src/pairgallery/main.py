"""
Streamlit entry point for pairgallery.

Run with ``streamlit run src/pairgallery/main.py``. Each browser session
signs in separately and gets its own AppRuntime; the sidebar switches
between the gallery, chat, vault and settings pages.
"""

import streamlit as st

from pairgallery.config import get_debug_mode
from pairgallery.logging_config import configure_structured_logging, get_logger
from pairgallery.ui.components.common import apply_theme, render_footer, render_header, render_sidebar
from pairgallery.ui.components.error_display import error_context, show_exception, show_warning
from pairgallery.ui.handlers.auth import authenticate_user
from pairgallery.ui.handlers.runtime import get_runtime
from pairgallery.ui.pages.calendar import render_calendar_page
from pairgallery.ui.pages.chat import render_chat_page
from pairgallery.ui.pages.gallery import render_gallery_page
from pairgallery.ui.pages.settings import render_settings_page
from pairgallery.ui.pages.vault import render_vault_page

configure_structured_logging()
logger = get_logger(__name__)

PAGE_RENDERERS = {
    "gallery": render_gallery_page,
    "chat": render_chat_page,
    "calendar": render_calendar_page,
    "vault": render_vault_page,
    "settings": render_settings_page,
}

SESSION_DEFAULTS = {
    "authenticated": False,
    "user_id": None,
    "user_email": None,
    "auth_error": None,
    "current_page": "gallery",
}

# Services and secrets kept in session state stay out of the debug panel
HIDDEN_SESSION_KEYS = {"app_runtime", "auth_service"}


def initialize_session_state() -> None:
    for key, value in SESSION_DEFAULTS.items():
        st.session_state.setdefault(key, value)


def render_current_page() -> None:
    page = st.session_state.current_page
    renderer = PAGE_RENDERERS.get(page)
    if renderer is None:
        show_warning(f"Page '{page}' not found.")
        if st.button("🖼️ Back to the gallery", type="primary"):
            st.session_state.current_page = "gallery"
            st.rerun()
        return

    with error_context(f"Loading page '{page}'"):
        renderer()


def render_debug_panel() -> None:
    with st.expander("Debug Info"):
        st.write(
            {
                key: str(value)
                for key, value in st.session_state.items()
                if key not in HIDDEN_SESSION_KEYS and not str(key).endswith("_viewer")
            }
        )


def main() -> None:
    st.set_page_config(
        page_title="pairgallery",
        page_icon="💞",
        layout="wide",
        initial_sidebar_state="expanded",
        menu_items={"About": "pairgallery - photos and chat for two"},
    )
    initialize_session_state()

    try:
        with error_context("Signing in"):
            authenticate_user()

        signed_in = st.session_state.authenticated
        logger.debug("page_run", authenticated=signed_in, current_page=st.session_state.current_page)
        if signed_in:
            apply_theme(get_runtime().settings.palette)

        render_header()
        render_sidebar()
        if signed_in:
            render_current_page()
        render_footer()

        if get_debug_mode() and signed_in:
            render_debug_panel()
    except Exception as e:
        logger.error("critical_application_error", error=str(e))
        show_exception(e, "main_application", show_details=True)
        if st.button("🔄 Restart the app", type="primary"):
            st.rerun()


if __name__ == "__main__":
    main()
