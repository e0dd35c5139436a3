"""Settings page for pairgallery."""

import streamlit as st

from ...config import get_config
from ...core.viewer import MAX_INTERVAL_MS, MIN_INTERVAL_MS
from ...error_handling import AuthorizationError, ValidationError
from ...services.preferences import THEMES
from ..components.error_display import error_context, show_exception
from ..handlers.auth import require_authentication
from ..handlers.runtime import get_runtime


def render_appearance_settings() -> None:
    settings = get_runtime().settings
    themes = list(THEMES)

    with st.expander("🎨 Appearance", expanded=True):
        theme = st.radio(
            "Theme",
            themes,
            index=themes.index(settings.theme),
            format_func=str.capitalize,
            horizontal=True,
        )
        if theme != settings.theme:
            with error_context("Saving the theme"):
                settings.set_theme(theme)
                st.rerun()

        palette = settings.palette
        st.markdown(
            " ".join(
                f"<span style='display:inline-block;width:1.5rem;height:1.5rem;border-radius:50%;"
                f"background:{color}'></span>"
                for color in (palette.primary, palette.secondary, palette.accent, palette.light)
            ),
            unsafe_allow_html=True,
        )


def render_slideshow_settings() -> None:
    settings = get_runtime().settings

    with st.expander("▶️ Slideshow", expanded=True):
        seconds = st.slider(
            "Seconds per photo",
            MIN_INTERVAL_MS // 1000,
            MAX_INTERVAL_MS // 1000,
            settings.slideshow_interval_ms // 1000,
        )
        if seconds * 1000 != settings.slideshow_interval_ms:
            with error_context("Saving the slideshow interval"):
                settings.set_slideshow_interval_ms(seconds * 1000)
                st.success("Saved. New viewers use this interval.")


def render_vault_settings() -> None:
    gate = get_runtime().vault_gate

    with st.expander("🔒 Vault password"):
        if not gate.has_password:
            st.info("The vault has no password yet. Open the Vault page to create one.")
            return

        with st.form("vault_change_password", clear_on_submit=True):
            current = st.text_input("Current password", type="password")
            new = st.text_input("New password", type="password")
            submitted = st.form_submit_button("Change password")

        if submitted:
            try:
                gate.change_password(current, new)
            except (AuthorizationError, ValidationError) as e:
                show_exception(e, "Changing the vault password")
            else:
                st.success("Vault password changed.")


def render_settings_page() -> None:
    """Render the settings page with organized sections."""
    if not require_authentication():
        return

    st.markdown("### ⚙️ Settings")

    with st.expander("👤 Account"):
        st.text_input("Email", value=st.session_state.user_email or "", disabled=True)

    render_appearance_settings()
    render_slideshow_settings()
    render_vault_settings()

    with st.expander("🔧 Advanced"):
        if get_config().get("debug", False, bool):
            runtime = get_runtime()
            st.json(
                {
                    "user_id": st.session_state.user_id,
                    "open_sessions": runtime.open_sessions(),
                    "theme": runtime.settings.theme,
                    "slideshow_interval_ms": runtime.settings.slideshow_interval_ms,
                }
            )
        else:
            st.info("Debug mode is off")
        st.write("Version: 0.1.0")
