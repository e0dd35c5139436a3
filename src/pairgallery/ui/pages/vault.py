"""Private vault page for pairgallery."""

import streamlit as st
import structlog

from ...error_handling import AuthorizationError, ValidationError
from ...services.vault import MIN_PASSWORD_LENGTH, VaultGate
from ..components.error_display import error_context, show_exception
from ..handlers.auth import require_authentication
from ..handlers.runtime import get_runtime
from .gallery import render_media_browser

logger = structlog.get_logger(__name__)


def render_set_password_form(gate: VaultGate) -> None:
    st.info("Choose a password for your private vault. It is stored only on this device.")
    with st.form("vault_set_password"):
        password = st.text_input("New password", type="password")
        confirm = st.text_input("Repeat password", type="password")
        submitted = st.form_submit_button("Create vault", type="primary")

    if not submitted:
        return
    if password != confirm:
        st.error("The passwords do not match.")
        return
    try:
        gate.set_password(password)
    except ValidationError as e:
        st.error(e.user_message)
        return
    st.rerun()


def render_unlock_form(gate: VaultGate) -> None:
    with st.form("vault_unlock"):
        password = st.text_input("Vault password", type="password")
        submitted = st.form_submit_button("🔓 Unlock", type="primary")

    if not submitted:
        return
    try:
        gate.unlock(password)
    except AuthorizationError as e:
        show_exception(e, "Unlocking the vault")
        return
    st.rerun()


def render_vault_page() -> None:
    """Render the vault: password setup, unlock gate, then the private gallery."""
    if not require_authentication():
        return

    st.markdown("### 🔒 Vault")

    runtime = get_runtime()
    gate = runtime.vault_gate

    if not gate.has_password:
        render_set_password_form(gate)
        return

    if not gate.is_unlocked():
        render_unlock_form(gate)
        return

    if st.button("🔒 Lock vault"):
        runtime.close_session("vault")
        for key in ("vault_viewer", "vault_viewer_index", "vault_viewer_start"):
            st.session_state.pop(key, None)
        gate.lock()
        st.rerun()

    with error_context("Opening the vault"):
        session = runtime.vault()
        render_media_browser(runtime, session, "vault", vault=True)

    st.caption(f"Vault passwords need at least {MIN_PASSWORD_LENGTH} characters. Change it in Settings.")
