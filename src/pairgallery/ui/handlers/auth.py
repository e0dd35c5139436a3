"""Authentication handlers for pairgallery."""

import streamlit as st
import structlog

from ...error_handling import AuthenticationError, NetworkError
from ..components.common import render_error_message
from .runtime import get_session_auth, reset_runtime

logger = structlog.get_logger()


def _set_signed_in(user_id: str | None, email: str | None) -> None:
    st.session_state.authenticated = user_id is not None
    st.session_state.user_id = user_id
    st.session_state.user_email = email


def authenticate_user() -> bool:
    """
    Resolve the signed-in user, showing the sign-in form when there is none.

    Returns:
        bool: True if a user is signed in
    """
    auth_service = get_session_auth()

    user = auth_service.get_current_user()
    if user is not None:
        _set_signed_in(user.user_id, user.email)
        st.session_state.auth_error = None
        return True

    _set_signed_in(None, None)
    render_sign_in_form()
    return False


def render_sign_in_form() -> None:
    """Email/password form against the gateway's auth endpoint."""
    auth_service = get_session_auth()

    with st.form("sign_in_form"):
        st.markdown("### 🔐 Sign in")
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary", use_container_width=True)

    if not submitted:
        return

    if not email or not password:
        st.session_state.auth_error = "Enter your email and password."
        st.rerun()

    try:
        user = auth_service.sign_in_with_password(email, password)
    except (AuthenticationError, NetworkError) as e:
        st.session_state.auth_error = e.user_message
        logger.warning("sign_in_failed", code=e.code)
        st.rerun()
        return

    _set_signed_in(user.user_id, user.email)
    st.session_state.auth_error = None
    logger.info("authentication_success", user_id=user.user_id)
    st.rerun()


def handle_logout() -> None:
    """Close open screens, sign out and return to the gallery."""
    reset_runtime()
    get_session_auth().sign_out()

    _set_signed_in(None, None)
    st.session_state.auth_error = None
    st.session_state.current_page = "gallery"

    logger.info("user_logout")
    st.rerun()


def require_authentication() -> bool:
    """
    Require authentication for protected pages.

    Returns:
        bool: True if authenticated, False otherwise
    """
    if not st.session_state.authenticated:
        render_error_message(
            error_type="Sign-in required",
            message="Sign in to open this page.",
            details=st.session_state.auth_error if st.session_state.auth_error else None,
        )
        return False

    return True
