"""Per-browser-session service access for pages."""

import streamlit as st
import structlog

from ...runtime import AppRuntime
from ...services.auth import AuthService

logger = structlog.get_logger(__name__)


def get_session_auth() -> AuthService:
    """Auth service of this browser session; each tab signs in separately."""
    if "auth_service" not in st.session_state:
        st.session_state.auth_service = AuthService()
    return st.session_state.auth_service


def get_runtime() -> AppRuntime:
    """Runtime of this browser session, created on first use."""
    if "app_runtime" not in st.session_state:
        st.session_state.app_runtime = AppRuntime(auth=get_session_auth())
        logger.info("app_runtime_created")
    return st.session_state.app_runtime


def reset_runtime() -> None:
    """Close every screen session of this browser session."""
    runtime = st.session_state.pop("app_runtime", None)
    if runtime is not None:
        runtime.shutdown()
