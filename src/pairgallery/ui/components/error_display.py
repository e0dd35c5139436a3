"""
Error display for the Streamlit pages.

Exceptions reaching a page are classified into ErrorInfo and shown with their
user message; codes and details stay in an expander. An expired session
sends the browser back to the sign-in form.
"""

from typing import Any

import streamlit as st

from ...error_handling import ErrorCategory, ErrorInfo, ErrorSeverity, handle_error
from ...logging_config import get_logger

logger = get_logger(__name__)

_ALERTS = {
    ErrorSeverity.LOW: st.info,
    ErrorSeverity.MEDIUM: st.warning,
    ErrorSeverity.HIGH: st.error,
    ErrorSeverity.CRITICAL: st.error,
}


def show_error_info(error_info: ErrorInfo, show_details: bool = False) -> None:
    """Render one classified error."""
    alert = _ALERTS.get(error_info.severity, st.error)
    message = error_info.user_message
    if error_info.retry_suggested:
        message = f"{message} You can try again."
    alert(message)

    if show_details:
        with st.expander("🔍 Details"):
            st.write(f"**Code:** {error_info.code}")
            st.write(f"**Category:** {error_info.category.value}")
            st.write(f"**Time:** {error_info.timestamp.isoformat()}")
            if error_info.details:
                st.json(error_info.details)

    if error_info.category is ErrorCategory.AUTHENTICATION:
        # Session is gone; the next run shows the sign-in form
        st.session_state.authenticated = False

    logger.info(
        "error_displayed_to_user",
        error_code=error_info.code,
        category=error_info.category.value,
        severity=error_info.severity.value,
    )


def show_exception(exception: Exception, operation: str | None = None, show_details: bool = False) -> ErrorInfo:
    """Classify and render an exception."""
    error_info = handle_error(exception, {"operation": operation} if operation else None)
    show_error_info(error_info, show_details=show_details)
    return error_info


def show_warning(message: str) -> None:
    st.warning(message)


class ScreenErrorGuard:
    """
    Render exceptions raised inside a block instead of crashing the page.

    Streamlit's rerun and stop signals derive from BaseException and pass
    through untouched.
    """

    def __init__(self, operation: str, show_details: bool = False):
        self.operation = operation
        self.show_details = show_details
        self.error_info: ErrorInfo | None = None

    def __enter__(self) -> "ScreenErrorGuard":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        if exc_type is None or not issubclass(exc_type, Exception):
            return False
        self.error_info = show_exception(exc_val, self.operation, self.show_details)
        return True


def error_context(operation: str, show_details: bool = False) -> ScreenErrorGuard:
    return ScreenErrorGuard(operation, show_details)
