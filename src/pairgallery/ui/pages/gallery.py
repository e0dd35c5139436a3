"""Shared gallery page for pairgallery."""

import streamlit as st
import structlog

from ...runtime import AppRuntime
from ...services.gallery import GalleryFilter, GallerySession
from ..components.common import render_empty_state, render_error_message
from ..components.error_display import error_context
from ..components.gallery import (
    render_day_albums,
    render_media_grid,
    render_selection_actions,
    render_upload_panel,
    render_viewer,
)
from ..handlers.auth import require_authentication
from ..handlers.runtime import get_runtime

logger = structlog.get_logger(__name__)

FILTER_LABELS = {
    "All": GalleryFilter.ALL,
    "Photos": GalleryFilter.PHOTO,
    "Videos": GalleryFilter.VIDEO,
    "Favorites": GalleryFilter.FAVORITES,
    "This month": GalleryFilter.MONTH,
    "This week": GalleryFilter.WEEK,
}


def render_media_browser(runtime: AppRuntime, session: GallerySession, scope: str, vault: bool = False) -> None:
    """Controls, viewer and grid shared by the gallery and the vault."""
    col1, col2, col3 = st.columns([2, 1, 1])
    with col1:
        search = st.text_input("Search", key=f"{scope}_search", placeholder="File name or URL")
    with col2:
        filter_label = st.selectbox("Show", list(FILTER_LABELS), key=f"{scope}_filter")
    with col3:
        view_mode = st.selectbox("Layout", ["Grid", "Days"], key=f"{scope}_layout")

    render_upload_panel(runtime, session, scope)
    render_selection_actions(runtime, session, scope, vault=vault)

    with error_context("Showing the viewer"):
        render_viewer(runtime, session, scope)

    st.divider()

    photos = session.photos_only()
    if view_mode == "Days":
        albums = session.albums_by_day()
        if not albums:
            render_empty_state("Nothing here yet", "Upload your first photo above.", icon="📷")
            return
        render_day_albums(albums, photos, scope)
        return

    items = session.filtered(FILTER_LABELS[filter_label], search)
    if not items:
        render_empty_state("Nothing here yet", "Upload a photo or change the filter.", icon="📷")
        return

    st.caption(f"{len(items)} items")
    render_media_grid(items, photos, scope)


def render_gallery_page() -> None:
    """Render the shared gallery."""
    if not require_authentication():
        return

    st.markdown("### 🖼️ Our gallery")

    try:
        runtime = get_runtime()
        session = runtime.gallery()
    except Exception as e:
        logger.error("gallery_page_error", error=str(e))
        render_error_message("Gallery error", "The gallery could not be loaded.", str(e))
        return

    render_media_browser(runtime, session, "gallery")
