"""Gallery components: media grid, day albums, the viewer and photo feedback."""

import streamlit as st
import structlog

from ...core.viewer import MAX_INTERVAL_MS, MIN_INTERVAL_MS, ViewerIndexController, ViewerState
from ...models.entity import Entity
from ...models.records import MediaPayload
from ...runtime import AppRuntime
from ...services.feedback import QUICK_REACTIONS
from ...services.gallery import DayAlbum, GallerySession
from ...services.vault import move_to_vault
from .error_display import error_context

logger = structlog.get_logger(__name__)

COLS_PER_ROW = 4


def selection_key(scope: str) -> str:
    return f"{scope}_selection"


def get_selection(scope: str) -> set[str]:
    key = selection_key(scope)
    if key not in st.session_state:
        st.session_state[key] = set()
    return st.session_state[key]


def render_media_tile(item: Entity[MediaPayload], scope: str, index: int | None = None) -> None:
    """
    Render one grid tile with its selection checkbox.

    Args:
        item: Media entity to show
        scope: Page scope keeping selections and viewers apart
        index: Position in the photo list, when the tile can open the viewer
    """
    payload = item.payload

    if item.is_temporary:
        st.info(f"⏳ Uploading {payload.file_name or 'file'}...")
        return

    if payload.is_video:
        st.video(payload.image_url)
    else:
        st.image(payload.image_url, use_container_width=True)

    st.caption(f"{'⭐ ' if payload.favorite else ''}📅 {item.created_at:%Y-%m-%d}")

    selection = get_selection(scope)
    selected = st.checkbox("Select", key=f"{scope}_select_{item.id}", value=item.id in selection)
    if selected:
        selection.add(item.id)
    else:
        selection.discard(item.id)

    if index is not None and st.button("🔍 View", key=f"{scope}_view_{item.id}", use_container_width=True):
        st.session_state[f"{scope}_viewer_index"] = index
        st.rerun()


def render_media_grid(items: list[Entity[MediaPayload]], photos: list[Entity[MediaPayload]], scope: str) -> None:
    """Render items in a grid; photos get a View button opening the viewer at their position."""
    photo_positions = {photo.id: position for position, photo in enumerate(photos)}

    for i in range(0, len(items), COLS_PER_ROW):
        cols = st.columns(COLS_PER_ROW)
        for j, col in enumerate(cols):
            if i + j >= len(items):
                continue
            item = items[i + j]
            with col:
                render_media_tile(item, scope, photo_positions.get(item.id))


def render_day_albums(albums: list[DayAlbum], photos: list[Entity[MediaPayload]], scope: str) -> None:
    for album in albums:
        with st.expander(f"📅 {album.key} ({len(album.items)})", expanded=album is albums[0]):
            render_media_grid(list(album.items), photos, scope)


def render_selection_actions(runtime: AppRuntime, session: GallerySession, scope: str, vault: bool = False) -> None:
    """Batch favorite, delete and move buttons for the current selection."""
    selection = get_selection(scope)
    selection.intersection_update(entity.id for entity in session.ledger.entries())
    if not selection:
        return

    st.markdown(f"**{len(selection)} selected**")
    col1, col2, col3, col4 = st.columns(4)

    with col1:
        if st.button("⭐ Favorite", key=f"{scope}_batch_favorite", use_container_width=True):
            with error_context("Updating favorites"):
                runtime.run(session.batch_favorite(selection))
                st.rerun()

    with col2:
        if st.button("🗑️ Delete", key=f"{scope}_batch_delete", use_container_width=True):
            with error_context("Deleting items"):
                count = runtime.run(session.batch_delete(selection))
                logger.info("batch_delete_done", scope=scope, count=count)
                selection.clear()
                st.rerun()

    with col3:
        if vault:
            if st.button("📤 Move to gallery", key=f"{scope}_move", use_container_width=True):
                with error_context("Moving items"):
                    runtime.run(session.move_to_gallery(selection))  # type: ignore[attr-defined]
                    selection.clear()
                    st.rerun()
        elif st.button("🔒 Move to vault", key=f"{scope}_move", use_container_width=True):
            with error_context("Moving items"):
                runtime.run(move_to_vault(session, runtime.vault_gate, selection))
                selection.clear()
                st.rerun()

    with col4:
        if st.button("✖️ Clear", key=f"{scope}_clear", use_container_width=True):
            selection.clear()
            st.rerun()


def render_upload_panel(runtime: AppRuntime, session: GallerySession, scope: str) -> None:
    """File picker uploading each file through the session."""
    with st.expander("📤 Upload photos and videos"):
        files = st.file_uploader(
            "Choose files",
            accept_multiple_files=True,
            key=f"{scope}_uploader_{st.session_state.get(f'{scope}_upload_round', 0)}",
        )
        if not files or not st.button("Upload", key=f"{scope}_upload", type="primary"):
            return

        progress = st.progress(0.0, text="Uploading...")
        uploaded = 0
        for position, file in enumerate(files):
            with error_context(f"Uploading {file.name}"):
                runtime.run(session.upload(file.getvalue(), file.name, file.type), timeout=300)
                uploaded += 1
            progress.progress((position + 1) / len(files), text=f"{position + 1}/{len(files)}")

        st.success(f"Uploaded {uploaded} of {len(files)} files")
        st.session_state[f"{scope}_upload_round"] = st.session_state.get(f"{scope}_upload_round", 0) + 1


def get_viewer(runtime: AppRuntime, session: GallerySession, scope: str, start_index: int) -> ViewerIndexController:
    """Viewer of this page, created on first use."""
    key = f"{scope}_viewer"
    viewer = st.session_state.get(key)
    if viewer is None:
        viewer = runtime.invoke(session.open_viewer, start_index)
        st.session_state[key] = viewer
    elif st.session_state.get(f"{scope}_viewer_start") != start_index:
        runtime.call(viewer.on_user_navigate, start_index)
    st.session_state[f"{scope}_viewer_start"] = start_index
    return viewer


def close_viewer(runtime: AppRuntime, session: GallerySession, scope: str) -> None:
    viewer = st.session_state.pop(f"{scope}_viewer", None)
    st.session_state.pop(f"{scope}_viewer_index", None)
    st.session_state.pop(f"{scope}_viewer_start", None)
    if viewer is not None:
        runtime.invoke(session.close_viewer, viewer)


def render_viewer(runtime: AppRuntime, session: GallerySession, scope: str) -> None:
    """Full-size photo viewer with slideshow controls."""
    start_index = st.session_state.get(f"{scope}_viewer_index")
    if start_index is None:
        return

    viewer = get_viewer(runtime, session, scope, start_index)

    header, close = st.columns([5, 1])
    with header:
        st.markdown("### 🖼️ Viewer")
    with close:
        if st.button("✖️ Close", key=f"{scope}_viewer_close", use_container_width=True):
            close_viewer(runtime, session, scope)
            st.rerun()

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        if st.button("⬅️ Previous", key=f"{scope}_prev", use_container_width=True):
            runtime.call(viewer.on_user_navigate, viewer.displayed_index - 1)
    with col2:
        if st.button("➡️ Next", key=f"{scope}_next", use_container_width=True):
            runtime.call(viewer.on_user_navigate, viewer.displayed_index + 1)
    with col3:
        if viewer.state is ViewerState.IDLE:
            if st.button("▶️ Slideshow", key=f"{scope}_play", use_container_width=True, type="primary"):
                runtime.call(viewer.start)
        elif st.button("⏸️ Stop", key=f"{scope}_pause", use_container_width=True):
            runtime.call(viewer.stop)
    with col4:
        seconds = st.select_slider(
            "Seconds per photo",
            options=list(range(MIN_INTERVAL_MS // 1000, MAX_INTERVAL_MS // 1000 + 1)),
            value=viewer.interval_ms // 1000,
            key=f"{scope}_interval",
        )
        if seconds * 1000 != viewer.interval_ms:
            runtime.call(viewer.set_interval, seconds * 1000)

    render_viewer_frame(runtime, session, scope)


@st.fragment(run_every=1.0)
def render_viewer_frame(runtime: AppRuntime, session: GallerySession, scope: str) -> None:
    """The displayed photo; refreshed every second so slideshow ticks show up."""
    viewer = st.session_state.get(f"{scope}_viewer")
    if viewer is None:
        return

    photos = session.photos_only()
    if not photos:
        st.info("No photos to show")
        return

    index = min(viewer.displayed_index, len(photos) - 1)
    photo = photos[index]
    st.image(photo.payload.image_url, use_container_width=True)

    state_labels = {
        ViewerState.IDLE: "",
        ViewerState.AUTO_ADVANCING: "▶️ playing",
        ViewerState.PAUSED_FOR_USER_INPUT: "⏸️ paused",
    }
    st.caption(f"{index + 1} / {len(photos)} {state_labels[viewer.state]}")

    render_photo_feedback(runtime, photo)


def render_photo_feedback(runtime: AppRuntime, photo: Entity[MediaPayload]) -> None:
    """Reaction bar and comment thread of one photo."""
    with error_context("Loading reactions"):
        board = runtime.reactions()
        user_id = runtime.auth.get_user_id()

        counts = board.summary(photo.id, user_id)
        if counts:
            labels = [f"**{c.emoji} {c.count}**" if c.reacted_by_me else f"{c.emoji} {c.count}" for c in counts]
            st.markdown(" ".join(labels))

        cols = st.columns(len(QUICK_REACTIONS))
        for col, emoji in zip(cols, QUICK_REACTIONS, strict=True):
            with col:
                if st.button(emoji, key=f"react_{photo.id}_{emoji}"):
                    runtime.run(board.toggle(photo.id, emoji))
                    st.rerun(scope="fragment")

    with st.expander("💬 Comments"):
        with error_context("Loading comments"):
            thread = runtime.comments(photo.id)
            for comment in thread.entries():
                text = comment.payload.reaction or comment.payload.text
                pending = " ⏳" if comment.is_temporary else ""
                st.markdown(f"**{'You' if comment.owner_id == user_id else 'Partner'}:** {text}{pending}")

            with st.form(f"comment_form_{photo.id}", clear_on_submit=True):
                text = st.text_input("Add a comment", key=f"comment_text_{photo.id}")
                if st.form_submit_button("Send"):
                    runtime.run(thread.send(text))
                    st.rerun(scope="fragment")
