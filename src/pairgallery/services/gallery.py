"""
Shared gallery and vault gallery.

A GallerySession holds the ``images`` rows of one visibility (shared or
private) newest first. Uploads, deletes and favorite changes are applied to
the ledger right away and reverted when the gateway rejects them.
"""

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Any

from ..core.ledger import OptimisticLedger
from ..core.viewer import DEFAULT_INTERVAL_MS, DEFAULT_QUIET_PERIOD_MS, Scheduler, ViewerIndexController
from ..error_handling import UploadError, ValidationError
from ..logging_config import get_logger, log_user_action
from ..models.entity import Entity, TemporaryIdFactory, is_temporary_id, utc_now
from ..models.records import MEDIA_DECODER, MEDIA_TYPE_PHOTO, MEDIA_TYPE_VIDEO, MEDIA_TYPES, MediaPayload
from .auth import AuthService
from .gateway import Order, RemoteDataGateway
from .media_inspector import MediaInspector, get_media_inspector
from .media_upload import MediaUploadService, ProgressCallback, get_media_upload_service
from .preferences import AppSettings
from .session import LedgerSession, raise_for_result

logger = get_logger(__name__)


class GalleryFilter(Enum):
    ALL = "all"
    PHOTO = "photo"
    VIDEO = "video"
    FAVORITES = "favorites"
    MONTH = "month"
    WEEK = "week"


@dataclass(frozen=True)
class DayAlbum:
    """All items created on one calendar day."""

    day: date
    items: tuple[Entity[MediaPayload], ...]

    @property
    def key(self) -> str:
        return self.day.isoformat()

    @property
    def cover(self) -> Entity[MediaPayload]:
        return self.items[0]


def validate_media(payload: MediaPayload) -> MediaPayload:
    if payload.media_type not in MEDIA_TYPES:
        raise ValidationError(
            f"Unknown media type: {payload.media_type}",
            code="unknown_media_type",
            details={"media_type": payload.media_type},
        )
    return payload


def start_of_week(moment: datetime) -> datetime:
    """Monday 00:00 of the week containing ``moment``."""
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=midnight.weekday())


class GallerySession(LedgerSession[MediaPayload]):
    """
    One open gallery screen.

    Args:
        private: True for the vault, False for the shared gallery
        settings: Source of the slideshow interval for viewers
        scheduler: Timer source for viewers, the running loop by default
    """

    def __init__(
        self,
        gateway: RemoteDataGateway,
        auth: AuthService,
        uploader: MediaUploadService | None = None,
        inspector: MediaInspector | None = None,
        settings: AppSettings | None = None,
        private: bool = False,
        scheduler: Scheduler | None = None,
        id_factory: TemporaryIdFactory | None = None,
        quiet_period_ms: int = DEFAULT_QUIET_PERIOD_MS,
    ):
        ledger: OptimisticLedger[MediaPayload] = OptimisticLedger(
            "images", validator=validate_media, newest_first=True, id_factory=id_factory
        )
        super().__init__(gateway, auth, MEDIA_DECODER, ledger)
        self.uploader = uploader or get_media_upload_service()
        self.inspector = inspector or get_media_inspector()
        self.settings = settings
        self.private = private
        self.scheduler = scheduler
        self.quiet_period_ms = quiet_period_ms
        self._viewers: list[ViewerIndexController] = []

    async def open(self) -> None:
        """
        Subscribe to this gallery's images and load them newest first.

        Raises:
            AuthenticationError: If nobody is signed in
            NetworkError: If the images cannot be loaded
        """
        self._current_user()
        # The feed is unfiltered so items moving in or out of this gallery are seen
        await self._open_feed({"private": self.private}, Order("created_at", ascending=False), feed_filters={})

    # Mutations

    async def upload(
        self,
        data: bytes,
        filename: str,
        mime_type: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Entity[MediaPayload] | None:
        """
        Upload a photo or video and add it to the gallery.

        A placeholder entry is shown while the upload runs.

        Raises:
            ValidationError: If the file type or size is rejected
            MediaProcessingError: If a photo cannot be decoded
            AuthenticationError: If nobody is signed in
            UploadError: If every upload provider failed
            NetworkError: If the row could not be inserted
        """
        user = self._current_user()
        info = self.inspector.inspect(data, filename, mime_type)

        pending = MediaPayload(
            image_url="",
            media_type=info.media_type,
            file_name=filename,
            private=self.private,
        )
        temporary_id = self.ledger.insert_optimistic(pending, user.user_id)

        with self._rolled_back_on_error(temporary_id):
            try:
                uploaded = await self.uploader.upload(data, filename, info.mime_type, on_progress=on_progress)
            except UploadError:
                raise
            except Exception as e:
                raise UploadError(
                    f"Upload of {filename} failed: {e}",
                    details={"filename": filename, "original_type": type(e).__name__},
                    original_exception=e,
                ) from e

            payload = dataclasses.replace(pending, image_url=uploaded.url, storage_type=uploaded.storage_type)
            record = MEDIA_DECODER.to_record(payload, user.user_id)
            record["created_at"] = (info.captured_at or utc_now()).isoformat()

        durable = await self._insert_pending(temporary_id, record, "save the upload", url=uploaded.url)
        log_user_action(
            user.user_id,
            "media_uploaded",
            media_type=info.media_type,
            storage_type=uploaded.storage_type,
            file_size=info.file_size,
        )
        return durable

    def _require_durable(self, entity_ids: Iterable[str]) -> list[str]:
        ids = list(dict.fromkeys(entity_ids))
        pending = [entity_id for entity_id in ids if is_temporary_id(entity_id)]
        if pending:
            raise ValidationError(
                "Items are still uploading",
                code="item_pending",
                user_message="Wait for the upload to finish first.",
                details={"ids": pending},
            )
        return ids

    async def delete(self, entity_id: str) -> bool:
        """
        Delete one item.

        Returns:
            False when the item is not in this gallery

        Raises:
            NetworkError: If the delete failed; the item is restored
        """
        return await self.batch_delete([entity_id]) > 0

    async def batch_delete(self, entity_ids: Iterable[str]) -> int:
        """
        Delete several items with one request.

        Returns:
            Number of items removed

        Raises:
            NetworkError: If the delete failed; the items are restored
        """
        user = self._current_user()
        ids = self._require_durable(entity_ids)
        removed = [entity for entity in (self.ledger.remove(entity_id) for entity_id in ids) if entity is not None]
        if not removed:
            return 0

        removed_ids = [entity.id for entity in removed]
        filters = {"id": removed_ids[0]} if len(removed_ids) == 1 else {"id": removed_ids}
        try:
            result = await self.gateway.delete("images", filters)
            raise_for_result(result, "delete", ids=removed_ids)
        except BaseException:
            for entity in removed:
                self.ledger.restore(entity)
            raise

        self._sync_viewers()
        log_user_action(user.user_id, "media_deleted", count=len(removed_ids))
        return len(removed_ids)

    async def toggle_favorite(self, entity_id: str) -> bool:
        """
        Flip the favorite flag of one item.

        Returns:
            The new flag value

        Raises:
            ValidationError: If the item is unknown or still uploading
            NetworkError: If the update failed; the flag is reverted
        """
        entity = self.ledger.get(entity_id)
        if entity is None:
            raise ValidationError("Item not found", code="item_not_found", details={"id": entity_id})
        favorite = not entity.payload.favorite
        await self._set_favorite([entity_id], favorite)
        return favorite

    async def batch_favorite(self, entity_ids: Iterable[str]) -> bool:
        """
        Favorite all selected items, or unfavorite them when all already are.

        Returns:
            The flag applied to every item
        """
        ids = [entity_id for entity_id in dict.fromkeys(entity_ids) if self.ledger.get(entity_id) is not None]
        if not ids:
            raise ValidationError("No items selected", code="empty_selection", user_message="Select some items first.")

        favorite = any(not self.ledger.get(entity_id).payload.favorite for entity_id in ids)  # type: ignore[union-attr]
        await self._set_favorite(ids, favorite)
        return favorite

    async def _set_favorite(self, entity_ids: list[str], favorite: bool) -> None:
        user = self._current_user()
        ids = self._require_durable(entity_ids)

        previous: list[Entity[MediaPayload]] = []
        for entity_id in ids:
            entity = self.ledger.get(entity_id)
            if entity is None:
                continue
            updated = entity.with_payload(dataclasses.replace(entity.payload, favorite=favorite))
            self.ledger.replace(updated)
            previous.append(entity)

        filters = {"id": ids[0]} if len(ids) == 1 else {"id": ids}
        try:
            result = await self.gateway.update("images", filters, {"favorite": favorite})
            raise_for_result(result, "update favorites", ids=ids)
        except BaseException:
            for entity in previous:
                self.ledger.replace(entity)
            raise

        log_user_action(user.user_id, "favorite_changed", count=len(ids), favorite=favorite)

    async def set_private(self, entity_ids: Iterable[str], private: bool) -> int:
        """
        Move items between the shared gallery and the vault.

        Moved items leave this session's ledger; the other side picks them up
        through its change feed.

        Returns:
            Number of items moved
        """
        user = self._current_user()
        ids = self._require_durable(entity_ids)
        if private == self.private:
            return 0

        removed = [entity for entity in (self.ledger.remove(entity_id) for entity_id in ids) if entity is not None]
        if not removed:
            return 0

        moved_ids = [entity.id for entity in removed]
        filters = {"id": moved_ids[0]} if len(moved_ids) == 1 else {"id": moved_ids}
        try:
            result = await self.gateway.update("images", filters, {"private": private})
            raise_for_result(result, "move items", ids=moved_ids)
        except BaseException:
            for entity in removed:
                self.ledger.restore(entity)
            raise

        self._sync_viewers()
        log_user_action(user.user_id, "media_moved", count=len(moved_ids), private=private)
        return len(moved_ids)

    def _on_change(self, change: Mapping[str, Any]) -> None:
        event_type = str(change.get("eventType", "")).upper()
        row = change.get("new") or {}
        if event_type in ("INSERT", "UPDATE") and "private" in row and bool(row["private"]) != self.private:
            if event_type == "INSERT":
                return
            # Moved to the other gallery
            change = {"eventType": "DELETE", "new": {}, "old": {"id": row.get("id")}}
        super()._on_change(change)
        self._sync_viewers()

    # Views

    def filtered(
        self,
        gallery_filter: GalleryFilter | str = GalleryFilter.ALL,
        search: str = "",
        now: datetime | None = None,
    ) -> list[Entity[MediaPayload]]:
        """Apply a filter and a case-insensitive search on URL and file name."""
        gallery_filter = GalleryFilter(gallery_filter)
        now = now or utc_now()
        items = list(self.ledger.entries())

        query = search.strip().lower()
        if query:
            items = [
                item
                for item in items
                if query in item.payload.image_url.lower() or query in item.payload.file_name.lower()
            ]

        if gallery_filter is GalleryFilter.PHOTO:
            items = [item for item in items if item.payload.media_type == MEDIA_TYPE_PHOTO]
        elif gallery_filter is GalleryFilter.VIDEO:
            items = [item for item in items if item.payload.media_type == MEDIA_TYPE_VIDEO]
        elif gallery_filter is GalleryFilter.FAVORITES:
            items = [item for item in items if item.payload.favorite]
        elif gallery_filter is GalleryFilter.MONTH:
            items = [
                item
                for item in items
                if (local := item.created_at.astimezone(now.tzinfo)).year == now.year and local.month == now.month
            ]
        elif gallery_filter is GalleryFilter.WEEK:
            week_start = start_of_week(now)
            week_end = week_start + timedelta(days=7)
            items = [item for item in items if week_start <= item.created_at.astimezone(now.tzinfo) < week_end]

        return items

    def albums_by_day(self, tz: tzinfo | None = None) -> list[DayAlbum]:
        """Group items into day albums, newest day first."""
        albums: dict[date, list[Entity[MediaPayload]]] = {}
        for item in self.ledger.entries():
            day = item.created_at.astimezone(tz).date() if tz else item.created_at.date()
            albums.setdefault(day, []).append(item)
        return [DayAlbum(day, tuple(items)) for day, items in sorted(albums.items(), reverse=True)]

    def photos_only(self) -> list[Entity[MediaPayload]]:
        """Uploaded photos in display order; the viewer pages through these."""
        return [
            item
            for item in self.ledger.entries()
            if item.payload.media_type == MEDIA_TYPE_PHOTO and not item.is_temporary
        ]

    # Viewer

    def open_viewer(self, start_index: int = 0, scheduler: Scheduler | None = None) -> ViewerIndexController:
        """Create a viewer over ``photos_only()``; it is closed with the session."""
        interval_ms = self.settings.slideshow_interval_ms if self.settings else DEFAULT_INTERVAL_MS
        viewer = ViewerIndexController(
            lambda: len(self.photos_only()),
            scheduler=scheduler or self.scheduler,
            start_index=start_index,
            interval_ms=interval_ms,
            quiet_period_ms=self.quiet_period_ms,
        )
        self._viewers.append(viewer)
        return viewer

    def close_viewer(self, viewer: ViewerIndexController) -> None:
        viewer.close()
        if viewer in self._viewers:
            self._viewers.remove(viewer)

    def _sync_viewers(self) -> None:
        for viewer in self._viewers:
            viewer.sync_item_count()

    async def close(self) -> None:
        for viewer in self._viewers:
            viewer.close()
        self._viewers.clear()
        await super().close()
