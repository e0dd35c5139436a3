"""
Typed payloads and the decode/validate boundary for gateway rows.

Rows arrive from the gateway as loosely shaped dictionaries (select results,
insert responses, realtime ``new``/``old`` records). Each table has a
RowDecoder that turns a row into an ``Entity`` or raises RecordDecodeError;
nothing past this module handles raw rows.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any, Generic

from ..error_handling import RecordDecodeError
from .entity import ChangeEvent, ChangeKind, Entity, P, parse_timestamp

MEDIA_TYPE_PHOTO = "photo"
MEDIA_TYPE_VIDEO = "video"
MEDIA_TYPES = (MEDIA_TYPE_PHOTO, MEDIA_TYPE_VIDEO)

EVENT_TYPE_ANNIVERSARY = "anniversary"
EVENT_TYPE_BIRTHDAY = "birthday"
EVENT_TYPE_CUSTOM = "custom"
EVENT_TYPES = (EVENT_TYPE_ANNIVERSARY, EVENT_TYPE_BIRTHDAY, EVENT_TYPE_CUSTOM)


@dataclass(frozen=True)
class MessagePayload:
    """Chat message body."""

    text: str
    household_id: str | None = None


@dataclass(frozen=True)
class MediaPayload:
    """A photo or video in the shared gallery or the vault."""

    image_url: str
    media_type: str = MEDIA_TYPE_PHOTO
    file_name: str = ""
    storage_type: str = ""
    favorite: bool = False
    private: bool = False

    @property
    def is_video(self) -> bool:
        return self.media_type == MEDIA_TYPE_VIDEO


@dataclass(frozen=True)
class CommentPayload:
    """A comment on a photo; single-emoji comments are stored as ``reaction``."""

    image_id: str
    text: str = ""
    reaction: str | None = None


@dataclass(frozen=True)
class ReactionPayload:
    """An emoji reaction by one user on one photo."""

    image_id: str
    emoji: str


@dataclass(frozen=True)
class EventPayload:
    """A date on the shared calendar."""

    title: str
    day: date
    event_type: str = EVENT_TYPE_CUSTOM
    emoji: str = ""
    note: str = ""
    household_id: str | None = None


def _require(row: Mapping[str, Any], key: str, table: str) -> Any:
    value = row.get(key)
    if value is None or value == "":
        raise RecordDecodeError(f"{table} row is missing '{key}'", details={"table": table, "field": key})
    return value


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("true", "t", "1", "yes")
    return bool(value)


class RowDecoder(Generic[P]):
    """
    Decodes rows of one table into entities and records into rows.

    Args:
        table: Gateway table name
        owner_column: Column holding the owning user id
        payload_from_row: Builds the payload from a row
        payload_to_record: Builds the insert/update record from a payload
    """

    def __init__(
        self,
        table: str,
        owner_column: str,
        payload_from_row: Callable[[Mapping[str, Any]], P],
        payload_to_record: Callable[[P], dict[str, Any]],
    ):
        self.table = table
        self.owner_column = owner_column
        self._payload_from_row = payload_from_row
        self._payload_to_record = payload_to_record

    def decode(self, row: Mapping[str, Any] | None) -> Entity[P]:
        """
        Parse one row into an Entity.

        Raises:
            RecordDecodeError: If the row is malformed
        """
        if not isinstance(row, Mapping):
            raise RecordDecodeError(f"{self.table} row is not a mapping", details={"table": self.table})

        entity_id = _as_str(_require(row, "id", self.table))
        owner_id = _as_str(row.get(self.owner_column))

        try:
            created_at = parse_timestamp(_require(row, "created_at", self.table))
        except ValueError as e:
            raise RecordDecodeError(
                f"{self.table} row {entity_id} has an invalid created_at",
                details={"table": self.table, "id": entity_id, "value": row.get("created_at")},
            ) from e

        try:
            payload = self._payload_from_row(row)
        except RecordDecodeError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise RecordDecodeError(
                f"{self.table} row {entity_id} has an invalid payload: {e}",
                details={"table": self.table, "id": entity_id},
            ) from e

        return Entity(id=entity_id, owner_id=owner_id, payload=payload, created_at=created_at)

    def decode_many(self, rows: list[Mapping[str, Any]] | None) -> list[Entity[P]]:
        """Decode a select result, skipping malformed rows."""
        entities: list[Entity[P]] = []
        for row in rows or []:
            try:
                entities.append(self.decode(row))
            except RecordDecodeError:
                continue
        return entities

    def decode_change(self, event: Mapping[str, Any]) -> ChangeEvent[P]:
        """
        Decode a realtime payload of shape ``{eventType, new, old}``.

        Raises:
            RecordDecodeError: If the event type or rows are malformed
        """
        try:
            kind = ChangeKind.from_event_type(event.get("eventType", ""))
        except ValueError as e:
            raise RecordDecodeError(str(e), details={"table": self.table}) from e

        if kind is ChangeKind.DELETED:
            old = event.get("old") or {}
            entity_id = _as_str(_require(old, "id", self.table))
            entity: Entity[P] | None = None
            # Deletes usually carry only the primary key
            if old.get("created_at"):
                try:
                    entity = self.decode(old)
                except RecordDecodeError:
                    entity = None
            return ChangeEvent.deleted(entity_id, entity)

        entity = self.decode(event.get("new"))
        if kind is ChangeKind.INSERTED:
            return ChangeEvent.inserted(entity)
        return ChangeEvent.updated(entity)

    def to_record(self, payload: P, owner_id: str) -> dict[str, Any]:
        """Build the record sent to ``insert`` for a payload."""
        record = self._payload_to_record(payload)
        record[self.owner_column] = owner_id
        return record


def _message_from_row(row: Mapping[str, Any]) -> MessagePayload:
    text = row.get("text")
    if not isinstance(text, str):
        raise ValueError("text must be a string")
    household_id = row.get("household_id")
    return MessagePayload(text=text, household_id=_as_str(household_id) if household_id is not None else None)


def _message_to_record(payload: MessagePayload) -> dict[str, Any]:
    record: dict[str, Any] = {"text": payload.text}
    if payload.household_id is not None:
        record["household_id"] = payload.household_id
    return record


def _media_from_row(row: Mapping[str, Any]) -> MediaPayload:
    media_type = _as_str(row.get("type"), MEDIA_TYPE_PHOTO) or MEDIA_TYPE_PHOTO
    if media_type not in MEDIA_TYPES:
        raise ValueError(f"unknown media type {media_type!r}")
    return MediaPayload(
        image_url=_as_str(_require(row, "image_url", "images")),
        media_type=media_type,
        file_name=_as_str(row.get("file_name")),
        storage_type=_as_str(row.get("storage_type")),
        favorite=_as_bool(row.get("favorite", False)),
        private=_as_bool(row.get("private", False)),
    )


def _media_to_record(payload: MediaPayload) -> dict[str, Any]:
    return {
        "image_url": payload.image_url,
        "type": payload.media_type,
        "file_name": payload.file_name,
        "storage_type": payload.storage_type,
        "favorite": payload.favorite,
        "private": payload.private,
    }


def _comment_from_row(row: Mapping[str, Any]) -> CommentPayload:
    reaction = row.get("reaction")
    return CommentPayload(
        image_id=_as_str(_require(row, "image_id", "comments")),
        text=_as_str(row.get("text")),
        reaction=_as_str(reaction) if reaction else None,
    )


def _comment_to_record(payload: CommentPayload) -> dict[str, Any]:
    return {"image_id": payload.image_id, "text": payload.text, "reaction": payload.reaction}


def _reaction_from_row(row: Mapping[str, Any]) -> ReactionPayload:
    return ReactionPayload(
        image_id=_as_str(_require(row, "image_id", "reactions")),
        emoji=_as_str(_require(row, "emoji", "reactions")),
    )


def _reaction_to_record(payload: ReactionPayload) -> dict[str, Any]:
    return {"image_id": payload.image_id, "emoji": payload.emoji}


MESSAGE_DECODER: RowDecoder[MessagePayload] = RowDecoder("messages", "sender_id", _message_from_row, _message_to_record)
MEDIA_DECODER: RowDecoder[MediaPayload] = RowDecoder("images", "user_id", _media_from_row, _media_to_record)
COMMENT_DECODER: RowDecoder[CommentPayload] = RowDecoder("comments", "user_id", _comment_from_row, _comment_to_record)
REACTION_DECODER: RowDecoder[ReactionPayload] = RowDecoder(
    "reactions", "user_id", _reaction_from_row, _reaction_to_record
)


def _event_from_row(row: Mapping[str, Any]) -> EventPayload:
    event_type = _as_str(row.get("type"), EVENT_TYPE_CUSTOM) or EVENT_TYPE_CUSTOM
    if event_type not in EVENT_TYPES:
        event_type = EVENT_TYPE_CUSTOM
    household_id = row.get("household_id")
    return EventPayload(
        title=_as_str(_require(row, "title", "events")),
        day=date.fromisoformat(_as_str(_require(row, "date", "events"))[:10]),
        event_type=event_type,
        emoji=_as_str(row.get("emoji")),
        note=_as_str(row.get("note")),
        household_id=_as_str(household_id) if household_id is not None else None,
    )


def _event_to_record(payload: EventPayload) -> dict[str, Any]:
    record: dict[str, Any] = {
        "title": payload.title,
        "date": payload.day.isoformat(),
        "type": payload.event_type,
        "emoji": payload.emoji,
        "note": payload.note,
    }
    if payload.household_id is not None:
        record["household_id"] = payload.household_id
    return record


EVENT_DECODER: RowDecoder[EventPayload] = RowDecoder("events", "user_id", _event_from_row, _event_to_record)
