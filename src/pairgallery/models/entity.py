"""
Entity and change event model shared by every ledger.

An Entity is one row the user sees in a list (a chat message, a photo, a
comment, a reaction). Its id is either durable, assigned by the gateway, or a
temporary id minted locally for an optimistic write.
"""

import itertools
import threading
import time
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

P = TypeVar("P")

TEMPORARY_ID_PREFIX = "temp-"


def is_temporary_id(entity_id: str) -> bool:
    """Check whether an id was minted locally for an optimistic write."""
    return entity_id.startswith(TEMPORARY_ID_PREFIX)


class TemporaryIdFactory:
    """
    Mints session-unique temporary identifiers.

    Ids combine a millisecond timestamp with a per-factory counter so two sends
    in the same millisecond never collide.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def new_id(self) -> str:
        with self._lock:
            sequence = next(self._counter)
        return f"{TEMPORARY_ID_PREFIX}{time.time_ns() // 1_000_000}-{sequence}"


@dataclass(frozen=True)
class Entity(Generic[P]):
    """
    One item of a ledger.

    ``created_at`` orders entries and is shown to the user; it is never used to
    resolve conflicts between versions of the same entity.
    """

    id: str
    owner_id: str
    payload: P
    created_at: datetime

    @property
    def is_temporary(self) -> bool:
        return is_temporary_id(self.id)

    def with_payload(self, payload: P) -> "Entity[P]":
        """Return a copy carrying a new payload."""
        return replace(self, payload=payload)


class ChangeKind(Enum):
    """Row-level mutation kinds pushed by the gateway."""

    INSERTED = "inserted"
    UPDATED = "updated"
    DELETED = "deleted"

    @classmethod
    def from_event_type(cls, event_type: str) -> "ChangeKind":
        """
        Map a realtime ``eventType`` (``INSERT``/``UPDATE``/``DELETE``) to a kind.

        Raises:
            ValueError: If the event type is unknown
        """
        mapping = {
            "INSERT": cls.INSERTED,
            "UPDATE": cls.UPDATED,
            "DELETE": cls.DELETED,
        }
        try:
            return mapping[event_type.upper()]
        except (KeyError, AttributeError) as e:
            raise ValueError(f"Unknown change event type: {event_type!r}") from e


@dataclass(frozen=True)
class ChangeEvent(Generic[P]):
    """
    A decoded change notification.

    Deletions often carry only the primary key of the old row, so ``entity`` is
    optional for DELETED events and ``entity_id`` is always set.
    """

    kind: ChangeKind
    entity_id: str
    entity: Entity[P] | None = None

    def __post_init__(self) -> None:
        if self.kind is not ChangeKind.DELETED and self.entity is None:
            raise ValueError(f"{self.kind.value} change event requires an entity")
        if self.entity is not None and self.entity.id != self.entity_id:
            raise ValueError("entity_id does not match entity.id")
        if is_temporary_id(self.entity_id):
            raise ValueError("change events must carry durable identifiers")

    @classmethod
    def inserted(cls, entity: Entity[P]) -> "ChangeEvent[P]":
        return cls(ChangeKind.INSERTED, entity.id, entity)

    @classmethod
    def updated(cls, entity: Entity[P]) -> "ChangeEvent[P]":
        return cls(ChangeKind.UPDATED, entity.id, entity)

    @classmethod
    def deleted(cls, entity_id: str, entity: Entity[P] | None = None) -> "ChangeEvent[P]":
        return cls(ChangeKind.DELETED, entity_id, entity)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a gateway timestamp into an aware UTC datetime.

    Accepts datetimes and ISO 8601 strings, including the ``Z`` suffix and the
    space separator PostgREST sometimes returns.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        text = value.strip().replace(" ", "T", 1)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
