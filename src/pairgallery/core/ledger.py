"""
Optimistic mutation ledger.

The ledger is the ordered, duplicate-free list behind a chat, a gallery or a
comment thread. A send shows up immediately under a temporary id, is swapped
for the durable row when the gateway confirms it, and disappears again if the
write fails. Change events pushed by the gateway are merged by durable id, so
a redelivered event, or an event for our own write that races the insert
response, never produces a second copy.

All mutations are expected to run on one event loop. Every mutation builds a
new tuple, so readers on other threads always see a consistent snapshot.
"""

from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from typing import Generic

from ..error_handling import ValidationError
from ..logging_config import get_logger
from ..models.entity import ChangeEvent, ChangeKind, Entity, P, TemporaryIdFactory, is_temporary_id, utc_now

logger = get_logger(__name__)

LedgerListener = Callable[[tuple[Entity[P], ...]], None]


class OptimisticLedger(Generic[P]):
    """
    Ordered collection of entities supporting optimistic writes.

    Entries are kept sorted by ``(created_at, id)``, oldest first unless
    ``newest_first`` is set. Sorting on both the optimistic path and the
    merge path means a confirmed send and a pushed insert of the same row
    yield the same ledger.

    Args:
        name: Name used in log events (e.g. ``"messages"``)
        validator: Returns the normalized payload or raises ValidationError
        newest_first: Order entries newest first (galleries) instead of oldest first
        id_factory: Source of temporary ids
        clock: Source of ``created_at`` for optimistic entries
    """

    def __init__(
        self,
        name: str,
        validator: Callable[[P], P] | None = None,
        newest_first: bool = False,
        id_factory: TemporaryIdFactory | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.name = name
        self._validator = validator
        self._newest_first = newest_first
        self._id_factory = id_factory or TemporaryIdFactory()
        self._clock = clock
        self._entries: tuple[Entity[P], ...] = ()
        self._listeners: list[LedgerListener] = []

    # Reading

    def entries(self) -> tuple[Entity[P], ...]:
        """Current snapshot of the ledger."""
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entity[P]]:
        return iter(self._entries)

    def __contains__(self, entity_id: object) -> bool:
        return any(entity.id == entity_id for entity in self._entries)

    def get(self, entity_id: str) -> Entity[P] | None:
        for entity in self._entries:
            if entity.id == entity_id:
                return entity
        return None

    def index_of(self, entity_id: str) -> int:
        """Position of an entity, or -1 when absent."""
        for index, entity in enumerate(self._entries):
            if entity.id == entity_id:
                return index
        return -1

    def pending_ids(self) -> list[str]:
        """Temporary ids still waiting for confirmation."""
        return [entity.id for entity in self._entries if entity.is_temporary]

    def add_listener(self, listener: LedgerListener) -> Callable[[], None]:
        """
        Register a callback invoked with the new snapshot after each change.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # Optimistic writes

    def insert_optimistic(self, payload: P, owner_id: str) -> str:
        """
        Append a speculative entity and return its temporary id.

        Raises:
            ValidationError: If the payload is rejected; the ledger is unchanged
        """
        if self._validator is not None:
            payload = self._validator(payload)

        if not owner_id:
            raise ValidationError(
                f"{self.name}: optimistic entry needs an owner",
                code="missing_owner",
                details={"ledger": self.name},
            )

        temporary_id = self._id_factory.new_id()
        entity = Entity(id=temporary_id, owner_id=owner_id, payload=payload, created_at=self._clock())
        self._commit(self._entries + (entity,))

        logger.debug("ledger_optimistic_insert", ledger=self.name, temporary_id=temporary_id, size=len(self._entries))
        return temporary_id

    def reconcile(self, temporary_id: str, durable: Entity[P]) -> bool:
        """
        Replace a temporary entry with its durable counterpart.

        If the durable row already arrived through a change event it is
        replaced in place, so the ledger never holds two copies.

        Returns:
            False when the temporary id was already gone (no-op)
        """
        if durable.is_temporary:
            raise ValueError("reconcile requires a durable entity")

        remaining = tuple(entity for entity in self._entries if entity.id != temporary_id)
        if len(remaining) == len(self._entries):
            logger.debug("ledger_reconcile_skipped", ledger=self.name, temporary_id=temporary_id, durable_id=durable.id)
            return False

        self._commit(self._upsert(remaining, durable))
        logger.debug("ledger_reconciled", ledger=self.name, temporary_id=temporary_id, durable_id=durable.id)
        return True

    def rollback(self, temporary_id: str) -> bool:
        """
        Remove a temporary entry after its write failed.

        Returns:
            False when the entry was already reconciled or rolled back
        """
        if not is_temporary_id(temporary_id):
            logger.warning("ledger_rollback_durable_id", ledger=self.name, entity_id=temporary_id)
            return False

        remaining = tuple(entity for entity in self._entries if entity.id != temporary_id)
        if len(remaining) == len(self._entries):
            return False

        self._commit(remaining)
        logger.debug("ledger_rolled_back", ledger=self.name, temporary_id=temporary_id)
        return True

    # Remote changes

    def merge_remote(self, event: ChangeEvent[P]) -> bool:
        """
        Apply a change event pushed by the gateway.

        Inserted and updated events upsert by durable id; deleted events remove
        by durable id. Applying the same event again changes nothing.

        Returns:
            True if the snapshot changed
        """
        entity = event.entity
        if event.kind is ChangeKind.DELETED or entity is None:
            remaining = tuple(existing for existing in self._entries if existing.id != event.entity_id)
            if len(remaining) == len(self._entries):
                logger.debug("realtime_delivery_anomaly", ledger=self.name, kind="delete_of_absent", id=event.entity_id)
                return False
            self._commit(remaining)
            return True

        if self.get(entity.id) == entity:
            logger.debug("realtime_delivery_anomaly", ledger=self.name, kind="duplicate", id=entity.id)
            return False

        self._commit(self._upsert(self._entries, entity))
        return True

    def load(self, entities: Iterable[Entity[P]]) -> None:
        """
        Replace the durable contents with an authoritative fetch.

        Temporary entries still in flight are kept; duplicate ids in the fetch
        collapse to the last occurrence.
        """
        merged: dict[str, Entity[P]] = {}
        for entity in entities:
            if entity.is_temporary:
                continue
            merged[entity.id] = entity

        pending = [entity for entity in self._entries if entity.is_temporary]
        self._commit(self._sorted(list(merged.values()) + pending))
        logger.debug("ledger_loaded", ledger=self.name, durable=len(merged), pending=len(pending))

    # Local edits of durable entities

    def remove(self, entity_id: str) -> Entity[P] | None:
        """Remove an entity for an optimistic delete and return it for restore."""
        removed = self.get(entity_id)
        if removed is None:
            return None
        self._commit(tuple(entity for entity in self._entries if entity.id != entity_id))
        return removed

    def restore(self, entity: Entity[P]) -> None:
        """Put back an entity removed by a failed optimistic delete."""
        if self.get(entity.id) is not None:
            return
        self._commit(self._upsert(self._entries, entity))

    def replace(self, entity: Entity[P]) -> Entity[P] | None:
        """
        Swap an existing entity for a locally edited version.

        Returns:
            The previous version, or None when the entity is not present
        """
        previous = self.get(entity.id)
        if previous is None:
            return None
        self._commit(self._upsert(self._entries, entity))
        return previous

    def clear(self) -> None:
        self._commit(())

    # Internals

    def _sort_key(self, entity: Entity[P]) -> tuple[datetime, str]:
        return (entity.created_at, entity.id)

    def _sorted(self, entities: list[Entity[P]]) -> tuple[Entity[P], ...]:
        return tuple(sorted(entities, key=self._sort_key, reverse=self._newest_first))

    def _upsert(self, entries: tuple[Entity[P], ...], entity: Entity[P]) -> tuple[Entity[P], ...]:
        others = [existing for existing in entries if existing.id != entity.id]
        return self._sorted(others + [entity])

    def _commit(self, entries: tuple[Entity[P], ...]) -> None:
        self._entries = entries
        for listener in list(self._listeners):
            try:
                listener(entries)
            except Exception as e:
                logger.error("ledger_listener_failed", ledger=self.name, error=str(e))
