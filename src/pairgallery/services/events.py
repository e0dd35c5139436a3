"""
Shared calendar.

The couple's anniversaries, birthdays and other dates live in the ``events``
table, scoped to the household. Adds, edits and deletes show up right away
and are reverted when the gateway rejects them. Days are calendar dates
without a time zone; countdowns count whole days.
"""

import dataclasses
from dataclasses import dataclass
from datetime import date

from ..core.ledger import OptimisticLedger
from ..error_handling import AuthorizationError, ValidationError
from ..logging_config import get_logger, log_user_action
from ..models.entity import Entity, TemporaryIdFactory, utc_now
from ..models.records import EVENT_DECODER, EVENT_TYPE_CUSTOM, EVENT_TYPES, EventPayload
from .auth import AuthService
from .gateway import Order, RemoteDataGateway
from .profiles import ProfileService
from .session import LedgerSession, raise_for_result

logger = get_logger(__name__)

EVENT_LABELS = {"anniversary": "Anniversary", "birthday": "Birthday", "custom": "Custom"}
EVENT_ICONS = {"anniversary": "💖", "birthday": "🎁", "custom": "⭐"}
EVENT_EMOJIS = ("🎂", "💑", "💍", "🎉", "🌹", "🍰", "✈️", "🏖️", "🎁", "🍽️", "❤️", "😍", "🥳", "👩‍❤️‍👨")

MAX_TITLE_LENGTH = 120


def validate_event(payload: EventPayload) -> EventPayload:
    """Trim text fields; a title is required and the type must be known."""
    title = payload.title.strip() if isinstance(payload.title, str) else ""
    if not title:
        raise ValidationError(
            "Event title is empty", code="empty_event_title", user_message="Please enter a title for the event."
        )
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(
            "Event title is too long",
            code="event_title_too_long",
            user_message=f"Keep the title under {MAX_TITLE_LENGTH} characters.",
        )
    if payload.event_type not in EVENT_TYPES:
        raise ValidationError(
            f"Unknown event type: {payload.event_type}",
            code="unknown_event_type",
            details={"event_type": payload.event_type},
        )
    return dataclasses.replace(payload, title=title, emoji=payload.emoji.strip(), note=payload.note.strip())


def days_until(day: date, today: date) -> int:
    return (day - today).days


def countdown_label(event: Entity[EventPayload], today: date) -> str:
    """Headline for the next event: ``Today: X``, ``Tomorrow: X`` or ``N days to X``."""
    days = days_until(event.payload.day, today)
    title = event.payload.title
    if days == 0:
        label = f"Today: {title}"
    elif days == 1:
        label = f"Tomorrow: {title}"
    else:
        label = f"{days} days to {title}"
    return f"{label} {event.payload.emoji}" if event.payload.emoji else label


def status_label(event: Entity[EventPayload], today: date) -> str:
    """Badge of one listed event: Today, ``N days left`` or Passed."""
    days = days_until(event.payload.day, today)
    if days == 0:
        return "Today"
    if days > 0:
        return f"{days} {'day' if days == 1 else 'days'} left"
    return "Passed"


@dataclass(frozen=True)
class DayMark:
    """Calendar decoration of one day: the types of its events, in order."""

    day: date
    event_types: tuple[str, ...]


class EventsSession(LedgerSession[EventPayload]):
    """One open calendar screen."""

    def __init__(
        self,
        gateway: RemoteDataGateway,
        auth: AuthService,
        profiles: ProfileService | None = None,
        id_factory: TemporaryIdFactory | None = None,
    ):
        ledger: OptimisticLedger[EventPayload] = OptimisticLedger(
            "events", validator=validate_event, id_factory=id_factory
        )
        super().__init__(gateway, auth, EVENT_DECODER, ledger)
        self.profiles = profiles or ProfileService(gateway)
        self.household_id: str | None = None

    async def open(self) -> None:
        """
        Resolve the household, subscribe to its events and load them.

        Raises:
            AuthenticationError: If nobody is signed in
            AuthorizationError: If the user has no household
            NetworkError: If the events cannot be loaded
        """
        user = self._current_user()
        self.household_id = await self.profiles.require_household_id(user.user_id)
        await self._open_feed({"household_id": self.household_id}, Order("date", ascending=True))

    def _require_open(self, user_id: str) -> str:
        if not self.household_id:
            raise AuthorizationError("Calendar is not open", code="calendar_not_open", details={"user_id": user_id})
        return self.household_id

    def _require_event(self, entity_id: str) -> Entity[EventPayload]:
        entity = self.ledger.get(entity_id)
        if entity is None:
            raise ValidationError("Event not found", code="event_not_found", details={"id": entity_id})
        if entity.is_temporary:
            raise ValidationError(
                "Event is still being saved",
                code="event_pending",
                user_message="Wait until the event is saved.",
                details={"id": entity_id},
            )
        return entity

    # Mutations

    async def add(
        self,
        title: str,
        day: date,
        event_type: str = EVENT_TYPE_CUSTOM,
        emoji: str = "",
        note: str = "",
    ) -> Entity[EventPayload] | None:
        """
        Add an event to the shared calendar.

        Returns:
            The saved event, or None when the insert response could not be
            decoded (the change feed delivers it instead)

        Raises:
            ValidationError: If the title is empty or the type unknown
            AuthorizationError: If the calendar is not open
            NetworkError: If the insert failed; the event is gone again
        """
        user = self._current_user()
        household_id = self._require_open(user.user_id)
        payload = validate_event(
            EventPayload(
                title=title, day=day, event_type=event_type, emoji=emoji, note=note, household_id=household_id
            )
        )

        temporary_id = self.ledger.insert_optimistic(payload, user.user_id)
        durable = await self._insert_pending(
            temporary_id, EVENT_DECODER.to_record(payload, user.user_id), "add the event", day=day.isoformat()
        )
        log_user_action(user.user_id, "event_added", event_type=payload.event_type, day=day.isoformat())
        return durable

    async def edit(
        self,
        entity_id: str,
        title: str | None = None,
        day: date | None = None,
        event_type: str | None = None,
        emoji: str | None = None,
        note: str | None = None,
    ) -> Entity[EventPayload]:
        """
        Change fields of a saved event; omitted fields keep their value.

        Raises:
            ValidationError: If the event is unknown, unsaved or the result invalid
            NetworkError: If the update failed; the previous version is restored
        """
        user = self._current_user()
        previous = self._require_event(entity_id)
        changes = {
            name: value
            for name, value in (
                ("title", title),
                ("day", day),
                ("event_type", event_type),
                ("emoji", emoji),
                ("note", note),
            )
            if value is not None
        }
        payload = validate_event(dataclasses.replace(previous.payload, **changes))
        updated = previous.with_payload(payload)
        if updated == previous:
            return previous

        record = EVENT_DECODER.to_record(payload, previous.owner_id)
        patch = {key: record[key] for key in ("title", "date", "type", "emoji", "note")}

        self.ledger.replace(updated)
        try:
            result = await self.gateway.update("events", {"id": entity_id}, patch)
            raise_for_result(result, "update the event", id=entity_id)
        except BaseException:
            self.ledger.replace(previous)
            raise

        log_user_action(user.user_id, "event_edited", event_id=entity_id)
        return updated

    async def delete(self, entity_id: str) -> bool:
        """
        Delete a saved event.

        Returns:
            False when the event is not on this calendar

        Raises:
            ValidationError: If the event is still being saved
            NetworkError: If the delete failed; the event is restored
        """
        user = self._current_user()
        if self.ledger.get(entity_id) is None:
            return False
        removed = self._require_event(entity_id)
        self.ledger.remove(entity_id)

        try:
            result = await self.gateway.delete("events", {"id": entity_id})
            raise_for_result(result, "delete the event", id=entity_id)
        except BaseException:
            self.ledger.restore(removed)
            raise

        log_user_action(user.user_id, "event_deleted", event_id=entity_id)
        return True

    # Views

    def by_date(self) -> list[Entity[EventPayload]]:
        """Events ordered by day, then by when they were added."""
        return sorted(self.ledger.entries(), key=lambda event: (event.payload.day, event.created_at, event.id))

    def on_day(self, day: date) -> list[Entity[EventPayload]]:
        return [event for event in self.by_date() if event.payload.day == day]

    def day_marks(self) -> dict[date, DayMark]:
        """One mark per day that has events."""
        types: dict[date, list[str]] = {}
        for event in self.by_date():
            types.setdefault(event.payload.day, []).append(event.payload.event_type)
        return {day: DayMark(day, tuple(event_types)) for day, event_types in types.items()}

    def upcoming(self, today: date | None = None) -> list[Entity[EventPayload]]:
        """Events from ``today`` on, soonest first."""
        today = today or utc_now().date()
        return [event for event in self.by_date() if event.payload.day >= today]

    def next_event(self, today: date | None = None) -> Entity[EventPayload] | None:
        upcoming = self.upcoming(today)
        return upcoming[0] if upcoming else None
