"""
Household chat.

Messages of the signed-in user's household are loaded oldest first and kept
current through the change feed. Sends appear immediately and are confirmed
or rolled back when the insert returns.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from ..core.ledger import OptimisticLedger
from ..error_handling import AuthorizationError, ValidationError
from ..logging_config import get_logger, log_user_action
from ..models.entity import Entity, TemporaryIdFactory, utc_now
from ..models.records import MESSAGE_DECODER, MessagePayload
from .auth import AuthService
from .gateway import Order, RemoteDataGateway
from .profiles import ProfileService
from .session import LedgerSession

logger = get_logger(__name__)


def validate_message(payload: MessagePayload) -> MessagePayload:
    """Trim the text; empty messages are rejected."""
    text = payload.text.strip() if isinstance(payload.text, str) else ""
    if not text:
        raise ValidationError("Message text is empty", code="empty_message", user_message="Type a message first.")
    return MessagePayload(text=text, household_id=payload.household_id)


def date_label(moment: datetime, today: date) -> str:
    """Separator label for a message day: Today, Yesterday or ``Month D, YYYY``."""
    day = moment.date()
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return f"{moment:%B} {day.day}, {day.year}"


@dataclass(frozen=True)
class ChatSection:
    label: str
    messages: tuple[Entity[MessagePayload], ...]


class ChatSession(LedgerSession[MessagePayload]):
    """One open chat screen."""

    def __init__(
        self,
        gateway: RemoteDataGateway,
        auth: AuthService,
        profiles: ProfileService | None = None,
        id_factory: TemporaryIdFactory | None = None,
    ):
        ledger: OptimisticLedger[MessagePayload] = OptimisticLedger(
            "messages", validator=validate_message, id_factory=id_factory
        )
        super().__init__(gateway, auth, MESSAGE_DECODER, ledger)
        self.profiles = profiles or ProfileService(gateway)
        self.household_id: str | None = None

    async def open(self) -> None:
        """
        Resolve the household, subscribe to its messages and load them.

        Raises:
            AuthenticationError: If nobody is signed in
            AuthorizationError: If the user has no household
            NetworkError: If the messages cannot be loaded
        """
        user = self._current_user()
        self.household_id = await self.profiles.require_household_id(user.user_id)
        await self._open_feed({"household_id": self.household_id}, Order("created_at", ascending=True))

    async def send(self, text: str) -> Entity[MessagePayload] | None:
        """
        Send a message.

        Returns:
            The confirmed message, or None when the insert response could not
            be decoded (the change feed delivers it instead)

        Raises:
            ValidationError: If the text is empty after trimming
            AuthenticationError: If nobody is signed in
            NetworkError: If the insert failed; the optimistic entry is gone
        """
        payload = validate_message(MessagePayload(text=text, household_id=self.household_id))
        user = self._current_user()
        if not self.household_id:
            raise AuthorizationError("Chat is not open", code="chat_not_open", details={"user_id": user.user_id})

        temporary_id = self.ledger.insert_optimistic(payload, user.user_id)
        durable = await self._insert_pending(
            temporary_id, MESSAGE_DECODER.to_record(payload, user.user_id), "send the message"
        )
        log_user_action(user.user_id, "message_sent", message_id=durable.id if durable else None)
        return durable

    def sections(self, today: date | None = None) -> list[ChatSection]:
        """Group messages under day separators in display order."""
        today = today or utc_now().date()
        sections: list[ChatSection] = []
        current_label: str | None = None
        bucket: list[Entity[MessagePayload]] = []

        for message in self.ledger.entries():
            label = date_label(message.created_at, today)
            if label != current_label and bucket:
                sections.append(ChatSection(current_label or label, tuple(bucket)))
                bucket = []
            current_label = label
            bucket.append(message)

        if bucket and current_label is not None:
            sections.append(ChatSection(current_label, tuple(bucket)))
        return sections
