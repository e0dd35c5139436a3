"""Emoji reactions and comments on photos."""

import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass

from ..core.ledger import OptimisticLedger
from ..error_handling import ValidationError
from ..logging_config import get_logger, log_user_action
from ..models.entity import Entity, TemporaryIdFactory
from ..models.records import COMMENT_DECODER, REACTION_DECODER, CommentPayload, ReactionPayload
from .auth import AuthService
from .gateway import Order, RemoteDataGateway
from .session import LedgerSession, raise_for_result

logger = get_logger(__name__)

QUICK_REACTIONS = ("❤️", "😍", "😂", "😮", "😢", "🔥")

_EMOJI_MODIFIERS = {"‍", "️", "︎"}


def is_emoji(text: str) -> bool:
    """
    Check whether a short input is a single emoji.

    Inputs of at most two code points count when every non-modifier code
    point is a pictographic symbol.
    """
    text = text.strip()
    if not text or len(text) > 2:
        return False
    symbols = [char for char in text if char not in _EMOJI_MODIFIERS]
    return bool(symbols) and all(
        unicodedata.category(char) == "So" or 0x1F000 <= ord(char) <= 0x1FAFF for char in symbols
    )


def validate_reaction(payload: ReactionPayload) -> ReactionPayload:
    if not payload.image_id or not payload.emoji.strip():
        raise ValidationError("Reaction needs an image and an emoji", code="invalid_reaction")
    return ReactionPayload(image_id=payload.image_id, emoji=payload.emoji.strip())


def validate_comment(payload: CommentPayload) -> CommentPayload:
    if not payload.image_id:
        raise ValidationError("Comment needs an image", code="invalid_comment")
    if not payload.text.strip() and not payload.reaction:
        raise ValidationError("Comment is empty", code="empty_comment", user_message="Type a comment first.")
    return payload


@dataclass(frozen=True)
class ReactionCount:
    emoji: str
    count: int
    reacted_by_me: bool


class ReactionBoard(LedgerSession[ReactionPayload]):
    """Reactions of a set of photos, or of every photo when ``image_ids`` is None."""

    def __init__(
        self,
        gateway: RemoteDataGateway,
        auth: AuthService,
        image_ids: Iterable[str] | None = None,
        id_factory: TemporaryIdFactory | None = None,
    ):
        ledger: OptimisticLedger[ReactionPayload] = OptimisticLedger(
            "reactions", validator=validate_reaction, id_factory=id_factory
        )
        super().__init__(gateway, auth, REACTION_DECODER, ledger)
        self.image_ids = list(image_ids) if image_ids is not None else None

    async def open(self) -> None:
        self._current_user()
        filters = {"image_id": self.image_ids} if self.image_ids is not None else None
        await self._open_feed(filters, Order("created_at", ascending=True))

    def for_image(self, image_id: str) -> list[Entity[ReactionPayload]]:
        return [entity for entity in self.ledger.entries() if entity.payload.image_id == image_id]

    def by_image(self) -> dict[str, list[Entity[ReactionPayload]]]:
        grouped: dict[str, list[Entity[ReactionPayload]]] = {}
        for entity in self.ledger.entries():
            grouped.setdefault(entity.payload.image_id, []).append(entity)
        return grouped

    def summary(self, image_id: str, user_id: str | None = None) -> list[ReactionCount]:
        """Counts per emoji in first-use order."""
        counts: dict[str, list[Entity[ReactionPayload]]] = {}
        for entity in self.for_image(image_id):
            counts.setdefault(entity.payload.emoji, []).append(entity)
        return [
            ReactionCount(emoji, len(entities), any(entity.owner_id == user_id for entity in entities))
            for emoji, entities in counts.items()
        ]

    def _find_own(self, image_id: str, emoji: str, user_id: str) -> Entity[ReactionPayload] | None:
        for entity in self.for_image(image_id):
            if entity.owner_id == user_id and entity.payload.emoji == emoji:
                return entity
        return None

    async def toggle(self, image_id: str, emoji: str) -> bool:
        """
        Add the user's reaction, or remove it if it exists.

        Returns:
            True when the reaction was added, False when it was removed

        Raises:
            ValidationError: If the emoji is empty or the reaction is still being saved
            AuthenticationError: If nobody is signed in
            NetworkError: If the write failed; the previous state is restored
        """
        payload = validate_reaction(ReactionPayload(image_id=image_id, emoji=emoji))
        user = self._current_user()

        existing = self._find_own(payload.image_id, payload.emoji, user.user_id)
        if existing is not None:
            if existing.is_temporary:
                raise ValidationError("Reaction is still being saved", code="reaction_pending")
            self.ledger.remove(existing.id)
            try:
                result = await self.gateway.delete(
                    "reactions", {"image_id": payload.image_id, "user_id": user.user_id, "emoji": payload.emoji}
                )
                raise_for_result(result, "remove the reaction", image_id=image_id)
            except BaseException:
                self.ledger.restore(existing)
                raise
            log_user_action(user.user_id, "reaction_removed", image_id=image_id, emoji=payload.emoji)
            return False

        temporary_id = self.ledger.insert_optimistic(payload, user.user_id)
        await self._insert_pending(
            temporary_id, REACTION_DECODER.to_record(payload, user.user_id), "add the reaction", image_id=image_id
        )
        log_user_action(user.user_id, "reaction_added", image_id=image_id, emoji=payload.emoji)
        return True


class CommentThread(LedgerSession[CommentPayload]):
    """Comments of one photo, oldest first."""

    def __init__(
        self,
        gateway: RemoteDataGateway,
        auth: AuthService,
        image_id: str,
        id_factory: TemporaryIdFactory | None = None,
    ):
        ledger: OptimisticLedger[CommentPayload] = OptimisticLedger(
            "comments", validator=validate_comment, id_factory=id_factory
        )
        super().__init__(gateway, auth, COMMENT_DECODER, ledger)
        self.image_id = image_id

    async def open(self) -> None:
        self._current_user()
        await self._open_feed({"image_id": self.image_id}, Order("created_at", ascending=True))

    async def send(self, text: str) -> Entity[CommentPayload] | None:
        """
        Post a comment; a lone emoji is stored as a reaction comment.

        Raises:
            ValidationError: If the input is empty
            AuthenticationError: If nobody is signed in
            NetworkError: If the insert failed; the optimistic entry is gone
        """
        trimmed = (text or "").strip()
        if is_emoji(trimmed):
            payload = CommentPayload(image_id=self.image_id, text="", reaction=trimmed)
        else:
            payload = CommentPayload(image_id=self.image_id, text=trimmed, reaction=None)
        validate_comment(payload)
        user = self._current_user()

        temporary_id = self.ledger.insert_optimistic(payload, user.user_id)
        durable = await self._insert_pending(
            temporary_id, COMMENT_DECODER.to_record(payload, user.user_id), "post the comment", image_id=self.image_id
        )
        log_user_action(user.user_id, "comment_posted", image_id=self.image_id, is_reaction=payload.reaction is not None)
        return durable
