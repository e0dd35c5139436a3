"""
Models module for pairgallery.

This module contains data models and schemas:
- Entity, ChangeEvent: ledger items and pushed changes
- Payload dataclasses and RowDecoder instances for each gateway table
- DatabaseManager: local preferences database
"""

from .database import DatabaseManager, get_database_manager
from .entity import ChangeEvent, ChangeKind, Entity, TemporaryIdFactory, is_temporary_id, parse_timestamp, utc_now
from .records import (
    COMMENT_DECODER,
    MEDIA_DECODER,
    MEDIA_TYPE_PHOTO,
    MEDIA_TYPE_VIDEO,
    MESSAGE_DECODER,
    REACTION_DECODER,
    CommentPayload,
    MediaPayload,
    MessagePayload,
    ReactionPayload,
    RowDecoder,
)

__all__ = [
    "COMMENT_DECODER",
    "MEDIA_DECODER",
    "MEDIA_TYPE_PHOTO",
    "MEDIA_TYPE_VIDEO",
    "MESSAGE_DECODER",
    "REACTION_DECODER",
    "ChangeEvent",
    "ChangeKind",
    "CommentPayload",
    "DatabaseManager",
    "Entity",
    "MediaPayload",
    "MessagePayload",
    "ReactionPayload",
    "RowDecoder",
    "TemporaryIdFactory",
    "get_database_manager",
    "is_temporary_id",
    "parse_timestamp",
    "utc_now",
]
