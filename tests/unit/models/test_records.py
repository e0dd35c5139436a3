"""
Unit tests for row decoders.
"""

from datetime import UTC, date, datetime

import pytest

from pairgallery.error_handling import RecordDecodeError
from pairgallery.models.entity import ChangeKind
from pairgallery.models.records import (
    COMMENT_DECODER,
    EVENT_DECODER,
    MEDIA_DECODER,
    MESSAGE_DECODER,
    REACTION_DECODER,
    CommentPayload,
    EventPayload,
    MediaPayload,
    MessagePayload,
    ReactionPayload,
)
from tests.conftest import TestDataFactory


class TestMessageDecoder:
    """Test cases for MESSAGE_DECODER."""

    def test_decode_row(self):
        entity = MESSAGE_DECODER.decode(TestDataFactory.create_message_row(text="hey", sender_id="u2"))

        assert entity.id == "m1"
        assert entity.owner_id == "u2"
        assert entity.payload == MessagePayload(text="hey", household_id="household-1")
        assert entity.created_at == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    def test_missing_id_is_rejected(self):
        row = TestDataFactory.create_message_row()
        del row["id"]

        with pytest.raises(RecordDecodeError):
            MESSAGE_DECODER.decode(row)

    def test_invalid_created_at_is_rejected(self):
        row = TestDataFactory.create_message_row()
        row["created_at"] = "not a date"

        with pytest.raises(RecordDecodeError) as exc_info:
            MESSAGE_DECODER.decode(row)
        assert exc_info.value.details["value"] == "not a date"

    def test_non_string_text_is_rejected(self):
        row = TestDataFactory.create_message_row()
        row["text"] = 42

        with pytest.raises(RecordDecodeError):
            MESSAGE_DECODER.decode(row)

    def test_non_mapping_is_rejected(self):
        with pytest.raises(RecordDecodeError):
            MESSAGE_DECODER.decode(["m1", "hello"])

    def test_decode_many_skips_malformed_rows(self):
        rows = [TestDataFactory.create_message_row("m1"), {"id": "broken"}, TestDataFactory.create_message_row("m2")]

        entities = MESSAGE_DECODER.decode_many(rows)

        assert [entity.id for entity in entities] == ["m1", "m2"]

    def test_to_record_sets_owner(self):
        record = MESSAGE_DECODER.to_record(MessagePayload(text="hi", household_id="h1"), "u1")

        assert record == {"text": "hi", "household_id": "h1", "sender_id": "u1"}


class TestDecodeChange:
    """Test cases for realtime payload decoding."""

    def test_insert(self):
        row = TestDataFactory.create_message_row()
        event = MESSAGE_DECODER.decode_change({"eventType": "INSERT", "new": row, "old": {}})

        assert event.kind is ChangeKind.INSERTED
        assert event.entity is not None and event.entity.payload.text == "hello"

    def test_update(self):
        row = TestDataFactory.create_message_row(text="edited")
        event = MESSAGE_DECODER.decode_change({"eventType": "UPDATE", "new": row, "old": {"id": "m1"}})

        assert event.kind is ChangeKind.UPDATED

    def test_delete_with_only_primary_key(self):
        event = MESSAGE_DECODER.decode_change({"eventType": "DELETE", "new": {}, "old": {"id": "m1"}})

        assert event.kind is ChangeKind.DELETED
        assert event.entity_id == "m1"
        assert event.entity is None

    def test_unknown_event_type(self):
        with pytest.raises(RecordDecodeError):
            MESSAGE_DECODER.decode_change({"eventType": "TRUNCATE", "new": {}, "old": {}})

    def test_delete_without_id(self):
        with pytest.raises(RecordDecodeError):
            MESSAGE_DECODER.decode_change({"eventType": "DELETE", "new": {}, "old": {}})


class TestMediaDecoder:
    def test_decode_photo(self):
        entity = MEDIA_DECODER.decode(TestDataFactory.create_media_row(favorite=True))

        assert entity.owner_id == "test-user-123"
        assert entity.payload.favorite is True
        assert entity.payload.private is False
        assert not entity.payload.is_video

    def test_string_booleans(self):
        row = TestDataFactory.create_media_row()
        row["private"] = "true"

        assert MEDIA_DECODER.decode(row).payload.private is True

    def test_video(self):
        entity = MEDIA_DECODER.decode(TestDataFactory.create_media_row(media_type="video"))

        assert entity.payload.is_video

    def test_unknown_media_type(self):
        with pytest.raises(RecordDecodeError):
            MEDIA_DECODER.decode(TestDataFactory.create_media_row(media_type="hologram"))

    def test_missing_url(self):
        row = TestDataFactory.create_media_row()
        row["image_url"] = ""

        with pytest.raises(RecordDecodeError):
            MEDIA_DECODER.decode(row)

    def test_to_record(self):
        payload = MediaPayload(image_url="https://cdn/x.jpg", file_name="x.jpg", storage_type="imagekit", private=True)

        record = MEDIA_DECODER.to_record(payload, "u1")

        assert record["type"] == "photo"
        assert record["private"] is True
        assert record["user_id"] == "u1"


class TestFeedbackDecoders:
    def test_comment_with_reaction(self):
        row = {"id": "c1", "image_id": "img1", "user_id": "u1", "text": "", "reaction": "❤️", "created_at": "2024-05-01T12:00:00Z"}

        entity = COMMENT_DECODER.decode(row)

        assert entity.payload == CommentPayload(image_id="img1", text="", reaction="❤️")

    def test_reaction(self):
        row = {"id": "r1", "image_id": "img1", "user_id": "u2", "emoji": "🔥", "created_at": "2024-05-01T12:00:00Z"}

        entity = REACTION_DECODER.decode(row)

        assert entity.payload == ReactionPayload(image_id="img1", emoji="🔥")
        assert entity.owner_id == "u2"

    def test_reaction_without_emoji(self):
        row = {"id": "r1", "image_id": "img1", "user_id": "u2", "created_at": "2024-05-01T12:00:00Z"}

        with pytest.raises(RecordDecodeError):
            REACTION_DECODER.decode(row)


class TestEventDecoder:
    def test_decode_event(self):
        entity = EVENT_DECODER.decode(TestDataFactory.create_event_row(emoji="💍"))

        assert entity.owner_id == "test-user-123"
        assert entity.payload == EventPayload(
            title="Anniversary",
            day=date(2024, 6, 1),
            event_type="anniversary",
            emoji="💍",
            note="",
            household_id="household-1",
        )

    def test_unknown_type_reads_as_custom(self):
        row = TestDataFactory.create_event_row(event_type="holiday")

        assert EVENT_DECODER.decode(row).payload.event_type == "custom"

    def test_timestamp_date_keeps_the_day(self):
        row = TestDataFactory.create_event_row(day="2024-06-01T00:00:00+00:00")

        assert EVENT_DECODER.decode(row).payload.day == date(2024, 6, 1)

    @pytest.mark.parametrize("field,value", [("title", ""), ("date", None), ("date", "next friday")])
    def test_invalid_rows_are_rejected(self, field, value):
        row = TestDataFactory.create_event_row()
        row[field] = value

        with pytest.raises(RecordDecodeError):
            EVENT_DECODER.decode(row)

    def test_to_record(self):
        payload = EventPayload(title="Trip", day=date(2024, 8, 3), emoji="✈️", household_id="household-1")

        assert EVENT_DECODER.to_record(payload, "u1") == {
            "title": "Trip",
            "date": "2024-08-03",
            "type": "custom",
            "emoji": "✈️",
            "note": "",
            "household_id": "household-1",
            "user_id": "u1",
        }
