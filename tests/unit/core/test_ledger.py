"""
Unit tests for the optimistic mutation ledger.
"""

from datetime import UTC, datetime, timedelta

import pytest

from pairgallery.core.ledger import OptimisticLedger
from pairgallery.error_handling import ValidationError
from pairgallery.models.entity import ChangeEvent, Entity, TemporaryIdFactory, is_temporary_id
from pairgallery.models.records import MessagePayload
from pairgallery.services.chat import validate_message

BASE = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def make_clock(start: datetime = BASE):
    moments = iter(start + timedelta(seconds=i) for i in range(1000))
    return lambda: next(moments)


def durable(entity_id: str, text: str, minutes: int = 0, owner: str = "u1") -> Entity[MessagePayload]:
    return Entity(id=entity_id, owner_id=owner, payload=MessagePayload(text=text), created_at=BASE + timedelta(minutes=minutes))


def texts(ledger: OptimisticLedger) -> list[str]:
    return [entity.payload.text for entity in ledger.entries()]


class TestTemporaryIds:
    """Test cases for temporary id minting."""

    def test_ids_are_unique_and_marked(self):
        factory = TemporaryIdFactory()
        ids = {factory.new_id() for _ in range(500)}

        assert len(ids) == 500
        assert all(is_temporary_id(entity_id) for entity_id in ids)
        assert not is_temporary_id("8c1f0d3e-durable")


class TestOptimisticInsert:
    """Test cases for insert_optimistic."""

    def setup_method(self):
        self.ledger: OptimisticLedger[MessagePayload] = OptimisticLedger(
            "messages", validator=validate_message, clock=make_clock()
        )

    def test_insert_appends_temporary_entry(self):
        temporary_id = self.ledger.insert_optimistic(MessagePayload(text="  hi  "), "u1")

        assert is_temporary_id(temporary_id)
        assert len(self.ledger) == 1
        entity = self.ledger.get(temporary_id)
        assert entity is not None
        assert entity.payload.text == "hi"
        assert entity.owner_id == "u1"
        assert self.ledger.pending_ids() == [temporary_id]

    def test_validation_failure_leaves_ledger_unchanged(self):
        with pytest.raises(ValidationError) as exc_info:
            self.ledger.insert_optimistic(MessagePayload(text="   "), "u1")

        assert exc_info.value.code == "empty_message"
        assert len(self.ledger) == 0

    def test_missing_owner_is_rejected(self):
        with pytest.raises(ValidationError):
            self.ledger.insert_optimistic(MessagePayload(text="hi"), "")
        assert len(self.ledger) == 0

    def test_listeners_receive_snapshots(self):
        snapshots = []
        remove = self.ledger.add_listener(snapshots.append)

        self.ledger.insert_optimistic(MessagePayload(text="one"), "u1")
        remove()
        self.ledger.insert_optimistic(MessagePayload(text="two"), "u1")

        assert len(snapshots) == 1
        assert [entity.payload.text for entity in snapshots[0]] == ["one"]

    def test_failing_listener_does_not_break_mutation(self):
        def broken(_snapshot):
            raise RuntimeError("listener bug")

        self.ledger.add_listener(broken)
        self.ledger.insert_optimistic(MessagePayload(text="still stored"), "u1")

        assert texts(self.ledger) == ["still stored"]


class TestReconcile:
    """Test cases for reconcile and the optimistic-then-confirm flow."""

    def setup_method(self):
        self.ledger: OptimisticLedger[MessagePayload] = OptimisticLedger("messages", clock=make_clock())

    def test_reconcile_replaces_temporary_entry(self):
        temporary_id = self.ledger.insert_optimistic(MessagePayload(text="hi"), "u1")

        assert self.ledger.reconcile(temporary_id, durable("d1", "hi"))

        assert [entity.id for entity in self.ledger.entries()] == ["d1"]
        assert self.ledger.pending_ids() == []

    def test_change_event_before_reconcile_yields_single_entry(self):
        temporary_id = self.ledger.insert_optimistic(MessagePayload(text="hi"), "u1")
        row = durable("d1", "hi")

        self.ledger.merge_remote(ChangeEvent.inserted(row))
        self.ledger.reconcile(temporary_id, row)

        assert [entity.id for entity in self.ledger.entries()] == ["d1"]

    def test_confirmed_and_direct_merge_converge(self):
        confirmed: OptimisticLedger[MessagePayload] = OptimisticLedger("a", clock=make_clock())
        merged: OptimisticLedger[MessagePayload] = OptimisticLedger("b")
        rows = [durable("d1", "first", 1), durable("d2", "second", 2)]

        for row in rows:
            temporary_id = confirmed.insert_optimistic(row.payload, row.owner_id)
            confirmed.reconcile(temporary_id, row)
            confirmed.merge_remote(ChangeEvent.inserted(row))
        for row in reversed(rows):
            merged.merge_remote(ChangeEvent.inserted(row))

        assert confirmed.entries() == merged.entries()

    def test_reconcile_after_rollback_is_noop(self):
        temporary_id = self.ledger.insert_optimistic(MessagePayload(text="hi"), "u1")
        self.ledger.rollback(temporary_id)

        assert self.ledger.reconcile(temporary_id, durable("d1", "hi")) is False
        assert len(self.ledger) == 0

    def test_reconcile_rejects_temporary_durable(self):
        temporary_id = self.ledger.insert_optimistic(MessagePayload(text="hi"), "u1")
        fake = Entity(id="temp-1-1", owner_id="u1", payload=MessagePayload(text="hi"), created_at=BASE)

        with pytest.raises(ValueError):
            self.ledger.reconcile(temporary_id, fake)

    def test_reconcile_resorts_by_durable_timestamp(self):
        first = self.ledger.insert_optimistic(MessagePayload(text="late on server"), "u1")
        self.ledger.merge_remote(ChangeEvent.inserted(durable("d0", "early", 0)))
        self.ledger.merge_remote(ChangeEvent.inserted(durable("d9", "partner", 30)))

        self.ledger.reconcile(first, durable("d5", "late on server", 60))

        assert [entity.id for entity in self.ledger.entries()] == ["d0", "d9", "d5"]


class TestRollback:
    """Test cases for rollback safety."""

    def setup_method(self):
        self.ledger: OptimisticLedger[MessagePayload] = OptimisticLedger("messages", clock=make_clock())

    def test_rollback_removes_only_its_entry(self):
        keep = self.ledger.insert_optimistic(MessagePayload(text="keep"), "u1")
        drop = self.ledger.insert_optimistic(MessagePayload(text="drop"), "u1")

        assert self.ledger.rollback(drop)

        assert [entity.id for entity in self.ledger.entries()] == [keep]

    def test_rollback_after_reconcile_is_noop(self):
        temporary_id = self.ledger.insert_optimistic(MessagePayload(text="hi"), "u1")
        self.ledger.reconcile(temporary_id, durable("d1", "hi"))
        before = self.ledger.entries()

        assert self.ledger.rollback(temporary_id) is False
        assert self.ledger.entries() == before

    def test_double_rollback_is_noop(self):
        temporary_id = self.ledger.insert_optimistic(MessagePayload(text="hi"), "u1")

        assert self.ledger.rollback(temporary_id)
        assert self.ledger.rollback(temporary_id) is False

    def test_rollback_never_touches_durable_ids(self):
        self.ledger.merge_remote(ChangeEvent.inserted(durable("d1", "hi")))

        assert self.ledger.rollback("d1") is False
        assert "d1" in self.ledger


class TestMergeRemote:
    """Test cases for idempotent change event merging."""

    def setup_method(self):
        self.ledger: OptimisticLedger[MessagePayload] = OptimisticLedger("messages")

    def test_redelivered_insert_is_ignored(self):
        event = ChangeEvent.inserted(durable("d1", "hi"))

        assert self.ledger.merge_remote(event)
        for _ in range(3):
            assert self.ledger.merge_remote(event) is False

        assert len(self.ledger) == 1

    def test_update_replaces_in_place(self):
        self.ledger.merge_remote(ChangeEvent.inserted(durable("d1", "hi")))

        self.ledger.merge_remote(ChangeEvent.updated(durable("d1", "edited")))

        assert texts(self.ledger) == ["edited"]

    def test_update_of_absent_entity_inserts_it(self):
        self.ledger.merge_remote(ChangeEvent.updated(durable("d1", "late")))

        assert texts(self.ledger) == ["late"]

    def test_delete_is_idempotent(self):
        self.ledger.merge_remote(ChangeEvent.inserted(durable("d1", "hi")))

        assert self.ledger.merge_remote(ChangeEvent.deleted("d1"))
        assert self.ledger.merge_remote(ChangeEvent.deleted("d1")) is False
        assert len(self.ledger) == 0

    def test_delete_carrying_full_row(self):
        entity = durable("d1", "hi")
        self.ledger.merge_remote(ChangeEvent.inserted(entity))

        assert self.ledger.merge_remote(ChangeEvent.deleted("d1", entity))
        assert len(self.ledger) == 0

    def test_out_of_order_events_sort_by_created_at(self):
        self.ledger.merge_remote(ChangeEvent.inserted(durable("d2", "second", 2)))
        self.ledger.merge_remote(ChangeEvent.inserted(durable("d1", "first", 1)))

        assert texts(self.ledger) == ["first", "second"]

    def test_newest_first_ordering(self):
        gallery: OptimisticLedger[MessagePayload] = OptimisticLedger("images", newest_first=True)
        gallery.merge_remote(ChangeEvent.inserted(durable("d1", "old", 1)))
        gallery.merge_remote(ChangeEvent.inserted(durable("d2", "new", 2)))

        assert texts(gallery) == ["new", "old"]


class TestLoadAndLocalEdits:
    """Test cases for load, remove, restore and replace."""

    def setup_method(self):
        self.ledger: OptimisticLedger[MessagePayload] = OptimisticLedger("messages", clock=make_clock())

    def test_load_keeps_pending_entries(self):
        temporary_id = self.ledger.insert_optimistic(MessagePayload(text="sending"), "u1")

        self.ledger.load([durable("d1", "a", -5), durable("d2", "b", -4), durable("d1", "a", -5)])

        assert [entity.id for entity in self.ledger.entries()] == ["d1", "d2", temporary_id]

    def test_remove_and_restore(self):
        self.ledger.load([durable("d1", "a", 1), durable("d2", "b", 2)])

        removed = self.ledger.remove("d1")
        assert removed is not None
        assert texts(self.ledger) == ["b"]

        self.ledger.restore(removed)
        self.ledger.restore(removed)
        assert texts(self.ledger) == ["a", "b"]

    def test_replace_returns_previous(self):
        self.ledger.load([durable("d1", "a")])

        previous = self.ledger.replace(durable("d1", "edited"))

        assert previous is not None and previous.payload.text == "a"
        assert texts(self.ledger) == ["edited"]
        assert self.ledger.replace(durable("missing", "x")) is None

    def test_index_of(self):
        self.ledger.load([durable("d1", "a", 1), durable("d2", "b", 2)])

        assert self.ledger.index_of("d2") == 1
        assert self.ledger.index_of("nope") == -1
