"""Tests for the inventory ledger service.

Tests cover:
- Recording each transaction type and its effect on current stock
- Defaults (unit cost, date, supplier reference) and per-item sequence
- Clamping at zero
- Reversal, deletion and replay
- Rollback of failed operations when the service owns the session
- Writers on one item serialized until commit
"""

import threading
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.models import InventoryTransaction
from src.models.base import Base
from src.services import database, inventory_service, ledger_service
from src.services.exceptions import (
    TransactionNotFound,
    UnknownItemError,
    ValidationError,
)
from src.services.locks import item_lock
from src.utils.constants import MAX_QUANTITY


def _record(session, item, kind, quantity, **extra):
    data = {"inventory_item_id": item.id, "transaction_type": kind, "quantity": quantity}
    data.update(extra)
    return ledger_service.record_transaction(data, session=session)


class TestRecordTransaction:
    def test_usage(self, session, espresso_item):
        tx = _record(session, espresso_item, "usage", Decimal("95"))

        assert espresso_item.current_stock == Decimal("5")
        assert tx.quantity == Decimal("95")
        assert tx.sequence == 2

    def test_restock_sets_last_restocked_and_defaults(self, session, espresso_item):
        tx = _record(
            session,
            espresso_item,
            "restock",
            Decimal("10"),
            transaction_date="2026-04-02",
            invoice_number="RW-1",
        )

        assert espresso_item.current_stock == Decimal("110")
        assert espresso_item.last_restocked == date(2026, 4, 2)
        assert tx.unit_cost == Decimal("2.00")
        assert tx.total_cost == Decimal("20.00")
        assert tx.supplier_ref == "Roast Works"
        assert tx.value_impact == Decimal("20.00")

    def test_explicit_unit_cost(self, session, espresso_item):
        tx = _record(session, espresso_item, "restock", Decimal("4"), unit_cost=Decimal("2.25"))
        assert tx.total_cost == Decimal("9.00")
        # unit cost of the item is not changed by a restock
        assert espresso_item.cost_per_unit == Decimal("2.00")

    def test_date_defaults_to_today(self, session, espresso_item):
        tx = _record(session, espresso_item, "usage", Decimal("1"))
        assert tx.transaction_date == date.today()

    def test_write_off_clamps_at_zero(self, session, item_factory):
        item = item_factory(current_stock=Decimal("50"))
        tx = _record(session, item, "write-off", Decimal("1000"))

        assert item.current_stock == Decimal("0")
        assert tx.value_impact == Decimal("-2000.00")

    def test_negative_adjustment(self, session, espresso_item):
        _record(session, espresso_item, "adjustment", Decimal("-12.5"), notes="Stock count")
        assert espresso_item.current_stock == Decimal("87.5")

    def test_sequence_is_per_item(self, session, espresso_item, milk_item):
        _record(session, espresso_item, "usage", Decimal("1"))
        milk_tx = _record(session, milk_item, "usage", Decimal("1"))
        espresso_tx = _record(session, espresso_item, "usage", Decimal("1"))

        assert milk_tx.sequence == 2
        assert espresso_tx.sequence == 3

    def test_unknown_item(self, session):
        with pytest.raises(UnknownItemError):
            ledger_service.record_transaction(
                {"inventory_item_id": "nope", "transaction_type": "usage", "quantity": 1},
                session=session,
            )
        assert session.query(InventoryTransaction).count() == 0

    def test_invalid_payload_reports_all_fields(self, session, espresso_item):
        with pytest.raises(ValidationError) as exc_info:
            ledger_service.record_transaction(
                {
                    "inventory_item_id": espresso_item.id,
                    "transaction_type": "usage",
                    "quantity": Decimal("-3"),
                    "unit_cost": Decimal("-1"),
                },
                session=session,
            )
        assert set(exc_info.value.field_errors) == {"quantity", "unit_cost"}
        assert espresso_item.current_stock == Decimal("100")

    def test_total_cost_cannot_be_supplied(self, session, espresso_item):
        with pytest.raises(ValidationError) as exc_info:
            _record(session, espresso_item, "usage", Decimal("1"), total_cost=Decimal("99"))
        assert "total_cost" in exc_info.value.field_errors

    def test_quantity_rounding_to_zero_rejected(self, session, espresso_item):
        with pytest.raises(ValidationError):
            _record(session, espresso_item, "usage", Decimal("0.0001"))
        assert espresso_item.current_stock == Decimal("100")

    def test_quantity_above_maximum_rejected(self, session, espresso_item):
        with pytest.raises(ValidationError) as exc_info:
            _record(session, espresso_item, "restock", Decimal("1e26"))
        assert "quantity" in exc_info.value.field_errors
        assert espresso_item.current_stock == Decimal("100")

    def test_negative_adjustment_above_maximum_rejected(self, session, espresso_item):
        with pytest.raises(ValidationError) as exc_info:
            _record(session, espresso_item, "adjustment", Decimal("-1e26"))
        assert "quantity" in exc_info.value.field_errors

    def test_unit_cost_above_maximum_rejected(self, session, espresso_item):
        with pytest.raises(ValidationError) as exc_info:
            _record(session, espresso_item, "restock", Decimal("1"), unit_cost=Decimal("1e25"))
        assert "unit_cost" in exc_info.value.field_errors

    def test_largest_quantity_accepted(self, session, espresso_item):
        tx = _record(session, espresso_item, "restock", MAX_QUANTITY)
        assert tx.quantity == MAX_QUANTITY

    def test_correction_must_reference_same_item(self, session, espresso_item, milk_item):
        milk_tx = _record(session, milk_item, "usage", Decimal("1"))
        with pytest.raises(ValidationError) as exc_info:
            _record(
                session,
                espresso_item,
                "adjustment",
                Decimal("1"),
                corrects_transaction_id=milk_tx.id,
            )
        assert "corrects_transaction_id" in exc_info.value.field_errors


class TestQueries:
    def test_get_transactions_in_ledger_order(self, session, espresso_item):
        _record(session, espresso_item, "usage", Decimal("1"), transaction_date="2026-03-05")
        _record(session, espresso_item, "restock", Decimal("5"), transaction_date="2026-03-01")

        transactions = ledger_service.get_transactions(item_id=espresso_item.id, session=session)
        assert [t.sequence for t in transactions] == [1, 2, 3]

        restocks = ledger_service.get_transactions(
            item_id=espresso_item.id, transaction_type="restock", session=session
        )
        assert [t.transaction_type for t in restocks] == ["restock"]

    def test_get_transaction_not_found(self, session):
        with pytest.raises(TransactionNotFound):
            ledger_service.get_transaction("missing", session=session)

    def test_stock_movement(self, session, espresso_item):
        _record(session, espresso_item, "usage", Decimal("3"))
        _record(session, espresso_item, "usage", Decimal("2"))
        _record(session, espresso_item, "restock", Decimal("10"))

        movement = ledger_service.get_stock_movement(espresso_item.id, session=session)
        assert movement == {
            "restock": Decimal("10"),
            "usage": Decimal("5"),
            "adjustment": Decimal("100"),
            "write-off": Decimal("0"),
        }


class TestCorrections:
    def test_reverse_usage(self, session, espresso_item):
        usage = _record(session, espresso_item, "usage", Decimal("30"))
        reversal = ledger_service.reverse_transaction(usage.id, session=session)

        assert reversal.transaction_type == "adjustment"
        assert reversal.quantity == Decimal("30")
        assert reversal.corrects_transaction_id == usage.id
        assert reversal.notes == f"Reversal of {usage.id}"
        assert espresso_item.current_stock == Decimal("100")

    def test_reverse_restock(self, session, espresso_item):
        restock = _record(session, espresso_item, "restock", Decimal("10"))
        reversal = ledger_service.reverse_transaction(restock.id, notes="Wrong supplier", session=session)

        assert reversal.quantity == Decimal("-10")
        assert reversal.notes == "Wrong supplier"
        assert espresso_item.current_stock == Decimal("100")

    def test_reverse_only_once(self, session, espresso_item):
        usage = _record(session, espresso_item, "usage", Decimal("1"))
        ledger_service.reverse_transaction(usage.id, session=session)
        with pytest.raises(ValidationError):
            ledger_service.reverse_transaction(usage.id, session=session)

    def test_delete_transaction_replays(self, session, espresso_item):
        _record(session, espresso_item, "restock", Decimal("10"), transaction_date="2026-02-01")
        mistake = _record(
            session, espresso_item, "restock", Decimal("10"), transaction_date="2026-02-09"
        )

        item = ledger_service.delete_transaction(mistake.id, session=session)

        assert item.current_stock == Decimal("110")
        assert item.last_restocked == date(2026, 2, 1)
        assert len(ledger_service.get_transactions(item_id=item.id, session=session)) == 2

    def test_delete_unknown_transaction(self, session):
        with pytest.raises(TransactionNotFound):
            ledger_service.delete_transaction("missing", session=session)


class TestReplay:
    def test_replay_matches_incremental(self, session, espresso_item):
        _record(session, espresso_item, "usage", Decimal("60"))
        _record(session, espresso_item, "write-off", Decimal("70"))
        _record(session, espresso_item, "restock", Decimal("15"), transaction_date="2026-06-01")
        _record(session, espresso_item, "adjustment", Decimal("-2.5"))

        assert espresso_item.current_stock == Decimal("12.5")
        assert ledger_service.verify_item(espresso_item.id, session=session)

        projected = ledger_service.project_item(espresso_item.id, session=session)
        assert projected.current_stock == Decimal("12.5")
        assert projected.last_restocked == date(2026, 6, 1)

    def test_replay_repairs_drift(self, session, espresso_item):
        _record(session, espresso_item, "usage", Decimal("10"))
        espresso_item.current_stock = Decimal("3")
        session.flush()

        assert not ledger_service.verify_item(espresso_item.id, session=session)
        assert ledger_service.replay_all_items(session=session) == [espresso_item.id]
        assert espresso_item.current_stock == Decimal("90")
        assert ledger_service.replay_all_items(session=session) == []


class TestSessionScope:
    """Operations without a caller session commit or roll back on their own."""

    def test_commit_and_reload(self, test_db, item_payload):
        item = inventory_service.create_item(item_payload(current_stock=Decimal("100")))
        ledger_service.record_transaction(
            {"inventory_item_id": item.id, "transaction_type": "usage", "quantity": "95"}
        )

        reloaded = inventory_service.get_item(item.id)
        assert reloaded.current_stock == Decimal("5")
        assert reloaded.stock_status.value == "low"

    def test_failed_operation_leaves_item_unchanged(self, test_db, item_payload):
        item = inventory_service.create_item(item_payload(current_stock=Decimal("10")))

        with pytest.raises(ValidationError):
            ledger_service.record_transaction(
                {
                    "inventory_item_id": item.id,
                    "transaction_type": "usage",
                    "quantity": "1",
                    "corrects_transaction_id": "missing",
                }
            )

        reloaded = inventory_service.get_item(item.id)
        assert reloaded.current_stock == Decimal("10")
        assert len(ledger_service.get_transactions(item_id=item.id)) == 1


@pytest.fixture
def file_db(tmp_path, monkeypatch):
    """A file-backed database with one connection per session, for threaded writers."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    monkeypatch.setattr(database, "get_session_factory", lambda: factory)
    yield factory
    engine.dispose()


class TestConcurrentWriters:
    def _usage(self, item_id, quantity):
        return {"inventory_item_id": item_id, "transaction_type": "usage", "quantity": quantity}

    def test_second_writer_waits_for_open_session(self, file_db, item_payload):
        item = inventory_service.create_item(item_payload(current_stock=Decimal("100")))
        outcome = []

        def second_writer():
            ledger_service.record_transaction(self._usage(item.id, "20"))
            outcome.append("recorded")

        with item_lock(item.id):
            with database.session_scope() as session:
                ledger_service.record_transaction(self._usage(item.id, "30"), session=session)
                writer = threading.Thread(target=second_writer)
                writer.start()
                writer.join(timeout=0.2)
                assert writer.is_alive()
        writer.join(timeout=10)

        assert outcome == ["recorded"]
        assert inventory_service.get_item(item.id).current_stock == Decimal("50")
        sequences = [tx.sequence for tx in ledger_service.get_transactions(item_id=item.id)]
        assert sequences == [1, 2, 3]

    def test_parallel_writers_lose_no_updates(self, file_db, item_payload):
        item = inventory_service.create_item(item_payload(current_stock=Decimal("100")))
        errors = []

        def writer():
            try:
                for _ in range(5):
                    ledger_service.record_transaction(self._usage(item.id, "1"))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert errors == []
        assert inventory_service.get_item(item.id).current_stock == Decimal("80")
        assert ledger_service.verify_item(item.id)
