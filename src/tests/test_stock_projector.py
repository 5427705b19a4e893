"""Tests for the stock projector fold."""

import random
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from src.models.enums import StockStatus, TransactionType
from src.services.stock_projector import (
    ProjectedStock,
    apply_transaction,
    classify_stock_status,
    fold_transactions,
    stock_delta,
)


def _tx(kind, quantity, on=date(2026, 1, 1)):
    return SimpleNamespace(transaction_type=kind, quantity=Decimal(quantity), transaction_date=on)


class TestStockDelta:
    @pytest.mark.parametrize(
        "kind,quantity,expected",
        [
            ("restock", "10", Decimal("10")),
            ("usage", "4", Decimal("-4")),
            ("write-off", "3", Decimal("-3")),
            ("adjustment", "2", Decimal("2")),
            ("adjustment", "-2", Decimal("-2")),
        ],
    )
    def test_signed_effect(self, kind, quantity, expected):
        assert stock_delta(kind, Decimal(quantity)) == expected

    def test_accepts_enum(self):
        assert stock_delta(TransactionType.USAGE, Decimal("1")) == Decimal("-1")

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            stock_delta("spill", Decimal("1"))


class TestApplyTransaction:
    def test_usage_reduces_stock(self):
        state = apply_transaction(ProjectedStock(Decimal("100")), "usage", Decimal("95"))
        assert state.current_stock == Decimal("5")

    def test_write_off_clamps_at_zero(self):
        state = apply_transaction(ProjectedStock(Decimal("50")), "write-off", Decimal("1000"))
        assert state.current_stock == Decimal("0")

    def test_negative_adjustment_clamps_at_zero(self):
        state = apply_transaction(ProjectedStock(Decimal("3")), "adjustment", Decimal("-10"))
        assert state.current_stock == Decimal("0")

    def test_restock_stamps_last_restocked(self):
        restocked_on = date(2026, 3, 14)
        state = apply_transaction(ProjectedStock(), "restock", Decimal("12"), restocked_on)
        assert state.current_stock == Decimal("12")
        assert state.last_restocked == restocked_on

    def test_non_restock_keeps_last_restocked(self):
        previous = date(2026, 2, 1)
        state = apply_transaction(
            ProjectedStock(Decimal("10"), previous), "usage", Decimal("1"), date(2026, 2, 5)
        )
        assert state.last_restocked == previous

    def test_result_is_quantized(self):
        state = apply_transaction(ProjectedStock(), "restock", Decimal("1.23456"))
        assert state.current_stock == Decimal("1.235")
        assert state.current_stock.as_tuple().exponent == -3


class TestFoldTransactions:
    def test_empty_ledger_is_zero(self):
        assert fold_transactions([]) == ProjectedStock(Decimal("0.000"), None)

    def test_order_matters_because_of_clamping(self):
        usage_first = [_tx("usage", "10"), _tx("restock", "10")]
        restock_first = [_tx("restock", "10"), _tx("usage", "10")]

        assert fold_transactions(usage_first).current_stock == Decimal("10")
        assert fold_transactions(restock_first).current_stock == Decimal("0")

    def test_incremental_matches_replay(self):
        rng = random.Random(20261019)
        kinds = ["restock", "usage", "adjustment", "write-off"]

        for _ in range(50):
            transactions = []
            for day in range(1, rng.randint(1, 30)):
                kind = rng.choice(kinds)
                quantity = Decimal(rng.randint(1, 5000)) / Decimal(100)
                if kind == "adjustment" and rng.random() < 0.5:
                    quantity = -quantity
                transactions.append(_tx(kind, quantity, date(2026, 1, day)))

            state = ProjectedStock()
            for tx in transactions:
                state = apply_transaction(
                    state, tx.transaction_type, tx.quantity, tx.transaction_date
                )
                assert state.current_stock >= 0

            assert fold_transactions(transactions) == state


class TestClassifyStockStatus:
    @pytest.mark.parametrize(
        "current,expected",
        [
            ("0", StockStatus.LOW),
            ("10", StockStatus.LOW),
            ("10.001", StockStatus.MEDIUM),
            ("50", StockStatus.MEDIUM),
            ("50.001", StockStatus.OK),
            ("150", StockStatus.OK),
        ],
    )
    def test_thresholds(self, current, expected):
        assert classify_stock_status(Decimal(current), Decimal("10"), Decimal("100")) is expected

    def test_reorder_point_above_half_ideal(self):
        # low wins when the reorder point is above half the ideal stock
        assert classify_stock_status(Decimal("60"), Decimal("70"), Decimal("100")) is StockStatus.LOW
