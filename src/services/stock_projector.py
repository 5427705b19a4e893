"""Stock projector - folds ledger transactions into current stock.

The ledger is the only source of stock changes. This module holds the pure
fold used both incrementally (one new transaction applied to an item's
stored projection) and for full replay (all of an item's transactions in
ledger order, starting from zero). Both paths go through apply_transaction()
so they always agree.

Effect of each transaction type on current stock:

    restock     + quantity   (also stamps last_restocked)
    usage       - quantity
    adjustment  + quantity   (quantity may be negative)
    write-off   - quantity

The result is clamped at zero after every transaction.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from src.models.enums import StockStatus, TransactionType
from src.utils.constants import MEDIUM_STOCK_RATIO

from .costing import quantize_quantity

ZERO = Decimal("0")


@dataclass(frozen=True)
class ProjectedStock:
    """Projection of an item's ledger: stock on hand and last restock date."""

    current_stock: Decimal = ZERO
    last_restocked: Optional[date] = None


def stock_delta(transaction_type: Any, quantity: Any) -> Decimal:
    """
    Signed change in stock for one transaction.

    Args:
        transaction_type: TransactionType or its string value
        quantity: Transaction quantity

    Returns:
        Signed delta before clamping
    """
    kind = TransactionType(transaction_type)
    amount = Decimal(str(quantity)) if not isinstance(quantity, Decimal) else quantity

    if kind in (TransactionType.RESTOCK, TransactionType.ADJUSTMENT):
        return amount
    return -amount


def apply_transaction(
    state: ProjectedStock,
    transaction_type: Any,
    quantity: Any,
    transaction_date: Optional[date] = None,
) -> ProjectedStock:
    """
    Fold one transaction into a projection.

    Args:
        state: Projection before the transaction
        transaction_type: TransactionType or its string value
        quantity: Transaction quantity
        transaction_date: Business date, recorded as last_restocked for restocks

    Returns:
        New projection with stock clamped to zero
    """
    new_stock = max(ZERO, Decimal(state.current_stock) + stock_delta(transaction_type, quantity))

    last_restocked = state.last_restocked
    if TransactionType(transaction_type) is TransactionType.RESTOCK:
        last_restocked = transaction_date

    return ProjectedStock(quantize_quantity(new_stock), last_restocked)


def fold_transactions(
    transactions: Iterable[Any], initial: Optional[ProjectedStock] = None
) -> ProjectedStock:
    """
    Replay transactions in the order given.

    Args:
        transactions: Objects with transaction_type, quantity, transaction_date
            (InventoryTransaction rows, in ledger order)
        initial: Starting projection (defaults to empty stock)

    Returns:
        Final projection
    """
    state = initial or ProjectedStock(quantize_quantity(ZERO), None)
    for tx in transactions:
        state = apply_transaction(state, tx.transaction_type, tx.quantity, tx.transaction_date)
    return state


def projection_of(item: Any) -> ProjectedStock:
    """Read the stored projection from an InventoryItem."""
    return ProjectedStock(quantize_quantity(item.current_stock or ZERO), item.last_restocked)


def store_projection(item: Any, state: ProjectedStock) -> None:
    """Write a projection onto an InventoryItem. The only writer of current_stock."""
    item.current_stock = state.current_stock
    item.last_restocked = state.last_restocked


def classify_stock_status(current_stock: Any, reorder_point: Any, ideal_stock: Any) -> StockStatus:
    """
    Classify stock on hand.

    Args:
        current_stock: Stock on hand
        reorder_point: Threshold for "low"
        ideal_stock: Target stock; half of it bounds "medium"

    Returns:
        StockStatus.LOW if current <= reorder point,
        StockStatus.MEDIUM if current <= ideal * 0.5,
        StockStatus.OK otherwise
    """
    current = Decimal(str(current_stock or 0))
    if current <= Decimal(str(reorder_point or 0)):
        return StockStatus.LOW
    if current <= Decimal(str(ideal_stock or 0)) * MEDIUM_STOCK_RATIO:
        return StockStatus.MEDIUM
    return StockStatus.OK
