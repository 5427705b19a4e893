"""Ledger Service - append-only inventory ledger and stock projection.

Every change to an item's stock is recorded here as an InventoryTransaction
and folded into the item's current_stock by the stock projector. Nothing
else writes current_stock.

All functions accept an optional session; without one they run inside
session_scope() and roll back completely on failure.

Ledger writes hold item_lock(item_id) until their own session commits;
callers passing a session of their own hold that lock until they commit.

Key Features:
- Transaction recording with validation (type, magnitude, active item)
- Incremental projection with clamping at zero
- Full replay from an empty ledger (replay_item, verify_item)
- Corrections as new transactions (reverse_transaction)
- Deletion for data-entry mistakes, followed by re-projection

Example Usage:
    >>> from decimal import Decimal
    >>> from src.services import ledger_service
    >>> tx = ledger_service.record_transaction({
    ...     "inventory_item_id": item.id,
    ...     "transaction_type": "usage",
    ...     "quantity": Decimal("95"),
    ... })
    >>> ledger_service.get_transactions(item_id=item.id)[-1].id == tx.id
    True
"""

import logging
from contextlib import ExitStack
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import InventoryItem, InventoryTransaction
from ..models.enums import TransactionType
from ..utils.constants import OPENING_BALANCE_NOTE
from ..utils.datetime_utils import coerce_date, today
from ..utils.validators import validate_no_derived_fields, validate_transaction_data
from .costing import quantize_money, quantize_quantity
from .database import session_scope
from .exceptions import (
    DatabaseError,
    InvariantViolation,
    ServiceError,
    TransactionNotFound,
    ValidationError,
)
from .inventory_service import resolve_item
from .locks import item_lock
from .logging_utils import get_service_logger, log_operation
from .stock_projector import (
    ProjectedStock,
    apply_transaction,
    fold_transactions,
    projection_of,
    stock_delta,
    store_projection,
)

logger = get_service_logger(__name__)

DERIVED_TRANSACTION_FIELDS = ("total_cost", "sequence")

T = TypeVar("T")


def _next_sequence(item_id: str, sess: Session) -> int:
    current = (
        sess.query(func.max(InventoryTransaction.sequence))
        .filter(InventoryTransaction.inventory_item_id == item_id)
        .scalar()
    )
    return (current or 0) + 1


def _ordered_transactions(item_id: str, sess: Session) -> List[InventoryTransaction]:
    return (
        sess.query(InventoryTransaction)
        .filter(InventoryTransaction.inventory_item_id == item_id)
        .order_by(InventoryTransaction.sequence.asc())
        .all()
    )


def _check_projection(item: InventoryItem, state: ProjectedStock) -> None:
    if state.current_stock < 0:
        raise InvariantViolation(
            f"InventoryItem '{item.id}'", f"negative current_stock {state.current_stock}"
        )


def _run_holding_item_lock(
    item_id: str, impl: Callable[[Session], T], session: Optional[Session]
) -> T:
    """
    Run impl with the item's ledger lock held.

    A self-owned session commits before the lock is released, so the next
    writer reads committed stock and sequence. A caller-owned session is
    only guarded while impl runs; such callers hold item_lock(item_id)
    themselves until they commit.
    """
    with item_lock(item_id):
        if session is not None:
            return impl(session)
        with session_scope() as sess:
            return impl(sess)


def record_transaction(
    transaction_data: Dict[str, Any], session: Optional[Session] = None
) -> InventoryTransaction:
    """
    Record a stock-affecting transaction and project it onto the item.

    Args:
        transaction_data: Dictionary with:
            - inventory_item_id (str, required)
            - transaction_type ("restock" | "usage" | "adjustment" | "write-off")
            - quantity: positive magnitude; adjustments may be negative
            - unit_cost (optional, defaults to the item's cost_per_unit)
            - transaction_date (optional, defaults to today)
            - supplier_ref, invoice_number, notes (optional)
            - corrects_transaction_id (optional, same item)
        session: Optional database session

    Returns:
        The recorded InventoryTransaction; its item's current_stock (and
        last_restocked for restocks) is updated

    Raises:
        ValidationError: If the payload is malformed
        UnknownItemError: If the item doesn't exist or is inactive
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_transaction_data(transaction_data)
    errors.extend(validate_no_derived_fields(transaction_data, DERIVED_TRANSACTION_FIELDS))
    if errors:
        log_operation(
            logger,
            "record_transaction",
            "validation_failed",
            level=logging.WARNING,
            inventory_item_id=transaction_data.get("inventory_item_id"),
            errors=errors,
        )
        raise ValidationError(errors)

    try:
        return _run_holding_item_lock(
            transaction_data["inventory_item_id"],
            lambda sess: _record_transaction_impl(transaction_data, sess),
            session,
        )
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to record inventory transaction", original_error=e)


def _record_transaction_impl(data: Dict[str, Any], sess: Session) -> InventoryTransaction:
    item_id = data["inventory_item_id"]
    kind = TransactionType(data["transaction_type"])

    with item_lock(item_id):
        try:
            item = resolve_item(item_id, sess, require_active=True, for_update=True)
        except ServiceError:
            log_operation(
                logger,
                "record_transaction",
                "unknown_item",
                level=logging.WARNING,
                inventory_item_id=item_id,
            )
            raise

        corrects_id = data.get("corrects_transaction_id")
        if corrects_id:
            original = sess.get(InventoryTransaction, corrects_id)
            if original is None or original.inventory_item_id != item_id:
                raise ValidationError(
                    [f"corrects_transaction_id: No transaction '{corrects_id}' for this item"]
                )

        quantity = quantize_quantity(data["quantity"])
        if quantity == 0:
            raise ValidationError(["quantity: Must not round to zero"])
        unit_cost = quantize_money(
            data["unit_cost"] if data.get("unit_cost") is not None else item.cost_per_unit
        )
        transaction_date = coerce_date(data.get("transaction_date")) or today()
        supplier_ref = data.get("supplier_ref")
        if kind is TransactionType.RESTOCK and not supplier_ref:
            supplier_ref = item.supplier

        transaction = InventoryTransaction(
            inventory_item_id=item_id,
            sequence=_next_sequence(item_id, sess),
            transaction_date=transaction_date,
            transaction_type=kind.value,
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=quantize_money(quantity * unit_cost),
            supplier_ref=supplier_ref,
            invoice_number=data.get("invoice_number"),
            corrects_transaction_id=corrects_id,
            notes=data.get("notes"),
        )
        if data.get("id"):
            transaction.id = data["id"]

        state = apply_transaction(projection_of(item), kind, quantity, transaction_date)
        _check_projection(item, state)

        sess.add(transaction)
        store_projection(item, state)
        sess.flush()

    log_operation(
        logger,
        "record_transaction",
        "success",
        transaction_id=transaction.id,
        inventory_item_id=item_id,
        transaction_type=kind.value,
        quantity=str(quantity),
        current_stock=str(item.current_stock),
    )
    return transaction


def record_opening_balance(
    item: InventoryItem, quantity: Any, session: Session
) -> InventoryTransaction:
    """
    Record an item's opening stock as a ledger adjustment.

    Args:
        item: Newly created InventoryItem (already flushed)
        quantity: Opening stock (> 0)
        session: Database session owning the item

    Returns:
        The adjustment InventoryTransaction
    """
    return record_transaction(
        {
            "inventory_item_id": item.id,
            "transaction_type": TransactionType.ADJUSTMENT.value,
            "quantity": quantity,
            "unit_cost": item.cost_per_unit,
            "notes": OPENING_BALANCE_NOTE,
        },
        session=session,
    )


def get_transaction(transaction_id: str, session: Optional[Session] = None) -> InventoryTransaction:
    """
    Get a transaction by id.

    Raises:
        TransactionNotFound: If the id doesn't exist
    """

    def _impl(sess: Session) -> InventoryTransaction:
        transaction = sess.get(InventoryTransaction, transaction_id)
        if transaction is None:
            raise TransactionNotFound(transaction_id)
        return transaction

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_transactions(
    item_id: Optional[str] = None,
    transaction_type: Optional[Any] = None,
    session: Optional[Session] = None,
) -> List[InventoryTransaction]:
    """
    List transactions in ledger order.

    Args:
        item_id: Optional inventory item filter
        transaction_type: Optional TransactionType (or value) filter
        session: Optional database session

    Returns:
        Transactions ordered by item then sequence
    """

    def _impl(sess: Session) -> List[InventoryTransaction]:
        q = sess.query(InventoryTransaction)
        if item_id:
            q = q.filter(InventoryTransaction.inventory_item_id == item_id)
        if transaction_type:
            q = q.filter(
                InventoryTransaction.transaction_type == TransactionType(transaction_type).value
            )
        return q.order_by(
            InventoryTransaction.inventory_item_id, InventoryTransaction.sequence
        ).all()

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def reverse_transaction(
    transaction_id: str, notes: Optional[str] = None, session: Optional[Session] = None
) -> InventoryTransaction:
    """
    Correct a transaction by recording its opposite as a new adjustment.

    The original stays in the ledger. Because stock is clamped at zero, a
    reversal restores the previous level only when the original did not hit
    the clamp.

    Args:
        transaction_id: Transaction to reverse
        notes: Optional note; defaults to "Reversal of <id>"
        session: Optional database session

    Returns:
        The compensating adjustment transaction

    Raises:
        TransactionNotFound: If the id doesn't exist
        ValidationError: If the transaction was already reversed
        UnknownItemError: If the item is inactive
    """

    def _impl(sess: Session) -> InventoryTransaction:
        original = get_transaction(transaction_id, session=sess)
        already = (
            sess.query(InventoryTransaction)
            .filter(InventoryTransaction.corrects_transaction_id == transaction_id)
            .first()
        )
        if already is not None:
            raise ValidationError(
                [f"corrects_transaction_id: Transaction '{transaction_id}' already reversed"]
            )

        return record_transaction(
            {
                "inventory_item_id": original.inventory_item_id,
                "transaction_type": TransactionType.ADJUSTMENT.value,
                "quantity": -stock_delta(original.transaction_type, original.quantity),
                "unit_cost": original.unit_cost,
                "corrects_transaction_id": original.id,
                "notes": notes or f"Reversal of {original.id}",
            },
            session=sess,
        )

    try:
        item_id = get_transaction(transaction_id, session=session).inventory_item_id
        return _run_holding_item_lock(item_id, _impl, session)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to reverse transaction {transaction_id}", original_error=e)


def delete_transaction(transaction_id: str, session: Optional[Session] = None) -> InventoryItem:
    """
    Delete a transaction and re-project its item from the remaining ledger.

    Intended for data-entry mistakes only; prefer reverse_transaction.

    Returns:
        The re-projected InventoryItem

    Raises:
        TransactionNotFound: If the id doesn't exist
    """

    def _impl(sess: Session) -> InventoryItem:
        transaction = get_transaction(transaction_id, session=sess)
        item_id = transaction.inventory_item_id
        with item_lock(item_id):
            sess.query(InventoryTransaction).filter(
                InventoryTransaction.corrects_transaction_id == transaction_id
            ).update({InventoryTransaction.corrects_transaction_id: None})
            sess.delete(transaction)
            sess.flush()
            item = _replay_item_impl(item_id, sess)

        log_operation(
            logger,
            "delete_transaction",
            "success",
            transaction_id=transaction_id,
            inventory_item_id=item_id,
            current_stock=str(item.current_stock),
        )
        return item

    try:
        item_id = get_transaction(transaction_id, session=session).inventory_item_id
        return _run_holding_item_lock(item_id, _impl, session)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete transaction {transaction_id}", original_error=e)


def project_item(item_id: str, session: Optional[Session] = None) -> ProjectedStock:
    """
    Compute an item's projection by replaying its ledger from zero.

    Read-only; the stored projection is not changed.

    Raises:
        UnknownItemError: If the id doesn't exist
    """

    def _impl(sess: Session) -> ProjectedStock:
        resolve_item(item_id, sess)
        return fold_transactions(_ordered_transactions(item_id, sess))

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def _replay_item_impl(item_id: str, sess: Session) -> InventoryItem:
    item = resolve_item(item_id, sess, for_update=True)
    state = fold_transactions(_ordered_transactions(item_id, sess))
    _check_projection(item, state)
    store_projection(item, state)
    sess.flush()
    return item


def replay_item(item_id: str, session: Optional[Session] = None) -> InventoryItem:
    """
    Re-run projection for an item from its full ledger and store the result.

    Returns:
        The InventoryItem with current_stock and last_restocked rebuilt

    Raises:
        UnknownItemError: If the id doesn't exist
    """

    def _impl(sess: Session) -> InventoryItem:
        with item_lock(item_id):
            item = _replay_item_impl(item_id, sess)
        log_operation(
            logger,
            "replay_item",
            "success",
            inventory_item_id=item_id,
            current_stock=str(item.current_stock),
        )
        return item

    try:
        return _run_holding_item_lock(item_id, _impl, session)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to replay inventory item {item_id}", original_error=e)


def verify_item(item_id: str, session: Optional[Session] = None) -> bool:
    """
    Check that an item's stored projection matches a full replay.

    Returns:
        True if current_stock and last_restocked agree with the ledger
    """

    def _impl(sess: Session) -> bool:
        item = resolve_item(item_id, sess)
        replayed = project_item(item_id, session=sess)
        matches = projection_of(item) == replayed
        if not matches:
            log_operation(
                logger,
                "verify_item",
                "mismatch",
                level=logging.WARNING,
                inventory_item_id=item_id,
                stored=str(item.current_stock),
                replayed=str(replayed.current_stock),
            )
        return matches

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def replay_all_items(session: Optional[Session] = None) -> List[str]:
    """
    Replay every item's ledger and repair stored projections that drifted.

    Returns:
        Ids of the items whose stored projection was corrected
    """

    def _impl(sess: Session) -> List[str]:
        corrected = []
        for item in sess.query(InventoryItem).order_by(InventoryItem.id).all():
            with item_lock(item.id):
                before = projection_of(item)
                _replay_item_impl(item.id, sess)
                if projection_of(item) != before:
                    corrected.append(item.id)
        log_operation(logger, "replay_all_items", "success", corrected=corrected)
        return corrected

    try:
        if session is not None:
            return _impl(session)
        # Every item stays locked until the replay commits
        with ExitStack() as held:
            with session_scope() as lookup:
                item_ids = [
                    row.id for row in lookup.query(InventoryItem.id).order_by(InventoryItem.id)
                ]
            for item_id in item_ids:
                held.enter_context(item_lock(item_id))
            with session_scope() as sess:
                return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to replay inventory ledger", original_error=e)


def get_stock_movement(item_id: str, session: Optional[Session] = None) -> Dict[str, Decimal]:
    """
    Summarize an item's ledger by transaction type.

    Returns:
        Dict mapping each transaction type value to the summed quantity
    """
    totals = {kind.value: quantize_quantity(0) for kind in TransactionType}
    for transaction in get_transactions(item_id=item_id, session=session):
        totals[transaction.transaction_type] += Decimal(transaction.quantity)
    return {kind: quantize_quantity(total) for kind, total in totals.items()}
