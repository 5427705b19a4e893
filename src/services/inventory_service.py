"""Inventory Service - the inventory catalog.

This module owns the authoritative record of stocked goods: identity, unit
of measure, unit cost, thresholds, supplier and location. Current stock is
not editable here; it is projected from the ledger (see ledger_service).

Items are deactivated, never deleted, so historical ledger entries and
recipes referencing them keep resolving.

Key Features:
- Create/edit with full validation (every violated field is reported)
- Opening stock recorded through the ledger
- Unit-cost edits cascade into recipe costs and menu profitability
- Name/unit edits refresh the ingredient snapshots held by recipes
- Low-stock, restock suggestion, stock value and expiry queries

Example Usage:
    >>> from decimal import Decimal
    >>> from src.services import inventory_service
    >>> item = inventory_service.upsert_item({
    ...     "name": "Whole Milk",
    ...     "category": "Dairy",
    ...     "unit": "l",
    ...     "reorder_point": Decimal("10"),
    ...     "ideal_stock": Decimal("40"),
    ...     "cost_per_unit": Decimal("1.20"),
    ...     "supplier": "Valley Dairy",
    ...     "current_stock": Decimal("25"),
    ... })
    >>> item.stock_status.value
    'medium'
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import InventoryItem
from ..models.enums import StockStatus
from ..utils.constants import ERROR_ROUNDS_TO_ZERO, EXPIRING_SOON_DAYS
from ..utils.datetime_utils import coerce_date, today
from ..utils.validators import validate_inventory_item_data, validate_no_derived_fields
from .costing import quantize_money, quantize_quantity
from .database import session_scope
from .exceptions import (
    DatabaseError,
    ServiceError,
    UnknownItemError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

# Fields an edit payload may change
EDITABLE_FIELDS = (
    "name",
    "category",
    "unit",
    "reorder_point",
    "ideal_stock",
    "cost_per_unit",
    "supplier",
    "location",
    "expiry_date",
    "notes",
)


def _normalize_item_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce numeric and date fields of a validated payload to stored types."""
    result = {}
    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in ("reorder_point", "ideal_stock"):
            value = quantize_quantity(value)
        elif field == "cost_per_unit":
            value = quantize_money(value)
        elif field == "expiry_date":
            value = coerce_date(value)
        elif isinstance(value, str):
            value = value.strip()
        result[field] = value
    return result


def _check_expiry(errors: List[str], expiry_date, last_restocked) -> None:
    if expiry_date and last_restocked and expiry_date < last_restocked:
        errors.append("expiry_date: Must not be before last_restocked")


def _get_item_impl(item_id: str, sess: Session, require_active: bool = False) -> InventoryItem:
    item = sess.get(InventoryItem, item_id) if item_id else None
    if item is None:
        raise UnknownItemError(item_id)
    if require_active and not item.is_active:
        raise UnknownItemError(item_id, reason="inactive")
    return item


def resolve_item(
    item_id: str, session: Session, require_active: bool = False, for_update: bool = False
) -> InventoryItem:
    """
    Resolve an inventory item id inside a caller-owned session.

    Used by the ledger and costing services.

    Args:
        item_id: Inventory item id
        session: Database session
        require_active: If True, inactive items are reported as unknown
        for_update: If True, lock the item row on backends that support it

    Returns:
        InventoryItem

    Raises:
        UnknownItemError: If the id doesn't exist (or is inactive when required)
    """
    if for_update and item_id:
        item = (
            session.query(InventoryItem)
            .filter(InventoryItem.id == item_id)
            .with_for_update()
            .first()
        )
        if item is None:
            raise UnknownItemError(item_id)
        if require_active and not item.is_active:
            raise UnknownItemError(item_id, reason="inactive")
        return item
    return _get_item_impl(item_id, session, require_active=require_active)


def get_item(item_id: str, session: Optional[Session] = None) -> InventoryItem:
    """
    Get an inventory item by id, active or not.

    Args:
        item_id: Inventory item id
        session: Optional database session

    Returns:
        InventoryItem

    Raises:
        UnknownItemError: If the id doesn't exist
    """
    if session is not None:
        return _get_item_impl(item_id, session)
    with session_scope() as sess:
        return _get_item_impl(item_id, sess)


def get_all_items(
    category: Optional[str] = None,
    include_inactive: bool = False,
    session: Optional[Session] = None,
) -> List[InventoryItem]:
    """
    List inventory items ordered by category then name.

    Args:
        category: Optional category filter (exact match)
        include_inactive: If True, include deactivated items
        session: Optional database session

    Returns:
        List of InventoryItem
    """

    def _impl(sess: Session) -> List[InventoryItem]:
        q = sess.query(InventoryItem)
        if category:
            q = q.filter(InventoryItem.category == category)
        if not include_inactive:
            q = q.filter(InventoryItem.is_active.is_(True))
        return q.order_by(InventoryItem.category, InventoryItem.name).all()

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def search_items(
    term: str, include_inactive: bool = False, session: Optional[Session] = None
) -> List[InventoryItem]:
    """
    Search items by name or id (case-insensitive substring).

    Args:
        term: Search text
        include_inactive: If True, include deactivated items
        session: Optional database session

    Returns:
        Matching InventoryItem list ordered by name
    """

    def _impl(sess: Session) -> List[InventoryItem]:
        pattern = f"%{(term or '').strip()}%"
        q = sess.query(InventoryItem).filter(
            or_(InventoryItem.name.ilike(pattern), InventoryItem.id.ilike(pattern))
        )
        if not include_inactive:
            q = q.filter(InventoryItem.is_active.is_(True))
        return q.order_by(InventoryItem.name).all()

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def upsert_item(item_data: Dict[str, Any], session: Optional[Session] = None) -> InventoryItem:
    """
    Create an inventory item, or update it if item_data["id"] already exists.

    Args:
        item_data: Item fields. On create, an optional "current_stock" is
            recorded as an opening-balance ledger adjustment.
        session: Optional database session

    Returns:
        The created or updated InventoryItem

    Raises:
        ValidationError: Listing every invalid field
        DatabaseError: If database operation fails
    """

    def _impl(sess: Session) -> InventoryItem:
        item_id = item_data.get("id")
        if item_id and sess.get(InventoryItem, item_id) is not None:
            return _update_item_impl(item_id, item_data, sess)
        return _create_item_impl(item_data, sess)

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to save inventory item", original_error=e)


def create_item(item_data: Dict[str, Any], session: Optional[Session] = None) -> InventoryItem:
    """
    Create a new inventory item.

    Args:
        item_data: Dictionary with item fields (see upsert_item)
        session: Optional database session

    Returns:
        Created InventoryItem

    Raises:
        ValidationError: Listing every invalid field, or if the id is taken
    """
    try:
        if session is not None:
            return _create_item_impl(item_data, session)
        with session_scope() as sess:
            return _create_item_impl(item_data, sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create inventory item", original_error=e)


def _create_item_impl(item_data: Dict[str, Any], sess: Session) -> InventoryItem:
    from . import ledger_service

    is_valid, errors = validate_inventory_item_data(item_data)
    errors.extend(validate_no_derived_fields(item_data, ("last_restocked",)))
    if item_data.get("id") and sess.get(InventoryItem, item_data["id"]) is not None:
        errors.append(f"id: Inventory item '{item_data['id']}' already exists")
    opening_stock = item_data.get("current_stock")
    if is_valid and opening_stock is not None:
        raw_stock = Decimal(str(opening_stock))
        if raw_stock > 0 and quantize_quantity(raw_stock) == 0:
            errors.append(f"current_stock: {ERROR_ROUNDS_TO_ZERO}")
    if errors:
        log_operation(
            logger, "create_item", "validation_failed", level=logging.WARNING, errors=errors
        )
        raise ValidationError(errors)

    values = _normalize_item_data(item_data)
    item = InventoryItem(
        current_stock=quantize_quantity(0),
        last_restocked=None,
        is_active=True,
        **values,
    )
    if item_data.get("id"):
        item.id = item_data["id"]
    sess.add(item)
    sess.flush()

    if opening_stock is not None and Decimal(str(opening_stock)) > 0:
        ledger_service.record_opening_balance(item, opening_stock, session=sess)

    log_operation(
        logger,
        "create_item",
        "success",
        inventory_item_id=item.id,
        current_stock=str(item.current_stock),
    )
    return item


def update_item(
    item_id: str, item_data: Dict[str, Any], session: Optional[Session] = None
) -> InventoryItem:
    """
    Update editable fields of an inventory item.

    A change of cost_per_unit recomputes every recipe that uses the item and
    refreshes the menu items selling those recipes. A change of name or unit
    refreshes the ingredient snapshots of those recipes.

    Args:
        item_id: Inventory item id
        item_data: Fields to change (current_stock and last_restocked are rejected)
        session: Optional database session

    Returns:
        Updated InventoryItem

    Raises:
        UnknownItemError: If the id doesn't exist
        ValidationError: Listing every invalid field
    """
    try:
        if session is not None:
            return _update_item_impl(item_id, item_data, session)
        with session_scope() as sess:
            return _update_item_impl(item_id, item_data, sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update inventory item {item_id}", original_error=e)


def _update_item_impl(item_id: str, item_data: Dict[str, Any], sess: Session) -> InventoryItem:
    from . import recipe_service

    item = _get_item_impl(item_id, sess)

    # Validate the item as it would look after the edit
    merged = {field: getattr(item, field) for field in EDITABLE_FIELDS}
    merged.update({k: v for k, v in item_data.items() if k in EDITABLE_FIELDS})
    _, errors = validate_inventory_item_data(merged)
    errors.extend(validate_no_derived_fields(item_data, InventoryItem.DERIVED_FIELDS))
    if not errors and "expiry_date" in item_data:
        _check_expiry(errors, coerce_date(item_data.get("expiry_date")), item.last_restocked)
    if errors:
        log_operation(
            logger,
            "update_item",
            "validation_failed",
            level=logging.WARNING,
            inventory_item_id=item_id,
            errors=errors,
        )
        raise ValidationError(errors)

    values = _normalize_item_data({k: v for k, v in item_data.items() if k in EDITABLE_FIELDS})
    cost_changed = "cost_per_unit" in values and values["cost_per_unit"] != quantize_money(
        item.cost_per_unit
    )
    snapshot_changed = any(
        field in values and values[field] != getattr(item, field) for field in ("name", "unit")
    )

    item.update_from_dict(values, allowed=EDITABLE_FIELDS)
    sess.flush()

    if cost_changed or snapshot_changed:
        recipe_service.sync_item_references(
            item.id,
            refresh_snapshots=snapshot_changed,
            recalculate_costs=cost_changed,
            session=sess,
        )

    log_operation(
        logger,
        "update_item",
        "success",
        inventory_item_id=item.id,
        cost_changed=cost_changed,
        snapshot_changed=snapshot_changed,
    )
    return item


def set_cost_per_unit(
    item_id: str, cost_per_unit: Any, session: Optional[Session] = None
) -> InventoryItem:
    """Change an item's unit cost (cascades like update_item)."""
    return update_item(item_id, {"cost_per_unit": cost_per_unit}, session=session)


def _set_active(item_id: str, active: bool, session: Optional[Session]) -> InventoryItem:
    operation = "reactivate_item" if active else "deactivate_item"

    def _impl(sess: Session) -> InventoryItem:
        item = _get_item_impl(item_id, sess)
        if item.is_active != active:
            item.is_active = active
            sess.flush()
            log_operation(logger, operation, "success", inventory_item_id=item_id)
        else:
            log_operation(
                logger, operation, "unchanged", level=logging.DEBUG, inventory_item_id=item_id
            )
        return item

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to change status of inventory item {item_id}", e)


def deactivate_item(item_id: str, session: Optional[Session] = None) -> InventoryItem:
    """
    Deactivate an inventory item. Idempotent.

    Ledger history and recipes referencing the item are left untouched; the
    item can no longer receive transactions or be added to recipes.

    Raises:
        UnknownItemError: If the id doesn't exist
    """
    return _set_active(item_id, False, session)


def reactivate_item(item_id: str, session: Optional[Session] = None) -> InventoryItem:
    """Reactivate a deactivated inventory item. Idempotent."""
    return _set_active(item_id, True, session)


def get_low_stock_items(session: Optional[Session] = None) -> List[InventoryItem]:
    """
    Active items at or below their reorder point.

    Returns:
        List of InventoryItem with status LOW, ordered by name
    """
    items = get_all_items(session=session)
    low = [item for item in items if item.stock_status is StockStatus.LOW]
    return sorted(low, key=lambda item: item.name)


def get_most_urgent_restock(session: Optional[Session] = None) -> Optional[InventoryItem]:
    """
    The low-stock item with the smallest current_stock / reorder_point ratio.

    An item whose reorder point is zero (and so is at zero stock) ranks
    first.

    Returns:
        InventoryItem, or None when nothing is low
    """
    low_items = get_low_stock_items(session=session)
    if not low_items:
        return None

    def ratio(item: InventoryItem) -> Decimal:
        reorder_point = Decimal(item.reorder_point or 0)
        if reorder_point == 0:
            return Decimal("0")
        return Decimal(item.current_stock) / reorder_point

    return min(low_items, key=ratio)


def get_restock_suggestion(item_id: str, session: Optional[Session] = None) -> Dict[str, Any]:
    """
    Suggest a restock transaction that brings an item up to its ideal stock.

    Args:
        item_id: Inventory item id
        session: Optional database session

    Returns:
        Dict with transaction-shaped keys: inventory_item_id,
        transaction_type, quantity, unit_cost, total_cost,
        transaction_date, supplier_ref, notes

    Raises:
        UnknownItemError: If the id doesn't exist
    """
    item = get_item(item_id, session=session)
    shortfall = Decimal(item.ideal_stock) - Decimal(item.current_stock)
    quantity = quantize_quantity(max(Decimal("0"), shortfall))
    unit_cost = quantize_money(item.cost_per_unit)
    return {
        "inventory_item_id": item.id,
        "transaction_type": "restock",
        "quantity": quantity,
        "unit_cost": unit_cost,
        "total_cost": quantize_money(quantity * unit_cost),
        "transaction_date": today(),
        "supplier_ref": item.supplier,
        "notes": f"Restock to ideal level ({item.ideal_stock} {item.unit})",
    }


def get_inventory_value(
    category: Optional[str] = None, session: Optional[Session] = None
) -> Decimal:
    """
    Total value of stock on hand across active items.

    Args:
        category: Optional category filter
        session: Optional database session

    Returns:
        Sum of current_stock * cost_per_unit
    """
    items = get_all_items(category=category, session=session)
    return quantize_money(sum((item.stock_value for item in items), Decimal("0")))


def get_expiring_soon(
    days: int = EXPIRING_SOON_DAYS, session: Optional[Session] = None
) -> List[InventoryItem]:
    """
    Active items whose expiry date falls within the next `days` days.

    Already-expired items are included so they can be written off.

    Args:
        days: Look-ahead window in days
        session: Optional database session

    Returns:
        List of InventoryItem ordered by expiry date
    """

    def _impl(sess: Session) -> List[InventoryItem]:
        cutoff = today() + timedelta(days=days)
        return (
            sess.query(InventoryItem)
            .filter(
                InventoryItem.is_active.is_(True),
                InventoryItem.expiry_date.isnot(None),
                InventoryItem.expiry_date <= cutoff,
            )
            .order_by(InventoryItem.expiry_date.asc())
            .all()
        )

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
