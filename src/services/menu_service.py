"""Menu Service - menu items and menu profitability.

A menu item sells one recipe at a listed price. Its cost is the linked
recipe's cost per serving; profit and profit margin follow from cost and
price:

    profit        = price - cost
    profit_margin = profit / price   (0 when price is 0)

These derived fields are a pure function of {price, linked recipe's cost per
serving}. They are recomputed by link_recipe, set_price and
refresh_from_recipe; the recipe service calls refresh_menu_items_for_recipe
after every recipe recompute.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import MenuItem, Recipe
from ..utils.constants import MAX_COST
from ..utils.datetime_utils import coerce_date
from ..utils.validators import (
    validate_menu_item_data,
    validate_no_derived_fields,
    validate_positive_number,
)
from .costing import menu_profitability, quantize_money
from .database import session_scope
from .exceptions import (
    DatabaseError,
    InvariantViolation,
    MenuItemNotFound,
    ServiceError,
    UnknownRecipeError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

EDITABLE_FIELDS = (
    "name",
    "category",
    "description",
    "is_seasonal",
    "season_start",
    "season_end",
    "is_featured",
    "is_active",
)


def verify_menu_item(menu_item: MenuItem, recipe: Recipe) -> None:
    """
    Check a menu item's derived fields against its price and recipe.

    Raises:
        InvariantViolation: If cost, profit or margin are stale
    """
    entity = f"MenuItem '{menu_item.id}'"
    expected_cost = quantize_money(recipe.cost_per_serving)
    if quantize_money(menu_item.cost) != expected_cost:
        raise InvariantViolation(
            entity, f"cost {menu_item.cost} != recipe cost_per_serving {expected_cost}"
        )
    expected_profit, expected_margin = menu_profitability(menu_item.price, expected_cost)
    if quantize_money(menu_item.profit) != expected_profit:
        raise InvariantViolation(entity, f"profit {menu_item.profit} != {expected_profit}")
    if menu_item.profit_margin != expected_margin:
        raise InvariantViolation(
            entity, f"profit_margin {menu_item.profit_margin} != {expected_margin}"
        )


def _resolve_recipe(recipe_id: str, sess: Session, require_active: bool) -> Recipe:
    from .recipe_service import resolve_recipe

    try:
        return resolve_recipe(recipe_id, sess, require_active=require_active)
    except UnknownRecipeError as e:
        log_operation(
            logger,
            "resolve_recipe",
            "unknown_recipe",
            level=logging.WARNING,
            recipe_id=recipe_id,
            reason=e.reason,
        )
        raise


def _apply_recipe(menu_item: MenuItem, recipe: Recipe) -> None:
    """Pull cost and nutritional info from the recipe and recompute profitability."""
    menu_item.recipe_id = recipe.id
    menu_item.apply_costing(recipe.cost_per_serving)
    menu_item.nutritional_info = (
        dict(recipe.nutritional_info) if recipe.nutritional_info is not None else None
    )
    verify_menu_item(menu_item, recipe)


def _get_menu_item_impl(menu_item_id: str, sess: Session) -> MenuItem:
    menu_item = sess.get(MenuItem, menu_item_id) if menu_item_id else None
    if menu_item is None:
        raise MenuItemNotFound(menu_item_id)
    return menu_item


def _normalize_menu_data(data: Dict[str, Any]) -> Dict[str, Any]:
    values = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
    for text_field in ("name", "category"):
        if text_field in values:
            values[text_field] = values[text_field].strip()
    for date_field in ("season_start", "season_end"):
        if date_field in values:
            values[date_field] = coerce_date(values[date_field])
    return values


# ============================================================================
# Retrieval
# ============================================================================


def get_menu_item(menu_item_id: str, session: Optional[Session] = None) -> MenuItem:
    """
    Get a menu item by id.

    Raises:
        MenuItemNotFound: If the id doesn't exist
    """
    if session is not None:
        return _get_menu_item_impl(menu_item_id, session)
    with session_scope() as sess:
        return _get_menu_item_impl(menu_item_id, sess)


def get_all_menu_items(
    category: Optional[str] = None,
    active: Optional[bool] = None,
    seasonal: Optional[bool] = None,
    featured: Optional[bool] = None,
    session: Optional[Session] = None,
) -> List[MenuItem]:
    """
    List menu items ordered by category then name.

    Each filter left as None is not applied.

    Args:
        category: Menu category
        active: Filter on is_active
        seasonal: Filter on is_seasonal
        featured: Filter on is_featured
        session: Optional database session
    """

    def _impl(sess: Session) -> List[MenuItem]:
        q = sess.query(MenuItem)
        if category:
            q = q.filter(MenuItem.category == category)
        if active is not None:
            q = q.filter(MenuItem.is_active.is_(active))
        if seasonal is not None:
            q = q.filter(MenuItem.is_seasonal.is_(seasonal))
        if featured is not None:
            q = q.filter(MenuItem.is_featured.is_(featured))
        return q.order_by(MenuItem.category, MenuItem.name).all()

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_available_menu_items(
    on_date: Optional[date] = None, session: Optional[Session] = None
) -> List[MenuItem]:
    """Active menu items that are in season on a date (default today)."""
    items = get_all_menu_items(active=True, session=session)
    return [item for item in items if item.is_available(on_date)]


def is_available(
    menu_item_id: str, on_date: Optional[date] = None, session: Optional[Session] = None
) -> bool:
    """Whether a menu item is active and, when seasonal, inside its window."""
    return get_menu_item(menu_item_id, session=session).is_available(on_date)


# ============================================================================
# Create / Update
# ============================================================================


def create_menu_item(menu_data: Dict[str, Any], session: Optional[Session] = None) -> MenuItem:
    """
    Create a menu item linked to an active recipe.

    Args:
        menu_data: name, category, price (> 0), recipe_id, and optional
            description, is_featured, is_seasonal, season_start, season_end,
            is_active, id
        session: Optional database session

    Returns:
        Created MenuItem with derived cost, profit and profit_margin

    Raises:
        ValidationError: Listing every invalid field
        UnknownRecipeError: If the recipe is missing or inactive
    """
    _, errors = validate_menu_item_data(menu_data)
    errors.extend(validate_no_derived_fields(menu_data, MenuItem.DERIVED_FIELDS))
    if errors:
        log_operation(
            logger, "create_menu_item", "validation_failed", level=logging.WARNING, errors=errors
        )
        raise ValidationError(errors)

    def _impl(sess: Session) -> MenuItem:
        if menu_data.get("id") and sess.get(MenuItem, menu_data["id"]) is not None:
            raise ValidationError([f"id: Menu item '{menu_data['id']}' already exists"])

        recipe = _resolve_recipe(menu_data["recipe_id"], sess, require_active=True)
        values = _normalize_menu_data(menu_data)
        menu_item = MenuItem(price=quantize_money(menu_data["price"]), **values)
        if menu_data.get("id"):
            menu_item.id = menu_data["id"]
        _apply_recipe(menu_item, recipe)
        sess.add(menu_item)
        sess.flush()

        log_operation(
            logger,
            "create_menu_item",
            "success",
            menu_item_id=menu_item.id,
            recipe_id=recipe.id,
            cost=str(menu_item.cost),
            profit=str(menu_item.profit),
            profit_margin=str(menu_item.profit_margin),
        )
        return menu_item

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create menu item", original_error=e)


def update_menu_item(
    menu_item_id: str, menu_data: Dict[str, Any], session: Optional[Session] = None
) -> MenuItem:
    """
    Update non-derived fields of a menu item.

    A price in the payload is applied as set_price would; a recipe_id is
    applied as link_recipe would.

    Raises:
        MenuItemNotFound: If the id doesn't exist
        ValidationError: Listing every invalid field
        UnknownRecipeError: If a new recipe_id is missing or inactive
    """
    _, errors = validate_menu_item_data(menu_data, partial=True)
    errors.extend(validate_no_derived_fields(menu_data, MenuItem.DERIVED_FIELDS))
    if errors:
        log_operation(
            logger,
            "update_menu_item",
            "validation_failed",
            level=logging.WARNING,
            menu_item_id=menu_item_id,
            errors=errors,
        )
        raise ValidationError(errors)

    def _impl(sess: Session) -> MenuItem:
        menu_item = _get_menu_item_impl(menu_item_id, sess)
        values = _normalize_menu_data(menu_data)

        # Check the season window against the stored dates too
        start = values.get("season_start", menu_item.season_start)
        end = values.get("season_end", menu_item.season_end)
        if start and end and end < start:
            raise ValidationError(["season_end: Must be on or after season_start"])

        if "recipe_id" in menu_data and menu_data["recipe_id"] != menu_item.recipe_id:
            recipe = _resolve_recipe(menu_data["recipe_id"], sess, require_active=True)
        else:
            recipe = _resolve_recipe(menu_item.recipe_id, sess, require_active=False)

        menu_item.update_from_dict(values, allowed=EDITABLE_FIELDS)
        if "price" in menu_data:
            menu_item.price = quantize_money(menu_data["price"])
        _apply_recipe(menu_item, recipe)
        sess.flush()

        log_operation(
            logger,
            "update_menu_item",
            "success",
            menu_item_id=menu_item.id,
            fields=sorted(k for k in menu_data if k != "id"),
            profit_margin=str(menu_item.profit_margin),
        )
        return menu_item

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update menu item {menu_item_id}", original_error=e)


def link_recipe(
    menu_item_id: str, recipe_id: str, session: Optional[Session] = None
) -> MenuItem:
    """
    Link a menu item to a recipe and recompute cost and profitability.

    Raises:
        MenuItemNotFound: If the menu item doesn't exist
        UnknownRecipeError: If the recipe is missing or inactive
    """

    def _impl(sess: Session) -> MenuItem:
        menu_item = _get_menu_item_impl(menu_item_id, sess)
        recipe = _resolve_recipe(recipe_id, sess, require_active=True)
        _apply_recipe(menu_item, recipe)
        sess.flush()
        log_operation(
            logger,
            "link_recipe",
            "success",
            menu_item_id=menu_item_id,
            recipe_id=recipe_id,
            cost=str(menu_item.cost),
        )
        return menu_item

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to link recipe to menu item {menu_item_id}", e)


def set_price(menu_item_id: str, price: Any, session: Optional[Session] = None) -> MenuItem:
    """
    Change a menu item's price and recompute profit and margin.

    Raises:
        ValidationError: If price is not greater than zero
        MenuItemNotFound: If the menu item doesn't exist
    """
    is_valid, error = validate_positive_number(price, "price", MAX_COST)
    if not is_valid:
        log_operation(
            logger,
            "set_price",
            "validation_failed",
            level=logging.WARNING,
            menu_item_id=menu_item_id,
            errors=[error],
        )
        raise ValidationError([error])

    def _impl(sess: Session) -> MenuItem:
        menu_item = _get_menu_item_impl(menu_item_id, sess)
        menu_item.price = quantize_money(price)
        menu_item.profit, menu_item.profit_margin = menu_profitability(
            menu_item.price, menu_item.cost
        )
        sess.flush()
        log_operation(
            logger,
            "set_price",
            "success",
            menu_item_id=menu_item_id,
            price=str(menu_item.price),
            profit_margin=str(menu_item.profit_margin),
        )
        return menu_item

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to set price of menu item {menu_item_id}", e)


def _set_active(menu_item_id: str, active: bool, session: Optional[Session]) -> MenuItem:
    operation = "activate_menu_item" if active else "deactivate_menu_item"

    def _impl(sess: Session) -> MenuItem:
        menu_item = _get_menu_item_impl(menu_item_id, sess)
        menu_item.is_active = active
        sess.flush()
        log_operation(logger, operation, "success", menu_item_id=menu_item_id)
        return menu_item

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to change status of menu item {menu_item_id}", e)


def deactivate_menu_item(menu_item_id: str, session: Optional[Session] = None) -> MenuItem:
    """Take a menu item off the menu. Idempotent."""
    return _set_active(menu_item_id, False, session)


def activate_menu_item(menu_item_id: str, session: Optional[Session] = None) -> MenuItem:
    """Put a menu item back on the menu. Idempotent."""
    return _set_active(menu_item_id, True, session)


# ============================================================================
# Refresh
# ============================================================================


def refresh_from_recipe(menu_item_id: str, session: Optional[Session] = None) -> MenuItem:
    """
    Re-pull the linked recipe's cost per serving; price is left untouched.

    Works for inactive recipes too so existing links keep refreshing.

    Raises:
        MenuItemNotFound: If the menu item doesn't exist
    """

    def _impl(sess: Session) -> MenuItem:
        menu_item = _get_menu_item_impl(menu_item_id, sess)
        recipe = _resolve_recipe(menu_item.recipe_id, sess, require_active=False)
        _apply_recipe(menu_item, recipe)
        sess.flush()
        log_operation(
            logger,
            "refresh_from_recipe",
            "success",
            level=logging.DEBUG,
            menu_item_id=menu_item_id,
            cost=str(menu_item.cost),
            profit_margin=str(menu_item.profit_margin),
        )
        return menu_item

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to refresh menu item {menu_item_id}", e)


def refresh_menu_items_for_recipe(recipe_id: str, session: Optional[Session] = None) -> List[str]:
    """
    Refresh every menu item linked to a recipe, active or not.

    Returns:
        Ids of the refreshed menu items
    """

    def _impl(sess: Session) -> List[str]:
        recipe = _resolve_recipe(recipe_id, sess, require_active=False)
        refreshed = []
        for menu_item in sess.query(MenuItem).filter(MenuItem.recipe_id == recipe_id).all():
            _apply_recipe(menu_item, recipe)
            refreshed.append(menu_item.id)
            log_operation(
                logger,
                "refresh_menu_items_for_recipe",
                "menu_item_updated",
                level=logging.DEBUG,
                recipe_id=recipe_id,
                menu_item_id=menu_item.id,
                cost=str(menu_item.cost),
            )
        sess.flush()
        if refreshed:
            log_operation(
                logger,
                "refresh_menu_items_for_recipe",
                "success",
                recipe_id=recipe_id,
                menu_item_count=len(refreshed),
            )
        return refreshed

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to refresh menu items for recipe {recipe_id}", e)
