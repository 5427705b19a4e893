"""Recipe Service - recipe management and recipe costing.

A recipe's total cost is the sum of its ingredient line costs, and its cost
per serving is that total divided by the serving size. Every line cost is
quantity * the referenced inventory item's unit cost, resolved on demand by
item id. Every mutation here (ingredient add/edit/remove, serving size,
unit-cost change on a referenced item) funnels through the same recompute
and then refreshes the menu items that sell the recipe.

This service reads inventory items but never modifies them.

Example Usage:
    >>> from decimal import Decimal
    >>> recipe = recipe_service.create_recipe(
    ...     {"name": "Flat White", "category": "Hot Drinks", "serving_size": 1},
    ...     [{"inventory_item_id": beans.id, "quantity": Decimal("0.018")}],
    ... )
    >>> recipe = recipe_service.add_ingredient(recipe.id, milk.id, Decimal("0.15"))
    >>> recipe.total_cost == sum(i.cost for i in recipe.ingredients)
    True
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Recipe, RecipeIngredient
from ..utils.constants import MAX_QUANTITY
from ..utils.validators import (
    validate_no_derived_fields,
    validate_positive_number,
    validate_recipe_data,
)
from .costing import ingredient_cost, quantize_money, quantize_quantity, recipe_totals
from .database import session_scope
from .exceptions import (
    DatabaseError,
    IngredientNotFound,
    InvariantViolation,
    ServiceError,
    UnknownRecipeError,
    ValidationError,
)
from .inventory_service import resolve_item
from .locks import recipe_lock
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

EDITABLE_FIELDS = (
    "name",
    "category",
    "description",
    "preparation_steps",
    "serving_size",
    "nutritional_info",
    "is_active",
)


# ============================================================================
# Recompute
# ============================================================================


def verify_recipe(recipe: Recipe) -> None:
    """
    Check a recipe's derived fields against its ingredient lines.

    Raises:
        InvariantViolation: If totals don't match the lines or serving size
    """
    entity = f"Recipe '{recipe.id}'"
    if Decimal(recipe.serving_size) <= 0:
        raise InvariantViolation(entity, f"serving_size {recipe.serving_size} is not positive")

    expected_total, expected_per_serving = recipe_totals(
        [line.cost for line in recipe.ingredients], recipe.serving_size
    )
    if quantize_money(recipe.total_cost) != expected_total:
        raise InvariantViolation(
            entity, f"total_cost {recipe.total_cost} != sum of ingredients {expected_total}"
        )
    if quantize_money(recipe.cost_per_serving) != expected_per_serving:
        raise InvariantViolation(
            entity,
            f"cost_per_serving {recipe.cost_per_serving} != {expected_per_serving}",
        )


def _recompute(recipe: Recipe, sess: Session, live_costs: bool = False) -> None:
    """
    Recompute a recipe's totals, optionally re-pricing every line first.

    Args:
        recipe: Recipe to recompute
        sess: Database session
        live_costs: If True, re-resolve every line's unit cost from inventory
    """
    if live_costs:
        for line in recipe.ingredients:
            item = resolve_item(line.inventory_item_id, sess)
            line.cost = ingredient_cost(line.quantity, item.cost_per_unit)
    recipe.recalculate_totals()
    verify_recipe(recipe)


def _propagate(recipe: Recipe, sess: Session) -> None:
    """Flush the recipe and refresh the menu items that sell it."""
    from . import menu_service

    sess.flush()
    menu_service.refresh_menu_items_for_recipe(recipe.id, session=sess)


def _run(operation: str, impl, session: Optional[Session]):
    try:
        if session is not None:
            return impl(session)
        with session_scope() as sess:
            return impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        log_operation(logger, operation, "error", level=logging.ERROR, error=str(e))
        raise DatabaseError(f"{operation} failed", original_error=e)


# ============================================================================
# Retrieval
# ============================================================================


def _get_recipe_impl(recipe_id: str, sess: Session, require_active: bool = False) -> Recipe:
    recipe = sess.get(Recipe, recipe_id) if recipe_id else None
    if recipe is None:
        raise UnknownRecipeError(recipe_id)
    if require_active and not recipe.is_active:
        raise UnknownRecipeError(recipe_id, reason="inactive")
    return recipe


def resolve_recipe(recipe_id: str, session: Session, require_active: bool = False) -> Recipe:
    """
    Resolve a recipe id inside a caller-owned session.

    Raises:
        UnknownRecipeError: If the id doesn't exist (or is inactive when required)
    """
    return _get_recipe_impl(recipe_id, session, require_active=require_active)


def get_recipe(recipe_id: str, session: Optional[Session] = None) -> Recipe:
    """
    Get a recipe with its ingredient lines.

    Raises:
        UnknownRecipeError: If the id doesn't exist
    """
    return _run("get_recipe", lambda sess: _get_recipe_impl(recipe_id, sess), session)


def get_all_recipes(
    category: Optional[str] = None,
    include_inactive: bool = False,
    session: Optional[Session] = None,
) -> List[Recipe]:
    """
    List recipes ordered by name.

    Args:
        category: Optional category filter
        include_inactive: If True, include deactivated recipes
        session: Optional database session
    """

    def _impl(sess: Session) -> List[Recipe]:
        q = sess.query(Recipe)
        if category:
            q = q.filter(Recipe.category == category)
        if not include_inactive:
            q = q.filter(Recipe.is_active.is_(True))
        return q.order_by(Recipe.name).all()

    return _run("get_all_recipes", _impl, session)


def get_recipes_using_item(item_id: str, session: Optional[Session] = None) -> List[Recipe]:
    """
    Recipes (active or not) with at least one line referencing an inventory item.
    """

    def _impl(sess: Session) -> List[Recipe]:
        return (
            sess.query(Recipe)
            .join(RecipeIngredient, RecipeIngredient.recipe_id == Recipe.id)
            .filter(RecipeIngredient.inventory_item_id == item_id)
            .distinct()
            .order_by(Recipe.name)
            .all()
        )

    return _run("get_recipes_using_item", _impl, session)


# ============================================================================
# Create / Update
# ============================================================================


def _validate_lines(ingredients_data: List[Dict[str, Any]]) -> List[str]:
    errors = []
    for index, line in enumerate(ingredients_data):
        prefix = f"ingredients[{index}]"
        if not line.get("inventory_item_id"):
            errors.append(f"{prefix}.inventory_item_id: This field is required")
        is_valid, error = validate_positive_number(
            line.get("quantity"), f"{prefix}.quantity", MAX_QUANTITY
        )
        if not is_valid:
            errors.append(error)
    return errors


def _build_line(
    recipe: Recipe, item_id: str, quantity: Any, notes: Optional[str], sess: Session
) -> RecipeIngredient:
    """Resolve the item, snapshot its name/unit and price the line."""
    item = resolve_item(item_id, sess, require_active=True)
    quantity = quantize_quantity(quantity)
    if quantity <= 0:
        raise ValidationError(["quantity: Must not round to zero"])
    position = max((line.position for line in recipe.ingredients), default=-1) + 1
    line = RecipeIngredient(
        inventory_item_id=item.id,
        position=position,
        name=item.name,
        unit=item.unit,
        quantity=quantity,
        cost=ingredient_cost(quantity, item.cost_per_unit),
        notes=notes,
    )
    recipe.ingredients.append(line)
    return line


def create_recipe(
    recipe_data: Dict[str, Any],
    ingredients_data: Optional[List[Dict[str, Any]]] = None,
    session: Optional[Session] = None,
) -> Recipe:
    """
    Create a recipe with optional ingredient lines.

    Args:
        recipe_data: name, category, serving_size (> 0), and optional
            description, preparation_steps, nutritional_info, is_active, id
        ingredients_data: List of {inventory_item_id, quantity, notes}
        session: Optional database session

    Returns:
        Created Recipe with derived total_cost and cost_per_serving

    Raises:
        ValidationError: Listing every invalid field
        UnknownItemError: If an ingredient references a missing or inactive item
    """
    ingredients_data = ingredients_data or []
    _, errors = validate_recipe_data(recipe_data)
    errors.extend(validate_no_derived_fields(recipe_data, Recipe.DERIVED_FIELDS))
    errors.extend(_validate_lines(ingredients_data))
    if errors:
        log_operation(
            logger, "create_recipe", "validation_failed", level=logging.WARNING, errors=errors
        )
        raise ValidationError(errors)

    def _impl(sess: Session) -> Recipe:
        if recipe_data.get("id") and sess.get(Recipe, recipe_data["id"]) is not None:
            raise ValidationError([f"id: Recipe '{recipe_data['id']}' already exists"])

        # Resolve every item before anything is added to the session
        for line in ingredients_data:
            resolve_item(line["inventory_item_id"], sess, require_active=True)

        recipe = Recipe(
            name=recipe_data["name"].strip(),
            category=recipe_data["category"].strip(),
            description=recipe_data.get("description"),
            preparation_steps=list(recipe_data.get("preparation_steps") or []),
            serving_size=quantize_quantity(recipe_data["serving_size"]),
            nutritional_info=recipe_data.get("nutritional_info"),
            is_active=recipe_data.get("is_active", True),
            total_cost=quantize_money(0),
            cost_per_serving=quantize_money(0),
        )
        if recipe_data.get("id"):
            recipe.id = recipe_data["id"]

        for line in ingredients_data:
            _build_line(recipe, line["inventory_item_id"], line["quantity"], line.get("notes"), sess)

        _recompute(recipe, sess)
        sess.add(recipe)
        sess.flush()

        log_operation(
            logger,
            "create_recipe",
            "success",
            recipe_id=recipe.id,
            ingredient_count=len(recipe.ingredients),
            total_cost=str(recipe.total_cost),
            cost_per_serving=str(recipe.cost_per_serving),
        )
        return recipe

    return _run("create_recipe", _impl, session)


def update_recipe(
    recipe_id: str, recipe_data: Dict[str, Any], session: Optional[Session] = None
) -> Recipe:
    """
    Update non-derived recipe fields.

    A serving_size change recomputes cost_per_serving; menu items selling
    the recipe are refreshed after every update.

    Raises:
        UnknownRecipeError: If the id doesn't exist
        ValidationError: Listing every invalid field
    """
    _, errors = validate_recipe_data(recipe_data, partial=True)
    errors.extend(validate_no_derived_fields(recipe_data, Recipe.DERIVED_FIELDS))
    if "ingredients" in recipe_data:
        errors.append("ingredients: Use add_ingredient/update_ingredient_quantity/remove_ingredient")
    if errors:
        log_operation(
            logger,
            "update_recipe",
            "validation_failed",
            level=logging.WARNING,
            recipe_id=recipe_id,
            errors=errors,
        )
        raise ValidationError(errors)

    def _impl(sess: Session) -> Recipe:
        with recipe_lock(recipe_id):
            recipe = _get_recipe_impl(recipe_id, sess)
            values = {k: v for k, v in recipe_data.items() if k in EDITABLE_FIELDS}
            if "serving_size" in values:
                values["serving_size"] = quantize_quantity(values["serving_size"])
            for text_field in ("name", "category"):
                if text_field in values:
                    values[text_field] = values[text_field].strip()
            if "preparation_steps" in values:
                values["preparation_steps"] = list(values["preparation_steps"] or [])

            recipe.update_from_dict(values, allowed=EDITABLE_FIELDS)
            _recompute(recipe, sess)
            _propagate(recipe, sess)

        log_operation(
            logger,
            "update_recipe",
            "success",
            recipe_id=recipe_id,
            fields=sorted(values),
            cost_per_serving=str(recipe.cost_per_serving),
        )
        return recipe

    return _run("update_recipe", _impl, session)


def set_serving_size(
    recipe_id: str, serving_size: Any, session: Optional[Session] = None
) -> Recipe:
    """Change a recipe's serving size and recompute cost per serving."""
    return update_recipe(recipe_id, {"serving_size": serving_size}, session=session)


def deactivate_recipe(recipe_id: str, session: Optional[Session] = None) -> Recipe:
    """Deactivate a recipe; existing menu links keep refreshing. Idempotent."""
    return update_recipe(recipe_id, {"is_active": False}, session=session)


def activate_recipe(recipe_id: str, session: Optional[Session] = None) -> Recipe:
    """Reactivate a recipe. Idempotent."""
    return update_recipe(recipe_id, {"is_active": True}, session=session)


# ============================================================================
# Ingredient Lines
# ============================================================================


def add_ingredient(
    recipe_id: str,
    inventory_item_id: str,
    quantity: Any,
    notes: Optional[str] = None,
    session: Optional[Session] = None,
) -> Recipe:
    """
    Add an ingredient line to a recipe.

    The inventory item is resolved by id; its name and unit are copied onto
    the line and the line cost is quantity * cost_per_unit.

    Returns:
        The recipe with recomputed totals

    Raises:
        UnknownRecipeError: If the recipe doesn't exist
        UnknownItemError: If the item doesn't exist or is inactive
        ValidationError: If quantity is not positive
    """
    is_valid, error = validate_positive_number(quantity, "quantity", MAX_QUANTITY)
    if not is_valid:
        raise ValidationError([error])

    def _impl(sess: Session) -> Recipe:
        with recipe_lock(recipe_id):
            recipe = _get_recipe_impl(recipe_id, sess)
            line = _build_line(recipe, inventory_item_id, quantity, notes, sess)
            _recompute(recipe, sess)
            _propagate(recipe, sess)

        log_operation(
            logger,
            "add_ingredient",
            "success",
            recipe_id=recipe_id,
            ingredient_id=line.id,
            inventory_item_id=inventory_item_id,
            line_cost=str(line.cost),
            total_cost=str(recipe.total_cost),
        )
        return recipe

    return _run("add_ingredient", _impl, session)


def _find_line(recipe: Recipe, ingredient_id: str) -> RecipeIngredient:
    for line in recipe.ingredients:
        if line.id == ingredient_id:
            return line
    raise IngredientNotFound(recipe.id, ingredient_id)


def update_ingredient_quantity(
    recipe_id: str,
    ingredient_id: str,
    quantity: Any,
    session: Optional[Session] = None,
) -> Recipe:
    """
    Change an ingredient line's quantity.

    The line cost is recomputed with the item's current unit cost, not the
    cost in effect when the line was added.

    Raises:
        UnknownRecipeError: If the recipe doesn't exist
        IngredientNotFound: If the line is not part of the recipe
        UnknownItemError: If the referenced item no longer exists
        ValidationError: If quantity is not positive
    """
    is_valid, error = validate_positive_number(quantity, "quantity", MAX_QUANTITY)
    if not is_valid:
        raise ValidationError([error])
    new_quantity = quantize_quantity(quantity)
    if new_quantity <= 0:
        raise ValidationError(["quantity: Must not round to zero"])

    def _impl(sess: Session) -> Recipe:
        with recipe_lock(recipe_id):
            recipe = _get_recipe_impl(recipe_id, sess)
            line = _find_line(recipe, ingredient_id)
            item = resolve_item(line.inventory_item_id, sess)
            line.quantity = new_quantity
            line.cost = ingredient_cost(new_quantity, item.cost_per_unit)
            _recompute(recipe, sess)
            _propagate(recipe, sess)

        log_operation(
            logger,
            "update_ingredient_quantity",
            "success",
            recipe_id=recipe_id,
            ingredient_id=ingredient_id,
            quantity=str(new_quantity),
            total_cost=str(recipe.total_cost),
        )
        return recipe

    return _run("update_ingredient_quantity", _impl, session)


def remove_ingredient(
    recipe_id: str, ingredient_id: str, session: Optional[Session] = None
) -> Recipe:
    """
    Remove an ingredient line and recompute totals.

    Raises:
        UnknownRecipeError: If the recipe doesn't exist
        IngredientNotFound: If the line is not part of the recipe
    """

    def _impl(sess: Session) -> Recipe:
        with recipe_lock(recipe_id):
            recipe = _get_recipe_impl(recipe_id, sess)
            line = _find_line(recipe, ingredient_id)
            recipe.ingredients.remove(line)
            _recompute(recipe, sess)
            _propagate(recipe, sess)

        log_operation(
            logger,
            "remove_ingredient",
            "success",
            recipe_id=recipe_id,
            ingredient_id=ingredient_id,
            total_cost=str(recipe.total_cost),
        )
        return recipe

    return _run("remove_ingredient", _impl, session)


def recalculate_recipe(recipe_id: str, session: Optional[Session] = None) -> Recipe:
    """
    Re-price every line of a recipe from current unit costs.

    Raises:
        UnknownRecipeError: If the recipe doesn't exist
    """

    def _impl(sess: Session) -> Recipe:
        with recipe_lock(recipe_id):
            recipe = _get_recipe_impl(recipe_id, sess)
            _recompute(recipe, sess, live_costs=True)
            _propagate(recipe, sess)
        log_operation(
            logger,
            "recalculate_recipe",
            "success",
            level=logging.DEBUG,
            recipe_id=recipe_id,
            total_cost=str(recipe.total_cost),
        )
        return recipe

    return _run("recalculate_recipe", _impl, session)


def sync_item_references(
    item_id: str,
    refresh_snapshots: bool = False,
    recalculate_costs: bool = True,
    session: Optional[Session] = None,
) -> List[str]:
    """
    Bring every recipe that references an inventory item up to date.

    Called by the inventory catalog after an item's unit cost, name or unit
    changes.

    Args:
        item_id: The changed inventory item
        refresh_snapshots: Re-copy the item's name and unit onto the lines
        recalculate_costs: Re-price the recipes from current unit costs
        session: Optional database session

    Returns:
        Ids of the recipes touched
    """

    def _impl(sess: Session) -> List[str]:
        item = resolve_item(item_id, sess)
        touched = []
        for recipe in get_recipes_using_item(item_id, session=sess):
            with recipe_lock(recipe.id):
                if refresh_snapshots:
                    for line in recipe.ingredients:
                        if line.inventory_item_id == item_id:
                            line.name = item.name
                            line.unit = item.unit
                _recompute(recipe, sess, live_costs=recalculate_costs)
                _propagate(recipe, sess)
            touched.append(recipe.id)
            log_operation(
                logger,
                "sync_item_references",
                "recipe_updated",
                level=logging.DEBUG,
                inventory_item_id=item_id,
                recipe_id=recipe.id,
                cost_per_serving=str(recipe.cost_per_serving),
            )

        log_operation(
            logger,
            "sync_item_references",
            "success",
            inventory_item_id=item_id,
            recipe_count=len(touched),
        )
        return touched

    return _run("sync_item_references", _impl, session)


def get_recipe_count(include_inactive: bool = False, session: Optional[Session] = None) -> int:
    """Count recipes."""

    def _impl(sess: Session) -> int:
        q = sess.query(func.count(Recipe.id))
        if not include_inactive:
            q = q.filter(Recipe.is_active.is_(True))
        return q.scalar() or 0

    return _run("get_recipe_count", _impl, session)
