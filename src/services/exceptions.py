"""Service layer exception classes for the cafe back-office core.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── UnknownItemError
    ├── UnknownRecipeError
    ├── MenuItemNotFound
    ├── TransactionNotFound
    ├── IngredientNotFound
    ├── InvariantViolation
    └── DatabaseError
"""

from typing import Dict, List


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class ValidationError(ServiceError):
    """Raised when input validation fails.

    Carries every violated field, not just the first.

    Args:
        errors: Messages of the form "<field>: <reason>"

    Example:
        >>> err = ValidationError(["ideal_stock: Must be greater than zero"])
        >>> err.field_errors
        {'ideal_stock': 'Must be greater than zero'}
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        error_msg = "; ".join(self.errors)
        super().__init__(f"Validation failed: {error_msg}")

    @property
    def field_errors(self) -> Dict[str, str]:
        """Map each violated field to its reason (first reason per field wins)."""
        result = {}
        for message in self.errors:
            field, sep, reason = message.partition(": ")
            if not sep:
                field, reason = "__all__", message
            result.setdefault(field, reason)
        return result

    @property
    def fields(self) -> List[str]:
        """Names of the violated fields."""
        return list(self.field_errors)


class UnknownItemError(ServiceError):
    """Raised when an inventory item id does not resolve to a usable item.

    Args:
        item_id: The inventory item id that was referenced
        reason: "not found" or "inactive"

    Example:
        >>> raise UnknownItemError("inv-042")
        UnknownItemError: Inventory item 'inv-042' not found
    """

    def __init__(self, item_id: str, reason: str = "not found"):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Inventory item '{item_id}' {reason}")


class UnknownRecipeError(ServiceError):
    """Raised when a recipe id does not resolve to a usable recipe.

    Args:
        recipe_id: The recipe id that was referenced
        reason: "not found" or "inactive"
    """

    def __init__(self, recipe_id: str, reason: str = "not found"):
        self.recipe_id = recipe_id
        self.reason = reason
        super().__init__(f"Recipe '{recipe_id}' {reason}")


class MenuItemNotFound(ServiceError):
    """Raised when a menu item cannot be found by id."""

    def __init__(self, menu_item_id: str):
        self.menu_item_id = menu_item_id
        super().__init__(f"Menu item '{menu_item_id}' not found")


class TransactionNotFound(ServiceError):
    """Raised when a ledger transaction cannot be found by id."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Inventory transaction '{transaction_id}' not found")


class IngredientNotFound(ServiceError):
    """Raised when an ingredient line is not part of the given recipe."""

    def __init__(self, recipe_id: str, ingredient_id: str):
        self.recipe_id = recipe_id
        self.ingredient_id = ingredient_id
        super().__init__(f"Ingredient '{ingredient_id}' not found in recipe '{recipe_id}'")


class InvariantViolation(ServiceError):
    """Raised when a recompute would leave derived data inconsistent.

    This signals a defect in the costing or projection code, not bad input.

    Args:
        entity: Description of the entity checked (e.g., "Recipe 'abc'")
        detail: What was inconsistent
    """

    def __init__(self, entity: str, detail: str):
        self.entity = entity
        self.detail = detail
        super().__init__(f"Invariant violated for {entity}: {detail}")


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
