"""Services package - Business logic layer for the cafe back office.

This package contains all service modules that provide business logic
and database operations for the inventory ledger and the recipe/menu
costing engine.

Architecture:
- Services: Stateless functions organized by domain (inventory, ledger, recipe, menu)
- Transactions: Managed via session_scope() context manager, or a caller-owned session
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- inventory_service: Inventory catalog (items, thresholds, unit costs)
- ledger_service: Append-only stock ledger and stock replay
- recipe_service: Recipes, ingredient lines and recipe costing
- menu_service: Menu items and menu profitability

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- costing: Decimal cost arithmetic shared by recipes and menu items
- stock_projector: Folds ledger transactions into current stock
- locks: Per-item and per-recipe write locks
"""

from . import (
    costing,
    database,
    inventory_service,
    ledger_service,
    locks,
    menu_service,
    recipe_service,
    stock_projector,
)
from .exceptions import (
    DatabaseError,
    IngredientNotFound,
    InvariantViolation,
    MenuItemNotFound,
    ServiceError,
    TransactionNotFound,
    UnknownItemError,
    UnknownRecipeError,
    ValidationError,
)

__all__ = [
    # Service modules
    "costing",
    "database",
    "inventory_service",
    "ledger_service",
    "locks",
    "menu_service",
    "recipe_service",
    "stock_projector",
    # Exceptions
    "ServiceError",
    "ValidationError",
    "UnknownItemError",
    "UnknownRecipeError",
    "MenuItemNotFound",
    "TransactionNotFound",
    "IngredientNotFound",
    "InvariantViolation",
    "DatabaseError",
]
