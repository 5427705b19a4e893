"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .enums import StockStatus, TransactionType
from .inventory_item import InventoryItem
from .inventory_transaction import InventoryTransaction
from .recipe import Recipe, RecipeIngredient
from .menu_item import MenuItem

__all__ = [
    "Base",
    "BaseModel",
    # Enums
    "StockStatus",
    "TransactionType",
    # Inventory
    "InventoryItem",
    "InventoryTransaction",
    # Recipes and menu
    "Recipe",
    "RecipeIngredient",
    "MenuItem",
]
