"""
MenuItem model for sellable menu entries.

A menu item sells one recipe at a listed price. Its cost, profit and profit
margin are derived from the linked recipe's cost per serving and its own
price, and are recomputed by the menu service whenever either changes.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    JSON,
    Numeric,
    String,
    Text,
)

from .base import BaseModel


class MenuItem(BaseModel):
    """
    MenuItem model.

    Attributes:
        name: Menu display name
        category: Menu category (e.g., "Coffee", "Bakery")
        description: Optional description
        price: Listed price (> 0)
        recipe_id: Lookup key of the linked Recipe
        cost: Linked recipe's cost per serving (derived)
        profit: price - cost (derived)
        profit_margin: profit / price, 0 when price is 0 (derived)
        is_seasonal: Whether the item is only sold inside a season window
        season_start: First day of the season
        season_end: Last day of the season
        is_featured: Highlighted on the menu
        is_active: Whether the item is currently offered
        nutritional_info: Snapshot copied from the recipe
    """

    __tablename__ = "menu_items"

    DERIVED_FIELDS = ("cost", "profit", "profit_margin", "nutritional_info")

    name = Column(String(200), nullable=False, index=True)
    category = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)

    price = Column(Numeric(14, 4), nullable=False)
    recipe_id = Column(
        String(64), ForeignKey("recipes.id", ondelete="RESTRICT"), nullable=False
    )

    cost = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    profit = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    profit_margin = Column(Numeric(10, 4), nullable=False, default=Decimal("0"))

    is_seasonal = Column(Boolean, nullable=False, default=False)
    season_start = Column(Date, nullable=True)
    season_end = Column(Date, nullable=True)

    is_featured = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    nutritional_info = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_menu_item_category", "category"),
        Index("idx_menu_item_recipe", "recipe_id"),
        CheckConstraint("price > 0", name="ck_menu_item_price_positive"),
    )

    def __repr__(self) -> str:
        """String representation of menu item."""
        return f"MenuItem(id='{self.id}', name='{self.name}', price={self.price})"

    def apply_costing(self, cost_per_serving: Decimal) -> None:
        """
        Set cost from a recipe's cost per serving and recompute profitability.

        Args:
            cost_per_serving: The linked recipe's current cost per serving
        """
        from src.services.costing import menu_profitability, quantize_money

        self.cost = quantize_money(cost_per_serving)
        self.profit, self.profit_margin = menu_profitability(self.price, self.cost)

    def is_available(self, on_date: Optional[date] = None) -> bool:
        """
        Check whether the item is offered on a date.

        Args:
            on_date: Date to check (defaults to today)

        Returns:
            True if active and, for seasonal items, inside the season window
        """
        if not self.is_active:
            return False
        if not self.is_seasonal:
            return True

        check_date = on_date or date.today()
        if self.season_start and check_date < self.season_start:
            return False
        if self.season_end and check_date > self.season_end:
            return False
        return True
