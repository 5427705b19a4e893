"""
Recipe models for drink and food recipes.

This module contains:
- Recipe: Recipe metadata plus derived total cost and cost per serving
- RecipeIngredient: One line of a recipe, referencing an inventory item by id

An ingredient holds a lookup key to its inventory item, not a live
relationship. Its name and unit are snapshots copied at entry time; its cost
is recomputed from the item's current unit cost by the costing service.
"""

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class Recipe(BaseModel):
    """
    Recipe model.

    Attributes:
        name: Recipe name (required)
        category: Recipe category (e.g., "Hot Drinks", "Pastries")
        description: Optional description
        preparation_steps: Ordered list of step strings
        serving_size: Number of servings the recipe yields (> 0)
        total_cost: Sum of ingredient costs (derived)
        cost_per_serving: total_cost / serving_size (derived)
        nutritional_info: Optional dict (calories, protein, carbs, fat, allergens)
        is_active: Whether the recipe can be linked by menu items
    """

    __tablename__ = "recipes"

    DERIVED_FIELDS = ("total_cost", "cost_per_serving")

    name = Column(String(200), nullable=False, index=True)
    category = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)

    preparation_steps = Column(JSON, nullable=False, default=list)
    serving_size = Column(Numeric(14, 3), nullable=False)

    total_cost = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    cost_per_serving = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))

    nutritional_info = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeIngredient.position",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_recipe_name", "name"),
        Index("idx_recipe_category", "category"),
        CheckConstraint("serving_size > 0", name="ck_recipe_serving_size_positive"),
    )

    def __repr__(self) -> str:
        """String representation of recipe."""
        return f"Recipe(id='{self.id}', name='{self.name}', category='{self.category}')"

    def recalculate_totals(self) -> None:
        """
        Recompute total_cost and cost_per_serving from the ingredient lines.

        Ingredient costs must already be current; this only aggregates them.
        """
        from src.services.costing import recipe_totals

        self.total_cost, self.cost_per_serving = recipe_totals(
            [ingredient.cost for ingredient in self.ingredients], self.serving_size
        )


class RecipeIngredient(BaseModel):
    """
    One ingredient line of a recipe.

    Attributes:
        recipe_id: FK to the owning Recipe
        inventory_item_id: Lookup key of the referenced InventoryItem
        position: Display order within the recipe
        name: Item name snapshot
        unit: Item unit snapshot
        quantity: Amount used, in the item's unit
        cost: quantity * the item's unit cost at last recompute
        notes: Optional notes (e.g., "steamed", "double shot")
    """

    __tablename__ = "recipe_ingredients"

    DERIVED_FIELDS = ("cost", "name", "unit")

    recipe_id = Column(String(64), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    inventory_item_id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    name = Column(String(200), nullable=False)
    unit = Column(String(50), nullable=False)

    quantity = Column(Numeric(14, 3), nullable=False)
    cost = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))

    notes = Column(String(500), nullable=True)

    recipe = relationship("Recipe", back_populates="ingredients")

    __table_args__ = (
        Index("idx_recipe_ingredient_recipe", "recipe_id"),
        Index("idx_recipe_ingredient_item", "inventory_item_id"),
        CheckConstraint("quantity > 0", name="ck_recipe_ingredient_quantity_positive"),
    )

    def __repr__(self) -> str:
        """String representation of recipe ingredient."""
        return (
            f"RecipeIngredient(id='{self.id}', recipe_id='{self.recipe_id}', "
            f"inventory_item_id='{self.inventory_item_id}', "
            f"quantity={self.quantity} {self.unit})"
        )
