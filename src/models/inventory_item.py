"""
InventoryItem model for the stock catalog.

This model is the authoritative record of a stocked good:
- Identity, name, category and unit of measure
- Current stock (projected from the inventory ledger, never edited directly)
- Reorder point and ideal stock thresholds
- Unit cost used by recipe costing
- Supplier, storage location, restock and expiry dates

Items are deactivated rather than deleted so that historical ledger entries
and recipes that reference them stay resolvable.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import StockStatus


class InventoryItem(BaseModel):
    """
    InventoryItem model representing a stocked good.

    Attributes:
        name: Display name (e.g., "Espresso Beans")
        category: Catalog category (e.g., "Coffee", "Dairy")
        unit: Unit of measure (e.g., "kg", "l", "each")
        current_stock: On-hand quantity, written only by the stock projector
        reorder_point: Stock level at or below which the item is "low"
        ideal_stock: Target stock level after a full restock
        cost_per_unit: Current unit cost
        supplier: Supplier reference
        location: Where stored
        last_restocked: Date of the most recent restock transaction
        expiry_date: Optional best-before date
        is_active: False once deactivated
        notes: Free text
    """

    __tablename__ = "inventory_items"

    DERIVED_FIELDS = ("current_stock", "last_restocked")

    name = Column(String(200), nullable=False, index=True)
    category = Column(String(100), nullable=False, index=True)
    unit = Column(String(50), nullable=False)

    # Derived from the ledger
    current_stock = Column(Numeric(14, 3), nullable=False, default=Decimal("0"))

    # Thresholds and costing
    reorder_point = Column(Numeric(14, 3), nullable=False, default=Decimal("0"))
    ideal_stock = Column(Numeric(14, 3), nullable=False)
    cost_per_unit = Column(Numeric(14, 4), nullable=False, default=Decimal("0"))

    supplier = Column(String(200), nullable=False)
    location = Column(String(100), nullable=True)

    last_restocked = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True, index=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    notes = Column(Text, nullable=True)

    transactions = relationship(
        "InventoryTransaction",
        back_populates="inventory_item",
        order_by="InventoryTransaction.sequence",
        lazy="select",
    )

    __table_args__ = (
        Index("idx_inventory_item_category", "category"),
        CheckConstraint("current_stock >= 0", name="ck_inventory_item_stock_non_negative"),
        CheckConstraint("ideal_stock > 0", name="ck_inventory_item_ideal_positive"),
        CheckConstraint("cost_per_unit >= 0", name="ck_inventory_item_cost_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of inventory item."""
        return (
            f"InventoryItem(id='{self.id}', name='{self.name}', "
            f"current_stock={self.current_stock} {self.unit})"
        )

    @property
    def stock_status(self) -> StockStatus:
        """Classify current stock against the item's thresholds."""
        from src.services.stock_projector import classify_stock_status

        return classify_stock_status(self.current_stock, self.reorder_point, self.ideal_stock)

    @property
    def stock_value(self) -> Decimal:
        """Value of stock on hand at the current unit cost."""
        from src.services.costing import quantize_money

        return quantize_money(
            Decimal(self.current_stock or 0) * Decimal(self.cost_per_unit or 0)
        )

    @property
    def is_expired(self) -> bool:
        """
        Check if item is expired.

        Returns:
            True if expiry_date is in the past
        """
        if not self.expiry_date:
            return False
        return self.expiry_date < date.today()

    @property
    def days_until_expiration(self):
        """
        Get days until expiration.

        Returns:
            Days until expiration, or None if no expiry date
        """
        if not self.expiry_date:
            return None
        return (self.expiry_date - date.today()).days

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert inventory item to dictionary.

        Args:
            include_relationships: If True, include ledger transactions

        Returns:
            Dictionary representation with derived status fields
        """
        result = super().to_dict(include_relationships)

        result["stock_status"] = self.stock_status.value
        result["stock_value"] = str(self.stock_value)
        result["is_expired"] = self.is_expired
        result["days_until_expiration"] = self.days_until_expiration

        return result
