"""
InventoryTransaction model for the append-only inventory ledger.

Each record is one stock-affecting event (restock, usage, adjustment,
write-off). Records are never edited; a mistake is corrected by recording a
new transaction that references the original.
"""

from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import TransactionType


class InventoryTransaction(BaseModel):
    """
    InventoryTransaction model for the stock ledger.

    Attributes:
        inventory_item_id: FK to the InventoryItem affected
        sequence: Per-item ledger position (1, 2, 3, ...)
        transaction_date: Business date of the event
        transaction_type: One of TransactionType values
        quantity: Magnitude; for adjustments the sign carries direction
        unit_cost: Unit cost recorded with the event
        total_cost: quantity * unit_cost
        supplier_ref: Supplier reference (restocks)
        invoice_number: Supplier invoice reference (restocks)
        corrects_transaction_id: Original transaction this one corrects
        notes: Free text

    Note:
        Records are immutable after creation to keep replay of the ledger
        reproducible.
    """

    __tablename__ = "inventory_transactions"

    inventory_item_id = Column(
        String(64),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
    )
    sequence = Column(Integer, nullable=False)

    transaction_date = Column(Date, nullable=False)
    transaction_type = Column(String(20), nullable=False)

    quantity = Column(Numeric(14, 3), nullable=False)
    unit_cost = Column(Numeric(14, 4), nullable=False)
    total_cost = Column(Numeric(14, 4), nullable=False)

    supplier_ref = Column(String(200), nullable=True)
    invoice_number = Column(String(100), nullable=True)
    corrects_transaction_id = Column(
        String(64),
        ForeignKey("inventory_transactions.id", ondelete="SET NULL"),
        nullable=True,
    )
    notes = Column(Text, nullable=True)

    inventory_item = relationship("InventoryItem", back_populates="transactions")

    __table_args__ = (
        Index("idx_transaction_item", "inventory_item_id"),
        Index("idx_transaction_date", "transaction_date"),
        Index("idx_transaction_type", "transaction_type"),
        UniqueConstraint("inventory_item_id", "sequence", name="uq_transaction_item_sequence"),
        CheckConstraint("quantity <> 0", name="ck_transaction_quantity_nonzero"),
        CheckConstraint("unit_cost >= 0", name="ck_transaction_unit_cost_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of inventory transaction."""
        return (
            f"InventoryTransaction(id='{self.id}', "
            f"inventory_item_id='{self.inventory_item_id}', "
            f"type='{self.transaction_type}', "
            f"quantity={self.quantity})"
        )

    @property
    def type(self) -> TransactionType:
        """Transaction type as an enum member."""
        return TransactionType(self.transaction_type)

    @property
    def value_impact(self) -> Decimal:
        """Signed cost impact: positive for restocks, negative otherwise."""
        total = Decimal(self.total_cost or 0)
        if self.type is TransactionType.RESTOCK:
            return total
        return -abs(total)

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Convert transaction to dictionary with the signed value impact."""
        result = super().to_dict(include_relationships)
        result["value_impact"] = str(self.value_impact)
        return result
