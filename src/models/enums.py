"""
Enumerations for inventory and costing.

This module contains enums used across inventory-related models:
- TransactionType: Kind of stock-affecting ledger event
- StockStatus: Three-level classification of on-hand stock
"""

from enum import Enum


class TransactionType(str, Enum):
    """
    Inventory ledger transaction type.

    Determines how a transaction's quantity is folded into an item's
    current stock.

    Values:
        RESTOCK: Goods received; adds quantity and stamps last_restocked
        USAGE: Goods consumed in service; subtracts quantity
        ADJUSTMENT: Count correction; adds quantity, which may be negative
        WRITE_OFF: Spoiled, expired or damaged goods; subtracts quantity
    """

    RESTOCK = "restock"
    USAGE = "usage"
    ADJUSTMENT = "adjustment"
    WRITE_OFF = "write-off"


class StockStatus(str, Enum):
    """
    Stock level classification.

    Values:
        LOW: At or below the reorder point
        MEDIUM: Above the reorder point but at most half the ideal stock
        OK: Anything above that
    """

    LOW = "low"
    MEDIUM = "medium"
    OK = "ok"
