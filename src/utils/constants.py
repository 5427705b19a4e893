"""
Constants for the cafe back-office core.

This module defines system-wide constants including:
- Application metadata
- Decimal precision for money and quantities
- Stock classification thresholds
- Field length limits
- Standard validation error messages
"""

from decimal import Decimal

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Cafe Back Office"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "cafe_backoffice.db"

# ============================================================================
# Decimal Precision
# ============================================================================

# Unit costs, line costs, recipe totals, menu cost/profit
MONEY_PRECISION = Decimal("0.0001")

# Stock levels, ingredient quantities, serving sizes
QUANTITY_PRECISION = Decimal("0.001")

# Profit margin as a fraction of price (0.4 == 40%)
MARGIN_PRECISION = Decimal("0.0001")

# ============================================================================
# Stock Classification
# ============================================================================

# Stock at or below ideal_stock * MEDIUM_STOCK_RATIO (and above the reorder
# point) is classified "medium"
MEDIUM_STOCK_RATIO = Decimal("0.5")

# Default look-ahead window for expiring stock, in days
EXPIRING_SOON_DAYS = 14

# Note attached to the ledger entry created for an item's opening stock
OPENING_BALANCE_NOTE = "Opening balance"

# ============================================================================
# Field Limits
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_CATEGORY_LENGTH = 100
MAX_UNIT_LENGTH = 50
MAX_SUPPLIER_LENGTH = 200
MAX_LOCATION_LENGTH = 100
MAX_NOTES_LENGTH = 2000

# Largest accepted magnitudes for quantities and money amounts
MAX_QUANTITY = Decimal("999999.999")
MAX_COST = Decimal("999999.9999")

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Must be a valid number"
ERROR_INVALID_POSITIVE = "Must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Must be zero or greater"
ERROR_INVALID_NONZERO = "Must not be zero"
ERROR_INVALID_DATE = "Must be a valid date"
ERROR_DERIVED_FIELD = "Derived value; cannot be set directly"
ERROR_INVALID_TRANSACTION_TYPE = "Must be one of: restock, usage, adjustment, write-off"
ERROR_INVALID_BOOLEAN = "Must be true or false"
ERROR_ROUNDS_TO_ZERO = "Must not round to zero"
