"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across ledger, costing and menu
operations.

Usage:
    from src.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    # Log successful operation
    log_operation(
        logger,
        operation="record_transaction",
        outcome="success",
        inventory_item_id="inv-1",
        current_stock="5.000",
    )

    # Log validation failure
    log_operation(
        logger,
        operation="set_price",
        outcome="validation_failed",
        level=logging.WARNING,
        menu_item_id="menu-1",
        errors=["price: Must be greater than zero"],
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "cafe_backoffice.services"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance under the 'cafe_backoffice.services' prefix.

    Example:
        >>> logger = get_service_logger("src.services.ledger_service")
        >>> logger.name
        'cafe_backoffice.services.ledger_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "record_transaction", "link_recipe")
        outcome: Outcome description (e.g., "success", "validation_failed")
        level: Log level (default: INFO). Use DEBUG for per-entity cascade logs.
        **context: Additional context fields (entity ids, derived values,
            error messages). Passed through 'extra' for structured handlers.
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
