"""Costing primitives shared by the recipe and menu services.

Pure functions over Decimals; no database access. Every derived money value
is quantized here, at compute time, so a value that is stored and reloaded
compares equal to a fresh recompute.

    >>> ingredient_cost(Decimal("3"), Decimal("2.00"))
    Decimal('6.0000')
    >>> recipe_totals([Decimal("6.0000")], Decimal("2"))
    (Decimal('6.0000'), Decimal('3.0000'))
    >>> menu_profitability(Decimal("5.00"), Decimal("3.0000"))
    (Decimal('2.0000'), Decimal('0.4000'))
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Tuple

from src.utils.constants import MARGIN_PRECISION, MONEY_PRECISION, QUANTITY_PRECISION

ZERO = Decimal("0")


def _as_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Any) -> Decimal:
    """Round a money amount to the stored precision."""
    return _as_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def quantize_quantity(value: Any) -> Decimal:
    """Round a stock level or ingredient quantity to the stored precision."""
    return _as_decimal(value).quantize(QUANTITY_PRECISION, rounding=ROUND_HALF_UP)


def quantize_margin(value: Any) -> Decimal:
    """Round a profit margin fraction to the stored precision."""
    return _as_decimal(value).quantize(MARGIN_PRECISION, rounding=ROUND_HALF_UP)


def ingredient_cost(quantity: Any, cost_per_unit: Any) -> Decimal:
    """Cost of one ingredient line: quantity * unit cost."""
    return quantize_money(_as_decimal(quantity) * _as_decimal(cost_per_unit))


def recipe_totals(ingredient_costs: Iterable[Any], serving_size: Any) -> Tuple[Decimal, Decimal]:
    """
    Aggregate ingredient line costs into recipe totals.

    Args:
        ingredient_costs: Cost of each ingredient line
        serving_size: Servings the recipe yields

    Returns:
        Tuple of (total_cost, cost_per_serving); cost_per_serving is 0 when
        serving_size is not positive
    """
    total = quantize_money(sum((_as_decimal(c) for c in ingredient_costs), ZERO))
    servings = _as_decimal(serving_size)
    if servings <= 0:
        return total, quantize_money(ZERO)
    return total, quantize_money(total / servings)


def menu_profitability(price: Any, cost: Any) -> Tuple[Decimal, Decimal]:
    """
    Compute profit and profit margin for a price and a cost.

    Args:
        price: Listed price
        cost: Cost per serving of the linked recipe

    Returns:
        Tuple of (profit, profit_margin); margin is 0 when price is 0
    """
    price = _as_decimal(price)
    profit = quantize_money(price - _as_decimal(cost))
    if price == 0:
        return profit, quantize_margin(ZERO)
    return profit, quantize_margin(profit / price)
