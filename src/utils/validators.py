"""
Input validation functions for the cafe back-office core.

This module provides validation functions for all create/edit payloads:
- Numeric validation (positive, non-negative, non-zero)
- String validation (length, required fields)
- Date validation
- Complete payload validation (inventory item, transaction, recipe, menu item)

Every message has the form "<field>: <reason>" so callers can attach it to
the offending form field. Payload validators collect every violation rather
than stopping at the first one.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Tuple

from src.models.enums import TransactionType
from src.utils.datetime_utils import coerce_date

from .constants import (
    ERROR_DERIVED_FIELD,
    ERROR_INVALID_BOOLEAN,
    ERROR_INVALID_DATE,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NONZERO,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_INVALID_TRANSACTION_TYPE,
    ERROR_REQUIRED_FIELD,
    MAX_CATEGORY_LENGTH,
    MAX_COST,
    MAX_LOCATION_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_QUANTITY,
    MAX_SUPPLIER_LENGTH,
    MAX_UNIT_LENGTH,
)


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert a number or numeric string to a finite Decimal.

    Args:
        value: Value to convert

    Returns:
        Decimal, or None if the value is not a finite number
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def validate_required_string(value: Optional[str], field_name: str = "field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or not isinstance(value, str) or value.strip() == "":
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_string_length(
    value: Optional[str], max_length: int, field_name: str = "field"
) -> Tuple[bool, str]:
    """
    Validate that a string doesn't exceed maximum length.

    Args:
        value: The string value to validate
        max_length: Maximum allowed length
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value and len(value) > max_length:
        return False, f"{field_name}: Must be {max_length} characters or less"
    return True, ""


def _check_maximum(
    number: Decimal, maximum: Optional[Decimal], field_name: str
) -> Tuple[bool, str]:
    if maximum is not None and abs(number) > maximum:
        return False, f"{field_name}: Must be {maximum} or less"
    return True, ""


def validate_positive_number(
    value: Any, field_name: str = "field", maximum: Optional[Decimal] = None
) -> Tuple[bool, str]:
    """
    Validate that a value is a positive number (> 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages
        maximum: Largest accepted value, if bounded

    Returns:
        Tuple of (is_valid, error_message)
    """
    number = to_decimal(value)
    if number is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if number <= 0:
        return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
    return _check_maximum(number, maximum, field_name)


def validate_non_negative_number(
    value: Any, field_name: str = "field", maximum: Optional[Decimal] = None
) -> Tuple[bool, str]:
    """
    Validate that a value is a non-negative number (>= 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages
        maximum: Largest accepted value, if bounded

    Returns:
        Tuple of (is_valid, error_message)
    """
    number = to_decimal(value)
    if number is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if number < 0:
        return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
    return _check_maximum(number, maximum, field_name)


def validate_nonzero_number(
    value: Any, field_name: str = "field", maximum: Optional[Decimal] = None
) -> Tuple[bool, str]:
    """Validate that a value is a number other than zero, bounded in magnitude by maximum."""
    number = to_decimal(value)
    if number is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if number == 0:
        return False, f"{field_name}: {ERROR_INVALID_NONZERO}"
    return _check_maximum(number, maximum, field_name)


def validate_boolean(value: Any, field_name: str = "field") -> Tuple[bool, str]:
    """Validate that a value is a real bool (strings like "no" are rejected)."""
    if not isinstance(value, bool):
        return False, f"{field_name}: {ERROR_INVALID_BOOLEAN}"
    return True, ""


def validate_optional_date(value: Any, field_name: str = "field") -> Tuple[bool, str]:
    """Validate that a value is empty or parses as a date."""
    try:
        coerce_date(value)
    except (TypeError, ValueError):
        return False, f"{field_name}: {ERROR_INVALID_DATE}"
    return True, ""


def validate_no_derived_fields(data: dict, derived_fields: Iterable[str]) -> List[str]:
    """
    Reject payload keys that name derived fields.

    Args:
        data: Create/edit payload
        derived_fields: Field names computed by the services

    Returns:
        List of error messages, one per derived field present
    """
    return [f"{field}: {ERROR_DERIVED_FIELD}" for field in derived_fields if field in data]


def _check(errors: List[str], result: Tuple[bool, str]) -> bool:
    """Append the message of a failed (is_valid, message) result."""
    is_valid, error = result
    if not is_valid:
        errors.append(error)
    return is_valid


def _check_required_text(errors: List[str], data: dict, field: str, max_length: int) -> None:
    if _check(errors, validate_required_string(data.get(field), field)):
        _check(errors, validate_string_length(data.get(field), max_length, field))


def validate_inventory_item_data(data: dict, partial: bool = False) -> Tuple[bool, list]:  # noqa: C901
    """
    Validate all fields for an inventory item.

    Args:
        data: Dictionary containing inventory item fields
        partial: If True, only validate fields present in data (edits)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    def present(field: str) -> bool:
        return not partial or field in data

    for field, max_length in (
        ("name", MAX_NAME_LENGTH),
        ("category", MAX_CATEGORY_LENGTH),
        ("unit", MAX_UNIT_LENGTH),
        ("supplier", MAX_SUPPLIER_LENGTH),
    ):
        if present(field):
            _check_required_text(errors, data, field, max_length)

    for field, check, maximum in (
        ("reorder_point", validate_non_negative_number, MAX_QUANTITY),
        ("ideal_stock", validate_positive_number, MAX_QUANTITY),
        ("cost_per_unit", validate_non_negative_number, MAX_COST),
    ):
        if present(field):
            _check(errors, check(data.get(field), field, maximum))

    # Opening stock is only meaningful on create
    if not partial and data.get("current_stock") is not None:
        _check(
            errors,
            validate_non_negative_number(data.get("current_stock"), "current_stock", MAX_QUANTITY),
        )

    if data.get("location"):
        _check(errors, validate_string_length(data["location"], MAX_LOCATION_LENGTH, "location"))
    if data.get("notes"):
        _check(errors, validate_string_length(data["notes"], MAX_NOTES_LENGTH, "notes"))

    if "expiry_date" in data:
        _check(errors, validate_optional_date(data.get("expiry_date"), "expiry_date"))

    return len(errors) == 0, errors


def validate_transaction_data(data: dict) -> Tuple[bool, list]:
    """
    Validate a ledger transaction submission.

    Restock, usage and write-off quantities must be positive magnitudes.
    Adjustment quantities carry their own sign and only need to be non-zero.

    Args:
        data: Dictionary containing transaction fields

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    _check(errors, validate_required_string(data.get("inventory_item_id"), "inventory_item_id"))

    raw_type = data.get("transaction_type")
    transaction_type = None
    try:
        transaction_type = TransactionType(raw_type)
    except ValueError:
        if raw_type is None or raw_type == "":
            errors.append(f"transaction_type: {ERROR_REQUIRED_FIELD}")
        else:
            errors.append(f"transaction_type: {ERROR_INVALID_TRANSACTION_TYPE}")

    if transaction_type is TransactionType.ADJUSTMENT:
        _check(errors, validate_nonzero_number(data.get("quantity"), "quantity", MAX_QUANTITY))
    else:
        _check(errors, validate_positive_number(data.get("quantity"), "quantity", MAX_QUANTITY))

    if data.get("unit_cost") is not None:
        _check(errors, validate_non_negative_number(data.get("unit_cost"), "unit_cost", MAX_COST))

    _check(errors, validate_optional_date(data.get("transaction_date"), "transaction_date"))

    if data.get("notes"):
        _check(errors, validate_string_length(data["notes"], MAX_NOTES_LENGTH, "notes"))

    return len(errors) == 0, errors


def validate_nutritional_info(info: Any, field_name: str = "nutritional_info") -> List[str]:
    """
    Validate an optional nutritional info mapping.

    Args:
        info: Mapping with calories/protein/carbs/fat numbers and an allergens list
        field_name: Name used as the error prefix

    Returns:
        List of error messages
    """
    if info is None:
        return []
    if not isinstance(info, dict):
        return [f"{field_name}: Must be a mapping"]

    errors = []
    for key in ("calories", "protein", "carbs", "fat"):
        if info.get(key) is not None:
            _check(errors, validate_non_negative_number(info[key], f"{field_name}.{key}"))

    allergens = info.get("allergens")
    if allergens is not None:
        if not isinstance(allergens, list) or not all(
            isinstance(a, str) and a.strip() for a in allergens
        ):
            errors.append(f"{field_name}.allergens: Must be a list of names")
        elif len({a.strip().lower() for a in allergens}) != len(allergens):
            errors.append(f"{field_name}.allergens: Must not contain duplicates")

    return errors


def validate_recipe_data(data: dict, partial: bool = False) -> Tuple[bool, list]:
    """
    Validate all fields for a recipe.

    Args:
        data: Dictionary containing recipe fields
        partial: If True, only validate fields present in data (edits)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    if not partial or "name" in data:
        _check_required_text(errors, data, "name", MAX_NAME_LENGTH)
    if not partial or "category" in data:
        _check_required_text(errors, data, "category", MAX_CATEGORY_LENGTH)
    if not partial or "serving_size" in data:
        _check(
            errors,
            validate_positive_number(data.get("serving_size"), "serving_size", MAX_QUANTITY),
        )
    if "is_active" in data:
        _check(errors, validate_boolean(data["is_active"], "is_active"))

    steps = data.get("preparation_steps")
    if steps is not None:
        if not isinstance(steps, list) or not all(isinstance(s, str) for s in steps):
            errors.append("preparation_steps: Must be a list of text steps")

    errors.extend(validate_nutritional_info(data.get("nutritional_info")))

    return len(errors) == 0, errors


def validate_menu_item_data(data: dict, partial: bool = False) -> Tuple[bool, list]:  # noqa: C901
    """
    Validate all fields for a menu item.

    Args:
        data: Dictionary containing menu item fields
        partial: If True, only validate fields present in data (edits)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    if not partial or "name" in data:
        _check_required_text(errors, data, "name", MAX_NAME_LENGTH)
    if not partial or "category" in data:
        _check_required_text(errors, data, "category", MAX_CATEGORY_LENGTH)
    if not partial or "price" in data:
        _check(errors, validate_positive_number(data.get("price"), "price", MAX_COST))
    if not partial or "recipe_id" in data:
        _check(errors, validate_required_string(data.get("recipe_id"), "recipe_id"))

    for flag in ("is_active", "is_seasonal", "is_featured"):
        if flag in data:
            _check(errors, validate_boolean(data[flag], flag))

    start_ok = _check(errors, validate_optional_date(data.get("season_start"), "season_start"))
    end_ok = _check(errors, validate_optional_date(data.get("season_end"), "season_end"))
    if start_ok and end_ok:
        start = coerce_date(data.get("season_start"))
        end = coerce_date(data.get("season_end"))
        if start and end and end < start:
            errors.append("season_end: Must be on or after season_start")

    return len(errors) == 0, errors
