"""Unit tests for payload validators."""

from datetime import date
from decimal import Decimal

import pytest

from src.utils.constants import MAX_COST, MAX_QUANTITY
from src.utils.validators import (
    to_decimal,
    validate_boolean,
    validate_inventory_item_data,
    validate_menu_item_data,
    validate_no_derived_fields,
    validate_non_negative_number,
    validate_nonzero_number,
    validate_nutritional_info,
    validate_positive_number,
    validate_recipe_data,
    validate_transaction_data,
)


def _item(**overrides):
    data = {
        "name": "Oat Milk",
        "category": "Dairy Alternatives",
        "unit": "l",
        "reorder_point": "8",
        "ideal_stock": "24",
        "cost_per_unit": "2.40",
        "supplier": "Green Pantry",
    }
    data.update(overrides)
    return data


class TestNumbers:
    @pytest.mark.parametrize("value", ["1.5", 2, Decimal("0.001")])
    def test_positive_accepts(self, value):
        assert validate_positive_number(value, "qty") == (True, "")

    @pytest.mark.parametrize("value", ["0", -1, "abc", None, True, "NaN", "Infinity"])
    def test_positive_rejects(self, value):
        is_valid, error = validate_positive_number(value, "qty")
        assert not is_valid
        assert error.startswith("qty: ")

    def test_nonzero(self):
        assert validate_nonzero_number("-3", "quantity")[0]
        assert validate_nonzero_number("0", "quantity") == (False, "quantity: Must not be zero")

    def test_maximum_is_inclusive(self):
        assert validate_positive_number(MAX_QUANTITY, "qty", MAX_QUANTITY) == (True, "")
        is_valid, error = validate_positive_number(Decimal("1e26"), "qty", MAX_QUANTITY)
        assert not is_valid
        assert error == f"qty: Must be {MAX_QUANTITY} or less"

    def test_maximum_bounds_magnitude(self):
        assert not validate_nonzero_number(Decimal("-1e26"), "quantity", MAX_QUANTITY)[0]
        assert not validate_non_negative_number(Decimal("1e25"), "unit_cost", MAX_COST)[0]

    @pytest.mark.parametrize("value", [True, False])
    def test_boolean_accepts(self, value):
        assert validate_boolean(value, "is_active") == (True, "")

    @pytest.mark.parametrize("value", ["no", "true", 0, 1, None])
    def test_boolean_rejects(self, value):
        assert validate_boolean(value, "is_active") == (False, "is_active: Must be true or false")

    def test_to_decimal(self):
        assert to_decimal(" 2.50 ") == Decimal("2.50")
        assert to_decimal(False) is None


class TestInventoryItemData:
    def test_valid(self):
        assert validate_inventory_item_data(_item()) == (True, [])

    def test_reports_every_violation(self):
        is_valid, errors = validate_inventory_item_data(
            _item(name="", ideal_stock="0", reorder_point="-1", cost_per_unit="x", supplier=None)
        )
        assert not is_valid
        fields = {e.split(": ")[0] for e in errors}
        assert fields == {"name", "ideal_stock", "reorder_point", "cost_per_unit", "supplier"}

    def test_partial_only_checks_present_fields(self):
        assert validate_inventory_item_data({"cost_per_unit": "3"}, partial=True) == (True, [])
        is_valid, errors = validate_inventory_item_data({"ideal_stock": 0}, partial=True)
        assert errors == ["ideal_stock: Must be greater than zero"]

    def test_opening_stock_must_not_be_negative(self):
        _, errors = validate_inventory_item_data(_item(current_stock="-5"))
        assert errors == ["current_stock: Must be zero or greater"]

    def test_bad_expiry_date(self):
        _, errors = validate_inventory_item_data(_item(expiry_date="next tuesday"))
        assert errors == ["expiry_date: Must be a valid date"]

    def test_name_too_long(self):
        _, errors = validate_inventory_item_data(_item(name="x" * 201))
        assert errors == ["name: Must be 200 characters or less"]


class TestTransactionData:
    def _tx(self, **overrides):
        data = {"inventory_item_id": "inv-1", "transaction_type": "usage", "quantity": "2"}
        data.update(overrides)
        return data

    def test_valid(self):
        assert validate_transaction_data(self._tx()) == (True, [])

    def test_unknown_type(self):
        _, errors = validate_transaction_data(self._tx(transaction_type="spill"))
        assert errors == [
            "transaction_type: Must be one of: restock, usage, adjustment, write-off"
        ]

    def test_missing_type(self):
        _, errors = validate_transaction_data(self._tx(transaction_type=None))
        assert "transaction_type: This field is required" in errors

    @pytest.mark.parametrize("kind", ["restock", "usage", "write-off"])
    def test_magnitude_types_need_positive_quantity(self, kind):
        _, errors = validate_transaction_data(self._tx(transaction_type=kind, quantity="-1"))
        assert errors == ["quantity: Must be greater than zero"]

    def test_adjustment_may_be_negative_but_not_zero(self):
        assert validate_transaction_data(self._tx(transaction_type="adjustment", quantity="-4"))[0]
        _, errors = validate_transaction_data(self._tx(transaction_type="adjustment", quantity=0))
        assert errors == ["quantity: Must not be zero"]

    def test_negative_unit_cost(self):
        _, errors = validate_transaction_data(self._tx(unit_cost="-0.01"))
        assert errors == ["unit_cost: Must be zero or greater"]

    def test_missing_item(self):
        _, errors = validate_transaction_data(self._tx(inventory_item_id=""))
        assert errors == ["inventory_item_id: This field is required"]


class TestRecipeData:
    def test_valid(self):
        data = {
            "name": "Latte",
            "category": "Hot Drinks",
            "serving_size": 1,
            "preparation_steps": ["Pull shot", "Steam milk"],
        }
        assert validate_recipe_data(data) == (True, [])

    def test_serving_size_must_be_positive(self):
        _, errors = validate_recipe_data({"name": "Latte", "category": "Hot", "serving_size": 0})
        assert errors == ["serving_size: Must be greater than zero"]

    def test_is_active_must_be_boolean(self):
        _, errors = validate_recipe_data({"is_active": "no"}, partial=True)
        assert errors == ["is_active: Must be true or false"]

    def test_steps_must_be_strings(self):
        _, errors = validate_recipe_data({"preparation_steps": ["ok", 3]}, partial=True)
        assert errors == ["preparation_steps: Must be a list of text steps"]


class TestNutritionalInfo:
    def test_none_is_valid(self):
        assert validate_nutritional_info(None) == []

    def test_negative_values_and_duplicate_allergens(self):
        errors = validate_nutritional_info({"calories": -1, "allergens": ["milk", "Milk"]})
        assert errors == [
            "nutritional_info.calories: Must be zero or greater",
            "nutritional_info.allergens: Must not contain duplicates",
        ]

    def test_allergens_must_be_names(self):
        assert validate_nutritional_info({"allergens": "milk"}) == [
            "nutritional_info.allergens: Must be a list of names"
        ]


class TestMenuItemData:
    def test_valid(self):
        data = {"name": "Latte", "category": "Coffee", "price": "4.50", "recipe_id": "rec-1"}
        assert validate_menu_item_data(data) == (True, [])

    def test_flags_must_be_booleans(self):
        _, errors = validate_menu_item_data(
            {"is_active": "no", "is_seasonal": 1, "is_featured": False}, partial=True
        )
        assert errors == [
            "is_active: Must be true or false",
            "is_seasonal: Must be true or false",
        ]

    def test_price_must_be_positive(self):
        _, errors = validate_menu_item_data({"price": "0"}, partial=True)
        assert errors == ["price: Must be greater than zero"]

    def test_season_end_before_start(self):
        _, errors = validate_menu_item_data(
            {"season_start": date(2026, 12, 1), "season_end": "2026-11-01"}, partial=True
        )
        assert errors == ["season_end: Must be on or after season_start"]


def test_no_derived_fields():
    errors = validate_no_derived_fields(
        {"name": "x", "total_cost": 1, "cost_per_serving": 2}, ("total_cost", "cost_per_serving")
    )
    assert errors == [
        "total_cost: Derived value; cannot be set directly",
        "cost_per_serving: Derived value; cannot be set directly",
    ]
