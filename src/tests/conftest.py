"""Pytest configuration and fixtures for service layer tests."""

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from src.models.base import Base


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    # Create in-memory SQLite database for testing
    engine = create_engine("sqlite:///:memory:", echo=False)

    # Create all tables
    Base.metadata.create_all(engine)

    # Create session factory
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import src.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    # Provide database to test
    yield Session

    # Cleanup
    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    # Restore original session factory
    db_module.get_session_factory = original_get_session


@pytest.fixture
def session(test_db):
    """The scoped session of the test database, for passing to services."""
    return test_db()


def _item_data(**overrides):
    """A valid inventory item payload; keyword arguments override fields."""
    data = {
        "name": "Espresso Beans",
        "category": "Coffee",
        "unit": "kg",
        "reorder_point": Decimal("10"),
        "ideal_stock": Decimal("100"),
        "cost_per_unit": Decimal("2.00"),
        "supplier": "Roast Works",
        "location": "Dry store",
    }
    data.update(overrides)
    return data


@pytest.fixture
def item_factory(session):
    """Create inventory items in the test session."""
    from src.services import inventory_service

    def _create(**overrides):
        return inventory_service.create_item(_item_data(**overrides), session=session)

    return _create


@pytest.fixture
def espresso_item(item_factory):
    """An item costing 2.00 per kg with 100 kg opening stock."""
    return item_factory(current_stock=Decimal("100"))


@pytest.fixture
def milk_item(item_factory):
    return item_factory(
        name="Whole Milk",
        category="Dairy",
        unit="l",
        reorder_point=Decimal("5"),
        ideal_stock=Decimal("40"),
        cost_per_unit=Decimal("1.20"),
        supplier="Valley Dairy",
        current_stock=Decimal("20"),
    )


@pytest.fixture
def espresso_recipe(session, espresso_item):
    """Serving size 2, one line of 3 kg espresso: total 6.00, 3.00 per serving."""
    from src.services import recipe_service

    return recipe_service.create_recipe(
        {"name": "Double Espresso", "category": "Hot Drinks", "serving_size": Decimal("2")},
        [{"inventory_item_id": espresso_item.id, "quantity": Decimal("3")}],
        session=session,
    )


@pytest.fixture
def espresso_menu_item(session, espresso_recipe):
    """Priced at 5.00 against a 3.00 cost: profit 2.00, margin 0.40."""
    from src.services import menu_service

    return menu_service.create_menu_item(
        {
            "name": "Espresso",
            "category": "Coffee",
            "price": Decimal("5.00"),
            "recipe_id": espresso_recipe.id,
        },
        session=session,
    )


@pytest.fixture
def item_payload():
    """Build a valid inventory item payload; keyword arguments override fields."""
    return _item_data
