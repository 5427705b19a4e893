"""
Utility to load sample data for development and testing.

This module loads a small coffee-shop catalog from a JSON file into the
database. Everything goes through the public service operations, so
opening stock lands in the ledger and every recipe and menu item gets its
derived costs computed the same way as when entered by hand.
"""

import json
from pathlib import Path
from typing import Dict, Optional

from sqlalchemy.orm import Session

from src.services import inventory_service, ledger_service, menu_service, recipe_service
from src.services.database import session_scope

DEFAULT_SAMPLE_DATA = Path(__file__).resolve().parents[2] / "test_data" / "sample_data.json"


def load_sample_data(path: Optional[str] = None, session: Optional[Session] = None) -> Dict[str, int]:
    """
    Load sample data from a JSON file into the database.

    The file holds four lists, loaded in dependency order:
    inventory_items, transactions, recipes (each with its ingredients),
    menu_items.

    Args:
        path: Path to the JSON file (defaults to test_data/sample_data.json)
        session: Optional database session; without one everything is
            loaded in a single transaction

    Returns:
        Dictionary with counts of created entities
    """
    json_path = Path(path) if path else DEFAULT_SAMPLE_DATA
    with open(json_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    def _load(sess: Session) -> Dict[str, int]:
        counts = {"inventory_items": 0, "transactions": 0, "recipes": 0, "menu_items": 0}

        for item_data in data.get("inventory_items", []):
            inventory_service.create_item(item_data, session=sess)
            counts["inventory_items"] += 1

        for tx_data in data.get("transactions", []):
            ledger_service.record_transaction(tx_data, session=sess)
            counts["transactions"] += 1

        for recipe_data in data.get("recipes", []):
            recipe_fields = {k: v for k, v in recipe_data.items() if k != "ingredients"}
            recipe_service.create_recipe(
                recipe_fields, recipe_data.get("ingredients", []), session=sess
            )
            counts["recipes"] += 1

        for menu_data in data.get("menu_items", []):
            menu_service.create_menu_item(menu_data, session=sess)
            counts["menu_items"] += 1

        return counts

    if session is not None:
        return _load(session)
    with session_scope() as sess:
        return _load(sess)
