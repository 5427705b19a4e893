"""Cafe back-office core: inventory ledger and recipe/menu costing."""
