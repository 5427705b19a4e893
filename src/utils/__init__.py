"""Utilities package for the cafe back-office core."""
