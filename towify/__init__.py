"""Towify client core: session resolution, role routing and scoped data access."""

__version__ = "0.1.0"
