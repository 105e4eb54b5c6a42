"""canasta: turn Colombian supermarket receipts into reviewed purchase records."""

__version__ = "0.3.0"
