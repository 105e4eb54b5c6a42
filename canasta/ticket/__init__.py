"""Receipt text parsing and product matching."""
