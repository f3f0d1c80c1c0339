"""Commerce profit ledger core."""

__version__ = "1.0.0"
