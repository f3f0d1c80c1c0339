"""HTTP API for the profit ledger."""
