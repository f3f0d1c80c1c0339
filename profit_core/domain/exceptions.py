"""
Domain exception taxonomy.

Verification failures are rejected before any side effect.
Missing references are recorded as failed in the idempotency ledger.
Data-quality conditions are NOT exceptions - see CalculationWarning.
"""


class ProfitLedgerError(Exception):
    """Base class for all ledger errors."""
    pass


# =============================================================================
# VERIFICATION FAILURES
# =============================================================================

class VerificationError(ProfitLedgerError):
    """Incoming event failed verification and must not be processed."""
    pass


class SignatureVerificationError(VerificationError):
    """HMAC signature missing or does not match the payload."""
    pass


class MalformedPayloadError(VerificationError):
    """Payload is not valid JSON or does not match the normalized event shape."""
    pass


# =============================================================================
# MISSING REFERENCES
# =============================================================================

class MissingReferenceError(ProfitLedgerError):
    """Event references an entity that does not exist."""
    pass


class StoreNotFoundError(MissingReferenceError):
    def __init__(self, store_ref: str):
        self.store_ref = store_ref
        super().__init__(f"Store not found: {store_ref}")


class OrderNotFoundError(MissingReferenceError):
    def __init__(self, store_id: str, external_order_id: str):
        self.store_id = store_id
        self.external_order_id = external_order_id
        super().__init__(f"Order not found: {external_order_id} (store {store_id})")


# =============================================================================
# OTHER
# =============================================================================

class NumericCoercionError(ProfitLedgerError, ValueError):
    """A value handed to the calculation engine is not a finite number."""
    pass


class ConcurrencyConflictError(ProfitLedgerError):
    """Concurrent write to the same order detected (unique key collision)."""
    pass
