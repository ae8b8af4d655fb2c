"""Error kinds raised by the ledger and mapped to HTTP statuses in main.py."""


class LedgerError(Exception):
    """Base class for every error the ledger reports to callers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NegativeQuantity(LedgerError):
    def __init__(self, field: str, value: int):
        super().__init__(f"Quantities cannot be negative ({field}={value})")
        self.field = field
        self.value = value


class InsufficientEmptyBuckets(LedgerError):
    """The delivery would take more empties than are on hand."""

    def __init__(self, available: int, requested: int):
        super().__init__(
            f"Not enough empty buckets: only {available} on hand, {requested} requested"
        )
        self.available = available
        self.requested = requested


class MalformedRequest(LedgerError):
    pass


class Unauthenticated(LedgerError):
    pass


class StoreUnavailable(LedgerError):
    """The key-value store call failed; carries the underlying error text."""
    pass
