from __future__ import annotations


class LedgerError(Exception):
    """Base class for every failure the ledger reports to its callers."""

    code = "ledger_error"


class ValidationError(LedgerError):
    """Caller input violates a precondition. Raised before any write."""

    code = "validation_error"


class NotFoundError(LedgerError):
    code = "not_found"


class ConflictError(LedgerError):
    """Concurrent modification or idempotency key reuse. Re-read and retry."""

    code = "conflict"


class StorageError(LedgerError):
    """The database failed mid-operation; the transaction was rolled back."""

    code = "storage_error"
