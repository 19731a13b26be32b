"""Error taxonomy for the identity ledger and root registry.

Every error carries the HTTP status and detail code the API answers with, so
routers never have to translate them one by one.
"""


class LedgerError(Exception):
    status_code = 500
    code = "ledger_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class NotFoundError(LedgerError):
    status_code = 404
    code = "not_found"


class DuplicateLeafError(LedgerError):
    status_code = 409
    code = "duplicate_leaf"


class DuplicateRootError(LedgerError):
    status_code = 409
    code = "duplicate_root"


class InvalidTransitionError(LedgerError):
    status_code = 409
    code = "invalid_transition"


class StorageError(LedgerError):
    """Transient persistence failure. Safe to retry the whole operation."""
    status_code = 503
    code = "storage_error"


class AppendTimeoutError(StorageError):
    code = "append_timeout"


class IntegrityViolationError(LedgerError):
    """A checkpoint no longer matches the identity prefix it claims. Never auto-corrected."""
    status_code = 500
    code = "integrity_violation"


class TreeFullError(LedgerError):
    status_code = 507
    code = "tree_full"
