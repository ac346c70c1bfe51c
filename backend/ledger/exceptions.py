"""Errors raised by the ledger. None of them leave the in-memory graph modified."""


class LedgerError(Exception):
    pass


class InvalidReferenceError(LedgerError):
    """One or more user ids did not resolve in the user directory."""

    def __init__(self, missing_ids):
        self.missing_ids = sorted(set(missing_ids))
        super().__init__(f"Unknown user id(s): {', '.join(str(i) for i in self.missing_ids)}")


class InvalidAllocationError(LedgerError):
    """Caller-supplied payer shares are malformed."""


class EntityNotFoundError(LedgerError):
    """An event or activity id does not exist in the ledger."""


class PersistenceError(LedgerError):
    """A durable write failed; the operation did not happen."""
