class LedgerError(Exception):
    pass


class ValidationError(LedgerError):
    pass


class EntityNotFoundError(LedgerError):
    pass


class ReferentialInconsistency(LedgerError):
    pass


class SettlementCategoryUnavailable(LedgerError):
    pass


class StoreFailure(LedgerError):
    pass


class CreationConflict(Exception):
    """Raised by a store when an insert collides with an existing unique key."""
