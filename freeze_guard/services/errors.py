"""Error types raised by the freeze store and service."""


class FreezeError(Exception):
    """Base class for strategy freeze errors."""


class RecordNotFoundError(FreezeError):
    """No strategy_freeze row with the requested id."""


class FreezeValidationError(FreezeError, ValueError):
    """Key fields missing or trade mode not recognised."""


class StoreError(FreezeError):
    """The database rejected or failed a read or write."""


class DuplicateKeyError(StoreError):
    """A write would create a second row for the same key."""
