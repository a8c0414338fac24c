"""Custom exception hierarchy for cash-ledger."""


class LedgerError(Exception):
    """Base exception for all cash-ledger errors."""


class EntityNotFoundError(LedgerError):
    """Raised when a referenced entity does not exist."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a foreign key reference is violated."""


class TargetNotFoundError(EntityNotFoundError):
    """Raised when a payment target (installment or contractor payment) is missing."""


class InvalidEntityStateError(LedgerError):
    """Raised when an entity is in an invalid state for the operation."""


class AlreadySettledError(InvalidEntityStateError):
    """Raised when a payment target is already paid or cancelled."""


class ValidationError(LedgerError):
    """Raised when input has a bad shape or is out of range."""


class InvalidScheduleError(ValidationError):
    """Raised when schedule parameters cannot produce a valid schedule."""


class OverpaymentError(LedgerError):
    """Raised when a payment exceeds the remaining amount due."""


class InsufficientFundsError(LedgerError):
    """Raised when an account cannot cover an outflow."""


class PersistenceError(LedgerError):
    """Raised when the underlying store fails during a write."""


class ConfigurationError(LedgerError):
    """Raised when configuration is invalid or missing."""


class SinkError(LedgerError):
    """Raised when a sink operation fails."""
