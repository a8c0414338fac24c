"""Multi-currency cash-box ledger for project, admin and master accounts."""

__version__ = "0.1.0"

from cash_ledger.ledger import CashLedger

__all__ = ["CashLedger", "__version__"]
