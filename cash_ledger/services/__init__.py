"""Ledger services operating on a ``LedgerStore``."""

from cash_ledger.services.distribution import DistributionService, SplitRules
from cash_ledger.services.loans import LoanService
from cash_ledger.services.movements import MovementRecorder, validate_amount
from cash_ledger.services.payments import PaymentResult, PaymentService
from cash_ledger.services.projects import ProjectService
from cash_ledger.services.reconciliation import ReconciliationChecker

__all__ = [
    "DistributionService",
    "LoanService",
    "MovementRecorder",
    "PaymentResult",
    "PaymentService",
    "ProjectService",
    "ReconciliationChecker",
    "SplitRules",
    "validate_amount",
]
