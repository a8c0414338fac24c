"""Ledger domain models."""

from cash_ledger.models.account import Account, AccountRef
from cash_ledger.models.base import Event
from cash_ledger.models.contractor import ContractorPayment, ContractorPaymentRef
from cash_ledger.models.enums import (
    AccountKind,
    ContractorPaymentStatus,
    ContractorPaymentType,
    Currency,
    InstallmentStatus,
    LoanStatus,
    MovementType,
    ScheduleFrequency,
)
from cash_ledger.models.loan import Loan, LoanInstallment
from cash_ledger.models.movement import Movement
from cash_ledger.models.project import Installment, InstallmentRef, Project
from cash_ledger.models.reconciliation import (
    ReconciliationDiscrepancy,
    ReconciliationReport,
    SourceDiscrepancy,
)

__all__ = [
    "Account",
    "AccountKind",
    "AccountRef",
    "ContractorPayment",
    "ContractorPaymentRef",
    "ContractorPaymentStatus",
    "ContractorPaymentType",
    "Currency",
    "Event",
    "Installment",
    "InstallmentRef",
    "InstallmentStatus",
    "Loan",
    "LoanInstallment",
    "LoanStatus",
    "Movement",
    "MovementType",
    "Project",
    "ReconciliationDiscrepancy",
    "ReconciliationReport",
    "ScheduleFrequency",
    "SourceDiscrepancy",
]
