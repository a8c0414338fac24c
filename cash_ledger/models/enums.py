"""Enumeration types for ledger entities."""

from enum import Enum


class Currency(str, Enum):
    ARS = "ARS"
    USD = "USD"


class AccountKind(str, Enum):
    MASTER = "MASTER"
    ADMIN = "ADMIN"
    PROJECT = "PROJECT"


class MovementType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    LOAN_DISBURSEMENT = "LOAN_DISBURSEMENT"
    LOAN_REPAYMENT = "LOAN_REPAYMENT"
    CURRENCY_EXCHANGE = "CURRENCY_EXCHANGE"


class InstallmentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class ContractorPaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class ContractorPaymentType(str, Enum):
    ADVANCE = "ADVANCE"
    PROGRESS = "PROGRESS"
    FINAL = "FINAL"
    ADJUSTMENT = "ADJUSTMENT"


class LoanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class ScheduleFrequency(str, Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"


SETTLED_INSTALLMENT_STATUSES = frozenset({InstallmentStatus.PAID, InstallmentStatus.CANCELLED})
