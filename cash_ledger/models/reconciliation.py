"""Reconciliation findings."""

from dataclasses import dataclass, field
from decimal import Decimal

from cash_ledger.models.account import AccountRef
from cash_ledger.models.enums import Currency


@dataclass(frozen=True)
class ReconciliationDiscrepancy:
    """Stored aggregate that disagrees with the movement ledger.

    A finding, not an error: reconciliation reports it and only corrects
    it when explicitly asked to.
    """

    account: AccountRef
    currency: Currency
    field: str  # balance, total_income or total_expenses
    stored: Decimal
    expected: Decimal

    @property
    def delta(self) -> Decimal:
        return self.stored - self.expected


@dataclass
class ReconciliationReport:
    """Outcome of reconciling one account."""

    account: AccountRef
    discrepancies: list[ReconciliationDiscrepancy] = field(default_factory=list)
    corrected: bool = False

    @property
    def is_consistent(self) -> bool:
        return not self.discrepancies


@dataclass(frozen=True)
class SourceDiscrepancy:
    """Payment target whose paid amount is not backed by ledger movements."""

    target_type: str  # installment, contractor_payment or loan
    target_id: str
    recorded_paid: Decimal  # paid amount stored on the target
    ledger_amount: Decimal  # sum of movements related to the target

    @property
    def delta(self) -> Decimal:
        return self.recorded_paid - self.ledger_amount
