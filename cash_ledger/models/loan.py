"""Master loan models."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from cash_ledger.models.base import ZERO, to_money
from cash_ledger.models.enums import Currency, InstallmentStatus, LoanStatus


@dataclass
class Loan:
    """Loan from the master cash box to a project."""

    loan_id: str
    loan_code: str  # ML-0001, ML-0002, ...
    project_id: str
    principal: Decimal
    currency: Currency
    interest_rate: Decimal  # Flat percentage over the principal (e.g., 10 for 10%)
    installments_count: int
    loan_date: date
    due_date: date
    status: LoanStatus = LoanStatus.ACTIVE
    total_repaid: Decimal = ZERO
    description: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_due(self) -> Decimal:
        return to_money(self.principal * (1 + self.interest_rate / 100))

    @property
    def outstanding(self) -> Decimal:
        return self.total_due - self.total_repaid


@dataclass
class LoanInstallment:
    """Loan installment."""

    installment_id: str
    loan_id: str
    installment_number: int  # 1, 2, 3, ...
    amount: Decimal
    due_date: date
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_amount: Decimal = ZERO
    paid_date: date | None = None
    created_at: datetime | None = None

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.paid_amount

    def derive_status(self, today: date) -> InstallmentStatus:
        """Status implied by paid amount and due date."""
        if self.paid_amount >= self.amount:
            return InstallmentStatus.PAID
        if self.due_date < today:
            return InstallmentStatus.OVERDUE
        if self.paid_amount > ZERO:
            return InstallmentStatus.PARTIAL
        return InstallmentStatus.PENDING
