"""Project and installment models."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from cash_ledger.models.base import ZERO
from cash_ledger.models.enums import Currency, InstallmentStatus, ScheduleFrequency


@dataclass
class Project:
    """Client project owning a cash account and an installment schedule."""

    project_id: str
    name: str
    client_name: str
    currency: Currency
    total_amount: Decimal
    down_payment_amount: Decimal
    installments_count: int
    start_date: date
    admin_fee_percentage: Decimal = ZERO  # 0..100, share of each client payment
    frequency: ScheduleFrequency = ScheduleFrequency.MONTHLY
    archived: bool = False
    created_at: datetime | None = None


@dataclass(frozen=True)
class InstallmentRef:
    """Payment target pointing at a project installment."""

    installment_id: str


@dataclass
class Installment:
    """Client installment (cuota). Number 0 is the down payment."""

    installment_id: str
    project_id: str
    installment_number: int
    amount: Decimal
    currency: Currency
    due_date: date
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_amount: Decimal = ZERO
    paid_date: date | None = None
    description: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_down_payment(self) -> bool:
        return self.installment_number == 0

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.paid_amount

    def derive_status(self, today: date) -> InstallmentStatus:
        """Status implied by paid amount, amount and due date.

        ``CANCELLED`` is sticky; everything else is recomputed.
        """
        if self.status == InstallmentStatus.CANCELLED:
            return InstallmentStatus.CANCELLED
        if self.paid_amount >= self.amount:
            return InstallmentStatus.PAID
        if self.due_date < today:
            return InstallmentStatus.OVERDUE
        if self.paid_amount > ZERO:
            return InstallmentStatus.PARTIAL
        return InstallmentStatus.PENDING
