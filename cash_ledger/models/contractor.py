"""Contractor payment model."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from cash_ledger.models.base import ZERO
from cash_ledger.models.enums import ContractorPaymentStatus, ContractorPaymentType, Currency


@dataclass(frozen=True)
class ContractorPaymentRef:
    """Payment target pointing at a contractor payment."""

    payment_id: str


@dataclass
class ContractorPayment:
    """Obligation towards a contractor hired for a project.

    Once ``PAID`` the amount is immutable and counted in the project
    account's expenses for its currency.
    """

    payment_id: str
    project_id: str
    project_contractor_id: str
    amount: Decimal
    currency: Currency
    payment_type: ContractorPaymentType
    status: ContractorPaymentStatus = ContractorPaymentStatus.PENDING
    paid_amount: Decimal = ZERO
    payment_date: date | None = None
    description: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.paid_amount
