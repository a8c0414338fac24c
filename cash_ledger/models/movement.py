"""Movement model: one immutable entry of the cash ledger."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from cash_ledger.models.account import AccountRef
from cash_ledger.models.enums import Currency, MovementType


@dataclass(frozen=True)
class Movement:
    """Money movement between accounts or with the external world.

    A ``None`` source or destination stands for the external world
    (clients, contractors, suppliers).
    """

    movement_id: str
    movement_type: MovementType
    amount: Decimal  # Always positive
    currency: Currency
    source: AccountRef | None
    destination: AccountRef | None
    description: str
    created_at: datetime
    related_installment_id: str | None = None
    related_payment_id: str | None = None
    related_loan_id: str | None = None
    event_id: str | None = None  # Shared by movements of one logical event
    metadata: dict = field(default_factory=dict)

    def touches(self, ref: AccountRef) -> bool:
        return self.source == ref or self.destination == ref
