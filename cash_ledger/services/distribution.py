"""Split an incoming client payment between a project and the admin account."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from cash_ledger.exceptions import ValidationError
from cash_ledger.models import AccountRef, Currency, Movement
from cash_ledger.models.base import ZERO, to_money
from cash_ledger.services.movements import MovementRecorder, validate_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitRules:
    """How a client payment is divided.

    ``admin_fee_percentage`` is expressed in percent (``10`` means 10%).
    """

    project_id: str
    admin_fee_percentage: Decimal

    def __post_init__(self) -> None:
        if not self.project_id:
            raise ValidationError("Split rules require a project_id")
        if not ZERO <= Decimal(self.admin_fee_percentage) <= Decimal("100"):
            raise ValidationError(
                f"admin_fee_percentage must be within 0..100, got {self.admin_fee_percentage}"
            )

    def shares(self, amount: Decimal) -> tuple[Decimal, Decimal]:
        """Return ``(admin_share, project_share)``; the two always add up to ``amount``."""
        admin_share = to_money(amount * Decimal(self.admin_fee_percentage) / 100)
        return admin_share, amount - admin_share


class DistributionService:
    """Record a split payment as two linked INCOME movements."""

    def __init__(self, recorder: MovementRecorder) -> None:
        self.recorder = recorder

    def distribute(
        self,
        payment_amount: Decimal,
        currency: Currency,
        split_rules: SplitRules,
        *,
        related_installment_id: str | None = None,
        related_payment_id: str | None = None,
        description: str = "",
        metadata: dict | None = None,
    ) -> list[Movement]:
        """Credit the admin and project shares of ``payment_amount`` atomically.

        Both movements carry the same ``event_id`` and
        ``related_payment_id``. A share of zero produces no movement.

        Parameters
        ----------
        payment_amount : Decimal
            Amount received from the client.
        currency : Currency
            Currency of the payment.
        split_rules : SplitRules
            Target project and admin fee percentage.
        related_payment_id : str, optional
            Identifier of the source payment. Generated when omitted.

        Returns
        -------
        list[Movement]
            Admin movement first (when non-zero), then project movement.
        """
        amount = validate_amount(payment_amount)
        currency = Currency(currency)
        admin_share, project_share = split_rules.shares(amount)

        event_id = str(uuid.uuid4())
        payment_id = related_payment_id or event_id
        text = description or f"Payment for project {split_rules.project_id}"
        links = {
            "related_installment_id": related_installment_id,
            "related_payment_id": payment_id,
            "event_id": event_id,
        }
        base_metadata = dict(metadata or {})
        base_metadata["admin_fee_percentage"] = str(split_rules.admin_fee_percentage)

        movements: list[Movement] = []
        with self.recorder.unit_of_work():
            if admin_share > ZERO:
                movements.append(
                    self.recorder.record_income(
                        AccountRef.admin(),
                        admin_share,
                        currency,
                        f"Admin fee ({split_rules.admin_fee_percentage}%): {text}",
                        metadata={**base_metadata, "share": "admin"},
                        **links,
                    )
                )
            if project_share > ZERO:
                movements.append(
                    self.recorder.record_income(
                        AccountRef.project(split_rules.project_id),
                        project_share,
                        currency,
                        text,
                        metadata={**base_metadata, "share": "project"},
                        **links,
                    )
                )

        logger.info(
            "Distributed %s %s for project %s: admin=%s project=%s",
            amount,
            currency.value,
            split_rules.project_id,
            admin_share,
            project_share,
        )
        return movements
