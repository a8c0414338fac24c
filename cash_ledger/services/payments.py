"""Payment application engine for installments and contractor payments."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from cash_ledger.exceptions import (
    AlreadySettledError,
    InvalidEntityStateError,
    OverpaymentError,
    TargetNotFoundError,
    ValidationError,
)
from cash_ledger.models import (
    AccountRef,
    ContractorPayment,
    ContractorPaymentRef,
    ContractorPaymentStatus,
    Currency,
    Installment,
    InstallmentRef,
    InstallmentStatus,
    Movement,
)
from cash_ledger.models.base import ZERO
from cash_ledger.models.enums import SETTLED_INSTALLMENT_STATUSES
from cash_ledger.services.distribution import DistributionService, SplitRules
from cash_ledger.services.movements import MovementRecorder, validate_amount

logger = logging.getLogger(__name__)

PaymentTarget = InstallmentRef | ContractorPaymentRef

_OPEN_INSTALLMENT_STATUSES = frozenset({InstallmentStatus.PENDING, InstallmentStatus.PARTIAL})


@dataclass
class PaymentResult:
    """Updated target and the movements recorded for the payment."""

    target: Installment | ContractorPayment
    movements: list[Movement] = field(default_factory=list)


class PaymentService:
    """Apply incoming payments to their targets.

    Every application updates the target, appends the movement(s) and
    updates the account aggregates in a single unit of work. Overpayments
    are rejected, never capped.
    """

    def __init__(self, recorder: MovementRecorder, distribution: DistributionService | None = None) -> None:
        self.recorder = recorder
        self.store = recorder.store
        self.distribution = distribution or DistributionService(recorder)

    def apply_payment(
        self,
        target: PaymentTarget,
        amount: Decimal,
        currency: Currency,
        metadata: dict | None = None,
        today: date | None = None,
    ) -> PaymentResult:
        """Apply a full or partial payment.

        Parameters
        ----------
        target : InstallmentRef | ContractorPaymentRef
            Installment being collected or contractor payment being paid.
        amount : Decimal
            Amount paid. Must be positive and not exceed what remains.
        currency : Currency
            Must match the target's currency.
        metadata : dict, optional
            Payment method details copied onto the movements.
        today : date, optional
            Business date used for ``paid_date`` and status derivation.

        Raises
        ------
        ValidationError
            Non-positive amount or currency mismatch.
        TargetNotFoundError
            The target does not exist.
        AlreadySettledError
            The target is already paid or cancelled.
        OverpaymentError
            The amount exceeds the remaining balance of the target.
        """
        amount = validate_amount(amount)
        currency = Currency(currency)
        today = today or self.recorder.clock().date()

        if isinstance(target, InstallmentRef):
            return self._pay_installment(target.installment_id, amount, currency, metadata, today)
        if isinstance(target, ContractorPaymentRef):
            return self._pay_contractor(target.payment_id, amount, currency, metadata, today)
        raise ValidationError(f"Unsupported payment target: {target!r}")

    def _pay_installment(
        self,
        installment_id: str,
        amount: Decimal,
        currency: Currency,
        metadata: dict | None,
        today: date,
    ) -> PaymentResult:
        with self.recorder.unit_of_work() as store:
            installment = store.get_installment(installment_id)
            if installment is None:
                raise TargetNotFoundError(f"Installment {installment_id} not found")
            if installment.status in SETTLED_INSTALLMENT_STATUSES:
                raise AlreadySettledError(
                    f"Installment {installment_id} is already {installment.status.value}"
                )
            _check_payment(installment_id, installment.currency, installment.remaining, amount, currency)

            installment.paid_amount += amount
            installment.paid_date = today
            installment.status = installment.derive_status(today)
            installment.updated_at = self.recorder.clock()

            project = store.projects[installment.project_id]
            payment_id = str(uuid.uuid4())
            description = (
                f"Down payment - {project.name}"
                if installment.is_down_payment
                else f"Installment #{installment.installment_number} - {project.name}"
            )
            if project.admin_fee_percentage > ZERO:
                movements = self.distribution.distribute(
                    amount,
                    currency,
                    SplitRules(project.project_id, project.admin_fee_percentage),
                    related_installment_id=installment_id,
                    related_payment_id=payment_id,
                    description=description,
                    metadata=metadata,
                )
            else:
                movements = [
                    self.recorder.record_income(
                        AccountRef.project(project.project_id),
                        amount,
                        currency,
                        description,
                        related_installment_id=installment_id,
                        related_payment_id=payment_id,
                        metadata=metadata,
                    )
                ]

        logger.info(
            "Applied %s %s to installment %s (%s/%s, %s)",
            amount,
            currency.value,
            installment_id,
            installment.paid_amount,
            installment.amount,
            installment.status.value,
        )
        return PaymentResult(target=installment, movements=movements)

    def _pay_contractor(
        self,
        payment_id: str,
        amount: Decimal,
        currency: Currency,
        metadata: dict | None,
        today: date,
    ) -> PaymentResult:
        with self.recorder.unit_of_work() as store:
            payment = store.get_contractor_payment(payment_id)
            if payment is None:
                raise TargetNotFoundError(f"Contractor payment {payment_id} not found")
            if payment.status != ContractorPaymentStatus.PENDING:
                raise AlreadySettledError(f"Contractor payment {payment_id} is already {payment.status.value}")
            _check_payment(payment_id, payment.currency, payment.remaining, amount, currency)

            payment.paid_amount += amount
            if payment.paid_amount == payment.amount:
                payment.status = ContractorPaymentStatus.PAID
                payment.payment_date = today
            payment.updated_at = self.recorder.clock()

            movement = self.recorder.record_expense(
                AccountRef.project(payment.project_id),
                amount,
                currency,
                payment.description or f"Contractor payment ({payment.payment_type.value.lower()})",
                related_payment_id=payment_id,
                metadata={**(metadata or {}), "project_contractor_id": payment.project_contractor_id},
            )

        logger.info(
            "Applied %s %s to contractor payment %s (%s/%s, %s)",
            amount,
            currency.value,
            payment_id,
            payment.paid_amount,
            payment.amount,
            payment.status.value,
        )
        return PaymentResult(target=payment, movements=[movement])

    def mark_overdue(self, today: date | None = None) -> list[Installment]:
        """Move unpaid installments past their due date to ``OVERDUE``."""
        today = today or self.recorder.clock().date()
        changed: list[Installment] = []
        with self.recorder.unit_of_work() as store:
            for installment in store.installments.values():
                if installment.status in _OPEN_INSTALLMENT_STATUSES and installment.due_date < today:
                    installment.status = InstallmentStatus.OVERDUE
                    installment.updated_at = self.recorder.clock()
                    changed.append(installment)

        if changed:
            logger.info("Marked %d installments overdue as of %s", len(changed), today)
        return changed

    def cancel_installment(self, installment_id: str) -> Installment:
        """Cancel an installment that has not received any payment."""
        with self.recorder.unit_of_work() as store:
            installment = store.get_installment(installment_id)
            if installment is None:
                raise TargetNotFoundError(f"Installment {installment_id} not found")
            if installment.status in SETTLED_INSTALLMENT_STATUSES:
                raise AlreadySettledError(
                    f"Installment {installment_id} is already {installment.status.value}"
                )
            if installment.paid_amount > ZERO:
                raise InvalidEntityStateError(
                    f"Installment {installment_id} has payments; record a reversal instead"
                )
            installment.status = InstallmentStatus.CANCELLED
            installment.updated_at = self.recorder.clock()

        logger.info("Cancelled installment %s", installment_id)
        return installment

    def cancel_contractor_payment(self, payment_id: str) -> ContractorPayment:
        """Cancel a contractor payment that has not been paid at all."""
        with self.recorder.unit_of_work() as store:
            payment = store.get_contractor_payment(payment_id)
            if payment is None:
                raise TargetNotFoundError(f"Contractor payment {payment_id} not found")
            if payment.status != ContractorPaymentStatus.PENDING:
                raise AlreadySettledError(f"Contractor payment {payment_id} is already {payment.status.value}")
            if payment.paid_amount > ZERO:
                raise InvalidEntityStateError(f"Contractor payment {payment_id} has partial payments")
            payment.status = ContractorPaymentStatus.CANCELLED
            payment.updated_at = self.recorder.clock()

        logger.info("Cancelled contractor payment %s", payment_id)
        return payment


def _check_payment(
    target_id: str,
    target_currency: Currency,
    remaining: Decimal,
    amount: Decimal,
    currency: Currency,
) -> None:
    if currency != target_currency:
        raise ValidationError(
            f"Currency mismatch for {target_id}: expected {target_currency.value}, got {currency.value}"
        )
    if amount > remaining:
        raise OverpaymentError(f"Payment of {amount} exceeds remaining {remaining} for {target_id}")
