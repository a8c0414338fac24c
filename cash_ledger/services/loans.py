"""Loans from the master cash box to project accounts."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from cash_ledger.exceptions import (
    AlreadySettledError,
    EntityNotFoundError,
    InsufficientFundsError,
    InvalidEntityStateError,
    OverpaymentError,
    TargetNotFoundError,
    ValidationError,
)
from cash_ledger.generators.base import BaseGenerator
from cash_ledger.generators.schedule import due_date_for, split_evenly
from cash_ledger.models import (
    AccountRef,
    Currency,
    InstallmentStatus,
    Loan,
    LoanInstallment,
    LoanStatus,
    Movement,
    MovementType,
    ScheduleFrequency,
)
from cash_ledger.models.base import ZERO
from cash_ledger.services.movements import MovementRecorder, validate_amount

logger = logging.getLogger(__name__)

_CLOSED_LOAN_STATUSES = frozenset({LoanStatus.PAID, LoanStatus.CANCELLED})


class LoanService:
    """Create master loans and record their repayments.

    Disbursements and repayments are ledger movements between the master
    account and the borrowing project account.
    """

    def __init__(self, recorder: MovementRecorder, ids: BaseGenerator | None = None) -> None:
        self.recorder = recorder
        self.store = recorder.store
        self.ids = ids or BaseGenerator()

    def create_loan(
        self,
        project_id: str,
        principal: Decimal,
        currency: Currency,
        interest_rate: Decimal,
        installments_count: int,
        first_due_date: date,
        description: str = "",
        loan_date: date | None = None,
    ) -> Loan:
        """Lend ``principal`` from the master account to a project.

        Parameters
        ----------
        project_id : str
            Borrowing project.
        principal : Decimal
            Amount disbursed.
        currency : Currency
            Loan currency.
        interest_rate : Decimal
            Flat percentage added to the principal (``10`` means 10%).
        installments_count : int
            Number of monthly repayment installments, >= 1.
        first_due_date : date
            Due date of the first repayment installment.

        Raises
        ------
        ValidationError
            Bad amount, rate or installment count.
        InsufficientFundsError
            The master account cannot cover the principal.
        """
        principal = validate_amount(principal)
        currency = Currency(currency)
        interest_rate = Decimal(interest_rate)
        if interest_rate < 0:
            raise ValidationError(f"interest_rate must be >= 0, got {interest_rate}")
        if installments_count < 1:
            raise ValidationError(f"installments_count must be >= 1, got {installments_count}")

        with self.recorder.unit_of_work() as store:
            project = store.projects.get(project_id)
            if project is None:
                raise EntityNotFoundError(f"Project {project_id} not found")
            if project.archived:
                raise InvalidEntityStateError(f"Project {project_id} is archived")

            available = store.get_account(AccountRef.master()).available(currency)
            if available < principal:
                raise InsufficientFundsError(
                    f"Master account has {available} {currency.value}, loan requires {principal}"
                )

            due_dates = [
                due_date_for(first_due_date, i, ScheduleFrequency.MONTHLY) for i in range(installments_count)
            ]
            loan = Loan(
                loan_id=self.ids.new_id(),
                loan_code=f"ML-{len(store.loans) + 1:04d}",
                project_id=project_id,
                principal=principal,
                currency=currency,
                interest_rate=interest_rate,
                installments_count=installments_count,
                loan_date=loan_date or self.recorder.clock().date(),
                due_date=due_dates[-1],
                description=description,
            )
            store.add_loan(loan)

            amounts = split_evenly(loan.total_due, installments_count)
            for number, (amount, due) in enumerate(zip(amounts, due_dates), start=1):
                store.add_loan_installment(
                    LoanInstallment(
                        installment_id=self.ids.new_id(),
                        loan_id=loan.loan_id,
                        installment_number=number,
                        amount=amount,
                        due_date=due,
                    )
                )

            self.recorder.record(
                MovementType.LOAN_DISBURSEMENT,
                principal,
                currency,
                AccountRef.master(),
                AccountRef.project(project_id),
                f"Loan {loan.loan_code} to {project.name}",
                related_loan_id=loan.loan_id,
            )

        logger.info(
            "Created loan %s: %s %s to project %s at %s%% in %d installments",
            loan.loan_code,
            principal,
            currency.value,
            project_id,
            interest_rate,
            installments_count,
        )
        return loan

    def record_repayment(
        self,
        loan_id: str,
        amount: Decimal,
        currency: Currency,
        installment_id: str | None = None,
        today: date | None = None,
    ) -> Movement:
        """Repay part of a loan from the project account to the master account.

        With ``installment_id`` the whole amount goes to that installment.
        Otherwise it is allocated to the open installments in number order.
        """
        amount = validate_amount(amount)
        currency = Currency(currency)
        today = today or self.recorder.clock().date()

        with self.recorder.unit_of_work() as store:
            loan = store.get_loan(loan_id)
            if loan is None:
                raise TargetNotFoundError(f"Loan {loan_id} not found")
            if loan.status in _CLOSED_LOAN_STATUSES:
                raise AlreadySettledError(f"Loan {loan.loan_code} is already {loan.status.value}")
            if currency != loan.currency:
                raise ValidationError(
                    f"Currency mismatch for loan {loan.loan_code}: "
                    f"expected {loan.currency.value}, got {currency.value}"
                )
            if amount > loan.outstanding:
                raise OverpaymentError(
                    f"Repayment of {amount} exceeds outstanding {loan.outstanding} on {loan.loan_code}"
                )

            if installment_id is not None:
                installment = store.loan_installments.get(installment_id)
                if installment is None or installment.loan_id != loan_id:
                    raise TargetNotFoundError(f"Loan installment {installment_id} not found for {loan.loan_code}")
                if installment.status == InstallmentStatus.PAID:
                    raise AlreadySettledError(f"Loan installment {installment_id} is already PAID")
                if amount > installment.remaining:
                    raise OverpaymentError(
                        f"Repayment of {amount} exceeds remaining {installment.remaining} "
                        f"on installment {installment.installment_number}"
                    )
                self._apply_to_installment(installment, amount, today)
                allocated = [installment]
            else:
                allocated = self._allocate(loan, amount, today)

            movement = self.recorder.record(
                MovementType.LOAN_REPAYMENT,
                amount,
                currency,
                AccountRef.project(loan.project_id),
                AccountRef.master(),
                f"Repayment of loan {loan.loan_code}",
                related_loan_id=loan_id,
                related_installment_id=installment_id,
                metadata={
                    "allocated_installments": ",".join(str(inst.installment_number) for inst in allocated)
                },
            )

            loan.total_repaid += amount
            loan.updated_at = self.recorder.clock()
            self._refresh_loan_status(loan, today)

        logger.info(
            "Loan %s repaid %s %s (outstanding %s, %s)",
            loan.loan_code,
            amount,
            currency.value,
            loan.outstanding,
            loan.status.value,
        )
        return movement

    def mark_overdue(self, today: date | None = None) -> list[LoanInstallment]:
        """Move unpaid loan installments past their due date to ``OVERDUE``.

        Loans with an overdue installment become ``OVERDUE`` as well.
        """
        today = today or self.recorder.clock().date()
        changed: list[LoanInstallment] = []
        with self.recorder.unit_of_work() as store:
            for loan in store.loans.values():
                if loan.status in _CLOSED_LOAN_STATUSES:
                    continue
                for installment in store.get_loan_installments(loan.loan_id):
                    status = installment.derive_status(today)
                    if status == InstallmentStatus.OVERDUE and installment.status != status:
                        installment.status = status
                        changed.append(installment)
                self._refresh_loan_status(loan, today)

        if changed:
            logger.info("Marked %d loan installments overdue as of %s", len(changed), today)
        return changed

    def _allocate(self, loan: Loan, amount: Decimal, today: date) -> list[LoanInstallment]:
        allocated = []
        left = amount
        for installment in self.store.get_loan_installments(loan.loan_id):
            if left <= ZERO:
                break
            if installment.remaining <= ZERO:
                continue
            portion = min(left, installment.remaining)
            self._apply_to_installment(installment, portion, today)
            allocated.append(installment)
            left -= portion
        return allocated

    @staticmethod
    def _apply_to_installment(installment: LoanInstallment, amount: Decimal, today: date) -> None:
        installment.paid_amount += amount
        installment.paid_date = today
        installment.status = installment.derive_status(today)

    def _refresh_loan_status(self, loan: Loan, today: date) -> None:
        if loan.outstanding <= ZERO:
            status = LoanStatus.PAID
        elif any(
            inst.remaining > ZERO and inst.due_date < today
            for inst in self.store.get_loan_installments(loan.loan_id)
        ):
            status = LoanStatus.OVERDUE
        else:
            status = LoanStatus.ACTIVE
        if status != loan.status:
            loan.status = status
            loan.updated_at = self.recorder.clock()

    def statistics(self, today: date | None = None) -> dict:
        """Portfolio figures for the master cash dashboard."""
        today = today or self.recorder.clock().date()
        outstanding: dict[Currency, Decimal] = defaultdict(lambda: ZERO)
        lent: dict[Currency, Decimal] = defaultdict(lambda: ZERO)
        active = 0
        overdue = 0

        for loan in self.store.loans.values():
            lent[loan.currency] += loan.principal
            if loan.status in _CLOSED_LOAN_STATUSES:
                continue
            active += 1
            outstanding[loan.currency] += loan.outstanding
            if any(
                inst.remaining > ZERO and inst.due_date < today
                for inst in self.store.get_loan_installments(loan.loan_id)
            ):
                overdue += 1

        return {
            "total_loans": len(self.store.loans),
            "active_loans": active,
            "overdue_loans": overdue,
            "total_lent": {currency: lent[currency] for currency in Currency},
            "outstanding": {currency: outstanding[currency] for currency in Currency},
        }
