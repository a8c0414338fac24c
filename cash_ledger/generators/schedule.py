"""Installment schedule generation for projects and loans."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_DOWN, Decimal

from dateutil.relativedelta import relativedelta

from cash_ledger.exceptions import InvalidScheduleError
from cash_ledger.generators.base import BaseGenerator
from cash_ledger.models import Currency, Installment, InstallmentStatus, ScheduleFrequency
from cash_ledger.models.base import ZERO, to_money

FREQUENCY_LABELS = {
    ScheduleFrequency.WEEKLY: "weekly",
    ScheduleFrequency.BIWEEKLY: "biweekly",
    ScheduleFrequency.MONTHLY: "monthly",
    ScheduleFrequency.QUARTERLY: "quarterly",
}

# (percentage, description, days after start) for construction milestones
MILESTONES = (
    (Decimal("20"), "Down payment - project start", 0),
    (Decimal("15"), "Blueprints completed", 30),
    (Decimal("20"), "Construction start - foundations", 60),
    (Decimal("15"), "Structure and roofing", 120),
    (Decimal("15"), "Installations and finishes", 180),
    (Decimal("15"), "Final delivery", 240),
)


def due_date_for(start_date: date, number: int, frequency: ScheduleFrequency) -> date:
    """Due date of installment ``number`` counted from ``start_date``.

    Monthly and quarterly steps use calendar months; days past the end of
    a shorter month are clamped to its last day.
    """
    if frequency == ScheduleFrequency.WEEKLY:
        return start_date + timedelta(weeks=number)
    if frequency == ScheduleFrequency.BIWEEKLY:
        return start_date + timedelta(weeks=2 * number)
    if frequency == ScheduleFrequency.QUARTERLY:
        return start_date + relativedelta(months=3 * number)
    return start_date + relativedelta(months=number)


def split_evenly(amount: Decimal, parts: int) -> list[Decimal]:
    """Split ``amount`` into equal cent amounts whose sum is exactly ``amount``.

    Every part is rounded down; the last one absorbs the remainder.
    """
    if parts <= 0:
        return []
    share = to_money(amount / parts, rounding=ROUND_DOWN)
    return [share] * (parts - 1) + [amount - share * (parts - 1)]


def split_weighted(amount: Decimal, weights: list[Decimal]) -> list[Decimal]:
    """Split ``amount`` proportionally to ``weights`` keeping the exact sum."""
    total_weight = sum(weights, ZERO)
    if not weights or total_weight <= 0:
        return []
    shares = [to_money(amount * w / total_weight, rounding=ROUND_DOWN) for w in weights[:-1]]
    return shares + [amount - sum(shares, ZERO)]


@dataclass
class PlanValidation:
    """Result of checking a plan total against the expected amount."""

    is_valid: bool
    difference: Decimal
    total_calculated: Decimal


def validate_plan(
    installments: list[Installment],
    expected_total: Decimal,
    tolerance: Decimal = Decimal("0.01"),
) -> PlanValidation:
    """Check that a plan adds up to ``expected_total`` within ``tolerance``."""
    total = sum((inst.amount for inst in installments), ZERO)
    difference = abs(total - expected_total)
    return PlanValidation(
        is_valid=difference <= tolerance,
        difference=difference,
        total_calculated=total,
    )


def plan_summary(installments: list[Installment]) -> dict:
    """Summarize a payment plan for dashboards."""
    down_payment = next((inst for inst in installments if inst.is_down_payment), None)
    regular = [inst for inst in installments if not inst.is_down_payment]
    total = sum((inst.amount for inst in installments), ZERO)
    due_dates = [inst.due_date for inst in installments]

    first = min(due_dates) if due_dates else None
    last = max(due_dates) if due_dates else None
    period_months = 0
    if first and last:
        delta = relativedelta(last, first)
        period_months = delta.years * 12 + delta.months

    return {
        "total_amount": total,
        "down_payment_amount": down_payment.amount if down_payment else ZERO,
        "down_payment_percentage": (
            to_money(down_payment.amount / total * 100) if down_payment and total else ZERO
        ),
        "installment_count": len(regular),
        "average_installment": (
            to_money(sum((inst.amount for inst in regular), ZERO) / len(regular)) if regular else ZERO
        ),
        "first_payment_date": first,
        "last_payment_date": last,
        "payment_period_months": period_months,
    }


class ScheduleGenerator(BaseGenerator):
    """Generate installment schedules for a project.

    The generated amounts always add up to the project total exactly.
    Nothing is persisted here; ``ProjectService`` stores the schedule in
    the same transaction that creates the project.
    """

    def generate(
        self,
        project_id: str,
        total_amount: Decimal,
        down_payment_amount: Decimal,
        installments_count: int,
        start_date: date,
        currency: Currency,
        frequency: ScheduleFrequency = ScheduleFrequency.MONTHLY,
    ) -> list[Installment]:
        """Generate a down payment plus ``installments_count`` equal installments.

        Parameters
        ----------
        project_id : str
            Owning project.
        total_amount : Decimal
            Contract total, >= 0.
        down_payment_amount : Decimal
            Down payment due at ``start_date``, 0 <= down payment <= total.
        installments_count : int
            Number of regular installments, >= 0.
        start_date : date
            Down payment due date; installment ``i`` is due ``i`` periods later.
        currency : Currency
            Currency of every installment.
        frequency : ScheduleFrequency
            Period between regular installments.

        Returns
        -------
        list[Installment]
            Installments ordered by number (0 = down payment).

        Raises
        ------
        InvalidScheduleError
            If the parameters cannot produce a schedule that sums to the total.
        """
        total_amount = Decimal(total_amount)
        down_payment_amount = Decimal(down_payment_amount)
        self._validate(total_amount, down_payment_amount, installments_count)

        installments = []
        if down_payment_amount > 0:
            installments.append(
                self._installment(
                    project_id,
                    0,
                    down_payment_amount,
                    currency,
                    start_date,
                    "Down payment",
                )
            )

        remaining = total_amount - down_payment_amount
        label = FREQUENCY_LABELS[frequency]
        if remaining > 0:
            for i, amount in enumerate(split_evenly(remaining, installments_count), start=1):
                installments.append(
                    self._installment(
                        project_id,
                        i,
                        amount,
                        currency,
                        due_date_for(start_date, i, frequency),
                        f"Installment {label} {i} of {installments_count}",
                    )
                )

        return installments

    def milestone_plan(
        self,
        project_id: str,
        total_amount: Decimal,
        currency: Currency,
        start_date: date,
    ) -> list[Installment]:
        """Milestone-based plan used for construction projects."""
        total_amount = Decimal(total_amount)
        self._validate(total_amount, ZERO, len(MILESTONES))

        amounts = split_weighted(total_amount, [pct for pct, _, _ in MILESTONES])
        return [
            self._installment(
                project_id,
                number,
                amount,
                currency,
                start_date + timedelta(days=days),
                description,
            )
            for number, (amount, (_, description, days)) in enumerate(zip(amounts, MILESTONES))
        ]

    def progressive_plan(
        self,
        project_id: str,
        total_amount: Decimal,
        installments_count: int,
        currency: Currency,
        start_date: date,
        down_payment_amount: Decimal = ZERO,
        progression_rate: Decimal = Decimal("1.1"),
    ) -> list[Installment]:
        """Plan with installments growing by ``progression_rate`` each month."""
        total_amount = Decimal(total_amount)
        down_payment_amount = Decimal(down_payment_amount)
        self._validate(total_amount, down_payment_amount, installments_count)
        if progression_rate <= 0:
            raise InvalidScheduleError(f"progression_rate must be positive, got {progression_rate}")

        installments = []
        if down_payment_amount > 0:
            installments.append(
                self._installment(project_id, 0, down_payment_amount, currency, start_date, "Down payment")
            )

        remaining = total_amount - down_payment_amount
        weights = [Decimal(progression_rate) ** i for i in range(installments_count)]
        amounts = split_weighted(remaining, weights) if remaining > 0 else []
        for i, amount in enumerate(amounts, start=1):
            installments.append(
                self._installment(
                    project_id,
                    i,
                    amount,
                    currency,
                    due_date_for(start_date, i, ScheduleFrequency.MONTHLY),
                    f"Progressive installment {i} of {installments_count}",
                )
            )
        return installments

    def _validate(
        self,
        total_amount: Decimal,
        down_payment_amount: Decimal,
        installments_count: int,
    ) -> None:
        if total_amount < 0:
            raise InvalidScheduleError(f"total_amount must be >= 0, got {total_amount}")
        if down_payment_amount < 0:
            raise InvalidScheduleError(f"down_payment_amount must be >= 0, got {down_payment_amount}")
        # Payments are accepted in whole cents only
        for name, amount in (("total_amount", total_amount), ("down_payment_amount", down_payment_amount)):
            if amount != to_money(amount):
                raise InvalidScheduleError(f"{name} must have at most 2 decimals, got {amount}")
        if down_payment_amount > total_amount:
            raise InvalidScheduleError(
                f"down_payment_amount {down_payment_amount} exceeds total_amount {total_amount}"
            )
        if installments_count < 0:
            raise InvalidScheduleError(f"installments_count must be >= 0, got {installments_count}")
        if installments_count == 0 and total_amount - down_payment_amount > 0:
            raise InvalidScheduleError(
                "installments_count is 0 but "
                f"{total_amount - down_payment_amount} remains after the down payment"
            )

    def _installment(
        self,
        project_id: str,
        number: int,
        amount: Decimal,
        currency: Currency,
        due_date: date,
        description: str,
    ) -> Installment:
        return Installment(
            installment_id=self.new_id(),
            project_id=project_id,
            installment_number=number,
            amount=amount,
            currency=currency,
            due_date=due_date,
            status=InstallmentStatus.PENDING,
            description=description,
        )
