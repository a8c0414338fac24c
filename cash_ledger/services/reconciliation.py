"""Reconciliation of stored account aggregates against the movement ledger."""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from cash_ledger.config import LedgerConfig
from cash_ledger.exceptions import EntityNotFoundError
from cash_ledger.models import (
    AccountRef,
    Currency,
    MovementType,
    ReconciliationDiscrepancy,
    ReconciliationReport,
    SourceDiscrepancy,
)
from cash_ledger.models.base import ZERO
from cash_ledger.store.ledger import LedgerStore

logger = logging.getLogger(__name__)


class ReconciliationChecker:
    """Compare account aggregates with totals replayed from the ledger.

    The ledger is authoritative. Correction is opt-in and only ever
    rederives aggregates from movements; movements are never changed.
    """

    def __init__(self, store: LedgerStore, config: LedgerConfig | None = None) -> None:
        self.store = store
        self.config = config or LedgerConfig()

    def expected_totals(self, ref: AccountRef) -> dict[Currency, tuple[Decimal, Decimal]]:
        """Return ``{currency: (inflows, outflows)}`` replayed from the ledger."""
        inflows: dict[Currency, Decimal] = defaultdict(lambda: ZERO)
        outflows: dict[Currency, Decimal] = defaultdict(lambda: ZERO)
        for movement in self.store.get_account_movements(ref):
            if movement.destination == ref:
                inflows[movement.currency] += movement.amount
            if movement.source == ref:
                outflows[movement.currency] += movement.amount
        return {currency: (inflows[currency], outflows[currency]) for currency in Currency}

    def reconcile(self, ref: AccountRef, correct: bool = False) -> ReconciliationReport:
        """Check one account and optionally rederive its aggregates.

        Parameters
        ----------
        ref : AccountRef
            Account to check.
        correct : bool
            When True, overwrite every aggregate of the account with the
            ledger-derived value. Defaults to False (report only).

        Returns
        -------
        ReconciliationReport
            Discrepancies found before any correction was applied.
        """
        with self.store.transaction() as store:
            account = store.get_account(ref)
            expected = self.expected_totals(ref)
            report = ReconciliationReport(account=ref)

            for currency, (income, expenses) in expected.items():
                checks = (
                    ("balance", account.balance.get(currency, ZERO), income - expenses),
                    ("total_income", account.total_income.get(currency, ZERO), income),
                    ("total_expenses", account.total_expenses.get(currency, ZERO), expenses),
                )
                for field_name, stored, wanted in checks:
                    if abs(stored - wanted) > self.config.epsilon:
                        report.discrepancies.append(
                            ReconciliationDiscrepancy(ref, currency, field_name, stored, wanted)
                        )

            for discrepancy in report.discrepancies:
                logger.warning(
                    "Discrepancy in %s %s %s: stored=%s expected=%s delta=%s",
                    ref.key,
                    discrepancy.currency.value,
                    discrepancy.field,
                    discrepancy.stored,
                    discrepancy.expected,
                    discrepancy.delta,
                )

            if correct and report.discrepancies:
                for currency, (income, expenses) in expected.items():
                    account.rederive(currency, income, expenses)
                report.corrected = True
                logger.info(
                    "Rederived aggregates of %s from %d movements",
                    ref.key,
                    len(store.get_account_movements(ref)),
                )

        return report

    def reconcile_all(self, correct: bool = False) -> list[ReconciliationReport]:
        """Reconcile every account in the store."""
        with self.store.transaction() as store:
            refs = [account.ref for account in store.accounts.values()]
            reports = [self.reconcile(ref, correct=correct) for ref in refs]

        inconsistent = sum(1 for report in reports if not report.is_consistent)
        logger.info("Reconciled %d accounts, %d inconsistent", len(reports), inconsistent)
        return reports

    def audit_sources(self, project_id: str) -> list[SourceDiscrepancy]:
        """Find payment targets whose paid amount is not backed by movements.

        Catches contractor payments marked paid without an expense movement
        and installments whose collections never reached the ledger.
        """
        if project_id not in self.store.projects:
            raise EntityNotFoundError(f"Project {project_id} not found")

        findings: list[SourceDiscrepancy] = []
        for installment in self.store.get_project_installments(project_id):
            ledger_amount = self._related_total(installment.installment_id, MovementType.INCOME)
            if abs(installment.paid_amount - ledger_amount) > self.config.epsilon:
                findings.append(
                    SourceDiscrepancy(
                        "installment", installment.installment_id, installment.paid_amount, ledger_amount
                    )
                )

        for payment in self.store.get_project_contractor_payments(project_id):
            ledger_amount = self._related_total(payment.payment_id, MovementType.EXPENSE)
            if abs(payment.paid_amount - ledger_amount) > self.config.epsilon:
                findings.append(
                    SourceDiscrepancy("contractor_payment", payment.payment_id, payment.paid_amount, ledger_amount)
                )

        for finding in findings:
            logger.warning(
                "%s %s records %s paid but ledger holds %s",
                finding.target_type,
                finding.target_id,
                finding.recorded_paid,
                finding.ledger_amount,
            )
        return findings

    def reconcile_loan(self, loan_id: str) -> SourceDiscrepancy | None:
        """Compare a loan's ``total_repaid`` with its repayment movements."""
        loan = self.store.get_loan(loan_id)
        if loan is None:
            raise EntityNotFoundError(f"Loan {loan_id} not found")

        ledger_amount = self._related_total(loan_id, MovementType.LOAN_REPAYMENT)
        if abs(loan.total_repaid - ledger_amount) <= self.config.epsilon:
            return None

        finding = SourceDiscrepancy("loan", loan_id, loan.total_repaid, ledger_amount)
        logger.warning(
            "Loan %s records %s repaid but ledger holds %s",
            loan.loan_code,
            loan.total_repaid,
            ledger_amount,
        )
        return finding

    def _related_total(self, target_id: str, movement_type: MovementType) -> Decimal:
        return sum(
            (m.amount for m in self.store.get_related_movements(target_id) if m.movement_type == movement_type),
            ZERO,
        )
