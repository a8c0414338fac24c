"""Facade wiring the store, services and notifications together."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable

from cash_ledger.config import CashLedgerConfig
from cash_ledger.events import MovementPublisher
from cash_ledger.generators.schedule import ScheduleGenerator
from cash_ledger.models import (
    AccountRef,
    Currency,
    Movement,
    ReconciliationReport,
)
from cash_ledger.services import (
    DistributionService,
    LoanService,
    MovementRecorder,
    PaymentResult,
    PaymentService,
    ProjectService,
    ReconciliationChecker,
    SplitRules,
)
from cash_ledger.services.payments import PaymentTarget
from cash_ledger.store.ledger import LedgerStore

logger = logging.getLogger(__name__)


class CashLedger:
    """Entry point used by dashboards and collaborating modules.

    Example
    -------
    >>> ledger = CashLedger()
    >>> project, schedule = ledger.projects.create_project(
    ...     "Casa Norte", "Ana Gómez", Currency.ARS, Decimal("5000000"),
    ...     Decimal("1500000"), 10, date(2024, 1, 15),
    ... )
    >>> ledger.apply_payment(InstallmentRef(schedule[0].installment_id), Decimal("1500000"), Currency.ARS)
    """

    def __init__(
        self,
        config: CashLedgerConfig | None = None,
        store: LedgerStore | None = None,
        publisher: MovementPublisher | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config or CashLedgerConfig()
        self.store = store if store is not None else LedgerStore()
        self.publisher = publisher or MovementPublisher(topic=self.config.ledger.movements_topic)

        with self.store.transaction() as s:
            s.ensure_account(AccountRef.master())
            s.ensure_account(AccountRef.admin())

        ledger_config = self.config.ledger
        self.recorder = MovementRecorder(self.store, ledger_config, self.publisher, clock=clock)
        self.schedule = ScheduleGenerator(seed=self.config.seed)
        self.distribution = DistributionService(self.recorder)
        self.payments = PaymentService(self.recorder, self.distribution)
        self.reconciliation = ReconciliationChecker(self.store, ledger_config)
        self.loans = LoanService(self.recorder, ids=self.schedule)
        self.projects = ProjectService(self.store, self.schedule, ledger_config)

    def get_account_balance(self, ref: AccountRef, currency: Currency) -> Decimal:
        return self.recorder.get_account_balance(ref, currency)

    def list_movements(self, ref: AccountRef, limit: int = 50) -> list[Movement]:
        return self.recorder.list_movements(ref, limit)

    def apply_payment(
        self,
        target: PaymentTarget,
        amount: Decimal,
        currency: Currency,
        metadata: dict | None = None,
        today: date | None = None,
    ) -> PaymentResult:
        return self.payments.apply_payment(target, amount, currency, metadata, today)

    def distribute(
        self,
        payment_amount: Decimal,
        currency: Currency,
        split_rules: SplitRules | str,
        related_payment_id: str | None = None,
    ) -> list[Movement]:
        """Split a client payment; a bare project id uses that project's fee."""
        if isinstance(split_rules, str):
            split_rules = self.split_rules_for(split_rules)
        return self.distribution.distribute(
            payment_amount, currency, split_rules, related_payment_id=related_payment_id
        )

    def split_rules_for(self, project_id: str) -> SplitRules:
        """Split rules of a project, falling back to the configured default fee."""
        project = self.store.projects.get(project_id)
        percentage = project.admin_fee_percentage if project else None
        if percentage is None:
            percentage = self.config.ledger.default_admin_fee_percentage
        return SplitRules(project_id, percentage)

    def reconcile(self, ref: AccountRef, correct: bool = False) -> ReconciliationReport:
        return self.reconciliation.reconcile(ref, correct=correct)

    def reconcile_all(self, correct: bool = False) -> list[ReconciliationReport]:
        return self.reconciliation.reconcile_all(correct=correct)

    def transfer(
        self,
        source: AccountRef,
        destination: AccountRef,
        amount: Decimal,
        currency: Currency,
        description: str = "",
    ) -> Movement:
        return self.recorder.transfer(source, destination, amount, currency, description)

    def summary(self) -> dict:
        """Entity counts plus master and admin balances."""
        counts = self.store.summary()
        counts["balances"] = {
            ref.key: {c.value: self.get_account_balance(ref, c) for c in Currency}
            for ref in (AccountRef.master(), AccountRef.admin())
        }
        return counts
