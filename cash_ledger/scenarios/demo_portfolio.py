"""Demo portfolio scenario: projects with payments, contractors and a loan."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from cash_ledger.config import CashLedgerConfig
from cash_ledger.generators.base import BaseGenerator
from cash_ledger.ledger import CashLedger
from cash_ledger.models import (
    AccountRef,
    ContractorPaymentRef,
    ContractorPaymentType,
    Currency,
    InstallmentRef,
    Project,
)
from cash_ledger.models.base import ZERO, to_money

logger = logging.getLogger(__name__)

# Opening capital of the master cash box
SEED_CAPITAL = {
    Currency.ARS: Decimal("50000000.00"),
    Currency.USD: Decimal("100000.00"),
}

# Contract totals drawn per currency, in whole thousands
TOTAL_RANGES = {
    Currency.ARS: (2_000, 12_000),
    Currency.USD: (10, 80),
}


class DemoPortfolioScenario:
    """Simulate a studio's cash flow over the past months.

    This scenario creates:
    - Projects in ARS and USD with down payment and monthly installments
    - Client payments for every installment already due:
        - Paid in full
        - Paid partially
        - Left unpaid (marked overdue)
    - Contractor payments, paid when the project account can cover them
    - A master loan to one project with its first repayment
    """

    def __init__(
        self,
        num_projects: int = 5,
        on_time_rate: float = 0.75,
        partial_rate: float = 0.15,
        contractors_per_project: int = 2,
        today: date | None = None,
        seed: int | None = None,
        *,
        config: CashLedgerConfig | None = None,
    ) -> None:
        """Initialize the demo portfolio scenario.

        Parameters
        ----------
        num_projects : int
            Number of projects to create.
        on_time_rate : float
            Share of due installments paid in full (0.0 to 1.0).
        partial_rate : float
            Share of due installments paid in part.
        contractors_per_project : int
            Contractor payments registered per project.
        today : date | None
            Business date of the simulation. Defaults to the current date.
        seed : int | None
            Random seed for reproducibility. Overrides ``config.seed``.
        config : CashLedgerConfig | None
            Optional ledger configuration.
        """
        self.num_projects = num_projects
        self.on_time_rate = on_time_rate
        self.partial_rate = partial_rate
        self.contractors_per_project = contractors_per_project
        self.today = today or date.today()

        self.config = config or CashLedgerConfig()
        if seed is not None:
            self.config.seed = seed
        self.ledger = CashLedger(self.config)
        self._gen = BaseGenerator(seed=self.config.seed)

    def generate(self) -> CashLedger:
        """Build the portfolio and return the populated ledger."""
        logger.info("Starting demo portfolio scenario: %d projects", self.num_projects)

        for currency, amount in SEED_CAPITAL.items():
            self.ledger.recorder.record_income(AccountRef.master(), amount, currency, "Opening capital")

        projects = [self._create_project() for _ in range(self.num_projects)]
        for project in projects:
            self._collect_installments(project)
            self._pay_contractors(project)

        if projects:
            self._lend_to(projects[0])

        overdue = self.ledger.payments.mark_overdue(self.today)
        overdue_loan_installments = self.ledger.loans.mark_overdue(self.today)
        logger.info(
            "Demo portfolio ready: %d projects, %d movements, %d overdue installments, %d overdue loan installments",
            len(projects),
            len(self.ledger.store.movements),
            len(overdue),
            len(overdue_loan_installments),
        )
        return self.ledger

    def _create_project(self) -> Project:
        fake, rnd = self._gen.fake, self._gen.random
        currency = rnd.choice(list(Currency))
        low, high = TOTAL_RANGES[currency]
        total = Decimal(rnd.randint(low, high) * 1000)
        down_payment = to_money(total * Decimal(rnd.choice((0, 20, 25, 30))) / 100)
        start = self.today - relativedelta(months=rnd.randint(1, 8))

        project, _ = self.ledger.projects.create_project(
            name=f"{fake.street_name()} {fake.building_number()}",
            client_name=fake.name(),
            currency=currency,
            total_amount=total,
            down_payment_amount=down_payment,
            installments_count=rnd.choice((6, 10, 12, 18)),
            start_date=start,
            admin_fee_percentage=Decimal(rnd.choice((0, 10, 15))),
        )
        return project

    def _collect_installments(self, project: Project) -> None:
        rnd = self._gen.random
        for installment in self.ledger.store.get_project_installments(project.project_id):
            if installment.due_date > self.today:
                break
            roll = rnd.random()
            if roll < self.on_time_rate:
                amount = installment.amount
            elif roll < self.on_time_rate + self.partial_rate:
                amount = to_money(installment.amount / 2)
            else:
                continue
            if amount <= ZERO:
                continue
            self.ledger.apply_payment(
                InstallmentRef(installment.installment_id),
                amount,
                installment.currency,
                metadata={"method": rnd.choice(("transfer", "cash", "check"))},
                today=installment.due_date,
            )

    def _pay_contractors(self, project: Project) -> None:
        rnd = self._gen.random
        account = AccountRef.project(project.project_id)
        for _ in range(self.contractors_per_project):
            amount = to_money(project.total_amount * Decimal(rnd.randint(5, 15)) / 100)
            payment = self.ledger.projects.add_contractor_payment(
                project.project_id,
                self._gen.new_id(),
                amount,
                project.currency,
                payment_type=rnd.choice(list(ContractorPaymentType)),
                description=f"{self._gen.fake.job()} - {project.name}",
            )
            if self.ledger.get_account_balance(account, project.currency) >= amount:
                self.ledger.apply_payment(
                    ContractorPaymentRef(payment.payment_id), amount, project.currency, today=self.today
                )

    def _lend_to(self, project: Project) -> None:
        principal = to_money(project.total_amount / 10)
        loan = self.ledger.loans.create_loan(
            project.project_id,
            principal,
            project.currency,
            interest_rate=Decimal("10"),
            installments_count=6,
            first_due_date=self.today,
            description="Working capital",
            loan_date=self.today,
        )
        first = self.ledger.store.get_loan_installments(loan.loan_id)[0]
        balance = self.ledger.get_account_balance(AccountRef.project(project.project_id), project.currency)
        if balance >= first.amount:
            self.ledger.loans.record_repayment(
                loan.loan_id, first.amount, project.currency, installment_id=first.installment_id, today=self.today
            )
