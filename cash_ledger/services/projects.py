"""Project lifecycle: creation with schedule, contractor obligations, archiving."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from cash_ledger.config import LedgerConfig
from cash_ledger.exceptions import EntityNotFoundError, InvalidEntityStateError, ValidationError
from cash_ledger.generators.schedule import ScheduleGenerator
from cash_ledger.models import (
    Account,
    AccountRef,
    ContractorPayment,
    ContractorPaymentType,
    Currency,
    Installment,
    Project,
    ScheduleFrequency,
)
from cash_ledger.services.movements import validate_amount
from cash_ledger.store.ledger import LedgerStore

logger = logging.getLogger(__name__)


class ProjectService:
    """Handle project-creation and contractor events."""

    def __init__(
        self,
        store: LedgerStore,
        schedule: ScheduleGenerator | None = None,
        config: LedgerConfig | None = None,
    ) -> None:
        self.store = store
        self.schedule = schedule or ScheduleGenerator()
        self.config = config or LedgerConfig()

    def create_project(
        self,
        name: str,
        client_name: str,
        currency: Currency,
        total_amount: Decimal,
        down_payment_amount: Decimal,
        installments_count: int,
        start_date: date,
        admin_fee_percentage: Decimal | None = None,
        frequency: ScheduleFrequency = ScheduleFrequency.MONTHLY,
        project_id: str | None = None,
    ) -> tuple[Project, list[Installment]]:
        """Create a project, its cash account and its installment schedule.

        All three are stored in one transaction. When
        ``admin_fee_percentage`` is omitted the configured default applies.
        """
        if not name:
            raise ValidationError("Project name is required")
        if admin_fee_percentage is None:
            admin_fee_percentage = self.config.default_admin_fee_percentage
        admin_fee_percentage = Decimal(admin_fee_percentage)
        if not Decimal("0") <= admin_fee_percentage <= Decimal("100"):
            raise ValidationError(f"admin_fee_percentage must be within 0..100, got {admin_fee_percentage}")

        project = Project(
            project_id=project_id or self.schedule.new_id(),
            name=name,
            client_name=client_name,
            currency=Currency(currency),
            total_amount=Decimal(total_amount),
            down_payment_amount=Decimal(down_payment_amount),
            installments_count=installments_count,
            start_date=start_date,
            admin_fee_percentage=admin_fee_percentage,
            frequency=ScheduleFrequency(frequency),
        )
        installments = self.schedule.generate(
            project.project_id,
            project.total_amount,
            project.down_payment_amount,
            installments_count,
            start_date,
            project.currency,
            frequency=project.frequency,
        )

        with self.store.transaction() as store:
            store.add_project(project)
            store.add_account(Account(ref=AccountRef.project(project.project_id)))
            for installment in installments:
                store.add_installment(installment)

        logger.info(
            "Created project %s (%s) with %d installments totalling %s %s",
            project.project_id,
            project.name,
            len(installments),
            project.total_amount,
            project.currency.value,
        )
        return project, installments

    def add_contractor_payment(
        self,
        project_id: str,
        project_contractor_id: str,
        amount: Decimal,
        currency: Currency,
        payment_type: ContractorPaymentType = ContractorPaymentType.PROGRESS,
        description: str = "",
    ) -> ContractorPayment:
        """Register a pending payment owed to a project contractor."""
        payment = ContractorPayment(
            payment_id=self.schedule.new_id(),
            project_id=project_id,
            project_contractor_id=project_contractor_id,
            amount=validate_amount(amount),
            currency=Currency(currency),
            payment_type=ContractorPaymentType(payment_type),
            description=description,
        )
        with self.store.transaction() as store:
            project = store.projects.get(project_id)
            if project is None:
                raise EntityNotFoundError(f"Project {project_id} not found")
            if project.archived:
                raise InvalidEntityStateError(f"Project {project_id} is archived")
            store.add_contractor_payment(payment)

        logger.debug("Registered contractor payment %s for project %s", payment.payment_id, project_id)
        return payment

    def archive_project(self, project_id: str) -> Project:
        """Soft-archive a project and its account; history is kept."""
        with self.store.transaction() as store:
            project = store.projects.get(project_id)
            if project is None:
                raise EntityNotFoundError(f"Project {project_id} not found")
            if project.archived:
                raise InvalidEntityStateError(f"Project {project_id} is already archived")
            project.archived = True
            store.get_account(AccountRef.project(project_id)).archived = True

        logger.info("Archived project %s", project_id)
        return project
