"""Pytest configuration and fixtures."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from cash_ledger.config import CashLedgerConfig
from cash_ledger.ledger import CashLedger
from cash_ledger.models import AccountRef, Currency, Installment, Project
from cash_ledger.store import LedgerStore


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def today() -> date:
    """Business date used by payment tests."""
    return date(2024, 3, 1)


@pytest.fixture
def store() -> LedgerStore:
    """Create a fresh store for each test."""
    return LedgerStore()


@pytest.fixture
def ledger(seed: int) -> CashLedger:
    """Ledger with a fixed clock and seed."""
    config = CashLedgerConfig(seed=seed)
    return CashLedger(config, clock=lambda: datetime(2024, 3, 1, 12, 0))


@pytest.fixture
def project(ledger: CashLedger) -> Project:
    """ARS project without admin fee: 1,000,000 with 200,000 down and 4 installments."""
    project, _ = ledger.projects.create_project(
        name="Casa Norte",
        client_name="Ana Gómez",
        currency=Currency.ARS,
        total_amount=Decimal("1000000"),
        down_payment_amount=Decimal("200000"),
        installments_count=4,
        start_date=date(2024, 1, 15),
        admin_fee_percentage=Decimal("0"),
        project_id="proj-001",
    )
    return project


@pytest.fixture
def installments(ledger: CashLedger, project: Project) -> list[Installment]:
    """Schedule of the sample project ordered by number."""
    return ledger.store.get_project_installments(project.project_id)


@pytest.fixture
def project_account(project: Project) -> AccountRef:
    return AccountRef.project(project.project_id)
