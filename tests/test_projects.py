"""Tests for project lifecycle and the CashLedger facade."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from cash_ledger.config import CashLedgerConfig, LedgerConfig
from cash_ledger.exceptions import (
    EntityNotFoundError,
    InvalidEntityStateError,
    InvalidScheduleError,
    ValidationError,
)
from cash_ledger.ledger import CashLedger
from cash_ledger.models import (
    AccountRef,
    ContractorPaymentStatus,
    Currency,
    InstallmentRef,
    Project,
    ScheduleFrequency,
)
from cash_ledger.store import LedgerStore


class TestCreateProject:
    """Tests for ProjectService.create_project."""

    def test_creates_project_account_and_schedule(self, ledger: CashLedger) -> None:
        project, schedule = ledger.projects.create_project(
            "Torre Sur", "Carlos Díaz", Currency.USD, Decimal("5000000"), Decimal("1500000"), 10,
            date(2024, 1, 15), admin_fee_percentage=Decimal("5"),
        )

        assert ledger.store.projects[project.project_id] is project
        assert AccountRef.project(project.project_id).key in ledger.store.accounts
        assert ledger.store.get_project_installments(project.project_id) == schedule
        assert len(schedule) == 11
        assert sum(inst.amount for inst in schedule) == project.total_amount
        assert project.admin_fee_percentage == Decimal("5")

    def test_frequency_is_forwarded(self, ledger: CashLedger) -> None:
        project, schedule = ledger.projects.create_project(
            "Quincho", "Luis", Currency.ARS, Decimal("400"), Decimal("0"), 2, date(2024, 1, 1),
            frequency=ScheduleFrequency.QUARTERLY,
        )

        assert project.frequency == ScheduleFrequency.QUARTERLY
        assert schedule[1].due_date == date(2024, 7, 1)

    def test_invalid_schedule_stores_nothing(self, ledger: CashLedger) -> None:
        with pytest.raises(InvalidScheduleError):
            ledger.projects.create_project(
                "Bad", "Client", Currency.ARS, Decimal("100"), Decimal("10"), 0, date(2024, 1, 1)
            )

        assert ledger.store.projects == {}
        assert ledger.store.installments == {}

    def test_sub_cent_total_stores_nothing(self, ledger: CashLedger) -> None:
        with pytest.raises(InvalidScheduleError):
            ledger.projects.create_project(
                "Fractional", "Client", Currency.ARS, Decimal("100.005"), Decimal("0"), 1, date(2024, 1, 1)
            )

        assert ledger.store.projects == {}
        assert ledger.store.installments == {}
        assert sorted(ledger.store.accounts) == ["admin", "master"]

    def test_duplicate_project_rolls_back(self, ledger: CashLedger, project: Project) -> None:
        installments_before = len(ledger.store.installments)

        with pytest.raises(InvalidEntityStateError):
            ledger.projects.create_project(
                "Dup", "Client", Currency.ARS, Decimal("100"), Decimal("0"), 1, date(2024, 1, 1),
                project_id=project.project_id,
            )

        assert ledger.store.projects[project.project_id].name == "Casa Norte"
        assert len(ledger.store.installments) == installments_before

    @pytest.mark.parametrize("name,fee", [("", "10"), ("Ok", "120")])
    def test_invalid_input(self, ledger: CashLedger, name: str, fee: str) -> None:
        with pytest.raises(ValidationError):
            ledger.projects.create_project(
                name, "Client", Currency.ARS, Decimal("100"), Decimal("0"), 1, date(2024, 1, 1),
                admin_fee_percentage=Decimal(fee),
            )


class TestContractorRegistration:
    """Tests for ProjectService.add_contractor_payment."""

    def test_registers_pending_payment(self, ledger: CashLedger, project: Project) -> None:
        payment = ledger.projects.add_contractor_payment(project.project_id, "pc-9", Decimal("750"), Currency.ARS)

        assert payment.status == ContractorPaymentStatus.PENDING
        assert ledger.store.get_project_contractor_payments(project.project_id) == [payment]

    def test_unknown_project(self, ledger: CashLedger) -> None:
        with pytest.raises(EntityNotFoundError):
            ledger.projects.add_contractor_payment("missing", "pc-1", Decimal("1"), Currency.ARS)

    def test_invalid_amount(self, ledger: CashLedger, project: Project) -> None:
        with pytest.raises(ValidationError):
            ledger.projects.add_contractor_payment(project.project_id, "pc-1", Decimal("0"), Currency.ARS)


class TestArchiveProject:
    """Tests for ProjectService.archive_project."""

    def test_archive_blocks_new_activity(self, ledger: CashLedger, project: Project, installments: list) -> None:
        ledger.projects.archive_project(project.project_id)

        assert project.archived
        assert ledger.store.get_account(AccountRef.project(project.project_id)).archived
        with pytest.raises(InvalidEntityStateError):
            ledger.apply_payment(InstallmentRef(installments[0].installment_id), Decimal("1"), Currency.ARS)
        with pytest.raises(InvalidEntityStateError):
            ledger.projects.add_contractor_payment(project.project_id, "pc-1", Decimal("1"), Currency.ARS)
        with pytest.raises(InvalidEntityStateError):
            ledger.projects.archive_project(project.project_id)

        assert installments[0].paid_amount == 0


class TestCashLedger:
    """Tests for the CashLedger facade."""

    def test_creates_master_and_admin(self) -> None:
        ledger = CashLedger()

        assert set(ledger.store.accounts) == {"master", "admin"}

    def test_reuses_existing_store(self) -> None:
        store = LedgerStore()
        first = CashLedger(store=store)
        first.recorder.record_income(AccountRef.master(), Decimal("10"), Currency.ARS, "x")

        second = CashLedger(store=store)

        assert second.get_account_balance(AccountRef.master(), Currency.ARS) == Decimal("10")

    def test_config_is_wired(self) -> None:
        config = CashLedgerConfig(ledger=LedgerConfig(enforce_sufficient_funds=False, default_admin_fee_percentage=Decimal("20")))
        ledger = CashLedger(config)

        ledger.transfer(AccountRef.master(), AccountRef.admin(), Decimal("5"), Currency.USD)

        assert ledger.get_account_balance(AccountRef.master(), Currency.USD) == Decimal("-5")
        assert ledger.split_rules_for("any").admin_fee_percentage == Decimal("20")

    def test_list_movements_and_summary(self, ledger: CashLedger) -> None:
        ledger.recorder.record_income(AccountRef.master(), Decimal("10"), Currency.ARS, "x")

        assert len(ledger.list_movements(AccountRef.master())) == 1
        summary = ledger.summary()
        assert summary["movements"] == 1
        assert summary["balances"]["master"]["ARS"] == Decimal("10")

    def test_injected_clock(self, ledger: CashLedger) -> None:
        movement = ledger.recorder.record_income(AccountRef.admin(), Decimal("1"), Currency.ARS, "x")

        assert movement.created_at == datetime(2024, 3, 1, 12, 0)
