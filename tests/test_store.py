"""Tests for LedgerStore and JSON snapshots."""

from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from cash_ledger.exceptions import (
    EntityNotFoundError,
    InvalidEntityStateError,
    PersistenceError,
    ReferentialIntegrityError,
    SinkError,
    ValidationError,
)
from cash_ledger.ledger import CashLedger
from cash_ledger.models import (
    Account,
    AccountRef,
    ContractorPayment,
    ContractorPaymentType,
    Currency,
    Installment,
    InstallmentRef,
    Loan,
    LoanInstallment,
    Project,
)
from cash_ledger.sinks import JsonFileSink
from cash_ledger.store import LedgerStore, dump_store, load_store, rewrite_snapshot


@pytest.fixture
def sample_project() -> Project:
    return Project(
        project_id="proj-001",
        name="Casa Norte",
        client_name="Ana",
        currency=Currency.ARS,
        total_amount=Decimal("1000"),
        down_payment_amount=Decimal("0"),
        installments_count=1,
        start_date=date(2024, 1, 1),
    )


class TestLedgerStoreIntegrity:
    """Referential integrity checks on insertion."""

    def test_project_account_requires_project(self, store: LedgerStore) -> None:
        with pytest.raises(ReferentialIntegrityError):
            store.add_account(Account(ref=AccountRef.project("missing")))

    def test_duplicate_account(self, store: LedgerStore) -> None:
        store.add_account(Account(ref=AccountRef.master()))

        with pytest.raises(InvalidEntityStateError):
            store.add_account(Account(ref=AccountRef.master()))

    def test_ensure_account_is_idempotent(self, store: LedgerStore) -> None:
        first = store.ensure_account(AccountRef.admin())

        assert store.ensure_account(AccountRef.admin()) is first
        assert first.created_at is not None

    def test_get_missing_account(self, store: LedgerStore) -> None:
        with pytest.raises(EntityNotFoundError):
            store.get_account(AccountRef.master())

    def test_duplicate_project(self, store: LedgerStore, sample_project: Project) -> None:
        store.add_project(sample_project)

        with pytest.raises(InvalidEntityStateError):
            store.add_project(sample_project)

    def test_children_require_parent(self, store: LedgerStore) -> None:
        with pytest.raises(ReferentialIntegrityError):
            store.add_installment(
                Installment("i-1", "missing", 1, Decimal("1"), Currency.ARS, date(2024, 1, 1))
            )
        with pytest.raises(ReferentialIntegrityError):
            store.add_contractor_payment(
                ContractorPayment("c-1", "missing", "pc", Decimal("1"), Currency.ARS, ContractorPaymentType.FINAL)
            )
        with pytest.raises(ReferentialIntegrityError):
            store.add_loan(
                Loan("l-1", "ML-0001", "missing", Decimal("1"), Currency.ARS, Decimal("0"), 1,
                     date(2024, 1, 1), date(2024, 2, 1))
            )
        with pytest.raises(ReferentialIntegrityError):
            store.add_loan_installment(LoanInstallment("li-1", "missing", 1, Decimal("1"), date(2024, 1, 1)))

    def test_duplicate_children_rejected(self, store: LedgerStore, sample_project: Project) -> None:
        store.add_project(sample_project)
        installment = Installment("i-1", "proj-001", 1, Decimal("1"), Currency.ARS, date(2024, 1, 1))
        payment = ContractorPayment("c-1", "proj-001", "pc", Decimal("1"), Currency.ARS, ContractorPaymentType.FINAL)
        loan = Loan("l-1", "ML-0001", "proj-001", Decimal("1"), Currency.ARS, Decimal("0"), 1,
                    date(2024, 1, 1), date(2024, 2, 1))
        loan_installment = LoanInstallment("li-1", "l-1", 1, Decimal("1"), date(2024, 2, 1))
        store.add_installment(installment)
        store.add_contractor_payment(payment)
        store.add_loan(loan)
        store.add_loan_installment(loan_installment)

        with pytest.raises(InvalidEntityStateError):
            store.add_installment(Installment("i-1", "proj-001", 2, Decimal("5"), Currency.ARS, date(2024, 2, 1)))
        with pytest.raises(InvalidEntityStateError):
            store.add_contractor_payment(payment)
        with pytest.raises(InvalidEntityStateError):
            store.add_loan(loan)
        with pytest.raises(InvalidEntityStateError):
            store.add_loan_installment(loan_installment)

        assert store.get_installment("i-1") is installment
        assert len(store.get_project_installments("proj-001")) == 1
        assert len(store.get_loan_installments("l-1")) == 1

    def test_installments_sorted_by_number(self, store: LedgerStore, sample_project: Project) -> None:
        store.add_project(sample_project)
        for number in (3, 1, 2):
            store.add_installment(
                Installment(f"i-{number}", "proj-001", number, Decimal("1"), Currency.ARS, date(2024, 1, number))
            )

        assert [i.installment_number for i in store.get_project_installments("proj-001")] == [1, 2, 3]
        assert store.get_installment("i-2").installment_number == 2
        assert store.get_installment("missing") is None


class TestTransaction:
    """All-or-nothing transaction semantics."""

    def test_rollback_restores_entities_in_place(self, store: LedgerStore, sample_project: Project) -> None:
        store.add_project(sample_project)

        with pytest.raises(ValidationError):
            with store.transaction():
                sample_project.name = "Changed"
                store.ensure_account(AccountRef.master())
                raise ValidationError("boom")

        assert sample_project.name == "Casa Norte"
        assert store.projects["proj-001"] is sample_project
        assert AccountRef.master().key not in store.accounts

    def test_foreign_errors_become_persistence_errors(self, store: LedgerStore) -> None:
        with pytest.raises(PersistenceError):
            with store.transaction():
                store.ensure_account(AccountRef.master())
                raise RuntimeError("disk full")

        assert store.accounts == {}

    def test_nested_transactions_join(self, store: LedgerStore) -> None:
        with pytest.raises(ValidationError):
            with store.transaction():
                store.ensure_account(AccountRef.master())
                with store.transaction():
                    assert store.in_transaction
                    store.ensure_account(AccountRef.admin())
                raise ValidationError("outer fails")

        assert store.accounts == {}
        assert not store.in_transaction

    def test_commit(self, store: LedgerStore) -> None:
        with store.transaction():
            store.ensure_account(AccountRef.master())

        assert "master" in store.accounts


class TestSnapshot:
    """Dump and load through JSON files."""

    def test_round_trip_preserves_balances(self, ledger: CashLedger, installments: list[Installment], tmp_path: Path) -> None:
        ledger.apply_payment(InstallmentRef(installments[0].installment_id), Decimal("200000"), Currency.ARS)
        ledger.recorder.record_income(AccountRef.master(), Decimal("10.55"), Currency.USD, "Capital")

        dump_store(ledger.store, JsonFileSink(tmp_path, pretty=True))
        loaded = load_store(tmp_path)

        assert loaded.summary() == ledger.store.summary()
        for key, account in ledger.store.accounts.items():
            assert loaded.accounts[key].balance == account.balance
        assert loaded.installments[installments[0].installment_id].paid_amount == Decimal("200000")
        assert loaded.movements[-1].amount == Decimal("10.55")
        assert loaded.get_account_movements(AccountRef.master())[0].currency == Currency.USD

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(PersistenceError):
            load_store(tmp_path / "nope")

    def test_malformed_file(self, tmp_path: Path) -> None:
        (tmp_path / "projects.json").write_text("[{\"project_id\": \"p\"}]", encoding="utf-8")

        with pytest.raises(PersistenceError):
            load_store(tmp_path)

    def test_empty_directory_loads_empty_store(self, tmp_path: Path) -> None:
        assert load_store(tmp_path).summary()["movements"] == 0

    def test_rewrite_replaces_snapshot_and_keeps_other_files(
        self, ledger: CashLedger, project: Project, tmp_path: Path
    ) -> None:
        snapshot_dir = tmp_path / "snapshot"
        dump_store(ledger.store, JsonFileSink(snapshot_dir))
        (snapshot_dir / "ledger_movements.jsonl").write_text("{}\n", encoding="utf-8")
        ledger.recorder.record_income(AccountRef.master(), Decimal("10"), Currency.ARS, "Capital")

        rewrite_snapshot(ledger.store, snapshot_dir)

        assert load_store(snapshot_dir).summary()["movements"] == 1
        assert (snapshot_dir / "ledger_movements.jsonl").read_text(encoding="utf-8") == "{}\n"
        assert [p.name for p in tmp_path.iterdir()] == ["snapshot"]

    def test_failed_rewrite_keeps_previous_snapshot(
        self, ledger: CashLedger, project: Project, tmp_path: Path
    ) -> None:
        snapshot_dir = tmp_path / "snapshot"
        dump_store(ledger.store, JsonFileSink(snapshot_dir))
        before = {p.name: p.read_text(encoding="utf-8") for p in snapshot_dir.iterdir()}
        ledger.recorder.record_income(AccountRef.master(), Decimal("10"), Currency.ARS, "Capital")

        with patch("cash_ledger.store.snapshot.dump_store", side_effect=SinkError("disk full")):
            with pytest.raises(PersistenceError):
                rewrite_snapshot(ledger.store, snapshot_dir)

        assert {p.name: p.read_text(encoding="utf-8") for p in snapshot_dir.iterdir()} == before
        assert [p.name for p in tmp_path.iterdir()] == ["snapshot"]

    def test_rewrite_missing_directory(self, store: LedgerStore, tmp_path: Path) -> None:
        with pytest.raises(PersistenceError):
            rewrite_snapshot(store, tmp_path / "nope")
