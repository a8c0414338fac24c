"""JSON snapshot export and import for the ledger store."""

import json
import logging
import os
import shutil
import uuid
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from cash_ledger.exceptions import LedgerError, PersistenceError, ValidationError
from cash_ledger.models import (
    Account,
    AccountRef,
    ContractorPayment,
    ContractorPaymentStatus,
    ContractorPaymentType,
    Currency,
    Installment,
    InstallmentStatus,
    Loan,
    LoanInstallment,
    LoanStatus,
    Movement,
    MovementType,
    Project,
    ScheduleFrequency,
)
from cash_ledger.sinks.json_file import JsonFileSink
from cash_ledger.store.ledger import LedgerStore

logger = logging.getLogger(__name__)

# Load order respects referential integrity
ENTITY_FILES = (
    "projects",
    "accounts",
    "installments",
    "contractor_payments",
    "loans",
    "loan_installments",
    "movements",
)


def dump_store(store: LedgerStore, sink: JsonFileSink) -> None:
    """Write every entity collection of ``store`` through ``sink``."""
    with store.transaction():
        sink.write_batch("projects", list(store.projects.values()))
        sink.write_batch("accounts", list(store.accounts.values()))
        sink.write_batch("installments", list(store.installments.values()))
        sink.write_batch("contractor_payments", list(store.contractor_payments.values()))
        sink.write_batch("loans", list(store.loans.values()))
        sink.write_batch("loan_installments", list(store.loan_installments.values()))
        sink.write_batch("movements", list(store.movements))
    logger.info("Snapshot written: %s", store.summary())


def rewrite_snapshot(store: LedgerStore, directory: str | Path, pretty: bool = False) -> None:
    """Replace the snapshot in ``directory`` with the contents of ``store``.

    The new snapshot is staged in a sibling copy of ``directory`` and
    swapped in only once every file is written, so readers never see a
    mix of old and new files. Other files in the directory are kept.
    """
    directory = Path(directory).resolve()
    if not directory.is_dir():
        raise PersistenceError(f"Snapshot directory {directory} not found")

    token = uuid.uuid4().hex[:8]
    staging = directory.with_name(f".{directory.name}.staging-{token}")
    backup = directory.with_name(f".{directory.name}.previous-{token}")
    try:
        shutil.copytree(directory, staging)
        dump_store(store, JsonFileSink(staging, pretty=pretty))
    except (OSError, LedgerError) as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise PersistenceError(f"Cannot stage snapshot for {directory}: {exc}") from exc

    try:
        os.replace(directory, backup)
    except OSError as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise PersistenceError(f"Cannot swap snapshot {directory}: {exc}") from exc
    try:
        os.replace(staging, directory)
    except OSError as exc:
        os.replace(backup, directory)
        shutil.rmtree(staging, ignore_errors=True)
        raise PersistenceError(f"Cannot swap snapshot {directory}: {exc}") from exc

    shutil.rmtree(backup, ignore_errors=True)
    logger.info("Snapshot %s replaced", directory)


def load_store(directory: str | Path) -> LedgerStore:
    """Rebuild a store from a snapshot directory written by :func:`dump_store`.

    Missing entity files are treated as empty collections.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise PersistenceError(f"Snapshot directory {directory} not found")

    store = LedgerStore()
    loaders = {
        "projects": (_project, store.add_project),
        "accounts": (_account, store.add_account),
        "installments": (_installment, store.add_installment),
        "contractor_payments": (_contractor_payment, store.add_contractor_payment),
        "loans": (_loan, store.add_loan),
        "loan_installments": (_loan_installment, store.add_loan_installment),
        "movements": (_movement, store.append_movement),
    }

    for entity_type in ENTITY_FILES:
        file_path = directory / f"{entity_type}.json"
        if not file_path.exists():
            continue
        try:
            with open(file_path, encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Cannot read {file_path}: {exc}") from exc

        parse, add = loaders[entity_type]
        for record in records:
            try:
                entity = parse(record)
            except (KeyError, ValueError, ArithmeticError, ValidationError) as exc:
                raise PersistenceError(f"Malformed record in {file_path}: {exc}") from exc
            add(entity)

    logger.info("Snapshot loaded from %s: %s", directory, store.summary())
    return store


def _dec(value: Any) -> Decimal:
    return Decimal(str(value))


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _ref(value: str | None) -> AccountRef | None:
    return AccountRef.parse(value) if value else None


def _by_currency(values: dict[str, Any]) -> dict[Currency, Decimal]:
    return {Currency(k): _dec(v) for k, v in values.items()}


def _project(r: dict) -> Project:
    return Project(
        project_id=r["project_id"],
        name=r["name"],
        client_name=r["client_name"],
        currency=Currency(r["currency"]),
        total_amount=_dec(r["total_amount"]),
        down_payment_amount=_dec(r["down_payment_amount"]),
        installments_count=int(r["installments_count"]),
        start_date=_date(r["start_date"]),
        admin_fee_percentage=_dec(r["admin_fee_percentage"]),
        frequency=ScheduleFrequency(r["frequency"]),
        archived=bool(r["archived"]),
        created_at=_dt(r.get("created_at")),
    )


def _account(r: dict) -> Account:
    return Account(
        ref=AccountRef.parse(r["ref"]),
        balance=_by_currency(r["balance"]),
        total_income=_by_currency(r["total_income"]),
        total_expenses=_by_currency(r["total_expenses"]),
        last_movement_at=_dt(r.get("last_movement_at")),
        archived=bool(r["archived"]),
        created_at=_dt(r.get("created_at")),
    )


def _installment(r: dict) -> Installment:
    return Installment(
        installment_id=r["installment_id"],
        project_id=r["project_id"],
        installment_number=int(r["installment_number"]),
        amount=_dec(r["amount"]),
        currency=Currency(r["currency"]),
        due_date=_date(r["due_date"]),
        status=InstallmentStatus(r["status"]),
        paid_amount=_dec(r["paid_amount"]),
        paid_date=_date(r.get("paid_date")),
        description=r.get("description", ""),
        created_at=_dt(r.get("created_at")),
        updated_at=_dt(r.get("updated_at")),
    )


def _contractor_payment(r: dict) -> ContractorPayment:
    return ContractorPayment(
        payment_id=r["payment_id"],
        project_id=r["project_id"],
        project_contractor_id=r["project_contractor_id"],
        amount=_dec(r["amount"]),
        currency=Currency(r["currency"]),
        payment_type=ContractorPaymentType(r["payment_type"]),
        status=ContractorPaymentStatus(r["status"]),
        paid_amount=_dec(r["paid_amount"]),
        payment_date=_date(r.get("payment_date")),
        description=r.get("description", ""),
        created_at=_dt(r.get("created_at")),
        updated_at=_dt(r.get("updated_at")),
    )


def _loan(r: dict) -> Loan:
    return Loan(
        loan_id=r["loan_id"],
        loan_code=r["loan_code"],
        project_id=r["project_id"],
        principal=_dec(r["principal"]),
        currency=Currency(r["currency"]),
        interest_rate=_dec(r["interest_rate"]),
        installments_count=int(r["installments_count"]),
        loan_date=_date(r["loan_date"]),
        due_date=_date(r["due_date"]),
        status=LoanStatus(r["status"]),
        total_repaid=_dec(r["total_repaid"]),
        description=r.get("description", ""),
        created_at=_dt(r.get("created_at")),
        updated_at=_dt(r.get("updated_at")),
    )


def _loan_installment(r: dict) -> LoanInstallment:
    return LoanInstallment(
        installment_id=r["installment_id"],
        loan_id=r["loan_id"],
        installment_number=int(r["installment_number"]),
        amount=_dec(r["amount"]),
        due_date=_date(r["due_date"]),
        status=InstallmentStatus(r["status"]),
        paid_amount=_dec(r["paid_amount"]),
        paid_date=_date(r.get("paid_date")),
        created_at=_dt(r.get("created_at")),
    )


def _movement(r: dict) -> Movement:
    return Movement(
        movement_id=r["movement_id"],
        movement_type=MovementType(r["movement_type"]),
        amount=_dec(r["amount"]),
        currency=Currency(r["currency"]),
        source=_ref(r.get("source")),
        destination=_ref(r.get("destination")),
        description=r.get("description", ""),
        created_at=_dt(r["created_at"]),
        related_installment_id=r.get("related_installment_id"),
        related_payment_id=r.get("related_payment_id"),
        related_loan_id=r.get("related_loan_id"),
        event_id=r.get("event_id"),
        metadata=r.get("metadata") or {},
    )
