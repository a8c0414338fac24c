"""Transactional in-memory store for accounts, movements and payment targets."""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator

from cash_ledger.exceptions import (
    EntityNotFoundError,
    InvalidEntityStateError,
    LedgerError,
    PersistenceError,
    ReferentialIntegrityError,
)
from cash_ledger.models import (
    Account,
    AccountKind,
    AccountRef,
    ContractorPayment,
    Installment,
    Loan,
    LoanInstallment,
    Movement,
    Project,
)

logger = logging.getLogger(__name__)

# Entity collections restored in place when a transaction rolls back
_ENTITY_STATE = (
    "accounts",
    "projects",
    "installments",
    "contractor_payments",
    "loans",
    "loan_installments",
)

# Indexes restored wholesale. ``movements`` is append-only and is
# truncated instead of copied.
_INDEX_STATE = (
    "_account_movements",
    "_related_movements",
    "_project_installments",
    "_project_contractor_payments",
    "_loan_installments",
)


@dataclass
class LedgerStore:
    """In-memory ledger store with relationship tracking.

    Every multi-row write goes through :meth:`transaction`, which
    serializes writers and restores the previous state if the block
    raises, so a failed operation leaves no partial effect.
    """

    # Primary entities
    accounts: dict[str, Account] = field(default_factory=dict)
    projects: dict[str, Project] = field(default_factory=dict)
    installments: dict[str, Installment] = field(default_factory=dict)
    contractor_payments: dict[str, ContractorPayment] = field(default_factory=dict)
    loans: dict[str, Loan] = field(default_factory=dict)
    loan_installments: dict[str, LoanInstallment] = field(default_factory=dict)

    # Append-only ledger
    movements: list[Movement] = field(default_factory=list)

    # Relationship indexes
    _account_movements: dict[str, list[int]] = field(default_factory=dict)
    _related_movements: dict[str, list[int]] = field(default_factory=dict)
    _project_installments: dict[str, list[str]] = field(default_factory=dict)
    _project_contractor_payments: dict[str, list[str]] = field(default_factory=dict)
    _loan_installments: dict[str, list[str]] = field(default_factory=dict)

    _lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)
    _depth: int = field(default=0, repr=False, compare=False)

    @contextmanager
    def transaction(self) -> Iterator[LedgerStore]:
        """Run a block of writes atomically.

        Nested blocks join the outermost transaction. Errors that are not
        ``LedgerError`` are reported as ``PersistenceError``.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            saved = self._snapshot()
            self._depth = 1
            try:
                yield self
            except LedgerError:
                self._restore(saved)
                logger.debug("Transaction rolled back")
                raise
            except Exception as exc:
                self._restore(saved)
                logger.error("Transaction rolled back after store failure: %s", exc)
                raise PersistenceError(f"Transaction rolled back: {exc}") from exc
            finally:
                self._depth = 0

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @property
    def lock(self) -> Any:
        """Writer lock; re-entrant, held for the whole of a transaction."""
        return self._lock

    def _snapshot(self) -> dict[str, Any]:
        names = _ENTITY_STATE + _INDEX_STATE
        state = {name: copy.deepcopy(getattr(self, name)) for name in names}
        state["movements"] = len(self.movements)
        return state

    def _restore(self, state: dict[str, Any]) -> None:
        for name in _ENTITY_STATE:
            current = getattr(self, name)
            restored = {}
            for key, saved in state[name].items():
                entity = current.get(key)
                if entity is None:
                    entity = saved
                else:
                    # Keep object identity so references held by callers see the rollback
                    entity.__dict__.update(saved.__dict__)
                restored[key] = entity
            setattr(self, name, restored)
        for name in _INDEX_STATE:
            setattr(self, name, state[name])
        del self.movements[state["movements"]:]

    # Accounts
    def add_account(self, account: Account) -> None:
        """Add an account to the store."""
        key = account.ref.key
        if key in self.accounts:
            raise InvalidEntityStateError(f"Account {key} already exists")
        if account.ref.kind == AccountKind.PROJECT and account.ref.project_id not in self.projects:
            raise ReferentialIntegrityError(f"Project {account.ref.project_id} not found")

        if account.created_at is None:
            account.created_at = datetime.now()
        self.accounts[key] = account
        self._account_movements[key] = []

    def ensure_account(self, ref: AccountRef) -> Account:
        """Return the account for ``ref``, creating an empty one if missing."""
        account = self.accounts.get(ref.key)
        if account is None:
            account = Account(ref=ref)
            self.add_account(account)
        return account

    def get_account(self, ref: AccountRef) -> Account:
        """Get an account or raise ``EntityNotFoundError``."""
        account = self.accounts.get(ref.key)
        if account is None:
            raise EntityNotFoundError(f"Account {ref.key} not found")
        return account

    # Projects and payment targets
    def add_project(self, project: Project) -> None:
        """Add a project to the store."""
        if project.project_id in self.projects:
            raise InvalidEntityStateError(f"Project {project.project_id} already exists")
        if project.created_at is None:
            project.created_at = datetime.now()
        self.projects[project.project_id] = project
        self._project_installments[project.project_id] = []
        self._project_contractor_payments[project.project_id] = []

    def add_installment(self, installment: Installment) -> None:
        """Add a project installment to the store."""
        if installment.installment_id in self.installments:
            raise InvalidEntityStateError(f"Installment {installment.installment_id} already exists")
        if installment.project_id not in self.projects:
            raise ReferentialIntegrityError(f"Project {installment.project_id} not found")

        if installment.created_at is None:
            installment.created_at = datetime.now()
        self.installments[installment.installment_id] = installment
        self._project_installments[installment.project_id].append(installment.installment_id)

    def add_contractor_payment(self, payment: ContractorPayment) -> None:
        """Add a contractor payment to the store."""
        if payment.payment_id in self.contractor_payments:
            raise InvalidEntityStateError(f"Contractor payment {payment.payment_id} already exists")
        if payment.project_id not in self.projects:
            raise ReferentialIntegrityError(f"Project {payment.project_id} not found")

        if payment.created_at is None:
            payment.created_at = datetime.now()
        self.contractor_payments[payment.payment_id] = payment
        self._project_contractor_payments[payment.project_id].append(payment.payment_id)

    def add_loan(self, loan: Loan) -> None:
        """Add a master loan to the store."""
        if loan.loan_id in self.loans:
            raise InvalidEntityStateError(f"Loan {loan.loan_id} already exists")
        if loan.project_id not in self.projects:
            raise ReferentialIntegrityError(f"Project {loan.project_id} not found")

        if loan.created_at is None:
            loan.created_at = datetime.now()
        self.loans[loan.loan_id] = loan
        self._loan_installments[loan.loan_id] = []

    def add_loan_installment(self, installment: LoanInstallment) -> None:
        """Add a loan installment to the store."""
        if installment.installment_id in self.loan_installments:
            raise InvalidEntityStateError(f"Loan installment {installment.installment_id} already exists")
        if installment.loan_id not in self.loans:
            raise ReferentialIntegrityError(f"Loan {installment.loan_id} not found")

        if installment.created_at is None:
            installment.created_at = datetime.now()
        self.loan_installments[installment.installment_id] = installment
        self._loan_installments[installment.loan_id].append(installment.installment_id)

    # Ledger
    def append_movement(self, movement: Movement) -> None:
        """Append a movement to the ledger.

        Existing movements are never modified or removed. Account
        aggregates are applied by the caller in the same transaction.
        """
        for ref in (movement.source, movement.destination):
            if ref is not None and ref.key not in self.accounts:
                raise ReferentialIntegrityError(f"Account {ref.key} not found")

        idx = len(self.movements)
        self.movements.append(movement)
        for ref in {movement.source, movement.destination} - {None}:
            self._account_movements[ref.key].append(idx)

        related = {
            movement.related_installment_id,
            movement.related_payment_id,
            movement.related_loan_id,
        } - {None}
        for target_id in related:
            self._related_movements.setdefault(target_id, []).append(idx)

    # Query methods
    def get_movement(self, movement_id: str) -> Movement | None:
        for movement in self.movements:
            if movement.movement_id == movement_id:
                return movement
        return None

    def get_installment(self, installment_id: str) -> Installment | None:
        return self.installments.get(installment_id)

    def get_contractor_payment(self, payment_id: str) -> ContractorPayment | None:
        return self.contractor_payments.get(payment_id)

    def get_loan(self, loan_id: str) -> Loan | None:
        return self.loans.get(loan_id)

    def get_account_movements(self, ref: AccountRef) -> list[Movement]:
        """Get all movements touching an account, oldest first."""
        indices = self._account_movements.get(ref.key, [])
        return [self.movements[i] for i in indices]

    def get_related_movements(self, target_id: str) -> list[Movement]:
        """Get movements referencing an installment, payment or loan id."""
        indices = self._related_movements.get(target_id, [])
        return [self.movements[i] for i in indices]

    def get_project_installments(self, project_id: str) -> list[Installment]:
        """Get a project's installments ordered by number."""
        ids = self._project_installments.get(project_id, [])
        return sorted(
            (self.installments[iid] for iid in ids),
            key=lambda inst: inst.installment_number,
        )

    def get_project_contractor_payments(self, project_id: str) -> list[ContractorPayment]:
        """Get all contractor payments for a project."""
        ids = self._project_contractor_payments.get(project_id, [])
        return [self.contractor_payments[pid] for pid in ids]

    def get_loan_installments(self, loan_id: str) -> list[LoanInstallment]:
        """Get a loan's installments ordered by number."""
        ids = self._loan_installments.get(loan_id, [])
        return sorted(
            (self.loan_installments[iid] for iid in ids),
            key=lambda inst: inst.installment_number,
        )

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        return {
            "accounts": len(self.accounts),
            "projects": len(self.projects),
            "installments": len(self.installments),
            "contractor_payments": len(self.contractor_payments),
            "loans": len(self.loans),
            "loan_installments": len(self.loan_installments),
            "movements": len(self.movements),
        }
