"""Cash account model: master, admin and per-project cash boxes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from cash_ledger.exceptions import ValidationError
from cash_ledger.models.base import ZERO
from cash_ledger.models.enums import AccountKind, Currency


def _zero_by_currency() -> dict[Currency, Decimal]:
    return {currency: ZERO for currency in Currency}


@dataclass(frozen=True)
class AccountRef:
    """Reference to a cash account.

    Master and Admin accounts are organization-wide singletons; a Project
    account is identified by its project id.
    """

    kind: AccountKind
    project_id: str | None = None

    def __post_init__(self) -> None:
        if self.kind == AccountKind.PROJECT and not self.project_id:
            raise ValidationError("Project account reference requires a project_id")
        if self.kind != AccountKind.PROJECT and self.project_id is not None:
            raise ValidationError(f"{self.kind.value} account reference cannot carry a project_id")

    @classmethod
    def master(cls) -> AccountRef:
        return cls(AccountKind.MASTER)

    @classmethod
    def admin(cls) -> AccountRef:
        return cls(AccountKind.ADMIN)

    @classmethod
    def project(cls, project_id: str) -> AccountRef:
        return cls(AccountKind.PROJECT, project_id)

    @property
    def key(self) -> str:
        """Stable string key: ``master``, ``admin`` or ``project:<id>``."""
        if self.kind == AccountKind.PROJECT:
            return f"project:{self.project_id}"
        return self.kind.value.lower()

    @classmethod
    def parse(cls, key: str) -> AccountRef:
        """Parse a key produced by :attr:`key`."""
        if key == "master":
            return cls.master()
        if key == "admin":
            return cls.admin()
        if key.startswith("project:") and len(key) > len("project:"):
            return cls.project(key[len("project:"):])
        raise ValidationError(f"Invalid account key: {key!r}")

    def __str__(self) -> str:
        return self.key


@dataclass
class Account:
    """Cash box with per-currency aggregates.

    ``balance[c] == total_income[c] - total_expenses[c]`` holds for every
    currency. The aggregates are a cache of the movement ledger and are
    only changed by applying movements or by reconciliation.
    """

    ref: AccountRef
    balance: dict[Currency, Decimal] = field(default_factory=_zero_by_currency)
    total_income: dict[Currency, Decimal] = field(default_factory=_zero_by_currency)
    total_expenses: dict[Currency, Decimal] = field(default_factory=_zero_by_currency)
    last_movement_at: datetime | None = None
    archived: bool = False
    created_at: datetime | None = None

    def apply_inflow(self, currency: Currency, amount: Decimal, at: datetime) -> None:
        """Register money entering the account."""
        self.total_income[currency] = self.total_income.get(currency, ZERO) + amount
        self.balance[currency] = self.balance.get(currency, ZERO) + amount
        self.last_movement_at = at

    def apply_outflow(self, currency: Currency, amount: Decimal, at: datetime) -> None:
        """Register money leaving the account."""
        self.total_expenses[currency] = self.total_expenses.get(currency, ZERO) + amount
        self.balance[currency] = self.balance.get(currency, ZERO) - amount
        self.last_movement_at = at

    def rederive(
        self,
        currency: Currency,
        total_income: Decimal,
        total_expenses: Decimal,
    ) -> None:
        """Overwrite aggregates for one currency with ledger-derived totals."""
        self.total_income[currency] = total_income
        self.total_expenses[currency] = total_expenses
        self.balance[currency] = total_income - total_expenses

    def available(self, currency: Currency) -> Decimal:
        return self.balance.get(currency, ZERO)
