"""Movement ledger: records money movements and keeps account aggregates in sync."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterator

from cash_ledger.config import LedgerConfig
from cash_ledger.events import MovementPublisher
from cash_ledger.exceptions import (
    EntityNotFoundError,
    InsufficientFundsError,
    InvalidEntityStateError,
    ValidationError,
)
from cash_ledger.models import AccountRef, Currency, Movement, MovementType
from cash_ledger.models.base import to_money
from cash_ledger.store.ledger import LedgerStore

logger = logging.getLogger(__name__)

# Movement types that move money between two ledger accounts
_INTERNAL_TYPES = frozenset(
    {MovementType.TRANSFER, MovementType.LOAN_DISBURSEMENT, MovementType.LOAN_REPAYMENT}
)

# Compensating type for reversible movements
_REVERSAL_TYPES = {
    MovementType.INCOME: MovementType.EXPENSE,
    MovementType.EXPENSE: MovementType.INCOME,
    MovementType.TRANSFER: MovementType.TRANSFER,
}


def validate_amount(amount: Decimal | int | str) -> Decimal:
    """Return ``amount`` as a positive cent-exact Decimal or raise ``ValidationError``."""
    try:
        value = Decimal(amount)
    except (ArithmeticError, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"Amount must be positive, got {amount}")
    if value != to_money(value):
        raise ValidationError(f"Amount {amount} has more than two decimal places")
    return value


class MovementRecorder:
    """Append movements to the ledger and apply them to account aggregates.

    For every movement the destination account receives an inflow
    (``total_income``) and the source account an outflow
    (``total_expenses``), so ``balance == total_income - total_expenses``
    holds after every write.

    Writes made inside :meth:`unit_of_work` are committed together and
    published as ``movement.recorded`` events once the outermost unit
    commits.
    """

    def __init__(
        self,
        store: LedgerStore,
        config: LedgerConfig | None = None,
        publisher: MovementPublisher | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.config = config or LedgerConfig()
        self.publisher = publisher or MovementPublisher(topic=self.config.movements_topic)
        self.clock = clock
        self._pending: list[Movement] = []

    @contextmanager
    def unit_of_work(self) -> Iterator[LedgerStore]:
        """Transaction that publishes its movements after commit."""
        with self.store.lock:
            outermost = not self.store.in_transaction
            try:
                with self.store.transaction() as store:
                    yield store
            except BaseException:
                if outermost:
                    self._pending.clear()
                raise
            committed: list[Movement] = []
            if outermost:
                committed, self._pending = self._pending, []

        if committed:
            self.publisher.publish(committed)

    def record(
        self,
        movement_type: MovementType,
        amount: Decimal,
        currency: Currency,
        source: AccountRef | None,
        destination: AccountRef | None,
        description: str,
        *,
        related_installment_id: str | None = None,
        related_payment_id: str | None = None,
        related_loan_id: str | None = None,
        event_id: str | None = None,
        metadata: dict | None = None,
        check_funds: bool = True,
    ) -> Movement:
        """Validate, append and apply a single movement."""
        amount = validate_amount(amount)
        currency = Currency(currency)
        self._validate_shape(movement_type, source, destination)

        with self.unit_of_work() as store:
            source_account = store.get_account(source) if source else None
            destination_account = store.get_account(destination) if destination else None

            for account in (source_account, destination_account):
                if account is not None and account.archived:
                    raise InvalidEntityStateError(f"Account {account.ref.key} is archived")

            if (
                source_account is not None
                and check_funds
                and self.config.enforce_sufficient_funds
                and source_account.available(currency) < amount
            ):
                raise InsufficientFundsError(
                    f"Insufficient {currency.value} funds in {source_account.ref.key}: "
                    f"available {source_account.available(currency)}, required {amount}"
                )

            now = self.clock()
            movement = Movement(
                movement_id=str(uuid.uuid4()),
                movement_type=movement_type,
                amount=amount,
                currency=currency,
                source=source,
                destination=destination,
                description=description,
                created_at=now,
                related_installment_id=related_installment_id,
                related_payment_id=related_payment_id,
                related_loan_id=related_loan_id,
                event_id=event_id,
                metadata=dict(metadata or {}),
            )
            store.append_movement(movement)
            if destination_account is not None:
                destination_account.apply_inflow(currency, amount, now)
            if source_account is not None:
                source_account.apply_outflow(currency, amount, now)
            self._pending.append(movement)

        logger.info(
            "Recorded %s %s %s: %s -> %s",
            movement_type.value,
            amount,
            currency.value,
            source.key if source else "external",
            destination.key if destination else "external",
        )
        return movement

    def record_income(
        self,
        account: AccountRef,
        amount: Decimal,
        currency: Currency,
        description: str,
        **links,
    ) -> Movement:
        """Money entering ``account`` from the external world."""
        return self.record(MovementType.INCOME, amount, currency, None, account, description, **links)

    def record_expense(
        self,
        account: AccountRef,
        amount: Decimal,
        currency: Currency,
        description: str,
        **links,
    ) -> Movement:
        """Money leaving ``account`` to the external world."""
        return self.record(MovementType.EXPENSE, amount, currency, account, None, description, **links)

    def transfer(
        self,
        source: AccountRef,
        destination: AccountRef,
        amount: Decimal,
        currency: Currency,
        description: str = "",
        **links,
    ) -> Movement:
        """Move money between two ledger accounts."""
        return self.record(
            MovementType.TRANSFER,
            amount,
            currency,
            source,
            destination,
            description or f"Transfer {source.key} -> {destination.key}",
            **links,
        )

    def exchange_currency(
        self,
        account: AccountRef,
        from_currency: Currency,
        to_currency: Currency,
        amount: Decimal,
        rate: Decimal,
        description: str = "",
    ) -> tuple[Movement, Movement]:
        """Convert ``amount`` of ``from_currency`` held in ``account``.

        ``rate`` is the number of ``to_currency`` units per unit of
        ``from_currency``. Both legs share one ``event_id``.
        """
        from_currency = Currency(from_currency)
        to_currency = Currency(to_currency)
        if from_currency == to_currency:
            raise ValidationError("Currency exchange requires two different currencies")
        rate = Decimal(rate)
        if rate <= 0:
            raise ValidationError(f"Exchange rate must be positive, got {rate}")

        amount = validate_amount(amount)
        converted = to_money(amount * rate)
        if converted <= 0:
            raise ValidationError(f"Converting {amount} at {rate} yields nothing")

        event_id = str(uuid.uuid4())
        text = description or (
            f"Exchange: -{amount} {from_currency.value} -> +{converted} {to_currency.value} @ {rate}"
        )
        metadata = {"exchange_rate": str(rate)}
        with self.unit_of_work():
            out_leg = self.record(
                MovementType.CURRENCY_EXCHANGE,
                amount,
                from_currency,
                account,
                None,
                text,
                event_id=event_id,
                metadata=metadata,
            )
            in_leg = self.record(
                MovementType.CURRENCY_EXCHANGE,
                converted,
                to_currency,
                None,
                account,
                text,
                event_id=event_id,
                metadata=metadata,
            )
        return out_leg, in_leg

    def reverse(self, movement_id: str, reason: str) -> Movement:
        """Record a compensating movement; the original is left untouched.

        Movements tied to installments, contractor payments or loans are
        reversed through the operation that owns them.
        """
        original = self.store.get_movement(movement_id)
        if original is None:
            raise EntityNotFoundError(f"Movement {movement_id} not found")
        if original.movement_type not in _REVERSAL_TYPES:
            raise InvalidEntityStateError(f"{original.movement_type.value} movements cannot be reversed")
        if original.related_installment_id or original.related_payment_id or original.related_loan_id:
            raise InvalidEntityStateError(f"Movement {movement_id} is linked to a payment target")

        with self.unit_of_work():
            if any(m.metadata.get("reverses") == movement_id for m in self.store.movements):
                raise InvalidEntityStateError(f"Movement {movement_id} was already reversed")
            return self.record(
                _REVERSAL_TYPES[original.movement_type],
                original.amount,
                original.currency,
                original.destination,
                original.source,
                f"Reversal: {original.description} ({reason})",
                event_id=original.event_id,
                metadata={"reverses": movement_id, "reason": reason},
            )

    def get_account_balance(self, ref: AccountRef, currency: Currency) -> Decimal:
        """Current stored balance of ``ref`` in ``currency``."""
        return self.store.get_account(ref).available(Currency(currency))

    def list_movements(self, ref: AccountRef, limit: int = 50) -> list[Movement]:
        """Movements touching ``ref``, newest first."""
        if limit <= 0:
            raise ValidationError(f"limit must be positive, got {limit}")
        self.store.get_account(ref)
        movements = self.store.get_account_movements(ref)
        return list(reversed(movements))[:limit]

    def _validate_shape(
        self,
        movement_type: MovementType,
        source: AccountRef | None,
        destination: AccountRef | None,
    ) -> None:
        if movement_type == MovementType.INCOME:
            valid = source is None and destination is not None
        elif movement_type == MovementType.EXPENSE:
            valid = source is not None and destination is None
        elif movement_type in _INTERNAL_TYPES:
            valid = source is not None and destination is not None and source != destination
        else:
            valid = (source is None) != (destination is None)

        if not valid:
            raise ValidationError(
                f"Invalid {movement_type.value} movement: source={source}, destination={destination}"
            )
