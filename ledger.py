"""Immutable snapshot records consumed by the billing and projection engine.

The engine never reads ambient state: callers assemble a :class:`Ledger` (usually
through :func:`build_ledger`, which also normalizes legacy references) and pass
it, together with ``today``, into each function.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from functools import cached_property
from typing import Iterable, Optional, Union

from periods import Month


class TransactionType(str, Enum):
    expense = "expense"
    income = "income"
    investment = "investment"


class TransactionKind(str, Enum):
    regular = "regular"
    anticipation = "anticipation"
    reimbursement = "reimbursement"
    subscription = "subscription"
    contribution = "contribution"
    withdrawal = "withdrawal"


class PaymentMethodType(str, Enum):
    credit_card = "credit_card"
    other = "other"


class CreditCardLogic(str, Enum):
    transaction_date = "transaction_date"
    closing_day = "closing_day"


SUBSCRIPTION_PREFIX = "Subscription: "
ANTICIPATION_PATTERN = re.compile(r"^Anticipation \(\d+ inst\.\): ")


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Indefinite:
    pass


@dataclass(frozen=True)
class Until:
    end: date


Lifetime = Union[Indefinite, Until]


@dataclass(frozen=True)
class LedgerPaymentMethod:
    id: str
    name: str
    type: PaymentMethodType = PaymentMethodType.other
    closing_day: Optional[int] = None
    due_day: Optional[int] = None

    @property
    def is_billable_card(self) -> bool:
        return (
            self.type == PaymentMethodType.credit_card
            and bool(self.closing_day)
            and bool(self.due_day)
        )


@dataclass(frozen=True)
class LedgerTransaction:
    id: str
    amount_cents: int
    category: str
    payment_method_id: Optional[str]
    type: TransactionType
    description: str
    date: date
    kind: TransactionKind = TransactionKind.regular
    group_id: Optional[str] = None
    is_reimbursable: bool = False
    is_reimbursed: bool = False
    debtor_name: Optional[str] = None
    related_transaction_id: Optional[str] = None
    subscription_id: Optional[str] = None
    occurrence_date: Optional[date] = None

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("Transaction amount must be positive")


@dataclass(frozen=True)
class LedgerSubscription:
    id: str
    name: str
    amount_cents: int
    category: str
    payment_method_id: Optional[str]
    start_date: date
    lifetime: Lifetime = field(default_factory=Indefinite)
    is_reimbursable: bool = False
    debtor_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("Subscription amount must be positive")
        if isinstance(self.lifetime, Until) and self.lifetime.end < self.start_date:
            raise ValueError("Subscription cannot end before it starts")

    @property
    def billing_day(self) -> int:
        return self.start_date.day

    @property
    def is_indefinite(self) -> bool:
        return isinstance(self.lifetime, Indefinite)

    @property
    def active_until(self) -> Optional[date]:
        if isinstance(self.lifetime, Until):
            return self.lifetime.end
        return None

    def is_active_on(self, value: date) -> bool:
        if value < self.start_date:
            return False
        return self.active_until is None or value <= self.active_until

    def billing_date(self, month: Month) -> date:
        return month.on_day(self.billing_day)


@dataclass(frozen=True)
class Preferences:
    credit_card_logic: CreditCardLogic = CreditCardLogic.transaction_date


@dataclass(frozen=True)
class Ledger:
    transactions: tuple[LedgerTransaction, ...] = ()
    subscriptions: tuple[LedgerSubscription, ...] = ()
    payment_methods: tuple[LedgerPaymentMethod, ...] = ()
    preferences: Preferences = field(default_factory=Preferences)

    @cached_property
    def payment_methods_by_id(self) -> dict[str, LedgerPaymentMethod]:
        return {pm.id: pm for pm in self.payment_methods}

    def payment_method(self, method_id: Optional[str]) -> Optional[LedgerPaymentMethod]:
        if method_id is None:
            return None
        return self.payment_methods_by_id.get(method_id)

    def with_transactions(self, transactions: Iterable[LedgerTransaction]) -> "Ledger":
        return replace(self, transactions=tuple(transactions))


def materialized_occurrences(
    transactions: Iterable[LedgerTransaction],
) -> set[tuple[str, date]]:
    """(subscription id, occurrence date) pairs already recorded as real transactions."""
    return {
        (txn.subscription_id, txn.occurrence_date)
        for txn in transactions
        if txn.subscription_id is not None and txn.occurrence_date is not None
    }


class PaymentMethodIndex:
    """Maps a payment-method reference (id or display name) to its id."""

    def __init__(self, payment_methods: Iterable[LedgerPaymentMethod]) -> None:
        self.by_id: dict[str, LedgerPaymentMethod] = {}
        self.by_name: dict[str, LedgerPaymentMethod] = {}
        for pm in payment_methods:
            self.by_id[pm.id] = pm
            self.by_name.setdefault(pm.name.strip().lower(), pm)

    def normalize(self, reference: Optional[str]) -> Optional[str]:
        if not reference:
            return None
        if reference in self.by_id:
            return reference
        match = self.by_name.get(reference.strip().lower())
        return match.id if match else reference


def _link_legacy_subscription(
    txn: LedgerTransaction, subscriptions: tuple[LedgerSubscription, ...]
) -> LedgerTransaction:
    if (
        txn.subscription_id is not None
        or txn.type != TransactionType.expense
        or txn.kind != TransactionKind.regular
        or SUBSCRIPTION_PREFIX not in txn.description
    ):
        return txn
    # Longest name first so "Netflix Premium" wins over "Netflix".
    candidates = sorted(subscriptions, key=lambda s: len(s.name), reverse=True)
    sub = next(
        (s for s in candidates if f"{SUBSCRIPTION_PREFIX}{s.name}" in txn.description),
        None,
    )
    if sub is None:
        return txn
    return replace(
        txn,
        kind=TransactionKind.subscription,
        subscription_id=sub.id,
        occurrence_date=sub.billing_date(Month.from_date(txn.date)),
    )


def build_ledger(
    transactions: Iterable[LedgerTransaction],
    subscriptions: Iterable[LedgerSubscription],
    payment_methods: Iterable[LedgerPaymentMethod],
    preferences: Optional[Preferences] = None,
) -> Ledger:
    """Normalize raw records into a ledger snapshot.

    Payment-method references are resolved to ids once, here. Legacy records
    that only carry their meaning in the description are given explicit
    markers: ``"Subscription: {name}"`` becomes a materialization link to the
    subscription's billing date in that month, and ``"Anticipation (k inst.): "``
    becomes ``TransactionKind.anticipation``.
    """
    methods = tuple(payment_methods)
    index = PaymentMethodIndex(methods)

    subs = tuple(
        replace(sub, payment_method_id=index.normalize(sub.payment_method_id))
        for sub in subscriptions
    )
    txns: list[LedgerTransaction] = []
    for txn in transactions:
        txn = replace(txn, payment_method_id=index.normalize(txn.payment_method_id))
        if txn.kind == TransactionKind.regular and ANTICIPATION_PATTERN.match(
            txn.description
        ):
            txn = replace(txn, kind=TransactionKind.anticipation)
        txns.append(_link_legacy_subscription(txn, subs))

    return Ledger(
        transactions=tuple(txns),
        subscriptions=subs,
        payment_methods=methods,
        preferences=preferences or Preferences(),
    )
