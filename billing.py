"""Credit-card billing rules: effective dates and invoice assembly."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Iterable, Mapping, Optional

from ledger import (
    CreditCardLogic,
    LedgerPaymentMethod,
    LedgerSubscription,
    LedgerTransaction,
    Preferences,
    TransactionKind,
    TransactionType,
    materialized_occurrences,
)
from periods import Month, Period, invoice_period, month_range


def billing_cycle_month(value: date, closing_day: int) -> Month:
    """Month whose closing date ends the cycle `value` falls into.

    A purchase on the closing day itself still belongs to the current cycle.
    """
    month = Month.from_date(value)
    if value.day > closing_day:
        return month.shift(1)
    return month


def due_month(cycle: Month, closing_day: int, due_day: int) -> Month:
    if due_day <= closing_day:
        return cycle.shift(1)
    return cycle


@lru_cache(maxsize=4096)
def _card_effective_date(
    value: date, closing_day: int, due_day: int, logic: CreditCardLogic
) -> date:
    cycle = billing_cycle_month(value, closing_day)
    if logic == CreditCardLogic.closing_day:
        return due_month(cycle, closing_day, due_day).on_day(due_day)
    return cycle.on_day(closing_day)


def is_card_remappable(txn: LedgerTransaction) -> bool:
    # Anticipations are cash settlements made today, reimbursements are income.
    return txn.type == TransactionType.expense and txn.kind in (
        TransactionKind.regular,
        TransactionKind.subscription,
    )


def effective_date(
    txn: LedgerTransaction,
    payment_methods: Mapping[str, LedgerPaymentMethod],
    preferences: Preferences,
) -> date:
    if not is_card_remappable(txn):
        return txn.date
    pm = payment_methods.get(txn.payment_method_id) if txn.payment_method_id else None
    if pm is None or not pm.is_billable_card:
        return txn.date
    return _card_effective_date(
        txn.date, pm.closing_day, pm.due_day, preferences.credit_card_logic
    )


def effective_month(
    txn: LedgerTransaction,
    payment_methods: Mapping[str, LedgerPaymentMethod],
    preferences: Preferences,
) -> Month:
    return Month.from_date(effective_date(txn, payment_methods, preferences))


@dataclass(frozen=True)
class InvoiceItem:
    date: date
    description: str
    amount_cents: int
    category: str
    transaction_id: Optional[str] = None
    subscription_id: Optional[str] = None
    is_projected: bool = False


@dataclass(frozen=True)
class Invoice:
    card_id: str
    transactions: tuple[InvoiceItem, ...]
    total_cents: int
    closing_date: Optional[date]
    due_date: Optional[date]
    period: Optional[Period]

    @property
    def is_empty(self) -> bool:
        return not self.transactions


def _subscription_candidates(
    sub: LedgerSubscription, period: Period, launched: set[tuple[str, date]]
) -> list[date]:
    candidates: list[date] = []
    for month in month_range(Month.from_date(period.start), Month.from_date(period.end)):
        candidate = sub.billing_date(month)
        if not period.contains(candidate) or not sub.is_active_on(candidate):
            continue
        if (sub.id, candidate) in launched:
            continue
        candidates.append(candidate)
    return candidates


def assemble_invoice(
    transactions: Iterable[LedgerTransaction],
    subscriptions: Iterable[LedgerSubscription],
    card: LedgerPaymentMethod,
    year: int,
    month: int,
) -> Invoice:
    if not card.is_billable_card:
        return Invoice(card.id, (), 0, None, None, None)

    transactions = list(transactions)
    period = invoice_period(card.closing_day, year, month)

    # Membership uses the raw purchase date: the invoice is the cycle grouping.
    items = [
        InvoiceItem(
            date=txn.date,
            description=txn.description,
            amount_cents=txn.amount_cents,
            category=txn.category,
            transaction_id=txn.id,
        )
        for txn in transactions
        if txn.type == TransactionType.expense
        and txn.payment_method_id == card.id
        and period.contains(txn.date)
    ]

    launched = materialized_occurrences(transactions)
    for sub in subscriptions:
        if sub.payment_method_id != card.id:
            continue
        for candidate in _subscription_candidates(sub, period, launched):
            items.append(
                InvoiceItem(
                    date=candidate,
                    description=sub.name,
                    amount_cents=sub.amount_cents,
                    category=sub.category,
                    subscription_id=sub.id,
                    is_projected=True,
                )
            )

    items.sort(key=lambda item: item.date, reverse=True)
    due = due_month(Month(year, month), card.closing_day, card.due_day).on_day(
        card.due_day
    )
    return Invoice(
        card_id=card.id,
        transactions=tuple(items),
        total_cents=sum(item.amount_cents for item in items),
        closing_date=period.end,
        due_date=due,
        period=period,
    )
