"""Installment groups: one purchase split into linked monthly expenses.

Every operation takes the full transaction collection and returns a new one;
members are replaced, never mutated. Operating on an unknown group id returns
the input unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, Optional, Sequence, Union

from ledger import (
    LedgerTransaction,
    TransactionKind,
    TransactionType,
    new_id,
)
from periods import add_months

SUFFIX_PATTERN = re.compile(r"\s*\(\d+/\d+\)$")


class _Unset:
    pass


UNSET = _Unset()

Transactions = Sequence[LedgerTransaction]


def base_description(description: str) -> str:
    return SUFFIX_PATTERN.sub("", description).strip()


def split_amount(total_cents: int, count: int) -> list[int]:
    """Split evenly; leftover cents go to the earliest installments."""
    share, remainder = divmod(total_cents, count)
    return [share + (1 if i < remainder else 0) for i in range(count)]


def group_members(transactions: Iterable[LedgerTransaction], group_id: str) -> list[LedgerTransaction]:
    members = [t for t in transactions if t.group_id == group_id]
    members.sort(key=lambda t: (t.date, t.description))
    return members


def group_title(members: Sequence[LedgerTransaction]) -> str:
    source = next((t for t in members if t.kind == TransactionKind.regular), members[0])
    return base_description(source.description)


def _build_installments(
    group_id: str,
    title: str,
    count: int,
    total_cents: int,
    start_date: date,
    category: str,
    payment_method_id: Optional[str],
    is_reimbursable: bool,
    debtor_name: Optional[str],
) -> list[LedgerTransaction]:
    amounts = split_amount(total_cents, count)
    return [
        LedgerTransaction(
            id=new_id(),
            amount_cents=amounts[i],
            category=category,
            payment_method_id=payment_method_id,
            type=TransactionType.expense,
            description=f"{title} ({i + 1}/{count})",
            date=add_months(start_date, i),
            group_id=group_id,
            is_reimbursable=is_reimbursable,
            is_reimbursed=False,
            debtor_name=debtor_name if is_reimbursable else None,
        )
        for i in range(count)
    ]


def create_group(
    title: str,
    count: int,
    total_cents: int,
    start_date: date,
    *,
    category: str,
    payment_method_id: Optional[str],
    is_reimbursable: bool = False,
    debtor_name: Optional[str] = None,
    group_id: Optional[str] = None,
) -> list[LedgerTransaction]:
    if count < 1:
        raise ValueError("Installment count must be at least 1")
    if total_cents < count:
        raise ValueError("Total must cover at least one cent per installment")
    return _build_installments(
        group_id or new_id(),
        title.strip(),
        count,
        total_cents,
        start_date,
        category,
        payment_method_id,
        is_reimbursable,
        debtor_name,
    )


def edit_group(
    transactions: Transactions,
    group_id: str,
    *,
    title: str,
    start_date: date,
    count: int,
    total_cents: int,
    category: str,
    payment_method_id: Optional[str],
    is_reimbursable: Optional[bool] = None,
    debtor_name: Optional[str] = None,
) -> list[LedgerTransaction]:
    members = group_members(transactions, group_id)
    if not members:
        return list(transactions)
    prototype = members[0]
    reimbursable = (
        prototype.is_reimbursable if is_reimbursable is None else is_reimbursable
    )
    debtor = prototype.debtor_name if debtor_name is None else debtor_name
    regenerated = create_group(
        title,
        count,
        total_cents,
        start_date,
        category=category,
        payment_method_id=payment_method_id,
        is_reimbursable=reimbursable,
        debtor_name=debtor,
        group_id=group_id,
    )
    others = [t for t in transactions if t.group_id != group_id]
    return others + regenerated


def update_group_details(
    transactions: Transactions,
    group_id: str,
    *,
    title: Optional[str] = None,
    category: Optional[str] = None,
    is_reimbursable: Optional[bool] = None,
    debtor_name: Union[str, None, _Unset] = UNSET,
) -> list[LedgerTransaction]:
    """Apply shared fields to every member, keeping each (i/N) suffix.

    `debtor_name=None` clears the debtor; leaving it out keeps it.
    """
    if not any(t.group_id == group_id for t in transactions):
        return list(transactions)
    updated: list[LedgerTransaction] = []
    for txn in transactions:
        if txn.group_id != group_id:
            updated.append(txn)
            continue
        changes: dict[str, object] = {}
        if title is not None and txn.kind == TransactionKind.regular:
            match = SUFFIX_PATTERN.search(txn.description)
            suffix = match.group(0).strip() if match else ""
            changes["description"] = f"{title.strip()} {suffix}".strip()
        if category is not None:
            changes["category"] = category
        if is_reimbursable is not None:
            changes["is_reimbursable"] = is_reimbursable
        if debtor_name is not UNSET:
            changes["debtor_name"] = debtor_name
        updated.append(replace(txn, **changes))
    return updated


def anticipate_group(
    transactions: Transactions,
    group_id: str,
    advance_count: int,
    discounted_cents: int,
    *,
    today: date,
) -> list[LedgerTransaction]:
    """Pay `advance_count` future installments now for `discounted_cents`.

    The advanced installments disappear; the future ones left over are
    packed into consecutive months starting next month, keeping their day.
    """
    members = group_members(transactions, group_id)
    if not members or advance_count < 1:
        return list(transactions)
    past = [t for t in members if t.date <= today]
    future = [t for t in members if t.date > today]
    if not future:
        return list(transactions)
    advance_count = min(advance_count, len(future))

    prototype = members[0]
    rescheduled = [
        replace(txn, date=add_months(today, i + 1, day=txn.date.day))
        for i, txn in enumerate(future[advance_count:])
    ]
    settlement = LedgerTransaction(
        id=new_id(),
        amount_cents=discounted_cents,
        category=prototype.category,
        payment_method_id=prototype.payment_method_id,
        type=TransactionType.expense,
        description=(
            f"Anticipation ({advance_count} inst.): "
            f"{group_title(members)}"
        ),
        date=today,
        kind=TransactionKind.anticipation,
        group_id=group_id,
    )
    others = [t for t in transactions if t.group_id != group_id]
    return others + past + rescheduled + [settlement]


def delete_group(transactions: Transactions, group_id: str) -> list[LedgerTransaction]:
    return [t for t in transactions if t.group_id != group_id]


@dataclass(frozen=True)
class InstallmentGroup:
    group_id: str
    description: str
    total_cents: int
    paid_cents: int
    remaining_cents: int
    progress: float
    installments: tuple[LedgerTransaction, ...]
    start_date: date
    end_date: date
    category: str
    payment_method_id: Optional[str]


def summarize_group(
    transactions: Iterable[LedgerTransaction], group_id: str, *, today: date
) -> Optional[InstallmentGroup]:
    members = group_members(transactions, group_id)
    if not members:
        return None
    prototype = members[0]
    total = sum(t.amount_cents for t in members)
    paid = sum(t.amount_cents for t in members if t.date <= today)
    return InstallmentGroup(
        group_id=group_id,
        description=group_title(members),
        total_cents=total,
        paid_cents=paid,
        remaining_cents=total - paid,
        progress=(paid / total * 100) if total > 0 else 0.0,
        installments=tuple(members),
        start_date=prototype.date,
        end_date=members[-1].date,
        category=prototype.category,
        payment_method_id=prototype.payment_method_id,
    )


def summarize_groups(
    transactions: Iterable[LedgerTransaction], *, today: date
) -> list[InstallmentGroup]:
    transactions = list(transactions)
    group_ids = {t.group_id for t in transactions if t.group_id}
    groups = [summarize_group(transactions, gid, today=today) for gid in group_ids]
    return sorted(
        (g for g in groups if g is not None),
        key=lambda g: (g.end_date, g.group_id),
        reverse=True,
    )
