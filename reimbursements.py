from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, Optional, Sequence

from ledger import LedgerTransaction, TransactionKind, TransactionType, new_id


@dataclass(frozen=True)
class DebtorBalance:
    debtor_name: str
    pending_cents: int
    transaction_ids: tuple[str, ...]


def _find(transactions: Sequence[LedgerTransaction], transaction_id: str) -> Optional[LedgerTransaction]:
    return next((t for t in transactions if t.id == transaction_id), None)


def reimburse(
    transactions: Sequence[LedgerTransaction], transaction_id: str, *, today: date
) -> list[LedgerTransaction]:
    """Record the payback of a reimbursable expense as a linked income."""
    expense = _find(transactions, transaction_id)
    if (
        expense is None
        or expense.type != TransactionType.expense
        or not expense.is_reimbursable
        or expense.is_reimbursed
    ):
        return list(transactions)

    income = LedgerTransaction(
        id=new_id(),
        amount_cents=expense.amount_cents,
        category=expense.category,
        payment_method_id=expense.payment_method_id,
        type=TransactionType.income,
        description=f"Reimbursement received: {expense.description}",
        date=today,
        kind=TransactionKind.reimbursement,
        debtor_name=expense.debtor_name,
        related_transaction_id=expense.id,
    )
    updated = [
        replace(t, is_reimbursed=True, related_transaction_id=income.id)
        if t.id == expense.id
        else t
        for t in transactions
    ]
    return [income] + updated


def undo_reimbursement(
    transactions: Sequence[LedgerTransaction], transaction_id: str
) -> list[LedgerTransaction]:
    expense = _find(transactions, transaction_id)
    if expense is None or not expense.is_reimbursed:
        return list(transactions)
    income_id = expense.related_transaction_id
    return [
        replace(t, is_reimbursed=False, related_transaction_id=None)
        if t.id == expense.id
        else t
        for t in transactions
        if income_id is None or t.id != income_id
    ]


def pending_by_debtor(transactions: Iterable[LedgerTransaction]) -> list[DebtorBalance]:
    totals: dict[str, list[LedgerTransaction]] = {}
    for txn in transactions:
        if (
            txn.type != TransactionType.expense
            or not txn.is_reimbursable
            or txn.is_reimbursed
        ):
            continue
        totals.setdefault(txn.debtor_name or "Unassigned", []).append(txn)
    balances = [
        DebtorBalance(
            debtor_name=name,
            pending_cents=sum(t.amount_cents for t in txns),
            transaction_ids=tuple(t.id for t in txns),
        )
        for name, txns in totals.items()
    ]
    balances.sort(key=lambda b: (-b.pending_cents, b.debtor_name))
    return balances
