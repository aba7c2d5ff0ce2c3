"""Investment goals. Contributions and withdrawals become ledger transactions."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, Optional

from ledger import LedgerTransaction, TransactionKind, TransactionType, new_id

INVESTMENT_CATEGORY = "Investments"


@dataclass(frozen=True)
class InvestmentGoal:
    id: str
    name: str
    target_cents: int
    current_cents: int = 0
    category: str = INVESTMENT_CATEGORY
    deadline: Optional[date] = None

    @property
    def remaining_cents(self) -> int:
        return max(0, self.target_cents - self.current_cents)

    @property
    def progress(self) -> float:
        if self.target_cents <= 0:
            return 0.0
        return self.current_cents / self.target_cents * 100


def _movement(
    goal: InvestmentGoal,
    amount_cents: int,
    txn_type: TransactionType,
    kind: TransactionKind,
    description: str,
    today: date,
) -> LedgerTransaction:
    return LedgerTransaction(
        id=new_id(),
        amount_cents=amount_cents,
        category=goal.category,
        payment_method_id=None,
        type=txn_type,
        description=description,
        date=today,
        kind=kind,
    )


def contribute(
    goal: InvestmentGoal, amount_cents: int, *, today: date
) -> tuple[InvestmentGoal, LedgerTransaction]:
    if amount_cents <= 0:
        raise ValueError("Contribution must be positive")
    txn = _movement(
        goal,
        amount_cents,
        TransactionType.investment,
        TransactionKind.contribution,
        f"Contribution: {goal.name}",
        today,
    )
    return replace(goal, current_cents=goal.current_cents + amount_cents), txn


def withdraw(
    goal: InvestmentGoal, amount_cents: int, *, today: date
) -> tuple[InvestmentGoal, LedgerTransaction]:
    """Take money out of a goal; the balance never drops below zero."""
    if amount_cents <= 0:
        raise ValueError("Withdrawal must be positive")
    txn = _movement(
        goal,
        amount_cents,
        TransactionType.income,
        TransactionKind.withdrawal,
        f"Investment withdrawal: {goal.name}",
        today,
    )
    return replace(goal, current_cents=max(0, goal.current_cents - amount_cents)), txn


def record_earning(goal: InvestmentGoal, amount_cents: int) -> InvestmentGoal:
    # Yield grows the balance without any cash movement.
    if amount_cents <= 0:
        raise ValueError("Earning must be positive")
    return replace(goal, current_cents=goal.current_cents + amount_cents)


@dataclass(frozen=True)
class GoalsOverview:
    total_invested_cents: int
    total_target_cents: int

    @property
    def progress(self) -> float:
        if self.total_target_cents <= 0:
            return 0.0
        return self.total_invested_cents / self.total_target_cents * 100


def overview(goals: Iterable[InvestmentGoal]) -> GoalsOverview:
    goals = list(goals)
    return GoalsOverview(
        total_invested_cents=sum(g.current_cents for g in goals),
        total_target_cents=sum(g.target_cents for g in goals),
    )
