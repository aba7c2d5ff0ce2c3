"""Category budgets and monthly plans compared against effective-month spending.

A default budget maps category to a monthly limit. A planning profile for a
given month overrides those limits per category and adds an expected income.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Mapping, Optional

from billing import effective_month
from ledger import Ledger, TransactionType
from periods import Month
from recurrence import project_occurrences
from summary import MonthSummary, summarize_month


class BudgetSource(str, Enum):
    budget = "budget"
    plan = "plan"


@dataclass(frozen=True)
class PlanningProfile:
    month: Month
    expected_income_cents: int
    planned_expenses: Mapping[str, int] = field(default_factory=dict, hash=False)

    @property
    def planned_expense_cents(self) -> int:
        return sum(self.planned_expenses.values())

    @property
    def planned_balance_cents(self) -> int:
        return self.expected_income_cents - self.planned_expense_cents

    @property
    def savings_rate(self) -> float:
        if self.expected_income_cents <= 0:
            return 0.0
        return self.planned_balance_cents / self.expected_income_cents * 100


@dataclass(frozen=True)
class BudgetLine:
    category: str
    budget_cents: int
    spent_cents: int
    source: BudgetSource

    @property
    def remaining_cents(self) -> int:
        return max(0, self.budget_cents - self.spent_cents)

    @property
    def is_over_budget(self) -> bool:
        return self.spent_cents > self.budget_cents

    @property
    def percentage(self) -> float:
        if self.budget_cents <= 0:
            return 0.0
        return self.spent_cents / self.budget_cents * 100


def effective_budgets(
    defaults: Mapping[str, int], profile: Optional[PlanningProfile]
) -> dict[str, tuple[int, BudgetSource]]:
    budgets = {cat: (cents, BudgetSource.budget) for cat, cents in defaults.items()}
    if profile is not None:
        for cat, cents in profile.planned_expenses.items():
            budgets[cat] = (cents, BudgetSource.plan)
    return budgets


def spent_by_category(ledger: Ledger, target: Month, *, today: date) -> dict[str, int]:
    """Expenses counted in `target`, pending subscriptions included from today's month on."""
    spent: dict[str, int] = {}
    for txn in ledger.transactions:
        if txn.type != TransactionType.expense:
            continue
        if effective_month(txn, ledger.payment_methods_by_id, ledger.preferences) != target:
            continue
        spent[txn.category] = spent.get(txn.category, 0) + txn.amount_cents
    if target >= Month.from_date(today):
        for occurrence in project_occurrences(ledger, target):
            spent[occurrence.category] = (
                spent.get(occurrence.category, 0) + occurrence.amount_cents
            )
    return spent


def budget_vs_actual(
    ledger: Ledger,
    defaults: Mapping[str, int],
    target: Month,
    *,
    today: date,
    profile: Optional[PlanningProfile] = None,
) -> list[BudgetLine]:
    spent = spent_by_category(ledger, target, today=today)
    return [
        BudgetLine(category, cents, spent.get(category, 0), source)
        for category, (cents, source) in sorted(
            effective_budgets(defaults, profile).items()
        )
    ]


@dataclass(frozen=True)
class PlanReview:
    profile: PlanningProfile
    actual: MonthSummary
    lines: tuple[BudgetLine, ...]

    @property
    def income_gap_cents(self) -> int:
        return self.actual.income_cents - self.profile.expected_income_cents

    @property
    def expense_gap_cents(self) -> int:
        return self.actual.expense_cents - self.profile.planned_expense_cents


def review_plan(ledger: Ledger, profile: PlanningProfile, *, today: date) -> PlanReview:
    lines = budget_vs_actual(ledger, {}, profile.month, today=today, profile=profile)
    return PlanReview(
        profile=profile,
        actual=summarize_month(ledger, profile.month, today=today),
        lines=tuple(lines),
    )
