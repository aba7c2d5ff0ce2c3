"""Monthly aggregation over effective dates, blending in projected subscriptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from billing import effective_month
from installments import base_description
from ledger import Ledger, LedgerTransaction, TransactionKind, TransactionType
from periods import Month, month_range
from recurrence import project_occurrences


@dataclass(frozen=True)
class MonthSummary:
    month: Month
    income_cents: int
    expense_cents: int
    investment_cents: int
    projected_cents: int = 0

    @property
    def balance_cents(self) -> int:
        return self.income_cents - self.expense_cents - self.investment_cents

    @property
    def is_projection(self) -> bool:
        return self.projected_cents > 0


def _totals_by_effective_month(
    ledger: Ledger, months: set[Month]
) -> dict[Month, dict[TransactionType, int]]:
    totals = {m: {t: 0 for t in TransactionType} for m in months}
    for txn in ledger.transactions:
        month = effective_month(txn, ledger.payment_methods_by_id, ledger.preferences)
        if month in totals:
            totals[month][txn.type] += txn.amount_cents
    return totals


def _build_summary(
    ledger: Ledger, target: Month, totals: dict[TransactionType, int], today: date
) -> MonthSummary:
    projected = 0
    if target >= Month.from_date(today):
        projected = sum(o.amount_cents for o in project_occurrences(ledger, target))
    return MonthSummary(
        month=target,
        income_cents=totals[TransactionType.income],
        expense_cents=totals[TransactionType.expense] + projected,
        investment_cents=totals[TransactionType.investment],
        projected_cents=projected,
    )


def summarize_month(ledger: Ledger, target: Month, *, today: date) -> MonthSummary:
    """Income, expense and investment counted in `target` after billing rules.

    From the current month on, subscriptions not yet launched are added to
    expense, so past months read as actuals and later months as projections.
    """
    totals = _totals_by_effective_month(ledger, {target})
    return _build_summary(ledger, target, totals[target], today)


def monthly_series(
    ledger: Ledger, start: Month, count: int, *, today: date
) -> list[MonthSummary]:
    months = [start.shift(i) for i in range(max(count, 0))]
    totals = _totals_by_effective_month(ledger, set(months))
    return [_build_summary(ledger, m, totals[m], today) for m in months]


class ReportSection(str, Enum):
    income = "income"
    investment = "investment"
    reimbursable = "reimbursable"
    installment = "installment"
    subscription = "subscription"
    other = "other"


@dataclass(frozen=True)
class ReportRow:
    section: ReportSection
    category: str
    description: str
    debtor_name: str
    amounts: dict[str, int] = field(default_factory=dict, compare=False, hash=False)

    def amount_for(self, month: Month) -> int:
        return self.amounts.get(month.key, 0)


@dataclass(frozen=True)
class MonthReport:
    months: tuple[Month, ...]
    rows: tuple[ReportRow, ...]

    def section_rows(self, section: ReportSection) -> list[ReportRow]:
        return [row for row in self.rows if row.section == section]

    def section_total(self, section: ReportSection, month: Month) -> int:
        return sum(row.amount_for(month) for row in self.section_rows(section))


def _classify(txn: LedgerTransaction, ledger: Ledger) -> tuple[ReportSection, str]:
    if txn.type == TransactionType.income:
        return ReportSection.income, txn.description
    if txn.type == TransactionType.investment:
        return ReportSection.investment, txn.description
    if txn.is_reimbursable:
        return ReportSection.reimbursable, txn.description
    if txn.group_id:
        return ReportSection.installment, base_description(txn.description)
    if txn.kind == TransactionKind.subscription:
        sub = next(
            (s for s in ledger.subscriptions if s.id == txn.subscription_id), None
        )
        return ReportSection.subscription, sub.name if sub else txn.description
    return ReportSection.other, txn.description


def month_category_report(
    ledger: Ledger,
    *,
    today: date,
    months_ahead: int = 12,
    start: Optional[Month] = None,
) -> MonthReport:
    """Bucket every effective amount into month columns, one row per line item.

    The range starts at the earliest month holding data (or `start`) and runs
    `months_ahead` months past today. Subscription rows include projected
    occurrences from the current month on.
    """
    current = Month.from_date(today)
    if start is None:
        dates = [t.date for t in ledger.transactions]
        dates += [s.start_date for s in ledger.subscriptions]
        start = Month.from_date(min(dates)) if dates else current
    end = current.shift(months_ahead)
    months = month_range(start, end)
    keys = {m.key for m in months}

    rows: dict[tuple[ReportSection, str, str, str], dict[str, int]] = {}

    def add(section, category, description, debtor, month: Month, cents: int) -> None:
        if month.key not in keys:
            return
        amounts = rows.setdefault((section, category, description, debtor or ""), {})
        amounts[month.key] = amounts.get(month.key, 0) + cents

    for txn in ledger.transactions:
        section, description = _classify(txn, ledger)
        month = effective_month(txn, ledger.payment_methods_by_id, ledger.preferences)
        add(section, txn.category, description, txn.debtor_name, month, txn.amount_cents)

    for month in months:
        if month < current:
            continue
        for occurrence in project_occurrences(ledger, month):
            section = (
                ReportSection.reimbursable
                if occurrence.is_reimbursable
                else ReportSection.subscription
            )
            add(
                section,
                occurrence.category,
                occurrence.name,
                occurrence.debtor_name,
                month,
                occurrence.amount_cents,
            )

    order = list(ReportSection)
    report_rows = [
        ReportRow(section, category, description, debtor, amounts)
        for (section, category, description, debtor), amounts in rows.items()
    ]
    report_rows.sort(
        key=lambda r: (order.index(r.section), r.category, r.description, r.debtor_name)
    )
    return MonthReport(months=tuple(months), rows=tuple(report_rows))
