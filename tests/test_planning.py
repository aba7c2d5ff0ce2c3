from datetime import date

from ledger import (
    CreditCardLogic,
    LedgerPaymentMethod,
    LedgerSubscription,
    LedgerTransaction,
    PaymentMethodType,
    Preferences,
    TransactionType,
    build_ledger,
)
from periods import Month
from planning import (
    BudgetSource,
    PlanningProfile,
    budget_vs_actual,
    effective_budgets,
    review_plan,
    spent_by_category,
)

CARD = LedgerPaymentMethod(
    id="card-1",
    name="Nubank",
    type=PaymentMethodType.credit_card,
    closing_day=25,
    due_day=5,
)


def _txn(
    txn_id, category, cents, day, txn_type=TransactionType.expense, payment_method_id=None
):
    return LedgerTransaction(
        id=txn_id,
        amount_cents=cents,
        category=category,
        payment_method_id=payment_method_id,
        type=txn_type,
        description=txn_id,
        date=day,
    )


def test_spending_follows_the_effective_month():
    ledger = build_ledger(
        [
            _txn("market", "Food", 20_000, date(2024, 3, 10)),
            # Bought after the close, so it counts in April.
            _txn("dinner", "Food", 8_000, date(2024, 3, 26), payment_method_id="card-1"),
            _txn("salary", "Salary", 500_000, date(2024, 3, 5), TransactionType.income),
        ],
        [],
        [CARD],
        Preferences(CreditCardLogic.transaction_date),
    )
    today = date(2024, 6, 1)
    assert spent_by_category(ledger, Month(2024, 3), today=today) == {"Food": 20_000}
    assert spent_by_category(ledger, Month(2024, 4), today=today) == {"Food": 8_000}


def test_pending_subscriptions_count_from_the_current_month():
    netflix = LedgerSubscription(
        id="sub-netflix",
        name="Netflix",
        amount_cents=3_990,
        category="Streaming",
        payment_method_id=None,
        start_date=date(2024, 1, 10),
    )
    ledger = build_ledger([], [netflix], [])
    today = date(2024, 5, 15)
    assert spent_by_category(ledger, Month(2024, 4), today=today) == {}
    assert spent_by_category(ledger, Month(2024, 5), today=today) == {"Streaming": 3_990}


def test_plan_overrides_default_budgets():
    profile = PlanningProfile(Month(2024, 3), 500_000, {"Food": 60_000, "Travel": 100_000})
    budgets = effective_budgets({"Food": 80_000, "Health": 30_000}, profile)
    assert budgets == {
        "Food": (60_000, BudgetSource.plan),
        "Health": (30_000, BudgetSource.budget),
        "Travel": (100_000, BudgetSource.plan),
    }
    assert effective_budgets({"Food": 80_000}, None) == {
        "Food": (80_000, BudgetSource.budget)
    }


def test_budget_vs_actual_flags_overspending():
    ledger = build_ledger(
        [
            _txn("market", "Food", 90_000, date(2024, 3, 10)),
            _txn("pharmacy", "Health", 10_000, date(2024, 3, 12)),
        ],
        [],
        [],
    )
    lines = budget_vs_actual(
        ledger, {"Food": 80_000, "Health": 40_000}, Month(2024, 3), today=date(2024, 6, 1)
    )
    food, health = lines
    assert food.category == "Food"
    assert food.is_over_budget
    assert food.remaining_cents == 0
    assert round(food.percentage, 1) == 112.5
    assert health.remaining_cents == 30_000
    assert not health.is_over_budget
    assert health.percentage == 25.0


def test_zero_budget_reports_no_percentage():
    ledger = build_ledger([_txn("gift", "Gifts", 5_000, date(2024, 3, 1))], [], [])
    [line] = budget_vs_actual(ledger, {"Gifts": 0}, Month(2024, 3), today=date(2024, 6, 1))
    assert line.percentage == 0.0
    assert line.is_over_budget


def test_plan_totals_and_savings_rate():
    profile = PlanningProfile(Month(2024, 3), 500_000, {"Rent": 200_000, "Food": 100_000})
    assert profile.planned_expense_cents == 300_000
    assert profile.planned_balance_cents == 200_000
    assert profile.savings_rate == 40.0
    assert PlanningProfile(Month(2024, 3), 0).savings_rate == 0.0


def test_review_compares_plan_with_actuals():
    ledger = build_ledger(
        [
            _txn("salary", "Salary", 480_000, date(2024, 3, 5), TransactionType.income),
            _txn("rent", "Rent", 200_000, date(2024, 3, 8)),
            _txn("market", "Food", 120_000, date(2024, 3, 10)),
        ],
        [],
        [],
    )
    profile = PlanningProfile(Month(2024, 3), 500_000, {"Rent": 200_000, "Food": 100_000})

    review = review_plan(ledger, profile, today=date(2024, 6, 1))

    assert review.actual.income_cents == 480_000
    assert review.income_gap_cents == -20_000
    assert review.expense_gap_cents == 20_000
    assert [(l.category, l.is_over_budget) for l in review.lines] == [
        ("Food", True),
        ("Rent", False),
    ]
    assert all(l.source == BudgetSource.plan for l in review.lines)
