from datetime import date

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from database import Base
from ledger import CreditCardLogic, PaymentMethodType, TransactionKind, TransactionType
from models import Transaction
from periods import Month
from schemas import (
    AnticipationIn,
    BudgetIn,
    GoalIn,
    GoalMovementIn,
    InstallmentDetailsIn,
    InstallmentGroupIn,
    LaunchIn,
    PaymentMethodIn,
    PlanningProfileIn,
    PreferencesIn,
    SubscriptionIn,
    TransactionIn,
)
from services import (
    BudgetService,
    GoalService,
    InstallmentService,
    LedgerService,
    MetricsService,
    NotFoundError,
    PaymentMethodService,
    PlanningService,
    PreferencesService,
    ReimbursementService,
    SubscriptionService,
    TransactionService,
)


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def _card(session, closing_day=25, due_day=5):
    return PaymentMethodService(session).create(
        PaymentMethodIn(
            name="Nubank",
            type=PaymentMethodType.credit_card,
            closing_day=closing_day,
            due_day=due_day,
        )
    )


def _expense(day: date, cents: int = 10_000, payment_method="Nubank", **kwargs):
    return TransactionIn(
        date=day,
        type=TransactionType.expense,
        amount_cents=cents,
        category="Food",
        payment_method=payment_method,
        description="Groceries",
        **kwargs,
    )


def test_payment_method_reference_resolves_by_name():
    session = make_session()
    card = _card(session)
    txn = TransactionService(session).create(_expense(date(2024, 3, 26), payment_method="nubank"))
    assert txn.payment_method_id == card.id

    with pytest.raises(NotFoundError):
        TransactionService(session).create(_expense(date(2024, 3, 26), payment_method="Visa"))
    with pytest.raises(ValueError):
        PaymentMethodService(session).create(PaymentMethodIn(name=" NUBANK "))


def test_non_card_methods_drop_billing_days():
    session = make_session()
    pix = PaymentMethodService(session).create(
        PaymentMethodIn(name="Pix", type=PaymentMethodType.other, closing_day=10, due_day=20)
    )
    assert pix.closing_day is None
    assert pix.due_day is None


def test_effective_date_follows_preferences():
    session = make_session()
    _card(session)
    txn = TransactionService(session).create(_expense(date(2024, 3, 26)))
    metrics = MetricsService(session)

    _, resolved = metrics.effective_date(txn.id)
    assert resolved == date(2024, 4, 25)

    PreferencesService(session).update(PreferencesIn(credit_card_logic=CreditCardLogic.closing_day))
    _, resolved = metrics.effective_date(txn.id)
    assert resolved == date(2024, 5, 5)
    assert [t.id for t in metrics.month_transactions(Month(2024, 5))] == [txn.id]

    with pytest.raises(NotFoundError):
        metrics.effective_date("missing")


def test_transaction_type_cannot_change():
    session = make_session()
    txn = TransactionService(session).create(_expense(date(2024, 3, 1), payment_method=None))
    with pytest.raises(ValueError):
        TransactionService(session).update(
            txn.id,
            TransactionIn(
                date=date(2024, 3, 1),
                type=TransactionType.income,
                amount_cents=100,
                category="Food",
                description="Refund",
            ),
        )


def test_launch_records_occurrence_once():
    session = make_session()
    service = SubscriptionService(session)
    sub = service.create(
        SubscriptionIn(
            name="Netflix",
            amount_cents=3_990,
            category="Streaming",
            start_date=date(2024, 1, 10),
        )
    )
    assert MetricsService(session).projections(Month(2024, 3))

    txn = service.launch(sub.id, LaunchIn(month="2024-03"))
    assert txn.kind == TransactionKind.subscription
    assert txn.occurrence_date == date(2024, 3, 10)
    assert txn.description == "Subscription: Netflix"
    assert MetricsService(session).projections(Month(2024, 3)) == []

    with pytest.raises(ValueError):
        service.launch(sub.id, LaunchIn(month="2024-03"))



def test_launch_records_the_occurrence_billed_in_that_month():
    session = make_session()
    _card(session, closing_day=10, due_day=20)
    service = SubscriptionService(session)
    sub = service.create(
        SubscriptionIn(
            name="Spotify",
            amount_cents=2_190,
            category="Streaming",
            payment_method="Nubank",
            start_date=date(2024, 1, 15),
        )
    )

    # The 15th misses the close on the 10th, so March bills February's charge.
    txn = service.launch(sub.id, LaunchIn(month="2024-03"))
    assert txn.occurrence_date == date(2024, 2, 15)
    with pytest.raises(ValueError, match="already launched"):
        service.launch(sub.id, LaunchIn(month="2024-03"))

    launched = [t for t in LedgerService(session).load().transactions if t.subscription_id]
    assert [t.occurrence_date for t in launched] == [date(2024, 2, 15)]
    [april] = MetricsService(session).projections(Month(2024, 4))
    assert april.occurrence_date == date(2024, 3, 15)


def test_launch_rejects_months_outside_lifetime():
    session = make_session()
    service = SubscriptionService(session)
    sub = service.create(
        SubscriptionIn(
            name="Gym",
            amount_cents=9_900,
            category="Health",
            start_date=date(2024, 1, 8),
            is_indefinite=False,
            active_until=date(2024, 2, 29),
        )
    )
    with pytest.raises(ValueError):
        service.launch(sub.id, LaunchIn(month="2024-04"))


def test_deleting_subscription_keeps_launched_expenses():
    session = make_session()
    service = SubscriptionService(session)
    sub = service.create(
        SubscriptionIn(
            name="Netflix", amount_cents=3_990, category="Streaming", start_date=date(2024, 1, 10)
        )
    )
    txn = service.launch(sub.id, LaunchIn(month="2024-02"))
    service.delete(sub.id)

    remaining = TransactionService(session).get(txn.id)
    assert remaining.subscription_id is None
    assert remaining.amount_cents == 3_990


def test_installment_lifecycle():
    session = make_session()
    _card(session)
    service = InstallmentService(session)
    records = service.create(
        InstallmentGroupIn(
            title="Sofá",
            count=6,
            total_cents=600,
            start_date=date(2024, 2, 10),
            category="Home",
            payment_method="Nubank",
        )
    )
    group_id = records[0].group_id
    rows = session.scalars(select(Transaction).where(Transaction.group_id == group_id)).all()
    assert len(rows) == 6

    service.anticipate(
        group_id, AnticipationIn(advance_count=4, discounted_cents=350), today=date(2024, 1, 15)
    )
    group = service.get_group(group_id, today=date(2024, 1, 15))
    assert group.total_cents == 550
    assert len(group.installments) == 3

    service.update_details(group_id, InstallmentDetailsIn(category="Furniture"))
    assert all(t.category == "Furniture" for t in service.get_group(group_id).installments)

    service.update_details(group_id, InstallmentDetailsIn(is_reimbursable=True, debtor_name="Ana"))
    service.update_details(group_id, InstallmentDetailsIn(title="Sofa"))
    assert all(t.debtor_name == "Ana" for t in service.get_group(group_id).installments)
    service.update_details(group_id, InstallmentDetailsIn(debtor_name=None))
    assert all(t.debtor_name is None for t in service.get_group(group_id).installments)

    service.delete(group_id)
    with pytest.raises(NotFoundError):
        service.get_group(group_id)
    with pytest.raises(NotFoundError):
        service.delete(group_id)


def test_anticipating_without_future_installments_is_rejected():
    session = make_session()
    service = InstallmentService(session)
    records = service.create(
        InstallmentGroupIn(
            title="Phone", count=2, total_cents=2_000, start_date=date(2024, 1, 5), category="Tech"
        )
    )
    with pytest.raises(ValueError):
        service.anticipate(
            records[0].group_id,
            AnticipationIn(advance_count=1, discounted_cents=900),
            today=date(2024, 6, 1),
        )


def test_reimbursement_round_trip():
    session = make_session()
    txn = TransactionService(session).create(
        _expense(
            date(2024, 5, 3),
            cents=40_000,
            payment_method=None,
            is_reimbursable=True,
            debtor_name="Bruno",
        )
    )
    service = ReimbursementService(session)
    assert [(b.debtor_name, b.pending_cents) for b in service.pending()] == [("Bruno", 40_000)]

    income = service.reimburse(txn.id, today=date(2024, 6, 1))
    assert income.type == TransactionType.income
    assert service.pending() == []
    with pytest.raises(ValueError):
        service.reimburse(txn.id, today=date(2024, 6, 1))

    service.undo(txn.id)
    assert TransactionService(session).get(txn.id).is_reimbursed is False
    assert len(LedgerService(session).load().transactions) == 1


def test_deleting_reimbursement_income_reopens_expense():
    session = make_session()
    txns = TransactionService(session)
    txn = txns.create(
        _expense(date(2024, 5, 3), payment_method=None, is_reimbursable=True, debtor_name="Ana")
    )
    income = ReimbursementService(session).reimburse(txn.id, today=date(2024, 6, 1))
    txns.delete(income.id)
    assert txns.get(txn.id).is_reimbursed is False


def test_invoice_for_unknown_card_raises():
    session = make_session()
    with pytest.raises(NotFoundError):
        MetricsService(session).invoice("missing", 2024, 3)


def test_summary_and_report_csv():
    session = make_session()
    TransactionService(session).create(
        TransactionIn(
            date=date(2024, 3, 5),
            type=TransactionType.income,
            amount_cents=500_000,
            category="Salary",
            description="Salary",
        )
    )
    TransactionService(session).create(_expense(date(2024, 3, 6), cents=300_000, payment_method=None))
    TransactionService(session).create(
        TransactionIn(
            date=date(2024, 3, 7),
            type=TransactionType.investment,
            amount_cents=50_000,
            category="Funds",
            description="Index fund",
        )
    )
    metrics = MetricsService(session)
    summary = metrics.summary(Month(2024, 3), today=date(2024, 6, 1))
    assert summary.balance_cents == 150_000

    csv_text = metrics.report_csv(today=date(2024, 3, 20))
    assert csv_text.startswith("Section,Category,Description,Debtor,2024-03")
    assert "income,Salary,Salary,,5000.00" in csv_text


def test_budget_status_uses_plan_overrides():
    session = make_session()
    budgets = BudgetService(session)
    budgets.upsert(BudgetIn(category="Food", amount_cents=50_000))
    budgets.upsert(BudgetIn(category="Food", amount_cents=80_000))
    budgets.upsert(BudgetIn(category="Health", amount_cents=20_000))
    assert budgets.defaults() == {"Food": 80_000, "Health": 20_000}

    TransactionService(session).create(_expense(date(2024, 3, 6), cents=90_000, payment_method=None))
    PlanningService(session).save(
        Month(2024, 3), PlanningProfileIn(expected_income_cents=400_000, planned_expenses={"Food": 100_000})
    )

    march = {l.category: l for l in budgets.status(Month(2024, 3), today=date(2024, 6, 1))}
    assert march["Food"].budget_cents == 100_000
    assert not march["Food"].is_over_budget
    april = {l.category: l for l in budgets.status(Month(2024, 4), today=date(2024, 6, 1))}
    assert april["Food"].budget_cents == 80_000
    assert april["Food"].spent_cents == 0

    budgets.delete("Health")
    with pytest.raises(NotFoundError):
        budgets.delete("Health")


def test_saving_a_plan_replaces_its_categories():
    session = make_session()
    plans = PlanningService(session)
    plans.save(
        Month(2024, 3),
        PlanningProfileIn(expected_income_cents=400_000, planned_expenses={"Food": 1, "Rent": 2}),
    )
    row = plans.save(
        Month(2024, 3),
        PlanningProfileIn(expected_income_cents=450_000, planned_expenses={"Rent": 3, "Travel": 4}),
    )
    assert row.expected_income_cents == 450_000
    assert {p.category: p.amount_cents for p in row.planned_expenses} == {"Rent": 3, "Travel": 4}
    assert len(plans.list_all()) == 1

    review = plans.review(Month(2024, 3), today=date(2024, 6, 1))
    assert review.profile.planned_expense_cents == 7

    plans.delete(Month(2024, 3))
    with pytest.raises(NotFoundError):
        plans.get(Month(2024, 3))


def test_goal_movements_create_transactions():
    session = make_session()
    goals = GoalService(session)
    goal = goals.create(GoalIn(name="House", target_amount_cents=1_000_000))

    txn = goals.contribute(goal.id, GoalMovementIn(amount_cents=300_000, date=date(2024, 3, 1)))
    assert txn.kind == TransactionKind.contribution
    goals.withdraw(goal.id, GoalMovementIn(amount_cents=100_000, date=date(2024, 4, 1)))
    goals.add_earning(goal.id, GoalMovementIn(amount_cents=5_000))
    assert goals.get(goal.id).current_amount_cents == 205_000

    rows = TransactionService(session).list_all()
    assert [(r.type, r.kind) for r in rows] == [
        (TransactionType.income, TransactionKind.withdrawal),
        (TransactionType.investment, TransactionKind.contribution),
    ]
    summary = MetricsService(session).summary(Month(2024, 3), today=date(2024, 6, 1))
    assert summary.investment_cents == 300_000

    assert goals.overview().total_invested_cents == 205_000
    goals.delete(goal.id)
    assert len(TransactionService(session).list_all()) == 2
    with pytest.raises(NotFoundError):
        goals.contribute(goal.id, GoalMovementIn(amount_cents=1))
