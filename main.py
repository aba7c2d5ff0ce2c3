import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from billing import Invoice
from config import get_settings
from database import get_db, init_db
from goals import GoalsOverview
from installments import InstallmentGroup
from periods import Month, resolve_month
from planning import BudgetLine, PlanReview
from recurrence import ProjectedOccurrence, local_today
from schemas import (
    AnticipationIn,
    BudgetIn,
    GoalIn,
    GoalMovementIn,
    InstallmentDetailsIn,
    InstallmentGroupEditIn,
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
    MetricsService,
    NotFoundError,
    PaymentMethodService,
    PlanningService,
    PreferencesService,
    ReimbursementService,
    SubscriptionService,
    TransactionService,
)
from summary import MonthSummary

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Card Cycle")


@app.on_event("startup")
def startup_event():
    init_db()


def _http_error(exc: ValueError) -> HTTPException:
    status = 404 if isinstance(exc, NotFoundError) else 400
    return HTTPException(status_code=status, detail=str(exc))


def month_from_query(value: Optional[str]) -> Month:
    try:
        return resolve_month(value or "this_month", today=local_today())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _payment_method_payload(pm) -> dict:
    return {
        "id": pm.id,
        "name": pm.name,
        "type": pm.type.value,
        "closing_day": pm.closing_day,
        "due_day": pm.due_day,
        "color": pm.color,
    }


def _subscription_payload(sub) -> dict:
    return {
        "id": sub.id,
        "name": sub.name,
        "amount_cents": sub.amount_cents,
        "category": sub.category,
        "payment_method_id": sub.payment_method_id,
        "start_date": sub.start_date.isoformat(),
        "is_indefinite": sub.active_until is None,
        "active_until": sub.active_until.isoformat() if sub.active_until else None,
        "is_reimbursable": sub.is_reimbursable,
        "debtor_name": sub.debtor_name,
    }


def _transaction_payload(txn) -> dict:
    return {
        "id": txn.id,
        "date": txn.date.isoformat(),
        "type": txn.type.value,
        "kind": txn.kind.value,
        "amount_cents": txn.amount_cents,
        "category": txn.category,
        "payment_method_id": txn.payment_method_id,
        "description": txn.description,
        "group_id": txn.group_id,
        "is_reimbursable": txn.is_reimbursable,
        "is_reimbursed": txn.is_reimbursed,
        "debtor_name": txn.debtor_name,
        "related_transaction_id": txn.related_transaction_id,
        "subscription_id": txn.subscription_id,
        "occurrence_date": (
            txn.occurrence_date.isoformat() if txn.occurrence_date else None
        ),
    }


def _group_payload(group: InstallmentGroup) -> dict:
    return {
        "group_id": group.group_id,
        "description": group.description,
        "total_cents": group.total_cents,
        "paid_cents": group.paid_cents,
        "remaining_cents": group.remaining_cents,
        "progress": round(group.progress, 2),
        "start_date": group.start_date.isoformat(),
        "end_date": group.end_date.isoformat(),
        "category": group.category,
        "payment_method_id": group.payment_method_id,
        "installments": [_transaction_payload(t) for t in group.installments],
    }


def _occurrence_payload(occ: ProjectedOccurrence) -> dict:
    return {
        "subscription_id": occ.subscription_id,
        "name": occ.name,
        "amount_cents": occ.amount_cents,
        "category": occ.category,
        "payment_method_id": occ.payment_method_id,
        "occurrence_date": occ.occurrence_date.isoformat(),
        "effective_date": occ.effective_date.isoformat(),
    }


def _summary_payload(summary: MonthSummary) -> dict:
    return {
        "month": summary.month.key,
        "income_cents": summary.income_cents,
        "expense_cents": summary.expense_cents,
        "investment_cents": summary.investment_cents,
        "projected_cents": summary.projected_cents,
        "balance_cents": summary.balance_cents,
        "is_projection": summary.is_projection,
    }


def _invoice_payload(invoice: Invoice) -> dict:
    return {
        "card_id": invoice.card_id,
        "total_cents": invoice.total_cents,
        "closing_date": (
            invoice.closing_date.isoformat() if invoice.closing_date else None
        ),
        "due_date": invoice.due_date.isoformat() if invoice.due_date else None,
        "period": (
            {
                "start": invoice.period.start.isoformat(),
                "end": invoice.period.end.isoformat(),
            }
            if invoice.period
            else None
        ),
        "transactions": [
            {
                "date": item.date.isoformat(),
                "description": item.description,
                "amount_cents": item.amount_cents,
                "category": item.category,
                "transaction_id": item.transaction_id,
                "subscription_id": item.subscription_id,
                "is_projected": item.is_projected,
            }
            for item in invoice.transactions
        ],
    }


def _budget_line_payload(line: BudgetLine) -> dict:
    return {
        "category": line.category,
        "budget_cents": line.budget_cents,
        "spent_cents": line.spent_cents,
        "remaining_cents": line.remaining_cents,
        "percentage": round(line.percentage, 2),
        "is_over_budget": line.is_over_budget,
        "source": line.source.value,
    }


def _plan_payload(row) -> dict:
    planned = {p.category: p.amount_cents for p in row.planned_expenses}
    return {
        "month": row.month,
        "expected_income_cents": row.expected_income_cents,
        "planned_expenses": planned,
        "planned_expense_cents": sum(planned.values()),
        "planned_balance_cents": row.expected_income_cents - sum(planned.values()),
    }


def _plan_review_payload(review: PlanReview) -> dict:
    return {
        "month": review.profile.month.key,
        "expected_income_cents": review.profile.expected_income_cents,
        "planned_expense_cents": review.profile.planned_expense_cents,
        "savings_rate": round(review.profile.savings_rate, 2),
        "actual": _summary_payload(review.actual),
        "income_gap_cents": review.income_gap_cents,
        "expense_gap_cents": review.expense_gap_cents,
        "categories": [_budget_line_payload(line) for line in review.lines],
    }


def _goal_payload(goal) -> dict:
    target = goal.target_amount_cents
    return {
        "id": goal.id,
        "name": goal.name,
        "target_amount_cents": target,
        "current_amount_cents": goal.current_amount_cents,
        "progress": round(goal.current_amount_cents / target * 100, 2),
        "category": goal.category,
        "deadline": goal.deadline.isoformat() if goal.deadline else None,
        "color": goal.color,
    }


def _csv_response(csv_text: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Payment methods


@app.get("/api/payment-methods")
def list_payment_methods(db: Session = Depends(get_db)):
    return [_payment_method_payload(pm) for pm in PaymentMethodService(db).list_all()]


@app.post("/api/payment-methods", status_code=201)
def create_payment_method(data: PaymentMethodIn, db: Session = Depends(get_db)):
    try:
        pm = PaymentMethodService(db).create(data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _payment_method_payload(pm)


@app.put("/api/payment-methods/{method_id}")
def update_payment_method(
    method_id: str, data: PaymentMethodIn, db: Session = Depends(get_db)
):
    try:
        pm = PaymentMethodService(db).update(method_id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _payment_method_payload(pm)


@app.delete("/api/payment-methods/{method_id}", status_code=204)
def delete_payment_method(method_id: str, db: Session = Depends(get_db)):
    try:
        PaymentMethodService(db).delete(method_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


# Preferences


@app.get("/api/preferences")
def get_preferences(db: Session = Depends(get_db)):
    prefs = PreferencesService(db).get()
    return {"credit_card_logic": prefs.credit_card_logic.value}


@app.put("/api/preferences")
def update_preferences(data: PreferencesIn, db: Session = Depends(get_db)):
    prefs = PreferencesService(db).update(data)
    return {"credit_card_logic": prefs.credit_card_logic.value}


# Transactions


@app.get("/api/transactions")
def list_transactions(
    month: Optional[str] = Query(default=None), db: Session = Depends(get_db)
):
    if month is None:
        items = TransactionService(db).list_all()
    else:
        items = MetricsService(db).month_transactions(month_from_query(month))
    return [_transaction_payload(txn) for txn in items]


@app.post("/api/transactions", status_code=201)
def create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).create(data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _transaction_payload(txn)


@app.get("/api/transactions/{transaction_id}")
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).get(transaction_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _transaction_payload(txn)


@app.put("/api/transactions/{transaction_id}")
def update_transaction(
    transaction_id: str, data: TransactionIn, db: Session = Depends(get_db)
):
    try:
        txn = TransactionService(db).update(transaction_id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _transaction_payload(txn)


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: str, db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(transaction_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/transactions/{transaction_id}/effective-date")
def transaction_effective_date(transaction_id: str, db: Session = Depends(get_db)):
    try:
        txn, resolved = MetricsService(db).effective_date(transaction_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {
        "id": txn.id,
        "date": txn.date.isoformat(),
        "effective_date": resolved.isoformat(),
        "effective_month": Month.from_date(resolved).key,
    }


@app.post("/api/transactions/{transaction_id}/reimburse", status_code=201)
def reimburse_transaction(transaction_id: str, db: Session = Depends(get_db)):
    try:
        income = ReimbursementService(db).reimburse(transaction_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _transaction_payload(income)


@app.post("/api/transactions/{transaction_id}/reimburse/undo", status_code=204)
def undo_reimbursement(transaction_id: str, db: Session = Depends(get_db)):
    try:
        ReimbursementService(db).undo(transaction_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/reimbursements/pending")
def pending_reimbursements(db: Session = Depends(get_db)):
    return [
        {
            "debtor_name": balance.debtor_name,
            "pending_cents": balance.pending_cents,
            "transaction_ids": list(balance.transaction_ids),
        }
        for balance in ReimbursementService(db).pending()
    ]


# Subscriptions


@app.get("/api/subscriptions")
def list_subscriptions(db: Session = Depends(get_db)):
    return [_subscription_payload(sub) for sub in SubscriptionService(db).list_all()]


@app.post("/api/subscriptions", status_code=201)
def create_subscription(data: SubscriptionIn, db: Session = Depends(get_db)):
    try:
        sub = SubscriptionService(db).create(data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _subscription_payload(sub)


@app.put("/api/subscriptions/{subscription_id}")
def update_subscription(
    subscription_id: str, data: SubscriptionIn, db: Session = Depends(get_db)
):
    try:
        sub = SubscriptionService(db).update(subscription_id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _subscription_payload(sub)


@app.delete("/api/subscriptions/{subscription_id}", status_code=204)
def delete_subscription(subscription_id: str, db: Session = Depends(get_db)):
    try:
        SubscriptionService(db).delete(subscription_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@app.post("/api/subscriptions/{subscription_id}/launch", status_code=201)
def launch_subscription(
    subscription_id: str, data: LaunchIn, db: Session = Depends(get_db)
):
    try:
        txn = SubscriptionService(db).launch(subscription_id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _transaction_payload(txn)


# Installments


@app.get("/api/installments")
def list_installment_groups(db: Session = Depends(get_db)):
    return [_group_payload(g) for g in InstallmentService(db).list_groups()]


@app.post("/api/installments", status_code=201)
def create_installment_group(data: InstallmentGroupIn, db: Session = Depends(get_db)):
    service = InstallmentService(db)
    try:
        records = service.create(data)
        group = service.get_group(records[0].group_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _group_payload(group)


@app.get("/api/installments/{group_id}")
def get_installment_group(group_id: str, db: Session = Depends(get_db)):
    try:
        group = InstallmentService(db).get_group(group_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _group_payload(group)


@app.put("/api/installments/{group_id}")
def edit_installment_group(
    group_id: str, data: InstallmentGroupEditIn, db: Session = Depends(get_db)
):
    service = InstallmentService(db)
    try:
        service.edit(group_id, data)
        group = service.get_group(group_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _group_payload(group)


@app.patch("/api/installments/{group_id}")
def update_installment_details(
    group_id: str, data: InstallmentDetailsIn, db: Session = Depends(get_db)
):
    service = InstallmentService(db)
    try:
        service.update_details(group_id, data)
        group = service.get_group(group_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _group_payload(group)


@app.post("/api/installments/{group_id}/anticipate")
def anticipate_installments(
    group_id: str, data: AnticipationIn, db: Session = Depends(get_db)
):
    service = InstallmentService(db)
    try:
        service.anticipate(group_id, data)
        group = service.get_group(group_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _group_payload(group)


@app.delete("/api/installments/{group_id}", status_code=204)
def delete_installment_group(group_id: str, db: Session = Depends(get_db)):
    try:
        InstallmentService(db).delete(group_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


# Billing and projections


@app.get("/api/invoices/{card_id}")
def get_invoice(
    card_id: str,
    year: int = Query(..., ge=1, le=9999),
    month: int = Query(..., ge=1, le=12),
    db: Session = Depends(get_db),
):
    try:
        invoice = MetricsService(db).invoice(card_id, year, month)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _invoice_payload(invoice)


@app.get("/api/projections")
def get_projections(
    month: Optional[str] = Query(default=None), db: Session = Depends(get_db)
):
    target = month_from_query(month)
    occurrences = MetricsService(db).projections(target)
    return {
        "month": target.key,
        "total_cents": sum(o.amount_cents for o in occurrences),
        "items": [_occurrence_payload(o) for o in occurrences],
    }


@app.get("/api/summary")
def get_summary(
    month: Optional[str] = Query(default=None), db: Session = Depends(get_db)
):
    return _summary_payload(MetricsService(db).summary(month_from_query(month)))


@app.get("/api/summary/series")
def get_summary_series(
    start: Optional[str] = Query(default=None),
    count: int = Query(default=6, ge=1, le=60),
    db: Session = Depends(get_db),
):
    series = MetricsService(db).series(month_from_query(start), count)
    return [_summary_payload(s) for s in series]


@app.get("/api/report.csv")
def export_report(db: Session = Depends(get_db)):
    csv_text = MetricsService(db).report_csv()
    return _csv_response(csv_text, f"report_{local_today().isoformat()}.csv")


@app.get("/api/transactions.csv")
def export_transactions(db: Session = Depends(get_db)):
    return _csv_response(MetricsService(db).transactions_csv(), "transactions.csv")


# Budgets and plans


@app.get("/api/budgets")
def list_budgets(db: Session = Depends(get_db)):
    return [
        {"category": b.category, "amount_cents": b.amount_cents}
        for b in BudgetService(db).list_all()
    ]


@app.put("/api/budgets")
def save_budget(data: BudgetIn, db: Session = Depends(get_db)):
    budget = BudgetService(db).upsert(data)
    return {"category": budget.category, "amount_cents": budget.amount_cents}


@app.get("/api/budgets/status")
def budget_status(
    month: Optional[str] = Query(default=None), db: Session = Depends(get_db)
):
    target = month_from_query(month)
    return {
        "month": target.key,
        "categories": [
            _budget_line_payload(line) for line in BudgetService(db).status(target)
        ],
    }


@app.delete("/api/budgets/{category}", status_code=204)
def delete_budget(category: str, db: Session = Depends(get_db)):
    try:
        BudgetService(db).delete(category)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/plans")
def list_plans(db: Session = Depends(get_db)):
    return [_plan_payload(row) for row in PlanningService(db).list_all()]


@app.get("/api/plans/{month}")
def get_plan(month: str, db: Session = Depends(get_db)):
    try:
        row = PlanningService(db).get(month_from_query(month))
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _plan_payload(row)


@app.put("/api/plans/{month}")
def save_plan(month: str, data: PlanningProfileIn, db: Session = Depends(get_db)):
    row = PlanningService(db).save(month_from_query(month), data)
    return _plan_payload(row)


@app.delete("/api/plans/{month}", status_code=204)
def delete_plan(month: str, db: Session = Depends(get_db)):
    try:
        PlanningService(db).delete(month_from_query(month))
    except ValueError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/plans/{month}/review")
def review_plan(month: str, db: Session = Depends(get_db)):
    try:
        review = PlanningService(db).review(month_from_query(month))
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _plan_review_payload(review)


# Investment goals


@app.get("/api/goals")
def list_goals(db: Session = Depends(get_db)):
    return [_goal_payload(goal) for goal in GoalService(db).list_all()]


@app.get("/api/goals/overview")
def goals_overview(db: Session = Depends(get_db)):
    summary: GoalsOverview = GoalService(db).overview()
    return {
        "total_invested_cents": summary.total_invested_cents,
        "total_target_cents": summary.total_target_cents,
        "progress": round(summary.progress, 2),
    }


@app.post("/api/goals", status_code=201)
def create_goal(data: GoalIn, db: Session = Depends(get_db)):
    return _goal_payload(GoalService(db).create(data))


@app.get("/api/goals/{goal_id}")
def get_goal(goal_id: str, db: Session = Depends(get_db)):
    try:
        goal = GoalService(db).get(goal_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _goal_payload(goal)


@app.put("/api/goals/{goal_id}")
def update_goal(goal_id: str, data: GoalIn, db: Session = Depends(get_db)):
    try:
        goal = GoalService(db).update(goal_id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _goal_payload(goal)


@app.delete("/api/goals/{goal_id}", status_code=204)
def delete_goal(goal_id: str, db: Session = Depends(get_db)):
    try:
        GoalService(db).delete(goal_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@app.post("/api/goals/{goal_id}/contribute", status_code=201)
def contribute_to_goal(
    goal_id: str, data: GoalMovementIn, db: Session = Depends(get_db)
):
    service = GoalService(db)
    try:
        txn = service.contribute(goal_id, data)
        goal = service.get(goal_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"goal": _goal_payload(goal), "transaction": _transaction_payload(txn)}


@app.post("/api/goals/{goal_id}/withdraw", status_code=201)
def withdraw_from_goal(
    goal_id: str, data: GoalMovementIn, db: Session = Depends(get_db)
):
    service = GoalService(db)
    try:
        txn = service.withdraw(goal_id, data)
        goal = service.get(goal_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"goal": _goal_payload(goal), "transaction": _transaction_payload(txn)}


@app.post("/api/goals/{goal_id}/earnings")
def add_goal_earning(goal_id: str, data: GoalMovementIn, db: Session = Depends(get_db)):
    try:
        goal = GoalService(db).add_earning(goal_id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _goal_payload(goal)
