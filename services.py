from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from billing import Invoice, assemble_invoice, effective_date, effective_month
from config import get_settings
from csv_utils import export_report, export_transactions
from goals import GoalsOverview, contribute, record_earning, withdraw
from goals import InvestmentGoal as Goal
from goals import overview as goals_overview
from installments import (
    InstallmentGroup,
    anticipate_group,
    create_group,
    delete_group,
    edit_group,
    group_members,
    summarize_group,
    summarize_groups,
    update_group_details,
)
from ledger import (
    CreditCardLogic,
    Indefinite,
    Ledger,
    LedgerPaymentMethod,
    LedgerSubscription,
    LedgerTransaction,
    PaymentMethodIndex,
    Preferences,
    TransactionKind,
    Until,
    build_ledger,
)
from models import (
    Budget,
    PaymentMethod,
    PlannedExpense,
    Subscription,
    Transaction,
    UserPreferences,
)
from models import InvestmentGoal as InvestmentGoalRow
from models import PlanningProfile as PlanningProfileRow
from periods import Month
from planning import BudgetLine, PlanReview, budget_vs_actual, review_plan
from planning import PlanningProfile as Plan
from recurrence import (
    ProjectedOccurrence,
    launch_occurrence,
    local_today,
    occurrences_in_month,
    pending_occurrences,
    project_occurrences,
)
from reimbursements import DebtorBalance, pending_by_debtor, reimburse, undo_reimbursement
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
from summary import MonthReport, MonthSummary, month_category_report, monthly_series, summarize_month

logger = logging.getLogger(__name__)

TRANSACTION_FIELDS = (
    "amount_cents",
    "category",
    "payment_method_id",
    "type",
    "description",
    "date",
    "kind",
    "group_id",
    "is_reimbursable",
    "is_reimbursed",
    "debtor_name",
    "related_transaction_id",
    "subscription_id",
    "occurrence_date",
)


class NotFoundError(ValueError):
    pass


def get_current_user_id() -> int:
    return 1


def to_ledger_payment_method(row: PaymentMethod) -> LedgerPaymentMethod:
    return LedgerPaymentMethod(
        id=row.id,
        name=row.name,
        type=row.type,
        closing_day=row.closing_day,
        due_day=row.due_day,
    )


def to_ledger_subscription(row: Subscription) -> LedgerSubscription:
    return LedgerSubscription(
        id=row.id,
        name=row.name,
        amount_cents=row.amount_cents,
        category=row.category,
        payment_method_id=row.payment_method_id,
        start_date=row.start_date,
        lifetime=Until(row.active_until) if row.active_until else Indefinite(),
        is_reimbursable=row.is_reimbursable,
        debtor_name=row.debtor_name,
    )


def to_ledger_transaction(row: Transaction) -> LedgerTransaction:
    return LedgerTransaction(id=row.id, **{f: getattr(row, f) for f in TRANSACTION_FIELDS})


def sync_transactions(
    session: Session,
    user_id: int,
    before: Iterable[LedgerTransaction],
    after: Iterable[LedgerTransaction],
) -> tuple[int, int, int]:
    """Persist the difference between two snapshots of the transaction set.

    Returns the number of (inserted, updated, deleted) rows.
    """
    before_by_id = {t.id: t for t in before}
    after_by_id = {t.id: t for t in after}

    removed = set(before_by_id) - set(after_by_id)
    if removed:
        session.execute(
            delete(Transaction).where(
                Transaction.user_id == user_id, Transaction.id.in_(sorted(removed))
            )
        )

    inserted = updated = 0
    for txn_id, record in after_by_id.items():
        previous = before_by_id.get(txn_id)
        if previous is None:
            row = Transaction(id=txn_id, user_id=user_id)
            session.add(row)
            inserted += 1
        elif previous != record:
            row = session.get(Transaction, txn_id)
            updated += 1
        else:
            continue
        for field in TRANSACTION_FIELDS:
            setattr(row, field, getattr(record, field))
    session.flush()
    return inserted, updated, len(removed)


class PaymentMethodService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[PaymentMethod]:
        stmt = (
            select(PaymentMethod)
            .where(PaymentMethod.user_id == self.user_id)
            .order_by(PaymentMethod.name)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, method_id: str) -> PaymentMethod:
        pm = self.session.get(PaymentMethod, method_id)
        if not pm or pm.user_id != self.user_id:
            raise NotFoundError("Payment method not found")
        return pm

    def resolve_reference(self, reference: Optional[str]) -> Optional[str]:
        """Turn a name-or-id reference into a payment method id."""
        if not reference:
            return None
        index = PaymentMethodIndex(to_ledger_payment_method(pm) for pm in self.list_all())
        method_id = index.normalize(reference)
        if method_id not in index.by_id:
            raise NotFoundError(f"Payment method '{reference}' not found")
        return method_id

    def _check_unique(self, name: str, exclude_id: Optional[str] = None) -> None:
        for pm in self.list_all():
            if pm.name.strip().lower() == name.strip().lower() and pm.id != exclude_id:
                raise ValueError("Payment method name already exists")

    def create(self, data: PaymentMethodIn) -> PaymentMethod:
        self._check_unique(data.name)
        pm = PaymentMethod(user_id=self.user_id, **data.model_dump())
        pm.name = pm.name.strip()
        self.session.add(pm)
        self.session.commit()
        self.session.refresh(pm)
        logger.info(f"payment_method_created: id={pm.id} type={pm.type.value}")
        return pm

    def update(self, method_id: str, data: PaymentMethodIn) -> PaymentMethod:
        pm = self.get(method_id)
        self._check_unique(data.name, exclude_id=pm.id)
        for field, value in data.model_dump().items():
            setattr(pm, field, value)
        pm.name = pm.name.strip()
        self.session.commit()
        self.session.refresh(pm)
        return pm

    def delete(self, method_id: str) -> None:
        pm = self.get(method_id)
        # References fall back to the raw date, so orphaned rows stay valid.
        for model in (Transaction, Subscription):
            for row in self.session.scalars(
                select(model).where(model.payment_method_id == pm.id)
            ):
                row.payment_method_id = None
        self.session.delete(pm)
        self.session.commit()
        logger.info(f"payment_method_deleted: id={method_id}")


class PreferencesService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self) -> Preferences:
        row = self.session.get(UserPreferences, self.user_id)
        if row is None:
            return Preferences(CreditCardLogic(get_settings().credit_card_logic))
        return Preferences(row.credit_card_logic)

    def update(self, data: PreferencesIn) -> Preferences:
        row = self.session.get(UserPreferences, self.user_id)
        if row is None:
            row = UserPreferences(user_id=self.user_id)
            self.session.add(row)
        row.credit_card_logic = data.credit_card_logic
        self.session.commit()
        logger.info(f"preferences_updated: credit_card_logic={data.credit_card_logic.value}")
        return Preferences(row.credit_card_logic)


class LedgerService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def load(self) -> Ledger:
        txns = self.session.scalars(
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date, Transaction.id)
        ).all()
        subs = self.session.scalars(
            select(Subscription).where(Subscription.user_id == self.user_id)
        ).all()
        methods = self.session.scalars(
            select(PaymentMethod).where(PaymentMethod.user_id == self.user_id)
        ).all()
        return build_ledger(
            (to_ledger_transaction(t) for t in txns),
            (to_ledger_subscription(s) for s in subs),
            (to_ledger_payment_method(pm) for pm in methods),
            PreferencesService(self.session, self.user_id).get(),
        )

    def apply(self, ledger: Ledger, after: Iterable[LedgerTransaction], event: str) -> None:
        inserted, updated, deleted = sync_transactions(
            self.session, self.user_id, ledger.transactions, after
        )
        self.session.commit()
        logger.info(
            f"{event}: inserted={inserted} updated={updated} deleted={deleted}"
        )


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, transaction_id: str) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise NotFoundError("Transaction not found")
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        payment_method_id = PaymentMethodService(
            self.session, self.user_id
        ).resolve_reference(data.payment_method)
        txn = Transaction(
            user_id=self.user_id,
            date=data.date,
            type=data.type,
            kind=TransactionKind.regular,
            amount_cents=data.amount_cents,
            category=data.category,
            payment_method_id=payment_method_id,
            description=data.description,
            is_reimbursable=data.is_reimbursable,
            debtor_name=data.debtor_name if data.is_reimbursable else None,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(f"transaction_created: id={txn.id} type={txn.type.value}")
        return txn

    def update(self, transaction_id: str, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        if data.type != txn.type:
            raise ValueError("Transaction type cannot change")
        txn.date = data.date
        txn.amount_cents = data.amount_cents
        txn.category = data.category
        txn.payment_method_id = PaymentMethodService(
            self.session, self.user_id
        ).resolve_reference(data.payment_method)
        txn.description = data.description
        txn.is_reimbursable = data.is_reimbursable
        txn.debtor_name = data.debtor_name if data.is_reimbursable else None
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: str) -> None:
        txn = self.get(transaction_id)
        if txn.kind == TransactionKind.reimbursement and txn.related_transaction_id:
            expense = self.session.get(Transaction, txn.related_transaction_id)
            if expense is not None and expense.related_transaction_id == txn.id:
                expense.is_reimbursed = False
                expense.related_transaction_id = None
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: id={transaction_id}")


class SubscriptionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Subscription]:
        stmt = (
            select(Subscription)
            .where(Subscription.user_id == self.user_id)
            .order_by(Subscription.name)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, subscription_id: str) -> Subscription:
        sub = self.session.get(Subscription, subscription_id)
        if not sub or sub.user_id != self.user_id:
            raise NotFoundError("Subscription not found")
        return sub

    def _apply(self, sub: Subscription, data: SubscriptionIn) -> None:
        sub.name = data.name.strip()
        sub.amount_cents = data.amount_cents
        sub.category = data.category
        sub.payment_method_id = PaymentMethodService(
            self.session, self.user_id
        ).resolve_reference(data.payment_method)
        sub.start_date = data.start_date
        sub.active_until = data.active_until
        sub.is_reimbursable = data.is_reimbursable
        sub.debtor_name = data.debtor_name if data.is_reimbursable else None

    def create(self, data: SubscriptionIn) -> Subscription:
        sub = Subscription(user_id=self.user_id)
        self._apply(sub, data)
        self.session.add(sub)
        self.session.commit()
        self.session.refresh(sub)
        logger.info(f"subscription_created: id={sub.id} billing_day={sub.start_date.day}")
        return sub

    def update(self, subscription_id: str, data: SubscriptionIn) -> Subscription:
        sub = self.get(subscription_id)
        self._apply(sub, data)
        self.session.commit()
        self.session.refresh(sub)
        return sub

    def delete(self, subscription_id: str) -> None:
        sub = self.get(subscription_id)
        # Launched occurrences stay as ordinary expenses.
        for txn in list(sub.transactions):
            txn.subscription_id = None
        self.session.delete(sub)
        self.session.commit()
        logger.info(f"subscription_deleted: id={subscription_id}")

    def launch(self, subscription_id: str, data: LaunchIn) -> Transaction:
        """Record the occurrence counted in `data.month` as a real expense."""
        self.get(subscription_id)
        ledger = LedgerService(self.session, self.user_id).load()
        sub = next(s for s in ledger.subscriptions if s.id == subscription_id)
        month = Month.parse(data.month)

        pending = pending_occurrences(sub, ledger, month)
        if not pending:
            if occurrences_in_month(sub, ledger, month):
                raise ValueError("Occurrence already launched")
            raise ValueError(f"Subscription has no occurrence in {month.key}")
        nominal = pending[0].occurrence_date

        record = launch_occurrence(sub, nominal, transaction_date=data.transaction_date)
        LedgerService(self.session, self.user_id).apply(
            ledger, list(ledger.transactions) + [record], "subscription_launched"
        )
        return TransactionService(self.session, self.user_id).get(record.id)


class InstallmentService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.ledgers = LedgerService(session, self.user_id)

    def _load_group(self, group_id: str) -> Ledger:
        ledger = self.ledgers.load()
        if not group_members(ledger.transactions, group_id):
            raise NotFoundError("Installment group not found")
        return ledger

    def list_groups(self, today: Optional[date] = None) -> list[InstallmentGroup]:
        today = today or local_today()
        return summarize_groups(self.ledgers.load().transactions, today=today)

    def get_group(self, group_id: str, today: Optional[date] = None) -> InstallmentGroup:
        today = today or local_today()
        group = summarize_group(self._load_group(group_id).transactions, group_id, today=today)
        assert group is not None
        return group

    def create(self, data: InstallmentGroupIn) -> list[LedgerTransaction]:
        payment_method_id = PaymentMethodService(
            self.session, self.user_id
        ).resolve_reference(data.payment_method)
        ledger = self.ledgers.load()
        records = create_group(
            data.title,
            data.count,
            data.total_cents,
            data.start_date,
            category=data.category,
            payment_method_id=payment_method_id,
            is_reimbursable=data.is_reimbursable,
            debtor_name=data.debtor_name,
        )
        self.ledgers.apply(
            ledger,
            list(ledger.transactions) + records,
            f"installments_created: group_id={records[0].group_id}",
        )
        return records

    def edit(self, group_id: str, data: InstallmentGroupEditIn) -> list[LedgerTransaction]:
        payment_method_id = PaymentMethodService(
            self.session, self.user_id
        ).resolve_reference(data.payment_method)
        ledger = self._load_group(group_id)
        after = edit_group(
            ledger.transactions,
            group_id,
            title=data.title,
            start_date=data.start_date,
            count=data.count,
            total_cents=data.total_cents,
            category=data.category,
            payment_method_id=payment_method_id,
            is_reimbursable=data.is_reimbursable,
            debtor_name=data.debtor_name,
        )
        self.ledgers.apply(ledger, after, "installments_edited")
        return group_members(after, group_id)

    def update_details(
        self, group_id: str, data: InstallmentDetailsIn
    ) -> list[LedgerTransaction]:
        ledger = self._load_group(group_id)
        after = update_group_details(
            ledger.transactions, group_id, **data.model_dump(exclude_unset=True)
        )
        self.ledgers.apply(ledger, after, "installments_details_updated")
        return group_members(after, group_id)

    def anticipate(
        self, group_id: str, data: AnticipationIn, today: Optional[date] = None
    ) -> list[LedgerTransaction]:
        today = today or local_today()
        ledger = self._load_group(group_id)
        if not any(t.date > today for t in group_members(ledger.transactions, group_id)):
            raise ValueError("No future installments to anticipate")
        after = anticipate_group(
            ledger.transactions,
            group_id,
            data.advance_count,
            data.discounted_cents,
            today=today,
        )
        self.ledgers.apply(ledger, after, "installments_anticipated")
        return group_members(after, group_id)

    def delete(self, group_id: str) -> None:
        ledger = self._load_group(group_id)
        self.ledgers.apply(
            ledger, delete_group(ledger.transactions, group_id), "installments_deleted"
        )


class ReimbursementService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.ledgers = LedgerService(session, self.user_id)

    def reimburse(self, transaction_id: str, today: Optional[date] = None) -> LedgerTransaction:
        today = today or local_today()
        expense = TransactionService(self.session, self.user_id).get(transaction_id)
        if not expense.is_reimbursable:
            raise ValueError("Transaction is not reimbursable")
        if expense.is_reimbursed:
            raise ValueError("Transaction already reimbursed")
        ledger = self.ledgers.load()
        after = reimburse(ledger.transactions, transaction_id, today=today)
        self.ledgers.apply(ledger, after, "reimbursement_recorded")
        return next(t for t in after if t.related_transaction_id == transaction_id)

    def undo(self, transaction_id: str) -> None:
        expense = TransactionService(self.session, self.user_id).get(transaction_id)
        if not expense.is_reimbursed:
            raise ValueError("Transaction is not reimbursed")
        ledger = self.ledgers.load()
        self.ledgers.apply(
            ledger,
            undo_reimbursement(ledger.transactions, transaction_id),
            "reimbursement_undone",
        )

    def pending(self) -> list[DebtorBalance]:
        return pending_by_debtor(self.ledgers.load().transactions)


class MetricsService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.ledgers = LedgerService(session, self.user_id)

    def effective_date(self, transaction_id: str) -> tuple[LedgerTransaction, date]:
        ledger = self.ledgers.load()
        txn = next((t for t in ledger.transactions if t.id == transaction_id), None)
        if txn is None:
            raise NotFoundError("Transaction not found")
        return txn, effective_date(txn, ledger.payment_methods_by_id, ledger.preferences)

    def month_transactions(self, month: Month) -> list[LedgerTransaction]:
        ledger = self.ledgers.load()
        txns = [
            t
            for t in ledger.transactions
            if effective_month(t, ledger.payment_methods_by_id, ledger.preferences)
            == month
        ]
        return sorted(txns, key=lambda t: (t.date, t.id), reverse=True)

    def invoice(self, card_id: str, year: int, month: int) -> Invoice:
        ledger = self.ledgers.load()
        card = ledger.payment_method(card_id)
        if card is None:
            raise NotFoundError("Payment method not found")
        return assemble_invoice(ledger.transactions, ledger.subscriptions, card, year, month)

    def projections(self, month: Month) -> list[ProjectedOccurrence]:
        return project_occurrences(self.ledgers.load(), month)

    def summary(self, month: Month, today: Optional[date] = None) -> MonthSummary:
        today = today or local_today()
        return summarize_month(self.ledgers.load(), month, today=today)

    def series(
        self, start: Month, count: int, today: Optional[date] = None
    ) -> list[MonthSummary]:
        today = today or local_today()
        return monthly_series(self.ledgers.load(), start, count, today=today)

    def report(
        self, today: Optional[date] = None, months_ahead: Optional[int] = None
    ) -> MonthReport:
        today = today or local_today()
        if months_ahead is None:
            months_ahead = get_settings().report_months_ahead
        return month_category_report(
            self.ledgers.load(), today=today, months_ahead=months_ahead
        )

    def report_csv(self, today: Optional[date] = None) -> str:
        return export_report(self.report(today))

    def transactions_csv(self) -> str:
        return export_transactions(self.ledgers.load())


def to_plan(row: PlanningProfileRow) -> Plan:
    return Plan(
        month=Month.parse(row.month),
        expected_income_cents=row.expected_income_cents,
        planned_expenses={p.category: p.amount_cents for p in row.planned_expenses},
    )


def to_goal(row: InvestmentGoalRow) -> Goal:
    return Goal(
        id=row.id,
        name=row.name,
        target_cents=row.target_amount_cents,
        current_cents=row.current_amount_cents,
        category=row.category,
        deadline=row.deadline,
    )


class BudgetService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Budget]:
        stmt = (
            select(Budget)
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.category)
        )
        return list(self.session.scalars(stmt).all())

    def _find(self, category: str) -> Optional[Budget]:
        return self.session.scalars(
            select(Budget).where(
                Budget.user_id == self.user_id, Budget.category == category
            )
        ).first()

    def upsert(self, data: BudgetIn) -> Budget:
        category = data.category.strip()
        budget = self._find(category)
        if budget is None:
            budget = Budget(user_id=self.user_id, category=category)
            self.session.add(budget)
        budget.amount_cents = data.amount_cents
        self.session.commit()
        self.session.refresh(budget)
        logger.info(f"budget_saved: category={category} amount_cents={data.amount_cents}")
        return budget

    def delete(self, category: str) -> None:
        budget = self._find(category)
        if budget is None:
            raise NotFoundError("Budget not found")
        self.session.delete(budget)
        self.session.commit()
        logger.info(f"budget_deleted: category={category}")

    def defaults(self) -> dict[str, int]:
        return {b.category: b.amount_cents for b in self.list_all()}

    def status(self, month: Month, today: Optional[date] = None) -> list[BudgetLine]:
        """Budget lines for `month`, with that month's plan overriding defaults."""
        today = today or local_today()
        plan = PlanningService(self.session, self.user_id).find(month)
        return budget_vs_actual(
            LedgerService(self.session, self.user_id).load(),
            self.defaults(),
            month,
            today=today,
            profile=to_plan(plan) if plan else None,
        )


class PlanningService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[PlanningProfileRow]:
        stmt = (
            select(PlanningProfileRow)
            .where(PlanningProfileRow.user_id == self.user_id)
            .order_by(PlanningProfileRow.month)
        )
        return list(self.session.scalars(stmt).all())

    def find(self, month: Month) -> Optional[PlanningProfileRow]:
        return self.session.scalars(
            select(PlanningProfileRow).where(
                PlanningProfileRow.user_id == self.user_id,
                PlanningProfileRow.month == month.key,
            )
        ).first()

    def get(self, month: Month) -> PlanningProfileRow:
        row = self.find(month)
        if row is None:
            raise NotFoundError(f"No plan for {month.key}")
        return row

    def save(self, month: Month, data: PlanningProfileIn) -> PlanningProfileRow:
        row = self.find(month)
        if row is None:
            row = PlanningProfileRow(user_id=self.user_id, month=month.key)
            self.session.add(row)
        row.expected_income_cents = data.expected_income_cents
        wanted = {c.strip(): cents for c, cents in data.planned_expenses.items()}
        # Update in place so the (profile, category) key never collides on flush.
        for item in list(row.planned_expenses):
            if item.category in wanted:
                item.amount_cents = wanted.pop(item.category)
            else:
                row.planned_expenses.remove(item)
        for category, cents in sorted(wanted.items()):
            row.planned_expenses.append(
                PlannedExpense(category=category, amount_cents=cents)
            )
        self.session.commit()
        self.session.refresh(row)
        logger.info(
            f"plan_saved: month={month.key} expected_income_cents={data.expected_income_cents} "
            f"categories={len(data.planned_expenses)}"
        )
        return row

    def delete(self, month: Month) -> None:
        self.session.delete(self.get(month))
        self.session.commit()
        logger.info(f"plan_deleted: month={month.key}")

    def review(self, month: Month, today: Optional[date] = None) -> PlanReview:
        today = today or local_today()
        return review_plan(
            LedgerService(self.session, self.user_id).load(),
            to_plan(self.get(month)),
            today=today,
        )


class GoalService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[InvestmentGoalRow]:
        stmt = (
            select(InvestmentGoalRow)
            .where(InvestmentGoalRow.user_id == self.user_id)
            .order_by(InvestmentGoalRow.name)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, goal_id: str) -> InvestmentGoalRow:
        goal = self.session.get(InvestmentGoalRow, goal_id)
        if not goal or goal.user_id != self.user_id:
            raise NotFoundError("Investment goal not found")
        return goal

    def create(self, data: GoalIn) -> InvestmentGoalRow:
        goal = InvestmentGoalRow(user_id=self.user_id, **data.model_dump())
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        logger.info(f"goal_created: id={goal.id} target_cents={goal.target_amount_cents}")
        return goal

    def update(self, goal_id: str, data: GoalIn) -> InvestmentGoalRow:
        goal = self.get(goal_id)
        for field, value in data.model_dump().items():
            setattr(goal, field, value)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def delete(self, goal_id: str) -> None:
        # Contributions already recorded stay in the ledger.
        self.session.delete(self.get(goal_id))
        self.session.commit()
        logger.info(f"goal_deleted: id={goal_id}")

    def _record(
        self, row: InvestmentGoalRow, updated: Goal, txn: LedgerTransaction, event: str
    ) -> LedgerTransaction:
        sync_transactions(self.session, self.user_id, [], [txn])
        row.current_amount_cents = updated.current_cents
        self.session.commit()
        logger.info(
            f"{event}: goal_id={row.id} amount_cents={txn.amount_cents} "
            f"transaction_id={txn.id}"
        )
        return txn

    def contribute(self, goal_id: str, data: GoalMovementIn) -> LedgerTransaction:
        row = self.get(goal_id)
        updated, txn = contribute(
            to_goal(row), data.amount_cents, today=data.date or local_today()
        )
        return self._record(row, updated, txn, "goal_contribution")

    def withdraw(self, goal_id: str, data: GoalMovementIn) -> LedgerTransaction:
        row = self.get(goal_id)
        updated, txn = withdraw(
            to_goal(row), data.amount_cents, today=data.date or local_today()
        )
        return self._record(row, updated, txn, "goal_withdrawal")

    def add_earning(self, goal_id: str, data: GoalMovementIn) -> InvestmentGoalRow:
        row = self.get(goal_id)
        row.current_amount_cents = record_earning(to_goal(row), data.amount_cents).current_cents
        self.session.commit()
        self.session.refresh(row)
        logger.info(f"goal_earning: goal_id={row.id} amount_cents={data.amount_cents}")
        return row

    def overview(self) -> GoalsOverview:
        return goals_overview(to_goal(row) for row in self.list_all())
