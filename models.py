import datetime as dt
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from ledger import (
    CreditCardLogic,
    PaymentMethodType,
    TransactionKind,
    TransactionType,
    new_id,
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class PaymentMethod(Base, TimestampMixin):
    __tablename__ = "payment_methods"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[PaymentMethodType] = mapped_column(
        SAEnum(PaymentMethodType), nullable=False
    )
    closing_day: Mapped[Optional[int]] = mapped_column(Integer)
    due_day: Mapped[Optional[int]] = mapped_column(Integer)
    color: Mapped[Optional[str]] = mapped_column(String(9))

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_payment_method_user_name"),
        CheckConstraint(
            "closing_day IS NULL OR (closing_day >= 1 AND closing_day <= 31)",
            name="ck_payment_method_closing_day",
        ),
        CheckConstraint(
            "due_day IS NULL OR (due_day >= 1 AND due_day <= 31)",
            name="ck_payment_method_due_day",
        ),
    )


class Subscription(Base, TimestampMixin):
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_method_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("payment_methods.id", ondelete="SET NULL")
    )
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    # NULL means the subscription runs indefinitely.
    active_until: Mapped[Optional[dt.date]] = mapped_column(Date)
    is_reimbursable: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    debtor_name: Mapped[Optional[str]] = mapped_column(String(100))

    payment_method: Mapped[Optional["PaymentMethod"]] = relationship("PaymentMethod")
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="subscription"
    )

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_subscription_amount_positive"),
        CheckConstraint(
            "active_until IS NULL OR active_until >= start_date",
            name="ck_subscription_window",
        ),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    kind: Mapped[TransactionKind] = mapped_column(
        SAEnum(TransactionKind), nullable=False, default=TransactionKind.regular
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_method_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("payment_methods.id", ondelete="SET NULL")
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    group_id: Mapped[Optional[str]] = mapped_column(String(36))
    is_reimbursable: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    is_reimbursed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    debtor_name: Mapped[Optional[str]] = mapped_column(String(100))
    related_transaction_id: Mapped[Optional[str]] = mapped_column(String(36))
    subscription_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("subscriptions.id", ondelete="SET NULL")
    )
    occurrence_date: Mapped[Optional[dt.date]] = mapped_column(Date)

    payment_method: Mapped[Optional["PaymentMethod"]] = relationship("PaymentMethod")
    subscription: Mapped[Optional["Subscription"]] = relationship(
        "Subscription", back_populates="transactions"
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "subscription_id",
            "occurrence_date",
            name="uq_txn_subscription_occurrence",
        ),
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_group", "user_id", "group_id"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )


class UserPreferences(Base, TimestampMixin):
    __tablename__ = "user_preferences"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    credit_card_logic: Mapped[CreditCardLogic] = mapped_column(
        SAEnum(CreditCardLogic),
        nullable=False,
        default=CreditCardLogic.transaction_date,
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "category", name="uq_budget_user_category"),
        CheckConstraint("amount_cents >= 0", name="ck_budget_amount_non_negative"),
    )


class PlanningProfile(Base, TimestampMixin):
    __tablename__ = "planning_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # YYYY-MM
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    expected_income_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    planned_expenses: Mapped[list["PlannedExpense"]] = relationship(
        "PlannedExpense",
        back_populates="profile",
        cascade="all, delete-orphan",
        order_by="PlannedExpense.category",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "month", name="uq_planning_profile_user_month"),
        CheckConstraint(
            "expected_income_cents >= 0", name="ck_planning_income_non_negative"
        ),
    )


class PlannedExpense(Base):
    __tablename__ = "planned_expenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(
        ForeignKey("planning_profiles.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    profile: Mapped["PlanningProfile"] = relationship(
        "PlanningProfile", back_populates="planned_expenses"
    )

    __table_args__ = (
        UniqueConstraint("profile_id", "category", name="uq_planned_expense_category"),
        CheckConstraint(
            "amount_cents >= 0", name="ck_planned_expense_amount_non_negative"
        ),
    )


class InvestmentGoal(Base, TimestampMixin):
    __tablename__ = "investment_goals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    target_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_amount_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    category: Mapped[str] = mapped_column(
        String(100), nullable=False, default="Investments"
    )
    deadline: Mapped[Optional[dt.date]] = mapped_column(Date)
    color: Mapped[Optional[str]] = mapped_column(String(9))

    __table_args__ = (
        CheckConstraint("target_amount_cents > 0", name="ck_goal_target_positive"),
        CheckConstraint(
            "current_amount_cents >= 0", name="ck_goal_current_non_negative"
        ),
    )
