import datetime as dt
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ledger import CreditCardLogic, PaymentMethodType, TransactionType


class PaymentMethodIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: PaymentMethodType = PaymentMethodType.other
    closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    color: Optional[str] = Field(default=None, max_length=9)

    @model_validator(mode="after")
    def _drop_card_days(self) -> "PaymentMethodIn":
        # Closing and due days only mean something for credit cards.
        if self.type != PaymentMethodType.credit_card:
            self.closing_day = None
            self.due_day = None
        return self


class TransactionIn(BaseModel):
    date: date
    type: TransactionType
    amount_cents: int = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100)
    payment_method: Optional[str] = Field(default=None, max_length=100)
    description: str = Field(..., min_length=1, max_length=200)
    is_reimbursable: bool = False
    debtor_name: Optional[str] = Field(default=None, max_length=100)


class SubscriptionIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    amount_cents: int = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100)
    payment_method: Optional[str] = Field(default=None, max_length=100)
    start_date: date
    is_indefinite: bool = True
    active_until: Optional[dt.date] = None
    is_reimbursable: bool = False
    debtor_name: Optional[str] = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def _check_window(self) -> "SubscriptionIn":
        if self.is_indefinite:
            self.active_until = None
            return self
        if self.active_until is None:
            raise ValueError("A subscription with an end needs active_until")
        if self.active_until < self.start_date:
            raise ValueError("active_until must not be before start_date")
        return self


class PreferencesIn(BaseModel):
    credit_card_logic: CreditCardLogic


class InstallmentGroupIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    count: int = Field(..., ge=1, le=480)
    total_cents: int = Field(..., gt=0)
    start_date: date
    category: str = Field(..., min_length=1, max_length=100)
    payment_method: Optional[str] = Field(default=None, max_length=100)
    is_reimbursable: bool = False
    debtor_name: Optional[str] = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def _check_total(self) -> "InstallmentGroupIn":
        if self.total_cents < self.count:
            raise ValueError("total_cents must cover one cent per installment")
        return self


class InstallmentGroupEditIn(InstallmentGroupIn):
    is_reimbursable: Optional[bool] = None


class InstallmentDetailsIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    is_reimbursable: Optional[bool] = None
    debtor_name: Optional[str] = Field(default=None, max_length=100)


class AnticipationIn(BaseModel):
    advance_count: int = Field(..., ge=1)
    discounted_cents: int = Field(..., gt=0)


class LaunchIn(BaseModel):
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    transaction_date: Optional[dt.date] = None


class BudgetIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    amount_cents: int = Field(..., ge=0)


class PlanningProfileIn(BaseModel):
    expected_income_cents: int = Field(default=0, ge=0)
    planned_expenses: dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_planned(self) -> "PlanningProfileIn":
        for category, cents in self.planned_expenses.items():
            if not category.strip():
                raise ValueError("Planned expense category must not be blank")
            if cents < 0:
                raise ValueError(f"Planned expense for {category} must not be negative")
        return self


class GoalIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    target_amount_cents: int = Field(..., gt=0)
    current_amount_cents: int = Field(default=0, ge=0)
    category: str = Field(default="Investments", min_length=1, max_length=100)
    deadline: Optional[dt.date] = None
    color: Optional[str] = Field(default=None, max_length=9)


class GoalMovementIn(BaseModel):
    amount_cents: int = Field(..., gt=0)
    date: Optional[dt.date] = None
