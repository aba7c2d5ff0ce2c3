from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from billing import effective_date
from config import get_settings
from ledger import (
    SUBSCRIPTION_PREFIX,
    Ledger,
    LedgerSubscription,
    LedgerTransaction,
    TransactionKind,
    TransactionType,
    materialized_occurrences,
    new_id,
)
from periods import Month


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


@dataclass(frozen=True)
class ProjectedOccurrence:
    """A subscription charge that is expected but not recorded anywhere."""

    subscription_id: str
    name: str
    amount_cents: int
    category: str
    payment_method_id: Optional[str]
    occurrence_date: date
    effective_date: date
    is_reimbursable: bool = False
    debtor_name: Optional[str] = None

    def as_transaction(self) -> LedgerTransaction:
        return LedgerTransaction(
            id=f"projected:{self.subscription_id}:{self.occurrence_date.isoformat()}",
            amount_cents=self.amount_cents,
            category=self.category,
            payment_method_id=self.payment_method_id,
            type=TransactionType.expense,
            description=self.name,
            date=self.occurrence_date,
            kind=TransactionKind.subscription,
            is_reimbursable=self.is_reimbursable,
            debtor_name=self.debtor_name,
            subscription_id=self.subscription_id,
            occurrence_date=self.occurrence_date,
        )


def _synthetic_expense(sub: LedgerSubscription, nominal: date) -> LedgerTransaction:
    return LedgerTransaction(
        id="synthetic",
        amount_cents=sub.amount_cents,
        category=sub.category,
        payment_method_id=sub.payment_method_id,
        type=TransactionType.expense,
        description=sub.name,
        date=nominal,
        kind=TransactionKind.subscription,
    )


# A charge moves at most one month to the next cycle and one more to the due date.
MAX_CYCLE_SHIFT = 2


def occurrences_in_month(
    sub: LedgerSubscription, ledger: Ledger, target: Month
) -> list[tuple[date, date]]:
    """(nominal, effective) billing dates of `sub` that resolve into `target`.

    Nominal dates up to MAX_CYCLE_SHIFT months before `target` are checked,
    oldest first. A clamped billing day can put two nominal dates in the same
    cycle, so more than one pair may come back.
    """
    found: list[tuple[date, date]] = []
    for back in range(MAX_CYCLE_SHIFT, -1, -1):
        nominal = sub.billing_date(target.shift(-back))
        if not sub.is_active_on(nominal):
            continue
        resolved = effective_date(
            _synthetic_expense(sub, nominal),
            ledger.payment_methods_by_id,
            ledger.preferences,
        )
        if Month.from_date(resolved) == target:
            found.append((nominal, resolved))
    return found


def pending_occurrences(
    sub: LedgerSubscription,
    ledger: Ledger,
    target: Month,
    launched: Optional[set[tuple[str, date]]] = None,
) -> list[ProjectedOccurrence]:
    """Occurrences of `sub` counted in `target` that are not recorded yet."""
    if launched is None:
        launched = materialized_occurrences(ledger.transactions)
    return [
        ProjectedOccurrence(
            subscription_id=sub.id,
            name=sub.name,
            amount_cents=sub.amount_cents,
            category=sub.category,
            payment_method_id=sub.payment_method_id,
            occurrence_date=nominal,
            effective_date=resolved,
            is_reimbursable=sub.is_reimbursable,
            debtor_name=sub.debtor_name,
        )
        for nominal, resolved in occurrences_in_month(sub, ledger, target)
        if (sub.id, nominal) not in launched
    ]


def project_occurrences(ledger: Ledger, target: Month) -> list[ProjectedOccurrence]:
    launched = materialized_occurrences(ledger.transactions)
    occurrences = []
    for sub in ledger.subscriptions:
        occurrences.extend(pending_occurrences(sub, ledger, target, launched))
    occurrences.sort(key=lambda o: (o.effective_date, o.name))
    return occurrences


def launch_occurrence(
    sub: LedgerSubscription,
    occurrence_date: date,
    *,
    transaction_date: Optional[date] = None,
) -> LedgerTransaction:
    """Materialize one occurrence as a real expense linked back to `sub`."""
    return LedgerTransaction(
        id=new_id(),
        amount_cents=sub.amount_cents,
        category=sub.category,
        payment_method_id=sub.payment_method_id,
        type=TransactionType.expense,
        description=f"{SUBSCRIPTION_PREFIX}{sub.name}",
        date=transaction_date or occurrence_date,
        kind=TransactionKind.subscription,
        is_reimbursable=sub.is_reimbursable,
        debtor_name=sub.debtor_name,
        subscription_id=sub.id,
        occurrence_date=occurrence_date,
    )
