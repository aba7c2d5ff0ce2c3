from datetime import date

from csv_utils import export_report, export_transactions
from installments import create_group
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
from summary import (
    ReportSection,
    month_category_report,
    monthly_series,
    summarize_month,
)

CARD = LedgerPaymentMethod(
    id="card-1",
    name="Nubank",
    type=PaymentMethodType.credit_card,
    closing_day=25,
    due_day=5,
)


def _txn(txn_id, txn_type, cents, day, payment_method_id=None, description=None):
    return LedgerTransaction(
        id=txn_id,
        amount_cents=cents,
        category="General",
        payment_method_id=payment_method_id,
        type=txn_type,
        description=description or txn_id,
        date=day,
    )


def test_balance_is_income_minus_expense_and_investment():
    ledger = build_ledger(
        [
            _txn("salary", TransactionType.income, 500_000, date(2024, 3, 5)),
            _txn("rent", TransactionType.expense, 300_000, date(2024, 3, 10)),
            _txn("fund", TransactionType.investment, 50_000, date(2024, 3, 15)),
        ],
        [],
        [],
    )
    summary = summarize_month(ledger, Month(2024, 3), today=date(2024, 6, 1))
    assert summary.income_cents == 500_000
    assert summary.expense_cents == 300_000
    assert summary.investment_cents == 50_000
    assert summary.balance_cents == 150_000
    assert not summary.is_projection


def test_card_purchases_count_in_their_effective_month():
    ledger = build_ledger(
        [_txn("shoes", TransactionType.expense, 20_000, date(2024, 3, 26), "card-1")],
        [],
        [CARD],
        Preferences(CreditCardLogic.closing_day),
    )
    today = date(2024, 1, 1)
    assert summarize_month(ledger, Month(2024, 3), today=today).expense_cents == 0
    assert summarize_month(ledger, Month(2024, 5), today=today).expense_cents == 20_000


def test_current_and_future_months_include_pending_subscriptions():
    gym = LedgerSubscription(
        id="gym",
        name="Gym",
        amount_cents=9_900,
        category="Health",
        payment_method_id=None,
        start_date=date(2024, 1, 8),
    )
    ledger = build_ledger([], [gym], [])
    today = date(2024, 3, 20)

    past = summarize_month(ledger, Month(2024, 2), today=today)
    current = summarize_month(ledger, Month(2024, 3), today=today)
    assert past.expense_cents == 0
    assert current.expense_cents == 9_900
    assert current.projected_cents == 9_900
    assert current.balance_cents == -9_900

    series = monthly_series(ledger, Month(2024, 2), 3, today=today)
    assert [s.month.key for s in series] == ["2024-02", "2024-03", "2024-04"]
    assert [s.expense_cents for s in series] == [0, 9_900, 9_900]


def test_report_buckets_rows_by_section():
    gym = LedgerSubscription(
        id="gym",
        name="Gym",
        amount_cents=9_900,
        category="Health",
        payment_method_id=None,
        start_date=date(2024, 1, 8),
    )
    txns = [
        _txn("salary", TransactionType.income, 500_000, date(2024, 1, 5), description="Salary"),
        _txn("market", TransactionType.expense, 30_000, date(2024, 1, 12), description="Market"),
    ]
    txns += create_group(
        "Sofá", 3, 90_000, date(2024, 1, 15), category="Home", payment_method_id=None
    )
    ledger = build_ledger(txns, [gym], [])
    report = month_category_report(ledger, today=date(2024, 1, 20), months_ahead=2)

    assert [m.key for m in report.months] == ["2024-01", "2024-02", "2024-03"]
    installments = report.section_rows(ReportSection.installment)
    assert len(installments) == 1
    assert installments[0].description == "Sofá"
    assert [installments[0].amount_for(m) for m in report.months] == [30_000] * 3
    assert report.section_total(ReportSection.subscription, Month(2024, 2)) == 9_900
    assert report.section_total(ReportSection.income, Month(2024, 1)) == 500_000
    assert report.section_total(ReportSection.other, Month(2024, 1)) == 30_000

    csv_text = export_report(report)
    header = csv_text.splitlines()[0]
    assert header == "Section,Category,Description,Debtor,2024-01,2024-02,2024-03"
    assert "installment,Home,Sofá,,300.00,300.00,300.00" in csv_text


def test_transaction_export_sanitizes_formulas():
    ledger = build_ledger(
        [_txn("x", TransactionType.expense, 1_234, date(2024, 1, 2), description="=SUM(A1)")],
        [],
        [],
    )
    lines = export_transactions(ledger).splitlines()
    assert lines[0] == "Date,EffectiveDate,Type,Amount,Category,PaymentMethod,Description"
    assert lines[1] == "2024-01-02,2024-01-02,expense,12.34,General,,\t=SUM(A1)"


def test_due_date_projection_counts_charge_from_two_months_earlier():
    gym = LedgerSubscription(
        id="sub-gym",
        name="Gym",
        amount_cents=9_900,
        category="Health",
        payment_method_id=CARD.id,
        start_date=date(2024, 1, 28),
    )
    ledger = build_ledger([], [gym], [CARD], Preferences(CreditCardLogic.closing_day))

    june = summarize_month(ledger, Month(2024, 6), today=date(2024, 5, 1))
    assert june.expense_cents == 9_900
    assert june.projected_cents == 9_900
    assert june.is_projection
