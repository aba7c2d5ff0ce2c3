from datetime import date

from ledger import LedgerTransaction, TransactionKind, TransactionType
from reimbursements import pending_by_debtor, reimburse, undo_reimbursement


def _expense(txn_id: str, cents: int, debtor=None, reimbursable=True) -> LedgerTransaction:
    return LedgerTransaction(
        id=txn_id,
        amount_cents=cents,
        category="Travel",
        payment_method_id="card-1",
        type=TransactionType.expense,
        description=f"Hotel {txn_id}",
        date=date(2024, 5, 3),
        is_reimbursable=reimbursable,
        debtor_name=debtor,
    )


def test_reimburse_creates_linked_income():
    txns = [_expense("a", 40_000, debtor="Bruno")]
    result = reimburse(txns, "a", today=date(2024, 6, 1))

    income = next(t for t in result if t.type == TransactionType.income)
    expense = next(t for t in result if t.id == "a")
    assert income.kind == TransactionKind.reimbursement
    assert income.amount_cents == 40_000
    assert income.date == date(2024, 6, 1)
    assert income.description == "Reimbursement received: Hotel a"
    assert income.related_transaction_id == "a"
    assert expense.is_reimbursed
    assert expense.related_transaction_id == income.id


def test_reimburse_is_noop_for_ineligible_expenses():
    txns = [_expense("a", 1_000, reimbursable=False)]
    assert reimburse(txns, "a", today=date(2024, 6, 1)) == txns
    assert reimburse(txns, "missing", today=date(2024, 6, 1)) == txns

    done = reimburse([_expense("b", 1_000)], "b", today=date(2024, 6, 1))
    assert reimburse(done, "b", today=date(2024, 6, 2)) == done


def test_undo_removes_income_and_clears_flag():
    txns = [_expense("a", 40_000)]
    done = reimburse(txns, "a", today=date(2024, 6, 1))
    assert undo_reimbursement(done, "a") == txns


def test_pending_grouped_by_debtor():
    txns = [
        _expense("a", 10_000, debtor="Bruno"),
        _expense("b", 5_000, debtor="Bruno"),
        _expense("c", 20_000, debtor="Carla"),
        _expense("d", 7_000),
        _expense("e", 9_000, debtor="Bruno", reimbursable=False),
    ]
    txns = reimburse(txns, "c", today=date(2024, 6, 1))
    balances = pending_by_debtor(txns)
    assert [(b.debtor_name, b.pending_cents) for b in balances] == [
        ("Bruno", 15_000),
        ("Unassigned", 7_000),
    ]
    assert balances[0].transaction_ids == ("a", "b")
