import csv
import re
from io import StringIO

from billing import effective_date
from ledger import Ledger
from summary import MonthReport


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^\.",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def format_cents(cents: int) -> str:
    return f"{cents / 100:.2f}"


def export_report(report: MonthReport) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(
        ["Section", "Category", "Description", "Debtor"]
        + [month.key for month in report.months]
    )
    for row in report.rows:
        writer.writerow(
            [
                row.section.value,
                sanitize_csv_value(row.category),
                sanitize_csv_value(row.description),
                sanitize_csv_value(row.debtor_name),
            ]
            + [
                format_cents(row.amount_for(month)) if row.amount_for(month) else ""
                for month in report.months
            ]
        )
    return output.getvalue()


def export_transactions(ledger: Ledger) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(
        ["Date", "EffectiveDate", "Type", "Amount", "Category", "PaymentMethod", "Description"]
    )
    for txn in sorted(ledger.transactions, key=lambda t: (t.date, t.id)):
        pm = ledger.payment_method(txn.payment_method_id)
        resolved = effective_date(txn, ledger.payment_methods_by_id, ledger.preferences)
        writer.writerow(
            [
                txn.date.isoformat(),
                resolved.isoformat(),
                txn.type.value,
                format_cents(txn.amount_cents),
                sanitize_csv_value(txn.category),
                sanitize_csv_value(pm.name if pm else (txn.payment_method_id or "")),
                sanitize_csv_value(txn.description),
            ]
        )
    return output.getvalue()
