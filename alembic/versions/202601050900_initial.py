"""initial schema

Revision ID: 202601050900
Revises:
Create Date: 2026-01-05 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202601050900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "payment_methods",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "type",
            sa.Enum("credit_card", "other", name="paymentmethodtype"),
            nullable=False,
        ),
        sa.Column("closing_day", sa.Integer()),
        sa.Column("due_day", sa.Integer()),
        sa.Column("color", sa.String(length=9)),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "name", name="uq_payment_method_user_name"),
        sa.CheckConstraint(
            "closing_day IS NULL OR (closing_day >= 1 AND closing_day <= 31)",
            name="ck_payment_method_closing_day",
        ),
        sa.CheckConstraint(
            "due_day IS NULL OR (due_day >= 1 AND due_day <= 31)",
            name="ck_payment_method_due_day",
        ),
    )

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column(
            "payment_method_id",
            sa.String(length=36),
            sa.ForeignKey("payment_methods.id", ondelete="SET NULL"),
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("active_until", sa.Date()),
        sa.Column(
            "is_reimbursable", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("debtor_name", sa.String(length=100)),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_subscription_amount_positive"),
        sa.CheckConstraint(
            "active_until IS NULL OR active_until >= start_date",
            name="ck_subscription_window",
        ),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("expense", "income", "investment", name="transactiontype"),
            nullable=False,
        ),
        sa.Column(
            "kind",
            sa.Enum(
                "regular",
                "anticipation",
                "reimbursement",
                "subscription",
                name="transactionkind",
            ),
            nullable=False,
            server_default="regular",
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column(
            "payment_method_id",
            sa.String(length=36),
            sa.ForeignKey("payment_methods.id", ondelete="SET NULL"),
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("group_id", sa.String(length=36)),
        sa.Column(
            "is_reimbursable", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "is_reimbursed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("debtor_name", sa.String(length=100)),
        sa.Column("related_transaction_id", sa.String(length=36)),
        sa.Column(
            "subscription_id",
            sa.String(length=36),
            sa.ForeignKey("subscriptions.id", ondelete="SET NULL"),
        ),
        sa.Column("occurrence_date", sa.Date()),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id",
            "subscription_id",
            "occurrence_date",
            name="uq_txn_subscription_occurrence",
        ),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_group", "transactions", ["user_id", "group_id"]
    )

    op.create_table(
        "user_preferences",
        sa.Column("user_id", sa.Integer(), primary_key=True),
        sa.Column(
            "credit_card_logic",
            sa.Enum("transaction_date", "closing_day", name="creditcardlogic"),
            nullable=False,
        ),
        *_timestamps(),
    )


def downgrade():
    op.drop_table("user_preferences")
    op.drop_index("ix_transactions_user_group", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("subscriptions")
    op.drop_table("payment_methods")
