"""budgets, monthly plans and investment goals

Revision ID: 202601120900
Revises: 202601050900
Create Date: 2026-01-12 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202601120900"
down_revision = "202601050900"
branch_labels = None
depends_on = None

OLD_KINDS = ("regular", "anticipation", "reimbursement", "subscription")
NEW_KINDS = OLD_KINDS + ("contribution", "withdrawal")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _alter_kind(kinds):
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        # Postgres enums only grow; downgrade leaves the extra labels in place.
        for kind in kinds:
            if kind not in OLD_KINDS:
                op.execute(f"ALTER TYPE transactionkind ADD VALUE IF NOT EXISTS '{kind}'")
        return
    with op.batch_alter_table("transactions") as batch_op:
        batch_op.alter_column(
            "kind",
            existing_type=sa.Enum(*OLD_KINDS, name="transactionkind"),
            type_=sa.Enum(*kinds, name="transactionkind"),
            existing_nullable=False,
        )


def upgrade():
    _alter_kind(NEW_KINDS)

    op.create_table(
        "budgets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "category", name="uq_budget_user_category"),
        sa.CheckConstraint("amount_cents >= 0", name="ck_budget_amount_non_negative"),
    )

    op.create_table(
        "planning_profiles",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("expected_income_cents", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "month", name="uq_planning_profile_user_month"),
        sa.CheckConstraint(
            "expected_income_cents >= 0", name="ck_planning_income_non_negative"
        ),
    )

    op.create_table(
        "planned_expenses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "profile_id",
            sa.String(length=36),
            sa.ForeignKey("planning_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            "profile_id", "category", name="uq_planned_expense_category"
        ),
        sa.CheckConstraint(
            "amount_cents >= 0", name="ck_planned_expense_amount_non_negative"
        ),
    )

    op.create_table(
        "investment_goals",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False),
        sa.Column("current_amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("deadline", sa.Date()),
        sa.Column("color", sa.String(length=9)),
        *_timestamps(),
        sa.CheckConstraint("target_amount_cents > 0", name="ck_goal_target_positive"),
        sa.CheckConstraint(
            "current_amount_cents >= 0", name="ck_goal_current_non_negative"
        ),
    )


def downgrade():
    op.drop_table("investment_goals")
    op.drop_table("planned_expenses")
    op.drop_table("planning_profiles")
    op.drop_table("budgets")
    op.execute(
        "DELETE FROM transactions WHERE kind IN ('contribution', 'withdrawal')"
    )
    _alter_kind(OLD_KINDS)
