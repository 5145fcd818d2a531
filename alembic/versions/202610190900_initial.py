"""initial schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("name", sa.String(length=120)),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "kind",
            sa.Enum(
                "fixed_expense", "variable_expense", "income", name="categorykind"
            ),
            nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "name", name="uq_category_user_name"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id")),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_type_date", "transactions", ["user_id", "type", "date"]
    )
    op.create_index(
        "ix_transactions_user_category_date",
        "transactions",
        ["user_id", "category_id", "date"],
    )

    op.create_table(
        "bill_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id")),
        sa.Column("due_day", sa.Integer(), nullable=False),
        sa.Column(
            "recurrence",
            sa.Enum("none", "monthly", "weekly", name="billrecurrence"),
            nullable=False,
        ),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("reminder_days", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_bill_template_amount_positive"),
        sa.CheckConstraint("due_day BETWEEN 1 AND 31", name="ck_bill_template_due_day"),
        sa.CheckConstraint(
            "reminder_days BETWEEN 0 AND 30", name="ck_bill_template_reminder_days"
        ),
    )
    op.create_index(
        "ix_bill_templates_user_active", "bill_templates", ["user_id", "active"]
    )

    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id")),
        sa.Column(
            "recurrence",
            sa.Enum("none", "monthly", "weekly", name="billrecurrence"),
            nullable=False,
        ),
        sa.Column("reminder_days", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paid_at", sa.DateTime()),
        sa.Column(
            "paid_transaction_id", sa.Integer(), sa.ForeignKey("transactions.id")
        ),
        sa.Column(
            "bill_template_id", sa.Integer(), sa.ForeignKey("bill_templates.id")
        ),
        sa.Column("generated_for", sa.String(length=7)),
        *_timestamps(),
        sa.UniqueConstraint(
            "bill_template_id", "generated_for", name="uq_bill_template_month"
        ),
        sa.CheckConstraint("amount_cents > 0", name="ck_bills_amount_positive"),
        sa.CheckConstraint("reminder_days BETWEEN 0 AND 30", name="ck_bills_reminder_days"),
    )
    op.create_index("ix_bills_user_due_date", "bills", ["user_id", "due_date"])


def downgrade():
    op.drop_index("ix_bills_user_due_date", table_name="bills")
    op.drop_table("bills")
    op.drop_index("ix_bill_templates_user_active", table_name="bill_templates")
    op.drop_table("bill_templates")
    op.drop_index("ix_transactions_user_category_date", table_name="transactions")
    op.drop_index("ix_transactions_user_type_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("categories")
    op.drop_table("users")
