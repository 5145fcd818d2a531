from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
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
from money import cents_to_amount


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class CategoryKind(str, Enum):
    fixed_expense = "fixed_expense"
    variable_expense = "variable_expense"
    income = "income"


class BillRecurrence(str, Enum):
    none = "none"
    monthly = "monthly"
    weekly = "weekly"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(120))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[CategoryKind] = mapped_column(SAEnum(CategoryKind), nullable=False)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="category"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_category_user_name"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    # Type and category kind are allowed to disagree.
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))

    category: Mapped[Optional["Category"]] = relationship(
        "Category", back_populates="transactions"
    )

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_type_date", "user_id", "type", "date"),
        Index("ix_transactions_user_category_date", "user_id", "category_id", "date"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )

    @property
    def amount(self) -> Decimal:
        return cents_to_amount(self.amount_cents)


class BillTemplate(Base, TimestampMixin):
    __tablename__ = "bill_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))
    due_day: Mapped[int] = mapped_column(Integer, nullable=False)
    recurrence: Mapped[BillRecurrence] = mapped_column(
        SAEnum(BillRecurrence), nullable=False, default=BillRecurrence.monthly
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reminder_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    category: Mapped[Optional["Category"]] = relationship("Category")
    bills: Mapped[list["Bill"]] = relationship("Bill", back_populates="template")

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_bill_template_amount_positive"),
        CheckConstraint("due_day BETWEEN 1 AND 31", name="ck_bill_template_due_day"),
        CheckConstraint(
            "reminder_days BETWEEN 0 AND 30", name="ck_bill_template_reminder_days"
        ),
        Index("ix_bill_templates_user_active", "user_id", "active"),
    )

    @property
    def amount(self) -> Decimal:
        return cents_to_amount(self.amount_cents)


class Bill(Base, TimestampMixin):
    __tablename__ = "bills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))
    # Descriptive only; generation is driven by bill templates.
    recurrence: Mapped[BillRecurrence] = mapped_column(
        SAEnum(BillRecurrence), nullable=False, default=BillRecurrence.none
    )
    reminder_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    paid_transaction_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("transactions.id")
    )
    bill_template_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("bill_templates.id")
    )
    generated_for: Mapped[Optional[str]] = mapped_column(String(7))

    category: Mapped[Optional["Category"]] = relationship("Category")
    template: Mapped[Optional["BillTemplate"]] = relationship(
        "BillTemplate", back_populates="bills"
    )
    paid_transaction: Mapped[Optional["Transaction"]] = relationship("Transaction")

    __table_args__ = (
        UniqueConstraint(
            "bill_template_id", "generated_for", name="uq_bill_template_month"
        ),
        CheckConstraint("amount_cents > 0", name="ck_bills_amount_positive"),
        CheckConstraint("reminder_days BETWEEN 0 AND 30", name="ck_bills_reminder_days"),
        Index("ix_bills_user_due_date", "user_id", "due_date"),
    )

    @property
    def amount(self) -> Decimal:
        return cents_to_amount(self.amount_cents)
