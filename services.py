from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import (
    Bill,
    BillRecurrence,
    BillTemplate,
    Category,
    CategoryKind,
    Transaction,
    TransactionType,
    User,
)
from money import amount_to_cents, cents_to_amount, format_amount, format_percent, ratio
from periods import Period, parse_year_month, month_period, resolve_month, upcoming_window
from recurrence import BillGenerator, local_now, local_today
from schemas import (
    BillIn,
    BillTemplateIn,
    CategoryIn,
    RegisterIn,
    TransactionIn,
    TransactionPatch,
)
from security import hash_password, verify_password

logger = logging.getLogger(__name__)

HIGH_FIXED_RATIO = Decimal("0.5")
HIGH_VARIABLE_RATIO = Decimal("0.3")
TOP_CATEGORY_SHARE = Decimal("0.3")

DEFAULT_CATEGORIES: tuple[tuple[str, CategoryKind], ...] = (
    ("Rent", CategoryKind.fixed_expense),
    ("Internet", CategoryKind.fixed_expense),
    ("Gym", CategoryKind.fixed_expense),
    ("Groceries", CategoryKind.variable_expense),
    ("Leisure", CategoryKind.variable_expense),
    ("Transport", CategoryKind.variable_expense),
    ("Salary", CategoryKind.income),
    ("Extra Income", CategoryKind.income),
)


class ValidationError(ValueError):
    """Malformed, missing or out-of-range input."""


class NotFoundError(ValueError):
    """Entity is absent or belongs to another user."""


class ConflictError(ValueError):
    """Write collides with existing data."""


class StorageError(RuntimeError):
    """The database failed while persisting a change."""


def _commit(session: Session) -> None:
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("storage_error: commit failed")
        raise StorageError("Storage failure") from exc


def parse_month(value: str) -> Period:
    try:
        year, month = parse_year_month(value)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    return month_period(year, month)


def _coerce_enum(enum_cls: type[Enum], value: object, label: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label}. Use one of: {allowed}") from exc


def _required_text(value: Optional[str], label: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{label} is required")
    return text


def _positive_cents(value: Optional[Decimal], label: str = "Amount") -> int:
    if value is None:
        raise ValidationError(f"{label} is required")
    try:
        cents = amount_to_cents(value)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if cents <= 0:
        raise ValidationError(f"{label} must be greater than zero")
    return cents


def _int_in_range(value: object, low: int, high: int, message: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(message)
    if not low <= value <= high:
        raise ValidationError(message)
    return value


def _reminder_days(value: object) -> int:
    return _int_in_range(
        value, 0, 30, "Reminder days must be an integer between 0 and 30"
    )


def _due_day(value: object) -> int:
    return _int_in_range(value, 1, 31, "Due day must be an integer between 1 and 31")


def _owned_category(session: Session, user_id: int, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if not category or category.user_id != user_id:
        raise NotFoundError("Category not found")
    return category


def _exact_share(part_cents: int, whole_cents: int) -> Decimal:
    if whole_cents <= 0:
        return Decimal("0")
    return Decimal(part_cents) / Decimal(whole_cents)


@dataclass
class CategoryTotals:
    id: int
    name: str
    kind: CategoryKind
    income_cents: int = 0
    expense_cents: int = 0

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "income": cents_to_amount(self.income_cents),
            "expense": cents_to_amount(self.expense_cents),
        }


@dataclass
class PeriodTotals:
    income_cents: int = 0
    expense_cents: int = 0
    fixed_cents: int = 0
    variable_cents: int = 0
    categorized_income_cents: int = 0
    categories: list[CategoryTotals] = field(default_factory=list)

    @property
    def balance_cents(self) -> int:
        return self.income_cents - self.expense_cents


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def register(self, data: RegisterIn) -> User:
        email = data.email.strip().lower()
        if "@" not in email:
            raise ValidationError("A valid e-mail address is required")
        existing = self.session.scalar(select(User.id).where(User.email == email))
        if existing:
            raise ConflictError("E-mail already registered")
        user = User(
            email=email,
            name=(data.name or "").strip() or None,
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        self.session.flush()
        CategoryService(self.session, user.id).seed_defaults()
        try:
            _commit(self.session)
        except IntegrityError as exc:
            raise ConflictError("E-mail already registered") from exc
        self.session.refresh(user)
        logger.info(f"user_registered: user_id={user.id}")
        return user

    def authenticate(self, email: str, password: str) -> Optional[User]:
        user = self.session.scalar(
            select(User).where(User.email == email.strip().lower())
        )
        if not user or not verify_password(user.password_hash, password):
            return None
        return user


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.name, Category.id)
        )
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        return _owned_category(self.session, self.user_id, category_id)

    def _find_by_name(self, name: str) -> Optional[Category]:
        return self.session.scalar(
            select(Category).where(
                Category.user_id == self.user_id,
                func.lower(Category.name) == name.lower(),
            )
        )

    def create(self, data: CategoryIn) -> Category:
        name = _required_text(data.name, "Category name")
        kind = _coerce_enum(CategoryKind, data.kind, "category kind")
        if self._find_by_name(name):
            raise ConflictError("Category with this name already exists")
        category = Category(user_id=self.user_id, name=name, kind=kind)
        self.session.add(category)
        try:
            _commit(self.session)
        except IntegrityError as exc:
            raise ConflictError("Category with this name already exists") from exc
        self.session.refresh(category)
        return category

    def seed_defaults(self) -> None:
        for name, kind in DEFAULT_CATEGORIES:
            if self._find_by_name(name):
                continue
            self.session.add(Category(user_id=self.user_id, name=name, kind=kind))
        self.session.flush()


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.scalar(
            select(Transaction).where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def create(
        self, data: TransactionIn, *, now: Optional[datetime] = None
    ) -> Transaction:
        amount_cents = _positive_cents(data.amount)
        if data.category_id is not None:
            _owned_category(self.session, self.user_id, data.category_id)
        now = now or local_now()
        txn_date = data.date or now.date()
        if txn_date == now.date():
            occurred_at = now
        else:
            occurred_at = datetime.combine(txn_date, datetime.min.time())
        txn = Transaction(
            user_id=self.user_id,
            date=txn_date,
            occurred_at=occurred_at,
            type=data.type,
            amount_cents=amount_cents,
            description=(data.description or "").strip() or None,
            category_id=data.category_id,
        )
        self.session.add(txn)
        _commit(self.session)
        self.session.refresh(txn)
        return txn

    def list(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        txn_type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(
                Transaction.date.desc(),
                Transaction.occurred_at.desc(),
                Transaction.id.desc(),
            )
        )
        stmt = self._within(stmt, start, end)
        if txn_type:
            stmt = stmt.where(Transaction.type == txn_type)
        return self.session.scalars(stmt).all()

    def update(self, transaction_id: int, data: TransactionPatch) -> Transaction:
        txn = self.get(transaction_id)
        fields = data.model_dump(exclude_unset=True)
        if "amount" in fields:
            txn.amount_cents = _positive_cents(fields["amount"])
        if "type" in fields:
            if fields["type"] is None:
                raise ValidationError("Transaction type is required")
            txn.type = fields["type"]
        if "description" in fields:
            txn.description = (fields["description"] or "").strip() or None
        if "date" in fields:
            if fields["date"] is None:
                raise ValidationError("Transaction date is required")
            txn.date = fields["date"]
            txn.occurred_at = datetime.combine(fields["date"], txn.occurred_at.time())
        if "category_id" in fields:
            if fields["category_id"] is not None:
                _owned_category(self.session, self.user_id, fields["category_id"])
            txn.category_id = fields["category_id"]
        _commit(self.session)
        self.session.refresh(txn)
        return txn

    def _backs_paid_bill(self, transaction_id: int) -> bool:
        stmt = (
            select(Bill.id)
            .where(
                Bill.user_id == self.user_id,
                Bill.paid_transaction_id == transaction_id,
            )
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none() is not None

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        if self._backs_paid_bill(txn.id):
            raise ConflictError("Transaction records a bill payment and cannot be deleted")
        self.session.delete(txn)
        _commit(self.session)

    def delete_in_period(self, start: date, end: date) -> int:
        if start is None or end is None:
            raise ValidationError("Both start and end dates are required")
        if start > end:
            raise ValidationError("Start date must be before end date")
        bill_payments = select(Bill.paid_transaction_id).where(
            Bill.user_id == self.user_id, Bill.paid_transaction_id.isnot(None)
        )
        stmt = (
            delete(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.date.between(start, end),
                Transaction.id.not_in(bill_payments),
            )
            .execution_options(synchronize_session=False)
        )
        count = self.session.execute(stmt).rowcount or 0
        _commit(self.session)
        logger.info(
            f"transactions_deleted: user_id={self.user_id} start={start} end={end} count={count}"
        )
        return count

    def _within(self, stmt, start: Optional[date], end: Optional[date]):
        if start:
            stmt = stmt.where(Transaction.date >= start)
        if end:
            stmt = stmt.where(Transaction.date <= end)
        return stmt

    def _sum_by_type(
        self, start: Optional[date], end: Optional[date]
    ) -> tuple[int, int]:
        stmt = (
            select(
                Transaction.type,
                func.coalesce(func.sum(Transaction.amount_cents), 0).label("total"),
            )
            .where(Transaction.user_id == self.user_id)
            .group_by(Transaction.type)
        )
        stmt = self._within(stmt, start, end)
        totals = {row.type: int(row.total or 0) for row in self.session.execute(stmt)}
        return (
            totals.get(TransactionType.income, 0),
            totals.get(TransactionType.expense, 0),
        )

    def _category_totals(
        self, start: Optional[date], end: Optional[date]
    ) -> list[CategoryTotals]:
        stmt = (
            select(
                Category.id,
                Category.name,
                Category.kind,
                Transaction.type,
                func.coalesce(func.sum(Transaction.amount_cents), 0).label("total"),
            )
            .join(Category, Category.id == Transaction.category_id)
            .where(
                Transaction.user_id == self.user_id,
                Category.user_id == self.user_id,
            )
            .group_by(Category.id, Category.name, Category.kind, Transaction.type)
            .order_by(Category.name, Category.id)
        )
        stmt = self._within(stmt, start, end)

        by_id: dict[int, CategoryTotals] = {}
        for row in self.session.execute(stmt):
            item = by_id.setdefault(
                row.id, CategoryTotals(id=row.id, name=row.name, kind=row.kind)
            )
            if row.type == TransactionType.income:
                item.income_cents += int(row.total or 0)
            else:
                item.expense_cents += int(row.total or 0)
        return list(by_id.values())

    def period_totals(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> PeriodTotals:
        income, expense = self._sum_by_type(start, end)
        totals = PeriodTotals(income_cents=income, expense_cents=expense)
        totals.categories = self._category_totals(start, end)
        for item in totals.categories:
            totals.categorized_income_cents += item.income_cents
            # Only the category kind decides the split; mismatched kinds stay out.
            if item.kind == CategoryKind.fixed_expense:
                totals.fixed_cents += item.expense_cents
            elif item.kind == CategoryKind.variable_expense:
                totals.variable_cents += item.expense_cents
        return totals

    def summary(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> dict[str, Decimal]:
        income, expense = self._sum_by_type(start, end)
        return {
            "total_income": cents_to_amount(income),
            "total_expense": cents_to_amount(expense),
            "balance": cents_to_amount(income - expense),
        }

    def summary_by_category(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> dict[str, object]:
        totals = self.period_totals(start, end)
        return {
            "categories": [item.as_dict() for item in totals.categories],
            "by_kind": {
                "fixed": cents_to_amount(totals.fixed_cents),
                "variable": cents_to_amount(totals.variable_cents),
                "income": cents_to_amount(totals.categorized_income_cents),
            },
        }


class BillService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def get(self, bill_id: int) -> Bill:
        bill = self.session.scalar(
            select(Bill).where(Bill.user_id == self.user_id, Bill.id == bill_id)
        )
        if not bill:
            raise NotFoundError("Bill not found")
        return bill

    def create(self, data: BillIn) -> Bill:
        description = _required_text(data.description, "Description")
        amount_cents = _positive_cents(data.amount)
        if data.due_date is None:
            raise ValidationError("Due date is required")
        if data.category_id is not None:
            _owned_category(self.session, self.user_id, data.category_id)
        recurrence = (
            _coerce_enum(BillRecurrence, data.recurrence, "recurrence")
            if data.recurrence is not None
            else BillRecurrence.none
        )
        reminder_days = (
            _reminder_days(data.reminder_days) if data.reminder_days is not None else 1
        )
        bill = Bill(
            user_id=self.user_id,
            description=description,
            amount_cents=amount_cents,
            due_date=data.due_date,
            category_id=data.category_id,
            recurrence=recurrence,
            reminder_days=reminder_days,
            paid=False,
        )
        self.session.add(bill)
        _commit(self.session)
        self.session.refresh(bill)
        return bill

    def list(
        self,
        status: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Bill]:
        stmt = (
            select(Bill)
            .where(Bill.user_id == self.user_id)
            .order_by(Bill.due_date.asc(), Bill.id.asc())
        )
        if status in ("open", "unpaid"):
            stmt = stmt.where(Bill.paid.is_(False))
        elif status == "paid":
            stmt = stmt.where(Bill.paid.is_(True))
        elif status:
            raise ValidationError("Invalid status. Use one of: open, unpaid, paid")
        if start:
            stmt = stmt.where(Bill.due_date >= start)
        if end:
            stmt = stmt.where(Bill.due_date <= end)
        return self.session.scalars(stmt).all()

    def update(self, bill_id: int, data: BillIn) -> Bill:
        bill = self.get(bill_id)
        fields = data.model_dump(exclude_unset=True)
        if fields and bill.paid:
            raise ValidationError("Paid bills can no longer be edited")
        if "description" in fields:
            bill.description = _required_text(fields["description"], "Description")
        if "amount" in fields:
            bill.amount_cents = _positive_cents(fields["amount"])
        if "due_date" in fields:
            if fields["due_date"] is None:
                raise ValidationError("Due date is required")
            bill.due_date = fields["due_date"]
        if "category_id" in fields:
            if fields["category_id"] is not None:
                _owned_category(self.session, self.user_id, fields["category_id"])
            bill.category_id = fields["category_id"]
        if "recurrence" in fields:
            bill.recurrence = _coerce_enum(
                BillRecurrence, fields["recurrence"], "recurrence"
            )
        if "reminder_days" in fields:
            bill.reminder_days = _reminder_days(fields["reminder_days"])
        _commit(self.session)
        self.session.refresh(bill)
        return bill

    def delete(self, bill_id: int) -> None:
        bill = self.get(bill_id)
        self.session.delete(bill)
        _commit(self.session)

    def pay(self, bill_id: int, *, now: Optional[datetime] = None) -> Bill:
        """Mark a bill as paid and record the matching expense, both or neither.

        The bill row is re-read inside the unit of work and flipped with a
        conditional update, so a concurrent payer that got there first is
        observed and no second transaction is kept.
        """
        stmt = (
            select(Bill)
            .where(Bill.user_id == self.user_id, Bill.id == bill_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        bill = self.session.scalar(stmt)
        if not bill:
            raise NotFoundError("Bill not found")
        if bill.paid:
            return bill

        now = now or local_now()
        try:
            txn = Transaction(
                user_id=self.user_id,
                date=now.date(),
                occurred_at=now,
                type=TransactionType.expense,
                amount_cents=bill.amount_cents,
                description=bill.description,
                category_id=bill.category_id,
            )
            self.session.add(txn)
            self.session.flush()
            result = self.session.execute(
                update(Bill)
                .where(
                    Bill.id == bill.id,
                    Bill.user_id == self.user_id,
                    Bill.paid.is_(False),
                )
                .values(paid=True, paid_at=now, paid_transaction_id=txn.id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self.session.rollback()
                logger.info(
                    f"bill_pay_raced: user_id={self.user_id} bill_id={bill_id}"
                )
                return self.get(bill_id)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(
                f"storage_error: pay failed user_id={self.user_id} bill_id={bill_id}"
            )
            raise StorageError("Storage failure") from exc

        self.session.refresh(bill)
        logger.info(
            f"bill_paid: user_id={self.user_id} bill_id={bill.id} "
            f"transaction_id={bill.paid_transaction_id}"
        )
        return bill

    def due_between(
        self, start: date, end: date, *, unpaid_only: bool = False
    ) -> list[Bill]:
        stmt = (
            select(Bill)
            .where(Bill.user_id == self.user_id, Bill.due_date.between(start, end))
            .order_by(Bill.due_date.asc(), Bill.id.asc())
        )
        if unpaid_only:
            stmt = stmt.where(Bill.paid.is_(False))
        return self.session.scalars(stmt).all()


class BillTemplateService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def get(self, template_id: int) -> BillTemplate:
        template = self.session.get(BillTemplate, template_id)
        if not template or template.user_id != self.user_id:
            raise NotFoundError("Template not found")
        return template

    def list_all(self) -> list[BillTemplate]:
        stmt = (
            select(BillTemplate)
            .where(BillTemplate.user_id == self.user_id)
            .order_by(
                BillTemplate.active.desc(), BillTemplate.due_day, BillTemplate.id
            )
        )
        return self.session.scalars(stmt).all()

    def create(self, data: BillTemplateIn) -> BillTemplate:
        description = _required_text(data.description, "Description")
        amount_cents = _positive_cents(data.amount)
        if data.due_day is None:
            raise ValidationError("Due day is required")
        due_day = _due_day(data.due_day)
        if data.category_id is not None:
            _owned_category(self.session, self.user_id, data.category_id)
        template = BillTemplate(
            user_id=self.user_id,
            description=description,
            amount_cents=amount_cents,
            category_id=data.category_id,
            due_day=due_day,
            recurrence=(
                _coerce_enum(BillRecurrence, data.recurrence, "recurrence")
                if data.recurrence is not None
                else BillRecurrence.monthly
            ),
            active=True if data.active is None else data.active,
            reminder_days=(
                _reminder_days(data.reminder_days)
                if data.reminder_days is not None
                else 1
            ),
        )
        self.session.add(template)
        _commit(self.session)
        self.session.refresh(template)
        return template

    def update(self, template_id: int, data: BillTemplateIn) -> BillTemplate:
        template = self.get(template_id)
        fields = data.model_dump(exclude_unset=True)
        if "description" in fields:
            template.description = _required_text(fields["description"], "Description")
        if "amount" in fields:
            template.amount_cents = _positive_cents(fields["amount"])
        if "due_day" in fields:
            template.due_day = _due_day(fields["due_day"])
        if "category_id" in fields:
            if fields["category_id"] is not None:
                _owned_category(self.session, self.user_id, fields["category_id"])
            template.category_id = fields["category_id"]
        if "recurrence" in fields:
            template.recurrence = _coerce_enum(
                BillRecurrence, fields["recurrence"], "recurrence"
            )
        if "active" in fields:
            if fields["active"] is None:
                raise ValidationError("Active flag must be true or false")
            template.active = fields["active"]
        if "reminder_days" in fields:
            template.reminder_days = _reminder_days(fields["reminder_days"])
        _commit(self.session)
        self.session.refresh(template)
        return template

    def delete(self, template_id: int) -> None:
        template = self.get(template_id)
        self.session.execute(
            update(Bill)
            .where(Bill.user_id == self.user_id, Bill.bill_template_id == template.id)
            .values(bill_template_id=None)
            .execution_options(synchronize_session=False)
        )
        self.session.delete(template)
        _commit(self.session)

    def generate_for_month(self, year_month: str) -> list[Bill]:
        period = parse_month(year_month)
        created = BillGenerator(self.session).generate_for_month(
            self.user_id, period.start.year, period.start.month
        )
        try:
            _commit(self.session)
        except IntegrityError as exc:
            raise ConflictError(
                f"Bills for {period.slug} were generated concurrently, retry"
            ) from exc
        for bill in created:
            self.session.refresh(bill)
        return created


class OverviewService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def month_overview(self, year_month: str) -> dict[str, object]:
        period = parse_month(year_month)
        totals = TransactionService(self.session, self.user_id).period_totals(
            period.start, period.end
        )
        bills = BillService(self.session, self.user_id).due_between(
            period.start, period.end
        )

        total_due = sum(b.amount_cents for b in bills)
        total_paid = sum(b.amount_cents for b in bills if b.paid)
        total_open = sum(b.amount_cents for b in bills if not b.paid)
        balance = totals.balance_cents

        return {
            "period": {"from": period.starts_at, "to": period.ends_at},
            "totals": {
                "income": cents_to_amount(totals.income_cents),
                "expense": cents_to_amount(totals.expense_cents),
                "balance": cents_to_amount(balance),
                "fixed_expenses": cents_to_amount(totals.fixed_cents),
                "variable_expenses": cents_to_amount(totals.variable_cents),
                "savings_rate": ratio(balance, totals.income_cents),
                "fixed_pct": ratio(totals.fixed_cents, totals.income_cents),
                "variable_pct": ratio(totals.variable_cents, totals.income_cents),
                "cash_available_after_open_bills": cents_to_amount(
                    balance - total_open
                ),
            },
            "bills": {
                "total_due": cents_to_amount(total_due),
                "total_paid": cents_to_amount(total_paid),
                "total_open": cents_to_amount(total_open),
                "items": [
                    {
                        "id": b.id,
                        "description": b.description,
                        "amount": b.amount,
                        "due_date": b.due_date,
                        "paid": b.paid,
                        "paid_at": b.paid_at,
                    }
                    for b in bills
                ],
            },
        }


def _advice(id: str, severity: str, title: str, message: str) -> dict[str, str]:
    return {"id": id, "severity": severity, "title": title, "message": message}


class AdviceService:
    """Rule-based observations for one month.

    Every rule looks at the same month totals and contributes at most one
    advice; the order of ``rules`` is the display order.
    """

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def financial_advice(
        self, year_month: Optional[str] = None, *, today: Optional[date] = None
    ) -> dict[str, object]:
        today = today or local_today()
        if year_month:
            period = parse_month(year_month)
        else:
            period = resolve_month(None, today=today)
        totals = TransactionService(self.session, self.user_id).period_totals(
            period.start, period.end
        )
        window = upcoming_window(today)
        upcoming = BillService(self.session, self.user_id).due_between(
            window.start, window.end, unpaid_only=True
        )

        rules = (
            self._no_income,
            self._high_fixed,
            self._high_variable,
            self._negative_balance,
            self._top_category,
        )
        advices = [advice for rule in rules if (advice := rule(totals))]
        upcoming_advice = self._upcoming_bills(upcoming)
        if upcoming_advice:
            advices.append(upcoming_advice)

        return {
            "period": {"from": period.starts_at, "to": period.ends_at},
            "totals": {
                "income": cents_to_amount(totals.income_cents),
                "expense": cents_to_amount(totals.expense_cents),
                "balance": cents_to_amount(totals.balance_cents),
                "fixed_expenses": cents_to_amount(totals.fixed_cents),
                "variable_expenses": cents_to_amount(totals.variable_cents),
            },
            "advices": advices,
        }

    def _no_income(self, totals: PeriodTotals) -> Optional[dict[str, str]]:
        if totals.income_cents > 0 or totals.expense_cents <= 0:
            return None
        return _advice(
            "no-income",
            "info",
            "Record your income",
            "You recorded expenses this month but no income. Record what you "
            "received to get a real picture of your balance.",
        )

    def _high_fixed(self, totals: PeriodTotals) -> Optional[dict[str, str]]:
        share = _exact_share(totals.fixed_cents, totals.income_cents)
        if totals.income_cents <= 0 or share <= HIGH_FIXED_RATIO:
            return None
        return _advice(
            "high-fixed",
            "warning",
            "Fixed expenses are high",
            f"Your fixed expenses are about {format_percent(share)} of this "
            "month's income. Try to keep them below 50% over time.",
        )

    def _high_variable(self, totals: PeriodTotals) -> Optional[dict[str, str]]:
        share = _exact_share(totals.variable_cents, totals.income_cents)
        if totals.income_cents <= 0 or share <= HIGH_VARIABLE_RATIO:
            return None
        return _advice(
            "high-variable",
            "warning",
            "Variable spending is high",
            f"Your variable spending is around {format_percent(share)} of your "
            "income. Review discretionary items such as leisure to rebalance.",
        )

    def _negative_balance(self, totals: PeriodTotals) -> Optional[dict[str, str]]:
        if totals.balance_cents >= 0:
            return None
        return _advice(
            "negative-balance",
            "alert",
            "Month in the red",
            f"Your expenses exceed your income by about "
            f"{format_amount(abs(totals.balance_cents))} this month. Consider "
            "cutting variable spending and postponing non-essential expenses.",
        )

    def _top_category(self, totals: PeriodTotals) -> Optional[dict[str, str]]:
        spending = [c for c in totals.categories if c.expense_cents > 0]
        if not spending or totals.expense_cents <= 0:
            return None
        top = sorted(spending, key=lambda c: c.expense_cents, reverse=True)[0]
        share = _exact_share(top.expense_cents, totals.expense_cents)
        if share <= TOP_CATEGORY_SHARE:
            return None
        return _advice(
            "top-category",
            "info",
            "Heaviest spending category",
            f'The category "{top.name}" accounts for about {format_percent(share)} '
            "of all your expenses this month. It may be worth trimming it a little.",
        )

    def _upcoming_bills(self, bills: list[Bill]) -> Optional[dict[str, str]]:
        if not bills:
            return None
        total = sum(b.amount_cents for b in bills)
        return _advice(
            "upcoming-bills",
            "info",
            "Bills due in the next 7 days",
            f"You have {format_amount(total)} in bills due over the next 7 days. "
            "Make sure this amount is set aside.",
        )
