from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from database import Base
from models import Bill, Category, CategoryKind, Transaction, TransactionType, User
from services import BillService, OverviewService, ValidationError


def _user(session: Session, email: str = "ana@example.com") -> User:
    user = User(email=email, password_hash="x")
    session.add(user)
    session.flush()
    return user


def _categories(session: Session, user: User) -> dict[str, Category]:
    categories = {
        "Salary": Category(user_id=user.id, name="Salary", kind=CategoryKind.income),
        "Rent": Category(user_id=user.id, name="Rent", kind=CategoryKind.fixed_expense),
        "Groceries": Category(
            user_id=user.id, name="Groceries", kind=CategoryKind.variable_expense
        ),
    }
    session.add_all(categories.values())
    session.flush()
    return categories


def _add(
    session: Session,
    user: User,
    txn_type: TransactionType,
    cents: int,
    day: date,
    category: Category = None,
) -> None:
    session.add(
        Transaction(
            user_id=user.id,
            date=day,
            occurred_at=datetime.combine(day, datetime.min.time()),
            type=txn_type,
            amount_cents=cents,
            category_id=category.id if category else None,
        )
    )
    session.flush()


def test_month_overview_ratios():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        user = _user(session)
        cats = _categories(session, user)
        _add(session, user, TransactionType.income, 500000, date(2024, 3, 1), cats["Salary"])
        _add(session, user, TransactionType.expense, 150000, date(2024, 3, 3), cats["Rent"])
        _add(session, user, TransactionType.expense, 30000, date(2024, 3, 31), cats["Groceries"])
        session.commit()

        overview = OverviewService(session, user.id).month_overview("2024-03")

        assert overview["period"] == {
            "from": datetime(2024, 3, 1, 0, 0, 0),
            "to": datetime(2024, 3, 31, 23, 59, 59),
        }
        totals = overview["totals"]
        assert totals["income"] == Decimal("5000.00")
        assert totals["expense"] == Decimal("1800.00")
        assert totals["balance"] == Decimal("3200.00")
        assert totals["fixed_expenses"] == Decimal("1500.00")
        assert totals["variable_expenses"] == Decimal("300.00")
        assert totals["savings_rate"] == Decimal("0.64")
        assert totals["fixed_pct"] == Decimal("0.3")
        assert totals["variable_pct"] == Decimal("0.06")
        assert totals["cash_available_after_open_bills"] == Decimal("3200.00")
        assert overview["bills"]["items"] == []


def test_month_overview_without_income_has_zero_ratios():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        user = _user(session)
        cats = _categories(session, user)
        _add(session, user, TransactionType.expense, 4000, date(2024, 3, 3), cats["Rent"])
        session.commit()

        totals = OverviewService(session, user.id).month_overview("2024-03")["totals"]
        assert totals["balance"] == Decimal("-40.00")
        assert totals["savings_rate"] == Decimal("0")
        assert totals["fixed_pct"] == Decimal("0")
        assert totals["variable_pct"] == Decimal("0")

        empty = OverviewService(session, user.id).month_overview("2023-01")["totals"]
        assert empty["income"] == Decimal("0.00")
        assert empty["expense"] == Decimal("0.00")
        assert empty["savings_rate"] == Decimal("0")


def test_month_overview_only_counts_own_rows_inside_month():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        user = _user(session)
        other = _user(session, "bo@example.com")
        cats = _categories(session, user)
        other_cats = _categories(session, other)
        _add(session, user, TransactionType.expense, 1000, date(2024, 2, 29), cats["Rent"])
        _add(session, user, TransactionType.expense, 2000, date(2024, 3, 15), cats["Rent"])
        _add(session, user, TransactionType.expense, 3000, date(2024, 4, 1), cats["Rent"])
        _add(session, other, TransactionType.expense, 9000, date(2024, 3, 15), other_cats["Rent"])
        session.commit()

        totals = OverviewService(session, user.id).month_overview("2024-03")["totals"]
        assert totals["expense"] == Decimal("20.00")
        assert totals["fixed_expenses"] == Decimal("20.00")


def test_month_overview_splits_by_category_kind_only():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        user = _user(session)
        cats = _categories(session, user)
        # Income booked against a fixed category, expense against an income one.
        _add(session, user, TransactionType.income, 10000, date(2024, 3, 2), cats["Rent"])
        _add(session, user, TransactionType.expense, 2500, date(2024, 3, 2), cats["Salary"])
        _add(session, user, TransactionType.expense, 1500, date(2024, 3, 2))
        _add(session, user, TransactionType.expense, 1000, date(2024, 3, 2), cats["Groceries"])
        session.commit()

        totals = OverviewService(session, user.id).month_overview("2024-03")["totals"]
        assert totals["income"] == Decimal("100.00")
        assert totals["expense"] == Decimal("50.00")
        assert totals["fixed_expenses"] == Decimal("0.00")
        assert totals["variable_expenses"] == Decimal("10.00")
        # fixed + variable never exceeds the expense total
        assert totals["fixed_expenses"] + totals["variable_expenses"] <= totals["expense"]


def test_month_overview_bills_block():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        user = _user(session)
        cats = _categories(session, user)
        _add(session, user, TransactionType.income, 300000, date(2024, 3, 1), cats["Salary"])
        for description, cents, due in (
            ("Internet", 5000, date(2024, 3, 20)),
            ("Rent", 100000, date(2024, 3, 1)),
            ("Insurance", 20000, date(2024, 4, 1)),
        ):
            session.add(
                Bill(
                    user_id=user.id,
                    description=description,
                    amount_cents=cents,
                    due_date=due,
                    category_id=cats["Rent"].id,
                )
            )
        session.commit()
        rent = session.scalars(select(Bill).where(Bill.description == "Rent")).one()
        BillService(session, user.id).pay(rent.id, now=datetime(2024, 3, 1, 10))

        overview = OverviewService(session, user.id).month_overview("2024-03")
        bills = overview["bills"]
        assert bills["total_due"] == Decimal("1050.00")
        assert bills["total_paid"] == Decimal("1000.00")
        assert bills["total_open"] == Decimal("50.00")
        assert [item["description"] for item in bills["items"]] == ["Rent", "Internet"]
        assert bills["items"][0]["paid"] is True
        assert bills["items"][0]["paid_at"] == datetime(2024, 3, 1, 10)

        totals = overview["totals"]
        # The payment itself is an expense of the month.
        assert totals["expense"] == Decimal("1000.00")
        assert totals["balance"] == Decimal("2000.00")
        assert totals["cash_available_after_open_bills"] == Decimal("1950.00")


@pytest.mark.parametrize("value", ["2024-13", "2024-00", "2024-1x", "2024/03", "March", ""])
def test_month_overview_rejects_invalid_month(value):
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        user = _user(session)
        with pytest.raises(ValidationError):
            OverviewService(session, user.id).month_overview(value)
