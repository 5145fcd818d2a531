import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from models import BillRecurrence, CategoryKind, TransactionType

# Kept as Decimal internally, written as a JSON number. Amounts are capped at
# money.MAX_AMOUNT_CENTS so the float step reproduces them exactly.
Amount = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]
Ratio = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]


class RegisterIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=200)
    name: Optional[str] = Field(default=None, max_length=120)


class LoginIn(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str]


class TokenOut(BaseModel):
    token: str
    user: UserOut


class CategoryIn(BaseModel):
    name: str = Field(default="", max_length=100)
    kind: str = ""


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    kind: CategoryKind


class TransactionIn(BaseModel):
    amount: Decimal
    type: TransactionType
    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[dt.date] = None
    category_id: Optional[int] = None


class TransactionPatch(BaseModel):
    amount: Optional[Decimal] = None
    type: Optional[TransactionType] = None
    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[dt.date] = None
    category_id: Optional[int] = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: Amount
    type: TransactionType
    description: Optional[str]
    date: dt.date
    category_id: Optional[int]


class BillIn(BaseModel):
    """Bill body for creation and partial update; rules are checked by the service."""

    description: Optional[str] = Field(default=None, max_length=200)
    amount: Optional[Decimal] = None
    due_date: Optional[date] = None
    category_id: Optional[int] = None
    recurrence: Optional[str] = None
    reminder_days: Optional[int] = None


class BillOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    amount: Amount
    due_date: date
    category_id: Optional[int]
    recurrence: BillRecurrence
    reminder_days: int
    paid: bool
    paid_at: Optional[datetime]
    paid_transaction_id: Optional[int]
    bill_template_id: Optional[int]


class BillTemplateIn(BaseModel):
    description: Optional[str] = Field(default=None, max_length=200)
    amount: Optional[Decimal] = None
    category_id: Optional[int] = None
    due_day: Optional[int] = None
    recurrence: Optional[str] = None
    active: Optional[bool] = None
    reminder_days: Optional[int] = None


class BillTemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    amount: Amount
    category_id: Optional[int]
    due_day: int
    recurrence: BillRecurrence
    active: bool
    reminder_days: int


class SummaryOut(BaseModel):
    total_income: Amount
    total_expense: Amount
    balance: Amount


class CategorySummaryOut(BaseModel):
    id: int
    name: str
    kind: CategoryKind
    income: Amount
    expense: Amount


class ByKindOut(BaseModel):
    fixed: Amount
    variable: Amount
    income: Amount


class CategoryBreakdownOut(BaseModel):
    categories: list[CategorySummaryOut]
    by_kind: ByKindOut


class DeletedOut(BaseModel):
    deleted: int


class PeriodOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: datetime = Field(alias="from")
    to: datetime


class OverviewTotalsOut(BaseModel):
    income: Amount
    expense: Amount
    balance: Amount
    fixed_expenses: Amount
    variable_expenses: Amount
    savings_rate: Ratio
    fixed_pct: Ratio
    variable_pct: Ratio
    cash_available_after_open_bills: Amount


class BillItemOut(BaseModel):
    id: int
    description: str
    amount: Amount
    due_date: date
    paid: bool
    paid_at: Optional[datetime]


class BillsBlockOut(BaseModel):
    total_due: Amount
    total_paid: Amount
    total_open: Amount
    items: list[BillItemOut]


class MonthOverviewOut(BaseModel):
    period: PeriodOut
    totals: OverviewTotalsOut
    bills: BillsBlockOut


class AdviceOut(BaseModel):
    id: str
    severity: Literal["info", "warning", "alert"]
    title: str
    message: str


class AdviceTotalsOut(BaseModel):
    income: Amount
    expense: Amount
    balance: Amount
    fixed_expenses: Amount
    variable_expenses: Amount


class FinancialAdviceOut(BaseModel):
    period: PeriodOut
    totals: AdviceTotalsOut
    advices: list[AdviceOut]
