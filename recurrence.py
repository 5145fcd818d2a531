import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from config import get_settings
from models import Bill, BillTemplate
from periods import Period, days_in_month, month_period

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).replace(tzinfo=None)


def local_today() -> date:
    return local_now().date()


def clamp_due_date(year: int, month: int, due_day: int) -> date:
    """Due date for ``due_day`` in the month, snapped to the month's last day."""
    dim = days_in_month(year, month)
    return date(year, month, min(max(due_day, 1), dim))


class BillGenerator:
    def __init__(self, session: Session) -> None:
        self.session = session

    def generate_for_month(self, user_id: int, year: int, month: int) -> list[Bill]:
        period = month_period(year, month)
        stmt = (
            select(BillTemplate)
            .where(BillTemplate.user_id == user_id, BillTemplate.active.is_(True))
            .order_by(BillTemplate.due_day, BillTemplate.id)
        )
        templates = self.session.scalars(stmt).all()

        created: list[Bill] = []
        for template in templates:
            bill = self._materialize(template, period)
            if bill is not None:
                created.append(bill)
        if created:
            self.session.flush()
        logger.info(
            f"bills_generated: user_id={user_id} month={period.slug} "
            f"templates={len(templates)} created={len(created)}"
        )
        return created

    def _materialize(self, template: BillTemplate, period: Period) -> Optional[Bill]:
        exists_stmt = (
            select(Bill.id)
            .where(
                Bill.user_id == template.user_id,
                Bill.bill_template_id == template.id,
                or_(
                    Bill.generated_for == period.slug,
                    Bill.due_date.between(period.start, period.end),
                ),
            )
            .limit(1)
        )
        if self.session.execute(exists_stmt).scalar_one_or_none():
            return None

        bill = Bill(
            user_id=template.user_id,
            description=template.description,
            amount_cents=template.amount_cents,
            due_date=clamp_due_date(period.start.year, period.start.month, template.due_day),
            category_id=template.category_id,
            recurrence=template.recurrence,
            reminder_days=template.reminder_days,
            paid=False,
            bill_template_id=template.id,
            generated_for=period.slug,
        )
        self.session.add(bill)
        return bill
