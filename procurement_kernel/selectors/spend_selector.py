"""
SpendSelector -- aggregates over verified receipts.

``verified_total`` backs range-proof generation; ``spending_report`` and
``dashboard_summary`` back the reporting screens.  Only ``verified``
receipts count as spend.  Receipt dates are compared as calendar dates, so
a window covers start 00:00 through end 23:59:59 inclusive.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal

from sqlalchemy import func, select

from procurement_kernel.db.types import money_from_db
from procurement_kernel.domain.compliance import DEFAULT_DAILY_LIMIT
from procurement_kernel.domain.dtos import CategorySpend, DashboardSummary, Receipt
from procurement_kernel.domain.lifecycle import AgreementStatus, ReceiptStatus
from procurement_kernel.models.agreement import AgreementModel
from procurement_kernel.models.daily_limit import DailyLimitModel
from procurement_kernel.models.receipt import ReceiptModel
from procurement_kernel.models.reference import Category
from procurement_kernel.selectors.base import BaseSelector

_VERIFIED = ReceiptStatus.VERIFIED.value


class SpendSelector(BaseSelector):

    def __init__(self, session, default_daily_limit: Decimal = DEFAULT_DAILY_LIMIT):
        super().__init__(session)
        self.default_daily_limit = default_daily_limit

    def verified_total(self, start: date, end: date) -> Decimal:
        """Sum of ``total_amount`` over verified receipts dated in [start, end]."""
        total = self.session.execute(
            select(func.sum(ReceiptModel.total_amount)).where(
                ReceiptModel.status == _VERIFIED,
                ReceiptModel.receipt_date >= start,
                ReceiptModel.receipt_date <= end,
            )
        ).scalar_one()
        return money_from_db(total)

    def spending_report(
        self,
        start: date,
        end: date,
        category_names: list[str] | None = None,
    ) -> list[Receipt]:
        """Verified receipts in the window, latest receipt date first."""
        query = (
            select(ReceiptModel)
            .where(
                ReceiptModel.status == _VERIFIED,
                ReceiptModel.receipt_date >= start,
                ReceiptModel.receipt_date <= end,
            )
            .order_by(ReceiptModel.receipt_date.desc(), ReceiptModel.id.desc())
        )
        if category_names:
            query = query.join(Category, Category.id == ReceiptModel.category_id).where(
                Category.name.in_(category_names)
            )
        return [row.to_dto() for row in self.session.execute(query).unique().scalars()]

    def dashboard_summary(self, as_of: datetime) -> DashboardSummary:
        """
        Headline counts plus this month's verified spend per category.

        "This month" means receipts created since the first day of
        ``as_of``'s month (UTC).
        """
        month_start = datetime.combine(
            as_of.date().replace(day=1), time.min, tzinfo=timezone.utc,
        )

        active_agreements = self.session.execute(
            select(func.count()).select_from(AgreementModel).where(
                AgreementModel.status == AgreementStatus.ACTIVE.value
            )
        ).scalar_one()
        pending_invoices = self.session.execute(
            select(func.count()).select_from(ReceiptModel).where(
                ReceiptModel.status == ReceiptStatus.PENDING_APPROVAL.value
            )
        ).scalar_one()

        this_month = (
            ReceiptModel.status == _VERIFIED,
            ReceiptModel.created_at >= month_start,
        )
        approved_count, approved_value = self.session.execute(
            select(func.count(ReceiptModel.id), func.sum(ReceiptModel.total_amount))
            .where(*this_month)
        ).one()

        rows = self.session.execute(
            select(
                Category.name,
                func.sum(ReceiptModel.total_amount),
                func.count(ReceiptModel.id),
                DailyLimitModel.limit_amount,
            )
            .join(Category, Category.id == ReceiptModel.category_id)
            .outerjoin(DailyLimitModel, DailyLimitModel.category_id == Category.id)
            .where(*this_month)
            .group_by(Category.id, Category.name, DailyLimitModel.limit_amount)
            .order_by(Category.name)
        ).all()

        return DashboardSummary(
            active_agreements=active_agreements,
            pending_invoices=pending_invoices,
            approved_this_month=approved_count,
            total_value_this_month=money_from_db(approved_value),
            category_spending=tuple(
                CategorySpend(
                    category=name,
                    amount=money_from_db(amount),
                    count=count,
                    limit=(
                        self.default_daily_limit if limit is None
                        else money_from_db(limit)
                    ),
                )
                for name, amount, count, limit in rows
            ),
        )
