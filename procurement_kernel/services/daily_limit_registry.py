"""
DailyLimitRegistry -- per-category daily spend ceilings.

The registry is an explicit left join of categories against the optional
limit rows.  A category without a row resolves to the configured default
ceiling, so callers never merge categories and limits themselves.

Writes go through ApprovalActionProcessor.update_daily_limit, which logs
every change to the approval trail.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_kernel.domain.compliance import DEFAULT_DAILY_LIMIT
from procurement_kernel.domain.dtos import DailyLimitView
from procurement_kernel.exceptions import CategoryNotFoundError
from procurement_kernel.models.daily_limit import DailyLimitModel
from procurement_kernel.models.reference import Category


class DailyLimitRegistry:
    def __init__(self, session: Session, default_limit: Decimal = DEFAULT_DAILY_LIMIT):
        self.session = session
        self.default_limit = default_limit

    def _view_query(self):
        return (
            select(Category, DailyLimitModel)
            .outerjoin(DailyLimitModel, DailyLimitModel.category_id == Category.id)
        )

    def _to_view(self, category: Category, limit: DailyLimitModel | None) -> DailyLimitView:
        if limit is None:
            return DailyLimitView(
                category_id=category.id,
                category_name=category.name,
                limit_amount=self.default_limit,
                is_default=True,
            )
        return DailyLimitView(
            category_id=category.id,
            category_name=category.name,
            limit_amount=limit.limit_amount,
            is_default=False,
            limit_id=limit.id,
        )

    def get_view(self, category_id: UUID) -> DailyLimitView:
        row = self.session.execute(
            self._view_query().where(Category.id == category_id)
        ).one_or_none()
        if row is None:
            raise CategoryNotFoundError(category_id)
        return self._to_view(*row)

    def effective_limit(self, category_id: UUID) -> Decimal:
        """Explicit limit for the category, else the default ceiling."""
        return self.get_view(category_id).limit_amount

    def list_limits(self) -> list[DailyLimitView]:
        """One row per category, ordered by category name."""
        rows = self.session.execute(self._view_query().order_by(Category.name)).all()
        return [self._to_view(category, limit) for category, limit in rows]
