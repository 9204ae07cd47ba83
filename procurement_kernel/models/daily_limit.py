"""
Per-category daily spend ceiling.

At most one row per category.  A category without a row falls back to the
configured default limit; see DailyLimitRegistry for the left-join view.
Rows are only written by ApprovalActionProcessor.update_daily_limit, which
logs every change.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base


class DailyLimitModel(Base):
    __tablename__ = "daily_limits"

    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("categories.id"), nullable=False, unique=True,
    )
    limit_amount: Mapped[Decimal] = mapped_column(nullable=False)
    updated_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<DailyLimit {self.category_id}: {self.limit_amount}>"
