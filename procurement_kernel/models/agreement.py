"""
Module: procurement_kernel.models.agreement
Responsibility: ORM persistence for procurement agreements and their line
    items.
Architecture position: Kernel > Models.  May import from db/ and domain DTOs.

Invariants enforced:
    - ``total_value`` equals the sum of item subtotals at creation and is
      never recomputed (frozen by db/immutability.py).
    - Items are immutable once written; agreements are never deleted.
    - ``status`` is only written by the approval action processor.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base
from procurement_kernel.models.reference import Category, Vendor


class AgreementModel(Base):
    """A procurement agreement between the organization and a vendor."""

    __tablename__ = "agreements"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_vendor', 'pending_cfo', 'active', 'rejected')",
            name="ck_agreements_valid_status",
        ),
        CheckConstraint("end_date > start_date", name="ck_agreements_period"),
        Index("idx_agreement_status", "status"),
        Index("idx_agreement_created", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(20), primary_key=True)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendors.id"), nullable=False)
    category_id: Mapped[UUID] = mapped_column(ForeignKey("categories.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_value: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    vendor: Mapped[Vendor] = relationship(lazy="joined")
    category: Mapped[Category] = relationship(lazy="joined")
    items: Mapped[list[AgreementItemModel]] = relationship(
        back_populates="agreement",
        order_by="AgreementItemModel.position",
        lazy="selectin",
    )

    def to_dto(self):
        from procurement_kernel.domain.clock import as_utc
        from procurement_kernel.domain.dtos import Agreement, AgreementItem
        from procurement_kernel.domain.lifecycle import AgreementStatus

        return Agreement(
            id=self.id,
            vendor_id=self.vendor_id,
            vendor_name=self.vendor.name,
            category_id=self.category_id,
            category_name=self.category.name,
            title=self.title,
            start_date=self.start_date,
            end_date=self.end_date,
            payment_terms=self.payment_terms,
            total_value=self.total_value,
            status=AgreementStatus(self.status),
            created_by=self.created_by,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
            items=tuple(
                AgreementItem(
                    item_name=item.item_name,
                    specifications=item.specifications,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    subtotal=item.subtotal,
                    position=item.position,
                )
                for item in self.items
            ),
        )

    def __repr__(self) -> str:
        return f"<Agreement {self.id} ({self.status})>"


class AgreementItemModel(Base):
    """Ordered line item of an agreement; subtotal = quantity x unit_price."""

    __tablename__ = "agreement_items"

    __table_args__ = (
        UniqueConstraint("agreement_id", "position", name="uq_agreement_item_position"),
        CheckConstraint("quantity > 0", name="ck_agreement_item_quantity"),
    )

    agreement_id: Mapped[str] = mapped_column(ForeignKey("agreements.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    item_name: Mapped[str] = mapped_column(String(300), nullable=False)
    specifications: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)

    agreement: Mapped[AgreementModel] = relationship(back_populates="items")
