"""
Module: procurement_kernel.models.reference
Responsibility: Reference data read by the workflow: vendors, spend
    categories and user accounts.
Architecture position: Kernel > Models.  May import from db/ only.

Vendors and categories are created by admin import and never mutated by
the approval workflow.  User accounts exist so every mutating call can
name an explicit actor; identity is never resolved implicitly from
storage.
"""

from datetime import datetime

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base


class Vendor(Base):
    __tablename__ = "vendors"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self):
        from procurement_kernel.domain.dtos import VendorRef

        return VendorRef(id=self.id, name=self.name, email=self.email, address=self.address)

    def __repr__(self) -> str:
        return f"<Vendor {self.name}>"


class Category(Base):
    """Spend classification; drives the daily limit lookup."""

    __tablename__ = "categories"

    __table_args__ = (
        UniqueConstraint("name", name="uq_category_name"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self):
        from procurement_kernel.domain.dtos import CategoryRef

        return CategoryRef(
            id=self.id,
            name=self.name,
            description=self.description,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<Category {self.name}>"


class UserAccount(Base):
    """An identity that can act in the workflow or issue range proofs."""

    __tablename__ = "users"

    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    organization_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    wallet_address: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    @property
    def issuer_name(self) -> str:
        return self.organization_name or self.display_name

    def to_dto(self):
        from procurement_kernel.domain.dtos import UserRef
        from procurement_kernel.domain.lifecycle import Role

        return UserRef(
            id=self.id,
            display_name=self.display_name,
            role=Role(self.role),
            organization_name=self.organization_name,
            wallet_address=self.wallet_address,
        )

    def __repr__(self) -> str:
        return f"<UserAccount {self.display_name} ({self.role})>"
