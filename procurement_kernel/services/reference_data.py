"""
ReferenceDataService -- vendors, categories and user accounts.

Responsibility:
    Admin import of reference data and id lookups used by the agreement,
    compliance and proof services.  The approval workflow never mutates
    these rows.

Failure modes:
    - VendorNotFoundError / CategoryNotFoundError / UserNotFoundError on
      unknown ids.
    - ValidationError on blank names or an unknown role.
"""

from uuid import UUID

from sqlalchemy import select

from procurement_kernel.domain.dtos import CategoryRef, UserRef, VendorRef, require_text
from procurement_kernel.domain.lifecycle import Role
from procurement_kernel.exceptions import (
    CategoryNotFoundError,
    UserNotFoundError,
    VendorNotFoundError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.reference import Category, UserAccount, Vendor
from procurement_kernel.services.base import BaseService

logger = get_logger("services.reference_data")


class ReferenceDataService(BaseService):

    # -------------------------------------------------------------------------
    # Admin import
    # -------------------------------------------------------------------------

    def register_vendor(
        self,
        name: str,
        email: str | None = None,
        address: str | None = None,
    ) -> VendorRef:
        vendor = Vendor(
            name=require_text(name, "name"),
            email=email,
            address=address,
            created_at=self.clock.now(),
        )
        self.session.add(vendor)
        self.session.flush()
        logger.info("vendor_registered", extra={"vendor_id": str(vendor.id)})
        return vendor.to_dto()

    def register_category(
        self,
        name: str,
        description: str | None = None,
        is_active: bool = True,
    ) -> CategoryRef:
        category = Category(
            name=require_text(name, "name"),
            description=description,
            is_active=is_active,
            created_at=self.clock.now(),
        )
        self.session.add(category)
        self.session.flush()
        logger.info("category_registered", extra={"category_id": str(category.id)})
        return category.to_dto()

    def register_user(
        self,
        display_name: str,
        role: Role | str,
        organization_name: str | None = None,
        wallet_address: str | None = None,
    ) -> UserRef:
        user = UserAccount(
            display_name=require_text(display_name, "display_name"),
            role=Role.parse(role, "role").value,
            organization_name=organization_name,
            wallet_address=wallet_address,
            created_at=self.clock.now(),
        )
        self.session.add(user)
        self.session.flush()
        logger.info(
            "user_registered",
            extra={"user_id": str(user.id), "role": user.role},
        )
        return user.to_dto()

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _vendor_row(self, vendor_id: UUID) -> Vendor:
        vendor = self.session.get(Vendor, vendor_id)
        if vendor is None:
            raise VendorNotFoundError(vendor_id)
        return vendor

    def _category_row(self, category_id: UUID) -> Category:
        category = self.session.get(Category, category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    def _user_row(self, user_id: UUID) -> UserAccount:
        user = self.session.get(UserAccount, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_vendor(self, vendor_id: UUID) -> VendorRef:
        return self._vendor_row(vendor_id).to_dto()

    def get_category(self, category_id: UUID) -> CategoryRef:
        return self._category_row(category_id).to_dto()

    def get_user(self, user_id: UUID) -> UserRef:
        return self._user_row(user_id).to_dto()

    def list_vendors(self) -> list[VendorRef]:
        rows = self.session.execute(select(Vendor).order_by(Vendor.name)).scalars()
        return [row.to_dto() for row in rows]

    def list_categories(self, active_only: bool = True) -> list[CategoryRef]:
        query = select(Category).order_by(Category.name)
        if active_only:
            query = query.where(Category.is_active.is_(True))
        return [row.to_dto() for row in self.session.execute(query).scalars()]
