"""
Module: procurement_kernel.models.receipt
Responsibility: ORM persistence for submitted invoices (receipts), their
    line items, and the opaque collaborator references attached to them.
Architecture position: Kernel > Models.  May import from db/ and domain DTOs.

Invariants enforced:
    - Financial fields (totals, tax, items, dates, vendor, category) are
      frozen after insert.  Only ``status`` and ``updated_at`` change, and
      only out of ``pending_approval`` (db/immutability.py).
    - Receipts are never deleted.
    - A settlement record exists only for a ``verified`` receipt.
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
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base
from procurement_kernel.models.reference import Category


class ReceiptModel(Base):
    """An invoice billed against an agreement."""

    __tablename__ = "receipts"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_approval', 'verified', 'rejected')",
            name="ck_receipts_valid_status",
        ),
        Index("idx_receipt_status", "status"),
        Index("idx_receipt_date", "receipt_date"),
        Index("idx_receipt_agreement", "agreement_id"),
    )

    id: Mapped[str] = mapped_column(String(20), primary_key=True)
    agreement_id: Mapped[str | None] = mapped_column(
        ForeignKey("agreements.id"), nullable=True,
    )
    vendor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    receipt_date: Mapped[date] = mapped_column(Date, nullable=False)
    category_id: Mapped[UUID] = mapped_column(ForeignKey("categories.id"), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    confidence_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 4), nullable=True)
    created_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    category: Mapped[Category] = relationship(lazy="joined")
    items: Mapped[list[ReceiptItemModel]] = relationship(
        back_populates="receipt",
        order_by="ReceiptItemModel.sequence",
        lazy="selectin",
    )
    blockchain_record: Mapped[BlockchainRecordModel | None] = relationship(
        back_populates="receipt", lazy="selectin",
    )
    ipfs_record: Mapped[IpfsRecordModel | None] = relationship(
        back_populates="receipt", lazy="selectin",
    )

    def to_dto(self):
        from procurement_kernel.domain.clock import as_utc
        from procurement_kernel.domain.dtos import (
            DocumentRecord,
            Receipt,
            ReceiptItem,
            SettlementRecord,
        )
        from procurement_kernel.domain.lifecycle import ReceiptStatus

        settlement = None
        if self.blockchain_record is not None:
            settlement = SettlementRecord(
                tx_hash=self.blockchain_record.tx_hash,
                block_number=self.blockchain_record.block_number,
                network=self.blockchain_record.network,
            )
        document = None
        if self.ipfs_record is not None:
            document = DocumentRecord(
                cid=self.ipfs_record.cid,
                file_type=self.ipfs_record.file_type,
            )

        return Receipt(
            id=self.id,
            agreement_id=self.agreement_id,
            vendor_name=self.vendor_name,
            invoice_number=self.invoice_number,
            receipt_date=self.receipt_date,
            category_id=self.category_id,
            category_name=self.category.name,
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            total_amount=self.total_amount,
            status=ReceiptStatus(self.status),
            confidence_score=self.confidence_score,
            created_by=self.created_by,
            created_at=as_utc(self.created_at),
            items=tuple(
                ReceiptItem(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total=item.total,
                    sequence=item.sequence,
                )
                for item in self.items
            ),
            settlement=settlement,
            document=document,
        )

    def __repr__(self) -> str:
        return f"<Receipt {self.id} ({self.status})>"


class ReceiptItemModel(Base):
    __tablename__ = "receipt_items"

    __table_args__ = (
        UniqueConstraint("receipt_id", "sequence", name="uq_receipt_item_sequence"),
    )

    receipt_id: Mapped[str] = mapped_column(ForeignKey("receipts.id"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)

    receipt: Mapped[ReceiptModel] = relationship(back_populates="items")


class BlockchainRecordModel(Base):
    """Settlement reference returned by the ledger collaborator."""

    __tablename__ = "blockchain_records"

    receipt_id: Mapped[str] = mapped_column(
        ForeignKey("receipts.id"), nullable=False, unique=True,
    )
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    block_number: Mapped[int] = mapped_column(nullable=False)
    network: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    receipt: Mapped[ReceiptModel] = relationship(back_populates="blockchain_record")


class IpfsRecordModel(Base):
    """Content identifier of the stored source document."""

    __tablename__ = "ipfs_records"

    receipt_id: Mapped[str] = mapped_column(
        ForeignKey("receipts.id"), nullable=False, unique=True,
    )
    cid: Mapped[str] = mapped_column(String(100), nullable=False)
    file_type: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    receipt: Mapped[ReceiptModel] = relationship(back_populates="ipfs_record")
