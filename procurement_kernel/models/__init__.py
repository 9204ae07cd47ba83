"""ORM models for the procurement kernel."""

from procurement_kernel.models.agreement import AgreementItemModel, AgreementModel
from procurement_kernel.models.approval_log import ApprovalLogModel
from procurement_kernel.models.daily_limit import DailyLimitModel
from procurement_kernel.models.range_proof import RangeProofModel
from procurement_kernel.models.receipt import (
    BlockchainRecordModel,
    IpfsRecordModel,
    ReceiptItemModel,
    ReceiptModel,
)
from procurement_kernel.models.reference import Category, UserAccount, Vendor

__all__ = [
    "AgreementItemModel",
    "AgreementModel",
    "ApprovalLogModel",
    "BlockchainRecordModel",
    "Category",
    "DailyLimitModel",
    "IpfsRecordModel",
    "RangeProofModel",
    "ReceiptItemModel",
    "ReceiptModel",
    "UserAccount",
    "Vendor",
]
