"""Read-only query selectors.  Selectors never add, flush or commit."""

from procurement_kernel.selectors.approval_queue_selector import ApprovalQueueSelector
from procurement_kernel.selectors.base import BaseSelector
from procurement_kernel.selectors.spend_selector import SpendSelector

__all__ = ["ApprovalQueueSelector", "BaseSelector", "SpendSelector"]
