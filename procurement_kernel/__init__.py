"""
Procurement Kernel

Compliance and approval workflow engine for procurement agreements and
the invoices raised against them:
- Agreement lifecycle state machine
- Invoice compliance gate (auto-settle vs. CFO escalation)
- Role-gated approval actions with an append-only, hash-chained log
- Time-boxed range-disclosure attestations over verified spend
"""

__version__ = "0.1.0"
