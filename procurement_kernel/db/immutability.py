"""
ORM-level immutability enforcement.

SQLAlchemy fires ``before_update`` / ``before_delete`` mapper events before
the SQL for a flush is emitted.  The listeners registered here check the
append-only and frozen-field rules of the procurement records and raise
ImmutabilityViolationError, which aborts the flush before the database is
touched.

    session.flush()
         |
         v
    [before_update] --> _check_*_update() --> ImmutabilityViolationError
         |
    [before_delete] --> _reject_delete() ---> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Entity            | Rule
------------------|----------------------------------------------------------
ApprovalLog       | ALWAYS immutable; never deleted
AgreementItem     | ALWAYS immutable; never deleted
ReceiptItem       | ALWAYS immutable; never deleted
BlockchainRecord  | ALWAYS immutable; never deleted
Agreement         | only status/updated_at change; terminal status is final
Receipt           | only status/updated_at change; terminal status is final
RangeProof        | only status changes, and only valid -> revoked

Only column attributes are inspected.  Attaching a child row (for example
a settlement record on approval) marks the parent dirty without changing
any of its columns, and that is allowed.

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect

from procurement_kernel.exceptions import ImmutabilityViolationError
from procurement_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AGREEMENT_MUTABLE = frozenset({"status", "updated_at"})
_RECEIPT_MUTABLE = frozenset({"status", "updated_at"})
_RANGE_PROOF_MUTABLE = frozenset({"status"})

_TERMINAL_AGREEMENT = frozenset({"active", "rejected"})
_TERMINAL_RECEIPT = frozenset({"verified", "rejected"})


def _entity_name(target) -> str:
    return type(target).__name__.removesuffix("Model")


def _violation(target, operation: str, reason: str, field: str | None = None):
    entity_type = _entity_name(target)
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed_columns(target) -> list[str]:
    insp = inspect(target)
    return [
        attr.key
        for attr in insp.mapper.column_attrs
        if insp.attrs[attr.key].history.has_changes()
    ]


def _status_change(target) -> tuple[str, str] | None:
    history = inspect(target).attrs.status.history
    if not history.deleted or not history.added:
        return None
    old, new = history.deleted[0], history.added[0]
    return str(getattr(old, "value", old)), str(getattr(new, "value", new))


def _check_frozen_fields(target, mutable: frozenset[str]) -> None:
    for key in _changed_columns(target):
        if key not in mutable:
            raise _violation(
                target,
                "UPDATE",
                f"Cannot modify field '{key}' on {_entity_name(target)}",
                field=key,
            )


def _check_append_only_update(mapper, connection, target):
    """Append-only records: any column change is a violation."""
    changed = _changed_columns(target)
    if changed:
        raise _violation(
            target,
            "UPDATE",
            f"{_entity_name(target)} records are append-only",
            field=changed[0],
        )


def _reject_delete(mapper, connection, target):
    raise _violation(
        target, "DELETE", f"{_entity_name(target)} records cannot be deleted",
    )


def _check_agreement_update(mapper, connection, target):
    _check_frozen_fields(target, _AGREEMENT_MUTABLE)
    change = _status_change(target)
    if change is not None and change[0] in _TERMINAL_AGREEMENT:
        raise _violation(
            target,
            "UPDATE",
            f"Agreement status '{change[0]}' is terminal; cannot move to '{change[1]}'",
            field="status",
        )


def _check_receipt_update(mapper, connection, target):
    _check_frozen_fields(target, _RECEIPT_MUTABLE)
    change = _status_change(target)
    if change is not None and change[0] in _TERMINAL_RECEIPT:
        raise _violation(
            target,
            "UPDATE",
            f"Receipt status '{change[0]}' is terminal; cannot move to '{change[1]}'",
            field="status",
        )


def _check_range_proof_update(mapper, connection, target):
    _check_frozen_fields(target, _RANGE_PROOF_MUTABLE)
    change = _status_change(target)
    if change is not None and change != ("valid", "revoked"):
        raise _violation(
            target,
            "UPDATE",
            f"RangeProof status cannot move from '{change[0]}' to '{change[1]}'",
            field="status",
        )


def _listener_table():
    from procurement_kernel.models import (
        AgreementItemModel,
        AgreementModel,
        ApprovalLogModel,
        BlockchainRecordModel,
        RangeProofModel,
        ReceiptItemModel,
        ReceiptModel,
    )

    return [
        (ApprovalLogModel, "before_update", _check_append_only_update),
        (ApprovalLogModel, "before_delete", _reject_delete),
        (AgreementItemModel, "before_update", _check_append_only_update),
        (AgreementItemModel, "before_delete", _reject_delete),
        (ReceiptItemModel, "before_update", _check_append_only_update),
        (ReceiptItemModel, "before_delete", _reject_delete),
        (BlockchainRecordModel, "before_update", _check_append_only_update),
        (BlockchainRecordModel, "before_delete", _reject_delete),
        (AgreementModel, "before_update", _check_agreement_update),
        (AgreementModel, "before_delete", _reject_delete),
        (ReceiptModel, "before_update", _check_receipt_update),
        (ReceiptModel, "before_delete", _reject_delete),
        (RangeProofModel, "before_update", _check_range_proof_update),
        (RangeProofModel, "before_delete", _reject_delete),
    ]


def register_immutability_listeners() -> None:
    """
    Register all immutability listeners.  Safe to call more than once.

    Called by init_engine_from_url(); call it directly only when building
    sessions outside the engine module.
    """
    for model, event_name, listener in _listener_table():
        if not event.contains(model, event_name, listener):
            event.listen(model, event_name, listener)


def unregister_immutability_listeners() -> None:
    """
    Remove the immutability listeners.

    WARNING: tests only, to set up a forbidden state on purpose.
    """
    for model, event_name, listener in _listener_table():
        if event.contains(model, event_name, listener):
            event.remove(model, event_name, listener)
