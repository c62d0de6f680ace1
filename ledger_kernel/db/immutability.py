"""
ORM-level immutability enforcement for posted journal data and the
inventory movement ledger.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When immutable                 | Allowed changes
--------------------|--------------------------------|------------------------------
JournalEntry        | status POSTED                  | void stamps, reversed_by_id
JournalEntry        | status VOIDED                  | none
JournalEntry delete | status not DRAFT               | -
JournalLine         | parent entry not DRAFT         | none
InventoryMovement   | always                         | none

updated_at / updated_by_id are audit metadata and may always change.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires before_update / before_delete mapper events during
``session.flush()``.  The listeners inspect attribute history and raise
ImmutabilityViolationError before any SQL reaches the database; the
surrounding transaction (or savepoint) is then rolled back by the caller.

Bulk ``UPDATE`` statements bypass mapper events.  Kernel services never
issue them against protected tables.

Usage:
    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup, idempotent
"""

from sqlalchemy import event, inspect

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

# Fields a POSTED entry may still change, all belonging to void/reverse
_POSTED_ENTRY_MUTABLE = _AUDIT_FIELDS | frozenset(
    {"status", "voided_at", "voided_by_id", "void_reason", "reversed_by_id"}
)


def _blocked(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    return ImmutabilityViolationError(entity_type, str(entity_id), reason)


def _status_before_flush(target) -> str | None:
    """Status as persisted before the pending change (str, or None if new)."""
    history = inspect(target).attrs.status.history
    if history.deleted:
        old = history.deleted[0]
    elif history.unchanged:
        old = history.unchanged[0]
    else:
        return None
    return old.value if hasattr(old, "value") else old


def _changed_fields(target) -> list[str]:
    return [attr.key for attr in inspect(target).attrs if attr.history.has_changes()]


def _check_journal_entry_update(mapper, connection, target):
    from ledger_kernel.models.journal import JournalEntryStatus

    old_status = _status_before_flush(target)
    if old_status == JournalEntryStatus.POSTED.value:
        for field in _changed_fields(target):
            if field not in _POSTED_ENTRY_MUTABLE:
                raise _blocked(
                    "JournalEntry", target.id, "UPDATE",
                    f"field '{field}' of a posted entry cannot change", field,
                )
        if target.status != JournalEntryStatus.POSTED and target.status != JournalEntryStatus.VOIDED:
            raise _blocked(
                "JournalEntry", target.id, "UPDATE",
                f"posted entry cannot move to {target.status}", "status",
            )
    elif old_status == JournalEntryStatus.VOIDED.value:
        for field in _changed_fields(target):
            if field not in _AUDIT_FIELDS:
                raise _blocked(
                    "JournalEntry", target.id, "UPDATE",
                    f"field '{field}' of a voided entry cannot change", field,
                )


def _check_journal_entry_delete(mapper, connection, target):
    from ledger_kernel.models.journal import JournalEntryStatus

    old_status = _status_before_flush(target)
    if old_status is not None and old_status != JournalEntryStatus.DRAFT.value:
        raise _blocked("JournalEntry", target.id, "DELETE", f"{old_status} entries cannot be deleted")


def _parent_is_frozen(target) -> bool:
    from ledger_kernel.models.journal import JournalEntryStatus

    entry = target.entry
    if entry is None:
        return False
    return _status_before_flush(entry) not in (None, JournalEntryStatus.DRAFT.value)


def _check_journal_line_update(mapper, connection, target):
    if _parent_is_frozen(target):
        changed = [f for f in _changed_fields(target) if f not in _AUDIT_FIELDS]
        if changed:
            raise _blocked(
                "JournalLine", target.id, "UPDATE",
                "lines of a posted or voided entry cannot change", changed[0],
            )


def _check_journal_line_delete(mapper, connection, target):
    if _parent_is_frozen(target):
        raise _blocked("JournalLine", target.id, "DELETE", "lines of a posted or voided entry cannot be deleted")


def _check_movement_update(mapper, connection, target):
    changed = [f for f in _changed_fields(target) if f not in _AUDIT_FIELDS]
    if changed:
        raise _blocked("InventoryMovement", target.id, "UPDATE", "movements are append-only", changed[0])


def _check_movement_delete(mapper, connection, target):
    raise _blocked("InventoryMovement", target.id, "DELETE", "movements are append-only")


def _listeners():
    from ledger_kernel.models.inventory import InventoryMovement
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    return (
        (JournalEntry, "before_update", _check_journal_entry_update),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_update),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (InventoryMovement, "before_update", _check_movement_update),
        (InventoryMovement, "before_delete", _check_movement_delete),
    )


def register_immutability_listeners() -> None:
    """Install the mapper listeners.  Safe to call more than once."""
    for target, name, fn in _listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def unregister_immutability_listeners() -> None:
    """Remove the listeners.  Tests only."""
    for target, name, fn in _listeners():
        if event.contains(target, name, fn):
            event.remove(target, name, fn)
