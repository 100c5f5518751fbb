"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The credit ledger is only trustworthy if nothing rewrites it.  Corrections are
new entries (a refund, an adjustment), never edits.  This module catches
modifications attempted through the ORM and aborts the flush before any SQL
reaches the database:

    session.flush()
         |
         v
    [before_flush]  --> _check_project_deletion_before_flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Guarded balance and status changes are ORM-enabled bulk UPDATE statements;
those do not fire mapper events, and they are the sanctioned write path.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | Rule                                 | Why
--------------------|--------------------------------------|--------------------------------
LedgerEntry         | Never updated, never deleted         | Ledger is append-only
Account             | balance/entry_count not ORM-editable | Counter must equal ledger sum
                    | Never deleted                        | Entries reference it
ProjectHistoryEntry | Never updated; deleted only with a   | Feedback and estimate history
                    | deletable (draft/estimating) project | must not be rewritten
Project             | Not deletable once ledger entries    | Entries must keep their project
                    | reference it                         |

===============================================================================
USAGE
===============================================================================

    from voicecraft_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, exists, select
from sqlalchemy.orm import Session

from voicecraft_kernel.exceptions import ImmutabilityViolationError
from voicecraft_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_DELETABLE_PROJECT_STATUSES = ("draft", "estimating")


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_project_deletion_before_flush(session, flush_context, instances):
    """
    Prevent deleting projects that ledger entries reference.

    Runs in SessionEvents.before_flush, before the flush plan (and the
    cascade to work items and history) is finalized.
    """
    from voicecraft_kernel.exceptions import ProjectReferencedError
    from voicecraft_kernel.models.ledger import LedgerEntry
    from voicecraft_kernel.models.project import Project

    for obj in list(session.deleted):
        if not isinstance(obj, Project):
            continue

        with session.no_autoflush:
            referenced = session.execute(
                select(exists().where(LedgerEntry.project_id == obj.id))
            ).scalar()

        if referenced:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Project",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "project_has_ledger_entries",
                },
            )
            raise ProjectReferencedError(project_id=obj.id)


def _check_ledger_entry_immutability(mapper, connection, target):
    """Ledger entries are immutable from creation."""
    raise _blocked(
        "LedgerEntry", target.id, "UPDATE", "Ledger entries cannot be modified"
    )


def _check_ledger_entry_delete(mapper, connection, target):
    raise _blocked(
        "LedgerEntry", target.id, "DELETE", "Ledger entries cannot be deleted"
    )


def _check_account_counter_immutability(mapper, connection, target):
    """balance and entry_count move only through LedgerService.record."""
    from sqlalchemy import inspect

    insp = inspect(target)
    for key in ("balance", "entry_count"):
        if insp.attrs[key].history.has_changes():
            raise _blocked(
                "Account",
                target.id,
                "UPDATE",
                f"Field '{key}' can only change by recording a ledger entry",
            )


def _check_account_delete(mapper, connection, target):
    raise _blocked(
        "Account", target.id, "DELETE", "Credit accounts cannot be deleted"
    )


def _check_history_entry_immutability(mapper, connection, target):
    raise _blocked(
        "ProjectHistoryEntry",
        target.id,
        "UPDATE",
        "Project history entries cannot be modified",
    )


def _check_history_entry_delete(mapper, connection, target):
    """Allowed only while the owning project is itself deletable."""
    from voicecraft_kernel.models.project import Project

    status = connection.execute(
        select(Project.status).where(Project.id == target.project_id)
    ).scalar()
    if status not in _DELETABLE_PROJECT_STATUSES:
        raise _blocked(
            "ProjectHistoryEntry",
            target.id,
            "DELETE",
            f"Project history cannot be deleted in status '{status}'",
        )


_LISTENERS = (
    ("LedgerEntry", "before_update", _check_ledger_entry_immutability),
    ("LedgerEntry", "before_delete", _check_ledger_entry_delete),
    ("Account", "before_update", _check_account_counter_immutability),
    ("Account", "before_delete", _check_account_delete),
    ("ProjectHistoryEntry", "before_update", _check_history_entry_immutability),
    ("ProjectHistoryEntry", "before_delete", _check_history_entry_delete),
)


def _models() -> dict:
    from voicecraft_kernel.models import Account, LedgerEntry, ProjectHistoryEntry

    return {
        "Account": Account,
        "LedgerEntry": LedgerEntry,
        "ProjectHistoryEntry": ProjectHistoryEntry,
    }


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call once after models are importable and before any database
    operations begin.  Calling twice is harmless.
    """
    models = _models()
    if not event.contains(Session, "before_flush", _check_project_deletion_before_flush):
        event.listen(Session, "before_flush", _check_project_deletion_before_flush)
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate
    immutability rules.
    """
    models = _models()
    _safe_remove_listener(Session, "before_flush", _check_project_deletion_before_flush)
    for model_name, event_name, listener_fn in _LISTENERS:
        _safe_remove_listener(models[model_name], event_name, listener_fn)
