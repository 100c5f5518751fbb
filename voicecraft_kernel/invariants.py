"""
Kernel Invariants Contract.

These invariants are structural law. They are hardcoded in the ledger,
the project state machine and the ORM listeners. No configuration value
may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across LedgerService, ProjectWorkflowService,
PayoutOrchestrator and db/immutability.py.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Each value names one structural guarantee that the kernel provides
    unconditionally. Configuration may influence *how much* is charged,
    but never *whether* these rules apply.
    """

    NON_NEGATIVE_BALANCE = "non_negative_balance"
    """No account balance is ever below zero. Enforced by the guarded
    balance UPDATE in LedgerService.record and a DB check constraint."""

    LEDGER_APPEND_ONLY = "ledger_append_only"
    """Ledger entries are never updated or deleted. Enforced by ORM
    listeners (voicecraft_kernel.db.immutability)."""

    BALANCE_MATCHES_LEDGER = "balance_matches_ledger"
    """The materialized account balance equals the sum of the account's
    entries. Both change in the same transaction, only in
    LedgerService.record."""

    SINGLE_SETTLEMENT = "single_settlement"
    """A project is paid out at most once and never after a refund.
    Enforced by the state machine and re-checked by LedgerService."""

    GUARDED_TRANSITIONS = "guarded_transitions"
    """Every status change is a conditional UPDATE on the expected status
    and version; losers of a race observe StaleProjectStateError."""

    ROUND_UP_CONVERSION = "round_up_conversion"
    """Dollar figures become credits by ceil(dollars * 100), never by
    truncation or banker's rounding."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "voicecraft_config",
)
