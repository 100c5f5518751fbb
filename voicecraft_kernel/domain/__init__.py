"""
Pure domain layer.

Value objects, the project lifecycle table, credit conversion and the
records returned by services, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Network
"""

from voicecraft_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from voicecraft_kernel.domain.credits import (
    DEFAULT_OPERATION_COSTS,
    BillableOperation,
    CreditReason,
    credits_to_dollars,
    dollars_to_credits,
)
from voicecraft_kernel.domain.dtos import (
    LedgerEntryRecord,
    LedgerPage,
    PayoutResult,
    ProjectRecord,
    RefundResult,
    ReservationResult,
    WorkItemSpec,
)
from voicecraft_kernel.domain.estimation import EstimateResult, ProjectSummary
from voicecraft_kernel.domain.project_workflow import (
    PROJECT_WORKFLOW,
    ProjectAction,
    ProjectStatus,
)

__all__ = [
    "BillableOperation",
    "Clock",
    "CreditReason",
    "DEFAULT_OPERATION_COSTS",
    "DeterministicClock",
    "EstimateResult",
    "LedgerEntryRecord",
    "LedgerPage",
    "PayoutResult",
    "PROJECT_WORKFLOW",
    "ProjectAction",
    "ProjectRecord",
    "ProjectStatus",
    "ProjectSummary",
    "RefundResult",
    "ReservationResult",
    "SystemClock",
    "WorkItemSpec",
    "credits_to_dollars",
    "dollars_to_credits",
]
