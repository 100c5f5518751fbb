"""
DTOs -- immutable records returned across the kernel boundary.

Responsibility:
    Services and selectors return these frozen dataclasses instead of ORM
    instances, so callers never hold a live, lazily-loading entity outside
    the session that produced it.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  from_model() class methods are the
    boundary converters and are only invoked from services/ and selectors/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from voicecraft_kernel.domain.credits import CreditReason
from voicecraft_kernel.domain.project_workflow import ProjectStatus

if TYPE_CHECKING:
    from voicecraft_kernel.models.expert import ExpertProfile as ExpertProfileModel
    from voicecraft_kernel.models.ledger import LedgerEntry as LedgerEntryModel
    from voicecraft_kernel.models.project import (
        Project as ProjectModel,
        ProjectHistoryEntry as ProjectHistoryEntryModel,
        ProjectWorkItem as ProjectWorkItemModel,
    )


@dataclass(frozen=True)
class LedgerEntryRecord:
    id: UUID
    account_id: UUID
    amount: int
    reason: CreditReason
    balance_after: int
    account_seq: int
    project_id: UUID | None = None
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    idempotency_key: str | None = None
    created_at: datetime | None = None
    created_by_id: UUID | None = None

    @classmethod
    def from_model(cls, entry: LedgerEntryModel) -> LedgerEntryRecord:
        return cls(
            id=entry.id,
            account_id=entry.account_id,
            amount=entry.amount,
            reason=CreditReason(entry.reason),
            balance_after=entry.balance_after,
            account_seq=entry.account_seq,
            project_id=entry.project_id,
            description=entry.description,
            metadata=dict(entry.entry_metadata or {}),
            idempotency_key=entry.idempotency_key,
            created_at=entry.created_at,
            created_by_id=entry.created_by_id,
        )


@dataclass(frozen=True)
class LedgerPage:
    """One page of an account's history, newest first."""

    account_id: UUID
    entries: tuple[LedgerEntryRecord, ...]
    next_cursor: int | None

    @property
    def entry_ids(self) -> tuple[UUID, ...]:
        return tuple(e.id for e in self.entries)


@dataclass(frozen=True)
class BalanceCheck:
    """Materialized counter vs. sum of entries for one account."""

    account_id: UUID
    counter_balance: int
    derived_balance: int
    entry_count: int
    max_account_seq: int

    @property
    def is_consistent(self) -> bool:
        return (
            self.counter_balance == self.derived_balance
            and self.counter_balance >= 0
            and self.entry_count == self.max_account_seq
        )


@dataclass(frozen=True)
class WorkItemRecord:
    work_item_id: UUID
    role: str
    position: int
    label: str | None
    duration_seconds: Decimal | None

    @classmethod
    def from_model(cls, item: ProjectWorkItemModel) -> WorkItemRecord:
        return cls(
            work_item_id=item.work_item_id,
            role=item.role,
            position=item.position,
            label=item.label,
            duration_seconds=item.duration_seconds,
        )


@dataclass(frozen=True)
class ProjectHistoryRecord:
    kind: str
    project_version: int
    payload: dict[str, Any]
    created_at: datetime
    created_by_id: UUID

    @classmethod
    def from_model(cls, row: ProjectHistoryEntryModel) -> ProjectHistoryRecord:
        return cls(
            kind=row.kind,
            project_version=row.project_version,
            payload=dict(row.payload or {}),
            created_at=row.created_at,
            created_by_id=row.created_by_id,
        )


@dataclass(frozen=True)
class ProjectRecord:
    id: UUID
    client_account_id: UUID
    status: ProjectStatus
    version: int
    name: str
    priority: str
    expert_id: UUID | None = None
    description: str | None = None
    request_text: str | None = None
    instructions: str | None = None
    deadline: datetime | None = None
    estimated_cost: Decimal | None = None
    estimated_duration_hours: Decimal | None = None
    estimation_data: dict[str, Any] | None = None
    previous_estimated_cost: Decimal | None = None
    pending_estimate_delta: int | None = None
    actual_cost: Decimal | None = None
    rating: int | None = None
    feedback: str | None = None
    submission_notes: str | None = None
    assigned_at: datetime | None = None
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_model(cls, project: ProjectModel) -> ProjectRecord:
        return cls(
            id=project.id,
            client_account_id=project.client_account_id,
            status=ProjectStatus(project.status),
            version=project.version,
            name=project.name,
            priority=project.priority,
            expert_id=project.expert_id,
            description=project.description,
            request_text=project.request_text,
            instructions=project.instructions,
            deadline=project.deadline,
            estimated_cost=project.estimated_cost,
            estimated_duration_hours=project.estimated_duration_hours,
            estimation_data=project.estimation_data,
            previous_estimated_cost=project.previous_estimated_cost,
            pending_estimate_delta=project.pending_estimate_delta,
            actual_cost=project.actual_cost,
            rating=project.rating,
            feedback=project.feedback,
            submission_notes=project.submission_notes,
            assigned_at=project.assigned_at,
            submitted_at=project.submitted_at,
            reviewed_at=project.reviewed_at,
            completed_at=project.completed_at,
        )


@dataclass(frozen=True)
class ExpertRecord:
    id: UUID
    account_id: UUID
    display_name: str
    specialization: str | None
    rating: float
    completed_jobs: int
    is_available: bool

    @classmethod
    def from_model(cls, expert: ExpertProfileModel) -> ExpertRecord:
        return cls(
            id=expert.id,
            account_id=expert.account_id,
            display_name=expert.display_name,
            specialization=expert.specialization,
            rating=expert.rating,
            completed_jobs=expert.completed_jobs,
            is_available=expert.is_available,
        )


@dataclass(frozen=True)
class WorkItemSpec:
    """Caller-supplied reference to an uploaded audio file."""

    work_item_id: UUID
    label: str | None = None
    duration_seconds: Decimal | None = None


# ---------------------------------------------------------------------------
# Transition results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReservationResult:
    project: ProjectRecord
    credits_reserved: int
    entry: LedgerEntryRecord


@dataclass(frozen=True)
class ReEstimateResult:
    project: ProjectRecord
    original_estimate: Decimal
    new_estimate: Decimal
    additional_cost: Decimal
    additional_credits: int
    client_balance: int

    @property
    def client_has_enough_credits(self) -> bool:
        return self.additional_credits <= 0 or self.client_balance >= self.additional_credits


@dataclass(frozen=True)
class EstimateDeltaResult:
    project: ProjectRecord
    credits_moved: int
    entry: LedgerEntryRecord | None = None


@dataclass(frozen=True)
class PayoutResult:
    project: ProjectRecord
    payout_credits: int
    entry: LedgerEntryRecord
    expert: ExpertRecord


@dataclass(frozen=True)
class RefundResult:
    project: ProjectRecord
    credits_refunded: int
    entry: LedgerEntryRecord
