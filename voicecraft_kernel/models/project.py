"""
Module: voicecraft_kernel.models.project
Responsibility: ORM persistence for projects, their audio work items, and the
    append-only project history.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    GUARDED_TRANSITIONS -- status and version are only changed by conditional
                           UPDATEs issued from ProjectWorkflowService and
                           PayoutOrchestrator (expected status + version in
                           the WHERE clause).
    History is append-only -- ProjectHistoryEntry rows are never updated and
                           only deleted together with a deletable project.

Failure modes:
    - ProjectReferencedError (db/immutability.py) when deleting a project that
      ledger entries point at.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from voicecraft_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from voicecraft_kernel.db.types import Credits, Dollars


class Project(TrackedBase):
    """
    A unit of expert-fulfilled work.

    estimated_cost is in dollars; pending_estimate_delta is in credits and is
    set only while a re-estimate awaits the client's decision.
    """

    __tablename__ = "projects"

    __table_args__ = (
        Index("idx_project_client", "client_account_id"),
        Index("idx_project_expert", "expert_id"),
        Index("idx_project_status", "status"),
    )

    client_account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    expert_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("expert_profiles.id"),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(String(40), nullable=False)

    # Incremented by every guarded transition
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    request_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    deadline: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Estimate (dollars)
    estimated_cost: Mapped[Dollars | None] = mapped_column(nullable=True)
    estimated_duration_hours: Mapped[Dollars | None] = mapped_column(nullable=True)
    estimation_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    previous_estimated_cost: Mapped[Dollars | None] = mapped_column(nullable=True)
    pending_estimate_delta: Mapped[Credits | None] = mapped_column(nullable=True)
    actual_cost: Mapped[Dollars | None] = mapped_column(nullable=True)

    # Review
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    submission_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Milestones
    assigned_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    work_items: Mapped[list["ProjectWorkItem"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectWorkItem.position",
    )

    history: Mapped[list["ProjectHistoryEntry"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectHistoryEntry.project_version",
    )

    def __repr__(self) -> str:
        return f"<Project {self.id} {self.status} v{self.version}>"


class WorkItemRole:
    SOURCE = "source"
    SUBMISSION = "submission"


class ProjectWorkItem(Base):
    """Reference to an audio file attached to a project (storage is external)."""

    __tablename__ = "project_work_items"

    __table_args__ = (
        UniqueConstraint("project_id", "role", "position", name="uq_work_item_position"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )
    work_item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=WorkItemRole.SOURCE)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    duration_seconds: Mapped[Dollars | None] = mapped_column(nullable=True)

    project: Mapped[Project] = relationship(back_populates="work_items")


class HistoryKind:
    REVISION_REQUEST = "revision_request"
    WORK_SUBMISSION = "work_submission"
    ESTIMATE_REJECTION = "estimate_rejection"
    ESTIMATE_REVISION = "estimate_revision"
    ESTIMATE_DELTA_ACCEPTED = "estimate_delta_accepted"
    ESTIMATE_DELTA_REJECTED = "estimate_delta_rejected"
    REFUND = "refund"


class ProjectHistoryEntry(Base):
    """
    Append-only record of feedback, submissions and estimate revisions.

    project_version is the project version produced by the transition that
    wrote the row, which orders history strictly.
    """

    __tablename__ = "project_history"

    __table_args__ = (
        UniqueConstraint("project_id", "project_version", name="uq_project_history_version"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )
    project_version: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    project: Mapped[Project] = relationship(back_populates="history")
