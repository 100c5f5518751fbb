"""
Module: voicecraft_kernel.models.expert
Responsibility: ORM persistence for expert profiles.
Architecture position: Kernel > Models.  May import from db/ only.

rating is a running average over approved projects and completed_jobs its
sample size.  Both change only in PayoutOrchestrator.approve_work, in a
single SQL UPDATE so concurrent approvals for the same expert never lose
an update.
"""

from uuid import UUID

from sqlalchemy import Boolean, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from voicecraft_kernel.db.base import TrackedBase, UUIDString


class ExpertProfile(TrackedBase):
    """An expert who can be assigned projects and is paid on approval."""

    __tablename__ = "expert_profiles"

    account_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)

    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    specialization: Mapped[str | None] = mapped_column(String(200), nullable=True)

    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    completed_jobs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ExpertProfile {self.id} {self.display_name}>"
