"""
Module: voicecraft_kernel.selectors.expert_selector
Responsibility: Read-only expert profile queries.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from voicecraft_kernel.domain.dtos import ExpertRecord
from voicecraft_kernel.exceptions import ExpertNotFoundError
from voicecraft_kernel.models.expert import ExpertProfile
from voicecraft_kernel.selectors.base import BaseSelector


class ExpertSelector(BaseSelector[ExpertProfile]):

    def get(self, expert_id: UUID) -> ExpertRecord:
        expert = self.session.get(ExpertProfile, expert_id)
        if expert is None:
            raise ExpertNotFoundError(expert_id)
        return ExpertRecord.from_model(expert)

    def get_by_account(self, account_id: UUID) -> ExpertRecord | None:
        expert = self.session.execute(
            select(ExpertProfile).where(ExpertProfile.account_id == account_id)
        ).scalar_one_or_none()
        return ExpertRecord.from_model(expert) if expert else None

    def list_available(self, specialization: str | None = None) -> list[ExpertRecord]:
        """Available experts, best rated first."""
        stmt = select(ExpertProfile).where(ExpertProfile.is_available.is_(True))
        if specialization is not None:
            stmt = stmt.where(ExpertProfile.specialization == specialization)
        stmt = stmt.order_by(
            ExpertProfile.rating.desc(),
            ExpertProfile.completed_jobs.desc(),
            ExpertProfile.id,
        )
        return [ExpertRecord.from_model(e) for e in self.session.execute(stmt).scalars()]
