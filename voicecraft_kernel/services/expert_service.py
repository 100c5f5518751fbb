"""
Service layer for expert profiles.

Registers experts and toggles their availability.  Rating and job count are
not writable here; they change only when PayoutOrchestrator approves work.

Returns ExpertRecord DTOs instead of ORM entities.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from voicecraft_kernel.domain.clock import Clock, SystemClock
from voicecraft_kernel.domain.dtos import ExpertRecord
from voicecraft_kernel.exceptions import ExpertNotFoundError
from voicecraft_kernel.logging_config import get_logger
from voicecraft_kernel.models.expert import ExpertProfile
from voicecraft_kernel.services.base import BaseService

logger = get_logger("services.expert")


class ExpertService(BaseService):
    """Expert profile writes."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def register_expert(
        self,
        account_id: UUID,
        display_name: str,
        *,
        actor_id: UUID,
        specialization: str | None = None,
        is_available: bool = True,
    ) -> ExpertRecord:
        """
        Create the expert profile for an account.

        Registering an account that already has a profile returns the
        existing profile unchanged.
        """
        existing = self.session.execute(
            select(ExpertProfile).where(ExpertProfile.account_id == account_id)
        ).scalar_one_or_none()
        if existing is not None:
            return ExpertRecord.from_model(existing)

        if not display_name or not display_name.strip():
            raise ValueError("display_name is required")

        now = self._clock.now()
        expert = ExpertProfile(
            account_id=account_id,
            display_name=display_name.strip(),
            specialization=specialization,
            rating=0.0,
            completed_jobs=0,
            is_available=is_available,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(expert)
        self.session.flush()

        logger.info(
            "expert_registered",
            extra={"expert_id": str(expert.id), "account_id": str(account_id)},
        )
        return ExpertRecord.from_model(expert)

    def set_availability(self, expert_id: UUID, available: bool, *, actor_id: UUID) -> ExpertRecord:
        expert = self.session.get(ExpertProfile, expert_id)
        if expert is None:
            raise ExpertNotFoundError(expert_id)

        expert.is_available = available
        expert.updated_by_id = actor_id
        expert.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "expert_availability_changed",
            extra={"expert_id": str(expert_id), "is_available": available},
        )
        return ExpertRecord.from_model(expert)
