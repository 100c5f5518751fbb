"""
PayoutOrchestrator -- the transactional envelope around approval and refund.

Responsibility:
    ``approve_work`` completes a project, pays the expert and updates the
    expert's rating; ``refund`` returns the client's reserved credits.  In
    each case the project status write, the ledger write and (for approval)
    the rating write either all happen or none do.

Architecture position:
    Kernel > Services -- imperative shell.  Shares ProjectGuard with
    ProjectWorkflowService; writes credits through AccountBalanceService.

Invariants enforced:
    SINGLE_SETTLEMENT   -- the guarded transition makes completed/refunded
                           reachable once; the ledger additionally refuses a
                           second PROJECT_COMPLETION / PROJECT_REFUND.
    ROUND_UP_CONVERSION -- payouts and refunds are ceil(dollars * 100).

Failure modes:
    - InvalidRatingError, MissingExpertError, PendingEstimateDeltaError,
      InvalidStateTransitionError / StaleProjectStateError for approval.
    - InvalidRefundAmountError when the refund resolves to <= 0 credits.
    - DuplicatePayoutError if a settlement entry already exists.

Audit relevance:
    ``payout_issued`` and ``project_refunded`` are logged with the credit
    amount; refunds append a ``refund`` row to project history.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from voicecraft_kernel.domain.clock import Clock, SystemClock
from voicecraft_kernel.domain.credits import CreditReason, dollars_to_credits, to_dollars
from voicecraft_kernel.domain.dtos import (
    ExpertRecord,
    PayoutResult,
    ProjectRecord,
    RefundResult,
)
from voicecraft_kernel.domain.project_workflow import ProjectAction
from voicecraft_kernel.exceptions import (
    ExpertNotFoundError,
    InvalidRatingError,
    InvalidRefundAmountError,
    MissingExpertError,
    PendingEstimateDeltaError,
)
from voicecraft_kernel.logging_config import get_logger
from voicecraft_kernel.models.expert import ExpertProfile
from voicecraft_kernel.models.project import HistoryKind, Project
from voicecraft_kernel.selectors.ledger_selector import LedgerSelector
from voicecraft_kernel.services.account_balance_service import AccountBalanceService
from voicecraft_kernel.services.base import TransitionService
from voicecraft_kernel.services.notifications import (
    Notification,
    NotificationKind,
    Notifier,
)
from voicecraft_kernel.services.project_guard import ProjectGuard

MIN_RATING = 1
MAX_RATING = 5


def _validate_rating(rating: object) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRatingError(rating)
    if not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRatingError(rating)
    return rating


class PayoutOrchestrator(TransitionService):
    """Approval payouts and client refunds."""

    _logger = get_logger("services.payout")

    def __init__(
        self,
        session: Session,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        balances: AccountBalanceService | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, notifier=notifier, auto_commit=auto_commit)
        self._clock = clock or SystemClock()
        self._balances = balances or AccountBalanceService(session, clock=self._clock)
        self._guard = ProjectGuard(session, self._clock)
        self._ledger = LedgerSelector(session)

    def approve_work(
        self,
        project_id: UUID,
        rating: int,
        *,
        actor_id: UUID,
        feedback: str | None = None,
    ) -> PayoutResult:
        """
        Complete an in-review project and pay the assigned expert.

        Preconditions:
            - rating is an int in 1..5.
            - project is in_review with an assigned expert and no pending
              estimate change.

        Postconditions (one SAVEPOINT):
            - status completed, actual_cost = estimated_cost.
            - PROJECT_COMPLETION of +ceil(estimated_cost * 100) credits on
              the expert's account.
            - expert rating becomes the running average including ``rating``
              and completed_jobs grows by one.
        """
        _validate_rating(rating)

        def work(outbox: list[Notification]) -> PayoutResult:
            project = self._guard.load(project_id)
            transition = self._guard.require(project, ProjectAction.APPROVE_WORK)
            if project.pending_estimate_delta is not None:
                raise self._guard.refuse(
                    transition,
                    PendingEstimateDeltaError(
                        project_id,
                        ProjectAction.APPROVE_WORK.value,
                        project.status,
                        project.pending_estimate_delta,
                    ),
                )
            if project.expert_id is None:
                raise MissingExpertError(project_id)
            expert = self.session.get(ExpertProfile, project.expert_id)
            if expert is None:
                raise ExpertNotFoundError(project.expert_id)

            payout_credits = dollars_to_credits(project.estimated_cost or Decimal("0"))
            now = self._clock.now()
            project = self._guard.apply(
                project,
                ProjectAction.APPROVE_WORK,
                actor_id=actor_id,
                rating=rating,
                feedback=feedback if feedback is not None else project.feedback,
                actual_cost=project.estimated_cost,
                reviewed_at=now,
                completed_at=now,
            )
            entry = self._balances.grant(
                expert.account_id,
                payout_credits,
                CreditReason.PROJECT_COMPLETION,
                actor_id=actor_id,
                project_id=project.id,
                description=f"Payment for completed project: {project.name}",
                metadata={"rating": rating},
            )

            # Running average computed by the database so concurrent
            # approvals for one expert cannot lose an update.
            self.session.execute(
                update(ExpertProfile)
                .where(ExpertProfile.id == expert.id)
                .values(
                    rating=(
                        ExpertProfile.rating * ExpertProfile.completed_jobs + float(rating)
                    )
                    / (ExpertProfile.completed_jobs + 1),
                    completed_jobs=ExpertProfile.completed_jobs + 1,
                    updated_at=now,
                    updated_by_id=actor_id,
                )
                .execution_options(synchronize_session=False)
            )
            self.session.refresh(expert)

            self._logger.info(
                "payout_issued",
                extra={
                    "project_id": str(project.id),
                    "expert_id": str(expert.id),
                    "account_id": str(expert.account_id),
                    "credits": payout_credits,
                    "rating": rating,
                },
            )
            outbox.append(
                Notification(
                    NotificationKind.WORK_APPROVED,
                    project.id,
                    project.client_account_id,
                    {"rating": rating},
                )
            )
            outbox.append(
                Notification(
                    NotificationKind.PAYOUT_ISSUED,
                    project.id,
                    expert.account_id,
                    {"credits": payout_credits},
                )
            )
            return PayoutResult(
                project=ProjectRecord.from_model(project),
                payout_credits=payout_credits,
                entry=entry,
                expert=ExpertRecord.from_model(expert),
            )

        return self._execute("approve_work", work, actor_id=actor_id, project_id=project_id)

    def refund(
        self,
        project_id: UUID,
        reason: str,
        *,
        actor_id: UUID,
        refund_amount: Decimal | int | str | None = None,
        admin_notes: str | None = None,
    ) -> RefundResult:
        """
        Refund the client and close the project as refunded.

        Amount, in order of precedence:
            1. ceil(refund_amount * 100) when given (dollars);
            2. the credits currently reserved for the project (latest
               PROJECT_RESERVATION plus later adjustments);
            3. ceil(estimated_cost * 100).
        """
        explicit_credits = None
        if refund_amount is not None:
            try:
                explicit_credits = dollars_to_credits(to_dollars(refund_amount))
            except (TypeError, ValueError):
                raise InvalidRefundAmountError(project_id, refund_amount) from None

        def work(outbox: list[Notification]) -> RefundResult:
            project = self._guard.load(project_id)
            transition = self._guard.require(project, ProjectAction.REFUND)
            credits = self._refund_credits(project, explicit_credits)
            if credits <= 0:
                raise self._guard.refuse(transition, InvalidRefundAmountError(project_id, credits))
            client_account_id = project.client_account_id

            project = self._guard.apply(
                project,
                ProjectAction.REFUND,
                actor_id=actor_id,
                feedback=f"Refunded: {reason}",
                completed_at=self._clock.now(),
            )
            entry = self._balances.grant(
                client_account_id,
                credits,
                CreditReason.PROJECT_REFUND,
                actor_id=actor_id,
                project_id=project.id,
                description=f"Refund for project: {project.name} - {reason}",
                metadata={"reason": reason, "admin_notes": admin_notes},
            )
            self._guard.append_history(
                project,
                HistoryKind.REFUND,
                {
                    "credits": credits,
                    "reason": reason,
                    "admin_notes": admin_notes,
                    "explicit_amount": str(refund_amount) if refund_amount is not None else None,
                },
                actor_id=actor_id,
            )

            self._logger.info(
                "project_refunded",
                extra={
                    "project_id": str(project.id),
                    "account_id": str(client_account_id),
                    "credits": credits,
                },
            )
            outbox.append(
                Notification(
                    NotificationKind.PROJECT_REFUNDED,
                    project.id,
                    client_account_id,
                    {"credits": credits, "reason": reason},
                )
            )
            return RefundResult(
                project=ProjectRecord.from_model(project),
                credits_refunded=credits,
                entry=entry,
            )

        return self._execute("refund", work, actor_id=actor_id, project_id=project_id)

    def _refund_credits(self, project: Project, explicit_credits: int | None) -> int:
        if explicit_credits is not None:
            return explicit_credits
        reserved = self._ledger.reserved_credits_for_project(project.id, project.client_account_id)
        if reserved is not None:
            return reserved
        if project.estimated_cost is None:
            return 0
        return dollars_to_credits(project.estimated_cost)
