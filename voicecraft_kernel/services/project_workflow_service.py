"""
ProjectWorkflowService -- public facade for the project lifecycle.

Responsibility:
    One method per client/expert/admin transition, from creating a project
    through source-audio edits, estimation, reservation, assignment,
    submission, review and re-estimation.  Approval and refund live in
    PayoutOrchestrator.

Architecture position:
    Kernel > Services -- imperative shell.  Composes ProjectGuard (guarded
    status updates), AccountBalanceService (credit movements), an
    EstimationGateway (the oracle) and a Notifier.

Invariants enforced:
    GUARDED_TRANSITIONS  -- every status change goes through ProjectGuard.apply.
    NON_NEGATIVE_BALANCE -- reservations go through the ledger's guarded debit;
                            a refused debit rolls the status change back with
                            it (both share one SAVEPOINT).
    Source positions stay contiguous (0..n-1) across add and remove.
    The oracle is called between two short transactions, never inside one,
    and a failed or timed-out call always returns the project to draft.

Failure modes:
    - InvalidStateTransitionError / StaleProjectStateError on illegal or
      concurrent transitions.
    - InsufficientCreditsError when the client cannot cover a reservation.
    - EstimationFailedError (EstimationTimeoutError) from request_estimate.
    - InvalidEstimateRequestError, InvalidEstimateError, InvalidProjectError,
      EmptySubmissionError, ExpertNotFoundError, ExpertUnavailableError,
      ExpertNotAssignedError, PendingEstimateDeltaError,
      NoPendingEstimateDeltaError, ProjectNotDeletableError,
      ProjectReferencedError, WorkItemNotFoundError for the matching
      business rules.

Audit relevance:
    Every call logs ``<action>_started`` / ``_completed`` / ``_rejected`` /
    ``_failed``; feedback, submissions and estimate revisions are appended
    to ``project_history`` and never overwritten.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from voicecraft_kernel.domain.clock import Clock, SystemClock
from voicecraft_kernel.domain.credits import (
    CreditReason,
    dollars_to_credits,
    round_up_to_cents,
    to_dollars,
)
from voicecraft_kernel.domain.dtos import (
    EstimateDeltaResult,
    ProjectRecord,
    ReEstimateResult,
    ReservationResult,
    WorkItemRecord,
    WorkItemSpec,
)
from voicecraft_kernel.domain.estimation import (
    MAX_REQUEST_LENGTH,
    MIN_REQUEST_LENGTH,
    ProjectSummary,
    WorkItemSummary,
)
from voicecraft_kernel.domain.project_workflow import (
    DELETABLE_STATUSES,
    PROJECT_PRIORITIES,
    ProjectAction,
    ProjectStatus,
)
from voicecraft_kernel.exceptions import (
    EmptySubmissionError,
    EstimationFailedError,
    ExpertNotAssignedError,
    ExpertNotFoundError,
    ExpertUnavailableError,
    InsufficientBalanceError,
    InsufficientCreditsError,
    InvalidEstimateError,
    InvalidEstimateRequestError,
    InvalidProjectError,
    InvalidStateTransitionError,
    NoPendingEstimateDeltaError,
    PendingEstimateDeltaError,
    ProjectNotDeletableError,
    WorkItemNotFoundError,
)
from voicecraft_kernel.logging_config import get_logger
from voicecraft_kernel.models.expert import ExpertProfile
from voicecraft_kernel.models.project import (
    HistoryKind,
    Project,
    ProjectWorkItem,
    WorkItemRole,
)
from voicecraft_kernel.selectors.ledger_selector import LedgerSelector
from voicecraft_kernel.services.account_balance_service import AccountBalanceService
from voicecraft_kernel.services.base import TransitionService
from voicecraft_kernel.services.estimation_gateway import EstimationGateway
from voicecraft_kernel.services.notifications import (
    Notification,
    NotificationKind,
    Notifier,
)
from voicecraft_kernel.services.project_guard import ProjectGuard


def _as_spec(item: UUID | WorkItemSpec) -> WorkItemSpec:
    return item if isinstance(item, WorkItemSpec) else WorkItemSpec(work_item_id=item)


class ProjectWorkflowService(TransitionService):
    """
    Project lifecycle transitions.

    Contract:
        Each public method is one unit of work: it either applies the whole
        transition (status, ledger, history) or nothing, and returns DTOs.
        With auto_commit=True (default) the session is committed on success
        and rolled back on failure; notifications are sent afterwards.
    """

    _logger = get_logger("services.project_workflow")

    def __init__(
        self,
        session: Session,
        estimation_gateway: EstimationGateway | None = None,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        balances: AccountBalanceService | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, notifier=notifier, auto_commit=auto_commit)
        self._clock = clock or SystemClock()
        self._gateway = estimation_gateway
        self._balances = balances or AccountBalanceService(session, clock=self._clock)
        self._guard = ProjectGuard(session, self._clock)
        self._ledger = LedgerSelector(session)

    # =========================================================================
    # Create / delete
    # =========================================================================

    def create_project(
        self,
        client_account_id: UUID,
        name: str,
        *,
        actor_id: UUID,
        description: str | None = None,
        priority: str = "medium",
        work_items: Sequence[UUID | WorkItemSpec] = (),
    ) -> ProjectRecord:
        """Create a draft project with its source audio references."""
        if not name or not name.strip():
            raise InvalidProjectError("name", "must not be empty")
        if priority not in PROJECT_PRIORITIES:
            raise InvalidProjectError("priority", f"must be one of {', '.join(PROJECT_PRIORITIES)}")

        def work(outbox: list[Notification]) -> ProjectRecord:
            now = self._clock.now()
            project = Project(
                client_account_id=client_account_id,
                status=ProjectStatus.DRAFT.value,
                version=1,
                name=name.strip(),
                description=description,
                priority=priority,
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
            )
            self.session.add(project)
            self.session.flush()
            for position, item in enumerate(_as_spec(i) for i in work_items):
                self.session.add(
                    ProjectWorkItem(
                        project_id=project.id,
                        work_item_id=item.work_item_id,
                        role=WorkItemRole.SOURCE,
                        position=position,
                        label=item.label,
                        duration_seconds=item.duration_seconds,
                    )
                )
            self.session.flush()
            return ProjectRecord.from_model(project)

        return self._execute("create_project", work, actor_id=actor_id)

    def delete_project(self, project_id: UUID, *, actor_id: UUID) -> None:
        """
        Hard-delete a draft or estimating project.

        The before_flush listener refuses the delete if any ledger entry
        references the project (ProjectReferencedError).
        """

        def work(outbox: list[Notification]) -> None:
            project = self._guard.load(project_id)
            if project.status not in DELETABLE_STATUSES:
                raise ProjectNotDeletableError(project_id, project.status)
            self.session.delete(project)
            self.session.flush()

        self._execute("delete_project", work, actor_id=actor_id, project_id=project_id)

    # =========================================================================
    # Source audio
    # =========================================================================

    def add_work_items(
        self,
        project_id: UUID,
        items: Sequence[UUID | WorkItemSpec],
        *,
        actor_id: UUID,
    ) -> list[WorkItemRecord]:
        """
        Attach more source audio to a draft project.

        New items follow the existing ones in the order given.  An audio
        file that is already attached, or listed twice, is refused.
        Returns the project's source items in position order.
        """
        specs = [_as_spec(i) for i in items]
        if not specs:
            raise InvalidProjectError("work_items", "must not be empty")
        requested = [s.work_item_id for s in specs]
        if len(set(requested)) != len(requested):
            raise InvalidProjectError("work_items", "lists the same audio file twice")

        def work(outbox: list[Notification]) -> list[WorkItemRecord]:
            project = self._guard.load(project_id)
            self._guard.require(project, ProjectAction.ADD_WORK_ITEMS)
            sources = self._source_items(project_id)
            attached = {w.work_item_id for w in sources}
            duplicates = [str(i) for i in requested if i in attached]
            if duplicates:
                raise InvalidProjectError("work_items", f"already attached: {', '.join(duplicates)}")

            self._guard.apply(project, ProjectAction.ADD_WORK_ITEMS, actor_id=actor_id)
            for position, item in enumerate(specs, start=len(sources)):
                self.session.add(
                    ProjectWorkItem(
                        project_id=project_id,
                        work_item_id=item.work_item_id,
                        role=WorkItemRole.SOURCE,
                        position=position,
                        label=item.label,
                        duration_seconds=item.duration_seconds,
                    )
                )
            self.session.flush()
            return [WorkItemRecord.from_model(w) for w in self._source_items(project_id)]

        return self._execute("add_work_items", work, actor_id=actor_id, project_id=project_id)

    def remove_work_item(
        self,
        project_id: UUID,
        work_item_id: UUID,
        *,
        actor_id: UUID,
    ) -> list[WorkItemRecord]:
        """
        Detach one source audio file from a draft project.

        Later items move up one place so positions stay 0..n-1.
        """

        def work(outbox: list[Notification]) -> list[WorkItemRecord]:
            project = self._guard.load(project_id)
            self._guard.require(project, ProjectAction.REMOVE_WORK_ITEM)
            item = next(
                (w for w in self._source_items(project_id) if w.work_item_id == work_item_id),
                None,
            )
            if item is None:
                raise WorkItemNotFoundError(project_id, work_item_id)
            removed_at = item.position

            self._guard.apply(project, ProjectAction.REMOVE_WORK_ITEM, actor_id=actor_id)
            self.session.delete(item)
            self.session.flush()
            self._close_position_gap(project_id, removed_at)
            return [WorkItemRecord.from_model(w) for w in self._source_items(project_id)]

        return self._execute("remove_work_item", work, actor_id=actor_id, project_id=project_id)

    def _source_items(self, project_id: UUID) -> list[ProjectWorkItem]:
        return list(
            self.session.execute(
                select(ProjectWorkItem)
                .where(
                    ProjectWorkItem.project_id == project_id,
                    ProjectWorkItem.role == WorkItemRole.SOURCE,
                )
                .order_by(ProjectWorkItem.position)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def _close_position_gap(self, project_id: UUID, removed_at: int) -> None:
        """Move every source item after ``removed_at`` up by one."""
        sources = (
            ProjectWorkItem.project_id == project_id,
            ProjectWorkItem.role == WorkItemRole.SOURCE,
        )
        # Park the moved rows on negative positions first; uq_work_item_position
        # is checked row by row.
        self.session.execute(
            update(ProjectWorkItem)
            .where(*sources, ProjectWorkItem.position > removed_at)
            .values(position=-ProjectWorkItem.position)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(
            update(ProjectWorkItem)
            .where(*sources, ProjectWorkItem.position < 0)
            .values(position=-ProjectWorkItem.position - 1)
            .execution_options(synchronize_session=False)
        )

    # =========================================================================
    # Estimation
    # =========================================================================

    def request_estimate(
        self,
        project_id: UUID,
        request_text: str,
        *,
        actor_id: UUID,
    ) -> ProjectRecord:
        """
        Ask the oracle for a cost estimate.

        Runs as two transactions around the gateway call:
            1. draft -> estimating (committed when auto_commit is on)
            2. estimating -> waiting_for_estimate_accept on success, or
               estimating -> draft on any gateway failure, after which
               EstimationFailedError is raised.
        """
        if self._gateway is None:
            raise EstimationFailedError("no estimation gateway configured", project_id=project_id)
        text = (request_text or "").strip()

        def start(outbox: list[Notification]) -> ProjectSummary:
            project = self._guard.load(project_id)
            self._guard.require(project, ProjectAction.REQUEST_ESTIMATE)
            if len(text) < MIN_REQUEST_LENGTH:
                raise InvalidEstimateRequestError(
                    project_id, f"request must be at least {MIN_REQUEST_LENGTH} characters"
                )
            if len(text) > MAX_REQUEST_LENGTH:
                raise InvalidEstimateRequestError(
                    project_id, f"request must be at most {MAX_REQUEST_LENGTH} characters"
                )
            sources = [w for w in project.work_items if w.role == WorkItemRole.SOURCE]
            if not sources:
                raise InvalidEstimateRequestError(project_id, "project has no audio files")

            project = self._guard.apply(
                project,
                ProjectAction.REQUEST_ESTIMATE,
                actor_id=actor_id,
                request_text=text,
            )
            return ProjectSummary(
                project_id=project.id,
                name=project.name,
                description=project.description,
                priority=project.priority,
                request_text=text,
                work_items=tuple(
                    WorkItemSummary(w.work_item_id, w.label, w.duration_seconds)
                    for w in sorted(sources, key=lambda w: w.position)
                ),
            )

        summary = self._execute(
            "request_estimate", start, actor_id=actor_id, project_id=project_id
        )

        try:
            estimate = self._gateway.estimate(summary)
            cost = round_up_to_cents(estimate.cost)
            if cost <= 0:
                raise EstimationFailedError(f"non-positive cost {estimate.cost}", project_id=project_id)
        except Exception as exc:
            self._revert_failed_estimate(project_id, exc, actor_id=actor_id)
            if isinstance(exc, EstimationFailedError):
                raise
            raise EstimationFailedError(str(exc) or type(exc).__name__, project_id=project_id) from exc

        def finish(outbox: list[Notification]) -> ProjectRecord:
            project = self._guard.load(project_id)
            project = self._guard.apply(
                project,
                ProjectAction.ESTIMATE_READY,
                actor_id=actor_id,
                estimated_cost=cost,
                estimated_duration_hours=estimate.duration_hours,
                estimation_data=estimate.to_payload(),
                previous_estimated_cost=None,
                pending_estimate_delta=None,
            )
            outbox.append(
                Notification(
                    NotificationKind.ESTIMATE_READY,
                    project.id,
                    project.client_account_id,
                    {"estimated_cost": str(cost)},
                )
            )
            return ProjectRecord.from_model(project)

        return self._execute("estimate_ready", finish, actor_id=actor_id, project_id=project_id)

    def _revert_failed_estimate(self, project_id: UUID, error: Exception, *, actor_id: UUID) -> None:
        self._logger.warning(
            "estimation_failed",
            extra={
                "project_id": str(project_id),
                "error_code": getattr(error, "code", type(error).__name__),
                "error": str(error),
            },
        )

        def work(outbox: list[Notification]) -> None:
            project = self._guard.load(project_id)
            project = self._guard.apply(project, ProjectAction.ESTIMATE_FAILED, actor_id=actor_id)
            outbox.append(
                Notification(
                    NotificationKind.ESTIMATE_FAILED,
                    project.id,
                    project.client_account_id,
                    {"error": str(error)},
                )
            )

        self._execute("estimate_failed", work, actor_id=actor_id, project_id=project_id)

    def accept_estimate(self, project_id: UUID, *, actor_id: UUID) -> ReservationResult:
        """
        Reserve ceil(estimate * 100) credits from the client and queue the
        project for assignment.

        The status change and the PROJECT_RESERVATION entry share one
        SAVEPOINT: if the client cannot pay, neither happens.
        """

        def work(outbox: list[Notification]) -> ReservationResult:
            project = self._guard.load(project_id)
            transition = self._guard.require(project, ProjectAction.ACCEPT_ESTIMATE)
            if project.estimated_cost is None or project.estimated_cost <= 0:
                raise InvalidStateTransitionError(
                    project_id,
                    ProjectAction.ACCEPT_ESTIMATE.value,
                    project.status,
                    detail="project has no estimate",
                )
            credits_needed = dollars_to_credits(project.estimated_cost)
            client_account_id = project.client_account_id

            project = self._guard.apply(project, ProjectAction.ACCEPT_ESTIMATE, actor_id=actor_id)
            try:
                entry = self._balances.reserve(
                    client_account_id,
                    credits_needed,
                    CreditReason.PROJECT_RESERVATION,
                    actor_id=actor_id,
                    project_id=project.id,
                    description=f"Credits reserved for project: {project.name}",
                    metadata={"estimated_cost": str(project.estimated_cost)},
                )
            except InsufficientBalanceError as exc:
                raise self._guard.refuse(
                    transition,
                    InsufficientCreditsError(
                        client_account_id, exc.required, exc.available, project_id
                    ),
                ) from exc

            outbox.append(
                Notification(
                    NotificationKind.AWAITING_ASSIGNMENT,
                    project.id,
                    client_account_id,
                    {"credits_reserved": credits_needed},
                )
            )
            return ReservationResult(
                project=ProjectRecord.from_model(project),
                credits_reserved=credits_needed,
                entry=entry,
            )

        return self._execute("accept_estimate", work, actor_id=actor_id, project_id=project_id)

    def reject_estimate(
        self,
        project_id: UUID,
        *,
        actor_id: UUID,
        reason: str | None = None,
    ) -> ProjectRecord:
        """Send the project back to draft.  The estimate figures are kept."""

        def work(outbox: list[Notification]) -> ProjectRecord:
            project = self._guard.load(project_id)
            rejected_cost = project.estimated_cost
            project = self._guard.apply(project, ProjectAction.REJECT_ESTIMATE, actor_id=actor_id)
            self._guard.append_history(
                project,
                HistoryKind.ESTIMATE_REJECTION,
                {
                    "estimated_cost": str(rejected_cost) if rejected_cost is not None else None,
                    "reason": reason,
                },
                actor_id=actor_id,
            )
            return ProjectRecord.from_model(project)

        return self._execute("reject_estimate", work, actor_id=actor_id, project_id=project_id)

    # =========================================================================
    # Assignment and review
    # =========================================================================

    def assign(
        self,
        project_id: UUID,
        expert_id: UUID,
        *,
        actor_id: UUID,
        instructions: str | None = None,
        deadline: datetime | None = None,
    ) -> ProjectRecord:

        def work(outbox: list[Notification]) -> ProjectRecord:
            project = self._guard.load(project_id)
            transition = self._guard.require(project, ProjectAction.ASSIGN)
            expert = self.session.get(ExpertProfile, expert_id)
            if expert is None:
                raise self._guard.refuse(transition, ExpertNotFoundError(expert_id))
            if not expert.is_available:
                raise self._guard.refuse(transition, ExpertUnavailableError(expert_id))

            project = self._guard.apply(
                project,
                ProjectAction.ASSIGN,
                actor_id=actor_id,
                expert_id=expert.id,
                instructions=instructions,
                deadline=deadline,
                assigned_at=self._clock.now(),
            )
            outbox.append(
                Notification(
                    NotificationKind.PROJECT_ASSIGNED,
                    project.id,
                    expert.account_id,
                    {"deadline": deadline.isoformat() if deadline else None},
                )
            )
            return ProjectRecord.from_model(project)

        return self._execute("assign", work, actor_id=actor_id, project_id=project_id)

    def submit_work(
        self,
        project_id: UUID,
        expert_id: UUID,
        work_item_ids: Iterable[UUID | WorkItemSpec],
        *,
        actor_id: UUID,
        notes: str | None = None,
    ) -> ProjectRecord:
        """Record the assigned expert's deliverables and move to in_review."""
        items = [_as_spec(i) for i in work_item_ids]

        def work(outbox: list[Notification]) -> ProjectRecord:
            project = self._guard.load(project_id)
            transition = self._guard.require(project, ProjectAction.SUBMIT_WORK)
            if project.expert_id != expert_id:
                raise self._guard.refuse(
                    transition, ExpertNotAssignedError(project_id, expert_id, project.expert_id)
                )
            if not items:
                raise EmptySubmissionError(project_id)

            project = self._guard.apply(
                project,
                ProjectAction.SUBMIT_WORK,
                actor_id=actor_id,
                submitted_at=self._clock.now(),
                submission_notes=notes,
            )

            start = self.session.execute(
                select(func.count(ProjectWorkItem.id)).where(
                    ProjectWorkItem.project_id == project.id,
                    ProjectWorkItem.role == WorkItemRole.SUBMISSION,
                )
            ).scalar_one()
            for offset, item in enumerate(items):
                self.session.add(
                    ProjectWorkItem(
                        project_id=project.id,
                        work_item_id=item.work_item_id,
                        role=WorkItemRole.SUBMISSION,
                        position=start + offset,
                        label=item.label,
                        duration_seconds=item.duration_seconds,
                    )
                )
            self._guard.append_history(
                project,
                HistoryKind.WORK_SUBMISSION,
                {
                    "expert_id": str(expert_id),
                    "work_item_ids": [str(i.work_item_id) for i in items],
                    "notes": notes,
                },
                actor_id=actor_id,
            )
            outbox.append(
                Notification(
                    NotificationKind.WORK_SUBMITTED,
                    project.id,
                    project.client_account_id,
                    {"work_items": len(items)},
                )
            )
            return ProjectRecord.from_model(project)

        return self._execute("submit_work", work, actor_id=actor_id, project_id=project_id)

    def request_changes(self, project_id: UUID, feedback: str, *, actor_id: UUID) -> ProjectRecord:
        """Return the work to the expert.  Earlier feedback stays in history."""

        def work(outbox: list[Notification]) -> ProjectRecord:
            project = self._guard.load(project_id)
            project = self._guard.apply(
                project,
                ProjectAction.REQUEST_CHANGES,
                actor_id=actor_id,
                feedback=feedback,
                reviewed_at=self._clock.now(),
            )
            self._guard.append_history(
                project,
                HistoryKind.REVISION_REQUEST,
                {"feedback": feedback},
                actor_id=actor_id,
            )
            expert = self.session.get(ExpertProfile, project.expert_id) if project.expert_id else None
            outbox.append(
                Notification(
                    NotificationKind.CHANGES_REQUESTED,
                    project.id,
                    expert.account_id if expert else None,
                    {"feedback": feedback},
                )
            )
            return ProjectRecord.from_model(project)

        return self._execute("request_changes", work, actor_id=actor_id, project_id=project_id)

    # =========================================================================
    # Re-estimation
    # =========================================================================

    def re_estimate(
        self,
        project_id: UUID,
        new_estimate: Decimal | int | str,
        reason: str,
        *,
        actor_id: UUID,
        admin_notes: str | None = None,
    ) -> ReEstimateResult:
        """
        Revise the estimate of an assigned or in-review project.

        Nothing is charged: the credit difference is stored as
        pending_estimate_delta until the client accepts or rejects it.
        """
        try:
            new_cost = round_up_to_cents(to_dollars(new_estimate))
        except (TypeError, ValueError):
            raise InvalidEstimateError(project_id, new_estimate) from None
        if new_cost <= 0:
            raise InvalidEstimateError(project_id, new_estimate)

        def work(outbox: list[Notification]) -> ReEstimateResult:
            project = self._guard.load(project_id)
            transition = self._guard.require(project, ProjectAction.RE_ESTIMATE)
            if project.pending_estimate_delta is not None:
                raise self._guard.refuse(
                    transition,
                    PendingEstimateDeltaError(
                        project_id,
                        ProjectAction.RE_ESTIMATE.value,
                        project.status,
                        project.pending_estimate_delta,
                    ),
                )
            original = project.estimated_cost or Decimal("0")
            additional_cost = new_cost - original
            additional_credits = dollars_to_credits(additional_cost)

            project = self._guard.apply(
                project,
                ProjectAction.RE_ESTIMATE,
                actor_id=actor_id,
                estimated_cost=new_cost,
                previous_estimated_cost=original if additional_credits else None,
                pending_estimate_delta=additional_credits or None,
            )
            self._guard.append_history(
                project,
                HistoryKind.ESTIMATE_REVISION,
                {
                    "original_estimate": str(original),
                    "new_estimate": str(new_cost),
                    "additional_cost": str(additional_cost),
                    "additional_credits": additional_credits,
                    "reason": reason,
                    "admin_notes": admin_notes,
                },
                actor_id=actor_id,
            )
            client_balance = self._ledger.balance_of(project.client_account_id)
            if additional_credits:
                outbox.append(
                    Notification(
                        NotificationKind.RE_ESTIMATE_REQUESTED,
                        project.id,
                        project.client_account_id,
                        {
                            "new_estimate": str(new_cost),
                            "additional_credits": additional_credits,
                        },
                    )
                )
            return ReEstimateResult(
                project=ProjectRecord.from_model(project),
                original_estimate=original,
                new_estimate=new_cost,
                additional_cost=additional_cost,
                additional_credits=additional_credits,
                client_balance=client_balance,
            )

        return self._execute("re_estimate", work, actor_id=actor_id, project_id=project_id)

    def accept_estimate_delta(self, project_id: UUID, *, actor_id: UUID) -> EstimateDeltaResult:
        """
        Settle a pending re-estimate against the client's reservation.

        A positive delta is debited (PROJECT_RESERVATION_ADJUSTMENT); a
        negative delta is credited back.
        """

        def work(outbox: list[Notification]) -> EstimateDeltaResult:
            project = self._guard.load(project_id)
            transition = self._guard.require(project, ProjectAction.ACCEPT_ESTIMATE_DELTA)
            delta = project.pending_estimate_delta
            if delta is None:
                raise self._guard.refuse(
                    transition,
                    NoPendingEstimateDeltaError(
                        project_id, ProjectAction.ACCEPT_ESTIMATE_DELTA.value, project.status
                    ),
                )
            client_account_id = project.client_account_id

            project = self._guard.apply(
                project,
                ProjectAction.ACCEPT_ESTIMATE_DELTA,
                actor_id=actor_id,
                pending_estimate_delta=None,
                previous_estimated_cost=None,
            )
            description = f"Estimate revision for project: {project.name}"
            metadata = {"estimated_cost": str(project.estimated_cost)}
            if delta > 0:
                try:
                    entry = self._balances.reserve(
                        client_account_id,
                        delta,
                        CreditReason.PROJECT_RESERVATION_ADJUSTMENT,
                        actor_id=actor_id,
                        project_id=project.id,
                        description=description,
                        metadata=metadata,
                    )
                except InsufficientBalanceError as exc:
                    raise InsufficientCreditsError(
                        client_account_id, exc.required, exc.available, project_id
                    ) from exc
            else:
                entry = self._balances.grant(
                    client_account_id,
                    -delta,
                    CreditReason.PROJECT_RESERVATION_ADJUSTMENT,
                    actor_id=actor_id,
                    project_id=project.id,
                    description=description,
                    metadata=metadata,
                )
            self._guard.append_history(
                project,
                HistoryKind.ESTIMATE_DELTA_ACCEPTED,
                {"credits": delta, "entry_id": str(entry.id)},
                actor_id=actor_id,
            )
            return EstimateDeltaResult(
                project=ProjectRecord.from_model(project),
                credits_moved=delta,
                entry=entry,
            )

        return self._execute(
            "accept_estimate_delta", work, actor_id=actor_id, project_id=project_id
        )

    def reject_estimate_delta(
        self,
        project_id: UUID,
        *,
        actor_id: UUID,
        reason: str | None = None,
    ) -> EstimateDeltaResult:
        """Discard a pending re-estimate and restore the previous estimate."""

        def work(outbox: list[Notification]) -> EstimateDeltaResult:
            project = self._guard.load(project_id)
            transition = self._guard.require(project, ProjectAction.REJECT_ESTIMATE_DELTA)
            if project.pending_estimate_delta is None:
                raise self._guard.refuse(
                    transition,
                    NoPendingEstimateDeltaError(
                        project_id, ProjectAction.REJECT_ESTIMATE_DELTA.value, project.status
                    ),
                )
            rejected = project.estimated_cost
            restored = project.previous_estimated_cost
            delta = project.pending_estimate_delta

            project = self._guard.apply(
                project,
                ProjectAction.REJECT_ESTIMATE_DELTA,
                actor_id=actor_id,
                estimated_cost=restored,
                previous_estimated_cost=None,
                pending_estimate_delta=None,
            )
            self._guard.append_history(
                project,
                HistoryKind.ESTIMATE_DELTA_REJECTED,
                {
                    "rejected_estimate": str(rejected),
                    "restored_estimate": str(restored),
                    "credits": delta,
                    "reason": reason,
                },
                actor_id=actor_id,
            )
            return EstimateDeltaResult(
                project=ProjectRecord.from_model(project),
                credits_moved=0,
            )

        return self._execute(
            "reject_estimate_delta", work, actor_id=actor_id, project_id=project_id
        )
