"""
ProjectGuard -- the guarded status update shared by every project transition.

Responsibility:
    Loads a project, resolves an action against ``PROJECT_WORKFLOW`` and
    applies the resulting status change as one conditional UPDATE:

        UPDATE projects
           SET status = :to, version = version + 1, ...
         WHERE id = :p AND status = :expected AND version = :v

    Zero rows affected means another transaction moved the project first.

Architecture position:
    Kernel > Services -- collaborator of ProjectWorkflowService and
    PayoutOrchestrator.  Never commits.

Invariants enforced:
    GUARDED_TRANSITIONS -- status is only written through ``apply``; the
                           lookup table is consulted before every write.

Failure modes:
    - ProjectNotFoundError if the project does not exist.
    - InvalidStateTransitionError if (status, action) is not in the table.
    - Whatever error a service hands to ``refuse`` when a transition's guard
      does not hold; the error's ``guard`` names it.
    - StaleProjectStateError if the guarded UPDATE matched no row; carries the
      status observed after the miss.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from voicecraft_kernel.domain.clock import Clock
from voicecraft_kernel.domain.project_workflow import PROJECT_WORKFLOW, ProjectAction
from voicecraft_kernel.domain.workflow import Transition, Workflow
from voicecraft_kernel.exceptions import (
    InvalidStateTransitionError,
    ProjectNotFoundError,
    StaleProjectStateError,
    VoicecraftKernelError,
)
from voicecraft_kernel.logging_config import get_logger
from voicecraft_kernel.models.project import Project, ProjectHistoryEntry

logger = get_logger("services.project_guard")


class ProjectGuard:
    """Load / check / apply for project transitions."""

    def __init__(self, session: Session, clock: Clock, workflow: Workflow = PROJECT_WORKFLOW):
        self.session = session
        self._clock = clock
        self._workflow = workflow

    def load(self, project_id: UUID) -> Project:
        project = self.session.execute(
            select(Project)
            .where(Project.id == project_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def require(self, project: Project, action: ProjectAction) -> Transition:
        """Return the transition for ``action`` or raise InvalidStateTransitionError."""
        transition = self._workflow.resolve(project.status, action.value)
        if transition is None:
            raise InvalidStateTransitionError(
                project.id,
                action.value,
                project.status,
                allowed_from=self._workflow.sources_of(action.value),
            )
        return transition

    def refuse(self, transition: Transition, error: VoicecraftKernelError) -> VoicecraftKernelError:
        """
        Tag ``error`` with the guard of ``transition`` and return it for raising.

        Used when the table allows the action but the guard's condition does
        not hold, e.g. ``raise guard.refuse(transition, ExpertUnavailableError(...))``.
        """
        if transition.guard is not None:
            error.guard = transition.guard.name
            logger.warning(
                "project_guard_refused",
                extra={
                    "action": transition.action,
                    "from_status": transition.from_state,
                    "guard": transition.guard.name,
                    "error_code": error.code,
                },
            )
        return error

    def apply(
        self,
        project: Project,
        action: ProjectAction,
        *,
        actor_id: UUID,
        **values: Any,
    ) -> Project:
        """
        Move ``project`` along ``action`` and write ``values`` in the same UPDATE.

        Returns the refreshed project (new status and version).
        """
        transition = self.require(project, action)
        expected_status = project.status
        expected_version = project.version

        result = self.session.execute(
            update(Project)
            .where(
                Project.id == project.id,
                Project.status == expected_status,
                Project.version == expected_version,
            )
            .values(
                status=transition.to_state,
                version=Project.version + 1,
                updated_by_id=actor_id,
                updated_at=self._clock.now(),
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self.session.execute(
                select(Project.status).where(Project.id == project.id)
            ).scalar_one_or_none()
            logger.warning(
                "project_transition_conflict",
                extra={
                    "project_id": str(project.id),
                    "action": action.value,
                    "expected_status": expected_status,
                    "expected_version": expected_version,
                    "current_status": current,
                },
            )
            if current is None:
                raise ProjectNotFoundError(project.id)
            raise StaleProjectStateError(project.id, action.value, expected_status, current)

        refreshed = self.load(project.id)
        logger.info(
            "project_transition_applied",
            extra={
                "project_id": str(project.id),
                "action": action.value,
                "from_status": expected_status,
                "to_status": refreshed.status,
                "version": refreshed.version,
                "moves_credits": transition.moves_credits,
            },
        )
        return refreshed

    def append_history(
        self,
        project: Project,
        kind: str,
        payload: dict[str, Any],
        *,
        actor_id: UUID,
    ) -> ProjectHistoryEntry:
        """Add one history row stamped with the project's current version."""
        entry = ProjectHistoryEntry(
            project_id=project.id,
            project_version=project.version,
            kind=kind,
            payload=payload,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self.session.flush()
        return entry
