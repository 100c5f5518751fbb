"""
Module: voicecraft_kernel.selectors.project_selector
Responsibility: Read-only project queries returning ProjectRecord,
    ProjectHistoryRecord and WorkItemRecord DTOs.
Architecture position: Kernel > Selectors.

Failure modes:
    - ProjectNotFoundError from get() when the project does not exist.
"""

from uuid import UUID

from sqlalchemy import select

from voicecraft_kernel.domain.dtos import ProjectHistoryRecord, ProjectRecord, WorkItemRecord
from voicecraft_kernel.domain.project_workflow import ProjectStatus
from voicecraft_kernel.exceptions import ProjectNotFoundError
from voicecraft_kernel.models.project import Project, ProjectHistoryEntry, ProjectWorkItem
from voicecraft_kernel.selectors.base import BaseSelector


class ProjectSelector(BaseSelector[Project]):

    def get(self, project_id: UUID) -> ProjectRecord:
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return ProjectRecord.from_model(project)

    def list_for_client(
        self,
        client_account_id: UUID,
        status: ProjectStatus | str | None = None,
    ) -> list[ProjectRecord]:
        stmt = select(Project).where(Project.client_account_id == client_account_id)
        if status is not None:
            stmt = stmt.where(Project.status == ProjectStatus(status).value)
        stmt = stmt.order_by(Project.created_at.desc(), Project.id)
        return [ProjectRecord.from_model(p) for p in self.session.execute(stmt).scalars()]

    def list_for_expert(
        self,
        expert_id: UUID,
        status: ProjectStatus | str | None = None,
    ) -> list[ProjectRecord]:
        stmt = select(Project).where(Project.expert_id == expert_id)
        if status is not None:
            stmt = stmt.where(Project.status == ProjectStatus(status).value)
        stmt = stmt.order_by(Project.created_at.desc(), Project.id)
        return [ProjectRecord.from_model(p) for p in self.session.execute(stmt).scalars()]

    def history(self, project_id: UUID, kind: str | None = None) -> list[ProjectHistoryRecord]:
        """History rows in the order they were written."""
        stmt = select(ProjectHistoryEntry).where(ProjectHistoryEntry.project_id == project_id)
        if kind is not None:
            stmt = stmt.where(ProjectHistoryEntry.kind == kind)
        stmt = stmt.order_by(ProjectHistoryEntry.project_version)
        return [ProjectHistoryRecord.from_model(h) for h in self.session.execute(stmt).scalars()]

    def work_items(self, project_id: UUID, role: str | None = None) -> list[WorkItemRecord]:
        stmt = select(ProjectWorkItem).where(ProjectWorkItem.project_id == project_id)
        if role is not None:
            stmt = stmt.where(ProjectWorkItem.role == role)
        stmt = stmt.order_by(ProjectWorkItem.role, ProjectWorkItem.position)
        return [WorkItemRecord.from_model(w) for w in self.session.execute(stmt).scalars()]
