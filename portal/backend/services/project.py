"""
Project Service.

Projects and their checklists.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.utils import utc_now
from portal.backend.models.project import Project, ProjectChecklistItem
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.project import ChecklistItemRepository, ProjectRepository
from portal.backend.schemas.project import (
    ChecklistItemCreate,
    ChecklistItemUpdate,
    ProjectCreate,
    ProjectUpdate,
)
from portal.backend.services.base import BaseService


def progress_percent(completed: int, total: int) -> int:
    """Whole-number completion percentage; an empty checklist is 0%."""
    if total == 0:
        return 0
    return round(completed * 100 / total)


class ProjectService(BaseService):
    """Service for project business logic."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ProjectRepository(session)
        self.checklist = ChecklistItemRepository(session)
        self.contacts = ContactRepository(session)

    async def list_projects(
        self,
        org_id: str,
        status: str | None = None,
        contact_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Project], int]:
        return await self.repo.list_for_org(
            org_id, status=status, contact_id=contact_id, limit=limit, offset=offset,
        )

    async def create_project(self, org_id: str, data: ProjectCreate) -> Project:
        if data.contact_id:
            await self.contacts.get_in_org(data.contact_id, org_id)

        self._log_operation("Creating project", org_id=org_id, name=data.name)
        fields = data.model_dump()
        if fields["status"] == "completed":
            fields["completed_at"] = utc_now()
        return await self._execute_db_operation(
            "create_project", self.repo.create(org_id=org_id, **fields),
        )

    async def get_project(self, org_id: str, project_id: str) -> Project:
        return await self.repo.get_in_org(project_id, org_id)

    async def get_project_detail(self, org_id: str, project_id: str) -> dict:
        """Project fields plus checklist progress."""
        project = await self.repo.get_in_org(project_id, org_id)
        completed, total = await self.checklist.progress(project.id)
        return {
            "project": project,
            "checklist_completed": completed,
            "checklist_total": total,
            "progress": progress_percent(completed, total),
        }

    async def update_project(self, org_id: str, project_id: str, data: ProjectUpdate) -> Project:
        project = await self.repo.get_in_org(project_id, org_id)
        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            return project

        if update_data.get("contact_id"):
            await self.contacts.get_in_org(update_data["contact_id"], org_id)

        status = update_data.get("status")
        if status == "completed" and project.status != "completed":
            update_data["completed_at"] = utc_now()
        elif status is not None and status != "completed":
            update_data["completed_at"] = None

        self._log_operation("Updating project", project_id=project_id, fields=list(update_data))
        return await self._execute_db_operation(
            "update_project", self.repo.apply(project, **update_data),
        )

    async def delete_project(self, org_id: str, project_id: str) -> None:
        project = await self.repo.get_in_org(project_id, org_id)
        self._log_operation("Deleting project", project_id=project_id)
        await self._execute_db_operation("delete_project", self.repo.remove(project))

    # -------------------------------------------------------------------------
    # Checklist
    # -------------------------------------------------------------------------

    async def get_checklist(self, org_id: str, project_id: str) -> dict:
        await self.repo.get_in_org(project_id, org_id)
        items = await self.checklist.list_for_project(project_id)
        completed = sum(1 for item in items if item.is_completed)
        return {
            "items": items,
            "completed": completed,
            "total": len(items),
            "progress": progress_percent(completed, len(items)),
        }

    async def add_checklist_item(
        self, org_id: str, project_id: str, data: ChecklistItemCreate,
    ) -> ProjectChecklistItem:
        await self.repo.get_in_org(project_id, org_id)
        sort_order = await self.checklist.next_sort_order(project_id)
        return await self.checklist.create(
            project_id=project_id, title=data.title.strip(), sort_order=sort_order,
        )

    async def update_checklist_item(
        self,
        org_id: str,
        project_id: str,
        item_id: str,
        data: ChecklistItemUpdate,
        acting_contact_id: str,
    ) -> ProjectChecklistItem:
        """Toggling is_completed stamps or clears completed_at and completed_by."""
        await self.repo.get_in_org(project_id, org_id)
        item = await self.checklist.get_in_project(item_id, project_id)
        update_data = data.model_dump(exclude_unset=True)

        if "is_completed" in update_data and update_data["is_completed"] != item.is_completed:
            if update_data["is_completed"]:
                update_data["completed_at"] = utc_now()
                update_data["completed_by"] = acting_contact_id
            else:
                update_data["completed_at"] = None
                update_data["completed_by"] = None

        return await self.checklist.apply(item, **update_data)

    async def delete_checklist_item(self, org_id: str, project_id: str, item_id: str) -> None:
        await self.repo.get_in_org(project_id, org_id)
        item = await self.checklist.get_in_project(item_id, project_id)
        await self.checklist.remove(item)
