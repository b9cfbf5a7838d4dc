"""
Project Repositories.

Data access for projects and checklist items.
"""

from sqlalchemy import func, select

from portal.backend.core.exceptions import NotFoundError
from portal.backend.models.project import Project, ProjectChecklistItem
from portal.backend.repositories.base import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    model = Project
    label = "Project"

    async def list_for_org(
        self,
        org_id: str,
        status: str | None = None,
        contact_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Project], int]:
        conditions = [Project.org_id == org_id]
        if status:
            conditions.append(Project.status == status)
        if contact_id:
            conditions.append(Project.contact_id == contact_id)
        items = await self.find(
            *conditions, order_by=Project.created_at.desc(), limit=limit, offset=offset,
        )
        return items, await self.count(*conditions)


class ChecklistItemRepository(BaseRepository[ProjectChecklistItem]):
    model = ProjectChecklistItem
    label = "Checklist item"

    async def list_for_project(self, project_id: str) -> list[ProjectChecklistItem]:
        return await self.find(
            ProjectChecklistItem.project_id == project_id,
            order_by=[ProjectChecklistItem.sort_order.asc(), ProjectChecklistItem.created_at.asc()],
        )

    async def get_in_project(self, item_id: str, project_id: str) -> ProjectChecklistItem:
        item = await self.find_one(
            ProjectChecklistItem.id == item_id,
            ProjectChecklistItem.project_id == project_id,
        )
        if item is None:
            raise NotFoundError("Checklist item not found")
        return item

    async def next_sort_order(self, project_id: str) -> int:
        result = await self.session.execute(
            select(func.max(ProjectChecklistItem.sort_order))
            .where(ProjectChecklistItem.project_id == project_id)
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    async def progress(self, project_id: str) -> tuple[int, int]:
        """Return (completed, total) for a project's checklist."""
        total = await self.count(ProjectChecklistItem.project_id == project_id)
        completed = await self.count(
            ProjectChecklistItem.project_id == project_id,
            ProjectChecklistItem.is_completed.is_(True),
        )
        return completed, total
