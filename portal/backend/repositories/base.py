"""
Base Repository.

Base class for all repositories with common CRUD operations.
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import NotFoundError
from portal.backend.core.logging import get_logger
from portal.backend.models.base import Base

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with common CRUD operations.

    Subclasses should set the model class and a human-readable name
    used in NotFoundError messages:

        class InvoiceRepository(BaseRepository[Invoice]):
            model = Invoice
            label = "Invoice"
    """

    model: type[ModelType]
    label: str | None = None

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @property
    def _label(self) -> str:
        return self.label or self.model.__name__

    async def get_by_id(self, id: str | UUID) -> ModelType:
        """
        Get a single record by ID.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id_or_none(id)
        if instance is None:
            raise NotFoundError(f"{self._label} not found")
        return instance

    async def get_by_id_or_none(self, id: str | UUID) -> ModelType | None:
        """Get a single record by ID, returning None if not found."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == str(id))
        )
        return result.scalar_one_or_none()

    async def get_in_org(self, id: str | UUID, org_id: str) -> ModelType:
        """
        Get a tenant-owned record by ID.

        Rows of other organizations are reported as missing, never as forbidden.

        Raises:
            NotFoundError: If record not found in this organization
        """
        result = await self.session.execute(
            select(self.model).where(
                self.model.id == str(id),
                self.model.org_id == org_id,
            )
        )
        instance = result.scalar_one_or_none()
        if instance is None:
            raise NotFoundError(f"{self._label} not found")
        return instance

    async def get_all(self, limit: int = 50, offset: int = 0) -> list[ModelType]:
        """Get all records with pagination."""
        result = await self.session.execute(
            select(self.model).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def find(
        self,
        *conditions: ColumnElement[bool],
        order_by: Any = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ModelType]:
        """
        Get records matching all conditions.

        Args:
            conditions: SQLAlchemy boolean expressions, ANDed together
            order_by: Column or expression(s) to order by
            limit: Maximum number of rows (None for no limit)
            offset: Number of rows to skip
        """
        query = select(self.model).where(*conditions)
        if order_by is not None:
            if isinstance(order_by, (list, tuple)):
                query = query.order_by(*order_by)
            else:
                query = query.order_by(order_by)
        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_one(self, *conditions: ColumnElement[bool]) -> ModelType | None:
        """Get the first record matching all conditions, or None."""
        result = await self.session.execute(
            select(self.model).where(*conditions).limit(1)
        )
        return result.scalar_one_or_none()

    async def count(self, *conditions: ColumnElement[bool]) -> int:
        """Count records matching all conditions."""
        result = await self.session.execute(
            select(func.count()).select_from(self.model).where(*conditions)
        )
        return result.scalar_one()

    async def create(self, **kwargs: Any) -> ModelType:
        """Create a new record."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def update(self, id: str | UUID, **kwargs: Any) -> ModelType:
        """
        Update an existing record.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id(id)
        return await self.apply(instance, **kwargs)

    async def apply(self, instance: ModelType, **kwargs: Any) -> ModelType:
        """Set attributes on an already loaded record and flush."""
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)

        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def delete(self, id: str | UUID) -> None:
        """
        Delete a record by ID.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id(id)
        await self.remove(instance)

    async def remove(self, instance: ModelType) -> None:
        """Delete an already loaded record."""
        await self.session.delete(instance)
        await self.session.flush()

    async def exists(self, id: str | UUID) -> bool:
        """Check if a record exists by ID."""
        result = await self.session.execute(
            select(self.model.id).where(self.model.id == str(id))
        )
        return result.scalar_one_or_none() is not None
