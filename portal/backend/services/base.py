"""
Base Service.

Services hold the portal's business rules on top of the repositories.
Each one wraps a single AsyncSession; tenant-scoped methods take the
acting org_id explicitly. Database errors surface as ConflictError or
DatabaseError so endpoints never see SQLAlchemy exceptions.
"""

from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import (
    ConflictError,
    DatabaseError,
    ValidationError,
)
from portal.backend.core.logging import get_logger

T = TypeVar("T")


class BaseService:
    """Session holder with DB error translation, validation and logging helpers."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._logger = get_logger(self.__class__.__module__)

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def _execute_db_operation(
        self,
        operation: str,
        coro: Any,
        conflict_message: str = "Resource already exists",
    ) -> T:
        """
        Await a repository call, translating database failures.

        A unique collision (invoice number, org slug, membership...)
        raises ConflictError with conflict_message; any other integrity
        or driver error raises DatabaseError naming the operation.
        """
        try:
            return await coro
        except IntegrityError as e:
            self._logger.warning(
                "Database integrity error",
                extra={"operation": operation, "error": str(e)},
            )
            error_str = str(e).lower()
            if "unique" in error_str or "duplicate" in error_str:
                raise ConflictError(conflict_message)
            raise DatabaseError(f"Database constraint violation: {operation}")
        except SQLAlchemyError as e:
            self._logger.error(
                "Database error",
                extra={"operation": operation, "error": str(e)},
            )
            raise DatabaseError(f"Database operation failed: {operation}")

    def _validate_required(self, fields: dict[str, Any], field_names: list[str]) -> None:
        """Raise ValidationError listing every name that is None or blank."""
        missing = [
            name
            for name in field_names
            if fields.get(name) is None or (isinstance(fields[name], str) and not fields[name].strip())
        ]
        if missing:
            raise ValidationError(
                "Required fields missing",
                details={"missing_fields": missing},
            )

    def _validate_string_length(
        self,
        value: str,
        field_name: str,
        min_length: int | None = None,
        max_length: int | None = None,
    ) -> None:
        if min_length is not None and len(value) < min_length:
            raise ValidationError(
                f"{field_name} too short",
                details={field_name: f"Minimum length is {min_length}"},
            )
        if max_length is not None and len(value) > max_length:
            raise ValidationError(
                f"{field_name} too long",
                details={field_name: f"Maximum length is {max_length}"},
            )

    def _log_operation(self, operation: str, **context: Any) -> None:
        self._logger.info(operation, extra={"service": self.__class__.__name__, **context})

    def _log_debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, extra={"service": self.__class__.__name__, **context})
