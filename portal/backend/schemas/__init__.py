# Pydantic schemas package
from portal.backend.schemas.base import (
    ApiResponse,
    ErrorDetail,
    ErrorResponse,
    JobAccepted,
    PaginatedResponse,
    PaginationInfo,
    ResponseMetadata,
)

__all__ = [
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    "JobAccepted",
    "PaginatedResponse",
    "PaginationInfo",
    "ResponseMetadata",
]
