from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from domain.constants import PG_INSUFFICIENT_PRIVILEGE, PERMISSION_DENIED_REGEX

# Error codes owned by this backend. Storage failures keep the storage code (e.g. "42501").
NOT_FOUND = "NOT_FOUND"
SETLIST_MISMATCH = "SETLIST_MISMATCH"
DUPLICATE_SONG = "DUPLICATE_SONG"
VALIDATION = "VALIDATION"
FORBIDDEN = "FORBIDDEN"
EXCEPTION = "EXCEPTION"
POSITION_CONFLICT = "POSITION_CONFLICT"
POSITION_INCONSISTENCY = "POSITION_INCONSISTENCY"
STORAGE_ERROR = "STORAGE_ERROR"
PRECHECK_FAILED = "PRECHECK_FAILED"


class OperationError(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    code: str
    status: int
    is_rls_issue: bool = Field(default=False, serialization_alias="isRLSIssue")
    details: Optional[Dict[str, Any]] = None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OperationResult(BaseModel):
    success: bool
    data: Any = None
    error: Optional[OperationError] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: OperationError) -> "OperationResult":
        return cls(success=False, error=error)


class ServiceError(Exception):
    """An already-classified failure raised inside a service operation."""

    def __init__(self, message: str, code: str, status: int, is_rls_issue: bool = False,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.error = OperationError(
            message=message, code=code, status=status,
            is_rls_issue=is_rls_issue, details=details,
        )


class ForbiddenError(Exception):
    pass


class StorageError(Exception):
    """Error surfaced by the storage layer, carrying an optional Postgres-style code."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def is_permission_error(self) -> bool:
        return self.code == PG_INSUFFICIENT_PRIVILEGE or bool(PERMISSION_DENIED_REGEX.search(self.message or ""))


class OrderingError(Exception):
    pass


def validation_error(message: str) -> ServiceError:
    return ServiceError(message, VALIDATION, 400)


def not_found(message: str) -> ServiceError:
    return ServiceError(message, NOT_FOUND, 404)
