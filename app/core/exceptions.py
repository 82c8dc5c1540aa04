"""Custom exceptions."""
from typing import Any, Dict, List, Optional
from fastapi import HTTPException, status
from app.localization.helpers import get_translation


class NotFoundError(HTTPException):
    """Resource not found exception."""

    def __init__(self, detail: Optional[str] = None, locale: str = "en"):
        if detail is None:
            detail = get_translation("errors.resource_not_found", locale)
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class UnauthorizedError(HTTPException):
    """Unauthorized exception."""

    def __init__(self, detail: Optional[str] = None, locale: str = "en"):
        if detail is None:
            detail = get_translation("errors.not_authenticated", locale)
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class ForbiddenError(HTTPException):
    """Forbidden exception."""

    def __init__(self, detail: Optional[str] = None, locale: str = "en"):
        if detail is None:
            detail = get_translation("errors.permission_denied", locale)
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ValidationError(HTTPException):
    """Validation exception."""

    def __init__(self, detail: Optional[str] = None, locale: str = "en"):
        if detail is None:
            detail = get_translation("errors.validation_error", locale)
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class ConflictError(HTTPException):
    """Conflict exception."""

    def __init__(self, detail: Optional[str] = None, locale: str = "en"):
        if detail is None:
            detail = get_translation("errors.resource_conflict", locale)
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class TaskStatusTransitionError(ValidationError):
    """A requested task status change is not allowed."""

    def __init__(
        self,
        current_status: str,
        target_status: str,
        reason: Optional[str] = None,
        locale: str = "en",
    ):
        self.current_status = current_status
        self.target_status = target_status
        self.reason = reason
        detail = get_translation(
            "errors.invalid_status_transition",
            locale,
            current=current_status,
            target=target_status,
        )
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail=detail, locale=locale)


class TaskAssignmentError(ValidationError):
    """Task cannot be assigned in its current state."""

    def __init__(self, task_status: str, locale: str = "en"):
        self.task_status = task_status
        super().__init__(
            detail=get_translation("errors.task_not_assignable", locale, status=task_status),
            locale=locale,
        )


class DataSourceConflictError(ConflictError):
    """A data source is already bound to another non-completion stage."""

    def __init__(
        self,
        conflicts: List[Dict[str, Any]],
        stage_name: Optional[str] = None,
        locale: str = "en",
    ):
        self.conflicts = conflicts
        self.stage_name = stage_name
        names = ", ".join(
            f"'{item['stage_name']}' in workflow '{item['workflow_name']}'" for item in conflicts
        )
        detail = get_translation("errors.data_source_in_use", locale, stages=names)
        if stage_name:
            detail = get_translation(
                "errors.data_source_in_use_by_stage", locale, stages=names, stage=stage_name
            )
        super().__init__(detail=detail, locale=locale)
