"""Security constants and permissions."""
from enum import Enum


class Permission(str, Enum):
    """Permission constants for global RBAC."""

    # Project permissions
    PROJECT_VIEW = "project.view"
    PROJECT_MANAGE = "project.manage"

    # Workflow permissions
    WORKFLOW_VIEW = "workflow.view"
    WORKFLOW_MANAGE = "workflow.manage"

    # Task permissions
    TASK_VIEW = "task.view"
    TASK_WORK = "task.work"

    # User management
    USER_VIEW = "user.view"
    USER_MANAGE = "user.manage"


# Role definitions with permissions
ROLE_PERMISSIONS = {
    "admin": [
        Permission.PROJECT_VIEW,
        Permission.PROJECT_MANAGE,
        Permission.WORKFLOW_VIEW,
        Permission.WORKFLOW_MANAGE,
        Permission.TASK_VIEW,
        Permission.TASK_WORK,
        Permission.USER_VIEW,
        Permission.USER_MANAGE,
    ],
    "user": [
        Permission.PROJECT_VIEW,
        Permission.WORKFLOW_VIEW,
        Permission.WORKFLOW_MANAGE,
        Permission.TASK_VIEW,
        Permission.TASK_WORK,
    ],
}
