"""Table-driven task status transition rules."""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple, Union

from app.models.task import TaskStatus
from app.models.workflow import WorkflowStageType

StatusLike = Union[TaskStatus, str]
StageTypeLike = Union[WorkflowStageType, str, None]
Transition = Tuple[TaskStatus, TaskStatus, WorkflowStageType]

READY_STATUSES = frozenset(
    {
        TaskStatus.READY_FOR_ANNOTATION,
        TaskStatus.READY_FOR_REVIEW,
        TaskStatus.READY_FOR_COMPLETION,
    }
)

# Target status -> statuses it may be entered from, in every stage type
_STAGE_INDEPENDENT_RULES = {
    TaskStatus.IN_PROGRESS: READY_STATUSES
    | {TaskStatus.SUSPENDED, TaskStatus.DEFERRED, TaskStatus.NOT_STARTED},
    TaskStatus.COMPLETED: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.SUSPENDED: READY_STATUSES | {TaskStatus.IN_PROGRESS},
    TaskStatus.DEFERRED: READY_STATUSES | {TaskStatus.IN_PROGRESS},
    TaskStatus.ARCHIVED: frozenset({TaskStatus.COMPLETED}),
}

# A manager reopening a finished task
_REOPEN = (TaskStatus.COMPLETED, TaskStatus.READY_FOR_ANNOTATION, WorkflowStageType.COMPLETION)

ALLOWED_TRANSITIONS: FrozenSet[Transition] = frozenset(
    {
        (current, target, stage_type)
        for target, sources in _STAGE_INDEPENDENT_RULES.items()
        for current in sources
        for stage_type in WorkflowStageType
    }
    | {_REOPEN}
)

# Statuses only ever set by task creation or workflow progression
SYSTEM_ONLY_STATUSES = frozenset(
    {TaskStatus.READY_FOR_REVIEW, TaskStatus.READY_FOR_COMPLETION, TaskStatus.NOT_STARTED}
)


@dataclass(frozen=True)
class TransitionDecision:
    """Outcome of a transition check."""

    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


def _coerce(enum_cls, value):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        return None


def _name(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


def _denial_reason(current: TaskStatus, target: TaskStatus, stage_type: WorkflowStageType) -> str:
    cur = current.value
    if target == TaskStatus.IN_PROGRESS:
        return f"Cannot change status from {cur} to IN_PROGRESS"
    if target == TaskStatus.COMPLETED:
        return f"Cannot complete task from status {cur}"
    if target == TaskStatus.SUSPENDED:
        if current == TaskStatus.COMPLETED:
            return "Cannot suspend a completed task"
        if current == TaskStatus.ARCHIVED:
            return "Cannot suspend an archived task"
        return f"Cannot suspend task from status {cur}"
    if target == TaskStatus.DEFERRED:
        if current == TaskStatus.SUSPENDED:
            return "Cannot defer a suspended task - please unsuspend first"
        if current == TaskStatus.COMPLETED:
            return "Cannot defer a completed task"
        if current == TaskStatus.ARCHIVED:
            return "Cannot defer an archived task"
        return f"Cannot defer task from status {cur}"
    if target == TaskStatus.ARCHIVED:
        return f"Cannot archive task from status {cur}"
    if target == TaskStatus.READY_FOR_ANNOTATION:
        return f"Cannot change to READY_FOR_ANNOTATION from {cur} in {stage_type.value} stage"
    if target == TaskStatus.NOT_STARTED:
        return "NOT_STARTED is only set during task creation"
    if target in SYSTEM_ONLY_STATUSES:
        return f"{target.value} is set automatically during workflow progression"
    if target in (TaskStatus.VETOED, TaskStatus.CHANGES_REQUIRED):
        return f"{target.value} is only set by the veto pipeline"
    return f"Unknown target status: {target.value}"


class TaskStatusValidator:
    """Stateless check of (current status, target status, stage type) triples."""

    transitions: FrozenSet[Transition] = ALLOWED_TRANSITIONS

    def validate(
        self,
        current_status: StatusLike,
        target_status: StatusLike,
        stage_type: StageTypeLike,
    ) -> TransitionDecision:
        current = _coerce(TaskStatus, current_status)
        target = _coerce(TaskStatus, target_status)
        stage = _coerce(WorkflowStageType, stage_type)

        if target is None:
            return TransitionDecision(False, f"Unknown target status: {_name(target_status)}")
        if current is None:
            return TransitionDecision(False, f"Unknown current status: {_name(current_status)}")
        if stage is None:
            return TransitionDecision(False, f"Unknown stage type: {_name(stage_type)}")

        if (current, target, stage) in self.transitions:
            return TransitionDecision(True)
        return TransitionDecision(False, _denial_reason(current, target, stage))

    def is_allowed(self, current_status: StatusLike, target_status: StatusLike, stage_type: StageTypeLike) -> bool:
        return self.validate(current_status, target_status, stage_type).allowed

    def allowed_targets(self, current_status: StatusLike, stage_type: StageTypeLike) -> List[TaskStatus]:
        """Statuses a user may move a task to from its current state."""
        current = _coerce(TaskStatus, current_status)
        stage = _coerce(WorkflowStageType, stage_type)
        return [
            target
            for target in TaskStatus
            if (current, target, stage) in self.transitions
        ]


def ready_status_for(stage_type: Optional[WorkflowStageType]) -> TaskStatus:
    """Status a freshly created task gets in a stage of the given type."""
    if stage_type == WorkflowStageType.ANNOTATION:
        return TaskStatus.READY_FOR_ANNOTATION
    if stage_type == WorkflowStageType.REVISION:
        return TaskStatus.READY_FOR_REVIEW
    if stage_type == WorkflowStageType.COMPLETION:
        return TaskStatus.READY_FOR_COMPLETION
    return TaskStatus.NOT_STARTED


task_status_validator = TaskStatusValidator()
