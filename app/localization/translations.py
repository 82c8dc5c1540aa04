"""Translation catalogue keyed by locale."""

TRANSLATIONS = {
    "en": {
        "errors.resource_not_found": "Resource not found",
        "errors.not_authenticated": "Not authenticated",
        "errors.permission_denied": "Permission denied",
        "errors.validation_error": "Validation error",
        "errors.resource_conflict": "Resource conflict",
        "errors.task_not_found": "Task not found",
        "errors.stage_not_found": "Workflow stage not found",
        "errors.workflow_not_found": "Workflow not found",
        "errors.user_not_found": "User not found",
        "errors.data_source_not_found": "Data source not found",
        "errors.invalid_status_transition": "Cannot change task status from {current} to {target}",
        "errors.task_not_assignable": "Cannot assign a task with status {status}",
        "errors.data_source_in_use": "Data source is already used by stage {stages}",
        "errors.data_source_in_use_by_stage": "Data source for stage '{stage}' is already used by stage {stages}",
        "errors.assign_forbidden": "Insufficient permissions to assign this task",
        "errors.reviewer_self_assign_only": "Reviewers may only assign tasks to themselves",
        "errors.not_project_member": "User is not a member of this project",
        "errors.complete_forbidden": "Insufficient permissions to complete this task",
        "errors.veto_forbidden": "Insufficient permissions to veto this task",
        "errors.duplicate_connection": "Stages are already connected",
        "errors.self_connection": "A stage cannot be connected to itself",
        "errors.project_access_denied": "You are not a member of this project",
        "errors.invalid_credentials": "Incorrect email or password",
        "errors.invalid_token": "Could not validate credentials",
        "errors.inactive_user": "User is inactive",
    },
    "ru": {
        "errors.resource_not_found": "Ресурс не найден",
        "errors.not_authenticated": "Требуется аутентификация",
        "errors.permission_denied": "Доступ запрещен",
        "errors.validation_error": "Ошибка валидации",
        "errors.resource_conflict": "Конфликт ресурсов",
        "errors.task_not_found": "Задача не найдена",
        "errors.stage_not_found": "Этап процесса не найден",
        "errors.workflow_not_found": "Процесс не найден",
        "errors.user_not_found": "Пользователь не найден",
        "errors.data_source_not_found": "Источник данных не найден",
        "errors.invalid_status_transition": "Нельзя изменить статус задачи с {current} на {target}",
        "errors.task_not_assignable": "Нельзя назначить задачу со статусом {status}",
        "errors.data_source_in_use": "Источник данных уже используется этапом {stages}",
        "errors.data_source_in_use_by_stage": "Источник данных этапа '{stage}' уже используется этапом {stages}",
        "errors.assign_forbidden": "Недостаточно прав для назначения задачи",
        "errors.reviewer_self_assign_only": "Рецензент может назначать задачи только себе",
        "errors.not_project_member": "Пользователь не является участником проекта",
        "errors.complete_forbidden": "Недостаточно прав для завершения задачи",
        "errors.veto_forbidden": "Недостаточно прав для отклонения задачи",
        "errors.duplicate_connection": "Этапы уже связаны",
        "errors.self_connection": "Этап нельзя связать с самим собой",
        "errors.project_access_denied": "Вы не являетесь участником этого проекта",
        "errors.invalid_credentials": "Неверный email или пароль",
        "errors.invalid_token": "Не удалось проверить учетные данные",
        "errors.inactive_user": "Пользователь деактивирован",
    },
}
