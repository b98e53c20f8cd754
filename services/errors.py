"""Исключения сервисного слоя."""

from __future__ import annotations


class NotFoundError(LookupError):
    """Запрошенная запись не найдена."""

    entity = "Запись"

    def __init__(self, entity_id) -> None:
        self.entity_id = entity_id
        super().__init__(f"{self.entity} id={entity_id} не найден(а)")


class ClientNotFoundError(NotFoundError):
    entity = "Клиент"


class ProjectNotFoundError(NotFoundError):
    entity = "Проект"


class TaskNotFoundError(NotFoundError):
    entity = "Задача"


class TimeEntryNotFoundError(NotFoundError):
    entity = "Запись времени"


class AttachmentNotFoundError(NotFoundError):
    entity = "Вложение"


class NotificationNotFoundError(NotFoundError):
    entity = "Уведомление"


class FormValidationError(ValueError):
    """Ошибки заполнения формы: ``{поле: сообщение}``."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        summary = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(f"Исправьте ошибки перед сохранением: {summary}")


__all__ = [
    "NotFoundError",
    "ClientNotFoundError",
    "ProjectNotFoundError",
    "TaskNotFoundError",
    "TimeEntryNotFoundError",
    "AttachmentNotFoundError",
    "NotificationNotFoundError",
    "FormValidationError",
]
