"""Сервисные функции для работы с задачами."""

import logging
from datetime import date

from peewee import JOIN, ModelSelect, fn

from database.db import db
from database.models import Priority, Project, Task, TaskStatus
from services import project_service
from services.errors import FormValidationError, TaskNotFoundError
from services.query_utils import (
    ASC,
    PRIORITY_ORDER,
    TASK_STATUS_ORDER,
    apply_search,
    directed,
    nulls_last,
    order_case,
)
from services.validators import ensure_valid, parse_amount, parse_date, validate_task_form
from utils.time_utils import utcnow

logger = logging.getLogger(__name__)

TASK_ALLOWED_FIELDS = {
    "title",
    "description",
    "project_id",
    "assigned_to",
    "created_by",
    "status",
    "priority",
    "estimated_hours",
    "start_date",
    "due_date",
    "dependencies",
    "tags",
}

TASK_SORT_FIELDS = {"due_date", "priority", "status", "title", "created"}

CLOSED_STATUSES = (TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value)

# Зависимости задаются номерами задач в этом же списке.
DEFAULT_TASKS = [
    {
        "project_title": "E-commerce Platform Redesign",
        "title": "Set up project repository",
        "description": "Initialize Git repository, set up project structure, "
        "and configure development environment.",
        "assigned_to": ["user-1"],
        "status": "completed",
        "priority": "high",
        "estimated_hours": 4,
        "actual_hours": 3.5,
        "start_date": date(2024, 1, 15),
        "due_date": date(2024, 1, 16),
        "depends_on": [],
        "tags": ["setup", "development"],
    },
    {
        "project_title": "E-commerce Platform Redesign",
        "title": "Design database schema",
        "description": "Create comprehensive database schema for the e-commerce "
        "platform including user management, product catalog, and order processing.",
        "assigned_to": ["user-1", "user-2"],
        "status": "completed",
        "priority": "high",
        "estimated_hours": 8,
        "actual_hours": 7,
        "start_date": date(2024, 1, 16),
        "due_date": date(2024, 1, 18),
        "depends_on": [0],
        "tags": ["database", "design"],
    },
    {
        "project_title": "E-commerce Platform Redesign",
        "title": "Implement user authentication",
        "description": "Build secure user authentication system with JWT tokens, "
        "password hashing, and session management.",
        "assigned_to": ["user-2"],
        "status": "in_progress",
        "priority": "high",
        "estimated_hours": 12,
        "actual_hours": 8,
        "start_date": date(2024, 1, 18),
        "due_date": date(2024, 1, 22),
        "depends_on": [1],
        "tags": ["authentication", "security"],
    },
    {
        "project_title": "E-commerce Platform Redesign",
        "title": "Create product catalog API",
        "description": "Develop RESTful API endpoints for product management "
        "including CRUD operations, search, and filtering.",
        "assigned_to": ["user-1"],
        "status": "todo",
        "priority": "medium",
        "estimated_hours": 16,
        "start_date": date(2024, 1, 22),
        "due_date": date(2024, 1, 26),
        "depends_on": [1, 2],
        "tags": ["api", "products"],
    },
    {
        "project_title": "Mobile App Development",
        "title": "Design mobile app wireframes",
        "description": "Create wireframes and user flow diagrams for the "
        "portfolio showcase mobile app.",
        "assigned_to": ["user-3"],
        "status": "completed",
        "priority": "high",
        "estimated_hours": 6,
        "actual_hours": 5.5,
        "start_date": date(2024, 1, 20),
        "due_date": date(2024, 1, 22),
        "depends_on": [],
        "tags": ["design", "wireframes"],
    },
    {
        "project_title": "Mobile App Development",
        "title": "Set up React Native project",
        "description": "Initialize React Native project with Expo, configure "
        "navigation, and set up development environment.",
        "assigned_to": ["user-2"],
        "status": "in_progress",
        "priority": "high",
        "estimated_hours": 5,
        "actual_hours": 3,
        "start_date": date(2024, 1, 22),
        "due_date": date(2024, 1, 23),
        "depends_on": [4],
        "tags": ["setup", "react-native"],
    },
]


def _clean(data: dict) -> dict:
    clean = {k: v for k, v in data.items() if k in TASK_ALLOWED_FIELDS}
    if "estimated_hours" in clean:
        hours = parse_amount(clean["estimated_hours"])
        clean["estimated_hours"] = float(hours) if hours is not None else 0.0
    for key in ("start_date", "due_date"):
        if key in clean:
            clean[key] = parse_date(clean[key])
    if "status" in clean:
        clean["status"] = TaskStatus(clean["status"]).value
    if "priority" in clean:
        clean["priority"] = Priority(clean["priority"]).value
    for key in ("assigned_to", "tags"):
        if key in clean:
            clean[key] = [str(v).strip() for v in clean[key] or [] if str(v).strip()]
    if "dependencies" in clean:
        clean["dependencies"] = [int(v) for v in clean["dependencies"] or []]
    if "project_id" in clean:
        clean["project"] = clean.pop("project_id")
    return clean


def _ensure_project_exists(project_id) -> None:
    if project_service.get_project_by_id(project_id) is None:
        raise FormValidationError({"project_id": "Проект не найден"})


def _apply_status(task: Task, status: str) -> None:
    """Сменить статус, отметив или сбросив время выполнения."""
    if status == TaskStatus.COMPLETED.value and task.status != status:
        task.completed_at = utcnow()
    elif status != TaskStatus.COMPLETED.value and task.status == TaskStatus.COMPLETED.value:
        task.completed_at = None
    task.status = status


# ──────────────────────────── Инициализация ─────────────────────────────


def initialize_tasks() -> int:
    """Заполнить пустую таблицу задачами-примерами для демо-проектов."""
    if Task.select().exists():
        return 0
    created: dict[int, Task] = {}
    project_ids: set[int] = set()
    with db.atomic():
        for index, item in enumerate(DEFAULT_TASKS):
            data = dict(item)
            project = Project.get_or_none(Project.title == data.pop("project_title"))
            depends_on = data.pop("depends_on")
            if project is None:
                continue
            if data["status"] == TaskStatus.COMPLETED.value:
                data["completed_at"] = utcnow()
            task = Task.create(
                project=project,
                created_by="user-1",
                dependencies=[created[i].id for i in depends_on if i in created],
                **data,
            )
            created[index] = task
            project_ids.add(project.id)
        for project_id in project_ids:
            project_service.refresh_task_counts(project_id)
    logger.info("🌱 Добавлено демонстрационных задач: %s", len(created))
    return len(created)


# ──────────────────────────── Получение ─────────────────────────────


def get_all_tasks() -> ModelSelect:
    """Вернуть все задачи без удалённых."""
    return Task.active().order_by(Task.created_at.desc(), Task.id.desc())


def get_tasks_by_project(project_id: int) -> ModelSelect:
    return get_all_tasks().where(Task.project == project_id)


def get_task_by_id(task_id: int) -> Task | None:
    return Task.get_or_none((Task.id == task_id) & (Task.is_deleted == False))


def get_tasks_by_status(status: str) -> ModelSelect:
    return get_all_tasks().where(Task.status == TaskStatus(status).value)


def get_tasks_by_assignee(user_id: str) -> list[Task]:
    """Задачи, в исполнителях которых есть ``user_id``."""
    return [task for task in get_all_tasks() if user_id in (task.assigned_to or [])]


def _overdue_condition(today: date):
    return (
        Task.due_date.is_null(False)
        & (Task.due_date < today)
        & Task.status.not_in(CLOSED_STATUSES)
    )


def get_overdue_tasks(today: date | None = None) -> ModelSelect:
    """Незакрытые задачи со сроком раньше ``today``."""
    today = today or date.today()
    return get_all_tasks().where(_overdue_condition(today))


def is_overdue(task: Task, today: date | None = None) -> bool:
    today = today or date.today()
    return bool(
        task.due_date and task.due_date < today and task.status not in CLOSED_STATUSES
    )


# ──────────────────────────── CRUD ─────────────────────────────


def add_task(**kwargs) -> Task:
    """Создать задачу.

    Args:
        **kwargs: Поля задачи, такие как ``title``, ``project_id`` и ``due_date``.

    Returns:
        Task: Созданная задача с ``actual_hours = 0``.
    """
    ensure_valid(validate_task_form(kwargs))
    clean_data = _clean(kwargs)
    _ensure_project_exists(clean_data["project"])
    status = clean_data.pop("status", TaskStatus.TODO.value)

    with db.atomic():
        task = Task(actual_hours=0, status=TaskStatus.TODO.value, **clean_data)
        _apply_status(task, status)
        task.save()
        project_service.refresh_task_counts(task.project_id)

    logger.info(
        "📝 Создана задача #%s: '%s' (due %s)", task.id, task.title, task.due_date
    )
    return task


def update_task(task_id: int, **fields) -> Task:
    """Изменить поля задачи.

    Переход в ``completed`` проставляет ``completed_at``, выход из него
    очищает отметку. Счётчики проекта пересчитываются при смене статуса.
    """
    task = get_task_by_id(task_id)
    if task is None:
        logger.warning("❗ Задача %s не найдена для обновления", task_id)
        raise TaskNotFoundError(task_id)

    merged = {
        "title": task.title,
        "project_id": task.project_id,
        "estimated_hours": task.estimated_hours,
        "start_date": task.start_date,
        "due_date": task.due_date,
    }
    merged.update({k: v for k, v in fields.items() if k in TASK_ALLOWED_FIELDS})
    ensure_valid(validate_task_form(merged))

    updates = _clean(fields)
    if "project" in updates:
        _ensure_project_exists(updates["project"])
    old_status = task.status
    old_project_id = task.project_id
    status = updates.pop("status", None)

    with db.atomic():
        for key, value in updates.items():
            setattr(task, key, value)
        if status is not None:
            _apply_status(task, status)
        task.save()
        status_changed = status is not None and status != old_status
        if status_changed or task.project_id != old_project_id:
            project_service.refresh_task_counts(task.project_id)
            if task.project_id != old_project_id:
                project_service.refresh_task_counts(old_project_id)

    logger.info("✏️ Обновлена задача #%s", task.id)
    return task


def delete_task(task_id: int) -> bool:
    """Пометить задачу удалённой и убрать её из зависимостей других задач."""
    task = get_task_by_id(task_id)
    if task is None:
        logger.warning("❗ Задача %s не найдена для удаления", task_id)
        return False

    with db.atomic():
        task.soft_delete()
        for other in Task.active():
            deps = other.dependencies or []
            if task.id in deps:
                other.dependencies = [d for d in deps if d != task.id]
                other.save()
        project_service.refresh_task_counts(task.project_id)

    logger.info("🗑 Задача #%s помечена как удалённая", task.id)
    return True


def bulk_update_task_status(task_ids: list[int], status: str) -> list[Task]:
    """Массово сменить статус задач; вернуть изменённые задачи."""
    status = TaskStatus(status).value
    if not task_ids:
        return []
    updated: list[Task] = []
    project_ids: set[int] = set()
    with db.atomic():
        for task in Task.active().where(Task.id.in_(task_ids)):
            _apply_status(task, status)
            task.save()
            updated.append(task)
            project_ids.add(task.project_id)
        for project_id in project_ids:
            project_service.refresh_task_counts(project_id)
    logger.info("🔁 Статус %s установлен для %s задач", status, len(updated))
    return updated


# ──────────────────────────── Статистика ─────────────────────────────


def get_task_stats(project_id: int | None = None, today: date | None = None) -> dict:
    today = today or date.today()
    query = Task.active()
    if project_id is not None:
        query = query.where(Task.project == project_id)
    counts = get_status_counts(project_id)
    return {
        "total": counts["all"],
        "completed": counts[TaskStatus.COMPLETED.value],
        "in_progress": counts[TaskStatus.IN_PROGRESS.value],
        "todo": counts[TaskStatus.TODO.value],
        "overdue": query.where(_overdue_condition(today)).count(),
        "blocked": counts[TaskStatus.BLOCKED.value],
    }


def get_status_counts(project_id: int | None = None) -> dict[str, int]:
    """Количество задач по статусам, плюс ``all``."""
    counts = {status.value: 0 for status in TaskStatus}
    query = Task.active()
    if project_id is not None:
        query = query.where(Task.project == project_id)
    rows = (
        query.select(Task.status, fn.COUNT(Task.id))
        .group_by(Task.status)
        .tuples()
    )
    for status, cnt in rows:
        counts[status] = cnt
    counts["all"] = sum(counts.values())
    return counts


def build_task_query(
    project_id: int | None = None,
    search_text: str = "",
    status: str | None = None,
    priority: str | None = None,
    sort_field: str = "due_date",
    sort_order: str = ASC,
) -> ModelSelect:
    """Выборка задач для списка: поиск, фильтры и сортировка.

    Поиск идёт по названию, описанию, тегам и названию проекта.
    Задачи без срока при сортировке по сроку идут в конце.
    """
    query = (
        Task.active()
        .join(Project, JOIN.LEFT_OUTER, on=(Task.project == Project.id))
        .switch(Task)
    )
    query = apply_search(
        query, [Task.title, Task.description, Task.tags, Project.title], search_text
    )
    if project_id:
        query = query.where(Task.project == project_id)
    if status and status != "all":
        query = query.where(Task.status == TaskStatus(status).value)
    if priority and priority != "all":
        query = query.where(Task.priority == Priority(priority).value)

    if sort_field not in TASK_SORT_FIELDS:
        sort_field = "due_date"
    if sort_field == "due_date":
        keys = nulls_last(Task.due_date, sort_order)
    elif sort_field == "priority":
        keys = [directed(order_case(Task.priority, PRIORITY_ORDER), sort_order)]
    elif sort_field == "status":
        keys = [directed(order_case(Task.status, TASK_STATUS_ORDER), sort_order)]
    elif sort_field == "title":
        keys = [directed(fn.LOWER(Task.title), sort_order)]
    else:
        keys = [directed(Task.created_at, sort_order)]
    return query.order_by(*keys, directed(Task.id, sort_order))
