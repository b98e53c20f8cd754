"""Сервис работы с проектами."""

import logging
from datetime import date
from decimal import Decimal

from peewee import ModelSelect, fn

from database.db import db
from database.models import Client, Priority, Project, ProjectStatus, Task, TaskStatus
from services import client_service
from services.errors import FormValidationError, ProjectNotFoundError
from services.query_utils import (
    ASC,
    PRIORITY_ORDER,
    apply_search,
    directed,
    nulls_last,
    order_case,
    sum_column,
)
from services.validators import ensure_valid, parse_amount, parse_date, validate_project_form

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "Unknown Client"

PROJECT_ALLOWED_FIELDS = {
    "title",
    "description",
    "client_id",
    "client_name",
    "status",
    "priority",
    "budget",
    "total_spent",
    "hourly_rate",
    "estimated_hours",
    "start_date",
    "end_date",
    "deadline",
    "task_count",
    "completed_tasks",
    "notes",
}

PROJECT_SORT_FIELDS = {"title", "start_date", "deadline", "budget", "priority", "status", "created"}

DEFAULT_PROJECTS = [
    {
        "client_email": "john.smith@example.com",
        "title": "E-commerce Platform Redesign",
        "description": "Complete overhaul of the existing e-commerce platform "
        "with modern UI/UX and improved performance.",
        "status": "active",
        "priority": "high",
        "start_date": date(2024, 1, 15),
        "deadline": date(2024, 4, 15),
        "budget": Decimal("15000"),
        "total_spent": Decimal("8500"),
        "hourly_rate": Decimal("75"),
        "estimated_hours": 200,
        "notes": "Client is very responsive and provides timely feedback.",
    },
    {
        "client_email": "sarah@creativestudio.com",
        "title": "Mobile App Development",
        "description": "Native iOS and Android app for creative portfolio showcase.",
        "status": "active",
        "priority": "medium",
        "start_date": date(2024, 1, 20),
        "end_date": date(2024, 3, 20),
        "deadline": date(2024, 3, 25),
        "budget": Decimal("12000"),
        "total_spent": Decimal("3000"),
        "hourly_rate": Decimal("80"),
        "estimated_hours": 150,
        "notes": "First mobile project with this client.",
    },
    {
        "client_email": "mike.brown@startup.io",
        "title": "Website Maintenance",
        "description": "Ongoing maintenance and updates for startup website.",
        "status": "on_hold",
        "priority": "low",
        "start_date": date(2024, 1, 1),
        "budget": Decimal("2000"),
        "total_spent": Decimal("1200"),
        "hourly_rate": Decimal("60"),
        "estimated_hours": 40,
        "notes": "On hold due to client budget constraints.",
    },
    {
        "client_email": "john.smith@example.com",
        "title": "API Integration Project",
        "description": "Integration of third-party APIs for data synchronization.",
        "status": "completed",
        "priority": "medium",
        "start_date": date(2023, 12, 1),
        "end_date": date(2024, 1, 10),
        "budget": Decimal("5000"),
        "total_spent": Decimal("4800"),
        "hourly_rate": Decimal("75"),
        "estimated_hours": 67,
        "notes": "Successfully completed ahead of schedule.",
    },
]


def _clean(data: dict) -> dict:
    clean = {k: v for k, v in data.items() if k in PROJECT_ALLOWED_FIELDS}
    for key in ("budget", "total_spent", "hourly_rate"):
        if key in clean:
            clean[key] = parse_amount(clean[key])
    if "estimated_hours" in clean:
        hours = parse_amount(clean["estimated_hours"])
        clean["estimated_hours"] = float(hours) if hours is not None else None
    for key in ("start_date", "end_date", "deadline"):
        if key in clean:
            clean[key] = parse_date(clean[key])
    if "status" in clean:
        clean["status"] = ProjectStatus(clean["status"]).value
    if "priority" in clean:
        clean["priority"] = Priority(clean["priority"]).value
    if "client_id" in clean:
        clean["client"] = clean.pop("client_id")
    return clean


def _ensure_client_exists(client_id) -> None:
    if Client.get_or_none(Client.id == client_id) is None:
        raise FormValidationError({"client_id": "Клиент не найден"})


def _resolve_client_name(client_id) -> str:
    client = client_service.get_client_by_id(client_id)
    return client.name if client else UNKNOWN_CLIENT


def _snapshot(project: Project) -> dict:
    return {
        "title": project.title,
        "client_id": project.client_id,
        "start_date": project.start_date,
        "end_date": project.end_date,
        "deadline": project.deadline,
        "budget": project.budget,
        "hourly_rate": project.hourly_rate,
        "estimated_hours": project.estimated_hours,
    }


# ──────────────────────────── Инициализация ─────────────────────────────


def initialize_projects() -> int:
    """Заполнить пустую таблицу проектами-примерами для демо-клиентов."""
    if Project.select().exists():
        return 0
    created = 0
    with db.atomic():
        for item in DEFAULT_PROJECTS:
            data = dict(item)
            client = Client.get_or_none(Client.email == data.pop("client_email"))
            if client is None:
                continue
            Project.create(client=client, client_name=client.name, **data)
            created += 1
        for client in Client.select():
            client_service.update_client_project_count(client.id)
    logger.info("🌱 Добавлено демонстрационных проектов: %s", created)
    return created


# ──────────────────────────── Получение ─────────────────────────────


def get_all_projects() -> ModelSelect:
    return Project.active().order_by(Project.created_at.desc(), Project.id.desc())


def get_project_by_id(project_id: int) -> Project | None:
    return Project.get_or_none(
        (Project.id == project_id) & (Project.is_deleted == False)
    )


def get_projects_by_client_id(client_id: int) -> ModelSelect:
    return get_all_projects().where(Project.client == client_id)


def get_projects_by_status(status: str) -> ModelSelect:
    return get_all_projects().where(Project.status == ProjectStatus(status).value)


def search_projects(text: str) -> ModelSelect:
    """Поиск по названию, описанию и имени клиента."""
    return apply_search(
        get_all_projects(),
        [Project.title, Project.description, Project.client_name],
        text,
    )


# ──────────────────────────── CRUD ─────────────────────────────


def add_project(**kwargs) -> Project:
    """Создать проект и обновить счётчик проектов клиента."""
    ensure_valid(validate_project_form(kwargs))
    clean_data = _clean(kwargs)
    _ensure_client_exists(clean_data["client"])
    if not clean_data.get("client_name"):
        clean_data["client_name"] = _resolve_client_name(clean_data["client"])
    clean_data.setdefault("total_spent", Decimal("0"))

    with db.atomic():
        project = Project.create(**clean_data)
        client_service.update_client_project_count(project.client_id)
    logger.info("✅ Проект #%s создан: %s", project.id, project.title)
    return project


def update_project(project_id: int, **kwargs) -> Project:
    """Обновить проект; при смене клиента пересчитываются оба счётчика."""
    project = get_project_by_id(project_id)
    if project is None:
        logger.warning("❗ Проект с id=%s не найден для обновления", project_id)
        raise ProjectNotFoundError(project_id)

    merged = _snapshot(project)
    merged.update({k: v for k, v in kwargs.items() if k in PROJECT_ALLOWED_FIELDS})
    ensure_valid(validate_project_form(merged))

    updates = _clean(kwargs)
    if not updates:
        return project

    old_client_id = project.client_id
    client_changed = "client" in updates and int(updates["client"]) != old_client_id
    if client_changed:
        _ensure_client_exists(updates["client"])
    if client_changed and "client_name" not in updates:
        updates["client_name"] = _resolve_client_name(updates["client"])

    logger.info("✏️ Обновление проекта #%s: %s", project.id, updates)
    with db.atomic():
        for key, value in updates.items():
            setattr(project, key, value)
        project.save()
        if client_changed:
            client_service.update_client_project_count(old_client_id)
            client_service.update_client_project_count(project.client_id)
    return project


def delete_project(project_id: int) -> bool:
    project = get_project_by_id(project_id)
    if project is None:
        logger.warning("❗ Проект с id=%s не найден для удаления", project_id)
        return False
    with db.atomic():
        project.soft_delete()
        client_service.update_client_project_count(project.client_id)
    logger.info("🗑 Проект #%s удалён", project_id)
    return True


def refresh_task_counts(project_id: int) -> None:
    """Пересчитать ``task_count`` и ``completed_tasks`` проекта по задачам."""
    base = Task.active().where(Task.project == project_id)
    total = base.count()
    completed = base.where(Task.status == TaskStatus.COMPLETED.value).count()
    Project.update(task_count=total, completed_tasks=completed).where(
        Project.id == project_id
    ).execute()


# ──────────────────────────── Статистика ─────────────────────────────


def calculate_progress(project: Project) -> int:
    """Процент выполненных задач проекта (0, если задач нет)."""
    if not project.task_count:
        return 0
    return round((project.completed_tasks or 0) / project.task_count * 100)


def get_project_stats() -> dict:
    query = Project.active()
    counts = dict(
        query.select(Project.status, fn.COUNT(Project.id))
        .group_by(Project.status)
        .tuples()
    )
    return {
        "total": query.count(),
        "active": counts.get(ProjectStatus.ACTIVE.value, 0),
        "completed": counts.get(ProjectStatus.COMPLETED.value, 0),
        "on_hold": counts.get(ProjectStatus.ON_HOLD.value, 0),
        "cancelled": counts.get(ProjectStatus.CANCELLED.value, 0),
        "total_budget": sum_column(query, Project.budget),
        "total_spent": sum_column(query, Project.total_spent),
    }


def build_project_query(
    search_text: str = "",
    status: str | None = None,
    priority: str | None = None,
    client_id: int | None = None,
    sort_field: str = "created",
    sort_order: str = "desc",
) -> ModelSelect:
    """Выборка проектов с поиском, фильтрами и сортировкой."""
    query = search_projects(search_text)
    if status and status != "all":
        query = query.where(Project.status == ProjectStatus(status).value)
    if priority and priority != "all":
        query = query.where(Project.priority == Priority(priority).value)
    if client_id:
        query = query.where(Project.client == client_id)

    if sort_field not in PROJECT_SORT_FIELDS:
        sort_field = "created"
    if sort_field == "title":
        keys = [directed(fn.LOWER(Project.title), sort_order)]
    elif sort_field in ("start_date", "deadline", "budget"):
        keys = nulls_last(getattr(Project, sort_field), sort_order)
    elif sort_field == "priority":
        keys = [directed(order_case(Project.priority, PRIORITY_ORDER), sort_order)]
    elif sort_field == "status":
        keys = [directed(Project.status, sort_order)]
    else:
        keys = [directed(Project.created_at, sort_order)]
    return query.order_by(*keys, directed(Project.id, sort_order or ASC))
