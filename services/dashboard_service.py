"""Функции для получения сводной информации на дашборд."""

from datetime import date
from decimal import Decimal

from peewee import Case, fn

from database.models import (
    Client,
    ClientStatus,
    Project,
    ProjectStatus,
    Task,
    TaskStatus,
    TimeEntry,
)
from services.task_service import CLOSED_STATUSES
from utils.money import round_money, to_decimal


def _flag(condition) -> Case:
    return Case(None, ((condition, 1),), 0)


def get_dashboard_counters(today: date | None = None) -> dict:
    """Вернуть агрегированные счётчики клиентов, проектов и задач."""
    today = today or date.today()

    clients = (
        Client.active()
        .select(
            fn.COUNT(Client.id).alias("total"),
            fn.COALESCE(
                fn.SUM(_flag(Client.status == ClientStatus.ACTIVE.value)), 0
            ).alias("active"),
        )
        .dicts()
        .get()
    )

    projects = (
        Project.active()
        .select(
            fn.COUNT(Project.id).alias("total"),
            fn.COALESCE(
                fn.SUM(_flag(Project.status == ProjectStatus.ACTIVE.value)), 0
            ).alias("active"),
            fn.COALESCE(
                fn.SUM(_flag(Project.status == ProjectStatus.COMPLETED.value)), 0
            ).alias("completed"),
            fn.COALESCE(fn.SUM(Project.budget), 0).alias("budget"),
            fn.COALESCE(fn.SUM(Project.total_spent), 0).alias("spent"),
        )
        .dicts()
        .get()
    )

    overdue = (
        Task.due_date.is_null(False)
        & (Task.due_date < today)
        & Task.status.not_in(CLOSED_STATUSES)
    )
    tasks = (
        Task.active()
        .select(
            fn.COUNT(Task.id).alias("total"),
            fn.COALESCE(fn.SUM(_flag(Task.status == TaskStatus.TODO.value)), 0).alias(
                "pending"
            ),
            fn.COALESCE(
                fn.SUM(_flag(Task.status == TaskStatus.COMPLETED.value)), 0
            ).alias("completed"),
            fn.COALESCE(
                fn.SUM(_flag(Task.status == TaskStatus.IN_PROGRESS.value)), 0
            ).alias("in_progress"),
            fn.COALESCE(fn.SUM(_flag(overdue)), 0).alias("overdue"),
        )
        .dicts()
        .get()
    )
    return {"clients": clients, "projects": projects, "tasks": tasks}


def get_time_summary() -> dict:
    """Часы и выручка по всем записям времени."""
    entries = list(
        TimeEntry.select(TimeEntry.duration, TimeEntry.billable, TimeEntry.hourly_rate)
    )
    total_minutes = sum(e.duration or 0 for e in entries)
    billable = [e for e in entries if e.billable]
    billable_minutes = sum(e.duration or 0 for e in billable)
    revenue = sum(
        (to_decimal(e.duration) / 60 * to_decimal(e.hourly_rate) for e in billable),
        Decimal("0"),
    )
    return {
        "entries": len(entries),
        "hours": round(total_minutes / 60, 2),
        "billable_hours": round(billable_minutes / 60, 2),
        "revenue": round_money(revenue),
    }


def get_dashboard_stats(today: date | None = None) -> dict:
    """Карточки дашборда: клиенты, проекты, задачи и учёт времени."""
    counters = get_dashboard_counters(today)
    time_summary = get_time_summary()
    clients, projects, tasks = counters["clients"], counters["projects"], counters["tasks"]
    return {
        "total_clients": clients["total"],
        "active_clients": int(clients["active"]),
        "total_projects": projects["total"],
        "active_projects": int(projects["active"]),
        "completed_projects": int(projects["completed"]),
        "total_revenue": round_money(projects["budget"]),
        "total_spent": round_money(projects["spent"]),
        "total_tasks": tasks["total"],
        "pending_tasks": int(tasks["pending"]),
        "completed_tasks": int(tasks["completed"]),
        "in_progress_tasks": int(tasks["in_progress"]),
        "overdue_tasks": int(tasks["overdue"]),
        "total_time_entries": time_summary["entries"],
        "total_hours_logged": time_summary["hours"],
        "billable_hours": time_summary["billable_hours"],
        "time_revenue": time_summary["revenue"],
    }


def get_upcoming_tasks(limit: int = 10) -> list[Task]:
    """Ближайшие незакрытые задачи со сроком, от ранних к поздним."""
    return list(
        Task.active()
        .where(Task.status.not_in(CLOSED_STATUSES) & Task.due_date.is_null(False))
        .order_by(Task.due_date.asc(), Task.id.asc())
        .limit(limit)
    )


def get_upcoming_deadlines(limit: int = 10, today: date | None = None) -> list[Project]:
    """Активные проекты с дедлайном не раньше ``today``."""
    today = today or date.today()
    return list(
        Project.active()
        .where(
            (Project.status == ProjectStatus.ACTIVE.value)
            & Project.deadline.is_null(False)
            & (Project.deadline >= today)
        )
        .order_by(Project.deadline.asc(), Project.id.asc())
        .limit(limit)
    )
