"""Бизнес-аналитика: выручка, продуктивность, клиенты, проекты и время.

Все разделы считаются по отфильтрованным выборкам (см. ``AnalyticsFilter``).
Суммы и часы возвращаются как ``float`` с округлением до двух знаков,
проценты лежат в диапазоне 0..100.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time

from dateutil.relativedelta import relativedelta

from config import get_settings
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
from services.time_tracking_service import entry_revenue
from utils.time_utils import as_date, day_key, iso_week_key, month_key

logger = logging.getLogger(__name__)

QUARTERS = {
    "Q1": (1, 2, 3),
    "Q2": (4, 5, 6),
    "Q3": (7, 8, 9),
    "Q4": (10, 11, 12),
}

BOTTLENECK_OVERDUE_PERCENT = 20
TOP_PROJECTS_LIMIT = 5
TOP_CLIENTS_LIMIT = 10


@dataclass
class AnalyticsFilter:
    """Ограничения выборки для всех разделов аналитики.

    ``date_start``/``date_end`` включительно; конец диапазона покрывает
    весь день. Пустые списки означают «без ограничения».
    """

    date_start: date | None = None
    date_end: date | None = None
    projects: list[int] = field(default_factory=list)
    clients: list[int] = field(default_factory=list)
    users: list[str] = field(default_factory=list)
    include_archived: bool = False

    def bounds(self) -> tuple[datetime | None, datetime | None]:
        start = datetime.combine(as_date(self.date_start), time.min) if self.date_start else None
        end = datetime.combine(as_date(self.date_end), time.max) if self.date_end else None
        return start, end


def _r(value) -> float:
    return round(float(value or 0), 2)


def _percent(part, whole) -> float:
    return _r(part / whole * 100) if whole else 0.0


def _growth(current, previous) -> float:
    return _r((current - previous) / previous * 100) if previous > 0 else 0.0


def _hours(entries) -> float:
    return sum(e.duration or 0 for e in entries) / 60


def _revenue(entries) -> float:
    return float(sum(entry_revenue(e) for e in entries))


def _in_range(query, column, flt: AnalyticsFilter):
    start, end = flt.bounds()
    if start is not None:
        query = query.where(column >= start)
    if end is not None:
        query = query.where(column <= end)
    return query


# ───────────────────────────── Фильтры ─────────────────────────────


def filter_projects(flt: AnalyticsFilter | None = None) -> list[Project]:
    flt = flt or AnalyticsFilter()
    query = _in_range(Project.active(), Project.created_at, flt)
    if flt.projects:
        query = query.where(Project.id.in_(flt.projects))
    if flt.clients:
        query = query.where(Project.client.in_(flt.clients))
    if not flt.include_archived:
        query = query.where(Project.status != ProjectStatus.CANCELLED.value)
    return list(query.order_by(Project.id))


def filter_clients(flt: AnalyticsFilter | None = None) -> list[Client]:
    flt = flt or AnalyticsFilter()
    query = _in_range(Client.active(), Client.created_at, flt)
    if flt.clients:
        query = query.where(Client.id.in_(flt.clients))
    if not flt.include_archived:
        query = query.where(Client.status != ClientStatus.ARCHIVED.value)
    return list(query.order_by(Client.id))


def filter_tasks(flt: AnalyticsFilter | None = None) -> list[Task]:
    flt = flt or AnalyticsFilter()
    query = _in_range(Task.active(), Task.created_at, flt)
    if flt.projects:
        query = query.where(Task.project.in_(flt.projects))
    tasks = list(query.order_by(Task.id))
    if flt.users:
        users = set(flt.users)
        tasks = [t for t in tasks if users.intersection(t.assigned_to or [])]
    return tasks


def filter_time_entries(flt: AnalyticsFilter | None = None) -> list[TimeEntry]:
    """Записи времени; диапазон дат применяется к ``start_time``."""
    flt = flt or AnalyticsFilter()
    query = _in_range(TimeEntry.select(), TimeEntry.start_time, flt)
    if flt.projects:
        query = query.where(TimeEntry.project.in_(flt.projects))
    if flt.users:
        query = query.where(TimeEntry.user_id.in_(flt.users))
    return list(query.order_by(TimeEntry.start_time, TimeEntry.id))


# ───────────────────────────── Обзор ─────────────────────────────


def get_business_overview(
    flt: AnalyticsFilter | None = None, today: date | None = None
) -> dict:
    """Главные показатели: выручка, рост к прошлому месяцу, загрузка."""
    today = today or date.today()
    projects = filter_projects(flt)
    clients = filter_clients(flt)
    entries = filter_time_entries(flt)

    current = month_key(today)
    previous = month_key(today - relativedelta(months=1))
    monthly_revenue = _revenue(e for e in entries if month_key(e.start_time) == current)
    previous_revenue = _revenue(e for e in entries if month_key(e.start_time) == previous)

    total_hours = _hours(entries)
    billable_hours = _hours(e for e in entries if e.billable)
    return {
        "total_revenue": _r(_revenue(entries)),
        "monthly_revenue": _r(monthly_revenue),
        "revenue_growth": _growth(monthly_revenue, previous_revenue),
        "total_projects": len(projects),
        "active_projects": sum(p.status == ProjectStatus.ACTIVE.value for p in projects),
        "completed_projects": sum(
            p.status == ProjectStatus.COMPLETED.value for p in projects
        ),
        "total_clients": len(clients),
        "active_clients": sum(c.status == ClientStatus.ACTIVE.value for c in clients),
        "total_hours": _r(total_hours),
        "billable_hours": _r(billable_hours),
        "utilization": _percent(billable_hours, total_hours),
    }


# ───────────────────────────── Выручка ─────────────────────────────


def _group_entries(entries, key) -> dict:
    grouped = defaultdict(list)
    for entry in entries:
        grouped[key(entry)].append(entry)
    return grouped


def calculate_monthly_revenue(entries: list[TimeEntry], projects: list[Project]) -> list[dict]:
    """Выручка, оплачиваемые часы и завершённые проекты по месяцам."""
    months = defaultdict(lambda: {"revenue": 0.0, "billable_hours": 0.0, "projects_completed": 0})
    for entry in entries:
        if entry.billable:
            row = months[month_key(entry.start_time)]
            row["revenue"] += float(entry_revenue(entry))
            row["billable_hours"] += (entry.duration or 0) / 60
    for project in projects:
        if project.status == ProjectStatus.COMPLETED.value and project.end_date:
            months[month_key(project.end_date)]["projects_completed"] += 1

    result = []
    previous = None
    for month in sorted(months):
        row = months[month]
        result.append(
            {
                "month": month,
                "revenue": _r(row["revenue"]),
                "billable_hours": _r(row["billable_hours"]),
                "projects_completed": row["projects_completed"],
                "growth": _growth(row["revenue"], previous) if previous is not None else 0.0,
            }
        )
        previous = row["revenue"]
    return result


def calculate_project_revenue(projects: list[Project], entries: list[TimeEntry]) -> list[dict]:
    by_project = _group_entries(entries, lambda e: e.project_id)
    rows = []
    for project in projects:
        revenue = _revenue(by_project.get(project.id, []))
        cost = float(project.total_spent or 0)
        rows.append(
            {
                "project_id": project.id,
                "project_title": project.title,
                "revenue": _r(revenue),
                "profitability": _percent(revenue - cost, revenue) if revenue > 0 else 0.0,
                "completion_percentage": _percent(project.completed_tasks, project.task_count),
            }
        )
    return rows


def calculate_client_revenue(
    clients: list[Client], projects: list[Project], entries: list[TimeEntry]
) -> list[dict]:
    by_project = _group_entries(entries, lambda e: e.project_id)
    rows = []
    for client in clients:
        client_projects = [p for p in projects if p.client_id == client.id]
        revenue = sum(_revenue(by_project.get(p.id, [])) for p in client_projects)
        rows.append(
            {
                "client_id": client.id,
                "client_name": client.name,
                "revenue": _r(revenue),
                "project_count": len(client_projects),
                "average_project_value": _r(revenue / len(client_projects))
                if client_projects
                else 0.0,
            }
        )
    return rows


def get_revenue_analytics(flt: AnalyticsFilter | None = None) -> dict:
    projects = filter_projects(flt)
    clients = filter_clients(flt)
    entries = filter_time_entries(flt)

    by_project = calculate_project_revenue(projects, entries)
    non_billable_hours = _hours(e for e in entries if not e.billable)
    cost_rate = get_settings().non_billable_cost_rate
    average_value = (
        sum(p["revenue"] for p in by_project) / len(by_project) if by_project else 0
    )
    top = sorted(by_project, key=lambda row: row["profitability"], reverse=True)
    return {
        "monthly": calculate_monthly_revenue(entries, projects),
        "by_project": by_project,
        "by_client": calculate_client_revenue(clients, projects, entries),
        "billable_vs_non_billable": {
            "billable": _r(_revenue(entries)),
            "non_billable": _r(non_billable_hours * cost_rate),
        },
        "average_project_value": _r(average_value),
        "top_performing_projects": top[:TOP_PROJECTS_LIMIT],
    }


# ───────────────────────────── Продуктивность ─────────────────────────────


def _delivered_on_time(project: Project) -> bool:
    return bool(project.deadline and project.end_date and project.end_date <= project.deadline)


def _is_overdue(task: Task, today: date) -> bool:
    return bool(
        task.due_date and task.due_date < today and task.status not in CLOSED_STATUSES
    )


def calculate_team_efficiency(tasks: list[Task], entries: list[TimeEntry]) -> list[dict]:
    """Показатели по исполнителям.

    ``efficiency``: плановые часы закрытых задач к отработанным часам,
    ``utilization``: доля оплачиваемых часов.
    """
    users: set[str] = {e.user_id for e in entries if e.user_id}
    for task in tasks:
        users.update(task.assigned_to or [])

    rows = []
    for user_id in sorted(users):
        done = [
            t
            for t in tasks
            if user_id in (t.assigned_to or []) and t.status == TaskStatus.COMPLETED.value
        ]
        worked = [e for e in entries if e.user_id == user_id]
        hours = _hours(worked)
        estimated = sum(float(t.estimated_hours or 0) for t in done)
        rows.append(
            {
                "user_id": user_id,
                "tasks_completed": len(done),
                "hours_worked": _r(hours),
                "efficiency": _percent(estimated, hours),
                "utilization": _percent(_hours(e for e in worked if e.billable), hours),
            }
        )
    return rows


def get_productivity_analytics(
    flt: AnalyticsFilter | None = None, today: date | None = None
) -> dict:
    today = today or date.today()
    tasks = filter_tasks(flt)
    projects = filter_projects(flt)
    entries = filter_time_entries(flt)

    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED.value]
    overdue = [t for t in tasks if _is_overdue(t, today)]
    durations = [
        (t.completed_at - t.created_at).total_seconds() / 86400
        for t in completed
        if t.completed_at and t.created_at
    ]
    average_days = sum(durations) / len(completed) if completed else 0
    finished = [p for p in projects if p.status == ProjectStatus.COMPLETED.value]
    overdue_percent = _percent(len(overdue), len(tasks))

    bottlenecks = []
    if overdue_percent > BOTTLENECK_OVERDUE_PERCENT:
        bottlenecks.append(
            {
                "type": "task",
                "description": "Высокая доля просроченных задач",
                "impact": "high",
                "affected_projects": sorted({t.project_id for t in overdue}),
            }
        )
        logger.info("⚠️ Просрочено %.1f%% задач", overdue_percent)

    return {
        "tasks_completed": len(completed),
        "average_task_completion_time": _r(average_days),
        "overdue_tasks_percentage": overdue_percent,
        "project_delivery_rate": _percent(
            sum(_delivered_on_time(p) for p in finished), len(finished)
        ),
        "team_efficiency": calculate_team_efficiency(tasks, entries),
        "bottlenecks": bottlenecks,
    }


# ───────────────────────────── Клиенты ─────────────────────────────


def get_client_analytics(
    flt: AnalyticsFilter | None = None, today: date | None = None
) -> dict:
    """Клиентская база.

    Удержание: доля активных среди клиентов, у которых есть хотя бы один проект.
    """
    today = today or date.today()
    clients = filter_clients(flt)
    projects = filter_projects(flt)
    entries = filter_time_entries(flt)

    current = month_key(today)
    with_projects = {p.client_id for p in projects}
    engaged = [c for c in clients if c.id in with_projects]
    retained = [c for c in engaged if c.status == ClientStatus.ACTIVE.value]
    top = sorted(
        calculate_client_revenue(clients, projects, entries),
        key=lambda row: row["revenue"],
        reverse=True,
    )
    return {
        "total_clients": len(clients),
        "new_clients_this_month": sum(month_key(c.created_at) == current for c in clients),
        "client_retention_rate": _percent(len(retained), len(engaged)),
        "average_projects_per_client": _r(len(projects) / len(clients)) if clients else 0.0,
        "top_clients_by_revenue": top[:TOP_CLIENTS_LIMIT],
    }


# ───────────────────────────── Проекты ─────────────────────────────


def calculate_project_profitability(
    projects: list[Project], entries: list[TimeEntry]
) -> list[dict]:
    by_project = _group_entries(entries, lambda e: e.project_id)
    rows = []
    for project in projects:
        revenue = _revenue(by_project.get(project.id, []))
        costs = float(project.total_spent or 0)
        profit = revenue - costs
        rows.append(
            {
                "project_id": project.id,
                "project_title": project.title,
                "revenue": _r(revenue),
                "costs": _r(costs),
                "profit": _r(profit),
                "profit_margin": _percent(profit, revenue) if revenue > 0 else 0.0,
            }
        )
    return rows


def get_project_performance_analytics(flt: AnalyticsFilter | None = None) -> dict:
    projects = filter_projects(flt)
    entries = filter_time_entries(flt)

    finished = [p for p in projects if p.status == ProjectStatus.COMPLETED.value]
    budgeted = [p for p in projects if p.budget and p.total_spent is not None]
    on_budget = [p for p in budgeted if p.total_spent <= p.budget]

    counts: dict[str, int] = defaultdict(int)
    for project in projects:
        counts[project.status] += 1
    distribution = [
        {"status": status, "count": count, "percentage": _percent(count, len(projects))}
        for status, count in counts.items()
    ]
    return {
        "on_time_delivery": _percent(
            sum(_delivered_on_time(p) for p in finished), len(finished)
        ),
        "budget_adherence": _percent(len(on_budget), len(budgeted)),
        "profitability_analysis": calculate_project_profitability(projects, entries),
        "project_status_distribution": distribution,
    }


# ───────────────────────────── Время ─────────────────────────────


def calculate_daily_hours(entries: list[TimeEntry]) -> list[dict]:
    rows = []
    for day, items in sorted(_group_entries(entries, lambda e: day_key(e.start_time)).items()):
        billable = _hours(e for e in items if e.billable)
        total = _hours(items)
        rows.append(
            {
                "date": day,
                "total_hours": _r(total),
                "billable_hours": _r(billable),
                "non_billable_hours": _r(total - billable),
            }
        )
    return rows


def calculate_weekly_trends(entries: list[TimeEntry]) -> list[dict]:
    """Часы и выручка по ISO-неделям; ``efficiency``: выручка за час."""
    rows = []
    for week, items in sorted(_group_entries(entries, lambda e: iso_week_key(e.start_time)).items()):
        hours = _hours(items)
        revenue = _revenue(items)
        rows.append(
            {
                "week": week,
                "total_hours": _r(hours),
                "revenue": _r(revenue),
                "efficiency": _r(revenue / hours) if hours > 0 else 0.0,
            }
        )
    return rows


def calculate_monthly_time_breakdown(
    entries: list[TimeEntry], threshold_hours: float
) -> list[dict]:
    rows = []
    for month, items in sorted(_group_entries(entries, lambda e: month_key(e.start_time)).items()):
        total = _hours(items)
        overtime = sum(
            max((e.duration or 0) / 60 - threshold_hours, 0) for e in items
        )
        days = {day_key(e.start_time) for e in items}
        rows.append(
            {
                "month": month,
                "total_hours": _r(total),
                "billable_hours": _r(_hours(e for e in items if e.billable)),
                "overtime_hours": _r(overtime),
                "average_daily_hours": _r(total / len(days)) if days else 0.0,
            }
        )
    return rows


def calculate_project_time_allocation(
    projects: list[Project], entries: list[TimeEntry]
) -> list[dict]:
    by_project = _group_entries(entries, lambda e: e.project_id)
    rows = []
    for project in projects:
        actual = _hours(by_project.get(project.id, []))
        allocated = float(project.estimated_hours or 0)
        rows.append(
            {
                "project_id": project.id,
                "project_title": project.title,
                "allocated_hours": _r(allocated),
                "actual_hours": _r(actual),
                "variance": _r(actual - allocated),
            }
        )
    return rows


def calculate_overtime_analysis(
    entries: list[TimeEntry], allocations: list[dict], threshold_hours: float, rate: float
) -> dict:
    """Сверхурочные: часть каждой записи сверх порога."""
    limit = threshold_hours * 60
    overtime = sum((e.duration - limit) / 60 for e in entries if (e.duration or 0) > limit)
    over_allocated = sorted(
        (row for row in allocations if row["variance"] > 0),
        key=lambda row: row["variance"],
        reverse=True,
    )
    return {
        "total_overtime_hours": _r(overtime),
        "overtime_percentage": _percent(overtime, _hours(entries)),
        "cost_of_overtime": _r(overtime * rate),
        "top_overtime_projects": over_allocated[:TOP_PROJECTS_LIMIT],
    }


def get_time_analytics(flt: AnalyticsFilter | None = None) -> dict:
    settings = get_settings()
    entries = filter_time_entries(flt)
    projects = filter_projects(flt)
    allocations = calculate_project_time_allocation(projects, entries)
    return {
        "daily_hours": calculate_daily_hours(entries),
        "weekly_trends": calculate_weekly_trends(entries),
        "monthly_breakdown": calculate_monthly_time_breakdown(
            entries, settings.overtime_threshold_hours
        ),
        "project_time_allocation": allocations,
        "overtime_analysis": calculate_overtime_analysis(
            entries,
            allocations,
            settings.overtime_threshold_hours,
            settings.overtime_hourly_rate,
        ),
    }


# ───────────────────────────── Тренды ─────────────────────────────


def _series(values: dict[str, float]) -> list[dict]:
    """Ряд по периодам с ростом к предыдущему периоду (у первого 0)."""
    rows = []
    previous = None
    for period in sorted(values):
        value = values[period]
        rows.append(
            {
                "period": period,
                "value": value if isinstance(value, int) else _r(value),
                "growth": _growth(value, previous) if previous is not None else 0.0,
            }
        )
        previous = value
    return rows


def calculate_client_growth(clients: list[Client]) -> list[dict]:
    """Накопленное число клиентов; рост считается по новым клиентам месяца."""
    monthly: dict[str, int] = defaultdict(int)
    for client in clients:
        monthly[month_key(client.created_at)] += 1
    rows = _series(monthly)
    cumulative = 0
    for row in rows:
        cumulative += monthly[row["period"]]
        row["value"] = cumulative
    return rows


def calculate_productivity_trends(entries: list[TimeEntry], tasks: list[Task]) -> list[dict]:
    months = _group_entries(entries, lambda e: month_key(e.start_time))
    completed: dict[str, int] = defaultdict(int)
    for task in tasks:
        if task.status == TaskStatus.COMPLETED.value and task.completed_at:
            completed[month_key(task.completed_at)] += 1

    rows = []
    for period in sorted(set(months) | set(completed)):
        items = months.get(period, [])
        hours = _hours(items)
        rows.append(
            {
                "period": period,
                "entries": len(items),
                "tasks_completed": completed.get(period, 0),
                "average_entry_hours": _r(hours / len(items)) if items else 0.0,
                "efficiency": _r(_revenue(items) / hours) if hours > 0 else 0.0,
            }
        )
    return rows


def calculate_seasonal_patterns(entries: list[TimeEntry], projects: list[Project]) -> list[dict]:
    """Выручка по кварталам: ``peak`` выше 120 % среднего, ``low`` ниже 80 %."""
    average = _revenue(entries) / len(QUARTERS) if entries else 0
    rows = []
    for quarter, months in QUARTERS.items():
        revenue = _revenue(e for e in entries if e.start_time.month in months)
        if revenue > average * 1.2:
            pattern = "peak"
        elif revenue < average * 0.8:
            pattern = "low"
        else:
            pattern = "normal"
        rows.append(
            {
                "period": quarter,
                "revenue": _r(revenue),
                "project_volume": sum(p.created_at.month in months for p in projects),
                "pattern": pattern,
            }
        )
    return rows


def get_trend_analytics(flt: AnalyticsFilter | None = None) -> dict:
    entries = filter_time_entries(flt)
    clients = filter_clients(flt)
    projects = filter_projects(flt)
    tasks = filter_tasks(flt)

    revenue: dict[str, float] = defaultdict(float)
    for entry in entries:
        if entry.billable:
            revenue[month_key(entry.start_time)] += float(entry_revenue(entry))
    volume: dict[str, int] = defaultdict(int)
    for project in projects:
        volume[month_key(project.created_at)] += 1

    return {
        "revenue_growth": _series(revenue),
        "client_growth": calculate_client_growth(clients),
        "project_volume": _series(volume),
        "productivity_trends": calculate_productivity_trends(entries, tasks),
        "seasonal_patterns": calculate_seasonal_patterns(entries, projects),
    }


def get_business_analytics(
    flt: AnalyticsFilter | None = None, today: date | None = None
) -> dict:
    """Все разделы аналитики одним словарём."""
    logger.info("📊 Расчёт бизнес-аналитики: %s", flt or "без фильтра")
    return {
        "overview": get_business_overview(flt, today),
        "revenue": get_revenue_analytics(flt),
        "productivity": get_productivity_analytics(flt, today),
        "clients": get_client_analytics(flt, today),
        "projects": get_project_performance_analytics(flt),
        "time_tracking": get_time_analytics(flt),
        "trends": get_trend_analytics(flt),
    }
