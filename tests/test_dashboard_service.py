from datetime import date, datetime
from decimal import Decimal

from services import client_service as cs
from services import project_service as ps
from services import task_service as ts
from services.dashboard_service import (
    get_dashboard_counters,
    get_dashboard_stats,
    get_upcoming_deadlines,
    get_upcoming_tasks,
)

TODAY = date(2024, 6, 1)


def test_dashboard_counters_empty(in_memory_db):
    counters = get_dashboard_counters(TODAY)
    assert counters["clients"]["total"] == 0
    assert counters["projects"]["total"] == 0
    assert counters["tasks"]["overdue"] == 0


def test_dashboard_stats_with_data(make_client, make_project, make_task, make_time_entry):
    active_client = make_client()
    make_client(status="inactive")
    removed = make_client()
    cs.delete_client(removed.id)

    project = make_project(client=active_client, budget=1000, total_spent=250)
    make_project(client=active_client, status="completed", budget=500)
    gone = make_project(client=active_client, budget=9999)
    ps.delete_project(gone.id)

    overdue = make_task(project=project, due_date=date(2024, 5, 1))
    make_task(project=project, status="in_progress", due_date=date(2024, 7, 1))
    make_task(project=project, status="completed", due_date=date(2024, 5, 1))
    dropped = make_task(project=project)
    ts.delete_task(dropped.id)

    make_time_entry(task=overdue, duration=90)
    make_time_entry(task=overdue, duration=30, billable=False)

    stats = get_dashboard_stats(TODAY)
    assert stats["total_clients"] == 2
    assert stats["active_clients"] == 1
    assert stats["total_projects"] == 2
    assert stats["active_projects"] == 1
    assert stats["completed_projects"] == 1
    assert stats["total_revenue"] == Decimal("1500.00")
    assert stats["total_spent"] == Decimal("250.00")
    assert stats["total_tasks"] == 3
    assert stats["pending_tasks"] == 1
    assert stats["in_progress_tasks"] == 1
    assert stats["completed_tasks"] == 1
    assert stats["overdue_tasks"] == 1
    assert stats["total_time_entries"] == 2
    assert stats["total_hours_logged"] == 2.0
    assert stats["billable_hours"] == 1.5
    assert stats["time_revenue"] == Decimal("150.00")


def test_upcoming_tasks_and_deadlines(make_project, make_task):
    late = make_project(deadline=date(2024, 9, 1))
    soon = make_project(deadline=date(2024, 6, 15))
    make_project(deadline=date(2024, 5, 1))
    make_project(deadline=date(2024, 6, 20), status="on_hold")

    second = make_task(project=late, due_date=date(2024, 6, 10))
    first = make_task(project=soon, due_date=date(2024, 6, 5))
    make_task(project=soon, due_date=date(2024, 6, 2), status="completed")
    make_task(project=soon)

    assert [t.id for t in get_upcoming_tasks()] == [first.id, second.id]
    assert [t.id for t in get_upcoming_tasks(limit=1)] == [first.id]
    assert [p.id for p in get_upcoming_deadlines(today=TODAY)] == [soon.id, late.id]


def test_time_revenue_uses_entry_rate(make_task, make_time_entry):
    task = make_task()
    make_time_entry(task=task, duration=120, hourly_rate=75, start_time=datetime(2024, 2, 1, 9))
    assert get_dashboard_stats(TODAY)["time_revenue"] == Decimal("150.00")
