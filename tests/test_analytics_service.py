from datetime import date, datetime

import pytest

from services import analytics_service as an
from services.analytics_service import AnalyticsFilter

TODAY = date(2024, 3, 20)


@pytest.fixture
def dataset(make_client, make_project, make_task, make_time_entry):
    acme = make_client(name="Acme")
    globex = make_client(name="Globex", status="inactive")
    idle = make_client(name="Idle")

    site = make_project(
        client=acme, title="Site", budget=1000, total_spent=50, estimated_hours=10
    )
    app = make_project(
        client=globex,
        title="App",
        status="completed",
        budget=100,
        total_spent=200,
        end_date=date(2024, 3, 10),
        deadline=date(2024, 3, 15),
    )
    dropped = make_project(client=acme, title="Dropped", status="cancelled")

    design = make_task(project=site, status="completed", estimated_hours=2, assigned_to=["alice"])
    backlog = make_task(project=site, due_date=date(2024, 1, 1))
    release = make_task(project=app, status="in_progress", due_date=date(2025, 1, 1))

    make_time_entry(task=design, user_id="alice", start_time=datetime(2024, 2, 10, 9), duration=120)
    make_time_entry(task=design, user_id="alice", start_time=datetime(2024, 3, 5, 9), duration=60)
    make_time_entry(task=release, user_id="bob", start_time=datetime(2024, 3, 6, 10), duration=600)
    make_time_entry(
        task=backlog,
        user_id="alice",
        start_time=datetime(2024, 3, 6, 14),
        duration=60,
        billable=False,
    )
    return {
        "clients": (acme, globex, idle),
        "projects": (site, app, dropped),
        "tasks": (design, backlog, release),
    }


def test_filters(dataset):
    site, app, dropped = dataset["projects"]
    assert [p.id for p in an.filter_projects()] == [site.id, app.id]
    assert len(an.filter_projects(AnalyticsFilter(include_archived=True))) == 3
    assert [p.id for p in an.filter_projects(AnalyticsFilter(clients=[dataset["clients"][1].id]))] == [app.id]

    by_project = an.filter_time_entries(AnalyticsFilter(projects=[site.id]))
    assert len(by_project) == 3
    assert {e.user_id for e in an.filter_time_entries(AnalyticsFilter(users=["bob"]))} == {"bob"}
    assert [t.id for t in an.filter_tasks(AnalyticsFilter(users=["alice"]))] == [dataset["tasks"][0].id]

    march_5 = an.filter_time_entries(
        AnalyticsFilter(date_start=date(2024, 3, 1), date_end=date(2024, 3, 5))
    )
    assert [e.start_time for e in march_5] == [datetime(2024, 3, 5, 9)]


def test_business_overview(dataset):
    overview = an.get_business_overview(today=TODAY)
    assert overview == {
        "total_revenue": 1300.0,
        "monthly_revenue": 1100.0,
        "revenue_growth": 450.0,
        "total_projects": 2,
        "active_projects": 1,
        "completed_projects": 1,
        "total_clients": 3,
        "active_clients": 2,
        "total_hours": 14.0,
        "billable_hours": 13.0,
        "utilization": 92.86,
    }


def test_overview_without_data(in_memory_db):
    overview = an.get_business_overview(today=TODAY)
    assert overview["total_revenue"] == 0.0
    assert overview["revenue_growth"] == 0.0
    assert overview["utilization"] == 0.0


def test_revenue_analytics(dataset):
    revenue = an.get_revenue_analytics()
    assert revenue["monthly"] == [
        {"month": "2024-02", "revenue": 200.0, "billable_hours": 2.0, "projects_completed": 0, "growth": 0.0},
        {"month": "2024-03", "revenue": 1100.0, "billable_hours": 11.0, "projects_completed": 1, "growth": 450.0},
    ]
    site_row, app_row = revenue["by_project"]
    assert site_row["revenue"] == 300.0
    assert site_row["profitability"] == 83.33
    assert site_row["completion_percentage"] == 50.0
    assert app_row["profitability"] == 80.0
    assert revenue["billable_vs_non_billable"] == {"billable": 1300.0, "non_billable": 50.0}
    assert revenue["average_project_value"] == 650.0
    assert [r["project_title"] for r in revenue["top_performing_projects"]] == ["Site", "App"]

    by_client = {row["client_name"]: row for row in revenue["by_client"]}
    assert by_client["Acme"]["revenue"] == 300.0
    assert by_client["Acme"]["project_count"] == 1
    assert by_client["Idle"]["average_project_value"] == 0.0


def test_productivity_analytics(dataset):
    site = dataset["projects"][0]
    productivity = an.get_productivity_analytics(today=TODAY)
    assert productivity["tasks_completed"] == 1
    assert productivity["overdue_tasks_percentage"] == 33.33
    assert productivity["project_delivery_rate"] == 100.0
    assert productivity["average_task_completion_time"] == 0.0
    assert productivity["bottlenecks"][0]["affected_projects"] == [site.id]
    assert productivity["team_efficiency"] == [
        {"user_id": "alice", "tasks_completed": 1, "hours_worked": 4.0, "efficiency": 50.0, "utilization": 75.0},
        {"user_id": "bob", "tasks_completed": 0, "hours_worked": 10.0, "efficiency": 0.0, "utilization": 100.0},
    ]


def test_no_bottleneck_below_threshold(make_task):
    make_task(status="completed")
    assert an.get_productivity_analytics(today=TODAY)["bottlenecks"] == []


def test_client_analytics(dataset):
    clients = an.get_client_analytics(today=TODAY)
    assert clients["total_clients"] == 3
    assert clients["new_clients_this_month"] == 0
    assert clients["client_retention_rate"] == 50.0
    assert clients["average_projects_per_client"] == 0.67
    assert [c["client_name"] for c in clients["top_clients_by_revenue"]] == ["Globex", "Acme", "Idle"]


def test_project_performance(dataset):
    projects = an.get_project_performance_analytics()
    assert projects["on_time_delivery"] == 100.0
    assert projects["budget_adherence"] == 50.0
    app_row = projects["profitability_analysis"][1]
    assert app_row == {
        "project_id": dataset["projects"][1].id,
        "project_title": "App",
        "revenue": 1000.0,
        "costs": 200.0,
        "profit": 800.0,
        "profit_margin": 80.0,
    }
    distribution = {row["status"]: row for row in projects["project_status_distribution"]}
    assert distribution["active"]["percentage"] == 50.0
    assert distribution["completed"]["count"] == 1


def test_time_analytics(dataset):
    time_stats = an.get_time_analytics()
    assert time_stats["daily_hours"][-1] == {
        "date": "2024-03-06",
        "total_hours": 11.0,
        "billable_hours": 10.0,
        "non_billable_hours": 1.0,
    }
    march = time_stats["monthly_breakdown"][-1]
    assert march["overtime_hours"] == 2.0
    assert march["average_daily_hours"] == 6.0

    allocation = {row["project_title"]: row for row in time_stats["project_time_allocation"]}
    assert allocation["Site"]["variance"] == -6.0
    assert allocation["App"]["variance"] == 10.0

    overtime = time_stats["overtime_analysis"]
    assert overtime["total_overtime_hours"] == 2.0
    assert overtime["overtime_percentage"] == 14.29
    assert overtime["cost_of_overtime"] == 150.0
    assert [r["project_title"] for r in overtime["top_overtime_projects"]] == ["App"]


def test_weekly_trends_use_iso_weeks(dataset):
    weeks = an.get_time_analytics()["weekly_trends"]
    assert [w["week"] for w in weeks] == ["2024-W06", "2024-W10"]
    assert weeks[1]["revenue"] == 1100.0
    assert weeks[1]["efficiency"] == 91.67


def test_trend_analytics(dataset):
    trends = an.get_trend_analytics()
    assert trends["revenue_growth"] == [
        {"period": "2024-02", "value": 200.0, "growth": 0.0},
        {"period": "2024-03", "value": 1100.0, "growth": 450.0},
    ]
    assert trends["client_growth"][-1]["value"] == 3
    assert trends["project_volume"][0]["value"] == 2
    seasons = {row["period"]: row["pattern"] for row in trends["seasonal_patterns"]}
    assert seasons == {"Q1": "peak", "Q2": "low", "Q3": "low", "Q4": "low"}


def test_business_analytics_sections(dataset):
    analytics = an.get_business_analytics(today=TODAY)
    assert set(analytics) == {
        "overview",
        "revenue",
        "productivity",
        "clients",
        "projects",
        "time_tracking",
        "trends",
    }
