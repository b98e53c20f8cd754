from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from database.models import ActiveTimer, TimeEntry
from services import task_service as ts
from services import time_tracking_service as tts
from services.errors import FormValidationError, TimeEntryNotFoundError

START = datetime(2024, 3, 1, 9, 0)


def test_timer_elapsed_and_stop_creates_entry(make_task):
    task = make_task()
    tts.start_timer(task.id, task.project_id, description="Coding", now=START)
    assert tts.get_elapsed_seconds(now=START + timedelta(seconds=95)) == 95

    entry = tts.stop_timer(now=START + timedelta(minutes=90, seconds=29))
    assert entry.duration == 90
    assert entry.description == "Coding"
    assert entry.billable is True
    assert entry.hourly_rate == Decimal("100")
    assert entry.user_id == "user-1"
    assert tts.get_active_timer() is None
    assert tts.get_elapsed_seconds() == 0
    assert ts.get_task_by_id(task.id).actual_hours == 1.5


def test_stop_without_timer_returns_none(in_memory_db):
    assert tts.stop_timer() is None


def test_starting_new_timer_stops_previous(make_task):
    first = make_task()
    second = make_task()
    tts.start_timer(first.id, first.project_id, now=START)
    tts.start_timer(second.id, second.project_id, now=START + timedelta(minutes=30))
    assert ActiveTimer.select().count() == 1
    assert tts.get_active_timer().task_id == second.id
    assert TimeEntry.get().duration == 30


def test_non_billable_timer_has_zero_rate(make_task):
    task = make_task()
    tts.start_timer(task.id, task.project_id, billable=False, now=START)
    entry = tts.stop_timer(now=START + timedelta(hours=1))
    assert entry.hourly_rate == Decimal("0")
    assert tts.entry_revenue(entry) == Decimal("0")


def test_start_timer_unknown_task(in_memory_db):
    with pytest.raises(FormValidationError):
        tts.start_timer(1, 1)


@pytest.mark.parametrize(
    "minutes, expected",
    [(7, 15), (22, 15), (23, 30), (0, 0), (60, 60)],
)
def test_apply_rounding(minutes, expected):
    settings = {"rounding_enabled": True, "rounding_interval": 15}
    assert tts.apply_rounding(minutes, settings) == expected


def test_rounding_setting_is_used_on_stop(make_task):
    tts.update_settings(rounding_enabled=True, rounding_interval=15)
    task = make_task()
    tts.start_timer(task.id, task.project_id, now=START)
    assert tts.stop_timer(now=START + timedelta(minutes=8)).duration == 15


def test_update_settings_rejects_unknown(in_memory_db):
    with pytest.raises(ValueError):
        tts.update_settings(colour="red")
    assert tts.get_settings() == tts.DEFAULT_SETTINGS


def test_auto_stop_closes_at_limit(make_task):
    tts.update_settings(auto_stop_enabled=True, auto_stop_duration=2)
    task = make_task()
    tts.start_timer(task.id, task.project_id, now=START)
    assert tts.check_auto_stop(now=START + timedelta(hours=1)) is None
    entry = tts.check_auto_stop(now=START + timedelta(hours=5))
    assert entry.duration == 120
    assert entry.end_time == START + timedelta(hours=2)


def test_add_entry_computes_duration_from_bounds(make_task):
    task = make_task()
    entry = tts.add_time_entry(
        task_id=task.id,
        project_id=task.project_id,
        start_time="2024-03-01T09:00:00",
        end_time="2024-03-01T11:15:00",
    )
    assert entry.duration == 135
    assert entry.hourly_rate == Decimal("100")
    assert ts.get_task_by_id(task.id).actual_hours == 2.25


def test_add_entry_validation(make_task):
    task = make_task()
    with pytest.raises(FormValidationError) as exc:
        tts.add_time_entry(task_id=task.id, project_id=task.project_id)
    assert "start_time" in exc.value.errors


def test_update_and_delete_entry_refresh_actual_hours(make_time_entry):
    entry = make_time_entry(duration=60)
    tts.update_time_entry(entry.id, duration=180)
    assert ts.get_task_by_id(entry.task_id).actual_hours == 3.0
    assert tts.delete_time_entry(entry.id) is True
    assert ts.get_task_by_id(entry.task_id).actual_hours == 0
    assert tts.delete_time_entry(entry.id) is False
    with pytest.raises(TimeEntryNotFoundError):
        tts.update_time_entry(entry.id, duration=5)


def test_date_range_end_covers_whole_day(make_time_entry):
    make_time_entry(start_time=datetime(2024, 3, 1, 23, 30))
    make_time_entry(start_time=datetime(2024, 3, 2, 0, 30))
    entries = list(tts.get_time_entries_by_date_range(date(2024, 3, 1), "2024-03-01"))
    assert len(entries) == 1


def test_time_tracking_stats(make_project, make_task, make_time_entry):
    project = make_project(hourly_rate=50, estimated_hours=10)
    task = make_task(project=project, estimated_hours=1)
    make_time_entry(task=task, duration=120)
    make_time_entry(task=task, duration=60, billable=False)
    stats = tts.get_time_tracking_stats(project_id=project.id)
    assert stats["total_hours"] == 3.0
    assert stats["billable_hours"] == 2.0
    assert stats["non_billable_hours"] == 1.0
    assert stats["total_revenue"] == Decimal("100.00")
    assert stats["average_hourly_rate"] == Decimal("50.00")
    assert stats["project_breakdown"][0]["completion_percentage"] == 30.0
    assert stats["task_breakdown"][0]["is_overtime"] is True
    assert stats["daily_breakdown"][0]["entries"] == 2
