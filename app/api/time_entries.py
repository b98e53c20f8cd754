from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from services import time_tracking_service as tts
from utils.time_utils import format_elapsed
from ..db import get_db
from ..schemas import (
    TimeEntryCreate,
    TimeEntryRead,
    TimeEntryUpdate,
    TimerRead,
    TimerStart,
    TimerStop,
    TimeTrackingSettings,
)

router = APIRouter(prefix="/time", tags=["time"], dependencies=[Depends(get_db)])


def _timer_payload(timer) -> TimerRead | None:
    if timer is None:
        return None
    seconds = tts.get_elapsed_seconds()
    return TimerRead(
        task_id=timer.task_id,
        project_id=timer.project_id,
        start_time=timer.start_time,
        description=timer.description,
        tags=timer.tags or [],
        billable=timer.billable,
        elapsed_seconds=seconds,
        elapsed=format_elapsed(seconds),
    )


@router.get("/entries", response_model=list[TimeEntryRead])
def read_entries(
    task_id: int | None = None,
    project_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
):
    query = tts.get_all_time_entries()
    if task_id:
        query = tts.get_time_entries_by_task(task_id)
    elif project_id:
        query = tts.get_time_entries_by_project(project_id)
    return list(tts.filter_by_date_range(query, start, end))


@router.post("/entries", response_model=TimeEntryRead, status_code=201)
def add_entry(entry_in: TimeEntryCreate):
    return tts.add_time_entry(**entry_in.model_dump(exclude_none=True))


@router.get("/entries/{entry_id}", response_model=TimeEntryRead)
def read_entry(entry_id: int):
    entry = tts.get_time_entry_by_id(entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Запись времени не найдена")
    return entry


@router.put("/entries/{entry_id}", response_model=TimeEntryRead)
def edit_entry(entry_id: int, entry_in: TimeEntryUpdate):
    return tts.update_time_entry(entry_id, **entry_in.model_dump(exclude_none=True))


@router.delete("/entries/{entry_id}")
def remove_entry(entry_id: int):
    if not tts.delete_time_entry(entry_id):
        raise HTTPException(status_code=404, detail="Запись времени не найдена")
    return {"status": "deleted"}


@router.get("/timer", response_model=TimerRead | None)
def read_timer():
    tts.check_auto_stop()
    return _timer_payload(tts.get_active_timer())


@router.post("/timer/start", response_model=TimerRead)
def start_timer(payload: TimerStart):
    timer = tts.start_timer(**payload.model_dump())
    return _timer_payload(timer)


@router.post("/timer/stop", response_model=TimeEntryRead | None)
def stop_timer(payload: TimerStop | None = None):
    return tts.stop_timer(description=payload.description if payload else None)


@router.get("/settings")
def read_settings():
    return tts.get_settings()


@router.put("/settings")
def edit_settings(settings_in: TimeTrackingSettings):
    return tts.update_settings(**settings_in.model_dump(exclude_none=True))


@router.get("/stats")
def read_stats(project_id: int | None = None, start: date | None = None, end: date | None = None):
    return tts.get_time_tracking_stats(project_id, start, end)
