from fastapi import APIRouter, Depends, HTTPException

from services import task_service as ts
from ..db import get_db
from ..schemas import TaskBulkStatus, TaskCreate, TaskRead, TaskUpdate

router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(get_db)])


@router.get("/", response_model=list[TaskRead])
def read_tasks(
    project_id: int | None = None,
    search: str = "",
    status: str | None = None,
    priority: str | None = None,
    sort_field: str = "due_date",
    sort_order: str = "asc",
):
    return list(
        ts.build_task_query(project_id, search, status, priority, sort_field, sort_order)
    )


@router.get("/overdue", response_model=list[TaskRead])
def read_overdue_tasks():
    return list(ts.get_overdue_tasks())


@router.get("/stats")
def read_task_stats(project_id: int | None = None):
    return ts.get_task_stats(project_id)


@router.get("/assigned/{user_id}", response_model=list[TaskRead])
def read_assigned_tasks(user_id: str):
    return ts.get_tasks_by_assignee(user_id)


@router.post("/", response_model=TaskRead, status_code=201)
def add_task(task_in: TaskCreate):
    return ts.add_task(**task_in.model_dump(exclude_none=True))


@router.post("/bulk-status", response_model=list[TaskRead])
def bulk_status(payload: TaskBulkStatus):
    return ts.bulk_update_task_status(payload.task_ids, payload.status)


@router.get("/{task_id}", response_model=TaskRead)
def read_task(task_id: int):
    task = ts.get_task_by_id(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Задача не найдена")
    return task


@router.put("/{task_id}", response_model=TaskRead)
def edit_task(task_id: int, task_in: TaskUpdate):
    return ts.update_task(task_id, **task_in.model_dump(exclude_none=True))


@router.delete("/{task_id}")
def remove_task(task_id: int):
    if not ts.delete_task(task_id):
        raise HTTPException(status_code=404, detail="Задача не найдена")
    return {"status": "deleted"}
