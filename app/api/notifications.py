from fastapi import APIRouter, Body, Depends, HTTPException

from services import notification_service as ns
from ..db import get_db
from ..schemas import NotificationCreate, NotificationRead

router = APIRouter(
    prefix="/notifications", tags=["notifications"], dependencies=[Depends(get_db)]
)


@router.get("/", response_model=list[NotificationRead])
def read_notifications(
    type: str | None = None,
    read: bool | None = None,
    limit: int | None = None,
    offset: int = 0,
):
    return list(ns.get_notifications(type, read, limit, offset))


@router.post("/", response_model=NotificationRead, status_code=201)
def add_notification(payload: NotificationCreate):
    data = payload.model_dump(exclude_none=True)
    if payload.recurring is not None:
        data["recurring"] = payload.recurring.model_dump(exclude_none=True)
    return ns.create_notification(**data)


@router.get("/stats")
def read_stats():
    return ns.get_stats()


@router.get("/settings")
def read_settings():
    return ns.get_settings()


@router.put("/settings")
def edit_settings(updates: dict = Body(...)):
    return ns.update_settings(**updates)


@router.post("/deliver")
def deliver_due():
    return {"delivered": ns.deliver_due_notifications()}


@router.post("/read-all")
def read_all(type: str | None = None):
    return {"updated": ns.mark_all_as_read(type)}


@router.delete("/")
def clear(type: str | None = None):
    return {"deleted": ns.clear_notifications(type)}


@router.get("/{notification_id}", response_model=NotificationRead)
def read_notification(notification_id: int):
    notification = ns.get_notification_by_id(notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Уведомление не найдено")
    return notification


@router.post("/{notification_id}/read")
def mark_read(notification_id: int):
    if not ns.mark_as_read(notification_id):
        raise HTTPException(status_code=404, detail="Уведомление не найдено")
    return {"status": "read"}


@router.delete("/{notification_id}")
def remove_notification(notification_id: int):
    if not ns.delete_notification(notification_id):
        raise HTTPException(status_code=404, detail="Уведомление не найдено")
    return {"status": "deleted"}
