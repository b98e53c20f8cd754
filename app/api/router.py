from fastapi import APIRouter

from .analytics import router as analytics_router
from .clients import router as clients_router
from .files import router as files_router
from .notifications import router as notifications_router
from .projects import router as projects_router
from .tasks import router as tasks_router
from .time_entries import router as time_router

router = APIRouter()
router.include_router(clients_router)
router.include_router(projects_router)
router.include_router(tasks_router)
router.include_router(time_router)
router.include_router(files_router)
router.include_router(notifications_router)
router.include_router(analytics_router)


@router.get("/status")
def status():
    return {"status": "ok"}
