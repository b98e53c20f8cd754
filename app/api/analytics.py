from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, PlainTextResponse

from config import get_settings
from services import analytics_service as an
from services import dashboard_service as ds
from services import export_service as es
from services import report_service as rs
from ..db import get_db
from ..schemas import AnalyticsQuery, ProjectRead, ReportRequest, TaskRead

router = APIRouter(prefix="/analytics", tags=["analytics"], dependencies=[Depends(get_db)])


def _filter(query: AnalyticsQuery) -> an.AnalyticsFilter:
    return an.AnalyticsFilter(**query.model_dump())


@router.get("/dashboard")
def read_dashboard():
    return ds.get_dashboard_stats()


@router.get("/upcoming-tasks", response_model=list[TaskRead])
def read_upcoming_tasks(limit: int = 10):
    return ds.get_upcoming_tasks(limit)


@router.get("/upcoming-deadlines", response_model=list[ProjectRead])
def read_upcoming_deadlines(limit: int = 10):
    return ds.get_upcoming_deadlines(limit)


@router.post("/business")
def read_business_analytics(query: AnalyticsQuery | None = None):
    return an.get_business_analytics(_filter(query or AnalyticsQuery()))


@router.post("/report", response_class=PlainTextResponse)
def read_report(request: ReportRequest):
    flt = _filter(AnalyticsQuery(**request.model_dump(exclude={"sections", "period_label"})))
    analytics = an.get_business_analytics(flt)
    return rs.generate_text_report(analytics, request.sections, request.period_label)


def _export_dir() -> Path:
    directory = Path(get_settings().share_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


@router.post("/export")
def export_analytics(query: AnalyticsQuery | None = None):
    analytics = an.get_business_analytics(_filter(query or AnalyticsQuery()))
    path = es.export_analytics_excel(analytics, _export_dir() / "analytics.xlsx")
    return FileResponse(
        path,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename="analytics.xlsx",
    )


@router.get("/export/{entity}")
def export_entity(entity: str):
    path = _export_dir() / f"{entity}.csv"
    es.export_entity_csv(entity, path)
    return FileResponse(path, media_type="text/csv", filename=path.name)
