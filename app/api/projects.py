from fastapi import APIRouter, Depends, HTTPException

from services import project_service as ps
from ..db import get_db
from ..schemas import ProjectCreate, ProjectRead, ProjectUpdate

router = APIRouter(prefix="/projects", tags=["projects"], dependencies=[Depends(get_db)])


@router.get("/", response_model=list[ProjectRead])
def read_projects(
    search: str = "",
    status: str | None = None,
    priority: str | None = None,
    client_id: int | None = None,
    sort_field: str = "created",
    sort_order: str = "desc",
):
    return list(
        ps.build_project_query(search, status, priority, client_id, sort_field, sort_order)
    )


@router.get("/stats")
def read_project_stats():
    return ps.get_project_stats()


@router.post("/", response_model=ProjectRead, status_code=201)
def add_project(project_in: ProjectCreate):
    return ps.add_project(**project_in.model_dump(exclude_none=True))


@router.get("/{project_id}", response_model=ProjectRead)
def read_project(project_id: int):
    project = ps.get_project_by_id(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Проект не найден")
    return project


@router.get("/{project_id}/progress")
def read_project_progress(project_id: int):
    project = read_project(project_id)
    return {"project_id": project.id, "progress": ps.calculate_progress(project)}


@router.put("/{project_id}", response_model=ProjectRead)
def edit_project(project_id: int, project_in: ProjectUpdate):
    return ps.update_project(project_id, **project_in.model_dump(exclude_none=True))


@router.delete("/{project_id}")
def remove_project(project_id: int):
    if not ps.delete_project(project_id):
        raise HTTPException(status_code=404, detail="Проект не найден")
    return {"status": "deleted"}
