from fastapi import APIRouter, Depends, HTTPException

from services import client_service as cs
from ..db import get_db
from ..schemas import ClientCreate, ClientRead, ClientUpdate

router = APIRouter(prefix="/clients", tags=["clients"], dependencies=[Depends(get_db)])


@router.get("/", response_model=list[ClientRead])
def read_clients(
    search: str = "",
    status: str | None = None,
    sort_field: str = "name",
    sort_order: str = "asc",
):
    return list(cs.build_client_query(search, status, sort_field, sort_order))


@router.get("/status-counts")
def read_status_counts():
    return cs.get_status_counts()


@router.post("/", response_model=ClientRead, status_code=201)
def add_client(client_in: ClientCreate):
    return cs.add_client(**client_in.model_dump(exclude_none=True))


@router.get("/{client_id}", response_model=ClientRead)
def read_client(client_id: int):
    client = cs.get_client_by_id(client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Клиент не найден")
    return client


@router.put("/{client_id}", response_model=ClientRead)
def edit_client(client_id: int, client_in: ClientUpdate):
    return cs.update_client(client_id, **client_in.model_dump(exclude_none=True))


@router.delete("/{client_id}")
def remove_client(client_id: int):
    if not cs.delete_client(client_id):
        raise HTTPException(status_code=404, detail="Клиент не найден")
    return {"status": "deleted"}


@router.post("/{client_id}/restore", response_model=ClientRead)
def restore_client(client_id: int):
    return cs.restore_client(client_id)
