import shutil
import tempfile
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse

from services import file_service as fs
from ..db import get_db
from ..schemas import AttachmentRead, AttachmentUpdate

router = APIRouter(prefix="/files", tags=["files"], dependencies=[Depends(get_db)])


@router.get("/", response_model=list[AttachmentRead])
def read_attachments(entity_id: int | None = None, entity_type: str | None = None):
    if entity_id is None:
        return list(fs.get_all_attachments())
    return list(fs.get_attachments(entity_id, entity_type))


@router.post("/", response_model=AttachmentRead, status_code=201)
def upload(
    entity_id: int = Form(...),
    entity_type: str = Form(...),
    description: str | None = Form(None),
    file: UploadFile = File(...),
):
    file_name = file.filename or "file"
    with tempfile.TemporaryDirectory() as tmp:
        tmp_path = Path(tmp) / Path(file_name).name
        with tmp_path.open("wb") as out:
            shutil.copyfileobj(file.file, out)
        return fs.upload_file(tmp_path, file_name, entity_id, entity_type, description)


@router.get("/stats")
def read_stats():
    return fs.get_attachment_stats()


@router.post("/cleanup")
def cleanup():
    return {"removed": fs.cleanup_orphaned_files()}


@router.get("/{attachment_id}", response_model=AttachmentRead)
def read_attachment(attachment_id: int):
    attachment = fs.get_attachment_by_id(attachment_id)
    if not attachment:
        raise HTTPException(status_code=404, detail="Вложение не найдено")
    return attachment


@router.get("/{attachment_id}/download")
def download(attachment_id: int):
    path = fs.get_file_path(attachment_id)
    if path is None:
        raise HTTPException(status_code=404, detail="Файл не найден")
    attachment = fs.get_attachment_by_id(attachment_id)
    return FileResponse(path, media_type=attachment.mime_type, filename=attachment.file_name)


@router.post("/{attachment_id}/share")
def share(attachment_id: int):
    target = fs.share_file(attachment_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Файл не найден")
    return {"path": target}


@router.put("/{attachment_id}", response_model=AttachmentRead)
def edit_attachment(attachment_id: int, payload: AttachmentUpdate):
    return fs.update_attachment(attachment_id, payload.description, payload.file_name)


@router.delete("/{attachment_id}")
def remove_attachment(attachment_id: int):
    if not fs.delete_attachment(attachment_id):
        raise HTTPException(status_code=404, detail="Вложение не найдено")
    return {"status": "deleted"}
