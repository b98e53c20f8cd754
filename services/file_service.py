"""Вложения клиентов, проектов и задач: хранение файлов и метаданных."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from peewee import ModelSelect, fn

from config import get_settings
from database.models import AttachmentType, FileAttachment
from services.errors import AttachmentNotFoundError, FormValidationError
from utils.time_utils import utcnow

logger = logging.getLogger(__name__)

MIME_TYPES = {
    # images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    # documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # text
    "txt": "text/plain",
    "csv": "text/csv",
    "rtf": "application/rtf",
    # archives
    "zip": "application/zip",
    "rar": "application/x-rar-compressed",
    "7z": "application/x-7z-compressed",
    # audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/mp4",
    # video
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
}

DEFAULT_MIME = "application/octet-stream"

_SIZE_UNITS = ["B", "KB", "MB", "GB"]


# ───────────────────────── вспомогательные ─────────────────────────


def get_mime_type(file_name: str) -> str:
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return MIME_TYPES.get(extension, DEFAULT_MIME)


def get_file_icon(mime_type: str) -> str:
    """Имя иконки для типа файла."""
    if mime_type.startswith("image/"):
        return "image-outline"
    if mime_type.startswith("video/"):
        return "videocam-outline"
    if mime_type.startswith("audio/"):
        return "musical-notes-outline"
    if mime_type == "application/pdf":
        return "document-text-outline"
    if "word" in mime_type:
        return "document-outline"
    if "excel" in mime_type or "spreadsheet" in mime_type:
        return "grid-outline"
    if "powerpoint" in mime_type or "presentation" in mime_type:
        return "easel-outline"
    if "zip" in mime_type or "archive" in mime_type:
        return "archive-outline"
    return "document-outline"


def format_file_size(size: int) -> str:
    """Размер в байтах → ``0 B``, ``1.5 KB``, ``2 MB``."""
    if not size:
        return "0 B"
    index = 0
    while size >= 1024 ** (index + 1) and index < len(_SIZE_UNITS) - 1:
        index += 1
    value = round(size / 1024**index, 1)
    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[index]}"


def is_image_file(mime_type: str) -> bool:
    return mime_type.startswith("image/")


def is_video_file(mime_type: str) -> bool:
    return mime_type.startswith("video/")


def is_document_file(mime_type: str) -> bool:
    return any(
        marker in mime_type
        for marker in ("pdf", "word", "excel", "powerpoint", "text")
    )


def _files_dir() -> Path:
    directory = Path(get_settings().files_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# ───────────────────────── загрузка ─────────────────────────


def upload_file(
    source_path: str | Path,
    file_name: str,
    entity_id: int,
    entity_type: str,
    description: str | None = None,
) -> FileAttachment:
    """Скопировать файл в хранилище и записать вложение.

    Имя копии: ``{entity_type}_{entity_id}_{timestamp}.{ext}``.
    """
    entity_type = AttachmentType(entity_type).value
    src = Path(source_path)
    if not src.is_file():
        raise FormValidationError({"file": f"Файл не найден: {src}"})

    timestamp = int(utcnow().timestamp() * 1000)
    extension = file_name.rsplit(".", 1)[-1] if "." in file_name else "bin"
    unique_name = f"{entity_type}_{entity_id}_{timestamp}.{extension}"
    dest = _files_dir() / unique_name
    shutil.copy2(src, dest)

    attachment = FileAttachment.create(
        file_name=file_name,
        original_name=file_name,
        file_path=str(dest),
        file_size=dest.stat().st_size,
        mime_type=get_mime_type(file_name),
        entity_id=entity_id,
        entity_type=entity_type,
        description=description,
        uploaded_by=get_settings().current_user_id,
    )
    logger.info("📎 Файл %s прикреплён к %s #%s", file_name, entity_type, entity_id)
    return attachment


# ───────────────────────── получение ─────────────────────────


def get_all_attachments() -> ModelSelect:
    return FileAttachment.select().order_by(
        FileAttachment.uploaded_at.desc(), FileAttachment.id.desc()
    )


def get_attachments(entity_id: int, entity_type: str | None = None) -> ModelSelect:
    query = get_all_attachments().where(FileAttachment.entity_id == entity_id)
    if entity_type:
        query = query.where(FileAttachment.entity_type == AttachmentType(entity_type).value)
    return query


def get_attachment_by_id(attachment_id: int) -> FileAttachment | None:
    return FileAttachment.get_or_none(FileAttachment.id == attachment_id)


def get_file_path(attachment_id: int) -> str | None:
    """Путь к файлу вложения или ``None``, если файла нет на диске."""
    attachment = get_attachment_by_id(attachment_id)
    if attachment is None or not Path(attachment.file_path).is_file():
        return None
    return attachment.file_path


# ───────────────────────── изменение ─────────────────────────


def update_attachment(
    attachment_id: int,
    description: str | None = None,
    file_name: str | None = None,
) -> FileAttachment:
    attachment = get_attachment_by_id(attachment_id)
    if attachment is None:
        logger.warning("❗ Вложение id=%s не найдено для обновления", attachment_id)
        raise AttachmentNotFoundError(attachment_id)
    if description is not None:
        attachment.description = description
    if file_name:
        attachment.file_name = file_name.strip()
    attachment.save()
    logger.info("✏️ Вложение #%s обновлено", attachment.id)
    return attachment


def delete_attachment(attachment_id: int) -> bool:
    """Удалить вложение вместе с файлом."""
    attachment = get_attachment_by_id(attachment_id)
    if attachment is None:
        logger.warning("❗ Вложение id=%s не найдено для удаления", attachment_id)
        return False
    path = Path(attachment.file_path)
    if path.is_file():
        path.unlink()
    attachment.delete_instance()
    logger.info("🗑 Вложение #%s удалено", attachment_id)
    return True


def share_file(attachment_id: int) -> str | None:
    """Скопировать файл в каталог обмена под отображаемым именем."""
    source = get_file_path(attachment_id)
    if source is None:
        return None
    attachment = get_attachment_by_id(attachment_id)
    share_dir = Path(get_settings().share_dir)
    share_dir.mkdir(parents=True, exist_ok=True)
    target = share_dir / Path(attachment.file_name).name
    shutil.copy2(source, target)
    logger.info("📤 Файл #%s подготовлен для отправки: %s", attachment_id, target)
    return str(target)


# ───────────────────────── обслуживание ─────────────────────────


def get_attachment_stats() -> dict:
    stats = {
        "total_files": FileAttachment.select().count(),
        "total_size": int(
            FileAttachment.select(fn.COALESCE(fn.SUM(FileAttachment.file_size), 0)).scalar()
        ),
        "files_by_type": {t.value: 0 for t in AttachmentType},
    }
    rows = (
        FileAttachment.select(FileAttachment.entity_type, fn.COUNT(FileAttachment.id))
        .group_by(FileAttachment.entity_type)
        .tuples()
    )
    for entity_type, cnt in rows:
        stats["files_by_type"][entity_type] = cnt
    return stats


def cleanup_orphaned_files() -> int:
    """Удалить из хранилища файлы, на которые не ссылается ни одно вложение."""
    directory = _files_dir()
    known = {Path(a.file_path).name for a in FileAttachment.select(FileAttachment.file_path)}
    removed = 0
    for path in directory.iterdir():
        if path.is_file() and path.name not in known:
            path.unlink()
            removed += 1
    if removed:
        logger.info("🧹 Удалено осиротевших файлов: %s", removed)
    return removed
