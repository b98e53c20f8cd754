from pathlib import Path

import pytest

from services import file_service as fs
from services.errors import AttachmentNotFoundError, FormValidationError


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "brief.pdf"
    path.write_bytes(b"%PDF-1.4 test")
    return path


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 B"), (1023, "1023 B"), (1024, "1 KB"), (1536, "1.5 KB"), (5 * 1024**2, "5 MB")],
)
def test_format_file_size(size, expected):
    assert fs.format_file_size(size) == expected


def test_mime_helpers():
    assert fs.get_mime_type("photo.JPG") == "image/jpeg"
    assert fs.get_mime_type("noext") == fs.DEFAULT_MIME
    assert fs.get_file_icon("image/png") == "image-outline"
    assert fs.get_file_icon("application/vnd.ms-excel") == "grid-outline"
    assert fs.is_image_file("image/png")
    assert fs.is_video_file("video/mp4")
    assert fs.is_document_file("application/pdf")
    assert not fs.is_document_file("audio/mpeg")


def test_upload_copies_file(in_memory_db, source, settings):
    attachment = fs.upload_file(source, "brief.pdf", 3, "project", "ТЗ")
    stored = Path(attachment.file_path)
    assert stored.parent == Path(settings.files_dir)
    assert stored.name.startswith("project_3_")
    assert stored.read_bytes() == source.read_bytes()
    assert attachment.mime_type == "application/pdf"
    assert attachment.file_size == source.stat().st_size
    assert attachment.uploaded_by == "user-1"
    assert [a.id for a in fs.get_attachments(3, "project")] == [attachment.id]
    assert list(fs.get_attachments(3, "task")) == []


def test_upload_missing_source(in_memory_db, tmp_path):
    with pytest.raises(FormValidationError):
        fs.upload_file(tmp_path / "missing.txt", "missing.txt", 1, "client")


def test_update_share_and_delete(in_memory_db, source, settings):
    attachment = fs.upload_file(source, "brief.pdf", 1, "client")
    fs.update_attachment(attachment.id, description="Договор", file_name="contract.pdf")
    shared = fs.share_file(attachment.id)
    assert Path(shared) == Path(settings.share_dir) / "contract.pdf"

    stored = Path(attachment.file_path)
    assert fs.delete_attachment(attachment.id) is True
    assert not stored.exists()
    assert fs.delete_attachment(attachment.id) is False
    assert fs.share_file(attachment.id) is None
    with pytest.raises(AttachmentNotFoundError):
        fs.update_attachment(attachment.id, description="x")


def test_stats_and_cleanup(in_memory_db, source, settings):
    fs.upload_file(source, "a.pdf", 1, "client")
    fs.upload_file(source, "b.pdf", 2, "task")
    orphan = Path(settings.files_dir) / "orphan.bin"
    orphan.write_bytes(b"x")

    stats = fs.get_attachment_stats()
    assert stats["total_files"] == 2
    assert stats["files_by_type"] == {"client": 1, "project": 0, "task": 1}
    assert stats["total_size"] == 2 * source.stat().st_size

    assert fs.cleanup_orphaned_files() == 1
    assert not orphan.exists()
