import json
from datetime import datetime, timezone
from enum import Enum

from peewee import (
    Model,
    BigIntegerField,
    BooleanField,
    CharField,
    DateField,
    DateTimeField,
    DecimalField,
    FloatField,
    ForeignKeyField,
    IntegerField,
    TextField,
)

from database.db import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JSONField(TextField):
    """Текстовая колонка с JSON-содержимым (списки тегов, настройки)."""

    def db_value(self, value):
        if value is None:
            return None
        return json.dumps(value, ensure_ascii=False)

    def python_value(self, value):
        if value is None or value == "":
            return None
        return json.loads(value)


class BaseModel(Model):
    class Meta:
        database = db


class TimestampedModel(BaseModel):
    created_at = DateTimeField(default=_utcnow)
    updated_at = DateTimeField(default=_utcnow)

    def save(self, *args, **kwargs):
        self.updated_at = _utcnow()
        return super().save(*args, **kwargs)


class SoftDeleteModel(TimestampedModel):
    """Base with soft-delete support via is_deleted flag."""

    is_deleted = BooleanField(default=False)

    def soft_delete(self) -> None:
        """Mark instance as deleted without physical removal."""
        self.is_deleted = True
        self.save()

    @classmethod
    def active(cls):
        return cls.select().where(cls.is_deleted == False)


class ClientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    ARCHIVED = "archived"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class AttachmentType(str, Enum):
    CLIENT = "client"
    PROJECT = "project"
    TASK = "task"


class NotificationType(str, Enum):
    TASK_DUE = "task_due"
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"
    PROJECT_UPDATE = "project_update"
    CLIENT_MESSAGE = "client_message"
    SYSTEM_UPDATE = "system_update"
    REMINDER = "reminder"
    TIME_TRACKING = "time_tracking"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class Client(SoftDeleteModel):
    name = CharField(index=True)
    company = CharField(null=True)
    email = CharField()
    phone = CharField(null=True)
    avatar = CharField(null=True)
    address = TextField(null=True)
    notes = TextField(null=True)
    project_count = IntegerField(default=0)
    last_contact_date = DateField(null=True)
    status = CharField(default=ClientStatus.ACTIVE.value, index=True)

    def __str__(self) -> str:
        return self.name


class Project(SoftDeleteModel):
    title = CharField(index=True)
    description = TextField(null=True)
    client = ForeignKeyField(Client, backref="projects")
    client_name = CharField(null=True)
    status = CharField(default=ProjectStatus.ACTIVE.value, index=True)
    priority = CharField(default=Priority.MEDIUM.value)
    budget = DecimalField(max_digits=12, decimal_places=2, null=True)
    total_spent = DecimalField(max_digits=12, decimal_places=2, null=True)
    hourly_rate = DecimalField(max_digits=10, decimal_places=2, null=True)
    estimated_hours = FloatField(null=True)
    start_date = DateField(null=True)
    end_date = DateField(null=True)
    deadline = DateField(null=True)
    task_count = IntegerField(default=0)
    completed_tasks = IntegerField(default=0)
    notes = TextField(null=True)

    def __str__(self) -> str:
        return self.title


class Task(SoftDeleteModel):
    # core
    title = CharField()
    description = TextField(default="")
    project = ForeignKeyField(Project, backref="tasks")
    assigned_to = JSONField(default=list)
    created_by = CharField(null=True)

    # state
    status = CharField(default=TaskStatus.TODO.value, index=True)
    priority = CharField(default=Priority.MEDIUM.value)
    estimated_hours = FloatField(default=0)
    actual_hours = FloatField(default=0)
    start_date = DateField(null=True)
    due_date = DateField(null=True)
    completed_at = DateTimeField(null=True)

    # links
    dependencies = JSONField(default=list)
    tags = JSONField(default=list)

    def __str__(self) -> str:
        return self.title


class TimeEntry(TimestampedModel):
    task = ForeignKeyField(Task, backref="time_entries")
    project = ForeignKeyField(Project, backref="time_entries")
    user_id = CharField(index=True)
    description = TextField(default="")
    start_time = DateTimeField(index=True)
    end_time = DateTimeField(null=True)
    duration = IntegerField(default=0)  # минуты
    is_running = BooleanField(default=False)
    tags = JSONField(default=list)
    billable = BooleanField(default=True)
    hourly_rate = DecimalField(max_digits=10, decimal_places=2, default=0)


class ActiveTimer(BaseModel):
    """Единственная строка: запущенный секундомер."""

    task = ForeignKeyField(Task, backref="+")
    project = ForeignKeyField(Project, backref="+")
    start_time = DateTimeField()
    description = TextField(null=True)
    tags = JSONField(default=list)
    billable = BooleanField(default=True)


class FileAttachment(BaseModel):
    file_name = CharField()
    original_name = CharField()
    file_path = CharField()
    file_size = BigIntegerField(default=0)
    mime_type = CharField(default="application/octet-stream")
    entity_id = IntegerField(index=True)
    entity_type = CharField(index=True)
    description = TextField(null=True)
    uploaded_at = DateTimeField(default=_utcnow)
    uploaded_by = CharField(null=True)


class Notification(BaseModel):
    title = CharField()
    body = TextField()
    type = CharField(index=True)
    priority = CharField(default=NotificationPriority.NORMAL.value)
    data = JSONField(null=True)
    entity_id = IntegerField(null=True)
    entity_type = CharField(null=True)
    read = BooleanField(default=False)
    created_at = DateTimeField(default=_utcnow, index=True)
    scheduled_for = DateTimeField(null=True)
    delivered_at = DateTimeField(null=True)
    recurring = JSONField(null=True)


class Preference(BaseModel):
    key = CharField(unique=True)
    value = JSONField(null=True)
