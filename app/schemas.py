from datetime import date, datetime

from pydantic import BaseModel, Field


# ───────────── Клиенты ─────────────


class ClientBase(BaseModel):
    name: str | None = None
    company: str | None = None
    email: str | None = None
    phone: str | None = None
    avatar: str | None = None
    address: str | None = None
    notes: str | None = None
    status: str | None = None
    last_contact_date: date | None = None


class ClientCreate(ClientBase):
    name: str
    email: str


class ClientUpdate(ClientBase):
    pass


class ClientRead(ClientBase):
    id: int
    project_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ───────────── Проекты ─────────────


class ProjectBase(BaseModel):
    title: str | None = None
    description: str | None = None
    client_id: int | None = None
    status: str | None = None
    priority: str | None = None
    budget: float | None = None
    total_spent: float | None = None
    hourly_rate: float | None = None
    estimated_hours: float | None = None
    start_date: date | None = None
    end_date: date | None = None
    deadline: date | None = None
    notes: str | None = None


class ProjectCreate(ProjectBase):
    title: str
    client_id: int


class ProjectUpdate(ProjectBase):
    pass


class ProjectRead(ProjectBase):
    id: int
    client_name: str | None = None
    task_count: int
    completed_tasks: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ───────────── Задачи ─────────────


class TaskBase(BaseModel):
    title: str | None = None
    description: str | None = None
    project_id: int | None = None
    assigned_to: list[str] | None = None
    created_by: str | None = None
    status: str | None = None
    priority: str | None = None
    estimated_hours: float | None = None
    start_date: date | None = None
    due_date: date | None = None
    dependencies: list[int] | None = None
    tags: list[str] | None = None


class TaskCreate(TaskBase):
    title: str
    project_id: int


class TaskUpdate(TaskBase):
    pass


class TaskRead(TaskBase):
    id: int
    actual_hours: float
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskBulkStatus(BaseModel):
    task_ids: list[int]
    status: str


# ───────────── Учёт времени ─────────────


class TimeEntryBase(BaseModel):
    task_id: int | None = None
    project_id: int | None = None
    user_id: str | None = None
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: int | None = None
    tags: list[str] | None = None
    billable: bool | None = None
    hourly_rate: float | None = None


class TimeEntryCreate(TimeEntryBase):
    task_id: int
    project_id: int
    start_time: datetime


class TimeEntryUpdate(TimeEntryBase):
    pass


class TimeEntryRead(TimeEntryBase):
    id: int
    is_running: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TimerStart(BaseModel):
    task_id: int
    project_id: int
    description: str | None = None
    tags: list[str] | None = None
    billable: bool | None = None


class TimerStop(BaseModel):
    description: str | None = None


class TimerRead(BaseModel):
    task_id: int
    project_id: int
    start_time: datetime
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    billable: bool
    elapsed_seconds: int = 0
    elapsed: str = "00:00"

    class Config:
        from_attributes = True


class TimeTrackingSettings(BaseModel):
    default_billable: bool | None = None
    reminder_enabled: bool | None = None
    reminder_interval: int | None = None
    auto_stop_enabled: bool | None = None
    auto_stop_duration: float | None = None
    rounding_enabled: bool | None = None
    rounding_interval: int | None = None


# ───────────── Файлы ─────────────


class AttachmentUpdate(BaseModel):
    description: str | None = None
    file_name: str | None = None


class AttachmentRead(BaseModel):
    id: int
    file_name: str
    original_name: str
    file_size: int
    mime_type: str
    entity_id: int
    entity_type: str
    description: str | None = None
    uploaded_at: datetime
    uploaded_by: str | None = None

    class Config:
        from_attributes = True


# ───────────── Уведомления ─────────────


class RecurringRule(BaseModel):
    frequency: str
    interval: int = 1
    end_date: datetime | None = None


class NotificationCreate(BaseModel):
    title: str
    body: str
    type: str
    priority: str = "normal"
    data: dict | None = None
    entity_id: int | None = None
    entity_type: str | None = None
    scheduled_for: datetime | None = None
    recurring: RecurringRule | None = None


class NotificationRead(BaseModel):
    id: int
    title: str
    body: str
    type: str
    priority: str
    data: dict | None = None
    entity_id: int | None = None
    entity_type: str | None = None
    read: bool
    created_at: datetime
    scheduled_for: datetime | None = None
    delivered_at: datetime | None = None
    recurring: dict | None = None

    class Config:
        from_attributes = True


# ───────────── Аналитика ─────────────


class AnalyticsQuery(BaseModel):
    date_start: date | None = None
    date_end: date | None = None
    projects: list[int] = Field(default_factory=list)
    clients: list[int] = Field(default_factory=list)
    users: list[str] = Field(default_factory=list)
    include_archived: bool = False


class ReportRequest(AnalyticsQuery):
    sections: list[str] = Field(
        default_factory=lambda: ["overview", "revenue", "productivity", "projects", "time"]
    )
    period_label: str = ""
