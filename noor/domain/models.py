from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from noor.domain.state_machine import TaskStatus

ID_LENGTH = 36


def now_utc() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid4())


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    event_type: str = Field(index=True, max_length=100)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True, max_length=ID_LENGTH)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    actor_id: str | None = Field(default=None, index=True, max_length=ID_LENGTH)
    action: str = Field(max_length=255)
    resource: str = Field(max_length=255)
    method: str = Field(max_length=10)
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class EmployeeRole(StrEnum):
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    EMPLOYEE = "employee"


class EmployeeStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Employee(SQLModel, table=True):
    __tablename__ = "employees"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    name: str = Field(max_length=150)
    email: str = Field(index=True, unique=True, max_length=255)
    phone: str | None = Field(default=None, index=True, unique=True, max_length=30)
    password_hash: str = Field(max_length=255)
    role: EmployeeRole = Field(default=EmployeeRole.EMPLOYEE, index=True)
    status: EmployeeStatus = Field(default=EmployeeStatus.ACTIVE, index=True)
    profile_image: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class SiteStatus(StrEnum):
    PLANNING = "planning"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"


class CompletionStatus(StrEnum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Site(SQLModel, table=True):
    __tablename__ = "sites"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    name: str = Field(index=True, max_length=200)
    location: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    budget: float = Field(default=0.0)
    start_date: date | None = None
    end_date: date | None = None
    status: SiteStatus = Field(default=SiteStatus.PLANNING, index=True)
    completion_status: CompletionStatus = Field(default=CompletionStatus.IN_PROGRESS, index=True)
    completion_percentage: float = Field(default=0.0)
    completed_at: datetime | None = None
    created_by: str | None = Field(default=None, foreign_key="employees.id", max_length=ID_LENGTH)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    deleted_at: datetime | None = Field(default=None, index=True)


class PhaseStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Phase(SQLModel, table=True):
    __tablename__ = "phases"
    __table_args__ = (Index("ix_phases_site_serial", "site_id", "serial_number"),)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    site_id: str = Field(foreign_key="sites.id", index=True, max_length=ID_LENGTH)
    name: str = Field(max_length=200)
    order_num: int = Field(default=0)
    serial_number: int = Field(default=0)
    floor_number: int = Field(default=0)
    floor_name: str = Field(default="Ground Floor", max_length=100)
    budget: float = Field(default=0.0)
    status: PhaseStatus = Field(default=PhaseStatus.PENDING, index=True)
    progress: int = Field(default=0)
    start_date: date | None = None
    end_date: date | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_phase_order", "phase_id", "order_index"),)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    site_id: str = Field(foreign_key="sites.id", index=True, max_length=ID_LENGTH)
    phase_id: str | None = Field(default=None, foreign_key="phases.id", index=True, max_length=ID_LENGTH)
    name: str = Field(max_length=255)
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    status: TaskStatus = Field(default=TaskStatus.PENDING, index=True)
    order_index: int = Field(default=0)
    start_date: date | None = None
    due_date: date | None = None
    completed_at: datetime | None = None
    approved_by: str | None = Field(default=None, max_length=ID_LENGTH)
    rejection_count: int = Field(default=0)
    created_by: str | None = Field(default=None, max_length=ID_LENGTH)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    deleted_at: datetime | None = Field(default=None, index=True)


class TaskAssignment(SQLModel, table=True):
    __tablename__ = "task_assignments"

    task_id: str = Field(foreign_key="tasks.id", primary_key=True, max_length=ID_LENGTH)
    employee_id: str = Field(foreign_key="employees.id", primary_key=True, max_length=ID_LENGTH)
    assigned_by: str | None = Field(default=None, max_length=ID_LENGTH)
    assigned_at: datetime = Field(default_factory=now_utc, index=True)


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    LINK = "link"


FILE_MESSAGE_TYPES: tuple[MessageType, ...] = (
    MessageType.IMAGE,
    MessageType.VIDEO,
    MessageType.AUDIO,
    MessageType.DOCUMENT,
    MessageType.LINK,
)


class TaskMessage(SQLModel, table=True):
    __tablename__ = "task_messages"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    task_id: str | None = Field(default=None, foreign_key="tasks.id", index=True, max_length=ID_LENGTH)
    site_id: str | None = Field(default=None, foreign_key="sites.id", index=True, max_length=ID_LENGTH)
    sender_id: str | None = Field(default=None, foreign_key="employees.id", index=True, max_length=ID_LENGTH)
    sender_role: str = Field(default=EmployeeRole.EMPLOYEE.value, max_length=50)
    type: MessageType = Field(default=MessageType.TEXT, index=True)
    content: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    media_url: str | None = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class ActivityMetric(StrEnum):
    ATTENDANCE = "attendance"
    TASKS_ASSIGNED = "tasks_assigned"
    TASKS_COMPLETED = "tasks_completed"
    OVERTIME = "overtime"


class WorkerDailyActivity(SQLModel, table=True):
    __tablename__ = "worker_daily_activity"
    __table_args__ = (
        UniqueConstraint(
            "worker_id",
            "activity_date",
            "metric_type",
            name="uq_worker_date_metric",
        ),
        Index("ix_worker_daily_activity_worker_date", "worker_id", "activity_date"),
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    worker_id: str = Field(foreign_key="employees.id", max_length=ID_LENGTH)
    activity_date: date
    metric_type: ActivityMetric = Field(index=True)
    is_checked: bool = Field(default=False)
    is_locked: bool = Field(default=False)
    locked_by: str | None = Field(default=None, max_length=ID_LENGTH)
    locked_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class MilestoneStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"


class Milestone(SQLModel, table=True):
    __tablename__ = "milestones"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    site_id: str = Field(foreign_key="sites.id", index=True, max_length=ID_LENGTH)
    name: str = Field(max_length=200)
    floor: str | None = Field(default=None, max_length=100)
    stage: str | None = Field(default=None, max_length=200)
    status: MilestoneStatus = Field(default=MilestoneStatus.PENDING, index=True)
    progress: int = Field(default=0)
    start_date: date | None = None
    planned_end_date: date | None = None
    actual_completion_date: date | None = None
    delay_reason: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=now_utc, index=True)


class MaterialStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    RECEIVED = "received"
    REJECTED = "rejected"


class MaterialRequest(SQLModel, table=True):
    __tablename__ = "material_requests"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    site_id: str = Field(foreign_key="sites.id", index=True, max_length=ID_LENGTH)
    phase_id: str | None = Field(default=None, foreign_key="phases.id", max_length=ID_LENGTH)
    material_name: str = Field(max_length=200)
    quantity: float = Field(default=0.0)
    unit: str | None = Field(default=None, max_length=30)
    status: MaterialStatus = Field(default=MaterialStatus.PENDING, index=True)
    requested_by: str | None = Field(default=None, max_length=ID_LENGTH)
    decided_by: str | None = Field(default=None, max_length=ID_LENGTH)
    note: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class TransactionKind(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"


class SiteTransaction(SQLModel, table=True):
    __tablename__ = "transactions"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=ID_LENGTH)
    site_id: str = Field(foreign_key="sites.id", index=True, max_length=ID_LENGTH)
    phase_id: str | None = Field(default=None, foreign_key="phases.id", max_length=ID_LENGTH)
    kind: TransactionKind = Field(index=True)
    amount: float
    description: str | None = Field(default=None, max_length=500)
    transaction_date: date = Field(default_factory=lambda: now_utc().date(), index=True)
    created_by: str | None = Field(default=None, max_length=ID_LENGTH)
    created_at: datetime = Field(default_factory=now_utc)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=new_id)
    event_type: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    payload: dict[str, Any]


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PatchModel(BaseModel):
    """Partial update body. Fields listed in ``non_nullable`` may be omitted but not sent as null."""

    non_nullable: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_null_required(self) -> PatchModel:
        nulls = [name for name in self.non_nullable if name in self.model_fields_set and getattr(self, name) is None]
        if nulls:
            raise ValueError(f"fields cannot be null: {', '.join(nulls)}")
        return self


# auth / employees


class LoginRequest(BaseModel):
    identifier: str | None = None
    email: str | None = None
    password: str | None = None


class BootstrapAdminRequest(BaseModel):
    name: str
    email: str
    phone: str | None = None
    password: str = PydanticField(min_length=6)


class EmployeeRead(ORMReadModel):
    id: str
    name: str
    email: str
    phone: str | None
    role: EmployeeRole
    status: EmployeeStatus
    profile_image: str | None
    created_at: datetime


class LoginResponse(BaseModel):
    message: str = "Login successful"
    access_token: str
    token_type: str = "bearer"
    user: EmployeeRead


class ProfileUpdate(PatchModel):
    non_nullable = ("name", "email")

    name: str | None = None
    email: str | None = None
    phone: str | None = None


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str = PydanticField(min_length=6)


class EmployeeCreate(BaseModel):
    name: str
    email: str
    phone: str | None = None
    password: str = PydanticField(min_length=6)
    role: EmployeeRole = EmployeeRole.EMPLOYEE
    profile_image: str | None = None


class EmployeeUpdate(PatchModel):
    non_nullable = ("name", "email", "password", "role", "status")

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    password: str | None = PydanticField(default=None, min_length=6)
    role: EmployeeRole | None = None
    status: EmployeeStatus | None = None
    profile_image: str | None = None


class MessageResponse(BaseModel):
    message: str


# sites / phases


class SiteCreate(BaseModel):
    name: str
    location: str | None = None
    description: str | None = None
    budget: float = PydanticField(default=0.0, ge=0)
    start_date: date | None = None
    end_date: date | None = None
    status: SiteStatus = SiteStatus.PLANNING
    use_template: bool = False


class SiteUpdate(PatchModel):
    non_nullable = ("name", "budget", "status")

    name: str | None = None
    location: str | None = None
    description: str | None = None
    budget: float | None = PydanticField(default=None, ge=0)
    start_date: date | None = None
    end_date: date | None = None
    status: SiteStatus | None = None


class SiteRead(ORMReadModel):
    id: str
    name: str
    location: str | None
    description: str | None
    budget: float
    start_date: date | None
    end_date: date | None
    status: SiteStatus
    completion_status: CompletionStatus
    completion_percentage: float
    completed_at: datetime | None
    created_by: str | None
    created_at: datetime


class PhaseCreate(BaseModel):
    name: str
    order_num: int | None = None
    serial_number: int | None = None
    floor_number: int = 0
    floor_name: str = "Ground Floor"
    budget: float = PydanticField(default=0.0, ge=0)
    start_date: date | None = None
    end_date: date | None = None


class PhaseUpdate(PatchModel):
    non_nullable = (
        "name",
        "order_num",
        "serial_number",
        "floor_number",
        "floor_name",
        "budget",
        "status",
        "progress",
    )

    name: str | None = None
    order_num: int | None = None
    serial_number: int | None = None
    floor_number: int | None = None
    floor_name: str | None = None
    budget: float | None = PydanticField(default=None, ge=0)
    status: PhaseStatus | None = None
    progress: int | None = PydanticField(default=None, ge=0, le=100)
    start_date: date | None = None
    end_date: date | None = None


class PhaseRead(ORMReadModel):
    id: str
    site_id: str
    name: str
    order_num: int
    serial_number: int
    floor_number: int
    floor_name: str
    budget: float
    status: PhaseStatus
    progress: int
    start_date: date | None
    end_date: date | None
    created_at: datetime


class TemplateApplyRead(BaseModel):
    site_id: str
    applied: bool
    phase_count: int


# tasks


class TaskCreate(BaseModel):
    name: str
    description: str | None = None
    start_date: date | None = None
    due_date: date | None = None
    order_index: int | None = None
    assignee_ids: list[str] = PydanticField(default_factory=list)


class TaskUpdate(PatchModel):
    non_nullable = ("name", "phase_id")

    name: str | None = None
    description: str | None = None
    start_date: date | None = None
    due_date: date | None = None
    phase_id: str | None = None


class TaskAssignRequest(BaseModel):
    employee_ids: list[str] = PydanticField(min_length=1)


class TaskDecisionRequest(BaseModel):
    note: str | None = None


class TaskReorderRequest(BaseModel):
    task_ids: list[str] = PydanticField(min_length=1)


class TaskRead(ORMReadModel):
    id: str
    site_id: str
    phase_id: str | None
    name: str
    description: str | None
    status: TaskStatus
    order_index: int
    start_date: date | None
    due_date: date | None
    completed_at: datetime | None
    approved_by: str | None
    rejection_count: int
    created_by: str | None
    created_at: datetime
    assignee_ids: list[str] = PydanticField(default_factory=list)


class TaskMessageCreate(BaseModel):
    type: MessageType = MessageType.TEXT
    content: str | None = None
    media_url: str | None = None


class TaskMessageRead(ORMReadModel):
    id: str
    task_id: str | None
    site_id: str | None
    sender_id: str | None
    sender_role: str
    type: MessageType
    content: str | None
    media_url: str | None
    created_at: datetime


class TaskOverviewStatsRead(BaseModel):
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    completed_percent: float
    pending_percent: float
    timestamp: datetime


class ProjectTaskStatsRead(BaseModel):
    project_id: str
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    completed_percent: float
    pending_percent: float


class StatusCountRead(BaseModel):
    status: str
    count: int
    percentage: float


class TaskStatusStatsRead(BaseModel):
    total: int
    by_status: list[StatusCountRead]


class GanttTaskRead(BaseModel):
    task_id: str
    task_name: str
    project_name: str | None
    start_date: date
    end_date: date
    status: str
    assigned_to: str | None


class GanttResponse(BaseModel):
    success: bool = True
    data: list[GanttTaskRead]
    count: int


class EmployeeDashboardStatsRead(BaseModel):
    assigned_tasks: int
    completed_tasks: int
    pending_tasks: int
    waiting_approval: int
    overdue_tasks: int
    attendance_today: bool


# completion


class CountPair(BaseModel):
    total: int = 0
    completed: int = 0


class CompletionBreakdown(BaseModel):
    phases: CountPair
    tasks: CountPair
    milestones: CountPair
    materials: CountPair


class ProjectCompletionRead(BaseModel):
    site_id: str
    status: CompletionStatus
    percentage: float
    breakdown: CompletionBreakdown


# worker activity


class DailyActivityRead(BaseModel):
    attendance: bool = False
    tasks_assigned: int = 0
    tasks_completed: int = 0
    tasks_pending: int = 0
    attendance_locked: bool = False
    tasks_assigned_locked: bool = False
    tasks_completed_locked: bool = False


class WorkerActivityRead(BaseModel):
    success: bool = True
    worker_id: str
    start_date: date
    end_date: date
    activity_data: dict[str, DailyActivityRead]


class ProductivityWeekRead(BaseModel):
    week: str
    completion_rate: int
    tasks_completed: int
    tasks_assigned: int


class ProductivityTrendRead(BaseModel):
    success: bool = True
    worker_id: str
    trend: list[ProductivityWeekRead]


class MonthlyStatsRead(BaseModel):
    attendance_days: int
    tasks_completed: int
    overtime_days: int


class WorkerDetailsRead(BaseModel):
    success: bool = True
    worker: EmployeeRead
    monthly_stats: MonthlyStatsRead


class WeekGridRead(BaseModel):
    attendance: list[bool]
    tasks_assigned: list[bool]
    tasks_completed: list[bool]
    overtime: list[bool]
    attendance_locked: list[bool]
    tasks_assigned_locked: list[bool]
    tasks_completed_locked: list[bool]
    overtime_locked: list[bool]


class WeeklyActivityRead(BaseModel):
    worker_id: str
    start_date: date
    weeks: dict[str, WeekGridRead]


class ActivityToggleRequest(BaseModel):
    activity_date: date
    metric_type: ActivityMetric
    is_checked: bool


class ActivityRead(ORMReadModel):
    id: str
    worker_id: str
    activity_date: date
    metric_type: ActivityMetric
    is_checked: bool
    is_locked: bool
    locked_by: str | None
    locked_at: datetime | None


class ActivityLockRequest(BaseModel):
    activity_date: date | None = None


class ActivityLockRead(BaseModel):
    worker_id: str
    activity_date: date
    locked: int


# files


class FileRead(BaseModel):
    id: str
    sender_id: str | None
    task_id: str | None
    url: str | None
    type: MessageType
    created_at: datetime
    task_name: str | None = None
    phase_name: str | None = None
    phase_id: str | None = None
    uploaded_by: str | None = None
    uploader_image: str | None = None
    site_id: str | None = None


class CalendarDayRead(BaseModel):
    date: date
    count: int
    types: list[str]


class FilesCalendarRead(BaseModel):
    month: str
    dates: list[CalendarDayRead]


class GroupedFilesRead(BaseModel):
    images: list[FileRead] = PydanticField(default_factory=list)
    videos: list[FileRead] = PydanticField(default_factory=list)
    audio: list[FileRead] = PydanticField(default_factory=list)
    documents: list[FileRead] = PydanticField(default_factory=list)
    links: list[FileRead] = PydanticField(default_factory=list)


class FilesOfDayRead(BaseModel):
    all: list[FileRead]
    grouped: GroupedFilesRead


class FilesByDateRead(BaseModel):
    date: date
    total_count: int
    files: FilesOfDayRead


class FileSearchRead(BaseModel):
    count: int
    files: list[FileRead]


class FileStatsSummaryRead(BaseModel):
    total: int
    by_type: dict[str, int]


class FileStatsDailyRead(BaseModel):
    type: MessageType
    count: int
    date: date


class FileStatsRead(BaseModel):
    summary: FileStatsSummaryRead
    daily: list[FileStatsDailyRead]


class FilePreviewRead(BaseModel):
    file: FileRead


# milestones / materials / finance


class MilestoneCreate(BaseModel):
    name: str
    floor: str | None = None
    stage: str | None = None
    start_date: date | None = None
    planned_end_date: date | None = None


class MilestoneUpdate(PatchModel):
    non_nullable = ("name", "status", "progress")

    name: str | None = None
    floor: str | None = None
    stage: str | None = None
    status: MilestoneStatus | None = None
    progress: int | None = PydanticField(default=None, ge=0, le=100)
    start_date: date | None = None
    planned_end_date: date | None = None
    actual_completion_date: date | None = None
    delay_reason: str | None = None


class MilestoneRead(BaseModel):
    id: str
    site_id: str
    project_name: str | None = None
    name: str
    floor: str | None
    stage: str | None
    status: MilestoneStatus
    progress: int
    start_date: date | None
    planned_end_date: date | None
    actual_completion_date: date | None
    delay_days: int
    delay_reason: str | None


class MaterialRequestCreate(BaseModel):
    material_name: str
    quantity: float = PydanticField(gt=0)
    unit: str | None = None
    phase_id: str | None = None
    note: str | None = None


class MaterialStatusRequest(BaseModel):
    status: MaterialStatus
    note: str | None = None


class MaterialRequestRead(ORMReadModel):
    id: str
    site_id: str
    phase_id: str | None
    material_name: str
    quantity: float
    unit: str | None
    status: MaterialStatus
    requested_by: str | None
    decided_by: str | None
    note: str | None
    created_at: datetime


class TransactionCreate(BaseModel):
    kind: TransactionKind
    amount: float = PydanticField(gt=0)
    description: str | None = None
    phase_id: str | None = None
    transaction_date: date | None = None


class TransactionRead(ORMReadModel):
    id: str
    site_id: str
    phase_id: str | None
    kind: TransactionKind
    amount: float
    description: str | None
    transaction_date: date
    created_by: str | None
    created_at: datetime


class SiteFinancialsRead(BaseModel):
    site_id: str
    budget: float
    received: float
    spent: float
    balance: float
    utilization_percentage: float


# overall report


class CompanyOverviewRead(BaseModel):
    total_projects: int
    active_projects: int
    completed_projects: int
    projects_with_delays: int
    active_employees_today: int


class FinancialSummaryRead(BaseModel):
    total_allocated: float
    total_received: float
    total_expenses: float
    balance: float
    utilization_percentage: float


class ProjectSummaryRead(BaseModel):
    id: str
    name: str
    status: str
    progress: float
    budget: float
    received: float
    spent: float
    days_behind: int
    pending_approvals: int
    total_tasks: int
    completed_tasks: int
    end_date: date | None
    completed_date: date | None


class MilestoneStatsRead(BaseModel):
    total: int
    pending: int
    in_progress: int
    completed: int
    delayed: int


class ReportMilestonesRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stats: MilestoneStatsRead
    items: list[MilestoneRead] = PydanticField(alias="list")
    achievements: list[str]


class TaskStatisticsRead(BaseModel):
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    waiting_approval: int
    rejected_tasks: int
    avg_completion_time_days: float


class EmployeePerformanceRead(BaseModel):
    id: str
    name: str
    role: EmployeeRole
    status: EmployeeStatus
    assigned_tasks: int
    completed_tasks: int
    pending_tasks: int
    overdue_tasks: int
    on_time_tasks: int
    avg_completion_days: float
    rejection_count: int
    last_activity: date | None
    performance_score: int


class TopExpenseProjectRead(BaseModel):
    id: str
    name: str
    spent: float
    budget: float
    utilization_percentage: float


class OverallReportRead(BaseModel):
    generated_at: datetime
    company_overview: CompanyOverviewRead
    financial_summary: FinancialSummaryRead
    project_summary: list[ProjectSummaryRead]
    milestones: ReportMilestonesRead
    task_statistics: TaskStatisticsRead
    employee_performance: list[EmployeePerformanceRead]
    action_items: list[str]
    top_expense_projects: list[TopExpenseProjectRead]
