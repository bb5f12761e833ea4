from __future__ import annotations

import logging
from collections import Counter
from datetime import date

from sqlmodel import Session, col, select
from sqlmodel.sql.expression import SelectOfScalar

from noor.domain.models import (
    Employee,
    EmployeeDashboardStatsRead,
    GanttTaskRead,
    Phase,
    ProjectTaskStatsRead,
    Site,
    StatusCountRead,
    Task,
    TaskAssignment,
    TaskCreate,
    TaskMessage,
    TaskMessageCreate,
    TaskOverviewStatsRead,
    TaskRead,
    TaskStatusStatsRead,
    TaskUpdate,
    now_utc,
)
from noor.domain.state_machine import TaskStatus, can_task_transition
from noor.infra.db import get_engine
from noor.infra.events import event_bus
from noor.services.activity_service import ActivityService

logger = logging.getLogger(__name__)

GANTT_LIMIT = 500
GANTT_NAME_MAX = 255


class TaskError(Exception):
    pass


class NotFoundError(TaskError):
    pass


class ConflictError(TaskError):
    pass


class ValidationError(TaskError):
    pass


class ForbiddenError(TaskError):
    pass


def _percent(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total > 0 else 0.0


def _sorted_gantt_key(task: Task) -> tuple[bool, date, str]:
    # NULL start dates sort first, as in MySQL ascending order
    return (task.start_date is not None, task.start_date or date.min, task.id)


class TaskService:
    def __init__(self, activity_service: ActivityService | None = None) -> None:
        self._activity = activity_service or ActivityService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _live_tasks(self) -> SelectOfScalar[Task]:
        return select(Task).where(col(Task.deleted_at).is_(None))

    def _get_task(self, session: Session, task_id: str) -> Task:
        task = session.get(Task, task_id)
        if task is None or task.deleted_at is not None:
            raise NotFoundError("task not found")
        return task

    def _get_phase(self, session: Session, phase_id: str) -> Phase:
        phase = session.get(Phase, phase_id)
        if phase is None:
            raise NotFoundError("phase not found")
        return phase

    def _get_site(self, session: Session, site_id: str) -> Site:
        site = session.get(Site, site_id)
        if site is None or site.deleted_at is not None:
            raise NotFoundError("site not found")
        return site

    def _assignee_ids(self, session: Session, task_id: str) -> list[str]:
        rows = session.exec(select(TaskAssignment).where(TaskAssignment.task_id == task_id)).all()
        return sorted(row.employee_id for row in rows)

    def _assignees_by_task(self, session: Session, task_ids: list[str]) -> dict[str, list[str]]:
        mapping: dict[str, list[str]] = {task_id: [] for task_id in task_ids}
        if not task_ids:
            return mapping
        rows = session.exec(select(TaskAssignment).where(col(TaskAssignment.task_id).in_(task_ids))).all()
        for row in rows:
            mapping.setdefault(row.task_id, []).append(row.employee_id)
        return {key: sorted(value) for key, value in mapping.items()}

    def _to_read(self, task: Task, assignee_ids: list[str]) -> TaskRead:
        read = TaskRead.model_validate(task)
        read.assignee_ids = assignee_ids
        return read

    def _add_assignees(
        self,
        session: Session,
        task: Task,
        employee_ids: list[str],
        assigned_by: str | None,
    ) -> list[str]:
        existing = set(self._assignee_ids(session, task.id))
        added: list[str] = []
        for employee_id in dict.fromkeys(employee_ids):
            if employee_id in existing:
                continue
            if session.get(Employee, employee_id) is None:
                raise NotFoundError(f"employee not found: {employee_id}")
            session.add(TaskAssignment(task_id=task.id, employee_id=employee_id, assigned_by=assigned_by))
            added.append(employee_id)
        return added

    def _ensure_transition(self, task: Task, target: TaskStatus) -> None:
        if not can_task_transition(task.status, target):
            raise ConflictError(f"illegal transition: {task.status} -> {target}")

    def _publish_assigned(self, task: Task, employee_ids: list[str]) -> None:
        if not employee_ids:
            return
        event_bus.publish_dict(
            "task.assigned",
            {
                "task_id": task.id,
                "site_id": task.site_id,
                "employee_ids": employee_ids,
                "assigned_on": date.today().isoformat(),
            },
        )

    def create_task(self, phase_id: str, payload: TaskCreate, created_by: str | None) -> TaskRead:
        with self._session() as session:
            phase = self._get_phase(session, phase_id)
            siblings = session.exec(self._live_tasks().where(Task.phase_id == phase_id)).all()
            next_index = max((item.order_index for item in siblings), default=-1) + 1
            task = Task(
                site_id=phase.site_id,
                phase_id=phase.id,
                name=payload.name,
                description=payload.description,
                start_date=payload.start_date,
                due_date=payload.due_date,
                order_index=payload.order_index if payload.order_index is not None else next_index,
                created_by=created_by,
            )
            session.add(task)
            session.flush()
            added = self._add_assignees(session, task, payload.assignee_ids, created_by)
            session.commit()
            session.refresh(task)
            assignee_ids = self._assignee_ids(session, task.id)

        event_bus.publish_dict("task.created", {"task_id": task.id, "site_id": task.site_id})
        self._publish_assigned(task, added)
        return self._to_read(task, assignee_ids)

    def list_tasks(
        self,
        site_id: str | None = None,
        phase_id: str | None = None,
        status: TaskStatus | None = None,
        assignee_id: str | None = None,
    ) -> list[TaskRead]:
        with self._session() as session:
            statement = self._live_tasks()
            if site_id is not None:
                statement = statement.where(Task.site_id == site_id)
            if phase_id is not None:
                statement = statement.where(Task.phase_id == phase_id)
            if status is not None:
                statement = statement.where(Task.status == status)
            if assignee_id is not None:
                statement = statement.join(
                    TaskAssignment, col(TaskAssignment.task_id) == col(Task.id)
                ).where(TaskAssignment.employee_id == assignee_id)
            statement = statement.order_by(col(Task.order_index), col(Task.created_at))
            tasks = list(session.exec(statement).all())
            assignees = self._assignees_by_task(session, [task.id for task in tasks])
        return [self._to_read(task, assignees.get(task.id, [])) for task in tasks]

    def assigned_tasks(self, employee_id: str) -> list[TaskRead]:
        return self.list_tasks(assignee_id=employee_id)

    def get_task(self, task_id: str) -> TaskRead:
        with self._session() as session:
            task = self._get_task(session, task_id)
            return self._to_read(task, self._assignee_ids(session, task.id))

    def update_task(self, task_id: str, payload: TaskUpdate) -> TaskRead:
        with self._session() as session:
            task = self._get_task(session, task_id)
            updates = payload.model_dump(exclude_unset=True)
            phase_id = updates.pop("phase_id", None)
            if phase_id is not None:
                phase = self._get_phase(session, phase_id)
                if phase.site_id != task.site_id:
                    raise ValidationError("phase belongs to another site")
                task.phase_id = phase.id
            for key, value in updates.items():
                setattr(task, key, value)
            session.add(task)
            session.commit()
            session.refresh(task)
            return self._to_read(task, self._assignee_ids(session, task.id))

    def delete_task(self, task_id: str) -> None:
        with self._session() as session:
            task = self._get_task(session, task_id)
            task.deleted_at = now_utc()
            session.add(task)
            session.commit()

        event_bus.publish_dict("task.deleted", {"task_id": task.id, "site_id": task.site_id})

    def assign_task(self, task_id: str, employee_ids: list[str], assigned_by: str | None) -> TaskRead:
        with self._session() as session:
            task = self._get_task(session, task_id)
            if task.status == TaskStatus.COMPLETED:
                raise ConflictError("completed task cannot be assigned")
            added = self._add_assignees(session, task, employee_ids, assigned_by)
            session.commit()
            assignee_ids = self._assignee_ids(session, task.id)

        self._publish_assigned(task, added)
        return self._to_read(task, assignee_ids)

    def _assignee_transition(
        self,
        task_id: str,
        target: TaskStatus,
        actor_id: str,
        *,
        override: bool,
    ) -> TaskRead:
        with self._session() as session:
            task = self._get_task(session, task_id)
            assignee_ids = self._assignee_ids(session, task.id)
            if actor_id not in assignee_ids and not override:
                raise ForbiddenError("only an assignee can update this task")
            self._ensure_transition(task, target)
            task.status = target
            session.add(task)
            session.commit()
            session.refresh(task)
        return self._to_read(task, assignee_ids)

    def start_task(self, task_id: str, actor_id: str, *, override: bool = False) -> TaskRead:
        return self._assignee_transition(task_id, TaskStatus.IN_PROGRESS, actor_id, override=override)

    def submit_task(self, task_id: str, actor_id: str, *, override: bool = False) -> TaskRead:
        return self._assignee_transition(task_id, TaskStatus.WAITING_APPROVAL, actor_id, override=override)

    def approve_task(self, task_id: str, approver_id: str) -> TaskRead:
        with self._session() as session:
            task = self._get_task(session, task_id)
            self._ensure_transition(task, TaskStatus.COMPLETED)
            task.status = TaskStatus.COMPLETED
            task.completed_at = now_utc()
            task.approved_by = approver_id
            session.add(task)
            session.commit()
            session.refresh(task)
            assignee_ids = self._assignee_ids(session, task.id)

        event_bus.publish_dict(
            "task.approved",
            {
                "task_id": task.id,
                "site_id": task.site_id,
                "employee_ids": assignee_ids,
                "approved_by": approver_id,
                "completed_on": date.today().isoformat(),
            },
            actor_id=approver_id,
        )
        return self._to_read(task, assignee_ids)

    def reject_task(self, task_id: str, approver_id: str, note: str | None = None) -> TaskRead:
        with self._session() as session:
            task = self._get_task(session, task_id)
            self._ensure_transition(task, TaskStatus.REJECTED)
            task.status = TaskStatus.REJECTED
            task.rejection_count += 1
            session.add(task)
            session.commit()
            session.refresh(task)
            assignee_ids = self._assignee_ids(session, task.id)

        event_bus.publish_dict(
            "task.rejected",
            {
                "task_id": task.id,
                "site_id": task.site_id,
                "rejection_count": task.rejection_count,
                "note": note,
            },
            actor_id=approver_id,
        )
        return self._to_read(task, assignee_ids)

    def reorder_tasks(self, phase_id: str, task_ids: list[str]) -> list[TaskRead]:
        with self._session() as session:
            self._get_phase(session, phase_id)
            tasks = {
                task.id: task
                for task in session.exec(self._live_tasks().where(Task.phase_id == phase_id)).all()
            }
            unknown = [task_id for task_id in task_ids if task_id not in tasks]
            if unknown:
                raise ValidationError(f"tasks not in phase: {', '.join(unknown)}")
            for index, task_id in enumerate(dict.fromkeys(task_ids)):
                tasks[task_id].order_index = index
                session.add(tasks[task_id])
            session.commit()
        return self.list_tasks(phase_id=phase_id)

    def add_task_message(
        self,
        task_id: str,
        payload: TaskMessageCreate,
        sender_id: str | None,
        sender_role: str,
    ) -> TaskMessage:
        with self._session() as session:
            task = self._get_task(session, task_id)
            message = TaskMessage(
                task_id=task.id,
                sender_id=sender_id,
                sender_role=sender_role,
                type=payload.type,
                content=payload.content,
                media_url=payload.media_url,
            )
            session.add(message)
            session.commit()
            session.refresh(message)
            return message

    def list_task_messages(self, task_id: str) -> list[TaskMessage]:
        with self._session() as session:
            self._get_task(session, task_id)
            return list(
                session.exec(
                    select(TaskMessage)
                    .where(TaskMessage.task_id == task_id)
                    .order_by(col(TaskMessage.created_at))
                ).all()
            )

    def add_site_message(
        self,
        site_id: str,
        payload: TaskMessageCreate,
        sender_id: str | None,
        sender_role: str,
    ) -> TaskMessage:
        with self._session() as session:
            self._get_site(session, site_id)
            message = TaskMessage(
                site_id=site_id,
                sender_id=sender_id,
                sender_role=sender_role,
                type=payload.type,
                content=payload.content,
                media_url=payload.media_url,
            )
            session.add(message)
            session.commit()
            session.refresh(message)
            return message

    def list_site_messages(self, site_id: str) -> list[TaskMessage]:
        with self._session() as session:
            self._get_site(session, site_id)
            return list(
                session.exec(
                    select(TaskMessage)
                    .where(TaskMessage.site_id == site_id)
                    .order_by(col(TaskMessage.created_at))
                ).all()
            )

    def _counts(self, tasks: list[Task]) -> tuple[int, int, int]:
        total = len(tasks)
        completed = sum(1 for task in tasks if task.status == TaskStatus.COMPLETED)
        return total, completed, max(0, total - completed)

    def overview_stats(self) -> TaskOverviewStatsRead:
        with self._session() as session:
            tasks = list(session.exec(self._live_tasks()).all())
        total, completed, pending = self._counts(tasks)
        return TaskOverviewStatsRead(
            total_tasks=total,
            completed_tasks=completed,
            pending_tasks=pending,
            completed_percent=_percent(completed, total),
            pending_percent=_percent(pending, total),
            timestamp=now_utc(),
        )

    def project_stats(self, site_id: str) -> ProjectTaskStatsRead:
        with self._session() as session:
            self._get_site(session, site_id)
            tasks = list(session.exec(self._live_tasks().where(Task.site_id == site_id)).all())
        total, completed, pending = self._counts(tasks)
        return ProjectTaskStatsRead(
            project_id=site_id,
            total_tasks=total,
            completed_tasks=completed,
            pending_tasks=pending,
            completed_percent=_percent(completed, total),
            pending_percent=_percent(pending, total),
        )

    def status_stats(self) -> TaskStatusStatsRead:
        with self._session() as session:
            tasks = list(session.exec(self._live_tasks()).all())
        counter = Counter(task.status.value for task in tasks)
        total = len(tasks)
        rows = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
        return TaskStatusStatsRead(
            total=total,
            by_status=[
                StatusCountRead(status=status, count=count, percentage=_percent(count, total))
                for status, count in rows
            ],
        )

    def gantt(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        site_id: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[GanttTaskRead]:
        with self._session() as session:
            statement = self._live_tasks()
            if start_date is not None:
                statement = statement.where(col(Task.start_date) >= start_date)
            if end_date is not None:
                statement = statement.where(col(Task.due_date) <= end_date)
            if site_id is not None:
                statement = statement.where(Task.site_id == site_id)
            if status is not None:
                statement = statement.where(Task.status == status)
            tasks = sorted(session.exec(statement).all(), key=_sorted_gantt_key)[:GANTT_LIMIT]

            site_ids = sorted({task.site_id for task in tasks})
            site_names = {
                site.id: site.name for site in session.exec(select(Site).where(col(Site.id).in_(site_ids))).all()
            }
            assignees = self._assignees_by_task(session, [task.id for task in tasks])
            employee_ids = {employee_id for ids in assignees.values() for employee_id in ids}
            employee_names = {
                employee.id: employee.name
                for employee in session.exec(
                    select(Employee).where(col(Employee.id).in_(sorted(employee_ids)))
                ).all()
            }

        today = date.today()
        rows: list[GanttTaskRead] = []
        for task in tasks:
            names = [employee_names[item] for item in assignees.get(task.id, []) if item in employee_names]
            project_name = site_names.get(task.site_id)
            rows.append(
                GanttTaskRead(
                    task_id=task.id,
                    task_name=(task.name or "Untitled")[:GANTT_NAME_MAX],
                    project_name=project_name if project_name and project_name.strip() else None,
                    start_date=task.start_date or today,
                    end_date=task.due_date or today,
                    status=task.status.value if task.status else TaskStatus.PENDING.value,
                    assigned_to=", ".join(sorted(names)) or None,
                )
            )
        return rows

    def dashboard_stats(self, employee_id: str) -> EmployeeDashboardStatsRead:
        tasks = self.assigned_tasks(employee_id)
        today = date.today()
        completed = sum(1 for task in tasks if task.status == TaskStatus.COMPLETED)
        return EmployeeDashboardStatsRead(
            assigned_tasks=len(tasks),
            completed_tasks=completed,
            pending_tasks=sum(
                1 for task in tasks if task.status in {TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.REJECTED}
            ),
            waiting_approval=sum(1 for task in tasks if task.status == TaskStatus.WAITING_APPROVAL),
            overdue_tasks=sum(
                1
                for task in tasks
                if task.due_date is not None and task.due_date < today and task.status != TaskStatus.COMPLETED
            ),
            attendance_today=self._activity.has_attendance(employee_id, today),
        )
