from __future__ import annotations

import logging
import math
import os
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from noor.domain.models import (
    ActivityMetric,
    ActivityToggleRequest,
    DailyActivityRead,
    Employee,
    MonthlyStatsRead,
    ProductivityWeekRead,
    Task,
    TaskAssignment,
    TaskStatus,
    WeekGridRead,
    WorkerDailyActivity,
    now_utc,
)
from noor.infra.db import get_engine
from noor.infra.events import event_bus

logger = logging.getLogger(__name__)

ACTIVITY_MANUAL_EDIT = os.getenv("ACTIVITY_MANUAL_EDIT", "0").strip().lower() in {"1", "true", "yes", "on"}

WEEKS_IN_GRID = 4
DAYS_IN_WEEK = 7
READ_ONLY_MESSAGE = (
    "Daily Activity Log is system-generated and cannot be manually edited. "
    "Activities are automatically recorded when admin approves completed tasks."
)
LOCKED_MESSAGE = "Activity is locked after admin approval and cannot be modified"


class ActivityError(Exception):
    pass


class NotFoundError(ActivityError):
    pass


class ForbiddenError(ActivityError):
    def __init__(self, message: str, **flags: Any) -> None:
        super().__init__(message)
        self.flags = flags


def mysql_week_number(value: date) -> int:
    """Week of year with Monday as first day, matching MySQL ``WEEK(value, 1)``.

    Week 1 is the first week holding four or more days of the year, so days
    before it fall in week 0 and the result ranges over 0..53.
    """
    first_week_start = date.fromisocalendar(value.year, 1, 1)
    if value < first_week_start:
        return 0
    return (value - first_week_start).days // DAYS_IN_WEEK + 1


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _empty_grid() -> dict[str, list[bool]]:
    grid: dict[str, list[bool]] = {}
    for metric in ActivityMetric:
        grid[metric.value] = [False] * DAYS_IN_WEEK
        grid[f"{metric.value}_locked"] = [False] * DAYS_IN_WEEK
    return grid


def transform_to_weekly(rows: Iterable[WorkerDailyActivity], start: date) -> dict[str, WeekGridRead]:
    weeks = {f"Week {index}": _empty_grid() for index in range(1, WEEKS_IN_GRID + 1)}
    for row in rows:
        offset = (row.activity_date - start).days
        week_index, day_index = divmod(offset, DAYS_IN_WEEK)
        if offset < 0 or week_index >= WEEKS_IN_GRID:
            continue
        grid = weeks[f"Week {week_index + 1}"]
        metric = ActivityMetric(row.metric_type).value
        grid[metric][day_index] = bool(row.is_checked)
        grid[f"{metric}_locked"][day_index] = bool(row.is_locked)
    return {key: WeekGridRead(**value) for key, value in weeks.items()}


def build_productivity_trend(rows: Iterable[WorkerDailyActivity]) -> list[ProductivityWeekRead]:
    completed: dict[int, int] = defaultdict(int)
    assigned: dict[int, int] = defaultdict(int)
    weeks: set[int] = set()
    for row in rows:
        week = mysql_week_number(row.activity_date)
        weeks.add(week)
        if not row.is_checked:
            continue
        if row.metric_type == ActivityMetric.TASKS_COMPLETED:
            completed[week] += 1
        elif row.metric_type == ActivityMetric.TASKS_ASSIGNED:
            assigned[week] += 1

    trend: list[ProductivityWeekRead] = []
    for week in sorted(weeks):
        done = completed[week]
        total = assigned[week]
        rate = round_half_up(done / total * 100) if total > 0 else 0
        trend.append(
            ProductivityWeekRead(
                week=f"W{week}",
                completion_rate=rate,
                tasks_completed=done,
                tasks_assigned=total,
            )
        )
    return trend


def _to_date(value: datetime | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


class ActivityService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_worker(self, session: Session, worker_id: str) -> Employee:
        worker = session.get(Employee, worker_id)
        if worker is None:
            raise NotFoundError("Worker not found")
        return worker

    def _find_row(
        self,
        session: Session,
        worker_id: str,
        activity_date: date,
        metric: ActivityMetric,
    ) -> WorkerDailyActivity | None:
        return session.exec(
            select(WorkerDailyActivity)
            .where(WorkerDailyActivity.worker_id == worker_id)
            .where(WorkerDailyActivity.activity_date == activity_date)
            .where(WorkerDailyActivity.metric_type == metric)
        ).first()

    def _rows_between(self, session: Session, worker_id: str, start: date, end: date) -> list[WorkerDailyActivity]:
        return list(
            session.exec(
                select(WorkerDailyActivity)
                .where(WorkerDailyActivity.worker_id == worker_id)
                .where(col(WorkerDailyActivity.activity_date) >= start)
                .where(col(WorkerDailyActivity.activity_date) <= end)
                .order_by(col(WorkerDailyActivity.activity_date))
            ).all()
        )

    def log_activity(
        self,
        worker_id: str,
        metric: ActivityMetric,
        activity_date: date | None = None,
    ) -> WorkerDailyActivity:
        day = activity_date or date.today()
        with self._session() as session:
            row = self._find_row(session, worker_id, day, metric)
            if row is not None and row.is_locked:
                return row
            if row is None:
                row = WorkerDailyActivity(worker_id=worker_id, activity_date=day, metric_type=metric, is_checked=True)
            else:
                row.is_checked = True
                row.updated_at = now_utc()
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                # concurrent insert of the same (worker, date, metric)
                session.rollback()
                row = self._find_row(session, worker_id, day, metric)
                if row is None:
                    raise
                if not row.is_locked and not row.is_checked:
                    row.is_checked = True
                    row.updated_at = now_utc()
                    session.add(row)
                    session.commit()
            session.refresh(row)

        logger.info("activity logged: worker %s %s on %s", worker_id, metric.value, day.isoformat())
        return row

    def log_task_assigned(self, worker_id: str, activity_date: date | None = None) -> None:
        self.log_activity(worker_id, ActivityMetric.TASKS_ASSIGNED, activity_date)

    def log_task_completed(self, worker_id: str, activity_date: date | None = None) -> None:
        day = activity_date or date.today()
        self.log_activity(worker_id, ActivityMetric.TASKS_COMPLETED, day)
        self.log_activity(worker_id, ActivityMetric.ATTENDANCE, day)

    def log_overtime(self, worker_id: str, activity_date: date | None = None) -> None:
        self.log_activity(worker_id, ActivityMetric.OVERTIME, activity_date)

    def lock_activity(self, worker_id: str, activity_date: date | None, locked_by: str | None) -> int:
        day = activity_date or date.today()
        with self._session() as session:
            rows = session.exec(
                select(WorkerDailyActivity)
                .where(WorkerDailyActivity.worker_id == worker_id)
                .where(WorkerDailyActivity.activity_date == day)
                .where(col(WorkerDailyActivity.is_checked).is_(True))
            ).all()
            locked_at = now_utc()
            for row in rows:
                row.is_locked = True
                row.locked_by = locked_by
                row.locked_at = locked_at
                row.updated_at = locked_at
                session.add(row)
            session.commit()
            locked = len(rows)

        logger.info("activity locked: worker %s on %s by %s (%d rows)", worker_id, day.isoformat(), locked_by, locked)
        event_bus.publish_dict(
            "activity.locked",
            {"worker_id": worker_id, "activity_date": day.isoformat(), "locked": locked},
            actor_id=locked_by,
        )
        return locked

    def has_attendance(self, worker_id: str, activity_date: date | None = None) -> bool:
        day = activity_date or date.today()
        with self._session() as session:
            row = self._find_row(session, worker_id, day, ActivityMetric.ATTENDANCE)
            return bool(row is not None and row.is_checked)

    def get_activity(self, worker_id: str, start: date, end: date) -> dict[str, DailyActivityRead]:
        activity_map: dict[str, DailyActivityRead] = {}

        def _entry(day: date) -> DailyActivityRead:
            key = day.isoformat()
            if key not in activity_map:
                activity_map[key] = DailyActivityRead()
            return activity_map[key]

        with self._session() as session:
            for row in self._rows_between(session, worker_id, start, end):
                entry = _entry(row.activity_date)
                if row.metric_type == ActivityMetric.ATTENDANCE:
                    entry.attendance = bool(row.is_checked)
                    entry.attendance_locked = bool(row.is_locked)
                elif row.metric_type == ActivityMetric.TASKS_ASSIGNED:
                    entry.tasks_assigned_locked = bool(row.is_locked)
                elif row.metric_type == ActivityMetric.TASKS_COMPLETED:
                    entry.tasks_completed_locked = bool(row.is_locked)

            task_rows = session.exec(
                select(Task)
                .join(TaskAssignment, col(TaskAssignment.task_id) == col(Task.id))
                .where(TaskAssignment.employee_id == worker_id)
                .where(col(Task.deleted_at).is_(None))
            ).all()

        for task in task_rows:
            created_day = _to_date(task.created_at)
            if created_day < start or created_day > end:
                continue
            entry = _entry(created_day)
            entry.tasks_assigned += 1
            if task.status == TaskStatus.COMPLETED:
                entry.tasks_completed += 1
            entry.tasks_pending = entry.tasks_assigned - entry.tasks_completed
        return dict(sorted(activity_map.items()))

    def productivity_trend(self, worker_id: str, start: date, end: date) -> list[ProductivityWeekRead]:
        with self._session() as session:
            rows = self._rows_between(session, worker_id, start, end)
        return build_productivity_trend(rows)

    def worker_details(self, worker_id: str, year: int, month: int) -> tuple[Employee, MonthlyStatsRead]:
        with self._session() as session:
            worker = self._get_worker(session, worker_id)
            rows = session.exec(
                select(WorkerDailyActivity)
                .where(WorkerDailyActivity.worker_id == worker_id)
                .where(col(WorkerDailyActivity.is_checked).is_(True))
            ).all()

        in_month = [row for row in rows if row.activity_date.year == year and row.activity_date.month == month]
        stats = MonthlyStatsRead(
            attendance_days=sum(1 for row in in_month if row.metric_type == ActivityMetric.ATTENDANCE),
            tasks_completed=sum(1 for row in in_month if row.metric_type == ActivityMetric.TASKS_COMPLETED),
            overtime_days=sum(1 for row in in_month if row.metric_type == ActivityMetric.OVERTIME),
        )
        return worker, stats

    def weekly_activity(self, worker_id: str, start: date) -> dict[str, WeekGridRead]:
        end = date.fromordinal(start.toordinal() + WEEKS_IN_GRID * DAYS_IN_WEEK - 1)
        with self._session() as session:
            rows = self._rows_between(session, worker_id, start, end)
        return transform_to_weekly(rows, start)

    def toggle_activity(self, worker_id: str, payload: ActivityToggleRequest) -> WorkerDailyActivity:
        if not ACTIVITY_MANUAL_EDIT:
            raise ForbiddenError(READ_ONLY_MESSAGE, read_only=True)
        with self._session() as session:
            self._get_worker(session, worker_id)
            row = self._find_row(session, worker_id, payload.activity_date, payload.metric_type)
            if row is not None and row.is_locked:
                raise ForbiddenError(LOCKED_MESSAGE, locked=True)
            if row is None:
                row = WorkerDailyActivity(
                    worker_id=worker_id,
                    activity_date=payload.activity_date,
                    metric_type=payload.metric_type,
                )
            row.is_checked = payload.is_checked
            row.updated_at = now_utc()
            session.add(row)
            session.commit()
            session.refresh(row)
            return row
