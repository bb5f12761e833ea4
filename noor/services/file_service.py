from __future__ import annotations

import logging
import re
from calendar import monthrange
from collections import defaultdict
from datetime import UTC, date, datetime, time

from sqlalchemy import or_
from sqlmodel import Session, col, select
from sqlmodel.sql.expression import Select

from noor.domain.models import (
    FILE_MESSAGE_TYPES,
    CalendarDayRead,
    Employee,
    FileRead,
    FilesByDateRead,
    FilesCalendarRead,
    FilesOfDayRead,
    FileStatsDailyRead,
    FileStatsRead,
    FileStatsSummaryRead,
    GroupedFilesRead,
    MessageType,
    Phase,
    Task,
    TaskMessage,
)
from noor.infra.db import get_engine

logger = logging.getLogger(__name__)

MONTH_PATTERN = re.compile(r"^\d{4}-\d{2}$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SEARCH_LIMIT = 100

GROUP_KEYS: dict[MessageType, str] = {
    MessageType.IMAGE: "images",
    MessageType.VIDEO: "videos",
    MessageType.AUDIO: "audio",
    MessageType.DOCUMENT: "documents",
    MessageType.LINK: "links",
}


class FileError(Exception):
    pass


class NotFoundError(FileError):
    pass


class ValidationError(FileError):
    pass


def parse_month(value: str | None) -> tuple[date, date]:
    """Return the first and last day of a ``YYYY-MM`` month."""
    if not value or not MONTH_PATTERN.match(value):
        raise ValidationError("Invalid month format. Use YYYY-MM")
    year, month = (int(part) for part in value.split("-"))
    if not 1 <= month <= 12:
        raise ValidationError("Invalid month format. Use YYYY-MM")
    try:
        _, last_day = monthrange(year, month)
        return date(year, month, 1), date(year, month, last_day)
    except ValueError as exc:
        raise ValidationError("Invalid month format. Use YYYY-MM") from exc


def parse_day(value: str | None) -> date:
    if not value or not DATE_PATTERN.match(value):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD") from exc


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=UTC)


def _day_end(value: date) -> datetime:
    return datetime.combine(value, time.max, tzinfo=UTC)


def stats_range(year: int | None, month: int | None) -> tuple[date, date] | None:
    if year is None:
        return None
    try:
        if month is None:
            return date(year, 1, 1), date(year, 12, 31)
        _, last_day = monthrange(year, month)
        return date(year, month, 1), date(year, month, last_day)
    except ValueError as exc:
        raise ValidationError("Invalid year or month") from exc


def file_url(message: TaskMessage) -> str | None:
    if message.media_url:
        return message.media_url
    return message.content


FileRow = tuple[TaskMessage, Task | None, Phase | None, Employee | None]


class FileService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _file_messages(self) -> Select[FileRow]:
        return (
            select(TaskMessage, Task, Phase, Employee)
            .outerjoin(Task, col(TaskMessage.task_id) == col(Task.id))
            .outerjoin(Phase, col(Task.phase_id) == col(Phase.id))
            .outerjoin(Employee, col(TaskMessage.sender_id) == col(Employee.id))
            .where(col(TaskMessage.type).in_(list(FILE_MESSAGE_TYPES)))
        )

    def _between(self, statement: Select[FileRow], start: date, end: date) -> Select[FileRow]:
        return statement.where(col(TaskMessage.created_at) >= _day_start(start)).where(
            col(TaskMessage.created_at) <= _day_end(end)
        )

    def _for_site(self, statement: Select[FileRow], site_id: str | None) -> Select[FileRow]:
        if site_id is None:
            return statement
        return statement.where(or_(col(TaskMessage.site_id) == site_id, col(Phase.site_id) == site_id))

    def _to_read(self, row: FileRow) -> FileRead:
        message, task, phase, sender = row
        return FileRead(
            id=message.id,
            sender_id=message.sender_id,
            task_id=message.task_id,
            url=file_url(message),
            type=message.type,
            created_at=message.created_at,
            task_name=task.name if task is not None else None,
            phase_name=phase.name if phase is not None else None,
            phase_id=phase.id if phase is not None else None,
            uploaded_by=sender.name if sender is not None else None,
            uploader_image=sender.profile_image if sender is not None else None,
            site_id=message.site_id or (phase.site_id if phase is not None else None),
        )

    def _load(self, statement: Select[FileRow], limit: int | None = None) -> list[FileRead]:
        statement = statement.order_by(col(TaskMessage.created_at).desc(), col(TaskMessage.id))
        if limit is not None:
            statement = statement.limit(limit)
        with self._session() as session:
            return [self._to_read(row) for row in session.exec(statement).all()]

    def calendar(self, month: str | None, site_id: str | None = None) -> FilesCalendarRead:
        first, last = parse_month(month)
        rows = self._load(self._for_site(self._between(self._file_messages(), first, last), site_id))
        counts: dict[date, int] = defaultdict(int)
        types: dict[date, set[str]] = defaultdict(set)
        for row in rows:
            day = row.created_at.date()
            counts[day] += 1
            types[day].add(row.type.value)
        return FilesCalendarRead(
            month=str(month),
            dates=[
                CalendarDayRead(date=day, count=counts[day], types=sorted(types[day]))
                for day in sorted(counts)
            ],
        )

    def by_date(self, day_value: str | None, site_id: str | None = None) -> FilesByDateRead:
        day = parse_day(day_value)
        rows = self._load(self._for_site(self._between(self._file_messages(), day, day), site_id))
        grouped = GroupedFilesRead()
        for row in rows:
            getattr(grouped, GROUP_KEYS[row.type]).append(row)
        return FilesByDateRead(
            date=day,
            total_count=len(rows),
            files=FilesOfDayRead(all=rows, grouped=grouped),
        )

    def search(
        self,
        query: str | None = None,
        file_type: MessageType | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        site_id: str | None = None,
    ) -> list[FileRead]:
        statement = self._for_site(self._file_messages(), site_id)
        if query:
            pattern = f"%{query}%"
            statement = statement.where(
                or_(
                    col(Task.name).ilike(pattern),
                    col(Employee.name).ilike(pattern),
                    col(TaskMessage.content).ilike(pattern),
                )
            )
        if file_type is not None:
            statement = statement.where(col(TaskMessage.type) == file_type)
        # a lone bound is ignored
        if start_date is not None and end_date is not None:
            statement = self._between(statement, start_date, end_date)
        return self._load(statement, limit=SEARCH_LIMIT)

    def stats(
        self,
        site_id: str | None = None,
        year: int | None = None,
        month: int | None = None,
    ) -> FileStatsRead:
        statement = self._for_site(self._file_messages(), site_id)
        period = stats_range(year, month)
        if period is not None:
            statement = self._between(statement, *period)
        rows = self._load(statement)

        by_type = {item.value: 0 for item in FILE_MESSAGE_TYPES}
        daily: dict[tuple[date, MessageType], int] = defaultdict(int)
        for row in rows:
            by_type[row.type.value] += 1
            daily[(row.created_at.date(), row.type)] += 1
        return FileStatsRead(
            summary=FileStatsSummaryRead(total=len(rows), by_type=by_type),
            daily=[
                FileStatsDailyRead(type=file_type, count=count, date=day)
                for (day, file_type), count in sorted(
                    daily.items(),
                    key=lambda item: (-item[0][0].toordinal(), item[0][1].value),
                )
            ],
        )

    def preview(self, file_id: str) -> FileRead:
        rows = self._load(self._file_messages().where(col(TaskMessage.id) == file_id))
        if not rows:
            raise NotFoundError("File not found")
        return rows[0]

    def delete(self, file_id: str) -> None:
        with self._session() as session:
            message = session.exec(
                select(TaskMessage)
                .where(col(TaskMessage.id) == file_id)
                .where(col(TaskMessage.type).in_(list(FILE_MESSAGE_TYPES)))
            ).first()
            if message is None:
                raise NotFoundError("File not found")
            session.delete(message)
            session.commit()
        logger.info("file deleted: %s", file_id)
