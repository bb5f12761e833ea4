from __future__ import annotations

import logging
from collections import defaultdict
from datetime import UTC, date, datetime

from sqlmodel import Session, col, select

from noor.domain.models import (
    ActivityMetric,
    CompanyOverviewRead,
    CompletionStatus,
    Employee,
    EmployeePerformanceRead,
    EmployeeRole,
    FinancialSummaryRead,
    Milestone,
    MilestoneRead,
    MilestoneStatsRead,
    MilestoneStatus,
    OverallReportRead,
    ProjectSummaryRead,
    ReportMilestonesRead,
    Site,
    SiteStatus,
    SiteTransaction,
    Task,
    TaskAssignment,
    TaskStatisticsRead,
    TopExpenseProjectRead,
    TransactionKind,
    WorkerDailyActivity,
    now_utc,
)
from noor.domain.state_machine import TaskStatus
from noor.infra.db import get_engine
from noor.services.finance_service import sum_kind, utilization
from noor.services.milestone_service import to_milestone_read

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
TOP_EXPENSE_LIMIT = 5
ACHIEVEMENT_LIMIT = 10
MAX_REJECTION_PENALTY = 20


class ReportError(Exception):
    pass


class ValidationError(ReportError):
    pass


def performance_score(
    assigned: int,
    completed: int,
    on_time: int,
    rejections: int,
) -> int:
    """Blend completion and punctuality into a 0..100 score.

    70% weight on the completion rate, 30% on the on-time rate, minus two
    points per rejection (capped at 20).
    """
    completion_rate = completed / assigned * 100 if assigned > 0 else 0.0
    on_time_rate = on_time / completed * 100 if completed > 0 else 0.0
    penalty = min(rejections * 2, MAX_REJECTION_PENALTY)
    score = round(0.7 * completion_rate + 0.3 * on_time_rate - penalty)
    return max(0, min(100, score))


def parse_project_ids(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class ReportService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _as_utc(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def _days_between(self, start: datetime, end: datetime) -> float:
        return (self._as_utc(end) - self._as_utc(start)).total_seconds() / SECONDS_PER_DAY

    def _in_range(self, value: date, from_date: date | None, to_date: date | None) -> bool:
        if from_date is not None and value < from_date:
            return False
        if to_date is not None and value > to_date:
            return False
        return True

    def _project_status(
        self,
        site: Site,
        today: date,
        delayed_milestone: bool,
        pending_approvals: int,
    ) -> str:
        if site.completion_status == CompletionStatus.COMPLETED or site.status == SiteStatus.COMPLETED:
            return "completed"
        if (site.end_date is not None and site.end_date < today) or delayed_milestone:
            return "delayed"
        if pending_approvals > 0:
            return "at_risk"
        return "on_track"

    def overall_report(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        project_ids: list[str] | None = None,
    ) -> OverallReportRead:
        if from_date is not None and to_date is not None and from_date > to_date:
            raise ValidationError("from_date must not be after to_date")
        today = date.today()

        with self._session() as session:
            site_statement = select(Site).where(col(Site.deleted_at).is_(None))
            if project_ids:
                site_statement = site_statement.where(col(Site.id).in_(project_ids))
            sites = list(session.exec(site_statement.order_by(col(Site.name))).all())
            site_ids = [site.id for site in sites]

            tasks: list[Task] = []
            transactions: list[SiteTransaction] = []
            milestones: list[Milestone] = []
            assignments: list[TaskAssignment] = []
            if site_ids:
                tasks = [
                    task
                    for task in session.exec(
                        select(Task).where(col(Task.site_id).in_(site_ids)).where(col(Task.deleted_at).is_(None))
                    ).all()
                    if self._in_range(task.created_at.date(), from_date, to_date)
                ]
                transactions = [
                    item
                    for item in session.exec(
                        select(SiteTransaction).where(col(SiteTransaction.site_id).in_(site_ids))
                    ).all()
                    if self._in_range(item.transaction_date, from_date, to_date)
                ]
                milestones = list(session.exec(select(Milestone).where(col(Milestone.site_id).in_(site_ids))).all())
            task_ids = [task.id for task in tasks]
            if task_ids:
                assignments = list(
                    session.exec(select(TaskAssignment).where(col(TaskAssignment.task_id).in_(task_ids))).all()
                )
            employees = list(
                session.exec(
                    select(Employee).where(col(Employee.role) != EmployeeRole.ADMIN).order_by(col(Employee.name))
                ).all()
            )
            checked_activity = list(
                session.exec(
                    select(WorkerDailyActivity).where(col(WorkerDailyActivity.is_checked).is_(True))
                ).all()
            )

        site_names = {site.id: site.name for site in sites}
        tasks_by_site: dict[str, list[Task]] = defaultdict(list)
        for task in tasks:
            tasks_by_site[task.site_id].append(task)
        transactions_by_site: dict[str, list[SiteTransaction]] = defaultdict(list)
        for item in transactions:
            transactions_by_site[item.site_id].append(item)
        milestone_reads = [to_milestone_read(item, site_names.get(item.site_id), today) for item in milestones]
        delayed_sites = {item.site_id for item in milestone_reads if item.status == MilestoneStatus.DELAYED}

        project_summary: list[ProjectSummaryRead] = []
        for site in sites:
            site_tasks = tasks_by_site.get(site.id, [])
            site_transactions = transactions_by_site.get(site.id, [])
            pending_approvals = sum(1 for task in site_tasks if task.status == TaskStatus.WAITING_APPROVAL)
            status = self._project_status(site, today, site.id in delayed_sites, pending_approvals)
            days_behind = 0
            if status != "completed" and site.end_date is not None and site.end_date < today:
                days_behind = (today - site.end_date).days
            project_summary.append(
                ProjectSummaryRead(
                    id=site.id,
                    name=site.name,
                    status=status,
                    progress=site.completion_percentage,
                    budget=site.budget,
                    received=sum_kind(site_transactions, TransactionKind.INCOME),
                    spent=sum_kind(site_transactions, TransactionKind.EXPENSE),
                    days_behind=days_behind,
                    pending_approvals=pending_approvals,
                    total_tasks=len(site_tasks),
                    completed_tasks=sum(1 for task in site_tasks if task.status == TaskStatus.COMPLETED),
                    end_date=site.end_date,
                    completed_date=site.completed_at.date() if site.completed_at is not None else None,
                )
            )

        active_today = {
            row.worker_id
            for row in checked_activity
            if row.activity_date == today and row.metric_type == ActivityMetric.ATTENDANCE
        }
        company_overview = CompanyOverviewRead(
            total_projects=len(sites),
            active_projects=sum(1 for site in sites if site.status == SiteStatus.ACTIVE),
            completed_projects=sum(1 for item in project_summary if item.status == "completed"),
            projects_with_delays=sum(1 for item in project_summary if item.status == "delayed"),
            active_employees_today=len(active_today),
        )

        total_allocated = float(sum(site.budget for site in sites))
        total_received = sum_kind(transactions, TransactionKind.INCOME)
        total_expenses = sum_kind(transactions, TransactionKind.EXPENSE)
        financial_summary = FinancialSummaryRead(
            total_allocated=total_allocated,
            total_received=total_received,
            total_expenses=total_expenses,
            balance=total_received - total_expenses,
            utilization_percentage=utilization(total_expenses, total_allocated),
        )

        report = OverallReportRead(
            generated_at=now_utc(),
            company_overview=company_overview,
            financial_summary=financial_summary,
            project_summary=project_summary,
            milestones=self._milestones_section(milestone_reads, from_date, to_date),
            task_statistics=self._task_statistics(tasks),
            employee_performance=self._employee_performance(employees, tasks, assignments, checked_activity, today),
            action_items=self._action_items(project_summary, milestone_reads, tasks, today),
            top_expense_projects=self._top_expense_projects(project_summary),
        )
        logger.info(
            "overall report generated: %d projects, %d tasks, %d employees",
            len(sites),
            len(tasks),
            len(report.employee_performance),
        )
        return report

    def _milestones_section(
        self,
        milestones: list[MilestoneRead],
        from_date: date | None,
        to_date: date | None,
    ) -> ReportMilestonesRead:
        stats = MilestoneStatsRead(
            total=len(milestones),
            pending=sum(1 for item in milestones if item.status == MilestoneStatus.PENDING),
            in_progress=sum(1 for item in milestones if item.status == MilestoneStatus.IN_PROGRESS),
            completed=sum(1 for item in milestones if item.status == MilestoneStatus.COMPLETED),
            delayed=sum(1 for item in milestones if item.status == MilestoneStatus.DELAYED),
        )
        completed = sorted(
            (
                item
                for item in milestones
                if item.status == MilestoneStatus.COMPLETED
                and item.actual_completion_date is not None
                and self._in_range(item.actual_completion_date, from_date, to_date)
            ),
            key=lambda item: item.actual_completion_date or date.min,
            reverse=True,
        )
        achievements = [
            f"{item.name} completed for {item.project_name or 'project'} on {item.actual_completion_date}"
            for item in completed[:ACHIEVEMENT_LIMIT]
        ]
        return ReportMilestonesRead(stats=stats, items=milestones, achievements=achievements)

    def _task_statistics(self, tasks: list[Task]) -> TaskStatisticsRead:
        durations = [
            self._days_between(task.created_at, task.completed_at)
            for task in tasks
            if task.status == TaskStatus.COMPLETED and task.completed_at is not None
        ]
        completed = sum(1 for task in tasks if task.status == TaskStatus.COMPLETED)
        return TaskStatisticsRead(
            total_tasks=len(tasks),
            completed_tasks=completed,
            pending_tasks=max(0, len(tasks) - completed),
            waiting_approval=sum(1 for task in tasks if task.status == TaskStatus.WAITING_APPROVAL),
            rejected_tasks=sum(1 for task in tasks if task.status == TaskStatus.REJECTED),
            avg_completion_time_days=round(sum(durations) / len(durations), 1) if durations else 0.0,
        )

    def _employee_performance(
        self,
        employees: list[Employee],
        tasks: list[Task],
        assignments: list[TaskAssignment],
        checked_activity: list[WorkerDailyActivity],
        today: date,
    ) -> list[EmployeePerformanceRead]:
        tasks_by_id = {task.id: task for task in tasks}
        tasks_by_employee: dict[str, list[Task]] = defaultdict(list)
        for assignment in assignments:
            task = tasks_by_id.get(assignment.task_id)
            if task is not None:
                tasks_by_employee[assignment.employee_id].append(task)
        last_activity: dict[str, date] = {}
        for row in checked_activity:
            current = last_activity.get(row.worker_id)
            if current is None or row.activity_date > current:
                last_activity[row.worker_id] = row.activity_date

        rows: list[EmployeePerformanceRead] = []
        for employee in employees:
            own = tasks_by_employee.get(employee.id, [])
            done = [task for task in own if task.status == TaskStatus.COMPLETED]
            on_time = sum(
                1
                for task in done
                if task.due_date is None
                or (task.completed_at is not None and self._as_utc(task.completed_at).date() <= task.due_date)
            )
            overdue = sum(
                1
                for task in own
                if task.status != TaskStatus.COMPLETED and task.due_date is not None and task.due_date < today
            )
            durations = [
                self._days_between(task.created_at, task.completed_at) for task in done if task.completed_at is not None
            ]
            rejections = sum(task.rejection_count for task in own)
            rows.append(
                EmployeePerformanceRead(
                    id=employee.id,
                    name=employee.name,
                    role=employee.role,
                    status=employee.status,
                    assigned_tasks=len(own),
                    completed_tasks=len(done),
                    pending_tasks=len(own) - len(done),
                    overdue_tasks=overdue,
                    on_time_tasks=on_time,
                    avg_completion_days=round(sum(durations) / len(durations), 1) if durations else 0.0,
                    rejection_count=rejections,
                    last_activity=last_activity.get(employee.id),
                    performance_score=performance_score(len(own), len(done), on_time, rejections),
                )
            )
        return sorted(rows, key=lambda item: (-item.performance_score, item.name))

    def _action_items(
        self,
        projects: list[ProjectSummaryRead],
        milestones: list[MilestoneRead],
        tasks: list[Task],
        today: date,
    ) -> list[str]:
        items: list[str] = []
        for project in projects:
            if project.pending_approvals > 0:
                items.append(f"{project.pending_approvals} task(s) awaiting approval in {project.name}")
            if project.days_behind > 0:
                items.append(f"{project.name} is {project.days_behind} day(s) behind schedule")
            if project.budget > 0 and project.spent > project.budget:
                items.append(f"{project.name} has exceeded its budget")
        for milestone in milestones:
            if milestone.status == MilestoneStatus.DELAYED:
                items.append(
                    f"Milestone '{milestone.name}' in {milestone.project_name or 'project'} "
                    f"is delayed by {milestone.delay_days} day(s)"
                )
        overdue = sum(
            1
            for task in tasks
            if task.status != TaskStatus.COMPLETED and task.due_date is not None and task.due_date < today
        )
        if overdue:
            items.append(f"{overdue} task(s) are past their due date")
        return items

    def _top_expense_projects(self, projects: list[ProjectSummaryRead]) -> list[TopExpenseProjectRead]:
        ranked = sorted((item for item in projects if item.spent > 0), key=lambda item: (-item.spent, item.name))
        return [
            TopExpenseProjectRead(
                id=item.id,
                name=item.name,
                spent=item.spent,
                budget=item.budget,
                utilization_percentage=utilization(item.spent, item.budget),
            )
            for item in ranked[:TOP_EXPENSE_LIMIT]
        ]
