from __future__ import annotations

from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from noor.api.deps import get_current_claims, require_perm
from noor.domain.models import (
    EmployeeDashboardStatsRead,
    GanttResponse,
    ProjectTaskStatsRead,
    TaskAssignRequest,
    TaskCreate,
    TaskDecisionRequest,
    TaskMessageCreate,
    TaskMessageRead,
    TaskOverviewStatsRead,
    TaskRead,
    TaskReorderRequest,
    TaskStatusStatsRead,
    TaskUpdate,
)
from noor.domain.permissions import (
    PERM_SITE_READ,
    PERM_TASK_APPROVE,
    PERM_TASK_READ,
    PERM_TASK_SUBMIT,
    PERM_TASK_WRITE,
    has_permission,
)
from noor.domain.state_machine import TaskStatus
from noor.services.task_service import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    TaskService,
    ValidationError,
)

router = APIRouter()


def get_task_service() -> TaskService:
    return TaskService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[TaskService, Depends(get_task_service)]

_TASK_ERRORS = (NotFoundError, ConflictError, ValidationError, ForbiddenError)


def _handle_task_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    raise exc


@router.get(
    "/tasks/stats",
    response_model=TaskOverviewStatsRead,
    dependencies=[Depends(require_perm(PERM_TASK_READ))],
)
def task_overview_stats(service: Service) -> TaskOverviewStatsRead:
    return service.overview_stats()


@router.get(
    "/tasks/stats/by-status",
    response_model=TaskStatusStatsRead,
    dependencies=[Depends(require_perm(PERM_TASK_READ))],
)
def task_status_stats(service: Service) -> TaskStatusStatsRead:
    return service.status_stats()


@router.get(
    "/tasks/stats/project/{site_id}",
    response_model=ProjectTaskStatsRead,
    dependencies=[Depends(require_perm(PERM_TASK_READ))],
)
def project_task_stats(site_id: str, service: Service) -> ProjectTaskStatsRead:
    try:
        return service.project_stats(site_id)
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.get(
    "/tasks/gantt",
    response_model=GanttResponse,
    dependencies=[Depends(require_perm(PERM_TASK_READ))],
)
def gantt(
    service: Service,
    start_date: date | None = None,
    end_date: date | None = None,
    site_id: str | None = None,
    task_status: Annotated[TaskStatus | None, Query(alias="status")] = None,
) -> GanttResponse:
    rows = service.gantt(start_date=start_date, end_date=end_date, site_id=site_id, status=task_status)
    return GanttResponse(data=rows, count=len(rows))


@router.get("/tasks/assigned", response_model=list[TaskRead])
def assigned_tasks(claims: Claims, service: Service) -> list[TaskRead]:
    return service.assigned_tasks(claims["sub"])


@router.get("/employee/dashboard-stats", response_model=EmployeeDashboardStatsRead)
def employee_dashboard_stats(claims: Claims, service: Service) -> EmployeeDashboardStatsRead:
    return service.dashboard_stats(claims["sub"])


@router.get(
    "/tasks",
    response_model=list[TaskRead],
    dependencies=[Depends(require_perm(PERM_TASK_READ))],
)
def list_tasks(
    service: Service,
    site_id: str | None = None,
    phase_id: str | None = None,
    task_status: Annotated[TaskStatus | None, Query(alias="status")] = None,
    assignee_id: str | None = None,
) -> list[TaskRead]:
    return service.list_tasks(site_id=site_id, phase_id=phase_id, status=task_status, assignee_id=assignee_id)


@router.post(
    "/phases/{phase_id}/tasks",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_TASK_WRITE))],
)
def create_task(phase_id: str, payload: TaskCreate, claims: Claims, service: Service) -> TaskRead:
    try:
        return service.create_task(phase_id, payload, created_by=claims["sub"])
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.post(
    "/phases/{phase_id}/tasks/reorder",
    response_model=list[TaskRead],
    dependencies=[Depends(require_perm(PERM_TASK_WRITE))],
)
def reorder_tasks(phase_id: str, payload: TaskReorderRequest, service: Service) -> list[TaskRead]:
    try:
        return service.reorder_tasks(phase_id, payload.task_ids)
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.get(
    "/tasks/{task_id}",
    response_model=TaskRead,
    dependencies=[Depends(require_perm(PERM_TASK_READ))],
)
def get_task(task_id: str, service: Service) -> TaskRead:
    try:
        return service.get_task(task_id)
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.patch(
    "/tasks/{task_id}",
    response_model=TaskRead,
    dependencies=[Depends(require_perm(PERM_TASK_WRITE))],
)
def update_task(task_id: str, payload: TaskUpdate, service: Service) -> TaskRead:
    try:
        return service.update_task(task_id, payload)
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.delete(
    "/tasks/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_TASK_WRITE))],
)
def delete_task(task_id: str, service: Service) -> Response:
    try:
        service.delete_task(task_id)
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/tasks/{task_id}/assign",
    response_model=TaskRead,
    dependencies=[Depends(require_perm(PERM_TASK_WRITE))],
)
def assign_task(task_id: str, payload: TaskAssignRequest, claims: Claims, service: Service) -> TaskRead:
    try:
        return service.assign_task(task_id, payload.employee_ids, assigned_by=claims["sub"])
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.post(
    "/tasks/{task_id}/start",
    response_model=TaskRead,
    dependencies=[Depends(require_perm(PERM_TASK_SUBMIT))],
)
def start_task(task_id: str, claims: Claims, service: Service) -> TaskRead:
    try:
        return service.start_task(task_id, claims["sub"], override=has_permission(claims, PERM_TASK_APPROVE))
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.post(
    "/tasks/{task_id}/submit",
    response_model=TaskRead,
    dependencies=[Depends(require_perm(PERM_TASK_SUBMIT))],
)
def submit_task(task_id: str, claims: Claims, service: Service) -> TaskRead:
    try:
        return service.submit_task(task_id, claims["sub"], override=has_permission(claims, PERM_TASK_APPROVE))
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.post(
    "/tasks/{task_id}/approve",
    response_model=TaskRead,
    dependencies=[Depends(require_perm(PERM_TASK_APPROVE))],
)
def approve_task(task_id: str, claims: Claims, service: Service) -> TaskRead:
    try:
        return service.approve_task(task_id, claims["sub"])
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.post(
    "/tasks/{task_id}/reject",
    response_model=TaskRead,
    dependencies=[Depends(require_perm(PERM_TASK_APPROVE))],
)
def reject_task(
    task_id: str,
    claims: Claims,
    service: Service,
    payload: TaskDecisionRequest | None = None,
) -> TaskRead:
    try:
        return service.reject_task(task_id, claims["sub"], note=payload.note if payload is not None else None)
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.post(
    "/tasks/{task_id}/messages",
    response_model=TaskMessageRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_TASK_SUBMIT))],
)
def add_task_message(
    task_id: str,
    payload: TaskMessageCreate,
    claims: Claims,
    service: Service,
) -> TaskMessageRead:
    try:
        message = service.add_task_message(task_id, payload, claims["sub"], claims.get("role", "employee"))
        return TaskMessageRead.model_validate(message)
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.get(
    "/tasks/{task_id}/messages",
    response_model=list[TaskMessageRead],
    dependencies=[Depends(require_perm(PERM_TASK_READ))],
)
def list_task_messages(task_id: str, service: Service) -> list[TaskMessageRead]:
    try:
        return [TaskMessageRead.model_validate(item) for item in service.list_task_messages(task_id)]
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.post(
    "/sites/{site_id}/messages",
    response_model=TaskMessageRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_TASK_SUBMIT))],
)
def add_site_message(
    site_id: str,
    payload: TaskMessageCreate,
    claims: Claims,
    service: Service,
) -> TaskMessageRead:
    try:
        message = service.add_site_message(site_id, payload, claims["sub"], claims.get("role", "employee"))
        return TaskMessageRead.model_validate(message)
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise


@router.get(
    "/sites/{site_id}/messages",
    response_model=list[TaskMessageRead],
    dependencies=[Depends(require_perm(PERM_SITE_READ))],
)
def list_site_messages(site_id: str, service: Service) -> list[TaskMessageRead]:
    try:
        return [TaskMessageRead.model_validate(item) for item in service.list_site_messages(site_id)]
    except _TASK_ERRORS as exc:
        _handle_task_error(exc)
        raise
