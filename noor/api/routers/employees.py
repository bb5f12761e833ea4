from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from noor.api.deps import require_perm
from noor.domain.models import (
    EmployeeCreate,
    EmployeeRead,
    EmployeeRole,
    EmployeeStatus,
    EmployeeUpdate,
)
from noor.domain.permissions import PERM_EMPLOYEE_READ, PERM_EMPLOYEE_WRITE
from noor.services.employee_service import ConflictError, EmployeeService, NotFoundError

router = APIRouter()


def get_employee_service() -> EmployeeService:
    return EmployeeService()


Service = Annotated[EmployeeService, Depends(get_employee_service)]


def _handle_employee_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.post(
    "",
    response_model=EmployeeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_EMPLOYEE_WRITE))],
)
def create_employee(payload: EmployeeCreate, service: Service) -> EmployeeRead:
    try:
        return EmployeeRead.model_validate(service.create_employee(payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_employee_error(exc)
        raise


@router.get(
    "",
    response_model=list[EmployeeRead],
    dependencies=[Depends(require_perm(PERM_EMPLOYEE_READ))],
)
def list_employees(
    service: Service,
    role: EmployeeRole | None = None,
    employee_status: Annotated[EmployeeStatus | None, Query(alias="status")] = None,
) -> list[EmployeeRead]:
    rows = service.list_employees(role=role, status=employee_status)
    return [EmployeeRead.model_validate(item) for item in rows]


@router.get(
    "/{employee_id}",
    response_model=EmployeeRead,
    dependencies=[Depends(require_perm(PERM_EMPLOYEE_READ))],
)
def get_employee(employee_id: str, service: Service) -> EmployeeRead:
    try:
        return EmployeeRead.model_validate(service.get_employee(employee_id))
    except (NotFoundError, ConflictError) as exc:
        _handle_employee_error(exc)
        raise


@router.patch(
    "/{employee_id}",
    response_model=EmployeeRead,
    dependencies=[Depends(require_perm(PERM_EMPLOYEE_WRITE))],
)
def update_employee(employee_id: str, payload: EmployeeUpdate, service: Service) -> EmployeeRead:
    try:
        return EmployeeRead.model_validate(service.update_employee(employee_id, payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_employee_error(exc)
        raise


@router.delete(
    "/{employee_id}",
    response_model=EmployeeRead,
    dependencies=[Depends(require_perm(PERM_EMPLOYEE_WRITE))],
)
def deactivate_employee(employee_id: str, service: Service) -> EmployeeRead:
    try:
        return EmployeeRead.model_validate(service.deactivate_employee(employee_id))
    except (NotFoundError, ConflictError) as exc:
        _handle_employee_error(exc)
        raise
