from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from noor.api.deps import get_current_claims
from noor.domain.models import (
    BootstrapAdminRequest,
    ChangePasswordRequest,
    EmployeeRead,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileUpdate,
)
from noor.infra.audit import set_audit_context
from noor.services.employee_service import (
    AuthError,
    ConflictError,
    EmployeeService,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)

router = APIRouter()


def get_employee_service() -> EmployeeService:
    return EmployeeService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[EmployeeService, Depends(get_employee_service)]


def _handle_auth_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, AuthError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    raise exc


_AUTH_ERRORS = (NotFoundError, ConflictError, ValidationError, AuthError, ForbiddenError)


@router.post("/bootstrap-admin", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
def bootstrap_admin(payload: BootstrapAdminRequest, service: Service) -> EmployeeRead:
    try:
        admin = service.bootstrap_admin(payload)
        return EmployeeRead.model_validate(admin)
    except _AUTH_ERRORS as exc:
        _handle_auth_error(exc)
        raise


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, request: Request, service: Service) -> LoginResponse:
    try:
        employee, token = service.login(payload)
    except _AUTH_ERRORS as exc:
        set_audit_context(
            request,
            action="auth.login",
            detail={"result": {"reason": str(exc)}},
        )
        _handle_auth_error(exc)
        raise
    set_audit_context(request, action="auth.login", detail={"who": {"actor_id": employee.id}})
    return LoginResponse(access_token=token, user=EmployeeRead.model_validate(employee))


@router.get("/me", response_model=EmployeeRead)
def me(claims: Claims, service: Service) -> EmployeeRead:
    try:
        return EmployeeRead.model_validate(service.get_employee(claims["sub"]))
    except _AUTH_ERRORS as exc:
        _handle_auth_error(exc)
        raise


@router.put("/profile", response_model=EmployeeRead)
def update_profile(payload: ProfileUpdate, claims: Claims, service: Service) -> EmployeeRead:
    try:
        return EmployeeRead.model_validate(service.update_profile(claims["sub"], payload))
    except _AUTH_ERRORS as exc:
        _handle_auth_error(exc)
        raise


@router.post("/change-password", response_model=MessageResponse)
def change_password(payload: ChangePasswordRequest, claims: Claims, service: Service) -> MessageResponse:
    try:
        service.change_password(claims["sub"], payload)
    except _AUTH_ERRORS as exc:
        _handle_auth_error(exc)
        raise
    return MessageResponse(message="Password changed successfully")
