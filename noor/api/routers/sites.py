from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from noor.api.deps import get_current_claims, require_perm
from noor.domain.models import (
    PhaseCreate,
    PhaseRead,
    PhaseUpdate,
    ProjectCompletionRead,
    SiteCreate,
    SiteRead,
    SiteUpdate,
    TemplateApplyRead,
)
from noor.domain.permissions import PERM_SITE_READ, PERM_SITE_WRITE
from noor.infra.audit import set_audit_context
from noor.services.completion_service import CompletionService
from noor.services.completion_service import NotFoundError as CompletionNotFoundError
from noor.services.site_service import ConflictError, NotFoundError, SiteService

router = APIRouter()


def get_site_service() -> SiteService:
    return SiteService()


def get_completion_service() -> CompletionService:
    return CompletionService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[SiteService, Depends(get_site_service)]
Completion = Annotated[CompletionService, Depends(get_completion_service)]


def _handle_site_error(exc: Exception) -> None:
    if isinstance(exc, (NotFoundError, CompletionNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.post(
    "/sites",
    response_model=SiteRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_SITE_WRITE))],
)
def create_site(payload: SiteCreate, claims: Claims, service: Service) -> SiteRead:
    site = service.create_site(payload, created_by=claims["sub"])
    return SiteRead.model_validate(site)


@router.get(
    "/sites",
    response_model=list[SiteRead],
    dependencies=[Depends(require_perm(PERM_SITE_READ))],
)
def list_sites(service: Service) -> list[SiteRead]:
    return [SiteRead.model_validate(item) for item in service.list_sites()]


@router.get(
    "/sites/{site_id}",
    response_model=SiteRead,
    dependencies=[Depends(require_perm(PERM_SITE_READ))],
)
def get_site(site_id: str, service: Service) -> SiteRead:
    try:
        return SiteRead.model_validate(service.get_site(site_id))
    except (NotFoundError, ConflictError) as exc:
        _handle_site_error(exc)
        raise


@router.patch(
    "/sites/{site_id}",
    response_model=SiteRead,
    dependencies=[Depends(require_perm(PERM_SITE_WRITE))],
)
def update_site(site_id: str, payload: SiteUpdate, service: Service) -> SiteRead:
    try:
        return SiteRead.model_validate(service.update_site(site_id, payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_site_error(exc)
        raise


@router.delete(
    "/sites/{site_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_SITE_WRITE))],
)
def delete_site(site_id: str, service: Service) -> Response:
    try:
        service.delete_site(site_id)
    except (NotFoundError, ConflictError) as exc:
        _handle_site_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/sites/{site_id}/phases",
    response_model=PhaseRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_SITE_WRITE))],
)
def create_phase(site_id: str, payload: PhaseCreate, service: Service) -> PhaseRead:
    try:
        return PhaseRead.model_validate(service.create_phase(site_id, payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_site_error(exc)
        raise


@router.get(
    "/sites/{site_id}/phases",
    response_model=list[PhaseRead],
    dependencies=[Depends(require_perm(PERM_SITE_READ))],
)
def list_phases(site_id: str, service: Service) -> list[PhaseRead]:
    try:
        return [PhaseRead.model_validate(item) for item in service.list_phases(site_id)]
    except (NotFoundError, ConflictError) as exc:
        _handle_site_error(exc)
        raise


@router.patch(
    "/phases/{phase_id}",
    response_model=PhaseRead,
    dependencies=[Depends(require_perm(PERM_SITE_WRITE))],
)
def update_phase(phase_id: str, payload: PhaseUpdate, service: Service) -> PhaseRead:
    try:
        return PhaseRead.model_validate(service.update_phase(phase_id, payload))
    except (NotFoundError, ConflictError) as exc:
        _handle_site_error(exc)
        raise


@router.delete(
    "/phases/{phase_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_SITE_WRITE))],
)
def delete_phase(phase_id: str, service: Service) -> Response:
    try:
        service.delete_phase(phase_id)
    except (NotFoundError, ConflictError) as exc:
        _handle_site_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/sites/{site_id}/apply-template",
    response_model=TemplateApplyRead,
    dependencies=[Depends(require_perm(PERM_SITE_WRITE))],
)
def apply_template(site_id: str, request: Request, service: Service) -> TemplateApplyRead:
    try:
        result = service.apply_template(site_id)
    except (NotFoundError, ConflictError) as exc:
        _handle_site_error(exc)
        raise
    set_audit_context(
        request,
        action="site.apply_template",
        detail={"what": {"applied": result.applied, "phase_count": result.phase_count}},
    )
    return result


@router.get(
    "/sites/{site_id}/completion",
    response_model=ProjectCompletionRead,
    dependencies=[Depends(require_perm(PERM_SITE_READ))],
)
def get_completion(site_id: str, completion: Completion) -> ProjectCompletionRead:
    try:
        return completion.calculate(site_id)
    except CompletionNotFoundError as exc:
        _handle_site_error(exc)
        raise


@router.post(
    "/sites/{site_id}/completion/recalculate",
    response_model=ProjectCompletionRead,
    dependencies=[Depends(require_perm(PERM_SITE_WRITE))],
)
def recalculate_completion(site_id: str, completion: Completion) -> ProjectCompletionRead:
    try:
        return completion.update(site_id)
    except CompletionNotFoundError as exc:
        _handle_site_error(exc)
        raise
