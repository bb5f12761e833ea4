from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from noor.api.deps import get_current_claims, require_perm
from noor.domain.models import (
    MaterialRequestCreate,
    MaterialRequestRead,
    MaterialStatus,
    MaterialStatusRequest,
    MilestoneCreate,
    MilestoneRead,
    MilestoneUpdate,
)
from noor.domain.permissions import (
    PERM_MATERIAL_APPROVE,
    PERM_MATERIAL_READ,
    PERM_MATERIAL_WRITE,
    PERM_MILESTONE_WRITE,
    PERM_SITE_READ,
)
from noor.services.milestone_service import ConflictError, MilestoneService, NotFoundError

router = APIRouter()


def get_milestone_service() -> MilestoneService:
    return MilestoneService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[MilestoneService, Depends(get_milestone_service)]


def _handle_milestone_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.post(
    "/sites/{site_id}/milestones",
    response_model=MilestoneRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_MILESTONE_WRITE))],
)
def create_milestone(site_id: str, payload: MilestoneCreate, service: Service) -> MilestoneRead:
    try:
        return service.create_milestone(site_id, payload)
    except (NotFoundError, ConflictError) as exc:
        _handle_milestone_error(exc)
        raise


@router.get(
    "/sites/{site_id}/milestones",
    response_model=list[MilestoneRead],
    dependencies=[Depends(require_perm(PERM_SITE_READ))],
)
def list_milestones(site_id: str, service: Service) -> list[MilestoneRead]:
    try:
        return service.list_milestones(site_id)
    except (NotFoundError, ConflictError) as exc:
        _handle_milestone_error(exc)
        raise


@router.get(
    "/milestones/{milestone_id}",
    response_model=MilestoneRead,
    dependencies=[Depends(require_perm(PERM_SITE_READ))],
)
def get_milestone(milestone_id: str, service: Service) -> MilestoneRead:
    try:
        return service.get_milestone(milestone_id)
    except (NotFoundError, ConflictError) as exc:
        _handle_milestone_error(exc)
        raise


@router.patch(
    "/milestones/{milestone_id}",
    response_model=MilestoneRead,
    dependencies=[Depends(require_perm(PERM_MILESTONE_WRITE))],
)
def update_milestone(milestone_id: str, payload: MilestoneUpdate, service: Service) -> MilestoneRead:
    try:
        return service.update_milestone(milestone_id, payload)
    except (NotFoundError, ConflictError) as exc:
        _handle_milestone_error(exc)
        raise


@router.delete(
    "/milestones/{milestone_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_MILESTONE_WRITE))],
)
def delete_milestone(milestone_id: str, service: Service) -> Response:
    try:
        service.delete_milestone(milestone_id)
    except (NotFoundError, ConflictError) as exc:
        _handle_milestone_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/sites/{site_id}/material-requests",
    response_model=MaterialRequestRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_MATERIAL_WRITE))],
)
def create_material_request(
    site_id: str,
    payload: MaterialRequestCreate,
    claims: Claims,
    service: Service,
) -> MaterialRequestRead:
    try:
        material = service.create_material_request(site_id, payload, requested_by=claims["sub"])
    except (NotFoundError, ConflictError) as exc:
        _handle_milestone_error(exc)
        raise
    return MaterialRequestRead.model_validate(material)


@router.get(
    "/sites/{site_id}/material-requests",
    response_model=list[MaterialRequestRead],
    dependencies=[Depends(require_perm(PERM_MATERIAL_READ))],
)
def list_material_requests(
    site_id: str,
    service: Service,
    material_status: Annotated[MaterialStatus | None, Query(alias="status")] = None,
) -> list[MaterialRequestRead]:
    try:
        rows = service.list_material_requests(site_id, status=material_status)
    except (NotFoundError, ConflictError) as exc:
        _handle_milestone_error(exc)
        raise
    return [MaterialRequestRead.model_validate(item) for item in rows]


@router.post(
    "/material-requests/{request_id}/status",
    response_model=MaterialRequestRead,
    dependencies=[Depends(require_perm(PERM_MATERIAL_APPROVE))],
)
def update_material_status(
    request_id: str,
    payload: MaterialStatusRequest,
    claims: Claims,
    service: Service,
) -> MaterialRequestRead:
    try:
        material = service.update_material_status(request_id, payload, decided_by=claims["sub"])
    except (NotFoundError, ConflictError) as exc:
        _handle_milestone_error(exc)
        raise
    return MaterialRequestRead.model_validate(material)
