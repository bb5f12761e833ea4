from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from noor.api.deps import require_perm
from noor.domain.models import (
    FilePreviewRead,
    FilesByDateRead,
    FileSearchRead,
    FilesCalendarRead,
    FileStatsRead,
    MessageResponse,
    MessageType,
)
from noor.domain.permissions import PERM_FILE_DELETE, PERM_FILE_READ
from noor.services.file_service import FileService, NotFoundError, ValidationError

router = APIRouter()


def get_file_service() -> FileService:
    return FileService()


Service = Annotated[FileService, Depends(get_file_service)]


def _handle_file_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    raise exc


@router.get(
    "/calendar",
    response_model=FilesCalendarRead,
    dependencies=[Depends(require_perm(PERM_FILE_READ))],
)
def files_calendar(service: Service, month: str | None = None, site_id: str | None = None) -> FilesCalendarRead:
    try:
        return service.calendar(month, site_id=site_id)
    except (NotFoundError, ValidationError) as exc:
        _handle_file_error(exc)
        raise


@router.get(
    "/by-date",
    response_model=FilesByDateRead,
    dependencies=[Depends(require_perm(PERM_FILE_READ))],
)
def files_by_date(
    service: Service,
    day: Annotated[str | None, Query(alias="date")] = None,
    site_id: str | None = None,
) -> FilesByDateRead:
    try:
        return service.by_date(day, site_id=site_id)
    except (NotFoundError, ValidationError) as exc:
        _handle_file_error(exc)
        raise


@router.get(
    "/search",
    response_model=FileSearchRead,
    dependencies=[Depends(require_perm(PERM_FILE_READ))],
)
def search_files(
    service: Service,
    query: str | None = None,
    file_type: Annotated[MessageType | None, Query(alias="type")] = None,
    start_date: date | None = None,
    end_date: date | None = None,
    site_id: str | None = None,
) -> FileSearchRead:
    rows = service.search(
        query=query,
        file_type=file_type,
        start_date=start_date,
        end_date=end_date,
        site_id=site_id,
    )
    return FileSearchRead(count=len(rows), files=rows)


@router.get(
    "/stats",
    response_model=FileStatsRead,
    dependencies=[Depends(require_perm(PERM_FILE_READ))],
)
def file_stats(
    service: Service,
    site_id: str | None = None,
    year: int | None = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
) -> FileStatsRead:
    try:
        return service.stats(site_id=site_id, year=year, month=month)
    except (NotFoundError, ValidationError) as exc:
        _handle_file_error(exc)
        raise


@router.get(
    "/preview/{file_id}",
    response_model=FilePreviewRead,
    dependencies=[Depends(require_perm(PERM_FILE_READ))],
)
def preview_file(file_id: str, service: Service) -> FilePreviewRead:
    try:
        return FilePreviewRead(file=service.preview(file_id))
    except (NotFoundError, ValidationError) as exc:
        _handle_file_error(exc)
        raise


@router.delete(
    "/{file_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_perm(PERM_FILE_DELETE))],
)
def delete_file(file_id: str, service: Service) -> MessageResponse:
    try:
        service.delete(file_id)
    except (NotFoundError, ValidationError) as exc:
        _handle_file_error(exc)
        raise
    return MessageResponse(message="File deleted successfully")
