from __future__ import annotations

from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from noor.api.deps import get_current_claims, require_perm
from noor.domain.models import (
    ActivityLockRead,
    ActivityLockRequest,
    ActivityRead,
    ActivityToggleRequest,
    EmployeeRead,
    ProductivityTrendRead,
    WeeklyActivityRead,
    WorkerActivityRead,
    WorkerDetailsRead,
)
from noor.domain.permissions import PERM_ACTIVITY_READ, PERM_ACTIVITY_WRITE
from noor.services.activity_service import ActivityService, ForbiddenError, NotFoundError

router = APIRouter()


def get_activity_service() -> ActivityService:
    return ActivityService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[ActivityService, Depends(get_activity_service)]


def _handle_activity_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": str(exc), **exc.flags},
        ) from exc
    raise exc


def _month_start(today: date) -> date:
    return today.replace(day=1)


@router.get(
    "/{worker_id}/activity",
    response_model=WorkerActivityRead,
    dependencies=[Depends(require_perm(PERM_ACTIVITY_READ))],
)
def get_worker_activity(
    worker_id: str,
    service: Service,
    start_date: date | None = None,
    end_date: date | None = None,
) -> WorkerActivityRead:
    today = date.today()
    start = start_date or _month_start(today)
    end = end_date or today
    return WorkerActivityRead(
        worker_id=worker_id,
        start_date=start,
        end_date=end,
        activity_data=service.get_activity(worker_id, start, end),
    )


@router.get(
    "/{worker_id}/productivity",
    response_model=ProductivityTrendRead,
    dependencies=[Depends(require_perm(PERM_ACTIVITY_READ))],
)
def get_productivity_trend(
    worker_id: str,
    service: Service,
    start_date: date | None = None,
    end_date: date | None = None,
) -> ProductivityTrendRead:
    today = date.today()
    trend = service.productivity_trend(worker_id, start_date or _month_start(today), end_date or today)
    return ProductivityTrendRead(worker_id=worker_id, trend=trend)


@router.get(
    "/{worker_id}/details",
    response_model=WorkerDetailsRead,
    dependencies=[Depends(require_perm(PERM_ACTIVITY_READ))],
)
def get_worker_details(
    worker_id: str,
    service: Service,
    year: Annotated[int | None, Query(ge=1970, le=9999)] = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
) -> WorkerDetailsRead:
    today = date.today()
    try:
        worker, stats = service.worker_details(worker_id, year or today.year, month or today.month)
    except (NotFoundError, ForbiddenError) as exc:
        _handle_activity_error(exc)
        raise
    return WorkerDetailsRead(worker=EmployeeRead.model_validate(worker), monthly_stats=stats)


@router.get(
    "/{worker_id}/activity/weekly",
    response_model=WeeklyActivityRead,
    dependencies=[Depends(require_perm(PERM_ACTIVITY_READ))],
)
def get_weekly_activity(
    worker_id: str,
    service: Service,
    start_date: date | None = None,
) -> WeeklyActivityRead:
    start = start_date or _month_start(date.today())
    return WeeklyActivityRead(worker_id=worker_id, start_date=start, weeks=service.weekly_activity(worker_id, start))


@router.post(
    "/{worker_id}/activity/toggle",
    response_model=ActivityRead,
    dependencies=[Depends(require_perm(PERM_ACTIVITY_WRITE))],
)
def toggle_activity(worker_id: str, payload: ActivityToggleRequest, service: Service) -> ActivityRead:
    try:
        return ActivityRead.model_validate(service.toggle_activity(worker_id, payload))
    except (NotFoundError, ForbiddenError) as exc:
        _handle_activity_error(exc)
        raise


@router.post(
    "/{worker_id}/activity/lock",
    response_model=ActivityLockRead,
    dependencies=[Depends(require_perm(PERM_ACTIVITY_WRITE))],
)
def lock_activity(
    worker_id: str,
    claims: Claims,
    service: Service,
    payload: ActivityLockRequest | None = None,
) -> ActivityLockRead:
    day = (payload.activity_date if payload is not None else None) or date.today()
    locked = service.lock_activity(worker_id, day, claims["sub"])
    return ActivityLockRead(worker_id=worker_id, activity_date=day, locked=locked)
