from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from noor.api.deps import require_perm
from noor.domain.models import OverallReportRead
from noor.domain.permissions import PERM_REPORT_READ
from noor.services.report_service import ReportService, ValidationError, parse_project_ids

router = APIRouter()


def get_report_service() -> ReportService:
    return ReportService()


Service = Annotated[ReportService, Depends(get_report_service)]


@router.get(
    "/overall-report",
    response_model=OverallReportRead,
    dependencies=[Depends(require_perm(PERM_REPORT_READ))],
)
def overall_report(
    service: Service,
    from_date: date | None = None,
    to_date: date | None = None,
    project_ids: Annotated[str | None, Query(description="comma separated site ids")] = None,
) -> OverallReportRead:
    try:
        return service.overall_report(
            from_date=from_date,
            to_date=to_date,
            project_ids=parse_project_ids(project_ids) or None,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
