from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status

from noor.api.deps import get_current_claims, require_perm
from noor.domain.models import SiteFinancialsRead, TransactionCreate, TransactionKind, TransactionRead
from noor.domain.permissions import PERM_FINANCE_READ, PERM_FINANCE_WRITE
from noor.services.finance_service import FinanceService, NotFoundError

router = APIRouter()


def get_finance_service() -> FinanceService:
    return FinanceService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[FinanceService, Depends(get_finance_service)]


def _handle_finance_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    raise exc


@router.post(
    "/sites/{site_id}/transactions",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_FINANCE_WRITE))],
)
def create_transaction(
    site_id: str,
    payload: TransactionCreate,
    claims: Claims,
    service: Service,
) -> TransactionRead:
    try:
        transaction = service.create_transaction(site_id, payload, created_by=claims["sub"])
    except NotFoundError as exc:
        _handle_finance_error(exc)
        raise
    return TransactionRead.model_validate(transaction)


@router.get(
    "/sites/{site_id}/transactions",
    response_model=list[TransactionRead],
    dependencies=[Depends(require_perm(PERM_FINANCE_READ))],
)
def list_transactions(
    site_id: str,
    service: Service,
    kind: TransactionKind | None = None,
) -> list[TransactionRead]:
    try:
        rows = service.list_transactions(site_id, kind=kind)
    except NotFoundError as exc:
        _handle_finance_error(exc)
        raise
    return [TransactionRead.model_validate(item) for item in rows]


@router.get(
    "/sites/{site_id}/financials",
    response_model=SiteFinancialsRead,
    dependencies=[Depends(require_perm(PERM_FINANCE_READ))],
)
def get_site_financials(site_id: str, service: Service) -> SiteFinancialsRead:
    try:
        return service.site_financials(site_id)
    except NotFoundError as exc:
        _handle_finance_error(exc)
        raise
