from __future__ import annotations

from collections.abc import Iterable

from sqlmodel import Session, col, select

from noor.domain.models import (
    Phase,
    Site,
    SiteFinancialsRead,
    SiteTransaction,
    TransactionCreate,
    TransactionKind,
    now_utc,
)
from noor.infra.db import get_engine


class FinanceError(Exception):
    pass


class NotFoundError(FinanceError):
    pass


def utilization(spent: float, allocated: float) -> float:
    return round(spent / allocated * 100, 1) if allocated > 0 else 0.0


def sum_kind(transactions: Iterable[SiteTransaction], kind: TransactionKind) -> float:
    return float(sum(item.amount for item in transactions if item.kind == kind))


class FinanceService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_site(self, session: Session, site_id: str) -> Site:
        site = session.get(Site, site_id)
        if site is None or site.deleted_at is not None:
            raise NotFoundError("site not found")
        return site

    def create_transaction(
        self,
        site_id: str,
        payload: TransactionCreate,
        created_by: str | None,
    ) -> SiteTransaction:
        with self._session() as session:
            self._get_site(session, site_id)
            if payload.phase_id is not None:
                phase = session.get(Phase, payload.phase_id)
                if phase is None or phase.site_id != site_id:
                    raise NotFoundError("phase not found")
            transaction = SiteTransaction(
                site_id=site_id,
                phase_id=payload.phase_id,
                kind=payload.kind,
                amount=payload.amount,
                description=payload.description,
                transaction_date=payload.transaction_date or now_utc().date(),
                created_by=created_by,
            )
            session.add(transaction)
            session.commit()
            session.refresh(transaction)
            return transaction

    def list_transactions(self, site_id: str, kind: TransactionKind | None = None) -> list[SiteTransaction]:
        with self._session() as session:
            self._get_site(session, site_id)
            statement = select(SiteTransaction).where(SiteTransaction.site_id == site_id)
            if kind is not None:
                statement = statement.where(SiteTransaction.kind == kind)
            return list(
                session.exec(
                    statement.order_by(
                        col(SiteTransaction.transaction_date).desc(),
                        col(SiteTransaction.created_at).desc(),
                    )
                ).all()
            )

    def site_financials(self, site_id: str) -> SiteFinancialsRead:
        with self._session() as session:
            site = self._get_site(session, site_id)
            transactions = session.exec(select(SiteTransaction).where(SiteTransaction.site_id == site_id)).all()
        received = sum_kind(transactions, TransactionKind.INCOME)
        spent = sum_kind(transactions, TransactionKind.EXPENSE)
        return SiteFinancialsRead(
            site_id=site_id,
            budget=site.budget,
            received=received,
            spent=spent,
            balance=received - spent,
            utilization_percentage=utilization(spent, site.budget),
        )
