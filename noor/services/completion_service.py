from __future__ import annotations

import logging

from sqlmodel import Session, col, select

from noor.domain.models import (
    CompletionBreakdown,
    CompletionStatus,
    CountPair,
    MaterialRequest,
    MaterialStatus,
    Milestone,
    MilestoneStatus,
    Phase,
    PhaseStatus,
    ProjectCompletionRead,
    Site,
    Task,
    TaskStatus,
    now_utc,
)
from noor.infra.db import get_engine

logger = logging.getLogger(__name__)

MATERIAL_DONE_STATUSES = {MaterialStatus.APPROVED, MaterialStatus.RECEIVED}


class CompletionError(Exception):
    pass


class NotFoundError(CompletionError):
    pass


def completion_from_breakdown(site_id: str, breakdown: CompletionBreakdown) -> ProjectCompletionRead:
    pairs = (breakdown.phases, breakdown.tasks, breakdown.milestones, breakdown.materials)
    total = sum(item.total for item in pairs)
    done = sum(item.completed for item in pairs)
    percentage = round(done / total * 100, 2) if total > 0 else 0.0
    status = CompletionStatus.COMPLETED if total > 0 and done == total else CompletionStatus.IN_PROGRESS
    return ProjectCompletionRead(
        site_id=site_id,
        status=status,
        percentage=percentage,
        breakdown=breakdown,
    )


class CompletionService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_site(self, session: Session, site_id: str) -> Site:
        site = session.get(Site, site_id)
        if site is None or site.deleted_at is not None:
            raise NotFoundError("site not found")
        return site

    def _breakdown(self, session: Session, site_id: str) -> CompletionBreakdown:
        phases = session.exec(select(Phase).where(Phase.site_id == site_id)).all()
        tasks = session.exec(
            select(Task).where(Task.site_id == site_id).where(col(Task.deleted_at).is_(None))
        ).all()
        milestones = session.exec(select(Milestone).where(Milestone.site_id == site_id)).all()
        materials = session.exec(select(MaterialRequest).where(MaterialRequest.site_id == site_id)).all()
        return CompletionBreakdown(
            phases=CountPair(
                total=len(phases),
                completed=sum(1 for item in phases if item.status == PhaseStatus.COMPLETED),
            ),
            tasks=CountPair(
                total=len(tasks),
                completed=sum(1 for item in tasks if item.status == TaskStatus.COMPLETED),
            ),
            milestones=CountPair(
                total=len(milestones),
                completed=sum(1 for item in milestones if item.status == MilestoneStatus.COMPLETED),
            ),
            materials=CountPair(
                total=len(materials),
                completed=sum(1 for item in materials if item.status in MATERIAL_DONE_STATUSES),
            ),
        )

    def calculate(self, site_id: str) -> ProjectCompletionRead:
        with self._session() as session:
            self._get_site(session, site_id)
            return completion_from_breakdown(site_id, self._breakdown(session, site_id))

    def update(self, site_id: str) -> ProjectCompletionRead:
        with self._session() as session:
            site = self._get_site(session, site_id)
            completion = completion_from_breakdown(site_id, self._breakdown(session, site_id))
            site.completion_status = completion.status
            site.completion_percentage = completion.percentage
            site.completed_at = now_utc() if completion.status == CompletionStatus.COMPLETED else None
            session.add(site)
            session.commit()

        logger.info(
            "updated project %s: %s (%s%%)",
            site_id,
            completion.status.value,
            completion.percentage,
        )
        return completion
