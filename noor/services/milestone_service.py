from __future__ import annotations

from datetime import date
from typing import ClassVar

from sqlmodel import Session, col, select

from noor.domain.models import (
    MaterialRequest,
    MaterialRequestCreate,
    MaterialStatus,
    MaterialStatusRequest,
    Milestone,
    MilestoneCreate,
    MilestoneRead,
    MilestoneStatus,
    MilestoneUpdate,
    Phase,
    Site,
    now_utc,
)
from noor.infra.db import get_engine
from noor.infra.events import event_bus


class MilestoneError(Exception):
    pass


class NotFoundError(MilestoneError):
    pass


class ConflictError(MilestoneError):
    pass


def delay_days(milestone: Milestone, today: date | None = None) -> int:
    if milestone.planned_end_date is None:
        return 0
    reference = milestone.actual_completion_date or today or date.today()
    return max(0, (reference - milestone.planned_end_date).days)


def effective_status(milestone: Milestone, today: date | None = None) -> MilestoneStatus:
    if milestone.status == MilestoneStatus.COMPLETED:
        return MilestoneStatus.COMPLETED
    current = today or date.today()
    if milestone.planned_end_date is not None and milestone.planned_end_date < current:
        return MilestoneStatus.DELAYED
    return milestone.status


def to_milestone_read(
    milestone: Milestone,
    project_name: str | None = None,
    today: date | None = None,
) -> MilestoneRead:
    return MilestoneRead(
        id=milestone.id,
        site_id=milestone.site_id,
        project_name=project_name,
        name=milestone.name,
        floor=milestone.floor,
        stage=milestone.stage,
        status=effective_status(milestone, today),
        progress=milestone.progress,
        start_date=milestone.start_date,
        planned_end_date=milestone.planned_end_date,
        actual_completion_date=milestone.actual_completion_date,
        delay_days=delay_days(milestone, today),
        delay_reason=milestone.delay_reason,
    )


class MilestoneService:
    _material_transitions: ClassVar[dict[MaterialStatus, set[MaterialStatus]]] = {
        MaterialStatus.PENDING: {MaterialStatus.APPROVED, MaterialStatus.REJECTED},
        MaterialStatus.APPROVED: {MaterialStatus.RECEIVED, MaterialStatus.REJECTED},
        MaterialStatus.REJECTED: {MaterialStatus.PENDING},
        MaterialStatus.RECEIVED: set(),
    }

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_site(self, session: Session, site_id: str) -> Site:
        site = session.get(Site, site_id)
        if site is None or site.deleted_at is not None:
            raise NotFoundError("site not found")
        return site

    def _get_milestone(self, session: Session, milestone_id: str) -> Milestone:
        milestone = session.get(Milestone, milestone_id)
        if milestone is None:
            raise NotFoundError("milestone not found")
        return milestone

    def _get_material(self, session: Session, request_id: str) -> MaterialRequest:
        material = session.get(MaterialRequest, request_id)
        if material is None:
            raise NotFoundError("material request not found")
        return material

    def create_milestone(self, site_id: str, payload: MilestoneCreate) -> MilestoneRead:
        with self._session() as session:
            site = self._get_site(session, site_id)
            milestone = Milestone(site_id=site_id, **payload.model_dump())
            session.add(milestone)
            session.commit()
            session.refresh(milestone)

        event_bus.publish_dict(
            "milestone.updated",
            {"site_id": site_id, "milestone_id": milestone.id, "status": milestone.status.value},
        )
        return to_milestone_read(milestone, site.name)

    def list_milestones(self, site_id: str) -> list[MilestoneRead]:
        with self._session() as session:
            site = self._get_site(session, site_id)
            rows = session.exec(
                select(Milestone)
                .where(Milestone.site_id == site_id)
                .order_by(col(Milestone.planned_end_date), col(Milestone.created_at))
            ).all()
        return [to_milestone_read(item, site.name) for item in rows]

    def get_milestone(self, milestone_id: str) -> MilestoneRead:
        with self._session() as session:
            milestone = self._get_milestone(session, milestone_id)
            site = session.get(Site, milestone.site_id)
        return to_milestone_read(milestone, site.name if site is not None else None)

    def update_milestone(self, milestone_id: str, payload: MilestoneUpdate) -> MilestoneRead:
        with self._session() as session:
            milestone = self._get_milestone(session, milestone_id)
            previous_status = milestone.status
            updates = payload.model_dump(exclude_unset=True)
            for key, value in updates.items():
                setattr(milestone, key, value)
            if milestone.status == MilestoneStatus.COMPLETED:
                milestone.progress = 100
                if milestone.actual_completion_date is None:
                    milestone.actual_completion_date = date.today()
            elif previous_status == MilestoneStatus.COMPLETED and "actual_completion_date" not in updates:
                # reopened
                milestone.actual_completion_date = None
            session.add(milestone)
            session.commit()
            session.refresh(milestone)
            site = session.get(Site, milestone.site_id)

        event_bus.publish_dict(
            "milestone.updated",
            {"site_id": milestone.site_id, "milestone_id": milestone.id, "status": milestone.status.value},
        )
        return to_milestone_read(milestone, site.name if site is not None else None)

    def delete_milestone(self, milestone_id: str) -> None:
        with self._session() as session:
            milestone = self._get_milestone(session, milestone_id)
            site_id = milestone.site_id
            session.delete(milestone)
            session.commit()

        event_bus.publish_dict("milestone.updated", {"site_id": site_id, "milestone_id": milestone_id, "status": None})

    def create_material_request(
        self,
        site_id: str,
        payload: MaterialRequestCreate,
        requested_by: str | None,
    ) -> MaterialRequest:
        with self._session() as session:
            self._get_site(session, site_id)
            if payload.phase_id is not None:
                phase = session.get(Phase, payload.phase_id)
                if phase is None or phase.site_id != site_id:
                    raise NotFoundError("phase not found")
            material = MaterialRequest(site_id=site_id, requested_by=requested_by, **payload.model_dump())
            session.add(material)
            session.commit()
            session.refresh(material)

        event_bus.publish_dict(
            "material.status_changed",
            {"site_id": site_id, "request_id": material.id, "status": material.status.value},
        )
        return material

    def list_material_requests(self, site_id: str, status: MaterialStatus | None = None) -> list[MaterialRequest]:
        with self._session() as session:
            self._get_site(session, site_id)
            statement = select(MaterialRequest).where(MaterialRequest.site_id == site_id)
            if status is not None:
                statement = statement.where(MaterialRequest.status == status)
            return list(session.exec(statement.order_by(col(MaterialRequest.created_at).desc())).all())

    def update_material_status(
        self,
        request_id: str,
        payload: MaterialStatusRequest,
        decided_by: str | None,
    ) -> MaterialRequest:
        with self._session() as session:
            material = self._get_material(session, request_id)
            if material.status == payload.status:
                return material
            allowed = self._material_transitions.get(material.status, set())
            if payload.status not in allowed:
                raise ConflictError(f"illegal transition: {material.status} -> {payload.status}")
            material.status = payload.status
            material.decided_by = decided_by
            if payload.note is not None:
                material.note = payload.note
            material.updated_at = now_utc()
            session.add(material)
            session.commit()
            session.refresh(material)

        event_bus.publish_dict(
            "material.status_changed",
            {"site_id": material.site_id, "request_id": material.id, "status": material.status.value},
            actor_id=decided_by,
        )
        return material
