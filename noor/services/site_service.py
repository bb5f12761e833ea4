from __future__ import annotations

import logging

from sqlmodel import Session, col, select

from noor.domain.models import (
    MaterialRequest,
    Phase,
    PhaseCreate,
    PhaseStatus,
    PhaseUpdate,
    Site,
    SiteCreate,
    SiteTransaction,
    SiteUpdate,
    Task,
    TemplateApplyRead,
    now_utc,
)
from noor.domain.templates import CONSTRUCTION_TEMPLATE, matches_template
from noor.infra.db import get_engine
from noor.infra.events import event_bus

logger = logging.getLogger(__name__)


class SiteError(Exception):
    pass


class NotFoundError(SiteError):
    pass


class ConflictError(SiteError):
    pass


def _template_phases(site_id: str) -> list[Phase]:
    return [
        Phase(
            site_id=site_id,
            name=item.stage_name,
            order_num=item.serial_number,
            serial_number=item.serial_number,
            floor_number=item.floor_number,
            floor_name=item.floor_name,
            budget=0.0,
            status=PhaseStatus.PENDING,
            progress=0,
        )
        for item in CONSTRUCTION_TEMPLATE
    ]


class SiteService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_site(self, session: Session, site_id: str) -> Site:
        site = session.get(Site, site_id)
        if site is None or site.deleted_at is not None:
            raise NotFoundError("site not found")
        return site

    def _get_phase(self, session: Session, phase_id: str) -> Phase:
        phase = session.get(Phase, phase_id)
        if phase is None:
            raise NotFoundError("phase not found")
        return phase

    def _ordered_phases(self, session: Session, site_id: str) -> list[Phase]:
        return list(
            session.exec(
                select(Phase)
                .where(Phase.site_id == site_id)
                .order_by(col(Phase.serial_number), col(Phase.order_num), col(Phase.created_at))
            ).all()
        )

    def _detach_phases(self, session: Session, phase_ids: list[str]) -> None:
        if not phase_ids:
            return
        for model in (Task, MaterialRequest, SiteTransaction):
            rows = session.exec(select(model).where(col(model.phase_id).in_(phase_ids))).all()
            for row in rows:
                row.phase_id = None
                session.add(row)
        session.flush()

    def create_site(self, payload: SiteCreate, created_by: str | None) -> Site:
        with self._session() as session:
            site = Site(
                name=payload.name,
                location=payload.location,
                description=payload.description,
                budget=payload.budget,
                start_date=payload.start_date,
                end_date=payload.end_date,
                status=payload.status,
                created_by=created_by,
            )
            session.add(site)
            session.commit()
            session.refresh(site)
            if payload.use_template:
                for phase in _template_phases(site.id):
                    session.add(phase)
                session.commit()
                logger.info("site %s created with %d template phases", site.id, len(CONSTRUCTION_TEMPLATE))
        return site

    def list_sites(self) -> list[Site]:
        with self._session() as session:
            return list(
                session.exec(
                    select(Site).where(col(Site.deleted_at).is_(None)).order_by(col(Site.created_at).desc())
                ).all()
            )

    def get_site(self, site_id: str) -> Site:
        with self._session() as session:
            return self._get_site(session, site_id)

    def update_site(self, site_id: str, payload: SiteUpdate) -> Site:
        with self._session() as session:
            site = self._get_site(session, site_id)
            for key, value in payload.model_dump(exclude_unset=True).items():
                setattr(site, key, value)
            session.add(site)
            session.commit()
            session.refresh(site)
            return site

    def delete_site(self, site_id: str) -> None:
        with self._session() as session:
            site = self._get_site(session, site_id)
            site.deleted_at = now_utc()
            session.add(site)
            session.commit()
        logger.info("site soft-deleted: %s", site_id)

    def create_phase(self, site_id: str, payload: PhaseCreate) -> Phase:
        with self._session() as session:
            self._get_site(session, site_id)
            existing = self._ordered_phases(session, site_id)
            next_serial = max((item.serial_number for item in existing), default=0) + 1
            serial_number = payload.serial_number if payload.serial_number is not None else next_serial
            phase = Phase(
                site_id=site_id,
                name=payload.name,
                order_num=payload.order_num if payload.order_num is not None else serial_number,
                serial_number=serial_number,
                floor_number=payload.floor_number,
                floor_name=payload.floor_name,
                budget=payload.budget,
                start_date=payload.start_date,
                end_date=payload.end_date,
            )
            session.add(phase)
            session.commit()
            session.refresh(phase)

        event_bus.publish_dict("phase.created", {"site_id": site_id, "phase_id": phase.id})
        return phase

    def list_phases(self, site_id: str) -> list[Phase]:
        with self._session() as session:
            self._get_site(session, site_id)
            return self._ordered_phases(session, site_id)

    def update_phase(self, phase_id: str, payload: PhaseUpdate) -> Phase:
        with self._session() as session:
            phase = self._get_phase(session, phase_id)
            previous_status = phase.status
            for key, value in payload.model_dump(exclude_unset=True).items():
                setattr(phase, key, value)
            if phase.status == PhaseStatus.COMPLETED:
                phase.progress = 100
            session.add(phase)
            session.commit()
            session.refresh(phase)

        if phase.status != previous_status:
            event_bus.publish_dict(
                "phase.status_changed",
                {
                    "site_id": phase.site_id,
                    "phase_id": phase.id,
                    "from": previous_status.value,
                    "to": phase.status.value,
                },
            )
        return phase

    def delete_phase(self, phase_id: str) -> None:
        with self._session() as session:
            phase = self._get_phase(session, phase_id)
            site_id = phase.site_id
            self._detach_phases(session, [phase.id])
            session.delete(phase)
            session.commit()

        event_bus.publish_dict("phase.deleted", {"site_id": site_id, "phase_id": phase_id})

    def apply_template(self, site_id: str) -> TemplateApplyRead:
        with self._session() as session:
            self._get_site(session, site_id)
            current = self._ordered_phases(session, site_id)
            if matches_template([item.name for item in current]):
                logger.info("site %s already follows the construction template", site_id)
                return TemplateApplyRead(site_id=site_id, applied=False, phase_count=len(current))

            self._detach_phases(session, [item.id for item in current])
            for phase in current:
                session.delete(phase)
            session.flush()
            for phase in _template_phases(site_id):
                session.add(phase)
            session.commit()

        logger.info("site %s phases reset to the construction template", site_id)
        event_bus.publish_dict("template.applied", {"site_id": site_id})
        return TemplateApplyRead(site_id=site_id, applied=True, phase_count=len(CONSTRUCTION_TEMPLATE))

    def standardize_all(self) -> list[TemplateApplyRead]:
        results = [self.apply_template(site.id) for site in self.list_sites()]
        logger.info(
            "standardization complete: %d of %d sites changed",
            sum(1 for item in results if item.applied),
            len(results),
        )
        return results
