from __future__ import annotations

import logging
from datetime import date

from noor.domain.models import EventEnvelope
from noor.infra.events import EventBus
from noor.services.activity_service import ActivityService
from noor.services.completion_service import CompletionService, NotFoundError

logger = logging.getLogger(__name__)

COMPLETION_EVENTS = (
    "task.created",
    "task.approved",
    "task.rejected",
    "task.deleted",
    "phase.created",
    "phase.deleted",
    "phase.status_changed",
    "template.applied",
    "milestone.updated",
    "material.status_changed",
)


def _event_day(event: EventEnvelope, key: str) -> date:
    raw = event.payload.get(key)
    if isinstance(raw, str):
        return date.fromisoformat(raw)
    return event.ts.date()


def on_task_assigned(event: EventEnvelope) -> None:
    activity = ActivityService()
    day = _event_day(event, "assigned_on")
    for employee_id in event.payload.get("employee_ids", []):
        activity.log_task_assigned(employee_id, day)


def on_task_approved(event: EventEnvelope) -> None:
    activity = ActivityService()
    day = _event_day(event, "completed_on")
    approved_by = event.payload.get("approved_by") or event.actor_id
    for employee_id in event.payload.get("employee_ids", []):
        activity.log_task_completed(employee_id, day)
        activity.lock_activity(employee_id, day, approved_by)


def on_completion_changed(event: EventEnvelope) -> None:
    site_id = event.payload.get("site_id")
    if not site_id:
        return
    try:
        CompletionService().update(site_id)
    except NotFoundError:
        logger.warning("completion skipped for %s: site not found", site_id)


def register_event_handlers(bus: EventBus) -> None:
    bus.subscribe("task.assigned", on_task_assigned)
    bus.subscribe("task.approved", on_task_approved)
    for event_type in COMPLETION_EVENTS:
        bus.subscribe(event_type, on_completion_changed)
