from __future__ import annotations

from datetime import date

import pytest

from noor.domain.models import (
    CompletionBreakdown,
    CompletionStatus,
    CountPair,
    Milestone,
    MilestoneStatus,
)
from noor.domain.permissions import has_permission, permissions_for_role
from noor.domain.state_machine import TaskStatus, can_task_transition
from noor.domain.templates import CONSTRUCTION_TEMPLATE, generate_floor_phases, matches_template
from noor.services.completion_service import completion_from_breakdown
from noor.services.finance_service import utilization
from noor.services.milestone_service import delay_days, effective_status


@pytest.mark.parametrize(
    ("source", "target", "allowed"),
    [
        (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, True),
        (TaskStatus.PENDING, TaskStatus.WAITING_APPROVAL, True),
        (TaskStatus.PENDING, TaskStatus.COMPLETED, False),
        (TaskStatus.WAITING_APPROVAL, TaskStatus.COMPLETED, True),
        (TaskStatus.WAITING_APPROVAL, TaskStatus.REJECTED, True),
        (TaskStatus.REJECTED, TaskStatus.WAITING_APPROVAL, True),
        (TaskStatus.COMPLETED, TaskStatus.REJECTED, False),
    ],
)
def test_task_transitions(source: TaskStatus, target: TaskStatus, allowed: bool) -> None:
    assert can_task_transition(source, target) is allowed


def test_role_permissions() -> None:
    admin = {"permissions": permissions_for_role("admin")}
    employee = {"permissions": permissions_for_role("employee")}
    assert has_permission(admin, "report.read")
    assert has_permission(employee, "task.submit")
    assert not has_permission(employee, "task.approve")
    assert not has_permission({"permissions": "*"}, "task.read")
    assert permissions_for_role("visitor") == []


def test_construction_template_layout() -> None:
    assert len(CONSTRUCTION_TEMPLATE) == 42
    assert [item.serial_number for item in CONSTRUCTION_TEMPLATE] == list(range(1, 43))
    assert {item.floor_name for item in CONSTRUCTION_TEMPLATE[:14]} == {"Basement"}
    assert CONSTRUCTION_TEMPLATE[1].stage_name == "Excavation"
    assert CONSTRUCTION_TEMPLATE[28].floor_name == "First Floor"
    assert CONSTRUCTION_TEMPLATE[28].floor_number == 1

    floor = generate_floor_phases("Second Floor", 2, 43)
    assert floor[0].serial_number == 43
    assert floor[-1].stage_name == "Final Inspection"


def test_matches_template_normalizes_names() -> None:
    names = [f"  {item.stage_name.upper()} " for item in CONSTRUCTION_TEMPLATE]
    assert matches_template(names)
    assert not matches_template(names[:-1])
    assert not matches_template(list(reversed(names)))


def test_completion_from_breakdown() -> None:
    empty = completion_from_breakdown(
        "site-1",
        CompletionBreakdown(phases=CountPair(), tasks=CountPair(), milestones=CountPair(), materials=CountPair()),
    )
    assert empty.percentage == 0.0
    assert empty.status == CompletionStatus.IN_PROGRESS

    partial = completion_from_breakdown(
        "site-1",
        CompletionBreakdown(
            phases=CountPair(total=2, completed=1),
            tasks=CountPair(total=1, completed=0),
            milestones=CountPair(),
            materials=CountPair(),
        ),
    )
    assert partial.percentage == 33.33

    done = completion_from_breakdown(
        "site-1",
        CompletionBreakdown(
            phases=CountPair(total=1, completed=1),
            tasks=CountPair(total=3, completed=3),
            milestones=CountPair(),
            materials=CountPair(total=1, completed=1),
        ),
    )
    assert done.percentage == 100.0
    assert done.status == CompletionStatus.COMPLETED


def test_milestone_delay() -> None:
    today = date(2026, 4, 10)
    late = Milestone(site_id="s", name="Roof", planned_end_date=date(2026, 4, 1), status=MilestoneStatus.IN_PROGRESS)
    assert delay_days(late, today) == 9
    assert effective_status(late, today) == MilestoneStatus.DELAYED

    finished = Milestone(
        site_id="s",
        name="Roof",
        planned_end_date=date(2026, 4, 1),
        actual_completion_date=date(2026, 4, 3),
        status=MilestoneStatus.COMPLETED,
    )
    assert delay_days(finished, today) == 2
    assert effective_status(finished, today) == MilestoneStatus.COMPLETED

    unplanned = Milestone(site_id="s", name="Gate")
    assert delay_days(unplanned, today) == 0
    assert effective_status(unplanned, today) == MilestoneStatus.PENDING


def test_utilization() -> None:
    assert utilization(50, 200) == 25.0
    assert utilization(10, 0) == 0.0
