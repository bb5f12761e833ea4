from __future__ import annotations

from dataclasses import dataclass

STANDARD_PHASES: tuple[str, ...] = (
    "Site Preparation",
    "Foundation Work",
    "Column Construction",
    "Beam Construction",
    "Slab Work",
    "Brick Work",
    "Electrical Conduiting",
    "Plumbing Work",
    "Plastering",
    "Flooring",
    "Door & Window Fixing",
    "Painting",
    "Finishing Works",
    "Final Inspection",
)

BASEMENT_PHASES: tuple[str, ...] = (
    "Site Preparation",
    "Excavation",
    "Footing Construction",
    "Foundation Work",
    "Column Construction",
    "Beam Construction",
    "Slab Work",
    "Brick Work",
    "Electrical Conduiting",
    "Plumbing Work",
    "Plastering",
    "Flooring",
    "Waterproofing",
    "Final Inspection",
)


@dataclass(frozen=True)
class PhaseTemplate:
    serial_number: int
    floor_number: int
    floor_name: str
    stage_name: str


def generate_floor_phases(
    floor_name: str,
    floor_number: int,
    start_serial: int,
    phases: tuple[str, ...] = STANDARD_PHASES,
) -> list[PhaseTemplate]:
    return [
        PhaseTemplate(
            serial_number=start_serial + index,
            floor_number=floor_number,
            floor_name=floor_name,
            stage_name=name,
        )
        for index, name in enumerate(phases)
    ]


CONSTRUCTION_TEMPLATE: tuple[PhaseTemplate, ...] = (
    *generate_floor_phases("Basement", -1, 1, BASEMENT_PHASES),
    *generate_floor_phases("Ground Floor", 0, 15, STANDARD_PHASES),
    *generate_floor_phases("First Floor", 1, 29, STANDARD_PHASES),
)


def _normalize(name: str) -> str:
    return name.strip().lower()


def matches_template(phase_names: list[str]) -> bool:
    """Return True when ``phase_names`` (in serial order) already equal the template."""
    if len(phase_names) != len(CONSTRUCTION_TEMPLATE):
        return False
    return all(
        _normalize(name) == _normalize(item.stage_name)
        for name, item in zip(phase_names, CONSTRUCTION_TEMPLATE, strict=True)
    )
