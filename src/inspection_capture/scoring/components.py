"""Catalogue of inspected facility components and rating values."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Dict, Mapping


class ComponentCategory(str, Enum):
    AROMA = "aroma"
    VISUAL = "visual"
    AVAILABILITY = "availability"
    FUNCTIONAL = "functional"


class InspectionComponent(str, Enum):
    AROMA = "aroma"
    FLOOR_CLEANLINESS = "floor_cleanliness"
    WALL_CONDITION = "wall_condition"
    SINK_CONDITION = "sink_condition"
    MIRROR_CONDITION = "mirror_condition"
    TOILET_CONDITION = "toilet_condition"
    URINAL_CONDITION = "urinal_condition"
    SOAP_AVAILABILITY = "soap_availability"
    TISSUE_AVAILABILITY = "tissue_availability"
    AIR_FRESHENER = "air_freshener"
    TRASH_BIN_CONDITION = "trash_bin_condition"


class RatingChoice(IntEnum):
    """Named ordinals used by the inspection form (1-5 scale)."""

    BAD = 1
    OTHER = 2
    NORMAL = 3
    GOOD = 5


MIN_CHOICE = 1
MAX_CHOICE = 5


@dataclass(frozen=True, slots=True)
class ComponentSpec:
    component: InspectionComponent
    label: str
    weight: float
    required: bool = True
    allow_photo: bool = False

    @property
    def category(self) -> ComponentCategory:
        return category_of(self.component)


def category_of(component: InspectionComponent) -> ComponentCategory:
    """Return the category *component* belongs to."""
    match component:
        case InspectionComponent.AROMA:
            return ComponentCategory.AROMA
        case (
            InspectionComponent.FLOOR_CLEANLINESS
            | InspectionComponent.WALL_CONDITION
            | InspectionComponent.MIRROR_CONDITION
            | InspectionComponent.TOILET_CONDITION
            | InspectionComponent.TRASH_BIN_CONDITION
        ):
            return ComponentCategory.VISUAL
        case InspectionComponent.SINK_CONDITION | InspectionComponent.URINAL_CONDITION:
            return ComponentCategory.FUNCTIONAL
        case (
            InspectionComponent.SOAP_AVAILABILITY
            | InspectionComponent.TISSUE_AVAILABILITY
            | InspectionComponent.AIR_FRESHENER
        ):
            return ComponentCategory.AVAILABILITY


COMPONENTS: tuple[ComponentSpec, ...] = (
    ComponentSpec(InspectionComponent.AROMA, "Aroma/Odor Level", 0.15),
    ComponentSpec(InspectionComponent.FLOOR_CLEANLINESS, "Floor Cleanliness", 0.12, allow_photo=True),
    ComponentSpec(InspectionComponent.WALL_CONDITION, "Wall & Tile Condition", 0.08, allow_photo=True),
    ComponentSpec(InspectionComponent.MIRROR_CONDITION, "Mirror Cleanliness", 0.06),
    ComponentSpec(InspectionComponent.TOILET_CONDITION, "Toilet Bowl Condition", 0.15, allow_photo=True),
    ComponentSpec(InspectionComponent.TRASH_BIN_CONDITION, "Trash Bin Condition", 0.06),
    ComponentSpec(InspectionComponent.SINK_CONDITION, "Sink & Faucet Condition", 0.10, allow_photo=True),
    ComponentSpec(
        InspectionComponent.URINAL_CONDITION,
        "Urinal Condition",
        0.08,
        required=False,
        allow_photo=True,
    ),
    ComponentSpec(InspectionComponent.SOAP_AVAILABILITY, "Soap Availability", 0.08),
    ComponentSpec(InspectionComponent.TISSUE_AVAILABILITY, "Tissue Availability", 0.08),
    ComponentSpec(InspectionComponent.AIR_FRESHENER, "Air Freshener", 0.04),
)

DEFAULT_WEIGHTS: Mapping[InspectionComponent, float] = MappingProxyType(
    {spec.component: spec.weight for spec in COMPONENTS}
)


def make_weight_table(
    weights: Mapping[InspectionComponent | str, float],
) -> Mapping[InspectionComponent, float]:
    """Validate *weights* and return them as a read-only table.

    Keys may be components or their string identifiers. Raises ``ValueError``
    for unknown components and negative weights.
    """
    table: Dict[InspectionComponent, float] = {}
    for key, value in weights.items():
        component = InspectionComponent(key)
        weight = float(value)
        if weight < 0:
            raise ValueError(f"Weight for {component.value} must be non-negative, got {weight}")
        table[component] = weight
    return MappingProxyType(table)
