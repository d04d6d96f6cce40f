from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable

from services.calendar_service import DayOccupancy, DayStatus
from services.intervals import EquipmentAvailabilityState, EquipmentStatus


MAX_SUGGESTED_DATES = 5
MAX_ALTERNATIVES = 3

# (category, equipment id to exclude) -> catalog entries in the catalog's own order
EquipmentLookup = Callable[[str, str], Iterable[EquipmentAvailabilityState]]


@dataclass(frozen=True)
class Recommendations:
    suggested_dates: list[date] = field(default_factory=list)
    alternative_equipment: list[str] = field(default_factory=list)


def suggested_dates(days: Iterable[DayOccupancy], limit: int = MAX_SUGGESTED_DATES) -> list[date]:
    picked: list[date] = []
    for day in sorted(days, key=lambda item: item.date):
        if len(picked) >= limit:
            break
        if day.status == DayStatus.AVAILABLE:
            picked.append(day.date)
    return picked


def alternative_equipment(
    state: EquipmentAvailabilityState,
    lookup: EquipmentLookup,
    limit: int = MAX_ALTERNATIVES,
) -> list[str]:
    picked: list[str] = []
    for candidate in lookup(state.category, state.equipment_id):
        if len(picked) >= limit:
            break
        if candidate.equipment_id == state.equipment_id:
            continue
        if candidate.category != state.category:
            continue
        if candidate.current_status != EquipmentStatus.AVAILABLE:
            continue
        picked.append(candidate.equipment_id)
    return picked


def build_recommendations(
    days: Iterable[DayOccupancy],
    state: EquipmentAvailabilityState,
    lookup: EquipmentLookup,
) -> Recommendations:
    return Recommendations(
        suggested_dates=suggested_dates(days),
        alternative_equipment=alternative_equipment(state, lookup),
    )
