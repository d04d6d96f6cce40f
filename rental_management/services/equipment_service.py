from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.rental_models import Equipment
from services.intervals import EquipmentAvailabilityState, EquipmentStatus


STORE_LOGGER = logging.getLogger("rental_management.store")


class EquipmentNotFoundError(LookupError):
    pass


def to_equipment_state(equipment: Equipment) -> EquipmentAvailabilityState:
    return EquipmentAvailabilityState(
        equipment_id=equipment.EquipmentID,
        name=equipment.EquipmentName or "",
        category=equipment.Category or "",
        current_status=EquipmentStatus.parse(equipment.Status or EquipmentStatus.AVAILABLE.value),
        price_per_day=float(equipment.DailyRentalCost or 0),
    )


def get_equipment_state(db: Session, equipment_id: str) -> EquipmentAvailabilityState:
    equipment = db.get(Equipment, equipment_id)
    if not equipment:
        raise EquipmentNotFoundError(f"Equipment {equipment_id} not found")
    return to_equipment_state(equipment)


def list_equipment_states(db: Session, category: str | None = None) -> list[EquipmentAvailabilityState]:
    stmt = select(Equipment).order_by(Equipment.EquipmentName, Equipment.EquipmentID)
    if category:
        stmt = stmt.where(Equipment.Category == category)
    states = []
    for equipment in db.execute(stmt).scalars().all():
        try:
            states.append(to_equipment_state(equipment))
        except ValueError:
            STORE_LOGGER.warning(
                "Skipping equipment with unknown status equipment_id=%s status=%r",
                equipment.EquipmentID,
                equipment.Status,
            )
    return states


def make_category_lookup(db: Session):
    def lookup(category: str, exclude_equipment_id: str) -> list[EquipmentAvailabilityState]:
        stmt = (
            select(Equipment)
            .where(Equipment.Category == category)
            .where(Equipment.EquipmentID != exclude_equipment_id)
            .where(Equipment.Status == EquipmentStatus.AVAILABLE.value)
            .order_by(Equipment.EquipmentName, Equipment.EquipmentID)
        )
        return [to_equipment_state(equipment) for equipment in db.execute(stmt).scalars().all()]

    return lookup


def serialize_equipment(state: EquipmentAvailabilityState) -> dict:
    return {
        "materielId": state.equipment_id,
        "name": state.name,
        "category": state.category,
        "status": state.current_status.value,
        "pricePerDay": state.price_per_day,
    }
