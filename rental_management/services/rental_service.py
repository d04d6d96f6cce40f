from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.rental_models import Reservation
from services.availability_service import BookingQuote, BookingValidationError, NextAvailability
from services.calendar_service import CalendarEvent, CalendarSummary, DayOccupancy, EventType
from services.intervals import HOLDING_STATUSES, BookingInterval, ReservationStatus, parse_timestamp
from services.overlap_service import ConflictResult
from services.recommendation_service import Recommendations


STORE_LOGGER = logging.getLogger("rental_management.store")

EVENT_COLORS = {
    ReservationStatus.ACTIVE.value: "#4CAF50",
    ReservationStatus.COMPLETED.value: "#757575",
    ReservationStatus.CANCELLED.value: "#F44336",
}
MAINTENANCE_COLOR = "#FF9800"
DEFAULT_EVENT_COLOR = "#607D8B"


class ReservationNotFoundError(LookupError):
    pass


def to_booking_interval(reservation: Reservation) -> BookingInterval:
    start = reservation.StartDate
    end = reservation.EndDate
    # Date-only columns hold whole days.
    if not isinstance(start, datetime):
        start = parse_timestamp(start)
    if not isinstance(end, datetime):
        end = parse_timestamp(end, end_of_day_if_date=True)
    return BookingInterval(
        start=start,
        end=end,
        id=str(reservation.ReservationID),
        equipment_id=str(reservation.EquipmentID),
        status=ReservationStatus.parse(reservation.Status),
        user_id=str(reservation.UserID) if reservation.UserID is not None else None,
    )


def _to_intervals(rows) -> list[BookingInterval]:
    intervals = []
    for row in rows:
        try:
            intervals.append(to_booking_interval(row))
        except ValueError:
            STORE_LOGGER.error(
                "Rejected malformed reservation reservation_id=%s start=%s end=%s status=%r",
                row.ReservationID,
                row.StartDate,
                row.EndDate,
                row.Status,
            )
            raise
    return intervals


def fetch_reservations(db: Session, equipment_id: str, start: datetime, end: datetime) -> list[BookingInterval]:
    stmt = (
        select(Reservation)
        .where(Reservation.EquipmentID == equipment_id)
        .where(Reservation.StartDate <= end)
        .where(Reservation.EndDate >= start)
        .order_by(Reservation.StartDate, Reservation.ReservationID)
    )
    return _to_intervals(db.execute(stmt).scalars().all())


def fetch_holding_reservations(db: Session, equipment_id: str) -> list[BookingInterval]:
    stmt = (
        select(Reservation)
        .where(Reservation.EquipmentID == equipment_id)
        .where(Reservation.Status.in_([status.value for status in HOLDING_STATUSES]))
        .order_by(Reservation.StartDate, Reservation.ReservationID)
    )
    return _to_intervals(db.execute(stmt).scalars().all())


def fetch_reservations_by_equipment(
    db: Session,
    equipment_ids: list[str],
    start: datetime,
    end: datetime,
) -> dict[str, list[BookingInterval]]:
    grouped: dict[str, list[BookingInterval]] = {equipment_id: [] for equipment_id in equipment_ids}
    if not equipment_ids:
        return grouped
    stmt = (
        select(Reservation)
        .where(Reservation.EquipmentID.in_(equipment_ids))
        .where(Reservation.StartDate <= end)
        .where(Reservation.EndDate >= start)
        .order_by(Reservation.StartDate, Reservation.ReservationID)
    )
    for interval in _to_intervals(db.execute(stmt).scalars().all()):
        grouped.setdefault(interval.equipment_id, []).append(interval)
    return grouped


def fetch_all_reservations(db: Session) -> list[BookingInterval]:
    stmt = select(Reservation).order_by(Reservation.EquipmentID, Reservation.StartDate, Reservation.ReservationID)
    return _to_intervals(db.execute(stmt).scalars().all())


def get_reservation(db: Session, reservation_id: str) -> BookingInterval:
    reservation = db.get(Reservation, reservation_id)
    if not reservation:
        raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
    return to_booking_interval(reservation)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_interval(interval: BookingInterval) -> dict:
    return {
        "id": interval.id,
        "materielId": interval.equipment_id,
        "userId": interval.user_id,
        "startDate": _iso(interval.start),
        "endDate": _iso(interval.end),
        "status": interval.status.value,
    }


def serialize_conflict(result: ConflictResult) -> dict:
    return {
        "isAvailable": result.is_available,
        "conflictingIntervals": [serialize_interval(interval) for interval in result.conflicting_intervals],
        "message": result.message,
    }


def serialize_validation_error(exc: BookingValidationError) -> dict:
    return {
        "kind": exc.kind.value,
        "message": exc.message,
        "conflicts": [serialize_interval(interval) for interval in exc.conflicts],
        "earliestStart": _iso(exc.earliest_start),
        "maxDays": exc.max_days,
    }


def serialize_quote(quote: BookingQuote) -> dict:
    payload = serialize_conflict(quote.conflict)
    payload["totalDays"] = quote.total_days
    payload["totalPrice"] = quote.total_price
    return payload


def _event_color(event: CalendarEvent) -> str:
    if event.event_type == EventType.MAINTENANCE:
        return MAINTENANCE_COLOR
    return EVENT_COLORS.get(event.status, DEFAULT_EVENT_COLOR)


def serialize_event(event: CalendarEvent) -> dict:
    return {
        "id": event.id,
        "type": event.event_type.value,
        "startDate": _iso(event.start),
        "endDate": _iso(event.end),
        "status": event.status.lower(),
        "materielId": event.equipment_id,
        "locationId": event.reservation_id,
        "userId": event.user_id,
        "metadata": {
            "priority": "high" if event.status == ReservationStatus.ACTIVE.value else "medium",
            "color": _event_color(event),
        },
    }


def serialize_day(day: DayOccupancy) -> dict:
    payload = {
        "date": day.date.isoformat(),
        "status": day.status.value,
        "events": [serialize_event(event) for event in day.events],
    }
    if day.time_slots is not None:
        payload["timeSlots"] = {
            "morning": day.time_slots.morning.value,
            "afternoon": day.time_slots.afternoon.value,
            "fullDay": day.time_slots.full_day.value,
        }
    return payload


def serialize_summary(summary: CalendarSummary) -> dict:
    return {
        "totalDays": summary.total_days,
        "availableDays": summary.available_days,
        "rentedDays": summary.rented_days,
        "maintenanceDays": summary.maintenance_days,
        "reservedDays": summary.reserved_days,
        "occupancyRate": summary.occupancy_rate,
    }


def serialize_next_availability(outlook: NextAvailability) -> dict:
    return {
        "nextAvailableDate": _iso(outlook.available_from),
        "contactSupport": outlook.contact_support,
    }


def serialize_recommendations(recommendations: Recommendations) -> dict:
    return {
        "suggestedDates": [day.isoformat() for day in recommendations.suggested_dates],
        "alternativeMaterials": list(recommendations.alternative_equipment),
    }
