from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Mapping

from services.intervals import (
    EXTENDABLE_STATUSES,
    HOLDING_STATUSES,
    BookingInterval,
    EquipmentAvailabilityState,
    EquipmentStatus,
    Interval,
    ReservationStatus,
)
from services.overlap_service import ConflictResult, detect_conflicts


DEFAULT_MAX_RENTAL_DAYS = 30
DEFAULT_BUFFER_DAYS = 1
PLACEHOLDER_INTERVAL_PREFIX = "placeholder"


class ValidationKind(str, Enum):
    PAST_START = "PAST_START"
    END_BEFORE_START = "END_BEFORE_START"
    MAX_DURATION_EXCEEDED = "MAX_DURATION_EXCEEDED"
    CONFLICT = "CONFLICT"
    EQUIPMENT_UNAVAILABLE = "EQUIPMENT_UNAVAILABLE"
    NOT_EXTENDABLE = "NOT_EXTENDABLE"


class BookingValidationError(Exception):
    def __init__(
        self,
        kind: ValidationKind,
        message: str,
        conflicts: list[BookingInterval] | None = None,
        earliest_start: date | None = None,
        max_days: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.conflicts = list(conflicts or [])
        self.earliest_start = earliest_start
        self.max_days = max_days


@dataclass(frozen=True)
class NextAvailability:
    available_from: date | None
    contact_support: bool = False


@dataclass(frozen=True)
class BookingQuote:
    total_days: int
    total_price: float
    conflict: ConflictResult = field(default_factory=lambda: ConflictResult(is_available=True))


def next_available_date(
    state: EquipmentAvailabilityState,
    intervals: Iterable[BookingInterval],
    now: datetime,
    buffer_days: int = DEFAULT_BUFFER_DAYS,
) -> NextAvailability:
    if state.is_out_of_service:
        return NextAvailability(available_from=None, contact_support=True)

    today = now.date()
    holding = [
        interval
        for interval in intervals
        if interval.equipment_id == state.equipment_id and interval.status in HOLDING_STATUSES
    ]
    if not holding:
        return NextAvailability(available_from=today)

    latest_end = max(interval.end for interval in holding)
    free_from = latest_end.date() + timedelta(days=buffer_days)
    return NextAvailability(available_from=max(free_from, today))


def _earliest_start(
    state: EquipmentAvailabilityState,
    intervals: list[BookingInterval],
    now: datetime,
    buffer_days: int,
) -> date:
    earliest = now.date()
    if state.current_status == EquipmentStatus.RENTED:
        outlook = next_available_date(state, intervals, now, buffer_days=buffer_days)
        if outlook.available_from and outlook.available_from > earliest:
            earliest = outlook.available_from
    return earliest


def _quote(state: EquipmentAvailabilityState, interval: Interval, conflict: ConflictResult) -> BookingQuote:
    total_days = interval.duration_in_days()
    return BookingQuote(
        total_days=total_days,
        total_price=round(total_days * float(state.price_per_day or 0), 2),
        conflict=conflict,
    )


def validate_booking(
    state: EquipmentAvailabilityState,
    start: datetime,
    end: datetime,
    intervals: Iterable[BookingInterval],
    now: datetime,
    max_days: int = DEFAULT_MAX_RENTAL_DAYS,
    buffer_days: int = DEFAULT_BUFFER_DAYS,
) -> BookingQuote:
    """Check a requested rental period against the equipment's reservations.

    Callers that persist the booking must run this again against a fresh
    snapshot inside the transaction that writes the reservation; two clients
    can otherwise both see the range as free.
    """
    if end < start:
        raise BookingValidationError(
            ValidationKind.END_BEFORE_START,
            "End date must be on or after the start date.",
        )

    if state.is_out_of_service:
        raise BookingValidationError(
            ValidationKind.EQUIPMENT_UNAVAILABLE,
            f"Equipment is currently {state.current_status.value.lower().replace('_', ' ')}; contact support.",
        )

    snapshot = list(intervals)
    earliest = _earliest_start(state, snapshot, now, buffer_days)
    if start.date() < earliest:
        if earliest > now.date():
            message = f"Equipment is available only from {earliest.isoformat()}."
        else:
            message = "Start date cannot be in the past."
        raise BookingValidationError(ValidationKind.PAST_START, message, earliest_start=earliest)

    candidate = Interval(start=start, end=end)
    if candidate.duration_in_days() > max_days:
        raise BookingValidationError(
            ValidationKind.MAX_DURATION_EXCEEDED,
            f"Maximum rental duration is {max_days} days.",
            max_days=max_days,
        )

    conflict = detect_conflicts(state.equipment_id, candidate, snapshot)
    if not conflict.is_available:
        raise BookingValidationError(
            ValidationKind.CONFLICT,
            conflict.message,
            conflicts=conflict.conflicting_intervals,
        )
    return _quote(state, candidate, conflict)


def validate_extension(
    state: EquipmentAvailabilityState,
    reservation: BookingInterval,
    new_end: datetime,
    intervals: Iterable[BookingInterval],
    max_days: int = DEFAULT_MAX_RENTAL_DAYS,
) -> BookingQuote:
    """Check moving a reservation's end to ``new_end``.

    The rental as a whole, from its original start to ``new_end``, must stay
    within ``max_days``, so repeated extensions cannot outgrow the limit.
    """
    if reservation.status not in EXTENDABLE_STATUSES:
        raise BookingValidationError(
            ValidationKind.NOT_EXTENDABLE,
            f"A {reservation.status.value.lower()} reservation cannot be extended.",
        )
    if new_end <= reservation.end:
        raise BookingValidationError(
            ValidationKind.END_BEFORE_START,
            "New end date must be after the current end date.",
        )

    extended = Interval(start=reservation.start, end=new_end)
    if extended.duration_in_days() > max_days:
        raise BookingValidationError(
            ValidationKind.MAX_DURATION_EXCEEDED,
            f"Maximum rental duration is {max_days} days.",
            max_days=max_days,
        )

    extra = Interval(start=reservation.end, end=new_end)
    conflict = detect_conflicts(
        state.equipment_id,
        extra,
        intervals,
        exclude_interval_id=reservation.id,
    )
    if not conflict.is_available:
        raise BookingValidationError(
            ValidationKind.CONFLICT,
            conflict.message,
            conflicts=conflict.conflicting_intervals,
        )
    return _quote(state, extended, conflict)


def filter_available_equipment(
    states: Iterable[EquipmentAvailabilityState],
    intervals_by_equipment: Mapping[str, list[BookingInterval]],
    start: datetime,
    end: datetime,
) -> list[EquipmentAvailabilityState]:
    window = Interval(start=start, end=end)
    available = []
    for state in states:
        if state.current_status != EquipmentStatus.AVAILABLE:
            continue
        conflict = detect_conflicts(state.equipment_id, window, intervals_by_equipment.get(state.equipment_id, []))
        if conflict.is_available:
            available.append(state)
    return available


def placeholder_interval(equipment_id: str, start: datetime, end: datetime) -> BookingInterval:
    """Conservative stand-in used when reservations cannot be fetched: the whole window is held."""
    return BookingInterval(
        start=start,
        end=end,
        id=f"{PLACEHOLDER_INTERVAL_PREFIX}-{equipment_id}",
        equipment_id=equipment_id,
        status=ReservationStatus.PENDING,
    )
