from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Iterable, Protocol

from services.intervals import (
    BookingInterval,
    EquipmentAvailabilityState,
    Interval,
    InvalidIntervalError,
    ReservationStatus,
    end_of_day,
    start_of_day,
)


class DayStatus(str, Enum):
    AVAILABLE = "available"
    RENTED = "rented"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"


class EventType(str, Enum):
    LOCATION = "location"
    MAINTENANCE = "maintenance"


# Higher rank wins when several sources cover the same day.
DAY_STATUS_PRECEDENCE = {
    DayStatus.MAINTENANCE: 3,
    DayStatus.RENTED: 2,
    DayStatus.RESERVED: 1,
    DayStatus.AVAILABLE: 0,
}

RESERVATION_DAY_STATUS = {
    ReservationStatus.ACTIVE: DayStatus.RENTED,
    ReservationStatus.PENDING: DayStatus.RESERVED,
    ReservationStatus.CONFIRMED: DayStatus.RESERVED,
    ReservationStatus.COMPLETED: DayStatus.RESERVED,
    ReservationStatus.CANCELLED: DayStatus.AVAILABLE,
}

MORNING_SLOT = (time(8, 0), time(12, 0))
AFTERNOON_SLOT = (time(12, 0), time(18, 0))
SLOT_EVENT_TYPES = frozenset({EventType.LOCATION, EventType.MAINTENANCE})
DEFAULT_PERIOD = "month"


class MaintenancePolicy(Protocol):
    def maintenance_windows_for(self, equipment_id: str, day: date) -> list[Interval]:
        ...


@dataclass(frozen=True)
class MonthlyMaintenancePolicy:
    """Placeholder preventive-maintenance rule: one window on a fixed day of every month.

    It does not reflect real service history. Swap in a policy backed by
    maintenance records once they exist.
    """

    day_of_month: int = 15
    window_start: time = time(9, 0)
    window_end: time = time(11, 0)

    def maintenance_windows_for(self, equipment_id: str, day: date) -> list[Interval]:
        if day.day != self.day_of_month:
            return []
        return [
            Interval(
                start=datetime.combine(day, self.window_start),
                end=datetime.combine(day, self.window_end),
            )
        ]


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    event_type: EventType
    start: datetime
    end: datetime
    status: str
    equipment_id: str
    reservation_id: str | None = None
    user_id: str | None = None


@dataclass(frozen=True)
class TimeSlots:
    morning: SlotStatus
    afternoon: SlotStatus
    full_day: SlotStatus


@dataclass(frozen=True)
class DayOccupancy:
    date: date
    status: DayStatus
    events: list[CalendarEvent] = field(default_factory=list)
    time_slots: TimeSlots | None = None


@dataclass(frozen=True)
class CalendarSummary:
    total_days: int
    available_days: int
    rented_days: int
    maintenance_days: int
    reserved_days: int
    occupancy_rate: float


def resolve_period(
    now: datetime,
    period: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Return the ``(start, end)`` bounds of a calendar query.

    An explicit ``start`` and ``end`` pair wins over the named period. With
    only one of them supplied the named period applies, as the calendar
    endpoint always did.
    """
    if start is not None and end is not None:
        if start > end:
            raise InvalidIntervalError("Start date must be on or before end date.")
        return start, end

    name = (period or DEFAULT_PERIOD).strip().lower()
    today = now.date()
    if name == "week":
        # date.weekday() is Monday=0; weeks start on Sunday here.
        first = today - timedelta(days=(today.weekday() + 1) % 7)
        last = first + timedelta(days=6)
    elif name == "quarter":
        first_month = ((today.month - 1) // 3) * 3 + 1
        first = date(today.year, first_month, 1)
        last = _last_day_of_month(today.year, first_month + 2)
    else:
        # Unrecognized names get the current month.
        first = today.replace(day=1)
        last = _last_day_of_month(today.year, today.month)
    return start_of_day(first), end_of_day(last)


def _last_day_of_month(year: int, month: int) -> date:
    if month == 12:
        return date(year, 12, 31)
    return date(year, month + 1, 1) - timedelta(days=1)


def _iter_days(first: date, last: date) -> Iterable[date]:
    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


def _location_event(interval: BookingInterval) -> CalendarEvent:
    return CalendarEvent(
        id=interval.id,
        event_type=EventType.LOCATION,
        start=interval.start,
        end=interval.end,
        status=interval.status.value,
        equipment_id=interval.equipment_id,
        reservation_id=interval.id,
        user_id=interval.user_id,
    )


def _maintenance_events(
    policy: MaintenancePolicy,
    state: EquipmentAvailabilityState,
    day: date,
) -> list[CalendarEvent]:
    events = []
    for window in policy.maintenance_windows_for(state.equipment_id, day):
        events.append(
            CalendarEvent(
                id=f"maintenance-{state.equipment_id}-{window.start.isoformat()}",
                event_type=EventType.MAINTENANCE,
                start=window.start,
                end=window.end,
                status=ReservationStatus.ACTIVE.value,
                equipment_id=state.equipment_id,
            )
        )
    return events


def _day_status(state: EquipmentAvailabilityState, day_intervals: list[BookingInterval], events: list[CalendarEvent]) -> DayStatus:
    if state.is_out_of_service:
        return DayStatus.MAINTENANCE
    status = DayStatus.AVAILABLE
    if any(event.event_type == EventType.MAINTENANCE for event in events):
        status = DayStatus.MAINTENANCE
    for interval in day_intervals:
        candidate = RESERVATION_DAY_STATUS[interval.status]
        if DAY_STATUS_PRECEDENCE[candidate] > DAY_STATUS_PRECEDENCE[status]:
            status = candidate
    return status


def _slot_status(events: list[CalendarEvent], day: date, bounds: tuple[time, time]) -> SlotStatus:
    slot = Interval(start=datetime.combine(day, bounds[0]), end=datetime.combine(day, bounds[1]))
    for event in events:
        if event.event_type not in SLOT_EVENT_TYPES:
            continue
        if event.start <= slot.end and event.end >= slot.start:
            return SlotStatus.OCCUPIED
    return SlotStatus.AVAILABLE


def compute_time_slots(events: list[CalendarEvent], day: date) -> TimeSlots:
    morning = _slot_status(events, day, MORNING_SLOT)
    afternoon = _slot_status(events, day, AFTERNOON_SLOT)
    both = morning == SlotStatus.OCCUPIED and afternoon == SlotStatus.OCCUPIED
    return TimeSlots(
        morning=morning,
        afternoon=afternoon,
        full_day=SlotStatus.OCCUPIED if both else SlotStatus.AVAILABLE,
    )


def project_calendar(
    state: EquipmentAvailabilityState,
    intervals: Iterable[BookingInterval],
    period_start: datetime,
    period_end: datetime,
    include_maintenance: bool = False,
    show_time_slots: bool = False,
    maintenance_policy: MaintenancePolicy | None = None,
) -> list[DayOccupancy]:
    if period_start > period_end:
        raise InvalidIntervalError("Period start must be on or before period end.")

    policy = maintenance_policy or MonthlyMaintenancePolicy()
    relevant = sorted(
        (
            interval
            for interval in intervals
            if interval.equipment_id == state.equipment_id and interval.is_blocking
        ),
        key=BookingInterval.sort_key,
    )

    days: list[DayOccupancy] = []
    for day in _iter_days(period_start.date(), period_end.date()):
        bounds = Interval.for_days(day, day)
        day_intervals = [interval for interval in relevant if interval.overlaps(bounds)]
        events = [_location_event(interval) for interval in day_intervals]
        if include_maintenance:
            events.extend(_maintenance_events(policy, state, day))
        events.sort(key=lambda event: (event.start, event.end, event.id))

        days.append(
            DayOccupancy(
                date=day,
                status=_day_status(state, day_intervals, events),
                events=events,
                time_slots=compute_time_slots(events, day) if show_time_slots else None,
            )
        )
    return days


def summarize_calendar(days: list[DayOccupancy]) -> CalendarSummary:
    counts = {status: 0 for status in DayStatus}
    for day in days:
        counts[day.status] += 1

    total = len(days)
    occupied = counts[DayStatus.RENTED] + counts[DayStatus.RESERVED]
    rate = round(occupied / total * 100, 2) if total else 0.0
    return CalendarSummary(
        total_days=total,
        available_days=counts[DayStatus.AVAILABLE],
        rented_days=counts[DayStatus.RENTED],
        maintenance_days=counts[DayStatus.MAINTENANCE],
        reserved_days=counts[DayStatus.RESERVED],
        occupancy_rate=rate,
    )
