from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum


ONE_DAY = timedelta(days=1)


class InvalidIntervalError(ValueError):
    pass


class InvalidDateError(ValueError):
    pass


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @classmethod
    def parse(cls, raw: str | ReservationStatus) -> ReservationStatus:
        if isinstance(raw, cls):
            return raw
        value = (raw or "").strip().upper()
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown reservation status: {raw!r}") from None


class EquipmentStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RENTED = "RENTED"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_ORDER = "OUT_OF_ORDER"

    @classmethod
    def parse(cls, raw: str | EquipmentStatus) -> EquipmentStatus:
        if isinstance(raw, cls):
            return raw
        value = (raw or "").strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown equipment status: {raw!r}") from None


# Statuses whose reservations never block a date range.
NON_BLOCKING_STATUSES = frozenset({ReservationStatus.CANCELLED})
# Statuses that hold the equipment until their end date.
HOLDING_STATUSES = frozenset({ReservationStatus.ACTIVE, ReservationStatus.CONFIRMED})
# Statuses that can still be extended.
EXTENDABLE_STATUSES = frozenset(
    {ReservationStatus.PENDING, ReservationStatus.CONFIRMED, ReservationStatus.ACTIVE}
)
UNAVAILABLE_EQUIPMENT_STATUSES = frozenset({EquipmentStatus.MAINTENANCE, EquipmentStatus.OUT_OF_ORDER})


def utc_now() -> datetime:
    """Current time as naive UTC, the same convention ``parse_timestamp`` produces."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def parse_timestamp(raw: str | date | datetime | None, end_of_day_if_date: bool = False) -> datetime:
    """Parse an ISO date or timestamp into a naive datetime.

    A bare date maps to the first instant of that day, or to its last instant
    when ``end_of_day_if_date`` is set. Aware timestamps are converted to UTC
    and stripped of their tzinfo so they compare with the naive store values.
    """
    if isinstance(raw, datetime):
        parsed = raw
    elif isinstance(raw, date):
        return end_of_day(raw) if end_of_day_if_date else start_of_day(raw)
    else:
        value = (raw or "").strip()
        if not value:
            raise InvalidDateError("Date value is empty.")
        try:
            day = date.fromisoformat(value)
        except ValueError:
            day = None
        if day is not None:
            return end_of_day(day) if end_of_day_if_date else start_of_day(day)

        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise InvalidDateError(f"Invalid date format: {raw!r}") from None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidIntervalError(f"Interval start {self.start.isoformat()} is after end {self.end.isoformat()}.")

    @classmethod
    def for_days(cls, first_day: date, last_day: date) -> Interval:
        return cls(start=start_of_day(first_day), end=end_of_day(last_day))

    def overlaps(self, other: Interval) -> bool:
        # Closed bounds: a checkout and a checkin on the same instant collide.
        return self.start <= other.end and self.end >= other.start

    def duration_in_days(self) -> int:
        days = math.ceil((self.end - self.start) / ONE_DAY)
        return max(1, days)


@dataclass(frozen=True)
class BookingInterval(Interval):
    id: str = ""
    equipment_id: str = ""
    status: ReservationStatus = ReservationStatus.PENDING
    user_id: str | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if not isinstance(self.status, ReservationStatus):
            object.__setattr__(self, "status", ReservationStatus.parse(self.status))

    @classmethod
    def from_dates(
        cls,
        id: str,
        equipment_id: str,
        first_day: date,
        last_day: date,
        status: ReservationStatus | str = ReservationStatus.PENDING,
        user_id: str | None = None,
    ) -> BookingInterval:
        return cls(
            start=start_of_day(first_day),
            end=end_of_day(last_day),
            id=id,
            equipment_id=equipment_id,
            status=status,
            user_id=user_id,
        )

    @property
    def is_blocking(self) -> bool:
        return self.status not in NON_BLOCKING_STATUSES

    def sort_key(self) -> tuple:
        return (self.start, self.end, self.id)


@dataclass(frozen=True)
class EquipmentAvailabilityState:
    equipment_id: str
    name: str
    category: str
    current_status: EquipmentStatus = EquipmentStatus.AVAILABLE
    price_per_day: float = 0.0

    def __post_init__(self) -> None:
        if not isinstance(self.current_status, EquipmentStatus):
            object.__setattr__(self, "current_status", EquipmentStatus.parse(self.current_status))

    @property
    def is_out_of_service(self) -> bool:
        return self.current_status in UNAVAILABLE_EQUIPMENT_STATUSES
