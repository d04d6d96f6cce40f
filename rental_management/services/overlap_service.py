from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from services.intervals import BookingInterval, Interval


@dataclass(frozen=True)
class ConflictResult:
    is_available: bool
    conflicting_intervals: list[BookingInterval] = field(default_factory=list)
    message: str = ""


def _build_message(conflicts: list[BookingInterval]) -> str:
    if not conflicts:
        return "Equipment is available for the requested period."
    if len(conflicts) == 1:
        conflict = conflicts[0]
        return (
            "Date range already booked: conflicts with reservation from "
            f"{conflict.start.date().isoformat()} to {conflict.end.date().isoformat()}."
        )
    return f"Date range already booked: {len(conflicts)} conflicting reservations."


def detect_conflicts(
    equipment_id: str,
    candidate: Interval,
    existing: Iterable[BookingInterval],
    exclude_interval_id: str | None = None,
) -> ConflictResult:
    conflicts: list[BookingInterval] = []
    for interval in existing:
        if interval.equipment_id != equipment_id:
            continue
        if exclude_interval_id is not None and interval.id == exclude_interval_id:
            continue
        if not interval.is_blocking:
            continue
        if interval.overlaps(candidate):
            conflicts.append(interval)

    conflicts.sort(key=BookingInterval.sort_key)
    return ConflictResult(
        is_available=not conflicts,
        conflicting_intervals=conflicts,
        message=_build_message(conflicts),
    )


def find_double_bookings(intervals: Iterable[BookingInterval]) -> list[tuple[BookingInterval, BookingInterval]]:
    """Return pairs of blocking reservations of the same equipment that overlap each other."""
    by_equipment: dict[str, list[BookingInterval]] = {}
    for interval in intervals:
        if interval.is_blocking:
            by_equipment.setdefault(interval.equipment_id, []).append(interval)

    pairs: list[tuple[BookingInterval, BookingInterval]] = []
    for equipment_id in sorted(by_equipment):
        ordered = sorted(by_equipment[equipment_id], key=BookingInterval.sort_key)
        open_intervals: list[BookingInterval] = []
        for interval in ordered:
            # Sorted by start, so anything that ended before this start can never overlap again.
            open_intervals = [current for current in open_intervals if current.end >= interval.start]
            for current in open_intervals:
                pairs.append((current, interval))
            open_intervals.append(interval)
    return pairs
