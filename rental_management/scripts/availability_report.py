#!/usr/bin/env python3
"""Availability calendar and double-booking report for the rental store."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from services.calendar_service import (  # noqa: E402
    MonthlyMaintenancePolicy,
    project_calendar,
    resolve_period,
    summarize_calendar,
)
from services.equipment_service import EquipmentNotFoundError, get_equipment_state  # noqa: E402
from services.intervals import InvalidDateError, InvalidIntervalError, parse_timestamp, utc_now  # noqa: E402
from services.overlap_service import find_double_bookings  # noqa: E402
from services.rental_service import fetch_all_reservations, fetch_reservations  # noqa: E402


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str


def _print_section(title: str) -> None:
    print(f"\n=== {title} ===")


def _get_engine(db_url: str) -> Engine:
    return create_engine(db_url, pool_pre_ping=True, future=True)


def _run_integrity_checks(db: Session) -> list[CheckResult]:
    checks: list[CheckResult] = []
    try:
        intervals = fetch_all_reservations(db)
    except ValueError as exc:
        checks.append(CheckResult("reservations:well_formed", False, str(exc)))
        return checks
    checks.append(CheckResult("reservations:well_formed", True, f"count={len(intervals)}"))

    pairs = find_double_bookings(intervals)
    checks.append(CheckResult("reservations:double_bookings", not pairs, f"count={len(pairs)}"))
    for first, second in pairs:
        checks.append(
            CheckResult(
                f"reservations:double_booking:{first.equipment_id}",
                False,
                f"{first.id} [{first.start:%Y-%m-%d} - {first.end:%Y-%m-%d}] overlaps "
                f"{second.id} [{second.start:%Y-%m-%d} - {second.end:%Y-%m-%d}]",
            )
        )
    return checks


def _print_results(title: str, rows: Iterable[CheckResult]) -> None:
    _print_section(title)
    for row in rows:
        status = "OK" if row.ok else "FAIL"
        print(f"[{status}] {row.name} :: {row.detail}")


def _print_calendar(
    db: Session,
    equipment_id: str,
    now: datetime,
    period: str,
    start_raw: str | None,
    end_raw: str | None,
    include_maintenance: bool,
) -> int:
    try:
        state = get_equipment_state(db, equipment_id)
    except EquipmentNotFoundError as exc:
        print(str(exc))
        return 4

    try:
        start = parse_timestamp(start_raw) if start_raw else None
        end = parse_timestamp(end_raw, end_of_day_if_date=True) if end_raw else None
        period_start, period_end = resolve_period(now, period, start, end)
    except (InvalidDateError, InvalidIntervalError) as exc:
        print(f"Invalid period: {exc}")
        return 2

    days = project_calendar(
        state,
        fetch_reservations(db, equipment_id, period_start, period_end),
        period_start,
        period_end,
        include_maintenance=include_maintenance,
        maintenance_policy=MonthlyMaintenancePolicy(),
    )
    _print_section(f"Calendar {state.name} ({state.equipment_id}) {period_start:%Y-%m-%d} - {period_end:%Y-%m-%d}")
    for day in days:
        event_ids = ", ".join(event.id for event in day.events)
        print(f"{day.date.isoformat()} {day.status.value:<12} {event_ids}")

    summary = summarize_calendar(days)
    _print_section("Summary")
    print(
        f"total={summary.total_days} available={summary.available_days} rented={summary.rented_days} "
        f"reserved={summary.reserved_days} maintenance={summary.maintenance_days} "
        f"occupancy={summary.occupancy_rate}%"
    )
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Rental availability report")
    parser.add_argument("--db-url", default=os.environ.get("RENTAL_DB_URL", ""))
    parser.add_argument("--equipment-id", default=None)
    parser.add_argument("--period", default="month", choices=["week", "month", "quarter"])
    parser.add_argument("--start-date", default=None)
    parser.add_argument("--end-date", default=None)
    parser.add_argument("--include-maintenance", action="store_true")
    args = parser.parse_args()

    db_url = (args.db_url or "").strip()
    if not db_url:
        print("RENTAL_DB_URL is not set. Provide --db-url or export env first.")
        return 2

    try:
        engine = _get_engine(db_url)
        with engine.connect():
            pass
    except Exception as exc:
        print(f"Could not connect to DB: {exc}")
        return 3

    with Session(engine) as db:
        _print_results("Integrity Checks", _run_integrity_checks(db))
        if args.equipment_id:
            return _print_calendar(
                db,
                args.equipment_id,
                utc_now(),
                args.period,
                args.start_date,
                args.end_date,
                args.include_maintenance,
            )
    return 0


if __name__ == "__main__":
    sys.exit(main())
