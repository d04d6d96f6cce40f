import logging
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import settings
from db.deps import get_rental_db
from schemas.bookings import BookingCheckRequest, ExtensionCheckRequest
from services.availability_service import (
    BookingValidationError,
    ValidationKind,
    filter_available_equipment,
    next_available_date,
    placeholder_interval,
    validate_booking,
    validate_extension,
)
from services.calendar_service import (
    MonthlyMaintenancePolicy,
    project_calendar,
    resolve_period,
    summarize_calendar,
)
from services.equipment_service import (
    EquipmentNotFoundError,
    get_equipment_state,
    list_equipment_states,
    make_category_lookup,
    serialize_equipment,
)
from services.intervals import InvalidDateError, InvalidIntervalError, parse_timestamp, utc_now
from services.recommendation_service import build_recommendations
from services.rental_service import (
    ReservationNotFoundError,
    fetch_holding_reservations,
    fetch_reservations,
    fetch_reservations_by_equipment,
    get_reservation,
    serialize_day,
    serialize_next_availability,
    serialize_quote,
    serialize_recommendations,
    serialize_summary,
    serialize_validation_error,
)

settings.configure_logging()

AVAILABILITY_LOGGER = logging.getLogger("rental_management.availability")
MAINTENANCE_POLICY = MonthlyMaintenancePolicy(day_of_month=settings.MAINTENANCE_DAY_OF_MONTH)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"]
)


def get_now() -> datetime:
    # The only place the core's "now" comes from, in naive UTC; tests override it.
    return utc_now()


def _parse_range_or_400(start_raw: str, end_raw: str) -> tuple[datetime, datetime]:
    try:
        start = parse_timestamp(start_raw)
        end = parse_timestamp(end_raw, end_of_day_if_date=True)
    except InvalidDateError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return start, end


def _require_id_or_400(raw: str | None, label: str) -> str:
    value = (raw or "").strip()
    if not value:
        raise HTTPException(status_code=400, detail=f"{label} is required.")
    return value


def _load_equipment_or_404(db: Session, equipment_id: str):
    try:
        return get_equipment_state(db, equipment_id)
    except EquipmentNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Equipment not found") from exc


def _validation_http_error(exc: BookingValidationError) -> HTTPException:
    status_code = 409 if exc.kind == ValidationKind.CONFLICT else 400
    return HTTPException(status_code=status_code, detail=serialize_validation_error(exc))


@app.get("/healthz")
def healthcheck():
    return {"status": "ok"}


@app.get("/api/healthz")
def healthcheck_api(db: Session = Depends(get_rental_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"db_unavailable: {exc}") from exc


@app.get("/api/calendar/availability/{equipment_id}")
def get_equipment_availability(
    equipment_id: str,
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    period: str = Query("month"),
    include_maintenance: bool = Query(False, alias="includeMaintenance"),
    show_time_slots: bool = Query(False, alias="showTimeSlots"),
    db: Session = Depends(get_rental_db),
    now: datetime = Depends(get_now),
):
    equipment_id = _require_id_or_400(equipment_id, "Equipment id")
    try:
        state = _load_equipment_or_404(db, equipment_id)

        explicit_start = explicit_end = None
        if start_date and end_date:
            explicit_start, explicit_end = _parse_range_or_400(start_date, end_date)
        try:
            period_start, period_end = resolve_period(now, period, explicit_start, explicit_end)
        except InvalidIntervalError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        degraded = False
        try:
            intervals = fetch_reservations(db, equipment_id, period_start, period_end)
            holding = fetch_holding_reservations(db, equipment_id)
        except SQLAlchemyError:
            AVAILABILITY_LOGGER.warning(
                "Reservation lookup failed; serving degraded placeholder availability equipment_id=%s start=%s end=%s",
                equipment_id,
                period_start.isoformat(),
                period_end.isoformat(),
                exc_info=True,
            )
            db.rollback()
            degraded = True
            intervals = [placeholder_interval(equipment_id, period_start, period_end)]
            holding = []

        days = project_calendar(
            state,
            intervals,
            period_start,
            period_end,
            include_maintenance=include_maintenance,
            show_time_slots=show_time_slots,
            maintenance_policy=MAINTENANCE_POLICY,
        )
        summary = summarize_calendar(days)
        if degraded:
            outlook_payload = {"nextAvailableDate": None, "contactSupport": True}
        else:
            outlook = next_available_date(state, holding, now, buffer_days=settings.TURNAROUND_BUFFER_DAYS)
            outlook_payload = serialize_next_availability(outlook)
        recommendations = build_recommendations(days, state, make_category_lookup(db))

        return {
            "success": True,
            "data": {
                "materielId": state.equipment_id,
                "materielName": state.name,
                "category": state.category,
                "availability": [serialize_day(day) for day in days],
                "summary": serialize_summary(summary),
                "period": {"start": period_start.isoformat(), "end": period_end.isoformat()},
                **outlook_payload,
                "recommendations": serialize_recommendations(recommendations),
                "degraded": degraded,
            },
        }
    except HTTPException:
        raise
    except Exception as exc:
        AVAILABILITY_LOGGER.exception("Calendar projection failed equipment_id=%s", equipment_id)
        raise HTTPException(status_code=500, detail="Server error while computing availability.") from exc


@app.get("/api/equipment/available")
def get_available_equipment(
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    category: str | None = Query(None),
    db: Session = Depends(get_rental_db),
):
    start, end = _parse_range_or_400(start_date, end_date)
    if end < start:
        raise HTTPException(status_code=400, detail="endDate must be on or after startDate.")

    states = list_equipment_states(db, category=category)
    intervals = fetch_reservations_by_equipment(db, [state.equipment_id for state in states], start, end)
    available = filter_available_equipment(states, intervals, start, end)
    return {
        "success": True,
        "data": [serialize_equipment(state) for state in available],
        "filters": {"startDate": start.isoformat(), "endDate": end.isoformat(), "category": category},
        "message": f"{len(available)} equipment item(s) available",
    }


@app.get("/api/equipment/{equipment_id}/next-available")
def get_next_available(
    equipment_id: str,
    db: Session = Depends(get_rental_db),
    now: datetime = Depends(get_now),
):
    equipment_id = _require_id_or_400(equipment_id, "Equipment id")
    state = _load_equipment_or_404(db, equipment_id)
    outlook = next_available_date(
        state,
        fetch_holding_reservations(db, equipment_id),
        now,
        buffer_days=settings.TURNAROUND_BUFFER_DAYS,
    )
    return {"success": True, "data": {"materielId": equipment_id, **serialize_next_availability(outlook)}}


@app.post("/api/bookings/validate")
def validate_booking_request(
    payload: dict,
    db: Session = Depends(get_rental_db),
    now: datetime = Depends(get_now),
):
    try:
        parsed = BookingCheckRequest.model_validate(payload)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid booking request.")

    start, end = _parse_range_or_400(parsed.startDate, parsed.endDate)
    state = _load_equipment_or_404(db, parsed.materielId)

    # Every reservation that could collide or push the earliest start.
    window_start = min(start, end)
    window_end = max(start, end)
    intervals = fetch_reservations(db, state.equipment_id, window_start, window_end)
    holding = fetch_holding_reservations(db, state.equipment_id)
    snapshot = {interval.id: interval for interval in intervals + holding}

    try:
        quote = validate_booking(
            state,
            start,
            end,
            list(snapshot.values()),
            now,
            max_days=settings.MAX_RENTAL_DAYS,
            buffer_days=settings.TURNAROUND_BUFFER_DAYS,
        )
    except BookingValidationError as exc:
        AVAILABILITY_LOGGER.info(
            "Booking rejected equipment_id=%s start=%s end=%s kind=%s",
            state.equipment_id,
            start.isoformat(),
            end.isoformat(),
            exc.kind.value,
        )
        raise _validation_http_error(exc) from exc

    return {"success": True, "data": {"materielId": state.equipment_id, **serialize_quote(quote)}}


@app.post("/api/rentals/{reservation_id}/extend/validate")
def validate_extension_request(
    reservation_id: str,
    payload: dict,
    db: Session = Depends(get_rental_db),
):
    reservation_id = _require_id_or_400(reservation_id, "Reservation id")
    try:
        parsed = ExtensionCheckRequest.model_validate(payload)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid extension request.")
    try:
        new_end = parse_timestamp(parsed.newEndDate, end_of_day_if_date=True)
    except InvalidDateError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        reservation = get_reservation(db, reservation_id)
    except ReservationNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Reservation not found") from exc
    state = _load_equipment_or_404(db, reservation.equipment_id)

    intervals = []
    if new_end > reservation.end:
        intervals = fetch_reservations(db, state.equipment_id, reservation.end, new_end)
    try:
        quote = validate_extension(state, reservation, new_end, intervals, max_days=settings.MAX_RENTAL_DAYS)
    except BookingValidationError as exc:
        AVAILABILITY_LOGGER.info(
            "Extension rejected reservation_id=%s new_end=%s kind=%s",
            reservation_id,
            new_end.isoformat(),
            exc.kind.value,
        )
        raise _validation_http_error(exc) from exc

    return {"success": True, "data": {"reservationId": reservation.id, "materielId": state.equipment_id, **serialize_quote(quote)}}
