import sys
import unittest
from datetime import date, datetime
from pathlib import Path


APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from services.availability_service import (
    BookingValidationError,
    ValidationKind,
    filter_available_equipment,
    next_available_date,
    placeholder_interval,
    validate_booking,
    validate_extension,
)
from services.intervals import (
    BookingInterval,
    EquipmentAvailabilityState,
    EquipmentStatus,
    ReservationStatus,
    parse_timestamp,
)


NOW = datetime(2024, 2, 10, 9, 30)


def _state(status=EquipmentStatus.AVAILABLE, equipment_id="E1", price=120.0):
    return EquipmentAvailabilityState(equipment_id, "Mini excavator", "excavation", current_status=status, price_per_day=price)


def _booking(booking_id, first, last, status=ReservationStatus.CONFIRMED, equipment_id="E1"):
    return BookingInterval.from_dates(booking_id, equipment_id, first, last, status=status)


def _range(start_raw, end_raw):
    return parse_timestamp(start_raw), parse_timestamp(end_raw, end_of_day_if_date=True)


class NextAvailableDateTests(unittest.TestCase):
    def test_turnaround_buffer_after_latest_holding_end(self):
        intervals = [
            _booking("active", date(2024, 2, 14), date(2024, 2, 20), ReservationStatus.ACTIVE),
            _booking("confirmed", date(2024, 2, 5), date(2024, 2, 8)),
        ]
        outlook = next_available_date(_state(EquipmentStatus.RENTED), intervals, datetime(2024, 2, 16, 10))
        self.assertEqual(outlook.available_from, date(2024, 2, 21))
        self.assertFalse(outlook.contact_support)

    def test_buffer_is_configurable(self):
        intervals = [_booking("active", date(2024, 2, 14), date(2024, 2, 20), ReservationStatus.ACTIVE)]
        outlook = next_available_date(_state(), intervals, datetime(2024, 2, 16), buffer_days=3)
        self.assertEqual(outlook.available_from, date(2024, 2, 23))

    def test_pending_and_cancelled_do_not_hold(self):
        intervals = [
            _booking("pending", date(2024, 2, 14), date(2024, 2, 20), ReservationStatus.PENDING),
            _booking("cancelled", date(2024, 2, 14), date(2024, 2, 25), ReservationStatus.CANCELLED),
        ]
        self.assertEqual(next_available_date(_state(), intervals, NOW).available_from, NOW.date())

    def test_never_earlier_than_today(self):
        intervals = [_booking("old", date(2024, 1, 2), date(2024, 1, 5), ReservationStatus.ACTIVE)]
        self.assertEqual(next_available_date(_state(), intervals, NOW).available_from, NOW.date())

    def test_out_of_service_equipment_needs_support(self):
        for status in [EquipmentStatus.MAINTENANCE, EquipmentStatus.OUT_OF_ORDER]:
            outlook = next_available_date(_state(status), [], NOW)
            self.assertIsNone(outlook.available_from)
            self.assertTrue(outlook.contact_support)


class ValidateBookingTests(unittest.TestCase):
    def test_free_equipment_is_quoted(self):
        start, end = _range("2024-02-10", "2024-02-15")
        quote = validate_booking(_state(), start, end, [], NOW)

        self.assertTrue(quote.conflict.is_available)
        self.assertEqual(quote.total_days, 6)
        self.assertEqual(quote.total_price, 720.0)

    def test_end_before_start_is_reported_first(self):
        start, end = _range("2024-03-01", "2024-01-01")
        overlapping = [_booking("r1", date(2024, 1, 1), date(2024, 3, 1), ReservationStatus.ACTIVE)]

        with self.assertRaises(BookingValidationError) as ctx:
            validate_booking(_state(EquipmentStatus.MAINTENANCE), start, end, overlapping, NOW)
        self.assertEqual(ctx.exception.kind, ValidationKind.END_BEFORE_START)
        self.assertEqual(ctx.exception.conflicts, [])

    def test_start_in_the_past(self):
        start, end = _range("2024-02-09", "2024-02-12")
        with self.assertRaises(BookingValidationError) as ctx:
            validate_booking(_state(), start, end, [], NOW)
        self.assertEqual(ctx.exception.kind, ValidationKind.PAST_START)
        self.assertEqual(ctx.exception.message, "Start date cannot be in the past.")
        self.assertEqual(ctx.exception.earliest_start, NOW.date())

    def test_rented_equipment_pushes_earliest_start(self):
        now = datetime(2024, 2, 16, 8)
        intervals = [_booking("active", date(2024, 2, 14), date(2024, 2, 20), ReservationStatus.ACTIVE)]
        start, end = _range("2024-02-18", "2024-02-22")

        with self.assertRaises(BookingValidationError) as ctx:
            validate_booking(_state(EquipmentStatus.RENTED), start, end, intervals, now)
        self.assertEqual(ctx.exception.kind, ValidationKind.PAST_START)
        self.assertEqual(ctx.exception.earliest_start, date(2024, 2, 21))
        self.assertIn("2024-02-21", ctx.exception.message)

        start, end = _range("2024-02-21", "2024-02-22")
        quote = validate_booking(_state(EquipmentStatus.RENTED), start, end, intervals, now)
        self.assertEqual(quote.total_days, 2)

    def test_maximum_duration(self):
        start, end = _range("2024-02-10", "2024-03-10")
        self.assertEqual(validate_booking(_state(), start, end, [], NOW).total_days, 30)

        start, end = _range("2024-02-10", "2024-03-11")
        with self.assertRaises(BookingValidationError) as ctx:
            validate_booking(_state(), start, end, [], NOW)
        self.assertEqual(ctx.exception.kind, ValidationKind.MAX_DURATION_EXCEEDED)
        self.assertEqual(ctx.exception.max_days, 30)

        with self.assertRaises(BookingValidationError):
            validate_booking(_state(), *_range("2024-02-10", "2024-02-14"), [], NOW, max_days=4)

    def test_conflict_lists_overlapping_reservations(self):
        intervals = [
            _booking("r1", date(2024, 2, 15), date(2024, 2, 20), ReservationStatus.ACTIVE),
            _booking("gone", date(2024, 2, 18), date(2024, 2, 19), ReservationStatus.CANCELLED),
        ]
        start, end = _range("2024-02-18", "2024-02-22")

        with self.assertRaises(BookingValidationError) as ctx:
            validate_booking(_state(), start, end, intervals, NOW)
        self.assertEqual(ctx.exception.kind, ValidationKind.CONFLICT)
        self.assertEqual([interval.id for interval in ctx.exception.conflicts], ["r1"])

    def test_out_of_service_equipment_is_rejected(self):
        start, end = _range("2024-02-12", "2024-02-14")
        with self.assertRaises(BookingValidationError) as ctx:
            validate_booking(_state(EquipmentStatus.OUT_OF_ORDER), start, end, [], NOW)
        self.assertEqual(ctx.exception.kind, ValidationKind.EQUIPMENT_UNAVAILABLE)
        self.assertIn("out of order", ctx.exception.message)


class ValidateExtensionTests(unittest.TestCase):
    def setUp(self):
        self.reservation = _booking("mine", date(2024, 2, 12), date(2024, 2, 14), ReservationStatus.CONFIRMED)

    def test_extension_into_free_days(self):
        intervals = [self.reservation, _booking("next", date(2024, 2, 18), date(2024, 2, 19))]
        new_end = parse_timestamp("2024-02-17", end_of_day_if_date=True)

        quote = validate_extension(_state(), self.reservation, new_end, intervals)
        self.assertEqual(quote.total_days, 6)
        self.assertEqual(quote.total_price, 720.0)

    def test_extension_conflict(self):
        intervals = [self.reservation, _booking("next", date(2024, 2, 16), date(2024, 2, 19))]
        new_end = parse_timestamp("2024-02-17", end_of_day_if_date=True)

        with self.assertRaises(BookingValidationError) as ctx:
            validate_extension(_state(), self.reservation, new_end, intervals)
        self.assertEqual(ctx.exception.kind, ValidationKind.CONFLICT)
        self.assertEqual([interval.id for interval in ctx.exception.conflicts], ["next"])

    def test_whole_rental_stays_within_maximum_duration(self):
        within = parse_timestamp("2024-02-21", end_of_day_if_date=True)
        self.assertEqual(validate_extension(_state(), self.reservation, within, [], max_days=10).total_days, 10)

        beyond = parse_timestamp("2024-02-22", end_of_day_if_date=True)
        with self.assertRaises(BookingValidationError) as ctx:
            validate_extension(_state(), self.reservation, beyond, [], max_days=10)
        self.assertEqual(ctx.exception.kind, ValidationKind.MAX_DURATION_EXCEEDED)
        self.assertEqual(ctx.exception.max_days, 10)

    def test_new_end_must_move_forward(self):
        with self.assertRaises(BookingValidationError) as ctx:
            validate_extension(_state(), self.reservation, self.reservation.end, [])
        self.assertEqual(ctx.exception.kind, ValidationKind.END_BEFORE_START)

    def test_closed_reservations_cannot_be_extended(self):
        for status in [ReservationStatus.COMPLETED, ReservationStatus.CANCELLED]:
            reservation = _booking("old", date(2024, 2, 1), date(2024, 2, 3), status)
            with self.assertRaises(BookingValidationError) as ctx:
                validate_extension(_state(), reservation, datetime(2024, 2, 5), [])
            self.assertEqual(ctx.exception.kind, ValidationKind.NOT_EXTENDABLE)


class FilterAvailableEquipmentTests(unittest.TestCase):
    def test_only_free_available_equipment_is_kept(self):
        states = [
            _state(equipment_id="free"),
            _state(equipment_id="booked"),
            _state(equipment_id="cancelled-only"),
            _state(EquipmentStatus.MAINTENANCE, equipment_id="serviced"),
            _state(EquipmentStatus.RENTED, equipment_id="rented"),
        ]
        intervals = {
            "booked": [_booking("b1", date(2024, 3, 3), date(2024, 3, 4), equipment_id="booked")],
            "cancelled-only": [
                _booking("c1", date(2024, 3, 1), date(2024, 3, 9), ReservationStatus.CANCELLED, "cancelled-only")
            ],
        }
        start, end = _range("2024-03-01", "2024-03-05")

        available = filter_available_equipment(states, intervals, start, end)
        self.assertEqual([state.equipment_id for state in available], ["free", "cancelled-only"])


class PlaceholderIntervalTests(unittest.TestCase):
    def test_placeholder_blocks_the_whole_window(self):
        start, end = _range("2024-03-01", "2024-03-31")
        interval = placeholder_interval("E1", start, end)

        self.assertEqual(interval.id, "placeholder-E1")
        self.assertEqual(interval.status, ReservationStatus.PENDING)
        self.assertTrue(interval.is_blocking)
        self.assertEqual((interval.start, interval.end), (start, end))


if __name__ == "__main__":
    unittest.main()
