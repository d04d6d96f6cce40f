import sys
import unittest
from datetime import date, datetime
from pathlib import Path


APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from services.calendar_service import project_calendar
from services.intervals import BookingInterval, EquipmentAvailabilityState, EquipmentStatus, ReservationStatus
from services.recommendation_service import alternative_equipment, build_recommendations, suggested_dates


def _equipment(equipment_id, category="excavation", status=EquipmentStatus.AVAILABLE):
    return EquipmentAvailabilityState(equipment_id, equipment_id.title(), category, current_status=status)


class RecommendationTests(unittest.TestCase):
    def setUp(self):
        self.state = _equipment("E1")
        intervals = [
            BookingInterval.from_dates("r1", "E1", date(2024, 2, 1), date(2024, 2, 3), ReservationStatus.ACTIVE),
            BookingInterval.from_dates("r2", "E1", date(2024, 2, 5), date(2024, 2, 5), ReservationStatus.PENDING),
        ]
        self.days = project_calendar(self.state, intervals, datetime(2024, 2, 1), datetime(2024, 2, 29, 23, 59))

    def test_first_available_days_in_order(self):
        self.assertEqual(
            suggested_dates(self.days),
            [date(2024, 2, 4), date(2024, 2, 6), date(2024, 2, 7), date(2024, 2, 8), date(2024, 2, 9)],
        )
        self.assertEqual(suggested_dates(list(reversed(self.days)), limit=2), [date(2024, 2, 4), date(2024, 2, 6)])

    def test_alternatives_share_category_and_are_available(self):
        catalog = [
            _equipment("E1"),
            _equipment("loader", category="lifting"),
            _equipment("broken", status=EquipmentStatus.OUT_OF_ORDER),
            _equipment("E7"),
            _equipment("E3"),
            _equipment("E9"),
            _equipment("E4"),
        ]
        calls = []

        def lookup(category, exclude_id):
            calls.append((category, exclude_id))
            return catalog

        self.assertEqual(alternative_equipment(self.state, lookup), ["E7", "E3", "E9"])
        self.assertEqual(calls, [("excavation", "E1")])

    def test_build_recommendations(self):
        recommendations = build_recommendations(self.days, self.state, lambda category, exclude_id: [])
        self.assertEqual(len(recommendations.suggested_dates), 5)
        self.assertEqual(recommendations.alternative_equipment, [])


if __name__ == "__main__":
    unittest.main()
