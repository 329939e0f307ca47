"""
Tests for slot generation and the doctor availability model.

Pure functions only, no database.
"""

import unittest
from datetime import datetime, time
from types import SimpleNamespace

from clinic_scheduling.domain.scheduling.availability import (
    AvailabilityProfile,
    LunchBreak,
    Weekday,
    parse_weekdays,
)
from clinic_scheduling.domain.scheduling.exceptions import BookingValidationError
from clinic_scheduling.domain.scheduling.slot_generator import DaySlots, generate_slots
from clinic_scheduling.domain.scheduling.time_calculator import (
    month_bounds,
    parse_hhmm,
    parse_iso_date,
    parse_year_month,
)

from .helpers import EARLY, MONDAY, TUESDAY, at, profile


class TestSlotArithmetic(unittest.TestCase):
    def test_thirty_minute_service_yields_sixteen_slots(self):
        slots = generate_slots(profile(), 30, MONDAY, EARLY)

        self.assertEqual(len(slots), 16)
        self.assertEqual(slots[0].time, "09:00")
        self.assertEqual(slots[-1].time, "16:30")
        self.assertEqual(slots[-1].end, at(MONDAY, "17:00"))

    def test_forty_five_minute_service_drops_trailing_partial_slot(self):
        slots = generate_slots(profile(), 45, MONDAY, EARLY)

        self.assertEqual(len(slots), 10)
        self.assertEqual(slots[-1].time, "15:45")
        self.assertNotIn("16:30", [s.time for s in slots])

    def test_slots_are_contiguous_and_ordered(self):
        slots = generate_slots(profile(), 30, MONDAY, EARLY)
        for previous, current in zip(slots, slots[1:]):
            self.assertEqual(previous.end, current.start)

    def test_window_not_a_multiple_of_duration(self):
        slots = generate_slots(profile("09:00", "10:00"), 25, MONDAY, EARLY)
        self.assertEqual([s.time for s in slots], ["09:00", "09:25"])

    def test_duration_longer_than_window_yields_nothing(self):
        self.assertEqual(generate_slots(profile("09:00", "09:20"), 30, MONDAY, EARLY), [])

    def test_non_positive_duration_rejected(self):
        with self.assertRaises(BookingValidationError):
            generate_slots(profile(), 0, MONDAY, EARLY)
        with self.assertRaises(BookingValidationError):
            generate_slots(profile(), -15, MONDAY, EARLY)


class TestWeekdayGating(unittest.TestCase):
    def test_non_working_day_returns_no_slots(self):
        monday_only = profile(days=["MONDAY"])

        self.assertEqual(generate_slots(monday_only, 30, TUESDAY, EARLY), [])
        self.assertEqual(generate_slots(monday_only, 45, TUESDAY, EARLY), [])
        self.assertEqual(len(generate_slots(monday_only, 30, MONDAY, EARLY)), 16)

    def test_weekday_of_date(self):
        self.assertEqual(Weekday.of(MONDAY), Weekday.MONDAY)
        self.assertEqual(Weekday.of(TUESDAY), Weekday.TUESDAY)

    def test_parse_weekdays_normalizes_and_skips_unknown(self):
        days = parse_weekdays(["monday", " Friday ", "Funday"])
        self.assertEqual(days, frozenset({Weekday.MONDAY, Weekday.FRIDAY}))

    def test_profile_without_days_is_not_bookable(self):
        self.assertFalse(profile(days=[]).is_bookable)
        self.assertTrue(profile().is_bookable)

    def test_profile_from_doctor_falls_back_to_default_hours(self):
        doctor = SimpleNamespace(available_from=None, available_to=None, available_days=["MONDAY"])
        result = AvailabilityProfile.from_doctor(doctor)

        self.assertEqual(result.available_from, time(9, 0))
        self.assertEqual(result.available_to, time(17, 0))
        self.assertEqual(result.ordered_days(), ["MONDAY"])

    def test_inverted_working_hours_rejected(self):
        with self.assertRaises(BookingValidationError):
            profile("17:00", "09:00")


class TestPastSlots(unittest.TestCase):
    def test_slots_at_or_before_now_are_past_today(self):
        now = at(MONDAY, "10:00")
        slots = generate_slots(profile(), 30, MONDAY, now)

        past = [s.time for s in slots if s.is_past]
        self.assertEqual(past, ["09:00", "09:30", "10:00"])
        for slot in slots:
            if slot.is_past:
                self.assertFalse(slot.available)
        self.assertTrue(next(s for s in slots if s.time == "10:30").available)

    def test_future_day_has_no_past_slots(self):
        now = at(MONDAY, "16:59")
        slots = generate_slots(profile(), 30, TUESDAY, now)
        self.assertFalse(any(s.is_past for s in slots))


class TestLunchBreak(unittest.TestCase):
    def test_lunch_slots_flagged_and_never_available(self):
        lunch = LunchBreak(time(12, 0), time(13, 0))
        slots = generate_slots(profile(), 30, MONDAY, EARLY, lunch)

        lunch_slots = [s.time for s in slots if s.is_lunch_break]
        self.assertEqual(lunch_slots, ["12:00", "12:30"])
        self.assertEqual(len(slots), 16)
        for slot in slots:
            if slot.is_lunch_break:
                self.assertFalse(slot.available)

    def test_slot_straddling_lunch_is_flagged(self):
        lunch = LunchBreak(time(12, 0), time(13, 0))
        slots = generate_slots(profile(), 45, MONDAY, EARLY, lunch)

        # 11:15-12:00 ends exactly at lunch, 12:00 and 12:45 touch it
        self.assertEqual([s.time for s in slots if s.is_lunch_break], ["12:00", "12:45"])

    def test_day_counts_exclude_lunch_slots(self):
        lunch = LunchBreak(time(12, 0), time(13, 0))
        day = DaySlots(MONDAY, True, generate_slots(profile(), 30, MONDAY, EARLY, lunch))

        self.assertEqual(day.total_count, 14)
        self.assertEqual(day.available_count, 14)
        self.assertFalse(day.fully_booked)

    def test_lunch_break_from_config(self):
        self.assertEqual(str(LunchBreak.from_config("12:00", "13:00")), "12:00-13:00")
        self.assertIsNone(LunchBreak.from_config("", ""))

    def test_inverted_lunch_break_rejected(self):
        with self.assertRaises(BookingValidationError):
            LunchBreak(time(13, 0), time(12, 0))


class TestTimeParsing(unittest.TestCase):
    def test_parse_hhmm(self):
        self.assertEqual(parse_hhmm("09:05"), time(9, 5))
        for bad in ("9", "25:00", "ab:cd", None):
            with self.assertRaises(BookingValidationError):
                parse_hhmm(bad)

    def test_parse_year_month(self):
        self.assertEqual(parse_year_month("2030-02"), (2030, 2))
        for bad in ("2030-13", "2030", "jan-2030", "10000-01", "9999-12", "0001-01"):
            with self.assertRaises(BookingValidationError):
                parse_year_month(bad)

    def test_parse_iso_date(self):
        self.assertEqual(parse_iso_date("2030-01-07"), MONDAY)
        with self.assertRaises(BookingValidationError):
            parse_iso_date("2030-02-30")
        for out_of_range in ("9999-12-31", "0001-01-01"):
            with self.assertRaises(BookingValidationError):
                parse_iso_date(out_of_range)

    def test_month_bounds_cover_whole_month(self):
        start, end = month_bounds(2030, 2)
        self.assertEqual(start, datetime(2030, 2, 1))
        self.assertEqual(end, datetime(2030, 3, 1))
