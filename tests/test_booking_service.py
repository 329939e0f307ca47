"""
Tests for the booking transaction coordinator.

Conflict rules, invoice derivation, atomicity and the bounded retry.
"""

from datetime import datetime, timezone
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError, OperationalError

from clinic_scheduling.domain.billing.invoice_service import calculate_amounts
from clinic_scheduling.domain.scheduling.booking_service import BookingService
from clinic_scheduling.domain.scheduling.exceptions import (
    BookingStorageError,
    BookingValidationError,
    DuplicateBookingError,
    NotFoundError,
    SlotUnavailableError,
)
from clinic_scheduling.models import Appointment, Service
from clinic_scheduling.models_invoice import Invoice

from .helpers import MONDAY, TUESDAY, SchedulingTestCase, at

INVOICE_NUMBER = "clinic_scheduling.domain.billing.invoice_service.generate_invoice_number"


def locked_error():
    return OperationalError("INSERT INTO invoices", {}, Exception("database is locked"))


class TestBookAppointment(SchedulingTestCase):
    def setUp(self):
        super().setUp()
        self.service = BookingService(self.db)

    def book(self, patient, service, start, doctor=None, **kwargs):
        return self.service.book_appointment(
            self.context,
            patient_id=patient.id,
            doctor_id=(doctor or self.house).id,
            service_id=service.id,
            appointment_date=start,
            **kwargs,
        )

    def test_booking_creates_appointment_and_invoice(self):
        appointment = self.book(self.alice, self.consultation, at(MONDAY, "10:00"), notes="  Follow-up ")

        self.assertEqual(appointment.status, "SCHEDULED")
        self.assertEqual(appointment.duration, 30)
        self.assertEqual(appointment.appointment_date, at(MONDAY, "10:00"))
        self.assertEqual(appointment.clinic_id, self.clinic.id)

        invoice = appointment.invoice
        self.assertIsNotNone(invoice)
        self.assertEqual(invoice.status, "PENDING")
        self.assertEqual(invoice.amount, 100.0)
        self.assertEqual(invoice.tax, 10.0)
        self.assertEqual(invoice.total_amount, 110.0)
        self.assertEqual(invoice.due_date, at(MONDAY, "10:00"))
        self.assertEqual(invoice.patient_id, self.alice.id)
        self.assertEqual(invoice.description, "Consultation - Appointment with Dr. Gregory House")
        self.assertRegex(invoice.invoice_number, r"^INV-\d+-[0-9A-F]{8}$")

    def test_tax_rounded_to_cents(self):
        self.assertEqual(calculate_amounts(33.33, 0.10), (33.33, 3.33, 36.66))
        self.assertEqual(calculate_amounts(0, 0.10), (0.0, 0.0, 0.0))

    def test_invoice_numbers_are_unique(self):
        first = self.book(self.alice, self.consultation, at(MONDAY, "10:00"))
        second = self.book(self.bob, self.consultation, at(MONDAY, "11:00"))
        self.assertNotEqual(first.invoice.invoice_number, second.invoice.invoice_number)

    def test_overlapping_request_rejected(self):
        self.book(self.alice, self.consultation, at(MONDAY, "10:00"))

        with self.assertRaises(SlotUnavailableError) as ctx:
            self.book(self.bob, self.quick, at(MONDAY, "10:15"))

        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.details["doctor_name"], "Dr. Gregory House")
        self.assertEqual(ctx.exception.details["conflicting_start"], "2030-01-07T10:00:00")
        self.assertEqual(self.count(Appointment), 1)
        self.assertEqual(self.count(Invoice), 1)

    def test_adjacent_request_succeeds(self):
        self.book(self.alice, self.consultation, at(MONDAY, "10:00"))
        appointment = self.book(self.bob, self.extended, at(MONDAY, "10:30"))

        self.assertEqual(appointment.status, "SCHEDULED")
        self.assertEqual(self.count(Appointment), 2)

    def test_longer_service_overlapping_next_booking_rejected(self):
        self.book(self.alice, self.consultation, at(MONDAY, "10:30"))
        with self.assertRaises(SlotUnavailableError):
            self.book(self.bob, self.extended, at(MONDAY, "10:00"))

    def test_same_patient_same_doctor_same_day_rejected(self):
        self.book(self.alice, self.consultation, at(MONDAY, "09:00"))

        with self.assertRaises(DuplicateBookingError) as ctx:
            self.book(self.alice, self.consultation, at(MONDAY, "14:00"))

        self.assertIn("Dr. Gregory House", ctx.exception.message)
        self.assertIn("2030-01-07", ctx.exception.message)
        self.assertEqual(self.count(Appointment), 1)

    def test_same_patient_other_day_or_doctor_allowed(self):
        self.book(self.alice, self.consultation, at(MONDAY, "09:00"))
        self.book(self.alice, self.consultation, at(TUESDAY, "09:00"))
        self.book(self.alice, self.consultation, at(MONDAY, "09:00"), doctor=self.cuddy)

        self.assertEqual(self.count(Appointment), 3)

    def test_cancelled_appointment_does_not_block(self):
        self.add_appointment(
            self.house, self.alice, self.consultation, at(MONDAY, "10:00"), status="CANCELLED"
        )
        self.book(self.alice, self.consultation, at(MONDAY, "10:00"))
        self.assertEqual(self.count(Appointment), 2)

    def test_aware_datetime_converted_to_clinic_time(self):
        start = datetime(2030, 1, 7, 10, 0, 42, tzinfo=timezone.utc)
        appointment = self.book(self.alice, self.consultation, start)
        self.assertEqual(appointment.appointment_date, at(MONDAY, "10:00"))

    def test_missing_references(self):
        with self.assertRaises(NotFoundError):
            self.book(self.alice, self.consultation, at(MONDAY, "10:00"), doctor=self.kelso)
        with self.assertRaises(NotFoundError):
            self.book(self.alice, self.retired, at(MONDAY, "10:00"))
        with self.assertRaises(NotFoundError):
            self.service.book_appointment(
                self.context, 9999, self.house.id, self.consultation.id, at(MONDAY, "10:00")
            )
        self.assertEqual(self.count(Appointment), 0)

    def test_service_not_offered(self):
        with self.assertRaises(BookingValidationError):
            self.book(self.alice, self.extended, at(MONDAY, "10:00"), doctor=self.cuddy)

    def test_doctor_without_working_days_not_bookable(self):
        self.cuddy.available_days = []
        self.db.commit()

        with self.assertRaises(BookingValidationError):
            self.book(self.alice, self.consultation, at(MONDAY, "10:00"), doctor=self.cuddy)
        self.assertEqual(self.count(Appointment), 0)

    def test_services_longer_than_a_day_not_bookable(self):
        marathon = Service(clinic_id=self.clinic.id, name="Sleep Study", duration=1500, price=500.0)
        self.db.add(marathon)
        self.db.flush()
        self.house.services.append(marathon)
        self.db.commit()

        with self.assertRaises(BookingValidationError):
            self.book(self.alice, marathon, at(MONDAY, "09:00"))

        # A booked overnight span would otherwise hide from the next day's overlap check
        self.book(self.bob, self.consultation, at(TUESDAY, "09:30"))
        self.assertEqual(self.count(Appointment), 1)

    def test_staff_must_name_the_patient(self):
        with self.assertRaises(BookingValidationError):
            self.service.book_appointment(
                self.context, None, self.house.id, self.consultation.id, at(MONDAY, "10:00")
            )


class TestBookingAtomicity(SchedulingTestCase):
    def setUp(self):
        super().setUp()
        self.service = BookingService(self.db)

    def book(self, patient, start):
        return self.service.book_appointment(
            self.context, patient.id, self.house.id, self.consultation.id, start
        )

    def test_invoice_failure_leaves_no_appointment(self):
        with patch(INVOICE_NUMBER, side_effect=RuntimeError("invoice numbering down")):
            with self.assertRaises(RuntimeError):
                self.book(self.alice, at(MONDAY, "10:00"))

        self.assertEqual(self.count(Appointment), 0)
        self.assertEqual(self.count(Invoice), 0)

        # The slot is still free afterwards
        self.book(self.alice, at(MONDAY, "10:00"))
        self.assertEqual(self.count(Appointment), 1)

    def test_transient_error_retried_once(self):
        with patch(INVOICE_NUMBER, side_effect=[locked_error(), "INV-1-RETRY"]) as generator:
            appointment = self.book(self.alice, at(MONDAY, "10:00"))

        self.assertEqual(generator.call_count, 2)
        self.assertEqual(appointment.invoice.invoice_number, "INV-1-RETRY")
        self.assertEqual(self.count(Appointment), 1)
        self.assertEqual(self.count(Invoice), 1)

    def test_persistent_storage_error_gives_up(self):
        with patch(INVOICE_NUMBER, side_effect=locked_error()) as generator:
            with self.assertRaises(BookingStorageError) as ctx:
                self.book(self.alice, at(MONDAY, "10:00"))

        self.assertEqual(generator.call_count, 2)
        self.assertEqual(ctx.exception.status_code, 503)
        self.assertIsInstance(ctx.exception.cause, OperationalError)
        self.assertEqual(self.count(Appointment), 0)
        self.assertEqual(self.count(Invoice), 0)

    def test_invoice_number_collision_retried(self):
        with patch(INVOICE_NUMBER, side_effect=["INV-1-SAME", "INV-1-SAME", "INV-2-FRESH"]):
            self.book(self.alice, at(MONDAY, "10:00"))
            second = self.book(self.bob, at(MONDAY, "11:00"))

        self.assertEqual(second.invoice.invoice_number, "INV-2-FRESH")
        self.assertEqual(self.count(Appointment), 2)

    def test_invoice_number_collision_exhausts_retries(self):
        with patch(INVOICE_NUMBER, return_value="INV-1-SAME"):
            self.book(self.alice, at(MONDAY, "10:00"))
            with self.assertRaises(BookingStorageError):
                self.book(self.bob, at(MONDAY, "11:00"))

        self.assertEqual(self.count(Appointment), 1)
        self.assertEqual(self.count(Invoice), 1)

    def test_referential_integrity_error_not_retried(self):
        error = IntegrityError("INSERT INTO invoices", {}, Exception("FOREIGN KEY constraint failed"))
        with patch(INVOICE_NUMBER, side_effect=error) as generator:
            with self.assertRaises(BookingValidationError):
                self.book(self.alice, at(MONDAY, "10:00"))

        self.assertEqual(generator.call_count, 1)
        self.assertEqual(self.count(Appointment), 0)
        self.assertEqual(self.count(Invoice), 0)

    def test_conflicts_are_not_retried(self):
        self.book(self.alice, at(MONDAY, "10:00"))

        with patch(INVOICE_NUMBER) as generator:
            with self.assertRaises(SlotUnavailableError):
                self.book(self.bob, at(MONDAY, "10:00"))

        generator.assert_not_called()
