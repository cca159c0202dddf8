from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.db import connection
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from appointments.models import Appointment, DoctorAvailability
from appointments.tasks import dispatch_due_reminders_task, send_appointment_reminders_task
from client_profile.services import create_client
from common.choices import AppointmentStatus, AvailabilityStatus, OrderStatus, ReminderType
from doctors.models import Doctor
from medical_services.models import Service
from notifications.models import Notification, Reminder
from orders.models import Order
from users.models import User


def aware(*args):
    return timezone.make_aware(datetime(*args))


class AppointmentFixturesMixin:
    def make_fixtures(self):
        self.admin = User.objects.create_user(username="admin", password="password", is_staff=True)
        self.profile, _ = create_client(email="thu@example.com", full_name="Thu Le")
        self.other_profile, _ = create_client(email="nam@example.com", full_name="Nam Ho")
        self.doctor = Doctor.objects.create(full_name="Dr. Quang", email="quang@example.com", specialty="Psychiatry")
        self.service = Service.objects.create(name="Family therapy", price=Decimal("120.00"), number_of_sessions=2)

    def make_order(self, profile=None, sessions=2):
        order = Order.objects.create(
            client=profile or self.profile,
            doctor=self.doctor,
            service=self.service,
            number_of_sessions=sessions,
            amount=Decimal("240.00"),
        )
        order.change_status(OrderStatus.CONFIRMED)
        return order

    def make_slot(self, day=1, hour=9, **kwargs):
        return DoctorAvailability.objects.create(
            doctor=self.doctor,
            available_date=date(2030, 5, day),
            start_time=time(hour, 0),
            end_time=time(hour + 1, 0),
            **kwargs,
        )


class AvailabilitySyncTests(AppointmentFixturesMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.order = Order.objects.create(
            client=self.profile, doctor=self.doctor, service=self.service, number_of_sessions=2, amount=Decimal("1")
        )

    def _book(self, slot, number=1):
        return Appointment.objects.create(
            order=self.order, availability=slot, session_number=number, scheduled_at=slot.starts_at
        )

    def test_booking_marks_slot_booked_and_cancelling_releases_it(self):
        slot = self.make_slot()
        appointment = self._book(slot)
        slot.refresh_from_db()
        self.assertEqual(slot.status, AvailabilityStatus.BOOKED)

        appointment.cancel()
        slot.refresh_from_db()
        self.assertEqual(slot.status, AvailabilityStatus.AVAILABLE)

    def test_deleting_the_appointment_releases_the_slot(self):
        slot = self.make_slot()
        self._book(slot).delete()

        slot.refresh_from_db()
        self.assertEqual(slot.status, AvailabilityStatus.AVAILABLE)

    def test_moving_to_another_slot_releases_the_old_one(self):
        old, new = self.make_slot(day=1), self.make_slot(day=2)
        appointment = self._book(old)

        appointment.availability = new
        appointment.save()

        old.refresh_from_db()
        new.refresh_from_db()
        self.assertEqual(old.status, AvailabilityStatus.AVAILABLE)
        self.assertEqual(new.status, AvailabilityStatus.BOOKED)

    def test_blocked_slot_is_left_alone(self):
        slot = self.make_slot(status=AvailabilityStatus.BLOCKED)
        self._book(slot).cancel()

        slot.refresh_from_db()
        self.assertEqual(slot.status, AvailabilityStatus.BLOCKED)


class DoctorAvailabilityAPITests(AppointmentFixturesMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()

    def _payload(self, **overrides):
        payload = {
            "doctor": self.doctor.pk,
            "available_date": "2030-05-01",
            "start_time": "09:00",
            "end_time": "10:00",
        }
        payload.update(overrides)
        return payload

    def test_admin_creates_slot(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(reverse("doctor-availability-list"), self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()["status"], AvailabilityStatus.AVAILABLE)

    def test_start_must_precede_end(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            reverse("doctor-availability-list"), self._payload(start_time="10:00", end_time="10:00"), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_slot_is_a_conflict(self):
        self.make_slot(day=1, hour=9)
        self.client.force_authenticate(self.admin)

        response = self.client.post(reverse("doctor-availability-list"), self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_updating_a_slot_onto_another_is_a_conflict(self):
        self.make_slot(day=1, hour=9)
        other = self.make_slot(day=1, hour=11)
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse("doctor-availability-detail", args=[other.pk]),
            {"start_time": "09:00", "end_time": "10:00"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_anonymous_can_read_but_not_write(self):
        self.make_slot()
        self.assertEqual(self.client.get(reverse("doctor-availability-list")).status_code, status.HTTP_200_OK)
        response = self.client.post(
            reverse("doctor-availability-list"), self._payload(available_date="2030-05-02"), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_doctor_slots_with_filters(self):
        early = self.make_slot(day=1, hour=9)
        later = self.make_slot(day=3, hour=9)
        self.make_slot(day=3, hour=11, is_active=False)
        self.make_slot(day=9, hour=9, status=AvailabilityStatus.BLOCKED)
        url = reverse("doctor-availability-by-doctor", args=[self.doctor.pk])

        response = self.client.get(url, {"startDate": "2030-05-01", "endDate": "2030-05-05", "isActive": "true"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in response.json()], [early.pk, later.pk])

        response = self.client.get(url, {"status": "blocked"})
        self.assertEqual(len(response.json()), 1)

        response = self.client.get(url)
        self.assertEqual(len(response.json()), 4)

    def test_doctor_slots_unknown_doctor(self):
        response = self.client.get(reverse("doctor-availability-by-doctor", args=[9999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class AppointmentAPITests(AppointmentFixturesMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()
        self.order = self.make_order()
        self.first, self.second = self.order.appointments.order_by("session_number")

    # ================= Client =================
    def test_my_lists_only_the_callers_appointments(self):
        self.make_order(profile=self.other_profile)
        self.client.force_authenticate(self.profile.user)

        response = self.client.get(reverse("appointments-my"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = response.json()
        self.assertEqual([row["id"] for row in rows], [self.second.pk, self.first.pk])
        self.assertEqual(rows[0]["doctor"]["full_name"], "Dr. Quang")
        self.assertEqual(rows[0]["service"]["name"], "Family therapy")
        self.assertEqual(rows[0]["progress"], {"completed_sessions": 0, "total_sessions": 2})

    def test_client_cancels_own_appointment(self):
        self.client.force_authenticate(self.profile.user)

        response = self.client.put(reverse("appointments-cancel", args=[self.first.pk]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.first.refresh_from_db()
        self.assertEqual(self.first.status, AppointmentStatus.CANCELLED)
        self.assertTrue(
            Notification.objects.filter(
                user=self.profile.user, type=Notification.Type.APPOINTMENT_CANCELLED
            ).exists()
        )

        response = self.client.put(reverse("appointments-cancel", args=[self.first.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch("appointments.models.send_sms")
    def test_cancellation_sms_honours_preference(self, mock_send_sms):
        self.profile.user.phone_number = "+84912345678"
        self.profile.user.save(update_fields=["phone_number"])

        self.first.cancel()
        mock_send_sms.assert_called_once()
        self.assertEqual(mock_send_sms.call_args[0][0], "+84912345678")

        mock_send_sms.reset_mock()
        self.profile.receive_sms_notifications = False
        self.profile.save(update_fields=["receive_sms_notifications"])
        self.second.cancel()
        mock_send_sms.assert_not_called()

    def test_client_cannot_cancel_someone_elses_or_completed_appointment(self):
        self.client.force_authenticate(self.other_profile.user)
        response = self.client.put(reverse("appointments-cancel", args=[self.first.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.first.complete()
        self.client.force_authenticate(self.profile.user)
        response = self.client.put(reverse("appointments-cancel", args=[self.first.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_clients_cannot_use_staff_endpoints(self):
        self.client.force_authenticate(self.profile.user)
        self.assertEqual(self.client.get(reverse("appointments-list")).status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.put(reverse("appointments-complete", args=[self.first.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    # ================= Staff =================
    def test_staff_list_includes_names(self):
        self.client.force_authenticate(self.admin)

        response = self.client.get(reverse("appointments-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = response.json()["results"][0]
        self.assertEqual(row["client_name"], "Thu Le")
        self.assertEqual(row["doctor_name"], "Dr. Quang")
        self.assertEqual(row["service_name"], "Family therapy")

    def test_complete_rolls_up_progress(self):
        self.client.force_authenticate(self.admin)

        response = self.client.put(
            reverse("appointments-complete", args=[self.first.pk]), {"completion_notes": "Good"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.IN_PROGRESS)

        self.client.put(reverse("appointments-complete", args=[self.second.pk]), {}, format="json")
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 2)
        self.assertEqual(self.order.status, OrderStatus.COMPLETED)

        response = self.client.put(reverse("appointments-complete", args=[self.second.pk]), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_complete_rejects_cancelled(self):
        self.first.cancel()
        self.client.force_authenticate(self.admin)

        response = self.client.put(reverse("appointments-complete", args=[self.first.pk]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_endpoint(self):
        self.client.force_authenticate(self.admin)
        url = reverse("appointments-status", args=[self.first.pk])

        self.assertEqual(self.client.put(url, {"status": "lost"}, format="json").status_code, 400)

        response = self.client.put(url, {"status": "completed", "notes": "on time"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["notes"], "on time")
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 1)

        self.client.put(url, {"status": "confirmed"}, format="json")
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 0)
        self.assertEqual(self.order.status, OrderStatus.CONFIRMED)

    def test_reschedule(self):
        self.client.force_authenticate(self.admin)
        url = reverse("appointments-reschedule", args=[self.first.pk])

        self.assertEqual(self.client.put(url, {}, format="json").status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put(url, {"new_scheduled_at": "2030-06-01T14:00:00Z"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.first.refresh_from_db()
        self.assertEqual(self.first.status, AppointmentStatus.RESCHEDULED)
        self.assertEqual(self.first.scheduled_at, datetime(2030, 6, 1, 14, 0, tzinfo=dt_timezone.utc))
        self.assertTrue(
            Notification.objects.filter(
                user=self.profile.user, type=Notification.Type.APPOINTMENT_RESCHEDULED
            ).exists()
        )

    def test_rescheduling_a_completed_session_rolls_progress_back(self):
        self.first.complete()
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 1)
        self.client.force_authenticate(self.admin)

        response = self.client.put(
            reverse("appointments-reschedule", args=[self.first.pk]),
            {"new_scheduled_at": "2030-06-01T14:00:00Z"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 0)
        self.assertEqual(self.order.status, OrderStatus.CONFIRMED)

    def test_week_is_inclusive_and_validated(self):
        Appointment.objects.filter(pk=self.first.pk).update(scheduled_at=aware(2030, 5, 6, 8, 0))
        Appointment.objects.filter(pk=self.second.pk).update(scheduled_at=aware(2030, 5, 12, 20, 0))
        self.client.force_authenticate(self.admin)
        url = reverse("appointments-week")

        response = self.client.get(url, {"start": "2030-05-06", "end": "2030-05-12"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in response.json()], [self.first.pk, self.second.pk])

        response = self.client.get(url, {"start": "2030-05-07", "end": "2030-05-11"})
        self.assertEqual(response.json(), [])

        self.assertEqual(self.client.get(url, {"start": "2030-05-06"}).status_code, 400)
        self.assertEqual(self.client.get(url, {"start": "yesterday", "end": "2030-05-12"}).status_code, 400)

    def test_doctor_appointments_are_paginated_by_ten(self):
        self.make_order(sessions=2)
        for _ in range(4):
            Order.objects.create(
                client=self.profile, doctor=self.doctor, service=self.service, number_of_sessions=2, amount=1
            ).change_status(OrderStatus.CONFIRMED)
        self.client.force_authenticate(self.admin)
        url = reverse("appointments-by-doctor", args=[self.doctor.pk])

        response = self.client.get(url)
        payload = response.json()
        self.assertEqual(payload["count"], 12)
        self.assertEqual(len(payload["results"]), 10)
        self.assertEqual(payload["total_pages"], 2)

        response = self.client.get(url, {"page": 2, "limit": 5})
        self.assertEqual(len(response.json()["results"]), 5)

        self.assertEqual(self.client.get(reverse("appointments-by-doctor", args=[9999])).status_code, 404)

    def test_staff_delete_reruns_rollup(self):
        self.first.complete()
        self.client.force_authenticate(self.admin)

        response = self.client.delete(reverse("appointments-detail", args=[self.first.pk]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 0)


class SessionAPITests(AppointmentFixturesMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()
        self.order = Order.objects.create(
            client=self.profile, doctor=self.doctor, service=self.service, number_of_sessions=2, amount=Decimal("1")
        )
        self.client.force_authenticate(self.admin)

    def test_create_appends_next_session_number(self):
        url = reverse("sessions-list")
        first = self.client.post(url, {"order_id": self.order.pk, "scheduled_at": "2030-05-01T09:00:00Z"}, format="json")
        second = self.client.post(
            url, {"order_id": self.order.pk, "scheduled_at": "2030-05-08T09:00:00Z", "notes": "bring notes"},
            format="json",
        )

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(first.json()["session_number"], 1)
        self.assertEqual(second.json()["session_number"], 2)
        self.assertEqual(second.json()["order_id"], self.order.pk)

    def test_create_validation(self):
        url = reverse("sessions-list")
        response = self.client.post(url, {"order_id": 9999, "scheduled_at": "2030-05-01T09:00:00Z"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post(url, {"order_id": self.order.pk, "scheduled_at": "soon"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_sessions_of_an_order(self):
        self.order.change_status(OrderStatus.CONFIRMED)

        response = self.client.get(reverse("sessions-by-order", args=[self.order.pk]))
        self.assertEqual([row["session_number"] for row in response.json()], [1, 2])

        response = self.client.get(reverse("sessions-by-order", args=[9999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_status_change_runs_rollup(self):
        self.order.change_status(OrderStatus.CONFIRMED)
        session = self.order.appointments.get(session_number=1)
        url = reverse("sessions-status", args=[session.pk])

        response = self.client.patch(url, {"status": "rescheduled"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(url, {"status": "completed"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 1)
        self.assertEqual(self.order.status, OrderStatus.IN_PROGRESS)


class ImportLegacySessionsTests(AppointmentFixturesMixin, TestCase):
    table = "legacy_sessions"

    def setUp(self):
        self.make_fixtures()
        self.order = Order.objects.create(
            client=self.profile, doctor=self.doctor, service=self.service, number_of_sessions=2, amount=Decimal("1")
        )
        with connection.cursor() as cursor:
            cursor.execute(
                f"CREATE TABLE {self.table} (id integer PRIMARY KEY, order_id integer, scheduled_at datetime, "
                "status varchar(20), notes text, created_at datetime, updated_at datetime)"
            )
            cursor.executemany(
                f"INSERT INTO {self.table} (order_id, scheduled_at, status, notes, created_at, updated_at) "
                "VALUES (%s, %s, %s, %s, %s, %s)",
                [
                    (self.order.pk, "2030-01-08 10:00:00", "pending", None, None, None),
                    (self.order.pk, "2030-01-01 10:00:00", "completed", "first visit", None, None),
                    (9999, "2030-01-01 10:00:00", "pending", "", None, None),
                ],
            )

    def tearDown(self):
        with connection.cursor() as cursor:
            cursor.execute(f"DROP TABLE IF EXISTS {self.table}")

    def _run(self, *args):
        out = StringIO()
        call_command("import_legacy_sessions", "--table", self.table, *args, stdout=out)
        return out.getvalue()

    def test_import_numbers_sessions_by_time_and_rolls_up(self):
        output = self._run()

        sessions = list(self.order.appointments.order_by("session_number"))
        self.assertEqual([s.status for s in sessions], [AppointmentStatus.COMPLETED, AppointmentStatus.PENDING])
        self.assertEqual(sessions[0].notes, "first visit")
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 1)
        self.assertEqual(self.order.status, OrderStatus.IN_PROGRESS)
        self.assertIn("Imported 2 appointments for 1 orders", output)
        self.assertIn("1 unknown orders", output)

    def test_import_is_idempotent(self):
        self._run()
        output = self._run()

        self.assertEqual(self.order.appointments.count(), 2)
        self.assertIn("1 orders already had appointments", output)

    def test_dry_run_rolls_back(self):
        output = self._run("--dry-run")

        self.assertIn("[dry run]", output)
        self.assertFalse(self.order.appointments.exists())

    def test_sessions_without_a_valid_time_are_skipped(self):
        undated_order = Order.objects.create(
            client=self.profile, doctor=self.doctor, service=self.service, number_of_sessions=1, amount=Decimal("1")
        )
        with connection.cursor() as cursor:
            cursor.executemany(
                f"INSERT INTO {self.table} (order_id, scheduled_at, status, notes, created_at, updated_at) "
                "VALUES (%s, %s, %s, %s, %s, %s)",
                [
                    (undated_order.pk, None, "pending", "", None, None),
                    (self.order.pk, "sometime", "pending", "", None, None),
                ],
            )

        output = self._run()

        self.assertEqual(self.order.appointments.count(), 2)
        self.assertFalse(undated_order.appointments.exists())
        self.assertIn("Imported 2 appointments for 1 orders", output)
        self.assertIn("2 sessions without a valid time", output)

    def test_missing_table_is_skipped(self):
        out = StringIO()
        call_command("import_legacy_sessions", "--table", "no_such_table", stdout=out)
        self.assertIn("does not exist", out.getvalue())


class ReminderTaskTests(AppointmentFixturesMixin, TestCase):
    def setUp(self):
        self.make_fixtures()

    def test_dispatch_due_reminders_task_reports_counts(self):
        order = Order.objects.create(
            client=self.profile, doctor=self.doctor, service=self.service, number_of_sessions=1, amount=Decimal("1")
        )
        appointment = Appointment.objects.create(
            order=order, session_number=1, scheduled_at=timezone.now() + timedelta(hours=2)
        )
        Reminder.objects.create(
            client=self.profile,
            appointment=appointment,
            type=ReminderType.PUSH,
            scheduled_send=timezone.now() - timedelta(minutes=5),
        )

        result = dispatch_due_reminders_task.apply().get()

        self.assertEqual(result, {"processed": 1, "sent": 1, "failed": 0, "errors": 0})

    @patch("appointments.tasks.dispatch_upcoming_reminders")
    def test_send_appointment_reminders_task_converts_window(self, mock_dispatch):
        mock_dispatch.return_value = {"processed": 3, "errors": []}

        result = send_appointment_reminders_task.apply(kwargs={"window_minutes": 30}).get()

        mock_dispatch.assert_called_once_with(window=timedelta(minutes=30))
        self.assertEqual(result, {"processed": 3, "errors": 0})
