from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock, patch

import requests
from django.core import mail
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from appointments.models import Appointment
from appointments.services.reminders import (
    ReminderDispatchResult,
    dispatch_due_reminders,
    dispatch_upcoming_reminders,
    resolve_user_channel_preferences,
    send_reminder_to_user,
)
from client_profile.services import create_client
from common.choices import AppointmentStatus, ReminderStatus, ReminderType
from doctors.models import Doctor
from medical_services.models import Service
from notifications.models import Notification, Reminder
from notifications.utils import notify_staff, notify_user
from orders.models import Order
from users.models import User

from . import sms_utils


def make_appointment(profile, scheduled_at=None, **kwargs):
    doctor = Doctor.objects.create(full_name="Dr. Linh", email=f"linh{profile.pk}@example.com")
    service = Service.objects.create(name="Counselling", price=Decimal("80.00"), number_of_sessions=4)
    order = Order.objects.create(
        client=profile, doctor=doctor, service=service, number_of_sessions=4, amount=Decimal("320.00")
    )
    return Appointment.objects.create(
        order=order,
        session_number=1,
        scheduled_at=scheduled_at or timezone.now() + timedelta(days=1),
        **kwargs,
    )


class SMSUtilsTests(SimpleTestCase):
    def tearDown(self) -> None:
        sms_utils.get_sms_provider.cache_clear()

    @override_settings(SMS_PROVIDER="console")
    def test_console_provider_writes_to_stdout(self):
        sms_utils.get_sms_provider.cache_clear()

        with patch("notifications.sms_utils.print") as mock_print:
            sms_utils.really_send_sms("+84900000000", "Test message")

        mock_print.assert_called_once_with("Sending SMS to +84900000000: Test message")

    @override_settings(
        SMS_PROVIDER="http",
        SMS_API_KEY="test-key",
        SMS_API_URL="https://sms.example.com/send",
        SMS_SENDER="MINDBRIDGE",
    )
    def test_http_provider_posts_to_gateway(self):
        sms_utils.get_sms_provider.cache_clear()

        with patch("notifications.sms_utils.requests.post") as mock_post:
            mock_post.return_value = Mock(raise_for_status=Mock())
            sms_utils.really_send_sms("+84900000001", "Another message")

        mock_post.assert_called_once_with(
            "https://sms.example.com/send",
            json={"to": "+84900000001", "message": "Another message", "sender": "MINDBRIDGE"},
            headers={"Authorization": "Bearer test-key"},
            timeout=8,
        )

    @override_settings(SMS_PROVIDER="http", SMS_API_KEY="k", SMS_API_URL="https://sms.example.com/send")
    def test_http_provider_propagates_gateway_errors(self):
        sms_utils.get_sms_provider.cache_clear()

        with patch("notifications.sms_utils.requests.post", side_effect=requests.ConnectionError("down")):
            with self.assertRaises(requests.ConnectionError):
                sms_utils.really_send_sms("+84900000002", "Message")

    @override_settings(SMS_PROVIDER="http", SMS_API_KEY="")
    def test_http_provider_requires_api_key(self):
        sms_utils.get_sms_provider.cache_clear()

        with self.assertRaises(sms_utils.SMSConfigurationError):
            sms_utils.really_send_sms("+84900000003", "Message")

    @override_settings(SMS_PROVIDER="pigeon")
    def test_unknown_provider_is_rejected(self):
        sms_utils.get_sms_provider.cache_clear()

        with self.assertRaises(sms_utils.SMSConfigurationError):
            sms_utils.get_sms_provider()

    def test_phone_numbers_are_normalized(self):
        self.assertEqual(sms_utils.normalize_phone_number("+84 90-000 (0004)"), "+84900000004")
        self.assertEqual(sms_utils.normalize_phone_number("0084900000005"), "+84900000005")
        self.assertEqual(sms_utils.normalize_phone_number("0900.000.006"), "0900000006")

        for bad in ("", "12345", "call me"):
            with self.subTest(bad=bad), self.assertRaises(ValueError):
                sms_utils.normalize_phone_number(bad)


class NotificationUtilityTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="utility", password="secret", full_name="Utility")

    def test_notify_user_creates_record_with_defaults(self):
        notification = notify_user(self.user, title="Hello", message="World")

        self.assertIsInstance(notification, Notification)
        self.assertEqual(notification.user, self.user)
        self.assertEqual(notification.type, Notification.Type.GENERAL)
        self.assertEqual(notification.status, Notification.Status.UNREAD)
        self.assertIsNone(notification.link)

    def test_notify_user_logs_failures_instead_of_raising(self):
        with patch("notifications.utils.Notification.send", side_effect=RuntimeError("db down")):
            with self.assertLogs("notifications.utils", level="ERROR"):
                self.assertIsNone(notify_user(self.user, title="Hello", message="World"))

    def test_notify_staff_reaches_active_staff_only(self):
        User.objects.create_user(username="admin1", password="x", is_staff=True)
        User.objects.create_user(username="admin2", password="x", is_staff=True, is_active=False)

        sent = notify_staff("New review", "A client left a review.", type_=Notification.Type.NEW_REVIEW)

        self.assertEqual(sent, 1)
        self.assertEqual(Notification.objects.get().user.username, "admin1")


class NotificationChannelPreferenceTests(TestCase):
    def setUp(self):
        self.profile, _ = create_client(email="mai@example.com", full_name="Mai", phone_number="+84911111111")
        self.user = self.profile.user

    def test_default_channel_preferences_enabled(self):
        preferences = resolve_user_channel_preferences(self.user)
        self.assertEqual(preferences, {"push": True, "sms": True, "email": True})

    def test_channel_preferences_reflect_profile_flags(self):
        self.profile.receive_push_notifications = False
        self.profile.receive_email_notifications = False
        self.profile.save()

        preferences = resolve_user_channel_preferences(self.user)
        self.assertFalse(preferences["push"])
        self.assertTrue(preferences["sms"])
        self.assertFalse(preferences["email"])

    @patch("appointments.services.reminders.really_send_sms")
    @patch("appointments.services.reminders.Notification.send")
    def test_send_reminder_to_user_respects_preferences(self, mock_notification_send, mock_send_sms):
        self.profile.receive_push_notifications = False
        self.profile.save()

        result = send_reminder_to_user(
            user=self.user,
            title="Test",
            message="Push message",
            sms_message="SMS message",
        )

        self.assertIsInstance(result, ReminderDispatchResult)
        self.assertFalse(result.push_attempted)
        self.assertTrue(result.sms_sent)
        mock_notification_send.assert_not_called()
        mock_send_sms.assert_called_once_with("+84911111111", "SMS message")

    @patch("appointments.services.reminders.really_send_sms", side_effect=RuntimeError("gateway"))
    def test_send_reminder_to_user_captures_channel_errors(self, mock_send_sms):
        result = send_reminder_to_user(user=self.user, title="Hi", message="Body")

        self.assertTrue(result.push_sent)
        self.assertTrue(result.sms_attempted)
        self.assertFalse(result.sms_sent)
        self.assertIsInstance(result.sms_error, RuntimeError)


class ReminderDispatchTests(TestCase):
    def setUp(self):
        self.profile, _ = create_client(email="an@example.com", full_name="An Pham", phone_number="+84922222222")
        self.appointment = make_appointment(self.profile)
        mail.outbox = []
        self.now = timezone.now()

    def _reminder(self, type_, **kwargs):
        return Reminder.objects.create(
            client=self.profile,
            appointment=self.appointment,
            type=type_,
            scheduled_send=kwargs.pop("scheduled_send", self.now - timedelta(minutes=1)),
            **kwargs,
        )

    def test_due_push_and_email_reminders_are_sent(self):
        push = self._reminder(ReminderType.PUSH)
        email = self._reminder(ReminderType.EMAIL)

        summary = dispatch_due_reminders(now=self.now)

        self.assertEqual(summary["processed"], 2)
        self.assertEqual(summary["sent"], 2)
        push.refresh_from_db()
        email.refresh_from_db()
        self.assertEqual(push.status, ReminderStatus.SENT)
        self.assertEqual(email.sent_at, self.now)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["an@example.com"])
        self.assertTrue(
            Notification.objects.filter(
                user=self.profile.user, type=Notification.Type.APPOINTMENT_REMINDER
            ).exists()
        )

    def test_future_reminders_are_left_pending(self):
        reminder = self._reminder(ReminderType.PUSH, scheduled_send=self.now + timedelta(hours=2))

        summary = dispatch_due_reminders(now=self.now)

        self.assertEqual(summary["processed"], 0)
        reminder.refresh_from_db()
        self.assertEqual(reminder.status, ReminderStatus.PENDING)

    @patch("appointments.services.reminders.really_send_sms", side_effect=RuntimeError("gateway"))
    def test_failed_sms_marks_reminder_failed(self, mock_send_sms):
        reminder = self._reminder(ReminderType.SMS)

        with self.assertLogs("appointments.services.reminders", level="ERROR"):
            summary = dispatch_due_reminders(now=self.now)

        reminder.refresh_from_db()
        self.assertEqual(reminder.status, ReminderStatus.FAILED)
        self.assertIsNone(reminder.sent_at)
        self.assertEqual(summary["failed"], 1)
        self.assertEqual(summary["notifications"]["sms"]["failed"], 1)

    def test_disabled_channel_marks_reminder_failed(self):
        self.profile.receive_email_notifications = False
        self.profile.save()
        reminder = self._reminder(ReminderType.EMAIL)

        summary = dispatch_due_reminders(now=self.now)

        reminder.refresh_from_db()
        self.assertEqual(reminder.status, ReminderStatus.FAILED)
        self.assertEqual(len(mail.outbox), 0)
        self.assertIn("disabled", summary["errors"][0]["error"])

    def test_sent_reminders_are_not_sent_twice(self):
        self._reminder(ReminderType.PUSH)

        dispatch_due_reminders(now=self.now)
        summary = dispatch_due_reminders(now=self.now)

        self.assertEqual(summary["processed"], 0)
        self.assertEqual(Notification.objects.count(), 1)


class UpcomingReminderTests(TestCase):
    def setUp(self):
        self.profile, _ = create_client(email="binh@example.com", full_name="Binh")

    def test_upcoming_appointments_are_flagged_once(self):
        soon = make_appointment(self.profile, scheduled_at=timezone.now() + timedelta(minutes=30))

        summary = dispatch_upcoming_reminders(window=timedelta(hours=1))

        self.assertEqual(summary["processed"], 1)
        soon.refresh_from_db()
        self.assertTrue(soon.is_reminder_sent)
        self.assertEqual(dispatch_upcoming_reminders(window=timedelta(hours=1))["processed"], 0)

    def test_cancelled_and_distant_appointments_are_skipped(self):
        make_appointment(
            self.profile,
            scheduled_at=timezone.now() + timedelta(minutes=10),
            status=AppointmentStatus.CANCELLED,
        )

        summary = dispatch_upcoming_reminders(window=timedelta(hours=1))

        self.assertEqual(summary["processed"], 0)

    @override_settings(APPOINTMENT_REMINDER_WINDOW="90")
    def test_window_is_read_from_settings(self):
        summary = dispatch_upcoming_reminders()
        self.assertEqual(summary["window"], timedelta(minutes=90))


class NotificationAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="client", password="secret")
        self.other_user = User.objects.create_user(username="other", password="secret")

        self.mine = Notification.objects.create(user=self.user, title="Message 1", message="Body")
        self.theirs = Notification.objects.create(user=self.other_user, title="Message 2", message="Body")

        self.client.force_authenticate(user=self.user)

    def test_list_notifications_returns_only_current_user(self):
        response = self.client.get(reverse("notifications-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        results = response.json()["results"]
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]["title"], "Message 1")
        self.assertEqual(results[0]["status"], Notification.Status.UNREAD)

    def test_mark_read_updates_status(self):
        response = self.client.patch(reverse("notifications-mark-read", args=[self.mine.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], Notification.Status.READ)
        self.mine.refresh_from_db()
        self.assertEqual(self.mine.status, Notification.Status.READ)

    def test_cannot_touch_someone_elses_notification(self):
        response = self.client.get(reverse("notifications-retrieve", args=[self.theirs.id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.delete(reverse("notifications-delete", args=[self.theirs.id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_notification(self):
        response = self.client.delete(reverse("notifications-delete", args=[self.mine.id]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Notification.objects.filter(id=self.mine.id).exists())


class ReminderAPITests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="secret", is_staff=True)
        self.profile, _ = create_client(email="chi@example.com", full_name="Chi")
        self.other_profile, _ = create_client(email="dung@example.com", full_name="Dung")
        self.appointment = make_appointment(self.profile)
        self.client.force_authenticate(self.admin)

    def _payload(self, **overrides):
        payload = {
            "client_id": self.profile.pk,
            "appointment_id": self.appointment.pk,
            "type": ReminderType.EMAIL,
            "scheduled_send": (timezone.now() + timedelta(hours=3)).isoformat(),
        }
        payload.update(overrides)
        return payload

    def test_create_reminder(self):
        response = self.client.post(reverse("reminders-list"), self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()["status"], ReminderStatus.PENDING)
        self.assertEqual(response.json()["client_name"], "Chi")

    def test_client_must_own_the_appointment(self):
        response = self.client.post(
            reverse("reminders-list"), self._payload(client_id=self.other_profile.pk), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("client_id", response.json())

    def test_missing_fields_are_rejected(self):
        response = self.client.post(reverse("reminders-list"), {"type": ReminderType.SMS}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters_by_client_and_orders_by_schedule(self):
        now = timezone.now()
        late = Reminder.objects.create(
            client=self.profile, appointment=self.appointment, type=ReminderType.SMS,
            scheduled_send=now + timedelta(hours=5),
        )
        early = Reminder.objects.create(
            client=self.profile, appointment=self.appointment, type=ReminderType.PUSH,
            scheduled_send=now + timedelta(hours=1),
        )
        other_appointment = make_appointment(self.other_profile)
        Reminder.objects.create(
            client=self.other_profile, appointment=other_appointment, type=ReminderType.SMS,
            scheduled_send=now,
        )

        response = self.client.get(reverse("reminders-list"), {"client_id": self.profile.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in response.json()["results"]], [early.pk, late.pk])

    def test_non_staff_cannot_manage_reminders(self):
        self.client.force_authenticate(self.profile.user)
        response = self.client.get(reverse("reminders-list"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
