from datetime import date, datetime, time, timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from appointments.models import Appointment, DoctorAvailability
from client_profile.services import create_client
from common.choices import AppointmentStatus, AvailabilityStatus, OrderStatus, PaymentStatus
from doctors.models import Doctor
from medical_services.models import Service
from notifications.models import Notification
from orders.models import Order, first_session_time
from orders.services import change_order_status
from users.models import User


class OrderFixturesMixin:
    def make_fixtures(self):
        self.admin = User.objects.create_user(username="admin", password="password", is_staff=True)
        self.profile, _ = create_client(email="lan@example.com", full_name="Lan Vo")
        self.other_profile, _ = create_client(email="minh@example.com", full_name="Minh Do")
        self.doctor = Doctor.objects.create(full_name="Dr. Hoa", email="hoa@example.com")
        self.other_doctor = Doctor.objects.create(full_name="Dr. Khoa", email="khoa@example.com")
        self.service = Service.objects.create(name="CBT", price=Decimal("150.00"), number_of_sessions=3)

    def make_order(self, profile=None, **kwargs):
        kwargs.setdefault("number_of_sessions", 3)
        kwargs.setdefault("amount", Decimal("450.00"))
        return Order.objects.create(
            client=profile or self.profile, doctor=self.doctor, service=self.service, **kwargs
        )

    def make_slot(self, day, hour, doctor=None, **kwargs):
        return DoctorAvailability.objects.create(
            doctor=doctor or self.doctor,
            available_date=date(2030, 1, day),
            start_time=time(hour, 0),
            end_time=time(hour + 1, 0),
            **kwargs,
        )


class OrderProgressTests(OrderFixturesMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.order = self.make_order()
        self.now = timezone.make_aware(datetime(2030, 3, 4, 9, 30, 45))

    def test_first_session_is_tomorrow_truncated_to_the_minute(self):
        self.assertEqual(first_session_time(self.now), timezone.make_aware(datetime(2030, 3, 5, 9, 30)))

    def test_confirming_generates_weekly_sessions(self):
        created = self.order.change_status(OrderStatus.CONFIRMED, now=self.now)

        self.assertEqual(len(created), 3)
        sessions = list(self.order.appointments.order_by("session_number"))
        self.assertEqual([a.session_number for a in sessions], [1, 2, 3])
        self.assertEqual(sessions[0].scheduled_at, timezone.make_aware(datetime(2030, 3, 5, 9, 30)))
        self.assertEqual(sessions[2].scheduled_at - sessions[0].scheduled_at, timedelta(weeks=2))
        self.assertTrue(all(a.status == AppointmentStatus.PENDING for a in sessions))
        self.assertEqual(self.order.status, OrderStatus.CONFIRMED)
        self.assertEqual(self.order.started_at, self.now)

    def test_confirming_twice_does_not_duplicate_sessions(self):
        self.order.change_status(OrderStatus.CONFIRMED, now=self.now)
        self.order.change_status(OrderStatus.PENDING, now=self.now)
        created = self.order.change_status(OrderStatus.CONFIRMED, now=self.now)

        self.assertEqual(created, [])
        self.assertEqual(self.order.appointments.count(), 3)

    def test_invalid_status_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.order.change_status("archived")

    def test_completing_sessions_rolls_the_order_forward(self):
        self.order.change_status(OrderStatus.CONFIRMED, now=self.now)
        first, second, third = self.order.appointments.order_by("session_number")

        first.complete()
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 1)
        self.assertEqual(self.order.status, OrderStatus.IN_PROGRESS)

        second.complete()
        third.complete(completion_notes="Discharged")
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 3)
        self.assertEqual(self.order.status, OrderStatus.COMPLETED)
        self.assertIsNotNone(self.order.completed_at)

    def test_undoing_a_completion_reopens_the_order(self):
        self.order.change_status(OrderStatus.CONFIRMED, now=self.now)
        sessions = list(self.order.appointments.order_by("session_number"))
        for appointment in sessions:
            appointment.complete()

        sessions[2].update_status(AppointmentStatus.CONFIRMED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.IN_PROGRESS)
        self.assertIsNone(self.order.completed_at)

        sessions[0].update_status(AppointmentStatus.CONFIRMED)
        sessions[1].update_status(AppointmentStatus.PENDING)
        self.order.refresh_from_db()
        self.assertEqual(self.order.completed_sessions, 0)
        self.assertEqual(self.order.status, OrderStatus.CONFIRMED)

    def test_cancelling_every_session_cancels_the_order(self):
        self.order.change_status(OrderStatus.CONFIRMED, now=self.now)
        for appointment in self.order.appointments.all():
            appointment.cancel()

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)

    def test_cancelled_order_is_never_reopened(self):
        self.order.change_status(OrderStatus.CONFIRMED, now=self.now)
        self.order.change_status(OrderStatus.CANCELLED, now=self.now)

        self.order.appointments.first().complete()

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)
        self.assertEqual(self.order.completed_sessions, 1)

    def test_rollup_is_idempotent(self):
        self.order.change_status(OrderStatus.CONFIRMED, now=self.now)
        self.order.appointments.first().complete()

        self.order.recompute_progress()
        self.order.recompute_progress()

        self.assertEqual(self.order.completed_sessions, 1)
        self.assertEqual(self.order.status, OrderStatus.IN_PROGRESS)


class OrderAPITests(OrderFixturesMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()

    def _create(self, **overrides):
        payload = {
            "doctor_id": self.doctor.pk,
            "service_id": self.service.pk,
            "number_of_sessions": 2,
            "amount": "300.00",
        }
        payload.update(overrides)
        return self.client.post(reverse("orders-list"), payload, format="json")

    # ================= Create =================
    def test_client_creates_order_for_themselves(self):
        self.client.force_authenticate(self.profile.user)

        response = self._create(client_id=self.other_profile.pk)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        order = Order.objects.get(pk=response.json()["id"])
        self.assertEqual(order.client, self.profile)
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.appointments.count(), 0)

    def test_staff_must_name_the_client(self):
        self.client.force_authenticate(self.admin)

        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("client_id", response.json())

        response = self._create(client_id=self.other_profile.pk)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()["client_name"], "Minh Do")

    def test_create_validates_sessions_and_service(self):
        self.client.force_authenticate(self.profile.user)

        self.assertEqual(self._create(number_of_sessions=0).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._create(number_of_sessions=4).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._create(service_id=9999).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self._create(amount="-1").status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_create_with_slots_books_them_in_order(self):
        late = self.make_slot(day=8, hour=10)
        early = self.make_slot(day=1, hour=10)
        self.client.force_authenticate(self.profile.user)

        response = self._create(availability_ids=[late.pk, early.pk])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        sessions = response.json()["appointments"]
        self.assertEqual([s["session_number"] for s in sessions], [1, 2])
        self.assertEqual([s["availability"] for s in sessions], [late.pk, early.pk])
        self.assertEqual(sessions[0]["availability_status"], AvailabilityStatus.BOOKED)
        late.refresh_from_db()
        early.refresh_from_db()
        self.assertEqual(late.status, AvailabilityStatus.BOOKED)
        self.assertEqual(early.status, AvailabilityStatus.BOOKED)
        appointment = Appointment.objects.get(availability=early)
        self.assertEqual(appointment.scheduled_at, early.starts_at)

    def test_create_with_wrong_number_of_slots(self):
        slot = self.make_slot(day=1, hour=9)
        self.client.force_authenticate(self.profile.user)

        response = self._create(availability_ids=[slot.pk])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_rejects_unavailable_or_foreign_slots(self):
        blocked = self.make_slot(day=1, hour=9, status=AvailabilityStatus.BLOCKED)
        inactive = self.make_slot(day=2, hour=9, is_active=False)
        foreign = self.make_slot(day=3, hour=9, doctor=self.other_doctor)
        free = self.make_slot(day=4, hour=9)
        self.client.force_authenticate(self.profile.user)

        for bad in (blocked, inactive, foreign):
            response = self._create(availability_ids=[free.pk, bad.pk])
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        free.refresh_from_db()
        self.assertEqual(free.status, AvailabilityStatus.AVAILABLE)
        self.assertFalse(Order.objects.exists())

    def test_user_without_client_profile_cannot_order(self):
        stranger = User.objects.create_user(username="stranger", password="password")
        self.client.force_authenticate(stranger)

        response = self._create()

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    # ================= Read =================
    def test_clients_only_see_their_own_orders(self):
        mine = self.make_order()
        self.make_order(profile=self.other_profile)
        self.client.force_authenticate(self.profile.user)

        response = self.client.get(reverse("orders-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = response.json()["results"]
        self.assertEqual([row["id"] for row in rows], [mine.pk])
        self.assertEqual(rows[0]["service_name"], "CBT")
        self.assertEqual(rows[0]["service_sessions"], 3)

        other = Order.objects.exclude(pk=mine.pk).get()
        response = self.client.get(reverse("orders-detail", args=[other.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_staff_list_is_newest_first(self):
        first = self.make_order()
        second = self.make_order(profile=self.other_profile)
        self.client.force_authenticate(self.admin)

        response = self.client.get(reverse("orders-list"))

        self.assertEqual([row["id"] for row in response.json()["results"]], [second.pk, first.pk])

    # ================= Update =================
    def test_marking_paid_stamps_paid_at(self):
        order = self.make_order()
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse("orders-detail", args=[order.pk]), {"payment_status": PaymentStatus.PAID}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.PAID)
        self.assertIsNotNone(order.paid_at)

    def test_update_rejects_empty_body_and_bad_values(self):
        order = self.make_order()
        self.client.force_authenticate(self.admin)
        url = reverse("orders-detail", args=[order.pk])

        self.assertEqual(self.client.patch(url, {}, format="json").status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            self.client.patch(url, {"number_of_sessions": 0}, format="json").status_code,
            status.HTTP_400_BAD_REQUEST,
        )

    def test_clients_cannot_update_or_delete(self):
        order = self.make_order()
        self.client.force_authenticate(self.profile.user)

        response = self.client.patch(reverse("orders-detail", args=[order.pk]), {"notes": "x"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.delete(reverse("orders-detail", args=[order.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_cascades_to_appointments(self):
        order = self.make_order()
        order.change_status(OrderStatus.CONFIRMED)
        self.client.force_authenticate(self.admin)

        response = self.client.delete(reverse("orders-detail", args=[order.pk]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Appointment.objects.exists())

    # ================= Status =================
    def test_status_confirm_generates_sessions_and_notifies_client(self):
        order = self.make_order()
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse("orders-change-status", args=[order.pk]), {"status": "confirmed"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        payload = response.json()
        self.assertEqual(payload["status"], OrderStatus.CONFIRMED)
        self.assertEqual(len(payload["appointments"]), 3)
        self.assertIsNotNone(payload["started_at"])
        self.assertTrue(
            Notification.objects.filter(user=self.profile.user, type=Notification.Type.ORDER_CONFIRMED).exists()
        )

    def test_status_rejects_unknown_value(self):
        order = self.make_order()
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse("orders-change-status", args=[order.pk]), {"status": "archived"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_with_status_runs_the_confirmation(self):
        order = self.make_order()
        self.client.force_authenticate(self.admin)
        url = reverse("orders-detail", args=[order.pk])

        response = self.client.patch(url, {"status": "confirmed", "notes": "Weekly"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], OrderStatus.CONFIRMED)
        order.refresh_from_db()
        self.assertEqual(order.notes, "Weekly")
        self.assertIsNotNone(order.started_at)
        self.assertEqual(order.appointments.count(), 3)
        self.assertEqual(
            Notification.objects.filter(user=self.profile.user, type=Notification.Type.ORDER_CONFIRMED).count(), 1
        )

        response = self.client.patch(url, {"status": "completed"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.COMPLETED)
        self.assertIsNotNone(order.completed_at)

    def test_stale_order_copy_does_not_notify_twice(self):
        order = self.make_order()
        stale = Order.objects.get(pk=order.pk)

        change_order_status(order, OrderStatus.CONFIRMED)
        change_order_status(stale, OrderStatus.CONFIRMED)

        self.assertEqual(stale.appointments.count(), 3)
        self.assertEqual(
            Notification.objects.filter(user=self.profile.user, type=Notification.Type.ORDER_CONFIRMED).count(), 1
        )

    def test_confirming_an_order_booked_from_slots_keeps_its_sessions(self):
        slots = [self.make_slot(day=day, hour=9) for day in (1, 8)]
        order = self.make_order(number_of_sessions=2)
        for index, slot in enumerate(slots, start=1):
            Appointment.objects.create(order=order, availability=slot, session_number=index, scheduled_at=slot.starts_at)
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse("orders-change-status", args=[order.pk]), {"status": "confirmed"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(order.appointments.count(), 2)
