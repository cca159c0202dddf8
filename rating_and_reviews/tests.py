from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from appointments.models import Appointment
from client_profile.services import create_client
from common.choices import AppointmentStatus
from doctors.models import Doctor
from medical_services.models import Service
from notifications.models import Notification
from orders.models import Order
from users.models import User

from .models import Review
from .tasks import notify_staff_of_new_review_task


class ReviewAPITests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="pass", is_staff=True)
        self.profile, _ = create_client(email="an@example.com", full_name="An Tran")
        self.other, _ = create_client(email="binh@example.com", full_name="Binh Le")

        self.doctor = Doctor.objects.create(full_name="Dr. Mai", email="mai@example.com")
        self.other_doctor = Doctor.objects.create(full_name="Dr. Quang", email="quang@example.com")
        self.service = Service.objects.create(name="Counselling", price=Decimal("80.00"), number_of_sessions=4)
        self.other_service = Service.objects.create(name="Art therapy", price=Decimal("60.00"), number_of_sessions=2)

        self.order = Order.objects.create(
            client=self.profile,
            doctor=self.doctor,
            service=self.service,
            number_of_sessions=4,
            amount=Decimal("320.00"),
        )
        self.completed = self._appointment(self.order, 1, AppointmentStatus.COMPLETED)
        self.upcoming = self._appointment(self.order, 2, AppointmentStatus.CONFIRMED)

    def _appointment(self, order, number, status_):
        return Appointment.objects.create(
            order=order,
            session_number=number,
            scheduled_at=timezone.now() - timedelta(days=7 - number),
            status=status_,
        )

    def _review(self, appointment=None, client=None, rating=5, comment="Very helpful"):
        return Review.objects.create(
            appointment=appointment or self.completed,
            client=client or self.profile,
            rating=rating,
            comment=comment,
        )

    @patch("rating_and_reviews.views.notify_staff_of_new_review_task.delay")
    def test_client_reviews_completed_session(self, mock_delay):
        self.client.force_authenticate(self.profile.user)
        response = self.client.post(
            reverse("reviews-list"),
            {"appointment_id": self.completed.id, "rating": 4, "comment": "Calm and clear"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.json()
        self.assertEqual(data["customer_name"], "An Tran")
        self.assertEqual(data["expert_name"], "Dr. Mai")
        self.assertEqual(data["service_name"], "Counselling")
        self.assertEqual(data["session_number"], 1)
        mock_delay.assert_called_once_with(data["id"])

    @patch("rating_and_reviews.views.notify_staff_of_new_review_task.delay")
    def test_staff_must_name_the_client(self, mock_delay):
        self.client.force_authenticate(self.admin)
        url = reverse("reviews-list")

        missing = self.client.post(url, {"appointment_id": self.completed.id, "rating": 5}, format="json")
        self.assertEqual(missing.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("client_id", missing.json())

        unknown = self.client.post(
            url, {"appointment_id": self.completed.id, "client_id": 9999, "rating": 5}, format="json"
        )
        self.assertEqual(unknown.status_code, status.HTTP_404_NOT_FOUND)

        created = self.client.post(
            url, {"appointment_id": self.completed.id, "client_id": self.profile.id, "rating": 5}, format="json"
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        mock_delay.assert_called_once()

    def test_create_rejections(self):
        self.client.force_authenticate(self.profile.user)
        url = reverse("reviews-list")

        unknown = self.client.post(url, {"appointment_id": 9999, "rating": 5}, format="json")
        self.assertEqual(unknown.status_code, status.HTTP_404_NOT_FOUND)

        not_completed = self.client.post(url, {"appointment_id": self.upcoming.id, "rating": 5}, format="json")
        self.assertEqual(not_completed.status_code, status.HTTP_400_BAD_REQUEST)

        bad_rating = self.client.post(url, {"appointment_id": self.completed.id, "rating": 6}, format="json")
        self.assertEqual(bad_rating.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("rating", bad_rating.json())

        self.client.force_authenticate(self.other.user)
        not_owner = self.client.post(url, {"appointment_id": self.completed.id, "rating": 5}, format="json")
        self.assertEqual(not_owner.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Review.objects.exists())

    def test_duplicate_review_conflicts(self):
        self._review()
        self.client.force_authenticate(self.profile.user)

        response = self.client.post(
            reverse("reviews-list"), {"appointment_id": self.completed.id, "rating": 3}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(Review.objects.count(), 1)

    def test_list_is_public_paginated_and_filterable(self):
        other_order = Order.objects.create(
            client=self.other,
            doctor=self.other_doctor,
            service=self.other_service,
            number_of_sessions=2,
            amount=Decimal("120.00"),
        )
        other_done = self._appointment(other_order, 1, AppointmentStatus.COMPLETED)
        self._review(comment="Very helpful")
        self._review(appointment=other_done, client=self.other, rating=3, comment="Too short")

        url = reverse("reviews-list")
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["count"], 2)
        self.assertEqual(response.json()["results"][0]["comment"], "Too short")

        by_expert = self.client.get(url, {"expert": self.other_doctor.id}).json()
        self.assertEqual([row["customer_name"] for row in by_expert["results"]], ["Binh Le"])

        by_service = self.client.get(url, {"service": self.service.id}).json()
        self.assertEqual([row["customer_name"] for row in by_service["results"]], ["An Tran"])

        by_search = self.client.get(url, {"search": "binh"}).json()
        self.assertEqual(by_search["count"], 1)

        limited = self.client.get(url, {"limit": 1}).json()
        self.assertEqual(limited["total_pages"], 2)

    def test_default_page_size_is_seven(self):
        for number in range(3, 12):
            appointment = self._appointment(self.order, number, AppointmentStatus.COMPLETED)
            self._review(appointment=appointment)

        data = self.client.get(reverse("reviews-list")).json()

        self.assertEqual(data["count"], 9)
        self.assertEqual(len(data["results"]), 7)

    def test_owner_updates_review(self):
        review = self._review(rating=2)
        url = reverse("reviews-detail", args=[review.id])

        self.client.force_authenticate(self.other.user)
        forbidden = self.client.patch(url, {"rating": 5}, format="json")
        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.profile.user)
        empty = self.client.put(url, {}, format="json")
        self.assertEqual(empty.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put(url, {"rating": 4, "comment": "Better on reflection"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        review.refresh_from_db()
        self.assertEqual(review.rating, 4)
        self.assertEqual(response.json()["comment"], "Better on reflection")

    def test_staff_deletes_review(self):
        review = self._review()
        self.client.force_authenticate(self.admin)

        response = self.client.delete(reverse("reviews-detail", args=[review.id]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Review.objects.exists())

    def test_reviews_by_appointment_and_doctor(self):
        self._review()

        by_appointment = self.client.get(reverse("reviews-by-appointment", args=[self.completed.id]))
        self.assertEqual(by_appointment.status_code, status.HTTP_200_OK)
        self.assertEqual(len(by_appointment.json()), 1)

        missing = self.client.get(reverse("reviews-by-appointment", args=[9999]))
        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)

        by_doctor = self.client.get(reverse("reviews-by-doctor", args=[self.doctor.id]))
        self.assertEqual(len(by_doctor.json()), 1)
        other = self.client.get(reverse("reviews-by-doctor", args=[self.other_doctor.id]))
        self.assertEqual(other.json(), [])

    def test_doctor_rating_aggregates_include_reviews(self):
        self._review(rating=5)
        self._review(appointment=self._appointment(self.order, 3, AppointmentStatus.COMPLETED), rating=4)

        response = self.client.get(reverse("doctors-detail", args=[self.doctor.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["review_count"], 2)
        self.assertEqual(float(response.json()["average_rating"]), 4.5)


class ReviewTaskTests(APITestCase):
    def test_staff_receive_new_review_notification(self):
        staff = User.objects.create_user(username="staff", password="pass", is_staff=True)
        profile, _ = create_client(email="chi@example.com", full_name="Chi Pham")
        doctor = Doctor.objects.create(full_name="Dr. Hoa", email="hoa@example.com")
        service = Service.objects.create(name="Sleep coaching", price=Decimal("50.00"), number_of_sessions=1)
        order = Order.objects.create(
            client=profile, doctor=doctor, service=service, number_of_sessions=1, amount=Decimal("50.00")
        )
        appointment = Appointment.objects.create(
            order=order, session_number=1, scheduled_at=timezone.now(), status=AppointmentStatus.COMPLETED
        )
        review = Review.objects.create(appointment=appointment, client=profile, rating=5)

        sent = notify_staff_of_new_review_task(review.id)

        self.assertEqual(sent, 1)
        notification = Notification.objects.get(user=staff)
        self.assertEqual(notification.type, Notification.Type.NEW_REVIEW)
        self.assertIn("Chi Pham", notification.message)

    def test_missing_review_is_logged(self):
        self.assertEqual(notify_staff_of_new_review_task(9999), 0)
