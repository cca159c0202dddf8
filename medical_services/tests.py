from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from client_profile.services import create_client
from doctors.models import Doctor
from orders.models import Order
from users.models import User

from .models import Service


class ServiceAPITests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="password", is_staff=True)
        self.hoa = Doctor.objects.create(full_name="Dr. Hoa", email="hoa@example.com")
        self.khoa = Doctor.objects.create(full_name="Dr. Khoa", email="khoa@example.com")
        self.service = Service.objects.create(
            name="Family counselling",
            description="Sessions for the whole family",
            price=Decimal("120.00"),
            number_of_sessions=4,
        )
        self.service.doctors.add(self.hoa)

    def test_list_is_public(self):
        response = self.client.get(reverse("services-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = response.json()["results"][0]
        self.assertEqual(row["name"], "Family counselling")
        self.assertEqual([doctor["full_name"] for doctor in row["doctors"]], ["Dr. Hoa"])

    def test_create_validates_price_sessions_and_doctors(self):
        self.client.force_authenticate(self.admin)
        url = reverse("services-list")

        negative = self.client.post(url, {"name": "X", "price": "-1", "number_of_sessions": 1}, format="json")
        self.assertEqual(negative.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("price", negative.json())

        no_sessions = self.client.post(url, {"name": "X", "price": "10", "number_of_sessions": 0}, format="json")
        self.assertIn("number_of_sessions", no_sessions.json())

        unknown_doctor = self.client.post(
            url, {"name": "X", "price": "10", "number_of_sessions": 1, "doctor_ids": [9999]}, format="json"
        )
        self.assertEqual(unknown_doctor.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("doctor_ids", unknown_doctor.json())

        created = self.client.post(
            url,
            {"name": "Mindfulness", "price": "45.50", "number_of_sessions": 6, "doctor_ids": [self.khoa.id]},
            format="json",
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        self.assertEqual([doctor["id"] for doctor in created.json()["doctors"]], [self.khoa.id])

    def test_update_replaces_assigned_doctors(self):
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse("services-detail", args=[self.service.id]), {"doctor_ids": [self.khoa.id]}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(self.service.doctors.values_list("id", flat=True)), [self.khoa.id])

    def test_writes_are_staff_only(self):
        profile, _ = create_client(email="lan@example.com")
        self.client.force_authenticate(profile.user)

        response = self.client.delete(reverse("services-detail", args=[self.service.id]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_destroy_blocked_by_orders(self):
        profile, _ = create_client(email="lan@example.com")
        Order.objects.create(
            client=profile, doctor=self.hoa, service=self.service, number_of_sessions=4, amount=Decimal("480.00")
        )
        self.client.force_authenticate(self.admin)

        response = self.client.delete(reverse("services-detail", args=[self.service.id]))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Service.objects.filter(pk=self.service.pk).exists())

    def test_search(self):
        url = reverse("services-search")

        self.assertEqual(self.client.get(url).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.get(url, {"searchTerm": "yoga"}).status_code, status.HTTP_404_NOT_FOUND)

        found = self.client.get(url, {"searchTerm": "whole family"})
        self.assertEqual([row["id"] for row in found.json()], [self.service.id])

    def test_assign_and_remove_doctor(self):
        self.client.force_authenticate(self.admin)
        assign = reverse("services-assign-doctor", args=[self.service.id])

        self.assertEqual(
            self.client.post(assign, {"doctor_id": 9999}, format="json").status_code, status.HTTP_404_NOT_FOUND
        )
        self.assertEqual(
            self.client.post(assign, {"doctor_id": self.hoa.id}, format="json").status_code,
            status.HTTP_400_BAD_REQUEST,
        )

        added = self.client.post(assign, {"doctor_id": self.khoa.id}, format="json")
        self.assertEqual(added.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.service.doctors.count(), 2)

        remove = reverse("services-remove-doctor", args=[self.service.id, self.khoa.id])
        self.assertEqual(self.client.delete(remove).status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.delete(remove).status_code, status.HTTP_404_NOT_FOUND)
