from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from departments.models import Department
from doctors.models import Doctor
from users.models import User


class DepartmentAPITests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="password", is_staff=True)
        self.psych = Department.objects.create(name="Psychology", description="Mind and behaviour")
        Department.objects.create(name="Nutrition", description="Diet plans")

    def test_public_list_is_paginated_with_doctor_counts(self):
        Doctor.objects.create(full_name="Dr. A", email="a@example.com", department=self.psych)

        response = self.client.get(reverse("departments-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        payload = response.json()
        self.assertEqual(payload["count"], 2)
        counts = {row["name"]: row["doctor_count"] for row in payload["results"]}
        self.assertEqual(counts, {"Nutrition": 0, "Psychology": 1})

    def test_anonymous_cannot_create(self):
        response = self.client.post(reverse("departments-list"), {"name": "X"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_admin_crud(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(reverse("departments-list"), {"name": "Sleep", "description": "Insomnia"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        detail = reverse("departments-detail", args=[response.data["id"]])
        response = self.client.patch(detail, {"description": "Sleep disorders"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["description"], "Sleep disorders")

        response = self.client.delete(detail)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_deleting_department_detaches_doctors(self):
        doctor = Doctor.objects.create(full_name="Dr. A", email="a@example.com", department=self.psych)
        self.client.force_authenticate(self.admin)

        response = self.client.delete(reverse("departments-detail", args=[self.psych.pk]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        doctor.refresh_from_db()
        self.assertIsNone(doctor.department)

    def test_search(self):
        response = self.client.get(reverse("departments-search"), {"searchTerm": "diet"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["name"] for row in response.json()], ["Nutrition"])

        self.assertEqual(self.client.get(reverse("departments-search")).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            self.client.get(reverse("departments-search"), {"searchTerm": "cardio"}).status_code,
            status.HTTP_404_NOT_FOUND,
        )
