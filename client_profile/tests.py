from datetime import date
from decimal import Decimal

from django.core import mail
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from client_profile.models import ClientProfile
from client_profile.services import create_client
from doctors.models import Doctor
from medical_services.models import Service
from orders.models import Order
from users.models import User


class ClientAdminAPITests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="password", is_staff=True)
        self.client.force_authenticate(self.admin)
        self.profile, _ = create_client(email="anna@example.com", full_name="Anna Nguyen", phone_number="0901111111")

    def test_create_client_generates_and_emails_password(self):
        response = self.client.post(
            reverse("clients-list"),
            {"email": "Bob@Example.com", "full_name": "Bob Tran", "gender": "male"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email="bob@example.com")
        self.assertEqual(user.client_profile.status, "active")
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("bob@example.com", mail.outbox[0].to)
        password_line = [line for line in mail.outbox[0].body.splitlines() if line.startswith("Password: ")][0]
        self.assertTrue(user.check_password(password_line.split(": ", 1)[1]))

    def test_create_client_with_google_id_only(self):
        response = self.client.post(reverse("clients-list"), {"google_id": "g-123"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(ClientProfile.objects.get(google_id="g-123").user.username, "google-g-123")
        self.assertEqual(len(mail.outbox), 0)

    def test_create_client_requires_email_or_google_id(self):
        response = self.client.post(reverse("clients-list"), {"full_name": "Nobody"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_client_rejects_duplicate_email(self):
        response = self.client.post(reverse("clients-list"), {"email": "anna@example.com"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_client(self):
        response = self.client.patch(
            reverse("clients-detail", args=[self.profile.pk]),
            {"full_name": "Anna N.", "status": "inactive", "birth_date": "2010-01-01"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.user.full_name, "Anna N.")
        self.assertEqual(self.profile.status, "inactive")
        self.assertEqual(self.profile.birth_date, date(2010, 1, 1))

    def test_search_requires_term(self):
        response = self.client.get(reverse("clients-search"))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search_matches_phone_and_reports_not_found(self):
        response = self.client.get(reverse("clients-search"), {"searchTerm": "0901"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in response.json()], [self.profile.pk])

        response = self.client.get(reverse("clients-search"), {"searchTerm": "zzz"})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_client_with_orders_is_rejected(self):
        doctor = Doctor.objects.create(full_name="Dr. Who", email="who@example.com")
        service = Service.objects.create(name="Therapy", price=Decimal("100.00"), number_of_sessions=2)
        Order.objects.create(client=self.profile, doctor=doctor, service=service, number_of_sessions=2, amount=Decimal("100.00"))

        response = self.client.delete(reverse("clients-detail", args=[self.profile.pk]))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(ClientProfile.objects.filter(pk=self.profile.pk).exists())

    def test_delete_client_removes_user(self):
        response = self.client.delete(reverse("clients-detail", args=[self.profile.pk]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(email="anna@example.com").exists())

    def test_non_staff_cannot_list_clients(self):
        self.client.force_authenticate(self.profile.user)
        response = self.client.get(reverse("clients-list"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ClientProfileModelTests(APITestCase):
    def test_age_accounts_for_birthday(self):
        profile, _ = create_client(email="kid@example.com", full_name="Kid", birth_date=date(2010, 6, 15))

        self.assertEqual(profile.age(today=date(2024, 6, 14)), 13)
        self.assertEqual(profile.age(today=date(2024, 6, 15)), 14)

    def test_age_is_none_without_birth_date(self):
        profile, _ = create_client(email="x@example.com")
        self.assertIsNone(profile.age())
