from datetime import date, timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from appointments.models import Appointment
from client_profile.services import create_client
from common.choices import ActiveStatus, AppointmentStatus
from departments.models import Department
from medical_services.models import Service
from orders.models import Order
from rating_and_reviews.models import Review
from users.models import User

from .models import Doctor, Experience, Qualification


class DoctorAPITests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="password", is_staff=True)
        self.department = Department.objects.create(name="Psychology")
        self.doctor = Doctor.objects.create(
            full_name="Dr. Hoa Nguyen",
            email="hoa@example.com",
            specialty="Child psychology",
            department=self.department,
        )
        self.other = Doctor.objects.create(
            full_name="Dr. Khoa Tran", email="khoa@example.com", status=ActiveStatus.INACTIVE
        )

    def _rate(self, *ratings):
        profile, _ = create_client(email="lan@example.com", full_name="Lan Vo")
        service = Service.objects.create(name="CBT", price=Decimal("100.00"), number_of_sessions=len(ratings))
        order = Order.objects.create(
            client=profile,
            doctor=self.doctor,
            service=service,
            number_of_sessions=len(ratings),
            amount=Decimal("100.00"),
        )
        for number, rating in enumerate(ratings, start=1):
            appointment = Appointment.objects.create(
                order=order,
                session_number=number,
                scheduled_at=timezone.now() - timedelta(days=number),
                status=AppointmentStatus.COMPLETED,
            )
            Review.objects.create(appointment=appointment, client=profile, rating=rating)
        return order

    def test_list_is_public_with_rating_summary(self):
        self._rate(5, 4, 4)

        response = self.client.get(reverse("doctors-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = {row["id"]: row for row in response.json()["results"]}
        self.assertEqual(rows[self.doctor.id]["average_rating"], 4.3)
        self.assertEqual(rows[self.doctor.id]["review_count"], 3)
        self.assertEqual(rows[self.doctor.id]["department_name"], "Psychology")
        self.assertEqual(rows[self.other.id]["average_rating"], 0)
        self.assertEqual(rows[self.other.id]["review_count"], 0)

    def test_list_filters_by_status_and_department(self):
        url = reverse("doctors-list")

        inactive = self.client.get(url, {"status": ActiveStatus.INACTIVE}).json()["results"]
        self.assertEqual([row["id"] for row in inactive], [self.other.id])

        in_department = self.client.get(url, {"department": self.department.id}).json()["results"]
        self.assertEqual([row["id"] for row in in_department], [self.doctor.id])

    def test_retrieve_includes_profile_details(self):
        Qualification.objects.create(
            doctor=self.doctor, degree="PhD", major="Psychology", completion_year=2015, institution="HCMUS"
        )
        Experience.objects.create(
            doctor=self.doctor, position="Counsellor", start_date=date(2016, 1, 1), workplace="City Clinic"
        )
        service = Service.objects.create(name="Play therapy", price=Decimal("90.00"), number_of_sessions=2)
        service.doctors.add(self.doctor)

        data = self.client.get(reverse("doctors-detail", args=[self.doctor.id])).json()

        self.assertEqual(data["qualifications"][0]["degree"], "PhD")
        self.assertEqual(data["experiences"][0]["workplace"], "City Clinic")
        self.assertEqual([item["name"] for item in data["services"]], ["Play therapy"])
        self.assertEqual(data["review_count"], 0)

    def test_writes_are_staff_only(self):
        profile, _ = create_client(email="minh@example.com")
        self.client.force_authenticate(profile.user)

        response = self.client.post(reverse("doctors-list"), {"full_name": "Dr. X", "email": "x@example.com"})

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_validates_email_and_department(self):
        self.client.force_authenticate(self.admin)
        url = reverse("doctors-list")

        duplicate = self.client.post(url, {"full_name": "Dr. Dup", "email": "hoa@example.com"}, format="json")
        self.assertEqual(duplicate.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("email", duplicate.json())

        unknown = self.client.post(
            url, {"full_name": "Dr. New", "email": "new@example.com", "department": 9999}, format="json"
        )
        self.assertEqual(unknown.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("department", unknown.json())

        created = self.client.post(
            url,
            {"full_name": "Dr. New", "email": "new@example.com", "department": self.department.id},
            format="json",
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        self.assertEqual(created.json()["status"], ActiveStatus.ACTIVE)

    def test_destroy_blocked_by_orders(self):
        self._rate(5)
        self.client.force_authenticate(self.admin)

        blocked = self.client.delete(reverse("doctors-detail", args=[self.doctor.id]))
        self.assertEqual(blocked.status_code, status.HTTP_400_BAD_REQUEST)

        removed = self.client.delete(reverse("doctors-detail", args=[self.other.id]))
        self.assertEqual(removed.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(Doctor.objects.filter(pk=self.doctor.pk).exists())

    def test_search(self):
        url = reverse("doctors-search")

        self.assertEqual(self.client.get(url).status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.get(url, {"searchTerm": "nobody"}).status_code, status.HTTP_404_NOT_FOUND)

        by_specialty = self.client.get(url, {"searchTerm": "child"})
        self.assertEqual(by_specialty.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in by_specialty.json()], [self.doctor.id])

    def test_qualification_lifecycle(self):
        self.client.force_authenticate(self.admin)
        url = reverse("doctors-qualifications", args=[self.doctor.id])

        incomplete = self.client.post(url, {"degree": "MSc"}, format="json")
        self.assertEqual(incomplete.status_code, status.HTTP_400_BAD_REQUEST)

        created = self.client.post(
            url,
            {"degree": "MSc", "major": "Clinical psychology", "completion_year": 2012, "institution": "VNU"},
            format="json",
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)
        qualification_id = created.json()["id"]

        detail = reverse("doctors-qualification-detail", args=[qualification_id])
        updated = self.client.put(
            detail,
            {"degree": "PhD", "major": "Clinical psychology", "completion_year": 2018, "institution": "VNU"},
            format="json",
        )
        self.assertEqual(updated.json()["degree"], "PhD")

        self.assertEqual(self.client.delete(detail).status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Qualification.objects.exists())

    def test_experience_dates_are_validated(self):
        self.client.force_authenticate(self.admin)
        url = reverse("doctors-experiences", args=[self.doctor.id])

        backwards = self.client.post(
            url,
            {
                "position": "Therapist",
                "start_date": "2020-05-01",
                "end_date": "2019-01-01",
                "workplace": "Hope Center",
            },
            format="json",
        )
        self.assertEqual(backwards.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("end_date", backwards.json())

        created = self.client.post(
            url, {"position": "Therapist", "start_date": "2020-05-01", "workplace": "Hope Center"}, format="json"
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED)

        detail = reverse("doctors-experience-detail", args=[created.json()["id"]])
        patched = self.client.patch(detail, {"end_date": "2020-04-01"}, format="json")
        self.assertEqual(patched.status_code, status.HTTP_400_BAD_REQUEST)

        listed = self.client.get(url)
        self.assertEqual(len(listed.json()), 1)
