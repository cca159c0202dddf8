from datetime import date, timedelta
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from appointments.models import Appointment
from client_profile.services import create_client
from common.choices import ActiveStatus, AppointmentStatus, OrderStatus, PaymentStatus
from doctors.models import Doctor
from medical_services.models import Service
from orders.models import Order
from rating_and_reviews.models import Review
from users.models import User

from .services import DashboardAnalyticsService, age_group, growth_rate, month_start

DASHBOARD_URL_NAMES = [
    "dashboard-stats",
    "dashboard-activities",
    "dashboard-schedule",
    "dashboard-revenue-chart",
    "dashboard-monthly-revenue-chart",
    "dashboard-appointments-distribution",
    "dashboard-total-invoice-stats",
    "dashboard-patient-overview-by-age",
    "dashboard-patient-overview-by-departments",
    "dashboard-payment-status-distribution",
    "dashboard-monthly-revenue-trend",
    "dashboard-top-doctors-by-patients",
    "dashboard-service-ratings-overview",
]


class DashboardHelperTests(SimpleTestCase):
    def test_growth_rate(self):
        self.assertEqual(growth_rate(3, 2), 50.0)
        self.assertEqual(growth_rate(1, 3), -66.67)
        self.assertEqual(growth_rate(2, 0), 100.0)
        self.assertEqual(growth_rate(0, 0), 0.0)

    def test_age_groups(self):
        self.assertEqual(age_group(17), "Child")
        self.assertEqual(age_group(18), "Adult")
        self.assertEqual(age_group(64), "Adult")
        self.assertEqual(age_group(65), "Elderly")
        self.assertEqual(age_group(None), "Elderly")

    def test_month_start_crosses_years(self):
        self.assertEqual(month_start(date(2030, 1, 15)), date(2030, 1, 1))
        self.assertEqual(month_start(date(2030, 1, 15), 1), date(2029, 12, 1))
        self.assertEqual(month_start(date(2030, 3, 31), 14), date(2029, 1, 1))


class DashboardFixturesMixin:
    def make_fixtures(self):
        self.now = timezone.now()
        self.today = timezone.localdate(self.now)
        self.lan, _ = create_client(
            email="lan@example.com", full_name="Lan Vo", birth_date=date(self.today.year - 30, 1, 1)
        )
        self.minh, _ = create_client(
            email="minh@example.com", full_name="Minh Do", birth_date=date(self.today.year - 10, 1, 1)
        )
        self.doctor = Doctor.objects.create(full_name="Dr. Hoa", email="hoa@example.com", specialty="CBT")
        self.other_doctor = Doctor.objects.create(full_name="Dr. Khoa", email="khoa@example.com")
        self.cbt = Service.objects.create(name="CBT", price=Decimal("150.00"), number_of_sessions=3)
        self.art = Service.objects.create(name="Art therapy", price=Decimal("60.00"), number_of_sessions=1)

    def make_order(self, client=None, doctor=None, service=None, **kwargs):
        kwargs.setdefault("number_of_sessions", 3)
        kwargs.setdefault("amount", Decimal("450.00"))
        return Order.objects.create(
            client=client or self.lan, doctor=doctor or self.doctor, service=service or self.cbt, **kwargs
        )

    def make_appointment(self, order, number=1, **kwargs):
        kwargs.setdefault("scheduled_at", self.now)
        return Appointment.objects.create(order=order, session_number=number, **kwargs)


class DashboardAnalyticsServiceTests(DashboardFixturesMixin, TestCase):
    def setUp(self):
        self.make_fixtures()
        self.service = DashboardAnalyticsService(now=self.now)

    def test_stats(self):
        self.make_order(payment_status=PaymentStatus.PAID, status=OrderStatus.IN_PROGRESS, paid_at=self.now)
        finished = self.make_order(client=self.minh, amount=Decimal("300.00"), status=OrderStatus.COMPLETED)
        self.make_appointment(finished)
        create_client(email="gone@example.com", status=ActiveStatus.INACTIVE)

        stats = self.service.stats()

        self.assertEqual(stats["totalRevenue"], Decimal("450.00"))
        self.assertEqual(stats["monthlyRevenue"], Decimal("300.00"))
        self.assertEqual(stats["totalClients"], 2)
        self.assertEqual(stats["totalServices"], 2)
        self.assertEqual(stats["appointmentsToday"], 1)
        self.assertEqual(stats["inProgressCount"], 1)

    def test_recent_activities_merge_newest_first(self):
        order = self.make_order(payment_status=PaymentStatus.PAID, paid_at=self.now - timedelta(days=1))
        done = self.make_appointment(order, status=AppointmentStatus.COMPLETED)
        old = self.make_appointment(order, number=2)
        Appointment.objects.filter(pk=old.pk).update(created_at=self.now - timedelta(days=10))
        Review.objects.create(appointment=done, client=self.lan, rating=5)

        rows = self.service.recent_activities()

        self.assertEqual([row["type"] for row in rows], ["review", "appointment", "payment"])
        self.assertEqual(rows[0]["client_name"], "Lan Vo")
        self.assertEqual(rows[0]["status"], AppointmentStatus.COMPLETED)
        self.assertEqual(rows[2]["status"], PaymentStatus.PAID)
        self.assertEqual(len(self.service.recent_activities(limit=2)), 2)

    def test_today_schedule_lists_open_sessions(self):
        order = self.make_order()
        today = self.make_appointment(order, 1)
        self.make_appointment(order, 2, status=AppointmentStatus.CANCELLED)
        self.make_appointment(order, 3, scheduled_at=self.now + timedelta(days=1))

        schedule = self.service.today_schedule()

        self.assertEqual([row["id"] for row in schedule], [today.id])
        self.assertIsNone(schedule[0]["start_time"])
        self.assertEqual(schedule[0]["service_name"], "CBT")

    def test_revenue_chart_counts_paid_income(self):
        self.make_order(payment_status=PaymentStatus.PAID, paid_at=self.now)
        self.make_order(amount=Decimal("100.00"))

        chart = self.service.revenue_chart()

        self.assertEqual(len(chart), 1)
        self.assertEqual(chart[0]["income"], Decimal("450.00"))
        self.assertEqual(chart[0]["expense"], Decimal("135.00"))
        self.assertEqual(chart[0]["day_name"], chart[0]["date"].strftime("%A"))

    def test_monthly_charts(self):
        self.make_order(payment_status=PaymentStatus.PAID, paid_at=self.now)
        self.make_order(amount=Decimal("100.00"))
        month = self.today.strftime("%Y-%m")

        chart = self.service.monthly_revenue_chart()
        self.assertEqual(chart, [{"month": month, "revenue": Decimal("450.00"), "orders_count": 1}])

        trend = self.service.monthly_revenue_trend()
        self.assertEqual(len(trend), 1)
        self.assertEqual(trend[0]["orders_count"], 2)
        self.assertEqual(trend[0]["revenue"], Decimal("450.00"))
        self.assertEqual(trend[0]["total_amount"], Decimal("550.00"))
        self.assertEqual(trend[0]["month_name"], self.today.strftime("%B %Y"))

    def test_total_invoice_stats(self):
        self.make_order()
        self.make_order()
        yesterday = self.make_order(amount=Decimal("50.00"))
        Order.objects.filter(pk=yesterday.pk).update(created_at=self.now - timedelta(days=1))

        stats = self.service.total_invoice_stats()

        self.assertEqual(stats["totalInvoices"], 3)
        self.assertEqual(stats["totalAmount"], Decimal("950.00"))
        self.assertEqual(stats["todayInvoices"], 2)
        self.assertEqual(stats["yesterdayInvoices"], 1)
        self.assertEqual(stats["growthRate"], 100.0)

    def test_appointments_distribution(self):
        order = self.make_order()
        self.make_appointment(order, 1, status=AppointmentStatus.COMPLETED)
        self.make_appointment(order, 2, status=AppointmentStatus.COMPLETED)
        self.make_appointment(order, 3, scheduled_at=self.now - timedelta(days=40))

        distribution = self.service.appointments_distribution()

        self.assertEqual(distribution, [{"status": AppointmentStatus.COMPLETED, "count": 2}])

    def test_patient_overview_by_age(self):
        self.make_order()
        self.make_order()
        self.make_order(client=self.minh)
        elder, _ = create_client(email="old@example.com")
        self.make_order(client=elder)

        overview = {row["age_group"]: row["patient_count"] for row in self.service.patient_overview_by_age()}

        self.assertEqual(overview, {"Child": 1, "Adult": 1, "Elderly": 1})

    def test_patient_overview_by_departments(self):
        self.make_order()
        self.make_order(client=self.minh)
        self.make_order(service=self.art)

        overview = self.service.patient_overview_by_departments()

        self.assertEqual(overview["totalPatients"], 2)
        self.assertEqual(
            [(row["department"], row["patient_count"], row["percentage"]) for row in overview["departments"]],
            [("CBT", 2, 100.0), ("Art therapy", 1, 50.0)],
        )

    def test_payment_status_distribution(self):
        self.make_order(payment_status=PaymentStatus.PAID, paid_at=self.now)
        self.make_order()
        self.make_order(amount=Decimal("50.00"))

        result = self.service.payment_status_distribution()

        self.assertEqual(result["totalOrders"], 3)
        pending = result["distribution"][0]
        self.assertEqual(pending["payment_status"], PaymentStatus.PENDING)
        self.assertEqual(pending["count"], 2)
        self.assertEqual(pending["total_amount"], Decimal("500.00"))
        self.assertEqual(pending["percentage"], 66.7)

    def test_top_doctors_by_patients(self):
        self.make_order(payment_status=PaymentStatus.PAID, paid_at=self.now)
        self.make_order(client=self.minh)
        self.make_order(doctor=self.other_doctor)
        retired = Doctor.objects.create(full_name="Dr. Old", email="old@example.com", status=ActiveStatus.INACTIVE)
        self.make_order(doctor=retired)

        ranking = self.service.top_doctors_by_patients()

        self.assertEqual([row["doctor_name"] for row in ranking], ["Dr. Hoa", "Dr. Khoa"])
        self.assertEqual(ranking[0]["patient_count"], 2)
        self.assertEqual(ranking[0]["total_orders"], 2)
        self.assertEqual(ranking[0]["total_revenue"], Decimal("450.00"))

    def test_service_ratings_overview(self):
        order = self.make_order()
        first = self.make_appointment(order, 1, status=AppointmentStatus.COMPLETED)
        second = self.make_appointment(order, 2, status=AppointmentStatus.COMPLETED)
        Review.objects.create(appointment=first, client=self.lan, rating=5)
        Review.objects.create(appointment=second, client=self.lan, rating=4)

        rows = self.service.service_ratings_overview()

        self.assertEqual([row["service_name"] for row in rows], ["CBT", "Art therapy"])
        self.assertEqual(rows[0]["average_rating"], 4.5)
        self.assertEqual(rows[0]["total_reviews"], 2)
        self.assertEqual(rows[0]["total_patients"], 1)
        self.assertEqual(rows[1]["average_rating"], 0.0)


class DashboardAPITests(DashboardFixturesMixin, APITestCase):
    def setUp(self):
        self.make_fixtures()
        self.admin = User.objects.create_user(username="admin", password="password", is_staff=True)

    def test_endpoints_are_staff_only(self):
        self.client.force_authenticate(self.lan.user)
        for name in DASHBOARD_URL_NAMES:
            with self.subTest(name=name):
                self.assertEqual(self.client.get(reverse(name)).status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_can_read_every_endpoint(self):
        self.client.force_authenticate(self.admin)
        for name in DASHBOARD_URL_NAMES:
            with self.subTest(name=name):
                self.assertEqual(self.client.get(reverse(name)).status_code, status.HTTP_200_OK)

    def test_stats_payload(self):
        self.make_order(payment_status=PaymentStatus.PAID, paid_at=self.now)
        self.client.force_authenticate(self.admin)

        data = self.client.get(reverse("dashboard-stats")).json()

        self.assertEqual(float(data["totalRevenue"]), 450.0)
        self.assertEqual(data["totalClients"], 2)

    def test_activities_limit(self):
        order = self.make_order()
        for number in range(1, 4):
            self.make_appointment(order, number)
        self.client.force_authenticate(self.admin)

        response = self.client.get(reverse("dashboard-activities"), {"limit": 2})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.json()), 2)
        self.assertEqual(response.json()[0]["type"], "appointment")

        invalid = self.client.get(reverse("dashboard-activities"), {"limit": "zero"})
        self.assertEqual(invalid.status_code, status.HTTP_400_BAD_REQUEST)
