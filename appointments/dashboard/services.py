"""Aggregations behind the back-office dashboard."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from django.db.models import Avg, Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce, TruncDate, TruncMonth
from django.utils import timezone

from appointments.models import Appointment
from client_profile.models import ClientProfile
from common.choices import ActiveStatus, AppointmentStatus, OrderStatus, PaymentStatus
from doctors.models import Doctor
from medical_services.models import Service
from orders.models import Order
from rating_and_reviews.models import Review

ZERO = Decimal("0.00")
EXPENSE_RATE = Decimal("0.30")
MONEY = DecimalField(max_digits=14, decimal_places=2)

CHILD = "Child"
ADULT = "Adult"
ELDERLY = "Elderly"


def money_sum(field: str, **kwargs) -> Coalesce:
    return Coalesce(Sum(field, **kwargs), Value(ZERO), output_field=MONEY)


def month_start(day: date, months_back: int = 0) -> date:
    """First day of the month ``months_back`` months before ``day``."""
    index = day.year * 12 + (day.month - 1) - months_back
    return date(index // 12, index % 12 + 1, 1)


def age_group(age: Optional[int]) -> str:
    if age is None or age >= 65:
        return ELDERLY
    if age < 18:
        return CHILD
    return ADULT


def growth_rate(today: int, yesterday: int) -> float:
    if yesterday > 0:
        return round((today - yesterday) / yesterday * 100, 2)
    return 100.0 if today > 0 else 0.0


def percentage(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


class DashboardAnalyticsService:
    """Read-only figures for the staff dashboard, computed against ``now``."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or timezone.now()
        self.today = timezone.localdate(self.now)

    def _start_of(self, day: date) -> datetime:
        return timezone.make_aware(datetime.combine(day, datetime.min.time()))

    # ------------------------------------------------------------------
    # Headline figures
    # ------------------------------------------------------------------
    def stats(self) -> Dict[str, object]:
        orders = Order.objects.all()
        return {
            "totalRevenue": orders.filter(payment_status=PaymentStatus.PAID).aggregate(
                total=money_sum("amount")
            )["total"],
            "totalClients": ClientProfile.objects.filter(status=ActiveStatus.ACTIVE).count(),
            "totalServices": Service.objects.count(),
            "appointmentsToday": Appointment.objects.filter(scheduled_at__date=self.today).count(),
            "monthlyRevenue": orders.filter(
                status=OrderStatus.COMPLETED,
                created_at__year=self.today.year,
                created_at__month=self.today.month,
            ).aggregate(total=money_sum("amount"))["total"],
            "inProgressCount": orders.filter(status=OrderStatus.IN_PROGRESS).count(),
        }

    def recent_activities(self, limit: int = 10) -> List[Dict[str, object]]:
        """Appointments created, orders paid and reviews written in the last week, newest first."""
        since = self.now - timedelta(days=7)
        rows: List[Dict[str, object]] = []

        appointments = (
            Appointment.objects.select_related("order__client__user", "order__doctor", "order__service")
            .filter(created_at__gte=since)
            .order_by("-created_at")[:limit]
        )
        for appointment in appointments:
            rows.append(self._activity("appointment", appointment.id, appointment.scheduled_at,
                                       appointment.status, appointment.order, appointment.created_at))

        payments = (
            Order.objects.select_related("client__user", "doctor", "service")
            .filter(payment_status=PaymentStatus.PAID, paid_at__gte=since)
            .order_by("-paid_at")[:limit]
        )
        for order in payments:
            rows.append(self._activity("payment", order.id, order.paid_at,
                                       order.payment_status, order, order.paid_at))

        reviews = (
            Review.objects.select_related(
                "appointment__order__client__user", "appointment__order__doctor", "appointment__order__service"
            )
            .filter(created_at__gte=since)
            .order_by("-created_at")[:limit]
        )
        for review in reviews:
            rows.append(self._activity("review", review.id, review.appointment.scheduled_at,
                                       AppointmentStatus.COMPLETED, review.appointment.order, review.created_at))

        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return rows[:limit]

    @staticmethod
    def _activity(kind, pk, timestamp, status, order, created_at) -> Dict[str, object]:
        return {
            "type": kind,
            "id": pk,
            "timestamp": timestamp,
            "status": status,
            "client_name": order.client.full_name,
            "doctor_name": order.doctor.full_name,
            "service_name": order.service.name,
            "created_at": created_at,
        }

    def today_schedule(self) -> List[Dict[str, object]]:
        appointments = (
            Appointment.objects.select_related(
                "order__client__user", "order__doctor", "order__service", "availability"
            )
            .filter(
                scheduled_at__date=self.today,
                status__in=[AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED],
            )
            .order_by("scheduled_at")
        )
        return [
            {
                "id": appointment.id,
                "scheduled_at": appointment.scheduled_at,
                "status": appointment.status,
                "session_number": appointment.session_number,
                "client_name": appointment.order.client.full_name,
                "doctor_name": appointment.order.doctor.full_name,
                "service_name": appointment.order.service.name,
                "start_time": appointment.availability.start_time if appointment.availability else None,
                "end_time": appointment.availability.end_time if appointment.availability else None,
            }
            for appointment in appointments
        ]

    # ------------------------------------------------------------------
    # Revenue
    # ------------------------------------------------------------------
    def revenue_chart(self) -> List[Dict[str, object]]:
        per_day = (
            Order.objects.annotate(day=TruncDate("created_at"))
            .values("day")
            .annotate(income=money_sum("amount", filter=Q(payment_status=PaymentStatus.PAID)))
            .order_by("day")
        )
        return [
            {
                "day_name": item["day"].strftime("%A"),
                "date": item["day"],
                "income": item["income"],
                "expense": (item["income"] * EXPENSE_RATE).quantize(Decimal("0.01")),
            }
            for item in per_day
        ]

    def monthly_revenue_chart(self, months: int = 6) -> List[Dict[str, object]]:
        per_month = (
            Order.objects.filter(
                payment_status=PaymentStatus.PAID,
                paid_at__gte=self._start_of(month_start(self.today, months - 1)),
            )
            .annotate(month=TruncMonth("paid_at"))
            .values("month")
            .annotate(revenue=money_sum("amount"), orders_count=Count("id"))
            .order_by("month")
        )
        return [
            {
                "month": item["month"].strftime("%Y-%m"),
                "revenue": item["revenue"],
                "orders_count": item["orders_count"],
            }
            for item in per_month
        ]

    def monthly_revenue_trend(self, months: int = 12) -> List[Dict[str, object]]:
        per_month = (
            Order.objects.filter(created_at__gte=self._start_of(month_start(self.today, months - 1)))
            .annotate(month=TruncMonth("created_at"))
            .values("month")
            .annotate(
                orders_count=Count("id"),
                revenue=money_sum("amount", filter=Q(payment_status=PaymentStatus.PAID)),
                total_amount=money_sum("amount"),
            )
            .order_by("month")
        )
        return [
            {
                "month": item["month"].strftime("%Y-%m"),
                "month_name": item["month"].strftime("%B %Y"),
                "orders_count": item["orders_count"],
                "revenue": item["revenue"],
                "total_amount": item["total_amount"],
            }
            for item in per_month
        ]

    def total_invoice_stats(self) -> Dict[str, object]:
        totals = Order.objects.aggregate(count=Count("id"), amount=money_sum("amount"))
        today_count = Order.objects.filter(created_at__date=self.today).count()
        yesterday_count = Order.objects.filter(created_at__date=self.today - timedelta(days=1)).count()
        return {
            "totalInvoices": totals["count"],
            "totalAmount": totals["amount"],
            "todayInvoices": today_count,
            "yesterdayInvoices": yesterday_count,
            "growthRate": growth_rate(today_count, yesterday_count),
        }

    def payment_status_distribution(self) -> Dict[str, object]:
        per_status = list(
            Order.objects.values("payment_status")
            .annotate(count=Count("id"), total_amount=money_sum("amount"))
            .order_by("-count", "payment_status")
        )
        total_orders = sum(item["count"] for item in per_status)
        return {
            "totalOrders": total_orders,
            "distribution": [
                {**item, "percentage": percentage(item["count"], total_orders)} for item in per_status
            ],
        }

    # ------------------------------------------------------------------
    # Appointments and patients
    # ------------------------------------------------------------------
    def appointments_distribution(self) -> List[Dict[str, object]]:
        return list(
            Appointment.objects.filter(scheduled_at__gte=self.now - timedelta(days=30))
            .values("status")
            .annotate(count=Count("id"))
            .order_by("status")
        )

    def patient_overview_by_age(self) -> List[Dict[str, object]]:
        """Distinct clients who ordered this month, bucketed by age."""
        clients = ClientProfile.objects.filter(
            orders__created_at__year=self.today.year,
            orders__created_at__month=self.today.month,
        ).distinct()
        counts = {CHILD: 0, ADULT: 0, ELDERLY: 0}
        for client in clients:
            counts[age_group(client.age(self.today))] += 1
        return [{"age_group": group, "patient_count": count} for group, count in counts.items()]

    def patient_overview_by_departments(self) -> Dict[str, object]:
        services = (
            Service.objects.annotate(patient_count=Count("orders__client", distinct=True))
            .filter(patient_count__gt=0)
            .order_by("-patient_count", "name")
        )
        total_patients = Order.objects.values("client").distinct().count()
        return {
            "totalPatients": total_patients,
            "departments": [
                {
                    "id": service.id,
                    "department": service.name,
                    "patient_count": service.patient_count,
                    "percentage": percentage(service.patient_count, total_patients),
                }
                for service in services
            ],
        }

    def top_doctors_by_patients(self, limit: int = 10) -> List[Dict[str, object]]:
        doctors = (
            Doctor.objects.filter(status=ActiveStatus.ACTIVE)
            .annotate(
                patient_count=Count("orders__client", distinct=True),
                total_orders=Count("orders", distinct=True),
                total_revenue=money_sum("orders__amount", filter=Q(orders__payment_status=PaymentStatus.PAID)),
            )
            .filter(total_orders__gt=0)
            .order_by("-patient_count", "full_name")[:limit]
        )
        return [
            {
                "id": doctor.id,
                "doctor_name": doctor.full_name,
                "specialty": doctor.specialty,
                "patient_count": doctor.patient_count,
                "total_orders": doctor.total_orders,
                "total_revenue": doctor.total_revenue,
            }
            for doctor in doctors
        ]

    def service_ratings_overview(self) -> List[Dict[str, object]]:
        services = Service.objects.annotate(
            total_reviews=Count("orders__appointments__reviews", distinct=True),
            raw_rating=Avg("orders__appointments__reviews__rating"),
            total_patients=Count("orders__client", distinct=True),
        ).order_by("name")
        rows = [
            {
                "id": service.id,
                "service_name": service.name,
                "price": service.price,
                "total_reviews": service.total_reviews,
                "average_rating": round(float(service.raw_rating), 1) if service.raw_rating is not None else 0.0,
                "total_patients": service.total_patients,
            }
            for service in services
        ]
        rows.sort(key=lambda row: (-row["average_rating"], -row["total_reviews"]))
        return rows
