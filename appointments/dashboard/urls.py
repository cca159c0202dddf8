from django.urls import path

from .serializers import DashboardStatsSerializer, InvoiceStatsSerializer, ScheduleEntrySerializer
from .views import DashboardMetricView, RecentActivitiesView


def metric(name, **kwargs):
    return DashboardMetricView.as_view(metric=name, **kwargs)


urlpatterns = [
    path("stats/", metric("stats", serializer_class=DashboardStatsSerializer), name="dashboard-stats"),
    path("activities/", RecentActivitiesView.as_view(), name="dashboard-activities"),
    path(
        "schedule/",
        metric("today_schedule", serializer_class=ScheduleEntrySerializer, many=True),
        name="dashboard-schedule",
    ),
    path("revenue-chart/", metric("revenue_chart"), name="dashboard-revenue-chart"),
    path("monthly-revenue-chart/", metric("monthly_revenue_chart"), name="dashboard-monthly-revenue-chart"),
    path(
        "appointments-distribution/",
        metric("appointments_distribution"),
        name="dashboard-appointments-distribution",
    ),
    path(
        "total-invoice-stats/",
        metric("total_invoice_stats", serializer_class=InvoiceStatsSerializer),
        name="dashboard-total-invoice-stats",
    ),
    path("patient-overview-by-age/", metric("patient_overview_by_age"), name="dashboard-patient-overview-by-age"),
    path(
        "patient-overview-by-departments/",
        metric("patient_overview_by_departments"),
        name="dashboard-patient-overview-by-departments",
    ),
    path(
        "payment-status-distribution/",
        metric("payment_status_distribution"),
        name="dashboard-payment-status-distribution",
    ),
    path("monthly-revenue-trend/", metric("monthly_revenue_trend"), name="dashboard-monthly-revenue-trend"),
    path(
        "top-doctors-by-patients/",
        metric("top_doctors_by_patients"),
        name="dashboard-top-doctors-by-patients",
    ),
    path(
        "service-ratings-overview/",
        metric("service_ratings_overview"),
        name="dashboard-service-ratings-overview",
    ),
]
