from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AppointmentViewSet, DoctorAvailabilityViewSet, SessionViewSet

router = DefaultRouter()
router.register(r"appointments", AppointmentViewSet, basename="appointments")
router.register(r"sessions", SessionViewSet, basename="sessions")
router.register(r"doctor-availability", DoctorAvailabilityViewSet, basename="doctor-availability")

urlpatterns = [
    path("", include(router.urls)),
]
