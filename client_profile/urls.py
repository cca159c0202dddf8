from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import ClientProfileViewSet

router = DefaultRouter()
router.register(r"clients", ClientProfileViewSet, basename="clients")

urlpatterns = [
    path("", include(router.urls)),
]
