"""
URL configuration for the mindbridge project.
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)

urlpatterns = [
    # Admin Panel
    path("admin/", admin.site.urls),

    # Local Apps
    path("api/auth/", include("users.urls")),
    path("api/dashboard/", include("appointments.dashboard.urls")),
    path("api/", include("client_profile.urls")),
    path("api/", include("departments.urls")),
    path("api/", include("doctors.urls")),
    path("api/", include("medical_services.urls")),
    path("api/", include("orders.urls")),
    path("api/", include("appointments.urls")),
    path("api/", include("rating_and_reviews.urls")),
    path("api/", include("notifications.urls")),

    # API Docs
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path(
        "api/docs/",
        SpectacularSwaggerView.as_view(url_name="schema"),
        name="swagger-ui",
    ),
    path(
        "api/redoc/",
        SpectacularRedocView.as_view(url_name="schema"),
        name="redoc",
    ),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
