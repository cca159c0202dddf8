from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    NotificationDeleteView,
    NotificationListView,
    NotificationMarkReadView,
    NotificationRetrieveView,
    ReminderViewSet,
)

router = DefaultRouter()
router.register(r"reminders", ReminderViewSet, basename="reminders")

urlpatterns = [
    path('notifications/', NotificationListView.as_view(), name='notifications-list'),
    path('notifications/<int:id>/', NotificationRetrieveView.as_view(), name='notifications-retrieve'),
    path('notifications/<int:id>/mark-read/', NotificationMarkReadView.as_view(), name='notifications-mark-read'),
    path('notifications/<int:id>/delete/', NotificationDeleteView.as_view(), name='notifications-delete'),
    path("", include(router.urls)),
]
