from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, permissions, viewsets
from rest_framework.response import Response

from .models import Notification, Reminder
from .serializers import NotificationSerializer, ReminderSerializer


class NotificationListView(generics.ListAPIView):
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user).order_by("-created_at")


class NotificationRetrieveView(generics.RetrieveAPIView):
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = 'id'

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)


class NotificationMarkReadView(generics.UpdateAPIView):
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = 'id'
    http_method_names = ['patch', 'put']

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)

    def update(self, request, *args, **kwargs):
        notification = self.get_object()
        notification.status = Notification.Status.READ
        notification.save(update_fields=["status", "updated_at"])
        return Response(NotificationSerializer(notification).data)


class NotificationDeleteView(generics.DestroyAPIView):
    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = 'id'

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)


class ReminderViewSet(viewsets.ModelViewSet):
    """
    Back-office management of scheduled appointment reminders.
    """
    serializer_class = ReminderSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status', 'type']

    def get_queryset(self):
        queryset = Reminder.objects.select_related("client__user", "appointment__order")
        client_id = self.request.query_params.get("client_id")
        appointment_id = self.request.query_params.get("appointment_id")
        if client_id:
            queryset = queryset.filter(client_id=client_id)
        if appointment_id:
            queryset = queryset.filter(appointment_id=appointment_id)
        return queryset.order_by("scheduled_send")
