from rest_framework import serializers

from appointments.models import Appointment
from client_profile.models import ClientProfile

from .models import Notification, Reminder


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "user",
            "title",
            "message",
            "type",
            "status",
            "link",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "user", "status", "created_at", "updated_at"]


class ReminderSerializer(serializers.ModelSerializer):
    client_id = serializers.PrimaryKeyRelatedField(source="client", queryset=ClientProfile.objects.all())
    appointment_id = serializers.PrimaryKeyRelatedField(
        source="appointment", queryset=Appointment.objects.select_related("order")
    )
    client_name = serializers.CharField(source="client.full_name", read_only=True)
    appointment_time = serializers.DateTimeField(source="appointment.scheduled_at", read_only=True)

    class Meta:
        model = Reminder
        fields = [
            "id",
            "client_id",
            "client_name",
            "appointment_id",
            "appointment_time",
            "type",
            "scheduled_send",
            "sent_at",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "sent_at", "created_at", "updated_at"]

    def validate(self, attrs):
        client = attrs.get("client", getattr(self.instance, "client", None))
        appointment = attrs.get("appointment", getattr(self.instance, "appointment", None))
        if client and appointment and appointment.order.client_id != client.pk:
            raise serializers.ValidationError({"client_id": "The client does not own this appointment."})
        return attrs
