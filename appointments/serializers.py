from rest_framework import serializers

from common.choices import AppointmentStatus, AvailabilityStatus
from common.exceptions import Conflict

from .models import Appointment, DoctorAvailability

LEGACY_SESSION_STATUSES = [
    (value, label)
    for value, label in AppointmentStatus.choices
    if value != AppointmentStatus.RESCHEDULED
]


class DoctorAvailabilitySerializer(serializers.ModelSerializer):
    doctor_name = serializers.ReadOnlyField(source='doctor.full_name')

    class Meta:
        model = DoctorAvailability
        fields = [
            'id',
            'doctor',
            'doctor_name',
            'available_date',
            'start_time',
            'end_time',
            'status',
            'is_active',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
        # duplicates are reported as 409 from validate()
        validators = []

    def validate(self, attrs):
        def current(field):
            return attrs.get(field, getattr(self.instance, field, None))

        start_time, end_time = current('start_time'), current('end_time')
        if start_time and end_time and start_time >= end_time:
            raise serializers.ValidationError({'end_time': 'Start time must be before end time.'})

        clash = DoctorAvailability.objects.filter(
            doctor=current('doctor'),
            available_date=current('available_date'),
            start_time=start_time,
            end_time=end_time,
        )
        if self.instance is not None:
            clash = clash.exclude(pk=self.instance.pk)
        if clash.exists():
            raise Conflict('This doctor already has a slot at that date and time.')
        return attrs


class AppointmentSerializer(serializers.ModelSerializer):
    client_name = serializers.ReadOnlyField(source='order.client.full_name')
    doctor_name = serializers.ReadOnlyField(source='order.doctor.full_name')
    service_name = serializers.ReadOnlyField(source='order.service.name')
    available_date = serializers.ReadOnlyField(source='availability.available_date')
    start_time = serializers.ReadOnlyField(source='availability.start_time')
    end_time = serializers.ReadOnlyField(source='availability.end_time')

    class Meta:
        model = Appointment
        fields = [
            'id',
            'order',
            'session_number',
            'scheduled_at',
            'status',
            'notes',
            'completion_notes',
            'availability',
            'available_date',
            'start_time',
            'end_time',
            'client_name',
            'doctor_name',
            'service_name',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class MyAppointmentSerializer(serializers.ModelSerializer):
    doctor = serializers.SerializerMethodField()
    service = serializers.SerializerMethodField()
    progress = serializers.SerializerMethodField()

    class Meta:
        model = Appointment
        fields = [
            'id',
            'order',
            'session_number',
            'scheduled_at',
            'status',
            'notes',
            'completion_notes',
            'doctor',
            'service',
            'progress',
        ]
        read_only_fields = fields

    def get_doctor(self, obj):
        doctor = obj.order.doctor
        return {
            'id': doctor.id,
            'full_name': doctor.full_name,
            'specialty': doctor.specialty,
            'profile_picture': doctor.profile_picture,
        }

    def get_service(self, obj):
        service = obj.order.service
        return {'id': service.id, 'name': service.name, 'price': str(service.price)}

    def get_progress(self, obj):
        return {
            'completed_sessions': obj.order.completed_sessions,
            'total_sessions': obj.order.number_of_sessions,
        }


class AppointmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AppointmentStatus.choices)
    notes = serializers.CharField(required=False, allow_blank=True)
    completion_notes = serializers.CharField(required=False, allow_blank=True)


class AppointmentCompleteSerializer(serializers.Serializer):
    completion_notes = serializers.CharField(required=False, allow_blank=True)


class AppointmentRescheduleSerializer(serializers.Serializer):
    new_scheduled_at = serializers.DateTimeField()


class DateRangeSerializer(serializers.Serializer):
    start = serializers.DateField()
    end = serializers.DateField()

    def validate(self, attrs):
        if attrs['end'] < attrs['start']:
            raise serializers.ValidationError({'end': 'end must not be before start.'})
        return attrs


# -----------------------------
# Legacy session contract
# -----------------------------
class SessionSerializer(serializers.ModelSerializer):
    order_id = serializers.PrimaryKeyRelatedField(source='order', read_only=True)
    status = serializers.ChoiceField(choices=LEGACY_SESSION_STATUSES, required=False)

    class Meta:
        model = Appointment
        fields = [
            'id',
            'order_id',
            'session_number',
            'scheduled_at',
            'status',
            'notes',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'order_id', 'session_number', 'created_at', 'updated_at']


class SessionCreateSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    scheduled_at = serializers.DateTimeField()
    notes = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=LEGACY_SESSION_STATUSES, required=False)


class SessionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=LEGACY_SESSION_STATUSES)


class AvailabilityFilterSerializer(serializers.Serializer):
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=AvailabilityStatus.choices, required=False)
    isActive = serializers.BooleanField(required=False)
