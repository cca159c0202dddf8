from decimal import Decimal

from django.db import transaction
from django.utils import timezone
from rest_framework import serializers

from appointments.models import Appointment
from client_profile.models import ClientProfile
from common.choices import OrderStatus, PaymentMethod, PaymentStatus
from doctors.models import Doctor
from medical_services.models import Service

from .models import Order
from .services import change_order_status


class OrderCreateSerializer(serializers.Serializer):
    client_id = serializers.PrimaryKeyRelatedField(
        queryset=ClientProfile.objects.all(), source='client', required=False
    )
    doctor_id = serializers.PrimaryKeyRelatedField(queryset=Doctor.objects.all(), source='doctor')
    service_id = serializers.PrimaryKeyRelatedField(queryset=Service.objects.all(), source='service')
    number_of_sessions = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    availability_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)


class OrderSerializer(serializers.ModelSerializer):
    client_id = serializers.ReadOnlyField(source='client.id')
    client_name = serializers.ReadOnlyField(source='client.full_name')
    doctor_id = serializers.ReadOnlyField(source='doctor.id')
    doctor_name = serializers.ReadOnlyField(source='doctor.full_name')
    service_id = serializers.ReadOnlyField(source='service.id')
    service_name = serializers.ReadOnlyField(source='service.name')
    service_price = serializers.DecimalField(source='service.price', max_digits=12, decimal_places=2, read_only=True)
    service_sessions = serializers.ReadOnlyField(source='service.number_of_sessions')

    class Meta:
        model = Order
        fields = [
            'id',
            'client_id',
            'client_name',
            'doctor_id',
            'doctor_name',
            'service_id',
            'service_name',
            'service_price',
            'service_sessions',
            'number_of_sessions',
            'completed_sessions',
            'amount',
            'payment_method',
            'payment_status',
            'paid_at',
            'status',
            'notes',
            'availability_ids',
            'started_at',
            'completed_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class OrderAppointmentSerializer(serializers.ModelSerializer):
    available_date = serializers.ReadOnlyField(source='availability.available_date')
    start_time = serializers.ReadOnlyField(source='availability.start_time')
    end_time = serializers.ReadOnlyField(source='availability.end_time')
    availability_status = serializers.ReadOnlyField(source='availability.status')

    class Meta:
        model = Appointment
        fields = [
            'id',
            'session_number',
            'scheduled_at',
            'status',
            'notes',
            'completion_notes',
            'availability',
            'available_date',
            'start_time',
            'end_time',
            'availability_status',
        ]
        read_only_fields = fields


class OrderDetailSerializer(OrderSerializer):
    appointments = serializers.SerializerMethodField()

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ['appointments']
        read_only_fields = fields

    def get_appointments(self, obj):
        appointments = obj.appointments.select_related('availability').order_by('session_number')
        return OrderAppointmentSerializer(appointments, many=True).data


class OrderUpdateSerializer(serializers.ModelSerializer):
    number_of_sessions = serializers.IntegerField(min_value=1, required=False)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)

    class Meta:
        model = Order
        fields = ['status', 'notes', 'payment_method', 'payment_status', 'paid_at', 'number_of_sessions', 'amount']

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError({'detail': 'No fields to update.'})
        return attrs

    def update(self, instance, validated_data):
        if validated_data.get('payment_status') == PaymentStatus.PAID and not validated_data.get('paid_at'):
            validated_data['paid_at'] = instance.paid_at or timezone.now()
        new_status = validated_data.pop('status', None)
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            # Status goes through the locked transition so confirmation generates sessions.
            if new_status is not None and new_status != instance.status:
                change_order_status(instance, new_status)
        return instance


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
