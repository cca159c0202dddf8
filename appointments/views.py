from django.db import transaction
from django.db.models import Max
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from common.choices import AppointmentStatus
from common.pagination import StandardResultsSetPagination
from common.permissions import IsAdminOrReadOnly, IsClient
from doctors.models import Doctor
from orders.models import Order

from .models import Appointment, DoctorAvailability
from .serializers import (
    AppointmentCompleteSerializer,
    AppointmentRescheduleSerializer,
    AppointmentSerializer,
    AppointmentStatusSerializer,
    AvailabilityFilterSerializer,
    DateRangeSerializer,
    DoctorAvailabilitySerializer,
    MyAppointmentSerializer,
    SessionCreateSerializer,
    SessionSerializer,
    SessionStatusSerializer,
)

ROLLUP_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)


class DoctorAppointmentsPagination(StandardResultsSetPagination):
    page_size = 10


def appointment_queryset():
    return Appointment.objects.select_related(
        'order__client__user', 'order__doctor', 'order__service', 'availability'
    )


# -----------------------------
# Availability slots
# -----------------------------
class DoctorAvailabilityViewSet(viewsets.ModelViewSet):
    serializer_class = DoctorAvailabilitySerializer
    permission_classes = [IsAdminOrReadOnly]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['doctor', 'status', 'is_active', 'available_date']
    ordering_fields = ['available_date', 'start_time']

    def get_queryset(self):
        return DoctorAvailability.objects.select_related('doctor').order_by('available_date', 'start_time')

    @action(detail=False, methods=['get'], url_path=r'doctor/(?P<doctor_id>\d+)')
    def by_doctor(self, request, doctor_id=None):
        doctor = get_object_or_404(Doctor, pk=doctor_id)
        params = AvailabilityFilterSerializer(data=request.query_params.dict())
        params.is_valid(raise_exception=True)
        filters_ = params.validated_data

        queryset = self.get_queryset().filter(doctor=doctor)
        if 'startDate' in filters_:
            queryset = queryset.filter(available_date__gte=filters_['startDate'])
        if 'endDate' in filters_:
            queryset = queryset.filter(available_date__lte=filters_['endDate'])
        if 'status' in filters_:
            queryset = queryset.filter(status=filters_['status'])
        if 'isActive' in filters_:
            queryset = queryset.filter(is_active=filters_['isActive'])

        return Response(self.get_serializer(queryset, many=True).data)


# -----------------------------
# Appointments
# -----------------------------
class AppointmentViewSet(viewsets.ModelViewSet):
    """
    Staff manage every appointment; clients list and cancel their own.
    """
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['status', 'order', 'order__doctor']
    ordering_fields = ['scheduled_at', 'created_at']

    def get_permissions(self):
        if self.action in ('my', 'cancel'):
            return [IsClient()]
        return [permissions.IsAdminUser()]

    def get_queryset(self):
        return appointment_queryset().order_by('-scheduled_at')

    def get_serializer_class(self):
        if self.action == 'my':
            return MyAppointmentSerializer
        if self.action == 'complete':
            return AppointmentCompleteSerializer
        if self.action == 'set_status':
            return AppointmentStatusSerializer
        if self.action == 'reschedule':
            return AppointmentRescheduleSerializer
        return AppointmentSerializer

    def perform_create(self, serializer):
        with transaction.atomic():
            appointment = serializer.save()
            if appointment.status in ROLLUP_STATUSES:
                appointment.order.recompute_progress()

    def perform_update(self, serializer):
        previous = serializer.instance.status
        with transaction.atomic():
            appointment = serializer.save()
            if previous != appointment.status and (previous in ROLLUP_STATUSES or appointment.status in ROLLUP_STATUSES):
                appointment.order.recompute_progress()

    def perform_destroy(self, instance):
        order = instance.order
        with transaction.atomic():
            instance.delete()
            order.recompute_progress()

    @action(detail=False, methods=['get'])
    def my(self, request):
        queryset = self.get_queryset().filter(order__client__user=request.user)
        return Response(self.get_serializer(queryset, many=True).data)

    @action(detail=True, methods=['put'])
    def cancel(self, request, pk=None):
        appointment = get_object_or_404(self.get_queryset(), pk=pk, order__client__user=request.user)
        appointment.cancel()
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['put'])
    def complete(self, request, pk=None):
        appointment = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        appointment.complete(completion_notes=serializer.validated_data.get('completion_notes'))
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['put'], url_path='status', url_name='status')
    def set_status(self, request, pk=None):
        appointment = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        appointment.update_status(data.pop('status'), **data)
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['put'])
    def reschedule(self, request, pk=None):
        appointment = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        appointment.reschedule(serializer.validated_data['new_scheduled_at'])
        return Response(AppointmentSerializer(appointment).data)

    @action(detail=False, methods=['get'])
    def week(self, request):
        dates = DateRangeSerializer(data=request.query_params.dict())
        dates.is_valid(raise_exception=True)
        queryset = appointment_queryset().filter(
            scheduled_at__date__gte=dates.validated_data['start'],
            scheduled_at__date__lte=dates.validated_data['end'],
        ).order_by('scheduled_at')
        return Response(AppointmentSerializer(queryset, many=True).data)

    @action(detail=False, methods=['get'], url_path=r'doctor/(?P<doctor_id>\d+)')
    def by_doctor(self, request, doctor_id=None):
        doctor = get_object_or_404(Doctor, pk=doctor_id)
        queryset = self.get_queryset().filter(order__doctor=doctor)

        paginator = DoctorAppointmentsPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(AppointmentSerializer(page, many=True).data)


# -----------------------------
# Legacy session endpoints
# -----------------------------
class SessionViewSet(viewsets.ModelViewSet):
    """
    The appointment records exposed with the older ``sessions`` contract.
    """
    serializer_class = SessionSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):
        return Appointment.objects.select_related('order').order_by('order_id', 'session_number')

    def get_serializer_class(self):
        if self.action == 'create':
            return SessionCreateSerializer
        if self.action == 'set_status':
            return SessionStatusSerializer
        return SessionSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = get_object_or_404(Order, pk=data['order_id'])

        with transaction.atomic():
            locked = Order.objects.select_for_update().get(pk=order.pk)
            last = locked.appointments.aggregate(last=Max('session_number'))['last'] or 0
            session = Appointment.objects.create(
                order=locked,
                session_number=last + 1,
                scheduled_at=data['scheduled_at'],
                notes=data.get('notes', ''),
                status=data.get('status', AppointmentStatus.PENDING),
            )
            if session.status in ROLLUP_STATUSES:
                locked.recompute_progress()

        return Response(SessionSerializer(session).data, status=status.HTTP_201_CREATED)

    def perform_update(self, serializer):
        previous = serializer.instance.status
        with transaction.atomic():
            session = serializer.save()
            if previous != session.status:
                session.order.recompute_progress()

    def perform_destroy(self, instance):
        order = instance.order
        with transaction.atomic():
            instance.delete()
            order.recompute_progress()

    @action(detail=False, methods=['get'], url_path=r'order/(?P<order_id>\d+)')
    def by_order(self, request, order_id=None):
        order = get_object_or_404(Order, pk=order_id)
        sessions = order.appointments.order_by('session_number')
        return Response(SessionSerializer(sessions, many=True).data)

    @action(detail=True, methods=['patch'], url_path='status', url_name='status')
    def set_status(self, request, pk=None):
        session = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session.update_status(serializer.validated_data['status'])
        return Response(SessionSerializer(session).data)
