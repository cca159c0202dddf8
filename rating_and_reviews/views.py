from django.db import IntegrityError, transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.response import Response

from appointments.models import Appointment
from client_profile.models import ClientProfile
from common.choices import AppointmentStatus
from common.exceptions import Conflict
from common.pagination import StandardResultsSetPagination
from doctors.models import Doctor

from .models import Review
from .serializers import (
    ReviewCreateSerializer,
    ReviewFilterSerializer,
    ReviewSerializer,
    ReviewUpdateSerializer,
)
from .tasks import notify_staff_of_new_review_task


class ReviewPagination(StandardResultsSetPagination):
    page_size = 7


class IsReviewOwnerOrAdmin(permissions.BasePermission):
    """
    Only the client who wrote the review, or staff, may change or delete it.
    """
    def has_object_permission(self, request, view, obj):
        if request.user.is_staff:
            return True
        return obj.client.user_id == request.user.id


class ReviewViewSet(viewsets.ModelViewSet):
    """
    - list, retrieve, appointment/{id}, doctor/{id}: public
    - create: authenticated client (staff pass ``client_id``)
    - update, destroy: owner or staff
    """
    serializer_class = ReviewSerializer
    pagination_class = ReviewPagination

    def get_permissions(self):
        if self.action in ["update", "partial_update", "destroy"]:
            permission_classes = [permissions.IsAuthenticated, IsReviewOwnerOrAdmin]
        elif self.action == "create":
            permission_classes = [permissions.IsAuthenticated]
        else:
            permission_classes = [permissions.AllowAny]
        return [permission() for permission in permission_classes]

    def get_queryset(self):
        return Review.objects.select_related(
            'client__user',
            'appointment__order__doctor',
            'appointment__order__service',
        ).order_by('-created_at', '-id')

    def filter_queryset(self, queryset):
        if self.action != 'list':
            return queryset
        params = ReviewFilterSerializer(data=self.request.query_params.dict())
        params.is_valid(raise_exception=True)
        filters_ = params.validated_data

        term = filters_.get('search', '').strip()
        if term:
            queryset = queryset.filter(
                Q(client__user__full_name__icontains=term) | Q(comment__icontains=term)
            )
        if 'expert' in filters_:
            queryset = queryset.filter(appointment__order__doctor_id=filters_['expert'])
        if 'service' in filters_:
            queryset = queryset.filter(appointment__order__service_id=filters_['service'])
        return queryset

    def _resolve_client(self, request, client_id):
        if request.user.is_staff:
            if client_id is None:
                raise ValidationError({'client_id': 'This field is required.'})
            return get_object_or_404(ClientProfile, pk=client_id)
        client = getattr(request.user, 'client_profile', None)
        if client is None:
            raise PermissionDenied("Only clients can review their sessions.")
        return client

    def create(self, request, *args, **kwargs):
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        appointment = get_object_or_404(Appointment.objects.select_related('order'), pk=data['appointment_id'])
        client = self._resolve_client(request, data.get('client_id'))

        if appointment.order.client_id != client.pk:
            raise ValidationError({'appointment_id': 'You can only review your own appointments.'})
        if appointment.status != AppointmentStatus.COMPLETED:
            raise ValidationError({'appointment_id': 'Only completed appointments can be reviewed.'})
        if Review.objects.filter(appointment=appointment, client=client).exists():
            raise Conflict('This appointment has already been reviewed.')

        try:
            with transaction.atomic():
                review = Review.objects.create(
                    appointment=appointment,
                    client=client,
                    rating=data['rating'],
                    comment=data.get('comment', ''),
                )
        except IntegrityError:
            raise Conflict('This appointment has already been reviewed.')

        notify_staff_of_new_review_task.delay(review.id)

        review = self.get_queryset().get(pk=review.pk)
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        review = self.get_object()
        serializer = ReviewUpdateSerializer(review, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(ReviewSerializer(review).data)

    @action(detail=False, methods=['get'], url_path=r'appointment/(?P<appointment_id>\d+)')
    def by_appointment(self, request, appointment_id=None):
        appointment = get_object_or_404(Appointment, pk=appointment_id)
        reviews = self.get_queryset().filter(appointment=appointment)
        return Response(ReviewSerializer(reviews, many=True).data)

    @action(detail=False, methods=['get'], url_path=r'doctor/(?P<doctor_id>\d+)')
    def by_doctor(self, request, doctor_id=None):
        doctor = get_object_or_404(Doctor, pk=doctor_id)
        reviews = self.get_queryset().filter(appointment__order__doctor=doctor)
        return Response(ReviewSerializer(reviews, many=True).data)
