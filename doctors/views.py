from django.db.models import Avg, Count, ProtectedError, Q
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from common.permissions import IsAdminOrReadOnly
from common.utils import ensure_found, get_search_term

from .models import Doctor, Experience, Qualification
from .serializers import (
    DoctorDetailSerializer,
    DoctorSerializer,
    ExperienceSerializer,
    QualificationSerializer,
)


def with_rating_summary(queryset):
    """Annotate doctors with the average rating and count of reviews on their appointments."""
    return queryset.annotate(
        average_rating=Avg('orders__appointments__reviews__rating'),
        review_count=Count('orders__appointments__reviews', distinct=True),
    )


class DoctorViewSet(viewsets.ModelViewSet):
    """
    Doctors are public to read; only staff can manage them, their
    qualifications and their experiences.
    """
    permission_classes = [IsAdminOrReadOnly]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'department']
    search_fields = ['full_name', 'email', 'specialty']
    ordering_fields = ['full_name', 'created_at']

    def get_queryset(self):
        qs = Doctor.objects.select_related('department')
        if self.action in ('list', 'retrieve', 'search'):
            qs = with_rating_summary(qs)
        if self.action == 'retrieve':
            qs = qs.prefetch_related('qualifications', 'experiences', 'services')
        return qs.order_by('full_name')

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return DoctorDetailSerializer
        if self.action in ('qualifications', 'qualification_detail'):
            return QualificationSerializer
        if self.action in ('experiences', 'experience_detail'):
            return ExperienceSerializer
        return DoctorSerializer

    def perform_destroy(self, instance):
        try:
            instance.delete()
        except ProtectedError:
            raise ValidationError({'detail': 'Cannot delete a doctor that is referenced by orders.'})

    @action(detail=False, methods=['get'])
    def search(self, request):
        term = get_search_term(request)
        queryset = ensure_found(
            self.get_queryset().filter(
                Q(full_name__icontains=term) | Q(email__icontains=term) | Q(specialty__icontains=term)
            ),
            'No doctors match the search term.',
        )
        return Response(self.get_serializer(queryset, many=True).data)

    # -----------------------------
    # Qualifications
    # -----------------------------
    @action(detail=True, methods=['get', 'post'])
    def qualifications(self, request, pk=None):
        doctor = self.get_object()
        if request.method == 'GET':
            return Response(self.get_serializer(doctor.qualifications.all(), many=True).data)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save(doctor=doctor)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @action(
        detail=False,
        methods=['put', 'patch', 'delete'],
        url_path=r'qualifications/(?P<qualification_id>\d+)',
    )
    def qualification_detail(self, request, qualification_id=None):
        qualification = get_object_or_404(Qualification, pk=qualification_id)
        if request.method == 'DELETE':
            qualification.delete()
            return Response(status=status.HTTP_204_NO_CONTENT)
        serializer = self.get_serializer(qualification, data=request.data, partial=request.method == 'PATCH')
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    # -----------------------------
    # Experiences
    # -----------------------------
    @action(detail=True, methods=['get', 'post'])
    def experiences(self, request, pk=None):
        doctor = self.get_object()
        if request.method == 'GET':
            return Response(self.get_serializer(doctor.experiences.all(), many=True).data)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save(doctor=doctor)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @action(
        detail=False,
        methods=['put', 'patch', 'delete'],
        url_path=r'experiences/(?P<experience_id>\d+)',
    )
    def experience_detail(self, request, experience_id=None):
        experience = get_object_or_404(Experience, pk=experience_id)
        if request.method == 'DELETE':
            experience.delete()
            return Response(status=status.HTTP_204_NO_CONTENT)
        serializer = self.get_serializer(experience, data=request.data, partial=request.method == 'PATCH')
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)
