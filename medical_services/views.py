from django.db.models import ProtectedError, Q
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.response import Response

from common.permissions import IsAdminOrReadOnly
from common.utils import ensure_found, get_search_term
from doctors.models import Doctor

from .models import Service
from .serializers import AssignDoctorSerializer, ServiceSerializer


class ServiceViewSet(viewsets.ModelViewSet):
    serializer_class = ServiceSerializer
    permission_classes = [IsAdminOrReadOnly]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['doctors']
    search_fields = ['name', 'description']
    ordering_fields = ['name', 'price', 'created_at']

    def get_queryset(self):
        return Service.objects.prefetch_related('doctors').order_by('name')

    def get_serializer_class(self):
        if self.action == 'assign_doctor':
            return AssignDoctorSerializer
        return ServiceSerializer

    def perform_destroy(self, instance):
        try:
            instance.delete()
        except ProtectedError:
            raise ValidationError({'detail': 'Cannot delete a service that is referenced by orders.'})

    @action(detail=False, methods=['get'])
    def search(self, request):
        term = get_search_term(request)
        queryset = ensure_found(
            self.get_queryset().filter(Q(name__icontains=term) | Q(description__icontains=term)),
            'No services match the search term.',
        )
        return Response(ServiceSerializer(queryset, many=True).data)

    @action(detail=True, methods=['post'], url_path='assign-doctor')
    def assign_doctor(self, request, pk=None):
        service = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        doctor = get_object_or_404(Doctor, pk=serializer.validated_data['doctor_id'])

        if service.doctors.filter(pk=doctor.pk).exists():
            raise ValidationError({'doctor_id': 'Doctor is already assigned to this service.'})

        service.doctors.add(doctor)
        return Response(ServiceSerializer(service).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['delete'], url_path=r'doctors/(?P<doctor_id>\d+)')
    def remove_doctor(self, request, pk=None, doctor_id=None):
        service = self.get_object()
        if not service.doctors.filter(pk=doctor_id).exists():
            raise NotFound('Doctor is not assigned to this service.')
        service.doctors.remove(doctor_id)
        return Response(status=status.HTTP_204_NO_CONTENT)
