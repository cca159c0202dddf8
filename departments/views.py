from django.db.models import Count, Q
from rest_framework import filters, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from common.permissions import IsAdminOrReadOnly
from common.utils import ensure_found, get_search_term

from .models import Department
from .serializers import DepartmentSerializer


class DepartmentViewSet(viewsets.ModelViewSet):
    serializer_class = DepartmentSerializer
    permission_classes = [IsAdminOrReadOnly]
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['name', 'description']
    ordering_fields = ['name', 'created_at']

    def get_queryset(self):
        return Department.objects.annotate(doctor_count=Count('doctors')).order_by('name')

    @action(detail=False, methods=['get'])
    def search(self, request):
        term = get_search_term(request)
        queryset = ensure_found(
            self.get_queryset().filter(Q(name__icontains=term) | Q(description__icontains=term)),
            'No departments match the search term.',
        )
        return Response(self.get_serializer(queryset, many=True).data)
