from django.db.models import ProtectedError, Q
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from common.utils import ensure_found, get_search_term

from .models import ClientProfile
from .serializers import ClientProfileSerializer


class ClientProfileViewSet(viewsets.ModelViewSet):
    """
    Back-office management of clients (staff only).
    """
    serializer_class = ClientProfileSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'gender']
    search_fields = ['user__email', 'user__full_name', 'user__phone_number']
    ordering_fields = ['created_at', 'birth_date']

    def get_queryset(self):
        return ClientProfile.objects.select_related('user').order_by('-created_at')

    def perform_destroy(self, instance):
        try:
            instance.user.delete()
        except ProtectedError:
            raise ValidationError({'detail': 'Cannot delete a client that still has orders or reviews.'})

    @action(detail=False, methods=['get'])
    def search(self, request):
        term = get_search_term(request)
        queryset = ensure_found(
            self.get_queryset().filter(
                Q(user__email__icontains=term)
                | Q(user__full_name__icontains=term)
                | Q(user__phone_number__icontains=term)
            ),
            'No clients match the search term.',
        )
        serializer = self.get_serializer(queryset, many=True)
        return Response(serializer.data)
