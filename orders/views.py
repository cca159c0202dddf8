from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.response import Response

from .models import Order
from .serializers import (
    OrderCreateSerializer,
    OrderDetailSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    OrderUpdateSerializer,
)
from .services import change_order_status, create_order


class OrderViewSet(viewsets.ModelViewSet):
    """
    Clients place and view their own orders; staff manage every order.
    """
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['status', 'payment_status', 'doctor', 'service', 'client']
    ordering_fields = ['created_at', 'amount', 'paid_at']

    def get_permissions(self):
        if self.action in ('create', 'list', 'retrieve'):
            return [permissions.IsAuthenticated()]
        return [permissions.IsAdminUser()]

    def get_queryset(self):
        qs = Order.objects.select_related('client__user', 'doctor', 'service').order_by('-created_at', '-id')
        user = self.request.user
        if user.is_staff:
            return qs
        return qs.filter(client__user=user)

    def get_serializer_class(self):
        if self.action == 'create':
            return OrderCreateSerializer
        if self.action in ('update', 'partial_update'):
            return OrderUpdateSerializer
        if self.action == 'retrieve':
            return OrderDetailSerializer
        if self.action == 'change_status':
            return OrderStatusSerializer
        return OrderSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        user = request.user
        if user.is_staff:
            if 'client' not in data:
                raise ValidationError({'client_id': 'This field is required.'})
        else:
            profile = getattr(user, 'client_profile', None)
            if profile is None:
                raise PermissionDenied('Only clients can place orders.')
            data['client'] = profile

        order = create_order(**data)
        return Response(OrderDetailSerializer(order).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(OrderSerializer(instance).data)

    @action(detail=True, methods=['patch'], url_path='status')
    def change_status(self, request, pk=None):
        order = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        change_order_status(order, serializer.validated_data['status'])
        return Response(OrderDetailSerializer(order).data)
