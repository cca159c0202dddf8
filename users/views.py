import logging

from django.contrib.auth import authenticate, get_user_model
from rest_framework import generics, permissions, status
from rest_framework.exceptions import AuthenticationFailed, PermissionDenied, ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from client_profile.serializers import ClientSelfProfileSerializer
from client_profile.services import create_client
from common.permissions import IsClient

from .serializers import (
    AdminLoginSerializer,
    AdminProfileSerializer,
    AdminRegisterSerializer,
    ClientLoginSerializer,
    ClientRegisterSerializer,
    LogoutSerializer,
    UserSerializer,
)
from .throttles import LoginRateThrottle
from .tokens import issue_tokens

logger = logging.getLogger(__name__)
User = get_user_model()


# ================= Admin =================
class AdminRegisterView(generics.CreateAPIView):
    """
    The first admin can register freely; after that only staff can add admins.
    """
    serializer_class = AdminRegisterSerializer

    def get_permissions(self):
        if User.objects.filter(is_staff=True).exists():
            return [permissions.IsAdminUser()]
        return [permissions.AllowAny()]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("Registered admin %s", user.username)
        return Response(
            {'detail': 'Admin registered.', **issue_tokens(user, 'admin'), 'user': UserSerializer(user).data},
            status=status.HTTP_201_CREATED,
        )


class AdminLoginView(generics.GenericAPIView):
    serializer_class = AdminLoginSerializer
    permission_classes = [permissions.AllowAny]
    throttle_classes = [LoginRateThrottle]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = authenticate(
            request,
            username=serializer.validated_data['username'],
            password=serializer.validated_data['password'],
        )
        if user is None or not user.is_staff:
            logger.warning("Failed admin login for %s", serializer.validated_data['username'])
            raise AuthenticationFailed('Invalid credentials')

        return Response({**issue_tokens(user, 'admin'), 'user': UserSerializer(user).data})


class AdminProfileView(generics.RetrieveUpdateAPIView):
    serializer_class = AdminProfileSerializer
    permission_classes = [permissions.IsAdminUser]
    http_method_names = ['get', 'put', 'patch', 'head', 'options']

    def get_object(self):
        return self.request.user

    def update(self, request, *args, **kwargs):
        kwargs['partial'] = True
        return super().update(request, *args, **kwargs)


# ================= Client =================
class ClientRegisterView(generics.GenericAPIView):
    serializer_class = ClientRegisterSerializer
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        profile, _ = create_client(**serializer.validated_data)
        return Response(
            {
                'detail': 'Client registered.',
                **issue_tokens(profile.user, 'client'),
                'user': ClientSelfProfileSerializer(profile).data,
            },
            status=status.HTTP_201_CREATED,
        )


class ClientLoginView(generics.GenericAPIView):
    serializer_class = ClientLoginSerializer
    permission_classes = [permissions.AllowAny]
    throttle_classes = [LoginRateThrottle]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data['email']

        user = User.objects.select_related('client_profile').filter(email__iexact=email).first()
        if user is None or not user.check_password(serializer.validated_data['password']):
            logger.warning("Failed client login for %s", email)
            raise AuthenticationFailed('Invalid credentials')

        profile = getattr(user, 'client_profile', None)
        if profile is None:
            raise AuthenticationFailed('Invalid credentials')
        if not user.is_active or not profile.is_active:
            raise PermissionDenied('This account is inactive.')

        return Response({**issue_tokens(user, 'client'), 'user': ClientSelfProfileSerializer(profile).data})


class ClientProfileView(generics.RetrieveUpdateAPIView):
    serializer_class = ClientSelfProfileSerializer
    permission_classes = [IsClient]
    http_method_names = ['get', 'put', 'patch', 'head', 'options']

    def get_object(self):
        return self.request.user.client_profile

    def update(self, request, *args, **kwargs):
        kwargs['partial'] = True
        return super().update(request, *args, **kwargs)


# ================= Tokens =================
class LogoutView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = LogoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            RefreshToken(serializer.validated_data['refresh']).blacklist()
        except TokenError as exc:
            raise ValidationError({'refresh': str(exc)})
        return Response({'detail': 'Logged out.'}, status=status.HTTP_200_OK)
