from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    AdminLoginView,
    AdminProfileView,
    AdminRegisterView,
    ClientLoginView,
    ClientProfileView,
    ClientRegisterView,
    LogoutView,
)

urlpatterns = [
    path("admin/register/", AdminRegisterView.as_view(), name="admin-register"),
    path("admin/login/", AdminLoginView.as_view(), name="admin-login"),
    path("admin/profile/", AdminProfileView.as_view(), name="admin-profile"),
    path("client/register/", ClientRegisterView.as_view(), name="client-register"),
    path("client/login/", ClientLoginView.as_view(), name="client-login"),
    path("client/profile/", ClientProfileView.as_view(), name="client-profile"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("logout/", LogoutView.as_view(), name="logout"),
]
