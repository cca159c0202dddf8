from rest_framework import permissions


class IsClient(permissions.BasePermission):
    """Authenticated user that owns a client profile."""

    message = "Only clients can perform this action."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and hasattr(user, "client_profile"))


class IsAdminOrReadOnly(permissions.BasePermission):
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return bool(request.user and request.user.is_staff)
