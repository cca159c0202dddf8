from django.conf import settings
from rest_framework_simplejwt.tokens import RefreshToken


def issue_tokens(user, role: str) -> dict:
    """Return a refresh/access pair carrying the ``role`` claim.

    Admin access tokens use ``ADMIN_ACCESS_TOKEN_LIFETIME`` (1 hour by default),
    client access tokens ``CLIENT_ACCESS_TOKEN_LIFETIME`` (24 hours).
    """
    refresh = RefreshToken.for_user(user)
    refresh["role"] = role

    access = refresh.access_token
    if role == "client":
        access.set_exp(from_time=refresh.current_time, lifetime=settings.CLIENT_ACCESS_TOKEN_LIFETIME)
    else:
        access.set_exp(from_time=refresh.current_time, lifetime=settings.ADMIN_ACCESS_TOKEN_LIFETIME)

    return {
        'access': str(access),
        'refresh': str(refresh),
    }
