# apps/accounts/permissions.py
from rest_framework import permissions

class IsDriver(permissions.BasePermission):
    """
    Authenticated user with a driver profile. Approval is checked by the
    dispatch services so that the error carries a typed reason.
    """
    message = "User is not a registered driver."

    def has_permission(self, request, view):
        return bool(
            request.user and
            request.user.is_authenticated and
            hasattr(request.user, 'driver_profile')
        )
