from rest_framework.permissions import BasePermission

COMMERCIAL_ROLES = ('admin', 'manager')


def is_commercial_user(user):
    """
    Check if user may use the commercial module.
    Returns True for superusers and for 'admin'/'manager' roles.
    """
    if not user or not user.is_authenticated:
        return False
    return user.is_superuser or user.role in COMMERCIAL_ROLES


class IsOrganizationMember(BasePermission):
    message = 'User is not attached to an organization.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.organization_id)


class IsCommercialManager(BasePermission):
    message = 'Commercial management requires an administrator or manager role.'

    def has_permission(self, request, view):
        return is_commercial_user(request.user)


class IsTrainingManager(BasePermission):
    message = 'Training management requires an administrator or manager role.'

    def has_permission(self, request, view):
        return is_commercial_user(request.user)
