from rest_framework import permissions

STAFF_ROLES = ("agent", "manager", "finance")


def _role(request):
    user = request.user
    if not (user and user.is_authenticated):
        return None
    return getattr(user, "role", None)


class IsStaffRole(permissions.BasePermission):
    """
    Agents, managers and finance users: the operators who process quotes.
    """
    def has_permission(self, request, view):
        return _role(request) in STAFF_ROLES


class IsManagerOrFinance(permissions.BasePermission):
    """
    Custom permission to only allow manager or finance users to perform certain actions.
    """
    def has_permission(self, request, view):
        return _role(request) in ("manager", "finance")
