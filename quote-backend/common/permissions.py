# common/permissions.py
from rest_framework import permissions

STAFF_ONLY_ACTIONS = ("list", "destroy")


def _is_staff(user):
    return bool(user.is_staff or user.is_superuser)


class IsStaffOrSelf(permissions.BasePermission):
    """
    Listing and deleting users is staff only. A single user record can be
    read or changed by staff or by that user.
    """

    def has_permission(self, request, view):
        u = request.user
        if not (u and u.is_authenticated):
            return False
        if getattr(view, "action", None) in STAFF_ONLY_ACTIONS:
            return _is_staff(u)
        return True

    def has_object_permission(self, request, view, obj):
        u = request.user
        return _is_staff(u) or obj.pk == u.pk
