"""Permission classes for account endpoints."""
from rest_framework import permissions


class IsSelfOrStaff(permissions.BasePermission):
    """Staff manage every account; other users only their own."""

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if view.action == "list":
            return request.user.is_staff
        return True

    def has_object_permission(self, request, view, obj):
        if request.user.is_staff:
            return True
        return obj.pk == request.user.pk
