"""DRF permission classes enforcing tenant membership and role."""
from __future__ import annotations

from rest_framework.permissions import SAFE_METHODS, BasePermission

from .models import User


class IsTenantMember(BasePermission):
    message = "You must be signed in to an active company account."

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = request.user
        if not user or not user.is_authenticated:
            return False
        company = getattr(user, "company", None)
        return company is not None and company.is_active


class IsTenantAdmin(IsTenantMember):
    message = "Only administrators can perform this action."

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return super().has_permission(request, view) and request.user.role == User.ADMIN


class IsTenantAdminOrReadOnly(IsTenantMember):
    """Members may read; only administrators may write."""

    message = "Only administrators can modify this resource."

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        if not super().has_permission(request, view):
            return False
        return request.method in SAFE_METHODS or request.user.role == User.ADMIN
