"""Route registration for authentication, company and directory endpoints."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    CompanySettingsView,
    CustomerViewSet,
    UserViewSet,
    health,
    login,
    logout,
    me,
    test_pmo_connection,
)

router = DefaultRouter()
router.register("customers", CustomerViewSet, basename="customer")
router.register("users", UserViewSet, basename="user")

urlpatterns = [
    path("healthz/", health, name="helpdesk-health"),
    path("auth/login/", login, name="auth-login"),
    path("auth/logout/", logout, name="auth-logout"),
    path("auth/me/", me, name="auth-me"),
    path("company/settings/", CompanySettingsView.as_view(), name="company-settings"),
    path("company/settings/test-pmo/", test_pmo_connection, name="company-settings-test-pmo"),
    path("", include(router.urls)),
]
