"""Route registration for catalog endpoints."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import TicketCategoryViewSet, TicketTypeViewSet

router = DefaultRouter()
router.register("ticket-types", TicketTypeViewSet, basename="ticket-type")
router.register("categories", TicketCategoryViewSet, basename="category")

urlpatterns = [
    path("", include(router.urls)),
]
