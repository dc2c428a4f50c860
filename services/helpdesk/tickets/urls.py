"""Route registration for ticket endpoints."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import TicketViewSet, dashboard, pmo_sync_metrics

router = DefaultRouter()
router.register("tickets", TicketViewSet, basename="ticket")

urlpatterns = [
    path("dashboard/", dashboard, name="dashboard"),
    path("tickets/pmo-sync/metrics/", pmo_sync_metrics, name="ticket-pmo-sync-metrics"),
    path("", include(router.urls)),
]
