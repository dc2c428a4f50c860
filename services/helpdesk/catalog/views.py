"""API views for ticket types and categories."""
from __future__ import annotations

import logging

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.response import Response

from accounts.models import User
from accounts.permissions import IsTenantAdminOrReadOnly
from helpdesk_service.errors import InvalidArgument

from .models import TicketCategory, TicketType
from .serializers import TicketCategorySerializer, TicketTypeSerializer

logger = logging.getLogger(__name__)


class TenantCatalogViewSet(viewsets.ModelViewSet):
    """Company-scoped catalog entries; customers only see active ones."""

    permission_classes = [IsTenantAdminOrReadOnly]
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["name", "description"]
    ordering_fields = ["sort_order", "name", "updated_at"]
    ordering = ["sort_order", "name"]
    model = None
    prefetch = ""

    def get_queryset(self):  # type: ignore[override]
        queryset = self.model.objects.prefetch_related(self.prefetch).filter(
            company_id=self.request.user.company_id
        )
        active = self.request.query_params.get("active")
        if self.request.user.role != User.ADMIN:
            queryset = queryset.filter(is_active=True)
        elif active is not None:
            queryset = queryset.filter(is_active=active.lower() in {"1", "true", "yes"})
        return queryset

    def perform_create(self, serializer) -> None:  # type: ignore[override]
        instance = serializer.save(company_id=self.request.user.company_id)
        logger.info("%s %s created by user %s", self.model.__name__, instance.pk, self.request.user.pk)

    def perform_destroy(self, instance) -> None:  # type: ignore[override]
        if instance.tickets.exists():
            raise InvalidArgument(
                f"{instance.name} is used by existing tickets; deactivate it instead."
            )
        instance.delete()

    @action(detail=True, methods=["post"], url_path="toggle-active")
    def toggle_active(self, request, *args, **kwargs):  # type: ignore[override]
        """Flip whether the entry is offered to customers."""

        instance = self.get_object()
        instance.is_active = not instance.is_active
        instance.save(update_fields=["is_active", "updated_at"])
        serializer = self.get_serializer(instance)
        return Response(serializer.data)


class TicketTypeViewSet(TenantCatalogViewSet):
    serializer_class = TicketTypeSerializer
    model = TicketType
    prefetch = "fields"


class TicketCategoryViewSet(TenantCatalogViewSet):
    serializer_class = TicketCategorySerializer
    model = TicketCategory
    prefetch = "modules"
